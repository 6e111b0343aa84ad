"""
Base audit mixin for consistent audit fields across all models.
"""

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from typing import Dict, Any


class AuditMixin:
    """
    Standardized creation/update audit fields.

    Stores the human-readable author (email) rather than just a user id.
    Rows written by background workers carry "system".
    """

    created_by_email = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)

    updated_by_email = Column(String(255), nullable=True)
    updated_at = Column(DateTime, onupdate=func.now(), server_default=func.now())

    def get_audit_info(self) -> Dict[str, Any]:
        """Get audit information for this record."""
        return {
            "created_by": self.created_by_email,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_by": self.updated_by_email,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
