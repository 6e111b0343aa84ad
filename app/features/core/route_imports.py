"""
Shared imports and helpers for FastAPI routes and route dependencies.

Feature routers star-import this module so every slice resolves sessions,
tenants and logging the same way.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.core.database import get_db
from app.deps.tenant import tenant_dependency

__all__ = [
    # FastAPI
    'APIRouter', 'Depends', 'Header', 'HTTPException', 'status',

    # Database
    'AsyncSession', 'get_db',

    # Tenancy
    'tenant_dependency',

    'Optional',

    # Logging and helpers
    'get_logger', 'handle_route_error', 'parse_bearer_token',
]


def get_logger(name: str):
    """Standardized logger creation for routes."""
    return structlog.get_logger(name)


def handle_route_error(operation: str, error: Exception, **context):
    """Log an unexpected route failure before it is turned into a 500."""
    logger = get_logger("route_handler")
    logger.error("Route operation failed",
                operation=operation,
                error=str(error),
                error_type=type(error).__name__,
                **context)


def parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """
    Extract the token from an "Authorization: Bearer <token>" header value.

    Returns None when the header is missing or uses another scheme.
    """
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip()
