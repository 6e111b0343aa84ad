"""
Shared SQLAlchemy and typing imports for service modules.

Services star-import this module and get the statement builders, the session
type and a structlog logger factory from one place.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar

import structlog
from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

__all__ = [
    # Sessions and statements
    'AsyncSession', 'Select', 'select', 'update',

    # Logical operators
    'and_', 'or_',

    # Typing and time
    'Any', 'Dict', 'Generic', 'List', 'Optional', 'Tuple', 'TypeVar',
    'datetime', 'timedelta',

    'get_logger',
]


def get_logger(name: str):
    """Standardized logger creation."""
    return structlog.get_logger(name)
