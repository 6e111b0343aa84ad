"""
Dependency injection for Campaign Workflows feature.

Provides factory functions for service instantiation in routes.
"""

import secrets

from app.features.core.route_imports import *
from app.features.core.config import get_settings
from app.features.business_automations.campaign_workflows.services import GraphStore, WorkflowDriver

logger = get_logger(__name__)


def get_workflow_driver(
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(tenant_dependency)
) -> WorkflowDriver:
    """
    Get a tenant-scoped workflow driver.

    Args:
        db: Database session
        tenant_id: Current tenant ID

    Returns:
        WorkflowDriver instance
    """
    return WorkflowDriver(db, tenant_id)


def get_poll_driver(db: AsyncSession = Depends(get_db)) -> WorkflowDriver:
    """Get a workflow driver spanning all tenants, for the cron trigger."""
    return WorkflowDriver(db)


def get_graph_store(
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(tenant_dependency)
) -> GraphStore:
    """Get a tenant-scoped graph store."""
    return GraphStore(db, tenant_id)


async def verify_cron_token(authorization: Optional[str] = Header(None)) -> None:
    """
    Require "Authorization: Bearer <WORKFLOW_CRON_TOKEN>".

    Raises:
        HTTPException: 401 when the token is missing, wrong, or not configured
    """
    expected = get_settings().WORKFLOW_CRON_TOKEN
    if not expected:
        logger.warning("Cron trigger called but WORKFLOW_CRON_TOKEN is not configured")
        raise HTTPException(status_code=401, detail="Unauthorized")

    token = parse_bearer_token(authorization)
    if token is None or not secrets.compare_digest(token.encode(), expected.encode()):
        logger.warning("Rejected cron trigger with invalid token")
        raise HTTPException(status_code=401, detail="Unauthorized")
