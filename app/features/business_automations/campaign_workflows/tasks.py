"""
Celery background tasks for Campaign Workflows.

Handles:
- The periodic workflow poll (scheduled by Celery beat)
- Stale lease reclaim
- Campaign enrollment off the request path
"""

import asyncio
from typing import Any, Dict

from app.features.core.celery_app import celery_app
from app.features.core.database import async_session, engine
from app.features.core.sqlalchemy_imports import get_logger

from app.features.business_automations.campaign_workflows.services import WorkflowDriver

logger = get_logger(__name__)


@celery_app.task(name="campaign_workflows.process_ready_prospects")
def process_ready_prospects_task() -> Dict[str, Any]:
    """
    Run one workflow poll cycle over all tenants.

    Returns:
        Task result summary
    """
    return asyncio.run(_process_ready_prospects_async())


async def _process_ready_prospects_async() -> Dict[str, Any]:
    """Async implementation of the workflow poll."""
    try:
        async with async_session() as db:
            driver = WorkflowDriver(db)
            processed = await driver.process_ready_prospects()

        logger.info("Workflow poll task completed", processed_count=processed)
        return {"success": True, "processed_count": processed}
    finally:
        # Pooled connections are bound to this task's event loop
        await engine.dispose()


@celery_app.task(name="campaign_workflows.reclaim_stale_executions")
def reclaim_stale_executions_task() -> Dict[str, Any]:
    """Release workflow leases held past WORKFLOW_LEASE_TIMEOUT_MINUTES."""
    return asyncio.run(_reclaim_stale_executions_async())


async def _reclaim_stale_executions_async() -> Dict[str, Any]:
    try:
        async with async_session() as db:
            reclaimed = await WorkflowDriver(db).reclaim_stale_executions()
        return {"success": True, "reclaimed_count": reclaimed}
    finally:
        await engine.dispose()


@celery_app.task(name="campaign_workflows.enroll_campaign")
def enroll_campaign_task(campaign_id: str, tenant_id: str) -> Dict[str, Any]:
    """
    Initialize workflow cursors for every prospect of a campaign.

    Args:
        campaign_id: Campaign ID
        tenant_id: Tenant owning the campaign

    Returns:
        Enrollment counts, or the error when the campaign cannot be enrolled
    """
    return asyncio.run(_enroll_campaign_async(campaign_id, tenant_id))


async def _enroll_campaign_async(campaign_id: str, tenant_id: str) -> Dict[str, Any]:
    from app.features.business_automations.campaign_workflows.exceptions import WorkflowConfigurationError

    try:
        async with async_session() as db:
            driver = WorkflowDriver(db, tenant_id)
            result = await driver.enroll_campaign(campaign_id)
        return {"success": True, **result.model_dump()}
    except WorkflowConfigurationError as e:
        logger.warning("Campaign enrollment rejected", campaign_id=campaign_id, tenant_id=tenant_id, error=str(e))
        return {"success": False, "error": str(e)}
    finally:
        await engine.dispose()
