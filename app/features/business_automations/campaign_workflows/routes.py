"""
Campaign workflow API routes.

Handles:
- GET|POST /cron/process - Run one workflow poll (bearer token)
- POST /campaigns/{campaign_id}/enroll - Put a campaign's prospects on its start node
- GET /campaigns/{campaign_id}/execution-plan - Breadth-first preview of the workflow
"""

from app.features.core.route_imports import *
from app.features.business_automations.campaign_workflows.dependencies import (
    get_graph_store,
    get_poll_driver,
    get_workflow_driver,
    verify_cron_token,
)
from app.features.business_automations.campaign_workflows.exceptions import (
    CampaignNotFoundError,
    WorkflowConfigurationError,
)
from app.features.business_automations.campaign_workflows.models import Campaign
from app.features.business_automations.campaign_workflows.schemas import (
    EnrollmentResult,
    ExecutionPlanStep,
    ProcessWorkflowsResponse,
)
from app.features.business_automations.campaign_workflows.services import GraphStore, WorkflowDriver

logger = get_logger(__name__)

router = APIRouter(
    prefix="/api/v1/campaign-workflows",
    tags=["campaign-workflows"]
)


@router.api_route(
    "/cron/process",
    methods=["GET", "POST"],
    response_model=ProcessWorkflowsResponse,
    dependencies=[Depends(verify_cron_token)],
)
async def process_workflows(driver: WorkflowDriver = Depends(get_poll_driver)):
    """
    Run one poll cycle over all tenants.

    Called by an external scheduler when Celery beat is not running.

    Returns:
        Number of prospects processed
    """
    try:
        processed_count = await driver.process_ready_prospects()
        return ProcessWorkflowsResponse(
            success=True,
            processed_count=processed_count,
            message=f"Processed {processed_count} prospects",
        )

    except Exception as e:
        handle_route_error("process_workflows", e)
        raise HTTPException(status_code=500, detail="Failed to process workflows")


@router.post("/campaigns/{campaign_id}/enroll", response_model=EnrollmentResult)
async def enroll_campaign(
    campaign_id: str,
    driver: WorkflowDriver = Depends(get_workflow_driver)
):
    """
    Start workflow execution for every prospect assigned to the campaign.

    Safe to call repeatedly: prospects that already have a cursor keep it.

    Args:
        campaign_id: Campaign ID
        driver: Tenant-scoped workflow driver

    Returns:
        Enrollment counts
    """
    try:
        return await driver.enroll_campaign(campaign_id)

    except CampaignNotFoundError:
        raise HTTPException(status_code=404, detail="Campaign not found")
    except WorkflowConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        handle_route_error("enroll_campaign", e, campaign_id=campaign_id)
        raise HTTPException(status_code=500, detail="Failed to enroll campaign")


@router.get("/campaigns/{campaign_id}/execution-plan")
async def get_execution_plan(
    campaign_id: str,
    graph: GraphStore = Depends(get_graph_store)
):
    """
    Get the breadth-first execution plan of a campaign workflow.

    Args:
        campaign_id: Campaign ID
        graph: Tenant-scoped graph store

    Returns:
        {"campaign_id", "steps": [{step, node_id, type, config, path}]}
    """
    try:
        campaign = await graph.get_by_id(Campaign, campaign_id)
        if not campaign:
            raise HTTPException(status_code=404, detail="Campaign not found")

        plan = await graph.build_execution_plan(campaign_id)
        return {
            "campaign_id": campaign_id,
            "steps": [ExecutionPlanStep(**step).model_dump() for step in plan],
        }

    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("get_execution_plan", e, campaign_id=campaign_id)
        raise HTTPException(status_code=500, detail="Failed to build execution plan")
