"""
Workflow driver: the poll loop that advances prospects through campaign
workflows.

Each call to process_ready_prospects() executes at most one node per due
prospect. Waits are stored as scheduled_for on the cursor, so nothing blocks
between polls. A failure for one prospect is recorded on its cursor and never
aborts the rest of the batch.
"""

from app.features.core.sqlalchemy_imports import *
from app.features.core.clock import Clock, SystemClock
from app.features.core.config import Settings, get_settings
from app.features.core.enhanced_base_service import BaseService
from app.deps.tenant import tenant_ctx_var
from app.features.business_automations.campaign_workflows.exceptions import (
    CampaignNotFoundError,
    WorkflowConfigurationError,
)
from app.features.business_automations.campaign_workflows.models import (
    Campaign,
    CampaignProspect,
    Prospect,
    WorkflowNode,
    WorkflowProspectState,
)
from app.features.business_automations.campaign_workflows.schemas import EnrollmentResult, ExecutionContext
from app.features.business_automations.campaign_workflows.services.executor import NodeExecutor
from app.features.business_automations.campaign_workflows.services.graph_store import GraphStore
from app.features.business_automations.campaign_workflows.services.state_store import ProspectStateStore

logger = get_logger(__name__)


class WorkflowDriver(BaseService[WorkflowProspectState]):
    """
    Poll-driven workflow execution.

    Constructed with tenant_id=None (the default) the driver processes every
    tenant; the Celery task and the cron endpoint use it that way.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        tenant_id: Optional[str] = None,
        clock: Optional[Clock] = None,
        executor: Optional[NodeExecutor] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(db_session, tenant_id)
        self.clock = clock or SystemClock()
        self.executor = executor or NodeExecutor()
        self.settings = settings or get_settings()
        self.graph = GraphStore(db_session, tenant_id)
        self.states = ProspectStateStore(db_session, tenant_id)

    async def reclaim_stale_executions(self) -> int:
        """Release leases older than WORKFLOW_LEASE_TIMEOUT_MINUTES."""
        timeout = timedelta(minutes=self.settings.WORKFLOW_LEASE_TIMEOUT_MINUTES)
        return await self.states.reclaim_stale_executions(self.clock.now(), timeout)

    async def process_ready_prospects(self) -> int:
        """
        Run one poll cycle.

        Returns:
            Number of cursors claimed and executed in this cycle
        """
        now = self.clock.now()
        await self.reclaim_stale_executions()

        due_states = await self.states.get_due_states(now, self.settings.WORKFLOW_BATCH_SIZE)
        state_ids = [state.id for state in due_states]

        processed = 0
        for state_id in state_ids:
            claimed = False
            try:
                loaded = await self._load_step(state_id)
                if loaded is None:
                    continue

                state, campaign_prospect, prospect, node = loaded
                claimed = await self.states.claim(state, self.clock.now())
                if not claimed:
                    continue

                await self._execute_step(state, campaign_prospect, prospect, node)
                processed += 1

            except Exception as e:
                # A database error leaves the session unusable until rolled back
                await self.db.rollback()
                logger.error("Failed to process workflow state", state_id=state_id, error=str(e), exc_info=True)
                if claimed:
                    await self._record_unexpected_error(state_id, e)
                    processed += 1

        logger.info("Workflow poll finished", due=len(state_ids), processed=processed, now=now.isoformat())
        return processed

    async def _load_step(self, state_id: int) -> Optional[Tuple[WorkflowProspectState, CampaignProspect, Prospect, WorkflowNode]]:
        """
        Resolve everything one step needs.

        Returns:
            (state, campaign_prospect, prospect, node), or None when the cursor
            has nothing to run or a referenced row is missing (state untouched)
        """
        state = await self.states.get_state_by_id(state_id)
        if state is None or state.current_node_id is None:
            return None

        campaign_prospect = await self.get_by_id(CampaignProspect, state.campaign_prospect_id)
        if campaign_prospect is None:
            logger.warning("Campaign prospect not found, skipping", state_id=state.id,
                           campaign_prospect_id=state.campaign_prospect_id)
            return None

        prospect = await self.get_by_id(Prospect, campaign_prospect.prospect_id)
        if prospect is None:
            logger.warning("Prospect not found, skipping", state_id=state.id,
                           prospect_id=campaign_prospect.prospect_id)
            return None

        node = await self.graph.get_node(state.current_node_id)
        if node is None:
            logger.warning("Workflow node not found, skipping", state_id=state.id, node_id=state.current_node_id)
            return None

        return state, campaign_prospect, prospect, node

    async def _execute_step(
        self,
        state: WorkflowProspectState,
        campaign_prospect: CampaignProspect,
        prospect: Prospect,
        node: WorkflowNode,
    ) -> None:
        """Execute the claimed cursor's current node and advance it."""
        now = self.clock.now()
        token = tenant_ctx_var.set(state.tenant_id)
        try:
            context = ExecutionContext(
                tenant_id=state.tenant_id,
                campaign_id=campaign_prospect.campaign_id,
                campaign_prospect_id=campaign_prospect.id,
                state_id=state.id,
            )
            result = await self.executor.execute(node, prospect, context)

            if not result.success:
                await self.states.record_error(state.id, result.error or "Node execution failed", now)
                return

            edges = await self.graph.get_outgoing_edges(node.id, result.branch)
            target = None
            if edges:
                if len(edges) > 1:
                    logger.debug("Multiple outgoing edges, following the first", node_id=node.id,
                                 branch=result.branch, edge_ids=[edge.id for edge in edges])
                target = await self.graph.get_node(edges[0].target_node_id)

            if target is None:
                await self.states.advance(state, node, None, now, branch=result.branch)
                logger.info("Prospect completed workflow", state_id=state.id,
                            campaign_prospect_id=campaign_prospect.id, last_node_id=node.id)
            else:
                await self.states.advance(state, node, target, now, branch=result.branch)
                logger.info("Prospect advanced", state_id=state.id, from_node_id=node.id,
                            to_node_id=target.id, status=state.status,
                            scheduled_for=state.scheduled_for.isoformat() if state.scheduled_for else None)
        finally:
            tenant_ctx_var.reset(token)

    async def _record_unexpected_error(self, state_id: int, error: Exception) -> None:
        """Put a claimed cursor whose step raised back to ready with the error."""
        try:
            await self.states.record_error(state_id, f"{type(error).__name__}: {error}", self.clock.now())
        except Exception as e:
            await self.db.rollback()
            logger.error("Failed to record workflow error", state_id=state_id, error=str(e))

    async def initialize_prospect_workflow(self, campaign_prospect_id: int, start_node_id: int) -> WorkflowProspectState:
        """Place a campaign prospect on the start node; idempotent."""
        state, _ = await self.states.initialize_prospect_workflow(campaign_prospect_id, start_node_id, self.clock.now())
        return state

    async def enroll_campaign(self, campaign_id: str) -> EnrollmentResult:
        """
        Initialize workflow cursors for every prospect assigned to a campaign.

        Raises:
            WorkflowConfigurationError: campaign missing, without a start node,
                or without prospects
        """
        try:
            campaign = await self.get_by_id(Campaign, campaign_id)
            if campaign is None:
                raise CampaignNotFoundError(f"Campaign {campaign_id} not found")

            start_node = await self.graph.get_start_node(campaign_id)
            if start_node is None:
                raise WorkflowConfigurationError("No start node found in workflow")

            stmt = (
                self.create_base_query(CampaignProspect)
                .where(CampaignProspect.campaign_id == campaign_id)
                .order_by(CampaignProspect.id.asc())
            )
            assignments = list((await self.db.execute(stmt)).scalars().all())
            if not assignments:
                raise WorkflowConfigurationError("No prospects assigned to this campaign")

            created_count = 0
            now = self.clock.now()
            for assignment in assignments:
                _, created = await self.states.initialize_prospect_workflow(assignment.id, start_node.id, now)
                if created:
                    created_count += 1

            result = EnrollmentResult(
                campaign_id=campaign_id,
                start_node_id=start_node.id,
                prospect_count=len(assignments),
                created_count=created_count,
                existing_count=len(assignments) - created_count,
            )
            self.log_operation("enroll_campaign", result.model_dump())
            return result

        except WorkflowConfigurationError:
            raise
        except Exception as e:
            await self.handle_error("enroll_campaign", e, campaign_id=campaign_id)
            raise
