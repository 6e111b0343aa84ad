"""
Persistence of prospect workflow cursors (workflow_prospect_states).

Every status change of a cursor goes through this service. The
ready/waiting -> executing transition is a single conditional UPDATE; its
rowcount tells the caller whether it owns the row for this step.
"""

from sqlalchemy.exc import IntegrityError

from app.features.core.sqlalchemy_imports import *
from app.features.core.enhanced_base_service import BaseService
from app.features.business_automations.campaign_workflows.exceptions import WorkflowConfigurationError
from app.features.business_automations.campaign_workflows.models import (
    CampaignProspect,
    Prospect,
    ProspectStateStatus,
    WorkflowNode,
    WorkflowProspectState,
)
from app.features.business_automations.campaign_workflows.services.timing import is_timing_node, next_time

logger = get_logger(__name__)

LEASE_EXPIRED_ERROR = "Execution lease expired before the step finished"


def _is_due(now: datetime):
    """SQL predicate: ready, or waiting with a schedule that has passed."""
    return or_(
        WorkflowProspectState.status == ProspectStateStatus.READY.value,
        and_(
            WorkflowProspectState.status == ProspectStateStatus.WAITING.value,
            WorkflowProspectState.scheduled_for <= now,
        ),
    )


class ProspectStateStore(BaseService[WorkflowProspectState]):
    """Service for reading and transitioning workflow prospect states."""

    def __init__(self, db_session: AsyncSession, tenant_id: Optional[str] = None):
        super().__init__(db_session, tenant_id)

    async def get_state(self, campaign_prospect_id: int) -> Optional[WorkflowProspectState]:
        """Get the cursor of a campaign prospect, or None."""
        try:
            stmt = self.create_base_query(WorkflowProspectState).where(
                WorkflowProspectState.campaign_prospect_id == campaign_prospect_id
            )
            result = await self.db.execute(stmt)
            return result.scalar_one_or_none()

        except Exception as e:
            await self.handle_error("get_state", e, campaign_prospect_id=campaign_prospect_id)
            raise

    async def get_state_by_id(self, state_id: int) -> Optional[WorkflowProspectState]:
        """Get a cursor by ID, re-reading it from the database."""
        try:
            stmt = (
                self.create_base_query(WorkflowProspectState)
                .where(WorkflowProspectState.id == state_id)
                .execution_options(populate_existing=True)
            )
            result = await self.db.execute(stmt)
            return result.scalar_one_or_none()

        except Exception as e:
            await self.handle_error("get_state_by_id", e, state_id=state_id)
            raise

    async def initialize_prospect_workflow(
        self,
        campaign_prospect_id: int,
        start_node_id: int,
        now: datetime,
    ) -> Tuple[WorkflowProspectState, bool]:
        """
        Place a campaign prospect on the start node.

        Idempotent: an existing cursor is returned unchanged.

        Args:
            campaign_prospect_id: CampaignProspect ID
            start_node_id: Node the prospect starts at
            now: Current time (becomes scheduled_for)

        Returns:
            Tuple of (state, created)

        Raises:
            WorkflowConfigurationError: campaign prospect does not exist
        """
        existing = await self.get_state(campaign_prospect_id)
        if existing is not None:
            return existing, False

        campaign_prospect = await self.get_by_id(CampaignProspect, campaign_prospect_id)
        if campaign_prospect is None:
            raise WorkflowConfigurationError(f"Campaign prospect {campaign_prospect_id} not found")

        state = WorkflowProspectState(
            tenant_id=campaign_prospect.tenant_id,
            campaign_prospect_id=campaign_prospect_id,
            current_node_id=start_node_id,
            status=ProspectStateStatus.READY.value,
            scheduled_for=now,
            retry_count=0,
        )
        self.db.add(state)

        try:
            await self.db.commit()
        except IntegrityError:
            # Another writer initialized the same campaign prospect first
            await self.db.rollback()
            existing = await self.get_state(campaign_prospect_id)
            if existing is None:
                raise
            return existing, False

        await self.db.refresh(state)
        self.log_operation("initialize_prospect_workflow", {
            "campaign_prospect_id": campaign_prospect_id,
            "start_node_id": start_node_id,
            "state_id": state.id,
        })
        return state, True

    async def get_due_states(self, now: datetime, limit: int) -> List[WorkflowProspectState]:
        """
        Get cursors that should execute their current node now.

        Args:
            now: Current time
            limit: Batch size

        Cursors whose node, campaign prospect or prospect no longer exists are
        left out so they cannot fill the batch.

        Returns:
            Due states with a current node, oldest schedule first
        """
        try:
            stmt = (
                self.create_base_query(WorkflowProspectState)
                .join(WorkflowNode, WorkflowNode.id == WorkflowProspectState.current_node_id)
                .join(CampaignProspect, CampaignProspect.id == WorkflowProspectState.campaign_prospect_id)
                .join(Prospect, Prospect.id == CampaignProspect.prospect_id)
                .where(
                    and_(
                        WorkflowProspectState.current_node_id.isnot(None),
                        _is_due(now),
                    )
                )
                .order_by(
                    WorkflowProspectState.scheduled_for.asc().nulls_first(),
                    WorkflowProspectState.id.asc(),
                )
                .limit(limit)
            )
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        except Exception as e:
            await self.handle_error("get_due_states", e)
            raise

    async def claim(self, state: WorkflowProspectState, now: datetime) -> bool:
        """
        Take the execution lease on a due cursor.

        Returns:
            True when this caller moved the row to executing; False when the
            row was no longer due (claimed by another poller or changed)
        """
        stmt = (
            update(WorkflowProspectState)
            .where(
                and_(
                    WorkflowProspectState.id == state.id,
                    WorkflowProspectState.current_node_id == state.current_node_id,
                    _is_due(now),
                )
            )
            .values(
                status=ProspectStateStatus.EXECUTING.value,
                execution_started_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        stmt = self.apply_tenant_filter(stmt, WorkflowProspectState)

        result = await self.db.execute(stmt)
        await self.db.commit()

        if result.rowcount != 1:
            logger.debug("State already claimed", state_id=state.id)
            return False

        await self.db.refresh(state)
        return True

    async def advance(
        self,
        state: WorkflowProspectState,
        executed_node: WorkflowNode,
        target_node: Optional[WorkflowNode],
        now: datetime,
        branch: Optional[str] = None,
    ) -> WorkflowProspectState:
        """
        Move a cursor past the node it just executed.

        - no target: completed, current node cleared
        - timing target: waiting until next_time(target, now)
        - any other target: ready now

        The executed node's side effect has already happened, so a timing
        target with an invalid config does not keep the cursor on the executed
        node: the cursor enters the target due immediately, with the config
        error kept on the row.
        """
        error = None
        if target_node is None:
            state.status = ProspectStateStatus.COMPLETED.value
            state.current_node_id = None
            state.scheduled_for = None
            state.completed_at = now
        elif is_timing_node(target_node.type):
            try:
                resume_at = next_time(target_node, now)
            except WorkflowConfigurationError as e:
                logger.warning("Invalid timing node config, not waiting", state_id=state.id,
                               node_id=target_node.id, error=str(e))
                resume_at = now
                error = str(e)
            state.status = ProspectStateStatus.WAITING.value
            state.current_node_id = target_node.id
            state.scheduled_for = resume_at
        else:
            state.status = ProspectStateStatus.READY.value
            state.current_node_id = target_node.id
            state.scheduled_for = now

        state.last_executed_at = now
        state.execution_started_at = None
        state.error = error
        state.retry_count = 0
        state.state_metadata = {
            **(state.state_metadata or {}),
            "last_node_id": executed_node.id,
            "last_branch": branch,
        }

        await self.db.commit()
        return state

    async def record_error(self, state_id: int, error: str, now: datetime) -> Optional[WorkflowProspectState]:
        """
        Release the lease after a failed step.

        The cursor stays on its node as ready so the next poll retries it.
        Its schedule moves to `now`, behind cursors that have waited longer.
        """
        state = await self.get_state_by_id(state_id)
        if state is None:
            return None

        state.status = ProspectStateStatus.READY.value
        state.scheduled_for = now
        state.error = error
        state.retry_count = (state.retry_count or 0) + 1
        state.last_executed_at = now
        state.execution_started_at = None

        await self.db.commit()
        return state

    async def reclaim_stale_executions(self, now: datetime, timeout: timedelta) -> int:
        """
        Revert leases held longer than `timeout`, or with no start time, back
        to ready and to the back of the due queue.

        Returns:
            Number of cursors released
        """
        cutoff = now - timeout
        stmt = (
            update(WorkflowProspectState)
            .where(
                and_(
                    WorkflowProspectState.status == ProspectStateStatus.EXECUTING.value,
                    or_(
                        WorkflowProspectState.execution_started_at.is_(None),
                        WorkflowProspectState.execution_started_at < cutoff,
                    ),
                )
            )
            .values(
                status=ProspectStateStatus.READY.value,
                scheduled_for=now,
                error=LEASE_EXPIRED_ERROR,
                execution_started_at=None,
                retry_count=WorkflowProspectState.retry_count + 1,
            )
            .execution_options(synchronize_session=False)
        )
        stmt = self.apply_tenant_filter(stmt, WorkflowProspectState)

        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except Exception as e:
            await self.handle_error("reclaim_stale_executions", e)
            raise

        reclaimed = result.rowcount or 0
        if reclaimed:
            logger.warning("Reclaimed stale workflow executions", count=reclaimed, cutoff=cutoff.isoformat())
        return reclaimed
