"""
Integration tests for prospect workflow cursors.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.business_automations.campaign_workflows.exceptions import WorkflowConfigurationError
from app.features.business_automations.campaign_workflows.models import ProspectStateStatus
from app.features.business_automations.campaign_workflows.services import ProspectStateStore
from app.features.business_automations.campaign_workflows.services.state_store import LEASE_EXPIRED_ERROR

NOW = datetime(2025, 1, 6, 10, 0)


async def enrolled_prospect(builder, *steps):
    """Campaign with one assigned prospect and a chain of nodes."""
    campaign = await builder.campaign()
    prospect = await builder.prospect()
    assignment = await builder.assign(campaign, prospect)
    nodes = await builder.chain(campaign, *steps)
    return assignment, nodes


@pytest.mark.integration
@pytest.mark.asyncio
class TestInitializeProspectWorkflow:

    async def test_creates_ready_state_at_start(self, test_db_session: AsyncSession, builder):
        assignment, (start, _) = await enrolled_prospect(builder, "start", "email")
        store = ProspectStateStore(test_db_session)

        state, created = await store.initialize_prospect_workflow(assignment.id, start.id, NOW)

        assert created is True
        assert state.tenant_id == "test-tenant"
        assert state.current_node_id == start.id
        assert state.status == ProspectStateStatus.READY.value
        assert state.scheduled_for == NOW
        assert state.retry_count == 0

    async def test_is_idempotent(self, test_db_session: AsyncSession, builder):
        assignment, (start, email) = await enrolled_prospect(builder, "start", "email")
        store = ProspectStateStore(test_db_session)

        first, _ = await store.initialize_prospect_workflow(assignment.id, start.id, NOW)
        second, created = await store.initialize_prospect_workflow(assignment.id, email.id, NOW + timedelta(hours=1))

        assert created is False
        assert second.id == first.id
        assert second.current_node_id == start.id
        assert second.scheduled_for == NOW

    async def test_unknown_campaign_prospect(self, test_db_session: AsyncSession, builder):
        with pytest.raises(WorkflowConfigurationError):
            await ProspectStateStore(test_db_session).initialize_prospect_workflow(999, 1, NOW)


@pytest.mark.integration
@pytest.mark.asyncio
class TestDueStatesAndClaim:

    async def test_due_states(self, test_db_session: AsyncSession, builder):
        store = ProspectStateStore(test_db_session)
        campaign = await builder.campaign()
        start, delay = await builder.chain(campaign, "start", ("delay", {"amount": 1, "unit": "days"}))

        states = []
        for index in range(4):
            assignment = await builder.assign(campaign, await builder.prospect(name=f"Prospect {index}"))
            state, _ = await store.initialize_prospect_workflow(assignment.id, start.id, NOW)
            states.append(state)

        ready, waiting_due, waiting_later, completed = states
        waiting_due.status = ProspectStateStatus.WAITING.value
        waiting_due.scheduled_for = NOW - timedelta(minutes=5)
        waiting_later.status = ProspectStateStatus.WAITING.value
        waiting_later.scheduled_for = NOW + timedelta(minutes=5)
        completed.status = ProspectStateStatus.COMPLETED.value
        completed.current_node_id = None
        await test_db_session.commit()

        due = await store.get_due_states(NOW, limit=10)

        assert [state.id for state in due] == [waiting_due.id, ready.id]

    async def test_due_states_respects_batch_size(self, test_db_session: AsyncSession, builder):
        store = ProspectStateStore(test_db_session)
        campaign = await builder.campaign()
        start = await builder.node(campaign, "start")
        for index in range(3):
            assignment = await builder.assign(campaign, await builder.prospect(name=f"Prospect {index}"))
            await store.initialize_prospect_workflow(assignment.id, start.id, NOW)

        assert len(await store.get_due_states(NOW, limit=2)) == 2

    async def test_claim_takes_lease_once(self, test_db_session: AsyncSession, builder):
        assignment, (start, _) = await enrolled_prospect(builder, "start", "email")
        store = ProspectStateStore(test_db_session)
        state, _ = await store.initialize_prospect_workflow(assignment.id, start.id, NOW)

        assert await store.claim(state, NOW) is True
        assert state.status == ProspectStateStatus.EXECUTING.value
        assert state.execution_started_at == NOW

        # A second poller holding the same row object loses the race
        assert await store.claim(state, NOW) is False
        assert await store.get_due_states(NOW, limit=10) == []

    async def test_claim_rejects_waiting_state_before_schedule(self, test_db_session: AsyncSession, builder):
        assignment, (start, _) = await enrolled_prospect(builder, "start", "email")
        store = ProspectStateStore(test_db_session)
        state, _ = await store.initialize_prospect_workflow(assignment.id, start.id, NOW)
        state.status = ProspectStateStatus.WAITING.value
        state.scheduled_for = NOW + timedelta(hours=1)
        await test_db_session.commit()

        assert await store.claim(state, NOW) is False


@pytest.mark.integration
@pytest.mark.asyncio
class TestTransitions:

    async def test_advance_to_action_node(self, test_db_session: AsyncSession, builder):
        assignment, (start, email) = await enrolled_prospect(builder, "start", "email")
        store = ProspectStateStore(test_db_session)
        state, _ = await store.initialize_prospect_workflow(assignment.id, start.id, NOW)
        await store.claim(state, NOW)

        await store.advance(state, start, email, NOW)

        assert state.status == ProspectStateStatus.READY.value
        assert state.current_node_id == email.id
        assert state.scheduled_for == NOW
        assert state.last_executed_at == NOW
        assert state.execution_started_at is None
        assert state.state_metadata == {"last_node_id": start.id, "last_branch": None}

    async def test_advance_to_timing_node_waits(self, test_db_session: AsyncSession, builder):
        assignment, (email, delay) = await enrolled_prospect(
            builder, "email", ("delay", {"amount": 2, "unit": "hours"})
        )
        store = ProspectStateStore(test_db_session)
        state, _ = await store.initialize_prospect_workflow(assignment.id, email.id, NOW)
        await store.claim(state, NOW)

        await store.advance(state, email, delay, NOW)

        assert state.status == ProspectStateStatus.WAITING.value
        assert state.current_node_id == delay.id
        assert state.scheduled_for == NOW + timedelta(hours=2)

    async def test_advance_without_target_completes(self, test_db_session: AsyncSession, builder):
        assignment, (start,) = await enrolled_prospect(builder, "start")
        store = ProspectStateStore(test_db_session)
        state, _ = await store.initialize_prospect_workflow(assignment.id, start.id, NOW)
        await store.claim(state, NOW)

        await store.advance(state, start, None, NOW)

        assert state.status == ProspectStateStatus.COMPLETED.value
        assert state.is_completed
        assert state.current_node_id is None
        assert state.completed_at == NOW

    async def test_record_error_keeps_node_and_counts_retries(self, test_db_session: AsyncSession, builder):
        assignment, (email,) = await enrolled_prospect(builder, "email")
        store = ProspectStateStore(test_db_session)
        state, _ = await store.initialize_prospect_workflow(assignment.id, email.id, NOW)

        await store.claim(state, NOW)
        await store.record_error(state.id, "SMTP down", NOW)
        await store.claim(state, NOW)
        updated = await store.record_error(state.id, "SMTP still down", NOW)

        assert updated.status == ProspectStateStatus.READY.value
        assert updated.current_node_id == email.id
        assert updated.error == "SMTP still down"
        assert updated.retry_count == 2
        assert updated.execution_started_at is None

    async def test_reclaim_stale_executions(self, test_db_session: AsyncSession, builder):
        store = ProspectStateStore(test_db_session)
        campaign = await builder.campaign()
        start = await builder.node(campaign, "start")

        stale_assignment = await builder.assign(campaign, await builder.prospect(name="Stale"))
        fresh_assignment = await builder.assign(campaign, await builder.prospect(name="Fresh"))
        stale, _ = await store.initialize_prospect_workflow(stale_assignment.id, start.id, NOW)
        fresh, _ = await store.initialize_prospect_workflow(fresh_assignment.id, start.id, NOW)
        await store.claim(stale, NOW - timedelta(minutes=30))
        await store.claim(fresh, NOW - timedelta(minutes=5))

        reclaimed = await store.reclaim_stale_executions(NOW, timedelta(minutes=15))

        stale = await store.get_state_by_id(stale.id)
        fresh = await store.get_state_by_id(fresh.id)
        assert reclaimed == 1
        assert stale.status == ProspectStateStatus.READY.value
        assert stale.error == LEASE_EXPIRED_ERROR
        assert stale.retry_count == 1
        assert fresh.status == ProspectStateStatus.EXECUTING.value

    async def test_reclaim_executing_row_without_start_time(self, test_db_session: AsyncSession, builder):
        assignment, (start,) = await enrolled_prospect(builder, "start")
        store = ProspectStateStore(test_db_session)
        state, _ = await store.initialize_prospect_workflow(assignment.id, start.id, NOW)
        state.status = ProspectStateStatus.EXECUTING.value
        state.execution_started_at = None
        await test_db_session.commit()

        assert await store.reclaim_stale_executions(NOW, timedelta(minutes=15)) == 1

        state = await store.get_state_by_id(state.id)
        assert state.status == ProspectStateStatus.READY.value
        assert state.scheduled_for == NOW

    async def test_record_error_moves_state_behind_waiting_states(self, test_db_session: AsyncSession, builder):
        store = ProspectStateStore(test_db_session)
        campaign = await builder.campaign()
        email = await builder.node(campaign, "email")
        failing_assignment = await builder.assign(campaign, await builder.prospect(name="Failing"))
        waiting_assignment = await builder.assign(campaign, await builder.prospect(name="Waiting"))
        failing, _ = await store.initialize_prospect_workflow(failing_assignment.id, email.id, NOW)
        waiting, _ = await store.initialize_prospect_workflow(waiting_assignment.id, email.id, NOW)
        later = NOW + timedelta(minutes=1)

        await store.claim(failing, later)
        failed = await store.record_error(failing.id, "SMTP down", later)

        assert failed.scheduled_for == later
        due = await store.get_due_states(later, limit=1)
        assert [state.id for state in due] == [waiting.id]

    async def test_advance_to_invalid_timing_node_enters_it_with_error(self, test_db_session: AsyncSession,
                                                                       builder):
        assignment, (email, slot) = await enrolled_prospect(
            builder, "email", ("timeSlot", {"hours": [24], "days": ["Mon"]})
        )
        store = ProspectStateStore(test_db_session)
        state, _ = await store.initialize_prospect_workflow(assignment.id, email.id, NOW)
        await store.claim(state, NOW)

        await store.advance(state, email, slot, NOW)

        assert state.current_node_id == slot.id
        assert state.status == ProspectStateStatus.WAITING.value
        assert state.scheduled_for == NOW
        assert "Invalid timeSlot node config" in state.error
        assert [due.id for due in await store.get_due_states(NOW, limit=10)] == [state.id]
