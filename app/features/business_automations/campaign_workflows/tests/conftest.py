"""
Campaign workflows slice test configuration and fixtures.
"""

from datetime import datetime
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.features.core.clock import FrozenClock
from app.features.core.config import Settings
from app.features.core.database import Base
from app.features.business_automations.campaign_workflows.models import (
    Campaign,
    CampaignProspect,
    Prospect,
    WorkflowEdge,
    WorkflowNode,
)
from app.features.business_automations.campaign_workflows.services import (
    NodeExecutor,
    ProspectFieldConditionEvaluator,
    WorkflowDriver,
)
from app.features.business_automations.campaign_workflows.services.email_sender import LoggingEmailSender

# In-memory SQLite keeps the slice tests self-contained
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_TENANT = "test-tenant"

# Monday
T0 = datetime(2025, 1, 6, 10, 0)


@pytest_asyncio.fixture(scope="function")
async def test_db_engine():
    """Create a test database engine with all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,  # Set to True for SQL debugging
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        future=True
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_db_session(test_db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_db_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(T0)


@pytest.fixture
def email_sender() -> LoggingEmailSender:
    return LoggingEmailSender()


@pytest.fixture
def executor(email_sender) -> NodeExecutor:
    return NodeExecutor(email_sender=email_sender, condition_evaluator=ProspectFieldConditionEvaluator())


@pytest.fixture
def workflow_settings() -> Settings:
    return Settings(
        WORKFLOW_BATCH_SIZE=500,
        WORKFLOW_LEASE_TIMEOUT_MINUTES=15,
        WORKFLOW_CRON_TOKEN="test-cron-token",
        SMTP_HOST=None,
    )


@pytest.fixture
def driver(test_db_session, clock, executor, workflow_settings) -> WorkflowDriver:
    """Workflow driver over all tenants with a frozen clock."""
    return WorkflowDriver(test_db_session, clock=clock, executor=executor, settings=workflow_settings)


class WorkflowBuilder:
    """Creates campaigns, prospects and workflow graphs for tests."""

    def __init__(self, session: AsyncSession, tenant_id: str = TEST_TENANT):
        self.session = session
        self.tenant_id = tenant_id

    async def _save(self, instance):
        self.session.add(instance)
        await self.session.commit()
        await self.session.refresh(instance)
        return instance

    async def campaign(self, name: str = "Q1 Outbound") -> Campaign:
        return await self._save(Campaign(tenant_id=self.tenant_id, name=name))

    async def prospect(self, name: str = "Ada Lovelace", email: Optional[str] = "ada@example.com", **kwargs) -> Prospect:
        return await self._save(Prospect(tenant_id=self.tenant_id, name=name, email=email, **kwargs))

    async def assign(self, campaign: Campaign, prospect: Prospect) -> CampaignProspect:
        return await self._save(
            CampaignProspect(tenant_id=self.tenant_id, campaign_id=campaign.id, prospect_id=prospect.id)
        )

    async def node(self, campaign: Campaign, node_type: str, config: Optional[dict] = None) -> WorkflowNode:
        return await self._save(
            WorkflowNode(tenant_id=self.tenant_id, campaign_id=campaign.id, type=node_type, config=config or {})
        )

    async def edge(
        self,
        campaign: Campaign,
        source: WorkflowNode,
        target: WorkflowNode,
        handle: Optional[str] = None,
    ) -> WorkflowEdge:
        return await self._save(
            WorkflowEdge(
                tenant_id=self.tenant_id,
                campaign_id=campaign.id,
                source_node_id=source.id,
                target_node_id=target.id,
                source_handle=handle,
            )
        )

    async def chain(self, campaign: Campaign, *steps):
        """
        Create nodes in order and connect each to the next with a default edge.

        Each step is a node type or a (type, config) tuple.
        """
        nodes = []
        for step in steps:
            node_type, config = step if isinstance(step, tuple) else (step, None)
            nodes.append(await self.node(campaign, node_type, config))
        for source, target in zip(nodes, nodes[1:]):
            await self.edge(campaign, source, target)
        return nodes


@pytest_asyncio.fixture
async def builder(test_db_session) -> WorkflowBuilder:
    return WorkflowBuilder(test_db_session)


@pytest_asyncio.fixture(scope="function")
async def client(test_db_session: AsyncSession, driver: WorkflowDriver) -> AsyncGenerator:
    """Create a test client with database and driver dependency overrides."""
    import httpx
    from app.main import app
    from app.features.core.database import get_db
    from app.features.business_automations.campaign_workflows.dependencies import get_poll_driver

    async def override_get_db():
        yield test_db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_poll_driver] = lambda: driver

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver"
    ) as client:
        yield client

    # Clean up dependency override
    app.dependency_overrides.clear()
