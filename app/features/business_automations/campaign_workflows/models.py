"""
Database models for Campaign Workflows.

A campaign owns a directed graph of workflow nodes and edges. Every prospect
assigned to the campaign gets one WorkflowProspectState row: the durable
cursor the workflow driver advances poll after poll.

Conventions:
- All models have tenant_id for multi-tenancy
- Uses timezone-naive datetimes (UTC, TIMESTAMP WITHOUT TIME ZONE)
- Graph/state ids are integers so insertion order is the id order
"""

from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, Text, JSON, Boolean, DateTime, ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.features.core.database import Base
from app.features.core.audit_mixin import AuditMixin
from app.features.core.sqlalchemy_imports import get_logger

logger = get_logger(__name__)


class NodeType(str, Enum):
    """Workflow node types."""
    START = "start"
    EMAIL = "email"
    CALL = "call"
    TASK = "task"
    TRANSFER = "transfer"
    DELAY = "delay"
    WAIT_UNTIL = "waitUntil"
    TIME_SLOT = "timeSlot"
    CONDITION = "condition"
    VISIT_LINKEDIN = "visitLinkedIn"
    ADD_CONNECTION = "addConnection"
    LINKEDIN_MESSAGE = "linkedInMessage"


TIMING_NODE_TYPES = frozenset({NodeType.DELAY, NodeType.WAIT_UNTIL, NodeType.TIME_SLOT})


class ProspectStateStatus(str, Enum):
    """
    Lifecycle of a prospect's workflow cursor.

        ready -> executing -> ready | waiting | completed
        waiting -> executing (once scheduled_for has passed)
        executing -> ready (on error or expired lease)
    """
    READY = "ready"
    WAITING = "waiting"
    EXECUTING = "executing"
    COMPLETED = "completed"


def _iso(value):
    return value.isoformat() if value else None


class Campaign(Base, AuditMixin):
    """Outbound campaign owning a workflow graph and its assigned prospects."""

    __tablename__ = "campaigns"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    tenant_id = Column(String(64), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    prospects = relationship("CampaignProspect", back_populates="campaign", cascade="all, delete-orphan")
    nodes = relationship("WorkflowNode", back_populates="campaign", cascade="all, delete-orphan")
    edges = relationship("WorkflowEdge", back_populates="campaign", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_campaigns_tenant_active', 'tenant_id', 'is_active'),
    )

    def to_dict(self):
        base_dict = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
        }
        base_dict.update(self.get_audit_info())
        return base_dict


class Prospect(Base, AuditMixin):
    """
    Contact targeted by campaigns.

    Only the attributes used for personalisation and channel actions are
    modelled here; enrichment data lives with the prospecting features.
    """

    __tablename__ = "prospects"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    tenant_id = Column(String(64), nullable=False, index=True)

    name = Column(String(255), nullable=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    company = Column(String(255), nullable=True)
    title = Column(String(255), nullable=True)
    location = Column(String(255), nullable=True)

    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    linkedin_url = Column(String(512), nullable=True)

    status = Column(String(50), default="new", nullable=False)
    # Values: new, contacted, replied, unqualified

    campaign_links = relationship("CampaignProspect", back_populates="prospect", cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "company": self.company,
            "title": self.title,
            "location": self.location,
            "email": self.email,
            "phone": self.phone,
            "linkedin_url": self.linkedin_url,
            "status": self.status,
        }


class CampaignProspect(Base):
    """Assignment of a prospect to a campaign (one row per assignment)."""

    __tablename__ = "campaign_prospects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), nullable=False, index=True)

    campaign_id = Column(String(36), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)
    prospect_id = Column(String(36), ForeignKey("prospects.id", ondelete="CASCADE"), nullable=False)

    added_at = Column(DateTime, server_default=func.now(), nullable=False)
    added_by_email = Column(String(255), nullable=True)

    campaign = relationship("Campaign", back_populates="prospects")
    prospect = relationship("Prospect", back_populates="campaign_links")
    workflow_state = relationship(
        "WorkflowProspectState", back_populates="campaign_prospect", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint('campaign_id', 'prospect_id', name='uq_campaign_prospects_assignment'),
        Index('idx_campaign_prospects_campaign', 'campaign_id'),
    )


class WorkflowNode(Base, AuditMixin):
    """
    Unit of work or timing gate in a campaign workflow.

    config is a JSON payload whose shape depends on type; see
    schemas.parse_node_config for the typed view. Nodes are edited by the
    workflow builder, never by the engine.
    """

    __tablename__ = "workflow_nodes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    campaign_id = Column(String(36), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)

    type = Column(String(50), nullable=False)
    config = Column(JSON, nullable=False, default=dict)

    # Editor canvas position, irrelevant to execution
    position_x = Column(Integer, nullable=False, default=0)
    position_y = Column(Integer, nullable=False, default=0)

    node_metadata = Column("metadata", JSON, nullable=True)

    campaign = relationship("Campaign", back_populates="nodes")

    __table_args__ = (
        Index('idx_workflow_nodes_campaign_type', 'campaign_id', 'type'),
    )

    def to_dict(self):
        base_dict = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "campaign_id": self.campaign_id,
            "type": self.type,
            "config": self.config or {},
            "position": {"x": self.position_x, "y": self.position_y},
        }
        base_dict.update(self.get_audit_info())
        return base_dict


class WorkflowEdge(Base):
    """
    Directed transition between two nodes.

    source_handle is the branch label ("yes"/"no" after a condition); null or
    empty marks the default transition. label/condition_* are editor metadata
    and are not interpreted by the engine.
    """

    __tablename__ = "workflow_edges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    campaign_id = Column(String(36), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)

    source_node_id = Column(Integer, ForeignKey("workflow_nodes.id", ondelete="CASCADE"), nullable=False)
    target_node_id = Column(Integer, ForeignKey("workflow_nodes.id", ondelete="CASCADE"), nullable=False)
    source_handle = Column(String(20), nullable=True)

    label = Column(String(50), nullable=True)
    condition_type = Column(String(50), nullable=True)
    condition_value = Column(JSON, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    campaign = relationship("Campaign", back_populates="edges")

    __table_args__ = (
        Index('idx_workflow_edges_source_handle', 'source_node_id', 'source_handle'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "source_node_id": self.source_node_id,
            "target_node_id": self.target_node_id,
            "source_handle": self.source_handle,
            "label": self.label,
        }


class WorkflowProspectState(Base):
    """
    Execution cursor of one prospect inside one campaign workflow.

    Invariants:
    - one row per campaign_prospect (unique)
    - status == completed  =>  current_node_id is NULL and completed_at is set
    - status == executing is a lease held by one poller since
      execution_started_at
    """

    __tablename__ = "workflow_prospect_states"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), nullable=False, index=True)

    campaign_prospect_id = Column(
        Integer, ForeignKey("campaign_prospects.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    current_node_id = Column(Integer, ForeignKey("workflow_nodes.id", ondelete="SET NULL"), nullable=True)

    status = Column(String(20), nullable=False, default=ProspectStateStatus.READY.value)
    scheduled_for = Column(DateTime, nullable=True)
    last_executed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    error = Column(Text, nullable=True)

    execution_started_at = Column(DateTime, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    state_metadata = Column("metadata", JSON, nullable=True)
    # Example: {"last_branch": "yes", "last_node_id": 12}

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, onupdate=func.now(), server_default=func.now())

    campaign_prospect = relationship("CampaignProspect", back_populates="workflow_state")

    __table_args__ = (
        Index('idx_workflow_states_due', 'status', 'scheduled_for'),
    )

    @property
    def is_completed(self) -> bool:
        return self.status == ProspectStateStatus.COMPLETED.value

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "campaign_prospect_id": self.campaign_prospect_id,
            "current_node_id": self.current_node_id,
            "status": self.status,
            "scheduled_for": _iso(self.scheduled_for),
            "last_executed_at": _iso(self.last_executed_at),
            "completed_at": _iso(self.completed_at),
            "error": self.error,
            "retry_count": self.retry_count,
            "metadata": self.state_metadata or {},
        }
