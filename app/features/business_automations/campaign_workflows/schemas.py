"""
Pydantic schemas for Campaign Workflows.

Node configs are stored as free-form JSON; parse_node_config gives the typed
view, one model per node type (keyed by NodeType), so handlers work with
attributes instead of dictionary lookups.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.features.business_automations.campaign_workflows.exceptions import WorkflowConfigurationError
from app.features.business_automations.campaign_workflows.models import NodeType

DelayUnit = Literal["minutes", "hours", "days", "weeks"]


# === NODE CONFIGS ===

class NodeConfig(BaseModel):
    """Base for node configs; unknown keys written by the editor are kept."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class StartConfig(NodeConfig):
    pass


class EmailConfig(NodeConfig):
    subject: str = ""
    body: str = ""


class CallConfig(NodeConfig):
    notes: str = ""
    deadline: Optional[datetime] = None


class TaskConfig(NodeConfig):
    title: str = ""
    description: Optional[str] = None
    deadline: Optional[datetime] = None


class TransferConfig(NodeConfig):
    target_campaign_id: Optional[Union[int, str]] = Field(default=None, alias="targetCampaignId")
    delay: int = 0


class DelayConfig(NodeConfig):
    amount: int = Field(default=0, ge=0)
    unit: DelayUnit = "days"


class WaitUntilConfig(NodeConfig):
    wait_until: Optional[datetime] = Field(default=None, alias="waitUntil")


class TimeSlotConfig(NodeConfig):
    hours: List[int] = Field(default_factory=list)
    days: List[str] = Field(default_factory=list)
    # Abbreviations other than Mon..Sun are ignored by the timing resolver

    @field_validator("hours")
    @classmethod
    def validate_hours(cls, v):
        for hour in v:
            if hour < 0 or hour > 23:
                raise ValueError(f"Hour {hour} is outside 0-23")
        return v


class ConditionConfig(NodeConfig):
    """
    Branch question. field/operator/value form an optional rule on prospect
    attributes used by the default evaluator.
    """
    question: str = ""
    field: Optional[str] = None
    operator: str = "exists"
    value: Any = None


class VisitLinkedInConfig(NodeConfig):
    pass


class AddConnectionConfig(NodeConfig):
    note: Optional[str] = None


class LinkedInMessageConfig(NodeConfig):
    message: str = ""


class UnknownNodeConfig(NodeConfig):
    """Config of a node type this engine version does not know."""


NODE_CONFIG_MODELS: Dict[NodeType, type] = {
    NodeType.START: StartConfig,
    NodeType.EMAIL: EmailConfig,
    NodeType.CALL: CallConfig,
    NodeType.TASK: TaskConfig,
    NodeType.TRANSFER: TransferConfig,
    NodeType.DELAY: DelayConfig,
    NodeType.WAIT_UNTIL: WaitUntilConfig,
    NodeType.TIME_SLOT: TimeSlotConfig,
    NodeType.CONDITION: ConditionConfig,
    NodeType.VISIT_LINKEDIN: VisitLinkedInConfig,
    NodeType.ADD_CONNECTION: AddConnectionConfig,
    NodeType.LINKEDIN_MESSAGE: LinkedInMessageConfig,
}


def resolve_node_type(node_type: str) -> Optional[NodeType]:
    """Return the NodeType for a stored type string, or None when unknown."""
    try:
        return NodeType(node_type)
    except ValueError:
        return None


def parse_node_config(node_type: str, config: Optional[Dict[str, Any]]) -> NodeConfig:
    """
    Validate a stored node config against the model of its type.

    Raises:
        WorkflowConfigurationError: config does not match the type's schema
    """
    resolved = resolve_node_type(node_type)
    model = NODE_CONFIG_MODELS[resolved] if resolved else UnknownNodeConfig
    try:
        return model.model_validate(config or {})
    except ValidationError as e:
        raise WorkflowConfigurationError(f"Invalid {node_type} node config: {e}") from e


# === EXECUTION ===

class ExecutionContext(BaseModel):
    """Team/campaign context handed to node handlers."""

    tenant_id: str
    campaign_id: str
    campaign_prospect_id: int
    state_id: Optional[int] = None


class ExecutionResult(BaseModel):
    """Outcome of one node execution. branch selects the outgoing edge handle."""

    success: bool
    branch: Optional[str] = None
    error: Optional[str] = None
    output: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(cls, branch: Optional[str] = None, **output) -> "ExecutionResult":
        return cls(success=True, branch=branch, output=output)

    @classmethod
    def failed(cls, error: str) -> "ExecutionResult":
        return cls(success=False, error=error)


class EnrollmentResult(BaseModel):
    campaign_id: str
    start_node_id: int
    prospect_count: int
    created_count: int
    existing_count: int


class ProcessWorkflowsResponse(BaseModel):
    success: bool = True
    processed_count: int
    message: str


class ExecutionPlanStep(BaseModel):
    step: int
    node_id: int
    type: str
    config: Dict[str, Any] = Field(default_factory=dict)
    path: str
