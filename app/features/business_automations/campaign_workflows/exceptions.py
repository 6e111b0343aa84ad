"""Campaign workflow engine exceptions."""


class WorkflowError(Exception):
    """Base class for workflow engine errors."""


class NodeExecutionError(WorkflowError):
    """A node's action failed; the prospect stays on the node and is retried."""

    def __init__(self, message: str, node_id=None, node_type: str = None):
        super().__init__(message)
        self.node_id = node_id
        self.node_type = node_type


class WorkflowConfigurationError(WorkflowError):
    """The campaign or its graph cannot be executed as configured."""


class CampaignNotFoundError(WorkflowConfigurationError):
    """The campaign does not exist (or belongs to another tenant)."""
