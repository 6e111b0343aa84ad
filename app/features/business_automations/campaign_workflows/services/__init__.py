"""
Campaign workflow engine services.
"""
from .driver import WorkflowDriver
from .executor import NodeExecutor, ProspectFieldConditionEvaluator, RandomConditionEvaluator
from .graph_store import GraphStore
from .state_store import ProspectStateStore

__all__ = [
    "WorkflowDriver",
    "NodeExecutor",
    "ProspectFieldConditionEvaluator",
    "RandomConditionEvaluator",
    "GraphStore",
    "ProspectStateStore",
]
