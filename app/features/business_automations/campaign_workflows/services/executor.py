"""
Node executor: performs the action of one workflow node for one prospect.

Handlers are registered per NodeType. A handler returns an ExecutionResult
(branch set for condition nodes) or raises NodeExecutionError for a hard
failure; the executor turns the exception into a failed result so the driver
can record it and retry on a later poll.
"""

import random
import re
from typing import Awaitable, Callable, Protocol

from app.features.core.sqlalchemy_imports import *
from app.features.business_automations.campaign_workflows.exceptions import NodeExecutionError, WorkflowError
from app.features.business_automations.campaign_workflows.models import NodeType, Prospect, WorkflowNode
from app.features.business_automations.campaign_workflows.schemas import (
    ConditionConfig,
    EmailConfig,
    ExecutionContext,
    ExecutionResult,
    parse_node_config,
    resolve_node_type,
)
from app.features.business_automations.campaign_workflows.services.email_sender import EmailResult, get_email_sender
from app.features.business_automations.campaign_workflows.services.variables import (
    extract_prospect_variables,
    replace_variables,
)

logger = get_logger(__name__)

BRANCH_YES = "yes"
BRANCH_NO = "no"

NodeHandler = Callable[[WorkflowNode, Prospect, ExecutionContext], Awaitable[ExecutionResult]]


class EmailSender(Protocol):
    async def send(self, to_email: str, subject: str, body: str) -> EmailResult:
        ...


class ConditionEvaluator(Protocol):
    async def evaluate(self, config: ConditionConfig, prospect: Prospect, context: ExecutionContext) -> str:
        """Return the branch label to follow ("yes" or "no")."""
        ...


# === CONDITIONS ===

def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, dict, tuple)):
        return len(value) == 0
    return False


def _contains(actual: Any, target: Any) -> bool:
    if actual is None:
        return False
    if isinstance(actual, str):
        return str(target).lower() in actual.lower()
    if isinstance(actual, (list, tuple, dict)):
        return target in actual
    return False


def _matches(actual: Any, target: Any) -> bool:
    if actual is None or target is None:
        return False
    try:
        return bool(re.search(str(target), str(actual)))
    except re.error:
        logger.warning("Invalid regex pattern in condition", pattern=target)
        return False


def _in(actual: Any, target: Any) -> bool:
    if isinstance(target, (list, tuple)):
        return actual in target
    return actual == target


CONDITION_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "eq": lambda actual, target: actual == target,
    "neq": lambda actual, target: actual != target,
    "contains": _contains,
    "not_contains": lambda actual, target: not _contains(actual, target),
    "exists": lambda actual, target: not _is_empty(actual),
    "not_exists": lambda actual, target: _is_empty(actual),
    "matches": _matches,
    "in": _in,
    "not_in": lambda actual, target: not _in(actual, target),
    "starts_with": lambda actual, target: isinstance(actual, str) and actual.startswith(str(target)),
    "ends_with": lambda actual, target: isinstance(actual, str) and actual.endswith(str(target)),
}


class ProspectFieldConditionEvaluator:
    """
    Evaluate a {field, operator, value} rule against prospect attributes.

    field may be a model attribute (company, linkedin_url, status, ...) or a
    template variable name (firstName, linkedin, ...). A condition node
    without a rule takes the "no" branch.
    """

    async def evaluate(self, config: ConditionConfig, prospect: Prospect, context: ExecutionContext) -> str:
        if not config.field:
            logger.warning(
                "Condition node has no rule, taking 'no' branch",
                question=config.question,
                campaign_prospect_id=context.campaign_prospect_id,
            )
            return BRANCH_NO

        operator = CONDITION_OPERATORS.get(config.operator)
        if operator is None:
            logger.warning("Unknown condition operator, taking 'no' branch", operator=config.operator)
            return BRANCH_NO

        attributes = {**prospect.to_dict(), **extract_prospect_variables(prospect)}
        actual = attributes.get(config.field)
        matched = operator(actual, config.value)

        logger.debug("Condition evaluated", field=config.field, operator=config.operator, result=matched)
        return BRANCH_YES if matched else BRANCH_NO


class RandomConditionEvaluator:
    """
    Uniform yes/no choice. Non-deterministic unless seeded; meant for demos
    and tests, never as a production evaluator.
    """

    def __init__(self, seed: Optional[int] = None):
        self._random = random.Random(seed)

    async def evaluate(self, config: ConditionConfig, prospect: Prospect, context: ExecutionContext) -> str:
        return BRANCH_YES if self._random.random() > 0.5 else BRANCH_NO


# === EXECUTOR ===

class NodeExecutor:
    """Dispatch workflow nodes to their handlers."""

    def __init__(
        self,
        email_sender: Optional[EmailSender] = None,
        condition_evaluator: Optional[ConditionEvaluator] = None,
    ):
        self.email_sender = email_sender or get_email_sender()
        self.condition_evaluator = condition_evaluator or ProspectFieldConditionEvaluator()

        self._handlers: Dict[NodeType, NodeHandler] = {
            NodeType.START: self._pass_through,
            NodeType.DELAY: self._pass_through,
            NodeType.WAIT_UNTIL: self._pass_through,
            NodeType.TIME_SLOT: self._pass_through,
            NodeType.EMAIL: self._send_email,
            NodeType.CONDITION: self._evaluate_condition,
            NodeType.CALL: self._log_action,
            NodeType.TASK: self._log_action,
            NodeType.TRANSFER: self._log_action,
            NodeType.VISIT_LINKEDIN: self._log_action,
            NodeType.ADD_CONNECTION: self._log_action,
            NodeType.LINKEDIN_MESSAGE: self._log_action,
        }

    def register_handler(self, node_type: NodeType, handler: NodeHandler) -> None:
        """Replace the handler of a node type (e.g. a real LinkedIn integration)."""
        self._handlers[NodeType(node_type)] = handler

    def handler_for(self, node_type: str) -> Optional[NodeHandler]:
        resolved = resolve_node_type(node_type)
        return self._handlers.get(resolved) if resolved else None

    async def execute(self, node: WorkflowNode, prospect: Prospect, context: ExecutionContext) -> ExecutionResult:
        """
        Execute one node for one prospect.

        Returns:
            ExecutionResult; success=False when the handler raised a workflow error
        """
        handler = self.handler_for(node.type)
        if handler is None:
            logger.warning("Unknown node type, skipping", node_id=node.id, node_type=node.type)
            return ExecutionResult.ok()

        try:
            return await handler(node, prospect, context)
        except WorkflowError as e:
            logger.warning(
                "Node execution failed",
                node_id=node.id,
                node_type=node.type,
                campaign_prospect_id=context.campaign_prospect_id,
                error=str(e),
            )
            return ExecutionResult.failed(str(e))

    # === HANDLERS ===

    async def _pass_through(self, node: WorkflowNode, prospect: Prospect, context: ExecutionContext) -> ExecutionResult:
        # Timing is applied when the prospect enters the node
        return ExecutionResult.ok()

    async def _send_email(self, node: WorkflowNode, prospect: Prospect, context: ExecutionContext) -> ExecutionResult:
        if not prospect.email:
            raise NodeExecutionError("Prospect has no email address", node_id=node.id, node_type=node.type)

        config: EmailConfig = parse_node_config(node.type, node.config)
        variables = extract_prospect_variables(prospect)
        subject = replace_variables(config.subject, variables)
        body = replace_variables(config.body, variables)

        result = await self.email_sender.send(prospect.email, subject, body)
        if not result.success:
            raise NodeExecutionError(result.message, node_id=node.id, node_type=node.type)

        logger.info(
            "Email step sent",
            node_id=node.id,
            campaign_prospect_id=context.campaign_prospect_id,
            to=prospect.email,
        )
        return ExecutionResult.ok(to=prospect.email, subject=subject)

    async def _evaluate_condition(self, node: WorkflowNode, prospect: Prospect, context: ExecutionContext) -> ExecutionResult:
        config: ConditionConfig = parse_node_config(node.type, node.config)
        branch = await self.condition_evaluator.evaluate(config, prospect, context)
        logger.info(
            "Condition step evaluated",
            node_id=node.id,
            campaign_prospect_id=context.campaign_prospect_id,
            branch=branch,
        )
        return ExecutionResult.ok(branch=branch)

    async def _log_action(self, node: WorkflowNode, prospect: Prospect, context: ExecutionContext) -> ExecutionResult:
        config = parse_node_config(node.type, node.config)
        logger.info(
            "Workflow action step",
            node_id=node.id,
            node_type=node.type,
            campaign_prospect_id=context.campaign_prospect_id,
            prospect_id=prospect.id,
            config=config.model_dump(by_alias=True, mode="json"),
        )
        return ExecutionResult.ok()
