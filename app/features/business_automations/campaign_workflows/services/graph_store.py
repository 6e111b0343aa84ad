"""
Read access to campaign workflow graphs.

The engine never edits graphs; nodes and edges are written by the workflow
builder. Every lookup goes to the database so edits made between polls are
picked up on the next poll.
"""

from collections import deque

from app.features.core.sqlalchemy_imports import *
from app.features.core.enhanced_base_service import BaseService
from app.features.business_automations.campaign_workflows.models import (
    NodeType,
    WorkflowEdge,
    WorkflowNode,
)

logger = get_logger(__name__)

DEFAULT_PATH = "main"


class GraphStore(BaseService[WorkflowNode]):
    """Service for looking up workflow nodes and edges."""

    def __init__(self, db_session: AsyncSession, tenant_id: Optional[str] = None):
        super().__init__(db_session, tenant_id)

    async def get_node(self, node_id: int) -> Optional[WorkflowNode]:
        """Get node by ID, or None."""
        try:
            return await self.get_by_id(WorkflowNode, node_id)
        except Exception as e:
            await self.handle_error("get_node", e, node_id=node_id)
            raise

    async def get_start_node(self, campaign_id: str) -> Optional[WorkflowNode]:
        """
        Get the campaign's start node.

        Args:
            campaign_id: Campaign ID

        Returns:
            First start node by id, or None when the campaign has none
        """
        try:
            stmt = (
                self.create_base_query(WorkflowNode)
                .where(
                    and_(
                        WorkflowNode.campaign_id == campaign_id,
                        WorkflowNode.type == NodeType.START.value,
                    )
                )
                .order_by(WorkflowNode.id.asc())
                .limit(1)
            )
            result = await self.db.execute(stmt)
            return result.scalar_one_or_none()

        except Exception as e:
            await self.handle_error("get_start_node", e, campaign_id=campaign_id)
            raise

    async def get_outgoing_edges(self, node_id: int, branch_label: Optional[str] = None) -> List[WorkflowEdge]:
        """
        Get edges leaving a node for a branch.

        Args:
            node_id: Source node ID
            branch_label: Branch handle ("yes"/"no"); None selects default edges,
                i.e. edges whose handle is NULL or empty

        Returns:
            Matching edges, in insertion (id) order
        """
        try:
            stmt = self.create_base_query(WorkflowEdge).where(WorkflowEdge.source_node_id == node_id)

            if branch_label:
                stmt = stmt.where(WorkflowEdge.source_handle == branch_label)
            else:
                stmt = stmt.where(
                    or_(WorkflowEdge.source_handle.is_(None), WorkflowEdge.source_handle == "")
                )

            stmt = stmt.order_by(WorkflowEdge.id.asc())
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        except Exception as e:
            await self.handle_error("get_outgoing_edges", e, node_id=node_id, branch_label=branch_label)
            raise

    async def get_workflow(self, campaign_id: str) -> Tuple[List[WorkflowNode], List[WorkflowEdge]]:
        """Get all nodes and edges of a campaign, both in id order."""
        try:
            node_stmt = (
                self.create_base_query(WorkflowNode)
                .where(WorkflowNode.campaign_id == campaign_id)
                .order_by(WorkflowNode.id.asc())
            )
            edge_stmt = (
                self.create_base_query(WorkflowEdge)
                .where(WorkflowEdge.campaign_id == campaign_id)
                .order_by(WorkflowEdge.id.asc())
            )
            nodes = list((await self.db.execute(node_stmt)).scalars().all())
            edges = list((await self.db.execute(edge_stmt)).scalars().all())
            return nodes, edges

        except Exception as e:
            await self.handle_error("get_workflow", e, campaign_id=campaign_id)
            raise

    async def build_execution_plan(self, campaign_id: str) -> List[Dict[str, Any]]:
        """
        Walk the graph breadth-first from the start node.

        Each reachable node appears once with its step number and the branch
        path that first reached it ("main", "main/yes", "main/no/yes", ...).

        Returns:
            List of {step, node_id, type, config, path}; empty without a start node
        """
        nodes, edges = await self.get_workflow(campaign_id)
        start = next((n for n in nodes if n.type == NodeType.START.value), None)
        if start is None:
            return []

        nodes_by_id = {node.id: node for node in nodes}
        edges_by_source: Dict[int, List[WorkflowEdge]] = {}
        for edge in edges:
            edges_by_source.setdefault(edge.source_node_id, []).append(edge)

        plan: List[Dict[str, Any]] = []
        visited = set()
        queue = deque([(start.id, DEFAULT_PATH)])

        while queue:
            node_id, path = queue.popleft()
            if node_id in visited or node_id not in nodes_by_id:
                continue
            visited.add(node_id)

            node = nodes_by_id[node_id]
            plan.append({
                "step": len(plan) + 1,
                "node_id": node.id,
                "type": node.type,
                "config": node.config or {},
                "path": path,
            })

            for edge in edges_by_source.get(node_id, []):
                next_path = f"{path}/{edge.source_handle}" if edge.source_handle else path
                queue.append((edge.target_node_id, next_path))

        self.log_operation("build_execution_plan", {"campaign_id": campaign_id, "steps": len(plan)})
        return plan
