"""Add campaign workflow tables.

Revision ID: campaign_workflows_initial
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "campaign_workflows_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _audit_columns():
    return [
        sa.Column("created_by_email", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_by_email", sa.String(length=255), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "campaigns",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_audit_columns(),
    )
    op.create_index("ix_campaigns_tenant_id", "campaigns", ["tenant_id"])
    op.create_index("idx_campaigns_tenant_active", "campaigns", ["tenant_id", "is_active"])

    op.create_table(
        "prospects",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("company", sa.String(length=255), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("linkedin_url", sa.String(length=512), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="new"),
        *_audit_columns(),
    )
    op.create_index("ix_prospects_tenant_id", "prospects", ["tenant_id"])

    op.create_table(
        "campaign_prospects",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("campaign_id", sa.String(length=36), sa.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("prospect_id", sa.String(length=36), sa.ForeignKey("prospects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("added_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.Column("added_by_email", sa.String(length=255), nullable=True),
        sa.UniqueConstraint("campaign_id", "prospect_id", name="uq_campaign_prospects_assignment"),
    )
    op.create_index("ix_campaign_prospects_tenant_id", "campaign_prospects", ["tenant_id"])
    op.create_index("idx_campaign_prospects_campaign", "campaign_prospects", ["campaign_id"])

    op.create_table(
        "workflow_nodes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("campaign_id", sa.String(length=36), sa.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("config", sa.JSON(), nullable=False),
        sa.Column("position_x", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("position_y", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("metadata", sa.JSON(), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_workflow_nodes_tenant_id", "workflow_nodes", ["tenant_id"])
    op.create_index("idx_workflow_nodes_campaign_type", "workflow_nodes", ["campaign_id", "type"])

    op.create_table(
        "workflow_edges",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("campaign_id", sa.String(length=36), sa.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("source_node_id", sa.Integer(), sa.ForeignKey("workflow_nodes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("target_node_id", sa.Integer(), sa.ForeignKey("workflow_nodes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("source_handle", sa.String(length=20), nullable=True),
        sa.Column("label", sa.String(length=50), nullable=True),
        sa.Column("condition_type", sa.String(length=50), nullable=True),
        sa.Column("condition_value", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_workflow_edges_tenant_id", "workflow_edges", ["tenant_id"])
    op.create_index("idx_workflow_edges_source_handle", "workflow_edges", ["source_node_id", "source_handle"])

    op.create_table(
        "workflow_prospect_states",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column(
            "campaign_prospect_id",
            sa.Integer(),
            sa.ForeignKey("campaign_prospects.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("current_node_id", sa.Integer(), sa.ForeignKey("workflow_nodes.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="ready"),
        sa.Column("scheduled_for", sa.DateTime(), nullable=True),
        sa.Column("last_executed_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("execution_started_at", sa.DateTime(), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
    )
    op.create_index("ix_workflow_prospect_states_tenant_id", "workflow_prospect_states", ["tenant_id"])
    op.create_index("idx_workflow_states_due", "workflow_prospect_states", ["status", "scheduled_for"])


def downgrade() -> None:
    op.drop_index("idx_workflow_states_due", table_name="workflow_prospect_states")
    op.drop_index("ix_workflow_prospect_states_tenant_id", table_name="workflow_prospect_states")
    op.drop_table("workflow_prospect_states")

    op.drop_index("idx_workflow_edges_source_handle", table_name="workflow_edges")
    op.drop_index("ix_workflow_edges_tenant_id", table_name="workflow_edges")
    op.drop_table("workflow_edges")

    op.drop_index("idx_workflow_nodes_campaign_type", table_name="workflow_nodes")
    op.drop_index("ix_workflow_nodes_tenant_id", table_name="workflow_nodes")
    op.drop_table("workflow_nodes")

    op.drop_index("idx_campaign_prospects_campaign", table_name="campaign_prospects")
    op.drop_index("ix_campaign_prospects_tenant_id", table_name="campaign_prospects")
    op.drop_table("campaign_prospects")

    op.drop_index("ix_prospects_tenant_id", table_name="prospects")
    op.drop_table("prospects")

    op.drop_index("idx_campaigns_tenant_active", table_name="campaigns")
    op.drop_index("ix_campaigns_tenant_id", table_name="campaigns")
    op.drop_table("campaigns")
