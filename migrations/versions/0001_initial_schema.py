"""initial schema: routing_rules

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

One row per routing rule. The primary key is the canonical rule id, so
the table itself rejects a second rule with the same selector tuple.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "routing_rules",
        sa.Column("id", sa.String(512), nullable=False),
        sa.Column("domain", sa.String(253), nullable=False),
        sa.Column("subdomain", sa.String(253), nullable=True),
        sa.Column("path", sa.String(2048), nullable=True),
        sa.Column(
            "query_policy", sa.Text(), nullable=True,
            comment="JSON list of allowed query keys; NULL allows every key",
        ),
        sa.Column("target", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_routing_rules_domain", "routing_rules", ["domain"])
    op.create_index("ix_routing_rules_expires_at", "routing_rules", ["expires_at"])


def downgrade() -> None:
    op.drop_index("ix_routing_rules_expires_at", table_name="routing_rules")
    op.drop_index("ix_routing_rules_domain", table_name="routing_rules")
    op.drop_table("routing_rules")
