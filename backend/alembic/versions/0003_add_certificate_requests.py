"""Add certificate_requests table

Revision ID: 0003
Revises: 0002
Create Date: 2026-10-05

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0003"
down_revision: str | None = "0002"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "certificate_requests",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(25), nullable=False),
        sa.Column("score", sa.Integer, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("requested_at", sa.DateTime, nullable=False),
    )
    op.create_index("ix_certificate_requests_requested_at", "certificate_requests", ["requested_at"])


def downgrade() -> None:
    op.drop_index("ix_certificate_requests_requested_at", table_name="certificate_requests")
    op.drop_table("certificate_requests")
