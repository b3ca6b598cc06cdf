"""Create leaderboard and ip_play_limits tables

Revision ID: 0001
Revises:
Create Date: 2026-09-14

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "leaderboard",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(25), nullable=False),
        sa.Column("difficulty", sa.String(15), nullable=False),
        sa.Column("score", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )

    # The composite primary key is what makes one daily play per seed race-safe
    op.create_table(
        "ip_play_limits",
        sa.Column("ip_address", sa.String(45), primary_key=True),
        sa.Column("daily_seed", sa.String(50), primary_key=True),
        sa.Column("play_date", sa.Date, nullable=False),
    )


def downgrade() -> None:
    op.drop_table("ip_play_limits")
    op.drop_table("leaderboard")
