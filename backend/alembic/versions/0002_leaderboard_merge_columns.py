"""Add running-total columns and daily submission tracking

Revision ID: 0002
Revises: 0001
Create Date: 2026-09-28

Leaderboard rows become per-(username, difficulty) running totals, so they
need a game counter and an update timestamp. Daily plays remember when a
score was submitted so a second submission can be refused.
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: str | None = "0001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    with op.batch_alter_table("leaderboard", recreate="always") as batch_op:
        batch_op.add_column(
            sa.Column("games_played", sa.Integer, nullable=False, server_default="1")
        )
        batch_op.add_column(
            sa.Column(
                "updated_at",
                sa.DateTime,
                nullable=False,
                server_default=sa.func.current_timestamp(),
            )
        )
    op.create_index(
        "ix_leaderboard_username_difficulty", "leaderboard", ["username", "difficulty"]
    )

    with op.batch_alter_table("ip_play_limits", recreate="always") as batch_op:
        batch_op.add_column(
            sa.Column(
                "last_played_at",
                sa.DateTime,
                nullable=False,
                server_default=sa.func.current_timestamp(),
            )
        )
        batch_op.add_column(sa.Column("score_submitted_at", sa.DateTime, nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("ip_play_limits", recreate="always") as batch_op:
        batch_op.drop_column("score_submitted_at")
        batch_op.drop_column("last_played_at")

    op.drop_index("ix_leaderboard_username_difficulty", table_name="leaderboard")
    with op.batch_alter_table("leaderboard", recreate="always") as batch_op:
        batch_op.drop_column("updated_at")
        batch_op.drop_column("games_played")
