import tempfile
from pathlib import Path

from sqlalchemy import create_engine, inspect

import mathquest.config as config_module
from alembic import command
from alembic.config import Config

ALEMBIC_INI = Path(__file__).resolve().parents[1] / "alembic.ini"


def test_alembic_upgrade_head_on_fresh_sqlite_db():
    original_database_url = config_module.settings.database_url
    try:
        with tempfile.TemporaryDirectory() as tmpdir:
            db_path = Path(tmpdir) / "fresh.db"
            database_url = f"sqlite:///{db_path}"

            config_module.settings.database_url = database_url

            alembic_cfg = Config(str(ALEMBIC_INI))
            command.upgrade(alembic_cfg, "head")

            engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False},
            )
            inspector = inspect(engine)
            tables = set(inspector.get_table_names())

            assert {"leaderboard", "ip_play_limits", "certificate_requests"}.issubset(tables)

            leaderboard_columns = {col["name"] for col in inspector.get_columns("leaderboard")}
            assert {"games_played", "updated_at"}.issubset(leaderboard_columns)

            play_columns = {col["name"] for col in inspector.get_columns("ip_play_limits")}
            assert "score_submitted_at" in play_columns

            primary_key = inspector.get_pk_constraint("ip_play_limits")["constrained_columns"]
            assert set(primary_key) == {"ip_address", "daily_seed"}
            engine.dispose()
    finally:
        config_module.settings.database_url = original_database_url
