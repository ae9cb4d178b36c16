from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect, text

from app.core.config import settings

ALEMBIC_DIR = Path(__file__).resolve().parents[1] / "alembic"


def _alembic_config() -> Config:
    # No ini file: keeps the test session's logging configuration intact
    config = Config()
    config.set_main_option("script_location", str(ALEMBIC_DIR))
    return config


def test_upgrade_head_creates_schema_on_sqlite(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'migrate.db'}"
    monkeypatch.setattr(settings, "DATABASE_URL", url)

    command.upgrade(_alembic_config(), "head")

    engine = create_engine(url)
    try:
        inspector = inspect(engine)
        tables = set(inspector.get_table_names())
        assert {
            "forms",
            "form_submissions",
            "workflows",
            "workflow_executions",
            "approval_requests",
            "jobs",
            "settings",
            "audit_logs",
        } <= tables
        foreign_keys = {fk["name"] for fk in inspector.get_foreign_keys("forms")}
        assert "fk_forms_workflow_id" in foreign_keys
        with engine.connect() as connection:
            version = connection.execute(text("SELECT version_num FROM alembic_version")).scalar_one()
        assert version == "0001_baseline"
    finally:
        engine.dispose()
