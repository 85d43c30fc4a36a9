from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config

from adboard.infra.db import DATABASE_URL
from adboard.infra.logging import get_logger

PROJECT_ROOT = Path(__file__).resolve().parents[2]

logger = get_logger(__name__)


def alembic_config(database_url: str | None = None) -> Config:
    config = Config(str(PROJECT_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(PROJECT_ROOT / "infra" / "migrations"))
    config.set_main_option("sqlalchemy.url", database_url or DATABASE_URL)
    return config


def run_upgrade_head(database_url: str | None = None) -> None:
    logger.info("migrations.upgrade", revision="head")
    command.upgrade(alembic_config(database_url), "head")


if __name__ == "__main__":
    run_upgrade_head()
