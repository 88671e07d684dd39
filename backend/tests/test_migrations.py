"""Alembic environment: migrations only run against a live connection."""

from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config

ALEMBIC_DIR = Path(__file__).resolve().parents[1] / "alembic"


def _config() -> Config:
    # No ini file: keeps fileConfig from resetting the app's loggers
    cfg = Config()
    cfg.set_main_option("script_location", str(ALEMBIC_DIR))
    return cfg


def test_offline_sql_generation_is_refused():
    with pytest.raises(RuntimeError, match="Offline"):
        command.upgrade(_config(), "head", sql=True)
