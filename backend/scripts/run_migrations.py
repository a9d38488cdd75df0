"""Bring the feedback store schema to the Alembic head before the API starts.

The database URL comes from the service settings (``SCIWRITE_DATABASE_URL``),
so the runner and the API always point at the same database. Deployments that
set ``SCIWRITE_DATABASE_AUTO_CREATE`` do not need it.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from app.config import Settings, get_settings
from app.logging_config import MIGRATIONS_LOGGER, configure_logging

LOGGER = logging.getLogger(MIGRATIONS_LOGGER)
BACKEND_ROOT = Path(__file__).resolve().parent.parent
ALEMBIC_INI = BACKEND_ROOT / "alembic.ini"


@dataclass(frozen=True)
class MigrationOptions:
    revision: str = "head"
    timeout: int = 60
    poll_interval: float = 3.0
    config_path: Path = ALEMBIC_INI


def parse_args(argv: Optional[list[str]] = None) -> MigrationOptions:
    parser = argparse.ArgumentParser(description="Upgrade the feedback database schema.")
    parser.add_argument("--revision", default="head")
    parser.add_argument("--timeout", type=int, default=60, help="Seconds to wait for the database.")
    parser.add_argument("--poll-interval", type=float, default=3.0)
    parser.add_argument("--config", type=Path, default=ALEMBIC_INI)
    args = parser.parse_args(argv)
    return MigrationOptions(
        revision=args.revision,
        timeout=args.timeout,
        poll_interval=args.poll_interval,
        config_path=args.config,
    )


def get_alembic_config(config_path: Path = ALEMBIC_INI, settings: Optional[Settings] = None) -> Config:
    """Alembic config with absolute script location and the settings' database URL.

    Logging stays with ``configure_logging``; ``env.py`` skips ``fileConfig``.
    """
    settings = settings or get_settings()
    if not settings.database_url:
        raise RuntimeError("SCIWRITE_DATABASE_URL must be set before running migrations.")
    config = Config(str(config_path))
    config.set_main_option("script_location", str(BACKEND_ROOT / "alembic"))
    config.set_main_option("sqlalchemy.url", settings.database_url.replace("%", "%%"))
    config.attributes["configure_logger"] = False
    return config


def _check_connection(engine: Engine) -> Optional[Exception]:
    """``None`` when the database answers; the transient error otherwise."""
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except OperationalError as exc:
        return exc
    return None


def wait_for_database(database_url: str, *, timeout: int, poll_interval: float) -> None:
    engine = create_engine(database_url, pool_pre_ping=True)
    deadline = time.monotonic() + timeout
    last_error: Optional[Exception] = None
    try:
        while time.monotonic() < deadline:
            try:
                last_error = _check_connection(engine)
            except SQLAlchemyError as exc:
                raise RuntimeError(f"Database rejected the readiness check: {exc}") from exc
            if last_error is None:
                LOGGER.info("Database is reachable.")
                return
            LOGGER.warning("Database not ready yet: %s", last_error)
            time.sleep(poll_interval)
    finally:
        engine.dispose()
    raise RuntimeError("Database did not become ready in time.") from last_error


def pending_revision(config: Config, database_url: str) -> Optional[str]:
    """The head revision when the database is behind it, else ``None``."""
    head = ScriptDirectory.from_config(config).get_current_head()
    engine = create_engine(database_url)
    try:
        with engine.connect() as connection:
            current = MigrationContext.configure(connection).get_current_revision()
    finally:
        engine.dispose()
    LOGGER.info("Schema revision: current=%s head=%s", current, head)
    return None if current == head else head


def run_migrations(options: MigrationOptions, *, config: Optional[Config] = None) -> bool:
    """Upgrade when needed; returns whether an upgrade ran."""
    config = config or get_alembic_config(options.config_path)
    database_url = config.get_main_option("sqlalchemy.url")
    wait_for_database(database_url, timeout=options.timeout, poll_interval=options.poll_interval)
    if options.revision == "head" and pending_revision(config, database_url) is None:
        LOGGER.info("Feedback schema already at head; nothing to do.")
        return False
    command.upgrade(config, options.revision)
    LOGGER.info("Feedback schema upgraded to %s.", options.revision)
    return True


def main(argv: Optional[list[str]] = None) -> int:
    configure_logging()
    options = parse_args(argv)
    try:
        run_migrations(options)
    except Exception:  # noqa: BLE001
        LOGGER.exception("Migration run failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
