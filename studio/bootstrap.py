"""Schema setup at process start, enabled with AUTO_MIGRATE=1.

An empty database gets the current models plus an alembic stamp; an
existing one is upgraded. On PostgreSQL an advisory lock keeps concurrent
workers from migrating at the same time; a worker that cannot take the
lock leaves the work to whoever holds it.
"""

import logging
import os
from contextlib import contextmanager

from flask_migrate import stamp, upgrade
from sqlalchemy import inspect, text

from .extensions import db


logger = logging.getLogger(__name__)

MIGRATION_LOCK_KEY = 734120917
SENTINEL_TABLE = "workspaces"


def auto_migrate_requested(environ=os.environ) -> bool:
    return environ.get("AUTO_MIGRATE", "").strip().lower() in ("1", "true", "yes")


@contextmanager
def migration_lock(engine):
    """Yield True when this process may migrate."""
    if engine.dialect.name != "postgresql":
        yield True
        return
    with engine.connect() as conn:
        acquired = conn.execute(text("SELECT pg_try_advisory_lock(:key)"), {"key": MIGRATION_LOCK_KEY}).scalar()
        try:
            yield bool(acquired)
        finally:
            if acquired:
                conn.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": MIGRATION_LOCK_KEY})


def create_schema_if_empty(engine) -> bool:
    with engine.begin() as conn:
        if inspect(conn).has_table(SENTINEL_TABLE):
            return False
        db.metadata.create_all(bind=conn)
    return True


def migrate_on_boot(app) -> str:
    """Returns what was done: "created", "upgraded" or "skipped"."""
    with app.app_context():
        with migration_lock(db.engine) as may_migrate:
            if not may_migrate:
                logger.info("another worker holds the migration lock")
                return "skipped"
            if create_schema_if_empty(db.engine):
                stamp(revision="head")
                logger.info("created schema and stamped head")
                return "created"
            upgrade()
            logger.info("schema upgraded")
            return "upgraded"
