"""SQLModel database engine and session management."""

import logging

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from risk_manager.config import settings

logger = logging.getLogger(__name__)

# SQLite needs check_same_thread=False; PostgreSQL does not
connect_args = {}
if settings.database_url.startswith("sqlite"):
    connect_args["check_same_thread"] = False

engine = create_engine(
    settings.database_url,
    echo=False,
    connect_args=connect_args,
    pool_pre_ping=True,
)


def _run_migrations(bind: Engine):
    """Run lightweight schema migrations for indexes added after first deploy."""
    inspector = inspect(bind)

    if "equity_snapshot" not in inspector.get_table_names():
        return

    # The last-equity lookup groups by account and takes MAX(created_at)
    existing_indexes = inspector.get_indexes("equity_snapshot")
    has_latest_idx = any(
        idx["name"] == "ix_equity_snapshot_account_created" for idx in existing_indexes
    )
    if not has_latest_idx:
        logger.info("Migrating: adding ix_equity_snapshot_account_created")
        with bind.connect() as conn:
            conn.execute(text(
                "CREATE INDEX ix_equity_snapshot_account_created "
                "ON equity_snapshot (broker_account_id, created_at)"
            ))
            conn.commit()


def create_db_and_tables(bind: Engine | None = None):
    """Create all tables. Called on startup."""
    import risk_manager.models  # noqa: F401  (registers tables on the metadata)

    bind = bind or engine
    SQLModel.metadata.create_all(bind)
    _run_migrations(bind)
