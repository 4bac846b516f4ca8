"""
core/database.py -- Engine construction shared by every SQLAlchemy Core store.

Each store (auth/store.py, audit/store.py, inventory/store.py) owns its own
MetaData and tables and builds its engine here, so swapping SQLite for
PostgreSQL is a DATABASE_URL change, not a rewrite.

Layer rule: core/ is the kernel. No imports from api/, auth/, audit/, inventory/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _is_memory_db(db_url: str) -> bool:
    return ":memory:" in db_url or "mode=memory" in db_url


def make_engine(db_url: str) -> Engine:
    """Create an Engine for db_url.

    SQLite: check_same_thread is disabled because FastAPI runs sync handlers
    and dependencies in a thread pool; file databases also get WAL mode.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite") and not _is_memory_db(db_url):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
