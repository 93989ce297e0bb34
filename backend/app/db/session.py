# app/db/session.py
"""
Database engine, session factory and initialization.

We use:
- SQLAlchemy async engine + AsyncSession
- SQLite via aiosqlite for local dev/tests, MySQL (aiomysql) in production

Key points:
- The engine owns the bounded connection pool. A request that cannot get a
  connection waits up to DB_POOL_TIMEOUT seconds, then fails (StoreError upstream).
- SQLite connections run with case_sensitive_like, so LIKE matches the way it
  does under a binary collation.
- `init_db()` creates tables and applies SQLite pragmas when running on SQLite.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import Settings, settings
from app.db.models import Base


def is_memory_sqlite(url: str) -> bool:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return False
    database = parsed.database or ""
    return database in ("", ":memory:") or parsed.query.get("mode") == "memory"


def engine_options(url: str, rules: Settings = settings) -> Dict[str, Any]:
    """
    Engine keyword arguments for a database URL.

    File-backed SQLite gets a queue pool like any server database. In-memory
    SQLite is pinned to a single StaticPool connection, which takes no sizing.
    """
    options: Dict[str, Any] = {"echo": False, "future": True}
    if not is_memory_sqlite(url):
        options.update(
            pool_size=rules.DB_POOL_SIZE,
            max_overflow=rules.DB_MAX_OVERFLOW,
            pool_timeout=rules.DB_POOL_TIMEOUT,
            pool_pre_ping=True,
        )
    return options


def masked_url(url: str) -> str:
    """Database URL with the password hidden, for logs."""
    return make_url(url).render_as_string(hide_password=True)


def _case_sensitive_like(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA case_sensitive_like=ON")
    cursor.close()


def make_engine(url: str, rules: Settings = settings, **overrides: Any) -> AsyncEngine:
    """
    Build the async engine for `url`.

    `overrides` go straight to create_async_engine; passing a `poolclass`
    drops the queue-pool sizing arguments.
    """
    options = engine_options(url, rules)
    if "poolclass" in overrides:
        for key in ("pool_size", "max_overflow", "pool_timeout"):
            options.pop(key, None)
    options.update(overrides)

    bind = create_async_engine(url, **options)
    if bind.dialect.name == "sqlite":
        event.listen(bind.sync_engine, "connect", _case_sensitive_like)
    return bind


def make_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        expire_on_commit=False,  # prevents attributes from expiring after commit (less surprising)
        class_=AsyncSession,
    )


engine = make_engine(settings.DATABASE_URL)

# Session factory used by the query executor and the sync job.
AsyncSessionLocal = make_sessionmaker(engine)


def _ensure_sqlite_dir(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return
    database = parsed.database or ""
    if database and database != ":memory:" and not database.startswith("file:"):
        Path(database).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)


async def init_db(bind: AsyncEngine | None = None) -> None:
    """
    Initialize database schema and apply SQLite pragmas.

    Pragmas rationale:
    - journal_mode=WAL: readers don't block the writer
    - synchronous=NORMAL: good balance for durability vs speed
    - foreign_keys=ON: enforce FK constraints
    """
    bind = bind or engine
    _ensure_sqlite_dir(str(bind.url))

    async with bind.begin() as conn:
        if bind.dialect.name == "sqlite":
            await conn.execute(text("PRAGMA journal_mode=WAL;"))
            await conn.execute(text("PRAGMA synchronous=NORMAL;"))
            await conn.execute(text("PRAGMA foreign_keys=ON;"))

        # Create tables if they don't exist
        await conn.run_sync(Base.metadata.create_all)

