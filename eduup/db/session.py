"""Database engines and session factory.

Both an async engine (startup schema creation, back-office) and a sync
engine (API routers, scripts) are built from the same ``DATABASE_URL``.
In development an unreachable PostgreSQL server makes the app boot on a
local SQLite file instead.
"""

from __future__ import annotations

import logging
import os
import ssl
from time import perf_counter
from typing import Any

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import ArgumentError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import sessionmaker

from eduup.core.config import settings

logger = logging.getLogger(__name__)

SQLITE_FALLBACK_URL = "sqlite+aiosqlite:///./eduup_local.db"

# Populated by ``configure_database``.
async_engine: AsyncEngine
sync_engine: Engine
SessionLocal: sessionmaker


def _prepare_asyncpg_connection(url: str) -> tuple[str, dict[str, object]]:
    """Translate libpq ``sslmode`` query params into asyncpg connect args."""

    try:
        parsed_url = make_url(url)
    except ArgumentError:
        return url, {}

    if not parsed_url.drivername.startswith("postgresql+asyncpg"):
        return url, {}

    query = dict(parsed_url.query)
    sslmode = query.pop("sslmode", None)

    connect_args: dict[str, object] = {}
    if isinstance(sslmode, str):
        mode = sslmode.lower()
        if mode == "disable":
            connect_args["ssl"] = False
        elif mode in {"verify-ca", "verify-full"}:
            context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
            context.check_hostname = mode == "verify-full"
            connect_args["ssl"] = context
        else:
            # require/prefer/allow only ask for encryption, like libpq.
            context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
            connect_args["ssl"] = context

    sanitized_url = parsed_url.set(query=query).render_as_string(hide_password=False)
    return sanitized_url, connect_args


def _derive_sync_connection_parameters(async_url: str) -> tuple[str, dict[str, Any]]:
    """Return a synchronous SQLAlchemy URL matching the async configuration."""

    parsed_url = make_url(async_url)
    drivername = parsed_url.drivername
    connect_args: dict[str, Any] = {}

    if drivername.startswith("postgresql+"):
        parsed_url = parsed_url.set(drivername="postgresql")
    elif drivername == "sqlite+aiosqlite":
        parsed_url = parsed_url.set(drivername="sqlite")
        connect_args["check_same_thread"] = False

    return parsed_url.render_as_string(hide_password=False), connect_args


def _should_enable_sqlite_fallback() -> bool:
    if os.getenv("DISABLE_SQLITE_FALLBACK") == "1":
        return False
    return (settings.ENVIRONMENT or "").lower() in {"development", "local"}


def _install_slow_query_logger(engine: Engine) -> None:
    """Warn when a statement runs longer than the configured threshold."""

    threshold_ms = max(settings.SQLALCHEMY_SLOW_QUERY_THRESHOLD_MS or 0, 0)
    if threshold_ms == 0 or getattr(engine, "_eduup_slow_query_hook", False):
        return

    setattr(engine, "_eduup_slow_query_hook", True)

    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        context._eduup_query_start = perf_counter()

    def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start = getattr(context, "_eduup_query_start", None)
        if start is None:
            return

        elapsed_ms = (perf_counter() - start) * 1000.0
        if elapsed_ms < threshold_ms:
            return

        snippet = " ".join(str(statement).split())
        if len(snippet) > 200:
            snippet = snippet[:197] + "..."
        logger.warning("Slow SQL (%.1f ms) - %s", elapsed_ms, snippet)

    event.listen(engine, "before_cursor_execute", _before_cursor_execute)
    event.listen(engine, "after_cursor_execute", _after_cursor_execute)


def _verify_database_connection(engine: Engine) -> None:
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))


def configure_database(database_url: str | None = None, *, allow_fallback: bool = True) -> None:
    """Initialise the engines and the session factory.

    ``database_url`` defaults to the environment configuration. A failed
    connection check switches to SQLite when the fallback is allowed.
    """

    global async_engine, sync_engine, SessionLocal

    target_url = str(database_url or settings.DATABASE_URL)
    async_url, async_connect_args = _prepare_asyncpg_connection(target_url)

    logger.info("Configuring database: %s", make_url(async_url).render_as_string(hide_password=True))

    candidate_async_engine = create_async_engine(
        async_url,
        echo=False,
        future=True,
        connect_args=async_connect_args,
    )

    sync_url, sync_connect_args = _derive_sync_connection_parameters(async_url)
    candidate_sync_engine = create_engine(
        sync_url,
        pool_pre_ping=True,
        connect_args=sync_connect_args,
    )

    _install_slow_query_logger(candidate_sync_engine)
    _install_slow_query_logger(candidate_async_engine.sync_engine)

    try:
        _verify_database_connection(candidate_sync_engine)
    except (OperationalError, OSError) as exc:
        if allow_fallback and _should_enable_sqlite_fallback():
            logger.warning(
                "Database '%s' unreachable (%s). Falling back to SQLite.",
                make_url(async_url).render_as_string(hide_password=True),
                exc,
            )
            candidate_sync_engine.dispose()
            candidate_async_engine.sync_engine.dispose()
            configure_database(SQLITE_FALLBACK_URL, allow_fallback=False)
            return

        logger.error("Database connection failed: %s", exc)
        raise

    async_engine = candidate_async_engine
    sync_engine = candidate_sync_engine
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=sync_engine)


configure_database()
