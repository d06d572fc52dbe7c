import logging
from typing import Any, AsyncGenerator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.exc import TimeoutError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

Base = declarative_base()

logger = logging.getLogger(__name__)


def create_db_engine(app_settings) -> AsyncEngine:
    is_postgres = app_settings.database_url.startswith(("postgresql://", "postgresql+"))

    engine_kwargs: dict[str, Any] = {
        "pool_pre_ping": True,
    }

    if is_postgres:
        engine_kwargs.update({
            "pool_size": app_settings.database_pool_size,
            "max_overflow": app_settings.database_max_overflow,
            "pool_timeout": app_settings.database_pool_timeout_seconds,
            "connect_args": {
                "options": f"-c statement_timeout={int(app_settings.database_statement_timeout_ms)}",
            },
        })

    engine = create_async_engine(app_settings.database_url, **engine_kwargs)
    _configure_logging(engine)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        expire_on_commit=False,
        class_=AsyncSession,
    )


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    session_factory: async_sessionmaker[AsyncSession] | None = getattr(
        request.app.state, "db_session_factory", None
    )
    if session_factory is None:
        raise RuntimeError("Database session factory is not configured")
    try:
        async with session_factory() as session:
            yield session
    except TimeoutError as exc:
        logger.warning("db_pool_timeout", exc_info=exc)
        raise


def _configure_logging(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "handle_error")
    def receive_error(context):  # noqa: ANN001
        exc = context.original_exception or context.sqlalchemy_exception
        if isinstance(exc, TimeoutError):
            logger.warning(
                "db_pool_timeout",
                extra={"extra": {"operation": str(context.statement) if context.statement else None}},
            )
