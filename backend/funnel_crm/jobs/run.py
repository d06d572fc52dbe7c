import argparse
import asyncio
import logging
from collections.abc import Awaitable, Callable

from sqlalchemy.ext.asyncio import async_sessionmaker

from funnel_crm.infra.db import create_db_engine, create_session_factory
from funnel_crm.infra.logging import clear_log_context, configure_logging
from funnel_crm.jobs import commission_release
from funnel_crm.settings import settings

logger = logging.getLogger(__name__)

DEFAULT_JOBS = ["commission-release"]


async def _run_job(
    name: str,
    session_factory: async_sessionmaker,
    runner: Callable[[object], Awaitable[dict[str, int]]],
) -> dict[str, int]:
    try:
        async with session_factory() as session:
            result = await runner(session)
        logger.info("job_complete", extra={"extra": {"job": name, **result}})
        return result
    finally:
        clear_log_context()


def _job_runner(name: str) -> Callable:
    if name == "commission-release":
        return commission_release.run_commission_release
    raise ValueError(f"unknown_job:{name}")


async def run_jobs(
    job_names: list[str],
    session_factory: async_sessionmaker,
    *,
    interval: int = 60,
    once: bool = False,
) -> None:
    runners = [_job_runner(name) for name in job_names]
    while True:
        for name, runner in zip(job_names, runners):
            try:
                await _run_job(name, session_factory, runner)
            except Exception as exc:  # noqa: BLE001
                logger.warning("job_failed", extra={"extra": {"job": name, "reason": type(exc).__name__}})
        if once:
            break
        await asyncio.sleep(max(interval, 1))


async def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Run scheduled jobs")
    parser.add_argument("--job", action="append", dest="jobs", help="Job name to run")
    parser.add_argument("--interval", type=int, default=60, help="Seconds between loops when not using --once")
    parser.add_argument("--once", action="store_true", help="Run jobs once and exit")
    args = parser.parse_args(argv)

    configure_logging()
    engine = create_db_engine(settings)
    try:
        await run_jobs(
            args.jobs or DEFAULT_JOBS,
            create_session_factory(engine),
            interval=args.interval,
            once=args.once,
        )
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
