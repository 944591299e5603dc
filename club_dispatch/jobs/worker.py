"""
Generic background worker runner.

Reads the desired job name from CLI args or the WORKER_JOB environment
variable and delegates to the matching coroutine.
"""

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable

from club_dispatch.config import settings
from club_dispatch.db.pool import db_pool
from club_dispatch.infrastructure.observability.logging import get_logger, setup_logging
from club_dispatch.jobs.daily_dispatch_job import (
    daily_dispatch_job,
    run_daily_dispatch_once,
    start_daily_dispatch_scheduler,
)

logger = get_logger(__name__)

JobCoroutine = Callable[[], Awaitable[None]]

JOB_REGISTRY: dict[str, JobCoroutine] = {
    "daily_dispatch": start_daily_dispatch_scheduler,
    "daily_dispatch_once": run_daily_dispatch_once,
}


def _resolve_job_name() -> str:
    """Pick the target job from CLI args or WORKER_JOB env variable."""
    if len(sys.argv) > 1:
        return sys.argv[1].strip().lower()
    return os.getenv("WORKER_JOB", "daily_dispatch").strip().lower()


async def run_worker(job_name: str | None = None) -> None:
    """Run the requested background job with the database pool open, then release clients."""
    name = (job_name or _resolve_job_name()).strip().lower()
    if name not in JOB_REGISTRY:
        raise ValueError(
            f"Unknown worker job '{name}'. "
            f"Available jobs: {', '.join(sorted(JOB_REGISTRY.keys()))}"
        )

    logger.info("Starting background worker", job=name)
    await db_pool.initialize()
    try:
        await JOB_REGISTRY[name]()
    finally:
        await daily_dispatch_job.close()
        await db_pool.close()


def main() -> None:
    """CLI entrypoint."""
    setup_logging(settings.LOG_LEVEL, json_output=settings.environment != "development")
    asyncio.run(run_worker(_resolve_job_name()))


if __name__ == "__main__":
    main()
