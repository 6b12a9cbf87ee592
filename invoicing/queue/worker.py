"""arq worker runner.

Run with: python -m invoicing.queue.worker
Or: arq invoicing.queue.tasks.WorkerSettings
"""

import logging

from arq import run_worker

from invoicing.queue.tasks import WorkerSettings
from invoicing.shared.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def main() -> None:
    """Run the arq worker."""
    logger.info(f"Starting {settings.service_name} {settings.service_version} worker")
    logger.info(f"Redis: {settings.redis_url}")
    logger.info(f"Max jobs: {settings.queue_max_jobs}, job timeout: {settings.queue_job_timeout}s")

    WorkerSettings.redis_settings = WorkerSettings.get_redis_settings()
    WorkerSettings.max_jobs = settings.queue_max_jobs
    WorkerSettings.job_timeout = settings.queue_job_timeout

    run_worker(WorkerSettings)  # type: ignore[arg-type]


if __name__ == "__main__":
    main()
