"""
Worker entry point.
Run with: python -m compliance_engine.worker.runner
"""

import structlog
from redis import Redis
from rq import Worker

from compliance_engine.config import settings
from compliance_engine.observability.logging import setup_logging

logger = structlog.get_logger(__name__)


def main():
    """Start the RQ worker."""
    setup_logging()

    conn = Redis.from_url(settings.REDIS_URL)
    worker = Worker(
        queues=[settings.QUEUE_NAME],
        connection=conn,
        name=f"scoring-worker-{settings.APP_VERSION}",
    )

    logger.info("worker_starting", queue=settings.QUEUE_NAME)
    worker.work(with_scheduler=False)


if __name__ == "__main__":
    main()
