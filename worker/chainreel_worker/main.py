"""
ChainReel Worker Entry Point

Starts the RQ worker that runs chained video generation jobs.

Usage:
    python -m chainreel_worker.main

Environment Variables:
    REDIS_URL: Redis connection URL (default: redis://localhost:6379/0)
    DATABASE_URL: Database URL shared with the API
    STORAGE_PATH: Storage root; generated media lives under <STORAGE_PATH>/generated
    PROVIDER_API_KEY: Video provider credentials
    PROVIDER_BASE_URL: Video provider origin (default: https://api.apiyi.com)
"""

import logging
import sys
from redis import Redis
from rq import Queue, Worker

from .db import get_engine
from .queues import get_redis_connection, ALL_QUEUES
from .tasks.chain_engine import WorkerBase
from .tasks.ffmpeg_runner import validate_ffmpeg_available

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("chainreel.worker")


def create_worker(connection: Redis) -> Worker:
    """
    Create an RQ worker that listens to the chain queue.

    Args:
        connection: Redis connection instance

    Returns:
        Worker: Configured RQ worker instance
    """
    queues = [Queue(name, connection=connection) for name in ALL_QUEUES]

    return Worker(
        queues=queues,
        connection=connection,
    )


def start_worker() -> None:
    """
    Initialize Redis, the database and ffmpeg, then start the RQ worker.

    This function blocks and runs until the worker is terminated.
    """
    logger.info("Starting ChainReel worker...")

    try:
        connection = get_redis_connection()
        connection.ping()
        logger.info("Successfully connected to Redis")
    except Exception as e:
        logger.error(f"Failed to connect to Redis: {e}")
        sys.exit(1)

    if not validate_ffmpeg_available():
        logger.error("ffmpeg/ffprobe not found on PATH")
        sys.exit(1)

    # The API normally creates the table; this keeps a standalone worker usable.
    WorkerBase.metadata.create_all(bind=get_engine())

    logger.info(f"Listening on queues: {', '.join(ALL_QUEUES)}")

    worker = create_worker(connection)

    try:
        worker.work(with_scheduler=False)
    except KeyboardInterrupt:
        logger.info("Worker shutdown requested")
    except Exception as e:
        logger.error(f"Worker error: {e}")
        sys.exit(1)

    logger.info("Worker stopped")


def main() -> None:
    """Main entry point for the worker module."""
    start_worker()


if __name__ == "__main__":
    main()
