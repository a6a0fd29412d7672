#!/usr/bin/env python3
"""
RQ Worker for outgoing account emails.

This worker consumes the email queue and delivers:
1. Email verification messages
2. Password reset messages

Failed jobs are retried by rq according to the retry policy attached when
they were enqueued.

Usage:
    python worker.py
"""

import os
import sys
import logging
from pathlib import Path

# Add the app directory to Python path
sys.path.insert(0, str(Path(__file__).parent))

from rq import Worker
from app.core.config import settings
from app.core.queues import get_redis, check_redis_connection

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ],
)

logger = logging.getLogger("worker")


def main():
    """Main worker function."""
    logger.info("Starting RQ worker...")

    # Test Redis connection
    if not check_redis_connection():
        logger.error("Failed to connect to Redis. Exiting.")
        sys.exit(1)

    # Queues to listen to
    listen = [settings.EMAIL_QUEUE_NAME]

    logger.info(f"Worker listening to queues: {listen}")

    try:
        worker = Worker(listen, connection=get_redis(), name=f"worker-{os.getpid()}")
        logger.info(f"Worker {worker.name} started")
        # the scheduler moves retried jobs back onto the queue after their backoff
        worker.work(with_scheduler=True)
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    except Exception as e:
        logger.error(f"Worker error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
