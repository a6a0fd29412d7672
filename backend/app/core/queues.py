import logging
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional

from redis import Redis
from redis.exceptions import RedisError
from rq import Queue, Retry
from rq.job import Job

from .config import settings
from .exceptions import EmailDispatchError
from ..worker_tasks import send_password_reset_email, send_verification_email

logger = logging.getLogger(__name__)

# Delay in seconds before each retry of a failed email job
EMAIL_RETRY_INTERVALS = [2, 4, 8]


@lru_cache()
def get_redis() -> Redis:
    """Shared Redis connection. Connects lazily on first command."""
    return Redis.from_url(settings.REDIS_URL, decode_responses=False)


def get_email_queue() -> Queue:
    """Get the queue consumed by the email worker."""
    return Queue(settings.EMAIL_QUEUE_NAME, connection=get_redis())


def check_redis_connection(connection: Optional[Redis] = None) -> bool:
    """Test Redis connection."""
    try:
        (connection or get_redis()).ping()
        logger.info("Redis connection successful")
        return True
    except RedisError as e:
        logger.error(f"Redis connection failed: {e}")
        return False


class EmailDispatcher:
    """
    Puts templated notification emails on the email queue.

    Enqueuing is synchronous and raises EmailDispatchError when the queue is
    unreachable. Delivery and retries happen in the worker.
    """

    def __init__(
        self,
        queue: Queue,
        frontend_url: str,
        max_retries: int = 3,
        job_timeout: int = 60,
        reset_expires_minutes: int = 60,
    ):
        self.queue = queue
        self.frontend_url = frontend_url.rstrip("/")
        self.max_retries = max_retries
        self.job_timeout = job_timeout
        self.reset_expires_minutes = reset_expires_minutes

    def _retry_intervals(self) -> List[int]:
        intervals = EMAIL_RETRY_INTERVALS[: self.max_retries]
        return intervals + [EMAIL_RETRY_INTERVALS[-1]] * (self.max_retries - len(intervals))

    def _enqueue(self, func: Callable, payload: Dict[str, Any]) -> Job:
        retry = None
        if self.max_retries > 0:
            retry = Retry(max=self.max_retries, interval=self._retry_intervals())
        try:
            job = self.queue.enqueue(
                func,
                kwargs=payload,
                retry=retry,
                job_timeout=self.job_timeout,
            )
        except RedisError as e:
            logger.error(f"Failed to queue {func.__name__} for {payload.get('to')}: {e}")
            raise EmailDispatchError(str(e)) from e

        logger.info(f"Email job {job.id} ({func.__name__}) queued")
        return job

    def send_verification_email(self, to: str, name: str, token: str) -> Job:
        verification_url = f"{self.frontend_url}/verify-email?token={token}"
        return self._enqueue(
            send_verification_email,
            {"to": to, "name": name, "verification_url": verification_url},
        )

    def send_password_reset_email(self, to: str, name: str, token: str) -> Job:
        reset_url = f"{self.frontend_url}/reset-password?token={token}"
        return self._enqueue(
            send_password_reset_email,
            {
                "to": to,
                "name": name,
                "email": to,
                "reset_url": reset_url,
                "expires_in": _describe_minutes(self.reset_expires_minutes),
            },
        )


def _describe_minutes(minutes: int) -> str:
    if minutes % 60 == 0:
        hours = minutes // 60
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    return f"{minutes} minutes"


def get_email_dispatcher() -> EmailDispatcher:
    """FastAPI dependency returning the configured email dispatcher."""
    return EmailDispatcher(
        queue=get_email_queue(),
        frontend_url=settings.FRONTEND_URL,
        max_retries=settings.EMAIL_JOB_MAX_RETRIES,
        job_timeout=settings.EMAIL_JOB_TIMEOUT,
        reset_expires_minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES,
    )
