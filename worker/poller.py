"""
Completion polling for a submitted Mediator job
"""
import asyncio
import time
from typing import Awaitable, Callable, Optional

from cortex.client import JobClient
from cortex.errors import PollTimeoutError
from cortex.logger import get_logger
from cortex.models import RemoteJobHandle

logger = get_logger(__name__)

DEFAULT_POLL_INTERVAL = 30.0


class CompletionPoller:
    """
    Waits for a job to reach Completed or Failed.

    Each tick sleeps for the poll interval and then fetches the job once;
    fetches never overlap. A Failed job is returned, not raised. Errors from
    the job client propagate unchanged.

    The wait is bounded by an optional wall-clock timeout and an optional
    maximum number of fetches; either limit raises PollTimeoutError. The
    last sleep is shortened to land on the deadline, and the job is always
    fetched at least once before a timeout is raised.
    """

    def __init__(
        self,
        job_client: JobClient,
        interval: float = DEFAULT_POLL_INTERVAL,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.job_client = job_client
        self.interval = interval
        self.timeout = timeout or None
        self.max_attempts = max_attempts
        self._sleep = sleep
        self._clock = clock

    async def wait(self, handle: RemoteJobHandle) -> RemoteJobHandle:
        started = self._clock()
        attempts = 0

        while not handle.is_terminal:
            if self.max_attempts is not None and attempts >= self.max_attempts:
                raise PollTimeoutError(
                    f"Job {handle.id} not finished after {attempts} status checks",
                    details={"job_id": handle.id, "status": handle.status.value, "attempts": attempts},
                )
            delay = self.interval
            if self.timeout is not None:
                remaining = self.timeout - (self._clock() - started)
                if remaining <= 0 and attempts > 0:
                    raise PollTimeoutError(
                        f"Job {handle.id} not finished within {self.timeout:.0f}s",
                        details={"job_id": handle.id, "status": handle.status.value, "attempts": attempts},
                    )
                delay = min(self.interval, max(remaining, 0.0))

            await self._sleep(delay)
            handle = await self.job_client.fetch_status(handle)
            attempts += 1

            logger.info(
                "Job status",
                job_id=handle.id,
                status=handle.status.value,
                status_message=handle.status_message,
                attempt=attempts,
            )

        return handle
