"""
Tests for the completion poller
"""
import asyncio
from typing import List

import pytest

from cortex.errors import PollError, PollTimeoutError
from cortex.models import JobStatus, RemoteJobHandle
from worker.poller import CompletionPoller


class ScriptedJobClient:
    """Returns statuses in order and records fetch concurrency."""

    def __init__(self, statuses: List[str], fail_at: int = None):
        self.statuses = statuses
        self.fail_at = fail_at
        self.fetches = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_status(self, handle: RemoteJobHandle) -> RemoteJobHandle:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if self.fail_at is not None and self.fetches == self.fail_at:
                raise PollError("status service unavailable")
            status = self.statuses[min(self.fetches, len(self.statuses) - 1)]
            self.fetches += 1
            return RemoteJobHandle(id=handle.id, status=JobStatus(status))
        finally:
            self.in_flight -= 1


class FakeSleep:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def submitted():
    return RemoteJobHandle(id="job-123", status=JobStatus.NEW)


class TestCompletionPoller:
    """Test the polling state machine."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_polls_until_completed(self, submitted):
        client = ScriptedJobClient(["Running", "Running", "Completed", "Running"])
        sleep = FakeSleep()

        result = await CompletionPoller(client, sleep=sleep).wait(submitted)

        assert result.status == JobStatus.COMPLETED
        assert result.id == "job-123"
        assert client.fetches == 3
        assert sleep.calls == [30.0, 30.0, 30.0]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_is_returned_not_raised(self, submitted):
        client = ScriptedJobClient(["Pending", "Failed"])

        result = await CompletionPoller(client, sleep=FakeSleep()).wait(submitted)

        assert result.status == JobStatus.FAILED
        assert client.fetches == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_status_keeps_polling(self, submitted):
        client = ScriptedJobClient(["Transcoding", "Scheduled", "Completed"])

        result = await CompletionPoller(client, sleep=FakeSleep()).wait(submitted)

        assert result.status == JobStatus.COMPLETED
        assert client.fetches == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_terminal_handle_returns_immediately(self):
        client = ScriptedJobClient(["Running"])
        sleep = FakeSleep()
        done = RemoteJobHandle(id="job-123", status=JobStatus.COMPLETED)

        assert await CompletionPoller(client, sleep=sleep).wait(done) is done
        assert client.fetches == 0
        assert sleep.calls == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fetches_never_overlap(self, submitted):
        client = ScriptedJobClient(["Running"] * 5 + ["Completed"])

        await CompletionPoller(client, interval=0.001).wait(submitted)

        assert client.max_in_flight == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fetch_error_propagates(self, submitted):
        client = ScriptedJobClient(["Running", "Completed"], fail_at=1)

        with pytest.raises(PollError):
            await CompletionPoller(client, sleep=FakeSleep()).wait(submitted)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_max_attempts(self, submitted):
        client = ScriptedJobClient(["Running"])

        with pytest.raises(PollTimeoutError) as exc_info:
            await CompletionPoller(client, sleep=FakeSleep(), max_attempts=4).wait(submitted)

        assert client.fetches == 4
        assert exc_info.value.details["status"] == "Running"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout(self, submitted):
        client = ScriptedJobClient(["Running"])
        now = [0.0]

        async def sleep(seconds):
            now[0] += seconds

        poller = CompletionPoller(client, interval=30, timeout=100, sleep=sleep, clock=lambda: now[0])

        with pytest.raises(PollTimeoutError) as exc_info:
            await poller.wait(submitted)

        assert client.fetches == 4
        assert now[0] == 100
        assert exc_info.value.details["attempts"] == 4

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout_shorter_than_interval_still_fetches(self, submitted):
        client = ScriptedJobClient(["Completed"])
        sleep = FakeSleep()

        poller = CompletionPoller(client, interval=30, timeout=10, sleep=sleep, clock=lambda: 0.0)
        result = await poller.wait(submitted)

        assert result.status == JobStatus.COMPLETED
        assert client.fetches == 1
        assert sleep.calls == [10.0]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_final_fetch_lands_on_deadline(self, submitted):
        client = ScriptedJobClient(["Running", "Running", "Running", "Completed"])
        now = [0.0]

        async def sleep(seconds):
            now[0] += seconds

        poller = CompletionPoller(client, interval=30, timeout=100, sleep=sleep, clock=lambda: now[0])
        result = await poller.wait(submitted)

        assert result.status == JobStatus.COMPLETED
        assert client.fetches == 4
        assert now[0] == 100

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_zero_timeout_means_unbounded(self, submitted):
        client = ScriptedJobClient(["Running"] * 50 + ["Completed"])

        result = await CompletionPoller(client, timeout=0, sleep=FakeSleep(), clock=lambda: 10 ** 9).wait(submitted)

        assert result.status == JobStatus.COMPLETED
        assert client.fetches == 51
