"""
Workflow driver: stage, sign, submit, poll, fetch, clean up
"""
import asyncio
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional

import httpx

from cortex.client import AuthClient, JobClient
from cortex.config import Settings
from cortex.errors import ConfigurationError, StorageReadError
from cortex.logger import get_logger
from cortex.models import JobEnvelope, JobStatus, OutputFormat, RemoteJobHandle
from storage.base import StorageBackend
from storage.factory import create_storage_backend
from worker.builder import OUTPUT_CONTENT_TYPES, JobBuilder
from worker.grants import AccessGrantGenerator
from worker.poller import CompletionPoller
from worker.reaper import ArtifactReaper, CleanupReport
from worker.transfer import AssetStager, ResultFetcher

logger = get_logger(__name__)


class RunStatus(str, Enum):
    SUCCEEDED = "succeeded"
    JOB_FAILED = "job_failed"
    ERROR = "error"


@dataclass
class RunOutcome:
    """What one workflow run did and how it ended."""
    status: RunStatus = RunStatus.ERROR
    envelope: Optional[JobEnvelope] = None
    job: Optional[RemoteJobHandle] = None
    downloaded: Dict[OutputFormat, Path] = field(default_factory=dict)
    cleanup: Optional[CleanupReport] = None
    failed_stage: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCEEDED


class WorkflowDriver:
    """
    Runs one speech-to-text job end to end.

    Steps run strictly in order and the first failure ends the run. Once the
    job reaches a terminal status, results are fetched and every artifact is
    deleted whether the job completed or failed. Failures before that point
    leave the staged input in storage unless cleanup_on_failure is set.
    """

    def __init__(
        self,
        settings: Settings,
        storage: StorageBackend,
        auth_client: AuthClient,
        job_client: JobClient,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings
        self.storage = storage
        self.auth_client = auth_client
        self.job_client = job_client

        self.asset = settings.media_asset()
        self.builder = JobBuilder(
            bucket=storage.bucket,
            asset=self.asset,
            output_keys=settings.output_keys(),
            project_service_id=settings.project_service_id,
        )
        self.stager = AssetStager(storage)
        self.grants = AccessGrantGenerator(storage)
        self.poller = CompletionPoller(
            job_client,
            interval=settings.poll_interval,
            timeout=settings.poll_timeout,
            max_attempts=settings.max_poll_attempts,
            sleep=sleep,
        )
        self.fetcher = ResultFetcher(storage, self.asset.folder)
        self.reaper = ArtifactReaper(storage, self.builder.all_keys())

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "WorkflowDriver":
        try:
            storage = create_storage_backend(settings.storage_config())
        except (ValueError, OSError) as e:
            raise ConfigurationError(f"Storage backend unavailable: {e}")

        return cls(
            settings,
            storage,
            AuthClient(settings.host, timeout=settings.request_timeout, transport=transport),
            JobClient(settings.host, timeout=settings.request_timeout, transport=transport),
        )

    @contextmanager
    def _stage(self, outcome: RunOutcome, name: str):
        try:
            yield
        except Exception:
            if outcome.failed_stage is None:
                outcome.failed_stage = name
            raise

    async def run(self) -> RunOutcome:
        """Run the workflow; errors are logged and recorded, never raised."""
        outcome = RunOutcome()
        staged = False
        logger.info("Starting AI process", input=str(self.asset.path), bucket=self.storage.bucket)

        try:
            with self._stage(outcome, "stage"):
                await self.stager.stage(self.asset)
                staged = True

            await self._run_job(outcome)

        except Exception as e:
            outcome.error = e
            if outcome.job is not None and outcome.job.status == JobStatus.FAILED:
                outcome.status = RunStatus.JOB_FAILED
            else:
                outcome.status = RunStatus.ERROR
            logger.exception(
                "AI process failed",
                stage=outcome.failed_stage,
                error_type=type(e).__name__,
                **getattr(e, "details", {}),
            )

            if staged and outcome.cleanup is None and self.settings.cleanup_on_failure:
                outcome.cleanup = await self.reaper.reap()
        finally:
            await self.auth_client.cleanup()
            await self.job_client.cleanup()

        return outcome

    async def _run_job(self, outcome: RunOutcome) -> None:
        with self._stage(outcome, "grant"):
            input_grant = self.grants.grant_read(self.builder.input_locator())
            logger.info("Input file signed URL", key=self.asset.name, url=input_grant.url)

            output_grants = {}
            for fmt, locator in self.builder.output_locators().items():
                output_grants[fmt] = self.grants.grant_write(
                    locator,
                    content_type=OUTPUT_CONTENT_TYPES.get(fmt),
                    ttl=self.settings.grant_ttl,
                )
                logger.info("Output file signed URL", format=fmt.value, key=locator.key,
                            url=output_grants[fmt].url)

        with self._stage(outcome, "build"):
            envelope = self.builder.build(input_grant, output_grants)
            outcome.envelope = envelope
            logger.info("Job envelope built", envelope=envelope.to_payload())

        with self._stage(outcome, "authenticate"):
            token = await self.auth_client.authenticate(
                self.settings.client_key, self.settings.client_secret
            )
            logger.info("Access token obtained", token=token.masked(), expires_in=token.expires_in)

        with self._stage(outcome, "submit"):
            handle = await self.job_client.submit(envelope, token)
            outcome.job = handle
            logger.info("Job submitted", job_id=handle.id, status=handle.status.value)

        with self._stage(outcome, "poll"):
            handle = await self.poller.wait(handle)
            outcome.job = handle
            logger.info("Job finished", job_id=handle.id, status=handle.status.value,
                        status_message=handle.status_message)

        try:
            with self._stage(outcome, "fetch"):
                await self._fetch_results(envelope, outcome)
        finally:
            with self._stage(outcome, "cleanup"):
                outcome.cleanup = await self.reaper.reap()

        if handle.status == JobStatus.COMPLETED:
            outcome.status = RunStatus.SUCCEEDED
            logger.info("AI process has finished successfully", job_id=handle.id)
        else:
            outcome.status = RunStatus.JOB_FAILED
            logger.error("AI job failed", job_id=handle.id, status_message=handle.status_message)

    async def _fetch_results(self, envelope: JobEnvelope, outcome: RunOutcome) -> None:
        """Download every output format; one failure does not stop the others."""
        failures = {}
        for fmt in OutputFormat:
            locator = envelope.job.outputs[fmt]
            try:
                outcome.downloaded[fmt] = await self.fetcher.fetch(locator)
            except StorageReadError as e:
                logger.warning("Result download failed", format=fmt.value, key=locator.key, error=e.message)
                failures[locator.key] = e.message

        if failures:
            raise StorageReadError(
                f"Failed to download {len(failures)} of {len(OutputFormat)} results",
                details={"failures": failures},
            )
