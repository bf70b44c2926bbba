"""
Data models for media assets, storage locators and Mediator jobs
"""
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class OutputFormat(str, Enum):
    """Transcript formats produced by a speech-to-text job."""
    JSON = "json"
    TTML = "ttml"
    TEXT = "text"

    @property
    def wire_name(self) -> str:
        return f"{self.value}Format"


class JobType(str, Enum):
    AI_JOB = "AiJob"


class JobProfile(str, Enum):
    SPEECH_TO_TEXT = "MediaCortexSpeechToText"


class JobStatus(str, Enum):
    """Mediator job status. Only COMPLETED and FAILED are terminal."""
    NEW = "New"
    PENDING = "Pending"
    QUEUED = "Queued"
    SCHEDULED = "Scheduled"
    RUNNING = "Running"
    COMPLETED = "Completed"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class MediaAsset(BaseModel):
    """Local input media file."""
    model_config = ConfigDict(frozen=True)

    folder: Path
    name: str
    duration: int = Field(..., gt=0)

    @property
    def path(self) -> Path:
        return self.folder / self.name


class AccessGrant(BaseModel):
    """Time-scoped signed URL for one storage operation."""
    model_config = ConfigDict(frozen=True)

    url: str
    method: str
    expires_at: datetime
    content_type: Optional[str] = None


class StorageLocator(BaseModel):
    """Bucket/key reference, optionally carrying a signed access URL."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    bucket: str = Field(..., alias="awsS3Bucket")
    key: str = Field(..., alias="awsS3Key")
    access_url: Optional[str] = Field(None, alias="httpEndpoint")
    expires_at: Optional[datetime] = Field(None, exclude=True)

    def with_grant(self, grant: AccessGrant) -> "StorageLocator":
        return self.model_copy(update={"access_url": grant.url, "expires_at": grant.expires_at})

    def is_usable(self, now: Optional[datetime] = None) -> bool:
        """True if the locator carries an access URL that has not expired."""
        if not self.access_url:
            return False
        if self.expires_at is None:
            return True
        return (now or datetime.now(timezone.utc)) < self.expires_at

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class JobDescription(BaseModel):
    """Speech-to-text job: one input file, one locator per output format."""
    model_config = ConfigDict(frozen=True)

    job_type: JobType = JobType.AI_JOB
    job_profile: JobProfile = JobProfile.SPEECH_TO_TEXT
    input_file: StorageLocator
    outputs: Dict[OutputFormat, StorageLocator]

    @model_validator(mode="after")
    def _all_formats(self) -> "JobDescription":
        missing = [fmt.value for fmt in OutputFormat if fmt not in self.outputs]
        if missing:
            raise ValueError(f"missing output locators: {', '.join(missing)}")
        return self

    def locators(self) -> Dict[str, StorageLocator]:
        """All referenced locators keyed by role."""
        result = {"input": self.input_file}
        result.update({fmt.value: self.outputs[fmt] for fmt in OutputFormat})
        return result

    def to_payload(self) -> Dict[str, Any]:
        return {
            "jobType": self.job_type.value,
            "jobProfile": self.job_profile.value,
            "jobInput": {
                "jobInputType": "SpeechToTextInput",
                "inputFile": self.input_file.to_payload(),
                "outputLocation": {
                    fmt.wire_name: self.outputs[fmt].to_payload() for fmt in OutputFormat
                },
            },
        }


class JobEnvelope(BaseModel):
    """Unit submitted to the Mediator: target service, billing quantity, job."""
    model_config = ConfigDict(frozen=True)

    project_service_id: str
    quantity: int = Field(..., gt=0)
    job: JobDescription

    @model_validator(mode="after")
    def _signed_locators(self) -> "JobEnvelope":
        unsigned = [role for role, loc in self.job.locators().items() if not loc.access_url]
        if unsigned:
            raise ValueError(f"locators without access URL: {', '.join(unsigned)}")
        return self

    def expired_locators(self, now: Optional[datetime] = None) -> List[str]:
        now = now or datetime.now(timezone.utc)
        return [role for role, loc in self.job.locators().items() if not loc.is_usable(now)]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "projectServiceId": self.project_service_id,
            "quantity": self.quantity,
            "job": self.job.to_payload(),
        }


class RemoteJobHandle(BaseModel):
    """Mediator's view of a submitted job. Replaced, never mutated."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    status: JobStatus
    status_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @classmethod
    def from_response(cls, body: Dict[str, Any]) -> "RemoteJobHandle":
        """Parse a Mediator job document ({id, status: {status, statusMessage}})."""
        status = body.get("status")
        message = None
        if isinstance(status, dict):
            message = status.get("statusMessage")
            status = status.get("status")
        if status is None:
            raise ValueError("job document has no status")
        job_id = body.get("id")
        return cls(
            id=str(job_id) if job_id is not None else "",
            status=JobStatus(status),
            status_message=message,
        )


class AccessToken(BaseModel):
    """Bearer token for Mediator calls; valid for the rest of the run."""
    model_config = ConfigDict(frozen=True)

    authorization: str = Field(..., min_length=1)
    expires_in: Optional[int] = None

    @classmethod
    def from_response(cls, body: Dict[str, Any]) -> "AccessToken":
        return cls(authorization=body.get("authorization"), expires_in=body.get("expiresIn"))

    def masked(self) -> str:
        return f"{self.authorization[:6]}..." if len(self.authorization) > 6 else "***"
