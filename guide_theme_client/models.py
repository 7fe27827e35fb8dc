from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class JobStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"


class UploadTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    parameters: Dict[str, Any]


class JobData(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    upload: Optional[UploadTarget] = None


class UpdateJob(BaseModel):
    """A theming job as last reported by the helpdesk. Never edited in place, only refetched."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str
    status: str
    data: Optional[JobData] = None
    errors: Optional[List[Any]] = None

    @field_validator("id", mode="before")
    @classmethod
    def _opaque_id(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @property
    def upload(self) -> Optional[UploadTarget]:
        return self.data.upload if self.data is not None else None


class JobResponse(BaseModel):
    job: UpdateJob
    raw_response: dict
    elapsed_time: float


class UploadResponse(BaseModel):
    status: int
    body: str
    elapsed_time: float


class StatusPollingConfig(BaseModel):
    initial_delay: float = 5.0
    max_delay: float = 60.0
    backoff_factor: float = 1.5
    timeout: float = 300.0  # 5 minutes
