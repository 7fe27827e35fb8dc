from typing import Any, List, Optional


class ThemeUpdateError(Exception):
    """Base class for every fatal condition of a theme update run"""


class ConfigurationError(ThemeUpdateError):
    def __init__(self, message: str, missing: Optional[List[str]] = None):
        self.missing = missing or []
        super().__init__(message)

    @classmethod
    def missing_variables(cls, missing: List[str]) -> "ConfigurationError":
        return cls(
            f"Missing required environment variables: {', '.join(missing)}",
            missing=missing,
        )


class RemoteCallError(ThemeUpdateError):
    """A helpdesk or upload call failed, answered non-2xx, or returned a body we can't use"""

    def __init__(
        self,
        step: str,
        message: str,
        status: Optional[int] = None,
        payload: Any = None,
    ):
        self.step = step
        self.status = status
        self.payload = payload
        super().__init__(f"{step} failed: {message}")

    def to_dict(self) -> dict:
        return {
            "step": self.step,
            "message": str(self),
            "status": self.status,
            "payload": self.payload,
        }


class ArtifactError(ThemeUpdateError):
    def __init__(self, path, reason: str):
        self.path = path
        super().__init__(f"Cannot read theme archive {path}: {reason}")


class JobFailedError(ThemeUpdateError):
    def __init__(self, job_id: str, errors: Optional[list]):
        self.job_id = job_id
        self.errors = errors
        super().__init__(f"Job {job_id} failed")


class JobTimeoutError(ThemeUpdateError, TimeoutError):
    def __init__(self, job_id: str, timeout: float):
        self.job_id = job_id
        self.timeout = timeout
        super().__init__(f"Job {job_id} did not complete within {timeout:g} seconds")


class UnexpectedJobStateError(ThemeUpdateError):
    def __init__(self, job_id: str, status: str):
        self.job_id = job_id
        self.status = status
        super().__init__(f"Job {job_id} in unexpected state: {status}")
