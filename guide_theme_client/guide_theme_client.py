import asyncio
import json
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Union

import aiohttp
from loguru import logger
from pydantic import ValidationError
from guide_theme_client.errors import (
    ArtifactError,
    JobTimeoutError,
    RemoteCallError,
)
from guide_theme_client.models import (
    JobResponse,
    JobStatus,
    StatusPollingConfig,
    UpdateJob,
    UploadResponse,
    UploadTarget,
)

UPDATE_THEME = "Update Theme"
UPLOAD_THEME_FILE = "Upload Theme File"
CHECK_JOB_STATUS = "Check Update Job Status"

TERMINAL_STATUSES = (JobStatus.completed.value, JobStatus.failed.value)


class GuideThemeClient:
    def __init__(
        self,
        base_url: str,
        authorization: Optional[str] = None,
        config: Optional[StatusPollingConfig] = None,
        on_job_update: Optional[Callable[[JobResponse], Awaitable[Any]]] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_headers = {"Authorization": authorization} if authorization else {}
        self.config = config or StatusPollingConfig()
        self.logger = logger
        self.on_job_update = on_job_update
        self._clock = clock
        self._sleep = sleep or asyncio.sleep

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock()
        return asyncio.get_running_loop().time()

    async def _read_json(self, response: aiohttp.ClientResponse, step: str) -> dict:
        """Reads a helpdesk response body, raising for non-2xx answers and non-object bodies"""
        raw = await response.read()
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            self.logger.error(f"Undecodable body from {response.url}: {e}")
            raise RemoteCallError(
                step,
                "response body is not valid UTF-8",
                status=response.status,
                payload=raw.decode("utf-8", errors="replace"),
            ) from e

        try:
            data = json.loads(text) if text else None
        except ValueError:
            data = text

        if response.status >= 400:
            self.logger.error(f"HTTP error {response.status} at {response.url}")
            raise RemoteCallError(
                step, f"HTTP {response.status}", status=response.status, payload=data
            )
        if not isinstance(data, dict):
            raise RemoteCallError(
                step,
                "response body is not a JSON object",
                status=response.status,
                payload=data,
            )
        return data

    def _parse_job(self, data: dict, step: str, status: int) -> UpdateJob:
        try:
            return UpdateJob.model_validate(data["job"])
        except (KeyError, TypeError, ValidationError) as e:
            raise RemoteCallError(
                step, f"malformed job in response: {e}", status=status, payload=data
            ) from e

    @staticmethod
    def _transport_error(step: str, error: BaseException) -> RemoteCallError:
        return RemoteCallError(
            step,
            str(error) or type(error).__name__,
            payload={"error": type(error).__name__, "message": str(error)},
        )

    async def create_update_job(
        self,
        session: aiohttp.ClientSession,
        theme_id: str,
        replace_settings: bool = True,
    ) -> JobResponse:
        """Creates a theme update job and returns it together with its upload target"""
        start_time = self._now()
        url = f"{self.base_url}/guide/theming/jobs/themes/updates"
        body = {
            "job": {
                "attributes": {
                    "theme_id": theme_id,
                    "replace_settings": replace_settings,
                    "format": "zip",
                }
            }
        }

        try:
            async with session.post(url, json=body, headers=self.api_headers) as response:
                data = await self._read_json(response, UPDATE_THEME)
                job = self._parse_job(data, UPDATE_THEME, response.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f"Error creating update job: {e!r}")
            raise self._transport_error(UPDATE_THEME, e) from e

        if job.upload is None:
            raise RemoteCallError(
                UPDATE_THEME,
                "response has no upload target",
                status=response.status,
                payload=data,
            )

        return JobResponse(
            job=job, raw_response=data, elapsed_time=self._now() - start_time
        )

    async def upload_theme_file(
        self,
        session: aiohttp.ClientSession,
        upload: UploadTarget,
        file_path: Union[str, Path],
    ) -> UploadResponse:
        """Posts the theme archive to the pre-signed upload URL as a multipart form"""
        start_time = self._now()
        path = Path(file_path)

        try:
            artifact = path.open("rb")
        except OSError as e:
            self.logger.error(f"Error reading file {path}: {e}")
            raise ArtifactError(path, e.strerror or str(e)) from e

        with artifact:
            form = aiohttp.FormData()
            for key, value in upload.parameters.items():
                form.add_field(key, str(value))
            form.add_field(
                "file", artifact, filename=path.name, content_type="application/zip"
            )

            # Pre-signed URL: the helpdesk credentials must not travel with this request
            try:
                async with session.post(upload.url, data=form) as response:
                    text = (await response.read()).decode("utf-8", errors="replace")
                    if response.status >= 400:
                        self.logger.error(
                            f"HTTP error {response.status} at {upload.url}"
                        )
                        raise RemoteCallError(
                            UPLOAD_THEME_FILE,
                            f"HTTP {response.status}",
                            status=response.status,
                            payload=text,
                        )
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                self.logger.error(f"Error uploading theme file: {e!r}")
                raise self._transport_error(UPLOAD_THEME_FILE, e) from e

        return UploadResponse(
            status=response.status,
            body=text,
            elapsed_time=self._now() - start_time,
        )

    async def _get_job_once(
        self, session: aiohttp.ClientSession, job_id: str
    ) -> JobResponse:
        """Fetches the current state of a job from the helpdesk"""
        start_time = self._now()
        url = f"{self.base_url}/guide/theming/jobs/{job_id}"

        try:
            async with session.get(url, headers=self.api_headers) as response:
                data = await self._read_json(response, CHECK_JOB_STATUS)
                job = self._parse_job(data, CHECK_JOB_STATUS, response.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f"Error polling job {job_id}: {e!r}")
            raise self._transport_error(CHECK_JOB_STATUS, e) from e

        return JobResponse(
            job=job, raw_response=data, elapsed_time=self._now() - start_time
        )

    def _calculate_delay(self, attempt: int) -> float:
        """Calculates the delay before the next status check, growing geometrically up to max_delay"""
        return min(
            self.config.initial_delay * (self.config.backoff_factor**attempt),
            self.config.max_delay,
        )

    async def _handle_job_update(self, job_response: JobResponse) -> None:
        """Reports every fetched job whose status is anything but pending"""
        if job_response.job.status == JobStatus.pending.value:
            return
        self.logger.debug(f"Job status is {job_response.job.status}")
        if self.on_job_update is not None:
            await self.on_job_update(job_response)

    async def _wait_before_retry(self, attempt: int) -> None:
        delay = self._calculate_delay(attempt)
        self.logger.debug(f"Waiting {delay:.2f}s for job to complete")
        await self._sleep(delay)

    async def poll_until_complete(
        self, session: aiohttp.ClientSession, job_id: str
    ) -> JobResponse:
        """Poll the job until it completes or fails, using exponential backoff.

        Returns the last fetched job once its status is terminal; raises
        JobTimeoutError once more than config.timeout seconds have passed.
        """
        start_time = self._now()
        attempt = 0

        while True:
            job_response = await self._get_job_once(session, job_id)
            await self._handle_job_update(job_response)

            if job_response.job.status in TERMINAL_STATUSES:
                return job_response

            if self._now() - start_time > self.config.timeout:
                raise JobTimeoutError(job_id, self.config.timeout)

            await self._wait_before_retry(attempt)
            attempt += 1
