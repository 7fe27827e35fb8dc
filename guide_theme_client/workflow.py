from typing import Optional

import aiohttp
from loguru import logger
from guide_theme_client.config import ThemeUpdaterSettings
from guide_theme_client.errors import (
    ArtifactError,
    JobFailedError,
    JobTimeoutError,
    RemoteCallError,
    UnexpectedJobStateError,
)
from guide_theme_client.guide_theme_client import GuideThemeClient
from guide_theme_client.models import JobResponse, JobStatus, UpdateJob
from guide_theme_client.summary import StepSummary


class ThemeUpdateWorkflow:
    """Submit a theme update, upload the archive, then wait for the job to finish.

    Each step reports its response (or its error) to the step summary. Any
    failure is re-raised as a ThemeUpdateError subclass after being reported.
    """

    def __init__(
        self,
        settings: ThemeUpdaterSettings,
        client: Optional[GuideThemeClient] = None,
        summary: Optional[StepSummary] = None,
    ):
        self.settings = settings
        self.summary = summary or StepSummary(settings.github_step_summary)
        self.client = client or GuideThemeClient(
            settings.api_base_url,
            authorization=settings.authorization_header,
            config=settings.polling,
        )
        if self.client.on_job_update is None:
            self.client.on_job_update = self._report_job_update
        self.logger = logger

    async def _report_job_update(self, job_response: JobResponse) -> None:
        self.summary.record_json(
            "Check Update Job Status Response", job_response.raw_response
        )

    def _report_remote_error(self, error: RemoteCallError) -> None:
        self.summary.record_json(f"{error.step} Error", error.to_dict())

    async def run(self) -> UpdateJob:
        timeout = aiohttp.ClientTimeout(total=self.settings.request_timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            try:
                submitted = await self.client.create_update_job(
                    session, self.settings.theme_id, self.settings.replace_settings
                )
                self.summary.record_json(
                    "Update Theme Response", submitted.raw_response
                )
                job = submitted.job
                self.logger.info(f"Job ID: {job.id}")

                self.logger.info("Uploading theme file...")
                uploaded = await self.client.upload_theme_file(
                    session, job.upload, self.settings.theme_path
                )
                self.summary.record_json(
                    "Upload Theme File Response",
                    {"status": uploaded.status, "body": uploaded.body},
                )
                self.logger.info("Theme file uploaded.")

                final = await self.client.poll_until_complete(session, job.id)
            except RemoteCallError as e:
                self._report_remote_error(e)
                raise
            except ArtifactError as e:
                self.summary.record_text("Theme Archive Error", str(e))
                raise
            except JobTimeoutError as e:
                self.logger.error("Job status check timed out")
                self.summary.record_text(
                    "Job Status Check Timeout",
                    f"Job did not complete within {e.timeout:g} seconds",
                )
                raise

        return self._finish(final.job)

    def _finish(self, job: UpdateJob) -> UpdateJob:
        if job.status == JobStatus.completed.value:
            self.logger.info("Job completed. Theme updated.")
            return job

        if job.status == JobStatus.failed.value:
            self.logger.error(f"Job failed: {job.errors}")
            self.summary.record_json("Job Failed", job.errors)
            raise JobFailedError(job.id, job.errors)

        self.logger.error(f"Job in unexpected state: {job.status}")
        self.summary.record_json("Unexpected Job State", job.status)
        raise UnexpectedJobStateError(job.id, job.status)
