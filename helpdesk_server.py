import itertools
from typing import Iterable, List, Optional

from aiohttp import web
from loguru import logger

API_PREFIX = "/api/v2"


class HelpdeskServer:
    """Stand-in for the helpdesk theming API and its pre-signed upload bucket.

    The job walks through ``statuses`` one status check at a time; the last
    entry repeats forever.
    """

    def __init__(
        self,
        statuses: Iterable[str] = ("pending", "completed"),
        errors: Optional[list] = None,
        job_id: str = "9e1a5c2b-job",
        omit_upload_url: bool = False,
        create_status: int = 202,
        upload_status: int = 204,
        job_status_code: int = 200,
        create_body: Optional[bytes] = None,
        status_body: Optional[bytes] = None,
        upload_body: Optional[bytes] = None,
    ):
        self.statuses = list(statuses)
        self.errors = errors
        self.job_id = job_id
        self.omit_upload_url = omit_upload_url
        self.create_status = create_status
        self.upload_status = upload_status
        self.job_status_code = job_status_code
        # Raw bytes sent verbatim in place of the normal JSON answer
        self.create_body = create_body
        self.status_body = status_body
        self.upload_body = upload_body

        self.create_requests: List[dict] = []
        self.uploads: List[dict] = []
        self.status_checks = 0
        self.authorizations: List[Optional[str]] = []

        self.app = web.Application()
        self.app.router.add_post(
            f"{API_PREFIX}/guide/theming/jobs/themes/updates", self.handle_create
        )
        self.app.router.add_get(
            f"{API_PREFIX}/guide/theming/jobs/{{job_id}}", self.handle_status
        )
        self.app.router.add_post("/upload", self.handle_upload)
        self.logger = logger
        self.runner = None
        self._status_iter = None

    def _next_status(self) -> str:
        if self._status_iter is None:
            self._status_iter = itertools.chain(
                self.statuses, itertools.repeat(self.statuses[-1])
            )
        return next(self._status_iter)

    @staticmethod
    def _raw(body: bytes, status: int):
        return web.Response(body=body, status=status, content_type="application/json")

    def _job(self, status: str) -> dict:
        return {"id": self.job_id, "status": status, "errors": None}

    async def handle_create(self, request):
        self.authorizations.append(request.headers.get("Authorization"))
        payload = await request.json()
        self.create_requests.append(payload)

        if self.create_body is not None:
            return self._raw(self.create_body, self.create_status)

        if self.create_status >= 400:
            self.logger.info(f"Rejecting update job with {self.create_status}")
            return web.json_response(
                {"errors": [{"code": "InvalidTheme", "title": "Theme not found"}]},
                status=self.create_status,
            )

        upload = {"parameters": {"key": f"themes/{self.job_id}.zip", "acl": "private"}}
        if not self.omit_upload_url:
            upload["url"] = f"{request.scheme}://{request.host}/upload"

        job = self._job("pending")
        job["data"] = {"upload": upload}
        self.logger.info(f"Created update job {self.job_id}")
        return web.json_response({"job": job}, status=self.create_status)

    async def handle_upload(self, request):
        self.authorizations.append(request.headers.get("Authorization"))
        fields = {}
        file_bytes = None
        filename = None
        reader = await request.multipart()
        async for part in reader:
            if part.name == "file":
                filename = part.filename
                file_bytes = await part.read()
            else:
                fields[part.name] = await part.text()
        self.uploads.append({"fields": fields, "file": file_bytes, "filename": filename})
        self.logger.info(f"Received upload of {len(file_bytes or b'')} bytes")

        if self.upload_body is not None:
            return self._raw(self.upload_body, self.upload_status)
        if self.upload_status >= 400:
            return web.Response(status=self.upload_status, text="<Error>AccessDenied</Error>")
        return web.Response(status=self.upload_status)

    async def handle_status(self, request):
        self.status_checks += 1
        if self.job_status_code >= 400:
            return web.json_response({"error": "RecordNotFound"}, status=self.job_status_code)
        if self.status_body is not None:
            return self._raw(self.status_body, self.job_status_code)

        status = self._next_status()
        job = self._job(status)
        if status == "failed":
            job["errors"] = self.errors
        self.logger.info(f"Returning {status} status for {request.match_info['job_id']}")
        return web.json_response({"job": job})

    async def start(self, port: int = 8080):
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, "localhost", port)
        await site.start()
        self.logger.info(f"Server started on port {port}")
        return site

    async def stop(self):
        await self.runner.cleanup()

    def base_url(self, port: int) -> str:
        return f"http://localhost:{port}{API_PREFIX}"
