import asyncio
import tempfile
from pathlib import Path

from helpdesk_server import HelpdeskServer
from guide_theme_client.config import ThemeUpdaterSettings
from guide_theme_client.errors import ThemeUpdateError
from guide_theme_client.models import StatusPollingConfig
from guide_theme_client.workflow import ThemeUpdateWorkflow


async def main():
    PORT = 8000
    server = HelpdeskServer(statuses=["pending", "pending", "processing", "completed"])
    await server.start(port=PORT)
    print(f"Server started on http://localhost:{PORT}")

    workdir = Path(tempfile.mkdtemp())
    theme_path = workdir / "theme.zip"
    theme_path.write_bytes(b"PK\x03\x04 example theme")
    summary_path = workdir / "summary.md"

    settings = ThemeUpdaterSettings.load(
        zendesk_subdomain="example",
        zendesk_email="agent@example.com",
        zendesk_token="example-token",
        theme_id="example-theme",
        zendesk_base_url=server.base_url(PORT),
        theme_path=theme_path,
        github_step_summary=summary_path,
        polling=StatusPollingConfig(initial_delay=0.5, max_delay=2.0, timeout=30.0),
    )

    try:
        job = await ThemeUpdateWorkflow(settings).run()
        print(f"Final status: {job.status}")
    except ThemeUpdateError as e:
        print(f"Theme update failed: {e}")
    finally:
        await server.stop()

    print(summary_path.read_text(encoding="utf-8"))


if __name__ == "__main__":
    asyncio.run(main())
