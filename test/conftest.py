from typing import List

import pytest
import pytest_asyncio
from helpdesk_server import HelpdeskServer


class FakeClock:
    """Simulated time: only advances when the poller sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def time(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def theme_zip(tmp_path):
    path = tmp_path / "theme.zip"
    path.write_bytes(b"PK\x03\x04 fake theme archive")
    return path


@pytest_asyncio.fixture
async def start_server(unused_tcp_port_factory):
    """Start HelpdeskServer instances on random ports; all are stopped afterwards."""
    started = []

    async def _start(**kwargs):
        port = unused_tcp_port_factory()
        server = HelpdeskServer(**kwargs)
        await server.start(port=port)
        started.append(server)
        return server, port

    yield _start

    for server in started:
        await server.stop()
