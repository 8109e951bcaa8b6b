"""Shared fixtures for the repeater pipeline tests."""

import asyncio
import socket
import threading
from collections.abc import Callable, Generator
from contextlib import closing

import pytest
from aiohttp import web

from repeatermap.common.request_manager import SyncRequestManager
from repeatermap.settings import Settings
from tests.mock_server import (
    LICENCES,
    REQUEST_LOG,
    SITES,
    create_app,
    generate_licence_html,
    generate_site_html,
    generate_status_html,
)


@pytest.fixture
def status_html() -> str:
    """The mock network status page."""
    return generate_status_html()


@pytest.fixture
def licence_html() -> str:
    """The VK2RAG licence detail page."""
    return generate_licence_html(LICENCES["VK2RAG"])


@pytest.fixture
def site_html() -> str:
    """The Somersby site detail page."""
    return generate_site_html(SITES["9999"])


# =============================================================================
# aiohttp test server fixtures
# =============================================================================


def find_free_port() -> int:
    """Find a free port on localhost.

    Returns:
        An available port number.
    """
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


class AioHttpTestServer:
    """Wrapper to run aiohttp server in a background thread."""

    def __init__(self, app: web.Application, port: int) -> None:
        self.app = app
        self.port = port
        self.host = "127.0.0.1"
        self._loop: asyncio.AbstractEventLoop | None = None
        self._runner: web.AppRunner | None = None
        self._thread: threading.Thread | None = None
        self._started = threading.Event()

    @property
    def url(self) -> str:
        """Get the base URL of the server."""
        return f"http://{self.host}:{self.port}"

    @property
    def request_log(self) -> list[tuple[str, str, str | None]]:
        """(method, path, user agent) of every request served so far."""
        return self.app[REQUEST_LOG]

    def start(self) -> None:
        """Start the server in a background thread."""
        self._thread = threading.Thread(target=self._run_server, daemon=True)
        self._thread.start()
        if not self._started.wait(timeout=5.0):
            raise RuntimeError("mock server did not start")

    def _run_server(self) -> None:
        """Run the server in an asyncio event loop."""
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)

        async def start() -> None:
            self._runner = web.AppRunner(self.app)
            await self._runner.setup()
            site = web.TCPSite(self._runner, self.host, self.port)
            await site.start()

        self._loop.run_until_complete(start())
        self._started.set()
        self._loop.run_forever()

    def stop(self) -> None:
        """Stop the server and clean up resources."""
        if self._loop and self._runner:
            runner = self._runner
            future = asyncio.run_coroutine_threadsafe(
                runner.cleanup(), self._loop
            )
            try:
                future.result(timeout=2.0)
            except Exception:
                pass  # Best effort cleanup

        if self._loop:
            self._loop.call_soon_threadsafe(self._loop.stop)

        if self._thread:
            self._thread.join(timeout=2.0)


@pytest.fixture
def start_server() -> Generator[
    Callable[[web.Application], AioHttpTestServer], None, None
]:
    """Factory fixture: start a mock server for a custom application.

    Every server started through the factory is stopped at teardown.
    """
    servers: list[AioHttpTestServer] = []

    def _start(app: web.Application) -> AioHttpTestServer:
        server = AioHttpTestServer(app, find_free_port())
        server.start()
        servers.append(server)
        return server

    yield _start

    for server in servers:
        server.stop()


@pytest.fixture
def upstream_server(
    start_server: Callable[[web.Application], AioHttpTestServer],
) -> AioHttpTestServer:
    """The mock status page and register on a random local port."""
    return start_server(create_app())


@pytest.fixture
def server_url(upstream_server: AioHttpTestServer) -> str:
    """Base URL of the mock upstream server."""
    return upstream_server.url


@pytest.fixture
def settings(server_url: str) -> Settings:
    """Settings pointing every endpoint at the mock server, unthrottled."""
    return Settings.for_base_url(server_url, rate_limit_ms=0, timeout=5.0)


@pytest.fixture
def request_manager() -> Generator[SyncRequestManager, None, None]:
    """A plain request manager, closed after the test."""
    with SyncRequestManager(timeout=5.0) as manager:
        yield manager


@pytest.fixture
def unused_url() -> str:
    """A localhost URL nothing is listening on."""
    return f"http://127.0.0.1:{find_free_port()}"

