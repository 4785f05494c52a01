import contextlib
import socket

import pytest
from aiohttp import web


@contextlib.asynccontextmanager
async def serve(handler, path: str = "/{tail:.*}"):
    """Run ``handler`` on a throwaway local aiohttp server, yielding its base URL."""
    app = web.Application()
    app.router.add_route("GET", path, handler)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    host, port = runner.addresses[0][:2]
    try:
        yield f"http://{host}:{port}"
    finally:
        await runner.cleanup()


@pytest.fixture
def http_server():
    return serve


@pytest.fixture
def closed_port_url():
    """Base URL of a local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    return f"http://127.0.0.1:{port}"
