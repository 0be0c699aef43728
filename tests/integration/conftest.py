"""Shared fixtures for browser integration tests."""

import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
import pytest_asyncio

from console_tap.capture.browser_factory import BrowserConfig, BrowserFactory

TEST_PAGE = b"""<!DOCTYPE html>
<html>
<head><title>Console Test Page</title></head>
<body>
    <h1>Console Test Page</h1>
    <script>
        console.log('Immediate log message');
        console.warn('Immediate warning');
        console.error('Immediate error');

        setTimeout(() => {
            console.log('Delayed log message');
            console.log('Object test:', { key: 'value', number: 42 });
            console.log('Array test:', [1, 2, 3, 'test']);
            fetch('/missing.json').catch(() => {});
        }, 300);

        setTimeout(() => {
            throw new Error('Uncaught test error');
        }, 600);
    </script>
</body>
</html>
"""


class ConsoleTestPageHandler(BaseHTTPRequestHandler):
    """Serves the console test page at / and 404 for everything else."""

    def do_GET(self):
        if self.path == "/":
            self.send_response(200)
            self.send_header("Content-Type", "text/html")
            self.end_headers()
            self.wfile.write(TEST_PAGE)
        else:
            self.send_response(404)
            self.end_headers()

    def log_message(self, format, *args):
        pass


@pytest.fixture(scope="module")
def test_server_url():
    """URL of a local server hosting the console test page."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), ConsoleTestPageHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}/"
    server.shutdown()
    server.server_close()


@pytest_asyncio.fixture
async def browser_factory():
    """Started headless Chromium factory; skips when no browser is installed."""
    factory = BrowserFactory(BrowserConfig(headless=True))
    try:
        await factory.start()
    except Exception as e:
        pytest.skip(f"Chromium not available: {e}")
    yield factory
    await factory.stop()
