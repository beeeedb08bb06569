"""better_gemini.browser
------------------------

Chrome adapter: connect to (or launch) a Google Chrome instance exposing the
Chrome DevTools Protocol (CDP) and hand out Playwright pages on Gemini.

Nothing is persisted; every command attaches afresh.

Example
-------
>>> async with BrowserAdapter() as ba:
...     page = await ba.open_page(build_prompt_url(GEMINI_APP_URL, "Hello"))
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import subprocess
import time
from urllib.parse import urlsplit

import aiohttp
from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Error as PlaywrightError,
)

from .chrome_utils import (
    get_chrome_profile_dir,
    launch_chrome_headful,
    quit_chrome,
    scan_chrome_processes,
)
from .constants import (
    AUTO_RELAUNCH_CHROME_ENV,
    CHROME_EXECUTABLE,
    CHROME_PROCESS_NAMES,
    CHROME_REMOTE_PORT,
)

_LOG = logging.getLogger(__name__)

# --------------------------------------------------------------------------- #
# Constants
# --------------------------------------------------------------------------- #

_CDP_BOOT_TIMEOUT = 8.0  # Seconds to wait for Chrome to expose CDP
_CDP_POLL_INTERVAL = 0.25  # Poll interval while waiting
_RELAUNCH_GRACE = 3.0  # Extra start-up time for a relaunched, populated profile


def same_app(url: str, app_url: str) -> bool:
    """True when *url* lives under *app_url* (same host, path prefix)."""
    page, app = urlsplit(url), urlsplit(app_url)
    return page.netloc == app.netloc and page.path.startswith(app.path)


# --------------------------------------------------------------------------- #
# Browser Adapter
# --------------------------------------------------------------------------- #


class BrowserAdapter:
    """
    Async context manager that guarantees a Playwright connection to Chrome.

    Responsibilities
    ----------------
    * Attach to an existing Chrome with remote-debugging enabled or start a
      new instance if none is found.
    * Open pages on the target app and enumerate the ones already open.
    """

    def __init__(self, remote_port: int = CHROME_REMOTE_PORT) -> None:
        self._playwright = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._chrome_proc: subprocess.Popen[str] | None = None
        self._remote_port = remote_port

    # ---------------- Context manager plumbing ---------------- #

    async def __aenter__(self) -> "BrowserAdapter":
        try:
            await self._ensure_connection()
        except BaseException:
            # __aexit__ is not called when __aenter__ fails.
            await self._detach()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._detach()

    async def _detach(self) -> None:
        # Detach but leave Chrome running.
        if self._browser:
            await self._browser.close()
            self._browser = None
            self._context = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    # ---------------- Public API ---------------- #

    @property
    def context(self) -> BrowserContext:
        if self._context is None:
            raise RuntimeError("BrowserAdapter is not connected")
        return self._context

    async def open_page(self, url: str) -> Page:
        """Open a new tab on *url* and wait for its ``load`` event."""
        await self._ensure_connection()
        page = await self.context.new_page()
        # Avoid 'networkidle', which can hang on a streaming app.
        await page.goto(url, wait_until="load")
        _LOG.debug("Opened %s", url)
        return page

    async def find_app_pages(self, app_url: str) -> list[Page]:
        """Every open page whose URL lives under *app_url*."""
        await self._ensure_connection()
        return [
            page
            for context in self._browser.contexts
            for page in context.pages
            if same_app(page.url, app_url)
        ]

    # ---------------- Internal helpers ---------------- #

    async def _ensure_connection(self) -> None:
        """Attach to an existing CDP endpoint or launch/relaunch Chrome."""

        if self._browser:
            return  # Already connected

        self._playwright = await async_playwright().start()

        # 1. Connect to any Chrome already exposing CDP
        if await self._try_connect():
            return

        # 2. No CDP yet - inspect local Chrome processes
        status = scan_chrome_processes(CHROME_PROCESS_NAMES)

        if status.running and not status.remote_debug:
            auto = os.getenv(AUTO_RELAUNCH_CHROME_ENV, "").lower() in {
                "1",
                "true",
                "yes",
            }
            if not auto:
                raise RuntimeError(
                    "Google Chrome is currently running without the "
                    f"'--remote-debugging-port={self._remote_port}' flag.\n\n"
                    "Either quit Chrome completely and restart it with that flag, e.g.\n"
                    f"  {CHROME_EXECUTABLE} --remote-debugging-port={self._remote_port}\n\n"
                    f"Or set the environment variable {AUTO_RELAUNCH_CHROME_ENV}=1 and "
                    "better-gemini will perform the restart automatically."
                )

            _LOG.info("Quitting existing Chrome instance...")
            quit_chrome(status.pids)
            _LOG.info("Launching Chrome with remote debugging...")
            self._launch_chrome_headful()
            await asyncio.sleep(_RELAUNCH_GRACE)

        elif not status.running:
            # No Chrome at all - launch a dedicated instance
            self._launch_chrome_headful()
        else:
            # Chrome claims to run with remote debug but connection failed
            raise RuntimeError(
                f"Unable to connect to Chrome remote debugging on port {self._remote_port}. "
                "Verify the port or set $CHROME_REMOTE_PORT to match the running instance."
            )

        # 3. Wait for the freshly launched Chrome to expose CDP and connect
        deadline = time.time() + _CDP_BOOT_TIMEOUT
        while time.time() < deadline:
            if await self._try_connect():
                return
            await asyncio.sleep(_CDP_POLL_INTERVAL)

        self._reap_chrome()
        raise RuntimeError("Chrome failed to expose a CDP endpoint in time.")

    async def _try_connect(self) -> bool:
        ws_endpoint = await self._get_websocket_endpoint()
        if not ws_endpoint:
            return False
        try:
            self._browser = await self._playwright.chromium.connect_over_cdp(ws_endpoint)
        except PlaywrightError as exc:
            _LOG.debug("CDP connection to %s failed: %s", ws_endpoint, exc)
            return False
        self._context = (
            self._browser.contexts[0]
            if self._browser.contexts
            else await self._browser.new_context()
        )
        return True

    async def _get_websocket_endpoint(self) -> str | None:
        """Fetch the WebSocket debugger URL from Chrome's /json/version endpoint.

        Tries the configured port, then a port discovered from the command
        line of a running Chrome.
        """

        async def fetch(port: int) -> str | None:
            url = f"http://127.0.0.1:{port}/json/version"
            try:
                async with aiohttp.ClientSession() as session:
                    async with session.get(
                        url, timeout=aiohttp.ClientTimeout(total=2)
                    ) as resp:
                        if resp.status == 200:
                            data = await resp.json()
                            return data.get("webSocketDebuggerUrl")
            except (aiohttp.ClientError, asyncio.TimeoutError):
                return None
            return None

        ws = await fetch(self._remote_port)
        if ws:
            return ws

        status = scan_chrome_processes(CHROME_PROCESS_NAMES)
        if status.remote_debug and status.debug_port and status.debug_port != self._remote_port:
            _LOG.debug("Switching to detected debug port %d", status.debug_port)
            self._remote_port = status.debug_port
            return await fetch(self._remote_port)
        return None

    def _launch_chrome_headful(self) -> None:
        """Spawn a dedicated Chrome instance with remote-debugging enabled."""
        if self._chrome_proc is not None:
            return  # already launched by this adapter

        profile_dir = get_chrome_profile_dir()
        _LOG.debug("Launching Chrome with profile %s", profile_dir)
        self._chrome_proc = launch_chrome_headful(self._remote_port, profile_dir)

    def _reap_chrome(self) -> None:
        """Kill a Chrome this adapter launched (used when start-up fails)."""
        if self._chrome_proc and self._chrome_proc.poll() is None:
            with contextlib.suppress(ProcessLookupError):
                self._chrome_proc.kill()
