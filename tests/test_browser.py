"""
Tests for the Chrome adapter.

These tests verify that the adapter can:
- Connect to or launch Chrome with CDP
- Open pages and enumerate the ones already on the app
"""

import types
from unittest.mock import AsyncMock, Mock, patch

import pytest
from playwright.async_api import Error as PlaywrightError

from better_gemini.browser import BrowserAdapter, same_app
from better_gemini.constants import CHROME_REMOTE_PORT

# Mark all tests in this module as unit tests to avoid playwright conflicts
pytestmark = pytest.mark.unit


def _wire(mock_playwright, browser):
    mock_pw_instance = AsyncMock()
    mock_playwright.return_value.start = AsyncMock(return_value=mock_pw_instance)
    mock_pw_instance.chromium.connect_over_cdp = AsyncMock(return_value=browser)
    return mock_pw_instance


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://gemini.google.com/app", True),
        ("https://gemini.google.com/app/abc123?hl=en", True),
        ("https://gemini.google.com/", False),
        ("https://accounts.google.com/app", False),
        ("about:blank", False),
    ],
)
def test_same_app(url, expected):
    assert same_app(url, "https://gemini.google.com/app") is expected


@pytest.mark.asyncio
async def test_browser_adapter_context_manager():
    """BrowserAdapter attaches on enter and detaches on exit."""
    with (
        patch("better_gemini.browser.async_playwright") as mock_playwright,
        patch(
            "better_gemini.browser.BrowserAdapter._get_websocket_endpoint",
            new_callable=AsyncMock,
            return_value="ws://dummy",
        ),
    ):
        mock_browser = AsyncMock()
        mock_context = AsyncMock()
        mock_context.pages = []
        mock_browser.contexts = [mock_context]
        mock_pw_instance = _wire(mock_playwright, mock_browser)

        async with BrowserAdapter() as adapter:
            assert adapter._browser is mock_browser
            assert adapter.context is mock_context

        mock_pw_instance.chromium.connect_over_cdp.assert_awaited_once_with("ws://dummy")
        mock_browser.close.assert_awaited_once()
        mock_pw_instance.stop.assert_awaited_once()


def test_context_requires_connection():
    with pytest.raises(RuntimeError, match="not connected"):
        BrowserAdapter().context


@pytest.mark.asyncio
async def test_browser_adapter_launches_chrome_if_not_running():
    """BrowserAdapter launches Chrome if no CDP endpoint answers."""
    with (
        patch("better_gemini.browser.async_playwright") as mock_playwright,
        patch(
            "better_gemini.browser.BrowserAdapter._get_websocket_endpoint",
            new_callable=AsyncMock,
            side_effect=[None, None, "ws://dummy"],
        ),
        patch("better_gemini.browser.scan_chrome_processes") as mock_scan,
        patch("better_gemini.browser.asyncio.sleep", new_callable=AsyncMock),
        patch("subprocess.Popen") as mock_popen,
    ):
        mock_scan.return_value = types.SimpleNamespace(
            running=False, remote_debug=False, pids=()
        )
        mock_browser = AsyncMock()
        mock_browser.contexts = [AsyncMock()]
        _wire(mock_playwright, mock_browser)
        mock_proc = Mock()
        mock_proc.poll.return_value = None
        mock_popen.return_value = mock_proc

        async with BrowserAdapter() as adapter:
            mock_popen.assert_called_once()
            args = mock_popen.call_args[0][0]
            assert f"--remote-debugging-port={CHROME_REMOTE_PORT}" in args
            assert adapter._browser is mock_browser


@pytest.mark.asyncio
async def test_running_chrome_without_debug_flag_is_an_error(monkeypatch):
    monkeypatch.delenv("BETTER_GEMINI_AUTO_RELAUNCH_CHROME", raising=False)
    with (
        patch("better_gemini.browser.async_playwright") as mock_playwright,
        patch(
            "better_gemini.browser.BrowserAdapter._get_websocket_endpoint",
            new_callable=AsyncMock,
            return_value=None,
        ),
        patch("better_gemini.browser.scan_chrome_processes") as mock_scan,
        patch("better_gemini.browser.quit_chrome") as mock_quit,
    ):
        mock_scan.return_value = types.SimpleNamespace(
            running=True, remote_debug=False, pids=(123,)
        )
        mock_pw_instance = _wire(mock_playwright, AsyncMock())

        with pytest.raises(RuntimeError, match="--remote-debugging-port"):
            async with BrowserAdapter():
                pass

        mock_quit.assert_not_called()
        mock_pw_instance.stop.assert_awaited_once()


@pytest.mark.asyncio
async def test_auto_relaunch_quits_and_restarts_chrome(monkeypatch):
    monkeypatch.setenv("BETTER_GEMINI_AUTO_RELAUNCH_CHROME", "1")
    with (
        patch("better_gemini.browser.async_playwright") as mock_playwright,
        patch(
            "better_gemini.browser.BrowserAdapter._get_websocket_endpoint",
            new_callable=AsyncMock,
            side_effect=[None, "ws://dummy"],
        ),
        patch("better_gemini.browser.scan_chrome_processes") as mock_scan,
        patch("better_gemini.browser.quit_chrome") as mock_quit,
        patch("better_gemini.browser.launch_chrome_headful") as mock_launch,
        patch("better_gemini.browser.asyncio.sleep", new_callable=AsyncMock),
    ):
        mock_scan.return_value = types.SimpleNamespace(
            running=True, remote_debug=False, pids=(123, 456)
        )
        mock_browser = AsyncMock()
        mock_browser.contexts = [AsyncMock()]
        _wire(mock_playwright, mock_browser)

        async with BrowserAdapter() as adapter:
            assert adapter._browser is mock_browser

        mock_quit.assert_called_once_with((123, 456))
        mock_launch.assert_called_once()


@pytest.mark.asyncio
async def test_boot_timeout_reaps_launched_chrome():
    with (
        patch("better_gemini.browser.async_playwright") as mock_playwright,
        patch(
            "better_gemini.browser.BrowserAdapter._get_websocket_endpoint",
            new_callable=AsyncMock,
            return_value=None,
        ),
        patch("better_gemini.browser.scan_chrome_processes") as mock_scan,
        patch("better_gemini.browser.launch_chrome_headful") as mock_launch,
        patch("better_gemini.browser._CDP_BOOT_TIMEOUT", 0.05),
        patch("better_gemini.browser._CDP_POLL_INTERVAL", 0.01),
    ):
        mock_scan.return_value = types.SimpleNamespace(
            running=False, remote_debug=False, pids=()
        )
        mock_proc = Mock()
        mock_proc.poll.return_value = None
        mock_launch.return_value = mock_proc
        mock_pw_instance = _wire(mock_playwright, AsyncMock())

        with pytest.raises(RuntimeError, match="CDP endpoint"):
            async with BrowserAdapter():
                pass

        mock_proc.kill.assert_called_once()
        mock_pw_instance.stop.assert_awaited_once()


@pytest.mark.asyncio
async def test_failed_cdp_connection_is_not_fatal_while_booting():
    with (
        patch("better_gemini.browser.async_playwright") as mock_playwright,
        patch(
            "better_gemini.browser.BrowserAdapter._get_websocket_endpoint",
            new_callable=AsyncMock,
            return_value="ws://dummy",
        ),
    ):
        mock_browser = AsyncMock()
        mock_browser.contexts = [AsyncMock()]
        mock_pw_instance = _wire(mock_playwright, mock_browser)
        mock_pw_instance.chromium.connect_over_cdp = AsyncMock(
            side_effect=[PlaywrightError("Connection refused"), mock_browser]
        )

        adapter = BrowserAdapter()
        adapter._playwright = mock_pw_instance
        assert await adapter._try_connect() is False
        assert await adapter._try_connect() is True


@pytest.mark.asyncio
async def test_open_page_and_find_app_pages():
    with (
        patch("better_gemini.browser.async_playwright") as mock_playwright,
        patch(
            "better_gemini.browser.BrowserAdapter._get_websocket_endpoint",
            new_callable=AsyncMock,
            return_value="ws://dummy",
        ),
    ):
        gemini_tab = types.SimpleNamespace(url="https://gemini.google.com/app/abc")
        other_tab = types.SimpleNamespace(url="https://example.com/")
        new_tab = AsyncMock()

        mock_context = AsyncMock()
        mock_context.pages = [other_tab, gemini_tab]
        mock_context.new_page = AsyncMock(return_value=new_tab)
        mock_browser = AsyncMock()
        mock_browser.contexts = [mock_context]
        _wire(mock_playwright, mock_browser)

        async with BrowserAdapter() as adapter:
            page = await adapter.open_page("https://gemini.google.com/app?bg_prompt=Hi")
            found = await adapter.find_app_pages("https://gemini.google.com/app")

        assert page is new_tab
        new_tab.goto.assert_awaited_once_with(
            "https://gemini.google.com/app?bg_prompt=Hi", wait_until="load"
        )
        assert found == [gemini_tab]


# --------------------------------------------------------------------------- #
# Async bridges                                                               #
# --------------------------------------------------------------------------- #


def test_cli_open_and_inject_sync():
    """The synchronous wrapper runs the async flow on a fresh loop."""
    from better_gemini.cli import open_and_inject_sync
    from better_gemini.config import InjectorConfig

    with patch("better_gemini.cli.asyncio.run") as mock_run:
        mock_run.return_value = "outcome"

        result = open_and_inject_sync("Hello", InjectorConfig())

        assert result == "outcome"
        mock_run.assert_called_once()
        mock_run.call_args[0][0].close()


@pytest.mark.asyncio
async def test_send_message_requires_open_tab():
    from better_gemini.cli import _async_send_message
    from better_gemini.config import InjectorConfig

    adapter = AsyncMock()
    adapter.__aenter__.return_value = adapter
    adapter.find_app_pages = AsyncMock(return_value=[])

    with patch("better_gemini.cli.BrowserAdapter", return_value=adapter):
        with pytest.raises(RuntimeError, match="No open tab"):
            await _async_send_message({"action": "ping"}, InjectorConfig())


@pytest.mark.asyncio
async def test_send_message_posts_into_the_watched_tab(make_page):
    from better_gemini.cli import _async_send_message
    from better_gemini.config import InjectorConfig
    from better_gemini.messages import MessageRouter

    watched = make_page("https://gemini.google.com/app/1")
    unwatched = make_page("https://gemini.google.com/app/2")
    orchestrator = Mock()
    orchestrator.inject_from_message = AsyncMock(return_value=True)
    await MessageRouter(orchestrator).expose(watched)

    adapter = AsyncMock()
    adapter.__aenter__.return_value = adapter
    adapter.find_app_pages = AsyncMock(return_value=[watched, unwatched])

    with patch("better_gemini.cli.BrowserAdapter", return_value=adapter):
        ping = await _async_send_message({"action": "ping"}, InjectorConfig())
        sent = await _async_send_message(
            {"action": "injectPrompt", "prompt": "Hi"}, InjectorConfig()
        )

    assert ping == {"status": "alive"}
    assert sent == {"success": True}
    orchestrator.inject_from_message.assert_awaited_once_with("Hi")


@pytest.mark.asyncio
async def test_send_message_without_listener_is_an_error(make_page):
    from better_gemini.cli import _async_send_message
    from better_gemini.config import InjectorConfig

    adapter = AsyncMock()
    adapter.__aenter__.return_value = adapter
    adapter.find_app_pages = AsyncMock(
        return_value=[make_page("https://gemini.google.com/app")]
    )

    with patch("better_gemini.cli.BrowserAdapter", return_value=adapter):
        with pytest.raises(RuntimeError, match="No better-gemini listener"):
            await _async_send_message({"action": "ping"}, InjectorConfig())


@pytest.mark.asyncio
async def test_page_watcher_adopts_only_app_pages(make_page, config):
    from better_gemini.cli import PageWatcher
    from better_gemini.orchestrator import RuntimeMode

    watcher = PageWatcher(config)
    gemini = make_page("https://gemini.google.com/app")
    other = make_page("https://example.com/")

    orchestrator = await watcher.adopt(gemini)

    assert orchestrator.mode is RuntimeMode.LIVE
    assert await watcher.adopt(gemini) is None
    assert await watcher.adopt(other) is None
    assert watcher.orchestrators == [orchestrator]
    assert "betterGeminiMessage" in gemini.exposed

    gemini.emit("close", gemini)
    assert watcher.orchestrators == []


@pytest.mark.asyncio
async def test_page_watcher_waits_for_new_tab_load(make_page, config):
    import asyncio

    from better_gemini.cli import PageWatcher

    watcher = PageWatcher(config)
    tab = make_page("about:blank")
    watcher.on_new_page(tab)

    tab.url = "https://gemini.google.com/app"
    tab.emit("load", tab)
    await asyncio.sleep(0.05)

    assert len(watcher.orchestrators) == 1


@pytest.mark.asyncio
async def test_async_watch_subscribes_to_new_pages(make_page, config):
    import asyncio

    from better_gemini.cli import _async_watch

    open_tab = make_page("https://gemini.google.com/app")
    adapter = AsyncMock()
    adapter.__aenter__.return_value = adapter
    adapter.find_app_pages = AsyncMock(return_value=[open_tab])
    adapter.context = Mock()
    adapter.context.pages = [open_tab]

    stop = asyncio.Event()
    stop.set()
    with patch("better_gemini.cli.BrowserAdapter", return_value=adapter):
        await _async_watch(config, stop)

    adapter.context.on.assert_called_once()
    assert adapter.context.on.call_args[0][0] == "page"
    assert "betterGeminiMessage" in open_tab.exposed
    assert "load" in open_tab.listeners
