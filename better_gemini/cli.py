"""
better_gemini.cli
-----------------

Async bridges between the synchronous Click commands and the browser.

Each helper opens its own ``BrowserAdapter`` session, does one job and
detaches, leaving Chrome running.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from playwright.async_api import Page

from .browser import BrowserAdapter, same_app
from .channel import build_prompt_url
from .config import InjectorConfig
from .messages import post_message
from .orchestrator import InjectionOrchestrator, InjectionOutcome, RuntimeMode

_LOG = logging.getLogger(__name__)


# --------------------------------------------------------------------------- #
# URL carrier                                                                 #
# --------------------------------------------------------------------------- #


async def _async_open_and_inject(prompt: str, config: InjectorConfig) -> InjectionOutcome:
    url = build_prompt_url(config.app_url, prompt, config.url_param)
    async with BrowserAdapter() as ba:
        page = await ba.open_page(url)
        orchestrator = InjectionOrchestrator(page, config, RuntimeMode.MANUAL)
        return await orchestrator.run()


def open_and_inject_sync(prompt: str, config: InjectorConfig) -> InjectionOutcome:
    """Open a new Gemini tab carrying *prompt* and run the injection flow."""
    return asyncio.run(_async_open_and_inject(prompt, config))


# --------------------------------------------------------------------------- #
# Message carrier                                                             #
# --------------------------------------------------------------------------- #


async def _async_send_message(message: Any, config: InjectorConfig) -> dict[str, Any]:
    async with BrowserAdapter() as ba:
        pages = await ba.find_app_pages(config.app_url)
        if not pages:
            raise RuntimeError(
                f"No open tab on {config.app_url}. Open one first with 'better-gemini open'."
            )
        # Most recently opened tab wins.
        for page in reversed(pages):
            reply = await post_message(page, message)
            if reply is not None:
                return reply
        raise RuntimeError(
            f"No better-gemini listener on {config.app_url}. "
            "Start one with 'better-gemini watch'."
        )


def send_message_sync(message: Any, config: InjectorConfig) -> dict[str, Any]:
    """Post *message* to the newest Gemini tab with a listener and return the reply."""
    return asyncio.run(_async_send_message(message, config))


# --------------------------------------------------------------------------- #
# Watch mode                                                                  #
# --------------------------------------------------------------------------- #


class PageWatcher:
    """Attach a LIVE orchestrator to every Gemini page of a browser context."""

    def __init__(self, config: InjectorConfig) -> None:
        self._config = config
        self._orchestrators: dict[int, InjectionOrchestrator] = {}
        self._tasks: set[asyncio.Task] = set()

    @property
    def orchestrators(self) -> list[InjectionOrchestrator]:
        return list(self._orchestrators.values())

    async def adopt(self, page: Page) -> InjectionOrchestrator | None:
        if id(page) in self._orchestrators or not same_app(page.url, self._config.app_url):
            return None
        orchestrator = InjectionOrchestrator(page, self._config, RuntimeMode.LIVE)
        self._orchestrators[id(page)] = orchestrator
        page.on("close", lambda p: self._orchestrators.pop(id(p), None))
        await orchestrator.attach()
        _LOG.info("Watching %s", page.url)
        return orchestrator

    def on_new_page(self, page: Page) -> None:
        # New tabs start on about:blank; decide once they have loaded.
        page.on("load", self._schedule_adopt)

    def _schedule_adopt(self, page: Page) -> None:
        task = asyncio.ensure_future(self.adopt(page))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


async def _async_watch(config: InjectorConfig, stop: asyncio.Event | None = None) -> None:
    stop = stop or asyncio.Event()
    async with BrowserAdapter() as ba:
        watcher = PageWatcher(config)
        for page in await ba.find_app_pages(config.app_url):
            await watcher.adopt(page)
        for page in ba.context.pages:
            watcher.on_new_page(page)
        ba.context.on("page", watcher.on_new_page)
        _LOG.info("Watching for %s prompts on %s", config.url_param, config.app_url)
        await stop.wait()


def watch_sync(config: InjectorConfig) -> None:
    """Block, injecting every Gemini page load that carries a prompt."""
    try:
        asyncio.run(_async_watch(config))
    except KeyboardInterrupt:
        _LOG.info("Stopped watching")
