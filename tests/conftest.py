"""Shared pytest fixtures: an in-memory stand-in for a Playwright page."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from better_gemini.channel import REPLACE_STATE_JS
from better_gemini.config import InjectorConfig
from better_gemini.injector import EXEC_COMMAND_INSERT_JS, INPUT_EVENT_INSERT_JS
from better_gemini.messages import POST_MESSAGE_JS
from better_gemini.readiness import FIND_FIRST_JS, MUTATION_SUPPORT_JS
from better_gemini.submit import IS_DISABLED_JS


class FakeElement:
    """Element double that interprets the package's in-page scripts."""

    def __init__(
        self,
        content: str = "",
        *,
        disabled: bool = False,
        aria_disabled: bool = False,
        exec_command: bool = True,
    ) -> None:
        self.content = content
        self.disabled = disabled
        self.aria_disabled = aria_disabled
        self.exec_command = exec_command
        self.focused = False
        self.events: list[tuple[str, Any]] = []
        self.dispatched: list[tuple[str, Any]] = []

    @property
    def clicks(self) -> int:
        return sum(1 for kind, _ in self.dispatched if kind == "click")

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script is EXEC_COMMAND_INSERT_JS:
            self.focused = True
            if not self.exec_command:
                return False
            self.content = arg
            self.events.append(("input", arg))
            return True
        if script is INPUT_EVENT_INSERT_JS:
            self.content = ""
            self.events.append(("beforeinput", arg))
            self.content = arg
            self.events.append(("input", arg))
            return True
        if script is IS_DISABLED_JS:
            return self.disabled or self.aria_disabled
        raise AssertionError(f"unexpected element script: {script!r}")

    async def dispatch_event(self, kind: str, init: Any = None) -> None:
        self.dispatched.append((kind, init))


class FakeJSHandle:
    def __init__(self, element: FakeElement | None) -> None:
        self._element = element

    def as_element(self) -> FakeElement | None:
        return self._element


class FakePage:
    """
    Page double keyed by exact selector strings.

    ``add_element`` counts as a DOM mutation and wakes any pending
    ``wait_for_function(..., polling="mutation")``.
    """

    def __init__(
        self,
        url: str,
        elements: dict[str, FakeElement] | None = None,
        *,
        mutation_observer: bool = True,
    ) -> None:
        self.url = url
        self.elements = dict(elements or {})
        self.mutation_observer = mutation_observer
        self.replaced_urls: list[str] = []
        self.queries: list[str] = []
        self.wait_calls: list[dict[str, Any]] = []
        self.listeners: dict[str, list] = {}
        self.exposed: dict[str, Any] = {}
        self._mutated = asyncio.Event()

    # -- Playwright surface -------------------------------------------------

    async def query_selector(self, selector: str) -> FakeElement | None:
        self.queries.append(selector)
        return self.elements.get(selector)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script is REPLACE_STATE_JS:
            self.replaced_urls.append(arg)
            self.url = arg
            return None
        if script is MUTATION_SUPPORT_JS:
            return self.mutation_observer
        if script is POST_MESSAGE_JS:
            name, message = arg
            handler = self.exposed.get(name)
            return None if handler is None else await handler(message)
        raise AssertionError(f"unexpected page script: {script!r}")

    async def wait_for_function(
        self, script: str, *, arg: Any = None, polling: Any = None, timeout: float = 0
    ) -> FakeJSHandle:
        assert script is FIND_FIRST_JS
        self.wait_calls.append({"arg": arg, "polling": polling, "timeout": timeout})

        async def until_match() -> FakeElement:
            while True:
                for selector in arg:
                    if selector in self.elements:
                        return self.elements[selector]
                self._mutated.clear()
                await self._mutated.wait()

        try:
            element = await asyncio.wait_for(until_match(), timeout / 1000)
        except asyncio.TimeoutError:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.") from None
        return FakeJSHandle(element)

    def on(self, event: str, callback) -> None:
        self.listeners.setdefault(event, []).append(callback)

    async def expose_function(self, name: str, callback) -> None:
        if name in self.exposed:
            raise AssertionError(f"window.{name} already exposed")
        self.exposed[name] = callback

    # -- Test helpers -------------------------------------------------------

    def add_element(self, selector: str, element: FakeElement) -> None:
        self.elements[selector] = element
        self._mutated.set()

    def add_element_later(self, delay: float, selector: str, element: FakeElement) -> None:
        asyncio.get_running_loop().call_later(delay, self.add_element, selector, element)

    def emit(self, event: str, *args: Any) -> None:
        for callback in self.listeners.get(event, []):
            callback(*args)


class SleepRecorder:
    """Drop-in for ``asyncio.sleep`` that records and skips delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


APP_URL = "https://gemini.google.com/app"
INPUT = 'div[contenteditable="true"]'
SEND = 'button[aria-label="Send message"]'


@pytest.fixture
def config() -> InjectorConfig:
    """Default selectors with timing shrunk for tests."""
    return InjectorConfig(
        element_timeout=0.2,
        session_check_delay=0,
        before_injection_delay=0,
        after_injection_delay=0,
        submit_retry_delay=0.2,
    )


@pytest.fixture
def make_page():
    return FakePage


@pytest.fixture
def make_element():
    return FakeElement


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()
