"""
better_gemini.orchestrator
--------------------------

Sequence prompt extraction, session check, readiness wait, injection,
submission and URL cleanup for one page, and own the failure policy.

States
~~~~~~
idle -> prompt-found -> session-checked -> input-ready -> injected
     -> submitted -> cleaned-up

with two exits: ``aborted-no-prompt`` (page untouched) and ``aborted-error``.
Every abort after the session check, including a Playwright error such as
a destroyed execution context, still cleans the URL so a refresh does
not loop; a logged-out abort leaves the URL alone so the user can retry
after signing in.  A failed submission is logged and still ends in
``cleaned-up``: the text is visible and a duplicate auto-submit is worse
than none.

Example
-------
>>> orch = InjectionOrchestrator(page, InjectorConfig(), RuntimeMode.MANUAL)
>>> outcome = await orch.run()
>>> outcome.state
<InjectionState.CLEANED_UP: 'cleaned-up'>
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from playwright.async_api import Error as PlaywrightError

from .channel import cleanup_url, get_prompt_from_url
from .config import InjectorConfig
from .constants import LOG_PROMPT_CHARS
from .errors import ElementTimeoutError, InjectionFailedError
from .injector import inject_text
from .messages import MessageRouter
from .readiness import MutationWatcher, select_watcher, wait_for_element
from .session import SessionState, classify_session
from .submit import SubmitResult, click_send_button

_LOG = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class InjectionState(str, Enum):
    IDLE = "idle"
    PROMPT_FOUND = "prompt-found"
    SESSION_CHECKED = "session-checked"
    INPUT_READY = "input-ready"
    INJECTED = "injected"
    SUBMITTED = "submitted"
    CLEANED_UP = "cleaned-up"
    ABORTED_NO_PROMPT = "aborted-no-prompt"
    ABORTED_ERROR = "aborted-error"


class RuntimeMode(str, Enum):
    """How the orchestrator is driven."""

    LIVE = "live"  # run on every page load and answer page-side messages
    MANUAL = "manual"  # caller invokes run() / inject_from_message() itself


@dataclass(slots=True)
class InjectionOutcome:
    """Terminal record of one run."""

    state: InjectionState
    session: SessionState | None = None
    injected: bool = False
    submit: SubmitResult | None = None
    cleaned: bool = False
    error: str | None = None

    @property
    def submitted(self) -> bool:
        return self.submit is not None and self.submit.success


class InjectionOrchestrator:
    """
    Drives the injection flow for a single Playwright ``Page``.

    Instances hold no state between runs beyond the page, the configuration
    and the selected mutation watcher.  Runs are serialised, so at most one
    readiness wait is active at any time.
    """

    def __init__(
        self,
        page: Any,
        config: InjectorConfig,
        mode: RuntimeMode = RuntimeMode.MANUAL,
        watcher: MutationWatcher | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._page = page
        self._config = config
        self._mode = mode
        self._watcher = watcher
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._attached = False
        self._pending: set[asyncio.Task] = set()

    @property
    def page(self) -> Any:
        return self._page

    @property
    def config(self) -> InjectorConfig:
        return self._config

    @property
    def mode(self) -> RuntimeMode:
        return self._mode

    # ---------------- Entry points ---------------- #

    async def run(self) -> InjectionOutcome:
        """URL-driven flow: inject the prompt carried by the current URL."""
        async with self._lock:
            return await self._run_from_url()

    async def inject_from_message(self, prompt: str) -> bool:
        """
        Message-driven flow, entering at the readiness wait.

        Returns True when the text was injected, whatever the submit outcome.
        No URL is involved, so no cleanup happens.
        """
        async with self._lock:
            try:
                await self._deliver(prompt, InjectionOutcome(InjectionState.SESSION_CHECKED))
            except (ElementTimeoutError, InjectionFailedError, PlaywrightError) as exc:
                _LOG.error("Message-triggered injection failed: %s", exc)
                return False
            return True

    async def attach(self) -> None:
        """
        In LIVE mode, run on every ``load`` of the page and expose the
        message router to page scripts.  A MANUAL orchestrator does nothing.
        """
        if self._mode is not RuntimeMode.LIVE or self._attached:
            return
        await MessageRouter(self).expose(self._page)
        self._page.on("load", self._on_load)
        self._attached = True
        _LOG.debug("Attached to %s", self._page.url)

        # The page may have finished loading before we attached.
        self._schedule_run()

    # ---------------- Internals ---------------- #

    def _on_load(self, *_args: Any) -> None:
        self._schedule_run()

    def _schedule_run(self) -> None:
        task = asyncio.ensure_future(self.run())
        self._pending.add(task)
        task.add_done_callback(self._run_finished)

    def _run_finished(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _LOG.error("Injection run crashed: %s", exc, exc_info=exc)

    async def _ensure_watcher(self) -> MutationWatcher:
        if self._watcher is None:
            self._watcher = await select_watcher(self._page)
        return self._watcher

    async def _run_from_url(self) -> InjectionOutcome:
        cfg = self._config
        outcome = InjectionOutcome(InjectionState.IDLE)

        prompt = get_prompt_from_url(self._page.url, cfg.url_param)
        if not prompt:
            _LOG.debug("No prompt to inject, staying idle")
            outcome.state = InjectionState.ABORTED_NO_PROMPT
            return outcome
        self._transition(outcome, InjectionState.PROMPT_FOUND)

        await self._sleep(cfg.session_check_delay)
        try:
            outcome.session = await classify_session(self._page.url, self._page, cfg)
        except PlaywrightError as exc:
            _LOG.warning("Session check failed (%s); treating as indeterminate", exc)
            outcome.session = SessionState.INDETERMINATE
        if outcome.session.blocks_injection:
            # URL keeps the prompt so the user can retry after signing in.
            _LOG.error("User appears to be logged out. Aborting injection.")
            outcome.state = InjectionState.ABORTED_ERROR
            outcome.error = "logged_out"
            return outcome
        self._transition(outcome, InjectionState.SESSION_CHECKED)

        try:
            await self._deliver(prompt, outcome)
        except (ElementTimeoutError, InjectionFailedError, PlaywrightError) as exc:
            _LOG.error("Injection aborted in state %s: %s", outcome.state.value, exc)
            outcome.error = str(exc)
            outcome.cleaned = await cleanup_url(self._page, cfg.url_param)
            outcome.state = InjectionState.ABORTED_ERROR
            return outcome

        outcome.cleaned = await cleanup_url(self._page, cfg.url_param)
        self._transition(outcome, InjectionState.CLEANED_UP)
        return outcome

    async def _deliver(self, prompt: str, outcome: InjectionOutcome) -> None:
        """session-checked -> submitted.  Raises on hard failures."""
        cfg = self._config
        watcher = await self._ensure_watcher()

        _LOG.info("Waiting for Gemini interface to load...")
        match = await wait_for_element(
            self._page, cfg.input_selectors, cfg.element_timeout, watcher
        )
        self._transition(outcome, InjectionState.INPUT_READY)

        await self._sleep(cfg.before_injection_delay)
        _LOG.info("Injecting prompt %r", prompt[:LOG_PROMPT_CHARS])
        if not await inject_text(match.element, prompt):
            raise InjectionFailedError(
                f"could not inject text into {match.selector or 'input field'}"
            )
        outcome.injected = True
        self._transition(outcome, InjectionState.INJECTED)

        await self._sleep(cfg.after_injection_delay)
        outcome.submit = await click_send_button(self._page, cfg, sleep=self._sleep)
        if outcome.submit.success:
            _LOG.info("Prompt submitted successfully")
        else:
            _LOG.warning(
                "Failed to submit prompt (%s after %d attempts)",
                outcome.submit.status.value,
                outcome.submit.attempts,
            )
        self._transition(outcome, InjectionState.SUBMITTED)

    @staticmethod
    def _transition(outcome: InjectionOutcome, state: InjectionState) -> None:
        _LOG.debug("%s -> %s", outcome.state.value, state.value)
        outcome.state = state
