"""
better_gemini.submit
--------------------

Find and click Gemini's send button with bounded retry.

The button may not exist yet, or may still be disabled while the framework
processes the injected text.  Both cases, and a click Playwright could not
dispatch, are retried after a fixed delay, up to ``max_submit_attempts``
lookups in total.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from playwright.async_api import Error as PlaywrightError

from .config import InjectorConfig
from .locator import query_with_selectors

_LOG = logging.getLogger(__name__)

IS_DISABLED_JS = (
    "(button) => button.disabled === true"
    " || button.getAttribute('aria-disabled') === 'true'"
)

Sleep = Callable[[float], Awaitable[Any]]


class SubmitStatus(str, Enum):
    CLICKED = "clicked"
    NOT_FOUND = "not_found"
    DISABLED = "disabled"
    CLICK_FAILED = "click_failed"


# When attempts run out, the strongest evidence seen on any attempt is
# reported: a button that rejected the click beats one that stayed disabled,
# which beats one never found.
_FAILURE_RANK = {
    SubmitStatus.NOT_FOUND: 0,
    SubmitStatus.DISABLED: 1,
    SubmitStatus.CLICK_FAILED: 2,
}


@dataclass(slots=True)
class SubmitResult:
    """Terminal outcome of the submit loop."""

    status: SubmitStatus
    attempts: int
    selector: str | None = None

    @property
    def success(self) -> bool:
        return self.status is SubmitStatus.CLICKED


async def _is_disabled(button: Any) -> bool:
    try:
        return bool(await button.evaluate(IS_DISABLED_JS))
    except PlaywrightError as exc:
        _LOG.debug("Disabled probe failed: %s", exc)
        return True


async def click_send_button(
    root: Any,
    config: InjectorConfig,
    sleep: Sleep = asyncio.sleep,
) -> SubmitResult:
    """
    Click the first enabled send button, retrying while absent or disabled.

    Returns a ``SubmitResult``; exhaustion is reported, never raised.
    """
    max_attempts = config.max_submit_attempts
    status = SubmitStatus.NOT_FOUND
    selector: str | None = None

    for attempt in range(1, max_attempts + 1):
        _LOG.debug("Attempting to click send button (attempt %d/%d)", attempt, max_attempts)
        match = await query_with_selectors(root, config.send_selectors)

        if match is None:
            seen = SubmitStatus.NOT_FOUND
            _LOG.debug("Send button not found")
        elif await _is_disabled(match.element):
            seen = SubmitStatus.DISABLED
            _LOG.debug("Send button is disabled (%s)", match.selector)
        else:
            try:
                await match.element.dispatch_event(
                    "click", {"bubbles": True, "cancelable": True}
                )
            except PlaywrightError as exc:
                seen = SubmitStatus.CLICK_FAILED
                _LOG.debug("Click on %s failed: %s", match.selector, exc)
            else:
                _LOG.info("Send button clicked (%s, attempt %d)", match.selector, attempt)
                return SubmitResult(SubmitStatus.CLICKED, attempt, match.selector)

        if match is not None and _FAILURE_RANK[seen] >= _FAILURE_RANK[status]:
            status, selector = seen, match.selector

        if attempt < max_attempts:
            await sleep(config.submit_retry_delay)

    if status is SubmitStatus.NOT_FOUND:
        _LOG.warning(
            "Send button not found after %d attempts (selectors: %s)",
            max_attempts,
            list(config.send_selectors),
        )
    elif status is SubmitStatus.DISABLED:
        _LOG.warning(
            "Send button %s remained disabled after %d attempts", selector, max_attempts
        )
    else:
        _LOG.warning("Clicking send button %s failed after %d attempts", selector, max_attempts)
    return SubmitResult(status, max_attempts, selector)
