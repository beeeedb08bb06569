"""
better_gemini.readiness
-----------------------

Wait for an element to exist without fixed-interval polling.

Algorithm
~~~~~~~~~
1. Resolve the locator list right away; the interactive surface has often
   rendered before we attach, so the common case returns without waiting.
2. Otherwise hand over to a ``MutationWatcher``.  The Playwright watcher uses
   ``wait_for_function(..., polling="mutation")``: a ``MutationObserver`` on
   the document re-runs the lookup on every mutation batch and is raced
   against the timeout.  Playwright disconnects the observer on either
   outcome.
3. Timeout surfaces as ``ElementTimeoutError``.

Whether the page offers ``MutationObserver`` is probed once by
``select_watcher``; without it the ``NullMutationWatcher`` simply lets the
bounded timeout expire.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .errors import ElementTimeoutError
from .locator import LocatorMatch, query_with_selectors

_LOG = logging.getLogger(__name__)

# Returns the first element matching the selector list, or null.
FIND_FIRST_JS = r"""
(selectors) => {
  for (const selector of selectors) {
    const element = document.querySelector(selector);
    if (element) return element;
  }
  return null;
}
"""

MUTATION_SUPPORT_JS = "() => typeof MutationObserver !== 'undefined'"


class MutationWatcher(Protocol):
    """Capability that waits for a locator list to match."""

    async def wait_for(self, page: Any, selectors: Sequence[str], timeout: float) -> Any:
        """Return the matched element or raise ``ElementTimeoutError``."""
        ...


class PlaywrightMutationWatcher:
    """Mutation-driven wait backed by the page's ``MutationObserver``."""

    async def wait_for(self, page: Any, selectors: Sequence[str], timeout: float) -> Any:
        try:
            handle = await page.wait_for_function(
                FIND_FIRST_JS,
                arg=list(selectors),
                polling="mutation",
                timeout=timeout * 1000,
            )
        except PlaywrightTimeoutError as exc:
            raise ElementTimeoutError(selectors, timeout) from exc
        return handle.as_element()


class NullMutationWatcher:
    """Fallback when the page cannot notify us of mutations: wait out the timeout."""

    async def wait_for(self, page: Any, selectors: Sequence[str], timeout: float) -> Any:
        _LOG.debug("No mutation notifications available; waiting %.2fs", timeout)
        await asyncio.sleep(timeout)
        raise ElementTimeoutError(selectors, timeout)


async def select_watcher(page: Any) -> MutationWatcher:
    """Probe the page once and pick the watcher implementation."""
    try:
        supported = await page.evaluate(MUTATION_SUPPORT_JS)
    except PlaywrightError as exc:
        _LOG.warning("MutationObserver probe failed (%s); using null watcher", exc)
        supported = False
    return PlaywrightMutationWatcher() if supported else NullMutationWatcher()


async def wait_for_element(
    page: Any,
    selectors: Sequence[str],
    timeout: float,
    watcher: MutationWatcher,
) -> LocatorMatch:
    """
    Resolve *selectors* on *page*, waiting up to *timeout* seconds.

    Raises
    ------
    ElementTimeoutError
        If nothing matched in time.
    """
    existing = await query_with_selectors(page, selectors)
    if existing is not None:
        _LOG.debug("Element already present (%s)", existing.selector)
        return existing

    if timeout <= 0:
        raise ElementTimeoutError(selectors, timeout)

    _LOG.debug("Waiting up to %.2fs for one of %s", timeout, list(selectors))
    element = await watcher.wait_for(page, selectors, timeout)

    # Report which selector won; the element may have been re-rendered since.
    match = await query_with_selectors(page, selectors)
    if match is not None:
        return match
    if element is None:
        raise ElementTimeoutError(selectors, timeout)
    return LocatorMatch(selector="", element=element)
