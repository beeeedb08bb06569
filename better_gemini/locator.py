"""
better_gemini.locator
---------------------

Resolve one element from an ordered list of fallback CSS selectors.

The search root is anything exposing Playwright's ``query_selector``: a
``Page``, a ``Frame`` or an ``ElementHandle``.  Resolution never mutates the
page and is safe to repeat.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Protocol

from playwright.async_api import ElementHandle

_LOG = logging.getLogger(__name__)


class SelectorRoot(Protocol):
    async def query_selector(self, selector: str) -> ElementHandle | None: ...


@dataclass(slots=True)
class LocatorMatch:
    """The element found and the selector that found it."""

    selector: str
    element: Any  # ElementHandle (or a test double)


async def query_with_selectors(
    root: SelectorRoot, selectors: Iterable[str]
) -> LocatorMatch | None:
    """Return the first element matching *selectors* in list order, else None."""
    for selector in selectors:
        element = await root.query_selector(selector)
        if element is not None:
            _LOG.debug("Found element with selector: %s", selector)
            return LocatorMatch(selector, element)
    return None
