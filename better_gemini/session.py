"""
better_gemini.session
---------------------

Heuristic classification of the page's authentication state.

Priority order:

1. The current URL contains a definite sign-in page pattern -> LOGGED_OUT.
2. Any logged-in indicator matches in the document         -> LOGGED_IN.
3. Otherwise the page may still be rendering               -> INDETERMINATE.

INDETERMINATE never blocks the flow.  Only URL evidence of an actual login
page aborts, so an ``accounts.google.com`` profile link inside an
authenticated page cannot cause a false "logged out".

This is a known approximation: no network-level auth check is made.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from .config import InjectorConfig
from .locator import query_with_selectors

_LOG = logging.getLogger(__name__)


class SessionState(str, Enum):
    LOGGED_IN = "logged-in"
    LOGGED_OUT = "logged-out"
    INDETERMINATE = "indeterminate"

    @property
    def blocks_injection(self) -> bool:
        return self is SessionState.LOGGED_OUT


async def classify_session(url: str, root: Any, config: InjectorConfig) -> SessionState:
    """Classify *url* / *root* as logged-in, logged-out or indeterminate."""
    for pattern in config.login_page_patterns:
        if pattern in url:
            _LOG.info("Detected login page URL pattern: %s", pattern)
            return SessionState.LOGGED_OUT

    match = await query_with_selectors(root, config.logged_in_indicators)
    if match is not None:
        _LOG.debug("Found logged-in indicator: %s", match.selector)
        return SessionState.LOGGED_IN

    _LOG.debug(
        "No logged-in indicator yet (%s) - assuming still loading",
        list(config.logged_in_indicators),
    )
    return SessionState.INDETERMINATE


async def is_user_logged_out(url: str, root: Any, config: InjectorConfig) -> bool:
    return (await classify_session(url, root, config)).blocks_injection
