"""
better_gemini.channel
---------------------

URL carrier for the prompt.

* ``build_prompt_url`` encodes a prompt into the app URL (``encodeURIComponent``
  rules, so every Unicode string survives the trip).
* ``get_prompt_from_url`` reads and percent-decodes the named parameter.  A
  missing, empty or undecodable value means "no prompt", never an error.
* ``strip_prompt_param`` / ``cleanup_url`` remove that one parameter and
  rewrite the current history entry in place, so a reload does not submit
  the prompt a second time.
"""

from __future__ import annotations

import logging
import re
from typing import Any
from urllib.parse import quote, unquote_plus, urlsplit, urlunsplit

from playwright.async_api import Error as PlaywrightError

from .constants import LOG_PROMPT_CHARS, URL_PARAM
from .errors import UrlDecodeError

_LOG = logging.getLogger(__name__)

# Characters encodeURIComponent leaves alone besides quote()'s own A-Za-z0-9_.-~
_URI_COMPONENT_SAFE = "!*'()"

_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")

REPLACE_STATE_JS = "(url) => history.replaceState(history.state, '', url)"


# --------------------------------------------------------------------------- #
# Encoding                                                                    #
# --------------------------------------------------------------------------- #


def encode_prompt(prompt: str) -> str:
    """Percent-encode *prompt* as UTF-8 the way ``encodeURIComponent`` does."""
    try:
        return quote(prompt, safe=_URI_COMPONENT_SAFE, encoding="utf-8", errors="strict")
    except UnicodeEncodeError as exc:
        raise ValueError("prompt contains an unpaired surrogate") from exc


def decode_prompt(raw: str) -> str:
    """
    Decode one query value.

    Raises
    ------
    UrlDecodeError
        On a malformed ``%`` escape or bytes that are not valid UTF-8.
    """
    if _MALFORMED_ESCAPE.search(raw):
        raise UrlDecodeError(f"malformed percent escape in {raw[:LOG_PROMPT_CHARS]!r}")
    try:
        return unquote_plus(raw, encoding="utf-8", errors="strict")
    except UnicodeDecodeError as exc:
        raise UrlDecodeError(f"value is not valid UTF-8: {exc}") from exc


def build_prompt_url(base_url: str, prompt: str, param: str = URL_PARAM) -> str:
    """
    Return *base_url* carrying *prompt* in *param*.

    A blank prompt yields *base_url* unchanged.
    """
    text = prompt.strip()
    if not text:
        return base_url

    parts = urlsplit(base_url)
    pair = f"{quote(param, safe='')}={encode_prompt(text)}"
    query = f"{parts.query}&{pair}" if parts.query else pair
    return urlunsplit(parts._replace(query=query))


# --------------------------------------------------------------------------- #
# Extraction & cleanup                                                        #
# --------------------------------------------------------------------------- #


def _pair_name(chunk: str) -> str:
    name, _, _ = chunk.partition("=")
    return unquote_plus(name, errors="replace")


def _raw_value(query: str, param: str) -> str | None:
    for chunk in query.split("&"):
        if chunk and _pair_name(chunk) == param:
            return chunk.partition("=")[2]
    return None


def get_prompt_from_url(url: str, param: str = URL_PARAM) -> str | None:
    """Decoded prompt carried by *url*, or None."""
    raw = _raw_value(urlsplit(url).query, param)
    if not raw:
        _LOG.debug("No %s parameter found in URL", param)
        return None

    try:
        prompt = decode_prompt(raw)
    except UrlDecodeError as exc:
        _LOG.warning("Failed to decode %s parameter: %s", param, exc)
        return None

    if not prompt:
        return None
    _LOG.info("Found prompt in URL: %r", prompt[:LOG_PROMPT_CHARS])
    return prompt


def strip_prompt_param(url: str, param: str = URL_PARAM) -> str:
    """
    Remove every *param* pair from *url*.

    Other pairs keep their original bytes and order; path and fragment are
    untouched.  A URL without *param* is returned as-is.
    """
    parts = urlsplit(url)
    chunks = parts.query.split("&") if parts.query else []
    kept = [c for c in chunks if not (c and _pair_name(c) == param)]
    if len(kept) == len(chunks):
        return url

    query = "&".join(kept) if any(kept) else ""
    return urlunsplit(parts._replace(query=query))


async def cleanup_url(page: Any, param: str = URL_PARAM) -> bool:
    """
    Drop *param* from the page's URL via ``history.replaceState``.

    No navigation and no new history entry.  Returns True when the URL was
    rewritten; an already clean URL or a failed rewrite returns False.
    """
    current = page.url
    clean = strip_prompt_param(current, param)
    if clean == current:
        _LOG.debug("URL already clean")
        return False

    try:
        await page.evaluate(REPLACE_STATE_JS, clean)
    except PlaywrightError as exc:
        _LOG.warning("Failed to clean up URL %s: %s", current, exc)
        return False

    _LOG.debug("URL cleaned up: %s", clean)
    return True
