"""
better_gemini.injector
----------------------

Write text into Gemini's contenteditable input so its framework notices.

Gemini's rich-textarea ignores raw ``textContent`` writes unless they come
with the input events its own handlers listen for.  Two tiers:

* **Primary** - focus, select the whole content, then
  ``document.execCommand('insertText')``.  Behaves like typed keystrokes.
* **Fallback** - only when the primary command returns ``false``: clear the
  element, dispatch ``beforeinput``, set ``textContent``, dispatch ``input``.

Both tiers report a plain boolean; a Playwright error counts as failure.
"""

from __future__ import annotations

import logging
from typing import Any

from playwright.async_api import Error as PlaywrightError

from .constants import LOG_PROMPT_CHARS

_LOG = logging.getLogger(__name__)

EXEC_COMMAND_INSERT_JS = r"""
(element, text) => {
  element.focus();
  const selection = window.getSelection();
  const range = document.createRange();
  range.selectNodeContents(element);
  selection.removeAllRanges();
  selection.addRange(range);
  return document.execCommand('insertText', false, text);
}
"""

INPUT_EVENT_INSERT_JS = r"""
(element, text) => {
  element.textContent = '';
  element.dispatchEvent(new InputEvent('beforeinput', {
    inputType: 'insertText',
    data: text,
    bubbles: true,
    cancelable: true,
  }));
  element.textContent = text;
  element.dispatchEvent(new InputEvent('input', {
    inputType: 'insertText',
    data: text,
    bubbles: true,
    cancelable: false,
  }));
  return true;
}
"""


async def inject_text(element: Any, text: str) -> bool:
    """Place *text* as the content of *element*; True on success."""
    if element is None:
        return False

    try:
        inserted = await element.evaluate(EXEC_COMMAND_INSERT_JS, text)
    except PlaywrightError as exc:
        _LOG.error("Failed to inject text: %s", exc)
        return False

    if inserted:
        _LOG.debug("Text injected via execCommand (%d chars)", len(text))
        return True

    _LOG.info("execCommand insertText refused, trying InputEvent fallback")
    return await inject_text_with_input_event(element, text)


async def inject_text_with_input_event(element: Any, text: str) -> bool:
    """Fallback tier: reproduce the beforeinput/input sequence around a direct write."""
    try:
        await element.evaluate(INPUT_EVENT_INSERT_JS, text)
    except PlaywrightError as exc:
        _LOG.error("InputEvent fallback failed: %s", exc)
        return False
    _LOG.debug("Text injected via InputEvent fallback: %r", text[:LOG_PROMPT_CHARS])
    return True
