"""
better_gemini.messages
----------------------

Message carrier for the prompt.

Protocol (every inbound message gets exactly one reply):

=====================================================  ===========================
message                                                reply
=====================================================  ===========================
``{"action": "injectPrompt", "prompt": "<text>"}``     ``{"success": true|false}``
``{"action": "ping"}``                                 ``{"status": "alive"}``
anything else                                          ``{"status": "unknown_action"}``
=====================================================  ===========================

``MessageRouter.expose`` publishes the router in the page as
``window.betterGeminiMessage(message)``.  ``post_message`` is the sending
side: it calls that function in the page, so the reply comes from the
process that owns the router (``better-gemini watch``).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Literal

from playwright.async_api import Error as PlaywrightError
from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError

from .constants import MESSAGE_BINDING

if TYPE_CHECKING:  # pragma: no cover
    from .orchestrator import InjectionOrchestrator

_LOG = logging.getLogger(__name__)


# --------------------------------------------------------------------------- #
# Wire models                                                                 #
# --------------------------------------------------------------------------- #


class InjectPromptMessage(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    action: Literal["injectPrompt"]
    prompt: StrictStr = Field(min_length=1)


class PingMessage(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    action: Literal["ping"]


class InjectReply(BaseModel):
    success: bool


class StatusReply(BaseModel):
    status: Literal["alive", "unknown_action"]


ALIVE = StatusReply(status="alive")
UNKNOWN_ACTION = StatusReply(status="unknown_action")


def parse_message(message: Any) -> InjectPromptMessage | PingMessage | None:
    """Validate *message* against the known shapes; None when unrecognised."""
    for model in (InjectPromptMessage, PingMessage):
        try:
            return model.model_validate(message)
        except ValidationError:
            continue
    return None


# --------------------------------------------------------------------------- #
# Router                                                                      #
# --------------------------------------------------------------------------- #


class MessageRouter:
    """Answers carrier messages on behalf of one orchestrator."""

    def __init__(self, orchestrator: "InjectionOrchestrator") -> None:
        self._orchestrator = orchestrator

    async def handle(self, message: Any) -> dict[str, Any]:
        _LOG.debug("Received message: %r", message)
        parsed = parse_message(message)

        if isinstance(parsed, InjectPromptMessage):
            try:
                success = await self._orchestrator.inject_from_message(parsed.prompt)
            except PlaywrightError as exc:
                _LOG.error("Message-triggered injection failed: %s", exc)
                success = False
            return InjectReply(success=success).model_dump()

        if isinstance(parsed, PingMessage):
            return ALIVE.model_dump()

        _LOG.debug("Unrecognised message: %r", message)
        return UNKNOWN_ACTION.model_dump()

    async def expose(self, page: Any, name: str = MESSAGE_BINDING) -> None:
        """Make ``window.<name>(message)`` resolve with this router's reply."""
        await page.expose_function(name, self.handle)
        _LOG.debug("Message router exposed as window.%s", name)


# --------------------------------------------------------------------------- #
# Sender side                                                                 #
# --------------------------------------------------------------------------- #

# Calls window[name](message) when a router is exposed there, else null.
POST_MESSAGE_JS = r"""
([name, message]) => typeof window[name] === 'function' ? window[name](message) : null
"""


async def post_message(
    page: Any, message: Any, name: str = MESSAGE_BINDING
) -> dict[str, Any] | None:
    """
    Deliver *message* to the router exposed in *page* and return its reply.

    Returns None when no router listens on the page.
    """
    reply = await page.evaluate(POST_MESSAGE_JS, [name, message])
    if reply is None:
        _LOG.debug("No window.%s on %s", name, page.url)
    return reply
