"""Exceptions raised by better-gemini."""

from __future__ import annotations

from typing import Sequence


class BetterGeminiError(Exception):
    """Base class for every better-gemini error."""


class ConfigError(BetterGeminiError):
    """A configuration value could not be parsed or is out of range."""


class UrlDecodeError(BetterGeminiError):
    """The URL carrier value is not valid percent-encoded UTF-8."""


class ElementTimeoutError(BetterGeminiError):
    """No element matched the locator list within the allotted time."""

    def __init__(self, selectors: Sequence[str], timeout: float) -> None:
        self.selectors = tuple(selectors)
        self.timeout = timeout
        super().__init__(
            f"Element not found within {timeout:g}s (selectors: {list(self.selectors)})"
        )


class InjectionFailedError(BetterGeminiError):
    """Both text-injection tiers reported failure."""
