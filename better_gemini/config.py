"""
better_gemini.config
--------------------

Immutable run-time configuration shared by every component.

The value is built once (normally by the CLI, after ``.env`` loading) and is
passed down by reference; nothing mutates it afterwards.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Mapping

from . import constants
from .constants import EnvVar
from .errors import ConfigError
from .sites import gemini

_LOG = logging.getLogger(__name__)

_DURATION_FIELDS = (
    "element_timeout",
    "session_check_delay",
    "before_injection_delay",
    "after_injection_delay",
    "submit_retry_delay",
)


@dataclass(frozen=True, slots=True)
class InjectorConfig:
    """Locator lists, carrier name and timing (seconds) for one target app."""

    url_param: str = constants.URL_PARAM
    app_url: str = constants.GEMINI_APP_URL
    input_selectors: tuple[str, ...] = gemini.INPUT_FIELD
    send_selectors: tuple[str, ...] = gemini.SEND_BUTTON
    logged_in_indicators: tuple[str, ...] = gemini.LOGGED_IN_INDICATORS
    login_page_patterns: tuple[str, ...] = gemini.LOGIN_PAGE_PATTERNS
    element_timeout: float = constants.ELEMENT_TIMEOUT
    session_check_delay: float = constants.SESSION_CHECK_DELAY
    before_injection_delay: float = constants.BEFORE_INJECTION_DELAY
    after_injection_delay: float = constants.AFTER_INJECTION_DELAY
    max_submit_attempts: int = constants.MAX_SUBMIT_ATTEMPTS
    submit_retry_delay: float = constants.SUBMIT_RETRY_DELAY

    def __post_init__(self) -> None:
        if not self.url_param:
            raise ConfigError("url_param must not be empty")
        if self.max_submit_attempts < 1:
            raise ConfigError(
                f"max_submit_attempts must be >= 1, got {self.max_submit_attempts}"
            )
        for name in _DURATION_FIELDS:
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must be >= 0, got {getattr(self, name)}")
        for name in ("input_selectors", "send_selectors"):
            if not getattr(self, name):
                raise ConfigError(f"{name} must list at least one selector")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "InjectorConfig":
        """Defaults overridden by any ``BETTER_GEMINI_*`` variables present."""
        env = os.environ if environ is None else environ
        overrides: dict[str, object] = {}

        if env.get(EnvVar.URL_PARAM.value):
            overrides["url_param"] = env[EnvVar.URL_PARAM.value].strip()
        if env.get(EnvVar.APP_URL.value):
            overrides["app_url"] = env[EnvVar.APP_URL.value].strip()

        float_fields = {
            EnvVar.ELEMENT_TIMEOUT: "element_timeout",
            EnvVar.BEFORE_INJECTION_DELAY: "before_injection_delay",
            EnvVar.AFTER_INJECTION_DELAY: "after_injection_delay",
            EnvVar.SUBMIT_RETRY_DELAY: "submit_retry_delay",
        }
        for var, field in float_fields.items():
            raw = env.get(var.value)
            if raw:
                overrides[field] = _parse_number(var, raw, float)

        raw_attempts = env.get(EnvVar.SUBMIT_ATTEMPTS.value)
        if raw_attempts:
            overrides["max_submit_attempts"] = _parse_number(
                EnvVar.SUBMIT_ATTEMPTS, raw_attempts, int
            )

        if overrides:
            _LOG.debug("Configuration overrides from environment: %s", overrides)
        return cls(**overrides)


def _parse_number(var: EnvVar, raw: str, kind: type):
    try:
        return kind(raw.strip())
    except ValueError as exc:
        raise ConfigError(
            f"${var.value} must be a {kind.__name__}, got {raw!r}"
        ) from exc


def load_config(**overrides) -> InjectorConfig:
    """Environment-derived config with explicit keyword *overrides* on top."""
    base = InjectorConfig.from_env()
    if not overrides:
        return base
    return replace(base, **overrides)
