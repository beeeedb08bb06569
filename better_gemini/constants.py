"""
better_gemini.constants
-----------------------

Centralised constants shared across the better-gemini code-base.
"""

from enum import Enum
from typing import Final
import os

# --------------------------------------------------------------------------- #
# Prompt carrier defaults
# --------------------------------------------------------------------------- #

# Query parameter that carries the prompt into the Gemini page.
URL_PARAM: Final[str] = "bg_prompt"

# Landing page of the target application.
GEMINI_APP_URL: Final[str] = "https://gemini.google.com/app"

# Name under which the message router is exposed inside the page:
#   await window.betterGeminiMessage({action: "ping"})
MESSAGE_BINDING: Final[str] = "betterGeminiMessage"

# Prompts are logged truncated to this many characters.
LOG_PROMPT_CHARS: Final[int] = 50

# --------------------------------------------------------------------------- #
# Timing defaults (seconds)
# --------------------------------------------------------------------------- #

ELEMENT_TIMEOUT: Final[float] = 10.0  # Max wait for the input field
SESSION_CHECK_DELAY: Final[float] = 0.5  # Let login indicators render
BEFORE_INJECTION_DELAY: Final[float] = 0.5  # Input found -> inject
AFTER_INJECTION_DELAY: Final[float] = 0.3  # Inject -> click send

MAX_SUBMIT_ATTEMPTS: Final[int] = 3
SUBMIT_RETRY_DELAY: Final[float] = 0.2


class EnvVar(str, Enum):
    """Environment variables read by ``InjectorConfig.from_env``."""

    URL_PARAM = "BETTER_GEMINI_URL_PARAM"
    APP_URL = "BETTER_GEMINI_APP_URL"
    ELEMENT_TIMEOUT = "BETTER_GEMINI_ELEMENT_TIMEOUT"
    BEFORE_INJECTION_DELAY = "BETTER_GEMINI_BEFORE_INJECTION_DELAY"
    AFTER_INJECTION_DELAY = "BETTER_GEMINI_AFTER_INJECTION_DELAY"
    SUBMIT_ATTEMPTS = "BETTER_GEMINI_SUBMIT_ATTEMPTS"
    SUBMIT_RETRY_DELAY = "BETTER_GEMINI_SUBMIT_RETRY_DELAY"


# --------------------------------------------------------------------------- #
# Chrome connection
# --------------------------------------------------------------------------- #

# Default CDP remote-debugging port Chrome will listen on.
CHROME_REMOTE_PORT: Final[int] = int(os.environ.get("CHROME_REMOTE_PORT", "9222"))

# Path to Chrome executable (macOS default). Override via $GOOGLE_CHROME.
CHROME_EXECUTABLE: Final[str] = os.environ.get(
    "GOOGLE_CHROME",
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
)

# Names of Chrome processes we look for when determining whether Chrome is
# already running.  These are matched as simple substrings in the full
# command-line returned by ``ps``.
CHROME_PROCESS_NAMES: Final[tuple[str, ...]] = (
    "Google Chrome",
    "Google Chrome Helper",
    "chromium",
)

# When set to "1", "true" or "yes", a running Chrome without the
# ``--remote-debugging-port`` flag is quit and relaunched with it.
AUTO_RELAUNCH_CHROME_ENV: Final[str] = "BETTER_GEMINI_AUTO_RELAUNCH_CHROME"

# Overrides the directory passed to Chrome's --user-data-dir flag.
CHROME_PROFILE_DIR_ENV: Final[str] = "GOOGLE_CHROME_PROFILE_DIR"

# Explicit .env file loaded by the CLI before discovery.
DOTENV_ENV: Final[str] = "BETTER_GEMINI_DOTENV"
