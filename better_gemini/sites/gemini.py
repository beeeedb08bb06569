"""
Gemini page profile: locator lists and login-page patterns.

Every list is ordered by preference; the first selector that matches wins.
When Gemini's markup drifts, extend these tuples rather than the control flow.
"""

from typing import Final

# Main chat input - a contenteditable div inside Gemini's rich-textarea.
INPUT_FIELD: Final[tuple[str, ...]] = (
    'div[contenteditable="true"]',
    '.ql-editor[contenteditable="true"]',
    '[data-placeholder="Enter a prompt here"]',
    'rich-textarea div[contenteditable="true"]',
)

SEND_BUTTON: Final[tuple[str, ...]] = (
    'button[aria-label="Send message"]',
    'button[aria-label="Send"]',
    'button[data-testid="send-button"]',
    ".send-button",
    'button[mattooltip="Send message"]',
)

# Elements that only render for an authenticated user.
LOGGED_IN_INDICATORS: Final[tuple[str, ...]] = (
    'div[contenteditable="true"]',
    "rich-textarea",
    '[data-placeholder="Enter a prompt here"]',
)

# URL substrings of an actual Google sign-in page.  They must never match a
# profile/account link rendered inside an authenticated Gemini page, so a bare
# "accounts.google.com" pattern does not belong here.
LOGIN_PAGE_PATTERNS: Final[tuple[str, ...]] = (
    "accounts.google.com/signin",
    "accounts.google.com/v3/signin",
    "accounts.google.com/ServiceLogin",
)
