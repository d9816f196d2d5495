"""Heuristic spam filter for token names and symbols."""

import re
from typing import Any

SPAM_BLACKLIST = (
    "test",
    "spam",
    "scam",
    "fake",
    "token",
    "coin",
    "airdrop",
)

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 30

_DISALLOWED = re.compile(r"[^a-z0-9\s]")


def is_valid_token_name(value: Any) -> bool:
    """Return True if `value` looks like a real token name rather than spam."""
    if not value or not isinstance(value, str):
        return False

    cleaned = _DISALLOWED.sub("", value.lower()).strip()

    if not MIN_NAME_LENGTH <= len(cleaned) <= MAX_NAME_LENGTH:
        return False

    return not any(word in cleaned for word in SPAM_BLACKLIST)
