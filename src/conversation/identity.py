"""Sender identity — the canonical digits-only phone key."""

import re

_NON_DIGITS = re.compile(r"\D")


def normalize_sender_id(raw: str | None) -> str:
    """Strip everything except digits: "+1 (555) 123-4567" → "15551234567".

    Returns "" when the input carries no digits; callers treat that as
    a missing sender.
    """
    if not raw:
        return ""
    return _NON_DIGITS.sub("", raw)
