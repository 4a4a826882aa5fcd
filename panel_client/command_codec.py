"""Flat ``<name>value</name>`` token codec used on the controller link.

Frames carry any number of tokens with no nesting and no escaping. Lookups are
by name; a missing token yields ``None`` (the "no data" sentinel) and a token
present more than once resolves to its last occurrence.
"""
from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterator, Optional, Pattern, Tuple

_ANY_TOKEN = re.compile(r"<([^<>/\s]+)>(.*?)</\1>", re.DOTALL)


@lru_cache(maxsize=128)
def _token_pattern(name: str) -> Pattern[str]:
    escaped = re.escape(name)
    return re.compile(rf"<{escaped}>(.*?)</{escaped}>", re.DOTALL)


def extract_token(message: str, name: str) -> Optional[str]:
    """Return the payload of ``name`` in ``message`` or ``None`` when absent."""
    if not message or not name:
        return None
    value: Optional[str] = None
    for match in _token_pattern(name).finditer(message):
        value = match.group(1)
    return value


def iter_tokens(message: str) -> Iterator[Tuple[str, str]]:
    """Yield every ``(name, value)`` pair in frame order."""
    if not message:
        return
    for match in _ANY_TOKEN.finditer(message):
        yield match.group(1), match.group(2)


def decode_int(value: Optional[str], *, minimum: int, maximum: Optional[int], fallback: int) -> int:
    """Parse ``value`` as an int, clamping failures and out-of-range values to ``fallback``."""
    if value is None:
        return fallback
    try:
        number = int(value.strip())
    except (TypeError, ValueError):
        return fallback
    if number < minimum:
        return fallback
    if maximum is not None and number > maximum:
        return fallback
    return number


def parse_int(value: Optional[str]) -> Optional[int]:
    """Strict integer parse; ``None`` when the payload is not an integer."""
    if value is None:
        return None
    try:
        return int(value.strip())
    except (TypeError, ValueError):
        return None


def compose_message(name: str, value: object) -> str:
    """Build a single-token frame."""
    if isinstance(value, bool):
        value = int(value)
    return f"<{name}>{value}</{name}>"
