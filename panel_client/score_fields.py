"""Score panel fields carried on the controller link and their clamps."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Tuple

from panel_client.command_codec import decode_int, extract_token

TEAM_NAME_LIMIT = 15
INVALID_SETS = 8
INVALID_TIMEOUTS = 8
INVALID_SCORE = 99
DEFAULT_TIMEOUT_SECONDS = 30


def decode_team_name(value: str) -> str:
    return value[:TEAM_NAME_LIMIT]


def decode_sets(value: str) -> int:
    return decode_int(value, minimum=0, maximum=3, fallback=INVALID_SETS)


def decode_timeouts(value: str) -> int:
    return decode_int(value, minimum=0, maximum=2, fallback=INVALID_TIMEOUTS)


def decode_score(value: str) -> int:
    return decode_int(value, minimum=0, maximum=99, fallback=INVALID_SCORE)


def decode_service(value: str) -> int:
    return decode_int(value, minimum=-1, maximum=1, fallback=0)


def decode_timeout_seconds(value: str) -> int:
    return decode_int(value, minimum=0, maximum=None, fallback=DEFAULT_TIMEOUT_SECONDS)


_DECODERS: Tuple[Tuple[str, Callable[[str], Any]], ...] = (
    ("team0", decode_team_name),
    ("team1", decode_team_name),
    ("set0", decode_sets),
    ("set1", decode_sets),
    ("timeout0", decode_timeouts),
    ("timeout1", decode_timeouts),
    ("score0", decode_score),
    ("score1", decode_score),
    ("servizio", decode_service),
)

SCORE_TOKENS: Tuple[str, ...] = tuple(name for name, _ in _DECODERS)


@dataclass(frozen=True)
class ScoreState:
    """What the score panel shows; replaced whole on every update."""

    team0: str = ""
    team1: str = ""
    set0: int = 0
    set1: int = 0
    timeout0: int = 0
    timeout1: int = 0
    score0: int = 0
    score1: int = 0
    servizio: int = 0

    def updated(self, values: Dict[str, Any]) -> "ScoreState":
        if not values:
            return self
        return replace(self, **values)


def decode_score_fields(message: str) -> Dict[str, Any]:
    """Return the decoded value of every score token present in ``message``."""
    values: Dict[str, Any] = {}
    for name, decoder in _DECODERS:
        raw = extract_token(message, name)
        if raw is None:
            continue
        values[name] = decoder(raw)
    return values
