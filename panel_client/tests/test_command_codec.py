from __future__ import annotations

import pytest

from panel_client.command_codec import compose_message, decode_int, extract_token, iter_tokens, parse_int


def test_extract_token_returns_payload():
    assert extract_token("<score0>12</score0>", "score0") == "12"


def test_extract_token_missing_is_none():
    assert extract_token("<score0>12</score0>", "score1") is None
    assert extract_token("", "score0") is None


def test_extract_token_empty_payload_is_present_data():
    assert extract_token("<spotloop></spotloop>", "spotloop") == ""


def test_extract_token_last_occurrence_wins():
    assert extract_token("<set0>1</set0><set0>2</set0>", "set0") == "2"


def test_extract_token_does_not_match_name_prefixes():
    message = "<endspotloop>1</endspotloop>"
    assert extract_token(message, "spotloop") is None
    assert extract_token(message, "endspotloop") == "1"


def test_extract_token_unterminated_is_none():
    assert extract_token("<kill>1", "kill") is None


def test_iter_tokens_in_frame_order():
    message = "<team0>Rossi</team0>noise<score0>3</score0><live></live>"
    assert list(iter_tokens(message)) == [("team0", "Rossi"), ("score0", "3"), ("live", "")]


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2", 2),
        (" 3 ", 3),
        ("4", 8),
        ("-1", 8),
        ("abc", 8),
        ("", 8),
        (None, 8),
    ],
)
def test_decode_int_clamps_to_fallback(value, expected):
    assert decode_int(value, minimum=0, maximum=3, fallback=8) == expected


def test_decode_int_without_upper_bound():
    assert decode_int("900", minimum=0, maximum=None, fallback=30) == 900
    assert decode_int("-5", minimum=0, maximum=None, fallback=30) == 30


def test_parse_int_is_strict():
    assert parse_int("1") == 1
    assert parse_int("1.5") is None
    assert parse_int(None) is None


def test_compose_message_coerces_bools():
    assert compose_message("isScoreOnly", True) == "<isScoreOnly>1</isScoreOnly>"
    assert compose_message("getStatus", "panel-host") == "<getStatus>panel-host</getStatus>"
