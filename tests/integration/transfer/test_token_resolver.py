import pytest

from src.core.service.transfer.token_resolver import find_token_in_message, resolve_token

TOKENS = ["TON", "DUCK", "USDT", "WTON", "SEI", "USDC"]


@pytest.mark.parametrize("message,expected", [
    ("Send 100 TON to Samir", "TON"),
    ("send 5 usdt to bob", "USDT"),
    ("transfer 3 WTON please", "WTON"),
    ("Swap 10 DUCK for TON", "DUCK"),
    ("Send 1 TONY to Ana", None),
    ("Send everything to Ana", None),
])
def test_find_token_in_message(message, expected):
    assert find_token_in_message(message, TOKENS) == expected


def test_explicit_token_wins():
    assert resolve_token("usdc", "Send 100 TON to Samir", tokens=TOKENS) == "USDC"


def test_falls_back_to_native_token():
    assert resolve_token(None, "Send it all to Samir", tokens=TOKENS, native_token="TON") == "TON"


def test_blank_explicit_token_is_ignored():
    assert resolve_token("  ", "Pay 2 SEI to Ana", tokens=TOKENS) == "SEI"


def test_never_raises_on_bad_message():
    assert resolve_token(None, None, tokens=TOKENS, native_token="TON") == "TON"
