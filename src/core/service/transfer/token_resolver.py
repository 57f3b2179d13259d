"""Best-effort token ticker inference from a free-text transfer message."""

import re
from typing import Iterable, Optional

from src.infra.config.settings import get_settings

settings = get_settings()


def find_token_in_message(message: str, tokens: Iterable[str]) -> Optional[str]:
    """
    Return the first allow-listed ticker mentioned in ``message``.

    Matching is case-insensitive and whole-word; when several tickers appear,
    the one that occurs earliest in the message wins.
    """
    candidates = [t for t in tokens if t]
    if not message or not candidates:
        return None

    # Longest first so WTON is not shadowed by TON at the same position
    alternation = "|".join(re.escape(t) for t in sorted(candidates, key=len, reverse=True))
    match = re.search(rf"\b({alternation})\b", message, re.IGNORECASE)
    return match.group(1).upper() if match else None


def resolve_token(
    explicit_token: Optional[str],
    message: str,
    tokens: Optional[Iterable[str]] = None,
    native_token: Optional[str] = None,
) -> str:
    """
    Pick the token a funding wait should watch.

    An explicit symbol from the backend always wins. Otherwise the message is
    scanned; with no match the native symbol is used. Never raises.
    """
    if explicit_token and explicit_token.strip():
        return explicit_token.strip().upper()

    allow_list = list(tokens) if tokens is not None else settings.SUPPORTED_TOKENS
    fallback = (native_token or settings.NATIVE_TOKEN_SYMBOL).upper()
    try:
        return find_token_in_message(message, allow_list) or fallback
    except (TypeError, re.error):
        return fallback
