"""
Number Tokens
=============
Locale-independent conversion of single number tokens.

Python's float() always uses "." as decimal separator, so nothing here reads
or changes the process locale and the functions are safe to call from any
thread. The conversion follows strtod(): the longest numeric prefix of the
token is converted and the caller is told whether the whole token was used.
"""
from __future__ import annotations

import re
from typing import Optional

# Longest strtod-style floating-point prefix (decimal, inf/infinity, nan)
_FLOAT_PREFIX = re.compile(
    r"[+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan)",
    re.IGNORECASE,
)

_INTEGER = re.compile(r"[+-]?\d+")


def parse_number(token: str) -> tuple[float, bool]:
    """
    Convert a number token to float.

    Args:
        token: A single token without surrounding delimiters.

    Returns:
        (value, fully_consumed). If the token has no numeric prefix the value
        is 0.0 and fully_consumed is False.
    """
    match = _FLOAT_PREFIX.match(token)
    if match is None:
        return 0.0, False
    return float(match.group()), match.end() == len(token)


def parse_integer(token: str) -> Optional[int]:
    """Base-10 integer of a fully numeric token, else None."""
    if _INTEGER.fullmatch(token) is None:
        return None
    return int(token)


def is_number(token: str) -> bool:
    """
    Check whether a token looks like a floating-point number.

    Only used to classify trailing tokens in diagnostics. The token may have
    a leading sign, then digits with at most one decimal point (before any
    exponent), at most one exponent marker and at most one exponent sign
    directly after it.
    """
    found_dec = False
    found_exponent = False
    found_exponent_sign = False

    k = 1 if token[:1] in ("-", "+") else 0
    previous = ""
    for char in token[k:]:
        if "0" <= char <= "9":
            pass
        elif char == "." and not (found_dec or found_exponent or found_exponent_sign):
            found_dec = True
        elif char in ("e", "E") and not found_exponent:
            found_exponent = True
        elif char in ("-", "+") and found_exponent and not found_exponent_sign and previous in ("e", "E"):
            found_exponent_sign = True
        else:
            return False
        previous = char
    return True
