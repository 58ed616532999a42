"""Symbol normalization and the canonical ticker format."""

from __future__ import annotations

import re

# 1-8 letters, optionally followed by a 1-4 letter exchange suffix (TD.TO, BP.L)
SYMBOL_PATTERN = re.compile(r"^[A-Z]{1,8}(\.[A-Z]{1,4})?$")


def normalize_symbol(symbol: str) -> str:
    """Trim and upper-case a raw symbol. Does not validate the format."""
    return symbol.strip().upper()


def is_valid_symbol(symbol: str) -> bool:
    """True if the (already normalized) symbol matches the ticker format."""
    return bool(SYMBOL_PATTERN.match(symbol))