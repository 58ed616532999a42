"""Tests for symbol normalization and format checks."""

import pytest

from app.quotes.symbols import is_valid_symbol, normalize_symbol


class TestSymbols:
    """Ticker format: 1-8 letters with an optional 1-4 letter suffix."""

    def test_normalize(self):
        assert normalize_symbol("  aapl ") == "AAPL"
        assert normalize_symbol("td.to") == "TD.TO"

    @pytest.mark.parametrize("symbol", ["A", "AAPL", "GOOGL", "ABCDEFGH", "TD.TO", "BP.L", "RY.NEUO"])
    def test_valid(self, symbol):
        assert is_valid_symbol(symbol)

    @pytest.mark.parametrize(
        "symbol", ["", "ABCDEFGHI", "AAPL1", "aapl", "TD.", ".TO", "BRK.ABCDE", "A-B", "AAPL MSFT"]
    )
    def test_invalid(self, symbol):
        assert not is_valid_symbol(symbol)
