"""Seed universe for the demo quote provider.

Used only when no real provider is configured (or USE_REAL_PRICES=false).
"""

# symbol -> (company name, sector, starting price)
SEED_UNIVERSE: dict[str, tuple[str, str, float]] = {
    "AAPL": ("Apple Inc.", "Technology", 190.00),
    "MSFT": ("Microsoft Corporation", "Technology", 420.00),
    "GOOG": ("Alphabet Inc.", "Technology", 175.00),
    "AMZN": ("Amazon.com, Inc.", "Consumer Cyclical", 185.00),
    "NVDA": ("NVIDIA Corporation", "Technology", 800.00),
    "META": ("Meta Platforms, Inc.", "Technology", 500.00),
    "TSLA": ("Tesla, Inc.", "Consumer Cyclical", 250.00),
    "JPM": ("JPMorgan Chase & Co.", "Financial Services", 195.00),
    "V": ("Visa Inc.", "Financial Services", 280.00),
    "TD.TO": ("The Toronto-Dominion Bank", "Financial Services", 82.00),
    "BP.L": ("BP p.l.c.", "Energy", 4.80),
    "XOM": ("Exxon Mobil Corporation", "Energy", 115.00),
}

# Annualized volatility per sector; unknown symbols use DEFAULT_SIGMA
SECTOR_SIGMA: dict[str, float] = {
    "Technology": 0.28,
    "Consumer Cyclical": 0.35,
    "Financial Services": 0.18,
    "Energy": 0.25,
}
DEFAULT_SIGMA = 0.25
DEFAULT_MU = 0.05

# Correlation between two symbols in the same sector vs. across sectors
SAME_SECTOR_CORR = 0.6
CROSS_SECTOR_CORR = 0.3
