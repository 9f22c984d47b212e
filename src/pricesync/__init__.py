"""pricesync — daily price history sync for a single exchange trading pair."""

__version__ = "0.1.0"
