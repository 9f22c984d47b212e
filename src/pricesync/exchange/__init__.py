"""Exchange access: Binance REST client and kline adapter."""

from pricesync.exchange.adapter import KlineAdapter
from pricesync.exchange.client import BinanceClient, CandleSource

__all__ = [
    "BinanceClient",
    "CandleSource",
    "KlineAdapter",
]
