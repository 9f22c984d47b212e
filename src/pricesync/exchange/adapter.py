"""Binance kline adapter — raw ``/klines`` arrays into Candle records."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import ValidationError

from pricesync.core.exceptions import ExchangeError
from pricesync.core.models import Candle


class KlineAdapter:
    """Transforms raw Binance kline JSON into Candle records.

    Binance returns each kline as a positional array::

        [openTime, open, high, low, close, volume, closeTime,
         quoteVolume, trades, takerBase, takerQuote, ignore]

    Prices and volumes arrive as strings and are kept as ``Decimal``.
    """

    def adapt(self, raw_data: Any) -> list[Candle]:
        """Parse a ``/klines`` response body.

        Returns:
            Candles in the order the exchange returned them.

        Raises:
            ExchangeError: If the payload is not a list of kline arrays.
        """
        if not isinstance(raw_data, list):
            raise ExchangeError(
                f"Expected a list of klines, got {type(raw_data).__name__}",
                context={"payload_type": type(raw_data).__name__},
            )

        candles: list[Candle] = []
        for i, row in enumerate(raw_data):
            if not isinstance(row, (list, tuple)) or len(row) < 6:
                raise ExchangeError(
                    f"Malformed kline at index {i}: {row!r}",
                    context={"index": i},
                )
            try:
                candles.append(
                    Candle(
                        open_time=int(row[0]),
                        open=Decimal(str(row[1])),
                        high=Decimal(str(row[2])),
                        low=Decimal(str(row[3])),
                        close=Decimal(str(row[4])),
                        volume=Decimal(str(row[5])),
                        close_time=int(row[6]) if len(row) > 6 else None,
                    )
                )
            except (ArithmeticError, TypeError, ValueError, ValidationError) as e:
                raise ExchangeError(
                    f"Unparseable kline at index {i}: {e}",
                    context={"index": i},
                ) from e

        return candles
