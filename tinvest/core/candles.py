"""Candle body / shadow decomposition."""

from __future__ import annotations

from typing import Iterable, NamedTuple, Union

from tinvest.core.models import Candle, CandleDirection, RawCandle


class CandleAnalysis(NamedTuple):
    direction: CandleDirection
    body: float
    upper_shadow: float
    lower_shadow: float


def analyze_candle(open_price: float, close_price: float, high_price: float, low_price: float) -> CandleAnalysis:
    """
    Classify a candle and split its range into body and shadows.

    ``close == open`` counts as ``UP`` with a zero body. Inputs are not
    validated: inconsistent OHLC values (e.g. ``high < close``) yield
    negative shadows.
    """
    if close_price >= open_price:
        return CandleAnalysis(
            direction=CandleDirection.UP,
            body=close_price - open_price,
            upper_shadow=high_price - close_price,
            lower_shadow=open_price - low_price,
        )
    return CandleAnalysis(
        direction=CandleDirection.DOWN,
        body=open_price - close_price,
        upper_shadow=high_price - open_price,
        lower_shadow=close_price - low_price,
    )


def derive_candle(raw: RawCandle) -> Candle:
    analysis = analyze_candle(raw.open, raw.close, raw.high, raw.low)
    return Candle(
        time=raw.time,
        open=raw.open,
        high=raw.high,
        low=raw.low,
        close=raw.close,
        volume=raw.volume,
        direction=analysis.direction,
        body=analysis.body,
        upper_shadow=analysis.upper_shadow,
        lower_shadow=analysis.lower_shadow,
    )


def derive_candles(raw_candles: Iterable[Union[dict, RawCandle]]) -> list[Candle]:
    """One derived candle per raw candle, same order. Dicts are parsed first."""
    records = [
        raw if isinstance(raw, RawCandle) else RawCandle.from_payload(raw)
        for raw in raw_candles
    ]
    return [derive_candle(raw) for raw in records]
