"""DataFrame views of broker records.

This module provides:
- candles_to_frame: Derived candles as a time-indexed DataFrame.
- operations_to_frame: Normalized operations as a DataFrame.
- analyze_candles_frame: Vectorized body/shadow decomposition of an OHLC frame.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Iterable

import numpy as np
import pandas as pd

from tinvest.core.models import Candle, CandleDirection, Operation

CANDLE_COLUMNS = [
    "time", "open", "high", "low", "close", "volume",
    "direction", "body", "upper_shadow", "lower_shadow",
]

OPERATION_COLUMNS = [
    "id", "figi", "kind", "time", "quantity",
    "price", "value", "commission", "currency",
]


def candles_to_frame(candles: Iterable[Candle]) -> pd.DataFrame:
    """Convert derived candles to a DataFrame indexed by ``time``.

    ``direction`` is stored as its string value (``"Up"`` / ``"Down"``).
    An empty input yields an empty frame with the same columns.
    """
    rows = [asdict(candle) for candle in candles]
    df = pd.DataFrame(rows, columns=CANDLE_COLUMNS)
    df["direction"] = df["direction"].map(lambda d: d.value if isinstance(d, CandleDirection) else d)
    return df.set_index("time")


def operations_to_frame(operations: Iterable[Operation]) -> pd.DataFrame:
    """Convert normalized operations to a DataFrame, keeping their order."""
    rows = [asdict(op) for op in operations]
    df = pd.DataFrame(rows, columns=OPERATION_COLUMNS)
    df["kind"] = df["kind"].map(lambda k: getattr(k, "value", k))
    return df


def analyze_candles_frame(
    df: pd.DataFrame,
    *,
    open_col: str = "open",
    close_col: str = "close",
    high_col: str = "high",
    low_col: str = "low",
) -> pd.DataFrame:
    """Add ``direction``, ``body``, ``upper_shadow`` and ``lower_shadow`` columns.

    Same rule as :func:`tinvest.core.candles.analyze_candle`, applied
    column-wise: a row is ``"Up"`` when close >= open.

    Args:
        df: Frame with OHLC columns
        open_col, close_col, high_col, low_col: Column names to read

    Returns:
        A copy of *df* with the four derived columns appended

    Raises:
        KeyError: If an OHLC column is missing
    """
    out = df.copy()
    o = out[open_col].to_numpy(dtype=float)
    c = out[close_col].to_numpy(dtype=float)
    h = out[high_col].to_numpy(dtype=float)
    l = out[low_col].to_numpy(dtype=float)

    up = c >= o
    out["direction"] = np.where(up, CandleDirection.UP.value, CandleDirection.DOWN.value)
    out["body"] = np.abs(c - o)
    out["upper_shadow"] = h - np.maximum(o, c)
    out["lower_shadow"] = np.minimum(o, c) - l
    return out
