import numpy as np
import pandas as pd

from tinvest.core.candles import derive_candles
from tinvest.core.operations import normalize_operations
from tinvest.helpers.frame_helper import (
    CANDLE_COLUMNS,
    OPERATION_COLUMNS,
    analyze_candles_frame,
    candles_to_frame,
    operations_to_frame,
)


def test_candles_to_frame():
    candles = derive_candles([
        {"o": 10, "c": 12, "h": 15, "l": 8, "v": 100, "time": "2023-03-01T07:00:00Z"},
        {"o": 12, "c": 10, "h": 15, "l": 8, "v": 200, "time": "2023-03-02T07:00:00Z"},
    ])

    df = candles_to_frame(candles)

    assert df.index.name == "time"
    assert list(df.columns) == CANDLE_COLUMNS[1:]
    assert list(df["direction"]) == ["Up", "Down"]
    assert list(df["body"]) == [2, 2]

    # Empty input keeps the schema
    empty = candles_to_frame([])
    assert empty.empty
    assert list(empty.columns) == CANDLE_COLUMNS[1:]


def test_operations_to_frame():
    operations = normalize_operations([{
        "id": "1",
        "figi": "BBG000B9XRY4",
        "operationType": "BuyCard",
        "status": "Done",
        "currency": "USD",
        "date": "2023-03-01T10:00:00+03:00",
        "price": -150.0,
        "payment": -300.0,
        "quantityExecuted": 2,
    }])

    df = operations_to_frame(operations)

    assert list(df.columns) == OPERATION_COLUMNS
    assert df.loc[0, "kind"] == "Buy"
    assert df.loc[0, "value"] == 300.0
    assert df.loc[0, "commission"] == 0.0


def test_analyze_candles_frame_matches_scalar_rule():
    df = pd.DataFrame({
        "time": pd.date_range("2023-01-01", periods=3, freq="D", tz="UTC"),
        "open": [10.0, 12.0, 10.0],
        "high": [15.0, 15.0, 10.0],
        "low": [8.0, 8.0, 10.0],
        "close": [12.0, 10.0, 10.0],
    })

    result = analyze_candles_frame(df)

    assert list(result["direction"]) == ["Up", "Down", "Up"]
    np.testing.assert_array_equal(result["body"].to_numpy(), [2.0, 2.0, 0.0])
    np.testing.assert_array_equal(result["upper_shadow"].to_numpy(), [3.0, 3.0, 0.0])
    np.testing.assert_array_equal(result["lower_shadow"].to_numpy(), [2.0, 2.0, 0.0])
    # Input is not modified
    assert "direction" not in df.columns


def test_analyze_candles_frame_custom_columns():
    df = pd.DataFrame({"Open": [1.0], "Close": [2.0], "High": [3.0], "Low": [0.5]})
    result = analyze_candles_frame(df, open_col="Open", close_col="Close", high_col="High", low_col="Low")
    assert result.loc[0, "upper_shadow"] == 1.0
    assert result.loc[0, "lower_shadow"] == 0.5
