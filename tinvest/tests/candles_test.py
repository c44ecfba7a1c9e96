"""Tests for Candle Analysis"""

from datetime import datetime, timezone

import pytest

from tinvest.core.candles import analyze_candle, derive_candle, derive_candles
from tinvest.core.models import CandleDirection, MalformedRecordError, RawCandle


class TestAnalyzeCandle:
    """Test direction and body/shadow decomposition."""

    def test_up_candle(self):
        result = analyze_candle(10, 12, 15, 8)
        assert result == (CandleDirection.UP, 2, 3, 2)

    def test_down_candle(self):
        result = analyze_candle(12, 10, 15, 8)
        assert result == (CandleDirection.DOWN, 2, 3, 2)

    def test_flat_candle_is_up_with_zero_body(self):
        result = analyze_candle(10, 10, 10, 10)
        assert result.direction is CandleDirection.UP
        assert (result.body, result.upper_shadow, result.lower_shadow) == (0, 0, 0)

    def test_doji_with_shadows(self):
        result = analyze_candle(10, 10, 11, 9)
        assert result == (CandleDirection.UP, 0, 1, 1)

    def test_inconsistent_input_not_validated(self):
        """High below close propagates a negative upper shadow."""
        result = analyze_candle(10, 12, 11, 8)
        assert result.upper_shadow == -1

    @pytest.mark.parametrize("o,c,h,l", [
        (100.5, 101.25, 102.0, 99.75),
        (101.25, 100.5, 102.0, 99.75),
        (1.0, 1.0, 1.5, 0.5),
    ])
    def test_parts_add_up_to_range(self, o, c, h, l):
        """body + shadows == high - low for consistent candles."""
        result = analyze_candle(o, c, h, l)
        assert result.body >= 0 and result.upper_shadow >= 0 and result.lower_shadow >= 0
        assert result.body + result.upper_shadow + result.lower_shadow == pytest.approx(h - l)


class TestDeriveCandles:
    """Test derivation from raw candle payloads."""

    def payload(self, o, c, h, l, time="2023-03-01T07:00:00Z"):
        return {"o": o, "c": c, "h": h, "l": l, "v": 1200, "time": time, "interval": "day", "figi": "X"}

    def test_derive_from_payloads_keeps_count_and_order(self):
        raws = [
            self.payload(10, 12, 15, 8, "2023-03-02T07:00:00Z"),
            self.payload(12, 10, 15, 8, "2023-03-01T07:00:00Z"),
        ]
        candles = derive_candles(raws)

        assert len(candles) == 2
        assert [c.direction for c in candles] == [CandleDirection.UP, CandleDirection.DOWN]
        assert candles[0].time == datetime(2023, 3, 2, 7, tzinfo=timezone.utc)
        assert candles[1].volume == 1200

    def test_derive_candle_keeps_raw_fields(self):
        raw = RawCandle(time=datetime(2023, 1, 1), open=5, high=9, low=1, close=3, volume=10)
        candle = derive_candle(raw)
        assert (candle.open, candle.high, candle.low, candle.close) == (5, 9, 1, 3)
        assert (candle.body, candle.upper_shadow, candle.lower_shadow) == (2, 4, 2)

    def test_empty(self):
        assert derive_candles([]) == []

    def test_missing_price_is_malformed(self):
        raw = self.payload(10, 12, 15, 8)
        del raw["h"]
        with pytest.raises(MalformedRecordError):
            derive_candles([raw])

    def test_bad_time_is_malformed(self):
        with pytest.raises(MalformedRecordError):
            derive_candles([self.payload(10, 12, 15, 8, time="yesterday-ish")])
