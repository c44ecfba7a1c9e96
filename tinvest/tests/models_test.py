"""Tests for record parsing and enumerated types"""

from datetime import datetime, timedelta, timezone

import pytest

from tinvest.core.models import (
    CandleInterval,
    Instrument,
    MalformedRecordError,
    OperationKind,
    OperationStatus,
    Order,
    RawOperation,
    parse_timestamp,
)


class TestEnums:
    """Test the closed sets and their fallthrough."""

    def test_operation_kind_from_tag(self):
        assert OperationKind.from_tag("Buy") is OperationKind.BUY
        assert OperationKind.from_tag("BuyCard") is OperationKind.BUY
        assert OperationKind.from_tag("TaxCoupon") is OperationKind.COUPON_TAX
        assert OperationKind.from_tag("MarginCommission") is OperationKind.UNRECOGNIZED
        assert OperationKind.from_tag("Unrecognized") is OperationKind.UNRECOGNIZED
        assert OperationKind.from_tag(None) is OperationKind.UNRECOGNIZED

    def test_only_done_is_terminal(self):
        assert OperationStatus.from_tag("Done").is_terminal
        assert not OperationStatus.from_tag("Progress").is_terminal
        assert not OperationStatus.from_tag("Decline").is_terminal
        assert not OperationStatus.from_tag("Error").is_terminal

    def test_candle_interval_from_value(self):
        assert CandleInterval.from_value("1min") is CandleInterval.MIN_1
        assert CandleInterval.from_value("month") is CandleInterval.MONTH
        assert CandleInterval.from_value(CandleInterval.HOUR) is CandleInterval.HOUR
        assert CandleInterval.from_value("4hour") is CandleInterval.UNRECOGNIZED
        assert CandleInterval.from_value("unrecognized") is CandleInterval.UNRECOGNIZED


class TestParseTimestamp:
    """Test RFC 3339 parsing."""

    def test_offset_preserved(self):
        ts = parse_timestamp("2020-03-10T10:01:12.123456+03:00")
        assert ts.utcoffset() == timedelta(hours=3)
        assert ts.microsecond == 123456

    def test_nanoseconds_truncated(self):
        ts = parse_timestamp("2020-03-10T10:01:12.123456789Z")
        assert ts.microsecond == 123456

    def test_datetime_passes_through(self):
        value = datetime(2020, 1, 1, tzinfo=timezone.utc)
        assert parse_timestamp(value) is value

    def test_naive_datetime_rejected(self):
        with pytest.raises(MalformedRecordError, match="no UTC offset"):
            parse_timestamp(datetime(2020, 1, 1))

    @pytest.mark.parametrize("value", [
        None, "", "NaT", "now", "today", "2020-13-45T00:00:00Z", 1583834472,
        "2020-03-10T10:01:12", "2020-03-10", "2020-03-10T10:01:12+03:00\n",
    ])
    def test_invalid(self, value):
        with pytest.raises(MalformedRecordError):
            parse_timestamp(value)


class TestRawOperation:
    """Test raw operation parsing."""

    def test_from_payload(self):
        raw = RawOperation.from_payload({
            "id": "123",
            "status": "Done",
            "commission": {"currency": "USD", "value": -1.2},
            "currency": "USD",
            "payment": -100,
            "price": 50,
            "quantity": 2,
            "quantityExecuted": 2,
            "figi": "BBG000B9XRY4",
            "date": "2020-03-10T10:01:12+03:00",
            "operationType": "Buy",
        })
        assert raw.commission == -1.2
        assert raw.commission_currency == "USD"
        assert raw.payment == -100.0

    def test_not_an_object(self):
        with pytest.raises(MalformedRecordError):
            RawOperation.from_payload(["id", "1"])

    def test_bad_commission(self):
        with pytest.raises(MalformedRecordError):
            RawOperation.from_payload({
                "id": "1", "status": "Done", "currency": "RUB", "operationType": "Buy",
                "date": "2020-03-10T10:01:12Z", "commission": -1,
            })

    @pytest.mark.parametrize("price", ["NaN", "inf", "-Infinity", float("nan")])
    def test_non_finite_amount(self, price):
        with pytest.raises(MalformedRecordError, match="not a finite number"):
            RawOperation.from_payload({
                "id": "1", "status": "Done", "currency": "RUB", "operationType": "Buy",
                "date": "2020-03-10T10:01:12Z", "price": price,
            })


class TestCatalogRecords:
    """Test catalog payload mapping."""

    def test_instrument_defaults(self):
        instrument = Instrument.from_payload({"figi": "F", "ticker": "T", "type": "Bond"})
        assert instrument.lot == 0
        assert instrument.min_price_increment == 0.0
        assert instrument.currency is None

    def test_order(self):
        order = Order.from_payload({"orderId": "1", "figi": "F", "requestedLots": "3"})
        assert order.requested_lots == 3
        assert order.executed_lots == 0
