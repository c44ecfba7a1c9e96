from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

import pandas as pd

CURRENCY_RUB = "RUB"
CURRENCY_USD = "USD"
CURRENCY_EUR = "EUR"

STATUS_ERROR = "Error"

# Date, time and a mandatory offset; fractional seconds of any precision
RFC3339_PATTERN = re.compile(
    r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:\d{2})"
)


class MalformedRecordError(ValueError):
    """A raw broker record is missing a required field or holds an unparseable value."""


class OperationKind(str, Enum):
    BUY = "Buy"
    SELL = "Sell"
    DIVIDEND = "Dividend"
    DIVIDEND_TAX = "TaxDividend"
    COUPON = "Coupon"
    COUPON_TAX = "TaxCoupon"
    UNRECOGNIZED = "Unrecognized"

    @classmethod
    def from_tag(cls, tag: Optional[str]) -> "OperationKind":
        """Map an upstream ``operationType`` tag onto the closed set of kinds.

        Card-funded buys are the same financial event as a cash buy and are
        always reported as ``BUY``.
        """
        if tag == "BuyCard":
            return cls.BUY
        for kind in cls:
            if kind is not cls.UNRECOGNIZED and kind.value == tag:
                return kind
        return cls.UNRECOGNIZED


class OperationStatus(str, Enum):
    DONE = "Done"
    DECLINE = "Decline"
    PROGRESS = "Progress"
    UNRECOGNIZED = "Unrecognized"

    @classmethod
    def from_tag(cls, tag: Optional[str]) -> "OperationStatus":
        for status in cls:
            if status is not cls.UNRECOGNIZED and status.value == tag:
                return status
        return cls.UNRECOGNIZED

    @property
    def is_terminal(self) -> bool:
        return self is OperationStatus.DONE


class CandleInterval(str, Enum):
    MIN_1 = "1min"
    MIN_2 = "2min"
    MIN_3 = "3min"
    MIN_5 = "5min"
    MIN_10 = "10min"
    MIN_15 = "15min"
    MIN_30 = "30min"
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    UNRECOGNIZED = "unrecognized"

    @classmethod
    def from_value(cls, value: "CandleInterval | str") -> "CandleInterval":
        if isinstance(value, cls):
            return value
        for interval in cls:
            if interval is not cls.UNRECOGNIZED and interval.value == value:
                return interval
        return cls.UNRECOGNIZED


class CandleDirection(str, Enum):
    UP = "Up"
    DOWN = "Down"


class OrderOperation(str, Enum):
    BUY = "Buy"
    SELL = "Sell"


class OrderType(str, Enum):
    LIMIT = "limit"
    MARKET = "market"


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------

def _required(payload: dict, key: str) -> Any:
    value = payload.get(key)
    if value is None or value == "":
        raise MalformedRecordError(f"missing required field '{key}'")
    return value


def _number(payload: dict, key: str, default: Optional[float] = 0.0) -> float:
    value = payload.get(key)
    if value is None:
        if default is None:
            raise MalformedRecordError(f"missing required field '{key}'")
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise MalformedRecordError(f"field '{key}' is not a number: {value!r}")
    if not math.isfinite(number):
        raise MalformedRecordError(f"field '{key}' is not a finite number: {value!r}")
    return number


def parse_timestamp(value: Any, key: str = "time") -> datetime:
    """Parse an RFC 3339 timestamp as returned by the broker.

    The offset is mandatory, so every parsed value is timezone-aware and
    values from one feed always compare.

    Raises
    ------
    MalformedRecordError
        If *value* is missing, has no offset or cannot be parsed.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None or value.utcoffset() is None:
            raise MalformedRecordError(f"field '{key}' has no UTC offset: {value!r}")
        return value
    if not isinstance(value, str) or not RFC3339_PATTERN.fullmatch(value):
        raise MalformedRecordError(f"field '{key}' is not a timestamp: {value!r}")
    try:
        ts = pd.Timestamp(value)
    except (ValueError, OverflowError):
        raise MalformedRecordError(f"field '{key}' is not a timestamp: {value!r}")
    if pd.isna(ts) or ts.tzinfo is None:
        raise MalformedRecordError(f"field '{key}' is not a timestamp: {value!r}")
    return ts.to_pydatetime(warn=False)


# ---------------------------------------------------------------------------
# Raw records (as reported by the broker)
# ---------------------------------------------------------------------------

@dataclass
class RawOperation:
    id: str
    operation_type: str
    status: str
    currency: str
    date: datetime
    figi: Optional[str] = None
    price: float = 0.0
    payment: float = 0.0
    quantity: float = 0.0
    quantity_executed: float = 0.0
    commission: float = 0.0
    commission_currency: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "RawOperation":
        if not isinstance(payload, dict):
            raise MalformedRecordError(f"operation record is not an object: {payload!r}")
        commission = payload.get("commission") or {}
        if not isinstance(commission, dict):
            raise MalformedRecordError(f"field 'commission' is not an object: {commission!r}")
        return cls(
            id=str(_required(payload, "id")),
            operation_type=_required(payload, "operationType"),
            status=_required(payload, "status"),
            currency=_required(payload, "currency"),
            date=parse_timestamp(payload.get("date"), "date"),
            figi=payload.get("figi") or None,
            price=_number(payload, "price"),
            payment=_number(payload, "payment"),
            quantity=_number(payload, "quantity"),
            quantity_executed=_number(payload, "quantityExecuted"),
            commission=_number(commission, "value"),
            commission_currency=commission.get("currency"),
        )


@dataclass
class RawCandle:
    time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float

    @classmethod
    def from_payload(cls, payload: dict) -> "RawCandle":
        if not isinstance(payload, dict):
            raise MalformedRecordError(f"candle record is not an object: {payload!r}")
        return cls(
            time=parse_timestamp(payload.get("time"), "time"),
            open=_number(payload, "o", default=None),
            high=_number(payload, "h", default=None),
            low=_number(payload, "l", default=None),
            close=_number(payload, "c", default=None),
            volume=_number(payload, "v"),
        )


# ---------------------------------------------------------------------------
# Normalized / derived records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Operation:
    id: str
    figi: Optional[str]
    kind: OperationKind
    time: datetime
    quantity: float    # executed, not requested
    price: float       # unsigned
    value: float       # unsigned payment
    commission: float  # unsigned
    currency: str


@dataclass(frozen=True)
class Candle:
    time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float
    direction: CandleDirection
    body: float
    upper_shadow: float
    lower_shadow: float


# ---------------------------------------------------------------------------
# Catalog / account records
# ---------------------------------------------------------------------------

@dataclass
class Account:
    id: str
    text: str   # broker account type, e.g. "Tinkoff" or "TinkoffIis"


@dataclass
class Instrument:
    type: str
    ticker: str
    figi: str
    isin: Optional[str] = None
    text: str = ""
    currency: Optional[str] = None
    lot: int = 0
    min_price_increment: float = 0.0

    @classmethod
    def from_payload(cls, payload: dict) -> "Instrument":
        return cls(
            type=payload.get("type", ""),
            ticker=payload.get("ticker", ""),
            figi=payload.get("figi", ""),
            isin=payload.get("isin"),
            text=payload.get("name", ""),
            currency=payload.get("currency"),
            lot=int(payload.get("lot") or 0),
            min_price_increment=float(payload.get("minPriceIncrement") or 0.0),
        )


@dataclass
class Position:
    figi: str
    ticker: Optional[str]
    type: str
    text: str
    quantity: float
    blocked: float
    lots: int
    currency: Optional[str]
    price: float
    profit: float

    @classmethod
    def from_payload(cls, payload: dict) -> "Position":
        average_price = payload.get("averagePositionPrice") or {}
        expected_yield = payload.get("expectedYield") or {}
        return cls(
            figi=payload.get("figi", ""),
            ticker=payload.get("ticker"),
            type=payload.get("instrumentType", ""),
            text=payload.get("name", ""),
            quantity=float(payload.get("balance") or 0.0),
            blocked=float(payload.get("blocked") or 0.0),
            lots=int(payload.get("lots") or 0),
            currency=average_price.get("currency"),
            price=float(average_price.get("value") or 0.0),
            profit=float(expected_yield.get("value") or 0.0),
        )


@dataclass
class Order:
    id: str
    figi: str
    type: str
    operation: str
    price: float
    status: str
    requested_lots: int
    executed_lots: int

    @classmethod
    def from_payload(cls, payload: dict) -> "Order":
        return cls(
            id=payload.get("orderId", ""),
            figi=payload.get("figi", ""),
            type=payload.get("type", ""),
            operation=payload.get("operation", ""),
            price=float(payload.get("price") or 0.0),
            status=payload.get("status", ""),
            requested_lots=int(payload.get("requestedLots") or 0),
            executed_lots=int(payload.get("executedLots") or 0),
        )
