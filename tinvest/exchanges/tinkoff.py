"""
Tinkoff Invest broker client.

Wraps :class:`TinkoffRestTransport` and maps responses onto the records in
:mod:`tinvest.core.models`. Operation history and candles go through the
core normalization / analysis steps.

Usage::

    from tinvest.exchanges.tinkoff import TinkoffClient

    client = TinkoffClient.from_config(config, logger)
    ops = client.list_operations("TCSG", datetime(2023, 1, 1), datetime.now())
    candles = client.list_candles("AAPL", "day", start, end)
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import List, Optional, Union

from tinvest.core.candles import derive_candles
from tinvest.core.identity import InstrumentIdentityResolver
from tinvest.core.models import (
    Account,
    Candle,
    CandleInterval,
    Instrument,
    Operation,
    Order,
    OrderOperation,
    OrderType,
    Position,
)
from tinvest.core.operations import normalize_operations
from tinvest.exchanges.base import BrokerAdapter
from tinvest.exchanges.tinkoff_rest import DEFAULT_BASE_URL, DEFAULT_TIMEOUT, TinkoffRestTransport

TOKEN_ENV_VAR = "TINKOFF_TOKEN"

_CATALOG_PATHS = ("currencies", "stocks", "bonds", "etfs")


def format_timestamp(value: datetime) -> str:
    """RFC 3339 with an explicit offset; naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat(timespec="seconds")


class TinkoffClient(BrokerAdapter):
    """
    Broker client for accounts, instruments, candles, positions, operations
    and orders.

    Parameters
    ----------
    transport : TinkoffRestTransport
        Authenticated request channel.
    resolver : InstrumentIdentityResolver, optional
        Ticker aliases and dual-listing table. Defaults to the built-in one.
    logger : logging.Logger, optional
        Caller's logger.
    """

    def __init__(
        self,
        transport: TinkoffRestTransport,
        resolver: Optional[InstrumentIdentityResolver] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.transport = transport
        self.resolver = resolver or InstrumentIdentityResolver()
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config: dict, logger: Optional[logging.Logger] = None) -> "TinkoffClient":
        """
        Build a client from the config dict::

            {
                "tinkoff": {"token": "...", "account_id": "", "base_url": "...", "timeout": 30},
                "dual_listings": [...],
                "tickers": {...}
            }

        The token falls back to the ``TINKOFF_TOKEN`` environment variable.
        """
        tinkoff_cfg = config.get("tinkoff", {})
        token = tinkoff_cfg.get("token") or os.getenv(TOKEN_ENV_VAR, "")
        if not token:
            raise ValueError(f"No API token: set tinkoff.token or {TOKEN_ENV_VAR}")

        transport = TinkoffRestTransport(
            token=token,
            base_url=tinkoff_cfg.get("base_url", DEFAULT_BASE_URL),
            account_id=tinkoff_cfg.get("account_id"),
            timeout=tinkoff_cfg.get("timeout", DEFAULT_TIMEOUT),
        )
        return cls(transport, InstrumentIdentityResolver.from_config(config), logger)

    def set_account(self, account_id: Optional[str]) -> None:
        """Scope subsequent requests to *account_id* (``None`` for the default account)."""
        self.transport.account_id = account_id or None

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def get_accounts(self) -> List[Account]:
        payload = self.transport.get("user/accounts") or {}
        return [
            Account(id=item.get("brokerAccountId", ""), text=item.get("brokerAccountType", ""))
            for item in payload.get("accounts", [])
        ]

    def get_positions(self) -> List[Position]:
        payload = self.transport.get("portfolio") or {}
        return [Position.from_payload(item) for item in payload.get("positions", [])]

    def list_operations(
        self,
        identifier_or_ticker: Optional[str],
        from_: datetime,
        to: datetime,
    ) -> List[Operation]:
        """
        Settled operations in ``[from_, to)``, ordered by time.

        Parameters
        ----------
        identifier_or_ticker : str or None
            FIGI or known ticker; ``None`` returns every instrument.
        from_, to : datetime
            Range bounds, passed through to the broker.

        Returns
        -------
        list[Operation]
            May be empty.
        """
        figi = self.resolver.resolve(identifier_or_ticker)

        params = {"from": format_timestamp(from_), "to": format_timestamp(to)}
        if figi:
            params["figi"] = self.resolver.outbound(figi)

        payload = self.transport.get("operations", params) or {}
        raw_operations = payload.get("operations", [])
        operations = normalize_operations(raw_operations, figi, self.resolver)

        self.logger.info(
            f"[{identifier_or_ticker or 'ALL'}] {len(operations)} operations "
            f"({len(raw_operations)} raw) between {params['from']} and {params['to']}"
        )
        return operations

    # ------------------------------------------------------------------
    # Market data
    # ------------------------------------------------------------------

    def get_currencies(self) -> List[Instrument]:
        return self._get_catalog("currencies")

    def get_shares(self) -> List[Instrument]:
        return self._get_catalog("stocks")

    def get_bonds(self) -> List[Instrument]:
        return self._get_catalog("bonds")

    def get_etfs(self) -> List[Instrument]:
        return self._get_catalog("etfs")

    def get_instruments(self) -> List[Instrument]:
        """Currencies, shares, bonds and ETFs, in that order."""
        instruments: List[Instrument] = []
        for path in _CATALOG_PATHS:
            instruments.extend(self._get_catalog(path))
        return instruments

    def get_instrument_by_ticker(self, ticker: str) -> Optional[Instrument]:
        payload = self.transport.get("market/search/by-ticker", {"ticker": ticker}) or {}
        instruments = payload.get("instruments", [])
        if not instruments:
            return None
        return Instrument.from_payload(instruments[0])

    def get_instrument_by_figi(self, figi: str) -> Instrument:
        payload = self.transport.get("market/search/by-figi", {"figi": figi}) or {}
        return Instrument.from_payload(payload)

    def list_candles(
        self,
        identifier_or_ticker: str,
        interval: Union[CandleInterval, str],
        from_: datetime,
        to: datetime,
    ) -> List[Candle]:
        """
        Price history with body / shadow decomposition, one candle per
        upstream candle in upstream order.

        Raises
        ------
        ValueError
            If *interval* is not a supported candle interval.
        """
        candle_interval = CandleInterval.from_value(interval)
        if candle_interval is CandleInterval.UNRECOGNIZED:
            raise ValueError(f"Unsupported candle interval: {interval!r}")

        figi = self.resolver.resolve(identifier_or_ticker)
        params = {
            "figi": figi,
            "interval": candle_interval.value,
            "from": format_timestamp(from_),
            "to": format_timestamp(to),
        }
        payload = self.transport.get("market/candles", params) or {}
        candles = derive_candles(payload.get("candles", []))

        self.logger.debug(f"[{identifier_or_ticker}] {len(candles)} {candle_interval.value} candles")
        return candles

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def get_orders(self) -> List[Order]:
        payload = self.transport.get("orders")
        return [Order.from_payload(item) for item in payload or []]

    def create_limit_order(
        self,
        figi: str,
        operation: Union[OrderOperation, str],
        lots: int,
        price: float,
    ) -> str:
        return self._create_order(OrderType.LIMIT, figi, operation, lots, price)

    def create_market_order(
        self,
        figi: str,
        operation: Union[OrderOperation, str],
        lots: int,
    ) -> str:
        return self._create_order(OrderType.MARKET, figi, operation, lots)

    def cancel_order(self, order_id: str) -> None:
        self.transport.post("orders/cancel", {"orderId": order_id})
        self.logger.info(f"Order {order_id} cancelled")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get_catalog(self, path: str) -> List[Instrument]:
        payload = self.transport.get(f"market/{path}") or {}
        return [Instrument.from_payload(item) for item in payload.get("instruments", [])]

    def _create_order(
        self,
        order_type: OrderType,
        figi: str,
        operation: Union[OrderOperation, str],
        lots: int,
        price: Optional[float] = None,
    ) -> str:
        figi = self.resolver.resolve(figi)
        body = {"operation": OrderOperation(operation).value, "lots": lots}
        if price is not None:
            body["price"] = price

        payload = self.transport.post(f"orders/{order_type.value}-order", {"figi": figi}, body) or {}
        order_id = payload.get("orderId", "")

        self.logger.info(
            f"[{figi}] {order_type.value} {body['operation']} order created, "
            f"order_id={order_id}, lots={lots}, status={payload.get('status')}"
        )
        return order_id
