from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from tinvest.core.models import (
    Account,
    Candle,
    CandleInterval,
    Instrument,
    Operation,
    Order,
    Position,
)

class BrokerAdapter(ABC):

    # Account Methods
    @abstractmethod
    def get_accounts(self) -> List[Account]:
        pass

    @abstractmethod
    def get_positions(self) -> List[Position]:
        pass

    @abstractmethod
    def list_operations(self, identifier_or_ticker: Optional[str], from_: datetime, to: datetime) -> List[Operation]:
        pass

    # Market Data Methods
    @abstractmethod
    def get_instruments(self) -> List[Instrument]:
        pass

    @abstractmethod
    def list_candles(self, identifier_or_ticker: str, interval: CandleInterval, from_: datetime, to: datetime) -> List[Candle]:
        pass

    # Trading Methods
    @abstractmethod
    def get_orders(self) -> List[Order]:
        pass

    @abstractmethod
    def create_limit_order(self, figi: str, operation: str, lots: int, price: float) -> str:
        pass

    @abstractmethod
    def create_market_order(self, figi: str, operation: str, lots: int) -> str:
        pass

    @abstractmethod
    def cancel_order(self, order_id: str) -> None:
        pass
