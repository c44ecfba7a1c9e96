"""Instrument identity resolution.

Maps human tickers to FIGIs and reconciles dual-listed instruments.

Some instruments trade under two FIGIs depending on the settlement venue
(e.g. the domestic share and the depositary receipt of the same company).
The operations endpoint only indexes history under the *base* FIGI and does
not tell the two listings apart, so the record currency is used after the
fact:

    outbound:  alternate FIGI  -> base FIGI   (when querying)
    inbound:   (base FIGI, domestic currency) -> alternate FIGI
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from tinvest.core.models import CURRENCY_RUB

FIGI_AAPL = "BBG000B9XRY4"
FIGI_TCS = "BBG005DXJS36"
FIGI_TCSG = "BBG00QPYJ5H0"

TICKER_TCS = "TCS"
TICKER_TCSG = "TCSG"


@dataclass(frozen=True)
class DualListing:
    base: str
    alternate: str
    currency: str   # settlement currency of the alternate listing


DEFAULT_DUAL_LISTINGS = (
    DualListing(base=FIGI_TCS, alternate=FIGI_TCSG, currency=CURRENCY_RUB),
)

DEFAULT_TICKERS = {
    TICKER_TCS: FIGI_TCS,
    TICKER_TCSG: FIGI_TCSG,
    "AAPL": FIGI_AAPL,
}


class InstrumentIdentityResolver:
    """
    Resolves tickers to FIGIs and reconciles dual listings.

    The listing table is built once in ``__init__`` and exposed read-only,
    so a single resolver can be shared across clients and threads.

    Parameters
    ----------
    dual_listings : iterable of DualListing
        Known dual listings. Defaults to the TCS / TCSG pair.
    tickers : mapping, optional
        Ticker -> FIGI aliases accepted by :meth:`resolve`.
    """

    def __init__(
        self,
        dual_listings: Iterable[DualListing] = DEFAULT_DUAL_LISTINGS,
        tickers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._listings = tuple(dual_listings)

        outbound: dict[str, str] = {}
        inbound: dict[tuple[str, str], str] = {}
        for listing in self._listings:
            outbound[listing.alternate] = listing.base
            inbound[(listing.base, listing.currency)] = listing.alternate

        self._outbound = MappingProxyType(outbound)
        self._inbound = MappingProxyType(inbound)
        self._tickers = MappingProxyType(dict(DEFAULT_TICKERS if tickers is None else tickers))

    @classmethod
    def from_config(cls, config: dict) -> "InstrumentIdentityResolver":
        """
        Build a resolver from the ``dual_listings`` / ``tickers`` config sections::

            {
                "dual_listings": [
                    {"base": "BBG005DXJS36", "alternate": "BBG00QPYJ5H0", "currency": "RUB"}
                ],
                "tickers": {"TCS": "BBG005DXJS36"}
            }
        """
        listings_cfg = config.get("dual_listings")
        if listings_cfg is None:
            listings = DEFAULT_DUAL_LISTINGS
        else:
            listings = tuple(
                DualListing(
                    base=item["base"],
                    alternate=item["alternate"],
                    currency=item["currency"],
                )
                for item in listings_cfg
            )
        return cls(listings, config.get("tickers"))

    @property
    def dual_listings(self) -> tuple[DualListing, ...]:
        return self._listings

    def resolve(self, identifier_or_ticker: Optional[str]) -> Optional[str]:
        """Return the FIGI for a ticker alias; unknown values are taken as FIGIs."""
        if not identifier_or_ticker:
            return None
        return self._tickers.get(identifier_or_ticker, identifier_or_ticker)

    def outbound(self, figi: Optional[str]) -> Optional[str]:
        """FIGI to send upstream: alternate listings are only indexed under their base."""
        if figi is None:
            return None
        return self._outbound.get(figi, figi)

    def reclassify(self, figi: Optional[str], currency: Optional[str]) -> Optional[str]:
        """FIGI a returned record actually belongs to, judged by its currency."""
        if figi is None:
            return None
        return self._inbound.get((figi, currency), figi)

    def matches(self, figi: Optional[str], identifier_filter: Optional[str]) -> bool:
        if not identifier_filter:
            return True
        return figi == identifier_filter
