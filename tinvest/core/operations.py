"""Operation history normalization.

Turns the raw ``operations`` payload into settled financial events:

1. reclassify the FIGI of dual-listed instruments by currency
2. keep only records for the requested instrument (if any)
3. keep only recognized kinds (buy, sell, dividends, coupons and their taxes)
4. keep only completed (``Done``) records
5. store price, payment and commission unsigned; use the executed quantity

The result is ordered by :func:`sort_operations`.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Union

from tinvest.core.identity import InstrumentIdentityResolver
from tinvest.core.models import (
    Operation,
    OperationKind,
    OperationStatus,
    RawOperation,
)

logger = logging.getLogger(__name__)

_DEFAULT_RESOLVER = InstrumentIdentityResolver()


def sort_operations(operations: Iterable[Operation]) -> list[Operation]:
    """Order operations by execution time; same-instant records keep feed order."""
    return sorted(operations, key=lambda op: op.time)


def normalize_operation(raw: RawOperation, figi: Optional[str] = None) -> Operation:
    kind = OperationKind.from_tag(raw.operation_type)
    return Operation(
        id=raw.id,
        figi=figi if figi is not None else raw.figi,
        kind=kind,
        time=raw.date,
        quantity=raw.quantity_executed,
        price=abs(raw.price),
        value=abs(raw.payment),
        commission=abs(raw.commission),
        currency=raw.currency,
    )


def normalize_operations(
    raw_operations: Iterable[Union[dict, RawOperation]],
    identifier_filter: Optional[str] = None,
    resolver: Optional[InstrumentIdentityResolver] = None,
) -> list[Operation]:
    """
    Filter, reclassify and normalize a raw operation feed.

    Parameters
    ----------
    raw_operations : iterable of dict or RawOperation
        Records in upstream order. Dicts are parsed with
        :meth:`RawOperation.from_payload`.
    identifier_filter : str, optional
        FIGI the caller asked about. Only records whose reclassified FIGI
        equals it are kept. ``None`` keeps every instrument.
    resolver : InstrumentIdentityResolver, optional
        Dual-listing table; defaults to the built-in TCS / TCSG pair.

    Returns
    -------
    list[Operation]
        Sorted ascending by time (stable).

    Raises
    ------
    MalformedRecordError
        If any record is malformed. Nothing is returned in that case.
    """
    resolver = resolver or _DEFAULT_RESOLVER

    # Parse everything up front so a malformed record fails the whole call.
    records = [
        raw if isinstance(raw, RawOperation) else RawOperation.from_payload(raw)
        for raw in raw_operations
    ]

    normalized: list[Operation] = []
    dropped_instrument = dropped_kind = dropped_status = 0

    for raw in records:
        figi = resolver.reclassify(raw.figi, raw.currency)

        if not resolver.matches(figi, identifier_filter):
            dropped_instrument += 1
            continue

        if OperationKind.from_tag(raw.operation_type) is OperationKind.UNRECOGNIZED:
            dropped_kind += 1
            continue

        if not OperationStatus.from_tag(raw.status).is_terminal:
            dropped_status += 1
            continue

        normalized.append(normalize_operation(raw, figi))

    logger.debug(
        f"Normalized {len(normalized)}/{len(records)} operations "
        f"(dropped: instrument={dropped_instrument}, kind={dropped_kind}, "
        f"status={dropped_status})"
    )
    return sort_operations(normalized)
