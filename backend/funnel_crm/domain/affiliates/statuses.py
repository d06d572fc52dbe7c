from __future__ import annotations

from typing import Final

COMMISSION_STATUS_HELD: Final[str] = "held"
COMMISSION_STATUS_AVAILABLE: Final[str] = "available"

COMMISSION_STATUSES: Final[tuple[str, ...]] = (
    COMMISSION_STATUS_HELD,
    COMMISSION_STATUS_AVAILABLE,
)

CONVERSION_TYPE_BOOKING: Final[str] = "booking"
CONVERSION_TYPE_SALE: Final[str] = "sale"

CONVERSION_TYPES: Final[tuple[str, ...]] = (
    CONVERSION_TYPE_BOOKING,
    CONVERSION_TYPE_SALE,
)

_ALLOWED_TRANSITIONS: Final[dict[str, set[str]]] = {
    COMMISSION_STATUS_HELD: {COMMISSION_STATUS_AVAILABLE},
    COMMISSION_STATUS_AVAILABLE: set(),
}


def is_valid_commission_status(value: str) -> bool:
    return value in COMMISSION_STATUSES


def can_transition(current: str, target: str) -> bool:
    return target in _ALLOWED_TRANSITIONS.get(current, set())


def default_commission_status() -> str:
    return COMMISSION_STATUS_HELD
