"""Commission hold/release ledger.

Conversions are created ``held`` with a future ``hold_until`` at booking or
sale time. This module only ever moves them to ``available`` and stamps
``released_at``; it never changes ``commission_amount`` and never touches the
affiliate's denormalized ``total_commission``, which is incremented once at
sale time.
"""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from funnel_crm.domain.affiliates.db_models import AffiliateConversion
from funnel_crm.domain.affiliates.statuses import (
    COMMISSION_STATUS_AVAILABLE,
    COMMISSION_STATUS_HELD,
    can_transition,
)
from funnel_crm.domain.commissions.schemas import (
    CommissionStatusSummary,
    ForceReleaseResult,
    ReleaseResult,
)
from funnel_crm.domain.errors import InvalidStateError, NotFoundError
from funnel_crm.shared.datetimes import utcnow

logger = logging.getLogger(__name__)


def _payable():
    return AffiliateConversion.commission_amount > 0


def _ready_for_release(now: datetime):
    return (
        AffiliateConversion.commission_status == COMMISSION_STATUS_HELD,
        _payable(),
        AffiliateConversion.hold_until <= now,
    )


async def release_eligible_commissions(
    session: AsyncSession, *, now: datetime | None = None
) -> ReleaseResult:
    """Release every held commission whose hold period has passed.

    Safe to call repeatedly: rows already ``available`` are never matched again.
    """
    now = now or utcnow()
    eligible = (
        await session.execute(
            select(AffiliateConversion.id, AffiliateConversion.commission_amount).where(
                *_ready_for_release(now)
            )
        )
    ).all()

    if not eligible:
        return ReleaseResult(current_date=now)

    ids = [row.id for row in eligible]
    await session.execute(
        update(AffiliateConversion)
        .where(
            AffiliateConversion.id.in_(ids),
            AffiliateConversion.commission_status == COMMISSION_STATUS_HELD,
        )
        .values(commission_status=COMMISSION_STATUS_AVAILABLE, released_at=now)
        .execution_options(synchronize_session=False)
    )
    await session.commit()

    total_amount = sum((Decimal(row.commission_amount) for row in eligible), Decimal("0"))
    logger.info(
        "commissions_released",
        extra={"extra": {"released_count": len(ids), "released_amount": str(total_amount)}},
    )
    return ReleaseResult(
        released_count=len(ids),
        released_amount=total_amount,
        released_ids=ids,
        current_date=now,
    )


async def get_commission_status(
    session: AsyncSession, *, now: datetime | None = None
) -> CommissionStatusSummary:
    now = now or utcnow()
    held = (AffiliateConversion.commission_status == COMMISSION_STATUS_HELD, _payable())
    available = (AffiliateConversion.commission_status == COMMISSION_STATUS_AVAILABLE, _payable())

    ready_for_release = await session.scalar(
        select(func.count()).select_from(AffiliateConversion).where(*_ready_for_release(now))
    )
    held_count, held_amount = (
        await session.execute(
            select(
                func.count(AffiliateConversion.id),
                func.coalesce(func.sum(AffiliateConversion.commission_amount), 0),
            ).where(*held)
        )
    ).one()
    available_count, available_amount = (
        await session.execute(
            select(
                func.count(AffiliateConversion.id),
                func.coalesce(func.sum(AffiliateConversion.commission_amount), 0),
            ).where(*available)
        )
    ).one()

    return CommissionStatusSummary(
        ready_for_release=ready_for_release or 0,
        total_held=held_count,
        total_available=available_count,
        held_amount=Decimal(str(held_amount)),
        available_amount=Decimal(str(available_amount)),
        current_date=now,
    )


async def force_release_commission(
    session: AsyncSession, commission_id: str, *, now: datetime | None = None
) -> ForceReleaseResult:
    """Release one held commission immediately, ignoring ``hold_until``."""
    now = now or utcnow()
    commission = await session.get(AffiliateConversion, commission_id)
    if commission is None:
        raise NotFoundError(detail="Commission not found")

    if not can_transition(commission.commission_status, COMMISSION_STATUS_AVAILABLE):
        raise InvalidStateError(
            detail=(
                f"Commission is not in '{COMMISSION_STATUS_HELD}' status "
                f"(current: {commission.commission_status})"
            )
        )

    commission.commission_status = COMMISSION_STATUS_AVAILABLE
    commission.released_at = now
    await session.commit()

    logger.warning(
        "commission_force_released",
        extra={"extra": {"commission_id": commission_id, "amount": str(commission.commission_amount)}},
    )
    return ForceReleaseResult(
        message="Commission force-released successfully",
        commission_id=commission_id,
        released_at=now,
    )
