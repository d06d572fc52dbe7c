from sqlalchemy.ext.asyncio import AsyncSession

from funnel_crm.domain.commissions import release_eligible_commissions


async def run_commission_release(session: AsyncSession) -> dict[str, int]:
    result = await release_eligible_commissions(session)
    return {
        "released": result.released_count,
        "released_amount_cents": int(result.released_amount * 100),
    }
