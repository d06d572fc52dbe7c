from funnel_crm.domain.commissions.schemas import (
    CommissionStatusSummary,
    ForceReleaseResult,
    ReleaseResult,
)
from funnel_crm.domain.commissions.service import (
    force_release_commission,
    get_commission_status,
    release_eligible_commissions,
)

__all__ = [
    "CommissionStatusSummary",
    "ForceReleaseResult",
    "ReleaseResult",
    "force_release_commission",
    "get_commission_status",
    "release_eligible_commissions",
]
