"""Type definitions for the loyalty engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal
from enum import Enum
from uuid import UUID


class TransactionType(str, Enum):
    """Ledger transaction types."""

    EARN = "earn"
    REDEEM = "redeem"
    ADJUST = "adjust"
    REVERSE = "reverse"


class TierEvaluationBasis(str, Enum):
    """Metric a customer's tier is evaluated on."""

    LIFETIME_POINTS = "lifetime_points"
    TOTAL_SPEND = "total_spend"


class RoundMode(str, Enum):
    """Rounding applied when converting spend to points."""

    FLOOR = "floor"
    ROUND = "round"
    CEIL = "ceil"


class TierChangeReason(str, Enum):
    EARNED_POINTS = "earned_points"
    DOWNGRADE = "downgrade"


class TierStatus(str, Enum):
    """Tier lifecycle. Retired tiers are kept for history but never assigned."""

    ACTIVE = "active"
    DISABLED = "disabled"
    RETIRED = "retired"


_ROUNDING = {
    RoundMode.FLOOR: ROUND_FLOOR,
    RoundMode.ROUND: ROUND_HALF_UP,
    RoundMode.CEIL: ROUND_CEILING,
}


def round_points(value: Decimal, mode: str = RoundMode.FLOOR) -> int:
    """Convert a fractional points amount to whole points."""
    rounding = _ROUNDING[RoundMode(mode)]
    return int(value.to_integral_value(rounding=rounding))


# ===== Results =====


@dataclass(frozen=True)
class TierEvaluation:
    """Outcome of a tier evaluation."""

    upgraded: bool = False
    changed: bool = False
    new_tier_id: UUID | None = None
    new_tier_name: str | None = None


@dataclass(frozen=True)
class EarnResult:
    """Result of earning points for an order.

    ``transaction_id`` is None when the amount was too small to earn
    anything; no ledger row is written in that case.
    """

    points_earned: int
    points_balance: int
    tier_multiplier: Decimal
    transaction_id: UUID | None
    tier_upgraded: bool = False
    new_tier_name: str | None = None


@dataclass(frozen=True)
class RedemptionPreview:
    """Read-only redemption limits for an order."""

    points_available: int
    max_redeemable_points: int
    max_discount_amount: Decimal
    min_redemption_points: int
    redemption_rate: Decimal
    tier_name: str
    tier_multiplier: Decimal
    requested_points_allowed: bool | None = None


@dataclass(frozen=True)
class RedeemResult:
    discount_amount: Decimal
    points_redeemed: int
    points_balance: int
    transaction_id: UUID


@dataclass(frozen=True)
class AdjustResult:
    points_adjusted: int
    points_balance: int
    transaction_id: UUID
    tier_upgraded: bool = False
    new_tier_name: str | None = None


@dataclass(frozen=True)
class ReversalResult:
    """Result of reversing every open ledger row for an order."""

    reversed_count: int
    points_reversed: int
    points_balance: int
    transaction_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class TierSummary:
    tier_id: UUID
    code: str
    name: str
    points_multiplier: Decimal
    min_points: int


@dataclass(frozen=True)
class CustomerLoyaltySummary:
    """Account view returned to the point-of-sale and customer screens."""

    account_id: UUID
    customer_id: UUID
    customer_name: str
    customer_phone: str | None
    tier: TierSummary | None
    points_balance: int
    points_earned_lifetime: int
    points_redeemed_lifetime: int
    total_spend: Decimal
    points_to_next_tier: int | None
    next_tier_name: str | None
    tier_updated_at: datetime | None
    created_at: datetime


@dataclass(frozen=True)
class HistoryPage:
    transactions: list
    total: int
    page: int
    limit: int


@dataclass
class LoyaltyStats:
    """Program-wide totals for the admin dashboard."""

    total_members: int = 0
    total_points_issued: int = 0
    total_points_redeemed: int = 0
    total_points_balance: int = 0
    members_by_tier: list[tuple[str, int]] = field(default_factory=list)
    recent_transactions: int = 0
