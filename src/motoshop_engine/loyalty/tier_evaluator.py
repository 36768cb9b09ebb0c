"""Tier evaluation: picks the tier a customer qualifies for and applies it."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from motoshop_engine.loyalty.rule_store import RuleVersionStore
from motoshop_engine.loyalty.types import (
    TierChangeReason,
    TierEvaluation,
    TierEvaluationBasis,
    TierStatus,
)
from motoshop_engine.models import (
    CustomerLoyaltyAccount,
    LoyaltyRuleVersion,
    LoyaltyTier,
    LoyaltyTierHistory,
    utcnow,
)

logger = logging.getLogger(__name__)


def evaluation_metric(account: CustomerLoyaltyAccount, basis: str) -> Decimal:
    """Lifetime points earned or lifetime spend, depending on the basis."""
    if basis == TierEvaluationBasis.TOTAL_SPEND:
        return Decimal(account.total_spend or 0)
    return Decimal(account.points_earned_lifetime or 0)


def select_tier(
    metric: Decimal,
    tiers: Sequence[LoyaltyTier],
    basis: str = TierEvaluationBasis.LIFETIME_POINTS,
) -> LoyaltyTier | None:
    """Highest tier whose threshold the metric meets, else the lowest tier.

    Returns None only when there are no tiers at all.
    """
    if not tiers:
        return None
    ranked = sorted(tiers, key=lambda t: t.threshold_for(basis), reverse=True)
    for tier in ranked:
        if metric >= tier.threshold_for(basis):
            return tier
    return ranked[-1]


def is_upgrade(new_tier: LoyaltyTier, old_tier: LoyaltyTier | None, basis: str) -> bool:
    old_threshold = old_tier.threshold_for(basis) if old_tier is not None else Decimal("0")
    return new_tier.threshold_for(basis) > old_threshold


class TierEvaluator:
    """Re-checks a customer's tier after points are earned or added.

    Upgrades always apply. Downgrades apply only when the active rule
    version allows them; otherwise the current tier is kept.
    """

    def __init__(self, session: AsyncSession, rule_store: RuleVersionStore | None = None):
        self.session = session
        self.rule_store = rule_store or RuleVersionStore(session)

    async def get_active_tiers(self) -> list[LoyaltyTier]:
        result = await self.session.execute(
            select(LoyaltyTier)
            .where(LoyaltyTier.status == TierStatus.ACTIVE.value)
            .order_by(LoyaltyTier.display_order.asc())
        )
        return list(result.scalars().all())

    async def evaluate(
        self,
        customer_id: UUID,
        triggering_transaction_id: UUID | None = None,
    ) -> TierEvaluation:
        """Evaluate the tier of a customer's account, if the account exists."""
        result = await self.session.execute(
            select(CustomerLoyaltyAccount)
            .where(CustomerLoyaltyAccount.customer_id == customer_id)
            .with_for_update()
        )
        account = result.scalar_one_or_none()
        if account is None:
            return TierEvaluation()

        rules = await self.rule_store.get_active()
        return await self.evaluate_account(account, rules, triggering_transaction_id)

    async def evaluate_account(
        self,
        account: CustomerLoyaltyAccount,
        rules: LoyaltyRuleVersion,
        triggering_transaction_id: UUID | None = None,
    ) -> TierEvaluation:
        basis = rules.tier_evaluation_basis
        tiers = await self.get_active_tiers()
        new_tier = select_tier(evaluation_metric(account, basis), tiers, basis)

        if new_tier is None or new_tier.tier_id == account.current_tier_id:
            return TierEvaluation()

        old_tier = None
        if account.current_tier_id is not None:
            old_tier = await self.session.get(LoyaltyTier, account.current_tier_id)

        upgrade = is_upgrade(new_tier, old_tier, basis)
        if not upgrade and not rules.allow_tier_downgrade:
            return TierEvaluation()

        reason = TierChangeReason.EARNED_POINTS if upgrade else TierChangeReason.DOWNGRADE
        self.session.add(
            LoyaltyTierHistory(
                account_id=account.account_id,
                old_tier_id=account.current_tier_id,
                new_tier_id=new_tier.tier_id,
                change_reason=reason.value,
                triggered_by_transaction_id=triggering_transaction_id,
            )
        )
        account.current_tier_id = new_tier.tier_id
        account.tier_updated_at = utcnow()
        await self.session.flush()

        logger.info(
            "Customer %s moved from tier %s to %s (%s)",
            account.customer_id,
            old_tier.code if old_tier is not None else None,
            new_tier.code,
            reason.value,
        )
        return TierEvaluation(
            upgraded=upgrade,
            changed=True,
            new_tier_id=new_tier.tier_id,
            new_tier_name=new_tier.name,
        )
