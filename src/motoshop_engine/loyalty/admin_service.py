"""Loyalty administration: tiers, rule versions, member lists and stats."""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from motoshop_engine.errors import ConflictError, NotFoundError
from motoshop_engine.loyalty.ledger_service import LoyaltyService
from motoshop_engine.loyalty.rule_store import RuleVersionStore
from motoshop_engine.loyalty.types import AdjustResult, LoyaltyStats, TierStatus
from motoshop_engine.models import (
    Customer,
    CustomerLoyaltyAccount,
    LoyaltyPointTransaction,
    LoyaltyRuleVersion,
    LoyaltyTier,
    LoyaltyTierHistory,
    utcnow,
)
from motoshop_engine.schemas import RuleVersionCreate, TierCreate, TierUpdate
from motoshop_engine.services.activity_log import ActivityLogger

logger = logging.getLogger(__name__)

RECENT_WINDOW = timedelta(days=30)


class LoyaltyAdminService:
    """Back-office operations on the loyalty program."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.rule_store = RuleVersionStore(session)
        self.ledger = LoyaltyService(session)
        self.activity = ActivityLogger(session)

    # ------------------------------------------------------------------
    # Tiers
    # ------------------------------------------------------------------

    async def list_tiers(self, include_inactive: bool = False) -> list[LoyaltyTier]:
        stmt = select(LoyaltyTier).order_by(LoyaltyTier.display_order.asc())
        if not include_inactive:
            stmt = stmt.where(LoyaltyTier.status == TierStatus.ACTIVE.value)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_tier(self, tier_id: UUID) -> LoyaltyTier:
        tier = await self.session.get(LoyaltyTier, tier_id)
        if tier is None:
            raise NotFoundError("Loyalty tier", tier_id)
        return tier

    async def create_tier(
        self, params: TierCreate, actor_user_id: UUID | None = None
    ) -> LoyaltyTier:
        """Create a tier. Tier codes are unique across all statuses."""
        existing = await self.session.execute(
            select(LoyaltyTier.tier_id).where(LoyaltyTier.code == params.code)
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(f"Tier code '{params.code}' already exists")

        tier = LoyaltyTier(
            code=params.code,
            name=params.name,
            display_order=params.display_order,
            min_points=params.min_points,
            min_total_spend=params.min_total_spend,
            points_multiplier=params.points_multiplier,
            benefits=[b.model_dump() for b in params.benefits],
            status=params.status,
        )
        self.session.add(tier)
        await self.session.flush()

        logger.info("Created loyalty tier %s", tier.code)
        self.activity.record(
            "loyalty_tier", tier.tier_id, "created", actor_user_id, {"code": tier.code}
        )
        return tier

    async def update_tier(
        self, tier_id: UUID, params: TierUpdate, actor_user_id: UUID | None = None
    ) -> LoyaltyTier:
        tier = await self.get_tier(tier_id)
        changes = params.model_dump(exclude_unset=True)
        if "benefits" in changes and changes["benefits"] is None:
            changes["benefits"] = []

        for field_name, value in changes.items():
            setattr(tier, field_name, value)
        await self.session.flush()

        logger.info("Updated loyalty tier %s: %s", tier.code, sorted(changes))
        self.activity.record(
            "loyalty_tier", tier.tier_id, "updated", actor_user_id, {"fields": sorted(changes)}
        )
        return tier

    async def retire_tier(self, tier_id: UUID, actor_user_id: UUID | None = None) -> LoyaltyTier:
        """Retire a tier. Refused while any account still sits on it."""
        tier = await self.get_tier(tier_id)
        members = await self.session.scalar(
            select(func.count())
            .select_from(CustomerLoyaltyAccount)
            .where(CustomerLoyaltyAccount.current_tier_id == tier_id)
        )
        if members:
            raise ConflictError(
                f"Tier '{tier.code}' still has {members} member(s) and cannot be retired"
            )

        tier.status = TierStatus.RETIRED.value
        await self.session.flush()

        logger.info("Retired loyalty tier %s", tier.code)
        self.activity.record("loyalty_tier", tier.tier_id, "retired", actor_user_id)
        return tier

    # ------------------------------------------------------------------
    # Rule versions
    # ------------------------------------------------------------------

    async def create_rule_version(
        self, params: RuleVersionCreate, actor_user_id: UUID | None = None
    ) -> LoyaltyRuleVersion:
        return await self.rule_store.create(params, actor_user_id)

    async def activate_rule_version(
        self, rule_version_id: UUID, actor_user_id: UUID | None = None
    ) -> LoyaltyRuleVersion:
        return await self.rule_store.activate(rule_version_id, actor_user_id)

    async def list_rule_versions(self) -> list[LoyaltyRuleVersion]:
        return await self.rule_store.list_versions()

    async def get_active_rules(self) -> LoyaltyRuleVersion:
        return await self.rule_store.get_active()

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    async def get_stats(self) -> LoyaltyStats:
        """Program totals plus member counts per tier."""
        totals = await self.session.execute(
            select(
                func.count(CustomerLoyaltyAccount.account_id),
                func.coalesce(func.sum(CustomerLoyaltyAccount.points_earned_lifetime), 0),
                func.coalesce(func.sum(CustomerLoyaltyAccount.points_redeemed_lifetime), 0),
                func.coalesce(func.sum(CustomerLoyaltyAccount.points_balance), 0),
            )
        )
        members, issued, redeemed, balance = totals.one()

        by_tier = await self.session.execute(
            select(LoyaltyTier.name, func.count(CustomerLoyaltyAccount.account_id))
            .join(
                CustomerLoyaltyAccount,
                CustomerLoyaltyAccount.current_tier_id == LoyaltyTier.tier_id,
                isouter=True,
            )
            .where(LoyaltyTier.status == TierStatus.ACTIVE.value)
            .group_by(LoyaltyTier.tier_id, LoyaltyTier.name, LoyaltyTier.display_order)
            .order_by(LoyaltyTier.display_order.asc())
        )

        recent = await self.session.scalar(
            select(func.count())
            .select_from(LoyaltyPointTransaction)
            .where(LoyaltyPointTransaction.created_at >= utcnow() - RECENT_WINDOW)
        )

        return LoyaltyStats(
            total_members=int(members),
            total_points_issued=int(issued),
            total_points_redeemed=int(redeemed),
            total_points_balance=int(balance),
            members_by_tier=[(name, int(count)) for name, count in by_tier.all()],
            recent_transactions=recent or 0,
        )

    async def list_members(
        self,
        tier_id: UUID | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[tuple[CustomerLoyaltyAccount, Customer]], int]:
        """Accounts with their customers, highest balance first."""
        page = max(page, 1)
        stmt = select(CustomerLoyaltyAccount, Customer).join(
            Customer, Customer.customer_id == CustomerLoyaltyAccount.customer_id
        )
        if tier_id is not None:
            stmt = stmt.where(CustomerLoyaltyAccount.current_tier_id == tier_id)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(Customer.full_name.ilike(pattern) | Customer.phone.ilike(pattern))

        total = await self.session.scalar(select(func.count()).select_from(stmt.subquery()))
        result = await self.session.execute(
            stmt.order_by(CustomerLoyaltyAccount.points_balance.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return [tuple(row) for row in result.all()], total or 0

    async def get_tier_history(self, customer_id: UUID) -> list[LoyaltyTierHistory]:
        account = await self.ledger.get_account(customer_id)
        if account is None:
            raise NotFoundError("Loyalty account", message="Customer has no loyalty account")
        result = await self.session.execute(
            select(LoyaltyTierHistory)
            .where(LoyaltyTierHistory.account_id == account.account_id)
            .order_by(LoyaltyTierHistory.created_at.desc())
        )
        return list(result.scalars().all())

    async def adjust_points(
        self,
        customer_id: UUID,
        points: int,
        reason: str,
        actor_user_id: UUID | None = None,
        adjustment_type: str = "manual",
    ) -> AdjustResult:
        return await self.ledger.adjust_points(
            customer_id, points, reason, actor_user_id, adjustment_type
        )
