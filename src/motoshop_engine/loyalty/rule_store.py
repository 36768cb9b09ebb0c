"""Versioned loyalty rule store."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from motoshop_engine.config import get_settings
from motoshop_engine.errors import NotFoundError
from motoshop_engine.models import LoyaltyRuleVersion, as_naive_utc, utcnow
from motoshop_engine.schemas import RuleVersionCreate
from motoshop_engine.services.activity_log import ActivityLogger

logger = logging.getLogger(__name__)


class RuleVersionStore:
    """Reads and manages loyalty rule versions.

    At most one version is active at any instant. Activation deactivates
    every other version and stamps ``effective_to`` on it in the same
    unit of work.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.activity = ActivityLogger(session)

    async def get_active(self) -> LoyaltyRuleVersion:
        """Return the active version whose effective window covers now."""
        now = utcnow()
        result = await self.session.execute(
            select(LoyaltyRuleVersion)
            .where(
                LoyaltyRuleVersion.is_active.is_(True),
                LoyaltyRuleVersion.effective_from <= now,
                or_(
                    LoyaltyRuleVersion.effective_to.is_(None),
                    LoyaltyRuleVersion.effective_to >= now,
                ),
            )
            .order_by(LoyaltyRuleVersion.version_number.desc())
            .limit(1)
        )
        rules = result.scalar_one_or_none()
        if rules is None:
            raise NotFoundError("Loyalty rule version", message="No active loyalty rules found")
        return rules

    async def get(self, rule_version_id: UUID) -> LoyaltyRuleVersion:
        rules = await self.session.get(LoyaltyRuleVersion, rule_version_id)
        if rules is None:
            raise NotFoundError("Loyalty rule version", rule_version_id)
        return rules

    async def list_versions(self) -> list[LoyaltyRuleVersion]:
        """All versions, newest first."""
        result = await self.session.execute(
            select(LoyaltyRuleVersion).order_by(LoyaltyRuleVersion.version_number.desc())
        )
        return list(result.scalars().all())

    async def create(
        self,
        params: RuleVersionCreate,
        actor_user_id: UUID | None = None,
    ) -> LoyaltyRuleVersion:
        """Create the next sequential version, activating it if requested."""
        last = await self.session.execute(select(func.max(LoyaltyRuleVersion.version_number)))
        next_number = (last.scalar() or 0) + 1

        if params.is_active:
            await self._deactivate_all()

        min_points = params.min_redemption_points
        if min_points is None:
            min_points = get_settings().default_min_redemption_points

        rules = LoyaltyRuleVersion(
            version_number=next_number,
            points_per_currency=params.points_per_currency,
            earning_round_mode=params.earning_round_mode,
            redemption_rate=params.redemption_rate,
            max_redemption_percent=params.max_redemption_percent,
            min_redemption_points=min_points,
            allow_tier_downgrade=params.allow_tier_downgrade,
            tier_evaluation_basis=params.tier_evaluation_basis,
            is_active=params.is_active,
            effective_from=as_naive_utc(params.effective_from) or utcnow(),
            effective_to=as_naive_utc(params.effective_to),
            notes=params.notes,
            created_by=actor_user_id,
        )
        self.session.add(rules)
        await self.session.flush()

        logger.info(
            "Created loyalty rule version %s (active=%s)", next_number, params.is_active
        )
        self.activity.record(
            "loyalty_rule_version",
            rules.rule_version_id,
            "created",
            actor_user_id,
            {"version_number": next_number, "is_active": params.is_active},
        )
        return rules

    async def activate(
        self,
        rule_version_id: UUID,
        actor_user_id: UUID | None = None,
    ) -> LoyaltyRuleVersion:
        """Make the given version the only active one, effective now."""
        rules = await self.get(rule_version_id)

        await self._deactivate_all(exclude_id=rule_version_id)

        rules.is_active = True
        rules.effective_from = utcnow()
        rules.effective_to = None
        await self.session.flush()

        logger.info("Activated loyalty rule version %s", rules.version_number)
        self.activity.record(
            "loyalty_rule_version",
            rules.rule_version_id,
            "activated",
            actor_user_id,
            {"version_number": rules.version_number},
        )
        return rules

    async def _deactivate_all(self, exclude_id: UUID | None = None) -> None:
        stmt = select(LoyaltyRuleVersion).where(LoyaltyRuleVersion.is_active.is_(True))
        if exclude_id is not None:
            stmt = stmt.where(LoyaltyRuleVersion.rule_version_id != exclude_id)
        result = await self.session.execute(stmt.with_for_update())

        now = utcnow()
        for previous in result.scalars().all():
            previous.is_active = False
            previous.effective_to = now
            logger.info("Deactivated loyalty rule version %s", previous.version_number)
        await self.session.flush()
