"""Loyalty ledger service - points accrual, redemption, reversal and adjustment.

Every balance change appends an immutable ``LoyaltyPointTransaction`` with
the balance after the change, and updates the account in the same unit of
work. Reversals append negating rows; history is never rewritten.

Balances reconcile with the ledger:
    points_balance == points_earned_lifetime
                      - points_redeemed_lifetime
                      + sum(negative adjustments)
Positive adjustments are counted in ``points_earned_lifetime``.
"""

from __future__ import annotations

import logging
from decimal import ROUND_FLOOR, Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from motoshop_engine.config import Settings, get_settings
from motoshop_engine.errors import InvalidArgumentError, NotFoundError
from motoshop_engine.loyalty.rule_store import RuleVersionStore
from motoshop_engine.loyalty.tier_evaluator import TierEvaluator
from motoshop_engine.loyalty.types import (
    AdjustResult,
    CustomerLoyaltySummary,
    EarnResult,
    HistoryPage,
    RedeemResult,
    RedemptionPreview,
    ReversalResult,
    TierStatus,
    TierSummary,
    TransactionType,
    round_points,
)
from motoshop_engine.models import (
    Customer,
    CustomerLoyaltyAccount,
    LoyaltyPointTransaction,
    LoyaltyTier,
)
from motoshop_engine.services.activity_log import ActivityLogger

logger = logging.getLogger(__name__)

DEFAULT_ORDER_TYPE = "sales_order"


def _to_decimal(value: Decimal | int | float | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _reference_label(order_type: str, order_ref: str | None) -> str:
    if order_ref:
        return f"{order_type} #{order_ref[:8]}"
    return order_type


class LoyaltyService:
    """Customer-facing loyalty operations.

    Operations:
    - earn: accrue points for a paid order, then re-check the tier
    - calculate_redemption: read-only preview of redemption limits
    - redeem: spend points for a discount
    - reverse: undo every open ledger row for a cancelled order
    - adjust_points: admin correction, may not drive the balance negative
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.rule_store = RuleVersionStore(session)
        self.tier_evaluator = TierEvaluator(session, self.rule_store)
        self.activity = ActivityLogger(session)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def get_account(
        self, customer_id: UUID, for_update: bool = False
    ) -> CustomerLoyaltyAccount | None:
        stmt = select(CustomerLoyaltyAccount).where(
            CustomerLoyaltyAccount.customer_id == customer_id
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create_account(self, customer_id: UUID) -> CustomerLoyaltyAccount:
        """Load the customer's account, creating it on the lowest active tier."""
        account = await self.get_account(customer_id, for_update=True)
        if account is not None:
            return account

        customer = await self.session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)

        default_tier = await self._lowest_active_tier()
        account = CustomerLoyaltyAccount(
            customer_id=customer_id,
            current_tier_id=default_tier.tier_id if default_tier else None,
            points_balance=0,
            points_earned_lifetime=0,
            points_redeemed_lifetime=0,
            total_spend=Decimal("0"),
        )
        self.session.add(account)
        await self.session.flush()
        logger.info("Opened loyalty account for customer %s", customer_id)
        return account

    # ------------------------------------------------------------------
    # Earning
    # ------------------------------------------------------------------

    async def earn(
        self,
        customer_id: UUID,
        order_ref: str | None,
        amount: Decimal | int | str,
        actor_user_id: UUID | None = None,
        order_type: str = DEFAULT_ORDER_TYPE,
    ) -> EarnResult:
        """Earn points for an order amount.

        points = round(round(amount * points_per_currency) * tier_multiplier)
        using the rule version's rounding mode (floor by default).
        """
        amount = _to_decimal(amount)
        if amount < 0:
            raise InvalidArgumentError("Order amount cannot be negative")

        account = await self.get_or_create_account(customer_id)
        rules = await self.rule_store.get_active()
        tier = await self._current_tier(account)
        multiplier = Decimal(tier.points_multiplier) if tier is not None else Decimal("1")

        base_points = round_points(
            amount * Decimal(rules.points_per_currency), rules.earning_round_mode
        )
        points_earned = round_points(Decimal(base_points) * multiplier, rules.earning_round_mode)

        if points_earned <= 0:
            return EarnResult(
                points_earned=0,
                points_balance=account.points_balance,
                tier_multiplier=multiplier,
                transaction_id=None,
            )

        new_balance = account.points_balance + points_earned
        txn = LoyaltyPointTransaction(
            account_id=account.account_id,
            transaction_type=TransactionType.EARN.value,
            points=points_earned,
            points_balance_after=new_balance,
            reference_type=order_type,
            reference_id=order_ref,
            rule_version_id=rules.rule_version_id,
            order_amount=amount,
            reason=f"Earned from {_reference_label(order_type, order_ref)}",
            created_by=actor_user_id,
        )
        self.session.add(txn)

        account.points_balance = new_balance
        account.points_earned_lifetime += points_earned
        account.total_spend = Decimal(account.total_spend or 0) + amount
        await self.session.flush()

        evaluation = await self.tier_evaluator.evaluate_account(
            account, rules, txn.transaction_id
        )

        logger.info(
            "Customer %s earned %s points on %s (balance %s)",
            customer_id,
            points_earned,
            _reference_label(order_type, order_ref),
            new_balance,
        )
        return EarnResult(
            points_earned=points_earned,
            points_balance=new_balance,
            tier_multiplier=multiplier,
            transaction_id=txn.transaction_id,
            tier_upgraded=evaluation.upgraded,
            new_tier_name=evaluation.new_tier_name if evaluation.upgraded else None,
        )

    # ------------------------------------------------------------------
    # Redemption
    # ------------------------------------------------------------------

    async def calculate_redemption(
        self,
        customer_id: UUID,
        order_amount: Decimal | int | str,
        requested_points: int | None = None,
    ) -> RedemptionPreview:
        """Preview how many points may be redeemed on an order. Writes nothing."""
        order_amount = _to_decimal(order_amount)
        account = await self.get_account(customer_id)
        rules = await self.rule_store.get_active()

        if account is not None:
            balance = account.points_balance
            tier = await self._current_tier(account)
        else:
            balance = 0
            tier = await self._lowest_active_tier()

        redemption_rate = Decimal(rules.redemption_rate)
        max_percent = Decimal(rules.max_redemption_percent) / Decimal(100)

        max_discount = (order_amount * max_percent).to_integral_value(rounding=ROUND_FLOOR)
        max_points_from_order = int(
            (max_discount / redemption_rate).to_integral_value(rounding=ROUND_FLOOR)
        )
        max_redeemable = max(0, min(max_points_from_order, balance))

        allowed = None
        if requested_points is not None:
            allowed = rules.min_redemption_points <= requested_points <= max_redeemable

        return RedemptionPreview(
            points_available=balance,
            max_redeemable_points=max_redeemable,
            max_discount_amount=redemption_rate * max_redeemable,
            min_redemption_points=rules.min_redemption_points,
            redemption_rate=redemption_rate,
            tier_name=tier.name if tier is not None else self.settings.default_tier_name,
            tier_multiplier=(
                Decimal(tier.points_multiplier) if tier is not None else Decimal("1")
            ),
            requested_points_allowed=allowed,
        )

    async def redeem(
        self,
        customer_id: UUID,
        points: int,
        order_ref: str | None = None,
        order_type: str = DEFAULT_ORDER_TYPE,
        actor_user_id: UUID | None = None,
    ) -> RedeemResult:
        """Spend points for a discount. Tier is not re-evaluated."""
        account = await self.get_or_create_account(customer_id)
        rules = await self.rule_store.get_active()

        if points < rules.min_redemption_points:
            raise InvalidArgumentError(
                f"Minimum redemption is {rules.min_redemption_points} points"
            )
        if points > account.points_balance:
            raise InvalidArgumentError("Insufficient points balance")

        discount_amount = Decimal(rules.redemption_rate) * points
        new_balance = account.points_balance - points

        txn = LoyaltyPointTransaction(
            account_id=account.account_id,
            transaction_type=TransactionType.REDEEM.value,
            points=-points,
            points_balance_after=new_balance,
            reference_type=order_type,
            reference_id=order_ref,
            rule_version_id=rules.rule_version_id,
            order_amount=discount_amount,
            reason=f"Redeemed for {_reference_label(order_type, order_ref)}",
            created_by=actor_user_id,
        )
        self.session.add(txn)

        account.points_balance = new_balance
        account.points_redeemed_lifetime += points
        await self.session.flush()

        logger.info(
            "Customer %s redeemed %s points for %s (balance %s)",
            customer_id,
            points,
            discount_amount,
            new_balance,
        )
        return RedeemResult(
            discount_amount=discount_amount,
            points_redeemed=points,
            points_balance=new_balance,
            transaction_id=txn.transaction_id,
        )

    # ------------------------------------------------------------------
    # Reversal
    # ------------------------------------------------------------------

    async def reverse(
        self,
        customer_id: UUID,
        order_ref: str,
        order_type: str = DEFAULT_ORDER_TYPE,
        actor_user_id: UUID | None = None,
        reason: str = "Order cancelled",
    ) -> ReversalResult:
        """Negate every not-yet-reversed ledger row for an order.

        Idempotent: rows that already have a reversal are skipped, so a
        second call for the same order changes nothing.
        """
        account = await self.get_account(customer_id, for_update=True)
        if account is None:
            return ReversalResult(reversed_count=0, points_reversed=0, points_balance=0)

        result = await self.session.execute(
            select(LoyaltyPointTransaction)
            .where(
                LoyaltyPointTransaction.account_id == account.account_id,
                LoyaltyPointTransaction.reference_type == order_type,
                LoyaltyPointTransaction.reference_id == order_ref,
            )
            .order_by(LoyaltyPointTransaction.created_at.asc())
        )
        rows = list(result.scalars().all())

        already_reversed = {
            row.reversed_transaction_id
            for row in rows
            if row.transaction_type == TransactionType.REVERSE
        }
        # Refund redemptions before clawing back earnings
        pending = sorted(
            (
                row
                for row in rows
                if row.transaction_type != TransactionType.REVERSE
                and row.transaction_id not in already_reversed
            ),
            key=lambda row: row.points,
        )

        # Validate every step before staging any row
        balance = account.points_balance
        balances_after: list[int] = []
        for original in pending:
            balance -= original.points
            if balance < 0:
                raise InvalidArgumentError(
                    f"Reversing {_reference_label(order_type, order_ref)} would leave "
                    f"a negative balance; points were already spent"
                )
            balances_after.append(balance)

        created: list[LoyaltyPointTransaction] = []
        for original, balance_after in zip(pending, balances_after):
            reversal = LoyaltyPointTransaction(
                account_id=account.account_id,
                transaction_type=TransactionType.REVERSE.value,
                points=-original.points,
                points_balance_after=balance_after,
                reference_type=order_type,
                reference_id=order_ref,
                rule_version_id=original.rule_version_id,
                reversed_transaction_id=original.transaction_id,
                reason=f"Reversed: {reason}",
                created_by=actor_user_id,
            )
            self.session.add(reversal)
            created.append(reversal)

            if original.transaction_type == TransactionType.EARN:
                account.points_earned_lifetime -= original.points
            elif original.transaction_type == TransactionType.REDEEM:
                # original.points is negative for redemptions
                account.points_redeemed_lifetime += original.points

        if not created:
            return ReversalResult(
                reversed_count=0, points_reversed=0, points_balance=account.points_balance
            )

        points_reversed = balance - account.points_balance
        account.points_balance = balance
        await self.session.flush()

        logger.info(
            "Reversed %s loyalty transaction(s) for %s of customer %s (net %s points)",
            len(created),
            _reference_label(order_type, order_ref),
            customer_id,
            points_reversed,
        )
        self.activity.record(
            "customer_loyalty_account",
            account.account_id,
            "points_reversed",
            actor_user_id,
            {"order_type": order_type, "order_ref": order_ref, "points": points_reversed},
        )
        return ReversalResult(
            reversed_count=len(created),
            points_reversed=points_reversed,
            points_balance=balance,
            transaction_ids=tuple(r.transaction_id for r in created),
        )

    # ------------------------------------------------------------------
    # Manual adjustment
    # ------------------------------------------------------------------

    async def adjust_points(
        self,
        customer_id: UUID,
        points: int,
        reason: str,
        actor_user_id: UUID | None = None,
        adjustment_type: str = "manual",
    ) -> AdjustResult:
        """Add or remove points by hand.

        Positive adjustments count as earned points and may upgrade the tier.
        """
        if points == 0:
            raise InvalidArgumentError("Adjustment must be non-zero")
        if not reason or not reason.strip():
            raise InvalidArgumentError("Adjustment reason is required")

        account = await self.get_or_create_account(customer_id)
        new_balance = account.points_balance + points
        if new_balance < 0:
            raise InvalidArgumentError("Adjustment would result in negative balance")

        txn = LoyaltyPointTransaction(
            account_id=account.account_id,
            transaction_type=TransactionType.ADJUST.value,
            points=points,
            points_balance_after=new_balance,
            reason=f"[{adjustment_type}] {reason}",
            created_by=actor_user_id,
        )
        self.session.add(txn)

        account.points_balance = new_balance
        if points > 0:
            account.points_earned_lifetime += points
        await self.session.flush()

        upgraded = False
        new_tier_name = None
        if points > 0:
            rules = await self.rule_store.get_active()
            evaluation = await self.tier_evaluator.evaluate_account(
                account, rules, txn.transaction_id
            )
            upgraded = evaluation.upgraded
            new_tier_name = evaluation.new_tier_name if evaluation.upgraded else None

        logger.info(
            "Adjusted customer %s by %s points (%s, balance %s)",
            customer_id,
            points,
            adjustment_type,
            new_balance,
        )
        self.activity.record(
            "customer_loyalty_account",
            account.account_id,
            "points_adjusted",
            actor_user_id,
            {"points": points, "adjustment_type": adjustment_type, "reason": reason},
        )
        return AdjustResult(
            points_adjusted=points,
            points_balance=new_balance,
            transaction_id=txn.transaction_id,
            tier_upgraded=upgraded,
            new_tier_name=new_tier_name,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_customer_loyalty(self, customer_id: UUID) -> CustomerLoyaltySummary:
        """Account summary with progress towards the next tier."""
        account = await self.get_or_create_account(customer_id)
        customer = await self.session.get(Customer, customer_id)
        current = await self._current_tier(account)

        tiers = sorted(await self.get_tiers(), key=lambda t: t.min_points)
        if current is not None:
            next_tier = next((t for t in tiers if t.min_points > current.min_points), None)
        else:
            next_tier = tiers[0] if tiers else None

        points_to_next = None
        if next_tier is not None:
            points_to_next = max(0, next_tier.min_points - account.points_earned_lifetime)

        return CustomerLoyaltySummary(
            account_id=account.account_id,
            customer_id=account.customer_id,
            customer_name=customer.full_name,
            customer_phone=customer.phone,
            tier=(
                TierSummary(
                    tier_id=current.tier_id,
                    code=current.code,
                    name=current.name,
                    points_multiplier=Decimal(current.points_multiplier),
                    min_points=current.min_points,
                )
                if current is not None
                else None
            ),
            points_balance=account.points_balance,
            points_earned_lifetime=account.points_earned_lifetime,
            points_redeemed_lifetime=account.points_redeemed_lifetime,
            total_spend=Decimal(account.total_spend or 0),
            points_to_next_tier=points_to_next,
            next_tier_name=next_tier.name if next_tier is not None else None,
            tier_updated_at=account.tier_updated_at,
            created_at=account.created_at,
        )

    async def get_transaction_history(
        self, customer_id: UUID, page: int = 1, limit: int = 20
    ) -> HistoryPage:
        """Newest-first ledger page for a customer."""
        page = max(page, 1)
        account = await self.get_account(customer_id)
        if account is None:
            return HistoryPage(transactions=[], total=0, page=page, limit=limit)

        total = await self.session.scalar(
            select(func.count())
            .select_from(LoyaltyPointTransaction)
            .where(LoyaltyPointTransaction.account_id == account.account_id)
        )
        result = await self.session.execute(
            select(LoyaltyPointTransaction)
            .where(LoyaltyPointTransaction.account_id == account.account_id)
            .order_by(LoyaltyPointTransaction.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return HistoryPage(
            transactions=list(result.scalars().all()),
            total=total or 0,
            page=page,
            limit=limit,
        )

    async def get_tiers(self) -> list[LoyaltyTier]:
        """Active tiers in display order."""
        return await self.tier_evaluator.get_active_tiers()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _current_tier(self, account: CustomerLoyaltyAccount) -> LoyaltyTier | None:
        if account.current_tier_id is None:
            return None
        return await self.session.get(LoyaltyTier, account.current_tier_id)

    async def _lowest_active_tier(self) -> LoyaltyTier | None:
        result = await self.session.execute(
            select(LoyaltyTier)
            .where(LoyaltyTier.status == TierStatus.ACTIVE.value)
            .order_by(LoyaltyTier.min_points.asc(), LoyaltyTier.display_order.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()
