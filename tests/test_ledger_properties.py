"""Property-based tests for loyalty ledger invariants.

Hypothesis drives random sequences of earn, redeem, adjust, reverse and
preview calls against a real database, each call in its own transaction,
and the account must reconcile with its ledger after every step.
"""

from __future__ import annotations

import asyncio

from hypothesis import HealthCheck, settings, strategies as st
from hypothesis.stateful import RuleBasedStateMachine, initialize, invariant, rule
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from motoshop_engine.database import unit_of_work
from motoshop_engine.errors import InvalidArgumentError
from motoshop_engine.loyalty import LoyaltyService
from motoshop_engine.models import (
    Base,
    Customer,
    CustomerLoyaltyAccount,
    LoyaltyPointTransaction,
    LoyaltyTier,
)

from tests.conftest import create_test_engine, make_rule_version, make_tier_ladder

ORDER_REFS = ["SO-1", "SO-2", "SO-3"]
LARGE_ORDER = 10_000_000


class LoyaltyLedgerMachine(RuleBasedStateMachine):
    """Random loyalty traffic for one customer under no-downgrade rules."""

    def __init__(self):
        super().__init__()
        self.loop = asyncio.new_event_loop()
        self.engine = create_test_engine()
        self.factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )
        self.customer_id = None
        self.highest_tier_floor = 0

    def run(self, coro):
        return self.loop.run_until_complete(coro)

    def attempt(self, operation):
        """Run one service call in its own transaction; refused calls roll back."""

        async def call():
            async with unit_of_work(self.factory) as session:
                return await operation(LoyaltyService(session))

        try:
            return self.run(call())
        except InvalidArgumentError:
            return None

    def snapshot(self):
        """Committed account, ledger rows and current tier, read in a fresh session."""
        if self.customer_id is None:
            return None, [], None

        async def load():
            async with self.factory() as session:
                account = (
                    await session.execute(
                        select(CustomerLoyaltyAccount).where(
                            CustomerLoyaltyAccount.customer_id == self.customer_id
                        )
                    )
                ).scalar_one_or_none()
                if account is None:
                    return None, [], None
                rows = (
                    await session.execute(
                        select(LoyaltyPointTransaction).where(
                            LoyaltyPointTransaction.account_id == account.account_id
                        )
                    )
                ).scalars().all()
                tier = await session.get(LoyaltyTier, account.current_tier_id)
                return account, list(rows), tier

        return self.run(load())

    def teardown(self):
        self.run(self.engine.dispose())
        self.loop.close()

    @initialize()
    def seed(self):
        async def setup():
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            async with unit_of_work(self.factory) as session:
                customer = Customer(full_name="Lan Vo", phone="0987654321")
                session.add(customer)
                session.add_all(make_tier_ladder().values())
                session.add(make_rule_version(allow_tier_downgrade=False))
                await session.flush()
                return customer.customer_id

        self.customer_id = self.run(setup())

    @rule(order_ref=st.sampled_from(ORDER_REFS), amount=st.integers(0, 3_000_000))
    def earn(self, order_ref, amount):
        self.attempt(lambda service: service.earn(self.customer_id, order_ref, amount))

    @rule(points=st.integers(1, 800), order_ref=st.sampled_from(ORDER_REFS))
    def redeem(self, points, order_ref):
        self.attempt(lambda service: service.redeem(self.customer_id, points, order_ref))

    @rule(points=st.integers(-500, 500).filter(bool))
    def adjust(self, points):
        self.attempt(
            lambda service: service.adjust_points(self.customer_id, points, "Counter correction")
        )

    @rule(order_ref=st.sampled_from(ORDER_REFS))
    def reverse(self, order_ref):
        self.attempt(lambda service: service.reverse(self.customer_id, order_ref))

    @rule(order_amount=st.integers(0, LARGE_ORDER))
    def preview(self, order_amount):
        preview = self.attempt(
            lambda service: service.calculate_redemption(self.customer_id, order_amount)
        )
        account, _, _ = self.snapshot()
        balance = account.points_balance if account is not None else 0

        assert preview.points_available == balance
        assert 0 <= preview.max_redeemable_points <= balance

    @invariant()
    def balance_reconciles_with_ledger(self):
        account, rows, _ = self.snapshot()
        if account is None:
            return

        negative_adjustments = sum(
            r.points for r in rows if r.transaction_type == "adjust" and r.points < 0
        )
        assert account.points_balance >= 0
        assert account.points_balance == sum(r.points for r in rows)
        assert account.points_balance == (
            account.points_earned_lifetime
            - account.points_redeemed_lifetime
            + negative_adjustments
        )

    @invariant()
    def tier_never_drops(self):
        _, _, tier = self.snapshot()
        if tier is None:
            return

        assert tier.min_points >= self.highest_tier_floor
        self.highest_tier_floor = tier.min_points

    @invariant()
    def redeemable_bounded_by_balance(self):
        if self.customer_id is None:
            return
        preview = self.attempt(
            lambda service: service.calculate_redemption(self.customer_id, LARGE_ORDER)
        )

        assert preview.max_redeemable_points <= preview.points_available


LoyaltyLedgerMachine.TestCase.settings = settings(
    max_examples=25,
    stateful_step_count=30,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)
TestLoyaltyLedgerStateful = LoyaltyLedgerMachine.TestCase
