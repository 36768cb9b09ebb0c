"""Loyalty rule version, tier, account and ledger models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from motoshop_engine.models.base import Base, TimestampMixin, UpdatedAtMixin, utcnow

if TYPE_CHECKING:
    from motoshop_engine.models.people import Customer


# ===== Rules & Tiers =====


class LoyaltyRuleVersion(Base, TimestampMixin):
    """Versioned loyalty policy. Immutable once superseded."""

    __tablename__ = "loyalty_rule_version"

    rule_version_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    points_per_currency: Mapped[Decimal] = mapped_column(Numeric(12, 6), nullable=False)
    earning_round_mode: Mapped[str] = mapped_column(String, nullable=False, default="floor")
    redemption_rate: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    max_redemption_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("50")
    )
    min_redemption_points: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    allow_tier_downgrade: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tier_evaluation_basis: Mapped[str] = mapped_column(
        String, nullable=False, default="lifetime_points"
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    effective_from: Mapped[datetime] = mapped_column(DateTime(), nullable=False, default=utcnow)
    effective_to: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "earning_round_mode IN ('floor', 'round', 'ceil')",
            name="loyalty_rule_round_mode_check",
        ),
        CheckConstraint(
            "tier_evaluation_basis IN ('lifetime_points', 'total_spend')",
            name="loyalty_rule_basis_check",
        ),
        CheckConstraint("redemption_rate > 0", name="loyalty_rule_redemption_rate_check"),
        CheckConstraint(
            "max_redemption_percent >= 0 AND max_redemption_percent <= 100",
            name="loyalty_rule_max_percent_check",
        ),
    )


class LoyaltyTier(Base, TimestampMixin, UpdatedAtMixin):
    """Named loyalty rank with thresholds and an earning multiplier."""

    __tablename__ = "loyalty_tier"

    tier_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    code: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_total_spend: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    points_multiplier: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("1")
    )
    benefits: Mapped[list[dict[str, str]]] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    __table_args__ = (
        CheckConstraint("points_multiplier >= 0", name="loyalty_tier_multiplier_check"),
        CheckConstraint(
            "status IN ('active', 'disabled', 'retired')",
            name="loyalty_tier_status_check",
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def threshold_for(self, basis: str) -> Decimal:
        """Threshold on the given evaluation basis."""
        if basis == "total_spend":
            return Decimal(self.min_total_spend or 0)
        return Decimal(self.min_points or 0)


# ===== Accounts & Ledger =====


class CustomerLoyaltyAccount(Base, TimestampMixin, UpdatedAtMixin):
    """Running loyalty balance for one customer."""

    __tablename__ = "customer_loyalty_account"

    account_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    customer_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("customer.customer_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    current_tier_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("loyalty_tier.tier_id"),
        nullable=True,
    )
    points_balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points_earned_lifetime: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points_redeemed_lifetime: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_spend: Mapped[Decimal] = mapped_column(
        Numeric(16, 2), nullable=False, default=Decimal("0")
    )
    tier_updated_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)

    __table_args__ = (
        CheckConstraint("points_balance >= 0", name="loyalty_account_balance_check"),
    )

    # Relationships
    customer: Mapped[Customer] = relationship(back_populates="loyalty_account")
    current_tier: Mapped[LoyaltyTier | None] = relationship()


class LoyaltyPointTransaction(Base, TimestampMixin):
    """Append-only points ledger row."""

    __tablename__ = "loyalty_point_transaction"

    transaction_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    account_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("customer_loyalty_account.account_id", ondelete="CASCADE"),
        nullable=False,
    )
    transaction_type: Mapped[str] = mapped_column(String, nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    points_balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    reference_type: Mapped[str | None] = mapped_column(String, nullable=True)
    reference_id: Mapped[str | None] = mapped_column(String, nullable=True)
    rule_version_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("loyalty_rule_version.rule_version_id"),
        nullable=True,
    )
    reversed_transaction_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("loyalty_point_transaction.transaction_id"),
        nullable=True,
    )
    order_amount: Mapped[Decimal | None] = mapped_column(Numeric(16, 2), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "transaction_type IN ('earn', 'redeem', 'adjust', 'reverse')",
            name="loyalty_txn_type_check",
        ),
        CheckConstraint("points_balance_after >= 0", name="loyalty_txn_balance_check"),
        Index("ix_loyalty_txn_reference", "account_id", "reference_type", "reference_id"),
    )


class LoyaltyTierHistory(Base, TimestampMixin):
    """Append-only record of tier changes."""

    __tablename__ = "loyalty_tier_history"

    tier_history_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    account_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("customer_loyalty_account.account_id", ondelete="CASCADE"),
        nullable=False,
    )
    old_tier_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("loyalty_tier.tier_id"),
        nullable=True,
    )
    new_tier_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("loyalty_tier.tier_id"),
        nullable=False,
    )
    change_reason: Mapped[str] = mapped_column(String, nullable=False)
    triggered_by_transaction_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("loyalty_point_transaction.transaction_id"),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint(
            "change_reason IN ('earned_points', 'downgrade')",
            name="loyalty_tier_history_reason_check",
        ),
    )
