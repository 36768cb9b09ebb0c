"""Pydantic schemas for admin inputs to the loyalty and payroll engines."""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from motoshop_engine.models.base import as_naive_utc, utcnow


# ============================================================================
# Loyalty schemas
# ============================================================================


class RuleVersionCreate(BaseModel):
    """Schema for creating a loyalty rule version."""

    points_per_currency: Decimal = Field(ge=0)
    earning_round_mode: Literal["floor", "round", "ceil"] = "floor"
    redemption_rate: Decimal = Field(ge=1)
    max_redemption_percent: Decimal = Field(default=Decimal("50"), ge=0, le=100)
    min_redemption_points: int | None = Field(default=None, ge=1)
    allow_tier_downgrade: bool = False
    tier_evaluation_basis: Literal["lifetime_points", "total_spend"] = "lifetime_points"
    is_active: bool = True
    effective_from: datetime | None = None
    effective_to: datetime | None = None
    notes: str | None = None

    @model_validator(mode="after")
    def effective_window_is_open(self) -> "RuleVersionCreate":
        if self.effective_to is None:
            return self
        effective_to = as_naive_utc(self.effective_to)
        if self.effective_from is not None and effective_to <= as_naive_utc(self.effective_from):
            raise ValueError("effective_to must be after effective_from")
        if self.is_active and effective_to <= utcnow():
            raise ValueError("an active rule version cannot end in the past")
        return self


class TierBenefit(BaseModel):
    """A single named tier benefit, e.g. ``free_wash: "monthly"``."""

    key: str = Field(min_length=1)
    value: str


class TierCreate(BaseModel):
    """Schema for creating a loyalty tier."""

    code: str = Field(min_length=1)
    name: str = Field(min_length=1)
    display_order: int = Field(ge=0)
    min_points: int = Field(ge=0)
    min_total_spend: Decimal = Field(default=Decimal("0"), ge=0)
    points_multiplier: Decimal = Field(ge=1, le=10)
    benefits: list[TierBenefit] = Field(default_factory=list)
    status: Literal["active", "disabled"] = "active"


class TierUpdate(BaseModel):
    """Schema for updating a loyalty tier. Unset fields are left alone."""

    name: str | None = Field(default=None, min_length=1)
    display_order: int | None = Field(default=None, ge=0)
    min_points: int | None = Field(default=None, ge=0)
    min_total_spend: Decimal | None = Field(default=None, ge=0)
    points_multiplier: Decimal | None = Field(default=None, ge=1, le=10)
    benefits: list[TierBenefit] | None = None
    status: Literal["active", "disabled"] | None = None


# ============================================================================
# Payroll schemas
# ============================================================================


class PayrollPeriodCreate(BaseModel):
    """Schema for creating a payroll period."""

    period_year: int = Field(ge=2000, le=2100)
    period_month: int = Field(ge=1, le=12)
    period_name: str | None = None
    confirmation_deadline: datetime | None = None
    notes: str | None = None


class PayrollPeriodUpdate(BaseModel):
    """Schema for updating a payroll period."""

    period_name: str | None = None
    confirmation_deadline: datetime | None = None
    notes: str | None = None
    internal_notes: str | None = None


class OtherAllowance(BaseModel):
    """Named allowance stored alongside the fixed lunch/transport/phone ones."""

    model_config = ConfigDict(from_attributes=True)

    name: str = Field(min_length=1)
    amount: Decimal = Field(ge=0)


class SalaryConfigCreate(BaseModel):
    """Schema for creating an employee salary configuration.

    Omitted standards and rates fall back to the configured defaults.
    """

    employee_id: UUID
    salary_type: Literal["monthly", "daily", "hourly"] = "monthly"
    base_salary: Decimal = Field(ge=0)
    standard_work_days_per_month: int | None = Field(default=None, ge=1, le=31)
    standard_hours_per_day: Decimal | None = Field(default=None, ge=1, le=24)
    overtime_rate_weekday: Decimal | None = Field(default=None, ge=1)
    lunch_allowance: Decimal = Field(default=Decimal("0"), ge=0)
    transport_allowance: Decimal = Field(default=Decimal("0"), ge=0)
    phone_allowance: Decimal = Field(default=Decimal("0"), ge=0)
    other_allowances: list[OtherAllowance] = Field(default_factory=list)
    social_insurance_rate: Decimal | None = Field(default=None, ge=0, le=1)
    health_insurance_rate: Decimal | None = Field(default=None, ge=0, le=1)
    unemployment_insurance_rate: Decimal | None = Field(default=None, ge=0, le=1)
    effective_from: date | None = None
    notes: str | None = None


class SalaryConfigUpdate(BaseModel):
    """Schema for updating an employee salary configuration."""

    salary_type: Literal["monthly", "daily", "hourly"] | None = None
    base_salary: Decimal | None = Field(default=None, ge=0)
    standard_work_days_per_month: int | None = Field(default=None, ge=1, le=31)
    standard_hours_per_day: Decimal | None = Field(default=None, ge=1, le=24)
    overtime_rate_weekday: Decimal | None = Field(default=None, ge=1)
    lunch_allowance: Decimal | None = Field(default=None, ge=0)
    transport_allowance: Decimal | None = Field(default=None, ge=0)
    phone_allowance: Decimal | None = Field(default=None, ge=0)
    other_allowances: list[OtherAllowance] | None = None
    social_insurance_rate: Decimal | None = Field(default=None, ge=0, le=1)
    health_insurance_rate: Decimal | None = Field(default=None, ge=0, le=1)
    unemployment_insurance_rate: Decimal | None = Field(default=None, ge=0, le=1)
    effective_from: date | None = None
    notes: str | None = None


class SlipAdjustmentCreate(BaseModel):
    """Schema for a manual payroll slip adjustment."""

    adjustment_type: Literal["bonus", "deduction", "correction", "allowance"]
    amount: Decimal
    reason: str = Field(min_length=1)

    @field_validator("amount")
    @classmethod
    def amount_not_zero(cls, v: Decimal) -> Decimal:
        if v == 0:
            raise ValueError("amount must be non-zero")
        return v
