"""Payroll period, salary configuration, slip, adjustment and attendance models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from motoshop_engine.models.base import Base, TimestampMixin, UpdatedAtMixin

if TYPE_CHECKING:
    from motoshop_engine.models.people import Employee


def _money(default: bool = True) -> Any:
    if default:
        return mapped_column(Numeric(16, 2), nullable=False, default=Decimal("0"))
    return mapped_column(Numeric(16, 2), nullable=True)


def _quantity() -> Any:
    return mapped_column(Numeric(8, 2), nullable=False, default=Decimal("0"))


# ===== Periods =====


class PayrollPeriod(Base, TimestampMixin, UpdatedAtMixin):
    """One calendar-month payroll cycle."""

    __tablename__ = "payroll_period"

    payroll_period_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    period_code: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    period_name: Mapped[str] = mapped_column(String, nullable=False)
    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_month: Mapped[int] = mapped_column(Integer, nullable=False)
    period_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    period_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    confirmation_deadline: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    internal_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Audit stamps
    created_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    updated_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    published_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    finalized_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    finalize_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    paid_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String, nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("period_year", "period_month", name="payroll_period_year_month_unique"),
        CheckConstraint("period_month BETWEEN 1 AND 12", name="payroll_period_month_check"),
        CheckConstraint(
            "status IN ('draft', 'published', 'finalized', 'paid')",
            name="payroll_period_status_check",
        ),
        CheckConstraint(
            "period_end_date >= period_start_date", name="payroll_period_dates_check"
        ),
    )

    # Relationships
    slips: Mapped[list[PayrollSlip]] = relationship(back_populates="payroll_period")


# ===== Salary configuration =====


class EmployeeSalaryConfig(Base, TimestampMixin, UpdatedAtMixin):
    """Per-employee salary terms and statutory rates."""

    __tablename__ = "employee_salary_config"

    salary_config_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    employee_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    salary_type: Mapped[str] = mapped_column(String, nullable=False, default="monthly")
    base_salary: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    standard_work_days_per_month: Mapped[int] = mapped_column(
        Integer, nullable=False, default=26
    )
    standard_hours_per_day: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("8")
    )
    overtime_rate_weekday: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("1.5")
    )

    # Allowances
    lunch_allowance: Mapped[Decimal] = _money()
    transport_allowance: Mapped[Decimal] = _money()
    phone_allowance: Mapped[Decimal] = _money()
    other_allowances: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )

    # Statutory rates
    social_insurance_rate: Mapped[Decimal] = mapped_column(
        Numeric(6, 4), nullable=False, default=Decimal("0.08")
    )
    health_insurance_rate: Mapped[Decimal] = mapped_column(
        Numeric(6, 4), nullable=False, default=Decimal("0.015")
    )
    unemployment_insurance_rate: Mapped[Decimal] = mapped_column(
        Numeric(6, 4), nullable=False, default=Decimal("0.01")
    )

    effective_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    updated_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "salary_type IN ('monthly', 'daily', 'hourly')",
            name="salary_config_type_check",
        ),
        CheckConstraint("base_salary >= 0", name="salary_config_base_check"),
        CheckConstraint(
            "standard_work_days_per_month > 0", name="salary_config_work_days_check"
        ),
        CheckConstraint("standard_hours_per_day > 0", name="salary_config_hours_check"),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="salary_config")


# ===== Slips =====


class PayrollSlip(Base, TimestampMixin, UpdatedAtMixin):
    """One employee's computed pay for one period."""

    __tablename__ = "payroll_slip"

    payroll_slip_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    payroll_period_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payroll_period.payroll_period_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    salary_config_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employee_salary_config.salary_config_id"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")

    # Attendance totals
    total_work_days: Mapped[Decimal] = _quantity()
    total_regular_hours: Mapped[Decimal] = _quantity()
    total_overtime_hours: Mapped[Decimal] = _quantity()
    total_leave_days: Mapped[Decimal] = _quantity()
    total_absent_days: Mapped[Decimal] = _quantity()
    total_late_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Earnings
    base_salary_amount: Mapped[Decimal] = _money()
    attendance_earnings: Mapped[Decimal] = _money()
    overtime_earnings: Mapped[Decimal] = _money()
    bonus_amount: Mapped[Decimal] = _money()
    allowances_amount: Mapped[Decimal] = _money()
    other_earnings: Mapped[Decimal] = _money()
    gross_pay: Mapped[Decimal] = _money()

    # Deductions
    social_insurance_deduction: Mapped[Decimal] = _money()
    health_insurance_deduction: Mapped[Decimal] = _money()
    unemployment_insurance_deduction: Mapped[Decimal] = _money()
    tax_deduction: Mapped[Decimal] = _money()
    advance_deduction: Mapped[Decimal] = _money()
    absence_deduction: Mapped[Decimal] = _money()
    late_deduction: Mapped[Decimal] = _money()
    other_deductions: Mapped[Decimal] = _money()
    total_deductions: Mapped[Decimal] = _money()

    # Net and adjustments
    net_pay: Mapped[Decimal] = _money()
    adjustment_amount: Mapped[Decimal] = _money()
    adjustment_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    adjusted_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    adjusted_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)

    # Breakdown details
    earnings_details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    deductions_details: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )
    allowances_details: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    calculated_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)

    # Employee confirmation / dispute
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    confirmation_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_late_confirmation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    disputed_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    dispute_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    dispute_resolved_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    dispute_resolved_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    dispute_resolution: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Finalization / payment
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    finalized_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    paid_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "payroll_period_id", "employee_id", name="payroll_slip_period_employee_unique"
        ),
        CheckConstraint(
            "status IN ('draft', 'published', 'confirmed', 'disputed', 'finalized', 'paid')",
            name="payroll_slip_status_check",
        ),
    )

    # Relationships
    payroll_period: Mapped[PayrollPeriod] = relationship(back_populates="slips")
    adjustments: Mapped[list[PayrollAdjustment]] = relationship(
        back_populates="payroll_slip",
        order_by="PayrollAdjustment.created_at.desc()",
    )


class PayrollAdjustment(Base, TimestampMixin):
    """Immutable log of a manual change to a slip's net pay."""

    __tablename__ = "payroll_adjustment"

    payroll_adjustment_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    payroll_slip_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payroll_slip.payroll_slip_id", ondelete="CASCADE"),
        nullable=False,
    )
    adjustment_type: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    previous_net_pay: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    new_net_pay: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    adjusted_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "adjustment_type IN ('bonus', 'deduction', 'correction', 'allowance')",
            name="payroll_adjustment_type_check",
        ),
    )

    # Relationships
    payroll_slip: Mapped[PayrollSlip] = relationship(back_populates="adjustments")


# ===== Attendance =====


class AttendanceRecord(Base, TimestampMixin):
    """One employee's attendance for one work date."""

    __tablename__ = "attendance_record"

    attendance_record_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    employee_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    payroll_period_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payroll_period.payroll_period_id", ondelete="SET NULL"),
        nullable=True,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    attendance_type: Mapped[str] = mapped_column(String, nullable=False)
    regular_hours: Mapped[Decimal] = _quantity()
    overtime_hours: Mapped[Decimal] = _quantity()
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("employee_id", "work_date", name="attendance_employee_date_unique"),
        CheckConstraint(
            "attendance_type IN ('regular', 'check_in_only', 'check_out_only', "
            "'leave_paid', 'leave_unpaid', 'absent')",
            name="attendance_type_check",
        ),
    )
