"""Type definitions for the salary calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any


class SalaryType(str, Enum):
    """How base salary is earned."""

    MONTHLY = "monthly"
    DAILY = "daily"
    HOURLY = "hourly"


class AttendanceType(str, Enum):
    """Attendance classification of a single work date."""

    REGULAR = "regular"
    CHECK_IN_ONLY = "check_in_only"
    CHECK_OUT_ONLY = "check_out_only"
    LEAVE_PAID = "leave_paid"
    LEAVE_UNPAID = "leave_unpaid"
    ABSENT = "absent"


@dataclass(frozen=True)
class AttendanceSummary:
    """Attendance totals for one employee in one period."""

    total_days: int = 0
    regular_days: int = 0
    check_in_only_days: int = 0
    check_out_only_days: int = 0
    paid_leave_days: int = 0
    unpaid_leave_days: int = 0
    absent_days: int = 0
    total_regular_hours: Decimal = Decimal("0")
    total_overtime_hours: Decimal = Decimal("0")


@dataclass(frozen=True)
class SalaryBreakdown:
    """Full earnings/deductions breakdown for one slip.

    Money fields are rounded to cents; ``to_slip_values`` returns them keyed
    by the slip column they populate.
    """

    # Attendance
    total_work_days: Decimal
    total_regular_hours: Decimal
    total_overtime_hours: Decimal
    total_leave_days: Decimal
    total_absent_days: Decimal

    # Earnings
    base_salary_amount: Decimal
    attendance_earnings: Decimal
    overtime_earnings: Decimal
    allowances_amount: Decimal
    gross_pay: Decimal

    # Deductions
    social_insurance_deduction: Decimal
    health_insurance_deduction: Decimal
    unemployment_insurance_deduction: Decimal
    absence_deduction: Decimal
    total_deductions: Decimal

    net_pay: Decimal

    earnings_details: dict[str, Any] = field(default_factory=dict)
    deductions_details: dict[str, Any] = field(default_factory=dict)
    allowances_details: list[dict[str, Any]] = field(default_factory=list)

    def to_slip_values(self) -> dict[str, Any]:
        zero = Decimal("0.00")
        return {
            "total_work_days": self.total_work_days,
            "total_regular_hours": self.total_regular_hours,
            "total_overtime_hours": self.total_overtime_hours,
            "total_leave_days": self.total_leave_days,
            "total_absent_days": self.total_absent_days,
            "total_late_minutes": 0,
            "base_salary_amount": self.base_salary_amount,
            "attendance_earnings": self.attendance_earnings,
            "overtime_earnings": self.overtime_earnings,
            "bonus_amount": zero,
            "allowances_amount": self.allowances_amount,
            "other_earnings": zero,
            "gross_pay": self.gross_pay,
            "social_insurance_deduction": self.social_insurance_deduction,
            "health_insurance_deduction": self.health_insurance_deduction,
            "unemployment_insurance_deduction": self.unemployment_insurance_deduction,
            "tax_deduction": zero,
            "advance_deduction": zero,
            "absence_deduction": self.absence_deduction,
            "late_deduction": zero,
            "other_deductions": zero,
            "total_deductions": self.total_deductions,
            "net_pay": self.net_pay,
            "earnings_details": dict(self.earnings_details),
            "deductions_details": dict(self.deductions_details),
            "allowances_details": list(self.allowances_details),
        }
