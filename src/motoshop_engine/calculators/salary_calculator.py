"""Salary calculator: salary terms + attendance summary -> slip breakdown.

Pure and deterministic. No I/O, no clock, no session.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Protocol

from motoshop_engine.calculators.types import AttendanceSummary, SalaryBreakdown, SalaryType


class SalaryTerms(Protocol):
    """Salary configuration fields the calculator reads.

    ``EmployeeSalaryConfig`` rows satisfy this protocol.
    """

    salary_type: str
    base_salary: Decimal
    standard_work_days_per_month: int
    standard_hours_per_day: Decimal
    overtime_rate_weekday: Decimal
    lunch_allowance: Decimal
    transport_allowance: Decimal
    phone_allowance: Decimal
    other_allowances: list[dict[str, Any]]
    social_insurance_rate: Decimal
    health_insurance_rate: Decimal
    unemployment_insurance_rate: Decimal


PRECISION = Decimal("0.0001")  # internal calculations
OUTPUT_PRECISION = Decimal("0.01")  # persisted money

HALF_DAY = Decimal("0.5")


def round_to_cents(amount: Decimal) -> Decimal:
    """Round amount to 2 decimal places."""
    return amount.quantize(OUTPUT_PRECISION, rounding=ROUND_HALF_UP)


def _internal(amount: Decimal) -> Decimal:
    return amount.quantize(PRECISION, rounding=ROUND_HALF_UP)


def _dec(value: Any, default: str = "0") -> Decimal:
    if value is None:
        return Decimal(default)
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class SalaryCalculator:
    """Computes one employee's earnings, deductions and net pay.

    work_days = regular + paid_leave + 0.5 * (check_in_only + check_out_only)

    Base earnings:
    - monthly: base_salary * min(work_days / standard_days, 1)
    - daily:   base_salary * work_days
    - hourly:  base_salary * regular_hours

    Overtime is paid at base_salary / standard_days / standard_hours per hour
    times the overtime multiplier. Statutory insurance is charged on
    base_salary, not gross. Monthly staff lose one day's pay per unpaid
    leave day, never more than base_salary in total.
    """

    def calculate(self, terms: SalaryTerms, attendance: AttendanceSummary) -> SalaryBreakdown:
        base_salary = _dec(terms.base_salary)
        standard_days = _dec(terms.standard_work_days_per_month, "26")
        standard_hours = _dec(terms.standard_hours_per_day, "8")
        salary_type = SalaryType(terms.salary_type)

        regular_hours = _dec(attendance.total_regular_hours)
        overtime_hours = _dec(attendance.total_overtime_hours)

        work_days = (
            Decimal(attendance.regular_days)
            + Decimal(attendance.paid_leave_days)
            + HALF_DAY * (attendance.check_in_only_days + attendance.check_out_only_days)
        )
        leave_days = Decimal(attendance.paid_leave_days + attendance.unpaid_leave_days)
        absent_days = Decimal(attendance.absent_days + attendance.unpaid_leave_days)

        # Earnings
        if salary_type == SalaryType.MONTHLY:
            proration = min(work_days / standard_days, Decimal("1"))
            base_amount = _internal(base_salary * proration)
        elif salary_type == SalaryType.DAILY:
            base_amount = _internal(base_salary * work_days)
        else:
            base_amount = _internal(base_salary * regular_hours)

        hourly_rate = base_salary / standard_days / standard_hours
        overtime_multiplier = _dec(terms.overtime_rate_weekday, "1.5")
        overtime_amount = _internal(overtime_hours * hourly_rate * overtime_multiplier)

        lunch = _dec(terms.lunch_allowance)
        transport = _dec(terms.transport_allowance)
        phone = _dec(terms.phone_allowance)
        # other_allowances are recorded in the details only
        allowances = lunch + transport + phone

        gross = base_amount + overtime_amount + allowances

        # Deductions
        social_rate = _dec(terms.social_insurance_rate)
        health_rate = _dec(terms.health_insurance_rate)
        unemployment_rate = _dec(terms.unemployment_insurance_rate)

        social = _internal(base_salary * social_rate)
        health = _internal(base_salary * health_rate)
        unemployment = _internal(base_salary * unemployment_rate)

        absence = Decimal("0")
        if salary_type == SalaryType.MONTHLY:
            daily_rate = base_salary / standard_days
            absence = min(_internal(daily_rate * attendance.unpaid_leave_days), base_salary)

        # Round components first so the persisted totals add up exactly
        base_out = round_to_cents(base_amount)
        overtime_out = round_to_cents(overtime_amount)
        allowances_out = round_to_cents(allowances)
        gross_out = base_out + overtime_out + allowances_out

        social_out = round_to_cents(social)
        health_out = round_to_cents(health)
        unemployment_out = round_to_cents(unemployment)
        absence_out = round_to_cents(absence)
        deductions_out = social_out + health_out + unemployment_out + absence_out

        return SalaryBreakdown(
            total_work_days=work_days,
            total_regular_hours=regular_hours,
            total_overtime_hours=overtime_hours,
            total_leave_days=leave_days,
            total_absent_days=absent_days,
            base_salary_amount=base_out,
            attendance_earnings=base_out,
            overtime_earnings=overtime_out,
            allowances_amount=allowances_out,
            gross_pay=gross_out,
            social_insurance_deduction=social_out,
            health_insurance_deduction=health_out,
            unemployment_insurance_deduction=unemployment_out,
            absence_deduction=absence_out,
            total_deductions=deductions_out,
            net_pay=gross_out - deductions_out,
            earnings_details={
                "lunch_allowance": str(round_to_cents(lunch)),
                "transport_allowance": str(round_to_cents(transport)),
                "phone_allowance": str(round_to_cents(phone)),
            },
            deductions_details={
                "social_insurance_rate": str(social_rate),
                "health_insurance_rate": str(health_rate),
                "unemployment_insurance_rate": str(unemployment_rate),
            },
            allowances_details=[
                {"name": str(item["name"]), "amount": str(_dec(item.get("amount")))}
                for item in (terms.other_allowances or [])
            ],
        )


def calculate_salary(terms: SalaryTerms, attendance: AttendanceSummary) -> SalaryBreakdown:
    """Module-level shortcut for ``SalaryCalculator().calculate``."""
    return SalaryCalculator().calculate(terms, attendance)
