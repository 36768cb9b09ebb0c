"""Tests for the salary calculator."""

from decimal import Decimal

import pytest
from hypothesis import given, settings, strategies as st

from motoshop_engine.calculators import (
    AttendanceSummary,
    SalaryCalculator,
    calculate_salary,
    round_to_cents,
)
from motoshop_engine.models import EmployeeSalaryConfig


def make_terms(**overrides) -> EmployeeSalaryConfig:
    """Unsaved salary config with every field the calculator reads."""
    values = dict(
        salary_type="monthly",
        base_salary=Decimal("10000000"),
        standard_work_days_per_month=26,
        standard_hours_per_day=Decimal("8"),
        overtime_rate_weekday=Decimal("1.5"),
        lunch_allowance=Decimal("500000"),
        transport_allowance=Decimal("300000"),
        phone_allowance=Decimal("200000"),
        other_allowances=[],
        social_insurance_rate=Decimal("0.08"),
        health_insurance_rate=Decimal("0.015"),
        unemployment_insurance_rate=Decimal("0.01"),
    )
    values.update(overrides)
    return EmployeeSalaryConfig(**values)


class TestMonthlySalary:
    """Test monthly proration and deductions."""

    def test_half_month_prorates_base(self):
        """13 of 26 standard days earns exactly half the base salary."""
        result = calculate_salary(make_terms(), AttendanceSummary(total_days=13, regular_days=13))

        assert result.base_salary_amount == Decimal("5000000.00")
        assert result.attendance_earnings == result.base_salary_amount
        assert result.total_work_days == Decimal("13")

    def test_gross_and_net(self):
        """Gross adds allowances; insurance is charged on base salary."""
        result = calculate_salary(make_terms(), AttendanceSummary(total_days=13, regular_days=13))

        assert result.allowances_amount == Decimal("1000000.00")
        assert result.gross_pay == Decimal("6000000.00")
        assert result.social_insurance_deduction == Decimal("800000.00")
        assert result.health_insurance_deduction == Decimal("150000.00")
        assert result.unemployment_insurance_deduction == Decimal("100000.00")
        assert result.total_deductions == Decimal("1050000.00")
        assert result.net_pay == Decimal("4950000.00")

    def test_proration_capped_at_full_salary(self):
        """Working more than the standard days never pays more than base."""
        result = calculate_salary(make_terms(), AttendanceSummary(total_days=30, regular_days=30))

        assert result.base_salary_amount == Decimal("10000000.00")

    def test_half_days_for_one_sided_checks(self):
        """Check-in-only and check-out-only days count as half days."""
        attendance = AttendanceSummary(
            total_days=14,
            regular_days=10,
            check_in_only_days=2,
            check_out_only_days=2,
        )
        result = calculate_salary(make_terms(), attendance)

        assert result.total_work_days == Decimal("12")
        # 10,000,000 * 12 / 26
        assert result.base_salary_amount == Decimal("4615384.62")

    def test_paid_leave_counts_as_work(self):
        attendance = AttendanceSummary(total_days=26, regular_days=24, paid_leave_days=2)
        result = calculate_salary(make_terms(), attendance)

        assert result.base_salary_amount == Decimal("10000000.00")
        assert result.total_leave_days == Decimal("2")

    def test_overtime(self):
        """Overtime pays base/days/hours per hour times the multiplier."""
        attendance = AttendanceSummary(
            total_days=26,
            regular_days=26,
            total_regular_hours=Decimal("208"),
            total_overtime_hours=Decimal("10"),
        )
        result = calculate_salary(make_terms(), attendance)

        # 10,000,000 / 26 / 8 * 10 * 1.5
        assert result.overtime_earnings == Decimal("721153.85")
        assert result.gross_pay == Decimal("11721153.85")

    def test_unpaid_leave_deduction(self):
        attendance = AttendanceSummary(total_days=26, regular_days=24, unpaid_leave_days=2)
        result = calculate_salary(make_terms(), attendance)

        # 10,000,000 / 26 * 2
        assert result.absence_deduction == Decimal("769230.77")
        assert result.total_absent_days == Decimal("2")
        assert result.total_leave_days == Decimal("2")

    def test_full_month_unpaid_leave(self):
        """A whole month of unpaid leave: no base, one month's pay deducted."""
        attendance = AttendanceSummary(total_days=26, unpaid_leave_days=26)
        result = calculate_salary(make_terms(), attendance)

        assert result.base_salary_amount == Decimal("0.00")
        assert result.absence_deduction == Decimal("10000000.00")

    def test_absence_deduction_capped_at_base(self):
        attendance = AttendanceSummary(total_days=31, unpaid_leave_days=31)
        result = calculate_salary(make_terms(), attendance)

        assert result.absence_deduction == Decimal("10000000.00")

    def test_absent_days_include_unpaid_leave(self):
        attendance = AttendanceSummary(
            total_days=26, regular_days=22, absent_days=3, unpaid_leave_days=1
        )
        result = calculate_salary(make_terms(), attendance)

        assert result.total_absent_days == Decimal("4")


class TestOtherSalaryTypes:
    """Test daily and hourly salary types."""

    def test_daily_salary(self):
        terms = make_terms(salary_type="daily", base_salary=Decimal("300000"))
        attendance = AttendanceSummary(
            total_days=23, regular_days=20, paid_leave_days=1, unpaid_leave_days=2
        )
        result = calculate_salary(terms, attendance)

        assert result.base_salary_amount == Decimal("6300000.00")
        # No absence deduction outside monthly salaries
        assert result.absence_deduction == Decimal("0.00")

    def test_hourly_salary_uses_regular_hours(self):
        terms = make_terms(salary_type="hourly", base_salary=Decimal("50000"))
        attendance = AttendanceSummary(
            total_days=20, regular_days=20, total_regular_hours=Decimal("160")
        )
        result = calculate_salary(terms, attendance)

        assert result.base_salary_amount == Decimal("8000000.00")

    def test_unknown_salary_type_rejected(self):
        with pytest.raises(ValueError):
            calculate_salary(make_terms(salary_type="weekly"), AttendanceSummary())


class TestDetails:
    """Test the breakdown detail payloads."""

    def test_other_allowances_recorded_not_paid(self):
        terms = make_terms(other_allowances=[{"name": "Uniform", "amount": "150000"}])
        result = calculate_salary(terms, AttendanceSummary(total_days=26, regular_days=26))

        assert result.allowances_details == [{"name": "Uniform", "amount": "150000"}]
        assert result.allowances_amount == Decimal("1000000.00")

    def test_detail_payloads(self):
        result = calculate_salary(make_terms(), AttendanceSummary())

        assert result.earnings_details == {
            "lunch_allowance": "500000.00",
            "transport_allowance": "300000.00",
            "phone_allowance": "200000.00",
        }
        assert result.deductions_details["social_insurance_rate"] == "0.08"

    def test_slip_values_zero_unused_columns(self):
        values = calculate_salary(make_terms(), AttendanceSummary()).to_slip_values()

        assert values["bonus_amount"] == Decimal("0")
        assert values["tax_deduction"] == Decimal("0")
        assert values["total_late_minutes"] == 0
        assert values["net_pay"] == values["gross_pay"] - values["total_deductions"]


class TestRounding:
    def test_round_to_cents_half_up(self):
        assert round_to_cents(Decimal("1.005")) == Decimal("1.01")
        assert round_to_cents(Decimal("1.004")) == Decimal("1.00")
        assert round_to_cents(Decimal("-1.005")) == Decimal("-1.01")


days = st.integers(min_value=0, max_value=31)
hours = st.decimals(min_value=0, max_value=400, places=2, allow_nan=False, allow_infinity=False)
salaries = st.decimals(
    min_value=0, max_value=100_000_000, places=0, allow_nan=False, allow_infinity=False
)


@st.composite
def attendance_summaries(draw) -> AttendanceSummary:
    regular = draw(days)
    return AttendanceSummary(
        total_days=regular,
        regular_days=regular,
        check_in_only_days=draw(st.integers(0, 5)),
        check_out_only_days=draw(st.integers(0, 5)),
        paid_leave_days=draw(st.integers(0, 5)),
        unpaid_leave_days=draw(days),
        absent_days=draw(st.integers(0, 5)),
        total_regular_hours=draw(hours),
        total_overtime_hours=draw(hours),
    )


class TestCalculatorProperties:
    """Property-based checks over random attendance."""

    @given(base=salaries, attendance=attendance_summaries())
    @settings(max_examples=200)
    def test_deterministic(self, base, attendance):
        terms = make_terms(base_salary=base)
        calculator = SalaryCalculator()

        assert calculator.calculate(terms, attendance) == calculator.calculate(terms, attendance)

    @given(base=salaries, attendance=attendance_summaries())
    @settings(max_examples=200)
    def test_monthly_base_never_exceeds_salary(self, base, attendance):
        result = calculate_salary(make_terms(base_salary=base), attendance)

        assert Decimal("0") <= result.base_salary_amount <= round_to_cents(base)
        assert result.absence_deduction <= round_to_cents(base)

    @given(
        salary_type=st.sampled_from(["monthly", "daily", "hourly"]),
        base=salaries,
        attendance=attendance_summaries(),
    )
    @settings(max_examples=200)
    def test_totals_add_up(self, salary_type, base, attendance):
        result = calculate_salary(make_terms(salary_type=salary_type, base_salary=base), attendance)

        assert result.gross_pay == (
            result.base_salary_amount + result.overtime_earnings + result.allowances_amount
        )
        assert result.total_deductions == (
            result.social_insurance_deduction
            + result.health_insurance_deduction
            + result.unemployment_insurance_deduction
            + result.absence_deduction
        )
        assert result.net_pay == result.gross_pay - result.total_deductions
