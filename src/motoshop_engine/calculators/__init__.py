"""Salary calculation."""

from motoshop_engine.calculators.salary_calculator import (
    SalaryCalculator,
    SalaryTerms,
    calculate_salary,
    round_to_cents,
)
from motoshop_engine.calculators.types import (
    AttendanceSummary,
    AttendanceType,
    SalaryBreakdown,
    SalaryType,
)

__all__ = [
    "AttendanceSummary",
    "AttendanceType",
    "SalaryBreakdown",
    "SalaryCalculator",
    "SalaryTerms",
    "SalaryType",
    "calculate_salary",
    "round_to_cents",
]
