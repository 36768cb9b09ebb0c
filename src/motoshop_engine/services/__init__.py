"""Payroll workflow services."""

from motoshop_engine.services.activity_log import ActivityLogger
from motoshop_engine.services.attendance import AttendanceAggregator, AttendanceSource
from motoshop_engine.services.payroll_service import (
    GenerationError,
    GenerationResult,
    PayrollService,
)
from motoshop_engine.services.salary_config_service import SalaryConfigService
from motoshop_engine.services.state_machine import (
    InvalidTransitionError,
    PayrollPeriodStateMachine,
    PayrollSlipStateMachine,
    PeriodStatus,
    SlipStatus,
)

__all__ = [
    "ActivityLogger",
    "AttendanceAggregator",
    "AttendanceSource",
    "GenerationError",
    "GenerationResult",
    "InvalidTransitionError",
    "PayrollPeriodStateMachine",
    "PayrollService",
    "PayrollSlipStateMachine",
    "PeriodStatus",
    "SalaryConfigService",
    "SlipStatus",
]
