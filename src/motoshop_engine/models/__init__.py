"""ORM models for the loyalty and payroll engines."""

from motoshop_engine.models.activity import ActivityLog
from motoshop_engine.models.base import (
    Base,
    TimestampMixin,
    UpdatedAtMixin,
    as_naive_utc,
    utcnow,
)
from motoshop_engine.models.loyalty import (
    CustomerLoyaltyAccount,
    LoyaltyPointTransaction,
    LoyaltyRuleVersion,
    LoyaltyTier,
    LoyaltyTierHistory,
)
from motoshop_engine.models.payroll import (
    AttendanceRecord,
    EmployeeSalaryConfig,
    PayrollAdjustment,
    PayrollPeriod,
    PayrollSlip,
)
from motoshop_engine.models.people import Customer, Employee

__all__ = [
    "ActivityLog",
    "AttendanceRecord",
    "Base",
    "Customer",
    "CustomerLoyaltyAccount",
    "Employee",
    "EmployeeSalaryConfig",
    "LoyaltyPointTransaction",
    "LoyaltyRuleVersion",
    "LoyaltyTier",
    "LoyaltyTierHistory",
    "PayrollAdjustment",
    "PayrollPeriod",
    "PayrollSlip",
    "TimestampMixin",
    "UpdatedAtMixin",
    "as_naive_utc",
    "utcnow",
]
