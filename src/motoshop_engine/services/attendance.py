"""Attendance aggregation for payroll generation."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from motoshop_engine.calculators.types import AttendanceSummary, AttendanceType
from motoshop_engine.errors import InvalidArgumentError, NotFoundError
from motoshop_engine.models import AttendanceRecord, Employee, PayrollPeriod

logger = logging.getLogger(__name__)


class AttendanceSource(Protocol):
    """Anything payroll generation can pull attendance summaries from."""

    async def get_attendance_summary(
        self, period_id: UUID, employee_id: UUID
    ) -> AttendanceSummary: ...


class AttendanceAggregator:
    """Summarizes stored attendance records per (period, employee)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_attendance_summary(
        self, period_id: UUID, employee_id: UUID
    ) -> AttendanceSummary:
        result = await self.session.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.payroll_period_id == period_id,
                AttendanceRecord.employee_id == employee_id,
            )
        )
        records = list(result.scalars().all())

        counts = {kind: 0 for kind in AttendanceType}
        regular_hours = Decimal("0")
        overtime_hours = Decimal("0")
        for record in records:
            counts[AttendanceType(record.attendance_type)] += 1
            regular_hours += Decimal(record.regular_hours or 0)
            overtime_hours += Decimal(record.overtime_hours or 0)

        return AttendanceSummary(
            total_days=len(records),
            regular_days=counts[AttendanceType.REGULAR],
            check_in_only_days=counts[AttendanceType.CHECK_IN_ONLY],
            check_out_only_days=counts[AttendanceType.CHECK_OUT_ONLY],
            paid_leave_days=counts[AttendanceType.LEAVE_PAID],
            unpaid_leave_days=counts[AttendanceType.LEAVE_UNPAID],
            absent_days=counts[AttendanceType.ABSENT],
            total_regular_hours=regular_hours,
            total_overtime_hours=overtime_hours,
        )

    async def record_attendance(
        self,
        employee_id: UUID,
        work_date: date,
        attendance_type: str,
        regular_hours: Decimal | int | str = 0,
        overtime_hours: Decimal | int | str = 0,
        payroll_period_id: UUID | None = None,
        notes: str | None = None,
    ) -> AttendanceRecord:
        """Create or replace the record for (employee, work_date).

        Without an explicit period the record is attached to the period of
        the work date's month, if one exists.
        """
        try:
            kind = AttendanceType(attendance_type)
        except ValueError:
            raise InvalidArgumentError(f"Unknown attendance type '{attendance_type}'") from None

        regular = Decimal(str(regular_hours))
        overtime = Decimal(str(overtime_hours))
        if regular < 0 or overtime < 0:
            raise InvalidArgumentError("Attendance hours cannot be negative")

        if await self.session.get(Employee, employee_id) is None:
            raise NotFoundError("Employee", employee_id)

        if payroll_period_id is None:
            payroll_period_id = await self.session.scalar(
                select(PayrollPeriod.payroll_period_id).where(
                    PayrollPeriod.period_year == work_date.year,
                    PayrollPeriod.period_month == work_date.month,
                )
            )

        result = await self.session.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.work_date == work_date,
            )
        )
        record = result.scalar_one_or_none()
        if record is None:
            record = AttendanceRecord(employee_id=employee_id, work_date=work_date)
            self.session.add(record)

        record.payroll_period_id = payroll_period_id
        record.attendance_type = kind.value
        record.regular_hours = regular
        record.overtime_hours = overtime
        record.notes = notes
        await self.session.flush()

        logger.debug(
            "Recorded %s attendance for employee %s on %s", kind.value, employee_id, work_date
        )
        return record
