"""Payroll service - period lifecycle, slip generation and slip workflow."""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from motoshop_engine.calculators import SalaryCalculator
from motoshop_engine.config import Settings, get_settings
from motoshop_engine.errors import (
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
)
from motoshop_engine.models import (
    Employee,
    EmployeeSalaryConfig,
    PayrollAdjustment,
    PayrollPeriod,
    PayrollSlip,
    as_naive_utc,
    utcnow,
)
from motoshop_engine.schemas import (
    PayrollPeriodCreate,
    PayrollPeriodUpdate,
    SlipAdjustmentCreate,
)
from motoshop_engine.services.activity_log import ActivityLogger
from motoshop_engine.services.attendance import AttendanceAggregator, AttendanceSource
from motoshop_engine.services.state_machine import (
    PayrollPeriodStateMachine,
    PayrollSlipStateMachine,
    PeriodStatus,
    SlipStatus,
)

logger = logging.getLogger(__name__)

ADJUSTABLE_PERIOD_STATUSES = (
    PeriodStatus.DRAFT,
    PeriodStatus.PUBLISHED,
    PeriodStatus.FINALIZED,
)


@dataclass(frozen=True)
class GenerationError:
    """Why one employee's slip could not be generated."""

    employee_id: UUID
    error: str


@dataclass
class GenerationResult:
    """Outcome of a payroll generation run."""

    period_id: UUID
    generated_slips: int = 0
    slip_ids: list[UUID] = field(default_factory=list)
    errors: list[GenerationError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0


class PayrollService:
    """Service for managing the monthly payroll lifecycle.

    Operations:
    - generate_payroll: compute (or recompute) every active employee's slip
    - publish_period: draft → published, slips go out for confirmation
    - confirm_slip / dispute_slip: employee response to a published slip
    - resolve_dispute: disputed → published, optionally with a correction
    - adjust_slip: manual net-pay change with a before/after log row
    - finalize_period: published → finalized, override needed for unconfirmed slips
    - mark_paid: finalized → paid
    """

    def __init__(
        self,
        session: AsyncSession,
        attendance: AttendanceSource | None = None,
        calculator: SalaryCalculator | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.attendance = attendance or AttendanceAggregator(session)
        self.calculator = calculator or SalaryCalculator()
        self.settings = settings or get_settings()
        self.activity = ActivityLogger(session)

    # ------------------------------------------------------------------
    # Periods
    # ------------------------------------------------------------------

    async def create_period(
        self, params: PayrollPeriodCreate, actor_user_id: UUID | None = None
    ) -> PayrollPeriod:
        """Create a draft period for a calendar month."""
        year, month = params.period_year, params.period_month
        existing = await self.session.execute(
            select(PayrollPeriod.payroll_period_id).where(
                PayrollPeriod.period_year == year,
                PayrollPeriod.period_month == month,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(f"Payroll period for {month:02d}/{year} already exists")

        last_day = calendar.monthrange(year, month)[1]
        period = PayrollPeriod(
            period_code=f"PP{year}-{month:02d}",
            period_name=(
                params.period_name
                or self.settings.period_name_template.format(month=month, year=year)
            ),
            period_year=year,
            period_month=month,
            period_start_date=date(year, month, 1),
            period_end_date=date(year, month, last_day),
            confirmation_deadline=as_naive_utc(params.confirmation_deadline),
            status=PeriodStatus.DRAFT.value,
            notes=params.notes,
            created_by=actor_user_id,
        )
        self.session.add(period)
        await self.session.flush()

        logger.info("Created payroll period %s", period.period_code)
        self.activity.record(
            "payroll_period",
            period.payroll_period_id,
            "created",
            actor_user_id,
            {"period_code": period.period_code},
        )
        return period

    async def update_period(
        self,
        period_id: UUID,
        params: PayrollPeriodUpdate,
        actor_user_id: UUID | None = None,
    ) -> PayrollPeriod:
        period = await self.get_period(period_id, for_update=True)
        if period.status == PeriodStatus.PAID:
            raise InvalidStateError(
                period.status, ADJUSTABLE_PERIOD_STATUSES, "Paid periods cannot be changed"
            )

        changes = params.model_dump(exclude_unset=True)
        if "confirmation_deadline" in changes:
            changes["confirmation_deadline"] = as_naive_utc(changes["confirmation_deadline"])
        for field_name, value in changes.items():
            setattr(period, field_name, value)
        period.updated_by = actor_user_id
        await self.session.flush()

        logger.info("Updated payroll period %s: %s", period.period_code, sorted(changes))
        return period

    async def get_period(self, period_id: UUID, for_update: bool = False) -> PayrollPeriod:
        stmt = select(PayrollPeriod).where(PayrollPeriod.payroll_period_id == period_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        period = result.scalar_one_or_none()
        if period is None:
            raise NotFoundError("Payroll period", period_id)
        return period

    async def list_periods(
        self,
        year: int | None = None,
        status: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[PayrollPeriod], int]:
        """Periods newest month first, with the unpaginated total."""
        page = max(page, 1)
        stmt = select(PayrollPeriod)
        if year is not None:
            stmt = stmt.where(PayrollPeriod.period_year == year)
        if status is not None:
            stmt = stmt.where(PayrollPeriod.status == status)

        total = await self.session.scalar(select(func.count()).select_from(stmt.subquery()))
        result = await self.session.execute(
            stmt.order_by(PayrollPeriod.period_year.desc(), PayrollPeriod.period_month.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_payroll(
        self, period_id: UUID, actor_user_id: UUID | None = None
    ) -> GenerationResult:
        """Create or replace the slip of every active employee with a salary config.

        Safe to re-run while the period is draft. Each employee runs inside its
        own savepoint; a failure rolls back only that employee's writes, is
        recorded in the result, and the run continues with the next one.
        """
        period = await self.get_period(period_id, for_update=True)
        if not PayrollPeriodStateMachine.can_generate(period.status):
            raise InvalidStateError(
                period.status,
                PeriodStatus.DRAFT,
                "Payroll can only be generated for draft periods",
            )

        configs = await self.session.execute(
            select(EmployeeSalaryConfig, Employee)
            .join(Employee, Employee.employee_id == EmployeeSalaryConfig.employee_id)
            .where(Employee.status == "active")
            .order_by(Employee.full_name.asc())
        )
        existing = await self.session.execute(
            select(PayrollSlip).where(PayrollSlip.payroll_period_id == period_id)
        )
        slips_by_employee = {slip.employee_id: slip for slip in existing.scalars().all()}

        result = GenerationResult(period_id=period_id)
        generated: list[PayrollSlip] = []
        now = utcnow()

        for config, employee in configs.all():
            try:
                async with self.session.begin_nested():
                    slip = await self._generate_slip(
                        period_id, config, employee, slips_by_employee.get(employee.employee_id)
                    )
                    slip.calculated_at = now
            except Exception as e:
                logger.warning(
                    "Payroll generation failed for employee %s in %s: %s",
                    employee.employee_id,
                    period.period_code,
                    e,
                )
                result.errors.append(GenerationError(employee.employee_id, str(e)))
                continue

            slips_by_employee[employee.employee_id] = slip
            generated.append(slip)

        await self.session.flush()

        result.slip_ids = [slip.payroll_slip_id for slip in generated]
        result.generated_slips = len(result.slip_ids)

        logger.info(
            "Generated %s payroll slip(s) for %s with %s error(s)",
            result.generated_slips,
            period.period_code,
            len(result.errors),
        )
        self.activity.record(
            "payroll_period",
            period.payroll_period_id,
            "payroll_generated",
            actor_user_id,
            {
                "generated_slips": result.generated_slips,
                "errors": [
                    {"employee_id": e.employee_id, "error": e.error} for e in result.errors
                ],
            },
        )
        return result

    async def _generate_slip(
        self,
        period_id: UUID,
        config: EmployeeSalaryConfig,
        employee: Employee,
        slip: PayrollSlip | None,
    ) -> PayrollSlip:
        """Calculate one employee's slip, reusing and resetting an existing draft."""
        summary = await self.attendance.get_attendance_summary(period_id, employee.employee_id)
        breakdown = self.calculator.calculate(config, summary)

        if slip is None:
            slip = PayrollSlip(
                payroll_period_id=period_id,
                employee_id=employee.employee_id,
            )
            self.session.add(slip)

        for column, value in breakdown.to_slip_values().items():
            setattr(slip, column, value)
        slip.salary_config_id = config.salary_config_id
        slip.status = SlipStatus.DRAFT.value
        slip.adjustment_amount = Decimal("0")
        slip.adjustment_reason = None
        slip.adjusted_by = None
        slip.adjusted_at = None
        return slip

    # ------------------------------------------------------------------
    # Period workflow
    # ------------------------------------------------------------------

    async def publish_period(
        self, period_id: UUID, actor_user_id: UUID | None = None
    ) -> PayrollPeriod:
        period = await self.get_period(period_id, for_update=True)
        PayrollPeriodStateMachine.validate_transition(period.status, PeriodStatus.PUBLISHED)

        slips = await self._slips_for_update(period_id)
        if not slips:
            raise InvalidArgumentError(
                "Cannot publish period without payroll slips. Generate payroll first."
            )

        now = utcnow()
        period.status = PeriodStatus.PUBLISHED.value
        period.published_at = now
        period.published_by = actor_user_id
        for slip in slips:
            if slip.status == SlipStatus.DRAFT:
                slip.status = SlipStatus.PUBLISHED.value
        await self.session.flush()

        logger.info("Published payroll period %s (%s slips)", period.period_code, len(slips))
        self._record_transition(period, PeriodStatus.DRAFT, actor_user_id)
        return period

    async def finalize_period(
        self,
        period_id: UUID,
        override_reason: str | None = None,
        actor_user_id: UUID | None = None,
    ) -> PayrollPeriod:
        """Finalize a published period.

        Disputed slips always block. Slips that were never confirmed block
        unless a non-empty override reason is given.
        """
        period = await self.get_period(period_id, for_update=True)
        PayrollPeriodStateMachine.validate_transition(period.status, PeriodStatus.FINALIZED)

        slips = await self._slips_for_update(period_id)
        disputed = sum(1 for s in slips if s.status == SlipStatus.DISPUTED)
        if disputed:
            raise InvalidStateError(
                SlipStatus.DISPUTED,
                (SlipStatus.PUBLISHED, SlipStatus.CONFIRMED),
                f"Cannot finalize: {disputed} slip(s) still disputed",
            )

        override_reason = (override_reason or "").strip() or None
        accepted = sum(1 for s in slips if PayrollSlipStateMachine.is_accepted(s.status))
        if accepted < len(slips) and override_reason is None:
            raise InvalidStateError(
                SlipStatus.PUBLISHED,
                (SlipStatus.CONFIRMED, SlipStatus.FINALIZED),
                f"Not all employees have confirmed ({accepted}/{len(slips)} confirmed). "
                f"Provide an override reason to proceed",
            )

        now = utcnow()
        period.status = PeriodStatus.FINALIZED.value
        period.finalized_at = now
        period.finalized_by = actor_user_id
        period.finalize_reason = override_reason
        for slip in slips:
            if slip.status in (SlipStatus.PUBLISHED, SlipStatus.CONFIRMED):
                slip.status = SlipStatus.FINALIZED.value
                slip.finalized_at = now
                slip.finalized_by = actor_user_id
        await self.session.flush()

        logger.info(
            "Finalized payroll period %s (%s/%s confirmed, override=%s)",
            period.period_code,
            accepted,
            len(slips),
            override_reason is not None,
        )
        self._record_transition(
            period,
            PeriodStatus.PUBLISHED,
            actor_user_id,
            {"override_reason": override_reason} if override_reason else None,
        )
        return period

    async def mark_paid(
        self,
        period_id: UUID,
        payment_method: str,
        payment_reference: str | None = None,
        actor_user_id: UUID | None = None,
    ) -> PayrollPeriod:
        if not payment_method or not payment_method.strip():
            raise InvalidArgumentError("Payment method is required")

        period = await self.get_period(period_id, for_update=True)
        PayrollPeriodStateMachine.validate_transition(period.status, PeriodStatus.PAID)

        slips = await self._slips_for_update(period_id)
        now = utcnow()
        period.status = PeriodStatus.PAID.value
        period.paid_at = now
        period.paid_by = actor_user_id
        period.payment_method = payment_method
        period.payment_reference = payment_reference
        for slip in slips:
            if slip.status == SlipStatus.FINALIZED:
                slip.status = SlipStatus.PAID.value
                slip.paid_at = now
                slip.paid_by = actor_user_id
        await self.session.flush()

        logger.info("Marked payroll period %s as paid via %s", period.period_code, payment_method)
        self._record_transition(
            period,
            PeriodStatus.FINALIZED,
            actor_user_id,
            {"payment_method": payment_method, "payment_reference": payment_reference},
        )
        return period

    # ------------------------------------------------------------------
    # Slips
    # ------------------------------------------------------------------

    async def get_slip(
        self,
        slip_id: UUID,
        actor_user_id: UUID | None = None,
        is_admin: bool = False,
        for_update: bool = False,
    ) -> PayrollSlip:
        """Load a slip. Non-admin actors may only read their own."""
        stmt = select(PayrollSlip).where(PayrollSlip.payroll_slip_id == slip_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        slip = result.scalar_one_or_none()
        if slip is None:
            raise NotFoundError("Payroll slip", slip_id)

        if not is_admin and actor_user_id is not None and slip.employee_id != actor_user_id:
            raise ForbiddenError("You can only access your own payroll slip")
        return slip

    async def get_slips_for_period(self, period_id: UUID) -> list[PayrollSlip]:
        """All slips of a period, ordered by employee name."""
        await self.get_period(period_id)
        result = await self.session.execute(
            select(PayrollSlip)
            .join(Employee, Employee.employee_id == PayrollSlip.employee_id)
            .where(PayrollSlip.payroll_period_id == period_id)
            .order_by(Employee.full_name.asc())
        )
        return list(result.scalars().all())

    async def get_slip_adjustments(self, slip_id: UUID) -> list[PayrollAdjustment]:
        """Adjustment log of a slip, newest first."""
        result = await self.session.execute(
            select(PayrollAdjustment)
            .where(PayrollAdjustment.payroll_slip_id == slip_id)
            .order_by(PayrollAdjustment.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_my_payroll(
        self,
        employee_id: UUID,
        year: int | None = None,
        status: str | None = None,
    ) -> list[tuple[PayrollSlip, PayrollPeriod]]:
        """An employee's slips in periods that have been published or later."""
        stmt = (
            select(PayrollSlip, PayrollPeriod)
            .join(PayrollPeriod, PayrollPeriod.payroll_period_id == PayrollSlip.payroll_period_id)
            .where(
                PayrollSlip.employee_id == employee_id,
                PayrollPeriod.status != PeriodStatus.DRAFT.value,
            )
        )
        if year is not None:
            stmt = stmt.where(PayrollPeriod.period_year == year)
        if status is not None:
            stmt = stmt.where(PayrollSlip.status == status)

        result = await self.session.execute(
            stmt.order_by(PayrollPeriod.period_year.desc(), PayrollPeriod.period_month.desc())
        )
        return [tuple(row) for row in result.all()]

    async def confirm_slip(
        self,
        slip_id: UUID,
        actor_user_id: UUID | None = None,
        comment: str | None = None,
    ) -> PayrollSlip:
        """Employee accepts their published slip."""
        slip = await self.get_slip(slip_id, actor_user_id, for_update=True)
        PayrollSlipStateMachine.validate_transition(slip.status, SlipStatus.CONFIRMED)

        period = await self.get_period(slip.payroll_period_id)
        now = utcnow()
        is_late = (
            period.confirmation_deadline is not None and now > period.confirmation_deadline
        )

        slip.status = SlipStatus.CONFIRMED.value
        slip.confirmed_at = now
        slip.confirmation_comment = comment
        slip.is_late_confirmation = is_late
        await self.session.flush()

        logger.info("Payroll slip %s confirmed (late=%s)", slip_id, is_late)
        self.activity.record(
            "payroll_slip", slip_id, "confirmed", actor_user_id, {"is_late": is_late}
        )
        return slip

    async def dispute_slip(
        self,
        slip_id: UUID,
        reason: str,
        actor_user_id: UUID | None = None,
    ) -> PayrollSlip:
        """Employee rejects their published slip."""
        if not reason or not reason.strip():
            raise InvalidArgumentError("Dispute reason is required")

        slip = await self.get_slip(slip_id, actor_user_id, for_update=True)
        PayrollSlipStateMachine.validate_transition(slip.status, SlipStatus.DISPUTED)

        slip.status = SlipStatus.DISPUTED.value
        slip.disputed_at = utcnow()
        slip.dispute_reason = reason
        await self.session.flush()

        logger.info("Payroll slip %s disputed", slip_id)
        self.activity.record(
            "payroll_slip", slip_id, "disputed", actor_user_id, {"reason": reason}
        )
        return slip

    async def resolve_dispute(
        self,
        slip_id: UUID,
        resolution: str,
        adjustment_amount: Decimal | None = None,
        actor_user_id: UUID | None = None,
    ) -> PayrollSlip:
        """Return a disputed slip to published, optionally correcting net pay."""
        if not resolution or not resolution.strip():
            raise InvalidArgumentError("Dispute resolution is required")

        slip = await self.get_slip(slip_id, is_admin=True, for_update=True)
        if slip.status != SlipStatus.DISPUTED:
            raise InvalidStateError(
                slip.status, SlipStatus.DISPUTED, "Only disputed slips can be resolved"
            )

        if adjustment_amount:
            self._apply_adjustment(
                slip,
                "correction",
                Decimal(str(adjustment_amount)),
                f"Dispute resolution: {resolution}",
                actor_user_id,
            )

        slip.status = SlipStatus.PUBLISHED.value
        slip.dispute_resolved_at = utcnow()
        slip.dispute_resolved_by = actor_user_id
        slip.dispute_resolution = resolution
        await self.session.flush()

        logger.info("Resolved dispute on payroll slip %s", slip_id)
        self.activity.record(
            "payroll_slip",
            slip_id,
            "dispute_resolved",
            actor_user_id,
            {"resolution": resolution, "adjustment_amount": adjustment_amount},
        )
        return slip

    async def adjust_slip(
        self,
        slip_id: UUID,
        params: SlipAdjustmentCreate,
        actor_user_id: UUID | None = None,
    ) -> PayrollSlip:
        """Change a slip's net pay by hand. Deductions always reduce it."""
        slip = await self.get_slip(slip_id, is_admin=True, for_update=True)
        period = await self.get_period(slip.payroll_period_id)
        if not PayrollPeriodStateMachine.can_adjust(period.status):
            raise InvalidStateError(
                period.status, ADJUSTABLE_PERIOD_STATUSES, "Cannot adjust a paid payroll slip"
            )

        amount = params.amount
        if params.adjustment_type == "deduction":
            amount = -abs(amount)

        self._apply_adjustment(slip, params.adjustment_type, amount, params.reason, actor_user_id)
        await self.session.flush()

        logger.info(
            "Adjusted payroll slip %s by %s (%s)", slip_id, amount, params.adjustment_type
        )
        self.activity.record(
            "payroll_slip",
            slip_id,
            "adjusted",
            actor_user_id,
            {"adjustment_type": params.adjustment_type, "amount": amount},
        )
        return slip

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _apply_adjustment(
        self,
        slip: PayrollSlip,
        adjustment_type: str,
        signed_amount: Decimal,
        reason: str,
        actor_user_id: UUID | None,
    ) -> PayrollAdjustment:
        previous_net = Decimal(slip.net_pay or 0)
        new_net = previous_net + signed_amount

        adjustment = PayrollAdjustment(
            payroll_slip_id=slip.payroll_slip_id,
            adjustment_type=adjustment_type,
            amount=signed_amount,
            reason=reason,
            previous_net_pay=previous_net,
            new_net_pay=new_net,
            adjusted_by=actor_user_id,
        )
        self.session.add(adjustment)

        slip.adjustment_amount = Decimal(slip.adjustment_amount or 0) + signed_amount
        slip.adjustment_reason = (
            f"{slip.adjustment_reason}; {reason}" if slip.adjustment_reason else reason
        )
        slip.adjusted_by = actor_user_id
        slip.adjusted_at = utcnow()
        slip.net_pay = new_net
        return adjustment

    async def _slips_for_update(self, period_id: UUID) -> list[PayrollSlip]:
        result = await self.session.execute(
            select(PayrollSlip)
            .where(PayrollSlip.payroll_period_id == period_id)
            .with_for_update()
        )
        return list(result.scalars().all())

    def _record_transition(
        self,
        period: PayrollPeriod,
        from_status: PeriodStatus,
        actor_user_id: UUID | None,
        details: dict | None = None,
    ) -> None:
        self.activity.record(
            "payroll_period",
            period.payroll_period_id,
            f"status_change:{from_status.value}:{period.status}",
            actor_user_id,
            details,
        )
