"""Employee salary configuration management."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from motoshop_engine.config import Settings, get_settings
from motoshop_engine.errors import ConflictError, NotFoundError
from motoshop_engine.models import Employee, EmployeeSalaryConfig
from motoshop_engine.schemas import SalaryConfigCreate, SalaryConfigUpdate
from motoshop_engine.services.activity_log import ActivityLogger

logger = logging.getLogger(__name__)


class SalaryConfigService:
    """One salary configuration per employee; defaults come from settings."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.activity = ActivityLogger(session)

    async def get(self, salary_config_id: UUID) -> EmployeeSalaryConfig:
        config = await self.session.get(EmployeeSalaryConfig, salary_config_id)
        if config is None:
            raise NotFoundError("Salary config", salary_config_id)
        return config

    async def get_for_employee(self, employee_id: UUID) -> EmployeeSalaryConfig:
        result = await self.session.execute(
            select(EmployeeSalaryConfig).where(EmployeeSalaryConfig.employee_id == employee_id)
        )
        config = result.scalar_one_or_none()
        if config is None:
            raise NotFoundError(
                "Salary config", message=f"No salary config for employee {employee_id}"
            )
        return config

    async def list_configs(self) -> list[tuple[EmployeeSalaryConfig, Employee]]:
        """Every config with its employee, by employee name."""
        result = await self.session.execute(
            select(EmployeeSalaryConfig, Employee)
            .join(Employee, Employee.employee_id == EmployeeSalaryConfig.employee_id)
            .order_by(Employee.full_name.asc())
        )
        return [tuple(row) for row in result.all()]

    async def create(
        self, params: SalaryConfigCreate, actor_user_id: UUID | None = None
    ) -> EmployeeSalaryConfig:
        employee = await self.session.get(Employee, params.employee_id)
        if employee is None:
            raise NotFoundError("Employee", params.employee_id)

        existing = await self.session.execute(
            select(EmployeeSalaryConfig.salary_config_id).where(
                EmployeeSalaryConfig.employee_id == params.employee_id
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(f"Employee {employee.full_name} already has a salary config")

        s = self.settings
        config = EmployeeSalaryConfig(
            employee_id=params.employee_id,
            salary_type=params.salary_type,
            base_salary=params.base_salary,
            standard_work_days_per_month=(
                params.standard_work_days_per_month or s.standard_work_days
            ),
            standard_hours_per_day=params.standard_hours_per_day or s.standard_hours_per_day,
            overtime_rate_weekday=params.overtime_rate_weekday or s.overtime_multiplier,
            lunch_allowance=params.lunch_allowance,
            transport_allowance=params.transport_allowance,
            phone_allowance=params.phone_allowance,
            other_allowances=[a.model_dump(mode="json") for a in params.other_allowances],
            social_insurance_rate=_or_default(
                params.social_insurance_rate, s.social_insurance_rate
            ),
            health_insurance_rate=_or_default(
                params.health_insurance_rate, s.health_insurance_rate
            ),
            unemployment_insurance_rate=_or_default(
                params.unemployment_insurance_rate, s.unemployment_insurance_rate
            ),
            effective_from=params.effective_from,
            notes=params.notes,
            created_by=actor_user_id,
            updated_by=actor_user_id,
        )
        self.session.add(config)
        await self.session.flush()

        logger.info(
            "Created %s salary config for employee %s",
            config.salary_type,
            employee.employee_id,
        )
        self.activity.record(
            "employee_salary_config",
            config.salary_config_id,
            "created",
            actor_user_id,
            {"employee_id": employee.employee_id, "base_salary": config.base_salary},
        )
        return config

    async def update(
        self,
        salary_config_id: UUID,
        params: SalaryConfigUpdate,
        actor_user_id: UUID | None = None,
    ) -> EmployeeSalaryConfig:
        config = await self.get(salary_config_id)
        changes = params.model_dump(exclude_unset=True, exclude={"other_allowances"})
        for field_name, value in changes.items():
            if value is not None:
                setattr(config, field_name, value)
        if params.other_allowances is not None:
            config.other_allowances = [a.model_dump(mode="json") for a in params.other_allowances]
            changes["other_allowances"] = config.other_allowances
        config.updated_by = actor_user_id
        await self.session.flush()

        logger.info("Updated salary config %s: %s", salary_config_id, sorted(changes))
        self.activity.record(
            "employee_salary_config",
            config.salary_config_id,
            "updated",
            actor_user_id,
            {"fields": sorted(changes)},
        )
        return config


def _or_default(value, default):
    # Zero is a legitimate rate, so only None falls back
    return default if value is None else value
