"""Pytest fixtures for loyalty and payroll engine tests."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from motoshop_engine.models import (
    Base,
    Customer,
    Employee,
    EmployeeSalaryConfig,
    LoyaltyRuleVersion,
    LoyaltyTier,
    PayrollPeriod,
)

# In-memory SQLite shared by every connection of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def create_test_engine():
    """In-memory engine whose nested transactions map onto real SAVEPOINTs."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite defers BEGIN until the first DML; let SQLAlchemy emit it
    @event.listens_for(engine.sync_engine, "connect")
    def disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture
async def engine():
    """Create a fresh test database for each test."""
    engine = create_test_engine()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# ===== Loyalty =====


@pytest.fixture
async def customer(session: AsyncSession) -> Customer:
    """Create a test customer."""
    customer = Customer(
        customer_id=uuid4(),
        full_name="Minh Tran",
        phone="0901234567",
        email="minh@example.com",
    )
    session.add(customer)
    await session.flush()
    return customer


def make_tier_ladder() -> dict[str, LoyaltyTier]:
    """The three-tier ladder used across the loyalty tests."""
    specs = [
        ("IRON", "Iron Rider", 0, "0", "1.00", []),
        ("SILVER", "Silver Rider", 20, "300000", "1.50", [{"key": "free_wash", "value": "monthly"}]),
        ("GOLD", "Gold Rider", 500, "5000000", "2.00", [{"key": "priority_service", "value": "yes"}]),
    ]
    return {
        code: LoyaltyTier(
            tier_id=uuid4(),
            code=code,
            name=name,
            display_order=order,
            min_points=min_points,
            min_total_spend=Decimal(min_spend),
            points_multiplier=Decimal(multiplier),
            benefits=benefits,
        )
        for order, (code, name, min_points, min_spend, multiplier, benefits) in enumerate(
            specs, start=1
        )
    }


@pytest.fixture
async def loyalty_tiers(session: AsyncSession) -> dict[str, LoyaltyTier]:
    """Create the three-tier ladder."""
    tiers = make_tier_ladder()
    session.add_all(tiers.values())
    await session.flush()
    return tiers


def make_rule_version(**overrides) -> LoyaltyRuleVersion:
    values = dict(
        rule_version_id=uuid4(),
        version_number=1,
        points_per_currency=Decimal("0.0001"),
        earning_round_mode="floor",
        redemption_rate=Decimal("1000"),
        max_redemption_percent=Decimal("50"),
        min_redemption_points=100,
        allow_tier_downgrade=False,
        tier_evaluation_basis="lifetime_points",
        is_active=True,
        effective_from=datetime(2024, 1, 1),
    )
    values.update(overrides)
    return LoyaltyRuleVersion(**values)


@pytest.fixture
async def loyalty_rules(session: AsyncSession) -> LoyaltyRuleVersion:
    """Active rules: 1 point per 10,000 spent, 1 point = 1,000 discount."""
    rules = make_rule_version()
    session.add(rules)
    await session.flush()
    return rules


# ===== Payroll =====


@pytest.fixture
async def employees(session: AsyncSession) -> list[Employee]:
    """Create three active employees."""
    employees = [
        Employee(
            employee_id=uuid4(),
            employee_code=f"EMP{i:03d}",
            full_name=name,
            email=f"{name.split()[0].lower()}@example.com",
            status="active",
        )
        for i, name in enumerate(["An Nguyen", "Binh Le", "Chi Pham"], start=1)
    ]
    session.add_all(employees)
    await session.flush()
    return employees


@pytest.fixture
async def salary_configs(
    session: AsyncSession, employees: list[Employee]
) -> list[EmployeeSalaryConfig]:
    """Give every test employee a monthly salary of 10,000,000."""
    configs = [
        EmployeeSalaryConfig(
            salary_config_id=uuid4(),
            employee_id=emp.employee_id,
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
        for emp in employees
    ]
    session.add_all(configs)
    await session.flush()
    return configs


@pytest.fixture
async def payroll_period(session: AsyncSession) -> PayrollPeriod:
    """Create a draft payroll period for March 2024."""
    period = PayrollPeriod(
        payroll_period_id=uuid4(),
        period_code="PP2024-03",
        period_name="Payroll 03/2024",
        period_year=2024,
        period_month=3,
        period_start_date=date(2024, 3, 1),
        period_end_date=date(2024, 3, 31),
        status="draft",
    )
    session.add(period)
    await session.flush()
    return period
