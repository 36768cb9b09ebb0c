"""Customer and employee models referenced by the loyalty and payroll engines."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from motoshop_engine.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from motoshop_engine.models.loyalty import CustomerLoyaltyAccount
    from motoshop_engine.models.payroll import EmployeeSalaryConfig


class Customer(Base, TimestampMixin):
    """Shop customer (only the columns the loyalty engine reads)."""

    __tablename__ = "customer"

    customer_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True)

    # Relationships
    loyalty_account: Mapped[CustomerLoyaltyAccount | None] = relationship(
        back_populates="customer"
    )


class Employee(Base, TimestampMixin):
    """Employee (user profile) paid through payroll."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    employee_code: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'suspended', 'terminated')",
            name="employee_status_check",
        ),
    )

    # Relationships
    salary_config: Mapped[EmployeeSalaryConfig | None] = relationship(
        back_populates="employee"
    )

    @property
    def is_active(self) -> bool:
        return self.status == "active"
