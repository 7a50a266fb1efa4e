"""Salary structure store: versioned, one active structure per employee."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_payroll.calculators.types import to_decimal
from hrms_payroll.exceptions import NotFoundError, PayrollValidationError
from hrms_payroll.models import Employee, SalaryStructure

AMOUNT_FIELDS = (
    "basic_salary",
    "hra",
    "transport_allowance",
    "medical_allowance",
    "other_allowances",
    "pf_percentage",
    "professional_tax",
    "other_deductions",
)


class SalaryStructureService:
    """Creates and resolves salary structures."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_structure(
        self,
        user_id: UUID,
        basic_salary: Decimal | int | str,
        effective_from: date,
        *,
        hra: Any = 0,
        transport_allowance: Any = 0,
        medical_allowance: Any = 0,
        other_allowances: Any = 0,
        pf_percentage: Any = 12,
        professional_tax: Any = 0,
        other_deductions: Any = 0,
        effective_to: date | None = None,
    ) -> SalaryStructure:
        """Create a structure and deactivate every earlier one for the user."""
        if await self.session.get(Employee, user_id) is None:
            raise NotFoundError("Employee", user_id)

        amounts = {
            "basic_salary": to_decimal(basic_salary),
            "hra": to_decimal(hra),
            "transport_allowance": to_decimal(transport_allowance),
            "medical_allowance": to_decimal(medical_allowance),
            "other_allowances": to_decimal(other_allowances),
            "pf_percentage": to_decimal(pf_percentage),
            "professional_tax": to_decimal(professional_tax),
            "other_deductions": to_decimal(other_deductions),
        }
        negative = [name for name in AMOUNT_FIELDS if amounts[name] < 0]
        if negative:
            raise PayrollValidationError(
                f"Salary structure amounts must be non-negative: {', '.join(negative)}"
            )
        if effective_to is not None and effective_to < effective_from:
            raise PayrollValidationError("effective_to is before effective_from")

        await self.session.execute(
            update(SalaryStructure)
            .where(
                SalaryStructure.user_id == user_id,
                SalaryStructure.is_active.is_(True),
            )
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )

        structure = SalaryStructure(
            user_id=user_id,
            effective_from=effective_from,
            effective_to=effective_to,
            is_active=True,
            **amounts,
        )
        self.session.add(structure)
        await self.session.flush()
        return structure

    async def active_for_user(self, user_id: UUID) -> SalaryStructure | None:
        """Active structure with the most recent effective_from."""
        result = await self.session.execute(
            select(SalaryStructure)
            .where(
                SalaryStructure.user_id == user_id,
                SalaryStructure.is_active.is_(True),
            )
            .order_by(SalaryStructure.effective_from.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: UUID) -> list[SalaryStructure]:
        result = await self.session.execute(
            select(SalaryStructure)
            .where(SalaryStructure.user_id == user_id)
            .order_by(SalaryStructure.effective_from.desc())
        )
        return list(result.scalars().all())

    async def get(self, structure_id: UUID) -> SalaryStructure:
        structure = await self.session.get(SalaryStructure, structure_id)
        if structure is None:
            raise NotFoundError("SalaryStructure", structure_id)
        return structure
