"""Typed read access to the system_setting table."""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_payroll.calculators.types import PayrollSettings
from hrms_payroll.exceptions import PayrollValidationError
from hrms_payroll.models import SystemSetting

PF_PERCENTAGE = "pf_percentage"
PROFESSIONAL_TAX_AMOUNT = "professional_tax_amount"
WORKING_HOURS_PER_DAY = "working_hours_per_day"

DEFAULTS: dict[str, Any] = {
    PF_PERCENTAGE: 12,
    PROFESSIONAL_TAX_AMOUNT: 200,
    WORKING_HOURS_PER_DAY: 8,
}

DATA_TYPES = ("number", "boolean", "json", "string")


def parse_setting(raw: str | None, data_type: str, default: Any) -> Any:
    """Convert a stored text value to its declared type.

    Numbers that fail to parse, or parse to zero, fall back to the default.
    """
    if data_type == "number":
        try:
            value = float(raw) if raw is not None else 0.0
        except ValueError:
            return default
        return value or default
    if data_type == "boolean":
        return raw in ("true", "1")
    if data_type == "json":
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            return default
    return raw or default


class SettingsProvider:
    """Named, typed configuration values with per-key defaults."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, key: str, default: Any = None) -> Any:
        """Typed value for key, or default when the key is missing."""
        setting = await self.session.get(SystemSetting, key)
        if setting is None:
            return default
        return parse_setting(setting.value, setting.data_type, default)

    async def set(
        self,
        key: str,
        value: Any,
        data_type: str = "string",
        description: str | None = None,
        updated_by: UUID | None = None,
    ) -> SystemSetting:
        """Create or replace a setting."""
        if data_type not in DATA_TYPES:
            raise PayrollValidationError(f"Unknown setting data type '{data_type}'")

        if data_type == "json":
            text = json.dumps(value)
        elif data_type == "boolean":
            text = "true" if value else "false"
        else:
            text = str(value)

        setting = await self.session.get(SystemSetting, key)
        if setting is None:
            setting = SystemSetting(key=key, data_type=data_type)
            self.session.add(setting)
        setting.value = text
        setting.data_type = data_type
        if description is not None:
            setting.description = description
        setting.updated_by = updated_by
        await self.session.flush()
        return setting

    async def list_all(self) -> list[SystemSetting]:
        result = await self.session.execute(select(SystemSetting).order_by(SystemSetting.key))
        return list(result.scalars().all())

    async def get_payroll_settings(self) -> PayrollSettings:
        """Snapshot of the values a run computes with."""
        pf = await self.get(PF_PERCENTAGE, DEFAULTS[PF_PERCENTAGE])
        tax = await self.get(PROFESSIONAL_TAX_AMOUNT, DEFAULTS[PROFESSIONAL_TAX_AMOUNT])
        hours = await self.get(WORKING_HOURS_PER_DAY, DEFAULTS[WORKING_HOURS_PER_DAY])
        return PayrollSettings(
            pf_percentage=_as_decimal(pf),
            professional_tax_amount=_as_decimal(tax),
            working_hours_per_day=_as_decimal(hours),
        )


def _as_decimal(value: Any) -> Decimal:
    # str() first so 12.0 becomes Decimal("12.0"), not a binary float expansion
    return Decimal(str(value))
