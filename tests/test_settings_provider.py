"""Tests for typed system settings."""

from decimal import Decimal

import pytest

from hrms_payroll.exceptions import PayrollValidationError
from hrms_payroll.models import SystemSetting
from hrms_payroll.services.settings_provider import (
    PF_PERCENTAGE,
    PROFESSIONAL_TAX_AMOUNT,
    SettingsProvider,
    parse_setting,
)


class TestParseSetting:
    """Text-to-type conversion rules."""

    def test_number(self):
        assert parse_setting("12.5", "number", 12) == 12.5

    def test_number_zero_or_garbage_falls_back(self):
        assert parse_setting("0", "number", 12) == 12
        assert parse_setting("abc", "number", 12) == 12
        assert parse_setting(None, "number", 8) == 8

    def test_boolean(self):
        assert parse_setting("true", "boolean", False) is True
        assert parse_setting("1", "boolean", False) is True
        assert parse_setting("yes", "boolean", True) is False

    def test_json(self):
        assert parse_setting('{"a": [1, 2]}', "json", None) == {"a": [1, 2]}
        assert parse_setting("{not json", "json", {}) == {}

    def test_string(self):
        assert parse_setting("hello", "string", "x") == "hello"
        assert parse_setting("", "string", "x") == "x"


class TestSettingsProvider:
    async def test_missing_key_returns_default(self, session):
        provider = SettingsProvider(session)
        assert await provider.get("nope", 42) == 42

    async def test_set_then_get(self, session):
        provider = SettingsProvider(session)
        await provider.set(PF_PERCENTAGE, 10, "number", "PF rate")

        assert await provider.get(PF_PERCENTAGE, 12) == 10.0

    async def test_set_overwrites(self, session):
        provider = SettingsProvider(session)
        await provider.set("flag", True, "boolean")
        await provider.set("flag", False, "boolean")

        assert await provider.get("flag") is False
        rows = await provider.list_all()
        assert [r.key for r in rows] == ["flag"]

    async def test_unknown_data_type_rejected(self, session):
        with pytest.raises(PayrollValidationError):
            await SettingsProvider(session).set("k", "v", "yaml")

    async def test_payroll_settings_defaults(self, session):
        snapshot = await SettingsProvider(session).get_payroll_settings()

        assert snapshot.pf_percentage == Decimal("12")
        assert snapshot.professional_tax_amount == Decimal("200")
        assert snapshot.working_hours_per_day == Decimal("8")

    async def test_payroll_settings_from_table(self, session):
        session.add(SystemSetting(key=PROFESSIONAL_TAX_AMOUNT, value="250", data_type="number"))
        await session.flush()

        snapshot = await SettingsProvider(session).get_payroll_settings()

        assert snapshot.professional_tax_amount == Decimal("250.0")

    async def test_stored_zero_uses_default(self, session):
        session.add(SystemSetting(key=PF_PERCENTAGE, value="0", data_type="number"))
        await session.flush()

        snapshot = await SettingsProvider(session).get_payroll_settings()

        assert snapshot.pf_percentage == Decimal("12")
