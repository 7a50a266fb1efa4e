"""Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Payroll Run schemas
# ============================================================================


class PayrollRunCreate(BaseModel):
    """Schema for creating a new payroll run."""

    month: int = Field(ge=1, le=12)
    year: int = Field(ge=1900, le=9999)
    notes: str | None = None


class PayrollRunUpdate(BaseModel):
    """Only notes are editable on a run."""

    notes: str | None = None


class PayrollRunResponse(BaseModel):
    """Schema for payroll run response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_run_id: UUID
    month: int
    year: int
    status: str
    created_by: UUID | None = None
    processed_by: UUID | None = None
    processed_at: datetime | None = None
    validated_at: datetime | None = None
    total_employees: int
    total_amount: Decimal
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class PayrollRunListResponse(BaseModel):
    """Schema for listing payroll runs."""

    items: list[PayrollRunResponse]
    total: int


class SkipResponse(BaseModel):
    """An employee left out of a run."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    reason: str
    detail: str | None = None


class ProcessRunResponse(BaseModel):
    """Result of processing or resuming a run."""

    run: PayrollRunResponse
    processed_count: int
    skipped: list[SkipResponse]


# ============================================================================
# Payslip schemas
# ============================================================================


class PayslipResponse(BaseModel):
    """Schema for payslip response."""

    model_config = ConfigDict(from_attributes=True)

    payslip_id: UUID
    payroll_run_id: UUID
    user_id: UUID

    basic_salary: Decimal
    hra: Decimal
    transport_allowance: Decimal
    medical_allowance: Decimal
    other_allowances: Decimal
    gross_salary: Decimal

    pf_employee: Decimal
    pf_employer: Decimal
    professional_tax: Decimal
    other_deductions: Decimal
    total_deductions: Decimal
    net_salary: Decimal

    working_days: int
    present_days: int
    leave_days: Decimal
    absent_days: Decimal

    status: str
    validated_at: datetime | None = None
    created_at: datetime


class PayslipListResponse(BaseModel):
    items: list[PayslipResponse]
    total: int


# ============================================================================
# Validation
# ============================================================================


class ValidateRequest(BaseModel):
    """Lock a whole run or a single payslip."""

    type: Literal["run", "payslip"]
    id: UUID


class ValidateResponse(BaseModel):
    type: Literal["run", "payslip"]
    id: UUID
    status: str
    validated_at: datetime | None = None


# ============================================================================
# Common schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Error response schema."""

    detail: str
    code: str | None = None
    errors: list[dict[str, Any]] | None = None
