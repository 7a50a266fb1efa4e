"""Payroll services."""

from hrms_payroll.services.state_machine import (
    InvalidTransitionError,
    PayrollRunStateMachine,
    PayrollRunStatus,
    PayslipStatus,
)
from hrms_payroll.services.payroll_run_service import PayrollRunService, RunProcessingReport
from hrms_payroll.services.payslip_store import PayslipFilter, PayslipStore
from hrms_payroll.services.reporting_service import PayslipReportingService
from hrms_payroll.services.salary_structure_service import SalaryStructureService
from hrms_payroll.services.settings_provider import SettingsProvider

__all__ = [
    "InvalidTransitionError",
    "PayrollRunStateMachine",
    "PayrollRunStatus",
    "PayslipStatus",
    "PayrollRunService",
    "RunProcessingReport",
    "PayslipFilter",
    "PayslipStore",
    "PayslipReportingService",
    "SalaryStructureService",
    "SettingsProvider",
]
