"""HRMS payroll processing engine.

Monthly payroll runs over active employees: payslip computation from
salary structures, attendance and approved leave; run and payslip
validation; audit and payslip-ready notifications.
"""

__version__ = "1.0.0"
