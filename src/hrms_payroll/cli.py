"""Payroll operations command line interface.

Provides operational tools for:
- Creating, processing and validating runs
- Finding and resuming runs stuck in processing
- Exporting payslips

Usage:
    hrms-payroll-ops create-run --month 3 --year 2025
    hrms-payroll-ops process-run --run-id X
    hrms-payroll-ops stuck-runs --older-than-minutes 30
    hrms-payroll-ops resume-run --run-id X
    hrms-payroll-ops validate-run --run-id X
    hrms-payroll-ops export-payslips --month 3 --year 2025 --output payslips.csv
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Awaitable
from datetime import timedelta
from typing import Any, Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hrms_payroll.config import get_settings
from hrms_payroll.database import get_engine, make_session_factory
from hrms_payroll.events.emitter import AuditEmitter
from hrms_payroll.events.handlers import DatabaseAuditHandler
from hrms_payroll.exceptions import PayrollError
from hrms_payroll.logging_config import configure_logging
from hrms_payroll.services.notification_service import EmailNotifier, NotificationDispatcher
from hrms_payroll.services.payroll_run_service import PayrollRunService, RunProcessingReport
from hrms_payroll.services.payslip_store import PayslipFilter
from hrms_payroll.services.reporting_service import PayslipReportingService


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _report_dict(report: RunProcessingReport) -> dict[str, Any]:
    return {
        "payroll_run_id": report.run.payroll_run_id,
        "status": report.run.status,
        "total_employees": report.run.total_employees,
        "total_amount": report.run.total_amount,
        "processed": report.processed_count,
        "skipped": [
            {"user_id": s.user_id, "reason": s.reason.value} for s in report.skipped
        ],
    }


class PayrollCli:
    """Payroll operations CLI."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="hrms-payroll-ops",
            description="Payroll operational tools",
        )
        parser.add_argument(
            "--database-url",
            type=str,
            help="Database URL (default: $DATABASE_URL)",
        )
        parser.add_argument(
            "--actor-id",
            type=parse_uuid,
            help="User ID recorded as the actor of the action",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        create = subparsers.add_parser("create-run", help="Create a draft payroll run")
        create.add_argument("--month", type=int, required=True, help="Month (1-12)")
        create.add_argument("--year", type=int, required=True, help="Year")
        create.add_argument("--notes", type=str, help="Free-text notes")

        for name, help_text in (
            ("process-run", "Process a draft run"),
            ("resume-run", "Finish a run stuck in processing"),
            ("validate-run", "Validate a completed run and lock its payslips"),
        ):
            sub = subparsers.add_parser(name, help=help_text)
            sub.add_argument("--run-id", type=parse_uuid, required=True, help="Payroll run ID")

        stuck = subparsers.add_parser("stuck-runs", help="List runs stuck in processing")
        stuck.add_argument(
            "--older-than-minutes",
            type=int,
            default=30,
            help="Only runs claimed at least this long ago (default: 30)",
        )

        export = subparsers.add_parser("export-payslips", help="Export payslips to CSV")
        export.add_argument("--run-id", type=parse_uuid, help="Filter by payroll run")
        export.add_argument("--month", type=int, help="Filter by month")
        export.add_argument("--year", type=int, help="Filter by year")
        export.add_argument(
            "--output",
            type=str,
            help="Output file path (default: stdout)",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        # Dispatch to command handler
        handlers: dict[str, Callable[..., Awaitable[int]]] = {
            "create-run": self._cmd_create_run,
            "process-run": self._cmd_process_run,
            "resume-run": self._cmd_resume_run,
            "validate-run": self._cmd_validate_run,
            "stuck-runs": self._cmd_stuck_runs,
            "export-payslips": self._cmd_export_payslips,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        configure_logging(get_settings().log_level)
        try:
            return asyncio.run(self._dispatch(handler, parsed))
        except PayrollError as e:
            print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
            return 2

    async def _dispatch(
        self,
        handler: Callable[..., Awaitable[int]],
        args: argparse.Namespace,
    ) -> int:
        engine = get_engine(args.database_url)
        factory = make_session_factory(engine)
        try:
            return await handler(args, factory)
        finally:
            await engine.dispose()

    def _run_service(
        self,
        session: AsyncSession,
        factory: async_sessionmaker[AsyncSession],
        dispatcher: NotificationDispatcher | None = None,
    ) -> PayrollRunService:
        emitter = AuditEmitter()
        emitter.on_all(DatabaseAuditHandler(factory))
        return PayrollRunService(
            session, emitter=emitter, dispatcher=dispatcher, reader_factory=factory
        )

    async def _cmd_create_run(self, args: argparse.Namespace, factory) -> int:
        """Create a draft run."""
        async with factory() as session:
            run = await self._run_service(session, factory).create_run(
                args.month, args.year, actor_id=args.actor_id, notes=args.notes
            )
        _print_json({"payroll_run_id": run.payroll_run_id, "status": run.status})
        return 0

    async def _cmd_process_run(self, args: argparse.Namespace, factory) -> int:
        """Process a draft run and wait for notifications to go out."""
        dispatcher = NotificationDispatcher(EmailNotifier())
        async with factory() as session:
            report = await self._run_service(session, factory, dispatcher).process_run(
                args.run_id, actor_id=args.actor_id
            )
        await dispatcher.drain()
        _print_json(_report_dict(report))
        if dispatcher.failures:
            print(f"{len(dispatcher.failures)} notification(s) failed", file=sys.stderr)
        return 0

    async def _cmd_resume_run(self, args: argparse.Namespace, factory) -> int:
        """Resume a run stuck in processing."""
        dispatcher = NotificationDispatcher(EmailNotifier())
        async with factory() as session:
            report = await self._run_service(session, factory, dispatcher).resume_run(
                args.run_id, actor_id=args.actor_id
            )
        await dispatcher.drain()
        _print_json(_report_dict(report))
        return 0

    async def _cmd_validate_run(self, args: argparse.Namespace, factory) -> int:
        """Validate a completed run."""
        async with factory() as session:
            run = await self._run_service(session, factory).validate_run(
                args.run_id, actor_id=args.actor_id
            )
        _print_json({
            "payroll_run_id": run.payroll_run_id,
            "status": run.status,
            "validated_at": run.validated_at,
        })
        return 0

    async def _cmd_stuck_runs(self, args: argparse.Namespace, factory) -> int:
        """List runs left in processing."""
        async with factory() as session:
            runs = await self._run_service(session, factory).find_stuck_runs(
                timedelta(minutes=args.older_than_minutes)
            )
        if not runs:
            print("No stuck runs")
            return 0
        _print_json([
            {
                "payroll_run_id": r.payroll_run_id,
                "period": r.period_label,
                "processed_at": r.processed_at,
                "processed_by": r.processed_by,
            }
            for r in runs
        ])
        # Non-zero so monitoring can alert on it
        return 3

    async def _cmd_export_payslips(self, args: argparse.Namespace, factory) -> int:
        """Export payslips as CSV."""
        async with factory() as session:
            content = await PayslipReportingService(session).export_payslips_csv(
                PayslipFilter(payroll_run_id=args.run_id, month=args.month, year=args.year)
            )
        if args.output:
            with open(args.output, "w", newline="") as f:
                f.write(content)
            print(f"Wrote {args.output}")
        else:
            sys.stdout.write(content)
        return 0


def main() -> int:
    """CLI entry point."""
    cli = PayrollCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
