"""Tests for the payroll operations CLI."""

import asyncio
import csv
import json
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from hrms_payroll.cli import PayrollCli
from hrms_payroll.models import PayrollRun


@pytest.fixture
def db_url(engine) -> str:
    return engine.url.render_as_string(hide_password=False)


async def run_cli(db_url: str, *args: str) -> int:
    """Run the CLI in a worker thread; it owns its own event loop."""
    cli = PayrollCli()
    return await asyncio.to_thread(cli.run, ["--database-url", db_url, *args])


class TestPayrollCli:
    async def test_no_command_prints_help(self, capsys):
        assert PayrollCli().run([]) == 1
        assert "hrms-payroll-ops" in capsys.readouterr().out

    async def test_create_and_process(self, db_url, staffed_company, capsys):
        assert await run_cli(db_url, "create-run", "--month", "4", "--year", "2025") == 0
        created = json.loads(capsys.readouterr().out)
        assert created["status"] == "draft"

        code = await run_cli(db_url, "process-run", "--run-id", created["payroll_run_id"])
        report = json.loads(capsys.readouterr().out)

        assert code == 0
        assert report["status"] == "completed"
        assert report["processed"] == 3
        assert report["total_amount"] == "243900.00"
        assert [s["reason"] for s in report["skipped"]] == ["no_salary_structure"]

    async def test_duplicate_run_exits_with_error_code(self, db_url, capsys):
        await run_cli(db_url, "create-run", "--month", "4", "--year", "2025")
        capsys.readouterr()

        code = await run_cli(db_url, "create-run", "--month", "4", "--year", "2025")

        assert code == 2
        assert "Error [DUPLICATE_RUN]" in capsys.readouterr().err

    async def test_validate_draft_refused(self, db_url, capsys):
        await run_cli(db_url, "create-run", "--month", "4", "--year", "2025")
        run_id = json.loads(capsys.readouterr().out)["payroll_run_id"]

        assert await run_cli(db_url, "validate-run", "--run-id", run_id) == 2
        assert "INVALID_STATE" in capsys.readouterr().err

    async def test_stuck_runs(self, db_url, session, capsys):
        assert await run_cli(db_url, "stuck-runs") == 0
        assert "No stuck runs" in capsys.readouterr().out

        session.add(PayrollRun(month=5, year=2025, status="draft"))
        await session.commit()
        await session.execute(
            update(PayrollRun).values(
                status="processing",
                processed_at=datetime.now(timezone.utc) - timedelta(hours=1),
            )
        )
        await session.commit()

        assert await run_cli(db_url, "stuck-runs", "--older-than-minutes", "30") == 3
        stuck = json.loads(capsys.readouterr().out)
        assert [r["period"] for r in stuck] == ["2025-05"]

    async def test_export_to_file(self, db_url, staffed_company, tmp_path, capsys):
        await run_cli(db_url, "create-run", "--month", "4", "--year", "2025")
        run_id = json.loads(capsys.readouterr().out)["payroll_run_id"]
        await run_cli(db_url, "process-run", "--run-id", run_id)
        capsys.readouterr()
        output = tmp_path / "payslips.csv"

        assert await run_cli(db_url, "export-payslips", "--run-id", run_id, "--output", str(output)) == 0

        with open(output, newline="") as f:
            rows = list(csv.reader(f))
        assert len(rows) == 4
        assert rows[0][0] == "Employee Code"
