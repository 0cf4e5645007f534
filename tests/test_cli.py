"""Tests for the command line interface."""

from __future__ import annotations

import json
from uuid import uuid4

import pytest

from ledger_engine.cli import LedgerCli
from ledger_engine.config import get_settings


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    for name in ("DEFAULT_CURRENCY", "PAYROLL_SCHEDULE_PATH", "ALLOWANCE_TABLE_PATH"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def roster_file(tmp_path):
    path = tmp_path / "roster.json"
    path.write_text(
        json.dumps(
            {
                "employees": [
                    {
                        "employee_id": str(uuid4()),
                        "employee_code": "EMP-001",
                        "full_name": "Wanjiku Kamau",
                        "basic_salary": "30000",
                        "hire_date": "2023-06-01",
                        "department": "development",
                    },
                    {
                        "employee_id": str(uuid4()),
                        "employee_code": "EMP-002",
                        "full_name": "Otieno Ochieng",
                        "basic_salary": "100000",
                        "hire_date": "2022-01-15",
                        "department": "management",
                    },
                ]
            }
        )
    )
    return path


class TestPayrollCommand:
    """payroll --roster ..."""

    def test_prints_batch(self, roster_file, capsys):
        code = LedgerCli().run(
            ["payroll", "--roster", str(roster_file), "--month", "3", "--year", "2024"]
        )

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["period"] == "3/2024"
        assert output["currency"] == "KES"
        assert output["control_totals"]["employee_count"] == 2
        assert output["entries"][0]["net_salary"] == "37570.00"
        assert output["summary"]["highest_net"] == output["entries"][1]["net_salary"]

    def test_writes_output_file(self, roster_file, tmp_path, capsys):
        target = tmp_path / "batch.json"
        code = LedgerCli().run(
            [
                "payroll",
                "--roster", str(roster_file),
                "--month", "3",
                "--year", "2024",
                "--output", str(target),
            ]
        )

        assert code == 0
        assert "Wrote 2 entries for 3/2024" in capsys.readouterr().out
        assert json.loads(target.read_text())["control_totals"]["employee_count"] == 2

    def test_custom_allowance_table(self, roster_file, tmp_path, capsys):
        table = tmp_path / "allowances.json"
        table.write_text(json.dumps({"rules": [{"department": "development", "other": 500}]}))

        LedgerCli().run(
            [
                "payroll",
                "--roster", str(roster_file),
                "--month", "3",
                "--year", "2024",
                "--allowances", str(table),
            ]
        )

        output = json.loads(capsys.readouterr().out)
        assert output["entries"][0]["allowances"]["total"] == "500.00"
        assert output["entries"][1]["allowances"]["total"] == "0.00"

    def test_missing_roster(self, tmp_path, capsys):
        code = LedgerCli().run(
            ["payroll", "--roster", str(tmp_path / "nope.json"), "--month", "3", "--year", "2024"]
        )
        assert code == 1
        assert "ERROR" in capsys.readouterr().err

    def test_invalid_month(self, roster_file, capsys):
        code = LedgerCli().run(
            ["payroll", "--roster", str(roster_file), "--month", "13", "--year", "2024"]
        )
        assert code == 1
        assert "Month must be 1-12" in capsys.readouterr().err


class TestDeductionsCommand:
    """deductions --salary ..."""

    def test_reference_salary(self, capsys):
        code = LedgerCli().run(["deductions", "--salary", "30000"])

        out = capsys.readouterr().out
        assert code == 0
        assert "Tax:   3900.00" in out
        assert "NHIF: 450.00" in out
        assert "NSSF: 1080.00" in out
        assert "Total: 5430.00" in out

    def test_bad_salary(self, capsys):
        with pytest.raises(SystemExit):
            LedgerCli().run(["deductions", "--salary", "lots"])


class TestNoCommand:
    def test_prints_help(self, capsys):
        assert LedgerCli().run([]) == 1
        assert "payroll" in capsys.readouterr().out
