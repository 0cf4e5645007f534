"""Ledger engine command line interface.

Provides offline tools for:
- Computing a payroll batch from a roster file
- Computing deductions for a single salary

Usage:
    python -m ledger_engine.cli payroll --roster roster.json --month 1 --year 2024
    python -m ledger_engine.cli deductions --salary 30000
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable
from uuid import UUID

from ledger_engine.calculators.allowances import AllowanceComposer
from ledger_engine.calculators.deductions import DeductionCalculator
from ledger_engine.config import get_settings, load_allowance_table, load_schedule
from ledger_engine.domain.payroll import EmployeeSnapshot, PayrollPeriod
from ledger_engine.errors import LedgerError
from ledger_engine.money import Money, to_decimal
from ledger_engine.services.payroll_service import PayrollRunService
from ledger_engine.services.reporting import summarize_payroll


def parse_decimal(s: str) -> Decimal:
    """Parse a decimal amount for argparse."""
    try:
        return to_decimal(s)
    except LedgerError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def roster_from_payload(payload: Any, currency: str) -> list[EmployeeSnapshot]:
    """Roster rows from a JSON list, or an object with an ``employees`` list."""
    rows = payload.get("employees", []) if isinstance(payload, dict) else payload
    return [
        EmployeeSnapshot(
            employee_id=UUID(row["employee_id"]),
            employee_code=row["employee_code"],
            full_name=row["full_name"],
            basic_salary=Money.of(row["basic_salary"], currency),
            status=row.get("status", "active"),
            hire_date=date.fromisoformat(row["hire_date"]) if row.get("hire_date") else None,
            department=row.get("department"),
            role=row.get("role"),
        )
        for row in rows
    ]


class LedgerCli:
    """Ledger engine Command Line Interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m ledger_engine.cli",
            description="Ledger engine payroll tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # payroll command
        payroll = subparsers.add_parser(
            "payroll",
            help="Compute a payroll batch from a roster JSON file",
        )
        payroll.add_argument(
            "--roster",
            type=Path,
            required=True,
            help="Roster JSON (list of employees or {\"employees\": [...]})",
        )
        payroll.add_argument("--month", type=int, required=True, help="Period month (1-12)")
        payroll.add_argument("--year", type=int, required=True, help="Period year")
        payroll.add_argument(
            "--currency",
            type=str,
            help="Currency of the roster salaries (default from settings)",
        )
        payroll.add_argument(
            "--schedule",
            type=str,
            help="Deduction schedule JSON (default from settings or built-in)",
        )
        payroll.add_argument(
            "--allowances",
            type=str,
            help="Allowance table JSON (default from settings or built-in)",
        )
        payroll.add_argument(
            "--output",
            type=Path,
            help="Write the batch here instead of stdout",
        )

        # deductions command
        deductions = subparsers.add_parser(
            "deductions",
            help="Compute tax and statutory deductions for one salary",
        )
        deductions.add_argument(
            "--salary",
            type=parse_decimal,
            required=True,
            help="Basic salary amount",
        )
        deductions.add_argument("--currency", type=str, help="Currency code")
        deductions.add_argument("--schedule", type=str, help="Deduction schedule JSON")

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        handlers: dict[str, Callable[[argparse.Namespace], int]] = {
            "payroll": self._cmd_payroll,
            "deductions": self._cmd_deductions,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        try:
            return handler(parsed)
        except (LedgerError, ValueError, KeyError, OSError) as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1

    def _cmd_payroll(self, args: argparse.Namespace) -> int:
        """Compute and print a payroll batch with its summary."""
        settings = get_settings()
        currency = args.currency or settings.default_currency
        service = PayrollRunService(
            DeductionCalculator(load_schedule(args.schedule or settings.payroll_schedule_path)),
            AllowanceComposer(
                load_allowance_table(args.allowances or settings.allowance_table_path)
            ),
            default_currency=currency,
        )

        with args.roster.open(encoding="utf-8") as fh:
            roster = roster_from_payload(json.load(fh), currency)

        batch = service.run(PayrollPeriod(month=args.month, year=args.year), roster)
        output = batch.to_dict()
        output["summary"] = summarize_payroll(batch).to_dict()
        text = json.dumps(output, indent=2)

        if args.output:
            args.output.write_text(text + "\n", encoding="utf-8")
            print(
                f"Wrote {batch.control_totals.employee_count} entries for "
                f"{batch.period.label} to {args.output}"
            )
        else:
            print(text)

        if batch.anomalies:
            codes = ", ".join(e.employee_code for e in batch.anomalies)
            print(f"WARNING: negative net pay for {codes}", file=sys.stderr)
        return 0

    def _cmd_deductions(self, args: argparse.Namespace) -> int:
        """Print the deductions for one salary."""
        settings = get_settings()
        currency = args.currency or settings.default_currency
        calculator = DeductionCalculator(
            load_schedule(args.schedule or settings.payroll_schedule_path)
        )
        result = calculator.compute_deductions(Money.of(args.salary, currency))

        schedule = calculator.schedule
        print(f"Salary:  {args.salary} {currency}")
        print(f"  Tax:   {result.tax.amount}")
        print(f"  {schedule.statutory_a.name}: {result.statutory_a.amount}")
        print(f"  {schedule.statutory_b.name}: {result.statutory_b.amount}")
        print(f"  Total: {result.total.amount}")
        return 0


def main() -> int:
    """CLI entry point."""
    logging.basicConfig(level=logging.WARNING)
    cli = LedgerCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
