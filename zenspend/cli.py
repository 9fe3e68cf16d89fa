"""Console interface for ZenSpend."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Optional

from budget_core.backup import backup_filename, export_backup, parse_backup, restore_backup
from budget_core.calculations import coffee_equivalent, cost_per_use, meal_equivalent
from budget_core.config import AppConfig
from budget_core.exceptions import (
    BackupFormatError,
    ConfirmationRequiredError,
    DecryptionError,
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)
from budget_core.models import CATEGORIES, Expense, ParkedItem, RunwayKind
from budget_core.services import LedgerEngine, feedback_for
from budget_core.storage import JSONStorage
from budget_core.validators import parse_amount, parse_uses
from offline_cache import AssetRequest, CacheController, build_controller
from offline_cache.exceptions import CacheError


def _parse_amount(value: str) -> str:
    try:
        amount = Decimal(value)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError("Amount must be a numeric value") from exc
    if not amount.is_finite():
        raise argparse.ArgumentTypeError("Amount must be a finite number")
    if amount < 0:
        raise argparse.ArgumentTypeError("Amount cannot be negative")
    return value


def _format_expense(expense: Expense) -> str:
    kind = "Want" if expense.is_want else "Need"
    stamp = expense.date.astimezone().strftime("%d %b %H:%M")
    line = f"[{expense.id}] {stamp} {expense.category} {expense.amount:,.2f} ({kind})"
    if expense.description:
        line += f"\n  {expense.description}"
    return line


def _format_parked(item: ParkedItem, engine: LedgerEngine) -> str:
    line = (
        f"[{item.id}] {item.category} {item.amount:,.2f} "
        f"- {item.days_left(engine.now())} days left"
    )
    if item.description:
        line += f"\n  {item.description}"
    return line


def handle_budget(args: argparse.Namespace, engine: LedgerEngine) -> None:
    if args.command == "set":
        budget = engine.set_budget(args.amount)
        print(f"Budget saved: {budget:,.2f}")
    else:
        print(f"Monthly budget: {engine.session.budget:,.2f}")


def handle_expense(args: argparse.Namespace, engine: LedgerEngine) -> None:
    if args.command == "add":
        meal_days = meal_equivalent(parse_amount(args.amount, "amount"))
        if meal_days is not None:
            print(f"That's equivalent to {meal_days} days of essential meals.")
        expense = engine.add_expense(
            args.amount,
            args.category,
            args.description,
            args.want,
            confirmed=args.confirm,
        )
        print("Expense added:\n" + _format_expense(expense))
        if feedback_for(expense):
            print("That one hurt. Was it really worth it?")
    elif args.command == "list":
        expenses = engine.list_expenses(args.month)
        if not expenses:
            print("No expenses yet. Start tracking!")
            return
        total = engine.monthly_spending(args.month)
        print(f"Found {len(expenses)} expenses (total {total:,.2f}):")
        for expense in expenses:
            print(_format_expense(expense))
    elif args.command == "delete":
        engine.delete_expense(args.id)
        print(f"Expense {args.id} deleted.")


def handle_park(args: argparse.Namespace, engine: LedgerEngine) -> None:
    if args.command == "add":
        item = engine.park_item(args.amount, args.category, args.description)
        print("Item parked for 30 days:\n" + _format_parked(item, engine))
    elif args.command == "list":
        items = engine.list_parked()
        if not items:
            print("Parked items will appear here.")
            return
        for item in items:
            print(_format_parked(item, engine))
    elif args.command == "convert":
        expense = engine.convert_parked_to_expense(args.id)
        if expense is None:
            print(f"No parked item {args.id}.")
            return
        print("Bought:\n" + _format_expense(expense))
    elif args.command == "remove":
        engine.delete_parked_item(args.id)
        print("Item removed from parking!")


def handle_dashboard(args: argparse.Namespace, engine: LedgerEngine) -> None:
    summary = engine.dashboard()
    if summary.runway.kind is RunwayKind.INFINITE:
        runway = "infinite"
    elif summary.runway.kind is RunwayKind.OVERRUN:
        runway = "Overrun!"
    else:
        runway = summary.runway.date.strftime("%d %b")
    print(f"Safe to spend today: {summary.safe_to_spend:,.0f}")
    print(f"Spent this month:    {summary.spent:,.2f} of {summary.budget:,.2f} ({summary.progress:.0f}%)")
    print(f"Runway:              {runway}")
    print(f"Impulse tax:         {summary.impulse_tax:,.2f}")
    print(f"Mood:                {summary.mood.value}")


def handle_report(args: argparse.Namespace, engine: LedgerEngine) -> None:
    if args.command == "categories":
        totals = engine.spending_by_category(args.month)
        if not totals:
            print("No expenses yet.")
        for category, total in sorted(totals.items()):
            print(f"{category:<15} {total:>12,.2f}")
    else:
        for month, total in engine.monthly_trend(args.months):
            print(f"{month} {total:>12,.2f}")


def handle_cpu(args: argparse.Namespace) -> None:
    per_use = cost_per_use(Decimal(args.amount), parse_uses(args.uses))
    print(f"{per_use:,.0f} per use")
    print(f"That's ~{coffee_equivalent(per_use)} expensive coffees each time!")


def handle_backup(args: argparse.Namespace, engine: LedgerEngine) -> None:
    if args.command == "export":
        content = export_backup(engine, args.passphrase)
        target = args.output or Path(backup_filename(engine.now()))
        target.write_text(content, encoding="utf-8")
        print(f"Backup created: {target}")
        return

    content = args.file.read_text(encoding="utf-8")
    document = parse_backup(content, args.passphrase)
    if not args.yes:
        raise ConfirmationRequiredError(["replace_all_data"])
    restore_backup(engine, document)
    print(
        f"Data imported successfully: {len(document.expenses)} expenses, "
        f"{len(document.parking)} parked items."
    )


def handle_clear(args: argparse.Namespace, engine: LedgerEngine) -> None:
    if not args.yes:
        raise ConfirmationRequiredError(["delete_all_data"])
    engine.clear_all()
    print("All data cleared.")


def handle_cache(args: argparse.Namespace, controller: CacheController) -> None:
    try:
        if args.command == "install":
            controller.install()
            print(f"Cache {controller.tag} installed.")
        elif args.command == "activate":
            deleted = controller.activate()
            print(f"Cache {controller.tag} active; removed {len(deleted)} stale generation(s).")
        elif args.command == "status":
            print(f"Generation {controller.tag}: {controller.state.value}")
        elif args.command == "fetch":
            response = controller.fetch(AssetRequest(args.url, accept=args.accept))
            controller.wait_for_pending()
            print(f"{response.status} {args.url} ({len(response.body)} bytes)")
    finally:
        controller.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="ZenSpend budgeting CLI")
    parser.add_argument(
        "--data-dir",
        type=Path,
        help="Directory to store JSON data (default: $ZENSPEND_DATA_DIR or ./data)",
    )
    parser.add_argument("--verbose", action="store_true", help="Log engine activity to stderr")

    subparsers = parser.add_subparsers(dest="entity", required=True)

    budget_parser = subparsers.add_parser("budget", help="Show or set the monthly budget")
    budget_sub = budget_parser.add_subparsers(dest="command", required=True)
    budget_set = budget_sub.add_parser("set", help="Set the monthly budget")
    budget_set.add_argument("amount", type=_parse_amount)
    budget_sub.add_parser("show", help="Show the monthly budget")

    expense_parser = subparsers.add_parser("expense", help="Manage expenses")
    expense_sub = expense_parser.add_subparsers(dest="command", required=True)

    expense_add = expense_sub.add_parser("add", help="Record an expense")
    expense_add.add_argument("amount", type=_parse_amount)
    expense_add.add_argument("category", help=f"One of: {', '.join(CATEGORIES)}")
    expense_add.add_argument("--description")
    expense_add.add_argument("--want", action="store_true", help="Mark as a Want instead of a Need")
    expense_add.add_argument(
        "--confirm", action="store_true", help="Confirm a Want or a large discretionary purchase"
    )

    expense_list = expense_sub.add_parser("list", help="List expenses for a month")
    expense_list.add_argument("--month", help="YYYY-MM (default: current month)")

    expense_delete = expense_sub.add_parser("delete", help="Delete an expense")
    expense_delete.add_argument("id", type=int)

    park_parser = subparsers.add_parser("park", help="Manage the 30-day parking lot")
    park_sub = park_parser.add_subparsers(dest="command", required=True)
    park_add = park_sub.add_parser("add", help="Park a purchase for 30 days")
    park_add.add_argument("amount", type=_parse_amount)
    park_add.add_argument("category")
    park_add.add_argument("--description")
    park_sub.add_parser("list", help="List parked items")
    park_convert = park_sub.add_parser("convert", help="Buy a parked item now")
    park_convert.add_argument("id", type=int)
    park_remove = park_sub.add_parser("remove", help="Remove a parked item")
    park_remove.add_argument("id", type=int)

    subparsers.add_parser("dashboard", help="Show safe-to-spend, runway and impulse tax")

    report_parser = subparsers.add_parser("report", help="Spending reports")
    report_sub = report_parser.add_subparsers(dest="command", required=True)
    report_categories = report_sub.add_parser("categories", help="Spending by category")
    report_categories.add_argument("--month")
    report_trend = report_sub.add_parser("trend", help="Monthly totals")
    report_trend.add_argument("--months", type=int, default=6)

    cpu_parser = subparsers.add_parser("cpu", help="Cost per use of a purchase")
    cpu_parser.add_argument("amount", type=_parse_amount)
    cpu_parser.add_argument("uses")

    backup_parser = subparsers.add_parser("backup", help="Export or import all data")
    backup_sub = backup_parser.add_subparsers(dest="command", required=True)
    backup_export = backup_sub.add_parser("export", help="Write a backup file")
    backup_export.add_argument("--output", type=Path)
    backup_export.add_argument("--passphrase", help="Encrypt the backup with this passphrase")
    backup_import = backup_sub.add_parser("import", help="Replace all data from a backup file")
    backup_import.add_argument("file", type=Path)
    backup_import.add_argument("--passphrase")
    backup_import.add_argument("--yes", action="store_true", help="Replace existing data")

    clear_parser = subparsers.add_parser("clear", help="Delete all data permanently")
    clear_parser.add_argument("--yes", action="store_true")

    cache_parser = subparsers.add_parser("cache", help="Offline asset cache")
    cache_sub = cache_parser.add_subparsers(dest="command", required=True)
    cache_sub.add_parser("install", help="Download every asset of the current generation")
    cache_sub.add_parser("activate", help="Activate the installed generation and drop stale ones")
    cache_sub.add_parser("status", help="Show the cache state")
    cache_fetch = cache_sub.add_parser("fetch", help="Fetch an asset through the cache")
    cache_fetch.add_argument("url")
    cache_fetch.add_argument("--accept", default="*/*")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = AppConfig.from_env()
    if args.data_dir is not None:
        config = replace(config, data_dir=args.data_dir, cache_dir=args.data_dir / "cache")

    try:
        if args.entity == "cache":
            handle_cache(args, build_controller(config))
            return 0
        if args.entity == "cpu":
            handle_cpu(args)
            return 0

        engine = LedgerEngine(JSONStorage(config.data_dir))
        if args.entity == "budget":
            handle_budget(args, engine)
        elif args.entity == "expense":
            handle_expense(args, engine)
        elif args.entity == "park":
            handle_park(args, engine)
        elif args.entity == "dashboard":
            handle_dashboard(args, engine)
        elif args.entity == "report":
            handle_report(args, engine)
        elif args.entity == "backup":
            handle_backup(args, engine)
        elif args.entity == "clear":
            handle_clear(args, engine)
        else:  # pragma: no cover - argparse should prevent this
            parser.error(f"Unknown entity: {args.entity}")
            return 2
    except ValidationError as exc:
        print(f"Validation error: {exc}", file=sys.stderr)
        return 1
    except ConfirmationRequiredError as exc:
        print(f"{exc}. Re-run with --confirm (or --yes) to proceed.", file=sys.stderr)
        return 1
    except RecordNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except DecryptionError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except BackupFormatError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except PersistenceError as exc:
        print(f"Storage error: {exc}", file=sys.stderr)
        return 1
    except CacheError as exc:
        print(f"Cache error: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"File error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
