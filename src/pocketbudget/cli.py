"""Command-line interface for PocketBudget."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from threading import Event
from typing import Optional

import click

from .config import BaseConfig, DevConfig
from .constants.months import month_name, resolve_month
from .context import AppContext, create_app_context
from .domain.repositories.blob import SyncError
from .domain.state import BudgetState
from .logging_config import setup_logging
from .models.period import Period
from .models.transaction import CASH, CHECK, PAYMENT_METHODS, TRANSACTION_TYPES, CheckDetails
from .services import balances, export_csv, ledger_service, persistence, reports
from .services.import_excel import import_excel_file
from .services.reconciler import import_csv_file

ALL_MONTHS = "all"


def _app(ctx: click.Context) -> AppContext:
    return ctx.find_root().obj


def _resolve_target(app: AppContext, month: Optional[str], year: Optional[int]) -> Optional[Period]:
    """Turn ``--month``/``--year`` into a period; ``all`` means no single month."""

    state = app.state
    if month is None:
        month_number = state.last_selected_month or date.today().month
    elif month.strip().lower() == ALL_MONTHS:
        return None
    elif month.strip().isdigit():
        month_number = int(month.strip())
    else:
        month_number = resolve_month(month)
    if month_number is None or not 1 <= month_number <= 12:
        raise click.BadParameter(f"unknown month {month!r}", param_hint="--month")
    return Period(year or state.last_selected_year or state.current_year, month_number)


def _require_period(app: AppContext, month: Optional[str], year: Optional[int]) -> Period:
    period = _resolve_target(app, month, year)
    if period is None:
        raise click.BadParameter("choose a single month", param_hint="--month")
    return period


month_option = click.option("--month", "-m", help="Month name or number (default: last used).")
year_option = click.option("--year", "-y", type=int, help="Year (default: last used).")


@click.group()
@click.option("--dev", is_flag=True, default=False, help="Use the development configuration.")
@click.pass_context
def main(ctx: click.Context, dev: bool) -> None:
    """Household budget tracker."""

    if isinstance(ctx.obj, AppContext):
        return
    config = DevConfig() if dev else BaseConfig()
    setup_logging(config)
    ctx.obj = create_app_context(config)


def _echo_import(result) -> None:
    click.echo(result.summary())
    if not result.ok:
        raise click.exceptions.Exit(1)


@main.command("import-csv")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@month_option
@year_option
@click.pass_context
def import_csv_command(ctx: click.Context, path: Path, month: Optional[str], year: Optional[int]) -> None:
    """Import a year,month,item,debit,credit CSV file into one month."""

    app = _app(ctx)
    target = _resolve_target(app, month, year)
    _echo_import(app.run(import_csv_file, path, target=target))


@main.command("import-excel")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@month_option
@year_option
@click.pass_context
def import_excel_command(ctx: click.Context, path: Path, month: Optional[str], year: Optional[int]) -> None:
    """Import a bank statement workbook into one month."""

    app = _app(ctx)
    target = _resolve_target(app, month, year)
    _echo_import(app.run(import_excel_file, path, target=target))


@main.command("add")
@click.argument("item")
@click.argument("amount", type=float)
@month_option
@year_option
@click.option("--type", "transaction_type", type=click.Choice(TRANSACTION_TYPES), default=None)
@click.option("--category", default=None, help="Category; stored as a mapping for new items.")
@click.option("--exclude-from-monthly", is_flag=True, default=False)
@click.option("--note", default="")
@click.option("--payment", type=click.Choice(PAYMENT_METHODS), default=CASH)
@click.option("--check-number", default="")
@click.option("--payee", default="")
@click.option("--color", default=None)
@click.pass_context
def add_command(
    ctx: click.Context,
    item: str,
    amount: float,
    month: Optional[str],
    year: Optional[int],
    transaction_type: Optional[str],
    category: Optional[str],
    exclude_from_monthly: bool,
    note: str,
    payment: str,
    check_number: str,
    payee: str,
    color: Optional[str],
) -> None:
    """Record a transaction.

    AMOUNT is a magnitude; the sign follows the transaction type. To pass a
    negative number anyway, put it after `--`, e.g. `pocketbudget add -- Rent -200`.
    """

    app = _app(ctx)
    period = _require_period(app, month, year)
    details = CheckDetails(check_number, payee) if payment == CHECK else None
    try:
        txn = app.run(
            ledger_service.add_transaction,
            period=period,
            item=item,
            amount=amount,
            transaction_type=transaction_type,
            category=category,
            include_in_monthly_expenses=not exclude_from_monthly,
            note=note,
            payment_method=payment,
            check_details=details,
            color=color,
        )
    except ledger_service.LedgerValidationError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Added {txn.type} {txn.item!r} {txn.amount:.2f} ({txn.category}) to {period}")


@main.command("note")
@click.argument("text")
@month_option
@year_option
@click.pass_context
def note_command(ctx: click.Context, text: str, month: Optional[str], year: Optional[int]) -> None:
    """Set (or clear with an empty string) the note of a month."""

    app = _app(ctx)
    period = _require_period(app, month, year)
    app.run(ledger_service.set_monthly_note, period, text)
    click.echo(f"Note for {period} saved")


@main.command("summary")
@month_option
@year_option
@click.pass_context
def summary_command(ctx: click.Context, month: Optional[str], year: Optional[int]) -> None:
    """Show the balance, categories and monthly expenses of one month."""

    app = _app(ctx)
    period = _require_period(app, month, year)
    # Deriving an opening balance caches it, so this read goes through run().
    report = app.run(reports.monthly_report, period)
    balance = report.balance

    click.echo(f"{month_name(period.month)} {period.year}")
    click.echo(f"  Opening   {balance.opening:>12.2f}  ({balance.status.value})")
    click.echo(f"  Income    {balance.income:>12.2f}")
    click.echo(f"  Expenses  {balance.expenses:>12.2f}")
    click.echo(f"  Transfers {balance.transfers:>12.2f}")
    click.echo(f"  Closing   {balance.closing:>12.2f}")
    if report.categories:
        click.echo("Categories:")
        for entry in report.categories:
            click.echo(f"  {entry.category:<30} {entry.total:>12.2f}")
    if report.actual_expenses:
        click.echo(f"Monthly expenses ({report.actual_expenses_total:.2f}):")
        for entry in report.actual_expenses:
            click.echo(f"  {entry.item:<30} {entry.total:>12.2f}")
    if report.check_payments or report.check_items:
        click.echo(f"Checks: {report.checks_total:.2f}")
    if balance.note:
        click.echo(f"Note: {balance.note}")


@main.command("annual")
@year_option
@click.option("--csv", "csv_path", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.pass_context
def annual_command(ctx: click.Context, year: Optional[int], csv_path: Optional[Path]) -> None:
    """Show the month-by-category grid of a year."""

    app = _app(ctx)
    grid = reports.annual_grid(app.state, year or app.state.current_year)
    if csv_path:
        export_csv.export_annual_grid_csv(grid=grid, output_path=csv_path)
        click.echo(f"Annual grid written: {csv_path}")
    else:
        click.echo(grid.to_string(float_format=lambda value: f"{value:.2f}"))


@main.command("set-balance")
@click.argument("amount", type=float, required=False)
@month_option
@year_option
@click.option("--clear", is_flag=True, default=False, help="Drop the manual value.")
@click.option("--refresh", is_flag=True, default=False, help="Re-derive the year's automatic balances.")
@click.pass_context
def set_balance_command(
    ctx: click.Context,
    amount: Optional[float],
    month: Optional[str],
    year: Optional[int],
    clear: bool,
    refresh: bool,
) -> None:
    """Set a month's opening balance by hand."""

    app = _app(ctx)
    period = _require_period(app, month, year)
    if clear:
        app.run(balances.clear_opening_balance_override, period)
        click.echo(f"Manual opening balance for {period} cleared")
    elif amount is not None:
        app.run(balances.set_opening_balance, period, amount)
        click.echo(f"Opening balance for {period} set to {amount:.2f}")
    elif not refresh:
        raise click.UsageError("give an AMOUNT, --clear or --refresh")
    if refresh:
        changed = app.run(balances.refresh_auto_balances, period.year)
        click.echo(f"{len(changed)} derived balances updated")


@main.group("mapping")
def mapping_group() -> None:
    """Manage item to category mappings."""


@mapping_group.command("set")
@click.argument("item")
@click.argument("category")
@click.option("--exclude-from-monthly", is_flag=True, default=False)
@click.pass_context
def mapping_set(ctx: click.Context, item: str, category: str, exclude_from_monthly: bool) -> None:
    app = _app(ctx)
    try:
        app.run(
            ledger_service.set_mapping,
            item,
            category,
            include_in_monthly_expenses=not exclude_from_monthly,
        )
    except ledger_service.LedgerValidationError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Mapping saved: {item} -> {category}")


@mapping_group.command("delete")
@click.argument("item")
@click.pass_context
def mapping_delete(ctx: click.Context, item: str) -> None:
    app = _app(ctx)
    outcome = app.run(ledger_service.delete_mapping, item)
    if outcome.usage_count:
        raise click.ClickException(
            f"Mapping {item!r} is used by {outcome.usage_count} transactions; delete them first"
        )
    if not outcome.deleted:
        raise click.ClickException(f"No mapping for {item!r}")
    click.echo(f"Mapping {item!r} deleted")


@mapping_group.command("list")
@click.pass_context
def mapping_list(ctx: click.Context) -> None:
    for usage in reports.mapping_usage(_app(ctx).state):
        flag = "" if usage.entry.include_in_monthly_expenses else " [not monthly]"
        click.echo(f"{usage.item} -> {usage.entry.category}{flag} ({usage.usage_count} uses)")


@mapping_group.command("export")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def mapping_export(ctx: click.Context, path: Path) -> None:
    data = persistence.export_mappings(_app(ctx).state)
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    click.echo(f"Mappings written: {path}")


@mapping_group.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def mapping_import(ctx: click.Context, path: Path) -> None:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise click.ClickException(f"Not a mappings file: {exc}") from exc
    written = _app(ctx).run(persistence.import_mappings, data)
    click.echo(f"{written} mappings imported")


@main.command("export-data")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def export_data(ctx: click.Context, path: Path) -> None:
    """Write the whole budget document to a JSON file."""

    path.write_text(persistence.dumps_state(_app(ctx).state), encoding="utf-8")
    click.echo(f"Budget exported: {path}")


@main.command("import-data")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.confirmation_option(prompt="This replaces all local data. Continue?")
@click.pass_context
def import_data(ctx: click.Context, path: Path) -> None:
    """Replace the budget with a previously exported document."""

    app = _app(ctx)
    result = persistence.loads_state(
        path.read_text(encoding="utf-8"), current_year=app.state.current_year
    )
    if not result.ok:
        raise click.ClickException(f"Could not read {path}: {result.error}")

    def replace(state: BudgetState) -> persistence.LoadResult:
        app.state = result.state
        return result

    app.run(replace)
    click.echo(f"Imported {len(result.state.transactions)} transactions from {path}")


@main.command("export-csv")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@month_option
@year_option
@click.option("--report", is_flag=True, default=False, help="Write the monthly summary instead.")
@click.pass_context
def export_csv_command(
    ctx: click.Context, path: Path, month: Optional[str], year: Optional[int], report: bool
) -> None:
    """Export transactions (or a monthly summary) as CSV."""

    app = _app(ctx)
    if report:
        period = _require_period(app, month, year)
        export_csv.export_monthly_report_csv(
            report=app.run(reports.monthly_report, period), output_path=path
        )
    else:
        period = _resolve_target(app, month, year) if month else None
        transactions = app.state.transactions_for(period) if period else app.state.transactions
        export_csv.export_transactions_csv(transactions=transactions, output_path=path)
    click.echo(f"CSV written: {path}")


@main.group("sync")
def sync_group() -> None:
    """Sync the budget with the remote copy."""


def _sync_call(func):
    try:
        return func()
    except SyncError as exc:
        raise click.ClickException(str(exc)) from exc


@sync_group.command("configure")
@click.option("--token", default=None, help="Access token.")
@click.option("--path", "file_path", default=None, help="Remote file path.")
@click.option("--auto/--no-auto", default=None, help="Upload after every change.")
@click.option("--bidirectional/--no-bidirectional", default=None, help="Poll for remote changes.")
@click.pass_context
def sync_configure(
    ctx: click.Context,
    token: Optional[str],
    file_path: Optional[str],
    auto: Optional[bool],
    bidirectional: Optional[bool],
) -> None:
    app = _app(ctx)
    settings = app.sync.settings
    if token is not None:
        settings.access_token = token or None
    if file_path:
        settings.file_path = file_path
    if auto is not None:
        settings.auto_sync_enabled = auto
    if bidirectional is not None:
        settings.bidirectional_sync_enabled = bidirectional
    app.save_sync_settings(settings)
    if app.scheduler is not None:
        app.scheduler.refresh_sync_job()
    click.echo(
        f"Sync to {settings.file_path}: auto={'on' if settings.auto_sync_enabled else 'off'}, "
        f"poll={'on' if settings.bidirectional_sync_enabled else 'off'}"
    )


@sync_group.command("upload")
@click.pass_context
def sync_upload(ctx: click.Context) -> None:
    outcome = _sync_call(_app(ctx).upload_local)
    click.echo(outcome.message)


@sync_group.command("download")
@click.confirmation_option(prompt="This replaces all local data with the remote copy. Continue?")
@click.pass_context
def sync_download(ctx: click.Context) -> None:
    outcome = _sync_call(_app(ctx).download_remote)
    click.echo(outcome.message)


@sync_group.command("check")
@click.pass_context
def sync_check(ctx: click.Context) -> None:
    outcome = _app(ctx).poll_remote()
    click.echo(outcome.message)
    if not outcome.ok:
        raise click.exceptions.Exit(1)


@sync_group.command("test")
@click.pass_context
def sync_test(ctx: click.Context) -> None:
    account = _sync_call(_app(ctx).sync.test_connection)
    name = (account.get("name") or {}).get("display_name") if isinstance(account, dict) else None
    click.echo(f"Connection OK{f': {name}' if name else ''}")


@sync_group.command("watch")
@click.pass_context
def sync_watch(ctx: click.Context) -> None:
    """Poll for remote changes until interrupted."""

    from .scheduler import create_scheduler

    app = _app(ctx)
    scheduler = create_scheduler(app, auto_start=True)
    if not scheduler.refresh_sync_job():
        scheduler.stop()
        raise click.ClickException("Enable --bidirectional sync and set a token first")
    click.echo("Watching for remote changes; press Ctrl+C to stop")
    try:
        Event().wait()
    except KeyboardInterrupt:
        click.echo("Stopping")
    finally:
        scheduler.stop()


__all__ = ["main"]
