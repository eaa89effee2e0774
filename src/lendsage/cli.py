"""Command line interface for LendSage."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Optional

import click

from .config import BaseConfig
from .context import AppContext, create_app_context
from .logging_config import setup_logging
from .models.account import Account
from .services import importers
from .services.export_csv import export_debts_csv, export_repayments_csv
from .services.importers import ImportBatchResult
from .services.interest import money


def _parse_as_of(value: Optional[str]) -> date:
    if not value:
        return date.today()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise click.BadParameter("use YYYY-MM-DD", param_hint="--as-of") from exc


def _echo_result(label: str, result: ImportBatchResult, limit: int) -> None:
    click.echo(
        f"{label}: imported {result.imported_count}, skipped {result.skipped_count}"
    )
    shown, hidden = result.display_errors(limit)
    for issue in shown:
        click.echo(f"  [{issue.error}] {issue}", err=True)
    if hidden:
        click.echo(f"  +{hidden} more", err=True)
    for warning in result.warnings:
        click.echo(f"  warning: {warning}", err=True)


@click.group()
@click.option("--user-id", type=int, default=1, show_default=True, help="Owner of the data")
@click.pass_context
def cli(ctx: click.Context, user_id: int) -> None:
    """Track money lent out and its repayments."""

    config = BaseConfig()
    setup_logging(config)
    ctx.obj = {"app": create_app_context(config), "user_id": user_id}


def _app(ctx: click.Context) -> AppContext:
    return ctx.obj["app"]


@cli.command("add-account")
@click.argument("holder_name")
@click.option("--bank", "bank_name", default="", help="Bank name")
@click.option("--number", "account_number", default=None, help="Account number")
@click.option("--balance", default="0", show_default=True, help="Opening balance")
@click.pass_context
def add_account(
    ctx: click.Context,
    holder_name: str,
    bank_name: str,
    account_number: Optional[str],
    balance: str,
) -> None:
    """Register an account that debts are lent from."""

    app = _app(ctx)
    try:
        opening = money(balance)
    except (TypeError, ValueError) as exc:
        raise click.BadParameter(str(exc), param_hint="--balance") from exc
    account = app.account_repo.create(
        Account(
            user_id=ctx.obj["user_id"],
            holder_name=holder_name,
            bank_name=bank_name,
            account_number=account_number,
            balance=opening,
            currency=app.config.DEFAULT_CURRENCY,
        ),
        user_id=ctx.obj["user_id"],
    )
    click.echo(f"Account {account.id}: {account.label} ({account.balance})")


@cli.command("import")
@click.argument("debts_csv", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--repayments",
    "repayments_csv",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Repayments CSV imported after the debts",
)
@click.pass_context
def import_command(ctx: click.Context, debts_csv: Path, repayments_csv: Optional[Path]) -> None:
    """Import debts (and optionally their repayments) from CSV."""

    app = _app(ctx)
    user_id = ctx.obj["user_id"]
    repos = {
        "debt_repo": app.debt_repo,
        "account_ledger": app.account_repo,
        "user_id": user_id,
    }
    limit = app.config.IMPORT_ERROR_DISPLAY_LIMIT

    debts_result = importers.import_debts_file(debts_csv, **repos)
    _echo_result("Debts", debts_result, limit)
    if repayments_csv is not None:
        repayments_result = importers.import_repayments_file(
            repayments_csv, debt_id_mapping=debts_result.debt_id_mapping, **repos
        )
        _echo_result("Repayments", repayments_result, limit)
    app.summary_cache.clear()
    if debts_result.fatal:
        ctx.exit(1)


@cli.command("summary")
@click.option("--as-of", default=None, help="Valuation date (YYYY-MM-DD), default today")
@click.pass_context
def summary_command(ctx: click.Context, as_of: Optional[str]) -> None:
    """Print portfolio totals."""

    app = _app(ctx)
    debts = app.debt_repo.list_all(user_id=ctx.obj["user_id"])
    summary = app.summary_cache.summarize(debts, _parse_as_of(as_of))
    rows: list[tuple[str, object]] = [
        ("Debts", summary.total_debts),
        ("Principal", summary.total_principal),
        ("Interest accrued", summary.total_interest_accrued),
        ("Repaid", summary.total_repaid),
        ("Outstanding", summary.total_outstanding),
        ("Active", summary.active_count),
        ("Overdue", summary.overdue_count),
    ]
    for label, value in rows:
        shown = format(value, "f") if isinstance(value, Decimal) else value
        click.echo(f"{label:<18}{shown}")


@cli.command("export")
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("exports"),
    show_default=True,
)
@click.option("--as-of", default=None, help="Valuation date (YYYY-MM-DD), default today")
@click.pass_context
def export_command(ctx: click.Context, output_dir: Path, as_of: Optional[str]) -> None:
    """Export debts and repayments to CSV files."""

    app = _app(ctx)
    user_id = ctx.obj["user_id"]
    debts = app.debt_repo.list_all(user_id=user_id)
    debts_path = export_debts_csv(
        debts=debts,
        output_path=output_dir / "debts.csv",
        as_of=_parse_as_of(as_of),
        account_labels=app.account_labels(user_id),
    )
    repayments_path = export_repayments_csv(
        debts=debts, output_path=output_dir / "repayments.csv"
    )
    click.echo(f"Export written: {debts_path}")
    click.echo(f"Export written: {repayments_path}")


def main() -> None:
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
