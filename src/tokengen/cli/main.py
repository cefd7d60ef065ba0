#!/usr/bin/env python3
"""
tokengen command line.

Commands:
- plan: resolve and print the allocation plan for a configuration
- preview: circulating amounts per bucket N months after TGE
- simulate: run the distribution against the in-memory ledger and locker
- status: summarize the step log and vesting store in a state directory
"""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any

import click
from rich import box
from rich.console import Console
from rich.table import Table

from tokengen.blockchain.in_memory_ledger import InMemoryLedger
from tokengen.blockchain.liquidity_locker import LiquidityLocker
from tokengen.core import config as runtime_config
from tokengen.core.config import BUCKET_KIND_LIQUIDITY, BUCKET_KIND_VESTED, GenesisConfig, load_config
from tokengen.core.constants import ALLOCATION_PLAN_FILE, PERCENT_DENOMINATOR, STEP_LOG_FILE, VESTING_STORE_FILE
from tokengen.core.exceptions import TokenGenesisError
from tokengen.core.logging_config import setup_logging
from tokengen.core.state_file import read_json
from tokengen.core.units import format_units, months_to_seconds
from tokengen.distribution.orchestrator import DistributionOrchestrator
from tokengen.distribution.retry import RetryStrategy
from tokengen.distribution.step_log import StepRecord
from tokengen.distribution.steps import build_steps, resolve_plan
from tokengen.vesting.calculator import vested_amount
from tokengen.vesting.schedule import VestingSchedule
from tokengen.vesting.store import VestingScheduleStore

logger = logging.getLogger("tokengen.cli")
console = Console()


def _handle_cli_error(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging/exit codes."""
    logger.error("CLI error: %s", exc, exc_info=True)
    console.print(f"[bold red]Error:[/] {exc}")
    details = getattr(exc, "details", None)
    if details:
        console.print(f"[dim]{json.dumps(details, indent=2, default=str)}[/]")
    sys.exit(exit_code)


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _circulating_at(cfg: GenesisConfig, bucket_name: str, amount: int, timestamp: int) -> int:
    bucket = cfg.bucket(bucket_name)
    if bucket.kind == BUCKET_KIND_VESTED:
        unlocked = amount * bucket.tge_unlock_percent // PERCENT_DENOMINATOR
        schedule = VestingSchedule(
            schedule_id=f"preview:{bucket_name}",
            beneficiary=bucket.destination or "",
            total_amount=amount - unlocked,
            start=cfg.tge,
            cliff_duration=bucket.cliff_duration,
            vesting_duration=bucket.vesting_duration,
            revocable=bucket.revocable,
        )
        return unlocked + vested_amount(schedule, timestamp)
    if bucket.kind == BUCKET_KIND_LIQUIDITY and bucket.lock_duration:
        return amount if timestamp >= cfg.tge + bucket.lock_duration else 0
    return amount


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=runtime_config.LOG_LEVEL,
    show_default=True,
    help="Logging level",
)
@click.option("--json-output", is_flag=True, help="Output raw JSON")
@click.pass_context
def cli(ctx: click.Context, log_level: str, json_output: bool):
    """Token genesis allocation, vesting and distribution tooling."""
    setup_logging(level=log_level, log_file=runtime_config.LOG_FILE or None)
    ctx.ensure_object(dict)
    ctx.obj["json_output"] = json_output


@cli.command("plan")
@click.argument("config_path", type=click.Path(dir_okay=False))
@click.pass_context
def plan_command(ctx: click.Context, config_path: str):
    """
    Resolve the allocation plan for a genesis configuration.

    Example:
        tokengen plan genesis.yaml
    """
    try:
        cfg = load_config(config_path)
        allocation = resolve_plan(cfg)
    except TokenGenesisError as exc:
        _handle_cli_error(exc)
        return

    decimals = cfg.token.decimals
    if ctx.obj.get("json_output"):
        data = allocation.to_dict()
        data["fingerprint"] = allocation.fingerprint()
        data["steps"] = [step.describe() for step in build_steps(cfg, allocation)]
        _echo_json(data)
        return

    table = Table(
        title=f"{cfg.token.symbol} allocation ({format_units(allocation.total_supply, decimals)} total)",
        box=box.ROUNDED,
    )
    table.add_column("Bucket", style="cyan", no_wrap=True)
    table.add_column("Kind", style="magenta")
    table.add_column("%", justify="right")
    table.add_column("Amount", style="green", justify="right")
    table.add_column("Destination", style="yellow")

    for share in allocation.buckets:
        bucket = cfg.bucket(share.name)
        table.add_row(
            share.name,
            bucket.kind,
            str(share.percentage),
            format_units(allocation.amount(share.name), decimals),
            bucket.destination if not bucket.is_deferred else "[dim]deferred[/]",
        )
    console.print(table)
    if allocation.remainder_assigned_to:
        console.print(f"[dim]Remainder folded into {allocation.remainder_assigned_to}[/]")
    elif allocation.remainder:
        console.print(
            f"Remainder: {format_units(allocation.remainder, decimals)} to {cfg.remainder.sink}"
        )


@cli.command("preview")
@click.argument("config_path", type=click.Path(dir_okay=False))
@click.option(
    "--month",
    "months",
    type=click.IntRange(min=0),
    multiple=True,
    help="Months after TGE to preview (repeatable)",
)
@click.pass_context
def preview_command(ctx: click.Context, config_path: str, months: tuple[int, ...]):
    """
    Show the circulating amount of each bucket at points after TGE.

    Example:
        tokengen preview genesis.yaml --month 0 --month 12 --month 36
    """
    months = months or (0, 6, 12, 24, 36)
    try:
        cfg = load_config(config_path)
        allocation = resolve_plan(cfg)
        rows = {
            name: [
                _circulating_at(cfg, name, amount, cfg.tge + months_to_seconds(month))
                for month in months
            ]
            for name, amount in allocation.amounts.items()
        }
    except TokenGenesisError as exc:
        _handle_cli_error(exc)
        return

    decimals = cfg.token.decimals
    totals = [sum(values[i] for values in rows.values()) for i in range(len(months))]

    if ctx.obj.get("json_output"):
        _echo_json(
            {
                "months": list(months),
                "buckets": {name: [str(v) for v in values] for name, values in rows.items()},
                "total": [str(v) for v in totals],
            }
        )
        return

    table = Table(title=f"{cfg.token.symbol} circulating supply", box=box.ROUNDED)
    table.add_column("Bucket", style="cyan", no_wrap=True)
    for month in months:
        table.add_column(f"M{month}", justify="right")
    for name, values in rows.items():
        table.add_row(name, *(format_units(v, decimals) for v in values))
    table.add_row("[bold]total", *(f"[bold]{format_units(v, decimals)}" for v in totals))
    console.print(table)


@cli.command("simulate")
@click.argument("config_path", type=click.Path(dir_okay=False))
@click.option(
    "--state-dir",
    type=click.Path(file_okay=False),
    default=runtime_config.STATE_DIR,
    show_default=True,
    help="Directory holding the plan record, vesting store and step log",
)
@click.option("--bucket", "buckets", multiple=True, help="Limit the run to these buckets")
@click.pass_context
def simulate_command(ctx: click.Context, config_path: str, state_dir: str, buckets: tuple[str, ...]):
    """
    Run the genesis distribution against the in-memory ledger.

    Re-running with the same state directory resumes from the step log.

    Example:
        tokengen simulate genesis.yaml --state-dir ./genesis_state
    """
    try:
        cfg = load_config(config_path)
        ledger = InMemoryLedger({cfg.source: cfg.total_supply_units})
        orchestrator = DistributionOrchestrator(
            cfg,
            ledger,
            locker=LiquidityLocker(),
            state_dir=state_dir,
            retry_strategy=RetryStrategy(
                max_retries=runtime_config.MAX_RETRIES,
                base_delay=runtime_config.RETRY_BASE_DELAY,
            ),
        )
        report = orchestrator.run(buckets=list(buckets) or None)
    except (TokenGenesisError, OSError, ValueError) as exc:
        _handle_cli_error(exc)
        return

    if ctx.obj.get("json_output"):
        _echo_json(report.to_dict())
    else:
        table = Table(show_header=False, box=box.ROUNDED)
        table.add_row("[bold green]Completed", ", ".join(report.completed) or "-")
        table.add_row("[bold cyan]Skipped", ", ".join(report.skipped) or "-")
        table.add_row("[bold yellow]Deferred", ", ".join(report.deferred) or "-")
        table.add_row("[bold magenta]Blocked", ", ".join(report.blocked) or "-")
        console.print(table)
        if not report.ok:
            console.print(f"[bold red]Failed at {report.failed_step}:[/] {report.error}")

    if not report.ok:
        sys.exit(1)


@cli.command("status")
@click.option(
    "--state-dir",
    type=click.Path(file_okay=False),
    default=runtime_config.STATE_DIR,
    show_default=True,
    help="Directory holding the plan record, vesting store and step log",
)
@click.pass_context
def status_command(ctx: click.Context, state_dir: str):
    """Summarize distribution progress and vesting schedules."""
    if not os.path.isdir(state_dir):
        _handle_cli_error(click.ClickException(f"State directory {state_dir} does not exist"))
        return
    try:
        plan_record = read_json(os.path.join(state_dir, ALLOCATION_PLAN_FILE))
        step_data = read_json(os.path.join(state_dir, STEP_LOG_FILE)) or {}
        store = VestingScheduleStore(os.path.join(state_dir, VESTING_STORE_FILE))
    except (OSError, ValueError) as exc:
        _handle_cli_error(exc)
        return

    records = [StepRecord.from_dict(entry) for entry in step_data.get("steps", [])]
    snapshot = store.snapshot()

    if ctx.obj.get("json_output"):
        _echo_json(
            {
                "plan_fingerprint": plan_record.get("fingerprint") if plan_record else None,
                "steps": [record.to_dict() for record in records],
                "vesting": snapshot,
            }
        )
        return

    if plan_record:
        console.print(f"Plan fingerprint: [bold]{plan_record.get('fingerprint')}[/]")

    steps_table = Table(title="Distribution steps", box=box.ROUNDED)
    steps_table.add_column("Step", style="cyan", no_wrap=True)
    steps_table.add_column("Status")
    steps_table.add_column("Amount", justify="right")
    steps_table.add_column("TX / Result", style="dim")
    for record in records:
        steps_table.add_row(
            record.key,
            record.status.value,
            record.amount,
            record.tx_hash or record.result or (record.error or {}).get("message", ""),
        )
    console.print(steps_table)

    schedules_table = Table(title="Vesting schedules", box=box.ROUNDED)
    schedules_table.add_column("ID", style="cyan")
    schedules_table.add_column("Beneficiary", style="yellow")
    schedules_table.add_column("Total", justify="right")
    schedules_table.add_column("Released", justify="right")
    schedules_table.add_column("Revoked")
    for entry in snapshot["schedules"]:
        schedules_table.add_row(
            entry["schedule_id"],
            entry["beneficiary"],
            str(entry["total_amount"]),
            str(entry["released"]),
            "yes" if entry["revoked"] else "no",
        )
    console.print(schedules_table)

    funding = snapshot["funding"]
    console.print(
        f"Vesting pool: funded {funding['funded']}, committed {funding['committed']}, "
        f"disbursed {funding['disbursed']}"
    )


def main():
    """Main CLI entry point"""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/]")
        sys.exit(130)


if __name__ == "__main__":
    main()
