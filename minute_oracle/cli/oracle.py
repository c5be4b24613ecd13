"""
Minute Oracle CLI

Replays recorded swaps through a fresh oracle and answers queries against
the resulting history.

Usage:
    minute-oracle replay <trades.csv> [--at SECONDS]... [--interval START END]...
    minute-oracle config [--config FILE]

The trades file holds ``timestamp,price_sqrt`` rows in non-decreasing
timestamp order; a header row is optional.
"""

import csv
import json
from pathlib import Path
from typing import List, Optional, Tuple

import click

from minute_oracle import __version__
from minute_oracle.config import load_config
from minute_oracle.constants import OBSERVATIONS_LIMIT
from minute_oracle.exceptions import ConfigurationError, OracleException
from minute_oracle.logger import configure_logging
from minute_oracle.twap import TWAPOracle


def read_trades(path: Path) -> List[Tuple[int, int, str]]:
    """Return ``(line_number, timestamp, price_sqrt)`` for every data row."""
    trades = []
    with open(path, newline="", encoding="utf-8") as f:
        for line_number, row in enumerate(csv.reader(f), start=1):
            if not row or not "".join(row).strip() or row[0].lstrip().startswith("#"):
                continue
            if len(row) < 2:
                raise click.ClickException(f"{path}:{line_number}: expected 'timestamp,price_sqrt'")
            raw_ts, raw_price = row[0].strip(), row[1].strip()
            try:
                timestamp = int(raw_ts)
            except ValueError:
                if line_number == 1:
                    continue  # header
                raise click.ClickException(f"{path}:{line_number}: invalid timestamp {raw_ts!r}")
            trades.append((line_number, timestamp, raw_price))
    return trades


def format_timestamp(seconds: Optional[int]) -> str:
    return "-" if seconds is None else str(seconds)


@click.group()
@click.version_option(version=__version__, prog_name="minute-oracle")
def cli():
    """Minute TWAP Oracle Command Line Interface

    Replay swaps and query geometric-mean prices over minute intervals.
    """
    pass


@cli.command("replay")
@click.argument("trades_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--config", "-c", "config_path", type=click.Path(), help="Path to oracle.toml")
@click.option("--limit", "-l", type=click.IntRange(1, OBSERVATIONS_LIMIT), help="Override observations_limit")
@click.option("--at", "at_seconds", type=int, multiple=True, help="Point query (unix seconds)")
@click.option(
    "--interval", "-i",
    "intervals",
    type=(int, int),
    multiple=True,
    help="Interval query START END (unix seconds)",
)
@click.option("--strict", is_flag=True, help="Stop at the first failing interval")
def replay_cmd(
    trades_file: Path,
    config_path: Optional[str],
    limit: Optional[int],
    at_seconds: Tuple[int, ...],
    intervals: Tuple[Tuple[int, int], ...],
    strict: bool,
):
    """Replay a trades CSV and run queries.

    Examples:

        minute-oracle replay trades.csv --at 1700000100

        minute-oracle replay trades.csv -i 1700000000 1700003600 --strict
    """
    try:
        cfg = load_config(config_path)
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    configure_logging(
        log_level=cfg.logging.level,
        log_file=Path(cfg.logging.file) if cfg.logging.file else None,
        console_output=cfg.logging.console_output,
        file_output=cfg.logging.file_output,
    )

    oracle = TWAPOracle(
        pool_id=trades_file.stem,
        observations_limit=limit or cfg.oracle.observations_limit,
    )

    trades = read_trades(trades_file)
    for line_number, timestamp, price_sqrt in trades:
        try:
            oracle.record_trade(price_sqrt, timestamp)
        except OracleException as e:
            raise click.ClickException(f"{trades_file}:{line_number}: trade rejected: {e}")

    click.echo(f"Trades replayed:     {len(trades)}")
    click.echo(f"Observations stored: {oracle.observations_stored()} / {oracle.observations_limit()}")
    click.echo(f"Oldest observation:  {format_timestamp(oracle.oldest_observation_at())}")
    click.echo(f"Newest observation:  {format_timestamp(oracle.newest_observation_at())}")

    failed = False

    if at_seconds:
        click.echo()
        click.echo(click.style("Observations", bold=True))
        for seconds in at_seconds:
            try:
                obs = oracle.observation(seconds)
                click.echo(f"  {seconds:>12} -> minute {obs.timestamp_minute}  acc {obs.price_sqrt_log_acc}")
            except OracleException as e:
                failed = True
                click.echo(click.style(f"  {seconds:>12} -> {type(e).__name__}: {e}", fg="red"))

    if intervals:
        click.echo()
        click.echo(click.style("Intervals", bold=True))
        try:
            results = oracle.observation_intervals(list(intervals), strict=strict)
        except OracleException as e:
            raise click.ClickException(f"{type(e).__name__}: {e}")
        for (start, end), result in zip(intervals, results):
            if result.ok:
                click.echo(
                    f"  [{result.start}, {result.end}) price_sqrt_avg {result.price_sqrt_avg}"
                )
            else:
                failed = True
                click.echo(click.style(
                    f"  [{start}, {end}) {type(result.error).__name__}: {result.error}", fg="red"
                ))

    if failed:
        click.get_current_context().exit(1)


@cli.command("config")
@click.option("--config", "-c", "config_path", type=click.Path(), help="Path to oracle.toml")
def config_cmd(config_path: Optional[str]):
    """Print the resolved configuration as JSON."""
    try:
        cfg = load_config(config_path)
    except ConfigurationError as e:
        raise click.ClickException(str(e))
    click.echo(json.dumps(cfg.to_dict(), indent=2))


if __name__ == "__main__":
    cli()
