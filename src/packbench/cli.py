"""Command-line interface for packbench.

Subcommands:
    packbench run       Benchmark one binary and optionally archive CSV series
    packbench compare   Compare two archived CSV series sets
    packbench regress   Benchmark a baseline and a candidate binary and compare

Exit codes: 0 when every gating metric is within the allowance, 1 on a
regression, 2 when the benchmark itself could not be carried out.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import click

from packbench import __version__
from packbench.compare import compare_and_print
from packbench.config import (
    PackBenchConfig,
    config_from_profile,
    load_profile,
    raise_for_errors,
    validate_config,
)
from packbench.display import format_result_summary
from packbench.export import Series, export_all, load_series, series_path
from packbench.logging import get_logger, setup_logging
from packbench.pack import PackRunner
from packbench.results import PackResult
from packbench.timing import ExecutionError

log = get_logger("cli")

EXIT_REGRESSION = 1
EXIT_ERROR = 2


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """packbench — resource-usage regression checks for the pack subcommand."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _fail(message: str, exc: BaseException) -> SystemExit:
    click.echo(f"Error: {message}", err=True)
    stderr = getattr(exc, "stderr", "")
    if stderr:
        click.echo(stderr.rstrip(), err=True)
    return SystemExit(EXIT_ERROR)


def _build_config(
    profile_path: Path | None,
    cli_overrides: dict[str, Any],
    *,
    require_baseline: bool,
) -> PackBenchConfig:
    profile = load_profile(profile_path) if profile_path else {}
    config = config_from_profile(profile, cli_overrides=cli_overrides)
    raise_for_errors(validate_config(config, require_baseline=require_baseline))
    return config


def _run_one(config: PackBenchConfig, *, baseline: bool) -> PackResult:
    run = config.pack_run(baseline=baseline)
    log.info("Benchmarking %s", run.binary)
    runner = PackRunner(run)
    runner.run()
    return runner.result()


def _prepare_archive(*prefixes: str | None) -> None:
    """Create the directories the CSV series will land in, before any run."""
    for prefix in prefixes:
        if prefix is not None:
            series_path(prefix, Series.MEMORY).parent.mkdir(parents=True, exist_ok=True)


def _archive(result: PackResult, prefix: str | None) -> None:
    if prefix is None:
        return
    for path in export_all(result, prefix):
        click.echo(f"Wrote {path}")


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


@main.command("run")
@click.option(
    "--profile",
    "profile_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="YAML profile with benchmark settings.",
)
@click.option("--binary", type=str, default=None, help="Binary to benchmark.")
@click.option("--repos", type=str, default=None, help="Repository list payload.")
@click.option(
    "--repos-file",
    type=click.Path(path_type=Path),
    default=None,
    help="File whose content is the repository list.",
)
@click.option("--timeout", type=str, default=None, help="Run timeout, e.g. 4h (default: 4h).")
@click.option("--subcommand", type=str, default=None, help="Subcommand (default: pack).")
@click.option("--csv-prefix", type=str, default=None, help="Write CSV series with this prefix.")
@click.option("-v", "--verbose", is_flag=True, help="Show detailed output.")
@click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors.")
@click.option("--log-file", type=click.Path(path_type=Path), default=None)
def run_cmd(
    profile_path: Path | None,
    binary: str | None,
    repos: str | None,
    repos_file: Path | None,
    timeout: str | None,
    subcommand: str | None,
    csv_prefix: str | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Benchmark one binary and print its resource usage.

    \b
    Examples:
        packbench run --binary ./tool --repos-file repos.txt
        packbench run --profile bench.yaml --csv-prefix results/new-
    """
    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)

    overrides: dict[str, Any] = {
        "binary": binary,
        "repos": repos,
        "repos_file": repos_file,
        "timeout": timeout,
        "subcommand": subcommand,
        "csv_prefix": csv_prefix,
    }
    try:
        config = _build_config(profile_path, overrides, require_baseline=False)
        _prepare_archive(config.csv_prefix)
        result = _run_one(config, baseline=False)
        click.echo(format_result_summary(result, title=config.binary))
        _archive(result, config.csv_prefix)
    except (ExecutionError, ValueError, OSError) as exc:
        raise _fail(str(exc), exc) from exc


# ---------------------------------------------------------------------------
# compare
# ---------------------------------------------------------------------------


@main.command("compare")
@click.argument("candidate_prefix", type=str)
@click.option(
    "--baseline-prefix",
    type=str,
    required=True,
    help="Prefix of the baseline CSV series.",
)
@click.option(
    "--allowance",
    type=float,
    default=5.0,
    show_default=True,
    help="Maximum tolerated increase in percent.",
)
@click.option("-v", "--verbose", is_flag=True, help="Show detailed output.")
def compare_cmd(
    candidate_prefix: str,
    baseline_prefix: str,
    allowance: float,
    verbose: bool,
) -> None:
    """Compare archived CSV series of a candidate against a baseline.

    CANDIDATE_PREFIX is the prefix the candidate's memory.csv, time.csv
    and file_size.csv were written with.

    \b
    Examples:
        packbench compare results/new- --baseline-prefix results/old-
    """
    setup_logging(verbose=verbose, quiet=not verbose)

    if allowance < 0:
        raise click.BadParameter("must not be negative", param_hint="--allowance")

    try:
        reference = load_series(baseline_prefix)
        candidate = load_series(candidate_prefix)
    except (ValueError, OSError) as exc:
        raise _fail(str(exc), exc) from exc

    if not compare_and_print(reference, candidate, allowance):
        raise SystemExit(EXIT_REGRESSION)


# ---------------------------------------------------------------------------
# regress
# ---------------------------------------------------------------------------


@main.command("regress")
@click.option(
    "--profile",
    "profile_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="YAML profile with benchmark settings.",
)
@click.option("--binary", type=str, default=None, help="Candidate binary.")
@click.option("--baseline-binary", type=str, default=None, help="Baseline binary.")
@click.option("--repos", type=str, default=None, help="Repository list payload.")
@click.option(
    "--repos-file",
    type=click.Path(path_type=Path),
    default=None,
    help="File whose content is the repository list.",
)
@click.option("--timeout", type=str, default=None, help="Per-run timeout, e.g. 4h.")
@click.option("--subcommand", type=str, default=None, help="Subcommand (default: pack).")
@click.option(
    "--allowance",
    type=float,
    default=None,
    help="Maximum tolerated increase in percent (default: 5.0).",
)
@click.option("--csv-prefix", type=str, default=None, help="CSV prefix for the candidate.")
@click.option(
    "--baseline-csv-prefix",
    type=str,
    default=None,
    help="CSV prefix for the baseline.",
)
@click.option("-v", "--verbose", is_flag=True, help="Show detailed output.")
@click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors.")
@click.option("--log-file", type=click.Path(path_type=Path), default=None)
def regress_cmd(
    profile_path: Path | None,
    binary: str | None,
    baseline_binary: str | None,
    repos: str | None,
    repos_file: Path | None,
    timeout: str | None,
    subcommand: str | None,
    allowance: float | None,
    csv_prefix: str | None,
    baseline_csv_prefix: str | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Benchmark a baseline and a candidate binary and compare them.

    The baseline runs first.  Exits with status 1 if memory, wall time
    or output size grew by more than the allowance.

    \b
    Examples:
        packbench regress --baseline-binary ./tool-v1 --binary ./tool \\
            --repos-file repos.txt --allowance 5
    """
    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)

    overrides: dict[str, Any] = {
        "binary": binary,
        "baseline_binary": baseline_binary,
        "repos": repos,
        "repos_file": repos_file,
        "timeout": timeout,
        "subcommand": subcommand,
        "allowance": allowance,
        "csv_prefix": csv_prefix,
        "baseline_csv_prefix": baseline_csv_prefix,
    }
    try:
        config = _build_config(profile_path, overrides, require_baseline=True)
        _prepare_archive(config.baseline_csv_prefix, config.csv_prefix)
        reference = _run_one(config, baseline=True)
        _archive(reference, config.baseline_csv_prefix)
        candidate = _run_one(config, baseline=False)
        _archive(candidate, config.csv_prefix)
    except (ExecutionError, ValueError, OSError) as exc:
        raise _fail(str(exc), exc) from exc

    click.echo(f"{config.baseline_binary} -> {config.binary} (allowance {config.allowance:g}%)")
    if not compare_and_print(reference, candidate, config.allowance):
        raise SystemExit(EXIT_REGRESSION)

