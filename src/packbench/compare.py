"""Regression check between two benchmark results.

Every comparison takes the reference result first and the candidate
second.  Deltas are ``(candidate - reference) / reference * 100``, so a
positive delta means the candidate uses more.

Only memory, wall time and output size gate the verdict.  System and
user CPU time are reported the same way but never fail a check; their
run-to-run noise is too high to signal a real regression.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass

import click

from packbench.formatting import format_duration, format_mib, format_percentage
from packbench.logging import get_logger
from packbench.results import PackResult

log = get_logger("compare")


def percent(reference: float, value: float) -> float:
    """Percentage change from *reference* to *value*.

    A zero reference gives ``0.0`` when *value* is also zero and
    ``math.inf`` otherwise.

    Raises:
        ValueError: If either argument is negative.
    """
    if reference < 0 or value < 0:
        raise ValueError(f"Cannot compare negative values ({reference}, {value})")
    if reference == 0:
        return 0.0 if value == 0 else math.inf
    return (value - reference) / reference * 100


@dataclass(frozen=True)
class PackComparison:
    """Percentage deltas of a candidate result against a reference."""

    memory: float
    wtime: float
    stime: float
    utime: float
    file_size: float


def compare_results(reference: PackResult, candidate: PackResult) -> PackComparison:
    """Compute every metric's delta of *candidate* against *reference*."""
    return PackComparison(
        memory=percent(reference.memory, candidate.memory),
        wtime=percent(reference.wtime_s, candidate.wtime_s),
        stime=percent(reference.stime_s, candidate.stime_s),
        utime=percent(reference.utime_s, candidate.utime_s),
        file_size=percent(reference.file_size, candidate.file_size),
    )


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MetricCheck:
    """One line of the comparison report."""

    name: str
    reference: str
    candidate: str
    delta: float
    within_allowance: bool
    gating: bool

    def format_line(self) -> str:
        return (
            f"{self.name}: {self.reference} -> {self.candidate} "
            f"({format_percentage(self.delta)}), {self.within_allowance}"
        )


@dataclass(frozen=True)
class Evaluation:
    """Comparison, verdict and report for one reference/candidate pair."""

    comparison: PackComparison
    passed: bool
    checks: tuple[MetricCheck, ...]
    allowance: float

    @property
    def report(self) -> str:
        return "\n".join(check.format_line() for check in self.checks)

    @property
    def failed_metrics(self) -> list[str]:
        return [c.name for c in self.checks if c.gating and not c.within_allowance]


# (report name, comparison field, result attribute, renderer, gating)
_METRICS: tuple[tuple[str, str, str, Callable[[float], str], bool], ...] = (
    ("Memory", "memory", "memory", format_mib, True),
    ("Wtime", "wtime", "wtime_s", format_duration, True),
    ("Stime", "stime", "stime_s", format_duration, False),
    ("Utime", "utime", "utime_s", format_duration, False),
    ("FileSize", "file_size", "file_size", format_mib, True),
)


def evaluate(
    reference: PackResult,
    candidate: PackResult,
    allowance: float,
) -> Evaluation:
    """Judge *candidate* against *reference* with a percentage allowance.

    A gating metric fails when its delta exceeds *allowance*; a delta
    equal to the allowance passes.

    Args:
        reference: The result the candidate is measured against.
        candidate: The result being judged.
        allowance: Maximum tolerated increase in percent (``5.0`` is 5%).
    """
    comparison = compare_results(reference, candidate)
    checks: list[MetricCheck] = []
    passed = True

    for name, field_name, attr, render, gating in _METRICS:
        delta = getattr(comparison, field_name)
        within = delta <= allowance
        if gating and not within:
            passed = False
        checks.append(
            MetricCheck(
                name=name,
                reference=render(getattr(reference, attr)),
                candidate=render(getattr(candidate, attr)),
                delta=delta,
                within_allowance=within,
                gating=gating,
            )
        )

    evaluation = Evaluation(
        comparison=comparison,
        passed=passed,
        checks=tuple(checks),
        allowance=allowance,
    )
    if passed:
        log.info("All gating metrics within %g%% allowance", allowance)
    else:
        log.info(
            "Exceeded %g%% allowance: %s", allowance, ", ".join(evaluation.failed_metrics)
        )
    return evaluation


def compare_and_print(
    reference: PackResult,
    candidate: PackResult,
    allowance: float,
) -> bool:
    """Evaluate, write the report to stdout and return the verdict."""
    evaluation = evaluate(reference, candidate, allowance)
    click.echo(evaluation.report)
    return evaluation.passed
