"""Benchmark configuration and profile loading.

Handles:
- Loading profiles from YAML files.
- Merging CLI options over profile values.
- Parsing duration strings such as ``4h`` or ``1h30m``.
- Validating the final configuration before anything is executed.
"""

from __future__ import annotations

import math
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from packbench.formatting import format_duration
from packbench.logging import get_logger
from packbench.pack import DEFAULT_SUBCOMMAND, DEFAULT_TIMEOUT_S, PackRun

log = get_logger("config")

DEFAULT_ALLOWANCE = 5.0


# ---------------------------------------------------------------------------
# PackBenchConfig
# ---------------------------------------------------------------------------


@dataclass
class PackBenchConfig:
    """Resolved configuration for a benchmark invocation."""

    binary: str = ""
    baseline_binary: str = ""

    # Repository list: inline payload, or a file whose content is used verbatim.
    repos: str = ""
    repos_file: Path | None = None

    timeout: float = DEFAULT_TIMEOUT_S  # seconds
    subcommand: str = DEFAULT_SUBCOMMAND
    allowance: float = DEFAULT_ALLOWANCE  # percent

    # CSV archival
    csv_prefix: str | None = None
    baseline_csv_prefix: str | None = None

    def repos_payload(self) -> str:
        """The list payload handed to the binary."""
        if self.repos:
            return self.repos
        if self.repos_file is not None:
            return self.repos_file.read_text(encoding="utf-8")
        return ""

    def pack_run(self, *, baseline: bool = False) -> PackRun:
        """Build the run for the candidate (or baseline) binary."""
        return PackRun(
            binary=self.baseline_binary if baseline else self.binary,
            repos=self.repos_payload(),
            timeout=self.timeout,
            subcommand=self.subcommand,
        )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single configuration validation error."""

    field: str
    message: str
    severity: str = "error"  # "error" or "warning"


def _check_binary(field: str, value: str, errors: list[ValidationError]) -> None:
    if not value:
        errors.append(ValidationError(field=field, message=f"No {field} given."))
        return
    path = Path(value)
    if not path.exists():
        errors.append(ValidationError(field=field, message=f"Binary does not exist: {value}"))
    elif not path.is_file():
        errors.append(ValidationError(field=field, message=f"Binary is not a file: {value}"))
    elif not os.access(path, os.X_OK):
        errors.append(ValidationError(field=field, message=f"Binary is not executable: {value}"))


def validate_config(
    config: PackBenchConfig,
    *,
    require_baseline: bool = False,
) -> list[ValidationError]:
    """Validate a configuration.

    Returns a list of validation errors.  Empty list means valid.
    """
    errors: list[ValidationError] = []

    _check_binary("binary", config.binary, errors)
    if require_baseline:
        _check_binary("baseline_binary", config.baseline_binary, errors)
        if config.baseline_binary and config.baseline_binary == config.binary:
            errors.append(
                ValidationError(
                    field="baseline_binary",
                    message="Baseline and candidate are the same binary.",
                    severity="warning",
                )
            )

    if config.repos and config.repos_file is not None:
        errors.append(
            ValidationError(
                field="repos",
                message="Give either repos or repos_file, not both.",
            )
        )
    elif not config.repos and config.repos_file is None:
        errors.append(
            ValidationError(
                field="repos",
                message="No repository list. Use --repos or --repos-file.",
            )
        )
    elif config.repos_file is not None and not config.repos_file.is_file():
        errors.append(
            ValidationError(
                field="repos_file",
                message=f"Repository list file does not exist: {config.repos_file}",
            )
        )

    if not math.isfinite(config.timeout) or config.timeout <= 0:
        errors.append(
            ValidationError(
                field="timeout",
                message=f"Timeout must be a positive number of seconds (got {config.timeout}).",
            )
        )
    elif format_duration(config.timeout) == "0s":
        # Would reach the binary as --timeout=0s.
        errors.append(
            ValidationError(
                field="timeout",
                message=f"Timeout is below one microsecond (got {config.timeout}).",
            )
        )

    if config.allowance < 0:
        errors.append(
            ValidationError(
                field="allowance",
                message=f"Allowance cannot be negative (got {config.allowance}).",
            )
        )

    if not config.subcommand.strip():
        errors.append(
            ValidationError(field="subcommand", message="Subcommand must be non-empty.")
        )

    return errors


def raise_for_errors(errors: list[ValidationError]) -> None:
    """Log warnings and raise ValueError if any error is fatal."""
    for w in errors:
        if w.severity == "warning":
            log.warning("Config warning: %s: %s", w.field, w.message)
    fatal = [e for e in errors if e.severity == "error"]
    if fatal:
        messages = [f"  {e.field}: {e.message}" for e in fatal]
        raise ValueError("Invalid benchmark configuration:\n" + "\n".join(messages))


# ---------------------------------------------------------------------------
# Durations
# ---------------------------------------------------------------------------

_DURATION_UNITS = {
    "h": 3600.0,
    "m": 60.0,
    "s": 1.0,
    "ms": 1e-3,
    "us": 1e-6,
    "µs": 1e-6,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(h|ms|m|s|us|µs)")


def _finite(seconds: float, original: object) -> float:
    if not math.isfinite(seconds):
        raise ValueError(f"Invalid duration: {original!r}")
    return seconds


def parse_duration(value: str | float | int) -> float:
    """Parse a duration into seconds.

    Accepts numbers (seconds) and unit strings like ``4h``, ``1h30m``,
    ``90s``, ``1.5s`` or ``250ms``.

    Raises:
        ValueError: If *value* is not a valid duration.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return _finite(float(value), value)

    text = value.strip()
    if not text:
        raise ValueError("Invalid duration: empty string")
    try:
        return _finite(float(text), value)
    except ValueError:
        pass

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"Invalid duration: {value!r}")
    return total


# ---------------------------------------------------------------------------
# YAML profile loading
# ---------------------------------------------------------------------------


def load_profile(profile_path: Path) -> dict[str, Any]:
    """Load a benchmark profile from a YAML file.

    Profile format::

        binary: ./build/tool
        baseline_binary: ./releases/tool-v1.2.0
        repos_file: repos.txt        # or: repos: "https://github.com/org/repo"
        timeout: 4h
        subcommand: pack
        allowance: 5.0
        csv_prefix: results/new-
        baseline_csv_prefix: results/old-

    Relative paths are kept as written (resolved against the working
    directory).

    Returns:
        The parsed YAML as a dict.
    """
    if not profile_path.exists():
        raise FileNotFoundError(f"Profile not found: {profile_path}")

    data = yaml.safe_load(profile_path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Profile must be a YAML mapping, got {type(data).__name__}")
    return data


_PROFILE_KEYS = {
    "binary",
    "baseline_binary",
    "repos",
    "repos_file",
    "timeout",
    "subcommand",
    "allowance",
    "csv_prefix",
    "baseline_csv_prefix",
}


def config_from_profile(
    profile_data: dict[str, Any],
    *,
    cli_overrides: dict[str, Any] | None = None,
) -> PackBenchConfig:
    """Build a PackBenchConfig from profile values and CLI overrides.

    CLI values that are not ``None`` take precedence over the profile.

    Raises:
        ValueError: On unknown profile keys or malformed values.
    """
    unknown = sorted(set(profile_data) - _PROFILE_KEYS)
    if unknown:
        raise ValueError(f"Unknown profile key(s): {', '.join(unknown)}")

    merged: dict[str, Any] = dict(profile_data)
    for key, value in (cli_overrides or {}).items():
        if value is not None:
            merged[key] = value

    # An inline list on the command line replaces a profile file, and vice versa.
    cli = cli_overrides or {}
    if cli.get("repos") is not None:
        merged.pop("repos_file", None)
    elif cli.get("repos_file") is not None:
        merged.pop("repos", None)

    config = PackBenchConfig()
    if merged.get("binary"):
        config.binary = str(merged["binary"])
    if merged.get("baseline_binary"):
        config.baseline_binary = str(merged["baseline_binary"])
    if merged.get("repos"):
        repos = merged["repos"]
        config.repos = "\n".join(repos) if isinstance(repos, list) else str(repos)
    if merged.get("repos_file"):
        config.repos_file = Path(merged["repos_file"])
    if merged.get("timeout") is not None:
        config.timeout = parse_duration(merged["timeout"])
    if merged.get("subcommand"):
        config.subcommand = str(merged["subcommand"])
    if merged.get("allowance") is not None:
        try:
            config.allowance = float(merged["allowance"])
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid allowance: {merged['allowance']!r}") from exc
    if merged.get("csv_prefix"):
        config.csv_prefix = str(merged["csv_prefix"])
    if merged.get("baseline_csv_prefix"):
        config.baseline_csv_prefix = str(merged["baseline_csv_prefix"])

    return config
