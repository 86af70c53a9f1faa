"""Single benchmark run of the ``pack`` subcommand.

Orchestrates:
1. Writing the repository list payload to a temporary file
2. Creating a temporary root directory for the produced repositories
3. Running the binary under the executor's timeout and rusage accounting
4. Inventorying the files it produced
5. Removing both temporary paths, whatever the outcome

Nothing is retried: a failed run raises and the caller decides whether
to run again.
"""

from __future__ import annotations

import enum
import os
import tempfile
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from packbench.formatting import format_duration
from packbench.logging import get_logger
from packbench.results import FileInfo, PackResult, build_result, scan_output_dir
from packbench.timing import Executor, RUsage

log = get_logger("pack")

DEFAULT_TIMEOUT_S = 4 * 60 * 60
DEFAULT_SUBCOMMAND = "pack"


class NotExecutedError(RuntimeError):
    """Raised when run output is requested before a successful run."""

    def __init__(self) -> None:
        super().__init__("benchmark has not been executed")


class SubprocessRunner(Protocol):
    """What :class:`PackRunner` needs from an executor."""

    def run(self, binary: str, args: Sequence[str], *, timeout: float) -> None: ...

    def wall(self) -> float: ...

    def rusage(self) -> RUsage: ...


@dataclass(frozen=True)
class PackRun:
    """Configuration of one benchmark run."""

    binary: str
    repos: str  # written verbatim to the list file
    timeout: float = DEFAULT_TIMEOUT_S  # seconds
    subcommand: str = DEFAULT_SUBCOMMAND


class RunState(enum.Enum):
    NOT_EXECUTED = "not_executed"
    EXECUTED = "executed"


# ---------------------------------------------------------------------------
# PackRunner
# ---------------------------------------------------------------------------


class PackRunner:
    """Runs the pack subcommand once and exposes what it measured.

    Usage::

        runner = PackRunner(PackRun(binary="/usr/local/bin/tool", repos=urls))
        runner.run()
        result = runner.result()
    """

    def __init__(self, config: PackRun, executor: SubprocessRunner | None = None) -> None:
        self.config = config
        self.executor: SubprocessRunner = executor or Executor()
        self.state = RunState.NOT_EXECUTED
        self._files: tuple[FileInfo, ...] = ()
        # Paths used by the latest run; gone once run() returns.
        self.list_path: Path | None = None
        self.output_dir: Path | None = None

    def build_args(self, list_path: Path, output_dir: Path) -> list[str]:
        """Argument list for the binary, subcommand first."""
        return [
            self.config.subcommand,
            f"--root-repositories-dir={output_dir}",
            f"--timeout={format_duration(self.config.timeout)}",
            str(list_path),
        ]

    def run(self) -> None:
        """Execute the benchmark.

        Raises:
            OSError: If the list file or output directory cannot be created.
            ExecutionError: If the binary fails or times out.
        """
        self.state = RunState.NOT_EXECUTED
        self._files = ()

        list_path = write_repo_list(self.config.repos)
        self.list_path = list_path
        try:
            with tempfile.TemporaryDirectory(prefix="packbench-dir-") as tmp:
                output_dir = Path(tmp)
                self.output_dir = output_dir
                args = self.build_args(list_path, output_dir)
                log.info("Running %s %s", self.config.binary, " ".join(args))
                self.executor.run(self.config.binary, args, timeout=self.config.timeout)
                files = scan_output_dir(output_dir)
        finally:
            _remove_list(list_path)

        log.info("Run produced %d file(s)", len(files))
        self._files = files
        self.state = RunState.EXECUTED

    def _require_executed(self) -> None:
        if self.state is not RunState.EXECUTED:
            raise NotExecutedError()

    def files(self) -> tuple[FileInfo, ...]:
        """Inventory of the output directory taken right after the run."""
        self._require_executed()
        return self._files

    def wall(self) -> float:
        self._require_executed()
        return self.executor.wall()

    def rusage(self) -> RUsage:
        self._require_executed()
        return self.executor.rusage()

    def result(self) -> PackResult:
        """Build the unit-normalized result of the run.

        Errors from the executor's accessors propagate unchanged.
        """
        self._require_executed()
        rusage = self.executor.rusage()
        wall_s = self.executor.wall()
        return build_result(rusage, wall_s, self._files)


def run_pack(
    binary: str,
    repos: str,
    *,
    timeout: float = DEFAULT_TIMEOUT_S,
    subcommand: str = DEFAULT_SUBCOMMAND,
    executor: SubprocessRunner | None = None,
) -> PackResult:
    """Run the benchmark once and return its result."""
    runner = PackRunner(
        PackRun(binary=binary, repos=repos, timeout=timeout, subcommand=subcommand),
        executor=executor,
    )
    runner.run()
    return runner.result()


# ---------------------------------------------------------------------------
# Temporary list file
# ---------------------------------------------------------------------------


def write_repo_list(repos: str) -> Path:
    """Write *repos* verbatim to a new temporary file and return its path.

    The file is removed again if writing fails.
    """
    fd, name = tempfile.mkstemp(prefix="packbench-list-")
    path = Path(name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(repos)
    except BaseException:
        _remove_list(path)
        raise
    log.debug("Wrote repository list to %s", path)
    return path


def _remove_list(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
