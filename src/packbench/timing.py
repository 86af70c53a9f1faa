"""Timed subprocess execution with per-process resource accounting.

Runs a binary to completion under a wall-clock timeout and records the
elapsed wall time plus the child's own rusage (user CPU, system CPU and
peak resident set size).  ``os.wait4`` is used so the counters belong to
the benchmarked process alone rather than to every child this
interpreter has ever reaped.
"""

from __future__ import annotations

import os
import signal
import subprocess
import sys
import tempfile
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import IO

from packbench.logging import get_logger

log = get_logger("timing")

# Amount of stderr kept on ExecutionError for the CLI to show.
_STDERR_TAIL_CHARS = 2000


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class NotRunError(RuntimeError):
    """Raised when results are requested from an executor that has not run."""

    def __init__(self) -> None:
        super().__init__("executor has not run yet")


class ExecutionError(RuntimeError):
    """The benchmarked process could not start or did not exit cleanly."""

    def __init__(
        self,
        message: str,
        *,
        binary: str,
        exit_code: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.binary = binary
        self.exit_code = exit_code
        self.stderr = stderr


class ExecutionTimeout(ExecutionError):
    """The benchmarked process was killed after exceeding its timeout."""

    def __init__(self, *, binary: str, timeout: float, stderr: str = "") -> None:
        super().__init__(
            f"{binary} did not finish within {timeout:g}s",
            binary=binary,
            stderr=stderr,
        )
        self.timeout = timeout


# ---------------------------------------------------------------------------
# RUsage
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RUsage:
    """Resource usage of one finished process."""

    maxrss_kb: int  # peak resident set size, kilobytes
    utime_s: float
    stime_s: float

    @classmethod
    def from_struct(cls, ru: object) -> RUsage:
        """Build from a ``resource.struct_rusage``.

        On Linux ``ru_maxrss`` is in kilobytes; macOS reports bytes.
        """
        maxrss = int(ru.ru_maxrss)  # type: ignore[attr-defined]
        if sys.platform == "darwin":
            maxrss //= 1024
        return cls(
            maxrss_kb=maxrss,
            utime_s=float(ru.ru_utime),  # type: ignore[attr-defined]
            stime_s=float(ru.ru_stime),  # type: ignore[attr-defined]
        )


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class Executor:
    """Runs one binary and keeps its wall time and rusage.

    Usage::

        executor = Executor()
        executor.run("/usr/local/bin/tool", ["pack", "list.txt"], timeout=60)
        executor.wall(), executor.rusage()

    A failed or timed-out run raises and leaves the accessors raising
    :class:`NotRunError`.
    """

    def __init__(self) -> None:
        self._wall_s: float | None = None
        self._rusage: RUsage | None = None
        self.exit_code: int | None = None
        self.stdout = ""
        self.stderr = ""

    def run(self, binary: str, args: Sequence[str], *, timeout: float) -> None:
        """Execute *binary* with *args*, bounded by *timeout* seconds.

        Raises:
            ExecutionTimeout: If the process outlives *timeout*.
            ExecutionError: If it cannot start or exits non-zero.
        """
        self._wall_s = None
        self._rusage = None
        self.exit_code = None

        command = [binary, *args]
        log.debug("Executing: %s (timeout %gs)", " ".join(command), timeout)

        with tempfile.TemporaryFile() as out, tempfile.TemporaryFile() as err:
            try:
                proc = subprocess.Popen(
                    command,
                    stdout=out,
                    stderr=err,
                    stdin=subprocess.DEVNULL,
                    start_new_session=True,
                )
            except OSError as exc:
                raise ExecutionError(
                    f"Cannot execute {binary}: {exc}", binary=binary
                ) from exc

            timed_out = threading.Event()
            reap_lock = threading.Lock()
            timer = threading.Timer(timeout, _on_timeout, args=(proc, timed_out, reap_lock))
            timer.daemon = True

            wall_start = time.monotonic()
            timer.start()
            try:
                # Wait for exit without reaping so the pid stays reserved
                # until the timer can no longer signal its group.
                os.waitid(os.P_PID, proc.pid, os.WEXITED | os.WNOWAIT)
                wall_s = time.monotonic() - wall_start
                with reap_lock:
                    _, status, ru = os.wait4(proc.pid, 0)
                    exit_code = os.waitstatus_to_exitcode(status)
                    # Keeps Popen from waiting again.
                    proc.returncode = exit_code
            except BaseException:
                with reap_lock:
                    if proc.returncode is None:
                        _kill_process_group(proc.pid)
                raise
            finally:
                timer.cancel()

            self.stdout = _read_back(out)
            self.stderr = _read_back(err)

        self.exit_code = exit_code
        stderr_tail = self.stderr[-_STDERR_TAIL_CHARS:]

        if timed_out.is_set():
            raise ExecutionTimeout(binary=binary, timeout=timeout, stderr=stderr_tail)
        if exit_code < 0:
            raise ExecutionError(
                f"{binary} was killed by signal {-exit_code}",
                binary=binary,
                exit_code=exit_code,
                stderr=stderr_tail,
            )
        if exit_code != 0:
            raise ExecutionError(
                f"{binary} exited with status {exit_code}",
                binary=binary,
                exit_code=exit_code,
                stderr=stderr_tail,
            )

        self._wall_s = wall_s
        self._rusage = RUsage.from_struct(ru)
        log.debug(
            "Finished in %.3fs (user %.3fs, sys %.3fs, maxrss %d KB)",
            wall_s,
            self._rusage.utime_s,
            self._rusage.stime_s,
            self._rusage.maxrss_kb,
        )

    def wall(self) -> float:
        """Elapsed wall time of the last successful run, in seconds."""
        if self._wall_s is None:
            raise NotRunError()
        return self._wall_s

    def rusage(self) -> RUsage:
        """Resource usage of the last successful run."""
        if self._rusage is None:
            raise NotRunError()
        return self._rusage


def _read_back(fh: IO[bytes]) -> str:
    fh.seek(0)
    return fh.read().decode("utf-8", errors="replace")


def _on_timeout(
    proc: subprocess.Popen[bytes], flag: threading.Event, lock: threading.Lock
) -> None:
    with lock:
        if proc.returncode is not None:
            return
        flag.set()
        log.warning("Timeout reached, killing process group %d", proc.pid)
        _kill_process_group(proc.pid)


def _kill_process_group(pid: int) -> None:
    """Attempt to kill the entire process group."""
    try:
        os.killpg(pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        pass
