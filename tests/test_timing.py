"""Tests for packbench.timing — timed subprocess execution."""

from __future__ import annotations

import sys
import threading
import unittest
from types import SimpleNamespace
from unittest.mock import patch

from packbench.timing import (
    ExecutionError,
    ExecutionTimeout,
    Executor,
    NotRunError,
    RUsage,
    _on_timeout,
)


def _py(code: str) -> list[str]:
    return ["-c", code]


class TestRUsage(unittest.TestCase):
    """Tests for RUsage.from_struct unit handling."""

    def test_linux_kilobytes_kept(self) -> None:
        ru = SimpleNamespace(ru_maxrss=2048, ru_utime=1.5, ru_stime=0.25)
        with patch("packbench.timing.sys.platform", "linux"):
            usage = RUsage.from_struct(ru)
        self.assertEqual(usage, RUsage(maxrss_kb=2048, utime_s=1.5, stime_s=0.25))

    def test_darwin_bytes_converted(self) -> None:
        ru = SimpleNamespace(ru_maxrss=2048 * 1024, ru_utime=0.0, ru_stime=0.0)
        with patch("packbench.timing.sys.platform", "darwin"):
            usage = RUsage.from_struct(ru)
        self.assertEqual(usage.maxrss_kb, 2048)


class TestExecutorAccessors(unittest.TestCase):
    """Accessors before a successful run."""

    def test_wall_before_run(self) -> None:
        with self.assertRaises(NotRunError):
            Executor().wall()

    def test_rusage_before_run(self) -> None:
        with self.assertRaises(NotRunError):
            Executor().rusage()


class TestExecutorRun(unittest.TestCase):
    """Tests running real subprocesses."""

    def test_success_records_wall_and_rusage(self) -> None:
        executor = Executor()
        executor.run(sys.executable, _py("print('hello')"), timeout=30)
        self.assertEqual(executor.exit_code, 0)
        self.assertIn("hello", executor.stdout)
        self.assertGreater(executor.wall(), 0)
        self.assertGreater(executor.rusage().maxrss_kb, 0)

    def test_wall_time_measured(self) -> None:
        executor = Executor()
        executor.run(sys.executable, _py("import time; time.sleep(0.5)"), timeout=30)
        self.assertGreater(executor.wall(), 0.4)
        self.assertLess(executor.wall(), 10.0)

    def test_cpu_time_measured(self) -> None:
        executor = Executor()
        executor.run(sys.executable, _py("sum(range(10**7))"), timeout=60)
        self.assertGreater(executor.rusage().utime_s, 0)

    def test_peak_memory_is_per_process(self) -> None:
        """A 64 MiB allocation shows up in the child's own maxrss."""
        executor = Executor()
        executor.run(
            sys.executable,
            _py("b = bytearray(64 * 1024 * 1024); b[::4096] = b'x' * len(b[::4096])"),
            timeout=60,
        )
        self.assertGreater(executor.rusage().maxrss_kb, 60 * 1024)

    def test_nonzero_exit_raises(self) -> None:
        executor = Executor()
        with self.assertRaises(ExecutionError) as ctx:
            executor.run(
                sys.executable,
                _py("import sys; sys.stderr.write('boom'); sys.exit(3)"),
                timeout=30,
            )
        self.assertEqual(ctx.exception.exit_code, 3)
        self.assertIn("boom", ctx.exception.stderr)
        self.assertNotIsInstance(ctx.exception, ExecutionTimeout)
        with self.assertRaises(NotRunError):
            executor.wall()

    def test_signal_raises(self) -> None:
        executor = Executor()
        with self.assertRaises(ExecutionError) as ctx:
            executor.run(
                sys.executable,
                _py("import os, signal; os.kill(os.getpid(), signal.SIGTERM)"),
                timeout=30,
            )
        self.assertLess(ctx.exception.exit_code, 0)
        self.assertIn("signal", str(ctx.exception))

    def test_timeout_raises(self) -> None:
        executor = Executor()
        with self.assertRaises(ExecutionTimeout) as ctx:
            executor.run(sys.executable, _py("import time; time.sleep(60)"), timeout=0.5)
        self.assertEqual(ctx.exception.timeout, 0.5)
        with self.assertRaises(NotRunError):
            executor.rusage()

    def test_missing_binary_raises(self) -> None:
        with self.assertRaises(ExecutionError):
            Executor().run("/nonexistent/binary", [], timeout=5)

    def test_failed_rerun_clears_previous_result(self) -> None:
        executor = Executor()
        executor.run(sys.executable, _py("pass"), timeout=30)
        self.assertGreater(executor.wall(), 0)
        with self.assertRaises(ExecutionError):
            executor.run(sys.executable, _py("raise SystemExit(1)"), timeout=30)
        with self.assertRaises(NotRunError):
            executor.wall()


class TestOnTimeout(unittest.TestCase):
    """The timer only signals a process group whose leader is not yet reaped."""

    def test_kills_running_process(self) -> None:
        proc = SimpleNamespace(pid=4242, returncode=None)
        flag = threading.Event()
        with patch("packbench.timing.os.killpg") as killpg:
            _on_timeout(proc, flag, threading.Lock())  # type: ignore[arg-type]
        killpg.assert_called_once()
        self.assertEqual(killpg.call_args[0][0], 4242)
        self.assertTrue(flag.is_set())

    def test_skips_reaped_process(self) -> None:
        proc = SimpleNamespace(pid=4242, returncode=0)
        flag = threading.Event()
        with patch("packbench.timing.os.killpg") as killpg:
            _on_timeout(proc, flag, threading.Lock())  # type: ignore[arg-type]
        killpg.assert_not_called()
        self.assertFalse(flag.is_set())


if __name__ == "__main__":
    unittest.main()
