"""Tests for packbench.config — profiles, durations and validation."""

from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path

from packbench.config import (
    PackBenchConfig,
    config_from_profile,
    load_profile,
    parse_duration,
    raise_for_errors,
    validate_config,
)


class TestParseDuration(unittest.TestCase):
    def test_units(self) -> None:
        cases = {
            "4h": 14400.0,
            "1h30m": 5400.0,
            "90s": 90.0,
            "1.5s": 1.5,
            "250ms": 0.25,
            "2m30s": 150.0,
            "100us": 0.0001,
        }
        for text, expected in cases.items():
            with self.subTest(text=text):
                self.assertAlmostEqual(parse_duration(text), expected)

    def test_plain_numbers(self) -> None:
        self.assertEqual(parse_duration("600"), 600.0)
        self.assertEqual(parse_duration(30), 30.0)
        self.assertEqual(parse_duration(2.5), 2.5)

    def test_invalid(self) -> None:
        for text in ("", "4x", "h", "1h30", "abc", "inf", "nan"):
            with self.subTest(text=text), self.assertRaises(ValueError):
                parse_duration(text)

    def test_bool_rejected(self) -> None:
        with self.assertRaises(ValueError):
            parse_duration(True)


class TestConfigFromProfile(unittest.TestCase):
    def test_defaults(self) -> None:
        config = config_from_profile({})
        self.assertEqual(config.timeout, 4 * 3600)
        self.assertEqual(config.subcommand, "pack")
        self.assertEqual(config.allowance, 5.0)
        self.assertIsNone(config.csv_prefix)

    def test_profile_values(self) -> None:
        config = config_from_profile(
            {
                "binary": "./tool",
                "baseline_binary": "./tool-old",
                "repos": ["https://a", "https://b"],
                "timeout": "30m",
                "allowance": 2.5,
                "csv_prefix": "out/new-",
            }
        )
        self.assertEqual(config.binary, "./tool")
        self.assertEqual(config.baseline_binary, "./tool-old")
        self.assertEqual(config.repos, "https://a\nhttps://b")
        self.assertEqual(config.timeout, 1800.0)
        self.assertEqual(config.allowance, 2.5)
        self.assertEqual(config.csv_prefix, "out/new-")

    def test_cli_overrides_profile(self) -> None:
        config = config_from_profile(
            {"binary": "./tool", "timeout": "1h", "allowance": 1.0},
            cli_overrides={"binary": "./other", "timeout": "10s", "allowance": None},
        )
        self.assertEqual(config.binary, "./other")
        self.assertEqual(config.timeout, 10.0)
        self.assertEqual(config.allowance, 1.0)

    def test_cli_repos_file_replaces_profile_repos(self) -> None:
        config = config_from_profile(
            {"repos": "https://a"},
            cli_overrides={"repos_file": Path("list.txt")},
        )
        self.assertEqual(config.repos, "")
        self.assertEqual(config.repos_file, Path("list.txt"))

    def test_unknown_key(self) -> None:
        with self.assertRaises(ValueError):
            config_from_profile({"iterations": 5})

    def test_bad_allowance(self) -> None:
        with self.assertRaises(ValueError):
            config_from_profile({"allowance": "lots"})


class TestLoadProfile(unittest.TestCase):
    def test_yaml(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "bench.yaml"
            path.write_text("binary: ./tool\ntimeout: 4h\nrepos:\n  - https://a\n")
            data = load_profile(path)
        self.assertEqual(data, {"binary": "./tool", "timeout": "4h", "repos": ["https://a"]})

    def test_empty_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "empty.yaml"
            path.write_text("")
            self.assertEqual(load_profile(path), {})

    def test_not_mapping(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "list.yaml"
            path.write_text("- a\n- b\n")
            with self.assertRaises(ValueError):
                load_profile(path)

    def test_missing(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_profile(Path("/nonexistent/bench.yaml"))


class TestValidateConfig(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmpdir = Path(self._tmp.name)
        self.binary = self.tmpdir / "tool"
        self.binary.write_text("#!/bin/sh\n")
        os.chmod(self.binary, 0o755)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _config(self, **kwargs: object) -> PackBenchConfig:
        defaults: dict[str, object] = {"binary": str(self.binary), "repos": "https://a"}
        defaults.update(kwargs)
        return PackBenchConfig(**defaults)  # type: ignore[arg-type]

    def _fields(self, config: PackBenchConfig, **kwargs: bool) -> list[str]:
        return [e.field for e in validate_config(config, **kwargs) if e.severity == "error"]

    def test_valid(self) -> None:
        self.assertEqual(validate_config(self._config()), [])

    def test_missing_binary(self) -> None:
        self.assertEqual(self._fields(self._config(binary="")), ["binary"])
        self.assertEqual(self._fields(self._config(binary="/nonexistent/tool")), ["binary"])

    def test_binary_is_directory(self) -> None:
        self.assertEqual(self._fields(self._config(binary=str(self.tmpdir))), ["binary"])

    def test_binary_not_executable(self) -> None:
        plain = self.tmpdir / "plain"
        plain.write_text("#!/bin/sh\n")
        os.chmod(plain, 0o644)
        errors = validate_config(self._config(binary=str(plain)))
        self.assertEqual([e.field for e in errors], ["binary"])
        self.assertIn("not executable", errors[0].message)

    def test_baseline_required(self) -> None:
        self.assertEqual(
            self._fields(self._config(), require_baseline=True), ["baseline_binary"]
        )

    def test_same_binary_warns(self) -> None:
        errors = validate_config(
            self._config(baseline_binary=str(self.binary)), require_baseline=True
        )
        self.assertEqual([(e.field, e.severity) for e in errors], [("baseline_binary", "warning")])

    def test_repos_missing(self) -> None:
        self.assertEqual(self._fields(self._config(repos="")), ["repos"])

    def test_repos_both(self) -> None:
        list_file = self.tmpdir / "list.txt"
        list_file.write_text("https://a\n")
        self.assertEqual(self._fields(self._config(repos_file=list_file)), ["repos"])

    def test_repos_file_missing(self) -> None:
        config = self._config(repos="", repos_file=self.tmpdir / "none.txt")
        self.assertEqual(self._fields(config), ["repos_file"])

    def test_bad_numbers(self) -> None:
        self.assertEqual(self._fields(self._config(timeout=0)), ["timeout"])
        self.assertEqual(self._fields(self._config(allowance=-1.0)), ["allowance"])
        self.assertEqual(self._fields(self._config(subcommand=" ")), ["subcommand"])

    def test_timeout_below_resolution(self) -> None:
        self.assertEqual(self._fields(self._config(timeout=1e-7)), ["timeout"])
        self.assertEqual(self._fields(self._config(timeout=float("inf"))), ["timeout"])
        self.assertEqual(self._fields(self._config(timeout=1e-6)), [])

    def test_raise_for_errors(self) -> None:
        with self.assertRaises(ValueError) as ctx:
            raise_for_errors(validate_config(self._config(binary="", timeout=-1)))
        self.assertIn("binary", str(ctx.exception))
        self.assertIn("timeout", str(ctx.exception))

    def test_warnings_do_not_raise(self) -> None:
        errors = validate_config(
            self._config(baseline_binary=str(self.binary)), require_baseline=True
        )
        raise_for_errors(errors)


class TestPackRunFromConfig(unittest.TestCase):
    def test_repos_file_payload(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            list_file = Path(tmpdir) / "list.txt"
            list_file.write_text("https://a\nhttps://b\n")
            config = PackBenchConfig(
                binary="./new", baseline_binary="./old", repos_file=list_file, timeout=60
            )
            run = config.pack_run()
            baseline = config.pack_run(baseline=True)
        self.assertEqual(run.binary, "./new")
        self.assertEqual(baseline.binary, "./old")
        self.assertEqual(run.repos, "https://a\nhttps://b\n")
        self.assertEqual(run.timeout, 60)


if __name__ == "__main__":
    unittest.main()
