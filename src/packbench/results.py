"""Benchmark result data structures.

A :class:`PackResult` is the durable, comparable record of one run:
peak memory and output size in bytes, three durations in seconds, and
the inventory of files the run produced.  Results are frozen once
built; comparison and export never mutate them.
"""

from __future__ import annotations

import os
import stat
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from packbench.formatting import KIB, to_mib
from packbench.timing import RUsage


# ---------------------------------------------------------------------------
# File inventory
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FileInfo:
    """One entry of a run's output directory."""

    name: str
    size: int  # bytes
    mtime: float  # seconds since the epoch
    mode: int = 0

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)


def scan_output_dir(path: Path) -> tuple[FileInfo, ...]:
    """List *path* non-recursively, sorted by entry name.

    Symlinks are described, not followed.
    """
    with os.scandir(path) as it:
        entries = sorted(it, key=lambda e: e.name)
    files: list[FileInfo] = []
    for entry in entries:
        st = entry.stat(follow_symlinks=False)
        files.append(
            FileInfo(
                name=entry.name,
                size=st.st_size,
                mtime=st.st_mtime,
                mode=st.st_mode,
            )
        )
    return tuple(files)


# ---------------------------------------------------------------------------
# PackResult
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PackResult:
    """Unit-normalized resource usage of one pack run.

    ``files`` is ``None`` when the inventory is unknown, which is the
    case for results restored from archived CSV series.  Otherwise
    ``file_size`` must equal the sum of the inventory's sizes.
    """

    memory: int  # bytes
    wtime_s: float
    stime_s: float
    utime_s: float
    files: tuple[FileInfo, ...] | None = ()
    file_size: int = 0  # bytes

    def __post_init__(self) -> None:
        for name in ("memory", "wtime_s", "stime_s", "utime_s", "file_size"):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"PackResult.{name} cannot be negative (got {value})")
        if self.files is not None:
            total = sum(f.size for f in self.files)
            if total != self.file_size:
                raise ValueError(
                    f"PackResult.file_size ({self.file_size}) does not match "
                    f"the file inventory total ({total})"
                )

    @property
    def memory_mib(self) -> float:
        return to_mib(self.memory)

    @property
    def file_size_mib(self) -> float:
        return to_mib(self.file_size)

    @property
    def file_count(self) -> int:
        return len(self.files) if self.files is not None else 0


def build_result(
    rusage: RUsage,
    wall_s: float,
    files: Iterable[FileInfo],
) -> PackResult:
    """Combine a run's rusage, wall time and output inventory.

    The runner reports peak memory in kilobytes; the result stores bytes.
    """
    inventory = tuple(files)
    return PackResult(
        memory=rusage.maxrss_kb * KIB,
        wtime_s=wall_s,
        stime_s=rusage.stime_s,
        utime_s=rusage.utime_s,
        files=inventory,
        file_size=sum(f.size for f in inventory),
    )
