"""Terminal display of a single benchmark result."""

from __future__ import annotations

from packbench.formatting import format_duration, format_mib
from packbench.results import PackResult


def format_result_summary(result: PackResult, *, title: str = "") -> str:
    """Format one result as an aligned block of metric lines.

    The file inventory is listed when it is known and not empty.
    """
    lines: list[str] = []
    if title:
        lines.append(title)
        lines.append("=" * len(title))

    lines.append(f"  Memory:    {format_mib(result.memory)} MiB")
    lines.append(f"  Wtime:     {format_duration(result.wtime_s)}")
    lines.append(f"  Stime:     {format_duration(result.stime_s)}")
    lines.append(f"  Utime:     {format_duration(result.utime_s)}")

    if result.files is None:
        lines.append(f"  FileSize:  {format_mib(result.file_size)} MiB")
        return "\n".join(lines)

    lines.append(
        f"  FileSize:  {format_mib(result.file_size)} MiB in {result.file_count} file(s)"
    )
    if result.files:
        width = max(len(f.name) for f in result.files)
        for f in result.files:
            lines.append(f"    {f.name:<{width}}  {f.size:>12d} B")
    return "\n".join(lines)
