"""Export benchmark results as per-series CSV files.

Each series is a two-line CSV (header, values) so CI dashboards can
plot one metric per file::

    <prefix>memory.csv      memory            (MiB)
    <prefix>time.csv        Wtime,Stime,Utime (seconds)
    <prefix>file_size.csv   file_size         (MiB)

The files can be read back with :func:`load_series` to compare an
archived run against a new one.
"""

from __future__ import annotations

import csv
import enum
import io
from pathlib import Path

from packbench.formatting import MIB, to_mib
from packbench.logging import get_logger
from packbench.results import PackResult

log = get_logger("export")


class Series(str, enum.Enum):
    MEMORY = "memory"
    TIME = "time"
    FILE_SIZE = "file_size"


class UnsupportedSeriesError(ValueError):
    """Raised for a series name outside :class:`Series`."""

    def __init__(self, series: object) -> None:
        name = series.value if isinstance(series, Series) else series
        super().__init__(f"unsupported series: {name}")
        self.series = name


_HEADERS: dict[Series, list[str]] = {
    Series.MEMORY: ["memory"],
    Series.TIME: ["Wtime", "Stime", "Utime"],
    Series.FILE_SIZE: ["file_size"],
}


def _coerce(series: Series | str) -> Series:
    try:
        return Series(series)
    except ValueError:
        raise UnsupportedSeriesError(series) from None


def series_path(prefix: str | Path, series: Series | str) -> Path:
    """Path of one series file: ``<prefix><series>.csv``."""
    return Path(f"{prefix}{_coerce(series).value}.csv")


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def _values(result: PackResult, series: Series) -> list[float]:
    if series is Series.MEMORY:
        return [to_mib(result.memory)]
    if series is Series.TIME:
        return [result.wtime_s, result.stime_s, result.utime_s]
    return [to_mib(result.file_size)]


def export_series(result: PackResult, series: Series | str) -> str:
    """Render one series of *result* as CSV text.

    Raises:
        UnsupportedSeriesError: If *series* is not a known series.
    """
    kind = _coerce(series)
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(_HEADERS[kind])
    writer.writerow([f"{v:.6f}" for v in _values(result, kind)])
    return output.getvalue()


def save_series(result: PackResult, series: Series | str, path: Path) -> None:
    """Write one series to *path*.

    The content is rendered before the file is opened, so an unsupported
    series never leaves a file behind.
    """
    text = export_series(result, series)
    path.write_text(text, encoding="utf-8")
    log.debug("Wrote %s", path)


def export_all(result: PackResult, prefix: str | Path) -> list[Path]:
    """Write the memory, time and file size series under *prefix*.

    The first failing write stops the export; files written before it
    are left in place.

    Returns:
        The paths written, in series order.
    """
    written: list[Path] = []
    for series in Series:
        path = series_path(prefix, series)
        save_series(result, series, path)
        written.append(path)
    log.info("Exported %d series with prefix %s", len(written), prefix)
    return written


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def parse_series(text: str, series: Series | str) -> dict[str, float]:
    """Parse the CSV text of one series into ``{column: value}``.

    Raises:
        UnsupportedSeriesError: If *series* is not a known series.
        ValueError: If the header or values do not match the series.
    """
    kind = _coerce(series)
    rows = [row for row in csv.reader(io.StringIO(text)) if row]
    if len(rows) != 2:
        raise ValueError(f"Series '{kind.value}' must have 2 rows, got {len(rows)}")
    header, values = rows
    if header != _HEADERS[kind]:
        raise ValueError(
            f"Series '{kind.value}' header must be {','.join(_HEADERS[kind])}, "
            f"got {','.join(header)}"
        )
    if len(values) != len(header):
        raise ValueError(
            f"Series '{kind.value}' has {len(values)} value(s) for {len(header)} column(s)"
        )
    return {name: float(v) for name, v in zip(header, values)}


def load_series(prefix: str | Path) -> PackResult:
    """Rebuild a result from the three series files under *prefix*.

    The file inventory is not archived, so the result's ``files`` is
    ``None``.  Byte counts are restored from MiB and therefore exact
    only to about one byte per MiB.

    Raises:
        FileNotFoundError: If a series file is missing.
    """
    parsed: dict[Series, dict[str, float]] = {}
    for series in Series:
        path = series_path(prefix, series)
        parsed[series] = parse_series(path.read_text(encoding="utf-8"), series)

    times = parsed[Series.TIME]
    return PackResult(
        memory=round(parsed[Series.MEMORY]["memory"] * MIB),
        wtime_s=times["Wtime"],
        stime_s=times["Stime"],
        utime_s=times["Utime"],
        files=None,
        file_size=round(parsed[Series.FILE_SIZE]["file_size"] * MIB),
    )
