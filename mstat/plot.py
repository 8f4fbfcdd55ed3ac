"""
Plot memory usage over time from an mstat log.

x axis is elapsed time in hours, y axis is megabytes. Rendering uses
matplotlib: a file is written through the backend-neutral Figure API, an
interactive window goes through pyplot.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np
from matplotlib.figure import Figure
from matplotlib.ticker import AutoMinorLocator

from mstat.errors import EmptyLogError, InvalidFieldError
from mstat.fields import Missing, get_field_by_name, is_valid_field
from mstat.session import MstatFile

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600.0
BYTES_PER_MB = 1024.0 * 1024.0

FIGSIZE = (10, 5)
RASTER_DPI = 150
GRID_MINOR_TICKS = 5
LINE_WIDTH = 1.0

# Never plotted as memory series
NON_METRIC_FIELDS = ("pid", "timestamp")


@dataclass
class Series:
    pid: int
    hours: np.ndarray
    values: dict[str, np.ndarray] = field(default_factory=dict)

    @property
    def records(self) -> int:
        return len(self.hours)


def format_field_table(names: Sequence[str], per_row: int = 4, width: int = 20) -> str:
    """Field names laid out ``per_row`` to a line in fixed-width cells."""
    rows = []
    for i in range(0, len(names), per_row):
        rows.append("".join(f"{n:<{width}}" for n in names[i:i + per_row]))
    return "\n".join(rows)


def expand_fields(requested: Sequence[str], stored: Sequence[str]) -> list[str]:
    """Resolve ``all`` to every stored metric; anything else passes through."""
    if list(requested) == ["all"]:
        return [n for n in stored if n not in NON_METRIC_FIELDS]
    return list(requested)


def validate_fields(stored: Sequence[str], requested: Sequence[str]) -> None:
    for name in requested:
        if not is_valid_field(stored, name):
            raise InvalidFieldError(name, stored)


def collect_series(log: MstatFile, fields: Sequence[str]) -> Series:
    """
    Read the requested fields of every record into arrays.

    Records are counted first (no count is stored on disk), then read again
    into preallocated arrays. Records appended between the passes are ignored.
    """
    total = log.count_records()
    if not total:
        raise EmptyLogError(f"{log.path} does not have any records")

    hours = np.zeros(total)
    values = {name: np.zeros(total) for name in fields}
    pid = 0
    for i, record in enumerate(itertools.islice(log, total)):
        hours[i] = get_field_by_name(record, "timestamp").value / SECONDS_PER_HOUR
        for name in fields:
            v = get_field_by_name(record, name)
            values[name][i] = np.nan if isinstance(v, Missing) else v.value / BYTES_PER_MB
        pid = record.pid
    log.rewind()
    return Series(pid=pid, hours=hours, values=values)


def summarize(series: Series) -> dict[str, tuple[float, float]]:
    return {
        name: (float(np.nanmin(y)), float(np.nanmax(y)))
        for name, y in series.values.items()
    }


def draw(fig: Figure, series: Series) -> None:
    ax = fig.add_subplot(1, 1, 1)
    for name, y in series.values.items():
        ax.plot(series.hours, y, label=name, linewidth=LINE_WIDTH)

    ax.set_title(f"Memory Usage (PID {series.pid})")
    ax.set_xlabel("Time (HR)")
    ax.set_ylabel("MB")
    ax.xaxis.set_minor_locator(AutoMinorLocator(GRID_MINOR_TICKS))
    ax.yaxis.set_minor_locator(AutoMinorLocator(GRID_MINOR_TICKS))
    ax.grid(True, which="both")
    ax.autoscale()
    ax.legend(loc="upper left", bbox_to_anchor=(1.01, 1.0), frameon=False, fontsize="small")
    fig.tight_layout()


def render(series: Series, output: str | None = None) -> str | None:
    """Save the plot to ``output``, or open a window when no output is given."""
    if output is not None:
        fig = Figure(figsize=FIGSIZE)
        draw(fig, series)
        fig.savefig(output, dpi=RASTER_DPI)
        logger.info("wrote %s", output)
        return output

    import matplotlib.pyplot as plt

    fig = plt.figure(figsize=FIGSIZE)
    draw(fig, series)
    plt.show()
    plt.close(fig)
    return None
