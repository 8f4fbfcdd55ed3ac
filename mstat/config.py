"""
Tool defaults with environment overrides.

Environment variables only replace a default; a value passed explicitly by
the caller (or on the command line) always wins.

    MSTAT_SAMPLE_RATE   samples per second (default 1.0)
    MSTAT_PROC_ROOT     procfs mount point (default /proc)
    MSTAT_PLOT_FIELDS   comma separated fields to plot (default rss,pss,swap)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from mstat.smaps import PROC_ROOT

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 1.0
DEFAULT_PLOT_FIELDS = ("rss", "pss", "swap")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("ignoring %s=%r: not a number", name, raw)
        return default
    if value <= 0:
        logger.warning("ignoring %s=%r: must be positive", name, raw)
        return default
    return value


def split_fields(raw: str) -> tuple[str, ...]:
    return tuple(t for t in (p.strip() for p in raw.split(",")) if t)


@dataclass(frozen=True)
class SamplerConfig:
    pid: int
    output: str
    sample_rate: float = DEFAULT_SAMPLE_RATE
    clobber: bool = False
    proc_root: str = PROC_ROOT

    @classmethod
    def from_env(cls, pid: int, output: str | None = None, sample_rate: float | None = None,
                 clobber: bool = False) -> SamplerConfig:
        if sample_rate is None:
            sample_rate = _env_float("MSTAT_SAMPLE_RATE", DEFAULT_SAMPLE_RATE)
        if sample_rate <= 0:
            raise ValueError(f"sample rate must be positive, got {sample_rate}")
        return cls(
            pid=pid,
            output=output or f"{pid}.mstat",
            sample_rate=sample_rate,
            clobber=clobber,
            proc_root=os.environ.get("MSTAT_PROC_ROOT", PROC_ROOT),
        )

    @property
    def interval(self) -> float:
        return 1.0 / self.sample_rate


@dataclass(frozen=True)
class PlotConfig:
    filename: str
    fields: tuple[str, ...] = field(default=DEFAULT_PLOT_FIELDS)
    output: str | None = None

    @classmethod
    def from_env(cls, filename: str, fields: tuple[str, ...] | None = None,
                 output: str | None = None) -> PlotConfig:
        if fields is None:
            raw = os.environ.get("MSTAT_PLOT_FIELDS")
            fields = split_fields(raw) if raw else DEFAULT_PLOT_FIELDS
        return cls(filename=filename, fields=fields, output=output)
