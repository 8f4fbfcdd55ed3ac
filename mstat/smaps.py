"""
Sample acquisition from /proc/<pid>/smaps_rollup.

smaps_rollup lines look like ``Pss_Anon:          1234 kB``. Keys are matched
exactly and values are stored in bytes.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

from mstat.errors import ProcessLost
from mstat.record import Record
from mstat.spec import SMAPS_KEYS

PROC_ROOT = "/proc"

UNIT_SCALE = {
    "": 1,
    "B": 1,
    "kB": 1024,
    "mB": 1024 ** 2,
    "MB": 1024 ** 2,
    "gB": 1024 ** 3,
    "GB": 1024 ** 3,
}


def parse_smaps_line(line: str) -> tuple[str, int] | None:
    """Split one ``Key: value unit`` line. Returns None for anything else."""
    key, sep, rest = line.partition(":")
    if not sep:
        return None
    parts = rest.split()
    if not parts or len(parts) > 2:
        return None
    try:
        value = int(parts[0])
    except ValueError:
        return None
    unit = parts[1] if len(parts) == 2 else ""
    scale = UNIT_SCALE.get(unit)
    if scale is None:
        return None
    return key.strip(), value * scale


def parse_smaps_rollup(lines: Iterable[str]) -> dict[str, int]:
    """Map of record field -> bytes for every known key found in ``lines``."""
    values: dict[str, int] = {}
    for line in lines:
        parsed = parse_smaps_line(line)
        if parsed is None:
            continue
        key, value = parsed
        field = SMAPS_KEYS.get(key)
        if field is not None:
            values[field] = value
    return values


def proc_path(pid: int, *parts: str, proc_root: str | Path = PROC_ROOT) -> Path:
    return Path(proc_root, str(pid), *parts)


def pid_exists(pid: int, proc_root: str | Path = PROC_ROOT) -> bool:
    path = proc_path(pid, proc_root=proc_root)
    return path.is_dir() and os.access(path, os.R_OK | os.X_OK)


def smaps_rollup_usable(pid: int, proc_root: str | Path = PROC_ROOT) -> bool:
    path = proc_path(pid, "smaps_rollup", proc_root=proc_root)
    return path.is_file() and os.access(path, os.R_OK)


def read_smaps_rollup(pid: int, proc_root: str | Path = PROC_ROOT) -> dict[str, int]:
    """Raises ProcessLost if the process is gone or its rollup cannot be read."""
    path = proc_path(pid, "smaps_rollup", proc_root=proc_root)
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return parse_smaps_rollup(f)
    except (FileNotFoundError, ProcessLookupError) as e:
        raise ProcessLost(f"lost pid {pid}") from e
    except PermissionError as e:
        raise ProcessLost(f"pid {pid}: {e.strerror}") from e


def attach(record: Record, pid: int, proc_root: str | Path = PROC_ROOT) -> Record:
    """Fill ``record``'s metrics from the live process."""
    for field, value in read_smaps_rollup(pid, proc_root=proc_root).items():
        record.set(field, value)
    return record
