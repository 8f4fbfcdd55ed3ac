"""Shared fixtures: scratch log paths, a fake /proc tree, and logger cleanup."""

import logging
import tempfile
from pathlib import Path

import pytest

SMAPS_ROLLUP = """\
55c4e3a00000-7ffd5b7f6000 ---p 00000000 00:00 0                          [rollup]
Rss:                5120 kB
Pss:                4096 kB
Pss_Anon:           3000 kB
Pss_File:           1000 kB
Pss_Shmem:            96 kB
Shared_Clean:       1024 kB
Shared_Dirty:          0 kB
Private_Clean:       512 kB
Private_Dirty:      3584 kB
Referenced:         5000 kB
Anonymous:          3584 kB
LazyFree:              0 kB
AnonHugePages:      2048 kB
ShmemPmdMapped:        0 kB
FilePmdMapped:         0 kB
Shared_Hugetlb:        0 kB
Private_Hugetlb:       0 kB
Swap:                 64 kB
SwapPss:              32 kB
Locked:                0 kB
"""

FAKE_PID = 4242


@pytest.fixture
def workdir():
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def log_path(workdir):
    """A path where no file exists yet."""
    return workdir / "a.dat"


@pytest.fixture
def proc_root(workdir):
    root = workdir / "proc"
    pid_dir = root / str(FAKE_PID)
    pid_dir.mkdir(parents=True)
    (pid_dir / "smaps_rollup").write_text(SMAPS_ROLLUP)
    return root


@pytest.fixture(autouse=True)
def reset_mstat_logger():
    yield
    logger = logging.getLogger("mstat")
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.setLevel(logging.NOTSET)
