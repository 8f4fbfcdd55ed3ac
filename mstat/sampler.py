"""
Periodic sampler - appends one record per interval until the process exits.

Signals:
    SIGUSR1          flush buffered records so readers see them
    SIGINT, SIGTERM  flush, close the log and stop

Handlers only raise flags. The loop acts on them between writes, so a
signal never lands in the middle of a buffered write.
"""

from __future__ import annotations

import logging
import signal
import time
from pathlib import Path
from typing import Callable

from mstat.config import SamplerConfig
from mstat.errors import ProcessLost
from mstat.record import Record
from mstat.session import MstatFile
from mstat.smaps import attach, pid_exists, smaps_rollup_usable

logger = logging.getLogger(__name__)

# Longest uninterrupted sleep, so stop/flush requests are seen promptly
SLEEP_SLICE = 0.1


class Sampler:
    def __init__(self, config: SamplerConfig,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep) -> None:
        self.config = config
        self._clock = clock
        self._sleep = sleep
        self._start: float | None = None
        self._running = False
        self._flush_requested = False
        self.samples = 0
        self.log = self._open_log()

    def _open_log(self) -> MstatFile:
        cfg = self.config
        if not pid_exists(cfg.pid, cfg.proc_root):
            raise ProcessLost(f"no pid {cfg.pid}")
        if not smaps_rollup_usable(cfg.pid, cfg.proc_root):
            raise ProcessLost(f"pid {cfg.pid}: smaps_rollup is not readable")

        path = Path(cfg.output)
        if path.exists():
            if not cfg.clobber:
                raise FileExistsError(f"{path} file already exists")
            logger.warning("%s clobbered", path)
        return MstatFile.create(path, clobber=cfg.clobber)

    # -- signals -------------------------------------------------------------

    def install_signal_handlers(self) -> None:
        signal.signal(signal.SIGUSR1, self.handle_signal)
        signal.signal(signal.SIGINT, self.handle_signal)
        signal.signal(signal.SIGTERM, self.handle_signal)

    def handle_signal(self, signum: int, frame=None) -> None:
        if signum == signal.SIGUSR1:
            self._flush_requested = True
        else:
            self._running = False

    def _service_requests(self) -> None:
        if self._flush_requested:
            self._flush_requested = False
            self.log.flush()
            logger.info("flushed %s", self.log.path)

    # -- sampling ------------------------------------------------------------

    def sample(self) -> Record:
        """Build one record from the live process."""
        if self._start is None:
            self._start = self._clock()
        record = Record(pid=self.config.pid, timestamp=self._clock() - self._start)
        return attach(record, self.config.pid, proc_root=self.config.proc_root)

    def run(self, limit: int | None = None) -> int:
        """Sample until stopped, the process is lost, or ``limit`` samples. Returns the count."""
        cfg = self.config
        self._running = True
        logger.info("PID: %d, samples per second: %.2f", cfg.pid, cfg.sample_rate)
        try:
            while self._running:
                try:
                    record = self.sample()
                except ProcessLost as e:
                    logger.warning("%s", e)
                    break

                try:
                    self.log.write(record)
                except OSError:
                    logger.error("unable to write record to %s for pid %d", self.log.path, cfg.pid)
                    raise
                logger.info("pid: %d, sample: %d, elapsed: %f, rss: %d",
                             record.pid, self.samples, record.timestamp, record.rss)
                self.samples += 1

                self._service_requests()
                if limit is not None and self.samples >= limit:
                    break
                self._wait(cfg.interval)
        finally:
            self._running = False
            self.close()
        return self.samples

    def _wait(self, seconds: float) -> None:
        deadline = self._clock() + seconds
        while self._running:
            remaining = deadline - self._clock()
            if remaining <= 0:
                return
            self._sleep(min(remaining, SLEEP_SLICE))
            self._service_requests()

    def close(self) -> None:
        self.log.close()
