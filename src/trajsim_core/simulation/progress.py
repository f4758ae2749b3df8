# src/trajsim_core/simulation/progress.py
import logging
import threading

logger = logging.getLogger(__name__)


class ProgressReporter:
    """
    Logs "Computed k/n simulations of <model>" as vectors complete.

    Silent unless `verbose` is set and more than one vector is being computed.
    `advance` is safe to call from the completion loop of a worker pool.
    """

    def __init__(self, system_name: str, total: int, verbose: bool = True):
        self.system_name = system_name
        self.total = total
        self.enabled = verbose and total > 1
        self.done = 0
        self._lock = threading.Lock()

    def advance(self, count: int = 1):
        with self._lock:
            self.done += count
            done = self.done
        if self.enabled:
            logger.info(f"Computed {done}/{self.total} simulations of {self.system_name}")
