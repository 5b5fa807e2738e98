import logging
import threading

logger = logging.getLogger(__name__)


class PeriodicSweeper:
    """
    Background thread yang memanggil fungsi ``sweep`` secara berkala,
    terlepas dari jumlah request yang masuk.
    """

    def __init__(self, interval_seconds, *targets):
        self.interval_seconds = interval_seconds
        self.targets = targets
        self._stop = threading.Event()
        self._thread = None

    def run_once(self):
        removed = 0
        for sweep in self.targets:
            try:
                removed += sweep()
            except Exception as e:
                logger.error("Error in sweep %r: %s", sweep, e)
        logger.debug("Sweep finished, %s entries removed", removed)
        return removed

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="formshield-sweeper", daemon=True)
        self._thread.start()
        logger.debug("Started sweeper thread (every %ss)", self.interval_seconds)

    def stop(self, timeout=5):
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None
            logger.debug("Stopped sweeper thread")

    def _loop(self):
        while not self._stop.wait(self.interval_seconds):
            self.run_once()
