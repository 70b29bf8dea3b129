"""Progress and message sink used by the import driver."""

import logging
import threading


class ImportLogger:
    """Thread-safe logger with a progress channel.

    Messages go to a standard ``logging.Logger``. Progress fractions are
    clamped to [0, 1], logged at debug level and forwarded to
    ``progress_callback`` when one is given.
    """

    def __init__(self, logger=None, progress_callback=None):
        self._logger = logger or logging.getLogger("tgmm_lineage.import")
        self._progress_callback = progress_callback
        self._lock = threading.Lock()
        self.last_progress = 0.0

    def log(self, text, *args):
        self._logger.info(text, *args)

    def warning(self, text, *args):
        self._logger.warning(text, *args)

    def error(self, text, *args):
        self._logger.error(text, *args)

    def progress(self, fraction):
        fraction = min(1.0, max(0.0, float(fraction)))
        with self._lock:
            self.last_progress = fraction
            callback = self._progress_callback
        self._logger.debug("Progress: %.0f%%", 100 * fraction)
        if callback is not None:
            callback(fraction)
