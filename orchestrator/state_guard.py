"""
Persistence guard for a migration run.

Owns the periodic auto-save of the id mapping tracker and the termination
hooks (interpreter exit and SIGINT/SIGTERM/SIGUSR1/SIGUSR2) so the mapping
and missing report reach disk on every exit path.
"""

import atexit
import logging
import signal
import threading
from typing import Any, Dict, Optional

from importers.id_mapping_tracker import IdMappingTracker

logger = logging.getLogger('community_cms_migrator.orchestrator.state_guard')

GUARDED_SIGNALS = ('SIGINT', 'SIGTERM', 'SIGUSR1', 'SIGUSR2')


class StateGuard:
    """
    Context manager that keeps tracker state flushed while a run is active.

    Usage:
        with StateGuard(tracker, interval=5):
            orchestrator.run()
    """

    DEFAULT_INTERVAL = 5

    def __init__(
        self,
        tracker: IdMappingTracker,
        interval: float = DEFAULT_INTERVAL,
        install_signal_handlers: bool = True,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the guard.

        Args:
            tracker: Tracker whose state is saved
            interval: Seconds between auto-saves
            install_signal_handlers: Install handlers for termination signals
                (only possible from the main thread)
            logger: Optional logger instance
        """
        self.tracker = tracker
        self.interval = interval
        self.install_signal_handlers = install_signal_handlers
        self.logger = logger or logging.getLogger('community_cms_migrator.orchestrator.state_guard')

        self._timer: Optional[threading.Timer] = None
        self._stopped = threading.Event()
        self._previous_handlers: Dict[int, Any] = {}
        self._active = False
        self.autosaves = 0

    def __enter__(self) -> 'StateGuard':
        self._active = True
        self._stopped.clear()
        atexit.register(self._flush_at_exit)

        if self.install_signal_handlers:
            self._install_handlers()

        self._schedule()
        self.logger.debug(f"State guard active, auto-save every {self.interval}s")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._stop_timer()
        self._restore_handlers()
        atexit.unregister(self._flush_at_exit)
        self._active = False

        # Failed ids are rewritten only after a walk that finished normally
        self.tracker.flush(include_failed=exc_type is None)
        return False

    def _schedule(self) -> None:
        if self._stopped.is_set():
            return
        self._timer = threading.Timer(self.interval, self._tick)
        self._timer.daemon = True
        self._timer.start()

    def _tick(self) -> None:
        try:
            self.tracker.autosave()
            self.autosaves += 1
        except OSError as e:
            self.logger.error(f"Auto-save failed: {e}")
        self._schedule()

    def _stop_timer(self) -> None:
        self._stopped.set()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _install_handlers(self) -> None:
        for name in GUARDED_SIGNALS:
            signum = getattr(signal, name, None)
            if signum is None:
                continue
            try:
                self._previous_handlers[signum] = signal.signal(signum, self._handle_signal)
            except ValueError:
                # Not on the main thread
                self.logger.debug(f"Cannot install handler for {name}")

    def _restore_handlers(self) -> None:
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
        self._previous_handlers.clear()

    def _handle_signal(self, signum, frame) -> None:
        self.logger.warning(f"Received {signal.Signals(signum).name}, saving state")
        self._stop_timer()
        self.tracker.flush()

        if signum == signal.SIGINT:
            raise KeyboardInterrupt
        raise SystemExit(128 + signum)

    def _flush_at_exit(self) -> None:
        if self._active:
            self.tracker.flush()


__all__ = ['StateGuard', 'GUARDED_SIGNALS']
