"""Confined status container: one update path, read-only snapshots."""

import copy
import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator

from ..models.common import LogEntry, LogKind
from ..models.status import StatusSnapshot

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("swap_mover.audit")

_LOG_LEVELS = {
    LogKind.INFO: logging.INFO,
    LogKind.WARNING: logging.WARNING,
    LogKind.ERROR: logging.ERROR,
    LogKind.COMMAND: logging.INFO,
    LogKind.OUTPUT: logging.DEBUG,
}

Listener = Callable[[StatusSnapshot], None]


class StatusModel:
    """Single source of truth for what the engine is doing.

    Every write goes through ``update``, ``append_log``, ``clear_logs`` or
    ``operation``; all of them hold the same lock, so writes never interleave
    with each other or with ``snapshot``. Callers only ever see deep copies.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._state = StatusSnapshot()
        self._active_operations = 0
        self._listeners: list[Listener] = []

    def snapshot(self) -> StatusSnapshot:
        with self._lock:
            return self._state.model_copy(deep=True)

    def update(self, **fields) -> None:
        with self._lock:
            for name, value in fields.items():
                if name in ("busy", "logs"):
                    raise ValueError(f"{name} is not directly writable")
                if name not in StatusSnapshot.model_fields:
                    raise AttributeError(f"Unknown status field: {name}")
                # Stored values are copies; callers keep no handle on published state.
                setattr(self._state, name, copy.deepcopy(value))
        self._notify()

    def append_log(self, kind: LogKind, message: str) -> LogEntry:
        entry = LogEntry(kind=kind, message=message)
        with self._lock:
            self._state.logs.append(entry)
        audit_logger.log(_LOG_LEVELS[kind], "[%s] %s", kind.value, message)
        self._notify()
        return entry

    def info(self, message: str) -> LogEntry:
        return self.append_log(LogKind.INFO, message)

    def warning(self, message: str) -> LogEntry:
        return self.append_log(LogKind.WARNING, message)

    def error(self, message: str) -> LogEntry:
        return self.append_log(LogKind.ERROR, message)

    def clear_logs(self) -> None:
        with self._lock:
            self._state.logs = []
        self._notify()

    @contextmanager
    def operation(self) -> Iterator[None]:
        """Bracket a public operation with the busy flag."""
        with self._lock:
            self._active_operations += 1
            self._state.busy = True
        self._notify()
        try:
            yield
        finally:
            with self._lock:
                self._active_operations -= 1
                if self._active_operations == 0:
                    self._state.busy = False
            self._notify()

    def add_listener(self, callback: Listener) -> None:
        with self._lock:
            self._listeners.append(callback)

    def remove_listener(self, callback: Listener) -> None:
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def _notify(self) -> None:
        with self._lock:
            if not self._listeners:
                return
            listeners = list(self._listeners)
            snap = self._state.model_copy(deep=True)
        for cb in listeners:
            try:
                cb(snap)
            except Exception:
                logger.exception("Status listener failed")
