"""Debounced delivery of rapidly changing values on the Qt event loop."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Hashable, List, Optional

from PyQt6 import QtCore

logger = logging.getLogger(__name__)

DEFAULT_DELAY_MS = 300


class Debouncer(QtCore.QObject):
    """Last-write-wins debouncing keyed by field identity.

    Each key owns one single-shot timer. Pushing a value restarts that key's
    timer; ``settled`` fires once the key has been quiet for the full delay,
    carrying the most recent value.
    """

    settled = QtCore.pyqtSignal(object, object)

    def __init__(self, delay_ms: int = DEFAULT_DELAY_MS,
                 parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self._delay_ms = max(0, int(delay_ms))
        self._timers: Dict[Hashable, QtCore.QTimer] = {}
        self._values: Dict[Hashable, Any] = {}
        self._closed = False

    @property
    def delay_ms(self) -> int:
        return self._delay_ms

    def set_delay_ms(self, delay_ms: int) -> None:
        self._delay_ms = max(0, int(delay_ms))
        for timer in self._timers.values():
            timer.setInterval(self._delay_ms)

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, key: Hashable, value: Any) -> None:
        if self._closed:
            return
        self._values[key] = value
        timer = self._timers.get(key)
        if timer is None:
            timer = QtCore.QTimer(self)
            timer.setSingleShot(True)
            timer.setInterval(self._delay_ms)
            timer.timeout.connect(lambda k=key: self._fire(k))
            self._timers[key] = timer
        # start() on an active timer restarts it
        timer.start()

    def pending(self) -> List[Hashable]:
        return [key for key, timer in self._timers.items() if timer.isActive()]

    def cancel(self, key: Hashable) -> None:
        timer = self._timers.get(key)
        if timer is not None:
            timer.stop()
        self._values.pop(key, None)

    def flush(self, key: Optional[Hashable] = None) -> None:
        """Emit pending values now instead of waiting for the delay."""
        keys = [key] if key is not None else self.pending()
        for k in keys:
            timer = self._timers.get(k)
            if timer is not None and timer.isActive():
                timer.stop()
                self._fire(k)

    def close(self) -> None:
        """Cancel everything; nothing is emitted after this call."""
        for key in list(self._timers):
            self.cancel(key)
            self._timers[key].deleteLater()
        self._timers.clear()
        self._closed = True

    def _fire(self, key: Hashable) -> None:
        if self._closed or key not in self._values:
            return
        value = self._values.pop(key)
        self.settled.emit(key, value)


class PreviewSynchronizer(QtCore.QObject):
    """Turns one in-progress edit model into a throttled "stable" value."""

    changed = QtCore.pyqtSignal(object)

    def __init__(
        self,
        consumer: Optional[Callable[[Any], None]] = None,
        delay_ms: int = DEFAULT_DELAY_MS,
        key: Hashable = "preview",
        debouncer: Optional[Debouncer] = None,
        parent: Optional[QtCore.QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._key = key
        self._owns_debouncer = debouncer is None
        self._debouncer = Debouncer(delay_ms, self) if debouncer is None else debouncer
        self._debouncer.settled.connect(self._on_settled)
        self._consumer = consumer
        self._stable: Any = None
        self._emissions = 0
        self._closed = False

    def update(self, value: Any) -> None:
        self._debouncer.push(self._key, value)

    def value(self) -> Any:
        return self._stable

    @property
    def emissions(self) -> int:
        return self._emissions

    @property
    def closed(self) -> bool:
        return self._closed

    def flush(self) -> None:
        self._debouncer.flush(self._key)

    def close(self) -> None:
        self._closed = True
        self._debouncer.cancel(self._key)
        try:
            self._debouncer.settled.disconnect(self._on_settled)
        except TypeError:
            pass
        if self._owns_debouncer:
            self._debouncer.close()
        self._consumer = None

    def _on_settled(self, key: Hashable, value: Any) -> None:
        if key != self._key:
            return
        self._stable = value
        self._emissions += 1
        logger.debug("preview %s settled", key)
        if self._consumer is not None:
            self._consumer(value)
        self.changed.emit(value)

