"""
Синхронный сигнал об изменении модели.

Хост сам решает, как группировать и откладывать перерисовку.
"""
import logging
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class Signal:
    """Список подписчиков, вызываемых синхронно при каждом изменении."""

    def __init__(self, name):
        self.name = name
        self._callbacks = []
        self._suppress_depth = 0
        self._pending = False

    def connect(self, callback):
        if callback not in self._callbacks:
            self._callbacks.append(callback)
        return callback

    def disconnect(self, callback):
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def emit(self, **payload):
        if self._suppress_depth:
            self._pending = True
            return
        for callback in list(self._callbacks):
            callback(**payload)

    @contextmanager
    def suppressed(self):
        """
        Подавляет сигнал на время пакетной операции.

        В конце блока подписчики получают одно уведомление, если за время
        блока было хотя бы одно изменение.
        """
        self._suppress_depth += 1
        try:
            yield self
        finally:
            self._suppress_depth -= 1
            if not self._suppress_depth and self._pending:
                self._pending = False
                logger.debug(f"Сигнал {self.name}: пакетное уведомление")
                self.emit(batch=True)
