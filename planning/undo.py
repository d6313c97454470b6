"""
История отмены и повтора действий с транзакциями.
"""
from collections import deque
from contextlib import contextmanager
import logging

from planning.errors import NoActiveTransactionError, TransactionAlreadyActiveError
from planning.events import Signal

logger = logging.getLogger(__name__)

MAX_UNDO_DEPTH = 5


class UndoableAction:
    """Действие, которое можно выполнить и отменить."""

    description = ""

    def execute(self):
        raise NotImplementedError

    def undo(self):
        raise NotImplementedError

    def __repr__(self):
        return f"<{type(self).__name__}('{self.description}')>"


class CompositeAction(UndoableAction):
    """Набор действий, которые выполняются и отменяются как одно целое."""

    def __init__(self, description, actions=None):
        self.description = description
        self._actions = list(actions or [])

    def add(self, action):
        self._actions.append(action)

    @property
    def actions(self):
        return list(self._actions)

    def is_empty(self):
        return not self._actions

    def __len__(self):
        return len(self._actions)

    def execute(self):
        for action in self._actions:
            action.execute()

    def undo(self):
        # Строго в обратном порядке
        for action in reversed(self._actions):
            action.undo()


class UndoRedoManager:
    """
    Два стека: ограниченный стек отмены и стек повтора.

    Новое действие вне отмены/повтора очищает стек повтора. Самые старые
    действия вытесняются, когда история превышает max_depth.
    """

    def __init__(self, max_depth=MAX_UNDO_DEPTH):
        self.max_depth = max_depth
        self._undo_stack = deque()
        self._redo_stack = []
        self._transaction = None
        self._replaying = False
        self.state_changed = Signal("undo_redo")

    @property
    def can_undo(self):
        return bool(self._undo_stack)

    @property
    def can_redo(self):
        return bool(self._redo_stack)

    @property
    def undo_description(self):
        return self._undo_stack[-1].description if self._undo_stack else None

    @property
    def redo_description(self):
        return self._redo_stack[-1].description if self._redo_stack else None

    @property
    def undo_count(self):
        return len(self._undo_stack)

    @property
    def redo_count(self):
        return len(self._redo_stack)

    @property
    def is_undoing_or_redoing(self):
        return self._replaying

    @property
    def is_transaction_active(self):
        return self._transaction is not None

    def execute(self, action, execute=True):
        """
        Выполняет действие и записывает его в историю.

        Во время отмены или повтора вызов игнорируется полностью: действие не
        выполняется и не записывается.

        Args:
            action: UndoableAction
            execute: False, если действие уже применено вызывающим кодом
        """
        if self._replaying:
            logger.debug(f"Пропущено действие во время отмены/повтора: {action.description}")
            return

        if execute:
            action.execute()

        if self._transaction is not None:
            self._transaction.add(action)
            return

        self._push(action)
        self._redo_stack.clear()
        self._notify()

    def undo(self):
        if not self._undo_stack:
            return False

        self._replaying = True
        try:
            action = self._undo_stack.pop()
            action.undo()
            self._redo_stack.append(action)
            logger.debug(f"Отменено: {action.description}")
        finally:
            self._replaying = False
        self._notify()
        return True

    def redo(self):
        if not self._redo_stack:
            return False

        self._replaying = True
        try:
            action = self._redo_stack.pop()
            action.execute()
            self._push(action)
            logger.debug(f"Повторено: {action.description}")
        finally:
            self._replaying = False
        self._notify()
        return True

    def begin_transaction(self, description):
        """
        Raises:
            TransactionAlreadyActiveError: вложенные транзакции не поддерживаются
        """
        if self._transaction is not None:
            raise TransactionAlreadyActiveError(
                "Транзакция уже активна. Вложенные транзакции не поддерживаются.")
        self._transaction = CompositeAction(description)

    def commit_transaction(self):
        """Записывает транзакцию в историю, если в ней есть действия."""
        if self._transaction is None:
            raise NoActiveTransactionError("Нет активной транзакции для фиксации.")

        transaction, self._transaction = self._transaction, None
        if not transaction.is_empty():
            self._push(transaction)
            self._redo_stack.clear()
            self._notify()

    def rollback_transaction(self):
        """Отменяет уже выполненные действия транзакции, не трогая историю."""
        if self._transaction is None:
            raise NoActiveTransactionError("Нет активной транзакции для отката.")

        transaction, self._transaction = self._transaction, None
        if not transaction.is_empty():
            logger.info(f"Откат транзакции '{transaction.description}' ({len(transaction)} действий)")
            transaction.undo()

    @contextmanager
    def transaction(self, description):
        """
        Транзакция как блок with: фиксация при успехе, откат при исключении.

        Example:
            with manager.transaction("Перетаскивание"):
                manager.execute(SetStartCommand(graph, task, 3))
                manager.execute(SetStartCommand(graph, other, 5))
        """
        self.begin_transaction(description)
        try:
            yield self._transaction
        except BaseException:
            self.rollback_transaction()
            raise
        else:
            self.commit_transaction()

    def clear(self):
        self._undo_stack.clear()
        self._redo_stack.clear()
        self._transaction = None
        self._notify()

    def _push(self, action):
        self._undo_stack.append(action)
        while len(self._undo_stack) > self.max_depth:
            evicted = self._undo_stack.popleft()
            logger.debug(f"Вытеснено из истории: {evicted.description}")

    def _notify(self):
        self.state_changed.emit(can_undo=self.can_undo, can_redo=self.can_redo)
