import pytest

from planning.errors import NoActiveTransactionError, TransactionAlreadyActiveError
from planning.undo import CompositeAction, UndoableAction, UndoRedoManager


class AppendAction(UndoableAction):
    """Добавляет значение в список; отмена убирает последнее значение."""

    def __init__(self, items, value):
        self.items = items
        self.value = value
        self.description = f"Добавить {value}"

    def execute(self):
        self.items.append(self.value)

    def undo(self):
        assert self.items.pop() == self.value


class FailingAction(UndoableAction):
    description = "Ошибка"

    def execute(self):
        raise RuntimeError("сбой")

    def undo(self):
        pass


def test_execute_undo_redo(manager):
    items = []
    manager.execute(AppendAction(items, 1))
    manager.execute(AppendAction(items, 2))
    assert items == [1, 2]
    assert manager.undo_description == "Добавить 2"

    assert manager.undo()
    assert items == [1]
    assert manager.can_redo
    assert manager.redo_description == "Добавить 2"

    assert manager.redo()
    assert items == [1, 2]
    assert not manager.can_redo


def test_undo_on_empty_history(manager):
    assert not manager.undo()
    assert not manager.redo()


def test_new_action_clears_redo(manager):
    items = []
    manager.execute(AppendAction(items, 1))
    manager.undo()
    manager.execute(AppendAction(items, 2))
    assert not manager.can_redo
    assert items == [2]


def test_history_depth_is_bounded():
    manager = UndoRedoManager(max_depth=5)
    items = []
    for value in range(7):
        manager.execute(AppendAction(items, value))

    assert manager.undo_count == 5
    while manager.undo():
        pass
    assert items == [0, 1]


def test_execute_without_running(manager):
    items = [1]
    manager.execute(AppendAction(items, 1), execute=False)
    assert items == [1]
    manager.undo()
    assert items == []


def test_execute_is_ignored_during_replay(manager):
    items = []
    nested = AppendAction(items, "nested")

    class Reentrant(AppendAction):
        def undo(self):
            manager.execute(nested)
            super().undo()

    manager.execute(Reentrant(items, 1))
    manager.undo()

    assert items == []
    assert manager.undo_count == 0
    assert manager.redo_count == 1


def test_composite_undo_is_reversed():
    order = []

    class Step(UndoableAction):
        def __init__(self, name):
            self.description = name

        def execute(self):
            order.append(("do", self.description))

        def undo(self):
            order.append(("undo", self.description))

    composite = CompositeAction("Группа", [Step("a"), Step("b")])
    composite.add(Step("c"))
    composite.execute()
    composite.undo()

    assert len(composite) == 3
    assert order == [("do", "a"), ("do", "b"), ("do", "c"),
                     ("undo", "c"), ("undo", "b"), ("undo", "a")]


def test_transaction_commit_records_one_entry(manager):
    items = []
    manager.begin_transaction("Перетаскивание")
    assert manager.is_transaction_active
    manager.execute(AppendAction(items, 1))
    manager.execute(AppendAction(items, 2))
    manager.commit_transaction()

    assert manager.undo_count == 1
    assert manager.undo_description == "Перетаскивание"
    manager.undo()
    assert items == []


def test_transaction_rollback_restores_state(manager):
    items = ["base"]
    manager.begin_transaction("Перетаскивание")
    manager.execute(AppendAction(items, 1))
    manager.execute(AppendAction(items, 2))
    manager.rollback_transaction()

    assert items == ["base"]
    assert manager.undo_count == 0
    assert not manager.is_transaction_active


def test_empty_transaction_is_not_recorded(manager):
    manager.begin_transaction("Пусто")
    manager.commit_transaction()
    assert not manager.can_undo


def test_transaction_errors(manager):
    with pytest.raises(NoActiveTransactionError):
        manager.commit_transaction()
    with pytest.raises(NoActiveTransactionError):
        manager.rollback_transaction()

    manager.begin_transaction("Первая")
    with pytest.raises(TransactionAlreadyActiveError):
        manager.begin_transaction("Вторая")


def test_transaction_context_manager(manager):
    items = []
    with manager.transaction("Блок"):
        manager.execute(AppendAction(items, 1))
    assert manager.undo_count == 1

    with pytest.raises(RuntimeError):
        with manager.transaction("Сбой"):
            manager.execute(AppendAction(items, 2))
            manager.execute(FailingAction())

    assert items == [1]
    assert manager.undo_count == 1
    assert not manager.is_transaction_active


def test_state_changed_signal(manager):
    states = []
    manager.state_changed.connect(lambda can_undo, can_redo: states.append((can_undo, can_redo)))
    items = []
    manager.execute(AppendAction(items, 1))
    manager.undo()
    manager.clear()
    assert states == [(True, False), (False, True), (False, False)]
