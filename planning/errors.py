"""
Исключения планировщика.

Структурные ошибки отклоняют изменение целиком: состояние модели остается
прежним. Значения вне диапазона не считаются ошибкой, они приводятся к
допустимому диапазону.
"""


class PlanningError(Exception):
    """Базовое исключение планировщика."""


class StructuralError(PlanningError):
    """Нарушение структуры графа задач или справочника ресурсов."""


class DuplicateIdError(StructuralError):
    """Объект с таким ID уже существует."""

    def __init__(self, entity, entity_id):
        super().__init__(f"{entity} с ID {entity_id} уже существует")
        self.entity = entity
        self.entity_id = entity_id


class TaskNotFoundError(StructuralError):
    """Задача не найдена."""

    def __init__(self, task_id):
        super().__init__(f"Задача с ID {task_id} не найдена")
        self.task_id = task_id


class ResourceNotFoundError(StructuralError):
    """Ресурс, интервал, отсутствие или назначение не найдены."""

    def __init__(self, entity, entity_id):
        super().__init__(f"{entity} с ID {entity_id} не найден")
        self.entity = entity
        self.entity_id = entity_id


class CycleError(StructuralError):
    """Изменение образовало бы цикл."""


class RelationNotFoundError(StructuralError):
    """Связь между задачами отсутствует."""


class AlreadyGroupedError(StructuralError):
    """Задача уже входит в другую группу."""


class SplitError(StructuralError):
    """Недопустимая операция над разделенной задачей."""


class ValidationError(PlanningError, ValueError):
    """Значение невозможно привести к допустимому диапазону."""


class TransactionError(PlanningError):
    """Ошибка управления транзакциями отмены."""


class TransactionAlreadyActiveError(TransactionError):
    """Вложенные транзакции не поддерживаются."""


class NoActiveTransactionError(TransactionError):
    """Нет активной транзакции."""


class MigrationError(PlanningError):
    """Снимок проекта не удается прочитать даже с подстановкой значений по умолчанию."""
