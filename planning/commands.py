"""
Отменяемые действия над графом задач, справочником ресурсов и календарем.

Действия выполняются через UndoRedoManager.execute(). Состояние для отмены
снимается в момент выполнения, поэтому повтор после отмены работает с
актуальными данными.
"""
import logging

from planning.errors import SplitError
from planning.models import ResourceAssignment, Task
from planning.undo import CompositeAction, UndoableAction

logger = logging.getLogger(__name__)


def _name(task):
    return task.name if isinstance(task, Task) else str(task)


# ----------------------------------------------------------------------
# Сроки и свойства задач

class _TaskFieldCommand(UndoableAction):
    """Изменение одного поля задачи; отмена возвращает точный снимок сроков."""

    setter = None
    template = ""

    def __init__(self, graph, task, value):
        self.graph = graph
        self.task = task
        self.value = value
        self._before = None

    @property
    def description(self):
        return self.template.format(name=_name(self.task))

    def execute(self):
        self._before = self.graph.capture_schedule(self.task)
        getattr(self.graph, self.setter)(self.task, self.value)

    def undo(self):
        self.graph.restore_schedule(self._before)


class SetNameCommand(_TaskFieldCommand):
    setter = "set_name"
    template = "Переименование '{name}'"


class SetStartCommand(_TaskFieldCommand):
    setter = "set_start"
    template = "Изменение начала '{name}'"

    def merge_with(self, other):
        """Объединяет две последовательные команды сдвига одной задачи."""
        if other.task.id != self.task.id:
            raise ValueError("Невозможно объединить команды для разных задач.")
        merged = SetStartCommand(self.graph, self.task, other.value)
        merged._before = self._before
        return merged


class SetDurationCommand(_TaskFieldCommand):
    setter = "set_duration"
    template = "Изменение длительности '{name}'"


class SetEndCommand(_TaskFieldCommand):
    setter = "set_end"
    template = "Изменение окончания '{name}'"


class SetCompleteCommand(_TaskFieldCommand):
    setter = "set_complete"
    template = "Изменение выполнения '{name}'"


class SetDeadlineCommand(_TaskFieldCommand):
    setter = "set_deadline"
    template = "Изменение срока '{name}'"


class SetNoteCommand(_TaskFieldCommand):
    setter = "set_note"
    template = "Изменение заметки '{name}'"


class SetCollapseCommand(_TaskFieldCommand):
    setter = "set_collapse"
    template = "Сворачивание '{name}'"


# ----------------------------------------------------------------------
# Добавление и удаление задач

class AddTaskCommand(UndoableAction):

    def __init__(self, graph, task, parent=None, index=None):
        self.graph = graph
        self.task = task
        self.parent = parent
        self.index = index
        self.description = f"Добавление задачи '{task.name}'"

    def execute(self):
        self.graph.add(self.task, self.parent, self.index)

    def undo(self):
        group = self.graph.direct_group_of(self.task)
        if group is not None:
            self.graph.ungroup(group, self.task)
        self.graph.delete(self.task)


class RemoveTaskCommand(UndoableAction):
    """Удаление задачи без связей."""

    def __init__(self, graph, task):
        self.graph = graph
        self.task = task
        self.description = f"Удаление задачи '{task.name}'"
        self._index = None

    def execute(self):
        self._index = self.graph.delete(self.task)

    def undo(self):
        self.graph.add(self.task, index=self._index)


class DeleteTaskCommand(UndoableAction):
    """
    Удаление задачи вместе со всеми ее связями и назначениями.

    Перед удалением снимаются зависимости, участники группы переносятся в
    группу удаляемой задачи (или на верхний уровень), разделенная задача
    собирается обратно, назначения ресурсов снимаются. Все шаги отменяются
    одной операцией.
    """

    def __init__(self, graph, directory, task):
        self.graph = graph
        self.directory = directory
        self.task = task
        self.description = f"Удаление задачи '{task.name}'"
        self._steps = None

    def _plan(self):
        graph, task = self.graph, self.task
        if graph.is_part(task):
            raise SplitError(f"'{task.name}' является частью разделенной задачи: используйте объединение частей")

        steps = []
        for precedent in graph.direct_precedents_of(task):
            steps.append(UnrelateCommand(graph, precedent, task))
        for dependant in graph.direct_dependants_of(task):
            steps.append(UnrelateCommand(graph, task, dependant))

        parent = graph.direct_group_of(task)
        for member in graph.direct_members_of(task):
            steps.append(UngroupCommand(graph, task, member))
            if parent is not None:
                steps.append(GroupCommand(graph, parent, member))

        if self.directory is not None:
            task_ids = [task.id] + [p.id for p in graph.parts_of(task)]
            for task_id in task_ids:
                for assignment in self.directory.assignments_for_task(task_id):
                    steps.append(RemoveAssignmentCommand(self.directory, assignment))

        if graph.is_split(task):
            steps.append(MergeCommand(graph, task))
        if parent is not None:
            steps.append(UngroupCommand(graph, parent, task))
        steps.append(RemoveTaskCommand(graph, task))
        return steps

    def execute(self):
        done = CompositeAction(self.description)
        try:
            for step in self._steps or self._plan():
                step.execute()
                done.add(step)
        except Exception:
            logger.warning(f"Удаление '{self.task.name}' прервано, выполненные шаги отменяются")
            done.undo()
            raise
        self._steps = done.actions

    def undo(self):
        CompositeAction(self.description, self._steps).undo()


# ----------------------------------------------------------------------
# Группы и порядок

class GroupCommand(UndoableAction):

    def __init__(self, graph, group, member, index=None):
        self.graph = graph
        self.group = group
        self.member = member
        self.index = index
        self.description = f"Добавление '{_name(member)}' в группу '{_name(group)}'"
        self._root_index = None

    def execute(self):
        self._root_index = self.graph.group(self.group, self.member, self.index)

    def undo(self):
        self.graph.ungroup(self.group, self.member, index=self._root_index)


class UngroupCommand(UndoableAction):

    def __init__(self, graph, group, member):
        self.graph = graph
        self.group = group
        self.member = member
        self.description = f"Удаление '{_name(member)}' из группы '{_name(group)}'"
        self._member_index = None

    def execute(self):
        self._member_index = self.graph.ungroup(self.group, self.member)

    def undo(self):
        self.graph.group(self.group, self.member, index=self._member_index)


class MoveCommand(UndoableAction):

    def __init__(self, graph, task, offset):
        self.graph = graph
        self.task = task
        self.offset = offset
        direction = "вниз" if offset > 0 else "вверх"
        self.description = f"Перемещение '{_name(task)}' {direction}"
        self._applied = 0

    def execute(self):
        self._applied = self.graph.move(self.task, self.offset)

    def undo(self):
        self.graph.move(self.task, -self._applied)


# ----------------------------------------------------------------------
# Разделенные задачи

class _SplitFamilyCommand(UndoableAction):
    """Запоминает цепочку частей целиком и восстанавливает ее при отмене."""

    directory = None

    def _remember(self, root):
        self._root = root
        self._parts = self.graph.parts_of(root)
        self._states = self.graph.capture_schedule(root)
        self._assignments = None

    def _transfer(self, removed, target):
        """Назначения удаленных частей переходят на оставшуюся задачу."""
        if self.directory is not None and removed:
            self._assignments = self.directory.transfer_assignments([p.id for p in removed], target)

    def undo(self):
        graph = self.graph
        if graph.is_split(self._root):
            graph.merge(self._root)
        if self._parts:
            states = {state.task_id: state for state in self._states}
            for part in self._parts:
                states[part.id].apply(part)
            graph.restore_split(self._root, self._parts)
        graph.restore_schedule(self._states)
        if self._assignments is not None:
            self.directory.restore_assignments(self._assignments)


class SplitCommand(_SplitFamilyCommand):

    def __init__(self, graph, task, part_a=None, part_b=None, first_duration=None):
        self.graph = graph
        self.task = task
        self.part_a = part_a or Task()
        self.part_b = part_b or Task()
        self.first_duration = first_duration
        self.description = f"Разделение '{_name(task)}'"

    def execute(self):
        self._remember(self.task)
        self.graph.split(self.task, self.part_a, self.part_b, self.first_duration)


class SplitPartCommand(_SplitFamilyCommand):

    def __init__(self, graph, part, new_part=None, duration=None):
        self.graph = graph
        self.part = part
        self.new_part = new_part or Task()
        self.duration = duration
        self.description = f"Разделение части '{_name(part)}'"

    def execute(self):
        root = self.graph.split_root_of(self.part)
        if root is None:
            raise SplitError(f"Задача '{_name(self.part)}' не является частью разделенной задачи")
        self._remember(root)
        self.graph.split_part(self.part, self.new_part, self.duration)


class JoinCommand(_SplitFamilyCommand):
    """Объединение двух частей; назначения присоединенной части переходят на оставшуюся."""

    def __init__(self, graph, part, other, directory=None):
        self.graph = graph
        self.directory = directory
        self.part = part
        self.other = other
        self.description = f"Объединение частей '{_name(part)}' и '{_name(other)}'"

    def execute(self):
        root = self.graph.split_root_of(self.part)
        if root is None:
            raise SplitError(f"Задача '{_name(self.part)}' не является частью разделенной задачи")
        self._remember(root)
        removed = self.graph.join(self.part, self.other)
        # из двух частей join собирает задачу целиком
        target = self.part if self.graph.is_split(root) else root
        self._transfer(removed, target)


class MergeCommand(_SplitFamilyCommand):
    """Сборка разделенной задачи; назначения частей переходят на задачу."""

    def __init__(self, graph, task, directory=None):
        self.graph = graph
        self.directory = directory
        self.task = task
        self.description = f"Объединение '{_name(task)}'"

    def execute(self):
        self._remember(self.task)
        removed = self.graph.merge(self.task)
        self._transfer(removed, self.task)


# ----------------------------------------------------------------------
# Зависимости

class RelateCommand(UndoableAction):

    def __init__(self, graph, precedent, dependant):
        self.graph = graph
        self.precedent = precedent
        self.dependant = dependant
        self.description = f"Связь '{_name(precedent)}' -> '{_name(dependant)}'"
        self._added = False

    def execute(self):
        self._added = self.graph.relate(self.precedent, self.dependant)

    def undo(self):
        if self._added:
            self.graph.unrelate(self.precedent, self.dependant)


class UnrelateCommand(UndoableAction):

    def __init__(self, graph, precedent, dependant):
        self.graph = graph
        self.precedent = precedent
        self.dependant = dependant
        self.description = f"Удаление связи '{_name(precedent)}' -> '{_name(dependant)}'"
        self._index = None

    def execute(self):
        self._index = self.graph.unrelate(self.precedent, self.dependant)

    def undo(self):
        self.graph.relate(self.precedent, self.dependant, self._index)


# ----------------------------------------------------------------------
# Ресурсы

class AddResourceCommand(UndoableAction):

    def __init__(self, directory, resource, interval=None):
        self.directory = directory
        self.resource = resource
        self.interval = interval
        self.description = f"Добавление ресурса '{resource.name}'"

    def execute(self):
        with self.directory.batch_update():
            self.directory.add_resource(self.resource)
            if self.interval is not None:
                self.directory.add_interval(self.interval)

    def undo(self):
        self.directory.remove_resource(self.resource.id)


class RemoveResourceCommand(UndoableAction):

    def __init__(self, directory, resource):
        self.directory = directory
        self.resource = resource
        self.description = f"Удаление ресурса '{resource.name}'"
        self._removed = None

    def execute(self):
        self._removed = self.directory.remove_resource(self.resource.id)

    def undo(self):
        self.directory.restore_resource(self._removed)


class _UpdateCommand(UndoableAction):
    """Обновление полей записи справочника; отмена возвращает прежние значения."""

    updater = None

    def __init__(self, directory, entity_id, description, **changes):
        self.directory = directory
        self.entity_id = getattr(entity_id, 'id', entity_id)
        self.changes = changes
        self.description = description
        self._previous = None

    def execute(self):
        self._previous = getattr(self.directory, self.updater)(self.entity_id, **self.changes)

    def undo(self):
        getattr(self.directory, self.updater)(self.entity_id, **self._previous)


class UpdateResourceCommand(_UpdateCommand):
    updater = "update_resource"

    def __init__(self, directory, resource, **changes):
        super().__init__(directory, resource, f"Изменение ресурса '{resource.name}'", **changes)


class UpdateIntervalCommand(_UpdateCommand):
    updater = "update_interval"

    def __init__(self, directory, interval, **changes):
        super().__init__(directory, interval, "Изменение периода участия", **changes)


class UpdateAbsenceCommand(_UpdateCommand):
    updater = "update_absence"

    def __init__(self, directory, absence, **changes):
        super().__init__(directory, absence, "Изменение отсутствия", **changes)


class UpdateAssignmentCommand(_UpdateCommand):
    updater = "update_assignment"

    def __init__(self, directory, assignment, **changes):
        super().__init__(directory, assignment, "Изменение назначения", **changes)


class AddIntervalCommand(UndoableAction):

    def __init__(self, directory, interval):
        self.directory = directory
        self.interval = interval
        self.description = "Добавление периода участия"

    def execute(self):
        self.directory.add_interval(self.interval)

    def undo(self):
        self.directory.remove_interval(self.interval.id)


class RemoveIntervalCommand(UndoableAction):

    def __init__(self, directory, interval):
        self.directory = directory
        self.interval = interval
        self.description = "Удаление периода участия"
        self._index = None

    def execute(self):
        _, self._index = self.directory.remove_interval(self.interval.id)

    def undo(self):
        self.directory.add_interval(self.interval, self._index)


class AddAbsenceCommand(UndoableAction):

    def __init__(self, directory, absence):
        self.directory = directory
        self.absence = absence
        self.description = f"Добавление отсутствия ({absence.reason or 'без причины'})"

    def execute(self):
        self.directory.add_absence(self.absence)

    def undo(self):
        self.directory.remove_absence(self.absence.id)


class RemoveAbsenceCommand(UndoableAction):

    def __init__(self, directory, absence):
        self.directory = directory
        self.absence = absence
        self.description = "Удаление отсутствия"
        self._index = None

    def execute(self):
        _, self._index = self.directory.remove_absence(self.absence.id)

    def undo(self):
        self.directory.add_absence(self.absence, self._index)


class AssignResourceCommand(UndoableAction):

    def __init__(self, directory, task, resource, workload=100, note=""):
        self.directory = directory
        self.assignment = ResourceAssignment(
            task_id=getattr(task, 'id', task),
            resource_id=getattr(resource, 'id', resource),
            workload=workload,
            note=note,
        )
        resource_name = getattr(resource, 'name', None) or "Ресурс"
        task_name = getattr(task, 'name', None) or "Задача"
        self.description = f"Назначение '{resource_name}' на '{task_name}'"

    def execute(self):
        self.directory.add_assignment(self.assignment)

    def undo(self):
        self.directory.remove_assignment(self.assignment.id)


class RemoveAssignmentCommand(UndoableAction):

    def __init__(self, directory, assignment):
        self.directory = directory
        self.assignment = assignment
        self.description = "Снятие назначения"
        self._index = None

    def execute(self):
        _, self._index = self.directory.remove_assignment(self.assignment.id)

    def undo(self):
        self.directory.add_assignment(self.assignment, self._index)


class UnassignResourceCommand(UndoableAction):
    """Снимает с задачи все назначения ресурса."""

    def __init__(self, directory, task, resource):
        self.directory = directory
        self.task_id = getattr(task, 'id', task)
        self.resource_id = getattr(resource, 'id', resource)
        resource_name = getattr(resource, 'name', None) or "Ресурс"
        task_name = getattr(task, 'name', None) or "Задача"
        self.description = f"Снятие '{resource_name}' с '{task_name}'"
        self._removed = []

    def execute(self):
        self._removed = []
        with self.directory.batch_update():
            for assignment in self.directory.assignments_for_task(self.task_id):
                if assignment.resource_id == self.resource_id:
                    self._removed.append(self.directory.remove_assignment(assignment.id))

    def undo(self):
        with self.directory.batch_update():
            for assignment, index in reversed(self._removed):
                self.directory.add_assignment(assignment, index)


# ----------------------------------------------------------------------
# Праздники

class AddHolidayCommand(UndoableAction):

    def __init__(self, calendar, holiday):
        self.calendar = calendar
        self.holiday = holiday
        self.description = f"Добавление праздника: {holiday}"
        self._added = False

    def execute(self):
        self._added = self.calendar.add_holiday(self.holiday)

    def undo(self):
        if self._added:
            self.calendar.remove_holiday(self.holiday.id)


class RemoveHolidayCommand(UndoableAction):

    def __init__(self, calendar, holiday):
        self.calendar = calendar
        self.holiday = holiday
        self.description = f"Удаление праздника: {holiday}"
        self._removed = False

    def execute(self):
        self._removed = self.calendar.remove_holiday(self.holiday.id)

    def undo(self):
        if self._removed:
            self.calendar.add_holiday(self.holiday)
