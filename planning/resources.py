"""
Справочник ресурсов: сотрудники, периоды участия, отсутствия и назначения на задачи.
"""
import logging

from planning.errors import DuplicateIdError, ResourceNotFoundError, ValidationError
from planning.events import Signal
from planning.models import (
    Absence, ParticipationInterval, Resource, ResourceAssignment, ResourceRole, clamp_workload
)

logger = logging.getLogger(__name__)

_RESOURCE_FIELDS = ('name', 'initials', 'color', 'role')
_INTERVAL_FIELDS = ('start', 'end', 'max_workload')
_ABSENCE_FIELDS = ('start', 'end', 'reason')
_ASSIGNMENT_FIELDS = ('workload', 'note')


def _entity_id(value):
    return getattr(value, 'id', value)


def _insert(items, item, index):
    if index is None or index >= len(items):
        items.append(item)
    else:
        items.insert(max(0, index), item)


def _positions(items, resource_id):
    return [n for n, item in enumerate(items) if item.resource_id == resource_id]


class ResourceDirectory:
    """Хранилище ресурсов и всех связанных с ними записей."""

    def __init__(self):
        self._resources = []
        self._intervals = []
        self._absences = []
        self._assignments = []
        self.changed = Signal("resources")

    def _notify(self, event, entity_id=None):
        logger.debug(f"Ресурсы: {event} ({entity_id})")
        self.changed.emit(event=event, entity_id=entity_id)

    def batch_update(self):
        return self.changed.suppressed()

    # ------------------------------------------------------------------
    # Ресурсы

    @property
    def resources(self):
        return list(self._resources)

    @property
    def assignments(self):
        return list(self._assignments)

    @property
    def intervals(self):
        return list(self._intervals)

    @property
    def absences(self):
        return list(self._absences)

    def get_resource(self, resource_id):
        resource_id = _entity_id(resource_id)
        for resource in self._resources:
            if resource.id == resource_id:
                return resource
        return None

    def get_resource_by_name(self, name):
        for resource in self._resources:
            if resource.name.lower() == (name or "").lower():
                return resource
        return None

    def _require_resource(self, resource_id):
        resource = self.get_resource(resource_id)
        if resource is None:
            logger.warning(f"Ресурс с ID {_entity_id(resource_id)} не найден")
            raise ResourceNotFoundError("Ресурс", _entity_id(resource_id))
        return resource

    def add_resource(self, resource, index=None):
        """
        Добавляет ресурс в справочник.

        Raises:
            DuplicateIdError: если ресурс с таким ID уже есть
        """
        if self.get_resource(resource.id) is not None:
            raise DuplicateIdError("Ресурс", resource.id)
        resource.role = ResourceRole.parse(resource.role)
        if not resource.initials:
            resource.generate_initials()
        _insert(self._resources, resource, index)
        self._notify("add_resource", resource.id)
        return resource

    def create_resource(self, name, role=ResourceRole.CONSTRUCTOR):
        """Создает ресурс с инициалами из имени и бессрочным периодом участия."""
        resource = Resource(name=name, role=ResourceRole.parse(role))
        resource.generate_initials()
        with self.batch_update():
            self.add_resource(resource)
            self.add_interval(ParticipationInterval.create_default(resource.id))
        return resource

    def update_resource(self, resource_id, **changes):
        """
        Обновляет поля ресурса.

        Returns:
            dict: Прежние значения измененных полей
        """
        resource = self._require_resource(resource_id)
        unknown = set(changes) - set(_RESOURCE_FIELDS)
        if unknown:
            raise ValidationError(f"Неизвестные поля ресурса: {', '.join(sorted(unknown))}")
        if 'role' in changes:
            changes['role'] = ResourceRole.parse(changes['role'])

        previous = {name: getattr(resource, name) for name in changes}
        for name, value in changes.items():
            setattr(resource, name, value)
        self._notify("update_resource", resource.id)
        return previous

    def remove_resource(self, resource_id):
        """
        Удаляет ресурс вместе с его назначениями, периодами участия и отсутствиями.

        Returns:
            dict: Удаленные записи (для восстановления при отмене)
        """
        resource = self._require_resource(resource_id)
        removed = {
            'resource': resource,
            'index': self._resources.index(resource),
            'intervals': [i for i in self._intervals if i.resource_id == resource.id],
            'absences': [a for a in self._absences if a.resource_id == resource.id],
            'assignments': [a for a in self._assignments if a.resource_id == resource.id],
            'positions': {
                'intervals': _positions(self._intervals, resource.id),
                'absences': _positions(self._absences, resource.id),
                'assignments': _positions(self._assignments, resource.id),
            },
        }
        self._resources.remove(resource)
        self._intervals = [i for i in self._intervals if i.resource_id != resource.id]
        self._absences = [a for a in self._absences if a.resource_id != resource.id]
        self._assignments = [a for a in self._assignments if a.resource_id != resource.id]
        logger.info(f"Удален ресурс '{resource.name}' и {len(removed['assignments'])} назначений")
        self._notify("remove_resource", resource.id)
        return removed

    def restore_resource(self, removed):
        """Возвращает ресурс и связанные записи, удаленные remove_resource."""
        with self.batch_update():
            self.add_resource(removed['resource'], removed['index'])
            positions = removed['positions']
            for name, items in (('intervals', self._intervals), ('absences', self._absences),
                                ('assignments', self._assignments)):
                # по возрастанию позиций, чтобы каждая запись встала на прежнее место
                for index, item in zip(positions[name], removed[name]):
                    _insert(items, item, index)
            self._notify("restore_resource", removed['resource'].id)

    # ------------------------------------------------------------------
    # Периоды участия

    def get_interval(self, interval_id):
        interval_id = _entity_id(interval_id)
        for interval in self._intervals:
            if interval.id == interval_id:
                return interval
        return None

    def _require_interval(self, interval_id):
        interval = self.get_interval(interval_id)
        if interval is None:
            raise ResourceNotFoundError("Период участия", _entity_id(interval_id))
        return interval

    def add_interval(self, interval, index=None):
        self._require_resource(interval.resource_id)
        if self.get_interval(interval.id) is not None:
            raise DuplicateIdError("Период участия", interval.id)
        _insert(self._intervals, interval, index)
        self._notify("add_interval", interval.id)
        return interval

    def create_interval(self, resource_id, start=0, end=None, max_workload=100):
        return self.add_interval(ParticipationInterval(_entity_id(resource_id), start, end, max_workload))

    def update_interval(self, interval_id, **changes):
        """
        Обновляет период участия. Некорректное окончание исправляется на start + 1.

        Returns:
            dict: Прежние значения
        """
        interval = self._require_interval(interval_id)
        return self._update(interval, changes, _INTERVAL_FIELDS, "update_interval")

    def remove_interval(self, interval_id):
        interval = self._require_interval(interval_id)
        index = self._intervals.index(interval)
        del self._intervals[index]
        self._notify("remove_interval", interval.id)
        return interval, index

    def intervals_of(self, resource_id):
        resource_id = _entity_id(resource_id)
        return sorted((i for i in self._intervals if i.resource_id == resource_id), key=lambda i: i.start)

    def interval_for_day(self, resource_id, day):
        """
        Период участия, покрывающий день.

        При пересечении периодов выбирается созданный последним.
        """
        resource_id = _entity_id(resource_id)
        covering = [i for i in self._intervals if i.resource_id == resource_id and i.contains_day(day)]
        if not covering:
            return None
        if len(covering) > 1:
            logger.debug(f"Пересекающиеся периоды участия ресурса {resource_id} на день {day}")
        return max(covering, key=lambda i: i.created_at)

    def overlapping_intervals(self, interval):
        return [i for i in self._intervals if interval.overlaps_with(i)]

    def ensure_default_intervals(self):
        """
        Добавляет бессрочный период участия ресурсам без периодов.

        Returns:
            int: Количество добавленных периодов
        """
        added = 0
        for resource in self._resources:
            if not any(i.resource_id == resource.id for i in self._intervals):
                self._intervals.append(ParticipationInterval.create_default(resource.id))
                added += 1
        if added:
            logger.info(f"Добавлено периодов участия по умолчанию: {added}")
            self._notify("ensure_default_intervals")
        return added

    # ------------------------------------------------------------------
    # Отсутствия

    def get_absence(self, absence_id):
        absence_id = _entity_id(absence_id)
        for absence in self._absences:
            if absence.id == absence_id:
                return absence
        return None

    def _require_absence(self, absence_id):
        absence = self.get_absence(absence_id)
        if absence is None:
            raise ResourceNotFoundError("Отсутствие", _entity_id(absence_id))
        return absence

    def add_absence(self, absence, index=None):
        self._require_resource(absence.resource_id)
        if self.get_absence(absence.id) is not None:
            raise DuplicateIdError("Отсутствие", absence.id)
        _insert(self._absences, absence, index)
        self._notify("add_absence", absence.id)
        return absence

    def create_absence(self, resource_id, start, end=None, reason=None):
        return self.add_absence(Absence(_entity_id(resource_id), start, end, reason))

    def update_absence(self, absence_id, **changes):
        absence = self._require_absence(absence_id)
        return self._update(absence, changes, _ABSENCE_FIELDS, "update_absence")

    def remove_absence(self, absence_id):
        absence = self._require_absence(absence_id)
        index = self._absences.index(absence)
        del self._absences[index]
        self._notify("remove_absence", absence.id)
        return absence, index

    def absences_of(self, resource_id):
        resource_id = _entity_id(resource_id)
        return sorted((a for a in self._absences if a.resource_id == resource_id), key=lambda a: a.start)

    def absence_for_day(self, resource_id, day):
        resource_id = _entity_id(resource_id)
        for absence in self._absences:
            if absence.resource_id == resource_id and absence.contains_day(day):
                return absence
        return None

    def is_absent(self, resource_id, day):
        return self.absence_for_day(resource_id, day) is not None

    def overlapping_absences(self, absence):
        return [a for a in self._absences if absence.overlaps_with(a)]

    # ------------------------------------------------------------------
    # Назначения

    def get_assignment(self, assignment_id):
        assignment_id = _entity_id(assignment_id)
        for assignment in self._assignments:
            if assignment.id == assignment_id:
                return assignment
        return None

    def _require_assignment(self, assignment_id):
        assignment = self.get_assignment(assignment_id)
        if assignment is None:
            raise ResourceNotFoundError("Назначение", _entity_id(assignment_id))
        return assignment

    def assign(self, task_id, resource_id, workload=100, note=""):
        """
        Назначает ресурс на задачу.

        Каждый вызов создает новую запись: повторные назначения одной пары
        суммируются при расчете загрузки.
        """
        resource = self._require_resource(resource_id)
        assignment = ResourceAssignment(_entity_id(task_id), resource.id, clamp_workload(workload), note)
        return self.add_assignment(assignment)

    def add_assignment(self, assignment, index=None):
        self._require_resource(assignment.resource_id)
        if self.get_assignment(assignment.id) is not None:
            raise DuplicateIdError("Назначение", assignment.id)
        _insert(self._assignments, assignment, index)
        self._notify("assign", assignment.id)
        return assignment

    def remove_assignment(self, assignment_id):
        """
        Удаляет назначение.

        Returns:
            tuple: (назначение, его позиция)
        """
        assignment = self._require_assignment(assignment_id)
        index = self._assignments.index(assignment)
        self._assignments.remove(assignment)
        self._notify("unassign", assignment.id)
        return assignment, index

    def unassign(self, task_id, resource_id):
        """Снимает все назначения ресурса с задачи и возвращает их."""
        task_id, resource_id = _entity_id(task_id), _entity_id(resource_id)
        removed = [a for a in self._assignments if a.matches(task_id, resource_id)]
        if removed:
            self._assignments = [a for a in self._assignments if not a.matches(task_id, resource_id)]
            self._notify("unassign", task_id)
        return removed

    def unassign_all_from_task(self, task_id):
        task_id = _entity_id(task_id)
        removed = [a for a in self._assignments if a.task_id == task_id]
        if removed:
            self._assignments = [a for a in self._assignments if a.task_id != task_id]
            self._notify("unassign", task_id)
        return removed

    def transfer_assignments(self, from_task_ids, to_task_id):
        """
        Переносит назначения с удаляемых задач (частей) на оставшуюся задачу.

        Если ресурс уже назначен на to_task_id, переносимое назначение
        снимается, чтобы загрузка не удвоилась.

        Returns:
            list: Пары (назначение, прежний ID задачи) до переноса, для restore_assignments
        """
        from_ids = {_entity_id(t) for t in from_task_ids}
        to_task_id = _entity_id(to_task_id)
        before = [(a, a.task_id) for a in self._assignments]
        assigned = {a.resource_id for a in self._assignments if a.task_id == to_task_id}

        kept = []
        for assignment in self._assignments:
            if assignment.task_id in from_ids:
                if assignment.resource_id in assigned:
                    continue
                assignment.task_id = to_task_id
                assigned.add(assignment.resource_id)
            kept.append(assignment)

        if any(task_id in from_ids for _, task_id in before):
            self._assignments = kept
            logger.debug(f"Назначения перенесены на задачу {to_task_id}")
            self._notify("transfer_assignments", to_task_id)
        return before

    def restore_assignments(self, state):
        """Возвращает список назначений к снимку transfer_assignments."""
        self._assignments = [assignment for assignment, _ in state]
        for assignment, task_id in state:
            assignment.task_id = task_id
        self._notify("restore_assignments")

    def update_assignment(self, assignment_id, **changes):
        assignment = self._require_assignment(assignment_id)
        if 'workload' in changes:
            changes['workload'] = clamp_workload(changes['workload'])
        return self._update(assignment, changes, _ASSIGNMENT_FIELDS, "update_assignment")

    def is_assigned(self, task_id, resource_id):
        task_id, resource_id = _entity_id(task_id), _entity_id(resource_id)
        return any(a.matches(task_id, resource_id) for a in self._assignments)

    def assignments_for_task(self, task_id):
        task_id = _entity_id(task_id)
        return [a for a in self._assignments if a.task_id == task_id]

    def assignments_for_resource(self, resource_id):
        resource_id = _entity_id(resource_id)
        return [a for a in self._assignments if a.resource_id == resource_id]

    def resources_for_task(self, task_id):
        result = []
        for assignment in self.assignments_for_task(task_id):
            resource = self.get_resource(assignment.resource_id)
            if resource is not None and resource not in result:
                result.append(resource)
        return result

    def tasks_for_resource(self, resource_id):
        return list(dict.fromkeys(a.task_id for a in self.assignments_for_resource(resource_id)))

    def initials_for_task(self, task_id, separator=", "):
        return separator.join(r.initials for r in self.resources_for_task(task_id))

    # ------------------------------------------------------------------
    # Загрузка

    def load(self, resources=(), intervals=(), absences=(), assignments=()):
        """Заменяет содержимое справочника (используется при открытии проекта)."""
        with self.batch_update():
            self.clear()
            for resource in resources:
                self.add_resource(resource)
            for interval in intervals:
                self.add_interval(interval)
            for absence in absences:
                self.add_absence(absence)
            for assignment in assignments:
                self.add_assignment(assignment)

    def clear(self):
        self._resources = []
        self._intervals = []
        self._absences = []
        self._assignments = []
        self._notify("clear")

    def _update(self, entity, changes, allowed, event):
        unknown = set(changes) - set(allowed)
        if unknown:
            raise ValidationError(f"Неизвестные поля: {', '.join(sorted(unknown))}")
        previous = {name: getattr(entity, name) for name in allowed}
        # Сначала на копии: некорректное значение не должно оставить запись наполовину измененной
        probe = entity.copy()
        for target in (probe, entity):
            # start применяется раньше end
            for name in allowed:
                if name in changes:
                    setattr(target, name, changes[name])
        self._notify(event, entity.id)
        return previous
