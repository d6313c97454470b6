"""
Расчет вовлеченности ресурсов: загрузка и состояние каждого ресурса на каждый день.

Расчет ничего не кэширует и не меняет, поэтому после любого изменения графа
или справочника достаточно просто запросить состояние заново.
"""
import logging

from planning.models import DayState, DayStatus

logger = logging.getLogger(__name__)

# Задача с таким выполнением считается завершенной и не нагружает ресурс
COMPLETION_THRESHOLD = 0.9999


class EngagementEngine:
    """
    Проекция графа задач и справочника ресурсов на состояния дней.

    Args:
        graph: TaskGraph
        directory: ResourceDirectory
        calendar: ProductionCalendar (нужен только для выходных)
        mark_weekends: Показывать выходные отдельным состоянием
    """

    def __init__(self, graph, directory, calendar=None, mark_weekends=False):
        self.graph = graph
        self.directory = directory
        self.calendar = calendar
        self.mark_weekends = mark_weekends

    def _is_weekend(self, day):
        return self.mark_weekends and self.calendar is not None and self.calendar.is_weekend(day)

    def assignments_for_day(self, resource_id, day):
        """Назначения ресурса на незавершенные задачи, идущие в этот день."""
        return [a for a in self.all_assignments_for_day(resource_id, day)
                if self.graph.get(a.task_id).complete < COMPLETION_THRESHOLD]

    def all_assignments_for_day(self, resource_id, day):
        """Все назначения на день, включая завершенные задачи."""
        result = []
        for assignment in self.directory.assignments_for_resource(resource_id):
            task = self.graph.get(assignment.task_id)
            if task is None:
                continue
            if task.start <= day < task.end:
                result.append(assignment)
        return result

    def allocation_percent(self, resource_id, day):
        """Загрузка = сумма (workload × коэффициент роли), округленная до целого."""
        resource = self.directory.get_resource(resource_id)
        if resource is None:
            return 0
        return _allocation(resource, self.assignments_for_day(resource.id, day))

    def day_status(self, resource_id, day):
        """
        Полное состояние ресурса на день.

        Порядок проверок:
            1. вне периодов участия - не участвует (назначения игнорируются);
            2. отсутствие - перегрузка, если есть активные назначения;
            3. сравнение загрузки с максимальной загрузкой периода.

        Returns:
            DayStatus
        """
        resource_id = getattr(resource_id, 'id', resource_id)
        if self._is_weekend(day):
            return DayStatus.weekend(day, resource_id)

        resource = self.directory.get_resource(resource_id)
        if resource is None:
            return DayStatus.not_participating(day, resource_id)

        interval = self.directory.interval_for_day(resource_id, day)
        if interval is None:
            return DayStatus.not_participating(day, resource_id)

        absence = self.directory.absence_for_day(resource_id, day)
        assignments = tuple(self.assignments_for_day(resource_id, day))
        allocation = _allocation(resource, assignments)
        max_workload = interval.max_workload

        if absence is not None:
            state = DayState.OVERBOOKED if assignments else DayState.ABSENCE
        else:
            state = _compare(allocation, max_workload)

        return DayStatus(
            day=day,
            resource_id=resource_id,
            in_participation=True,
            max_workload=max_workload,
            in_absence=absence is not None,
            absence_reason=absence.reason if absence else None,
            assignments=assignments,
            allocation_percent=allocation,
            state=state,
        )

    def day_state(self, resource_id, day):
        return self.day_status(resource_id, day).state

    def day_status_range(self, resource_id, start, end):
        """Состояния на дни [start, end)."""
        return [self.day_status(resource_id, day) for day in range(start, end)]

    def all_resources_status_range(self, start, end):
        """
        Returns:
            dict: ID ресурса -> список DayStatus
        """
        return {r.id: self.day_status_range(r.id, start, end) for r in self.directory.resources}

    def will_be_overbooked(self, resource_id, start, duration, workload):
        """
        Проверяет, приведет ли новое назначение к перегрузке.

        Назначение вне периода участия тоже считается перегрузкой.
        """
        resource = self.directory.get_resource(resource_id)
        if resource is None:
            return False

        additional = int(round(workload * resource.coefficient))
        for day in range(start, start + duration):
            interval = self.directory.interval_for_day(resource.id, day)
            if interval is None:
                return True
            if self.allocation_percent(resource.id, day) + additional > interval.max_workload:
                return True
        return False

    def find_overbooked_days(self, resource_id, start, end):
        days = [day for day in range(start, end) if self.day_state(resource_id, day) is DayState.OVERBOOKED]
        if days:
            logger.debug(f"Ресурс {resource_id} перегружен в дни: {days}")
        return days


def dominant_state(states):
    """
    Состояние с наивысшим приоритетом отображения.

    Returns:
        DayState или None для пустого списка
    """
    states = list(states)
    if not states:
        return None
    return min(states, key=lambda state: state.priority)


def _allocation(resource, assignments):
    coefficient = resource.coefficient
    return int(round(sum(a.workload * coefficient for a in assignments)))


def _compare(allocation, max_workload):
    if allocation == 0:
        return DayState.FREE
    if allocation > max_workload:
        return DayState.OVERBOOKED
    if allocation == max_workload:
        return DayState.ASSIGNED
    return DayState.PARTIAL_ASSIGNED
