"""
Миграция снимков старых версий и преобразование модели в DTO и обратно.

Загрузка никогда не прерывается из-за отдельной битой записи: такая запись
пропускается с предупреждением, вместо отсутствующих данных подставляются
значения по умолчанию.
"""
import copy
from collections import namedtuple
from datetime import datetime

from database.dto import (
    CURRENT_FORMAT_VERSION, AbsenceData, DependencyRelation, GroupRelation, HolidayData,
    ParticipationIntervalData, ProjectData, ResourceAssignmentData, ResourceData,
    SplitTaskRelation, TaskData
)
from logger import logger
from planning.calendar import ProductionCalendar
from planning.errors import MigrationError, PlanningError
from planning.intervals import format_days, parse_days
from planning.models import (
    EMPTY_ID, Absence, Holiday, ParticipationInterval, Resource, ResourceAssignment,
    ResourceRole, Task, clamp_workload, new_id
)
from planning.resources import ResourceDirectory
from planning.task_graph import TaskGraph

LoadedProject = namedtuple('LoadedProject', ['graph', 'directory', 'calendar', 'now'])

# Записи, которые не удалось прочитать, пропускаются
_SKIPPABLE = (PlanningError, ValueError, TypeError, KeyError, AttributeError)


def migrate(raw):
    """
    Приводит сырой снимок любой версии к текущему формату.

    Версия 1 -> 2: строковая роль превращается в код роли, из устаревшего
    MaxWorkload ресурса создается бессрочный период участия.
    Версия 2 -> 3: добавляется список праздников.

    Args:
        raw: Словарь снимка (после разбора JSON)

    Returns:
        ProjectData

    Raises:
        MigrationError: если снимок вообще не является словарем
    """
    if isinstance(raw, ProjectData):
        return raw
    if not isinstance(raw, dict):
        raise MigrationError(f"Снимок проекта должен быть словарем, получено {type(raw).__name__}")

    raw = copy.deepcopy(raw)
    version = raw.get("FormatVersion") or 1
    try:
        version = int(version)
    except (TypeError, ValueError):
        logger.warning(f"Некорректная версия формата {version!r}, считаем версией 1")
        version = 1

    if version < 2:
        _migrate_v1_to_v2(raw)
        logger.info(f"Снимок проекта мигрирован с версии {version} на 2")
    if version < 3:
        if not isinstance(raw.get("Holidays"), list):
            raw["Holidays"] = []
        logger.info(f"Снимок проекта мигрирован с версии {version} на 3")

    data = ProjectData.from_dict(raw)
    data.format_version = CURRENT_FORMAT_VERSION

    if data.tasks and all(t.id == EMPTY_ID for t in data.tasks):
        _regenerate_task_ids(data)
    return data


def _migrate_v1_to_v2(raw):
    resources = raw.get("Resources")
    if not isinstance(resources, list):
        return

    intervals = raw.get("ParticipationIntervals")
    if not isinstance(intervals, list):
        intervals = raw["ParticipationIntervals"] = []

    for resource in resources:
        if not isinstance(resource, dict):
            continue
        role = resource.get("Role")
        if isinstance(role, str) and not role.strip().lstrip('-').isdigit():
            resource["Role"] = int(ResourceRole.parse(role))

        resource_id = resource.get("Id")
        if not any(isinstance(i, dict) and i.get("resourceId") == resource_id for i in intervals):
            max_workload = resource.get("MaxWorkload", 100)
            try:
                max_workload = clamp_workload(max_workload if max_workload is not None else 100)
            except PlanningError:
                max_workload = 100
            intervals.append({
                "id": new_id(),
                "resourceId": resource_id,
                "startDays": 0,
                "endDays": None,
                "maxWorkload": max_workload,
                "createdAt": datetime.now().isoformat(),
            })


def _regenerate_task_ids(data):
    """Старые файлы без ID задач: новые ID, части привязываются к первой задаче, группы сбрасываются."""
    logger.warning("Снимок без ID задач: ID будут сгенерированы заново, группы сброшены")
    for task in data.tasks:
        task.id = new_id()
    for split in data.split_tasks:
        split.part_id = new_id()
        split.split_task_id = data.tasks[0].id
    data.group_tasks = []
    data.dependencies = []


# ----------------------------------------------------------------------
# Модель -> DTO

def export_project(graph, directory, calendar, now=0):
    """
    Собирает снимок проекта текущей версии.

    Returns:
        ProjectData
    """
    data = ProjectData(
        format_version=CURRENT_FORMAT_VERSION,
        start=datetime.combine(calendar.project_start, datetime.min.time()) if calendar else None,
        now=format_days(now),
    )

    for task in graph.tasks:
        data.tasks.append(TaskData(
            id=task.id,
            name=task.name,
            start=format_days(task.start),
            end=format_days(task.end),
            duration=format_days(task.duration),
            complete=task.complete,
            is_collapsed=task.collapsed,
            deadline=format_days(task.deadline),
            note=task.note,
        ))

    for root_id, part in graph.split_relations():
        data.split_tasks.append(SplitTaskRelation(
            part_id=part.id,
            part_name=part.name,
            part_start=format_days(part.start),
            part_end=format_days(part.end),
            part_duration=format_days(part.duration),
            part_complete=part.complete,
            split_task_id=root_id,
        ))

    data.group_tasks = [GroupRelation(g, m) for g, m in graph.group_relations()]
    data.dependencies = [DependencyRelation(p, d) for p, d in graph.dependency_edges()]

    if directory is not None:
        data.resources = [
            ResourceData(id=r.id, name=r.name, initials=r.initials, color=r.color, role=int(r.role))
            for r in directory.resources
        ]
        data.resource_assignments = [
            ResourceAssignmentData(id=a.id, task_id=a.task_id, resource_id=a.resource_id,
                                   workload=a.workload, notes=a.note)
            for a in directory.assignments
        ]
        data.participation_intervals = [
            ParticipationIntervalData(id=i.id, resource_id=i.resource_id, start_days=i.start,
                                      end_days=i.end, max_workload=i.max_workload, created_at=i.created_at)
            for i in directory.intervals
        ]
        data.absences = [
            AbsenceData(id=a.id, resource_id=a.resource_id, start_days=a.start, end_days=a.end,
                        reason=a.reason, created_at=a.created_at)
            for a in directory.absences
        ]

    if calendar is not None:
        data.holidays = [
            HolidayData(id=h.id, day_offset=h.day, name=h.name, created_at=h.created_at)
            for h in calendar.holidays
        ]

    logger.info(f"Экспортировано {len(data.tasks)} задач, {len(data.resources)} ресурсов")
    return data


# ----------------------------------------------------------------------
# DTO -> модель

def import_project(data):
    """
    Восстанавливает граф задач, справочник ресурсов и календарь из снимка.

    Args:
        data: ProjectData или сырой словарь любой версии

    Returns:
        LoadedProject
    """
    data = migrate(data)
    graph = TaskGraph()
    directory = ResourceDirectory()
    calendar = ProductionCalendar(project_start=data.start)

    with graph.batch_update():
        tasks_by_id = _load_tasks(graph, data)
        _load_splits(graph, data, tasks_by_id)
        _load_groups(graph, data, tasks_by_id)
        _load_dependencies(graph, data, tasks_by_id)

    with directory.batch_update():
        _load_resources(directory, data)
        directory.ensure_default_intervals()

    holidays = []
    for item in data.holidays:
        holidays.append(Holiday(day=item.day_offset, name=item.name,
                                id=item.id if item.id != EMPTY_ID else new_id(),
                                created_at=item.created_at or datetime.now()))
    calendar.load_holidays(_unique_days(holidays))

    logger.info(f"Загружен проект: {len(graph)} задач, {len(directory.resources)} ресурсов, "
                f"{len(calendar)} праздников")
    return LoadedProject(graph, directory, calendar, parse_days(data.now))


def _load_tasks(graph, data):
    tasks_by_id = {}
    for item in data.tasks:
        try:
            start = max(0, parse_days(item.start))
            duration = parse_days(item.duration) or (parse_days(item.end) - start)
            task = Task(
                id=item.id,
                name=item.name,
                start=start,
                duration=max(1, duration),
                complete=min(1.0, max(0.0, item.complete)),
                deadline=parse_days(item.deadline) if item.deadline else None,
                note=item.note,
                collapsed=item.is_collapsed,
            )
            graph.add(task)
            tasks_by_id[task.id] = task
        except _SKIPPABLE as e:
            logger.warning(f"Пропущена задача '{item.name}': {e}")
    return tasks_by_id


def _load_splits(graph, data, tasks_by_id):
    chains = {}
    for relation in data.split_tasks:
        chains.setdefault(relation.split_task_id, []).append(relation)

    for root_id, relations in chains.items():
        root = tasks_by_id.get(root_id)
        if root is None or len(relations) < 2:
            logger.warning(f"Пропущена разделенная задача {root_id}: нет задачи или частей меньше двух")
            continue
        parts = [
            Task(
                id=r.part_id if r.part_id != EMPTY_ID else new_id(),
                name=r.part_name,
                start=max(0, parse_days(r.part_start)),
                duration=max(1, parse_days(r.part_duration)),
                complete=min(1.0, max(0.0, r.part_complete)),
            )
            for r in relations
        ]
        try:
            graph.restore_split(root, parts)
        except _SKIPPABLE as e:
            logger.warning(f"Не удалось восстановить части '{root.name}': {e}")


def _load_groups(graph, data, tasks_by_id):
    for relation in data.group_tasks:
        group = tasks_by_id.get(relation.group_id)
        member = tasks_by_id.get(relation.member_id)
        if group is None or member is None:
            logger.warning(f"Пропущена связь группы {relation.group_id} -> {relation.member_id}")
            continue
        try:
            graph.group(group, member)
        except _SKIPPABLE as e:
            logger.warning(f"Пропущена связь группы '{group.name}' -> '{member.name}': {e}")


def _load_dependencies(graph, data, tasks_by_id):
    for relation in data.dependencies:
        if relation.precedent_id not in graph or relation.dependant_id not in graph:
            logger.warning(f"Пропущена зависимость {relation.precedent_id} -> {relation.dependant_id}")
            continue
        try:
            graph.relate(relation.precedent_id, relation.dependant_id)
        except _SKIPPABLE as e:
            logger.warning(f"Пропущена зависимость: {e}")


def _load_resources(directory, data):
    for item in data.resources:
        try:
            directory.add_resource(Resource(
                id=item.id if item.id != EMPTY_ID else new_id(),
                name=item.name,
                initials=item.initials,
                color=item.color,
                role=ResourceRole.parse(item.role),
            ))
        except _SKIPPABLE as e:
            logger.warning(f"Пропущен ресурс '{item.name}': {e}")

    for item in data.participation_intervals:
        try:
            directory.add_interval(ParticipationInterval(
                item.resource_id,
                start=int(round(item.start_days)),
                end=int(round(item.end_days)) if item.end_days is not None else None,
                max_workload=item.max_workload,
                id=item.id if item.id != EMPTY_ID else None,
                created_at=item.created_at,
            ))
        except _SKIPPABLE as e:
            logger.warning(f"Пропущен период участия {item.id}: {e}")

    for item in data.absences:
        try:
            directory.add_absence(Absence(
                item.resource_id,
                start=int(round(item.start_days)),
                end=int(round(item.end_days)),
                reason=item.reason,
                id=item.id if item.id != EMPTY_ID else None,
                created_at=item.created_at,
            ))
        except _SKIPPABLE as e:
            logger.warning(f"Пропущено отсутствие {item.id}: {e}")

    for item in data.resource_assignments:
        try:
            directory.add_assignment(ResourceAssignment(
                task_id=item.task_id,
                resource_id=item.resource_id,
                workload=item.workload,
                note=item.notes,
                id=item.id if item.id != EMPTY_ID else new_id(),
            ))
        except _SKIPPABLE as e:
            logger.warning(f"Пропущено назначение {item.id}: {e}")


def _unique_days(holidays):
    seen = set()
    result = []
    for holiday in holidays:
        if holiday.day in seen:
            logger.debug(f"Повторный праздник на день {holiday.day} пропущен")
            continue
        seen.add(holiday.day)
        result.append(holiday)
    return result
