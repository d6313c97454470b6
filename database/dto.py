"""
Версионированные DTO снимка проекта.

Ключи словарей совпадают с форматом файлов проекта: большинство записей
используют PascalCase, периоды участия и отсутствия - camelCase.
Длительности задач хранятся строками вида "3.00:00:00".
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from planning.models import DEFAULT_COLOR, EMPTY_ID, ResourceRole

CURRENT_FORMAT_VERSION = 3


def _parse_datetime(value):
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def _format_datetime(value):
    return value.isoformat() if isinstance(value, datetime) else value


def _list(raw, key):
    value = raw.get(key)
    return value if isinstance(value, list) else []


def _float(value, default=0.0):
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _int(value, default=0):
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return default


@dataclass
class TaskData:
    id: str = EMPTY_ID
    name: str = ""
    start: str = "0.00:00:00"
    end: str = "0.00:00:00"
    duration: str = "0.00:00:00"
    complete: float = 0.0
    is_collapsed: bool = False
    deadline: Optional[str] = None
    note: Optional[str] = None

    @classmethod
    def from_dict(cls, raw):
        return cls(
            id=str(raw.get("Id") or EMPTY_ID),
            name=raw.get("Name") or "",
            start=raw.get("Start") or "0.00:00:00",
            end=raw.get("End") or "0.00:00:00",
            duration=raw.get("Duration") or "0.00:00:00",
            complete=_float(raw.get("Complete")),
            is_collapsed=bool(raw.get("IsCollapsed", False)),
            deadline=raw.get("Deadline"),
            note=raw.get("Note"),
        )

    def to_dict(self):
        result = {
            "Id": self.id,
            "Name": self.name,
            "Start": self.start,
            "End": self.end,
            "Duration": self.duration,
            "Complete": self.complete,
            "IsCollapsed": self.is_collapsed,
        }
        if self.deadline is not None:
            result["Deadline"] = self.deadline
        if self.note is not None:
            result["Note"] = self.note
        return result


@dataclass
class SplitTaskRelation:
    part_id: str = EMPTY_ID
    part_name: str = ""
    part_start: str = "0.00:00:00"
    part_end: str = "0.00:00:00"
    part_duration: str = "0.00:00:00"
    part_complete: float = 0.0
    split_task_id: str = EMPTY_ID

    @classmethod
    def from_dict(cls, raw):
        return cls(
            part_id=str(raw.get("PartId") or EMPTY_ID),
            part_name=raw.get("PartName") or "",
            part_start=raw.get("PartStart") or "0.00:00:00",
            part_end=raw.get("PartEnd") or "0.00:00:00",
            part_duration=raw.get("PartDuration") or "0.00:00:00",
            part_complete=_float(raw.get("PartComplete")),
            split_task_id=str(raw.get("SplitTaskId") or EMPTY_ID),
        )

    def to_dict(self):
        return {
            "PartId": self.part_id,
            "PartName": self.part_name,
            "PartStart": self.part_start,
            "PartEnd": self.part_end,
            "PartDuration": self.part_duration,
            "PartComplete": self.part_complete,
            "SplitTaskId": self.split_task_id,
        }


@dataclass
class GroupRelation:
    group_id: str
    member_id: str

    @classmethod
    def from_dict(cls, raw):
        return cls(group_id=str(raw.get("GroupId") or EMPTY_ID), member_id=str(raw.get("MemberId") or EMPTY_ID))

    def to_dict(self):
        return {"GroupId": self.group_id, "MemberId": self.member_id}


@dataclass
class DependencyRelation:
    precedent_id: str
    dependant_id: str

    @classmethod
    def from_dict(cls, raw):
        return cls(precedent_id=str(raw.get("PrecedentId") or EMPTY_ID),
                   dependant_id=str(raw.get("DependantId") or EMPTY_ID))

    def to_dict(self):
        return {"PrecedentId": self.precedent_id, "DependantId": self.dependant_id}


@dataclass
class ResourceData:
    id: str = EMPTY_ID
    name: str = ""
    initials: str = ""
    color: str = DEFAULT_COLOR
    role: int = 0

    @classmethod
    def from_dict(cls, raw):
        return cls(
            id=str(raw.get("Id") or EMPTY_ID),
            name=raw.get("Name") or "",
            initials=raw.get("Initials") or "",
            color=raw.get("Color") or DEFAULT_COLOR,
            role=int(ResourceRole.parse(raw.get("Role"))),
        )

    def to_dict(self):
        return {
            "Id": self.id,
            "Name": self.name,
            "Initials": self.initials,
            "Color": self.color,
            "Role": self.role,
        }


@dataclass
class ResourceAssignmentData:
    id: str = EMPTY_ID
    task_id: str = EMPTY_ID
    resource_id: str = EMPTY_ID
    workload: int = 100
    notes: str = ""

    @classmethod
    def from_dict(cls, raw):
        return cls(
            id=str(raw.get("Id") or EMPTY_ID),
            task_id=str(raw.get("TaskId") or EMPTY_ID),
            resource_id=str(raw.get("ResourceId") or EMPTY_ID),
            workload=_int(raw.get("Workload"), 100),
            notes=raw.get("Notes") or "",
        )

    def to_dict(self):
        return {
            "Id": self.id,
            "TaskId": self.task_id,
            "ResourceId": self.resource_id,
            "Workload": self.workload,
            "Notes": self.notes,
        }


@dataclass
class ParticipationIntervalData:
    id: str = EMPTY_ID
    resource_id: str = EMPTY_ID
    start_days: float = 0.0
    end_days: Optional[float] = None
    max_workload: int = 100
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, raw):
        end_days = raw.get("endDays")
        return cls(
            id=str(raw.get("id") or EMPTY_ID),
            resource_id=str(raw.get("resourceId") or EMPTY_ID),
            start_days=_float(raw.get("startDays")),
            end_days=_float(end_days) if end_days is not None else None,
            max_workload=_int(raw.get("maxWorkload"), 100),
            created_at=_parse_datetime(raw.get("createdAt")),
        )

    def to_dict(self):
        return {
            "id": self.id,
            "resourceId": self.resource_id,
            "startDays": self.start_days,
            "endDays": self.end_days,
            "maxWorkload": self.max_workload,
            "createdAt": _format_datetime(self.created_at),
        }


@dataclass
class AbsenceData:
    id: str = EMPTY_ID
    resource_id: str = EMPTY_ID
    start_days: float = 0.0
    end_days: float = 1.0
    reason: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, raw):
        return cls(
            id=str(raw.get("id") or EMPTY_ID),
            resource_id=str(raw.get("resourceId") or EMPTY_ID),
            start_days=_float(raw.get("startDays")),
            end_days=_float(raw.get("endDays"), 1.0),
            reason=raw.get("reason"),
            created_at=_parse_datetime(raw.get("createdAt")),
        )

    def to_dict(self):
        return {
            "id": self.id,
            "resourceId": self.resource_id,
            "startDays": self.start_days,
            "endDays": self.end_days,
            "reason": self.reason,
            "createdAt": _format_datetime(self.created_at),
        }


@dataclass
class HolidayData:
    id: str = EMPTY_ID
    day_offset: int = 0
    name: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, raw):
        return cls(
            id=str(raw.get("Id") or EMPTY_ID),
            day_offset=_int(raw.get("DayOffset")),
            name=raw.get("Name"),
            created_at=_parse_datetime(raw.get("CreatedAt")),
        )

    def to_dict(self):
        return {
            "Id": self.id,
            "DayOffset": self.day_offset,
            "Name": self.name,
            "CreatedAt": _format_datetime(self.created_at),
        }


@dataclass
class ProjectData:
    """Снимок проекта текущей версии формата."""
    format_version: int = CURRENT_FORMAT_VERSION
    start: Optional[datetime] = None
    now: str = "0.00:00:00"
    tasks: List[TaskData] = field(default_factory=list)
    split_tasks: List[SplitTaskRelation] = field(default_factory=list)
    group_tasks: List[GroupRelation] = field(default_factory=list)
    dependencies: List[DependencyRelation] = field(default_factory=list)
    resources: List[ResourceData] = field(default_factory=list)
    resource_assignments: List[ResourceAssignmentData] = field(default_factory=list)
    participation_intervals: List[ParticipationIntervalData] = field(default_factory=list)
    absences: List[AbsenceData] = field(default_factory=list)
    holidays: List[HolidayData] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw):
        return cls(
            format_version=_int(raw.get("FormatVersion"), 1),
            start=_parse_datetime(raw.get("Start")),
            now=str(raw.get("Now") or "0.00:00:00"),
            tasks=[TaskData.from_dict(t) for t in _list(raw, "Tasks") if isinstance(t, dict)],
            split_tasks=[SplitTaskRelation.from_dict(s) for s in _list(raw, "SplitTasks") if isinstance(s, dict)],
            group_tasks=[GroupRelation.from_dict(g) for g in _list(raw, "GroupTasks") if isinstance(g, dict)],
            dependencies=[DependencyRelation.from_dict(d) for d in _list(raw, "Dependencies") if isinstance(d, dict)],
            resources=[ResourceData.from_dict(r) for r in _list(raw, "Resources") if isinstance(r, dict)],
            resource_assignments=[ResourceAssignmentData.from_dict(a)
                                  for a in _list(raw, "ResourceAssignments") if isinstance(a, dict)],
            participation_intervals=[ParticipationIntervalData.from_dict(i)
                                     for i in _list(raw, "ParticipationIntervals") if isinstance(i, dict)],
            absences=[AbsenceData.from_dict(a) for a in _list(raw, "Absences") if isinstance(a, dict)],
            holidays=[HolidayData.from_dict(h) for h in _list(raw, "Holidays") if isinstance(h, dict)],
        )

    def to_dict(self):
        return {
            "FormatVersion": self.format_version,
            "Start": _format_datetime(self.start),
            "Now": self.now,
            "Tasks": [t.to_dict() for t in self.tasks],
            "SplitTasks": [s.to_dict() for s in self.split_tasks],
            "GroupTasks": [g.to_dict() for g in self.group_tasks],
            "Dependencies": [d.to_dict() for d in self.dependencies],
            "Resources": [r.to_dict() for r in self.resources],
            "ResourceAssignments": [a.to_dict() for a in self.resource_assignments],
            "ParticipationIntervals": [i.to_dict() for i in self.participation_intervals],
            "Absences": [a.to_dict() for a in self.absences],
            "Holidays": [h.to_dict() for h in self.holidays],
        }
