import math
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum, IntEnum
from typing import Optional

from planning.errors import ValidationError
from planning.intervals import contains_day, correct_end, ranges_overlap

DEFAULT_COLOR = "#4682B4"
EMPTY_ID = "00000000-0000-0000-0000-000000000000"


def new_id():
    """Генерирует новый строковый идентификатор."""
    return str(uuid.uuid4())


def as_days(value, name):
    """
    Приводит значение дня к int.

    Raises:
        ValidationError: если значение не число или NaN
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name}: ожидалось число дней, получено {value!r}")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError(f"{name}: недопустимое значение {value!r}")
        value = int(round(value))
    return value


def as_fraction(value, name):
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError(f"{name}: ожидалось число, получено {value!r}")
    return min(1.0, max(0.0, float(value)))


def clamp_workload(value, name="workload"):
    """Приводит процент загрузки к диапазону 0-100."""
    value = as_days(value, name)
    return min(100, max(0, value))


class ResourceRole(IntEnum):
    """Роль ресурса с коэффициентом загрузки."""
    CONSTRUCTOR = 0
    LEAD_SPECIALIST = 1
    CHIEF_CONSTRUCTOR = 2

    @property
    def coefficient(self):
        return _ROLE_COEFFICIENTS[self]

    @property
    def display_name(self):
        return _ROLE_NAMES[self]

    @property
    def can_edit_max_workload(self):
        # Конструктор всегда работает на 100%
        return self is not ResourceRole.CONSTRUCTOR

    @property
    def min_max_workload(self):
        return 100 if self is ResourceRole.CONSTRUCTOR else 0

    @classmethod
    def parse(cls, value):
        """
        Разбирает роль из строки старого формата или из числа.

        Неизвестные значения считаются ролью Конструктор.
        """
        if isinstance(value, ResourceRole):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                return cls.CONSTRUCTOR
        if value is None:
            return cls.CONSTRUCTOR

        normalized = str(value).strip().lower()
        if not normalized:
            return cls.CONSTRUCTOR
        if normalized.lstrip('-').isdigit():
            return cls.parse(int(normalized))
        return _ROLE_ALIASES.get(normalized, cls.CONSTRUCTOR)


_ROLE_COEFFICIENTS = {
    ResourceRole.CONSTRUCTOR: 1.0,
    ResourceRole.LEAD_SPECIALIST: 0.25,
    ResourceRole.CHIEF_CONSTRUCTOR: 0.10,
}

_ROLE_NAMES = {
    ResourceRole.CONSTRUCTOR: "Конструктор",
    ResourceRole.LEAD_SPECIALIST: "Главный специалист",
    ResourceRole.CHIEF_CONSTRUCTOR: "Главный конструктор",
}

_ROLE_ALIASES = {
    "конструктор": ResourceRole.CONSTRUCTOR,
    "constructor": ResourceRole.CONSTRUCTOR,
    "главный специалист": ResourceRole.LEAD_SPECIALIST,
    "leadspecialist": ResourceRole.LEAD_SPECIALIST,
    "lead specialist": ResourceRole.LEAD_SPECIALIST,
    "главный конструктор": ResourceRole.CHIEF_CONSTRUCTOR,
    "chiefconstructor": ResourceRole.CHIEF_CONSTRUCTOR,
    "chief constructor": ResourceRole.CHIEF_CONSTRUCTOR,
}


@dataclass(eq=False)
class Task:
    """
    Задача проекта.

    Поля меняются только через TaskGraph. Время задается в днях от начала
    проекта, окончание вычисляется как start + duration.
    """
    name: str = ""
    start: int = 0
    duration: int = 1
    complete: float = 0.0
    deadline: Optional[int] = None
    note: Optional[str] = None
    collapsed: bool = False
    id: str = field(default_factory=new_id)

    @property
    def end(self):
        return self.start + self.duration

    def __repr__(self):
        return f"<Task(id={self.id}, name='{self.name}', start={self.start}, duration={self.duration})>"


@dataclass(frozen=True)
class TaskState:
    """Снимок полей задачи для точного восстановления при отмене."""
    task_id: str
    name: str
    start: int
    duration: int
    complete: float
    deadline: Optional[int]
    note: Optional[str]
    collapsed: bool

    @classmethod
    def capture(cls, task):
        return cls(
            task_id=task.id,
            name=task.name,
            start=task.start,
            duration=task.duration,
            complete=task.complete,
            deadline=task.deadline,
            note=task.note,
            collapsed=task.collapsed,
        )

    def apply(self, task):
        task.name = self.name
        task.start = self.start
        task.duration = self.duration
        task.complete = self.complete
        task.deadline = self.deadline
        task.note = self.note
        task.collapsed = self.collapsed


@dataclass(eq=False)
class Resource:
    """Ресурс (сотрудник), назначаемый на задачи."""
    name: str = ""
    initials: str = ""
    color: str = DEFAULT_COLOR
    role: ResourceRole = ResourceRole.CONSTRUCTOR
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=datetime.now)

    def generate_initials(self):
        """Формирует инициалы из имени ресурса."""
        parts = self.name.split() if self.name else []
        if not parts:
            self.initials = "??"
        elif len(parts) >= 2:
            # Первые буквы первых двух слов
            self.initials = f"{parts[0][0]}{parts[1][0]}".upper()
        elif len(parts[0]) >= 2:
            self.initials = parts[0][:2].upper()
        else:
            self.initials = parts[0][0].upper()
        return self.initials

    @property
    def coefficient(self):
        return ResourceRole.parse(self.role).coefficient

    def copy(self):
        return replace(self)

    def __str__(self):
        return f"{self.name} ({self.initials}) - {ResourceRole.parse(self.role).display_name}"


class ParticipationInterval:
    """
    Период участия ресурса в проекте [start, end).

    End всегда больше start: некорректное значение исправляется на start + 1 день.
    """

    def __init__(self, resource_id, start=0, end=None, max_workload=100, id=None, created_at=None):
        start = as_days(start, "start")
        self.id = id or new_id()
        self.resource_id = resource_id
        self._start = start
        self._end = correct_end(start, as_days(end, "end") if end is not None else None)
        self._max_workload = clamp_workload(max_workload, "max_workload")
        self.created_at = created_at or datetime.now()

    @classmethod
    def create_default(cls, resource_id):
        """Бессрочное участие с полной загрузкой."""
        return cls(resource_id, 0, None, 100)

    @property
    def start(self):
        return self._start

    @start.setter
    def start(self, value):
        self._start = as_days(value, "start")
        self._end = correct_end(self._start, self._end)

    @property
    def end(self):
        return self._end

    @end.setter
    def end(self, value):
        self._end = correct_end(self._start, as_days(value, "end") if value is not None else None)

    @property
    def max_workload(self):
        return self._max_workload

    @max_workload.setter
    def max_workload(self, value):
        self._max_workload = clamp_workload(value, "max_workload")

    def contains_day(self, day):
        return contains_day(self.start, self.end, day)

    def overlaps_with(self, other):
        if other is None or other.id == self.id:
            return False
        # Интервалы разных ресурсов не сравниваются
        if other.resource_id != self.resource_id:
            return False
        return ranges_overlap(self.start, self.end, other.start, other.end)

    def overlaps_range(self, range_start, range_end):
        return ranges_overlap(self.start, self.end, range_start, range_end)

    def validate(self):
        errors = []
        if not self.resource_id:
            errors.append("ResourceId не может быть пустым.")
        if self.start < 0:
            errors.append("Start не может быть отрицательным.")
        if self.end is not None and self.end <= self.start:
            errors.append("End должен быть больше Start.")
        if not 0 <= self.max_workload <= 100:
            errors.append("MaxWorkload должен быть в диапазоне 0-100.")
        return errors

    def copy(self):
        return ParticipationInterval(self.resource_id, self.start, self.end, self.max_workload,
                                     id=self.id, created_at=self.created_at)

    def __repr__(self):
        end = f"день {self.end}" if self.end is not None else "∞"
        return f"<ParticipationInterval([день {self.start} - {end}], max_workload={self.max_workload}%)>"


class Absence:
    """Отсутствие ресурса [start, end) с необязательной причиной."""

    VACATION = "Отпуск"
    SICK = "Болезнь"
    BUSINESS_TRIP = "Командировка"
    DAY_OFF = "Отгул"
    OTHER = "Другое"
    COMMON_REASONS = (VACATION, SICK, BUSINESS_TRIP, DAY_OFF, OTHER)

    def __init__(self, resource_id, start=0, end=None, reason=None, id=None, created_at=None):
        start = as_days(start, "start")
        end = as_days(end, "end") if end is not None else start + 1
        self.id = id or new_id()
        self.resource_id = resource_id
        self._start = start
        self._end = correct_end(start, end)
        self.reason = reason
        self.created_at = created_at or datetime.now()

    @property
    def start(self):
        return self._start

    @start.setter
    def start(self, value):
        self._start = as_days(value, "start")
        self._end = correct_end(self._start, self._end)

    @property
    def end(self):
        return self._end

    @end.setter
    def end(self, value):
        self._end = correct_end(self._start, as_days(value, "end"))

    @property
    def duration_days(self):
        return self.end - self.start

    def contains_day(self, day):
        return contains_day(self.start, self.end, day)

    def overlaps_with(self, other):
        if other is None or other.id == self.id:
            return False
        if other.resource_id != self.resource_id:
            return False
        return ranges_overlap(self.start, self.end, other.start, other.end)

    def overlaps_range(self, range_start, range_end):
        return ranges_overlap(self.start, self.end, range_start, range_end)

    def validate(self):
        errors = []
        if not self.resource_id:
            errors.append("ResourceId не может быть пустым.")
        if self.start < 0:
            errors.append("Start не может быть отрицательным.")
        if self.end <= self.start:
            errors.append("End должен быть больше Start.")
        return errors

    def copy(self):
        return Absence(self.resource_id, self.start, self.end, self.reason,
                       id=self.id, created_at=self.created_at)

    def __repr__(self):
        reason = f" ({self.reason})" if self.reason else ""
        return f"<Absence([день {self.start} - день {self.end}]{reason})>"


@dataclass(eq=False)
class ResourceAssignment:
    """Назначение ресурса на задачу с процентом загрузки."""
    task_id: str
    resource_id: str
    workload: int = 100
    note: str = ""
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        self.workload = clamp_workload(self.workload)

    def matches(self, task_id, resource_id):
        return self.task_id == task_id and self.resource_id == resource_id

    def copy(self):
        return replace(self)


@dataclass(eq=False)
class Holiday:
    """Праздничный день, общий для всех ресурсов."""
    day: int
    name: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_date(cls, holiday_date, project_start, name=None):
        return cls(day=(_as_date(holiday_date) - _as_date(project_start)).days, name=name)

    def date_on(self, project_start):
        return _as_date(project_start) + timedelta(days=self.day)

    def __str__(self):
        return f"{self.name} (день {self.day})" if self.name else f"Праздник, день {self.day}"


def _as_date(value):
    return value.date() if isinstance(value, datetime) else value


class DayState(Enum):
    """Состояние ресурса в конкретный день."""
    FREE = "free"
    ABSENCE = "absence"
    NOT_PARTICIPATING = "not_participating"
    PARTIAL_ASSIGNED = "partial_assigned"
    ASSIGNED = "assigned"
    OVERBOOKED = "overbooked"
    WEEKEND = "weekend"

    @property
    def display_name(self):
        return _STATE_NAMES[self]

    @property
    def priority(self):
        """Приоритет отображения: меньше число, важнее сигнал."""
        return _STATE_PRIORITY[self]

    @property
    def is_problematic(self):
        return self is DayState.OVERBOOKED

    @property
    def is_available(self):
        return self in (DayState.FREE, DayState.PARTIAL_ASSIGNED)

    @property
    def is_non_working(self):
        return self in (DayState.WEEKEND, DayState.ABSENCE, DayState.NOT_PARTICIPATING)


_STATE_NAMES = {
    DayState.FREE: "Свободен",
    DayState.ABSENCE: "Отсутствует",
    DayState.NOT_PARTICIPATING: "Не участвует",
    DayState.PARTIAL_ASSIGNED: "Частично занят",
    DayState.ASSIGNED: "Занят",
    DayState.OVERBOOKED: "Перегружен",
    DayState.WEEKEND: "Выходной день",
}

_STATE_PRIORITY = {
    DayState.WEEKEND: 0,
    DayState.OVERBOOKED: 1,
    DayState.ASSIGNED: 2,
    DayState.PARTIAL_ASSIGNED: 3,
    DayState.ABSENCE: 4,
    DayState.NOT_PARTICIPATING: 5,
    DayState.FREE: 6,
}


@dataclass(frozen=True)
class DayStatus:
    """Вычисляемое состояние ресурса на день. Не хранится и не изменяется."""
    day: int
    resource_id: str
    in_participation: bool
    max_workload: int
    in_absence: bool
    absence_reason: Optional[str]
    assignments: tuple
    allocation_percent: int
    state: DayState

    @property
    def fill_ratio(self):
        if self.max_workload <= 0:
            return 0.0
        return min(1.0, self.allocation_percent / self.max_workload)

    @property
    def available_capacity(self):
        return max(0, self.max_workload - self.allocation_percent)

    @property
    def tooltip_text(self):
        lines = [f"День {self.day}", f"Статус: {self.state.display_name}"]
        if self.in_absence and self.absence_reason:
            lines.append(f"Отсутствие: {self.absence_reason}")
        if self.in_participation:
            lines.append(f"Загрузка: {self.allocation_percent}% / {self.max_workload}%")
        if self.assignments:
            lines.append(f"Назначений: {len(self.assignments)}")
        return "\n".join(lines)

    @classmethod
    def not_participating(cls, day, resource_id):
        return cls(day, resource_id, False, 0, False, None, (), 0, DayState.NOT_PARTICIPATING)

    @classmethod
    def weekend(cls, day, resource_id):
        return cls(day, resource_id, False, 0, False, None, (), 0, DayState.WEEKEND)

    @classmethod
    def free(cls, day, resource_id, max_workload):
        return cls(day, resource_id, True, max_workload, False, None, (), 0, DayState.FREE)

    def __str__(self):
        return f"День {self.day}: {self.state.display_name}, {self.allocation_percent}%/{self.max_workload}%"
