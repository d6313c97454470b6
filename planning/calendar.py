"""
Производственный календарь проекта: праздники, выходные и подсчет рабочих дней.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
import logging

from planning.events import Signal
from planning.models import Holiday, as_days

logger = logging.getLogger(__name__)

DEFAULT_WEEKEND = (5, 6)


def get_weekday_number(day_name):
    """
    Преобразует название дня недели в числовой формат.

    Args:
        day_name: Название дня недели

    Returns:
        Числовой формат дня недели (0-6, где 0 - понедельник), -1 для неизвестного
    """
    days = {
        'понедельник': 0,
        'вторник': 1,
        'среда': 2,
        'четверг': 3,
        'пятница': 4,
        'суббота': 5,
        'воскресенье': 6
    }

    return days.get(day_name.strip().lower(), -1)


def _as_date(value):
    return value.date() if isinstance(value, datetime) else value


@dataclass
class NonWorkingDaysBreakdown:
    """Детализация дней задачи по причинам."""
    calendar_days: int = 0
    working_days: int = 0
    weekend_days: int = 0
    holiday_days: int = 0
    absence_days: int = 0

    @property
    def total_non_working_days(self):
        return self.weekend_days + self.holiday_days + self.absence_days


class ProductionCalendar:
    """
    Глобальные праздники и выходные дни, общие для всех ресурсов.

    Дни задаются смещением от даты начала проекта.
    """

    def __init__(self, project_start=None, weekend_days=DEFAULT_WEEKEND):
        self.project_start = _as_date(project_start) if project_start else date.today()
        self.weekend_days = tuple(weekend_days)
        self._holidays = []
        self.changed = Signal("calendar")

    def _notify(self, event, day=None):
        logger.debug(f"Календарь: {event} ({day})")
        self.changed.emit(event=event, day=day)

    @property
    def holidays(self):
        return list(self._holidays)

    def __len__(self):
        return len(self._holidays)

    def set_weekend_days(self, day_names):
        """Задает выходные по названиям дней недели ('суббота', 'воскресенье')."""
        numbers = []
        for name in day_names:
            number = get_weekday_number(name)
            if number == -1:
                logger.warning(f"Неизвестный день недели: {name}")
                continue
            numbers.append(number)
        self.weekend_days = tuple(sorted(set(numbers)))
        self._notify("set_weekend_days")

    def add_holiday(self, holiday):
        """
        Добавляет праздник. Второй праздник на тот же день игнорируется.

        Returns:
            bool: True, если праздник добавлен
        """
        holiday.day = as_days(holiday.day, "day")
        if any(h.day == holiday.day for h in self._holidays):
            logger.debug(f"Праздник на день {holiday.day} уже есть")
            return False

        self._holidays.append(holiday)
        self._holidays.sort(key=lambda h: h.day)
        self._notify("add_holiday", holiday.day)
        return True

    def add_holiday_on(self, holiday_date, name=None):
        """Добавляет праздник по календарной дате и возвращает его."""
        holiday = Holiday.from_date(holiday_date, self.project_start, name)
        self.add_holiday(holiday)
        return holiday

    def remove_holiday(self, holiday_id):
        holiday_id = getattr(holiday_id, 'id', holiday_id)
        for holiday in self._holidays:
            if holiday.id == holiday_id:
                self._holidays.remove(holiday)
                self._notify("remove_holiday", holiday.day)
                return True
        return False

    def remove_holiday_by_day(self, day):
        holiday = self.get_holiday(day)
        if holiday is None:
            return False
        self._holidays.remove(holiday)
        self._notify("remove_holiday", holiday.day)
        return True

    def get_holiday(self, day):
        day = as_days(day, "day")
        for holiday in self._holidays:
            if holiday.day == day:
                return holiday
        return None

    def is_holiday(self, day):
        return self.get_holiday(day) is not None

    def holidays_in_range(self, start, end):
        """Праздники в диапазоне [start, end] (обе границы включительно)."""
        start, end = as_days(start, "start"), as_days(end, "end")
        return [h for h in self._holidays if start <= h.day <= end]

    def load_holidays(self, holidays):
        self._holidays = sorted(holidays or [], key=lambda h: h.day)
        self._notify("load_holidays")

    def clear(self):
        self._holidays = []
        self._notify("clear")

    def date_of(self, day):
        return self.project_start + timedelta(days=day)

    def day_of(self, value):
        return (_as_date(value) - self.project_start).days

    def is_weekend(self, day):
        return self.date_of(day).weekday() in self.weekend_days

    # ------------------------------------------------------------------
    # Рабочие дни

    def is_non_working_day(self, day, resource_ids=None, directory=None):
        """
        Проверяет, является ли день нерабочим.

        Нерабочий день: выходной, праздник или день, когда отсутствуют все
        переданные ресурсы.
        """
        if self.is_weekend(day):
            return True
        if self.is_holiday(day):
            return True
        if resource_ids and directory is not None:
            return _all_absent(day, resource_ids, directory)
        return False

    def calculate_working_days(self, start, duration, resource_ids=None, directory=None):
        """
        Количество рабочих дней в [start, start + duration).

        Returns:
            int: Количество рабочих дней
        """
        start, duration = as_days(start, "start"), as_days(duration, "duration")
        if duration <= 0:
            return 0
        resource_ids = list(resource_ids or [])
        return sum(1 for day in range(start, start + duration)
                   if not self.is_non_working_day(day, resource_ids, directory))

    def working_days_for_task(self, task, directory):
        resource_ids = [r.id for r in directory.resources_for_task(task.id)]
        return self.calculate_working_days(task.start, task.duration, resource_ids, directory)

    def working_days_breakdown(self, task, directory):
        """
        Раскладывает дни задачи на рабочие, выходные, праздничные и дни отсутствия.

        Returns:
            NonWorkingDaysBreakdown
        """
        result = NonWorkingDaysBreakdown(calendar_days=task.duration)
        resource_ids = [r.id for r in directory.resources_for_task(task.id)]

        for day in range(task.start, task.end):
            if self.is_weekend(day):
                result.weekend_days += 1
            elif self.is_holiday(day):
                result.holiday_days += 1
            elif resource_ids and _all_absent(day, resource_ids, directory):
                result.absence_days += 1
            else:
                result.working_days += 1

        return result


def _all_absent(day, resource_ids, directory):
    if not resource_ids:
        return False
    return all(directory.is_absent(resource_id, day) for resource_id in resource_ids)
