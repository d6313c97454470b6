from datetime import date

from planning.calendar import get_weekday_number
from planning.models import Holiday, Task


def test_get_weekday_number():
    assert get_weekday_number("Среда") == 2
    assert get_weekday_number(" воскресенье ") == 6
    assert get_weekday_number("выходной") == -1


def test_dates_and_weekends(calendar):
    assert calendar.date_of(5) == date(2024, 1, 6)
    assert calendar.day_of(date(2024, 1, 8)) == 7
    assert calendar.is_weekend(5)
    assert calendar.is_weekend(6)
    assert not calendar.is_weekend(7)

    calendar.set_weekend_days(["воскресенье", "пятница"])
    assert calendar.weekend_days == (4, 6)
    assert not calendar.is_weekend(5)


def test_add_holiday_ignores_duplicate_day(calendar):
    assert calendar.add_holiday(Holiday(day=2, name="Праздник"))
    assert not calendar.add_holiday(Holiday(day=2, name="Еще один"))
    assert len(calendar) == 1
    assert calendar.get_holiday(2).name == "Праздник"


def test_add_holiday_on_date(calendar):
    holiday = calendar.add_holiday_on(date(2024, 1, 3), "Новогодние каникулы")
    assert holiday.day == 2
    assert calendar.is_holiday(2)
    assert calendar.remove_holiday(holiday)
    assert not calendar.remove_holiday(holiday)


def test_holidays_in_range_is_inclusive(calendar):
    for day in (1, 3, 8):
        calendar.add_holiday(Holiday(day=day))
    assert [h.day for h in calendar.holidays_in_range(1, 3)] == [1, 3]
    assert calendar.remove_holiday_by_day(3)
    assert not calendar.remove_holiday_by_day(3)
    assert [h.day for h in calendar.holidays] == [1, 8]


def test_calculate_working_days(calendar):
    assert calendar.calculate_working_days(0, 7) == 5
    calendar.add_holiday(Holiday(day=2))
    assert calendar.calculate_working_days(0, 7) == 4
    assert calendar.calculate_working_days(0, 0) == 0


def test_absence_of_all_resources_is_non_working(calendar, directory):
    anna = directory.create_resource("Анна")
    boris = directory.create_resource("Борис")
    directory.create_absence(anna, 1, 3)

    assert calendar.is_non_working_day(1, [anna.id], directory)
    assert not calendar.is_non_working_day(1, [anna.id, boris.id], directory)
    assert not calendar.is_non_working_day(3, [anna.id], directory)

    directory.create_absence(boris, 2, 3)
    assert calendar.calculate_working_days(0, 5, [anna.id, boris.id], directory) == 4


def test_working_days_breakdown(calendar, directory, graph):
    task = graph.add(Task(name="A", start=0, duration=8))
    anna = directory.create_resource("Анна")
    directory.assign(task.id, anna)
    directory.create_absence(anna, 3, 4)
    calendar.add_holiday(Holiday(day=1))

    breakdown = calendar.working_days_breakdown(task, directory)
    assert breakdown.calendar_days == 8
    assert breakdown.weekend_days == 2
    assert breakdown.holiday_days == 1
    assert breakdown.absence_days == 1
    assert breakdown.working_days == 4
    assert breakdown.total_non_working_days == 4
    assert calendar.working_days_for_task(task, directory) == 4


def test_changed_signal(calendar):
    events = []
    calendar.changed.connect(lambda **payload: events.append(payload["event"]))
    calendar.add_holiday(Holiday(day=4))
    calendar.clear()
    assert events == ["add_holiday", "clear"]
