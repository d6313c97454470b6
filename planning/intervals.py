"""
Примитивы полуоткрытых интервалов [start, end) в днях от начала проекта.

end = None означает бессрочный интервал.
"""
import math
import re

ONE_DAY = 1

_TIMESPAN_RE = re.compile(
    r'^\s*(?P<sign>-)?(?:(?P<days>\d+)\.)?(?P<hours>\d{1,2}):(?P<minutes>\d{2})(?::(?P<seconds>\d{2})(?:\.\d+)?)?\s*$'
)


def correct_end(start, end):
    """Возвращает end, исправленный так, чтобы end > start (None остается None)."""
    if end is None:
        return None
    if end <= start:
        return start + ONE_DAY
    return end


def contains_day(start, end, day):
    """Проверяет, что day попадает в [start, end)."""
    if day < start:
        return False
    if end is not None and day >= end:
        return False
    return True


def ranges_overlap(a_start, a_end, b_start, b_end):
    """
    Проверяет пересечение [a_start, a_end) и [b_start, b_end).

    Пересечение: A.start < B.end и B.start < A.end.
    """
    a_end = math.inf if a_end is None else a_end
    b_end = math.inf if b_end is None else b_end
    return a_start < b_end and b_start < a_end


def parse_days(value):
    """
    Превращает значение времени в целое количество дней.

    Поддерживаются числа, строки с числом ("3", "2.5") и строки формата
    TimeSpan ("3.00:00:00", "12:00:00"). Значения округляются до целого дня.
    Некорректное значение дает 0, чтобы загрузка проекта не прерывалась.

    Args:
        value: Исходное значение

    Returns:
        int: Количество дней
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return 0
        return int(round(value))

    text = str(value).strip()
    if not text:
        return 0

    try:
        number = float(text)
        if math.isfinite(number):
            return int(round(number))
        return 0
    except ValueError:
        pass

    match = _TIMESPAN_RE.match(text)
    if not match:
        return 0

    days = int(match.group('days') or 0)
    hours = int(match.group('hours'))
    minutes = int(match.group('minutes'))
    seconds = int(match.group('seconds') or 0)
    if hours > 23 or minutes > 59 or seconds > 59:
        return 0

    total = days + (hours * 3600 + minutes * 60 + seconds) / 86400
    if match.group('sign'):
        total = -total
    return int(round(total))


def format_days(days):
    """Форматирует количество дней в строку вида '3.00:00:00'."""
    if days is None:
        return None
    return f"{int(days)}.00:00:00"
