import pytest

from planning.intervals import contains_day, correct_end, format_days, parse_days, ranges_overlap


def test_contains_day_is_half_open():
    assert contains_day(2, 5, 2)
    assert contains_day(2, 5, 4)
    assert not contains_day(2, 5, 5)
    assert not contains_day(2, 5, 1)


def test_contains_day_unbounded_end():
    assert contains_day(0, None, 10_000)
    assert not contains_day(3, None, 2)


def test_correct_end():
    assert correct_end(3, None) is None
    assert correct_end(3, 3) == 4
    assert correct_end(3, 1) == 4
    assert correct_end(3, 7) == 7


@pytest.mark.parametrize("a, b, expected", [
    ((0, 5), (4, 8), True),
    ((0, 5), (5, 8), False),
    ((0, None), (100, 101), True),
    ((10, 12), (0, 10), False),
    ((3, 4), (0, None), True),
])
def test_ranges_overlap_is_symmetric(a, b, expected):
    assert ranges_overlap(a[0], a[1], b[0], b[1]) is expected
    assert ranges_overlap(b[0], b[1], a[0], a[1]) is expected


@pytest.mark.parametrize("value, expected", [
    ("3.00:00:00", 3),
    ("18:00:00", 1),
    ("-2.00:00:00", -2),
    ("4", 4),
    (2.6, 3),
    (7, 7),
    (None, 0),
    ("", 0),
    ("завтра", 0),
    ("1.25:00:00", 0),
    (float("nan"), 0),
])
def test_parse_days(value, expected):
    assert parse_days(value) == expected


def test_format_days():
    assert format_days(3) == "3.00:00:00"
    assert format_days(None) is None
    assert parse_days(format_days(12)) == 12
