from datetime import time

import pytest

from models import has_conflict, parse_time_of_day


def booking(start, end, resource="boardroom", date="2024-01-10"):
    return {"resource": resource, "date": date, "startTime": start, "endTime": end}


EXISTING = [booking("10:00", "11:00")]


@pytest.mark.parametrize(
    "start, end",
    [
        ("10:00", "11:00"),  # identical
        ("09:30", "10:30"),  # covers existing start
        ("10:30", "11:30"),  # covers existing end
        ("10:15", "10:45"),  # inside existing
        ("09:00", "12:00"),  # encloses existing
    ],
)
def test_overlapping_intervals_conflict(start, end):
    assert has_conflict(EXISTING, booking(start, end))


@pytest.mark.parametrize(
    "start, end",
    [
        ("11:00", "12:00"),  # starts when existing ends
        ("09:00", "10:00"),  # ends when existing starts
        ("07:00", "08:00"),
        ("13:00", "14:00"),
    ],
)
def test_disjoint_or_touching_intervals_do_not_conflict(start, end):
    assert not has_conflict(EXISTING, booking(start, end))


def test_other_resource_or_date_ignored():
    assert not has_conflict(EXISTING, booking("10:00", "11:00", resource="car"))
    assert not has_conflict(EXISTING, booking("10:00", "11:00", date="2024-01-11"))


def test_empty_existing():
    assert not has_conflict([], booking("10:00", "11:00"))


def test_unpadded_hours_compare_as_times():
    # As strings "9:30" > "10:00"; as times it falls before 10:00.
    assert has_conflict([booking("9:00", "10:00")], booking("09:30", "10:30"))
    assert not has_conflict([booking("9:00", "10:00")], booking("10:00", "11:00"))


def test_order_of_insertion_does_not_matter():
    a, b = booking("10:00", "11:00"), booking("10:30", "11:30")
    assert has_conflict([a], b)
    assert has_conflict([b], a)


def test_inverted_candidate_passes_check():
    assert not has_conflict([booking("10:30", "10:45")], booking("11:00", "10:00"))


def test_parse_time_of_day():
    assert parse_time_of_day("9:05") == time(9, 5)
    assert parse_time_of_day("09:05") == time(9, 5)
    assert parse_time_of_day("23:59:30") == time(23, 59, 30)
    with pytest.raises(ValueError):
        parse_time_of_day("25:00")
    with pytest.raises(ValueError):
        parse_time_of_day("")
