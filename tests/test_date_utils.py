from datetime import date

import pytest

from lessonplanner.utils.date_utils import parse_iso_date, today_iso, weekday_name
from lessonplanner.utils.ids import IdAllocator, new_plan_id


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-01-07", "الأحد"),
        ("2024-01-08", "الاثنين"),
        ("2024-01-12", "الجمعة"),
        ("2024-01-13", "السبت"),
        (date(2024, 1, 10), "الأربعاء"),
    ],
)
def test_weekday_name(value, expected):
    assert weekday_name(value) == expected


@pytest.mark.parametrize("value", [None, "", "2024-13-01", "08/01/2024", "غدا"])
def test_weekday_name_invalid(value):
    assert weekday_name(value) is None


def test_parse_iso_date():
    assert parse_iso_date(" 2024-02-29 ") == date(2024, 2, 29)
    assert parse_iso_date("2023-02-29") is None


def test_today_iso_parses():
    assert parse_iso_date(today_iso()) == date.today()


def test_ids_are_unique_and_prefixed():
    allocator = IdAllocator(seed=42)
    ids = [allocator.next_id("cog") for _ in range(100)]
    assert len(set(ids)) == 100
    assert ids[0] == "cog-42-1"
    assert new_plan_id().startswith("plan-")
