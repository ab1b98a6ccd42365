from __future__ import annotations

from datetime import date

import pytest

from booking_engine.application.utils.date_parser import parse_date_preference, parse_time_preference

MONDAY = date(2030, 6, 3)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("2030-06-14", date(2030, 6, 14)),
        ("today", MONDAY),
        ("tomorrow", date(2030, 6, 4)),
        ("wednesday", date(2030, 6, 5)),
        ("fri", date(2030, 6, 7)),
        ("monday", date(2030, 6, 10)),
        ("next wednesday", date(2030, 6, 12)),
        ("June 20th", date(2030, 6, 20)),
        ("march 2", date(2031, 3, 2)),
        ("7/4", date(2030, 7, 4)),
        ("1/15/31", date(2031, 1, 15)),
    ],
)
def test_parse_date_preference(text, expected):
    assert parse_date_preference(text, MONDAY) == expected


@pytest.mark.parametrize("text", ["", "whenever", "2030-02-30", "feb 30"])
def test_unparseable_dates(text):
    assert parse_date_preference(text, MONDAY) is None


@pytest.mark.parametrize(
    "text, expected",
    [
        ("14:30", (14, 30)),
        ("3pm", (15, 0)),
        ("3:15 pm", (15, 15)),
        ("12am", (0, 0)),
        ("12pm", (12, 0)),
        ("noon", (12, 0)),
        ("9", (9, 0)),
    ],
)
def test_parse_time_preference(text, expected):
    assert parse_time_preference(text) == expected


@pytest.mark.parametrize("text", ["", "25:00", "13pm", "later"])
def test_unparseable_times(text):
    assert parse_time_preference(text) is None
