from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from angostura.calendar_grid import GRID_CELLS, compute_grid, grid_days, grid_start, shift_month
from angostura.models import Event

UTC = timezone.utc


def make_event(title, start, end, event_id=None):
    return Event(id=event_id, title=title, description="", start_time=start, end_time=end, duration=0,
                 difficulty="Beginner", seats_available=1, total_seats=1, status="available")


def test_grid_always_has_35_days_starting_on_sunday():
    for year, month in [(2025, 2), (2025, 3), (2026, 8), (2029, 6)]:
        days = grid_days(year, month)
        assert len(days) == GRID_CELLS == 35
        assert days[0].weekday() == 6  # Sunday
        assert days[0] <= date(year, month, 1)
        assert all((b - a).days == 1 for a, b in zip(days, days[1:]))


def test_grid_starts_on_the_first_when_it_is_a_sunday():
    # June 2025 starts on a Sunday
    assert grid_start(2025, 6) == date(2025, 6, 1)


def test_month_needing_six_rows_loses_its_last_days():
    # March 2025 starts on a Saturday: Feb 23 .. Mar 29
    days = grid_days(2025, 3)
    assert days[0] == date(2025, 2, 23)
    assert days[-1] == date(2025, 3, 29)
    assert date(2025, 3, 30) not in days
    assert date(2025, 3, 31) not in days


def test_event_spanning_several_days_appears_on_each_day():
    event = make_event("Trek", datetime(2029, 6, 10, 8, tzinfo=UTC), datetime(2029, 6, 12, 18, tzinfo=UTC))
    grid = compute_grid(2029, 6, [event], tz=UTC)

    assert grid.events_on(date(2029, 6, 9)) == []
    assert grid.events_on(date(2029, 6, 10)) == [event]
    assert grid.events_on(date(2029, 6, 11)) == [event]
    assert grid.events_on(date(2029, 6, 12)) == [event]
    assert grid.events_on(date(2029, 6, 13)) == []


def test_event_carried_into_next_month_is_shown_only_in_its_start_month():
    # June 2029: grid runs May 27 .. June 30
    event = make_event("Border Trek", datetime(2029, 6, 29, 10, tzinfo=UTC), datetime(2029, 7, 2, 12, tzinfo=UTC))

    june = compute_grid(2029, 6, [event], tz=UTC)
    assert june.days[0] == date(2029, 5, 27)
    assert june.days[-1] == date(2029, 6, 30)
    assert june.events_on(date(2029, 6, 29)) == [event]
    assert june.events_on(date(2029, 6, 30)) == [event]

    july = compute_grid(2029, 7, [event], tz=UTC)
    assert july.events_on(date(2029, 7, 1)) == []
    assert july.events_on(date(2029, 7, 2)) == []


def test_leading_days_of_previous_month_only_show_current_month_events():
    may_event = make_event("May Walk", datetime(2029, 5, 28, 9, tzinfo=UTC), datetime(2029, 5, 28, 11, tzinfo=UTC))
    grid = compute_grid(2029, 6, [may_event], tz=UTC)

    assert date(2029, 5, 28) in grid.days
    assert not grid.in_month(date(2029, 5, 28))
    assert grid.events_on(date(2029, 5, 28)) == []


def test_events_on_a_day_keep_input_order():
    first = make_event("A", datetime(2029, 6, 5, 9, tzinfo=UTC), datetime(2029, 6, 5, 10, tzinfo=UTC), 1)
    second = make_event("B", datetime(2029, 6, 5, 7, tzinfo=UTC), datetime(2029, 6, 5, 8, tzinfo=UTC), 2)

    assert compute_grid(2029, 6, [first, second], tz=UTC).events_on(date(2029, 6, 5)) == [first, second]
    assert compute_grid(2029, 6, [second, first], tz=UTC).events_on(date(2029, 6, 5)) == [second, first]


def test_every_grid_day_has_an_entry():
    grid = compute_grid(2029, 6, [], tz=UTC)
    assert list(grid.events_by_day) == grid.days
    assert all(events == [] for events in grid.events_by_day.values())


def test_days_are_computed_in_the_display_timezone():
    caracas = ZoneInfo("America/Caracas")
    # 02:00 UTC on the 10th is 22:00 on the 9th in Caracas
    event = make_event("Night Walk", datetime(2029, 6, 10, 2, tzinfo=UTC), datetime(2029, 6, 10, 3, tzinfo=UTC))

    assert compute_grid(2029, 6, [event], tz=caracas).events_on(date(2029, 6, 9)) == [event]
    assert compute_grid(2029, 6, [event], tz=caracas).events_on(date(2029, 6, 10)) == []
    assert compute_grid(2029, 6, [event], tz=UTC).events_on(date(2029, 6, 10)) == [event]


def test_naive_datetimes_are_read_as_utc():
    event = make_event("Stored", datetime(2029, 6, 3, 9), datetime(2029, 6, 3, 10))
    assert compute_grid(2029, 6, [event], tz=UTC).events_on(date(2029, 6, 3)) == [event]


def test_invalid_month_is_rejected():
    with pytest.raises(ValueError):
        compute_grid(2029, 13, [])


@pytest.mark.parametrize("year, month", [(1, 1), (9999, 12)])
def test_months_whose_grid_leaves_the_date_range_are_rejected(year, month):
    with pytest.raises(ValueError):
        compute_grid(year, month, [])


def test_months_next_to_the_date_range_limits_still_render():
    assert len(compute_grid(1, 2, []).days) == GRID_CELLS
    assert len(compute_grid(9999, 11, []).days) == GRID_CELLS


@pytest.mark.parametrize(
    "year, month, delta, expected",
    [
        (2025, 1, -1, (2024, 12)),
        (2025, 12, 1, (2026, 1)),
        (2025, 6, 0, (2025, 6)),
        (2025, 5, -17, (2023, 12)),
        (2025, 11, 14, (2027, 1)),
    ],
)
def test_shift_month(year, month, delta, expected):
    assert shift_month(year, month, delta) == expected
