import datetime as dt
from zoneinfo import ZoneInfo

import pytest

from calendar_ai.errors import InvalidDateInput
from scheduling.reconciliation import TaskDateBook, anchor, resolve_timezone, to_calendar_date

LA = ZoneInfo("America/Los_Angeles")


def test_to_calendar_date_accepts_common_inputs():
    assert to_calendar_date(dt.date(2025, 3, 4)) == dt.date(2025, 3, 4)
    assert to_calendar_date(dt.datetime(2025, 3, 4, 23, 30)) == dt.date(2025, 3, 4)
    assert to_calendar_date("2025-03-04") == dt.date(2025, 3, 4)
    assert to_calendar_date("2025-03-04T23:30:00Z") == dt.date(2025, 3, 4)


@pytest.mark.parametrize("bad", ["not a date", "", None, float("nan"), 20250304])
def test_to_calendar_date_rejects_garbage(bad):
    with pytest.raises(InvalidDateInput):
        to_calendar_date(bad)


def test_to_calendar_date_drops_the_time_part():
    result = to_calendar_date(dt.datetime(2025, 3, 4, 12, 0, tzinfo=LA))
    assert type(result) is dt.date


def test_apply_to_all_then_edit_one_task():
    book = TaskDateBook([0, 1, 2], selected_date="2025-01-01")
    book.apply_to_all("2025-06-10")
    assert book.selected_date == dt.date(2025, 6, 10)
    assert all(book.date_for(k) == dt.date(2025, 6, 10) for k in (0, 1, 2))

    book.set_task_date(1, "2025-06-12")
    assert book.date_for(1) == dt.date(2025, 6, 12)
    assert book.date_for(0) == dt.date(2025, 6, 10)
    assert book.date_for(2) == dt.date(2025, 6, 10)


def test_per_task_override_leaves_selected_date_alone():
    book = TaskDateBook(["a", "b"], selected_date="2025-01-01")
    book.set_task_date("a", "2025-02-02")
    assert book.selected_date == dt.date(2025, 1, 1)
    assert book.has_override("a")
    assert not book.has_override("b")
    assert book.date_for("b") == dt.date(2025, 1, 1)

    book.set_selected_date("2025-01-05")
    assert book.date_for("a") == dt.date(2025, 2, 2)
    assert book.date_for("b") == dt.date(2025, 1, 5)


def test_invalid_input_keeps_previous_value():
    book = TaskDateBook(["a"], selected_date="2025-01-01")
    book.set_task_date("a", "2025-02-02")
    with pytest.raises(InvalidDateInput):
        book.set_task_date("a", "tomorrow-ish")
    with pytest.raises(InvalidDateInput):
        book.apply_to_all("nope")
    assert book.date_for("a") == dt.date(2025, 2, 2)
    assert book.selected_date == dt.date(2025, 1, 1)


def test_unknown_key():
    book = TaskDateBook(["a"], selected_date="2025-01-01")
    with pytest.raises(KeyError):
        book.set_task_date("zzz", "2025-01-02")


def test_removed_key_loses_its_override():
    book = TaskDateBook(["a"], selected_date="2025-01-01")
    book.set_task_date("a", "2025-02-02")
    book.remove_key("a")
    assert book.keys == []
    assert not book.has_override("a")


def test_anchor_uses_local_wall_clock_across_dst():
    before_start, before_end = anchor(dt.date(2025, 3, 8), "09:00", 45, LA)
    after_start, _ = anchor(dt.date(2025, 3, 9), "09:00", 45, LA)
    assert before_start.hour == 9 and after_start.hour == 9
    assert before_start.utcoffset() == dt.timedelta(hours=-8)
    assert after_start.utcoffset() == dt.timedelta(hours=-7)
    assert before_end - before_start == dt.timedelta(minutes=45)


def test_unknown_timezone_falls_back_to_utc():
    assert resolve_timezone("Mars/Olympus_Mons") == ZoneInfo("UTC")
