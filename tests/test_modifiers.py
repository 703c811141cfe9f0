"""
Tests for transforms/modifiers.py.

All date-dependent modifiers run against a fixed clock (2024-05-10 12:00).
"""

import sys
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from tasks_timeline.models.options import DEFAULT_STATUS_ORDER
from tasks_timeline.parsers.line_parser import parse_line
from tasks_timeline.transforms.modifiers import (
    apply_modifiers,
    daily_note_date,
    daily_note_parser,
    dataview_parser,
    filter_date,
    filter_date_range,
    forward_modifier,
    link_parser,
    moment_to_strptime,
    order_modifier,
    remainder_parser,
    status_parser,
    tags_parser,
    tasks_plugin_parser,
)

NOW = datetime(2024, 5, 10, 12, 0)


def _clock() -> datetime:
    return NOW


def _task(line: str, path: str = "note.md"):
    task = parse_line(line, path=path, item_id=f"{path}:0:0")
    assert task is not None
    return task


def _status(line: str) -> str:
    task = tasks_plugin_parser(_task(line))
    return status_parser(_clock)(task).status


# ---------------------------------------------------------------------------
# Syntax parsers
# ---------------------------------------------------------------------------

class TestTasksPluginParser:
    def test_dates_priority_recurrence(self):
        task = tasks_plugin_parser(_task("- [ ] pay rent 📅 2024-05-01 ⏫ 🔁 every month"))
        assert task.due == datetime(2024, 5, 1)
        assert task.priority == "high"
        assert task.recurrence == "every month"
        assert task.visual == "pay rent"
        assert task.is_tasks_task is True

    def test_all_date_emoji(self):
        task = tasks_plugin_parser(
            _task("- [x] t 🛫 2024-01-01 ⏳ 2024-01-02 📅 2024-01-03 ➕ 2023-12-31 ✅ 2024-01-04")
        )
        assert task.start == datetime(2024, 1, 1)
        assert task.scheduled == datetime(2024, 1, 2)
        assert task.due == datetime(2024, 1, 3)
        assert task.created == datetime(2023, 12, 31)
        assert task.completion == datetime(2024, 1, 4)
        assert task.visual == "t"

    def test_plain_task_untouched(self):
        task = tasks_plugin_parser(_task("- [ ] nothing special"))
        assert task.visual == "nothing special"
        assert task.is_tasks_task is False
        assert task.due is None


class TestDataviewParser:
    def test_inline_fields(self):
        task = dataview_parser(_task("- [ ] ship it [due:: 2024-06-01] (priority:: high)"))
        assert task.due == datetime(2024, 6, 1)
        assert task.priority == "high"
        assert task.visual == "ship it"

    def test_unparseable_date_is_left_in_text(self):
        task = dataview_parser(_task("- [ ] x [due:: someday]"))
        assert task.due is None
        assert "[due:: someday]" in task.visual


class TestDailyNote:
    def test_moment_format_translation(self):
        assert moment_to_strptime("YYYY-MM-DD") == "%Y-%m-%d"
        assert moment_to_strptime("[Week] YYYY") == "Week %Y"

    def test_daily_note_date(self):
        assert daily_note_date("2024-05-09.md", "YYYY-MM-DD") == datetime(2024, 5, 9)
        assert daily_note_date("Daily/2024-05-09.md", "YYYY-MM-DD", "Daily") == datetime(2024, 5, 9)
        assert daily_note_date("Other/2024-05-09.md", "YYYY-MM-DD", "Daily") is None
        assert daily_note_date("notes/todo.md", "YYYY-MM-DD") is None

    def test_undated_task_scheduled_on_note_date(self):
        task = daily_note_parser("YYYY-MM-DD")(_task("- [ ] call mom", path="2024-05-09.md"))
        assert task.daily_note is True
        assert task.scheduled == datetime(2024, 5, 9)
        assert task.dates["dailynote"] == datetime(2024, 5, 9)

    def test_dated_task_keeps_its_dates(self):
        task = tasks_plugin_parser(_task("- [ ] call mom 📅 2024-05-20", path="2024-05-09.md"))
        task = daily_note_parser("YYYY-MM-DD")(task)
        assert task.daily_note is True
        assert task.scheduled is None
        assert task.due == datetime(2024, 5, 20)

    def test_regular_note_untouched(self):
        task = daily_note_parser("YYYY-MM-DD")(_task("- [ ] x", path="notes/todo.md"))
        assert task.daily_note is False
        assert task.scheduled is None


class TestTextCleanup:
    def test_tags_moved_out_of_visual(self):
        task = tags_parser(_task("- [ ] buy milk #todo"))
        assert task.tags == ["#todo"]
        assert task.visual == "buy milk"

    def test_link_heading_is_not_a_tag(self):
        task = tags_parser(_task("- [ ] read [[Note#Heading]]"))
        assert task.tags == []

    def test_remainder_collapses_whitespace(self):
        task = _task("- [ ] a   b ,")
        assert remainder_parser(task).visual == "a b"


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

class TestStatusParser:
    @pytest.mark.parametrize(
        "line,expected",
        [
            ("- [x] finished", "done"),
            ("- [X] finished", "done"),
            ("- [-] dropped", "cancelled"),
            ("- [/] working", "process"),
            ("- [ ] late 📅 2024-05-01", "overdue"),
            ("- [ ] today 📅 2024-05-10", "due"),
            ("- [ ] begun 🛫 2024-05-01", "start"),
            ("- [ ] begun 🛫 2024-05-01 📅 2024-06-01", "process"),
            ("- [ ] planned ⏳ 2024-05-09", "scheduled"),
            ("- [ ] later ⏳ 2024-06-01", "scheduled"),
            ("- [ ] someday", "unplanned"),
        ],
    )
    def test_status(self, line, expected):
        assert _status(line) == expected

    def test_done_marker_wins_over_dates(self):
        assert _status("- [x] late 📅 2024-05-01") == "done"


class TestLinkParser:
    def test_links_replaced_by_display_text(self):
        task = link_parser(_task("- [ ] call [[Alice]] about [[Plans#Q3|plans]]"))
        assert task.visual == "call Alice about plans"
        assert task.annotated is True
        assert [link.path for link in task.outlinks] == ["Alice", "Plans"]

    def test_markdown_links(self):
        task = link_parser(_task("- [ ] see [spec](Docs/spec.md) and [site](https://example.com)"))
        assert task.visual == "see spec and site"
        assert [link.path for link in task.outlinks] == ["Docs/spec.md"]

    def test_no_links(self):
        task = link_parser(_task("- [ ] nothing"))
        assert task.annotated is False
        assert task.outlinks == []


# ---------------------------------------------------------------------------
# Option-driven modifiers
# ---------------------------------------------------------------------------

def _pipeline(line: str, forward: bool = True):
    task = tasks_plugin_parser(_task(line))
    task = status_parser(_clock)(task)
    return forward_modifier(forward, _clock)(task)


class TestForwardModifier:
    def test_unplanned_stamped_with_now(self):
        assert _pipeline("- [ ] someday").dates["unplanned"] == NOW

    def test_undated_done_stamped(self):
        assert _pipeline("- [x] finished").dates["done-unplanned"] == NOW

    def test_dated_done_not_stamped(self):
        assert "done-unplanned" not in _pipeline("- [x] finished ✅ 2024-05-01").dates

    def test_overdue_stamped_with_now(self):
        task = _pipeline("- [ ] late 📅 2024-05-01")
        assert task.dates["overdue"] == NOW
        assert filter_date(NOW)(task) is True

    def test_disabled(self):
        assert _pipeline("- [ ] someday", forward=False).dates == {}


class TestOrderModifier:
    def test_order_follows_status_list(self):
        modifier = order_modifier(DEFAULT_STATUS_ORDER)
        assert modifier(_pipeline("- [ ] late 📅 2024-05-01")).order == 1
        assert modifier(_pipeline("- [ ] someday")).order == 6
        assert modifier(_pipeline("- [-] dropped")).order == 8

    def test_unlisted_status_keeps_default(self):
        modifier = order_modifier(["done"])
        assert modifier(_pipeline("- [ ] someday")).order == 0


class TestApplyModifiers:
    def test_none_stops_the_chain(self):
        calls = []

        def drop(task):
            return None

        def record(task):
            calls.append(task)
            return task

        assert apply_modifiers(_task("- [ ] x"), [drop, record]) is None
        assert calls == []

    def test_filter_date_matches_any_date(self):
        task = tasks_plugin_parser(_task("- [ ] x 📅 2024-05-10"))
        assert filter_date(datetime(2024, 5, 10, 8, 30))(task) is True
        assert filter_date(datetime(2024, 5, 11))(task) is False

    def test_filter_date_range_inclusive_days(self):
        task = tasks_plugin_parser(_task("- [ ] x ⏳ 2024-05-03 📅 2024-05-10"))
        assert filter_date_range(datetime(2024, 5, 10, 23, 0), None)(task) is True
        assert filter_date_range(None, datetime(2024, 5, 3))(task) is True
        assert filter_date_range(datetime(2024, 5, 4), datetime(2024, 5, 9))(task) is False
        assert filter_date_range(datetime(2024, 5, 1), None)(_task("- [ ] undated")) is False
