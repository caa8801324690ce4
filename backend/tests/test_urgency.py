"""Tests for temporal urgency classification."""

from datetime import date, datetime, timedelta, timezone

import pytest
from backend.planner.types import UrgencyLabel
from backend.planner.urgency import (
    URGENCY_PRIORITY,
    assess,
    classify,
    classify_datetime,
    describe,
    extract_event_datetime,
)

# Thursday
NOW = datetime(2025, 6, 12, 9, 0)


class TestThresholds:
    @pytest.mark.parametrize(
        ("offset", "expected"),
        [
            (timedelta(0), UrgencyLabel.IMMEDIATE),
            (timedelta(hours=1, minutes=59), UrgencyLabel.IMMEDIATE),
            (timedelta(hours=2), UrgencyLabel.SOON),
            (timedelta(hours=23, minutes=59), UrgencyLabel.SOON),
            (timedelta(hours=24), UrgencyLabel.NORMAL),
            (timedelta(days=5), UrgencyLabel.NORMAL),
            (timedelta(seconds=-1), UrgencyLabel.PAST),
            (timedelta(days=-2), UrgencyLabel.PAST),
        ],
    )
    def test_bands(self, offset, expected):
        assert classify_datetime(NOW, NOW + offset) == expected

    def test_naive_event_against_aware_reference(self):
        now = datetime(2025, 6, 12, 9, 0, tzinfo=timezone.utc)
        assert classify_datetime(now, datetime(2025, 6, 12, 10, 0)) == UrgencyLabel.IMMEDIATE

    def test_priority_order(self):
        ordered = sorted(URGENCY_PRIORITY, key=URGENCY_PRIORITY.get)
        assert ordered == [
            UrgencyLabel.IMMEDIATE,
            UrgencyLabel.SOON,
            UrgencyLabel.NORMAL,
            UrgencyLabel.UNKNOWN,
            UrgencyLabel.PAST,
        ]


class TestExtraction:
    def test_iso_datetime(self):
        assert extract_event_datetime("Starts 2025-06-12T13:30", NOW) == datetime(2025, 6, 12, 13, 30)

    def test_iso_with_space_separator(self):
        assert extract_event_datetime("2025-06-13 08:15 Main stage", NOW) == datetime(2025, 6, 13, 8, 15)

    def test_month_day_with_clock(self):
        assert extract_event_datetime("June 14th at 10:30", NOW) == datetime(2025, 6, 14, 10, 30)

    def test_day_month(self):
        assert extract_event_datetime("12th June 4pm", NOW) == datetime(2025, 6, 12, 16, 0)

    def test_month_day_uses_conference_year(self):
        result = extract_event_datetime("June 11", NOW, conference_date=date(2026, 6, 10))
        assert result == datetime(2026, 6, 11, 0, 0)

    def test_weekday_resolves_to_following_day(self):
        assert extract_event_datetime("Friday 10:00", NOW) == datetime(2025, 6, 13, 10, 0)

    def test_weekday_resolves_against_conference_date(self):
        result = extract_event_datetime("Fri 13h30", NOW, conference_date=date(2025, 6, 18))
        # 2025-06-18 is a Wednesday; the next Friday is the 20th
        assert result == datetime(2025, 6, 20, 13, 30)

    def test_same_weekday_is_anchor_day(self):
        assert extract_event_datetime("Thursday 15:00", NOW) == datetime(2025, 6, 12, 15, 0)

    def test_bare_time_uses_conference_date(self):
        result = extract_event_datetime("doors at 09:45", NOW, conference_date=date(2025, 6, 13))
        assert result == datetime(2025, 6, 13, 9, 45)

    def test_bare_time_falls_back_to_reference_day(self):
        assert extract_event_datetime("11:15", NOW) == datetime(2025, 6, 12, 11, 15)

    def test_tomorrow_afternoon(self):
        assert extract_event_datetime("tomorrow afternoon", NOW) == datetime(2025, 6, 13, 14, 0)

    def test_tomorrow_ignores_conference_date(self):
        result = extract_event_datetime("tomorrow 9am", NOW, conference_date=date(2025, 7, 1))
        assert result == datetime(2025, 6, 13, 9, 0)

    def test_tonight(self):
        assert extract_event_datetime("Networking tonight", NOW) == datetime(2025, 6, 12, 20, 0)

    def test_meridiem_variants(self):
        assert extract_event_datetime("1:30 pm", NOW) == datetime(2025, 6, 12, 13, 30)
        assert extract_event_datetime("12am", NOW) == datetime(2025, 6, 12, 0, 0)

    def test_date_only_today_is_now(self):
        assert extract_event_datetime("June 12", NOW) == NOW

    def test_date_only_other_day_is_midnight(self):
        assert extract_event_datetime("June 13", NOW) == datetime(2025, 6, 13, 0, 0)

    def test_keeps_reference_timezone(self):
        now = datetime(2025, 6, 12, 9, 0, tzinfo=timezone.utc)
        result = extract_event_datetime("Friday 10:00", now)
        assert result is not None and result.tzinfo is timezone.utc

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "Keynote on climate tech",
            "Room 12, hall B",
            "25:99",
            "2025-02-30",
            "June 31",
            "you may want to arrive early",
        ],
    )
    def test_no_usable_datetime(self, text):
        assert extract_event_datetime(text, NOW) is None

    def test_meridiem_needs_word_boundary(self):
        assert extract_event_datetime("10:00amazing", NOW) == datetime(2025, 6, 12, 10, 0)

    @pytest.mark.parametrize("text", ["attendees may 3 times ask", "groups of 3 may join"])
    def test_lowercase_may_is_not_a_month(self, text):
        assert extract_event_datetime(text, NOW) is None

    @pytest.mark.parametrize("text", ["May 3", "3 May", "MAY 3rd"])
    def test_capitalised_may_is_a_month(self, text):
        assert extract_event_datetime(text, NOW) == datetime(2025, 5, 3, 0, 0)

    def test_prose_may_does_not_hide_a_later_date(self):
        result = extract_event_datetime("speakers may 2 times rotate, June 14 10:00", NOW)
        assert result == datetime(2025, 6, 14, 10, 0)


class TestClassify:
    def test_friday_sessions_from_thursday_are_not_immediate(self):
        for text in ("Friday 10:00", "Friday 13:30", "Friday 16:00"):
            assert classify(NOW, text) in {UrgencyLabel.SOON, UrgencyLabel.NORMAL}

    def test_immediate(self):
        assert classify(NOW, "Today 10:30") == UrgencyLabel.IMMEDIATE

    def test_soon(self):
        assert classify(NOW, "2025-06-12T18:00") == UrgencyLabel.SOON

    def test_past(self):
        assert classify(NOW, "June 11 at 14:00") == UrgencyLabel.PAST

    @pytest.mark.parametrize("text", [None, "", "no idea", "TBD", "2025-13-45T99:99", "\x00\x01"])
    def test_unparsable_is_unknown(self, text):
        assert classify(NOW, text) == UrgencyLabel.UNKNOWN

    def test_non_string_input_is_unknown(self):
        assert classify(NOW, 12345) == UrgencyLabel.UNKNOWN  # type: ignore[arg-type]

    def test_idempotent(self):
        first = classify(NOW, "Friday 10:00", date(2025, 6, 11))
        second = classify(NOW, "Friday 10:00", date(2025, 6, 11))
        assert first == second


class TestAssess:
    def test_structured_start_time_wins(self):
        result = assess(NOW, "Friday 10:00", event_at=NOW + timedelta(minutes=30))
        assert result.label == UrgencyLabel.IMMEDIATE
        assert result.event_at == NOW + timedelta(minutes=30)

    def test_unknown_note(self):
        result = assess(NOW, "whenever")
        assert result.label == UrgencyLabel.UNKNOWN
        assert result.event_at is None
        assert "No specific date" in result.note

    @pytest.mark.parametrize("label", list(UrgencyLabel))
    def test_every_label_has_a_description(self, label):
        assert describe(label, NOW)
