"""Tests for the pure helpers of the poll and mute commands."""

import pytest

from lunarbridge.commands.builtin.staff.mute import MuteCommand
from lunarbridge.commands.builtin.staff.poll import (
    DEFAULT_DURATION,
    MAX_DURATION,
    MIN_DURATION,
    PollOption,
    format_results,
    parse_vote,
    poll_duration,
)
from lunarbridge.errors import CommandError


class TestPollDuration:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("2m", 120.0),
            ("45s", 45.0),
            ("5s", MIN_DURATION),
            ("1h", MAX_DURATION),
            (None, DEFAULT_DURATION),
            ("soon", DEFAULT_DURATION),
        ],
    )
    def test_clamped(self, raw, expected):
        assert poll_duration(raw) == expected


class TestParseVote:
    def test_valid(self):
        assert parse_vote("2", 3) == 2
        assert parse_vote("  1 because reasons", 3) == 1

    @pytest.mark.parametrize("content", ["0", "4", "yes", "", "vote 1"])
    def test_invalid(self, content):
        assert parse_vote(content, 3) is None


class TestFormatResults:
    def test_sorted_by_votes(self):
        options = [
            PollOption(1, "red", {"a"}),
            PollOption(2, "blue", {"b", "c", "d"}),
            PollOption(3, "green"),
        ]

        assert format_results(options) == [
            "#2: blue (75%, 3 votes)",
            "#1: red (25%, 1 vote)",
            "#3: green (0%, 0 votes)",
        ]

    def test_no_votes(self):
        assert format_results([PollOption(1, "red")]) == ["#1: red (0%, 0 votes)"]


class TestMuteDuration:
    @pytest.mark.parametrize("raw, expected", [("90m", "90m"), (" 1h ", "1h"), ("3d", "3d"), ("1m", "1m")])
    def test_input_is_passed_on_unchanged(self, raw, expected):
        """`/g mute` gets what the user typed, not a rounded duration."""
        assert MuteCommand._check_duration(raw) == expected

    @pytest.mark.parametrize("raw", ["10s", "31d", "soon", "", None])
    def test_invalid_durations(self, raw):
        with pytest.raises(CommandError, match="not a valid duration"):
            MuteCommand._check_duration(raw)
