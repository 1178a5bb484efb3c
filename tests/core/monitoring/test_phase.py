"""Tests for lifecycle phase classification and the debounce guard."""

from datetime import timedelta

import pytest

from core.monitoring.models import LifecyclePhase
from core.monitoring.phase import (
    DEFAULT_DEBOUNCE_WINDOW,
    classify_phase,
    is_debounced,
    was_live,
)


class TestClassifyPhase:
    @pytest.mark.parametrize(
        ("previously_live", "is_live_now", "expected"),
        [
            (False, False, LifecyclePhase.SETTLED),
            (False, True, LifecyclePhase.SESSION_STARTING),
            (True, True, LifecyclePhase.SESSION_ONGOING),
            (True, False, LifecyclePhase.SESSION_ENDED),
        ],
    )
    def test_truth_table(self, previously_live, is_live_now, expected):
        assert classify_phase(previously_live, is_live_now) is expected


class TestWasLive:
    def test_start_after_end_means_live(self, make_channel):
        assert was_live(make_channel(live=True)) is True

    def test_end_after_start_means_settled(self, make_channel):
        assert was_live(make_channel(live=False)) is False

    def test_zero_length_session_counts_as_ended(self, make_channel, now):
        channel = make_channel()
        channel.session_start = now
        channel.session_end = now

        assert was_live(channel) is False


class TestIsDebounced:
    def test_default_window_is_three_minutes(self):
        assert DEFAULT_DEBOUNCE_WINDOW == timedelta(minutes=3)

    def test_recent_end_is_debounced(self, make_channel, now):
        channel = make_channel(ended_ago=timedelta(minutes=2))

        assert is_debounced(channel, now) is True

    def test_old_end_is_not_debounced(self, make_channel, now):
        channel = make_channel(ended_ago=timedelta(minutes=10))

        assert is_debounced(channel, now) is False

    def test_window_boundary_is_not_debounced(self, make_channel, now):
        channel = make_channel(ended_ago=DEFAULT_DEBOUNCE_WINDOW)

        assert is_debounced(channel, now) is False

    def test_custom_window(self, make_channel, now):
        channel = make_channel(ended_ago=timedelta(minutes=4))

        assert is_debounced(channel, now, timedelta(minutes=5)) is True
