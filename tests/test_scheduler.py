"""
Tests for the card scheduler (SM-2 variant).

Tests cover:
- Interval progression per grade
- Ease factor floor and unbounded growth
- Calendar-day arithmetic for next_review
- Rejection of invalid grades
"""

from datetime import datetime, timedelta, timezone

import pytest

from linguaflow.exceptions import InvalidQualityError
from linguaflow.scheduling.scheduler import (
    MIN_EASE_FACTOR,
    Quality,
    SchedulingState,
    coerce_quality,
    review,
)

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


def fresh_state():
    return SchedulingState(interval=1, ease_factor=2.5, review_count=0)


class TestGoodProgression:
    """GOOD grows the interval 1 -> 6 -> interval * ease."""

    def test_first_good_then_good_sequence(self):
        state = fresh_state()
        intervals = []
        for _ in range(3):
            state = review(state, Quality.GOOD, NOW)
            intervals.append(state.interval)

        assert intervals == [1, 6, 15]
        assert state.review_count == 3
        assert state.ease_factor == pytest.approx(2.5)

    def test_good_uses_half_up_rounding(self):
        state = SchedulingState(interval=5, ease_factor=2.5, review_count=4)
        assert review(state, Quality.GOOD, NOW).interval == 13  # 12.5


class TestEasy:
    def test_new_card_easy_immediately(self):
        state = review(fresh_state(), Quality.EASY, NOW)

        assert state.interval == 4
        assert state.ease_factor == pytest.approx(2.65)
        assert state.review_count == 1

    def test_easy_on_reviewed_card_multiplies_by_bonus(self):
        state = SchedulingState(interval=10, ease_factor=2.0, review_count=3)
        result = review(state, Quality.EASY, NOW)

        assert result.interval == 26  # round(10 * 2.0 * 1.3)
        assert result.ease_factor == pytest.approx(2.15)

    def test_ease_factor_has_no_upper_cap(self):
        state = fresh_state()
        for _ in range(20):
            state = review(state, Quality.EASY, NOW)

        assert state.ease_factor == pytest.approx(2.5 + 20 * 0.15)
        assert state.review_count == 20
        assert state.next_review == datetime.max.replace(tzinfo=timezone.utc)

    def test_next_review_clamps_past_year_9999(self):
        state = SchedulingState(interval=2_000_000, ease_factor=2.5, review_count=12)
        result = review(state, Quality.GOOD, NOW)

        assert result.interval == 5_000_000
        assert result.next_review == datetime.max.replace(tzinfo=timezone.utc)


class TestHardAndAgain:
    def test_hard_scenario(self):
        state = SchedulingState(interval=10, ease_factor=2.0, review_count=5)
        result = review(state, Quality.HARD, NOW)

        assert result.interval == 12
        assert result.ease_factor == pytest.approx(1.85)
        assert result.review_count == 6

    def test_hard_never_drops_below_one_day(self):
        state = SchedulingState(interval=1, ease_factor=1.3, review_count=2)
        assert review(state, Quality.HARD, NOW).interval == 1

    @pytest.mark.parametrize("interval,review_count", [(1, 0), (6, 1), (40, 9), (365, 30)])
    def test_again_resets_interval(self, interval, review_count):
        state = SchedulingState(interval=interval, ease_factor=2.3, review_count=review_count)
        result = review(state, Quality.AGAIN, NOW)

        assert result.interval == 1
        assert result.ease_factor == pytest.approx(2.1)

    def test_ease_floor_holds_for_failing_sequences(self):
        state = fresh_state()
        grades = [Quality.AGAIN, Quality.HARD] * 10
        for grade in grades:
            state = review(state, grade, NOW)
            assert state.ease_factor >= MIN_EASE_FACTOR

        assert state.ease_factor == pytest.approx(MIN_EASE_FACTOR)


class TestTimestamps:
    def test_next_review_is_now_plus_interval_days(self):
        state = SchedulingState(interval=6, ease_factor=2.5, review_count=2)
        result = review(state, Quality.GOOD, NOW)

        assert result.last_review == NOW
        assert result.next_review == NOW + timedelta(days=15)

    def test_calendar_days_keep_wall_clock_time(self):
        local = timezone(timedelta(hours=-5))
        now = datetime(2024, 3, 9, 20, 0, tzinfo=local)
        result = review(fresh_state(), Quality.EASY, now)

        assert result.next_review.hour == 20
        assert result.next_review.date().isoformat() == "2024-03-13"

    def test_to_updates_contains_only_scheduling_fields(self):
        updates = review(fresh_state(), Quality.GOOD, NOW).to_updates()
        assert set(updates) == {"interval", "ease_factor", "review_count", "next_review", "last_review"}


class TestQualityValidation:
    def test_plain_ints_accepted(self):
        assert coerce_quality(0) is Quality.AGAIN
        assert coerce_quality(3) is Quality.EASY

    @pytest.mark.parametrize("bad", [-1, 4, 2.5, "good", None, True])
    def test_invalid_grades_rejected(self, bad):
        with pytest.raises(InvalidQualityError):
            review(fresh_state(), bad, NOW)

    def test_invalid_quality_is_a_value_error(self):
        with pytest.raises(ValueError):
            coerce_quality(7)
