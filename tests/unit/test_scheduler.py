"""
Unit tests for the SM-2 scheduler and review queue helpers.

Tests:
- Interval progression (1, 6, round(I * EF))
- Easiness updates and the 1.3 floor
- Failure reset
- Quality validation
- Due selection and deck summaries
"""

from datetime import date, timedelta

import pytest

from learncore.core.exceptions import InvalidQuality
from learncore.delivery.models import CardStatus, RetentionState
from learncore.delivery.scheduler import (
    SM2Config,
    SM2Scheduler,
    due_cards,
    is_due,
    summarize_deck,
    validate_quality,
)


@pytest.fixture
def scheduler():
    return SM2Scheduler()


def review_repeatedly(scheduler, card, quality, times, start):
    """Review a card on each due date, returning every intermediate state."""
    states = []
    day = start
    for _ in range(times):
        card = scheduler.schedule(card, quality, reviewed_at=day)
        states.append(card)
        day = card.next_review_date
    return states


class TestIntervals:

    def test_perfect_recall_progression(self, scheduler, review_day):
        states = review_repeatedly(scheduler, RetentionState.new("c1", review_day), 5, 4, review_day)

        assert [s.interval_days for s in states] == [1, 6, 16, 45]
        assert [s.repetitions for s in states] == [1, 2, 3, 4]
        assert states[-1].ease_factor == pytest.approx(2.9)

    def test_intervals_strictly_increase(self, scheduler, review_day):
        states = review_repeatedly(scheduler, RetentionState.new("c1", review_day), 5, 6, review_day)
        intervals = [s.interval_days for s in states]
        assert all(a < b for a, b in zip(intervals, intervals[1:]))

    def test_interval_uses_pre_review_ease(self, scheduler, review_day):
        card = RetentionState("c1", ease_factor=2.5, interval_days=10, repetitions=3)
        result = scheduler.schedule(card, 3, reviewed_at=review_day)

        # 10 * 2.5, not 10 * 2.36
        assert result.interval_days == 25
        assert result.ease_factor == pytest.approx(2.36)

    def test_half_rounds_up(self, scheduler, review_day):
        card = RetentionState("c1", ease_factor=2.5, interval_days=5, repetitions=2)
        assert scheduler.schedule(card, 4, reviewed_at=review_day).interval_days == 13

    def test_dates_follow_interval(self, scheduler, review_day):
        card = RetentionState("c1", ease_factor=2.5, interval_days=6, repetitions=2)
        result = scheduler.schedule(card, 5, reviewed_at=review_day)

        assert result.last_review_date == review_day
        assert result.next_review_date == review_day + timedelta(days=15)

    def test_custom_config(self, review_day):
        scheduler = SM2Scheduler(SM2Config(first_interval=2, second_interval=4))
        states = review_repeatedly(scheduler, RetentionState.new("c1", review_day), 5, 2, review_day)
        assert [s.interval_days for s in states] == [2, 4]


class TestEasiness:

    @pytest.mark.parametrize(
        "quality, delta",
        [(5, 0.1), (4, 0.0), (3, -0.14), (2, -0.32), (1, -0.54), (0, -0.8)],
    )
    def test_ease_delta_per_quality(self, scheduler, quality, delta):
        card = RetentionState("c1", ease_factor=2.5)
        assert scheduler.schedule(card, quality).ease_factor == pytest.approx(2.5 + delta)

    def test_ease_floor(self, scheduler, review_day):
        card = RetentionState("c1", ease_factor=1.35, interval_days=3, repetitions=2)
        for _ in range(5):
            card = scheduler.schedule(card, 0, reviewed_at=review_day)
            assert card.ease_factor >= 1.3

        assert card.ease_factor == pytest.approx(1.3)


class TestFailureReset:

    def test_failed_recall_resets(self, scheduler, review_day):
        card = RetentionState(
            "c1", ease_factor=2.5, interval_days=45, repetitions=4, status=CardStatus.REVIEW
        )
        result = scheduler.schedule(card, 1, reviewed_at=review_day)

        assert result.repetitions == 0
        assert result.interval_days == 1
        assert result.ease_factor == pytest.approx(1.96)
        assert result.status == CardStatus.LEARNING
        assert result.next_review_date == review_day + timedelta(days=1)

    def test_quality_three_is_a_pass(self, scheduler):
        card = RetentionState("c1", interval_days=6, repetitions=2)
        assert scheduler.schedule(card, 3).repetitions == 3


class TestStatus:

    def test_status_progression(self, scheduler, review_day):
        states = review_repeatedly(scheduler, RetentionState.new("c1", review_day), 5, 5, review_day)

        assert states[0].status == CardStatus.REVIEW
        assert states[3].status == CardStatus.REVIEW
        assert states[4].status == CardStatus.MASTERED

    def test_input_not_mutated(self, scheduler, review_day):
        card = RetentionState.new("c1", review_day)
        before = card.to_dict()
        result = scheduler.schedule(card, 5, reviewed_at=review_day)

        assert card.to_dict() == before
        assert result is not card


class TestValidation:

    @pytest.mark.parametrize("quality", [-1, 6, 3.5, True, False, "4", None])
    def test_invalid_quality_rejected(self, scheduler, quality):
        card = RetentionState.new("c1")
        with pytest.raises(InvalidQuality) as exc_info:
            scheduler.schedule(card, quality)
        assert exc_info.value.quality == quality

    @pytest.mark.parametrize("quality", [0, 1, 2, 3, 4, 5])
    def test_valid_qualities(self, quality):
        assert validate_quality(quality) == quality

    def test_invalid_quality_is_value_error(self):
        with pytest.raises(ValueError):
            validate_quality(9)


class TestGrading:

    @pytest.mark.parametrize(
        "is_correct, response_ms, grade",
        [
            (True, 2000, 5),
            (True, 7000, 4),
            (True, 15000, 3),
            (False, 2000, 2),
            (False, 7000, 1),
            (False, 15000, 0),
        ],
    )
    def test_grade_from_response(self, scheduler, is_correct, response_ms, grade):
        assert scheduler.grade_from_response(is_correct, response_ms) == grade


class TestReviewQueue:

    def test_new_card_always_due(self, review_day):
        card = RetentionState.new("c1", review_day + timedelta(days=3))
        assert is_due(card, review_day)

    def test_due_on_review_date(self, review_day):
        card = RetentionState(
            "c1", interval_days=6, repetitions=2,
            next_review_date=review_day, status=CardStatus.REVIEW,
        )
        assert is_due(card, review_day)
        assert not is_due(card, review_day - timedelta(days=1))

    def test_days_overdue(self, review_day):
        card = RetentionState("c1", next_review_date=review_day - timedelta(days=4), status=CardStatus.REVIEW)
        assert card.days_overdue(review_day) == 4
        assert card.days_overdue(review_day - timedelta(days=10)) == 0

    def test_due_cards_order(self, review_day):
        old = RetentionState("b-old", next_review_date=review_day - timedelta(days=5), status=CardStatus.REVIEW)
        recent = RetentionState("a-recent", next_review_date=review_day - timedelta(days=1), status=CardStatus.LEARNING)
        fresh = RetentionState.new("z-new", review_day)
        future = RetentionState("future", next_review_date=review_day + timedelta(days=2), status=CardStatus.REVIEW)

        result = due_cards([future, recent, old, fresh], review_day)

        assert [c.card_id for c in result] == ["z-new", "b-old", "a-recent"]

    def test_summarize_deck(self, review_day):
        cards = [
            RetentionState.new("n1", review_day),
            RetentionState("l1", next_review_date=review_day, status=CardStatus.LEARNING),
            RetentionState("r1", next_review_date=review_day + timedelta(days=3), status=CardStatus.REVIEW),
            RetentionState("m1", next_review_date=review_day + timedelta(days=30), status=CardStatus.MASTERED),
        ]
        summary = summarize_deck(cards, review_day)

        assert (summary.total, summary.due) == (4, 2)
        assert (summary.new, summary.learning, summary.review, summary.mastered) == (1, 1, 1, 1)
        assert summary.mastered_percent == pytest.approx(25.0)

    def test_empty_deck(self):
        summary = summarize_deck([], date(2026, 1, 1))
        assert summary.total == 0
        assert summary.mastered_percent == 0.0


class TestSerialization:

    def test_round_trip(self, scheduler, review_day):
        card = scheduler.schedule(RetentionState.new("c1", review_day), 4, reviewed_at=review_day)
        restored = RetentionState.from_dict(card.to_dict())

        assert restored == card
        assert card.to_dict()["status"] == "review"
        assert card.to_dict()["next_review_date"] == "2026-03-02"
