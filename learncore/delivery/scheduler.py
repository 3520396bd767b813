"""
SM-2 Spaced Repetition Scheduler.

Implements:
- SM-2 algorithm for review intervals and easiness updates
- Due-card selection and deck summaries for review queues
- Quality grading from quiz responses

SM-2 Grade Scale:
0 - Complete blackout, wrong response
1 - Incorrect, but upon seeing answer remembered
2 - Incorrect, but answer seemed easy to recall
3 - Correct, but with significant difficulty
4 - Correct, with some hesitation
5 - Correct, with perfect recall
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable

from loguru import logger

from learncore.core.exceptions import InvalidQuality
from learncore.delivery.models import (
    INITIAL_EASE_FACTOR,
    CardStatus,
    DeckSummary,
    RetentionState,
)

PASSING_QUALITY = 3
MAX_QUALITY = 5


# =============================================================================
# SM-2 Algorithm
# =============================================================================


@dataclass(frozen=True)
class SM2Config:
    """Policy constants for the SM-2 algorithm."""

    initial_easiness: float = INITIAL_EASE_FACTOR
    minimum_easiness: float = 1.3
    first_interval: int = 1  # Days after first successful recall
    second_interval: int = 6  # Days after second successful recall
    mastered_repetitions: int = 5  # Consecutive recalls to count as mastered


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def validate_quality(quality: object) -> int:
    """
    Ensure a recall quality is an integer in [0, 5].

    Raises:
        InvalidQuality: For non-integers (bool included) or out-of-range values
    """
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise InvalidQuality(quality)
    if not 0 <= quality <= MAX_QUALITY:
        raise InvalidQuality(quality)
    return quality


class SM2Scheduler:
    """
    Implements the SM-2 spaced repetition algorithm.

    The SuperMemo 2 algorithm calculates review intervals from
    performance history. Each card has:
    - Easiness Factor (EF): How easy the item is (2.5 default, min 1.3)
    - Interval: Days until next review
    - Repetitions: Consecutive correct recalls
    """

    def __init__(self, config: SM2Config | None = None):
        """
        Initialize SM-2 scheduler.

        Args:
            config: Custom configuration (uses defaults if None)
        """
        self.config = config or SM2Config()

    def schedule(
        self,
        card: RetentionState,
        quality: int,
        reviewed_at: date | None = None,
    ) -> RetentionState:
        """
        Apply one review to a card.

        Args:
            card: Current state (left untouched)
            quality: Recall quality 0-5; below 3 is a failed recall
            reviewed_at: Review date (defaults to today)

        Returns:
            New RetentionState with interval, easiness, dates and status updated
        """
        quality = validate_quality(quality)
        reviewed_at = reviewed_at or date.today()

        # EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)), from pre-review EF
        miss = MAX_QUALITY - quality
        ef_delta = 0.1 - miss * (0.08 + miss * 0.02)
        new_ef = max(self.config.minimum_easiness, card.ease_factor + ef_delta)

        if quality < PASSING_QUALITY:
            # Failed recall restarts the schedule
            new_repetitions = 0
            new_interval = self.config.first_interval
        else:
            if card.repetitions == 0:
                new_interval = self.config.first_interval
            elif card.repetitions == 1:
                new_interval = self.config.second_interval
            else:
                new_interval = _round_half_up(card.interval_days * card.ease_factor)
            new_repetitions = card.repetitions + 1

        new_state = RetentionState(
            card_id=card.card_id,
            ease_factor=new_ef,
            interval_days=new_interval,
            repetitions=new_repetitions,
            next_review_date=reviewed_at + timedelta(days=new_interval),
            last_review_date=reviewed_at,
            status=self.status_for(new_repetitions),
        )

        logger.debug(
            f"Card {card.card_id}: q={quality} reps {card.repetitions}->{new_repetitions} "
            f"interval {card.interval_days}->{new_interval}d EF {card.ease_factor:.2f}->{new_ef:.2f}"
        )
        return new_state

    def status_for(self, repetitions: int) -> CardStatus:
        """Status derived from consecutive successful recalls."""
        if repetitions >= self.config.mastered_repetitions:
            return CardStatus.MASTERED
        if repetitions >= 1:
            return CardStatus.REVIEW
        return CardStatus.LEARNING

    def grade_from_response(
        self,
        is_correct: bool,
        response_ms: int,
        expected_ms: int = 10000,
    ) -> int:
        """
        Convert a quiz response to an SM-2 grade.

        Args:
            is_correct: Whether the answer was correct
            response_ms: Time taken to respond
            expected_ms: Expected response time

        Returns:
            Grade 0-5
        """
        if not is_correct:
            # Incorrect responses: 0-2
            if response_ms < expected_ms * 0.5:
                return 2  # Quick wrong = almost knew it
            elif response_ms < expected_ms:
                return 1  # Wrong but remembered when shown
            else:
                return 0  # Complete blackout

        # Correct responses: 3-5
        if response_ms < expected_ms * 0.5:
            return 5
        elif response_ms < expected_ms:
            return 4
        else:
            return 3


# =============================================================================
# Review Queue Helpers
# =============================================================================


def is_due(card: RetentionState, today: date | None = None) -> bool:
    """A card is due if it was never reviewed or its review date has arrived."""
    return card.is_due(today)


def due_cards(cards: Iterable[RetentionState], today: date | None = None) -> list[RetentionState]:
    """
    Cards to present next.

    New cards come first, then reviews ordered by how long they have waited.
    """
    today = today or date.today()
    due = [c for c in cards if c.is_due(today)]
    return sorted(
        due,
        key=lambda c: (c.status != CardStatus.NEW, c.next_review_date or today, c.card_id),
    )


def summarize_deck(cards: Iterable[RetentionState], today: date | None = None) -> DeckSummary:
    """Count cards per status plus how many are due."""
    today = today or date.today()
    summary = DeckSummary()
    for card in cards:
        summary.total += 1
        if card.is_due(today):
            summary.due += 1
        if card.status == CardStatus.NEW:
            summary.new += 1
        elif card.status == CardStatus.LEARNING:
            summary.learning += 1
        elif card.status == CardStatus.REVIEW:
            summary.review += 1
        else:
            summary.mastered += 1
    return summary
