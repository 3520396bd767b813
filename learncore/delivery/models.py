"""
Flashcard retention models.

RetentionState is the per-card SM-2 memory state. It is only ever replaced
by SM2Scheduler, one new value per review event.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

INITIAL_EASE_FACTOR = 2.5


class CardStatus(str, Enum):
    """Informational card status, recomputed on every review."""

    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    MASTERED = "mastered"


@dataclass
class RetentionState:
    """SM-2 state for a single flashcard."""

    card_id: str
    ease_factor: float = INITIAL_EASE_FACTOR
    interval_days: int = 0  # 0 until first review
    repetitions: int = 0  # Consecutive successful recalls
    next_review_date: date | None = None
    last_review_date: date | None = None
    status: CardStatus = CardStatus.NEW

    @classmethod
    def new(cls, card_id: str, created_on: date | None = None) -> RetentionState:
        """State for a freshly generated card."""
        return cls(card_id=card_id, next_review_date=created_on or date.today())

    def is_due(self, today: date | None = None) -> bool:
        """New cards are always due; others once their review date arrives."""
        if self.status == CardStatus.NEW or self.next_review_date is None:
            return True
        return self.next_review_date <= (today or date.today())

    def days_overdue(self, today: date | None = None) -> int:
        """Days past the scheduled review date."""
        if self.next_review_date is None:
            return 0
        delta = (today or date.today()) - self.next_review_date
        return max(0, delta.days)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "card_id": self.card_id,
            "ease_factor": self.ease_factor,
            "interval_days": self.interval_days,
            "repetitions": self.repetitions,
            "next_review_date": self.next_review_date.isoformat() if self.next_review_date else None,
            "last_review_date": self.last_review_date.isoformat() if self.last_review_date else None,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> RetentionState:
        """Create from dictionary."""
        next_review = data.get("next_review_date")
        last_review = data.get("last_review_date")
        return cls(
            card_id=data["card_id"],
            ease_factor=float(data.get("ease_factor", INITIAL_EASE_FACTOR)),
            interval_days=int(data.get("interval_days", 0)),
            repetitions=int(data.get("repetitions", 0)),
            next_review_date=date.fromisoformat(next_review) if next_review else None,
            last_review_date=date.fromisoformat(last_review) if last_review else None,
            status=CardStatus(data.get("status", CardStatus.NEW.value)),
        )


@dataclass
class DeckSummary:
    """Counts over a collection of cards at a given date."""

    total: int = 0
    due: int = 0
    new: int = 0
    learning: int = 0
    review: int = 0
    mastered: int = 0

    @property
    def mastered_percent(self) -> float:
        return (self.mastered / self.total * 100) if self.total else 0.0
