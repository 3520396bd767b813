"""
Weak Point Tracker.

Aggregates quiz answers per (subject, topic) into a mastery score and a
short score history, so the weakest topics can be fed into a mastery loop:

- score: rounded percentage of correct answers, 0-100
- history: last HISTORY_LIMIT (date, score) snapshots
- trend: mean of the last 3 scores vs. the 3 before, +/- TREND_MARGIN

Topic and subject names are matched case-insensitively; the spelling of the
first answer recorded is kept.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime
from enum import Enum
from typing import Callable, Iterable

from loguru import logger

from learncore.core.exceptions import InvalidAssessment

# Below this score a topic is reported as weak
WEAK_TOPIC_THRESHOLD = 70
# Below this score a topic is critical and worth a remediation loop
CRITICAL_TOPIC_THRESHOLD = 60

HISTORY_LIMIT = 20
TREND_WINDOW = 3
TREND_MARGIN = 10

NOT_ATTEMPTED = -1


class Trend(str, Enum):
    """Direction of a topic's recent scores."""

    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


@dataclass(frozen=True)
class QuizResult:
    """One graded quiz answer."""

    topic: str
    subject: str
    is_correct: bool
    chapter: str | None = None


@dataclass(frozen=True)
class ScoreSnapshot:
    """Topic score right after an answer was recorded."""

    day: date
    score: int

    def to_dict(self) -> dict:
        return {"date": self.day.isoformat(), "score": self.score}

    @classmethod
    def from_dict(cls, data: dict) -> ScoreSnapshot:
        return cls(day=date.fromisoformat(data["date"]), score=int(data["score"]))


@dataclass
class WeakPoint:
    """Accumulated quiz performance for one topic of one subject."""

    topic: str
    subject: str
    score: int
    total_attempts: int
    correct_attempts: int
    last_attempted: datetime
    chapter: str | None = None
    recent_trend: Trend = Trend.STABLE
    history: list[ScoreSnapshot] = field(default_factory=list)

    def matches(self, topic: str, subject: str | None = None) -> bool:
        if self.topic.lower() != topic.lower():
            return False
        return subject is None or self.subject.lower() == subject.lower()

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "topic": self.topic,
            "subject": self.subject,
            "chapter": self.chapter,
            "score": self.score,
            "total_attempts": self.total_attempts,
            "correct_attempts": self.correct_attempts,
            "last_attempted": self.last_attempted.isoformat(),
            "recent_trend": self.recent_trend.value,
            "history": [s.to_dict() for s in self.history],
        }

    @classmethod
    def from_dict(cls, data: dict) -> WeakPoint:
        """Create from dictionary."""
        return cls(
            topic=data["topic"],
            subject=data["subject"],
            chapter=data.get("chapter"),
            score=int(data["score"]),
            total_attempts=int(data["total_attempts"]),
            correct_attempts=int(data["correct_attempts"]),
            last_attempted=datetime.fromisoformat(data["last_attempted"]),
            recent_trend=Trend(data.get("recent_trend", Trend.STABLE.value)),
            history=[ScoreSnapshot.from_dict(s) for s in data.get("history", [])],
        )


def _percent(correct: int, total: int) -> int:
    # Half-up, so 2/8 -> 25 and 1/8 (12.5) -> 13
    return int(math.floor(correct / total * 100 + 0.5))


def calculate_trend(history: list[ScoreSnapshot]) -> Trend:
    """
    Compare the mean of the last three scores to the three before.

    Fewer than four snapshots (no older window) is always stable.
    """
    if len(history) < TREND_WINDOW:
        return Trend.STABLE
    recent = history[-TREND_WINDOW:]
    older = history[-2 * TREND_WINDOW:-TREND_WINDOW]
    if not older:
        return Trend.STABLE

    avg_recent = sum(s.score for s in recent) / len(recent)
    avg_older = sum(s.score for s in older) / len(older)
    if avg_recent > avg_older + TREND_MARGIN:
        return Trend.IMPROVING
    if avg_recent < avg_older - TREND_MARGIN:
        return Trend.DECLINING
    return Trend.STABLE


def _validate(result: QuizResult) -> None:
    if not isinstance(result.topic, str) or not result.topic.strip():
        raise InvalidAssessment(f"Quiz result needs a non-empty topic, got {result.topic!r}")
    if not isinstance(result.subject, str) or not result.subject.strip():
        raise InvalidAssessment(f"Quiz result needs a non-empty subject, got {result.subject!r}")
    if not isinstance(result.is_correct, bool):
        raise InvalidAssessment(f"is_correct must be a bool, got {result.is_correct!r}")


class WeakPointTracker:
    """
    Per-learner topic performance.

    Load with the learner's stored points, record answers, then persist
    ``weak_points`` through StateStore.save_weak_points.
    """

    def __init__(
        self,
        weak_points: Iterable[WeakPoint] = (),
        clock: Callable[[], datetime] | None = None,
    ):
        self._points: list[WeakPoint] = list(weak_points)
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def weak_points(self) -> list[WeakPoint]:
        return list(self._points)

    def add_quiz_results(self, results: Iterable[QuizResult]) -> list[WeakPoint]:
        """
        Record a batch of answers.

        The whole batch is validated before anything is recorded.

        Raises:
            InvalidAssessment: If any result lacks a topic/subject or a bool outcome
        """
        results = list(results)
        for result in results:
            _validate(result)

        now = self._clock()
        today = now.date()
        for result in results:
            self._record(result, now, today)

        logger.debug(f"[WeakPoints] Recorded {len(results)} answer(s); tracking {len(self._points)} topic(s)")
        return self.weak_points

    def _record(self, result: QuizResult, now: datetime, today: date) -> None:
        for i, point in enumerate(self._points):
            if point.matches(result.topic, result.subject):
                total = point.total_attempts + 1
                correct = point.correct_attempts + (1 if result.is_correct else 0)
                score = _percent(correct, total)
                history = [*point.history, ScoreSnapshot(today, score)][-HISTORY_LIMIT:]
                self._points[i] = replace(
                    point,
                    score=score,
                    total_attempts=total,
                    correct_attempts=correct,
                    last_attempted=now,
                    recent_trend=calculate_trend(history),
                    history=history,
                )
                return

        score = 100 if result.is_correct else 0
        self._points.append(WeakPoint(
            topic=result.topic.strip(),
            subject=result.subject.strip(),
            chapter=result.chapter,
            score=score,
            total_attempts=1,
            correct_attempts=1 if result.is_correct else 0,
            last_attempted=now,
            history=[ScoreSnapshot(today, score)],
        ))

    def weak_topics(self, subject: str | None = None) -> list[WeakPoint]:
        """Topics scoring below WEAK_TOPIC_THRESHOLD, weakest first."""
        weak = [p for p in self._points if p.score < WEAK_TOPIC_THRESHOLD]
        if subject:
            weak = [p for p in weak if p.subject.lower() == subject.lower()]
        return sorted(weak, key=lambda p: p.score)

    def topic_mastery(self, topic: str) -> int:
        """Score of the first tracked topic with this name, or NOT_ATTEMPTED."""
        for point in self._points:
            if point.matches(topic):
                return point.score
        return NOT_ATTEMPTED

    def weak_topic_names(self) -> list[str]:
        """Names of topics below CRITICAL_TOPIC_THRESHOLD, in tracking order."""
        return [p.topic for p in self._points if p.score < CRITICAL_TOPIC_THRESHOLD]

    def clear(self) -> None:
        self._points = []
