"""
Data models for the mastery loop.

- LoopPhase: phases of a remediation session
- LoopEvent: one completed phase in a session's history
- MasteryLoopSession: remediation state for one learner and topic
- MasteryRecord: a topic the learner brought to mastery
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

# Minimum re-assessment score (percent) required to leave the loop.
# Fixed policy: changing it changes what "mastered" means for every learner.
MASTERY_THRESHOLD = 80


class LoopPhase(str, Enum):
    """Phases of the diagnose -> teach -> re-test loop."""

    ASSESS_INITIAL = "assess_initial"
    CONTENT_PRIMARY = "content_primary"
    CONTENT_SECONDARY = "content_secondary"
    ASSESS_FINAL = "assess_final"
    MASTERY = "mastery"

    @property
    def is_assessment(self) -> bool:
        """Phase needs a scored assessment from an AssessmentProvider."""
        return self in (LoopPhase.ASSESS_INITIAL, LoopPhase.ASSESS_FINAL)

    @property
    def is_content(self) -> bool:
        """Phase needs instructional content from a ContentProvider."""
        return self in (LoopPhase.CONTENT_PRIMARY, LoopPhase.CONTENT_SECONDARY)

    @property
    def is_terminal(self) -> bool:
        return self == LoopPhase.MASTERY

    @property
    def display_name(self) -> str:
        """Human-readable name."""
        return self.value.replace("_", " ").title()


@dataclass(frozen=True)
class LoopEvent:
    """A phase that was completed, with its score if it was an assessment."""

    phase: LoopPhase
    score: int | None
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "score": self.score,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> LoopEvent:
        return cls(
            phase=LoopPhase(data["phase"]),
            score=data.get("score"),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass
class MasteryLoopSession:
    """
    Remediation state for one learner working on one topic.

    Only MasteryLoopEngine.advance produces new values of this type; the
    attempt counter grows only when a re-assessment misses the threshold.
    """

    session_id: str
    topic: str
    started_at: datetime
    phase: LoopPhase = LoopPhase.ASSESS_INITIAL
    attempt: int = 1
    initial_score: int = 0
    current_score: int = 0
    weak_points: list[str] = field(default_factory=list)
    history: list[LoopEvent] = field(default_factory=list)
    closed: bool = False

    @property
    def improvement(self) -> int:
        """Score gained since the diagnostic assessment."""
        return self.current_score - self.initial_score

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "session_id": self.session_id,
            "topic": self.topic,
            "started_at": self.started_at.isoformat(),
            "phase": self.phase.value,
            "attempt": self.attempt,
            "initial_score": self.initial_score,
            "current_score": self.current_score,
            "weak_points": list(self.weak_points),
            "history": [event.to_dict() for event in self.history],
            "closed": self.closed,
        }

    @classmethod
    def from_dict(cls, data: dict) -> MasteryLoopSession:
        """Create from dictionary."""
        return cls(
            session_id=data["session_id"],
            topic=data["topic"],
            started_at=datetime.fromisoformat(data["started_at"]),
            phase=LoopPhase(data["phase"]),
            attempt=int(data.get("attempt", 1)),
            initial_score=int(data.get("initial_score", 0)),
            current_score=int(data.get("current_score", 0)),
            weak_points=list(data.get("weak_points", [])),
            history=[LoopEvent.from_dict(e) for e in data.get("history", [])],
            closed=bool(data.get("closed", False)),
        )


@dataclass(frozen=True)
class MasteryRecord:
    """A topic brought to mastery, and how many attempts it took."""

    topic: str
    attempts: int
    achieved_at: datetime

    def to_dict(self) -> dict:
        return {
            "topic": self.topic,
            "attempts": self.attempts,
            "achieved_at": self.achieved_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> MasteryRecord:
        return cls(
            topic=data["topic"],
            attempts=int(data["attempts"]),
            achieved_at=datetime.fromisoformat(data["achieved_at"]),
        )
