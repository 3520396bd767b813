"""
Mastery Loop Engine.

Drives one remediation session per learner and topic through:

    assess_initial -> content_primary -> content_secondary -> assess_final
        -> mastery                      (score >= MASTERY_THRESHOLD)
        -> content_primary, attempt + 1 (otherwise)

There is no attempt cap. A learner who keeps missing the threshold keeps
getting new instruction; a host UI may show the attempt count but the
engine never gives up.

The engine does not fetch content or grade quizzes. Collaborators
(content and assessment providers) register as observers and are told
which phase a session just entered; the caller feeds scores back in
through ``advance``.
"""
from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any, Callable, Iterable, Mapping, Protocol

from loguru import logger

from learncore.adaptive.models import (
    MASTERY_THRESHOLD,
    LoopEvent,
    LoopPhase,
    MasteryLoopSession,
    MasteryRecord,
)
from learncore.core.exceptions import InvalidAssessment, PhaseMismatch


class LoopObserver(Protocol):
    """Collaborator notified after every phase transition."""

    def phase_entered(self, session: MasteryLoopSession) -> None:
        ...


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _require_score(data: Mapping[str, Any]) -> int:
    score = data.get("score")
    if isinstance(score, bool) or not isinstance(score, int):
        raise InvalidAssessment(f"Assessment score must be an integer 0-100, got {score!r}")
    if not 0 <= score <= 100:
        raise InvalidAssessment(f"Assessment score must be between 0 and 100, got {score}")
    return score


def _weak_points(data: Mapping[str, Any]) -> list[str]:
    """Ordered, de-duplicated weak points from assessment data."""
    raw = data.get("weak_points", data.get("weakPoints")) or []
    if isinstance(raw, str) or not isinstance(raw, Iterable):
        raise InvalidAssessment(f"weak_points must be a list of strings, got {raw!r}")

    points: list[str] = []
    for point in raw:
        if not isinstance(point, str):
            raise InvalidAssessment(f"Weak point must be a string, got {point!r}")
        point = point.strip()
        if point and point not in points:
            points.append(point)
    return points


class MasteryLoopEngine:
    """
    Finite-state machine for topic remediation.

    Sessions are plain values: ``advance`` returns an updated copy and
    leaves its input untouched, so a rejected call changes nothing.

    Completed topics accumulate in ``mastery_history``. The list is not
    keyed by learner and only grows, so a long-lived host should take the
    records with ``drain_mastery_history`` after each close and persist
    them through ``StateStore.append_mastery_record``.
    """

    def __init__(
        self,
        observers: Iterable[LoopObserver] = (),
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Args:
            observers: Content/assessment providers to notify on transitions
            clock: Timestamp source (UTC now by default)
        """
        self._observers: list[LoopObserver] = list(observers)
        self._clock = clock or _utc_now
        self.mastery_history: list[MasteryRecord] = []

    def add_observer(self, observer: LoopObserver) -> None:
        self._observers.append(observer)

    def drain_mastery_history(self) -> list[MasteryRecord]:
        """Return the recorded masteries and forget them."""
        records, self.mastery_history = self.mastery_history, []
        return records

    def start(self, topic: str) -> MasteryLoopSession:
        """Open a remediation session at the diagnostic assessment."""
        topic = (topic or "").strip()
        if not topic:
            raise InvalidAssessment("A mastery loop needs a non-empty topic")

        session = MasteryLoopSession(
            session_id=uuid.uuid4().hex[:8],
            topic=topic,
            started_at=self._clock(),
        )
        logger.info(f"[MasteryLoop] Starting loop {session.session_id} for topic: {topic}")
        self._notify(session)
        return session

    def advance(
        self,
        session: MasteryLoopSession,
        phase: LoopPhase | str,
        data: Mapping[str, Any] | None = None,
    ) -> MasteryLoopSession:
        """
        Complete the current phase and move to the next one.

        Args:
            session: Current session value
            phase: Phase the caller believes it is completing
            data: ``{"score", "weak_points"}`` for assess_initial,
                ``{"score"}`` for assess_final, nothing otherwise

        Returns:
            Updated copy of the session

        Raises:
            PhaseMismatch: If ``phase`` is not the session's phase, or the
                session is already closed
            InvalidAssessment: If required assessment data is missing or invalid
        """
        phase = self._coerce_phase(session, phase)
        if session.closed:
            raise PhaseMismatch(
                session.phase.value, phase.value,
                message=f"Session {session.session_id} is closed; start a new loop",
            )
        if phase != session.phase:
            raise PhaseMismatch(session.phase.value, phase.value)

        data = data or {}
        now = self._clock()
        score: int | None = None
        weak_points = list(session.weak_points)
        updates: dict[str, Any] = {}

        if phase == LoopPhase.ASSESS_INITIAL:
            score = _require_score(data)
            weak_points = _weak_points(data)
            updates["initial_score"] = score
            next_phase = LoopPhase.CONTENT_PRIMARY

        elif phase == LoopPhase.CONTENT_PRIMARY:
            next_phase = LoopPhase.CONTENT_SECONDARY

        elif phase == LoopPhase.CONTENT_SECONDARY:
            next_phase = LoopPhase.ASSESS_FINAL

        elif phase == LoopPhase.ASSESS_FINAL:
            score = _require_score(data)
            updates["current_score"] = score
            if score >= MASTERY_THRESHOLD:
                next_phase = LoopPhase.MASTERY
            else:
                # Loop back for another round of instruction
                updates["attempt"] = session.attempt + 1
                next_phase = LoopPhase.CONTENT_PRIMARY

        else:
            next_phase = LoopPhase.MASTERY
            updates["closed"] = True

        updated = replace(
            session,
            phase=next_phase,
            weak_points=weak_points,
            history=[*session.history, LoopEvent(phase=phase, score=score, timestamp=now)],
            **updates,
        )

        if updated.closed:
            self._record_mastery(updated, now)
            return updated

        if phase == LoopPhase.ASSESS_FINAL and next_phase == LoopPhase.CONTENT_PRIMARY:
            logger.info(
                f"[MasteryLoop] {session.topic!r} scored {score} < {MASTERY_THRESHOLD}; "
                f"starting attempt {updated.attempt}"
            )
        else:
            logger.debug(f"[MasteryLoop] {session.session_id}: {phase.value} -> {next_phase.value}")

        self._notify(updated)
        return updated

    def exit(self, session: MasteryLoopSession) -> None:
        """Abandon a session. Always legal; nothing is recorded."""
        logger.info(
            f"[MasteryLoop] Exiting loop {session.session_id} ({session.topic!r}) "
            f"in phase {session.phase.value} after {session.attempt} attempt(s)"
        )

    def _coerce_phase(self, session: MasteryLoopSession, phase: LoopPhase | str) -> LoopPhase:
        try:
            return LoopPhase(phase)
        except ValueError:
            raise PhaseMismatch(session.phase.value, str(phase)) from None

    def _record_mastery(self, session: MasteryLoopSession, achieved_at: datetime) -> None:
        record = MasteryRecord(topic=session.topic, attempts=session.attempt, achieved_at=achieved_at)
        self.mastery_history.append(record)
        logger.info(
            f"[MasteryLoop] Mastered {session.topic!r} in {session.attempt} attempt(s) "
            f"({session.initial_score} -> {session.current_score})"
        )

    def _notify(self, session: MasteryLoopSession) -> None:
        for observer in self._observers:
            observer.phase_entered(session)
