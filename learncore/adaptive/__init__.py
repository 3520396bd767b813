"""
Adaptive Learning Engine.

Mastery-based remediation: a learner is diagnosed, taught, and re-tested
until the re-assessment reaches the mastery threshold.

Components:
- MasteryLoopEngine: Phase state machine and mastery history
- WeakPointTracker: Per-topic quiz scores and trends feeding the loop
- Models: LoopPhase, LoopEvent, MasteryLoopSession, MasteryRecord, WeakPoint
"""
from learncore.adaptive.models import (
    MASTERY_THRESHOLD,
    LoopEvent,
    LoopPhase,
    MasteryLoopSession,
    MasteryRecord,
)
from learncore.adaptive.mastery_loop import LoopObserver, MasteryLoopEngine
from learncore.adaptive.weak_points import (
    QuizResult,
    ScoreSnapshot,
    Trend,
    WeakPoint,
    WeakPointTracker,
    calculate_trend,
)

__all__ = [
    "MasteryLoopEngine",
    "LoopObserver",
    "LoopPhase",
    "LoopEvent",
    "MasteryLoopSession",
    "MasteryRecord",
    "MASTERY_THRESHOLD",
    "WeakPointTracker",
    "WeakPoint",
    "QuizResult",
    "ScoreSnapshot",
    "Trend",
    "calculate_trend",
]
