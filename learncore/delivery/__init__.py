"""
Flashcard delivery: SM-2 scheduling and keyed state persistence.

Components:
- SM2Scheduler: Spaced repetition algorithm
- RetentionState: Per-card memory state
- StateStore: Typed persistence over a KeyedStore backend
"""

from .models import CardStatus, DeckSummary, RetentionState
from .scheduler import SM2Config, SM2Scheduler, due_cards, is_due, summarize_deck
from .state_store import InMemoryStore, JsonFileStore, KeyedStore, StateStore

__all__ = [
    # Models
    "CardStatus",
    "DeckSummary",
    "RetentionState",
    # Scheduling
    "SM2Config",
    "SM2Scheduler",
    "due_cards",
    "is_due",
    "summarize_deck",
    # Persistence
    "KeyedStore",
    "InMemoryStore",
    "JsonFileStore",
    "StateStore",
]
