"""
Keyed State Store for the learning core.

The core only needs a durable map from an opaque key to a JSON-able dict.
Two backends are provided:
- InMemoryStore: process-local dict (tests, embedding in a web worker)
- JsonFileStore: one JSON file per key under a directory (CLI default)

StateStore wraps a backend with typed accessors for flashcard retention
state, mastery loop sessions and weak points. No locking is done; callers
keep at most one write in flight per card or session.
"""

from __future__ import annotations

import hashlib
import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from loguru import logger

from learncore.adaptive.models import MasteryLoopSession, MasteryRecord
from learncore.adaptive.weak_points import WeakPoint
from learncore.delivery.models import RetentionState

CARD_PREFIX = "card:"
LOOP_PREFIX = "loop:"
HISTORY_PREFIX = "history:"
WEAK_POINTS_PREFIX = "weakpoints:"


class KeyedStore(Protocol):
    """Minimal durable map interface."""

    def get(self, key: str) -> dict | None: ...

    def set(self, key: str, value: dict) -> None: ...

    def delete(self, key: str) -> bool: ...

    def keys(self) -> list[str]: ...


# =============================================================================
# Backends
# =============================================================================


class InMemoryStore:
    """Dict-backed store. Values are copied through JSON on the way in and out."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> dict | None:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: dict) -> None:
        self._data[key] = json.dumps(value)

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self) -> list[str]:
        return sorted(self._data)


class JsonFileStore:
    """
    Stores each key as ``<directory>/<sha256 of key>.json``.

    File names have a fixed length whatever the key holds (long or non-ASCII
    topics included); the key itself is kept inside the file as
    ``{"key": ..., "value": ...}``. Unreadable files are reported and
    treated as missing.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory).expanduser()
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}.json"

    def _read(self, filepath: Path) -> dict | None:
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                record = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring corrupted state file {filepath}: {e}")
            return None
        if not isinstance(record, dict) or "key" not in record or "value" not in record:
            logger.warning(f"Ignoring state file without key/value envelope: {filepath}")
            return None
        return record

    def get(self, key: str) -> dict | None:
        filepath = self._path(key)
        if not filepath.exists():
            return None
        record = self._read(filepath)
        return record["value"] if record is not None else None

    def set(self, key: str, value: dict) -> None:
        filepath = self._path(key)
        tmp_path = filepath.with_suffix(".json.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump({"key": key, "value": value}, f, indent=2, ensure_ascii=False)
        except Exception:
            tmp_path.unlink(missing_ok=True)
            raise
        tmp_path.replace(filepath)

    def delete(self, key: str) -> bool:
        filepath = self._path(key)
        if filepath.exists():
            filepath.unlink()
            return True
        return False

    def keys(self) -> list[str]:
        keys = []
        for filepath in self.directory.glob("*.json"):
            record = self._read(filepath)
            if record is not None:
                keys.append(record["key"])
        return sorted(keys)


# =============================================================================
# State Store
# =============================================================================


def card_key(card_id: str) -> str:
    return f"{CARD_PREFIX}{card_id}"


def loop_key(learner_id: str, topic: str) -> str:
    return f"{LOOP_PREFIX}{learner_id}:{topic.strip().lower()}"


def history_key(learner_id: str) -> str:
    return f"{HISTORY_PREFIX}{learner_id}"


def weak_points_key(learner_id: str) -> str:
    return f"{WEAK_POINTS_PREFIX}{learner_id}"


class StateStore:
    """
    Typed persistence for retention state and mastery loop sessions.

    Handles:
    - RetentionState per flashcard, keyed by card id
    - MasteryLoopSession per learner/topic pair
    - Mastered topics per learner
    - Weak point tracking per learner
    """

    def __init__(self, backend: KeyedStore | None = None):
        """
        Args:
            backend: Keyed store implementation (in-memory if None)
        """
        self.backend = backend if backend is not None else InMemoryStore()
        logger.debug(f"StateStore initialized with {type(self.backend).__name__}")

    # --- Flashcards -----------------------------------------------------------

    def get_card(self, card_id: str) -> RetentionState | None:
        data = self.backend.get(card_key(card_id))
        if data is None:
            return None
        try:
            return RetentionState.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding unreadable retention state for {card_id}: {e}")
            return None

    def get_or_create_card(self, card_id: str) -> RetentionState:
        """Stored state, or a fresh NEW card if none exists."""
        return self.get_card(card_id) or RetentionState.new(card_id)

    def save_card(self, state: RetentionState) -> None:
        self.backend.set(card_key(state.card_id), state.to_dict())

    def delete_card(self, card_id: str) -> bool:
        return self.backend.delete(card_key(card_id))

    def all_cards(self) -> list[RetentionState]:
        cards = []
        for key in self.backend.keys():
            if key.startswith(CARD_PREFIX):
                card = self.get_card(key[len(CARD_PREFIX):])
                if card is not None:
                    cards.append(card)
        return cards

    # --- Mastery loop sessions --------------------------------------------------

    def get_session(self, learner_id: str, topic: str) -> MasteryLoopSession | None:
        data = self.backend.get(loop_key(learner_id, topic))
        if data is None:
            return None
        try:
            return MasteryLoopSession.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding unreadable loop session for {learner_id}/{topic}: {e}")
            return None

    def save_session(self, learner_id: str, session: MasteryLoopSession) -> None:
        self.backend.set(loop_key(learner_id, session.topic), session.to_dict())

    def delete_session(self, learner_id: str, topic: str) -> bool:
        return self.backend.delete(loop_key(learner_id, topic))

    def get_mastery_history(self, learner_id: str) -> list[MasteryRecord]:
        data = self.backend.get(history_key(learner_id)) or {}
        return [MasteryRecord.from_dict(r) for r in data.get("records", [])]

    def append_mastery_record(self, learner_id: str, record: MasteryRecord) -> None:
        records = [r.to_dict() for r in self.get_mastery_history(learner_id)]
        records.append(record.to_dict())
        self.backend.set(history_key(learner_id), {"records": records})

    # --- Weak points ------------------------------------------------------------

    def get_weak_points(self, learner_id: str) -> list[WeakPoint]:
        data = self.backend.get(weak_points_key(learner_id)) or {}
        try:
            return [WeakPoint.from_dict(p) for p in data.get("weak_points", [])]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding unreadable weak points for {learner_id}: {e}")
            return []

    def save_weak_points(self, learner_id: str, weak_points: list[WeakPoint]) -> None:
        self.backend.set(weak_points_key(learner_id), {
            "weak_points": [p.to_dict() for p in weak_points],
            "updated_at": datetime.now(UTC).isoformat(),
        })

    def clear_weak_points(self, learner_id: str) -> bool:
        return self.backend.delete(weak_points_key(learner_id))
