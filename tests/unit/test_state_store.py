"""
Unit tests for keyed state persistence.

Tests:
- InMemoryStore and JsonFileStore backends
- Digest file names, corrupted files and failed writes
- StateStore typed accessors for cards, sessions, mastery history and weak points
"""

import hashlib
import json

import pytest

from learncore.adaptive.mastery_loop import MasteryLoopEngine
from learncore.adaptive.models import LoopPhase, MasteryRecord
from learncore.adaptive.weak_points import QuizResult, WeakPointTracker
from learncore.delivery.models import CardStatus, RetentionState
from learncore.delivery.scheduler import SM2Scheduler
from learncore.delivery.state_store import (
    InMemoryStore,
    JsonFileStore,
    StateStore,
    card_key,
    history_key,
    loop_key,
)


@pytest.fixture(params=["memory", "files"])
def backend(request, tmp_path):
    if request.param == "memory":
        return InMemoryStore()
    return JsonFileStore(tmp_path / "state")


class TestBackends:

    def test_set_get_delete(self, backend):
        backend.set("card:c1", {"card_id": "c1", "repetitions": 2})

        assert backend.get("card:c1") == {"card_id": "c1", "repetitions": 2}
        assert backend.keys() == ["card:c1"]
        assert backend.delete("card:c1") is True
        assert backend.get("card:c1") is None
        assert backend.delete("card:c1") is False

    def test_missing_key(self, backend):
        assert backend.get("nope") is None

    def test_returned_value_is_a_copy(self, backend):
        backend.set("k", {"items": [1]})
        backend.get("k")["items"].append(2)
        assert backend.get("k") == {"items": [1]}

    def test_overwrite(self, backend):
        backend.set("k", {"v": 1})
        backend.set("k", {"v": 2})
        assert backend.get("k") == {"v": 2}
        assert backend.keys() == ["k"]

    def test_keys_with_special_characters(self, backend):
        key = "loop:ana/b:newton's laws?"
        backend.set(key, {"ok": True})

        assert backend.keys() == [key]
        assert backend.get(key) == {"ok": True}


class TestJsonFileStore:

    def test_files_land_in_directory(self, tmp_path):
        store = JsonFileStore(tmp_path / "nested" / "state")
        store.set("card:c1", {"card_id": "c1"})

        files = list((tmp_path / "nested" / "state").glob("*.json"))
        assert len(files) == 1
        assert json.loads(files[0].read_text(encoding="utf-8")) == {"key": "card:c1", "value": {"card_id": "c1"}}

    def test_file_name_is_key_digest(self, tmp_path):
        store = JsonFileStore(tmp_path)
        store.set("a", {"x": 1})

        assert [p.name for p in tmp_path.iterdir()] == [hashlib.sha256(b"a").hexdigest() + ".json"]

    def test_long_non_ascii_topic(self, tmp_path, fixed_clock):
        store = StateStore(JsonFileStore(tmp_path))
        topic = "न्यूटन के गति के नियम और उनके अनुप्रयोग " * 4
        session = MasteryLoopEngine(clock=fixed_clock).start(topic)

        store.save_session("ana", session)

        assert store.get_session("ana", topic) == session
        assert store.backend.keys() == [loop_key("ana", session.topic)]
        assert all(len(p.name) < 100 for p in tmp_path.iterdir())

    def test_corrupted_file_treated_as_missing(self, tmp_path):
        store = JsonFileStore(tmp_path)
        store.set("card:c1", {"card_id": "c1"})
        path = next(tmp_path.glob("*.json"))
        path.write_text("{not json", encoding="utf-8")

        assert store.get("card:c1") is None
        assert store.keys() == []

    def test_file_without_envelope_ignored(self, tmp_path):
        store = JsonFileStore(tmp_path)
        (tmp_path / "stray.json").write_text('{"card_id": "c1"}', encoding="utf-8")
        store.set("card:c2", {"card_id": "c2"})

        assert store.keys() == ["card:c2"]

    def test_failed_write_leaves_no_temp_file(self, tmp_path):
        store = JsonFileStore(tmp_path)
        store.set("k", {"v": 1})

        with pytest.raises(TypeError):
            store.set("k", {"v": object()})

        assert not list(tmp_path.glob("*.tmp"))
        assert store.get("k") == {"v": 1}

    def test_survives_reopen(self, tmp_path):
        JsonFileStore(tmp_path).set("history:ana", {"records": []})
        assert JsonFileStore(tmp_path).get("history:ana") == {"records": []}


class TestKeys:

    def test_key_formats(self):
        assert card_key("c1") == "card:c1"
        assert loop_key("ana", "  Newton's Laws ") == "loop:ana:newton's laws"
        assert history_key("ana") == "history:ana"


class TestStateStore:

    def test_default_backend_is_memory(self):
        assert isinstance(StateStore().backend, InMemoryStore)

    def test_card_round_trip(self, backend, review_day):
        store = StateStore(backend)
        card = SM2Scheduler().schedule(RetentionState.new("c1", review_day), 5, reviewed_at=review_day)
        store.save_card(card)

        assert store.get_card("c1") == card
        assert store.get_card("missing") is None

    def test_get_or_create_card(self, backend):
        store = StateStore(backend)
        card = store.get_or_create_card("fresh")

        assert card.status == CardStatus.NEW
        assert store.get_card("fresh") is None  # not persisted until saved

    def test_all_cards_ignores_other_keys(self, backend, fixed_clock):
        store = StateStore(backend)
        store.save_card(RetentionState.new("c1"))
        store.save_card(RetentionState.new("c2"))
        store.append_mastery_record("ana", MasteryRecord("Optics", 1, fixed_clock()))

        assert sorted(c.card_id for c in store.all_cards()) == ["c1", "c2"]

    def test_delete_card(self, backend):
        store = StateStore(backend)
        store.save_card(RetentionState.new("c1"))

        assert store.delete_card("c1")
        assert store.all_cards() == []

    def test_unreadable_card_discarded(self, backend):
        backend.set(card_key("bad"), {"card_id": "bad", "status": "bogus"})
        assert StateStore(backend).get_card("bad") is None

    def test_session_round_trip(self, backend, fixed_clock):
        store = StateStore(backend)
        engine = MasteryLoopEngine(clock=fixed_clock)
        session = engine.start("Newton's Laws")
        session = engine.advance(session, LoopPhase.ASSESS_INITIAL, {"score": 55, "weak_points": ["inertia"]})

        store.save_session("ana", session)
        loaded = store.get_session("ana", "newton's laws")

        assert loaded == session
        assert store.get_session("ben", "Newton's Laws") is None
        assert store.delete_session("ana", "Newton's Laws")
        assert store.get_session("ana", "Newton's Laws") is None

    def test_mastery_history_appends(self, backend, fixed_clock):
        store = StateStore(backend)
        first = MasteryRecord("Optics", 1, fixed_clock())
        second = MasteryRecord("Gravity", 3, fixed_clock())

        assert store.get_mastery_history("ana") == []
        store.append_mastery_record("ana", first)
        store.append_mastery_record("ana", second)

        assert store.get_mastery_history("ana") == [first, second]
        assert store.get_mastery_history("ben") == []

    def test_weak_points_round_trip(self, backend, fixed_clock):
        store = StateStore(backend)
        tracker = WeakPointTracker(clock=fixed_clock)
        tracker.add_quiz_results([
            QuizResult("Inertia", "Physics", False),
            QuizResult("Inertia", "Physics", True),
            QuizResult("Optics", "Physics", True, chapter="Light"),
        ])

        store.save_weak_points("ana", tracker.weak_points)

        assert store.get_weak_points("ana") == tracker.weak_points
        assert store.get_weak_points("ben") == []
        assert store.clear_weak_points("ana")
        assert store.get_weak_points("ana") == []
