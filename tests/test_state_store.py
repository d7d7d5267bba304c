"""Tests for the state store: proves snapshots restore a running election."""

import json

import pytest

from ballot.controller import BallotController
from ballot.models.election import ElectionState, WorkflowStatus
from ballot.persistence.state_store import StateStore


def _mid_vote_controller() -> BallotController:
    controller = BallotController(authority="admin")
    controller.register_voter("admin", "alice")
    controller.register_voter("admin", "bob")
    controller.advance_phase("admin")
    controller.register_proposal("alice", "Park")
    controller.register_proposal("bob", "Library")
    controller.advance_phase("admin")
    controller.advance_phase("admin")
    controller.vote("alice", 1)
    return controller


class TestStateStore:
    def test_load_missing_returns_none(self, tmp_path) -> None:
        store = StateStore(tmp_path / "state.json")
        assert store.exists() is False
        assert store.load() is None

    def test_round_trip(self, tmp_path) -> None:
        store = StateStore(tmp_path / "state.json")
        state = _mid_vote_controller().snapshot()
        store.save(state)
        assert store.load() == state

    def test_restored_controller_continues_election(self, tmp_path) -> None:
        store = StateStore(tmp_path / "state.json")
        store.save(_mid_vote_controller().snapshot())

        restored = BallotController(authority="admin", state=store.load())
        assert restored.status == WorkflowStatus.VOTING_SESSION_STARTED
        restored.vote("bob", 1)
        restored.advance_phase("admin")
        restored.advance_phase("admin")
        winner = restored.get_winner()
        assert winner.description == "Library"
        assert winner.vote_count == 2

    def test_no_temp_file_left_behind(self, tmp_path) -> None:
        store = StateStore(tmp_path / "state.json")
        store.save(ElectionState(authority="admin"))
        assert sorted(p.name for p in tmp_path.iterdir()) == ["state.json"]

    def test_corrupt_file_rejected(self, tmp_path) -> None:
        path = tmp_path / "state.json"
        path.write_text("{broken", encoding="utf-8")
        with pytest.raises(ValueError):
            StateStore(path).load()

    def test_inconsistent_counts_rejected(self, tmp_path) -> None:
        path = tmp_path / "state.json"
        data = _mid_vote_controller().snapshot().to_dict()
        data["votes_cast"] = 5
        path.write_text(json.dumps(data), encoding="utf-8")
        with pytest.raises(ValueError, match="Inconsistent"):
            StateStore(path).load()

    def test_missing_key_rejected(self, tmp_path) -> None:
        path = tmp_path / "state.json"
        data = ElectionState(authority="admin").to_dict()
        del data["status"]
        path.write_text(json.dumps(data), encoding="utf-8")
        with pytest.raises(ValueError, match="Malformed"):
            StateStore(path).load()
