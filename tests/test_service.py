"""Tests for the ballot service: proves typed results and durable restarts."""

from pathlib import Path

import pytest

from ballot.persistence.event_log import EventKind, EventLog
from ballot.persistence.state_store import StateStore
from ballot.policy.resolver import PolicyResolver
from ballot.service import BallotService


CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


@pytest.fixture
def resolver() -> PolicyResolver:
    return PolicyResolver.from_config_dir(CONFIG_DIR)


@pytest.fixture
def service(resolver: PolicyResolver) -> BallotService:
    return BallotService(resolver)


def _durable(resolver: PolicyResolver, data_dir: Path) -> BallotService:
    return BallotService(
        resolver,
        event_log=EventLog(storage_path=data_dir / "events.jsonl"),
        state_store=StateStore(data_dir / "state.json"),
    )


def _run_election(service: BallotService) -> None:
    assert service.create_election("admin").success
    assert service.register_voter("admin", "alice").success
    assert service.register_voter("admin", "bob").success
    assert service.advance_phase("admin").success
    assert service.register_proposal("alice", "Park").success
    assert service.register_proposal("bob", "Library").success
    assert service.advance_phase("admin").success
    assert service.advance_phase("admin").success
    assert service.vote("alice", 1).success
    assert service.vote("bob", 1).success
    assert service.advance_phase("admin").success
    assert service.advance_phase("admin").success


class TestLifecycle:
    def test_full_election(self, service: BallotService) -> None:
        _run_election(service)
        result = service.get_winner()
        assert result.success
        assert result.data == {"proposal_id": 1, "description": "Library", "vote_count": 2}

    def test_operation_data(self, service: BallotService) -> None:
        service.create_election("admin")
        result = service.register_voter("admin", "alice")
        assert result.data == {"voter": "alice", "voter_count": 1}
        result = service.advance_phase("admin")
        assert result.data == {"status": "proposals_registration_started"}
        result = service.register_proposal("alice", "Park")
        assert result.data == {"proposal_id": 0, "proposal_count": 1}

    def test_create_twice_fails(self, service: BallotService) -> None:
        assert service.create_election("admin").success
        result = service.create_election("admin")
        assert not result.success
        assert result.data["error"] == "ElectionExists"

    def test_blank_authority_fails(self, service: BallotService) -> None:
        result = service.create_election("")
        assert not result.success
        assert result.data["error"] == "ValueError"
        assert service.controller is None

    def test_operations_need_an_election(self, service: BallotService) -> None:
        for result in (
            service.register_voter("admin", "alice"),
            service.advance_phase("admin"),
            service.get_winner(),
            service.commitment(),
        ):
            assert not result.success
            assert result.data["error"] == "NoElection"


class TestErrorsAsResults:
    def test_domain_error_kind_reported(self, service: BallotService) -> None:
        service.create_election("admin")
        result = service.register_voter("alice", "bob")
        assert not result.success
        assert result.data["error"] == "Unauthorized"
        assert result.errors

    def test_not_enough_voters(self, service: BallotService) -> None:
        service.create_election("admin")
        result = service.advance_phase("admin")
        assert result.data["error"] == "NotEnoughVoters"

    def test_winner_before_tally(self, service: BallotService) -> None:
        service.create_election("admin")
        assert service.get_winner().data["error"] == "InvalidPhase"

    def test_unknown_proposal(self, service: BallotService) -> None:
        service.create_election("admin")
        service.register_voter("admin", "alice")
        service.advance_phase("admin")
        service.register_proposal("alice", "Park")
        service.advance_phase("admin")
        service.advance_phase("admin")
        result = service.vote("alice", 7)
        assert result.data["error"] == "UnknownProposal"


class TestStatusAndCommitment:
    def test_status_without_election(self, service: BallotService) -> None:
        assert service.status()["election"] is None

    def test_status_reports_blockers(self, service: BallotService) -> None:
        service.create_election("admin")
        status = service.status()
        assert status["election"]["status"] == "registering_voters"
        assert status["election"]["advance_blockers"] == ["No voters registered"]
        assert status["election"]["terminal"] is False

    def test_commitment_after_tally(self, service: BallotService) -> None:
        _run_election(service)
        result = service.commitment()
        assert result.success
        assert len(result.data["commitment_hash"]) == 64
        assert result.data["payload"]["winning_proposal_id"] == 1

    def test_commitment_before_tally(self, service: BallotService) -> None:
        service.create_election("admin")
        result = service.commitment()
        assert result.data["error"] == "InvalidPhase"

    def test_anchor_requires_tallied_election(self, service: BallotService) -> None:
        service.create_election("admin")
        result = service.anchor("http://localhost:8545", "0x" + "11" * 32)
        assert not result.success
        assert result.data["error"] == "InvalidPhase"


class TestPersistence:
    def test_restart_resumes_election(self, resolver: PolicyResolver, tmp_path) -> None:
        first = _durable(resolver, tmp_path)
        first.create_election("admin")
        first.register_voter("admin", "alice")
        first.advance_phase("admin")

        second = _durable(resolver, tmp_path)
        status = second.status()
        assert status["election"]["status"] == "proposals_registration_started"
        assert status["events"] == 2
        assert status["persistence_degraded"] is False
        assert second.register_proposal("alice", "Park").success

    def test_restart_after_full_election(self, resolver: PolicyResolver, tmp_path) -> None:
        _run_election(_durable(resolver, tmp_path))
        restarted = _durable(resolver, tmp_path)
        assert restarted.get_winner().data["description"] == "Library"
        assert (
            restarted.commitment().data["commitment_hash"]
            == _durable(resolver, tmp_path).commitment().data["commitment_hash"]
        )

    def test_stale_snapshot_rebuilt_from_log(self, resolver: PolicyResolver, tmp_path) -> None:
        service = _durable(resolver, tmp_path)
        service.create_election("admin")
        service.register_voter("admin", "alice")
        snapshot = (tmp_path / "state.json").read_text(encoding="utf-8")
        service.register_voter("admin", "bob")
        # Simulate a snapshot write that never happened
        (tmp_path / "state.json").write_text(snapshot, encoding="utf-8")

        restarted = _durable(resolver, tmp_path)
        status = restarted.status()
        assert status["recovered_from_event_log"] is True
        assert status["persistence_degraded"] is False
        assert status["election"]["voter_count"] == 2
        # Snapshot refreshed on disk
        assert StateStore(tmp_path / "state.json").load().voter_count == 2
        assert restarted.register_voter("admin", "bob").data["error"] == "AlreadyRegistered"

    def test_stale_snapshot_cannot_reopen_a_vote(
        self, resolver: PolicyResolver, tmp_path
    ) -> None:
        service = _durable(resolver, tmp_path)
        service.create_election("admin")
        service.register_voter("admin", "alice")
        service.advance_phase("admin")
        service.register_proposal("alice", "Park")
        service.advance_phase("admin")
        service.advance_phase("admin")
        snapshot = (tmp_path / "state.json").read_text(encoding="utf-8")
        assert service.vote("alice", 0).success
        (tmp_path / "state.json").write_text(snapshot, encoding="utf-8")

        restarted = _durable(resolver, tmp_path)
        second = restarted.vote("alice", 0)
        assert not second.success
        assert second.data["error"] == "AlreadyVoted"
        assert restarted.status()["proposals"][0]["vote_count"] == 1
        log = EventLog(storage_path=tmp_path / "events.jsonl")
        assert len(log.events(EventKind.VOTED)) == 1

    def test_failed_snapshot_write_recovered_on_restart(
        self, resolver: PolicyResolver, tmp_path, monkeypatch
    ) -> None:
        service = _durable(resolver, tmp_path)
        service.create_election("admin")
        service.register_voter("admin", "alice")
        service.advance_phase("admin")
        service.register_proposal("alice", "Park")
        service.advance_phase("admin")
        service.advance_phase("admin")

        original_save = StateStore.save

        def _fail(self, state) -> None:
            raise OSError("disk full")

        monkeypatch.setattr(StateStore, "save", _fail)
        assert "warning" in service.vote("alice", 0).data
        monkeypatch.setattr(StateStore, "save", original_save)

        restarted = _durable(resolver, tmp_path)
        assert restarted.status()["election"]["votes_cast"] == 1
        assert restarted.vote("alice", 0).data["error"] == "AlreadyVoted"

    def test_missing_snapshot_rebuilt_from_log(self, resolver: PolicyResolver, tmp_path) -> None:
        service = _durable(resolver, tmp_path)
        service.create_election("admin")
        service.register_voter("admin", "alice")
        service.advance_phase("admin")
        (tmp_path / "state.json").unlink()

        restarted = _durable(resolver, tmp_path)
        status = restarted.status()
        assert status["election"]["authority"] == "admin"
        assert status["election"]["status"] == "proposals_registration_started"
        assert restarted.create_election("mallory").data["error"] == "ElectionExists"

    def test_snapshot_ahead_of_log_refused(self, resolver: PolicyResolver, tmp_path) -> None:
        service = _durable(resolver, tmp_path)
        service.create_election("admin")
        service.register_voter("admin", "alice")
        (tmp_path / "events.jsonl").write_text("", encoding="utf-8")

        with pytest.raises(ValueError, match="ahead of the event log"):
            _durable(resolver, tmp_path)

    def test_snapshot_refresh_failure_is_degraded(
        self, resolver: PolicyResolver, tmp_path, monkeypatch
    ) -> None:
        service = _durable(resolver, tmp_path)
        service.create_election("admin")
        service.register_voter("admin", "alice")
        snapshot = (tmp_path / "state.json").read_text(encoding="utf-8")
        service.register_voter("admin", "bob")
        (tmp_path / "state.json").write_text(snapshot, encoding="utf-8")

        def _fail(self, state) -> None:
            raise OSError("read-only filesystem")

        monkeypatch.setattr(StateStore, "save", _fail)
        restarted = _durable(resolver, tmp_path)
        status = restarted.status()
        assert status["persistence_degraded"] is True
        assert status["election"]["voter_count"] == 2

    def test_snapshot_write_failure_is_warning(
        self, resolver: PolicyResolver, tmp_path, monkeypatch
    ) -> None:
        service = _durable(resolver, tmp_path)
        service.create_election("admin")

        def _fail(self, state) -> None:
            raise OSError("disk full")

        monkeypatch.setattr(StateStore, "save", _fail)
        result = service.register_voter("admin", "alice")
        assert result.success
        assert "Persistence degraded" in result.data["warning"]
        assert service.status()["persistence_degraded"] is True
        assert service.status()["election"]["voter_count"] == 1

    def test_create_rolls_back_when_snapshot_fails(
        self, resolver: PolicyResolver, tmp_path, monkeypatch
    ) -> None:
        def _fail(self, state) -> None:
            raise OSError("read-only filesystem")

        monkeypatch.setattr(StateStore, "save", _fail)
        service = _durable(resolver, tmp_path)
        result = service.create_election("admin")
        assert not result.success
        assert service.controller is None
