"""Ballot service: facade over one election and its persistence.

This is the primary interface for programmatic and CLI access. It wires:
- The BallotController (workflow, whitelist, votes, winner)
- The EventLog (append-only audit trail, optionally JSONL-backed)
- The StateStore (JSON snapshot for restart)
- The PolicyResolver (config-driven election parameters)

All operations produce typed results; domain errors never escape as
exceptions. Ordering on every mutation:
1. Controller validates and makes the event durable, then mutates.
2. Snapshot is persisted. If that fails the audit trail is already
   authoritative, so the in-memory state is kept and a warning returned.

On construction a snapshot that lags the event log is discarded and the
election is rebuilt by replaying the log, so a stale snapshot can never
reopen a closed choice such as a vote already cast.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ballot.controller import BallotController
from ballot.crypto.anchor import anchor_to_chain
from ballot.crypto.commitment import build_commitment
from ballot.engine.workflow import WorkflowStateMachine
from ballot.errors import BallotError
from ballot.log import get_logger
from ballot.models.election import ElectionState, Proposal
from ballot.persistence.event_log import EventLog
from ballot.persistence.state_store import StateStore
from ballot.policy.resolver import PolicyResolver
from ballot.recovery import log_counts, log_matches_state, rebuild_state, state_counts

logger = get_logger(__name__)


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


def _failure(error: Exception) -> ServiceResult:
    return ServiceResult(
        success=False,
        errors=[str(error)],
        data={"error": type(error).__name__},
    )


def _proposal_data(proposal: Proposal) -> dict[str, Any]:
    return {
        "proposal_id": proposal.proposal_id,
        "description": proposal.description,
        "vote_count": proposal.vote_count,
    }


class BallotService:
    """Election facade.

    Usage:
        resolver = PolicyResolver.from_config_dir(config_dir)
        service = BallotService(resolver)
        service.create_election("admin")
        service.register_voter("admin", "alice")
        service.advance_phase("admin")
        ...

    Persistence (optional):
        service = BallotService(resolver, event_log=log, state_store=store)
        # The election is reloaded from the store on construction.
    """

    def __init__(
        self,
        resolver: PolicyResolver,
        event_log: Optional[EventLog] = None,
        state_store: Optional[StateStore] = None,
    ) -> None:
        self._resolver = resolver
        self._event_log = event_log if event_log is not None else EventLog()
        self._state_store = state_store
        self._controller: Optional[BallotController] = None
        self._persistence_degraded = False
        self._recovered_from_log = False

        if state_store is not None:
            state = state_store.load()
            if state is None and self._event_log.count:
                # Snapshot lost: the first event is always recorded by the authority
                state = ElectionState(
                    authority=self._event_log.events()[0].actor_id,
                    proposal_id_base=resolver.ballot_policy().proposal_id_base,
                )
            if state is not None:
                if not log_matches_state(state, self._event_log):
                    state = self._recover(state)
                self._controller = BallotController(
                    state.authority,
                    policy=resolver.ballot_policy(),
                    event_log=self._event_log,
                    state=state,
                )

    @property
    def controller(self) -> Optional[BallotController]:
        return self._controller

    # ------------------------------------------------------------------
    # Election lifecycle
    # ------------------------------------------------------------------

    def create_election(self, authority: str) -> ServiceResult:
        """Start a new election owned by authority."""
        if self._controller is not None:
            return ServiceResult(
                success=False,
                errors=[f"Election already exists (authority: {self._controller.authority})"],
                data={"error": "ElectionExists"},
            )
        try:
            controller = BallotController(
                authority,
                policy=self._resolver.ballot_policy(),
                event_log=self._event_log,
            )
        except ValueError as e:
            return _failure(e)

        self._controller = controller

        def _rollback() -> None:
            self._controller = None

        err = self._safe_persist(on_rollback=_rollback)
        if err:
            return ServiceResult(success=False, errors=[err], data={"error": "PersistenceFailure"})
        return ServiceResult(
            success=True,
            data={"authority": authority, "status": controller.status.value},
        )

    def register_voter(self, caller: str, voter: str) -> ServiceResult:
        return self._mutate(
            lambda c: c.register_voter(caller, voter),
            lambda c, _: {"voter": voter, "voter_count": c.voter_count},
        )

    def advance_phase(self, caller: str) -> ServiceResult:
        return self._mutate(
            lambda c: c.advance_phase(caller),
            lambda c, status: {"status": status.value},
        )

    def register_proposal(self, caller: str, description: str) -> ServiceResult:
        return self._mutate(
            lambda c: c.register_proposal(caller, description),
            lambda c, pid: {"proposal_id": pid, "proposal_count": c.proposal_count},
        )

    def vote(self, caller: str, proposal_id: int) -> ServiceResult:
        return self._mutate(
            lambda c: c.vote(caller, proposal_id),
            lambda c, _: {"voter": caller, "proposal_id": proposal_id},
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_winner(self) -> ServiceResult:
        if self._controller is None:
            return self._no_election()
        try:
            winner = self._controller.get_winner()
        except BallotError as e:
            return _failure(e)
        return ServiceResult(success=True, data=_proposal_data(winner))

    def status(self) -> dict[str, Any]:
        """Return a summary of the election."""
        if self._controller is None:
            return {"election": None, "events": self._event_log.count}

        state = self._controller.snapshot()
        return {
            "election": {
                "authority": state.authority,
                "status": state.status.value,
                "voter_count": state.voter_count,
                "proposal_count": state.proposal_count,
                "votes_cast": state.votes_cast,
                "terminal": WorkflowStateMachine.is_terminal(state.status),
                "advance_blockers": WorkflowStateMachine.readiness_errors(state),
            },
            "proposals": [_proposal_data(p) for p in state.proposals],
            "events": self._event_log.count,
            "persistence_degraded": self._persistence_degraded,
            "recovered_from_event_log": self._recovered_from_log,
        }

    def commitment(self) -> ServiceResult:
        """Build the audit commitment of a tallied election."""
        if self._controller is None:
            return self._no_election()
        try:
            commitment = build_commitment(self._controller.snapshot(), self._event_log)
        except BallotError as e:
            return _failure(e)
        return ServiceResult(
            success=True,
            data={
                "commitment_hash": commitment.commitment_hash,
                "payload": commitment.payload(),
            },
        )

    def anchor(self, rpc_url: str, private_key: str) -> ServiceResult:
        """Anchor the election commitment on Ethereum."""
        result = self.commitment()
        if not result.success:
            return result
        digest = result.data["commitment_hash"]
        try:
            record = anchor_to_chain(
                digest, rpc_url, private_key, policy=self._resolver.anchor_policy(),
            )
        except (ValueError, OSError) as e:
            return _failure(e)
        return ServiceResult(
            success=True,
            data={
                "commitment_hash": record.commitment_hash,
                "tx_hash": record.tx_hash,
                "block_number": record.block_number,
                "chain_id": record.chain_id,
                "timestamp_utc": record.timestamp_utc,
                "explorer_url": record.explorer_url,
            },
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _mutate(
        self,
        operation: Callable[[BallotController], Any],
        describe: Callable[[BallotController, Any], dict[str, Any]],
    ) -> ServiceResult:
        if self._controller is None:
            return self._no_election()
        try:
            value = operation(self._controller)
        except (BallotError, ValueError) as e:
            return _failure(e)
        except OSError as e:
            return ServiceResult(
                success=False,
                errors=[f"Event log failure: {e}"],
                data={"error": "EventLogFailure"},
            )

        data = describe(self._controller, value)
        warning = self._safe_persist_post_audit()
        if warning:
            data["warning"] = warning
        return ServiceResult(success=True, data=data)

    @staticmethod
    def _no_election() -> ServiceResult:
        return ServiceResult(
            success=False,
            errors=["No election exists; create one first"],
            data={"error": "NoElection"},
        )

    def _persist_state(self) -> None:
        if self._state_store is None or self._controller is None:
            return
        self._state_store.save(self._controller.snapshot())

    def _safe_persist(
        self,
        on_rollback: Optional[Callable[[], None]] = None,
    ) -> Optional[str]:
        """Persist before any audit event exists. Rolls back on failure."""
        try:
            self._persist_state()
            return None
        except OSError as e:
            if on_rollback is not None:
                on_rollback()
            return f"Persistence failure: {e}"

    def _safe_persist_post_audit(self) -> Optional[str]:
        """Persist after the event is durable.

        MUST NOT roll back: the event log already records the change.
        On failure the snapshot is stale and a warning is returned.
        """
        try:
            self._persist_state()
            return None
        except OSError as e:
            self._persistence_degraded = True
            logger.warning("state_store_write_failed", error=str(e))
            return f"Persistence degraded: {e}; change is in the event log but the snapshot is stale"

    def _recover(self, stale: ElectionState) -> ElectionState:
        """Rebuild state from the event log and refresh the snapshot.

        If the refreshed snapshot cannot be written the rebuilt state is
        still used and persistence is flagged as degraded.
        """
        logger.warning(
            "state_store_out_of_sync",
            event_count=self._event_log.count,
            snapshot_votes_cast=stale.votes_cast,
        )
        logged = log_counts(self._event_log)
        if any(s > n for s, n in zip(state_counts(stale), logged)):
            raise ValueError("State snapshot is ahead of the event log; refusing to load")
        state = rebuild_state(self._event_log, stale.authority, stale.proposal_id_base)
        self._recovered_from_log = True
        logger.info("state_rebuilt_from_event_log", event_count=self._event_log.count)
        try:
            self._state_store.save(state)
        except OSError as e:
            self._persistence_degraded = True
            logger.warning("state_store_write_failed", error=str(e))
        return state
