"""Ballot controller: one authority, one election, one vote per voter.

Workflow:
    REGISTERING_VOTERS → PROPOSALS_REGISTRATION_STARTED
    → PROPOSALS_REGISTRATION_ENDED → VOTING_SESSION_STARTED
    → VOTING_SESSION_ENDED → VOTES_TALLIED

Rules:
- Only the authority registers voters and advances the workflow.
- Only registered voters register proposals and vote.
- A voter votes once. There is no revocation.
- The winner pointer moves only when a proposal strictly exceeds the
  current leader, so the first proposal to reach a maximum keeps it.

Every operation is all-or-nothing: guards run to completion before any
mutation, then the event is made durable, then state is updated. A
rejected call changes nothing and records nothing. All calls on one
controller are serialised by a lock.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any, Callable, Optional

from ballot.engine.workflow import WorkflowStateMachine
from ballot.errors import (
    AlreadyRegistered,
    AlreadyVoted,
    BallotError,
    InvalidPhase,
    InvalidProposal,
    NoVotesCast,
    Unauthorized,
    UnknownProposal,
)
from ballot.log import get_logger
from ballot.models.election import (
    UNREGISTERED,
    ElectionState,
    Proposal,
    Voter,
    WorkflowStatus,
)
from ballot.persistence.event_log import EventKind, EventLog, EventRecord
from ballot.policy.resolver import BallotPolicy

logger = get_logger(__name__)

Subscriber = Callable[[EventRecord], None]


def _identity(value: str, role: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{role} identity must be a non-empty string")
    return value


class BallotController:
    """Owns one election's state and the operations that change it.

    Usage:
        controller = BallotController(authority="admin")
        controller.register_voter("admin", "alice")
        controller.advance_phase("admin")
        pid = controller.register_proposal("alice", "Build a park")
        controller.advance_phase("admin")
        controller.advance_phase("admin")
        controller.vote("alice", pid)
        controller.advance_phase("admin")
        controller.advance_phase("admin")
        winner = controller.get_winner()

    Events are appended to the event log (in-memory unless one is
    given) and then delivered to subscribers, in invocation order.
    """

    def __init__(
        self,
        authority: str,
        policy: Optional[BallotPolicy] = None,
        event_log: Optional[EventLog] = None,
        state: Optional[ElectionState] = None,
    ) -> None:
        authority = _identity(authority, "authority")
        self._policy = policy or BallotPolicy()

        if state is None:
            state = ElectionState(
                authority=authority,
                proposal_id_base=self._policy.proposal_id_base,
            )
        elif state.authority != authority:
            raise ValueError(
                f"State belongs to authority {state.authority!r}, not {authority!r}"
            )
        else:
            errors = state.validate()
            if errors:
                raise ValueError("Inconsistent election state: " + "; ".join(errors))

        self._state = state
        self._event_log = event_log if event_log is not None else EventLog()
        # Continue numbering from a persisted log to avoid ID collisions
        self._event_counter = self._event_log.count
        self._subscribers: list[Subscriber] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def authority(self) -> str:
        return self._state.authority

    @property
    def policy(self) -> BallotPolicy:
        return self._policy

    @property
    def event_log(self) -> EventLog:
        return self._event_log

    @property
    def status(self) -> WorkflowStatus:
        with self._lock:
            return self._state.status

    @property
    def voter_count(self) -> int:
        with self._lock:
            return self._state.voter_count

    @property
    def proposal_count(self) -> int:
        with self._lock:
            return self._state.proposal_count

    @property
    def votes_cast(self) -> int:
        with self._lock:
            return self._state.votes_cast

    def snapshot(self) -> ElectionState:
        """Return an independent copy of the full election state."""
        with self._lock:
            return self._state.copy()

    def proposals(self) -> list[Proposal]:
        with self._lock:
            return list(self._state.proposals)

    def get_voter(self, caller: str, voter: str) -> Voter:
        """Look up a whitelist entry. Registered voters only.

        Unknown identities come back as an unregistered Voter.
        """
        with self._lock:
            self._require_voter(caller, "read voters")
            return self._state.voters.get(voter, UNREGISTERED)

    def get_proposal(self, caller: str, proposal_id: int) -> Proposal:
        """Look up one proposal. Registered voters only."""
        with self._lock:
            self._require_voter(caller, "read proposals")
            return self._require_proposal(proposal_id)

    def get_winner(self) -> Proposal:
        """Return the winning proposal once votes are tallied.

        Raises InvalidPhase before VOTES_TALLIED and NoVotesCast if the
        election closed without a single vote.
        """
        with self._lock:
            self._require_status(WorkflowStatus.VOTES_TALLIED, "read the winner")
            if self._state.votes_cast == 0 or self._state.winning_proposal_id is None:
                raise self._rejected(NoVotesCast("No votes were cast"), "get_winner")
            winner = self._state.proposal(self._state.winning_proposal_id)
            if winner is None:
                raise RuntimeError(
                    f"Winner pointer {self._state.winning_proposal_id} names no proposal"
                )
            return winner

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register an event callback. Returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Mutating operations
    # ------------------------------------------------------------------

    def register_voter(self, caller: str, voter: str) -> None:
        """Whitelist a voter. Authority only, during REGISTERING_VOTERS."""
        voter = _identity(voter, "voter")
        with self._lock:
            self._require_authority(caller, "register voters")
            self._require_status(WorkflowStatus.REGISTERING_VOTERS, "register voters")
            if self._state.is_voter(voter):
                raise self._rejected(
                    AlreadyRegistered(f"Voter already registered: {voter}"),
                    "register_voter",
                )

            event = self._record(EventKind.VOTER_REGISTERED, caller, {"voter": voter})
            self._state.voters[voter] = Voter(is_registered=True)

            logger.info("voter_registered", voter=voter, voter_count=self._state.voter_count)
            self._notify(event)

    def advance_phase(self, caller: str) -> WorkflowStatus:
        """Move the workflow exactly one step forward. Authority only.

        Returns the new status.
        """
        with self._lock:
            self._require_authority(caller, "advance the workflow")
            try:
                target = WorkflowStateMachine.validate_advance(self._state)
            except BallotError as e:
                self._rejected(e, "advance_phase")
                raise

            previous = self._state.status
            event = self._record(
                EventKind.WORKFLOW_STATUS_CHANGED,
                caller,
                {"previous_status": previous.value, "new_status": target.value},
            )
            self._state.status = target

            logger.info(
                "workflow_status_changed",
                previous_status=previous.value,
                new_status=target.value,
            )
            self._notify(event)
            return target

    def register_proposal(self, caller: str, description: str) -> int:
        """Add a proposal. Registered voters only, during proposal registration.

        Returns the new proposal id.
        """
        with self._lock:
            self._require_voter(caller, "register proposals")
            self._require_status(
                WorkflowStatus.PROPOSALS_REGISTRATION_STARTED, "register proposals",
            )
            self._check_description(description)

            proposal_id = self._state.next_proposal_id
            event = self._record(
                EventKind.PROPOSAL_REGISTERED,
                caller,
                {"proposal_id": proposal_id, "description": description},
            )
            self._state.proposals.append(
                Proposal(proposal_id=proposal_id, description=description)
            )

            logger.info("proposal_registered", proposal_id=proposal_id, proposer=caller)
            self._notify(event)
            return proposal_id

    def vote(self, caller: str, proposal_id: int) -> None:
        """Cast the caller's single vote. Registered voters only.

        Checks, in order: whitelist, workflow status, prior vote,
        proposal existence.
        """
        with self._lock:
            self._require_voter(caller, "vote")
            self._require_status(WorkflowStatus.VOTING_SESSION_STARTED, "vote")
            if self._state.voters[caller].has_voted:
                raise self._rejected(AlreadyVoted(f"Voter already voted: {caller}"), "vote")
            proposal = self._require_proposal(proposal_id)

            updated = replace(proposal, vote_count=proposal.vote_count + 1)
            leader_id = self._state.winning_proposal_id
            leader = self._state.proposal(leader_id) if leader_id is not None else None
            # Strictly greater: the first proposal to reach a maximum keeps the lead
            takes_lead = leader is None or updated.vote_count > leader.vote_count

            event = self._record(
                EventKind.VOTED, caller, {"voter": caller, "proposal_id": proposal_id},
            )

            index = proposal_id - self._state.proposal_id_base
            self._state.proposals[index] = updated
            self._state.voters[caller] = Voter(
                is_registered=True, has_voted=True, voted_proposal_id=proposal_id,
            )
            self._state.votes_cast += 1
            if takes_lead:
                self._state.winning_proposal_id = proposal_id

            logger.info(
                "vote_cast",
                voter=caller,
                proposal_id=proposal_id,
                vote_count=updated.vote_count,
                winning_proposal_id=self._state.winning_proposal_id,
            )
            self._notify(event)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _require_authority(self, caller: str, action: str) -> None:
        if caller != self._state.authority:
            raise self._rejected(
                Unauthorized(f"Only the authority can {action}"), action, caller=caller,
            )

    def _require_voter(self, caller: str, action: str) -> None:
        if not self._state.is_voter(caller):
            raise self._rejected(
                Unauthorized(f"Only registered voters can {action}"), action, caller=caller,
            )

    def _require_status(self, required: WorkflowStatus, action: str) -> None:
        current = self._state.status
        if current != required:
            raise self._rejected(
                InvalidPhase(
                    f"Cannot {action} during {current.value} "
                    f"(requires {required.value})"
                ),
                action,
            )

    def _require_proposal(self, proposal_id: Any) -> Proposal:
        proposal = None
        if isinstance(proposal_id, int) and not isinstance(proposal_id, bool):
            proposal = self._state.proposal(proposal_id)
        if proposal is None:
            raise self._rejected(
                UnknownProposal(f"Unknown proposal: {proposal_id!r}"), "lookup_proposal",
            )
        return proposal

    def _check_description(self, description: Any) -> None:
        if not isinstance(description, str):
            raise self._rejected(
                InvalidProposal("Proposal description must be a string"),
                "register_proposal",
            )
        if self._policy.reject_empty_description and not description.strip():
            raise self._rejected(
                InvalidProposal("Proposal description cannot be empty"),
                "register_proposal",
            )
        max_len = self._policy.max_description_length
        if max_len is not None and len(description) > max_len:
            raise self._rejected(
                InvalidProposal(
                    f"Proposal description exceeds {max_len} characters"
                ),
                "register_proposal",
            )

    @staticmethod
    def _rejected(error: BallotError, action: str, **context: Any) -> BallotError:
        logger.debug(
            "operation_rejected",
            action=action,
            error=type(error).__name__,
            reason=str(error),
            **context,
        )
        return error

    # ------------------------------------------------------------------
    # Event recording
    # ------------------------------------------------------------------

    def _record(
        self, kind: EventKind, actor_id: str, payload: dict[str, Any],
    ) -> EventRecord:
        """Make an event durable before the state change it describes.

        If the append fails (duplicate id, file write error) the error
        propagates and the caller has not mutated anything yet.
        """
        event = EventRecord.create(
            event_id=f"EVT-{self._event_counter + 1:08d}",
            event_kind=kind,
            actor_id=actor_id,
            payload=payload,
        )
        self._event_log.append(event)
        self._event_counter += 1
        return event

    def _notify(self, event: EventRecord) -> None:
        # The operation has already committed; a failing subscriber
        # cannot undo it, so it is logged and the rest still run.
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "event_subscriber_failed",
                    event_id=event.event_id,
                    event_kind=event.event_kind.value,
                )
