"""Election recovery: rebuild state by replaying the event log.

The event log is the authoritative record; the state snapshot is only a
cache of it. When the two disagree (a snapshot write failed after its
event was committed, or the snapshot was lost), the state is rebuilt by
driving a scratch controller through every logged operation. Each event
therefore passes the same guards it passed when it was first recorded,
and a log that does not replay cleanly is rejected.
"""

from __future__ import annotations

from ballot.controller import BallotController
from ballot.errors import BallotError
from ballot.models.election import ElectionState
from ballot.persistence.event_log import EventKind, EventLog, EventRecord
from ballot.policy.resolver import BallotPolicy


def state_counts(state: ElectionState) -> tuple[int, int, int, int]:
    """Voters, status changes, proposals and votes a snapshot accounts for."""
    return (state.voter_count, state.status.ordinal, state.proposal_count, state.votes_cast)


def log_counts(event_log: EventLog) -> tuple[int, int, int, int]:
    """The same four counts, taken from the logged events."""
    return (
        len(event_log.events(EventKind.VOTER_REGISTERED)),
        len(event_log.events(EventKind.WORKFLOW_STATUS_CHANGED)),
        len(event_log.events(EventKind.PROPOSAL_REGISTERED)),
        len(event_log.events(EventKind.VOTED)),
    )


def log_matches_state(state: ElectionState, event_log: EventLog) -> bool:
    """Check that a snapshot accounts for every logged event."""
    return state_counts(state) == log_counts(event_log)


def rebuild_state(
    event_log: EventLog,
    authority: str,
    proposal_id_base: int = 0,
) -> ElectionState:
    """Replay every logged event and return the resulting state.

    Description rules are not re-applied: a proposal accepted under an
    earlier policy stays accepted.

    Raises ValueError if an event is malformed or fails its guards.
    """
    replica = BallotController(
        authority,
        policy=BallotPolicy(
            proposal_id_base=proposal_id_base,
            reject_empty_description=False,
        ),
    )
    for event in event_log.events():
        try:
            _apply(replica, event)
        except (BallotError, KeyError, TypeError, ValueError) as e:
            raise ValueError(
                f"Event log does not replay at {event.event_id} "
                f"({event.event_kind.value}): {e}"
            ) from e
    return replica.snapshot()


def _apply(replica: BallotController, event: EventRecord) -> None:
    payload = event.payload
    if event.event_kind == EventKind.VOTER_REGISTERED:
        replica.register_voter(event.actor_id, payload["voter"])
    elif event.event_kind == EventKind.WORKFLOW_STATUS_CHANGED:
        status = replica.advance_phase(event.actor_id)
        if status.value != payload["new_status"]:
            raise ValueError(
                f"logged status {payload['new_status']} but replay reached {status.value}"
            )
    elif event.event_kind == EventKind.PROPOSAL_REGISTERED:
        proposal_id = replica.register_proposal(event.actor_id, payload["description"])
        if proposal_id != payload["proposal_id"]:
            raise ValueError(
                f"logged proposal {payload['proposal_id']} but replay assigned {proposal_id}"
            )
    elif event.event_kind == EventKind.VOTED:
        if payload["voter"] != event.actor_id:
            raise ValueError(f"vote by {event.actor_id} recorded for {payload['voter']}")
        replica.vote(event.actor_id, payload["proposal_id"])
