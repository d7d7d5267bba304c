"""Election commitment: one hash that pins down a tallied election.

The commitment covers the final tallies, the winner and the Merkle root
of every event in the log. Anyone holding the event log can rebuild it
and check the hash; anchoring the hash on chain proves the result
existed in that exact form at that time.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Optional

from ballot.crypto.merkle import MerkleTree
from ballot.errors import InvalidPhase
from ballot.models.election import ElectionState, WorkflowStatus
from ballot.persistence.event_log import EventLog


@dataclass(frozen=True)
class ElectionCommitment:
    """Canonical summary of a tallied election."""
    authority: str
    tallies: tuple[tuple[int, str, int], ...]  # (proposal_id, description, vote_count)
    winning_proposal_id: Optional[int]
    votes_cast: int
    voter_count: int
    event_count: int
    event_root: str

    def payload(self) -> dict[str, Any]:
        return {
            "authority": self.authority,
            "tallies": [
                {"proposal_id": pid, "description": desc, "vote_count": count}
                for pid, desc, count in self.tallies
            ],
            "winning_proposal_id": self.winning_proposal_id,
            "votes_cast": self.votes_cast,
            "voter_count": self.voter_count,
            "event_count": self.event_count,
            "event_root": self.event_root,
        }

    @property
    def commitment_hash(self) -> str:
        """SHA-256 hex digest of the canonical JSON payload."""
        canonical = json.dumps(
            self.payload(), sort_keys=True, ensure_ascii=False,
        ).encode("utf-8")
        return hashlib.sha256(canonical).hexdigest()


def build_commitment(state: ElectionState, event_log: EventLog) -> ElectionCommitment:
    """Build the commitment for a tallied election.

    Raises InvalidPhase unless the election has reached VOTES_TALLIED.
    """
    if state.status != WorkflowStatus.VOTES_TALLIED:
        raise InvalidPhase(
            f"Commitment requires {WorkflowStatus.VOTES_TALLIED.value}, "
            f"election is at {state.status.value}"
        )

    tree = MerkleTree(event_log.event_hashes())
    return ElectionCommitment(
        authority=state.authority,
        tallies=tuple(
            (p.proposal_id, p.description, p.vote_count) for p in state.proposals
        ),
        winning_proposal_id=state.winning_proposal_id,
        votes_cast=state.votes_cast,
        voter_count=state.voter_count,
        event_count=event_log.count,
        event_root=tree.root,
    )
