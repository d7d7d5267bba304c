"""Election data models.

An election moves through six workflow statuses, in order:

    REGISTERING_VOTERS → PROPOSALS_REGISTRATION_STARTED
    → PROPOSALS_REGISTRATION_ENDED → VOTING_SESSION_STARTED
    → VOTING_SESSION_ENDED → VOTES_TALLIED

Voter and Proposal records are immutable values. A vote replaces both
records rather than mutating them, so snapshots handed to callers can
never drift from what was true when they were read.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any, Optional


class WorkflowStatus(str, enum.Enum):
    """Election workflow status.

    Progression is one-way and one step at a time.
    """
    REGISTERING_VOTERS = "registering_voters"
    PROPOSALS_REGISTRATION_STARTED = "proposals_registration_started"
    PROPOSALS_REGISTRATION_ENDED = "proposals_registration_ended"
    VOTING_SESSION_STARTED = "voting_session_started"
    VOTING_SESSION_ENDED = "voting_session_ended"
    VOTES_TALLIED = "votes_tallied"

    @property
    def ordinal(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER: list[WorkflowStatus] = list(WorkflowStatus)


@dataclass(frozen=True)
class Voter:
    """Whitelist entry for one principal."""
    is_registered: bool = False
    has_voted: bool = False
    voted_proposal_id: Optional[int] = None


UNREGISTERED = Voter()


@dataclass(frozen=True)
class Proposal:
    """A named proposal and its running vote count."""
    proposal_id: int
    description: str
    vote_count: int = 0

    def __post_init__(self) -> None:
        if self.vote_count < 0:
            raise ValueError("vote_count cannot be negative")


@dataclass
class ElectionState:
    """Everything one election knows.

    Owned by exactly one BallotController. The controller is the only
    writer; everything else reads copies.

    Invariants:
    - proposals[i].proposal_id == proposal_id_base + i
    - winning_proposal_id is None iff votes_cast == 0
    - votes_cast == number of voters with has_voted
    """
    authority: str
    status: WorkflowStatus = WorkflowStatus.REGISTERING_VOTERS
    voters: dict[str, Voter] = field(default_factory=dict)
    proposals: list[Proposal] = field(default_factory=list)
    winning_proposal_id: Optional[int] = None
    votes_cast: int = 0
    proposal_id_base: int = 0

    @property
    def voter_count(self) -> int:
        return len(self.voters)

    @property
    def proposal_count(self) -> int:
        return len(self.proposals)

    @property
    def next_proposal_id(self) -> int:
        return self.proposal_id_base + len(self.proposals)

    def is_voter(self, identity: str) -> bool:
        return self.voters.get(identity, UNREGISTERED).is_registered

    def proposal(self, proposal_id: int) -> Optional[Proposal]:
        """Look up a proposal by id. None if out of range."""
        index = proposal_id - self.proposal_id_base
        if index < 0 or index >= len(self.proposals):
            return None
        return self.proposals[index]

    def copy(self) -> ElectionState:
        # Voter and Proposal are frozen, so shallow container copies suffice.
        return replace(
            self,
            voters=dict(self.voters),
            proposals=list(self.proposals),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "authority": self.authority,
            "status": self.status.value,
            "voters": {
                identity: {
                    "is_registered": v.is_registered,
                    "has_voted": v.has_voted,
                    "voted_proposal_id": v.voted_proposal_id,
                }
                for identity, v in self.voters.items()
            },
            "proposals": [
                {
                    "proposal_id": p.proposal_id,
                    "description": p.description,
                    "vote_count": p.vote_count,
                }
                for p in self.proposals
            ],
            "winning_proposal_id": self.winning_proposal_id,
            "votes_cast": self.votes_cast,
            "proposal_id_base": self.proposal_id_base,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> ElectionState:
        """Rebuild a state from to_dict() output.

        Raises ValueError if the data violates the state invariants.
        """
        try:
            state = ElectionState(
                authority=data["authority"],
                status=WorkflowStatus(data["status"]),
                voters={
                    identity: Voter(
                        is_registered=bool(v["is_registered"]),
                        has_voted=bool(v["has_voted"]),
                        voted_proposal_id=v["voted_proposal_id"],
                    )
                    for identity, v in data["voters"].items()
                },
                proposals=[
                    Proposal(
                        proposal_id=int(p["proposal_id"]),
                        description=p["description"],
                        vote_count=int(p["vote_count"]),
                    )
                    for p in data["proposals"]
                ],
                winning_proposal_id=data["winning_proposal_id"],
                votes_cast=int(data["votes_cast"]),
                proposal_id_base=int(data["proposal_id_base"]),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed election state: {e!r}") from e

        errors = state.validate()
        if errors:
            raise ValueError("Inconsistent election state: " + "; ".join(errors))
        return state

    def validate(self) -> list[str]:
        """Check structural invariants. Returns errors (empty = OK)."""
        errors: list[str] = []
        for i, p in enumerate(self.proposals):
            if p.proposal_id != self.proposal_id_base + i:
                errors.append(
                    f"proposal at position {i} has id {p.proposal_id}, "
                    f"expected {self.proposal_id_base + i}"
                )
        voted = sum(1 for v in self.voters.values() if v.has_voted)
        if voted != self.votes_cast:
            errors.append(f"votes_cast={self.votes_cast} but {voted} voters have voted")
        if sum(p.vote_count for p in self.proposals) != self.votes_cast:
            errors.append("proposal vote counts do not sum to votes_cast")
        if (self.winning_proposal_id is None) != (self.votes_cast == 0):
            errors.append("winning_proposal_id must be set iff a vote was cast")
        if self.winning_proposal_id is not None and self.proposal(self.winning_proposal_id) is None:
            errors.append(f"winning_proposal_id {self.winning_proposal_id} is not a proposal")
        return errors
