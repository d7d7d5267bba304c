"""Single-authority ballot controller."""

from ballot.controller import BallotController
from ballot.errors import (
    AlreadyRegistered,
    AlreadyVoted,
    BallotError,
    InvalidPhase,
    InvalidProposal,
    NoVotesCast,
    NotEnoughProposals,
    NotEnoughVoters,
    TerminalPhase,
    Unauthorized,
    UnknownProposal,
)
from ballot.models.election import ElectionState, Proposal, Voter, WorkflowStatus

__all__ = [
    "AlreadyRegistered",
    "AlreadyVoted",
    "BallotController",
    "BallotError",
    "ElectionState",
    "InvalidPhase",
    "InvalidProposal",
    "NoVotesCast",
    "NotEnoughProposals",
    "NotEnoughVoters",
    "Proposal",
    "TerminalPhase",
    "Unauthorized",
    "UnknownProposal",
    "Voter",
    "WorkflowStatus",
]
