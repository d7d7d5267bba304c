"""Ballot error kinds.

Every rejection is raised before any state is touched, so catching one of
these means the election is exactly as it was before the call.
"""

from __future__ import annotations


class BallotError(Exception):
    """Base class for all ballot precondition failures."""


class Unauthorized(BallotError):
    """Caller is not the authority, or not a registered voter."""


class InvalidPhase(BallotError):
    """Operation is not allowed in the current workflow status."""


class AlreadyRegistered(BallotError):
    """Voter is already on the whitelist."""


class AlreadyVoted(BallotError):
    """Voter has already cast their vote."""


class UnknownProposal(BallotError):
    """Proposal id does not refer to a registered proposal."""


class InvalidProposal(BallotError):
    """Proposal description rejected by policy (blank or too long)."""


class NotEnoughVoters(BallotError):
    """Cannot leave voter registration with an empty whitelist."""


class NotEnoughProposals(BallotError):
    """Cannot close proposal registration with no proposals."""


class TerminalPhase(BallotError):
    """Workflow has already reached VOTES_TALLIED."""


class NoVotesCast(BallotError):
    """Votes were tallied but nobody voted."""
