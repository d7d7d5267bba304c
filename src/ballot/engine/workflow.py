"""Workflow state machine: enforces the election's linear lifecycle.

    REGISTERING_VOTERS → PROPOSALS_REGISTRATION_STARTED
    → PROPOSALS_REGISTRATION_ENDED → VOTING_SESSION_STARTED
    → VOTING_SESSION_ENDED → VOTES_TALLIED

Readiness guards:
- Leaving REGISTERING_VOTERS requires at least one registered voter.
- Leaving PROPOSALS_REGISTRATION_STARTED requires at least one proposal.

Pure computation: validates transitions only. Applying the new status,
authorization and event recording are handled by the controller.
"""

from __future__ import annotations

from typing import Optional

from ballot.errors import NotEnoughProposals, NotEnoughVoters, TerminalPhase
from ballot.models.election import ElectionState, WorkflowStatus


# Valid transitions: {from_status: to_status}. Terminal maps to None.
_TRANSITIONS: dict[WorkflowStatus, Optional[WorkflowStatus]] = {
    WorkflowStatus.REGISTERING_VOTERS: WorkflowStatus.PROPOSALS_REGISTRATION_STARTED,
    WorkflowStatus.PROPOSALS_REGISTRATION_STARTED: WorkflowStatus.PROPOSALS_REGISTRATION_ENDED,
    WorkflowStatus.PROPOSALS_REGISTRATION_ENDED: WorkflowStatus.VOTING_SESSION_STARTED,
    WorkflowStatus.VOTING_SESSION_STARTED: WorkflowStatus.VOTING_SESSION_ENDED,
    WorkflowStatus.VOTING_SESSION_ENDED: WorkflowStatus.VOTES_TALLIED,
    WorkflowStatus.VOTES_TALLIED: None,
}


class WorkflowStateMachine:
    """Validates election workflow transitions."""

    @staticmethod
    def next_status(status: WorkflowStatus) -> Optional[WorkflowStatus]:
        """Return the single successor of a status, or None if terminal."""
        return _TRANSITIONS[status]

    @staticmethod
    def is_terminal(status: WorkflowStatus) -> bool:
        return _TRANSITIONS[status] is None

    @staticmethod
    def readiness_errors(state: ElectionState) -> list[str]:
        """Check the readiness guard for leaving the current status.

        Returns errors (empty = ready). Does not look at terminality.
        """
        errors: list[str] = []
        if state.status == WorkflowStatus.REGISTERING_VOTERS and state.voter_count == 0:
            errors.append("No voters registered")
        if (
            state.status == WorkflowStatus.PROPOSALS_REGISTRATION_STARTED
            and state.proposal_count == 0
        ):
            errors.append("No proposals registered")
        return errors

    @staticmethod
    def validate_advance(state: ElectionState) -> WorkflowStatus:
        """Return the status the election may advance to.

        Raises TerminalPhase, NotEnoughVoters or NotEnoughProposals.
        Never mutates the state.
        """
        target = _TRANSITIONS[state.status]
        if target is None:
            raise TerminalPhase(
                f"Workflow already at terminal status {state.status.value}"
            )

        if state.status == WorkflowStatus.REGISTERING_VOTERS and state.voter_count == 0:
            raise NotEnoughVoters(
                f"Cannot advance to {target.value}: no voters registered"
            )
        if (
            state.status == WorkflowStatus.PROPOSALS_REGISTRATION_STARTED
            and state.proposal_count == 0
        ):
            raise NotEnoughProposals(
                f"Cannot advance to {target.value}: no proposals registered"
            )
        return target
