"""Core data models for the ballot controller."""

from ballot.models.election import (
    ElectionState,
    Proposal,
    Voter,
    WorkflowStatus,
)

__all__ = [
    "ElectionState",
    "Proposal",
    "Voter",
    "WorkflowStatus",
]
