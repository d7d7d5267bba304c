"""Election policy: config-driven parameters."""

from ballot.policy.resolver import AnchorPolicy, BallotPolicy, PolicyResolver

__all__ = ["AnchorPolicy", "BallotPolicy", "PolicyResolver"]
