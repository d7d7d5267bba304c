"""Audit cryptography: Merkle trees, election commitments, anchoring."""

from ballot.crypto.commitment import ElectionCommitment, build_commitment
from ballot.crypto.merkle import MerkleTree, verify_proof

__all__ = ["ElectionCommitment", "MerkleTree", "build_commitment", "verify_proof"]
