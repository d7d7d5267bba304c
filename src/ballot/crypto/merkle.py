"""Merkle tree over election event hashes.

Leaves keep their append order: the order in which voters registered,
proposals arrived and votes were cast is part of the election record,
so two logs with the same events in a different order have different
roots. An odd node at the end of a level is paired with itself.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

EMPTY_ROOT = "sha256:" + hashlib.sha256(b"").hexdigest()


@dataclass(frozen=True)
class MerkleProof:
    """An inclusion proof for the leaf at leaf_index."""
    leaf_hash: str
    leaf_index: int
    path: list[tuple[str, str]]  # (sibling_hash, "L" | "R")
    root: str


class MerkleTree:
    """A SHA-256 Merkle tree built once from an ordered list of leaves.

    Usage:
        tree = MerkleTree(event_log.event_hashes())
        root = tree.root
        proof = tree.inclusion_proof(3)
        assert verify_proof(proof)
    """

    def __init__(self, leaves: list[str]) -> None:
        self._levels: list[list[str]] = [[_strip(leaf) for leaf in leaves]]
        current = self._levels[0]
        while len(current) > 1:
            current = [
                _hash_pair(current[i], current[i + 1] if i + 1 < len(current) else current[i])
                for i in range(0, len(current), 2)
            ]
            self._levels.append(current)

    @property
    def leaf_count(self) -> int:
        return len(self._levels[0])

    @property
    def root(self) -> str:
        if not self._levels[0]:
            return EMPTY_ROOT
        return f"sha256:{self._levels[-1][0]}"

    def inclusion_proof(self, leaf_index: int) -> MerkleProof:
        """Build the proof for one leaf. Raises IndexError if out of range."""
        if leaf_index < 0 or leaf_index >= self.leaf_count:
            raise IndexError(f"Leaf index {leaf_index} out of range ({self.leaf_count} leaves)")

        path: list[tuple[str, str]] = []
        idx = leaf_index
        for level in self._levels[:-1]:
            if idx % 2 == 0:
                sibling = level[idx + 1] if idx + 1 < len(level) else level[idx]
                path.append((sibling, "R"))
            else:
                path.append((level[idx - 1], "L"))
            idx //= 2

        return MerkleProof(
            leaf_hash=f"sha256:{self._levels[0][leaf_index]}",
            leaf_index=leaf_index,
            path=path,
            root=self.root,
        )


def verify_proof(proof: MerkleProof) -> bool:
    """Recompute the root from a proof and compare."""
    node = _strip(proof.leaf_hash)
    for sibling, position in proof.path:
        if position == "L":
            node = _hash_pair(sibling, node)
        elif position == "R":
            node = _hash_pair(node, sibling)
        else:
            return False
    return f"sha256:{node}" == proof.root


def _strip(value: str) -> str:
    return value.removeprefix("sha256:")


def _hash_pair(left: str, right: str) -> str:
    return hashlib.sha256(f"{left}{right}".encode("utf-8")).hexdigest()
