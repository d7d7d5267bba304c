"""Tests for the ordered Merkle tree: proves roots and inclusion proofs."""

import hashlib

import pytest

from ballot.crypto.merkle import EMPTY_ROOT, MerkleProof, MerkleTree, verify_proof


def _leaf(n: int) -> str:
    return "sha256:" + hashlib.sha256(f"event-{n}".encode()).hexdigest()


class TestRoot:
    def test_empty_tree(self) -> None:
        assert MerkleTree([]).root == EMPTY_ROOT

    def test_single_leaf_is_root(self) -> None:
        assert MerkleTree([_leaf(0)]).root == _leaf(0)

    def test_two_leaves(self) -> None:
        left, right = _leaf(0)[7:], _leaf(1)[7:]
        expected = hashlib.sha256(f"{left}{right}".encode()).hexdigest()
        assert MerkleTree([_leaf(0), _leaf(1)]).root == f"sha256:{expected}"

    def test_deterministic(self) -> None:
        leaves = [_leaf(i) for i in range(7)]
        assert MerkleTree(leaves).root == MerkleTree(list(leaves)).root

    def test_order_matters(self) -> None:
        leaves = [_leaf(i) for i in range(4)]
        assert MerkleTree(leaves).root != MerkleTree(list(reversed(leaves))).root

    def test_prefix_optional(self) -> None:
        leaves = [_leaf(i) for i in range(3)]
        bare = [leaf.removeprefix("sha256:") for leaf in leaves]
        assert MerkleTree(leaves).root == MerkleTree(bare).root


class TestInclusionProof:
    @pytest.mark.parametrize("count", [1, 2, 3, 5, 8])
    def test_every_leaf_verifies(self, count: int) -> None:
        tree = MerkleTree([_leaf(i) for i in range(count)])
        for i in range(count):
            proof = tree.inclusion_proof(i)
            assert proof.leaf_hash == _leaf(i)
            assert proof.root == tree.root
            assert verify_proof(proof)

    def test_out_of_range(self) -> None:
        with pytest.raises(IndexError):
            MerkleTree([_leaf(0)]).inclusion_proof(1)

    def test_forged_leaf_fails(self) -> None:
        tree = MerkleTree([_leaf(i) for i in range(4)])
        proof = tree.inclusion_proof(2)
        forged = MerkleProof(
            leaf_hash=_leaf(99), leaf_index=2, path=proof.path, root=proof.root,
        )
        assert verify_proof(forged) is False

    def test_bad_position_fails(self) -> None:
        tree = MerkleTree([_leaf(0), _leaf(1)])
        proof = tree.inclusion_proof(0)
        bad = MerkleProof(
            leaf_hash=proof.leaf_hash,
            leaf_index=0,
            path=[(proof.path[0][0], "X")],
            root=proof.root,
        )
        assert verify_proof(bad) is False
