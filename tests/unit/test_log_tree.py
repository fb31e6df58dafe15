"""
Unit tests for log tree verification.

Tests cover:
- Binary search paths
- Batch inclusion proof evaluation
- Consistency proofs between tree sizes, including tampered proofs
"""

import hashlib

import pytest
from hypothesis import given, strategies as st

from kestrel.crypto.hashing import Sha256HashDomain
from kestrel.exceptions import (
    MalformedProofError,
    PositionOutOfRangeError,
    ProofMismatchError,
    VerificationError,
)
from kestrel.merkle.log import (
    evaluate_batch_proof,
    is_power_of_two,
    search_path,
    split_point,
    verify_consistency,
    verify_inclusion,
)

from simulator import MerkleLog

DOMAIN = Sha256HashDomain()
MAX_SIZE = 40
LOG = MerkleLog([hashlib.sha256(b"leaf-%d" % i).digest() for i in range(MAX_SIZE)])


class TestTreeShape:
    """Test the helpers describing the tree shape."""

    @pytest.mark.parametrize("size,expected", [(2, 1), (3, 2), (4, 2), (5, 4), (8, 4), (9, 8), (10, 8)])
    def test_split_point(self, size, expected):
        """Test the largest power of two strictly below size."""
        assert split_point(size) == expected

    def test_is_power_of_two(self):
        """Test power of two detection."""
        assert [n for n in range(0, 17) if is_power_of_two(n)] == [1, 2, 4, 8, 16]


class TestSearchPath:
    """Test binary search paths through the log."""

    def test_example_path(self):
        """Test the path to position 4 in a log of 10 entries."""
        assert search_path(10, 4) == [5, 2, 4]

    def test_midpoint_is_first(self):
        """Test that the first step is the midpoint."""
        assert search_path(10, 5) == [5]
        assert search_path(1, 0) == [0]

    def test_path_ends_at_position(self):
        """Test that every path ends at its target and never repeats a position."""
        for size in range(1, 33):
            for position in range(size):
                path = search_path(size, position)
                assert path[-1] == position
                assert len(set(path)) == len(path)
                assert len(path) <= size.bit_length() + 1

    @pytest.mark.parametrize("position", [-1, 10, 11])
    def test_out_of_range(self, position):
        """Test that positions outside the log are rejected."""
        with pytest.raises(PositionOutOfRangeError):
            search_path(10, position)


class TestBatchInclusion:
    """Test batch inclusion proofs."""

    def test_example_batch(self):
        """Test positions {2, 4, 5} in a log of 10 entries."""
        leaves = {p: LOG.leaves[p] for p in (2, 4, 5)}
        proof = LOG.inclusion_proof(10, leaves)

        assert len(proof) == 4
        assert evaluate_batch_proof(10, leaves, proof, DOMAIN) == LOG.root(10)

    def test_single_leaf_audit_path(self):
        """Test that one position yields the ordinary audit path."""
        for size in range(1, 17):
            for position in range(size):
                proof = LOG.inclusion_proof(size, [position])
                verify_inclusion(size, position, LOG.leaves[position], proof, LOG.root(size), DOMAIN)

    def test_single_entry_log(self):
        """Test that the root of a one-entry log is its leaf."""
        assert evaluate_batch_proof(1, {0: LOG.leaves[0]}, [], DOMAIN) == LOG.leaves[0]

    @given(
        size=st.integers(min_value=1, max_value=MAX_SIZE),
        data=st.data(),
    )
    def test_any_subset(self, size, data):
        """Test that any non-empty subset of positions evaluates to the root."""
        positions = data.draw(
            st.sets(st.integers(min_value=0, max_value=size - 1), min_size=1)
        )
        leaves = {p: LOG.leaves[p] for p in positions}
        proof = LOG.inclusion_proof(size, positions)
        assert evaluate_batch_proof(size, leaves, proof, DOMAIN) == LOG.root(size)

    def test_wrong_leaf(self):
        """Test that a wrong leaf hash leads to a different root."""
        proof = LOG.inclusion_proof(10, [3])
        with pytest.raises(ProofMismatchError):
            verify_inclusion(10, 3, LOG.leaves[4], proof, LOG.root(10), DOMAIN)

    def test_proof_too_short(self):
        """Test that a missing node is reported as malformed."""
        proof = LOG.inclusion_proof(10, [3])
        with pytest.raises(MalformedProofError, match="too short"):
            evaluate_batch_proof(10, {3: LOG.leaves[3]}, proof[:-1], DOMAIN)

    def test_proof_too_long(self):
        """Test that an unused node is reported as malformed."""
        proof = LOG.inclusion_proof(10, [3]) + [LOG.leaves[0]]
        with pytest.raises(MalformedProofError, match="unused"):
            evaluate_batch_proof(10, {3: LOG.leaves[3]}, proof, DOMAIN)

    def test_wrong_node_size(self):
        """Test that nodes of the wrong length are rejected."""
        proof = LOG.inclusion_proof(10, [3])
        proof[0] = proof[0][:31]
        with pytest.raises(MalformedProofError):
            evaluate_batch_proof(10, {3: LOG.leaves[3]}, proof, DOMAIN)

    def test_no_positions(self):
        """Test that an empty batch is rejected."""
        with pytest.raises(MalformedProofError):
            evaluate_batch_proof(10, {}, [], DOMAIN)

    def test_position_out_of_range(self):
        """Test that positions beyond the tree size are rejected."""
        with pytest.raises(PositionOutOfRangeError):
            evaluate_batch_proof(10, {10: LOG.leaves[10]}, [], DOMAIN)


class TestConsistency:
    """Test consistency proofs."""

    @given(
        old_size=st.integers(min_value=1, max_value=MAX_SIZE),
        extra=st.integers(min_value=0, max_value=MAX_SIZE),
    )
    def test_valid_proofs(self, old_size, extra):
        """Test that honest proofs verify for every pair of sizes."""
        new_size = min(old_size + extra, MAX_SIZE)
        proof = LOG.consistency_proof(old_size, new_size)
        verify_consistency(old_size, new_size, LOG.root(old_size), LOG.root(new_size), proof, DOMAIN)

    @given(
        old_size=st.integers(min_value=1, max_value=MAX_SIZE - 1),
        data=st.data(),
    )
    def test_tampered_node(self, old_size, data):
        """Test that changing any proof node is detected."""
        new_size = data.draw(st.integers(min_value=old_size + 1, max_value=MAX_SIZE))
        proof = LOG.consistency_proof(old_size, new_size)
        index = data.draw(st.integers(min_value=0, max_value=len(proof) - 1))
        proof[index] = bytes([proof[index][0] ^ 0x01]) + proof[index][1:]

        with pytest.raises(ProofMismatchError):
            verify_consistency(
                old_size, new_size, LOG.root(old_size), LOG.root(new_size), proof, DOMAIN
            )

    @given(
        old_size=st.integers(min_value=1, max_value=MAX_SIZE - 1),
        data=st.data(),
    )
    def test_dropped_node(self, old_size, data):
        """Test that removing a proof node is rejected."""
        new_size = data.draw(st.integers(min_value=old_size + 1, max_value=MAX_SIZE))
        proof = LOG.consistency_proof(old_size, new_size)
        index = data.draw(st.integers(min_value=0, max_value=len(proof) - 1))
        del proof[index]

        with pytest.raises(VerificationError):
            verify_consistency(
                old_size, new_size, LOG.root(old_size), LOG.root(new_size), proof, DOMAIN
            )

    def test_wrong_old_root(self):
        """Test that a proof from a different history is rejected."""
        proof = LOG.consistency_proof(6, 10)
        with pytest.raises(ProofMismatchError):
            verify_consistency(6, 10, LOG.root(5), LOG.root(10), proof, DOMAIN)

    def test_equal_sizes(self):
        """Test that equal sizes need an empty proof and equal roots."""
        verify_consistency(7, 7, LOG.root(7), LOG.root(7), [], DOMAIN)
        with pytest.raises(ProofMismatchError):
            verify_consistency(7, 7, LOG.root(7), LOG.root(8), [], DOMAIN)
        with pytest.raises(MalformedProofError):
            verify_consistency(7, 7, LOG.root(7), LOG.root(7), [LOG.root(7)], DOMAIN)

    def test_from_empty_log(self):
        """Test that every log is consistent with the empty log."""
        verify_consistency(0, 5, b"", LOG.root(5), [], DOMAIN)
        with pytest.raises(MalformedProofError):
            verify_consistency(0, 5, b"", LOG.root(5), [LOG.root(5)], DOMAIN)

    def test_shrinking_log(self):
        """Test that a smaller new size is rejected."""
        with pytest.raises(MalformedProofError):
            verify_consistency(10, 8, LOG.root(10), LOG.root(8), [], DOMAIN)

    def test_power_of_two_old_size(self):
        """Test that the old root is implied when old_size is a power of two."""
        proof = LOG.consistency_proof(8, 13)
        assert LOG.root(8) not in proof
        verify_consistency(8, 13, LOG.root(8), LOG.root(13), proof, DOMAIN)
