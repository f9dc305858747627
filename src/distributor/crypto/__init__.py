"""Cryptographic primitives — allocation Merkle commitments and chain anchoring."""

from distributor.crypto.merkle import MerkleProof, MerkleTree, verify_proof

__all__ = ["MerkleProof", "MerkleTree", "verify_proof"]
