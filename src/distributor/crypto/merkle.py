"""Allocation commitments — a Merkle root over every entitlement.

The root lets an owner publish one digest that fixes the whole
allocation table, and lets any recipient check their own line against
it with a short inclusion proof, without seeing anyone else's amounts.

Leaf = SHA-256 of canonical JSON ``{reason, index, recipient, amount}``.
The index distinguishes duplicate entries for one recipient in a reason.
Leaves are sorted before the tree is built, so the root depends only on
the set of entitlements. Odd levels duplicate their last node.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Optional

PREFIX = "sha256:"


@dataclass(frozen=True)
class MerkleProof:
    """An inclusion proof for a single leaf."""
    leaf_hash: str
    path: list[tuple[str, str]]  # (sibling_hash, "L" | "R")
    root: str


def entitlement_leaf(reason: str, index: int, recipient: str, amount: int) -> str:
    """Leaf hash of one entitlement line."""
    canonical = json.dumps(
        {"reason": reason, "index": index, "recipient": recipient, "amount": amount},
        sort_keys=True,
        ensure_ascii=False,
    ).encode("utf-8")
    return PREFIX + _sha256_hex(canonical)


class MerkleTree:
    """Deterministic SHA-256 Merkle tree over pre-hashed leaves.

    Usage:
        tree = MerkleTree(leaves)
        root = tree.root
        proof = tree.inclusion_proof(leaves[0])
        assert verify_proof(proof)
    """

    def __init__(self, leaves: list[str]) -> None:
        self._levels: list[list[str]] = [sorted(_strip(leaf) for leaf in leaves)]
        current = self._levels[0]
        while len(current) > 1:
            next_level: list[str] = []
            for i in range(0, len(current), 2):
                left = current[i]
                right = current[i + 1] if i + 1 < len(current) else left
                next_level.append(_hash_pair(left, right))
            self._levels.append(next_level)
            current = next_level

    @property
    def leaf_count(self) -> int:
        return len(self._levels[0])

    @property
    def root(self) -> str:
        """Root digest. An empty tree hashes the empty string."""
        if not self._levels[0]:
            return PREFIX + _sha256_hex(b"")
        return PREFIX + self._levels[-1][0]

    def inclusion_proof(self, leaf_hash: str) -> Optional[MerkleProof]:
        """Proof for leaf_hash, or None if it is not in the tree."""
        leaves = self._levels[0]
        clean = _strip(leaf_hash)
        if clean not in leaves:
            return None

        idx = leaves.index(clean)
        path: list[tuple[str, str]] = []
        for level in self._levels[:-1]:
            if idx % 2 == 0:
                sibling = level[idx + 1] if idx + 1 < len(level) else level[idx]
                path.append((PREFIX + sibling, "R"))
            else:
                path.append((PREFIX + level[idx - 1], "L"))
            idx //= 2

        return MerkleProof(leaf_hash=PREFIX + clean, path=path, root=self.root)


def verify_proof(proof: MerkleProof) -> bool:
    """Recompute the root from the leaf and path; compare to proof.root."""
    current = _strip(proof.leaf_hash)
    for sibling, position in proof.path:
        if position == "L":
            current = _hash_pair(_strip(sibling), current)
        elif position == "R":
            current = _hash_pair(current, _strip(sibling))
        else:
            return False
    return PREFIX + current == proof.root


def _strip(digest: str) -> str:
    return digest.removeprefix(PREFIX)


def _sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _hash_pair(left: str, right: str) -> str:
    return _sha256_hex(f"{left}{right}".encode("utf-8"))
