"""Hashes, leaves and a simulated chain of additions and deletions."""

from __future__ import annotations

import hashlib
import logging
import random
from dataclasses import dataclass, field
from typing import Optional, Sequence

from cryptography.hazmat.primitives import hashes as _crypto_hashes

log = logging.getLogger(__name__)

HASH_SIZE = 32
MINI_SIZE = 12
EMPTY = bytes(HASH_SIZE)


def hash_from_string(s: str) -> bytes:
    """Return the SHA-256 hash of ``s``."""
    return hashlib.sha256(s.encode()).digest()


def mini(h: bytes) -> bytes:
    """Return the first 12 bytes of a hash."""
    return bytes(h[:MINI_SIZE])


def parent_hash(left: bytes, right: bytes) -> bytes:
    """Return the merkle parent of two child hashes (SHA-512/256)."""
    if left == EMPTY or right == EMPTY:
        raise ValueError("got an empty leaf here")
    digest = _crypto_hashes.Hash(_crypto_hashes.SHA512_256())
    digest.update(bytes(left))
    digest.update(bytes(right))
    return digest.finalize()


@dataclass(frozen=True)
class Leaf:
    """A leaf hash and whether it should be kept in memory because it will
    be deleted soon."""

    hash: bytes
    remember: bool = False


@dataclass
class SimChain:
    """Produces blocks of unique additions whose deletions come back after a
    random number of blocks no larger than ``duration_mask``."""

    duration_mask: int
    rng: random.Random = field(default_factory=random.Random)
    lookahead: int = 0
    block_height: int = -1
    leaf_counter: int = 0
    ttl_slices: list[list[bytes]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.ttl_slices:
            self.ttl_slices = [[] for _ in range(self.duration_mask + 1)]

    def _leaf_hash(self) -> bytes:
        c = self.leaf_counter
        head = bytes([c & 0xFF, (c >> 8) & 0xFF, (c >> 16) & 0xFF, 0xFF,
                      (c >> 24) & 0xFF, (c >> 32) & 0xFF])
        return head + bytes(HASH_SIZE - len(head))

    def next_block(self, num_adds: int) -> tuple[list[Leaf], list[int], list[bytes]]:
        """Return the next block's added leaves, their durations and the
        hashes deleted in it."""
        self.block_height += 1
        log.debug("blockHeight %d", self.block_height)
        if self.block_height == 0 and num_adds == 0:
            num_adds = 1

        del_hashes = self.ttl_slices[0]
        self.ttl_slices = self.ttl_slices[1:] + [[]]

        adds: list[Leaf] = []
        durations: list[int] = []
        for _ in range(num_adds):
            leaf_hash = self._leaf_hash()
            # the first block's leaves live forever so the forest never empties
            duration = 0 if self.block_height == 0 else (
                self.rng.getrandbits(32) & self.duration_mask
            )
            remember = duration != 0 and duration < self.lookahead
            if duration:
                self.ttl_slices[duration - 1].append(leaf_hash)
            adds.append(Leaf(leaf_hash, remember))
            durations.append(duration)
            self.leaf_counter += 1

        return adds, durations, del_hashes

    def back_one(
        self,
        leaves: Sequence[Leaf],
        durations: Sequence[int],
        dels: Optional[Sequence[bytes]],
    ) -> None:
        """Undo the block that ``next_block`` returned these values for."""
        self.ttl_slices = [list(dels or [])] + self.ttl_slices[:-1]
        for leaf, duration in zip(leaves, durations):
            if duration == 0:
                continue
            log.debug("removing %s at end of row %d", leaf.hash[:4].hex(), duration)
            self.ttl_slices[duration].pop()
        self.block_height -= 1

    def ttl_string(self) -> str:
        """Render the pending deletions, one line per future block."""
        lines = ["-------------\n"]
        for i, slot in enumerate(self.ttl_slices):
            lines.append(f"{i}: " + "".join(f" {h[:4].hex()} " for h in slot) + "\n")
        return "".join(lines)