"""Cryptographic primitives — move commitments and their digests."""

from rps_arena.crypto.commitment import (
    CommitmentManager,
    commitment_digest,
    generate_secret,
)

__all__ = ["CommitmentManager", "commitment_digest", "generate_secret"]
