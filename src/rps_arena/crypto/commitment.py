"""Commitment manager — hides a move behind a keccak digest until reveal.

The ledger recomputes

    digest = keccak256(abi.encodePacked(uint8 move, bytes32 secret))

when a move is revealed and compares it with the digest committed in the
acceptance attestation. Hiding rests on the secret being fresh and
unpredictable; binding rests on keccak's preimage resistance. The manager
therefore draws every secret from ``secrets`` and never reuses one.

Revealing is not a cryptographic step here. It is the act of handing the
exact stored (move, secret) pair back to the ledger.
"""

from __future__ import annotations

import logging
import secrets
from typing import Any, Optional

from web3 import Web3

from rps_arena.errors import CommitmentLost, ValidationError
from rps_arena.models.commitment import StoredCommitment
from rps_arena.models.game import Move
from rps_arena.persistence.commitment_store import CommitmentStore


logger = logging.getLogger(__name__)

SECRET_BYTES = 32


def commitment_digest(move: Move, secret: Any) -> str:
    """Protocol binding of a move tag to its blinding secret."""
    secret_bytes = _secret_bytes(secret)
    digest = Web3.solidity_keccak(["uint8", "bytes32"], [int(move), secret_bytes])
    return Web3.to_hex(digest)


def generate_secret() -> str:
    """32 cryptographically random bytes, 0x-prefixed hex."""
    return "0x" + secrets.token_bytes(SECRET_BYTES).hex()


class CommitmentManager:
    """Creates, persists and discloses move commitments.

    Usage:
        manager = CommitmentManager(store)
        digest, secret = manager.commit(Move.ROCK)
        manager.persist(intent_hash, Move.ROCK, secret)
        move, secret = manager.reveal_arguments(intent_hash)
    """

    def __init__(self, store: CommitmentStore) -> None:
        self._store = store

    def commit(self, move: Move) -> tuple[str, str]:
        """Generate a fresh secret for ``move``. Returns (digest, secret)."""
        if not isinstance(move, Move) or not move.playable:
            raise ValidationError("Please select a move (rock, paper or scissors)")
        secret = generate_secret()
        digest = commitment_digest(move, secret)
        logger.debug("Commitment generated: %s", digest)
        return digest, secret

    def persist(self, intent_id: str, move: Move, secret: str) -> StoredCommitment:
        """Store the pair under ``intent_id``, replacing any prior entry."""
        stored = StoredCommitment(intent_id=intent_id, move=move, secret=secret.lower())
        self._store.put(intent_id, stored.to_record())
        logger.info("Stored commitment for %s", intent_id)
        return stored

    def load(self, intent_id: str) -> Optional[StoredCommitment]:
        """Previously stored pair, or None if missing or corrupt."""
        record = self._store.get(intent_id)
        if record is None:
            return None
        stored = StoredCommitment.from_record(intent_id, record)
        if stored is None:
            logger.warning("Stored commitment for %s is corrupt; treating as absent", intent_id)
        return stored

    def has_secret(self, intent_id: str) -> bool:
        return self.load(intent_id) is not None

    def discard(self, intent_id: str) -> None:
        """Roll back a commitment whose submission never reached the ledger."""
        self._store.delete(intent_id)
        logger.info("Discarded commitment for %s", intent_id)

    def reveal_arguments(self, intent_id: str) -> tuple[Move, str]:
        """The (move, secret) pair to submit, or CommitmentLost."""
        stored = self.load(intent_id)
        if stored is None:
            raise CommitmentLost(intent_id)
        return stored.move, stored.secret

    def verify(self, intent_id: str, expected_digest: str) -> bool:
        """Recompute the stored pair's digest and compare."""
        stored = self.load(intent_id)
        if stored is None:
            return False
        return commitment_digest(stored.move, stored.secret).lower() == expected_digest.lower()

    def stored_digest(self, intent_id: str) -> Optional[str]:
        stored = self.load(intent_id)
        if stored is None:
            return None
        return commitment_digest(stored.move, stored.secret)


def _secret_bytes(secret: Any) -> bytes:
    if isinstance(secret, (bytes, bytearray)):
        raw = bytes(secret)
    elif isinstance(secret, str):
        text = secret[2:] if secret.startswith("0x") else secret
        try:
            raw = bytes.fromhex(text)
        except ValueError:
            raise ValidationError(f"Secret is not hex: {secret!r}") from None
    else:
        raise ValidationError(f"Unsupported secret type: {type(secret).__name__}")
    if len(raw) != SECRET_BYTES:
        raise ValidationError(f"Secret must be {SECRET_BYTES} bytes, got {len(raw)}")
    return raw
