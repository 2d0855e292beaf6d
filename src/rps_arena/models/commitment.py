"""Stored commitment model — the secret half of a move commitment.

The public half (the digest) lives on the ledger. The private half, the
move and its blinding secret, exists only here and must survive until
reveal. Without it the move stays hidden forever.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from rps_arena.models.game import Move


@dataclass(frozen=True)
class StoredCommitment:
    """A (move, secret) pair keyed by intent identifier.

    Immutable once constructed. ``secret`` is the 0x-prefixed hex form of
    32 random bytes.
    """
    intent_id: str
    move: Move
    secret: str

    def to_record(self) -> dict[str, Any]:
        """Serialize in the durable layout: ``{"move": int, "salt": hex}``."""
        return {"move": int(self.move), "salt": self.secret}

    @staticmethod
    def from_record(intent_id: str, record: Any) -> Optional[StoredCommitment]:
        """Parse a durable record. Malformed records yield None."""
        if not isinstance(record, dict):
            return None
        move = Move.from_raw(record.get("move"))
        salt = record.get("salt")
        if not move.playable or not _is_bytes32_hex(salt):
            return None
        return StoredCommitment(intent_id=intent_id, move=move, secret=salt.lower())


def _is_bytes32_hex(value: Any) -> bool:
    if not isinstance(value, str) or len(value) != 66 or not value.startswith("0x"):
        return False
    try:
        bytes.fromhex(value[2:])
    except ValueError:
        return False
    return True
