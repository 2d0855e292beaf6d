"""Signable coordination payloads.

Field order in both dataclasses is the order of the EIP-712 schemas the
ledger verifies against. ``typed_message`` returns exactly the fields that
are hashed and signed; the attestation's ``signature`` is never part of it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Optional


ZERO_BYTES32 = "0x" + "0" * 64


@dataclass(frozen=True)
class CoordinationIntent:
    """A proposer's offer to coordinate a wagered game."""
    payload_hash: str
    expiry: int
    nonce: int
    agent_id: str
    coordination_type: str
    coordination_value: int
    participants: tuple[str, ...]

    def typed_message(self) -> dict[str, Any]:
        return {
            "payloadHash": self.payload_hash,
            "expiry": self.expiry,
            "nonce": self.nonce,
            "agentId": self.agent_id,
            "coordinationType": self.coordination_type,
            "coordinationValue": self.coordination_value,
            "participants": list(self.participants),
        }

    def as_contract_arg(self) -> tuple:
        """Positional struct for ``proposeCoordination``."""
        return (
            bytes.fromhex(self.payload_hash[2:]),
            self.expiry,
            self.nonce,
            self.agent_id,
            bytes.fromhex(self.coordination_type[2:]),
            self.coordination_value,
            list(self.participants),
        )


@dataclass(frozen=True)
class AcceptanceAttestation:
    """A participant's commitment to a registered intent."""
    intent_hash: str
    participant: str
    nonce: int
    expiry: int
    conditions_hash: str
    signature: Optional[str] = None

    def typed_message(self) -> dict[str, Any]:
        return {
            "intentHash": self.intent_hash,
            "participant": self.participant,
            "nonce": self.nonce,
            "expiry": self.expiry,
            "conditionsHash": self.conditions_hash,
        }

    def with_signature(self, signature: str) -> AcceptanceAttestation:
        return replace(self, signature=signature)

    def as_contract_arg(self) -> tuple:
        """Positional struct for ``acceptCoordination``; requires a signature."""
        if self.signature is None:
            raise ValueError("Attestation must be signed before submission")
        return (
            bytes.fromhex(self.intent_hash[2:]),
            self.participant,
            self.nonce,
            self.expiry,
            bytes.fromhex(self.conditions_hash[2:]),
            bytes.fromhex(self.signature[2:]),
        )
