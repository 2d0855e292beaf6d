"""Canonical payload builder — constructs the two signable structures.

The builder is deterministic and side-effect free: given the same inputs
it produces the same payload. Participant order is part of the signed
intent, so both sides must be sorted exactly the way the verifier sorts
them (ascending by lowercase hex).
"""

from __future__ import annotations

import time
from typing import Any, Optional

from web3 import Web3

from rps_arena.errors import InvalidAddress, ValidationError
from rps_arena.models.coordination import (
    AcceptanceAttestation,
    CoordinationIntent,
    ZERO_BYTES32,
)


DEFAULT_TTL_SECONDS = 3600
# Nonce the deployed ledger expects on a participant's first acceptance of
# a given intent.
FIRST_ACCEPTANCE_NONCE = 1


def normalize_address(value: Any) -> str:
    """Return the checksum form of an address or raise InvalidAddress."""
    if not isinstance(value, str) or not Web3.is_address(value.strip()):
        raise InvalidAddress(value)
    return Web3.to_checksum_address(value.strip())


def normalize_bytes32(value: Any, field_name: str) -> str:
    """Return a lowercase 0x-prefixed 32-byte hex string."""
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 32:
            raise ValidationError(f"{field_name} must be 32 bytes, got {len(value)}")
        return "0x" + bytes(value).hex()
    if isinstance(value, str) and value.startswith("0x") and len(value) == 66:
        try:
            bytes.fromhex(value[2:])
        except ValueError:
            pass
        else:
            return value.lower()
    raise ValidationError(f"{field_name} is not a 32-byte hex value: {value!r}")


def canonical_participants(a: str, b: str) -> tuple[str, str]:
    """Sort two identities ascending by canonical lowercase form."""
    first = normalize_address(a)
    second = normalize_address(b)
    if first.lower() == second.lower():
        raise ValidationError("Counterparty must differ from proposer")
    ordered = sorted((first, second), key=str.lower)
    return ordered[0], ordered[1]


class PayloadBuilder:
    """Builds coordination intents and acceptance attestations.

    Usage:
        builder = PayloadBuilder(min_wager=1)
        intent = builder.build_intent(
            proposer, opponent, wager=10**17,
            coordination_type=ledger.coordination_type(),
            current_nonce=ledger.agent_nonce(proposer),
        )
        attestation = builder.build_acceptance(
            intent_hash, proposer, conditions_hash=digest,
        )
    """

    def __init__(
        self,
        min_wager: int = 1,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ) -> None:
        self._min_wager = min_wager
        self._ttl = ttl_seconds

    def build_intent(
        self,
        proposer: str,
        counterparty: str,
        wager: int,
        coordination_type: Any,
        current_nonce: int,
        expiry: Optional[int] = None,
        now: Optional[int] = None,
    ) -> CoordinationIntent:
        """Build the proposer's intent with ``nonce = current_nonce + 1``."""
        agent = normalize_address(proposer)
        participants = canonical_participants(agent, counterparty)
        if wager < self._min_wager:
            raise ValidationError(
                f"Wager {wager} wei is below the ledger minimum {self._min_wager} wei"
            )
        if current_nonce < 0:
            raise ValidationError(f"Nonce cannot be negative: {current_nonce}")

        return CoordinationIntent(
            payload_hash=ZERO_BYTES32,
            expiry=expiry if expiry is not None else self._expiry(now),
            nonce=current_nonce + 1,
            agent_id=agent,
            coordination_type=normalize_bytes32(coordination_type, "coordinationType"),
            coordination_value=wager,
            participants=participants,
        )

    def build_acceptance(
        self,
        intent_hash: Any,
        participant: str,
        conditions_hash: Any,
        expiry: Optional[int] = None,
        nonce: int = FIRST_ACCEPTANCE_NONCE,
        now: Optional[int] = None,
    ) -> AcceptanceAttestation:
        """Build an unsigned attestation committing to ``conditions_hash``."""
        return AcceptanceAttestation(
            intent_hash=normalize_bytes32(intent_hash, "intentHash"),
            participant=normalize_address(participant),
            nonce=nonce,
            expiry=expiry if expiry is not None else self._expiry(now),
            conditions_hash=normalize_bytes32(conditions_hash, "conditionsHash"),
        )

    def _expiry(self, now: Optional[int]) -> int:
        base = now if now is not None else int(time.time())
        return base + self._ttl
