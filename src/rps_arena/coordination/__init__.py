"""Coordination payloads and EIP-712 signing."""

from rps_arena.coordination.payloads import PayloadBuilder, canonical_participants
from rps_arena.coordination.signer import (
    LocalAccountAgent,
    ProviderAgent,
    SigningAgent,
    TypedDataSigner,
)

__all__ = [
    "PayloadBuilder",
    "canonical_participants",
    "LocalAccountAgent",
    "ProviderAgent",
    "SigningAgent",
    "TypedDataSigner",
]
