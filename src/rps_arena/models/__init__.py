"""Core data models for RPS Arena."""

from rps_arena.models.game import (
    GameView,
    Move,
    Outcome,
    Phase,
    RawGame,
    Result,
    SideStatus,
)
from rps_arena.models.coordination import AcceptanceAttestation, CoordinationIntent
from rps_arena.models.commitment import StoredCommitment

__all__ = [
    "GameView",
    "Move",
    "Outcome",
    "Phase",
    "RawGame",
    "Result",
    "SideStatus",
    "AcceptanceAttestation",
    "CoordinationIntent",
    "StoredCommitment",
]
