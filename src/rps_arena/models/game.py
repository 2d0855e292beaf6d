"""Game models — ledger enums, raw ledger state and the derived game view.

The ledger is authoritative for every value here. RawGame mirrors the
eleven fields returned by ``getGame``; GameView is the read-only projection
the engine rebuilds on every poll. Numeric enums use the ledger's uint8
encoding, so unknown numbers must collapse to a safe default rather than
raise.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional, Sequence


ZERO_ADDRESS = "0x" + "0" * 40


class Phase(enum.IntEnum):
    """Coordination status as stored by the ledger."""
    NONE = 0
    PROPOSED = 1
    BOTH_COMMITTED = 2
    REVEALED = 3
    COMPLETED = 4
    CANCELLED = 5

    @classmethod
    def from_raw(cls, value: Any) -> Phase:
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return cls.NONE


class Move(enum.IntEnum):
    """Move tags. NONE is a placeholder, never a playable choice."""
    NONE = 0
    ROCK = 1
    PAPER = 2
    SCISSORS = 3

    @classmethod
    def from_raw(cls, value: Any) -> Move:
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return cls.NONE

    @classmethod
    def parse(cls, text: str) -> Move:
        """Parse a playable move from its name or numeric tag."""
        cleaned = text.strip().upper()
        if cleaned.isdigit():
            move = cls.from_raw(cleaned)
        else:
            move = cls.__members__.get(cleaned, cls.NONE)
        if move == cls.NONE:
            raise ValueError(f"Not a playable move: {text!r}")
        return move

    @property
    def playable(self) -> bool:
        return self != Move.NONE


class Result(enum.IntEnum):
    """Game result. Meaningful only once the phase is COMPLETED."""
    PENDING = 0
    PLAYER1_WINS = 1
    PLAYER2_WINS = 2
    DRAW = 3

    @classmethod
    def from_raw(cls, value: Any) -> Result:
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return cls.PENDING


class SideStatus(str, enum.Enum):
    """Per-participant progress as seen from the ledger."""
    WAITING = "waiting"
    COMMITTED = "committed"
    REVEALED = "revealed"


class Outcome(str, enum.Enum):
    """Viewer-relative outcome of a completed game."""
    WIN = "win"
    LOSE = "lose"
    DRAW = "draw"


@dataclass(frozen=True)
class RawGame:
    """Raw ``getGame`` output, in the ledger's field order."""
    player1: str = ZERO_ADDRESS
    player2: str = ZERO_ADDRESS
    wager: int = 0
    expiry: int = 0
    reveal_deadline: int = 0
    status: int = 0
    player1_committed: bool = False
    player2_committed: bool = False
    player1_move: int = 0
    player2_move: int = 0
    result: int = 0

    @staticmethod
    def from_ledger(values: Sequence[Any]) -> RawGame:
        """Build from the positional tuple a contract call returns."""
        if len(values) != 11:
            raise ValueError(f"getGame returned {len(values)} fields, expected 11")
        return RawGame(
            player1=str(values[0]),
            player2=str(values[1]),
            wager=int(values[2]),
            expiry=int(values[3]),
            reveal_deadline=int(values[4]),
            status=int(values[5]),
            player1_committed=bool(values[6]),
            player2_committed=bool(values[7]),
            player1_move=int(values[8]),
            player2_move=int(values[9]),
            result=int(values[10]),
        )

    @property
    def exists(self) -> bool:
        return Phase.from_raw(self.status) != Phase.NONE


@dataclass(frozen=True)
class GameView:
    """Derived, never-authoritative snapshot of one coordination.

    Rebuilt from scratch on every poll. Fields prefixed ``your_`` and
    ``opponent_`` are relative to the viewer passed to the projection.
    """
    intent_id: str
    player1: str
    player2: str
    wager: int
    pot: int
    expiry: int
    reveal_deadline: int
    phase: Phase
    is_player1: bool
    is_participant: bool
    your_committed: bool
    your_move: Move
    your_status: SideStatus
    opponent: str
    opponent_committed: bool
    opponent_move: Move
    opponent_status: SideStatus
    time_remaining: Optional[int]
    expired: bool
    countdown: str
    can_reveal: bool
    result: Result
    outcome: Optional[Outcome]
    payout_delta: int
    has_secret: bool

    @property
    def completed(self) -> bool:
        return self.phase == Phase.COMPLETED

    @property
    def terminal(self) -> bool:
        return self.phase in (Phase.COMPLETED, Phase.CANCELLED)

    def needs_commit(self) -> bool:
        """True while the viewer is a participant who has not committed."""
        return (
            self.is_participant
            and not self.your_committed
            and self.phase == Phase.PROPOSED
        )
