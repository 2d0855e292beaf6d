"""Display labels for every enum variant.

Each table must cover its enum completely; the test suite checks this so
that adding a phase or move forces a visible update here.
"""

from __future__ import annotations

from rps_arena.models.game import Move, Outcome, Phase, Result, SideStatus


PHASE_LABELS: dict[Phase, str] = {
    Phase.NONE: "None",
    Phase.PROPOSED: "Proposed",
    Phase.BOTH_COMMITTED: "Committed",
    Phase.REVEALED: "Revealed",
    Phase.COMPLETED: "Completed",
    Phase.CANCELLED: "Cancelled",
}

MOVE_LABELS: dict[Move, str] = {
    Move.NONE: "None",
    Move.ROCK: "Rock",
    Move.PAPER: "Paper",
    Move.SCISSORS: "Scissors",
}

MOVE_SYMBOLS: dict[Move, str] = {
    Move.NONE: "❓",
    Move.ROCK: "✊",
    Move.PAPER: "✋",
    Move.SCISSORS: "✌️",
}

RESULT_LABELS: dict[Result, str] = {
    Result.PENDING: "Pending",
    Result.PLAYER1_WINS: "Player1 Wins",
    Result.PLAYER2_WINS: "Player2 Wins",
    Result.DRAW: "Draw",
}

SIDE_STATUS_LABELS: dict[SideStatus, str] = {
    SideStatus.WAITING: "WAITING",
    SideStatus.COMMITTED: "COMMITTED",
    SideStatus.REVEALED: "REVEALED",
}

OUTCOME_TITLES: dict[Outcome, str] = {
    Outcome.WIN: "YOU WIN!",
    Outcome.LOSE: "YOU LOSE",
    Outcome.DRAW: "DRAW!",
}

# Lock glyph shown for a committed but unrevealed move.
HIDDEN_MOVE_SYMBOL = "\U0001f512"
UNKNOWN_MOVE_SYMBOL = "?"
