"""Game state machine — projects raw ledger state into a viewer's GameView.

The ledger drives every transition; the client only classifies what it
observes. Projection is a pure function of its inputs (raw state, viewer,
clock reading, whether a local secret exists) so the same inputs always
give an equal view.

Projection is total. Unknown status, move or result numbers collapse to
NONE / NONE / PENDING and every derived field falls back to a safe
default, so no combination of raw fields can fail.

Observed lifecycle (ledger-enforced, shown for reference):
    NONE → PROPOSED → BOTH_COMMITTED → REVEALED → COMPLETED
    PROPOSED / BOTH_COMMITTED / REVEALED → CANCELLED
"""

from __future__ import annotations

from rps_arena.formatting import format_countdown
from rps_arena.models.game import (
    GameView,
    Move,
    Outcome,
    Phase,
    RawGame,
    Result,
    SideStatus,
)


# Phases in which the reveal deadline is running.
_COUNTDOWN_PHASES = frozenset({Phase.BOTH_COMMITTED, Phase.REVEALED})

EXPIRED_LABEL = "EXPIRED"
NO_COUNTDOWN_LABEL = "--:--"


def side_status(move: Move, committed: bool) -> SideStatus:
    """Revealed move beats the commit flag, which beats waiting."""
    if move > Move.NONE:
        return SideStatus.REVEALED
    if committed:
        return SideStatus.COMMITTED
    return SideStatus.WAITING


def should_offer_reveal(phase: Phase, viewer_move: Move, has_secret: bool) -> bool:
    """Reveal is actionable only with both commits in, no reveal yet and a secret."""
    return phase == Phase.BOTH_COMMITTED and viewer_move == Move.NONE and has_secret


def viewer_outcome(result: Result, is_player1: bool) -> Outcome:
    """Win/lose from the viewer's side; anything else counts as a draw."""
    mine = Result.PLAYER1_WINS if is_player1 else Result.PLAYER2_WINS
    theirs = Result.PLAYER2_WINS if is_player1 else Result.PLAYER1_WINS
    if result == mine:
        return Outcome.WIN
    if result == theirs:
        return Outcome.LOSE
    return Outcome.DRAW


def payout_delta(outcome: Outcome, wager: int) -> int:
    """Viewer's signed balance change in wei."""
    if outcome == Outcome.WIN:
        return wager
    if outcome == Outcome.LOSE:
        return -wager
    return 0


def same_identity(a: str, b: str) -> bool:
    return a.lower() == b.lower()


class GameStateMachine:
    """Pure projection of ledger state. Holds no state of its own."""

    @staticmethod
    def project(
        raw: RawGame,
        viewer: str,
        *,
        now: int,
        has_secret: bool,
        intent_id: str = "",
    ) -> GameView:
        """Build the viewer-relative GameView for one poll result."""
        phase = Phase.from_raw(raw.status)
        if phase == Phase.NONE:
            return GameStateMachine.empty_view(intent_id, viewer, has_secret=has_secret)

        is_player1 = same_identity(raw.player1, viewer)
        is_participant = is_player1 or same_identity(raw.player2, viewer)

        p1_move = Move.from_raw(raw.player1_move)
        p2_move = Move.from_raw(raw.player2_move)

        if is_player1:
            your_committed, your_move = raw.player1_committed, p1_move
            opp_committed, opp_move = raw.player2_committed, p2_move
            opponent = raw.player2
        else:
            your_committed, your_move = raw.player2_committed, p2_move
            opp_committed, opp_move = raw.player1_committed, p1_move
            opponent = raw.player1

        time_remaining, expired, countdown = _countdown(phase, raw.reveal_deadline, now)

        result = Result.from_raw(raw.result)
        outcome = None
        delta = 0
        if phase == Phase.COMPLETED and is_participant:
            outcome = viewer_outcome(result, is_player1)
            delta = payout_delta(outcome, raw.wager)

        return GameView(
            intent_id=intent_id,
            player1=raw.player1,
            player2=raw.player2,
            wager=raw.wager,
            pot=raw.wager * 2,
            expiry=raw.expiry,
            reveal_deadline=raw.reveal_deadline,
            phase=phase,
            is_player1=is_player1,
            is_participant=is_participant,
            your_committed=your_committed,
            your_move=your_move,
            your_status=side_status(your_move, your_committed),
            opponent=opponent,
            opponent_committed=opp_committed,
            opponent_move=opp_move,
            opponent_status=side_status(opp_move, opp_committed),
            time_remaining=time_remaining,
            expired=expired,
            countdown=countdown,
            can_reveal=should_offer_reveal(phase, your_move, has_secret),
            result=result,
            outcome=outcome,
            payout_delta=delta,
            has_secret=has_secret,
        )

    @staticmethod
    def empty_view(intent_id: str, viewer: str, *, has_secret: bool = False) -> GameView:
        """View for a game the ledger does not know (status NONE)."""
        raw = RawGame()
        return GameView(
            intent_id=intent_id,
            player1=raw.player1,
            player2=raw.player2,
            wager=0,
            pot=0,
            expiry=0,
            reveal_deadline=0,
            phase=Phase.NONE,
            is_player1=False,
            is_participant=False,
            your_committed=False,
            your_move=Move.NONE,
            your_status=SideStatus.WAITING,
            opponent=raw.player1,
            opponent_committed=False,
            opponent_move=Move.NONE,
            opponent_status=SideStatus.WAITING,
            time_remaining=None,
            expired=False,
            countdown=NO_COUNTDOWN_LABEL,
            can_reveal=False,
            result=Result.PENDING,
            outcome=None,
            payout_delta=0,
            has_secret=has_secret,
        )


def _countdown(phase: Phase, reveal_deadline: int, now: int) -> tuple[int | None, bool, str]:
    if phase not in _COUNTDOWN_PHASES:
        return None, False, NO_COUNTDOWN_LABEL
    remaining = reveal_deadline - now
    if remaining <= 0:
        return remaining, True, EXPIRED_LABEL
    return remaining, False, format_countdown(remaining)
