"""Text formatting helpers shared by the CLI and the game projection."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from web3 import Web3

from rps_arena.errors import ValidationError
from rps_arena.models.game import GameView, Move, Outcome
from rps_arena.models.labels import (
    HIDDEN_MOVE_SYMBOL,
    MOVE_SYMBOLS,
    UNKNOWN_MOVE_SYMBOL,
)


def shorten_address(address: str) -> str:
    """``0x1234...abcd`` form of an address or 32-byte hash."""
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def format_eth(wei: int, places: int = 4) -> str:
    """Format a wei amount in ether with a fixed number of places."""
    ether = Web3.from_wei(abs(wei), "ether")
    text = f"{Decimal(ether):.{places}f}"
    return f"-{text}" if wei < 0 else text


def parse_eth(amount: str) -> int:
    """Convert a decimal ether string to wei."""
    try:
        value = Decimal(amount)
    except InvalidOperation:
        raise ValidationError(f"Invalid wager amount: {amount!r}") from None
    if not value.is_finite():
        raise ValidationError(f"Invalid wager amount: {amount!r}")
    if value <= 0:
        raise ValidationError(f"Wager must be positive, got {amount}")
    return int(Web3.to_wei(value, "ether"))


def format_countdown(seconds: int) -> str:
    """``m:ss`` for a positive number of seconds."""
    mins, secs = divmod(seconds, 60)
    return f"{mins}:{secs:02d}"


def format_timestamp(unix_seconds: int) -> str:
    if unix_seconds <= 0:
        return "---"
    ts = datetime.fromtimestamp(unix_seconds, tz=timezone.utc)
    return ts.strftime("%Y-%m-%d %H:%M:%S UTC")


def move_symbol(move: Move, committed: bool) -> str:
    """Symbol for a side: revealed move, lock when committed, else ``?``."""
    if move.playable:
        return MOVE_SYMBOLS[move]
    if committed:
        return HIDDEN_MOVE_SYMBOL
    return UNKNOWN_MOVE_SYMBOL


def prize_label(view: GameView, symbol: str = "ETH") -> str:
    """Viewer's prize line on a completed game."""
    if view.outcome is None:
        return "---"
    if view.outcome == Outcome.DRAW:
        return "REFUNDED"
    sign = "+" if view.outcome == Outcome.WIN else "-"
    return f"{sign}{format_eth(view.wager)} {symbol}"
