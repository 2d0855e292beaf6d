"""Ledger contract binding."""

from rps_arena.ledger.client import Ledger, LedgerEvent, TxOutcome, Web3Ledger

__all__ = ["Ledger", "LedgerEvent", "TxOutcome", "Web3Ledger"]
