"""Ledger polling and auto-refresh."""

from rps_arena.sync.loop import AutoRefreshTask, SyncLoop

__all__ = ["AutoRefreshTask", "SyncLoop"]
