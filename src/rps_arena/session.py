"""Session context — everything tied to one connected wallet account.

A session is created when a signing agent connects and cleared when the
account or chain changes. Nothing about the connection is global: the
service holds at most one SessionContext and passes it explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from rps_arena.config import network_name
from rps_arena.coordination.signer import TypedDataSigner
from rps_arena.sync.loop import SyncLoop


@dataclass
class SessionContext:
    """Connected account, its chain, its signer and its sync loop."""

    address: str
    chain_id: int
    signer: TypedDataSigner
    sync: SyncLoop
    connected_utc: datetime

    @staticmethod
    def open(
        address: str,
        chain_id: int,
        signer: TypedDataSigner,
        sync: SyncLoop,
        now: Optional[datetime] = None,
    ) -> SessionContext:
        return SessionContext(
            address=address,
            chain_id=chain_id,
            signer=signer,
            sync=sync,
            connected_utc=now or datetime.now(timezone.utc),
        )

    @property
    def network(self) -> str:
        return network_name(self.chain_id)

    def close(self) -> None:
        """Release session resources (stops auto-refresh)."""
        self.sync.stop()
