"""Runtime configuration, read from the environment and an optional .env file.

    RPS_CONTRACT_ADDRESS   ledger contract address
    RPS_RPC_URL            JSON-RPC endpoint
    RPS_PRIVATE_KEY        local signing key (absent: provider-managed account)
    RPS_STORE_PATH         commitment store file
    RPS_REFRESH_SECONDS    auto-refresh interval while a game is displayed
    RPS_INTENT_TTL         seconds until a new intent or attestation expires
    RPS_MIN_WAGER_WEI      smallest wager the ledger accepts
    RPS_RECEIPT_TIMEOUT    seconds to wait for a transaction receipt
    RPS_LOG_LEVEL          logging level name
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


DEFAULT_CONTRACT_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
DEFAULT_RPC_URL = "http://127.0.0.1:8545"
DEFAULT_STORE_PATH = Path.home() / ".rps_arena" / "commitments.json"

NETWORKS: dict[int, dict[str, str]] = {
    31337: {"name": "Localhost", "symbol": "ETH"},
    11155111: {"name": "Sepolia", "symbol": "ETH"},
    84532: {"name": "Base Sepolia", "symbol": "ETH"},
}


def network_name(chain_id: int) -> str:
    network = NETWORKS.get(chain_id)
    return network["name"] if network else f"Chain {chain_id}"


def network_symbol(chain_id: int) -> str:
    network = NETWORKS.get(chain_id)
    return network["symbol"] if network else "ETH"


@dataclass(frozen=True)
class ArenaConfig:
    """Immutable client settings."""
    contract_address: str = DEFAULT_CONTRACT_ADDRESS
    rpc_url: str = DEFAULT_RPC_URL
    private_key: Optional[str] = None
    store_path: Path = DEFAULT_STORE_PATH
    refresh_seconds: float = 10.0
    intent_ttl: int = 3600
    min_wager_wei: int = 1
    receipt_timeout: float = 120.0
    log_level: str = "INFO"

    @staticmethod
    def from_env(env_file: Optional[Path] = None) -> ArenaConfig:
        """Load settings, letting a .env file fill unset variables."""
        if env_file is not None:
            load_dotenv(env_file)
        else:
            load_dotenv()

        store = os.getenv("RPS_STORE_PATH")
        return ArenaConfig(
            contract_address=os.getenv("RPS_CONTRACT_ADDRESS", DEFAULT_CONTRACT_ADDRESS),
            rpc_url=os.getenv("RPS_RPC_URL", DEFAULT_RPC_URL),
            private_key=os.getenv("RPS_PRIVATE_KEY") or None,
            store_path=Path(store).expanduser() if store else DEFAULT_STORE_PATH,
            refresh_seconds=float(os.getenv("RPS_REFRESH_SECONDS", "10")),
            intent_ttl=int(os.getenv("RPS_INTENT_TTL", "3600")),
            min_wager_wei=int(os.getenv("RPS_MIN_WAGER_WEI", "1")),
            receipt_timeout=float(os.getenv("RPS_RECEIPT_TIMEOUT", "120")),
            log_level=os.getenv("RPS_LOG_LEVEL", "INFO").upper(),
        )
