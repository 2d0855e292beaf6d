"""Shared fixtures — an in-memory arena ledger and signing identities."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Callable, Optional

import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data
from web3 import Web3

from rps_arena.config import ArenaConfig
from rps_arena.coordination.signer import LocalAccountAgent, TypedDataSigner
from rps_arena.crypto.commitment import commitment_digest
from rps_arena.errors import ConfirmationPending, LedgerReadError, SubmissionError
from rps_arena.ledger.client import LedgerEvent, TxOutcome
from rps_arena.models.coordination import AcceptanceAttestation, CoordinationIntent
from rps_arena.models.game import Move, Phase, RawGame, Result
from rps_arena.persistence.commitment_store import MemoryCommitmentStore
from rps_arena.service import ArenaService


CHAIN_ID = 31337
CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
ALICE_KEY = "0x" + "11" * 32
BOB_KEY = "0x" + "22" * 32
CAROL_KEY = "0x" + "33" * 32
REVEAL_WINDOW = 3600
START_TIME = 1_700_000_000
COORDINATION_TYPE = Web3.to_hex(Web3.keccak(text="RPS_GAME_V1"))


class FakeClock:
    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeLedger:
    """Arena contract semantics kept in memory.

    Signatures are recovered and checked against the claimed signer, and
    reveals are checked against the committed digest, so a client that
    signs or commits incorrectly fails here the way it would on chain.
    """

    def __init__(self, clock: FakeClock, chain_id: int = CHAIN_ID) -> None:
        self._clock = clock
        self._chain_id = chain_id
        self._domain = TypedDataSigner(None, chain_id, CONTRACT)
        self.separator = self._domain.domain_separator()
        self.games: dict[str, dict[str, Any]] = {}
        self.nonces: dict[str, int] = {}
        self.player_games: dict[str, list[str]] = {}
        self.digests: dict[tuple[str, str], str] = {}
        self.balances: dict[str, int] = {}
        self.intents: list[CoordinationIntent] = []
        self.accepts: list[tuple[AcceptanceAttestation, int, str]] = []
        self.calls: list[str] = []
        self.fail_accept: Optional[str] = None
        self.pending_accept = False
        self.fail_reads = False
        self.fail_reads_after_reveal = False
        self.before_get_game: Optional[Callable[[str], None]] = None
        self._tx = 0

    # reads

    def chain_id(self) -> int:
        return self._chain_id

    def balance(self, account: str) -> int:
        return self.balances.get(account.lower(), 10 * 10**18)

    def get_game(self, intent_id: str) -> RawGame:
        self.calls.append("getGame")
        hook, self.before_get_game = self.before_get_game, None
        if hook is not None:
            hook(intent_id)
        if self.fail_reads:
            raise LedgerReadError("getGame failed: connection refused")
        game = self.games.get(intent_id.lower())
        return RawGame(**game) if game is not None else RawGame()

    def get_player_games(self, player: str) -> list[str]:
        return list(self.player_games.get(player.lower(), []))

    def agent_nonce(self, agent: str) -> int:
        self.calls.append("agentNonces")
        return self.nonces.get(agent.lower(), 0)

    def coordination_type(self) -> str:
        self.calls.append("COORDINATION_TYPE")
        return COORDINATION_TYPE

    def domain_separator(self) -> str:
        return self.separator

    # writes

    def propose_coordination(
        self, intent: CoordinationIntent, signature: str, sender: str
    ) -> TxOutcome:
        self.calls.append("proposeCoordination")
        message = self._domain.intent_message(intent)
        signer = Account.recover_message(
            encode_typed_data(full_message=message), signature=signature
        )
        if signer.lower() != sender.lower() or intent.agent_id.lower() != sender.lower():
            raise SubmissionError("Propose rejected", reason="Invalid signature")
        if intent.nonce != self.nonces.get(sender.lower(), 0) + 1:
            raise SubmissionError("Propose rejected", reason="Bad nonce")
        if list(intent.participants) != sorted(intent.participants, key=str.lower):
            raise SubmissionError("Propose rejected", reason="Participants not sorted")

        self.nonces[sender.lower()] = intent.nonce
        intent_hash = Web3.to_hex(Web3.keccak(text=f"{sender.lower()}:{intent.nonce}"))
        opponent = next(p for p in intent.participants if p.lower() != sender.lower())
        self.seed(
            intent_hash,
            player1=sender,
            player2=opponent,
            wager=intent.coordination_value,
            expiry=intent.expiry,
            status=int(Phase.PROPOSED),
        )
        self.intents.append(intent)
        return self._outcome(LedgerEvent(
            "CoordinationProposed",
            {"intentHash": intent_hash, "proposer": sender, "coordinationType": COORDINATION_TYPE},
        ))

    def accept_coordination(
        self, attestation: AcceptanceAttestation, value: int, sender: str
    ) -> TxOutcome:
        self.calls.append("acceptCoordination")
        if self.fail_accept is not None:
            raise SubmissionError("Accept rejected", reason=self.fail_accept)
        if self.pending_accept:
            raise ConfirmationPending(Web3.to_hex(Web3.keccak(text="pending")))
        message = self._domain.acceptance_message(attestation)
        signer = Account.recover_message(
            encode_typed_data(full_message=message), signature=attestation.signature
        )
        if signer.lower() != sender.lower():
            raise SubmissionError("Accept rejected", reason="Invalid signature")

        key = attestation.intent_hash.lower()
        game = self.games.get(key)
        if game is None or game["status"] != Phase.PROPOSED:
            raise SubmissionError("Accept rejected", reason="Not proposed")
        is_player1 = game["player1"].lower() == sender.lower()
        expected_value = 0 if is_player1 else game["wager"]
        if value != expected_value:
            raise SubmissionError("Accept rejected", reason="Wrong wager")

        game["player1_committed" if is_player1 else "player2_committed"] = True
        self.digests[(key, sender.lower())] = attestation.conditions_hash.lower()
        if game["player1_committed"] and game["player2_committed"]:
            game["status"] = int(Phase.BOTH_COMMITTED)
            game["reveal_deadline"] = int(self._clock()) + REVEAL_WINDOW
        self.accepts.append((attestation, value, sender))
        return self._outcome(LedgerEvent(
            "CoordinationAccepted", {"intentHash": key, "participant": sender},
        ))

    def reveal_move(self, intent_id: str, move: Move, secret: str, sender: str) -> TxOutcome:
        self.calls.append("revealMove")
        key = intent_id.lower()
        game = self.games[key]
        if game["status"] not in (Phase.BOTH_COMMITTED, Phase.REVEALED):
            raise SubmissionError("Reveal rejected", reason="Not in reveal phase")
        if commitment_digest(move, secret).lower() != self.digests.get((key, sender.lower())):
            raise SubmissionError("Reveal rejected", reason="Invalid reveal")

        is_player1 = game["player1"].lower() == sender.lower()
        game["player1_move" if is_player1 else "player2_move"] = int(move)
        if game["player1_move"] and game["player2_move"]:
            game["result"] = int(winner(Move(game["player1_move"]), Move(game["player2_move"])))
            game["status"] = int(Phase.COMPLETED)
        if self.fail_reads_after_reveal:
            self.fail_reads = True
        return self._outcome(LedgerEvent("MoveRevealed", {"intentHash": key, "player": sender}))

    def cancel_coordination(self, intent_id: str, sender: str) -> TxOutcome:
        self.calls.append("cancelCoordination")
        game = self.games.get(intent_id.lower())
        if game is None or game["status"] in (Phase.COMPLETED, Phase.CANCELLED):
            raise SubmissionError("Cancel rejected", reason="Cannot cancel")
        game["status"] = int(Phase.CANCELLED)
        return self._outcome(LedgerEvent("CoordinationCancelled", {"intentHash": intent_id}))

    # helpers

    def seed(self, intent_id: str, **fields: Any) -> None:
        game = RawGame(**fields)
        key = intent_id.lower()
        self.games[key] = asdict(game)
        for player in (game.player1, game.player2):
            games = self.player_games.setdefault(player.lower(), [])
            if key not in games:
                games.append(key)

    def _outcome(self, *events: LedgerEvent) -> TxOutcome:
        self._tx += 1
        return TxOutcome(
            tx_hash=Web3.to_hex(Web3.keccak(text=f"tx{self._tx}")),
            block_number=self._tx,
            events=tuple(events),
        )


def winner(p1: Move, p2: Move) -> Result:
    diff = (int(p1) - int(p2)) % 3
    if diff == 0:
        return Result.DRAW
    return Result.PLAYER1_WINS if diff == 1 else Result.PLAYER2_WINS


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ledger(clock: FakeClock) -> FakeLedger:
    return FakeLedger(clock)


@pytest.fixture
def config() -> ArenaConfig:
    return ArenaConfig(contract_address=CONTRACT, intent_ttl=600, min_wager_wei=10**15)


@pytest.fixture
def alice() -> LocalAccountAgent:
    return LocalAccountAgent.from_key(ALICE_KEY, CHAIN_ID)


@pytest.fixture
def bob() -> LocalAccountAgent:
    return LocalAccountAgent.from_key(BOB_KEY, CHAIN_ID)


@pytest.fixture
def carol() -> LocalAccountAgent:
    return LocalAccountAgent.from_key(CAROL_KEY, CHAIN_ID)


@pytest.fixture
def make_service(
    config: ArenaConfig, ledger: FakeLedger, clock: FakeClock
) -> Callable[..., ArenaService]:
    """Factory: one service per participant, each with its own store."""
    def factory(**callbacks: Any) -> ArenaService:
        return ArenaService(config, ledger, MemoryCommitmentStore(), clock=clock, **callbacks)
    return factory
