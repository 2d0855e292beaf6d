"""Arena service — unified facade for the commit-reveal game client.

This is the primary interface for programmatic access to the arena.
It orchestrates all subsystems:
- Session lifecycle (connect, disconnect, account/chain changes)
- Game creation (intent → signature → registration → commitment)
- Joining (preview, commitment, acceptance)
- Reveal and cancellation
- State reads (poll, auto-refresh, game list, debug snapshot)

All operations produce typed results. A failure carries the typed
exception that caused it; nothing is swallowed and nothing is retried.
Submissions are never repeated automatically, because a duplicate
transaction can move funds twice.

Ordering rules:
- An acceptance is submitted only after the intent registration has
  confirmed and the ledger has assigned the intent hash.
- A reveal is submitted only after a fresh poll reports BOTH_COMMITTED.
- A commitment is persisted only after its attestation is signed, so a
  rejected signing prompt leaves the store untouched. If the acceptance
  is then rejected by the ledger, the commitment is rolled back.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

from rps_arena.config import ArenaConfig, network_name, network_symbol
from rps_arena.coordination.payloads import (
    FIRST_ACCEPTANCE_NONCE,
    PayloadBuilder,
    canonical_participants,
    normalize_address,
    normalize_bytes32,
)
from rps_arena.coordination.signer import SigningAgent, TypedDataSigner, agent_chain_id
from rps_arena.crypto.commitment import CommitmentManager
from rps_arena.engine.state_machine import GameStateMachine, same_identity
from rps_arena.errors import (
    ArenaError,
    NotConnected,
    OperationInProgress,
    SubmissionError,
    SynchronizationError,
    ValidationError,
    WrongChain,
)
from rps_arena.formatting import format_eth, prize_label
from rps_arena.ledger.client import Ledger, TxOutcome
from rps_arena.models.game import GameView, Move, Phase, RawGame, Result
from rps_arena.models.labels import OUTCOME_TITLES, PHASE_LABELS, RESULT_LABELS
from rps_arena.persistence.commitment_store import CommitmentStore
from rps_arena.session import SessionContext
from rps_arena.sync.loop import ErrorCallback, SyncLoop, ViewCallback


logger = logging.getLogger(__name__)

RECENT_GAMES_LIMIT = 10


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    failure: Optional[ArenaError] = None


class ArenaService:
    """Unified game client facade.

    Usage:
        service = ArenaService(config, ledger, store)
        service.connect(LocalAccountAgent.from_key(key, chain_id))

        result = service.create_game(opponent, wager_wei, Move.ROCK)
        intent = result.data["intent_hash"]

        # counterparty
        service.accept_game(intent, Move.PAPER)

        # once both have committed
        service.reveal(intent)
    """

    def __init__(
        self,
        config: ArenaConfig,
        ledger: Ledger,
        store: CommitmentStore,
        *,
        clock: Callable[[], float] = time.time,
        on_update: Optional[ViewCallback] = None,
        on_complete: Optional[ViewCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._config = config
        self._ledger = ledger
        self._commitments = CommitmentManager(store)
        self._builder = PayloadBuilder(
            min_wager=config.min_wager_wei,
            ttl_seconds=config.intent_ttl,
        )
        self._clock = clock
        self._on_update = on_update
        self._on_complete = on_complete
        self._on_error = on_error

        self._session: Optional[SessionContext] = None
        self._busy: set[str] = set()
        self._busy_lock = threading.Lock()

    @property
    def session(self) -> Optional[SessionContext]:
        return self._session

    @property
    def commitments(self) -> CommitmentManager:
        return self._commitments

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def connect(self, agent: SigningAgent) -> ServiceResult:
        """Open a session for the agent's account.

        Fails if the agent is on a different chain from the ledger, or if
        the ledger's domain separator differs from the locally computed one.
        """
        data: dict[str, Any] = {}

        def op() -> None:
            self.disconnect()
            address = normalize_address(agent.address)
            chain_id = agent_chain_id(agent)
            ledger_chain = self._ledger.chain_id()
            if chain_id != ledger_chain:
                raise WrongChain(ledger_chain, chain_id)

            signer = TypedDataSigner(agent, chain_id, self._config.contract_address)
            signer.verify_domain(self._ledger.domain_separator())

            sync = SyncLoop(
                self._ledger,
                self._commitments,
                address,
                on_update=self._on_update,
                on_complete=self._on_complete,
                on_error=self._on_error,
                clock=self._clock,
            )
            self._session = SessionContext.open(address, chain_id, signer, sync)
            logger.info("Connected %s on chain %d", address, chain_id)
            data.update({
                "address": address,
                "chain_id": chain_id,
                "network": network_name(chain_id),
                "contract": self._config.contract_address,
            })

        return self._run("connect", op, data)

    def disconnect(self) -> None:
        """Clear the session. Safe to call without one."""
        session, self._session = self._session, None
        if session is not None:
            session.close()
            logger.info("Disconnected %s", session.address)

    def on_accounts_changed(self, accounts: list[str]) -> None:
        """Wallet account switch: the old session no longer applies."""
        session = self._session
        if session is None:
            return
        if accounts and same_identity(accounts[0], session.address):
            return
        logger.info("Account changed; clearing session")
        self.disconnect()

    def on_chain_changed(self, chain_id: int) -> None:
        session = self._session
        if session is not None and session.chain_id != chain_id:
            logger.info("Chain changed to %d; clearing session", chain_id)
            self.disconnect()

    # ------------------------------------------------------------------
    # Game creation and joining
    # ------------------------------------------------------------------

    def create_game(self, opponent: str, wager: int, move: Move) -> ServiceResult:
        """Register an intent against ``opponent`` and commit ``move``.

        On success ``data["intent_hash"]`` is the ledger-assigned id. If the
        registration succeeds but the commitment fails, the result still
        carries the intent hash so the move can be committed later with
        ``accept_game``.
        """
        data: dict[str, Any] = {}

        def op() -> None:
            session = self._require_session()
            _require_move(move)
            canonical_participants(session.address, opponent)
            counterparty = normalize_address(opponent)
            if wager < self._config.min_wager_wei:
                raise ValidationError(
                    f"Wager {wager} wei is below the ledger minimum "
                    f"{self._config.min_wager_wei} wei"
                )

            with self._exclusive(f"propose:{session.address.lower()}"):
                coordination_type = self._ledger.coordination_type()
                current_nonce = self._ledger.agent_nonce(session.address)
                intent = self._builder.build_intent(
                    session.address,
                    counterparty,
                    wager,
                    coordination_type,
                    current_nonce,
                    now=int(self._clock()),
                )
                logger.info(
                    "Creating game vs %s, wager %s, nonce %d",
                    counterparty, wager, intent.nonce,
                )
                signature = session.signer.sign_intent(intent)
                outcome = self._ledger.propose_coordination(
                    intent, signature, sender=session.address
                )
                data["propose_tx"] = outcome.tx_hash

                event = outcome.first("CoordinationProposed")
                if event is None:
                    raise SubmissionError(
                        "Registration confirmed without a CoordinationProposed event",
                        tx_hash=outcome.tx_hash,
                    )
                intent_hash = normalize_bytes32(event.args["intentHash"], "intentHash")
                data["intent_hash"] = intent_hash
                logger.info("Game created, intent hash %s", intent_hash)

            with self._exclusive(intent_hash):
                accept, digest = self._commit_and_accept(session, intent_hash, move, value=0)
            data["accept_tx"] = accept.tx_hash
            data["commitment"] = digest

        return self._run("create game", op, data)

    def preview_game(self, intent_id: str) -> ServiceResult:
        """Inspect a game before joining."""
        data: dict[str, Any] = {}

        def op() -> None:
            session = self._require_session()
            intent_hash = normalize_bytes32(intent_id, "game id")
            raw = self._ledger.get_game(intent_hash)
            if not raw.exists:
                raise ValidationError("Game not found")
            is_player1 = same_identity(raw.player1, session.address)
            is_player2 = same_identity(raw.player2, session.address)
            if not (is_player1 or is_player2):
                raise ValidationError("You are not a participant in this game")
            committed = raw.player1_committed if is_player1 else raw.player2_committed
            data.update({
                "intent_hash": intent_hash,
                "challenger": raw.player1,
                "wager": raw.wager,
                "expiry": raw.expiry,
                "is_player1": is_player1,
                "needs_commit": not committed,
            })

        return self._run("preview game", op, data)

    def accept_game(self, intent_id: str, move: Move) -> ServiceResult:
        """Commit ``move`` to an existing intent.

        The second participant stakes the wager with the acceptance; the
        proposer already staked it at registration.
        """
        data: dict[str, Any] = {}

        def op() -> None:
            session = self._require_session()
            _require_move(move)
            intent_hash = normalize_bytes32(intent_id, "game id")
            data["intent_hash"] = intent_hash

            with self._exclusive(intent_hash):
                raw = self._ledger.get_game(intent_hash)
                if not raw.exists:
                    raise ValidationError("Game not found")
                if Phase.from_raw(raw.status) != Phase.PROPOSED:
                    raise ValidationError(
                        f"Game is {PHASE_LABELS[Phase.from_raw(raw.status)]}, not open for commitments"
                    )
                is_player2 = same_identity(raw.player2, session.address)
                is_player1 = same_identity(raw.player1, session.address)
                if not (is_player1 or is_player2):
                    raise ValidationError("You are not a participant in this game")
                already = raw.player2_committed if is_player2 else raw.player1_committed
                if already:
                    raise ValidationError("Move already committed for this game")

                value = raw.wager if is_player2 else 0
                logger.info(
                    "Accepting %s as player %d, sending %s wei",
                    intent_hash, 2 if is_player2 else 1, value,
                )
                outcome, digest = self._commit_and_accept(session, intent_hash, move, value)
            data["accept_tx"] = outcome.tx_hash
            data["commitment"] = digest

        return self._run("accept game", op, data)

    # ------------------------------------------------------------------
    # Reveal and cancel
    # ------------------------------------------------------------------

    def reveal(self, intent_id: str) -> ServiceResult:
        """Disclose the stored (move, secret) once both sides have committed."""
        data: dict[str, Any] = {}

        def op() -> None:
            session = self._require_session()
            intent_hash = normalize_bytes32(intent_id, "game id")
            data["intent_hash"] = intent_hash

            with self._exclusive(intent_hash):
                view = session.sync.poll(intent_hash)
                if view.phase != Phase.BOTH_COMMITTED:
                    raise ValidationError(
                        f"Game is {PHASE_LABELS[view.phase]}; reveal needs both commitments"
                    )
                if view.your_move != Move.NONE:
                    raise ValidationError("Move already revealed")
                move, secret = self._commitments.reveal_arguments(intent_hash)
                logger.info("Revealing move %s for %s", move.name, intent_hash)
                outcome = self._ledger.reveal_move(
                    intent_hash, move, secret, sender=session.address
                )
                data["reveal_tx"] = outcome.tx_hash
                try:
                    data["view"] = session.sync.poll(intent_hash)
                except SynchronizationError as exc:
                    logger.warning(
                        "Reveal confirmed; refresh of %s failed: %s", intent_hash, exc
                    )

        return self._run("reveal", op, data)

    def cancel(self, intent_id: str) -> ServiceResult:
        """Ask the ledger to cancel; the ledger decides whether it may."""
        data: dict[str, Any] = {}

        def op() -> None:
            session = self._require_session()
            intent_hash = normalize_bytes32(intent_id, "game id")
            data["intent_hash"] = intent_hash
            with self._exclusive(intent_hash):
                outcome = self._ledger.cancel_coordination(intent_hash, sender=session.address)
            data["cancel_tx"] = outcome.tx_hash

        return self._run("cancel", op, data)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def refresh(self, intent_id: str) -> ServiceResult:
        """Poll once and return the current GameView."""
        data: dict[str, Any] = {}

        def op() -> None:
            session = self._require_session()
            intent_hash = normalize_bytes32(intent_id, "game id")
            data["view"] = session.sync.poll(intent_hash)

        return self._run("refresh", op, data)

    def open_game(self, intent_id: str, auto_refresh: bool = True) -> ServiceResult:
        """Poll a game and keep refreshing it while it is displayed."""
        result = self.refresh(intent_id)
        if result.success and auto_refresh and self._session is not None:
            view: GameView = result.data["view"]
            self._session.sync.start_auto_refresh(
                view.intent_id, interval=self._config.refresh_seconds
            )
        return result

    def close_game(self) -> None:
        if self._session is not None:
            self._session.sync.stop()

    def list_games(self, limit: int = RECENT_GAMES_LIMIT) -> ServiceResult:
        """The viewer's most recent games, newest first."""
        data: dict[str, Any] = {}

        def op() -> None:
            session = self._require_session()
            ids = self._ledger.get_player_games(session.address)
            recent = list(reversed(ids[-limit:])) if limit > 0 else []
            games = []
            now = int(self._clock())
            for game_id in recent:
                raw = self._ledger.get_game(game_id)
                view = GameStateMachine.project(
                    raw,
                    session.address,
                    now=now,
                    has_secret=self._commitments.has_secret(game_id),
                    intent_id=game_id,
                )
                games.append(view)
            data["games"] = games
            data["total"] = len(ids)

        return self._run("list games", op, data)

    def summary(self, view: GameView) -> dict[str, Any]:
        """Display-ready fields for one view."""
        symbol = network_symbol(self._session.chain_id) if self._session else "ETH"
        info: dict[str, Any] = {
            "intent_hash": view.intent_id,
            "status": PHASE_LABELS[view.phase],
            "opponent": view.opponent,
            "wager": f"{format_eth(view.wager)} {symbol}",
            "pot": f"{format_eth(view.pot)} {symbol}",
            "time_left": view.countdown,
            "you": view.your_status.value,
            "them": view.opponent_status.value,
            "can_reveal": view.can_reveal,
        }
        if view.outcome is not None:
            info["result"] = OUTCOME_TITLES[view.outcome]
            info["prize"] = prize_label(view, symbol)
        return info

    def debug_snapshot(
        self,
        intent_id: Optional[str] = None,
        include_secret: bool = False,
    ) -> ServiceResult:
        """Wallet, domain and (optionally) per-game diagnostic values."""
        data: dict[str, Any] = {}

        def op() -> None:
            session = self._require_session()
            data.update({
                "address": session.address,
                "chain_id": session.chain_id,
                "network": session.network,
                "contract": self._config.contract_address,
                "nonce": self._ledger.agent_nonce(session.address),
                "balance": format_eth(self._ledger.balance(session.address)),
                "domain_separator": self._ledger.domain_separator(),
                "local_domain_separator": session.signer.domain_separator(),
            })
            if intent_id is None:
                return
            intent_hash = normalize_bytes32(intent_id, "game id")
            raw = self._ledger.get_game(intent_hash)
            stored = self._commitments.load(intent_hash)
            data["intent_hash"] = intent_hash
            data["is_player1"] = same_identity(raw.player1, session.address)
            data["game"] = _raw_fields(raw)
            if stored is not None:
                data["your_move"] = f"{int(stored.move)} ({stored.move.name.title()})"
                data["your_commitment"] = self._commitments.stored_digest(intent_hash)
                if include_secret:
                    data["your_salt"] = stored.secret

        return self._run("debug", op, data)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _commit_and_accept(
        self,
        session: SessionContext,
        intent_hash: str,
        move: Move,
        value: int,
    ) -> tuple[TxOutcome, str]:
        digest, secret = self._commitments.commit(move)
        attestation = self._builder.build_acceptance(
            intent_hash,
            session.address,
            digest,
            nonce=FIRST_ACCEPTANCE_NONCE,
            now=int(self._clock()),
        )
        signed = session.signer.sign_acceptance(attestation)

        prior = self._commitments.load(intent_hash)
        self._commitments.persist(intent_hash, move, secret)
        try:
            outcome = self._ledger.accept_coordination(signed, value, sender=session.address)
        except SubmissionError:
            if prior is not None:
                self._commitments.persist(intent_hash, prior.move, prior.secret)
            else:
                self._commitments.discard(intent_hash)
            raise
        logger.info("Move committed for %s in block %d", intent_hash, outcome.block_number)
        return outcome, digest

    def _require_session(self) -> SessionContext:
        if self._session is None:
            raise NotConnected("Connect a wallet first")
        return self._session

    @contextmanager
    def _exclusive(self, key: str) -> Iterator[None]:
        key = key.lower()
        with self._busy_lock:
            if key in self._busy:
                raise OperationInProgress(f"Another operation is running for {key}")
            self._busy.add(key)
        try:
            yield
        finally:
            with self._busy_lock:
                self._busy.discard(key)

    def _run(self, name: str, op: Callable[[], None], data: dict[str, Any]) -> ServiceResult:
        try:
            op()
        except ArenaError as exc:
            logger.warning("%s failed: %s", name, exc)
            return ServiceResult(success=False, errors=[str(exc)], data=data, failure=exc)
        return ServiceResult(success=True, data=data)


def _require_move(move: Any) -> None:
    if not isinstance(move, Move) or not move.playable:
        raise ValidationError("Please select your move")


def _raw_fields(raw: RawGame) -> dict[str, Any]:
    return {
        "player1": raw.player1,
        "player2": raw.player2,
        "wager": raw.wager,
        "status": f"{raw.status} ({PHASE_LABELS[Phase.from_raw(raw.status)]})",
        "player1_committed": raw.player1_committed,
        "player2_committed": raw.player2_committed,
        "player1_move": raw.player1_move,
        "player2_move": raw.player2_move,
        "result": RESULT_LABELS[Result.from_raw(raw.result)],
        "expiry": raw.expiry,
        "reveal_deadline": raw.reveal_deadline,
    }


