"""Ledger client — the web3 binding of the arena contract.

The client never re-implements ledger validation. It encodes calls,
submits transactions, waits for receipts and decodes the emitted events
so the engine can learn ledger-assigned identifiers (the intent hash).

A receipt that does not arrive within the timeout is reported as
ConfirmationPending, not as a failure: the transaction may still land.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception
from web3.logs import DISCARD

from rps_arena.errors import ConfirmationPending, LedgerReadError, SubmissionError
from rps_arena.ledger.abi import ARENA_ABI, EVENT_NAMES
from rps_arena.models.coordination import AcceptanceAttestation, CoordinationIntent
from rps_arena.models.game import Move, RawGame


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerEvent:
    """A decoded contract event."""
    name: str
    args: dict[str, Any]


@dataclass(frozen=True)
class TxOutcome:
    """A confirmed transaction and the events it emitted."""
    tx_hash: str
    block_number: int
    events: tuple[LedgerEvent, ...] = field(default_factory=tuple)

    def first(self, name: str) -> Optional[LedgerEvent]:
        for event in self.events:
            if event.name == name:
                return event
        return None


class Ledger(Protocol):
    """Contract surface consumed by the engine."""

    def chain_id(self) -> int: ...

    def balance(self, account: str) -> int: ...

    def get_game(self, intent_id: str) -> RawGame: ...

    def get_player_games(self, player: str) -> list[str]: ...

    def agent_nonce(self, agent: str) -> int: ...

    def coordination_type(self) -> str: ...

    def domain_separator(self) -> str: ...

    def propose_coordination(
        self, intent: CoordinationIntent, signature: str, sender: str
    ) -> TxOutcome: ...

    def accept_coordination(
        self, attestation: AcceptanceAttestation, value: int, sender: str
    ) -> TxOutcome: ...

    def reveal_move(self, intent_id: str, move: Move, secret: str, sender: str) -> TxOutcome: ...

    def cancel_coordination(self, intent_id: str, sender: str) -> TxOutcome: ...


class Web3Ledger:
    """Ledger backed by a web3 JSON-RPC connection.

    With ``account`` set, transactions are signed locally and sent raw;
    otherwise the node's managed account for the sender signs them.

    Usage:
        w3 = Web3(HTTPProvider(rpc_url))
        ledger = Web3Ledger(w3, contract_address, account=Account.from_key(key))
        game = ledger.get_game(intent_hash)
    """

    def __init__(
        self,
        w3: Web3,
        contract_address: str,
        account: Optional[LocalAccount] = None,
        receipt_timeout: float = 120.0,
    ) -> None:
        self._w3 = w3
        self._address = Web3.to_checksum_address(contract_address)
        self._contract = w3.eth.contract(address=self._address, abi=ARENA_ABI)
        self._account = account
        self._receipt_timeout = receipt_timeout

    @property
    def address(self) -> str:
        return self._address

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def chain_id(self) -> int:
        return int(self._read(lambda: self._w3.eth.chain_id, "chainId"))

    def balance(self, account: str) -> int:
        return int(self._read(lambda: self._w3.eth.get_balance(account), "getBalance"))

    def get_game(self, intent_id: str) -> RawGame:
        values = self._read(
            lambda: self._contract.functions.getGame(_b32(intent_id)).call(), "getGame"
        )
        return RawGame.from_ledger(values)

    def get_player_games(self, player: str) -> list[str]:
        ids = self._read(
            lambda: self._contract.functions.getPlayerGames(player).call(),
            "getPlayerGames",
        )
        return [Web3.to_hex(i) for i in ids]

    def coordination_status(self, intent_id: str) -> int:
        return int(self._read(
            lambda: self._contract.functions.getCoordinationStatus(_b32(intent_id)).call(),
            "getCoordinationStatus",
        ))

    def agent_nonce(self, agent: str) -> int:
        return int(self._read(
            lambda: self._contract.functions.agentNonces(agent).call(), "agentNonces"
        ))

    def coordination_type(self) -> str:
        return Web3.to_hex(self._read(
            lambda: self._contract.functions.COORDINATION_TYPE().call(),
            "COORDINATION_TYPE",
        ))

    def domain_separator(self) -> str:
        return Web3.to_hex(self._read(
            lambda: self._contract.functions.DOMAIN_SEPARATOR().call(),
            "DOMAIN_SEPARATOR",
        ))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def propose_coordination(
        self, intent: CoordinationIntent, signature: str, sender: str
    ) -> TxOutcome:
        fn = self._contract.functions.proposeCoordination(
            intent.as_contract_arg(), _hex_bytes(signature)
        )
        return self._send(fn, sender, value=intent.coordination_value, label="Propose")

    def accept_coordination(
        self, attestation: AcceptanceAttestation, value: int, sender: str
    ) -> TxOutcome:
        fn = self._contract.functions.acceptCoordination(attestation.as_contract_arg())
        return self._send(fn, sender, value=value, label="Accept")

    def reveal_move(self, intent_id: str, move: Move, secret: str, sender: str) -> TxOutcome:
        fn = self._contract.functions.revealMove(_b32(intent_id), int(move), _b32(secret))
        return self._send(fn, sender, value=0, label="Reveal")

    def cancel_coordination(self, intent_id: str, sender: str) -> TxOutcome:
        fn = self._contract.functions.cancelCoordination(_b32(intent_id))
        return self._send(fn, sender, value=0, label="Cancel")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _read(self, call: Any, name: str) -> Any:
        try:
            return call()
        except (Web3Exception, ValueError, OSError) as exc:
            raise LedgerReadError(f"{name} failed: {exc}") from exc

    def _send(self, fn: Any, sender: str, value: int, label: str) -> TxOutcome:
        try:
            if self._account is not None:
                tx = fn.build_transaction({
                    "from": sender,
                    "value": value,
                    "nonce": self._w3.eth.get_transaction_count(sender, "pending"),
                })
                signed = self._account.sign_transaction(tx)
                tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
            else:
                tx_hash = fn.transact({"from": sender, "value": value})
        except ContractLogicError as exc:
            raise SubmissionError(f"{label} rejected", reason=_revert_reason(exc)) from exc
        except (Web3Exception, ValueError, OSError) as exc:
            raise SubmissionError(f"{label} rejected", reason=str(exc)) from exc

        tx_hex = Web3.to_hex(tx_hash)
        logger.info("%s TX submitted: %s", label, tx_hex)

        try:
            receipt = self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout
            )
        except TimeExhausted:
            logger.warning("%s TX %s not confirmed yet", label, tx_hex)
            raise ConfirmationPending(tx_hex) from None
        except (Web3Exception, ValueError, OSError) as exc:
            logger.warning("%s TX %s receipt unavailable: %s", label, tx_hex, exc)
            raise ConfirmationPending(tx_hex) from exc

        if receipt["status"] != 1:
            raise SubmissionError(f"{label} reverted", tx_hash=tx_hex)

        logger.info("%s TX confirmed in block %d", label, receipt["blockNumber"])
        return TxOutcome(
            tx_hash=tx_hex,
            block_number=int(receipt["blockNumber"]),
            events=self._decode_events(receipt),
        )

    def _decode_events(self, receipt: Any) -> tuple[LedgerEvent, ...]:
        events: list[LedgerEvent] = []
        for name in EVENT_NAMES:
            event_type = getattr(self._contract.events, name)()
            for log in event_type.process_receipt(receipt, errors=DISCARD):
                args = {k: _plain(v) for k, v in dict(log["args"]).items()}
                events.append(LedgerEvent(name=name, args=args))
        return tuple(events)


def _b32(value: str) -> bytes:
    raw = _hex_bytes(value)
    if len(raw) != 32:
        raise ValueError(f"Expected 32 bytes, got {len(raw)}: {value}")
    return raw


def _hex_bytes(value: str) -> bytes:
    text = value[2:] if value.startswith("0x") else value
    return bytes.fromhex(text)


def _plain(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return Web3.to_hex(value)
    return value


def _revert_reason(exc: ContractLogicError) -> str:
    message = getattr(exc, "message", None) or str(exc)
    prefix = "execution reverted: "
    return message[len(prefix):] if message.startswith(prefix) else message
