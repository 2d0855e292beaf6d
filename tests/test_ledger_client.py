"""Tests for the web3 ledger binding — proves reverts, receipts and events map to arena errors."""

from types import SimpleNamespace

import pytest
import requests
from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from rps_arena.errors import ConfirmationPending, LedgerReadError, SubmissionError
from rps_arena.ledger.client import Web3Ledger
from rps_arena.models.coordination import AcceptanceAttestation, CoordinationIntent
from rps_arena.models.game import Move


CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
SENDER = "0x1111111111111111111111111111111111111111"
OPPONENT = "0x2222222222222222222222222222222222222222"
INTENT = "0x" + "ab" * 32
SECRET = "0x" + "5e" * 32
TX_HASH = bytes.fromhex("cd" * 32)
KEY = "0x" + "11" * 32


class FakeCall:
    """A contract function bound to its arguments."""

    def __init__(self, contract: "FakeContract", name: str, args: tuple) -> None:
        self._contract = contract
        self.name = name
        self.args = args

    def call(self):
        result = self._contract.results[self.name]
        if isinstance(result, Exception):
            raise result
        return result

    def transact(self, tx: dict):
        self._contract.sent.append((self.name, self.args, tx))
        if self._contract.send_error is not None:
            raise self._contract.send_error
        return TX_HASH

    def build_transaction(self, tx: dict) -> dict:
        self._contract.sent.append((self.name, self.args, tx))
        if self._contract.send_error is not None:
            raise self._contract.send_error
        return {"to": CONTRACT, "data": "0x", "gas": 100_000, "gasPrice": 1, "chainId": 31337, **tx}


class FakeFunctions:
    def __init__(self, contract: "FakeContract") -> None:
        self._contract = contract

    def __getattr__(self, name: str):
        return lambda *args: FakeCall(self._contract, name, args)


class FakeEvents:
    def __init__(self, logs: dict) -> None:
        self._logs = logs

    def __getattr__(self, name: str):
        def event():
            def process_receipt(receipt, errors=None):
                return [{"args": args} for args in self._logs.get(name, [])]
            return SimpleNamespace(process_receipt=process_receipt)
        return event


class FakeContract:
    def __init__(self) -> None:
        self.results: dict = {}
        self.sent: list = []
        self.send_error = None
        self.logs: dict = {}
        self.functions = FakeFunctions(self)
        self.events = FakeEvents(self.logs)


class FakeEth:
    def __init__(self, contract: FakeContract) -> None:
        self._contract = contract
        self.chain_id = 31337
        self.receipt = {"status": 1, "blockNumber": 7}
        self.receipt_error = None
        self.read_error = None
        self.raw_sent: list = []
        self.waited = None

    def contract(self, address, abi):
        self._contract.address = address
        return self._contract

    def get_balance(self, account):
        if self.read_error is not None:
            raise self.read_error
        return 5 * 10**18

    def get_transaction_count(self, sender, block):
        return 3

    def send_raw_transaction(self, raw):
        self.raw_sent.append(raw)
        return TX_HASH

    def wait_for_transaction_receipt(self, tx_hash, timeout):
        self.waited = (tx_hash, timeout)
        if self.receipt_error is not None:
            raise self.receipt_error
        return self.receipt


@pytest.fixture
def contract() -> FakeContract:
    return FakeContract()


@pytest.fixture
def eth(contract: FakeContract) -> FakeEth:
    return FakeEth(contract)


@pytest.fixture
def ledger(eth: FakeEth) -> Web3Ledger:
    return Web3Ledger(SimpleNamespace(eth=eth), CONTRACT.lower(), receipt_timeout=5)


class TestReads:
    def test_address_checksummed(self, ledger, contract) -> None:
        assert ledger.address == CONTRACT
        assert contract.address == CONTRACT

    def test_get_game_decodes_tuple(self, ledger, contract) -> None:
        contract.results["getGame"] = (SENDER, OPPONENT, 10**17, 100, 200, 2, True, True, 1, 0, 0)
        raw = ledger.get_game(INTENT)
        assert raw.player1 == SENDER
        assert raw.wager == 10**17
        assert raw.player1_committed and raw.player2_committed

    def test_player_games_as_hex(self, ledger, contract) -> None:
        contract.results["getPlayerGames"] = [bytes.fromhex("ab" * 32)]
        assert ledger.get_player_games(SENDER) == [INTENT]

    def test_domain_separator_as_hex(self, ledger, contract) -> None:
        contract.results["DOMAIN_SEPARATOR"] = bytes.fromhex("ef" * 32)
        assert ledger.domain_separator() == "0x" + "ef" * 32

    def test_contract_failure_is_read_error(self, ledger, contract) -> None:
        contract.results["getGame"] = Web3Exception("call reverted")
        with pytest.raises(LedgerReadError, match="getGame failed"):
            ledger.get_game(INTENT)

    def test_connection_failure_is_read_error(self, ledger, eth) -> None:
        eth.read_error = requests.exceptions.ConnectionError("connection refused")
        with pytest.raises(LedgerReadError, match="getBalance failed"):
            ledger.balance(SENDER)

    def test_chain_id(self, ledger) -> None:
        assert ledger.chain_id() == 31337


class TestWrites:
    def test_reveal_encodes_arguments(self, ledger, contract, eth) -> None:
        outcome = ledger.reveal_move(INTENT, Move.PAPER, SECRET, sender=SENDER)
        name, args, tx = contract.sent[0]
        assert name == "revealMove"
        assert args == (bytes.fromhex("ab" * 32), 2, bytes.fromhex("5e" * 32))
        assert tx == {"from": SENDER, "value": 0}
        assert outcome.tx_hash == Web3.to_hex(TX_HASH)
        assert outcome.block_number == 7
        assert eth.waited == (TX_HASH, 5)

    def test_accept_sends_wager(self, ledger, contract) -> None:
        attestation = AcceptanceAttestation(
            intent_hash=INTENT,
            participant=OPPONENT,
            nonce=1,
            expiry=1_700_000_600,
            conditions_hash="0x" + "77" * 32,
            signature="0x" + "00" * 65,
        )
        ledger.accept_coordination(attestation, 10**17, sender=OPPONENT)
        name, args, tx = contract.sent[0]
        assert name == "acceptCoordination"
        assert args == (attestation.as_contract_arg(),)
        assert tx["value"] == 10**17

    def test_proposed_event_yields_intent_hash(self, ledger, contract) -> None:
        contract.logs["CoordinationProposed"] = [
            {"intentHash": bytes.fromhex("ab" * 32), "proposer": SENDER},
        ]
        intent = CoordinationIntent(
            payload_hash="0x" + "01" * 32,
            expiry=1_700_000_600,
            nonce=1,
            agent_id=SENDER,
            coordination_type="0x" + "02" * 32,
            coordination_value=10**17,
            participants=(SENDER, OPPONENT),
        )
        outcome = ledger.propose_coordination(intent, "0x" + "00" * 65, sender=SENDER)
        event = outcome.first("CoordinationProposed")
        assert event.args["intentHash"] == INTENT
        assert event.args["proposer"] == SENDER
        assert outcome.first("MoveRevealed") is None
        assert contract.sent[0][2]["value"] == 10**17

    def test_revert_reason_extracted(self, ledger, contract) -> None:
        contract.send_error = ContractLogicError("execution reverted: Wrong wager")
        with pytest.raises(SubmissionError) as exc_info:
            ledger.cancel_coordination(INTENT, sender=SENDER)
        assert exc_info.value.reason == "Wrong wager"
        assert exc_info.value.tx_hash is None

    def test_unreachable_node_on_submit(self, ledger, contract) -> None:
        contract.send_error = requests.exceptions.ConnectionError("node went away")
        with pytest.raises(SubmissionError, match="Cancel rejected"):
            ledger.cancel_coordination(INTENT, sender=SENDER)

    def test_failed_receipt_is_submission_error(self, ledger, eth) -> None:
        eth.receipt = {"status": 0, "blockNumber": 7}
        with pytest.raises(SubmissionError) as exc_info:
            ledger.reveal_move(INTENT, Move.ROCK, SECRET, sender=SENDER)
        assert exc_info.value.tx_hash == Web3.to_hex(TX_HASH)


class TestConfirmation:
    def test_timeout_is_pending(self, ledger, eth) -> None:
        eth.receipt_error = TimeExhausted("not mined in 5 seconds")
        with pytest.raises(ConfirmationPending) as exc_info:
            ledger.reveal_move(INTENT, Move.ROCK, SECRET, sender=SENDER)
        assert exc_info.value.tx_hash == Web3.to_hex(TX_HASH)

    @pytest.mark.parametrize("error", [
        requests.exceptions.ConnectionError("node went away"),
        Web3Exception("receipt lookup failed"),
        OSError("network unreachable"),
    ])
    def test_lost_connection_after_submit_is_pending(self, ledger, eth, error) -> None:
        eth.receipt_error = error
        with pytest.raises(ConfirmationPending) as exc_info:
            ledger.cancel_coordination(INTENT, sender=SENDER)
        assert exc_info.value.tx_hash == Web3.to_hex(TX_HASH)


class TestLocalSigning:
    def test_signed_raw_transaction_sent(self, eth, contract) -> None:
        account = Account.from_key(KEY)
        ledger = Web3Ledger(SimpleNamespace(eth=eth), CONTRACT, account=account)
        outcome = ledger.cancel_coordination(INTENT, sender=account.address)
        _name, _args, tx = contract.sent[0]
        assert tx == {"from": account.address, "value": 0, "nonce": 3}
        assert len(eth.raw_sent) == 1
        assert outcome.tx_hash == Web3.to_hex(TX_HASH)
