"""Typed-data signer — binds payloads to the EIP-712 domain and signs them.

The domain and both schemas must match the ledger contract byte for byte;
any difference produces a signature the ledger rejects. The signer refuses
to prompt the agent when its chain differs from the domain chain, because
the resulting signature could never verify.

Signing itself is delegated to a SigningAgent: a local eth_account key,
or a provider-managed wallet account reached over JSON-RPC.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Protocol

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_account.signers.local import LocalAccount
from web3 import Web3

from rps_arena.errors import (
    ArenaError,
    DomainMismatch,
    SignerUnavailable,
    SigningError,
    UserRejected,
    WrongChain,
)
from rps_arena.models.coordination import AcceptanceAttestation, CoordinationIntent


logger = logging.getLogger(__name__)

DOMAIN_NAME = "RockPaperScissorsERC8001"
DOMAIN_VERSION = "1"

EIP712_DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

AGENT_INTENT_TYPE = [
    {"name": "payloadHash", "type": "bytes32"},
    {"name": "expiry", "type": "uint64"},
    {"name": "nonce", "type": "uint64"},
    {"name": "agentId", "type": "address"},
    {"name": "coordinationType", "type": "bytes32"},
    {"name": "coordinationValue", "type": "uint256"},
    {"name": "participants", "type": "address[]"},
]

ACCEPTANCE_TYPE = [
    {"name": "intentHash", "type": "bytes32"},
    {"name": "participant", "type": "address"},
    {"name": "nonce", "type": "uint64"},
    {"name": "expiry", "type": "uint64"},
    {"name": "conditionsHash", "type": "bytes32"},
]

# EIP-1193 code a wallet returns when the user declines a request.
USER_REJECTED_CODE = 4001


class SigningAgent(Protocol):
    """Anything that can produce an EIP-712 signature for one account."""

    @property
    def address(self) -> str: ...

    def chain_id(self) -> int: ...

    def sign_typed_data(self, full_message: dict[str, Any]) -> str: ...


class LocalAccountAgent:
    """Signs with a private key held in process."""

    def __init__(self, account: LocalAccount, chain_id: int) -> None:
        self._account = account
        self._chain_id = chain_id

    @staticmethod
    def from_key(private_key: str, chain_id: int) -> LocalAccountAgent:
        return LocalAccountAgent(Account.from_key(private_key), chain_id)

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def account(self) -> LocalAccount:
        return self._account

    def chain_id(self) -> int:
        return self._chain_id

    def sign_typed_data(self, full_message: dict[str, Any]) -> str:
        signable = encode_typed_data(full_message=full_message)
        signed = self._account.sign_message(signable)
        return Web3.to_hex(signed.signature)


class ProviderAgent:
    """Signs through a wallet behind a web3 provider (``eth_signTypedData_v4``).

    The wallet may show an interactive prompt; this call blocks until the
    user answers.
    """

    def __init__(self, w3: Web3, address: str) -> None:
        self._w3 = w3
        self._address = Web3.to_checksum_address(address)

    @property
    def address(self) -> str:
        return self._address

    def chain_id(self) -> int:
        return int(self._w3.eth.chain_id)

    def sign_typed_data(self, full_message: dict[str, Any]) -> str:
        response = self._w3.provider.make_request(
            "eth_signTypedData_v4",
            [self._address, json.dumps(full_message)],
        )
        error = response.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message") if isinstance(error, dict) else str(error)
            if code == USER_REJECTED_CODE:
                raise UserRejected(message or "User rejected the signature request")
            raise SigningError(f"Wallet signing failed: {message}")
        return response["result"]


def agent_chain_id(agent: SigningAgent) -> int:
    """The agent's active chain, or SignerUnavailable if it cannot be reached."""
    try:
        return int(agent.chain_id())
    except ArenaError:
        raise
    except Exception as exc:
        raise SignerUnavailable(f"Signing agent unreachable: {exc}") from exc


class TypedDataSigner:
    """Builds EIP-712 messages for the arena domain and signs them.

    Usage:
        signer = TypedDataSigner(agent, chain_id=31337, verifying_contract=addr)
        signature = signer.sign_intent(intent)
        attestation = signer.sign_acceptance(attestation)
    """

    def __init__(
        self,
        agent: Optional[SigningAgent],
        chain_id: int,
        verifying_contract: str,
    ) -> None:
        self._agent = agent
        self._chain_id = chain_id
        self._verifying_contract = Web3.to_checksum_address(verifying_contract)

    @property
    def chain_id(self) -> int:
        return self._chain_id

    def domain(self) -> dict[str, Any]:
        return {
            "name": DOMAIN_NAME,
            "version": DOMAIN_VERSION,
            "chainId": self._chain_id,
            "verifyingContract": self._verifying_contract,
        }

    def intent_message(self, intent: CoordinationIntent) -> dict[str, Any]:
        return {
            "types": {
                "EIP712Domain": EIP712_DOMAIN_TYPE,
                "AgentIntent": AGENT_INTENT_TYPE,
            },
            "primaryType": "AgentIntent",
            "domain": self.domain(),
            "message": intent.typed_message(),
        }

    def acceptance_message(self, attestation: AcceptanceAttestation) -> dict[str, Any]:
        return {
            "types": {
                "EIP712Domain": EIP712_DOMAIN_TYPE,
                "AcceptanceAttestation": ACCEPTANCE_TYPE,
            },
            "primaryType": "AcceptanceAttestation",
            "domain": self.domain(),
            "message": attestation.typed_message(),
        }

    def sign_intent(self, intent: CoordinationIntent) -> str:
        logger.info("Requesting EIP-712 signature for intent nonce %d", intent.nonce)
        return self._sign(self.intent_message(intent))

    def sign_acceptance(self, attestation: AcceptanceAttestation) -> AcceptanceAttestation:
        """Sign the five attestation fields and return a signed copy."""
        logger.info(
            "Requesting EIP-712 signature for acceptance of %s", attestation.intent_hash
        )
        signature = self._sign(self.acceptance_message(attestation))
        return attestation.with_signature(signature)

    def domain_separator(self) -> str:
        """hashStruct(EIP712Domain) computed locally."""
        placeholder = AcceptanceAttestation(
            intent_hash="0x" + "0" * 64,
            participant=self._verifying_contract,
            nonce=0,
            expiry=0,
            conditions_hash="0x" + "0" * 64,
        )
        signable = encode_typed_data(full_message=self.acceptance_message(placeholder))
        return Web3.to_hex(signable.header)

    def verify_domain(self, ledger_separator: Any) -> None:
        """Raise DomainMismatch if the ledger's separator differs from ours."""
        local = self.domain_separator()
        if isinstance(ledger_separator, str):
            remote = ledger_separator
        else:
            remote = Web3.to_hex(ledger_separator)
        if local.lower() != remote.lower():
            raise DomainMismatch(
                f"Ledger domain separator {remote} does not match local {local}"
            )

    def _sign(self, full_message: dict[str, Any]) -> str:
        if self._agent is None:
            raise SignerUnavailable("No active signing agent")
        active_chain = agent_chain_id(self._agent)
        if active_chain != self._chain_id:
            raise WrongChain(self._chain_id, active_chain)
        try:
            return self._agent.sign_typed_data(full_message)
        except ArenaError:
            raise
        except Exception as exc:
            raise SigningError(f"Signing agent failed: {exc}") from exc
