"""Typed failures raised by the arena engine.

Every operation either returns a result or raises one of these. The
service facade converts them into ServiceResult values; nothing is
silently dropped and nothing is retried automatically.

Hierarchy:
    ArenaError
    ├── ValidationError        (no network action taken)
    │   └── InvalidAddress
    ├── SigningError           (no ledger state changed, safe to retry)
    │   ├── SignerUnavailable
    │   ├── UserRejected
    │   ├── WrongChain
    │   └── DomainMismatch
    ├── SubmissionError        (rejected before confirmation)
    ├── ConfirmationPending    (submitted, receipt not seen yet)
    ├── LedgerReadError        (a ledger view call failed)
    ├── SynchronizationError   (transient poll failure)
    ├── CommitmentLost         (stored secret missing or corrupt)
    ├── NotConnected
    └── OperationInProgress
"""

from __future__ import annotations

from typing import Optional


class ArenaError(Exception):
    """Base class for all arena failures."""


class ValidationError(ArenaError):
    """Input rejected before any network action."""


class InvalidAddress(ValidationError):
    """An identity string is not a well-formed address."""

    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid address: {value!r}")
        self.value = value


class SigningError(ArenaError):
    """The typed-data signature could not be produced."""


class SignerUnavailable(SigningError):
    """No active signing agent."""


class UserRejected(SigningError):
    """The signing agent declined the request."""


class WrongChain(SigningError):
    """The agent's active chain does not match the signing domain."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Wrong chain: signing domain expects {expected}, agent is on {actual}"
        )
        self.expected = expected
        self.actual = actual


class DomainMismatch(SigningError):
    """The ledger reports a domain separator different from the local one."""


class SubmissionError(ArenaError):
    """A transaction was rejected before confirmation."""

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        tx_hash: Optional[str] = None,
    ) -> None:
        text = message if reason is None else f"{message}: {reason}"
        super().__init__(text)
        self.reason = reason
        self.tx_hash = tx_hash


class ConfirmationPending(ArenaError):
    """A transaction was submitted but its receipt has not arrived.

    This is not a failure. The transaction may still confirm, so callers
    keep polling rather than resubmitting.
    """

    def __init__(self, tx_hash: str) -> None:
        super().__init__(f"Transaction {tx_hash} not yet confirmed")
        self.tx_hash = tx_hash


class SynchronizationError(ArenaError):
    """Reading game state from the ledger failed."""

    def __init__(self, intent_id: str, cause: BaseException) -> None:
        super().__init__(f"Failed to refresh game {intent_id}: {cause}")
        self.intent_id = intent_id
        self.cause = cause


class CommitmentLost(ArenaError):
    """The (move, secret) pair for an intent is gone.

    The game can no longer be completed cooperatively by this participant;
    only the ledger's expiry or cancellation path remains.
    """

    def __init__(self, intent_id: str) -> None:
        super().__init__(
            f"No stored commitment for {intent_id}; reveal is impossible, "
            f"wait for expiry or cancel on the ledger"
        )
        self.intent_id = intent_id


class NotConnected(ArenaError):
    """No session is active."""


class OperationInProgress(ArenaError):
    """Another mutating operation is already running for this intent."""


class LedgerReadError(ArenaError):
    """A view call against the ledger failed (network, node or decoding)."""
