"""ABI of the RockPaperScissorsERC8001 ledger contract (the parts the client uses)."""

from __future__ import annotations

from typing import Any


def _inp(name: str, type_: str, indexed: bool | None = None) -> dict[str, Any]:
    entry: dict[str, Any] = {"name": name, "type": type_}
    if indexed is not None:
        entry["indexed"] = indexed
    return entry


def _event(name: str, *inputs: dict[str, Any]) -> dict[str, Any]:
    return {"type": "event", "name": name, "anonymous": False, "inputs": list(inputs)}


def _view(name: str, inputs: list[dict[str, Any]], outputs: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": inputs,
        "outputs": outputs,
    }


_INTENT_TUPLE = {
    "name": "intent",
    "type": "tuple",
    "components": [
        _inp("payloadHash", "bytes32"),
        _inp("expiry", "uint64"),
        _inp("nonce", "uint64"),
        _inp("agentId", "address"),
        _inp("coordinationType", "bytes32"),
        _inp("coordinationValue", "uint256"),
        _inp("participants", "address[]"),
    ],
}

_ATTESTATION_TUPLE = {
    "name": "attestation",
    "type": "tuple",
    "components": [
        _inp("intentHash", "bytes32"),
        _inp("participant", "address"),
        _inp("nonce", "uint64"),
        _inp("expiry", "uint64"),
        _inp("conditionsHash", "bytes32"),
        _inp("signature", "bytes"),
    ],
}

GAME_OUTPUTS = [
    _inp("player1", "address"),
    _inp("player2", "address"),
    _inp("wager", "uint256"),
    _inp("expiry", "uint64"),
    _inp("revealDeadline", "uint64"),
    _inp("status", "uint8"),
    _inp("player1Committed", "bool"),
    _inp("player2Committed", "bool"),
    _inp("player1Move", "uint8"),
    _inp("player2Move", "uint8"),
    _inp("result", "uint8"),
]

ARENA_ABI: list[dict[str, Any]] = [
    _event(
        "CoordinationProposed",
        _inp("intentHash", "bytes32", True),
        _inp("agentId", "address", True),
        _inp("opponent", "address", True),
        _inp("wager", "uint256", False),
        _inp("expiry", "uint64", False),
    ),
    _event(
        "CoordinationAccepted",
        _inp("intentHash", "bytes32", True),
        _inp("participant", "address", True),
        _inp("commitment", "bytes32", False),
    ),
    _event(
        "CoordinationExecuted",
        _inp("intentHash", "bytes32", True),
        _inp("result", "uint8", False),
        _inp("winner", "address", False),
    ),
    _event(
        "CoordinationCancelled",
        _inp("intentHash", "bytes32", True),
        _inp("cancelledBy", "address", False),
    ),
    _event(
        "MoveRevealed",
        _inp("intentHash", "bytes32", True),
        _inp("player", "address", True),
        _inp("move", "uint8", False),
    ),
    _view("getGame", [_inp("intentHash", "bytes32")], GAME_OUTPUTS),
    _view("getPlayerGames", [_inp("player", "address")], [_inp("", "bytes32[]")]),
    _view("getCoordinationStatus", [_inp("intentHash", "bytes32")], [_inp("", "uint8")]),
    _view("agentNonces", [_inp("agent", "address")], [_inp("", "uint64")]),
    _view("DOMAIN_SEPARATOR", [], [_inp("", "bytes32")]),
    _view("COORDINATION_TYPE", [], [_inp("", "bytes32")]),
    {
        "type": "function",
        "name": "proposeCoordination",
        "stateMutability": "payable",
        "inputs": [_INTENT_TUPLE, _inp("signature", "bytes")],
        "outputs": [_inp("", "bytes32")],
    },
    {
        "type": "function",
        "name": "acceptCoordination",
        "stateMutability": "payable",
        "inputs": [_ATTESTATION_TUPLE],
        "outputs": [_inp("", "bool")],
    },
    {
        "type": "function",
        "name": "revealMove",
        "stateMutability": "nonpayable",
        "inputs": [
            _inp("intentHash", "bytes32"),
            _inp("move", "uint8"),
            _inp("salt", "bytes32"),
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "cancelCoordination",
        "stateMutability": "nonpayable",
        "inputs": [_inp("intentHash", "bytes32")],
        "outputs": [],
    },
]

EVENT_NAMES = (
    "CoordinationProposed",
    "CoordinationAccepted",
    "CoordinationExecuted",
    "CoordinationCancelled",
    "MoveRevealed",
)
