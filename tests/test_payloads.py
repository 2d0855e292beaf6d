"""Tests for the payload builder — proves canonical ordering and nonce rules."""

import pytest

from rps_arena.coordination.payloads import (
    PayloadBuilder,
    canonical_participants,
    normalize_address,
    normalize_bytes32,
)
from rps_arena.errors import InvalidAddress, ValidationError
from rps_arena.models.coordination import ZERO_BYTES32


LOW = "0x1111111111111111111111111111111111111111"
HIGH = "0xaAaAaAaaAaAaAaaAaAAAAAAAAaaaAaAaAaaAaaAa"
TYPE_HASH = "0x" + "42" * 32


@pytest.fixture
def builder() -> PayloadBuilder:
    return PayloadBuilder(min_wager=1000, ttl_seconds=3600)


class TestNormalization:
    def test_checksum_form(self) -> None:
        assert normalize_address(HIGH.lower()) == HIGH

    def test_whitespace_trimmed(self) -> None:
        assert normalize_address(f"  {LOW}\n") == LOW

    @pytest.mark.parametrize("value", ["", "0x1234", "not-an-address", None, 42])
    def test_invalid_address(self, value) -> None:
        with pytest.raises(InvalidAddress):
            normalize_address(value)

    def test_bytes32_from_bytes(self) -> None:
        assert normalize_bytes32(b"\xab" * 32, "x") == "0x" + "ab" * 32

    def test_bytes32_lowercased(self) -> None:
        assert normalize_bytes32("0x" + "AB" * 32, "x") == "0x" + "ab" * 32

    @pytest.mark.parametrize("value", ["0x1234", "0x" + "zz" * 32, b"\x00" * 31, 7])
    def test_bytes32_rejects(self, value) -> None:
        with pytest.raises(ValidationError):
            normalize_bytes32(value, "x")


class TestCanonicalParticipants:
    def test_symmetric(self) -> None:
        assert canonical_participants(LOW, HIGH) == canonical_participants(HIGH, LOW)

    def test_ascending_by_lowercase(self) -> None:
        first, second = canonical_participants(HIGH, LOW)
        assert first == LOW
        assert second == HIGH

    def test_same_identity_any_case(self) -> None:
        with pytest.raises(ValidationError):
            canonical_participants(HIGH, HIGH.lower())


class TestBuildIntent:
    def test_nonce_is_next(self, builder: PayloadBuilder) -> None:
        intent = builder.build_intent(LOW, HIGH, 10**17, TYPE_HASH, current_nonce=4)
        assert intent.nonce == 5

    def test_fields(self, builder: PayloadBuilder) -> None:
        intent = builder.build_intent(
            HIGH, LOW, 10**17, TYPE_HASH, current_nonce=0, now=1_700_000_000,
        )
        assert intent.payload_hash == ZERO_BYTES32
        assert intent.agent_id == HIGH
        assert intent.participants == (LOW, HIGH)
        assert intent.coordination_value == 10**17
        assert intent.coordination_type == TYPE_HASH
        assert intent.expiry == 1_700_003_600

    def test_deterministic(self, builder: PayloadBuilder) -> None:
        a = builder.build_intent(LOW, HIGH, 5000, TYPE_HASH, 2, now=100)
        b = builder.build_intent(LOW, HIGH, 5000, TYPE_HASH, 2, now=100)
        assert a == b

    def test_explicit_expiry(self, builder: PayloadBuilder) -> None:
        intent = builder.build_intent(LOW, HIGH, 5000, TYPE_HASH, 0, expiry=42)
        assert intent.expiry == 42

    def test_wager_below_minimum(self, builder: PayloadBuilder) -> None:
        with pytest.raises(ValidationError, match="minimum"):
            builder.build_intent(LOW, HIGH, 999, TYPE_HASH, 0)

    def test_self_play(self, builder: PayloadBuilder) -> None:
        with pytest.raises(ValidationError):
            builder.build_intent(LOW, LOW, 5000, TYPE_HASH, 0)

    def test_invalid_counterparty(self, builder: PayloadBuilder) -> None:
        with pytest.raises(InvalidAddress):
            builder.build_intent(LOW, "0xdead", 5000, TYPE_HASH, 0)

    def test_contract_arg_bytes(self, builder: PayloadBuilder) -> None:
        arg = builder.build_intent(LOW, HIGH, 5000, TYPE_HASH, 0, now=0).as_contract_arg()
        assert arg[0] == b"\x00" * 32
        assert arg[4] == b"\x42" * 32
        assert arg[6] == [LOW, HIGH]


class TestBuildAcceptance:
    def test_defaults(self, builder: PayloadBuilder) -> None:
        attestation = builder.build_acceptance(
            "0x" + "AB" * 32, LOW.lower(), "0x" + "cd" * 32, now=10,
        )
        assert attestation.intent_hash == "0x" + "ab" * 32
        assert attestation.participant == LOW
        assert attestation.nonce == 1
        assert attestation.expiry == 3610
        assert attestation.signature is None

    def test_unsigned_cannot_be_submitted(self, builder: PayloadBuilder) -> None:
        attestation = builder.build_acceptance("0x" + "ab" * 32, LOW, "0x" + "cd" * 32)
        with pytest.raises(ValueError):
            attestation.as_contract_arg()

    def test_signed_contract_arg(self, builder: PayloadBuilder) -> None:
        attestation = builder.build_acceptance(
            "0x" + "ab" * 32, LOW, "0x" + "cd" * 32, expiry=99, nonce=3,
        ).with_signature("0x" + "ee" * 65)
        arg = attestation.as_contract_arg()
        assert arg[1:4] == (LOW, 3, 99)
        assert arg[5] == b"\xee" * 65
