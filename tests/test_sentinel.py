"""Tests for credential sentinel parsing and the resolution chain."""

import pytest

from purser.errors import UnusableCredentialError
from purser.sentinel import (
    AwalDescriptor,
    OnePasswordDescriptor,
    PrivateKeyDescriptor,
    SawDescriptor,
    describe_credential,
    parse_awal_config,
    parse_saw_config,
    resolve_credential,
)


RAW_KEY = "0x1234567890abcdef1234567890abcdef1234567890abcdef1234567890abcdef"


class TestParseSawConfig:
    def test_parses_valid_sentinel(self):
        result = parse_saw_config("saw:main@/run/saw.sock")
        assert result == SawDescriptor(wallet_name="main", socket_path="/run/saw.sock")

    def test_parses_custom_wallet_and_socket(self):
        result = parse_saw_config("saw:spending@/tmp/agent-wallet.sock")
        assert result == SawDescriptor(wallet_name="spending", socket_path="/tmp/agent-wallet.sock")

    def test_trims_whitespace(self):
        result = parse_saw_config("  saw:main@/run/saw.sock  ")
        assert result == SawDescriptor(wallet_name="main", socket_path="/run/saw.sock")

    def test_splits_on_first_at(self):
        result = parse_saw_config("saw:main@/run/user@1000/saw.sock")
        assert result is not None
        assert result.wallet_name == "main"
        assert result.socket_path == "/run/user@1000/saw.sock"

    def test_socket_path_not_validated(self):
        result = parse_saw_config("saw:main@relative.sock")
        assert result == SawDescriptor(wallet_name="main", socket_path="relative.sock")

    @pytest.mark.parametrize(
        "value",
        [
            None,
            "",
            RAW_KEY,
            "saw:main",
            "saw:@/run/saw.sock",
            "saw:main@",
            "saw:",
            "SAW:main@/run/saw.sock",
            "awal:user@example.com",
        ],
    )
    def test_returns_none(self, value):
        assert parse_saw_config(value) is None


class TestParseAwalConfig:
    def test_parses_valid_sentinel(self):
        assert parse_awal_config("awal:user@example.com") == AwalDescriptor(email="user@example.com")

    def test_preserves_plus_addressing(self):
        result = parse_awal_config("awal:user+agent@example.com")
        assert result == AwalDescriptor(email="user+agent@example.com")

    def test_trims_whitespace(self):
        assert parse_awal_config("  awal:user@example.com  ") == AwalDescriptor(email="user@example.com")

    def test_email_not_validated(self):
        assert parse_awal_config("awal:not-an-email") == AwalDescriptor(email="not-an-email")

    @pytest.mark.parametrize(
        "value",
        [None, "", "awal:", "   awal:   ", "saw:main@/run/saw.sock", RAW_KEY],
    )
    def test_returns_none(self, value):
        assert parse_awal_config(value) is None


class TestParserDisjointness:
    @pytest.mark.parametrize(
        "value",
        [
            "saw:main@/run/saw.sock",
            "saw:awal:x@/sock",
            "awal:user@example.com",
            "awal:saw:main@/run/saw.sock",
            RAW_KEY,
            "",
            "hello world",
        ],
    )
    def test_at_most_one_parser_matches(self, value):
        saw = parse_saw_config(value)
        awal = parse_awal_config(value)
        assert saw is None or awal is None


class TestResolveCredential:
    def test_saw_sentinel(self):
        descriptor = resolve_credential("saw:main@/run/saw.sock")
        assert isinstance(descriptor, SawDescriptor)
        assert descriptor.kind == "saw"

    def test_awal_sentinel(self):
        descriptor = resolve_credential("awal:user@example.com")
        assert isinstance(descriptor, AwalDescriptor)

    def test_op_reference(self):
        descriptor = resolve_credential(" op://Agents/wallet/credential ")
        assert descriptor == OnePasswordDescriptor(reference="op://Agents/wallet/credential")

    def test_raw_key_with_prefix(self):
        descriptor = resolve_credential(RAW_KEY)
        assert isinstance(descriptor, PrivateKeyDescriptor)
        assert descriptor.private_key == RAW_KEY

    def test_raw_key_is_normalized(self):
        descriptor = resolve_credential(RAW_KEY[2:].upper())
        assert isinstance(descriptor, PrivateKeyDescriptor)
        assert descriptor.private_key == RAW_KEY

    def test_raw_key_hidden_from_repr_and_dict(self):
        descriptor = resolve_credential(RAW_KEY)
        assert RAW_KEY[2:] not in repr(descriptor)
        assert descriptor.to_dict() == {"kind": "private_key"}

    def test_malformed_saw_falls_through_to_error(self):
        with pytest.raises(UnusableCredentialError):
            resolve_credential("saw:main")

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_missing_credential(self, value):
        with pytest.raises(UnusableCredentialError, match="No credential configured"):
            resolve_credential(value)

    def test_error_does_not_echo_value(self):
        bad_key = "0x" + "ab" * 31  # 31 bytes
        with pytest.raises(UnusableCredentialError) as excinfo:
            resolve_credential(bad_key)
        assert bad_key not in str(excinfo.value)

    def test_describe_credential(self):
        assert describe_credential("saw:main@/run/saw.sock") == "saw"
        assert describe_credential("awal:user@example.com") == "awal"
        assert describe_credential("op://vault/item/field") == "1password"
        assert describe_credential(RAW_KEY) == "private_key"
        assert describe_credential("nonsense") is None
        assert describe_credential(None) is None
