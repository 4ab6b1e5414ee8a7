"""
Credential sentinel parsing.

A configured credential is usually a raw private key, but it may instead be a
sentinel pointing at an external signing backend:

    saw:<wallet_name>@<socket_path>    wallet held by a local SAW daemon
    awal:<email>                       wallet linked to an email identity

The two parsers are pure and total: anything they do not recognize, including
malformed sentinels, comes back as None so the caller can try the next
interpretation. ``resolve_credential`` runs that chain
(SAW -> AWAL -> 1Password reference -> raw key) and raises only when nothing
matches.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Union

from .errors import UnusableCredentialError


SAW_PREFIX = "saw:"
AWAL_PREFIX = "awal:"
OP_PREFIX = "op://"

_PRIVATE_KEY_RE = re.compile(r"^(?:0[xX])?([0-9a-fA-F]{64})$")


@dataclass(frozen=True)
class SawDescriptor:
    """Named wallet managed by a wallet daemon listening on a local socket."""

    wallet_name: str
    socket_path: str

    kind = "saw"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "wallet_name": self.wallet_name,
            "socket_path": self.socket_path,
        }


@dataclass(frozen=True)
class AwalDescriptor:
    """Wallet linked to an email identity."""

    email: str

    kind = "awal"

    def to_dict(self) -> dict:
        return {"kind": self.kind, "email": self.email}


@dataclass(frozen=True)
class OnePasswordDescriptor:
    """Private key stored in 1Password, read when the signer is built."""

    reference: str

    kind = "1password"

    def to_dict(self) -> dict:
        return {"kind": self.kind, "reference": self.reference}


@dataclass(frozen=True)
class PrivateKeyDescriptor:
    """Raw key material. Never rendered by repr() or to_dict()."""

    private_key: str = field(repr=False)

    kind = "private_key"

    def to_dict(self) -> dict:
        return {"kind": self.kind}


SentinelDescriptor = Union[SawDescriptor, AwalDescriptor]
CredentialDescriptor = Union[
    SawDescriptor, AwalDescriptor, OnePasswordDescriptor, PrivateKeyDescriptor
]


def parse_saw_config(value: Optional[str]) -> Optional[SawDescriptor]:
    """Parse ``saw:<wallet_name>@<socket_path>``.

    Splits on the first ``@`` so socket paths may contain further ``@``
    characters. Returns None for anything else, including a missing wallet
    name or socket path.
    """
    if value is None:
        return None
    candidate = value.strip()
    if not candidate.startswith(SAW_PREFIX):
        return None

    wallet_name, sep, socket_path = candidate[len(SAW_PREFIX):].partition("@")
    if not sep or not wallet_name or not socket_path:
        return None
    return SawDescriptor(wallet_name=wallet_name, socket_path=socket_path)


def parse_awal_config(value: Optional[str]) -> Optional[AwalDescriptor]:
    """Parse ``awal:<email>``. The email is passed through unvalidated."""
    if value is None:
        return None
    candidate = value.strip()
    if not candidate.startswith(AWAL_PREFIX):
        return None

    email = candidate[len(AWAL_PREFIX):]
    if not email:
        return None
    return AwalDescriptor(email=email)


def parse_private_key(value: Optional[str]) -> Optional[PrivateKeyDescriptor]:
    """Recognize a 32-byte hex key, with or without the 0x prefix."""
    if value is None:
        return None
    match = _PRIVATE_KEY_RE.match(value.strip())
    if match is None:
        return None
    return PrivateKeyDescriptor(private_key="0x" + match.group(1).lower())


def parse_op_reference(value: Optional[str]) -> Optional[OnePasswordDescriptor]:
    if value is None:
        return None
    candidate = value.strip()
    if not candidate.startswith(OP_PREFIX) or candidate == OP_PREFIX:
        return None
    return OnePasswordDescriptor(reference=candidate)


_CHAIN = (parse_saw_config, parse_awal_config, parse_op_reference, parse_private_key)


def describe_credential(value: Optional[str]) -> Optional[str]:
    """Return the credential kind, or None when nothing matches."""
    for parser in _CHAIN:
        descriptor = parser(value)
        if descriptor is not None:
            return descriptor.kind
    return None


def resolve_credential(value: Optional[str]) -> CredentialDescriptor:
    """Resolve a configured credential string to a backend descriptor.

    Raises UnusableCredentialError when no interpretation succeeds. The
    error message never includes the value itself.
    """
    for parser in _CHAIN:
        descriptor = parser(value)
        if descriptor is not None:
            return descriptor

    if value is None or not value.strip():
        raise UnusableCredentialError("No credential configured")
    raise UnusableCredentialError(
        "Credential is not a SAW sentinel (saw:<wallet>@<socket>), "
        "an AWAL sentinel (awal:<email>), an op:// reference, "
        "or a 32-byte hex private key"
    )
