"""
Signer backends for resolved credentials.

Every signer implements the x402 EVM client signer protocol: an ``address``
property and ``sign_typed_data(domain, types, primary_type, message)``
returning the raw signature bytes.

    PrivateKeyDescriptor   -> LocalKeySigner (eth-account, in process)
    OnePasswordDescriptor  -> LocalKeySigner, key read with ``op read``
    SawDescriptor          -> SawSigner (wallet daemon over a Unix socket)
    AwalDescriptor         -> AwalSigner (``awal`` command-line client)

Building a signer does not contact the backend; the first ``address`` lookup
or signature does.
"""

from __future__ import annotations

import json
import logging
import subprocess
from typing import Any, Optional, Protocol
from urllib.parse import quote

import httpx
from eth_account import Account
from eth_account.signers.local import LocalAccount

from .config import SignerConfig
from .errors import BackendUnavailableError, SignerError, UnusableCredentialError
from .sentinel import (
    AwalDescriptor,
    CredentialDescriptor,
    OnePasswordDescriptor,
    PrivateKeyDescriptor,
    SawDescriptor,
    parse_private_key,
)

logger = logging.getLogger(__name__)

# r (32) + s (32) + v (1)
SIGNATURE_LENGTH = 65


class Signer(Protocol):
    kind: str

    @property
    def address(self) -> str: ...

    def sign_typed_data(
        self,
        domain: Any,
        types: dict[str, list],
        primary_type: str,
        message: dict[str, Any],
    ) -> bytes: ...


def build_typed_data(
    domain: Any,
    types: dict[str, list],
    primary_type: str,
    message: dict[str, Any],
) -> dict[str, Any]:
    """Assemble a JSON-ready EIP-712 document from x402 SDK arguments."""
    plain_types = {}
    for type_name, fields in types.items():
        plain_types[type_name] = [
            {
                "name": f["name"] if isinstance(f, dict) else getattr(f, "name"),
                "type": f["type"] if isinstance(f, dict) else getattr(f, "type"),
            }
            for f in fields
        ]

    domain_dict: dict[str, Any] = {}
    if isinstance(domain, dict):
        domain_dict = dict(domain)
    else:
        if getattr(domain, "name", None) is not None:
            domain_dict["name"] = domain.name
        if getattr(domain, "version", None) is not None:
            domain_dict["version"] = domain.version
        chain_id = getattr(domain, "chain_id", None) or getattr(domain, "chainId", None)
        if chain_id is not None:
            domain_dict["chainId"] = chain_id
        verifying = getattr(domain, "verifying_contract", None) or getattr(
            domain, "verifyingContract", None
        )
        if verifying is not None:
            domain_dict["verifyingContract"] = verifying
        salt = getattr(domain, "salt", None)
        if salt is not None:
            domain_dict["salt"] = salt

    msg = {k: ("0x" + v.hex() if isinstance(v, bytes) else v) for k, v in message.items()}

    return {
        "types": {**plain_types, "EIP712Domain": _build_domain_type(domain_dict)},
        "primaryType": primary_type,
        "domain": domain_dict,
        "message": msg,
    }


def _build_domain_type(domain: dict) -> list[dict]:
    fields = []
    if "name" in domain:
        fields.append({"name": "name", "type": "string"})
    if "version" in domain:
        fields.append({"name": "version", "type": "string"})
    if "chainId" in domain:
        fields.append({"name": "chainId", "type": "uint256"})
    if "verifyingContract" in domain:
        fields.append({"name": "verifyingContract", "type": "address"})
    if "salt" in domain:
        fields.append({"name": "salt", "type": "bytes32"})
    return fields


def _signature_bytes(value: Any, backend: str) -> bytes:
    if not isinstance(value, str):
        raise SignerError(f"{backend} returned no signature")
    raw = value[2:] if value.lower().startswith("0x") else value
    try:
        signature = bytes.fromhex(raw)
    except ValueError:
        raise SignerError(f"{backend} returned a malformed signature") from None
    if len(signature) != SIGNATURE_LENGTH:
        raise SignerError(f"{backend} returned a malformed signature")
    return signature


class LocalKeySigner:
    """Signs with an in-process eth-account key."""

    kind = "private_key"

    def __init__(self, account: LocalAccount):
        self._account = account

    @classmethod
    def from_key(cls, private_key: str) -> "LocalKeySigner":
        return cls(Account.from_key(private_key))

    @property
    def address(self) -> str:
        return self._account.address

    def sign_typed_data(
        self,
        domain: Any,
        types: dict[str, list],
        primary_type: str,
        message: dict[str, Any],
    ) -> bytes:
        full_message = build_typed_data(domain, types, primary_type, message)
        signed = self._account.sign_typed_data(full_message=full_message)
        return bytes(signed.signature)

    def __repr__(self) -> str:
        return f"LocalKeySigner(address={self.address})"


class SawSigner:
    """Client for a wallet held by a local SAW daemon.

    The daemon speaks JSON over HTTP on a Unix domain socket:

        GET  /v1/wallets/{name}                   -> {"address": "0x..."}
        POST /v1/wallets/{name}/sign-typed-data   -> {"signature": "0x..."}
    """

    kind = "saw"

    def __init__(
        self,
        descriptor: SawDescriptor,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.wallet_name = descriptor.wallet_name
        self.socket_path = descriptor.socket_path
        self._http = httpx.Client(
            transport=transport or httpx.HTTPTransport(uds=descriptor.socket_path),
            base_url="http://saw",
            timeout=timeout_seconds,
        )
        self._address: Optional[str] = None

    @property
    def _wallet_path(self) -> str:
        return f"/v1/wallets/{quote(self.wallet_name, safe='')}"

    @property
    def address(self) -> str:
        if self._address is None:
            body = self._request("GET", self._wallet_path)
            address = body.get("address")
            if not isinstance(address, str) or not address:
                raise SignerError(f"SAW wallet {self.wallet_name} has no address")
            self._address = address
        return self._address

    def sign_typed_data(
        self,
        domain: Any,
        types: dict[str, list],
        primary_type: str,
        message: dict[str, Any],
    ) -> bytes:
        typed_data = build_typed_data(domain, types, primary_type, message)
        body = self._request(
            "POST",
            f"{self._wallet_path}/sign-typed-data",
            json={"typed_data": typed_data},
        )
        return _signature_bytes(body.get("signature"), "SAW daemon")

    def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.TransportError as e:
            raise BackendUnavailableError(
                f"SAW daemon unreachable at {self.socket_path}: {type(e).__name__}: {e}"
            ) from e

        if response.status_code >= 400:
            raise SignerError(
                f"SAW daemon rejected request ({response.status_code}): {response.text[:200]}"
            )
        try:
            body = response.json()
        except ValueError:
            raise SignerError("SAW daemon returned invalid JSON") from None
        if not isinstance(body, dict):
            raise SignerError("SAW daemon returned an unexpected payload")
        return body

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def __repr__(self) -> str:
        return f"SawSigner(wallet={self.wallet_name}, socket={self.socket_path})"


class AwalSigner:
    """Client for an email-linked wallet through the ``awal`` CLI."""

    kind = "awal"

    def __init__(
        self,
        descriptor: AwalDescriptor,
        binary: str = "awal",
        timeout_seconds: int = 30,
    ):
        self.email = descriptor.email
        self.binary = binary
        self.timeout_seconds = timeout_seconds
        self._address: Optional[str] = None

    @property
    def address(self) -> str:
        if self._address is None:
            body = self._run("address")
            address = body.get("address")
            if not isinstance(address, str) or not address:
                raise SignerError(f"awal returned no address for {self.email}")
            self._address = address
        return self._address

    def sign_typed_data(
        self,
        domain: Any,
        types: dict[str, list],
        primary_type: str,
        message: dict[str, Any],
    ) -> bytes:
        typed_data = build_typed_data(domain, types, primary_type, message)
        body = self._run("sign-typed-data", stdin=json.dumps(typed_data))
        return _signature_bytes(body.get("signature"), "awal")

    def _run(self, command: str, stdin: Optional[str] = None) -> dict:
        args = [self.binary, command, "--email", self.email, "--json"]
        try:
            result = subprocess.run(
                args,
                input=stdin,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError:
            raise BackendUnavailableError(f"awal binary not found: {self.binary}") from None
        except subprocess.TimeoutExpired:
            raise BackendUnavailableError(
                f"awal {command} timed out after {self.timeout_seconds}s"
            ) from None

        if result.returncode != 0:
            raise SignerError(f"awal {command} failed: {result.stderr.strip()}")
        try:
            body = json.loads(result.stdout)
        except json.JSONDecodeError:
            raise SignerError(f"awal {command} returned invalid JSON") from None
        if not isinstance(body, dict):
            raise SignerError(f"awal {command} returned an unexpected payload")
        return body

    def __repr__(self) -> str:
        return f"AwalSigner(email={self.email})"


def read_op_reference(reference: str, timeout_seconds: int = 10) -> str:
    """Read a private key from 1Password via the op CLI."""
    try:
        result = subprocess.run(
            ["op", "read", reference],
            capture_output=True,
            text=True,
            timeout=timeout_seconds,
        )
    except FileNotFoundError:
        raise BackendUnavailableError("1Password CLI (op) not found") from None
    except subprocess.TimeoutExpired:
        raise BackendUnavailableError(
            f"1Password read timed out after {timeout_seconds}s"
        ) from None
    if result.returncode != 0:
        raise BackendUnavailableError(
            f"Failed to read key from 1Password reference: {result.stderr.strip()}"
        )

    descriptor = parse_private_key(result.stdout)
    if descriptor is None:
        raise UnusableCredentialError(
            "1Password reference did not contain a 32-byte hex private key"
        )
    return descriptor.private_key


def create_signer(
    descriptor: CredentialDescriptor,
    config: Optional[SignerConfig] = None,
) -> Signer:
    """Instantiate the signer backend a descriptor points at."""
    config = config or SignerConfig()

    if isinstance(descriptor, PrivateKeyDescriptor):
        signer: Signer = LocalKeySigner.from_key(descriptor.private_key)
    elif isinstance(descriptor, OnePasswordDescriptor):
        key = read_op_reference(descriptor.reference, config.op_timeout_seconds)
        signer = LocalKeySigner.from_key(key)
    elif isinstance(descriptor, SawDescriptor):
        signer = SawSigner(descriptor, timeout_seconds=config.saw_timeout_seconds)
    elif isinstance(descriptor, AwalDescriptor):
        signer = AwalSigner(
            descriptor,
            binary=config.awal_binary,
            timeout_seconds=config.awal_timeout_seconds,
        )
    else:
        raise TypeError(f"Unsupported credential descriptor: {type(descriptor).__name__}")

    logger.info("Signer backend selected: %r", signer)
    return signer
