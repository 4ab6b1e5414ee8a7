"""Environment-driven configuration for the payment agent's credential layer."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Union

from .errors import ConfigError
from .permit_cache import DEFAULT_EXPIRY_MARGIN_SECONDS, DEFAULT_MAX_ENTRIES


ENV_CREDENTIAL = "PURSER_CREDENTIAL"
ENV_NETWORK = "PURSER_NETWORK"
ENV_OP_TIMEOUT = "PURSER_OP_TIMEOUT"
ENV_SAW_TIMEOUT = "PURSER_SAW_TIMEOUT"
ENV_AWAL_BIN = "PURSER_AWAL_BIN"
ENV_AWAL_TIMEOUT = "PURSER_AWAL_TIMEOUT"
ENV_PERMIT_CACHE_MAX = "PURSER_PERMIT_CACHE_MAX"
ENV_PERMIT_EXPIRY_MARGIN = "PURSER_PERMIT_EXPIRY_MARGIN"

_CAIP2_RE = re.compile(r"^[-a-z0-9]{3,8}:[-_a-zA-Z0-9]{1,32}$")


class Network(str, Enum):
    BASE_MAINNET = "eip155:8453"
    BASE_SEPOLIA = "eip155:84532"


@dataclass
class SignerConfig:
    """Timeouts and binaries used when talking to signing backends."""
    op_timeout_seconds: int = 10
    saw_timeout_seconds: float = 10.0
    awal_binary: str = "awal"
    awal_timeout_seconds: int = 30


@dataclass
class AgentConfig:
    credential: Optional[str] = field(default=None, repr=False)
    network: Union[Network, str] = Network.BASE_SEPOLIA
    signer: SignerConfig = field(default_factory=SignerConfig)
    permit_cache_max_entries: int = DEFAULT_MAX_ENTRIES
    permit_expiry_margin_seconds: int = DEFAULT_EXPIRY_MARGIN_SECONDS

    @property
    def network_id(self) -> str:
        return self.network.value if isinstance(self.network, Network) else self.network

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AgentConfig":
        env = os.environ if environ is None else environ
        defaults = SignerConfig()

        signer = SignerConfig(
            op_timeout_seconds=_int(env, ENV_OP_TIMEOUT, defaults.op_timeout_seconds),
            saw_timeout_seconds=_float(env, ENV_SAW_TIMEOUT, defaults.saw_timeout_seconds),
            awal_binary=env.get(ENV_AWAL_BIN) or defaults.awal_binary,
            awal_timeout_seconds=_int(env, ENV_AWAL_TIMEOUT, defaults.awal_timeout_seconds),
        )
        return cls(
            credential=env.get(ENV_CREDENTIAL) or None,
            network=_network(env.get(ENV_NETWORK)),
            signer=signer,
            permit_cache_max_entries=_int(env, ENV_PERMIT_CACHE_MAX, DEFAULT_MAX_ENTRIES, minimum=1),
            permit_expiry_margin_seconds=_int(
                env, ENV_PERMIT_EXPIRY_MARGIN, DEFAULT_EXPIRY_MARGIN_SECONDS
            ),
        )


def _network(raw: Optional[str]) -> Union[Network, str]:
    if not raw or not raw.strip():
        return Network.BASE_SEPOLIA
    value = raw.strip()
    try:
        return Network(value)
    except ValueError:
        if not _CAIP2_RE.match(value):
            raise ConfigError(ENV_NETWORK, f"expected a CAIP-2 network id, got {value!r}")
        return value


def _int(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigError(name, f"expected an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigError(name, f"must be at least {minimum}")
    return value


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip())
    except ValueError:
        raise ConfigError(name, f"expected a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(name, "must be positive")
    return value
