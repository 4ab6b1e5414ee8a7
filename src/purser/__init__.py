"""
Purser: credential resolution and permit caching for x402 payment agents.

Configured credential -> signing backend (raw key, 1Password, SAW, AWAL).
Permit parameters -> cache key, so a permit is signed once per account.
"""

__version__ = "0.1.0"

from .sentinel import (
    AwalDescriptor,
    OnePasswordDescriptor,
    PrivateKeyDescriptor,
    SawDescriptor,
    describe_credential,
    parse_awal_config,
    parse_saw_config,
    resolve_credential,
)
from .permit_cache import CachedPermit, PermitCache, PermitCacheKeyInput, build_permit_cache_key
from .signers import AwalSigner, LocalKeySigner, SawSigner, create_signer
from .config import AgentConfig, Network, SignerConfig
from .errors import (
    BackendUnavailableError,
    ConfigError,
    CredentialError,
    PermitCacheError,
    PurserError,
    SignerError,
    UnusableCredentialError,
)

__all__ = [
    "SawDescriptor", "AwalDescriptor", "OnePasswordDescriptor", "PrivateKeyDescriptor",
    "parse_saw_config", "parse_awal_config", "resolve_credential", "describe_credential",
    "PermitCacheKeyInput", "build_permit_cache_key", "PermitCache", "CachedPermit",
    "create_signer", "LocalKeySigner", "SawSigner", "AwalSigner",
    "AgentConfig", "SignerConfig", "Network",
    "PurserError", "ConfigError", "CredentialError", "UnusableCredentialError",
    "SignerError", "BackendUnavailableError", "PermitCacheError",
]
