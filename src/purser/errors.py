"""
Purser error types.

The sentinel parsers and the permit cache key builder never raise; these
exceptions belong to the collaborators around them (credential chain, signer
backends, configuration) so callers can tell a bad credential from a backend
that is temporarily unreachable.
"""


class PurserError(Exception):
    """Base error for all Purser operations."""
    pass


class ConfigError(PurserError):
    """An environment variable or config value could not be parsed."""
    def __init__(self, name: str, message: str):
        self.name = name
        super().__init__(f"{name}: {message}")


# Credential errors
class CredentialError(PurserError):
    """Base error for credential resolution failures."""
    pass


class UnusableCredentialError(CredentialError):
    """No interpretation (SAW, AWAL, 1Password, raw key) matched the credential."""
    pass


# Signer errors
class SignerError(PurserError):
    """A signing backend refused or failed a request."""
    pass


class BackendUnavailableError(SignerError):
    """Signing backend could not be reached (socket, CLI missing, timeout)."""
    pass


# Cache errors
class PermitCacheError(PurserError):
    """Permit cache was given an entry it cannot store."""
    pass
