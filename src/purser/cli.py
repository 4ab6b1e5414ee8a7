"""
Purser CLI: inspect payment credentials and permit cache keys.

Commands:
    purser credential    Show which signing backend a credential resolves to
    purser address       Build the signer and print its wallet address
    purser permit-key    Print the cache key for a permit
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Optional

import click
from click.core import ParameterSource

from . import __version__
from .config import ENV_CREDENTIAL, AgentConfig
from .errors import ConfigError, PurserError, UnusableCredentialError
from .money import format_cap
from .permit_cache import PermitCacheKeyInput, build_permit_cache_key
from .sentinel import CredentialDescriptor, PrivateKeyDescriptor, resolve_credential
from .signers import create_signer


def _load_config_or_exit() -> AgentConfig:
    try:
        return AgentConfig.from_env()
    except ConfigError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)


def _resolve_or_exit(
    credential: Optional[str],
    unsafe_allow_key_arg: bool,
    config: AgentConfig,
) -> CredentialDescriptor:
    try:
        descriptor = resolve_credential(credential if credential is not None else config.credential)
    except UnusableCredentialError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    ctx = click.get_current_context(silent=True)
    key_from_argv = (
        ctx is not None
        and ctx.get_parameter_source("credential") == ParameterSource.COMMANDLINE
    )
    if isinstance(descriptor, PrivateKeyDescriptor) and key_from_argv and not unsafe_allow_key_arg:
        click.echo(
            f"❌ Refusing a raw private key from argv. Set {ENV_CREDENTIAL} instead or pass "
            "--unsafe-allow-key-arg to acknowledge the risk.",
            err=True,
        )
        sys.exit(1)
    return descriptor


_credential_option = click.option(
    "--credential",
    default=None,
    help=f"Credential or sentinel (saw:<wallet>@<socket>, awal:<email>, op://...). "
         f"Defaults to ${ENV_CREDENTIAL}.",
)
_unsafe_option = click.option(
    "--unsafe-allow-key-arg",
    is_flag=True,
    default=False,
    help="Allow a raw private key via --credential (unsafe; can leak in shell/process history).",
)


# ── CLI ───────────────────────────────────────────────────────────

@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging.")
def main(verbose: bool):
    """Purser: credential and permit-cache tooling for x402 payment agents."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
@_credential_option
@_unsafe_option
def credential(credential: Optional[str], unsafe_allow_key_arg: bool):
    """Show which signing backend a credential resolves to."""
    config = _load_config_or_exit()
    descriptor = _resolve_or_exit(credential, unsafe_allow_key_arg, config)
    click.echo(json.dumps(descriptor.to_dict(), indent=2))


@main.command()
@_credential_option
@_unsafe_option
def address(credential: Optional[str], unsafe_allow_key_arg: bool):
    """Build the signer for a credential and print its wallet address."""
    config = _load_config_or_exit()
    descriptor = _resolve_or_exit(credential, unsafe_allow_key_arg, config)

    try:
        signer = create_signer(descriptor, config.signer)
    except PurserError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    try:
        wallet_address = signer.address
    except PurserError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)
    finally:
        close = getattr(signer, "close", None)
        if close is not None:
            close()

    click.echo(wallet_address)


@main.command("permit-key")
@click.option("--network", default=None, help="CAIP-2 network id. Defaults to $PURSER_NETWORK or eip155:84532.")
@click.option("--asset", required=True, help="Asset contract address")
@click.option("--pay-to", required=True, help="Payee address")
@click.option("--cap", default=None, help="Spend cap in token base units")
@click.option("--cap-usd", default=None, help="Spend cap in USD (converted to 6-decimal base units)")
@click.option("--account", required=True, help="Payer account address")
def permit_key(
    network: Optional[str],
    asset: str,
    pay_to: str,
    cap: Optional[str],
    cap_usd: Optional[str],
    account: str,
):
    """Print the cache key a permit with these parameters is stored under."""
    if (cap is None) == (cap_usd is None):
        click.echo("❌ Provide exactly one of --cap or --cap-usd", err=True)
        sys.exit(1)
    if network is None:
        network = _load_config_or_exit().network_id
    if cap_usd is not None:
        try:
            cap = format_cap(cap_usd)
        except ValueError as e:
            click.echo(f"❌ {e}", err=True)
            sys.exit(1)

    key = build_permit_cache_key(
        PermitCacheKeyInput(
            network=network,
            asset=asset,
            pay_to=pay_to,
            cap=cap,
            account=account,
        )
    )
    click.echo(key)


if __name__ == "__main__":
    main()
