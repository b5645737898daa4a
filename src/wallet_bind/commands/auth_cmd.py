"""CLI commands for the stored session grant."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

from wallet_bind.auth import AuthManager
from wallet_bind.client import BackendAuthClient
from wallet_bind.config import get_config
from wallet_bind.exceptions import BindingError
from wallet_bind.services.credential_store import CredentialStore
from wallet_bind.services.session_store import SessionStore
from wallet_bind.utils.errors import handle_error
from wallet_bind.utils.output import OutputFormat, print_output

console = Console(stderr=True)
app = typer.Typer(name="auth", help="Inspect and manage the bound account's tokens.")


def _build_auth(verbose: bool = False) -> tuple[AuthManager, BackendAuthClient]:
    config = get_config()
    client = BackendAuthClient(config, verbose=verbose)
    return AuthManager(client, CredentialStore(config.settings.state_dir)), client


@app.command()
def status(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Show whether a wallet is bound and when its token expires."""
    auth, client = _build_auth()
    try:
        token_status = auth.get_status()
        result = {
            "bound": auth.is_bound,
            "wallet_address": token_status.wallet_address or "N/A",
            "has_token": token_status.has_token,
            "is_expired": token_status.is_expired,
            "expires_at": str(token_status.expires_at) if token_status.expires_at else "N/A",
            "seconds_remaining": token_status.seconds_remaining or 0,
        }
        print_output(result, output, title="Token Status")
    finally:
        client.close()


@app.command()
def token(
    refresh: Annotated[bool, typer.Option("--refresh", help="Force a refresh first")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Print a valid access token, refreshing it when close to expiry."""
    auth, client = _build_auth(verbose)
    try:
        access_token = auth.get_access_token(force_refresh=refresh)
        if access_token is None:
            if auth.get_status().has_token:
                console.print("[red]Token refresh failed.[/red] The grant is kept, try again later.")
            else:
                console.print("[red]No valid token.[/red] Bind a wallet with `wallet-bind bind start`.")
            raise typer.Exit(1)
        typer.echo(access_token)
    except BindingError as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        client.close()


@app.command()
def logout() -> None:
    """Unbind: forget the stored grant and any binding session."""
    auth, client = _build_auth()
    try:
        auth.unbind()
        SessionStore(get_config().settings.state_dir).clear()
        console.print("Signed out.")
    finally:
        client.close()
