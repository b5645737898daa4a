"""CLI commands for inspecting deep links."""

from __future__ import annotations

from typing import Annotated

import typer

from wallet_bind.config import get_config
from wallet_bind.services.gateway import classify
from wallet_bind.services.wallet_links import WalletLinkBuilder
from wallet_bind.utils.errors import handle_error
from wallet_bind.utils.output import OutputFormat, print_output

app = typer.Typer(name="links", help="Inspect deep links.")


@app.command("classify")
def classify_link(
    uri: Annotated[str, typer.Argument(help="URI to classify")],
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Show how the gateway classifies a URI and which fields it extracts."""
    event = classify(uri)
    result = {
        "kind": event.kind.value,
        "wallet_address": event.wallet_address,
        "signature": event.signature,
        "bind_nonce": event.bind_nonce,
        "error_code": event.error_code,
        "error_message": event.error_message,
    }
    print_output(result, output, title="Deep Link")


@app.command("connect")
def connect_link(
    wallet: Annotated[str | None, typer.Option("--wallet", "-w", help="Wallet profile from wallets.yaml")] = None,
) -> None:
    """Print the connect link for a wallet without touching the session."""
    try:
        builder = WalletLinkBuilder(get_config(), wallet)
    except ValueError as e:
        handle_error(e)
        raise typer.Exit(1)
    typer.echo(builder.connect_link())
