"""wallet-bind CLI entry point.

Drives the wallet-binding flow of the game client from a shell: request a
wallet connection, deliver the deep links the wallet answers with, and
inspect the resulting session tokens.
"""

from __future__ import annotations

import logging

import typer

from wallet_bind.commands.auth_cmd import app as auth_app
from wallet_bind.commands.bind_cmd import app as bind_app
from wallet_bind.commands.links_cmd import app as links_app

app = typer.Typer(
    name="wallet-bind",
    help="Bind a self-custodial wallet to a game account through deep links.",
    no_args_is_help=True,
)

# Register command groups
app.add_typer(bind_app, name="bind")
app.add_typer(auth_app, name="auth")
app.add_typer(links_app, name="links")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """wallet-bind: connect, sign, exchange, and manage the bound session."""
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


if __name__ == "__main__":
    app()
