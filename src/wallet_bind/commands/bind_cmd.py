"""CLI commands driving the wallet-binding flow.

Each invocation is a cold start: the session is read back from the state
directory, advanced, and written again.
"""

from __future__ import annotations

import sys
from typing import Annotated, Any

import typer
from rich.console import Console

from wallet_bind.auth import AuthManager
from wallet_bind.client import BackendAuthClient
from wallet_bind.config import get_config
from wallet_bind.exceptions import BindingError
from wallet_bind.models.auth import TokenResponse
from wallet_bind.models.session import BindingState, DeepLinkEvent, LinkKind
from wallet_bind.services.binding import WalletBindingStateMachine
from wallet_bind.services.credential_store import CredentialStore
from wallet_bind.services.gateway import DeepLinkGateway, StaticLinkSource
from wallet_bind.services.session_store import SessionStore
from wallet_bind.services.wallet_links import WalletLinkBuilder
from wallet_bind.utils.errors import handle_error
from wallet_bind.utils.output import OutputFormat, print_output

console = Console(stderr=True)
app = typer.Typer(name="bind", help="Bind a wallet to the game account.")


def _open_link(uri: str) -> None:
    console.print(f"[bold yellow]Open in wallet:[/bold yellow] {uri}")


def _on_bound(token: TokenResponse) -> None:
    label = "new account" if token.is_new_user else "existing account"
    console.print(f"[green]Wallet bound[/green] ({label}, user {token.user_id})")


def _build_machine(
    wallet: str | None = None,
    verbose: bool = False,
) -> tuple[WalletBindingStateMachine, BackendAuthClient]:
    config = get_config()
    settings = config.settings
    store = SessionStore(settings.state_dir)
    try:
        links = WalletLinkBuilder(config, wallet or store.load().wallet_name)
    except ValueError as e:
        handle_error(e)
        raise typer.Exit(1)
    client = BackendAuthClient(config, verbose=verbose)
    machine = WalletBindingStateMachine(
        client,
        links,
        store=store,
        auth=AuthManager(client, CredentialStore(settings.state_dir)),
        launcher=_open_link,
        callback_timeout=settings.callback_timeout,
        on_bind_success=_on_bound,
    )
    return machine, client


def _build_gateway(source: StaticLinkSource) -> DeepLinkGateway:
    grace = get_config().settings.cold_start_grace_ms / 1000
    return DeepLinkGateway(source, cold_start_grace=grace)


def session_view(machine: WalletBindingStateMachine) -> dict[str, Any]:
    """Flatten the session into the fields the UI layer acts on."""
    session = machine.session
    return {
        "state": session.state.value,
        "attempt_id": session.attempt_id,
        "wallet": session.wallet_name,
        "wallet_address": session.wallet_address,
        "is_connected": machine.is_connected,
        "pending_connect_result": machine.has_pending_connect_result,
        "pending_sign_result": machine.has_pending_sign_result,
        "nonce": session.nonce,
        "challenge_message": session.challenge_message,
        "error": machine.failure_reason,
    }


def _finish(machine: WalletBindingStateMachine, output: OutputFormat, title: str) -> None:
    print_output(session_view(machine), output, title=title)
    if machine.state is BindingState.FAILED:
        console.print(f"[red]Binding failed:[/red] {machine.failure_reason}")
        raise typer.Exit(1)


@app.command()
def start(
    wallet: Annotated[str | None, typer.Option("--wallet", "-w", help="Wallet profile from wallets.yaml")] = None,
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Ask the wallet to connect. Prints the outbound link."""
    machine, client = _build_machine(wallet, verbose)
    try:
        machine.check_timeout()
        machine.request_connect()
        _finish(machine, output, "Connect Requested")
    except BindingError as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        client.close()


@app.command()
def deliver(
    uri: Annotated[str, typer.Argument(help="Deep link the OS delivered to the app")],
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Deliver a wallet callback as the link that launched the app."""
    machine, client = _build_machine(verbose=verbose)
    try:
        gateway = _build_gateway(StaticLinkSource(initial=uri))
        event = gateway.start()
        if event is None or event.kind is LinkKind.UNRECOGNIZED:
            console.print("[dim]Not a wallet callback, ignored.[/dim]")
        machine.check_timeout()
        gateway.attach(machine.handle_event)
        _finish(machine, output, "Binding Session")
    finally:
        client.close()


@app.command()
def listen(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Read deep links from stdin, one per line, as the live link stream."""
    machine, client = _build_machine(verbose=verbose)
    try:
        gateway = _build_gateway(StaticLinkSource(stream=sys.stdin))

        def _handle(event: DeepLinkEvent) -> None:
            machine.check_timeout()
            machine.handle_event(event)

        gateway.attach(_handle)
        count = gateway.listen()
        console.print(f"Processed {count} link(s)")
        _finish(machine, output, "Binding Session")
    finally:
        client.close()


@app.command()
def status(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Show the binding session and its pending-result flags."""
    machine, client = _build_machine()
    try:
        machine.check_timeout()
        print_output(session_view(machine), output, title="Binding Session")
    finally:
        client.close()


@app.command()
def cancel(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Abandon the pending attempt."""
    machine, client = _build_machine()
    try:
        machine.cancel()
        print_output(session_view(machine), output, title="Binding Cancelled")
    finally:
        client.close()


@app.command()
def retry(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Start a new attempt after a failure."""
    machine, client = _build_machine(verbose=verbose)
    try:
        machine.retry()
        _finish(machine, output, "Binding Retried")
    except BindingError as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        client.close()


@app.command("check-timeout")
def check_timeout(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Fail the session if the wallet has not answered in time."""
    machine, client = _build_machine()
    try:
        expired = machine.check_timeout()
        if expired:
            console.print("[yellow]Wallet request timed out.[/yellow]")
        print_output(session_view(machine), output, title="Binding Session")
    finally:
        client.close()


@app.command()
def reset() -> None:
    """Forget the binding session."""
    SessionStore(get_config().settings.state_dir).clear()
    console.print("Binding session cleared.")
