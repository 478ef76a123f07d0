"""
CLI Admin - gruppo amministratori e utente di default
"""
import sys
from typing import Optional

import typer
from rich import print as rprint

from .admin import LoginResult, PolicyOutcome, REFUSED_MESSAGE
from .cli_user import ask_password
from .errors import CoreSettingsError
from .manager import SettingsManager

admin_app = typer.Typer(help="Gestione amministratori")
default_app = typer.Typer(help="Utente di login di default")


def _set_admin(username: str, admin: bool) -> None:
    try:
        with SettingsManager() as manager:
            outcome = manager.set_admin(username, admin).result()
    except CoreSettingsError as e:
        rprint(f"[red]❌ {e}[/red]")
        sys.exit(1)

    if outcome == PolicyOutcome.REFUSED:
        rprint(f"[yellow]⚠️ {REFUSED_MESSAGE}[/yellow]")
        sys.exit(1)


@admin_app.command("promote")
def promote(username: str = typer.Argument(help="Nome utente")):
    """Aggiunge l'utente al gruppo amministratori"""
    _set_admin(username, True)
    rprint(f"[green]✅ {username} è ora amministratore[/green]")


@admin_app.command("demote")
def demote(username: str = typer.Argument(help="Nome utente")):
    """Rimuove l'utente dal gruppo amministratori (ne resta almeno uno)"""
    _set_admin(username, False)
    rprint(f"[green]✅ {username} non è più amministratore[/green]")


@admin_app.command("verify")
def verify(
    username: str = typer.Argument(help="Nome utente"),
    password: Optional[str] = typer.Option(None, "--password", "-p", help="Password (chiesta se assente)")
):
    """Verifica le credenziali di un amministratore senza modificare nulla"""
    password = ask_password(password, f"Password per {username}")

    try:
        with SettingsManager() as manager:
            result = manager.admin_login_verify(username, password).result()
    except CoreSettingsError as e:
        rprint(f"[red]❌ {e}[/red]")
        sys.exit(1)

    if result == LoginResult.SUCCESS:
        rprint("[green]✅ Login amministratore riuscito[/green]")
    elif result == LoginResult.NOT_ADMIN:
        rprint(f"[yellow]⚠️ {username} non è un amministratore[/yellow]")
        sys.exit(1)
    else:
        rprint("[red]❌ Credenziali errate[/red]")
        sys.exit(1)


@admin_app.command("list")
def list_admins():
    """Lista amministratori"""
    try:
        with SettingsManager() as manager:
            admins = manager.list_admins()
    except CoreSettingsError as e:
        rprint(f"[red]❌ {e}[/red]")
        sys.exit(1)

    rprint(f"[blue]🔑 Amministratori ({len(admins)})[/blue]")
    for name in admins:
        rprint(f"• {name}")


@default_app.command("show")
def show_default():
    """Mostra l'utente di default"""
    try:
        with SettingsManager() as manager:
            default_user = manager.boot_config.default_user
    except CoreSettingsError as e:
        rprint(f"[red]❌ {e}[/red]")
        sys.exit(1)

    if default_user:
        rprint(f"[bold]Utente di default:[/bold] {default_user}")
    else:
        rprint("[yellow]Nessun utente di default[/yellow]")


@default_app.command("set")
def set_default(username: str = typer.Argument(help="Nome utente")):
    """Imposta l'utente di login di default"""
    try:
        with SettingsManager() as manager:
            if username not in manager.list_users():
                rprint(f"[red]❌ Utente non trovato: {username}[/red]")
                sys.exit(1)
            manager.set_default_user(username)
    except CoreSettingsError as e:
        rprint(f"[red]❌ {e}[/red]")
        sys.exit(1)

    rprint(f"[green]✅ Utente di default: {username}[/green]")


@default_app.command("unset")
def unset_default():
    """Rimuove l'utente di default"""
    try:
        with SettingsManager() as manager:
            manager.set_default_user(None)
    except CoreSettingsError as e:
        rprint(f"[red]❌ {e}[/red]")
        sys.exit(1)

    rprint("[green]✅ Utente di default rimosso[/green]")
