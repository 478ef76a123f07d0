"""
CLI User - creazione, eliminazione e password degli account
"""
import sys
from typing import Optional

import typer
from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table
from rich import print as rprint

from .errors import AuthorizationError, CoreSettingsError
from .manager import SettingsManager

user_app = typer.Typer(help="Gestione utenti")
console = Console()


def ask_password(value: Optional[str], label: str) -> str:
    """Usa il valore passato o lo chiede senza eco"""
    if value:
        return value
    return Prompt.ask(label, password=True)


@user_app.command("create")
def create_user(
    username: str = typer.Argument(help="Nome utente"),
    password: Optional[str] = typer.Option(None, "--password", "-p", help="Password (chiesta se assente)"),
    admin: bool = typer.Option(False, "--admin", help="Aggiungi al gruppo amministratori"),
    make_default: bool = typer.Option(False, "--default", help="Imposta come utente di login di default")
):
    """Crea utente UNIX con home cifrata"""
    rprint(f"[blue]👤 Creando utente: {username}[/blue]")
    password = ask_password(password, f"Password per {username}")

    try:
        with SettingsManager() as manager:
            manager.create_user(username, password, admin, make_default).result()
    except CoreSettingsError as e:
        rprint(f"[red]❌ {e}[/red]")
        sys.exit(1)

    rprint(f"[green]✅ Utente {username} creato[/green]")
    if admin:
        rprint("[cyan]🔑 Membro del gruppo amministratori[/cyan]")
    if make_default:
        rprint("[cyan]⭐ Impostato come utente di default[/cyan]")


@user_app.command("delete")
def delete_user(
    username: str = typer.Argument(help="Nome utente da eliminare"),
    confirm: bool = typer.Option(False, "--confirm", help="Conferma eliminazione")
):
    """Elimina utente, home e storage cifrato (richiede conferma)"""
    if not confirm:
        rprint(f"[red]⚠️ ATTENZIONE: Stai per eliminare l'utente {username} e tutti i suoi dati[/red]")
        rprint("💡 Aggiungi --confirm per procedere")
        sys.exit(1)

    rprint(f"[blue]🗑️ Eliminazione utente: {username}[/blue]")

    try:
        with SettingsManager() as manager:
            manager.delete_user(username).result()
            if manager.boot_config.default_user == username:
                rprint("[yellow]⚠️ L'utente era quello di default: usa 'core-settings default unset'[/yellow]")
    except CoreSettingsError as e:
        rprint(f"[red]❌ Errore eliminazione: {e}[/red]")
        sys.exit(1)

    rprint(f"[green]✅ Utente {username} eliminato[/green]")


@user_app.command("passwd")
def change_password(
    username: str = typer.Argument(help="Nome utente"),
    old_password: Optional[str] = typer.Option(None, "--old", help="Password attuale"),
    new_password: Optional[str] = typer.Option(None, "--new", help="Nuova password")
):
    """Cambia password UNIX (verifica quella attuale)"""
    rprint(f"[blue]🔑 Cambio password per: {username}[/blue]")
    old_password = ask_password(old_password, "Password attuale")
    new_password = ask_password(new_password, "Nuova password")

    try:
        with SettingsManager() as manager:
            manager.change_password(username, old_password, new_password).result()
    except AuthorizationError as e:
        rprint("[red]❌ Password attuale errata[/red]")
        rprint(f"[dim]{e}[/dim]")
        sys.exit(1)
    except CoreSettingsError as e:
        rprint(f"[red]❌ {e}[/red]")
        sys.exit(1)

    rprint("[green]✅ Password aggiornata[/green]")
    rprint("[cyan]💡 La password dello storage cifrato non cambia: usa 'core-settings storage passwd'[/cyan]")


@user_app.command("list")
def list_users():
    """Lista utenti con storage cifrato"""
    rprint("[blue]👥 Utenti con storage cifrato[/blue]")

    try:
        with SettingsManager() as manager:
            usernames = manager.list_users()
            if not usernames:
                rprint("[yellow]Nessun utente trovato[/yellow]")
                return

            default_user = manager.boot_config.default_user
            table = Table(title="Utenti")
            table.add_column("Username", style="cyan")
            table.add_column("Admin", style="white")
            table.add_column("Cifratura", style="green")
            table.add_column("Default", style="yellow")

            for name in usernames:
                details = manager.get_user_details(name)
                table.add_row(
                    name,
                    "✅" if details.admin else "❌",
                    "✅ Attiva" if details.encryption else "❌ Disabilitata",
                    "⭐" if name == default_user else ""
                )

            console.print(table)
    except CoreSettingsError as e:
        rprint(f"[red]❌ Errore listing utenti: {e}[/red]")
        sys.exit(1)


@user_app.command("info")
def user_info(
    username: str = typer.Argument(help="Nome utente")
):
    """Mostra dettagli utente"""
    rprint(f"[blue]ℹ️ Informazioni utente: {username}[/blue]")

    try:
        with SettingsManager() as manager:
            details = manager.get_user_details(username)
    except CoreSettingsError as e:
        rprint(f"[red]❌ {e}[/red]")
        sys.exit(1)

    table = Table(title="Dettagli Utente")
    table.add_column("Campo", style="cyan")
    table.add_column("Valore", style="white")
    table.add_row("NAME", details.name)
    table.add_row("ADMIN", str(details.admin))
    table.add_row("ENCRYPTION", str(details.encryption))
    table.add_row("ENCRYPTED_KEY", details.encrypted_key or "-")
    table.add_row("SALT", details.salt or "-")
    console.print(table)


if __name__ == "__main__":
    user_app()
