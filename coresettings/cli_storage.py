"""
CLI Storage - password e disabilitazione dello storage cifrato
"""
import sys
from typing import Optional

import typer
from rich import print as rprint

from .cli_user import ask_password
from .errors import CoreSettingsError
from .manager import SettingsManager

storage_app = typer.Typer(help="Gestione storage cifrato")


@storage_app.command("passwd")
def change_encryption_password(
    username: str = typer.Argument(help="Nome utente"),
    old_password: Optional[str] = typer.Option(None, "--old", help="Password attuale dello storage"),
    new_password: Optional[str] = typer.Option(None, "--new", help="Nuova password dello storage")
):
    """Cambia password dello storage cifrato (riabilita la cifratura se disabilitata)"""
    rprint(f"[blue]🔐 Cambio password storage cifrato per: {username}[/blue]")
    old_password = ask_password(old_password, "Password attuale dello storage")
    new_password = ask_password(new_password, "Nuova password dello storage")

    try:
        with SettingsManager() as manager:
            manager.change_encryption_password(username, old_password, new_password).result()
    except CoreSettingsError as e:
        rprint(f"[red]❌ {e}[/red]")
        sys.exit(1)

    rprint("[green]✅ Password storage cifrato aggiornata[/green]")


@storage_app.command("disable")
def disable_encryption(
    username: str = typer.Argument(help="Nome utente"),
    password: Optional[str] = typer.Option(None, "--password", "-p", help="Password attuale dello storage"),
    confirm: bool = typer.Option(False, "--confirm", help="Conferma disabilitazione")
):
    """Disabilita la cifratura (password dello storage impostata a un valore noto)"""
    if not confirm:
        rprint(f"[red]⚠️ ATTENZIONE: i dati di {username} non saranno più protetti da password[/red]")
        rprint("💡 Aggiungi --confirm per procedere")
        sys.exit(1)

    password = ask_password(password, "Password attuale dello storage")

    try:
        with SettingsManager() as manager:
            manager.disable_encryption(username, password).result()
    except CoreSettingsError as e:
        rprint(f"[red]❌ {e}[/red]")
        sys.exit(1)

    rprint(f"[green]✅ Cifratura disabilitata per {username}[/green]")
    rprint("[cyan]💡 Per riabilitarla: core-settings storage passwd <user>[/cyan]")


if __name__ == "__main__":
    storage_app()
