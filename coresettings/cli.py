"""
CLI principale per core-settings
"""
import typer
from rich.console import Console
from rich.table import Table
from rich import print as rprint

from .cli_user import user_app
from .cli_storage import storage_app
from .cli_admin import admin_app, default_app
from .boot_config import BootConfig
from .config import get_config, pubkey_from_config
from .errors import CoreSettingsError
from .log import setup_logging
from .overlay import OverlayRoot
from .storage import get_users_using_storage_encryption


def version_callback(value: bool):
    """Callback per --version flag globale"""
    if value:
        from . import __version__
        rprint(f"[bold blue]Core Settings v{__version__}[/bold blue]")
        raise typer.Exit()


app = typer.Typer(
    name="core-settings",
    help="Gestione account utente e home cifrate",
    add_completion=False
)
console = Console()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v",
        help="Mostra versione del programma",
        callback=version_callback,
        is_eager=True
    )
):
    """Core Settings - account utente e storage cifrato"""
    setup_logging(get_config()["log_level"])


app.add_typer(user_app, name="user")
app.add_typer(storage_app, name="storage")
app.add_typer(admin_app, name="admin")
app.add_typer(default_app, name="default")


@app.command()
def config():
    """Mostra configurazione corrente"""
    rprint("[blue]⚙️ Configurazione Core Settings[/blue]")

    current = get_config()
    table = Table(title="Configurazione")
    table.add_column("Chiave", style="cyan")
    table.add_column("Valore", style="white")

    for key, value in current.items():
        table.add_row(key, str(value) if value is not None else "-")

    console.print(table)

    has_key = pubkey_from_config(current) is not None
    rprint(f"[bold]Chiave di firma:[/bold] {'✅ Disponibile' if has_key else '❌ Non disponibile'}")


@app.command()
def version():
    """Mostra versione"""
    from . import __version__
    rprint(f"[bold blue]Core Settings v{__version__}[/bold blue]")


@app.command()
def status():
    """Status generale del sistema"""
    rprint("[blue]📊 Status core-settings[/blue]")
    current = get_config()

    overlay = OverlayRoot(current)
    rprint(f"[bold]Overlay root:[/bold] {'✅ Montato' if overlay.is_mounted() else '❌ Non montato'}")

    try:
        users = get_users_using_storage_encryption(current)
        rprint(f"[bold]Utenti con storage cifrato:[/bold] {len(users)}")
    except CoreSettingsError as e:
        rprint(f"[bold]Utenti con storage cifrato:[/bold] [yellow]⚠️ {e}[/yellow]")

    try:
        boot_config, created = BootConfig.read(current["boot_config_path"])
        default_user = boot_config.system.default_user or "nessuno"
        rprint(f"[bold]Utente di default:[/bold] {default_user}")
        if created:
            rprint("  [cyan]💡 Configurazione di boot non ancora salvata[/cyan]")
    except CoreSettingsError as e:
        rprint(f"[bold]Configurazione di boot:[/bold] [yellow]⚠️ {e}[/yellow]")


if __name__ == "__main__":
    app()
