"""
Eccezioni core-settings
"""
from typing import Optional, List


class CoreSettingsError(Exception):
    """Errore base: messaggio per l'utente + causa sottostante"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class ValidationError(CoreSettingsError):
    """Input rifiutato prima di qualsiasi modifica"""


class PasswordChangeError(CoreSettingsError):
    """Cambio password UNIX fallito"""


class AuthorizationError(PasswordChangeError):
    """Password attuale errata"""


class ConfigurationError(CoreSettingsError):
    """Configurazione mancante o non valida (es. chiave di firma)"""


class StorageError(CoreSettingsError):
    """Errore dello storage cifrato o del filesystem"""


class BackupError(CoreSettingsError):
    """Backup/ripristino del database shadow fallito"""


class ExecutionError(CoreSettingsError):
    """Comando terminato con exit code non zero o non avviabile"""

    def __init__(self, cmd: List[str], returncode: Optional[int] = None,
                 stderr: str = "", cause: Optional[BaseException] = None):
        if returncode is None:
            message = f"Impossibile avviare {cmd[0]}"
        else:
            message = f"Errore eseguendo {' '.join(cmd)} (exit {returncode})"
            if stderr:
                message += f":\n{stderr.strip()}"
        super().__init__(message, cause)
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
