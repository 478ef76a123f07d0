"""
Cambio password UNIX in chroot con verifica in due fasi.

Fase A: come l'utente, con la password attuale dichiarata, imposta una
password temporanea casuale (fallisce se la password attuale è errata).
Fase B: come root, imposta la password richiesta al posto di quella
temporanea.

Senza nuova password (modalità "solo verifica") la fase B rimette la
password originale e il file shadow viene ripristinato byte per byte.
"""
import logging
from typing import Dict, Optional

from .config import get_config, shadow_path, TEMP_PASSWORD_LENGTH, DISABLED_MODE_PASSWORD
from .errors import (
    AuthorizationError, BackupError, ExecutionError, PasswordChangeError, StorageError,
    ValidationError,
)
from .overlay import OverlayRoot, privileged_root
from .utils import run_chroot, generate_random_string, snapshot_file, restore_file

logger = logging.getLogger(__name__)


def set_password(root, user: str, new_password: str) -> None:
    """Imposta la password senza verifica (passwd da root, nuova password due volte)"""
    run_chroot(root, ["passwd", user], input_text=f"{new_password}\n{new_password}\n")


def _change_as_user(root, user: str, old_password: str, new_password: str) -> None:
    """passwd interattivo eseguito come l'utente: richiede la password attuale"""
    run_chroot(
        root,
        ["su", user, "-c", "passwd"],
        input_text=f"{old_password}\n{new_password}\n{new_password}\n",
    )


def _two_phase_change(root, user: str, old_password: str, new_password: str) -> None:
    temp_password = generate_random_string(TEMP_PASSWORD_LENGTH)

    try:
        _change_as_user(root, user, old_password, temp_password)
    except ExecutionError as e:
        logger.error("Verifica password fallita per l'utente '%s': %s", user, e)
        if e.returncode is None:
            raise PasswordChangeError(f"Impossibile impostare la nuova password per l'utente '{user}'", e) from e
        raise AuthorizationError(
            f"Impossibile impostare la nuova password per l'utente '{user}': password attuale errata", e
        ) from e

    try:
        set_password(root, user, new_password)
    except ExecutionError as e:
        # L'account resta sulla password temporanea: segnalato, non recuperato
        logger.error("Impostazione password fallita per l'utente '%s' dopo la verifica: %s", user, e)
        raise PasswordChangeError(f"Impossibile impostare la nuova password per l'utente '{user}'", e) from e


def change_password(user: str, old_password: str, new_password: Optional[str] = None,
                    pubkey: Optional[str] = None, config: Optional[Dict] = None,
                    overlay: Optional[OverlayRoot] = None) -> None:
    """
    Cambia la password UNIX di un utente verificando quella attuale.

    Args:
        user: Nome utente
        old_password: Password attuale dichiarata
        new_password: Nuova password; None per la sola verifica
        pubkey: Chiave per montare l'overlay root se non già montato

    Raises:
        AuthorizationError: password attuale errata
        ExecutionError: errore dei comandi in chroot
        BackupError: snapshot/ripristino di shadow fallito (solo verifica)
    """
    config = config or get_config()
    verify_only = new_password is None

    if not verify_only and new_password == DISABLED_MODE_PASSWORD:
        raise ValidationError("Password riservata, sceglierne un'altra")

    with privileged_root(pubkey, overlay or OverlayRoot(config)) as root_fs:
        if not verify_only:
            _two_phase_change(root_fs.root, user, old_password, new_password)
            logger.info("Password aggiornata per l'utente '%s'", user)
            return

        shadow = shadow_path(config)
        try:
            shadow_backup = snapshot_file(shadow)
        except OSError as e:
            raise BackupError(f"Impossibile salvare {shadow}", e) from e

        try:
            _two_phase_change(root_fs.root, user, old_password, old_password)
        finally:
            try:
                restore_file(shadow, shadow_backup)
            except StorageError as e:
                raise BackupError(f"Impossibile ripristinare {shadow}", e) from e

        logger.info("Password verificata per l'utente '%s'", user)
