"""
Ciclo di vita utenti: creazione/eliminazione account UNIX con home cifrata
"""
import shutil
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .admin import is_admin, set_default_user
from .boot_config import BootConfigHandle
from .config import (
    get_config, home_path, encrypted_home_path, skeleton_path, DISABLED_MODE_PASSWORD,
)
from .errors import CoreSettingsError, ExecutionError, StorageError, ValidationError
from .overlay import OverlayRoot, privileged_root
from .passwords import set_password
from .storage import (
    create_home_directories, init_storage, mount_storage, unmount_storage,
    get_users_using_storage_encryption, get_encryption_user_details,
)
from .utils import run, run_chroot, get_user_uid_gid

logger = logging.getLogger(__name__)


@dataclass
class SystemUser:
    """Vista in sola lettura di un utente (ricostruita ad ogni refresh)"""
    name: str
    admin: bool
    encryption: bool
    encrypted_key: str
    salt: str


def validate_username(username: str) -> None:
    """Rifiuta nomi vuoti o con '.' e '/' (path traversal)"""
    if not username:
        raise ValidationError("Nome utente mancante")
    if "." in username or "/" in username:
        raise ValidationError(f"Nome utente non valido: '{username}' (non può contenere '.' o '/')")


def copy_skeleton(user: str, config: Dict) -> None:
    """Copia i file di default (dotfile) dal sistema base nella nuova home"""
    source = skeleton_path(config)
    if not source.is_dir():
        logger.warning("Directory skeleton assente: %s", source)
        return
    shutil.copytree(source, home_path(config, user), symlinks=True, dirs_exist_ok=True)


def populate_home(username: str, root, config: Dict) -> None:
    """Copia lo skeleton nella home montata e la assegna all'utente"""
    try:
        copy_skeleton(username, config)
    except OSError as e:
        raise StorageError("Impossibile copiare i file skeleton", e) from e

    try:
        uid, gid = get_user_uid_gid(username, root)
        run(["chown", "-R", f"{uid}:{gid}", str(home_path(config, username))])
    except (OSError, ValueError, ExecutionError) as e:
        raise StorageError(f"Impossibile assegnare la home all'utente '{username}'", e) from e


def _unmount_after_error(username: str, config: Dict) -> None:
    try:
        unmount_storage(username, config)
    except CoreSettingsError as e:
        logger.error("Impossibile smontare lo storage dell'utente '%s': %s", username, e)


def create_user(username: str, password: str, admin: bool = False, make_default: bool = False,
                boot_config: Optional[BootConfigHandle] = None, pubkey: Optional[str] = None,
                config: Optional[Dict] = None, overlay: Optional[OverlayRoot] = None) -> None:
    """
    Crea un account UNIX con home cifrata.

    Args:
        username: Nome utente (senza '.' o '/')
        password: Password iniziale (account e storage cifrato)
        admin: Aggiunge l'utente al gruppo admin in creazione
        make_default: Registra l'utente come login di default
        boot_config: Configurazione di boot (richiesta con make_default)
        pubkey: Chiave per montare l'overlay root se non già montato
    """
    validate_username(username)
    if password == DISABLED_MODE_PASSWORD:
        raise ValidationError("Password riservata, sceglierne un'altra")
    if make_default and boot_config is None:
        raise ValidationError("Configurazione di boot richiesta per impostare l'utente di default")

    config = config or get_config()

    with privileged_root(pubkey, overlay or OverlayRoot(config)) as root_fs:
        useradd_cmd = ["useradd", "-M"]
        if admin:
            useradd_cmd.extend(["-G", config["admin_group"]])
        useradd_cmd.append(username)

        try:
            run_chroot(root_fs.root, useradd_cmd)
        except ExecutionError as e:
            raise CoreSettingsError(f"Impossibile creare l'utente '{username}'", e) from e

        try:
            set_password(root_fs.root, username, password)
        except ExecutionError as e:
            raise CoreSettingsError(f"Impossibile impostare la password dell'utente '{username}'", e) from e

        create_home_directories(username, config)
        init_storage(username, password, config)
        mount_storage(username, password, config)

        try:
            populate_home(username, root_fs.root, config)
        except CoreSettingsError:
            _unmount_after_error(username, config)
            raise

        unmount_storage(username, config)

    if make_default:
        set_default_user(username, boot_config)

    logger.info("Utente '%s' creato%s", username, " (admin)" if admin else "")


def delete_user(username: str, boot_config: Optional[BootConfigHandle] = None,
                pubkey: Optional[str] = None, config: Optional[Dict] = None,
                overlay: Optional[OverlayRoot] = None) -> None:
    """
    Elimina home, directory cifrata e account UNIX (in quest'ordine).

    Non controlla il numero di admin rimasti e non modifica l'utente
    di default.
    """
    if not username:
        raise ValidationError("Nome utente mancante")

    config = config or get_config()

    with privileged_root(pubkey, overlay or OverlayRoot(config)) as root_fs:
        for directory in (home_path(config, username), encrypted_home_path(config, username)):
            if directory.exists():
                try:
                    shutil.rmtree(directory)
                except OSError as e:
                    raise StorageError(f"Impossibile rimuovere {directory}", e) from e

        try:
            run_chroot(root_fs.root, ["userdel", "-r", "-f", username])
        except ExecutionError as e:
            raise CoreSettingsError(f"Impossibile eliminare l'utente '{username}'", e) from e

    if boot_config is not None and boot_config.default_user == username:
        logger.warning("L'utente eliminato '%s' è ancora l'utente di default", username)

    logger.info("Utente '%s' eliminato", username)


def get_users(config: Optional[Dict] = None) -> List[str]:
    """Utenti che usano lo storage cifrato"""
    return get_users_using_storage_encryption(config)


def get_user_details(user: str, pubkey: Optional[str] = None, config: Optional[Dict] = None,
                     overlay: Optional[OverlayRoot] = None) -> SystemUser:
    """Dettagli utente; se i metadati cifrati non sono leggibili: cifratura False"""
    config = config or get_config()
    admin = is_admin(user, pubkey, config, overlay)

    try:
        details = get_encryption_user_details(user, config)
    except CoreSettingsError as e:
        logger.error("Impossibile leggere i dettagli dell'utente '%s': %s", user, e)
        return SystemUser(name=user, admin=admin, encryption=False, encrypted_key="", salt="")

    return SystemUser(
        name=user,
        admin=admin,
        encryption=details.encryption_enabled,
        encrypted_key=details.encrypted_key,
        salt=details.salt,
    )
