"""
Storage cifrato per utente (gocryptfs) per core-settings
"""
import os
import json
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .config import (
    get_config, home_root, home_path, encrypted_home_path, disabled_marker_path,
    DISABLED_MODE_PASSWORD, GOCRYPTFS_CONFIG_FILE,
)
from .errors import ExecutionError, StorageError, ValidationError
from .utils import run, ensure_dir, is_mountpoint

logger = logging.getLogger(__name__)


@dataclass
class EncryptionDetails:
    """Metadati del volume cifrato di un utente"""
    encryption_enabled: bool
    encrypted_key: str
    salt: str


def create_home_directories(user: str, config: Optional[Dict] = None) -> None:
    """Crea home in chiaro e directory cifrata nascosta"""
    config = config or get_config()
    try:
        ensure_dir(home_path(config, user))
        ensure_dir(encrypted_home_path(config, user), mode=0o700)
    except OSError as e:
        raise StorageError(f"Impossibile creare le directory home per l'utente '{user}'", e) from e


def init_storage(user: str, password: str, config: Optional[Dict] = None) -> None:
    """Inizializza il volume cifrato (password fornita due volte come conferma)"""
    config = config or get_config()
    cipher_dir = encrypted_home_path(config, user)
    try:
        run(
            [config["gocryptfs_binary"], "-init", "-q", str(cipher_dir)],
            input_text=f"{password}\n{password}\n",
        )
    except ExecutionError as e:
        raise StorageError(f"Impossibile inizializzare lo storage cifrato per l'utente '{user}'", e) from e
    logger.info("Storage cifrato inizializzato per l'utente '%s'", user)


def mount_storage(user: str, password: str, config: Optional[Dict] = None) -> None:
    """Monta il volume cifrato sulla home in chiaro"""
    config = config or get_config()
    mount_point = home_path(config, user)

    if is_mountpoint(mount_point):
        logger.info("Storage già montato per l'utente '%s'", user)
        return

    try:
        run(
            [config["gocryptfs_binary"], "-q", "-allow_other",
             str(encrypted_home_path(config, user)), str(mount_point)],
            input_text=f"{password}\n",
        )
    except ExecutionError as e:
        raise StorageError(f"Impossibile montare lo storage cifrato per l'utente '{user}'", e) from e


def unmount_storage(user: str, config: Optional[Dict] = None) -> None:
    """Smonta il volume cifrato dell'utente"""
    config = config or get_config()
    mount_point = home_path(config, user)
    try:
        run(["fusermount", "-u", str(mount_point)])
    except ExecutionError as e:
        raise StorageError(f"Impossibile smontare lo storage cifrato per l'utente '{user}'", e) from e


def _set_storage_password(user: str, old_password: str, new_password: str, config: Dict) -> None:
    try:
        run(
            [config["gocryptfs_binary"], "-passwd", "-q", str(encrypted_home_path(config, user))],
            input_text=f"{old_password}\n{new_password}\n",
        )
    except ExecutionError as e:
        raise StorageError(
            f"Impossibile cambiare la password dello storage cifrato per l'utente '{user}'", e
        ) from e

    marker = disabled_marker_path(config, user)
    if new_password != DISABLED_MODE_PASSWORD and marker.exists():
        try:
            marker.unlink()
        except OSError as e:
            raise StorageError(f"Impossibile rimuovere {marker}", e) from e
        logger.info("Cifratura riabilitata per l'utente '%s'", user)


def change_encryption_password(user: str, old_password: str, new_password: str,
                               config: Optional[Dict] = None) -> None:
    """
    Cambia la password del volume cifrato.

    Se la nuova password non è quella riservata il file che segnala la
    cifratura disabilitata viene rimosso.
    """
    config = config or get_config()
    if new_password == DISABLED_MODE_PASSWORD:
        raise ValidationError("Password riservata, usare disable_encryption()")
    _set_storage_password(user, old_password, new_password, config)
    logger.info("Password dello storage cifrato aggiornata per l'utente '%s'", user)


def disable_encryption(user: str, password: str, config: Optional[Dict] = None) -> None:
    """Imposta la password riservata e crea il file marker"""
    config = config or get_config()
    _set_storage_password(user, password, DISABLED_MODE_PASSWORD, config)

    marker = disabled_marker_path(config, user)
    try:
        marker.touch()
    except OSError as e:
        raise StorageError(f"Impossibile creare il file che disabilita la cifratura per l'utente '{user}'", e) from e
    logger.info("Cifratura disabilitata per l'utente '%s'", user)


def is_encryption_disabled(user: str, config: Optional[Dict] = None) -> bool:
    config = config or get_config()
    return disabled_marker_path(config, user).exists()


def get_users_using_storage_encryption(config: Optional[Dict] = None) -> List[str]:
    """Utenti con una directory cifrata (.<user>/gocryptfs.conf)"""
    config = config or get_config()
    root = home_root(config)
    users = []
    try:
        for entry in os.listdir(root):
            if not entry.startswith(".") or len(entry) < 2:
                continue
            if (root / entry / GOCRYPTFS_CONFIG_FILE).is_file():
                users.append(entry[1:])
    except OSError as e:
        raise StorageError(f"Impossibile leggere {root}", e) from e
    return sorted(users)


def get_encryption_user_details(user: str, config: Optional[Dict] = None) -> EncryptionDetails:
    """Legge chiave cifrata e salt da gocryptfs.conf"""
    config = config or get_config()
    conf_file = encrypted_home_path(config, user) / GOCRYPTFS_CONFIG_FILE
    try:
        with open(conf_file, "r") as f:
            data = json.load(f)
        encrypted_key = data["EncryptedKey"]
        salt = data["ScryptObject"]["Salt"]
    except (OSError, ValueError, KeyError, TypeError) as e:
        raise StorageError(f"Impossibile leggere i dettagli di cifratura per l'utente '{user}'", e) from e

    return EncryptionDetails(
        encryption_enabled=not is_encryption_disabled(user, config),
        encrypted_key=encrypted_key,
        salt=salt,
    )
