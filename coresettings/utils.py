"""
Utility functions per core-settings
"""
import os
import logging
import secrets
import stat
import string
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .errors import ExecutionError, StorageError

logger = logging.getLogger(__name__)


def run(cmd: List[str], check: bool = True, input_text: Optional[str] = None) -> str:
    """Esegue un comando di sistema e ritorna stdout."""
    logger.debug("Eseguo: %s", " ".join(cmd))
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, input=input_text)
    except OSError as e:
        raise ExecutionError(cmd, cause=e) from e

    if check and result.returncode != 0:
        raise ExecutionError(cmd, result.returncode, result.stderr)
    return result.stdout.strip()


def run_chroot(root: str, args: List[str], input_text: Optional[str] = None) -> str:
    """Esegue un comando con root in chroot (overlay)"""
    return run(["chroot", str(root)] + list(args), input_text=input_text)


def ensure_dir(path, mode: int = 0o755) -> None:
    """Crea directory se non esiste"""
    os.makedirs(path, mode=mode, exist_ok=True)


def generate_random_string(length: int) -> str:
    """Genera stringa casuale crittograficamente sicura"""
    if length <= 0:
        raise ValueError(f"Lunghezza non valida: {length}")
    charset = string.ascii_letters + string.digits
    return "".join(secrets.choice(charset) for _ in range(length))


def is_mountpoint(path) -> bool:
    """Verifica se un percorso è un punto di mount"""
    target = os.path.realpath(str(path))
    try:
        with open("/proc/self/mounts", "r") as f:
            for line in f:
                fields = line.split()
                if len(fields) > 1 and fields[1] == target:
                    return True
        return False
    except OSError:
        return os.path.ismount(target)


def atomic_write(file_path, content: str, mode: int = 0o644) -> None:
    """Scrive file atomicamente (write + move)"""
    _atomic_replace(file_path, content.encode(), mode)


def _atomic_replace(file_path, data: bytes, mode: int, owner: Optional[Tuple[int, int]] = None) -> None:
    file_path = str(file_path)
    temp_path = f"{file_path}.tmp.{os.getpid()}"
    try:
        with open(temp_path, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(temp_path, mode)
        if owner is not None:
            os.chown(temp_path, *owner)
        os.replace(temp_path, file_path)
    except OSError as e:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise StorageError(f"Impossibile scrivere {file_path}", e) from e


def snapshot_file(file_path) -> bytes:
    """Legge il contenuto esatto di un file (per ripristino byte per byte)"""
    with open(file_path, "rb") as f:
        return f.read()


def restore_file(file_path, content: bytes) -> None:
    """
    Rimette il contenuto salvato da snapshot_file().

    Il file viene sostituito atomicamente mantenendo permessi e proprietario
    dell'originale (shadow è 0640 o 0000, non 0644).
    """
    try:
        st = os.stat(file_path)
    except OSError as e:
        raise StorageError(f"Impossibile leggere i permessi di {file_path}", e) from e

    owner = None
    if (st.st_uid, st.st_gid) != (os.geteuid(), os.getegid()):
        owner = (st.st_uid, st.st_gid)
    _atomic_replace(file_path, content, stat.S_IMODE(st.st_mode), owner)


def parse_passwd(root) -> Dict[str, Tuple[int, int]]:
    """Legge /etc/passwd dentro root: username -> (uid, gid)"""
    entries = {}
    passwd_file = Path(root) / "etc" / "passwd"
    with open(passwd_file, "r") as f:
        for line in f:
            fields = line.strip().split(":")
            if len(fields) >= 4:
                entries[fields[0]] = (int(fields[2]), int(fields[3]))
    return entries


def get_user_uid_gid(username: str, root="/") -> Tuple[int, int]:
    """Ottiene UID e GID di un utente dal passwd del root indicato"""
    try:
        return parse_passwd(root)[username]
    except KeyError:
        raise ValueError(f"Utente {username} non trovato")
