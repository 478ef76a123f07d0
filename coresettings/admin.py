"""
Gruppo amministratori e utente di default per core-settings
"""
import logging
from enum import Enum
from typing import Dict, List, Optional

from .boot_config import BootConfigHandle
from .config import get_config, MIN_ADMIN_COUNT
from .errors import CoreSettingsError, PasswordChangeError
from .overlay import OverlayRoot, privileged_root
from .passwords import change_password
from .utils import run_chroot

logger = logging.getLogger(__name__)


class LoginResult(str, Enum):
    """Esito della verifica login amministratore"""
    SUCCESS = "success"
    FAILURE = "failure"
    NOT_ADMIN = "not_admin"


class PolicyOutcome(str, Enum):
    """Esito di un cambio di stato admin (il rifiuto non è un errore)"""
    APPLIED = "applied"
    REFUSED = "refused"


REFUSED_MESSAGE = "Deve rimanere almeno un amministratore: impossibile rimuovere questo utente dal gruppo"


def _group_members(root, group: str) -> List[str]:
    """Membri di un gruppo da `getent group` (gruppo:x:gid:a,b,c)"""
    output = run_chroot(root, ["getent", "group", group])
    fields = output.split(":")
    if len(fields) < 4 or not fields[3]:
        return []
    return [member for member in fields[3].split(",") if member]


def get_admins(pubkey: Optional[str] = None, config: Optional[Dict] = None,
               overlay: Optional[OverlayRoot] = None) -> List[str]:
    """Lista degli utenti nel gruppo amministratori"""
    config = config or get_config()
    with privileged_root(pubkey, overlay or OverlayRoot(config)) as root_fs:
        return _group_members(root_fs.root, config["admin_group"])


def is_admin(user: str, pubkey: Optional[str] = None, config: Optional[Dict] = None,
             overlay: Optional[OverlayRoot] = None) -> bool:
    """True se l'utente è nel gruppo admin; ogni errore vale come "non admin" """
    config = config or get_config()
    try:
        with privileged_root(pubkey, overlay or OverlayRoot(config)) as root_fs:
            groups = run_chroot(root_fs.root, ["id", "-nG", user]).split()
    except CoreSettingsError as e:
        logger.warning("Impossibile verificare i gruppi dell'utente '%s': %s", user, e)
        return False
    return config["admin_group"] in groups


def admin_login_verify(username: str, password: str, pubkey: Optional[str] = None,
                       config: Optional[Dict] = None,
                       overlay: Optional[OverlayRoot] = None) -> LoginResult:
    """
    Verifica credenziali di un amministratore senza lasciare modifiche.

    Per utenti non admin ritorna NOT_ADMIN senza controllare la password.
    Gli errori di backup/ripristino di shadow non sono credenziali errate:
    BackupError viene propagato.
    """
    config = config or get_config()
    overlay = overlay or OverlayRoot(config)

    if not is_admin(username, pubkey, config, overlay):
        return LoginResult.NOT_ADMIN

    try:
        change_password(username, password, None, pubkey, config, overlay)
    except PasswordChangeError as e:
        logger.warning("Login amministratore fallito per '%s': %s", username, e)
        return LoginResult.FAILURE
    return LoginResult.SUCCESS


def change_admin_status(user: str, admin: bool, pubkey: Optional[str] = None,
                        config: Optional[Dict] = None,
                        overlay: Optional[OverlayRoot] = None) -> None:
    """Aggiunge/rimuove l'utente dal gruppo admin"""
    config = config or get_config()
    flag = "-a" if admin else "-d"
    with privileged_root(pubkey, overlay or OverlayRoot(config)) as root_fs:
        run_chroot(root_fs.root, ["gpasswd", flag, user, config["admin_group"]])
    logger.info("Utente '%s' %s gruppo %s", user,
                "aggiunto al" if admin else "rimosso dal", config["admin_group"])


def set_admin(user: str, admin: bool, pubkey: Optional[str] = None,
              config: Optional[Dict] = None,
              overlay: Optional[OverlayRoot] = None) -> PolicyOutcome:
    """
    Promuove o declassa un utente.

    La declassazione viene eseguita solo se gli admin attuali sono almeno
    MIN_ADMIN_COUNT, così ne resta sempre almeno uno.
    """
    config = config or get_config()
    overlay = overlay or OverlayRoot(config)

    with privileged_root(pubkey, overlay):
        if not admin:
            admins = get_admins(pubkey, config, overlay)
            if len(admins) < MIN_ADMIN_COUNT:
                logger.warning("Declassazione di '%s' rifiutata: %d admin", user, len(admins))
                return PolicyOutcome.REFUSED
        change_admin_status(user, admin, pubkey, config, overlay)

    return PolicyOutcome.APPLIED


def promote(user: str, **kwargs) -> PolicyOutcome:
    return set_admin(user, True, **kwargs)


def demote(user: str, **kwargs) -> PolicyOutcome:
    return set_admin(user, False, **kwargs)


def set_default_user(user: Optional[str], boot_config: BootConfigHandle) -> None:
    """Imposta (o con None rimuove) l'utente di login di default"""
    with boot_config.transaction() as config:
        config.system.default_user = user
    if user:
        logger.info("Utente di default: '%s'", user)
    else:
        logger.info("Utente di default rimosso")
