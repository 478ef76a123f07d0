"""
Sessione core-settings: configurazione di boot + coda operazioni
"""
import logging
from concurrent.futures import Future
from typing import Callable, Dict, List, Optional

from . import admin, passwords, storage, users
from .boot_config import BootConfigHandle
from .config import get_config, pubkey_from_config
from .overlay import OverlayRoot
from .tasks import TaskQueue, TaskResult

logger = logging.getLogger(__name__)

Callback = Optional[Callable[[TaskResult], None]]


class SettingsManager:
    """
    Punto d'ingresso per un front-end (CLI o UI).

    La configurazione di boot viene letta una volta all'apertura e scritta
    alla chiusura solo se è cambiata. Le operazioni che modificano il
    sistema vengono accodate e ritornano subito un Future.
    """

    def __init__(self, config: Optional[Dict] = None, pubkey: Optional[str] = None,
                 overlay: Optional[OverlayRoot] = None):
        self.config = config or get_config()
        self.pubkey = pubkey or pubkey_from_config(self.config)
        self.overlay = overlay or OverlayRoot(self.config)
        self.boot_config: Optional[BootConfigHandle] = None
        self.queue: Optional[TaskQueue] = None

    def __enter__(self) -> "SettingsManager":
        self.boot_config = BootConfigHandle.load(self.config["boot_config_path"])
        self.queue = TaskQueue()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.queue.shutdown(wait=True)
        if self.boot_config.save_if_changed():
            logger.info("Configurazione di boot aggiornata")

    def _privileged(self) -> Dict:
        return {"pubkey": self.pubkey, "config": self.config, "overlay": self.overlay}

    def create_user(self, username: str, password: str, admin_user: bool = False,
                    make_default: bool = False, on_done: Callback = None) -> Future:
        return self.queue.submit(
            f"create_user:{username}", users.create_user, username, password,
            admin_user, make_default, self.boot_config,
            on_done=on_done, **self._privileged(),
        )

    def delete_user(self, username: str, on_done: Callback = None) -> Future:
        return self.queue.submit(
            f"delete_user:{username}", users.delete_user, username, self.boot_config,
            on_done=on_done, **self._privileged(),
        )

    def change_password(self, username: str, old_password: str, new_password: str,
                        on_done: Callback = None) -> Future:
        return self.queue.submit(
            f"change_password:{username}", passwords.change_password,
            username, old_password, new_password,
            on_done=on_done, **self._privileged(),
        )

    def admin_login_verify(self, username: str, password: str, on_done: Callback = None) -> Future:
        return self.queue.submit(
            f"admin_login_verify:{username}", admin.admin_login_verify, username, password,
            on_done=on_done, **self._privileged(),
        )

    def change_encryption_password(self, username: str, old_password: str, new_password: str,
                                   on_done: Callback = None) -> Future:
        return self.queue.submit(
            f"change_encryption_password:{username}", storage.change_encryption_password,
            username, old_password, new_password, self.config, on_done=on_done,
        )

    def disable_encryption(self, username: str, password: str, on_done: Callback = None) -> Future:
        return self.queue.submit(
            f"disable_encryption:{username}", storage.disable_encryption,
            username, password, self.config, on_done=on_done,
        )

    def set_admin(self, username: str, admin_user: bool, on_done: Callback = None) -> Future:
        return self.queue.submit(
            f"set_admin:{username}", admin.set_admin, username, admin_user,
            on_done=on_done, **self._privileged(),
        )

    def set_default_user(self, username: Optional[str]) -> None:
        admin.set_default_user(username, self.boot_config)

    def list_users(self) -> List[str]:
        return users.get_users(self.config)

    def list_admins(self) -> List[str]:
        return admin.get_admins(**self._privileged())

    def get_user_details(self, username: str) -> users.SystemUser:
        return users.get_user_details(username, **self._privileged())
