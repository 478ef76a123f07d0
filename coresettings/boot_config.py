"""
Configurazione di boot persistente (utente di default, flag primo avvio)
"""
import os
import copy
import json
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, asdict
from typing import Iterator, Optional, Tuple

from .config import get_config
from .errors import StorageError
from .utils import atomic_write, ensure_dir

logger = logging.getLogger(__name__)


@dataclass
class SystemSection:
    default_user: Optional[str] = None


@dataclass
class FlagsSection:
    first_boot_done: bool = False


@dataclass
class BootConfig:
    system: SystemSection = field(default_factory=SystemSection)
    flags: FlagsSection = field(default_factory=FlagsSection)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "BootConfig":
        system = data.get("system") or {}
        flags = data.get("flags") or {}
        return cls(
            system=SystemSection(default_user=system.get("default_user")),
            flags=FlagsSection(first_boot_done=bool(flags.get("first_boot_done", False))),
        )

    @staticmethod
    def _path(path: Optional[str]) -> str:
        return path or get_config()["boot_config_path"]

    @classmethod
    def read(cls, path: Optional[str] = None) -> Tuple["BootConfig", bool]:
        """
        Legge la configurazione di boot.

        Returns:
            (config, created): created è True se il file non esisteva
            e sono stati usati i valori di default
        """
        path = cls._path(path)
        if not os.path.exists(path):
            logger.info("Configurazione di boot assente, uso i default: %s", path)
            return cls(), True

        try:
            with open(path, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"Impossibile leggere la configurazione di boot {path}", e) from e

        return cls.from_dict(data), False

    @classmethod
    def write(cls, config: "BootConfig", force: bool = False, path: Optional[str] = None) -> bool:
        """
        Scrive la configurazione (atomicamente).

        Senza force la scrittura viene saltata se il file contiene già
        lo stesso contenuto. Ritorna True se il file è stato scritto.
        """
        path = cls._path(path)
        content = json.dumps(config.to_dict(), indent=2) + "\n"

        if not force and os.path.exists(path):
            try:
                with open(path, "r") as f:
                    if f.read() == content:
                        return False
            except OSError:
                pass

        ensure_dir(os.path.dirname(path) or ".")
        atomic_write(path, content, 0o644)
        logger.info("Configurazione di boot salvata: %s", path)
        return True


class BootConfigHandle:
    """Istanza unica della configurazione di boot protetta da lock"""

    def __init__(self, config: BootConfig, path: Optional[str] = None):
        self._config = config
        self._original = copy.deepcopy(config)
        self._path = path
        self._lock = threading.Lock()

    @classmethod
    def load(cls, path: Optional[str] = None) -> "BootConfigHandle":
        config, _ = BootConfig.read(path)
        return cls(config, path)

    @contextmanager
    def transaction(self) -> Iterator[BootConfig]:
        """Un singolo read-modify-write con il lock tenuto per tutta la durata"""
        with self._lock:
            yield self._config

    def snapshot(self) -> BootConfig:
        with self._lock:
            return copy.deepcopy(self._config)

    @property
    def default_user(self) -> Optional[str]:
        return self.snapshot().system.default_user

    def changed(self) -> bool:
        with self._lock:
            return self._config != self._original

    def save_if_changed(self) -> bool:
        """Salva all'uscita solo se il valore in memoria è cambiato"""
        with self._lock:
            if self._config == self._original:
                return False
            BootConfig.write(self._config, False, self._path)
            self._original = copy.deepcopy(self._config)
            return True

