"""
Gestione overlay root (rootfs in sola lettura + layer scrivibile) per core-settings
"""
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional

from .config import get_config
from .errors import ConfigurationError, StorageError
from .utils import run, ensure_dir, is_mountpoint

logger = logging.getLogger(__name__)

BIND_MOUNTS = ("dev", "proc", "sys")


class OverlayRoot:
    """Monta/smonta l'overlay root usato per i comandi in chroot"""

    def __init__(self, config: Optional[Dict] = None):
        self.config = config or get_config()
        self.root = Path(self.config["overlay_root"])
        self.work_dir = Path(self.config["overlay_work_dir"])
        self.lower_dir = self.work_dir / "lower"
        self.upper_dir = self.work_dir / "upper"
        self.overlay_work = self.work_dir / "work"

    def is_mounted(self) -> bool:
        return is_mountpoint(self.root)

    def verify_image(self, pubkey: str) -> None:
        """Verifica la firma dell'immagine rootfs con la chiave pubblica"""
        image = self.config["rootfs_image"]
        signature = self.config["rootfs_signature"]
        run([
            "openssl", "dgst", "-sha256",
            "-verify", pubkey,
            "-signature", signature,
            image,
        ])
        logger.info("Firma rootfs verificata: %s", image)

    def setup(self, pubkey: str, verify: bool = True) -> None:
        """Monta rootfs + overlay scrivibile + bind mount di sistema"""
        if verify:
            self.verify_image(pubkey)

        for directory in (self.lower_dir, self.upper_dir, self.overlay_work, self.root):
            ensure_dir(directory)

        run(["mount", "-o", "loop,ro", "-t", "squashfs",
             self.config["rootfs_image"], str(self.lower_dir)])
        run([
            "mount", "-t", "overlay", "overlay",
            "-o", f"lowerdir={self.lower_dir},upperdir={self.upper_dir},workdir={self.overlay_work}",
            str(self.root),
        ])
        for name in BIND_MOUNTS:
            run(["mount", "--bind", f"/{name}", str(self.root / name)])

        logger.info("Overlay root montato in %s", self.root)

    def tear_down(self) -> None:
        """Smonta in ordine inverso rispetto a setup(), solo ciò che è montato"""
        for name in reversed(BIND_MOUNTS):
            target = self.root / name
            if is_mountpoint(target):
                run(["umount", "-l", str(target)])
        if is_mountpoint(self.root):
            run(["umount", str(self.root)])
        if is_mountpoint(self.lower_dir):
            run(["umount", str(self.lower_dir)])
        logger.info("Overlay root smontato: %s", self.root)


def _tear_down_after_error(overlay: OverlayRoot) -> None:
    """Smontaggio durante la gestione di un altro errore: l'errore originale prevale"""
    try:
        overlay.tear_down()
    except Exception as e:
        logger.error("Smontaggio overlay root fallito: %s", e)


@contextmanager
def privileged_root(pubkey: Optional[str] = None,
                    overlay: Optional[OverlayRoot] = None) -> Iterator[OverlayRoot]:
    """
    Garantisce che l'overlay root sia montato per la durata del blocco.

    Se era già montato non viene toccato all'uscita; se lo monta questo
    blocco, viene smontato anche quando il corpo fallisce. Un setup
    interrotto a metà viene smontato prima di segnalare l'errore.
    """
    overlay = overlay or OverlayRoot()

    if overlay.is_mounted():
        yield overlay
        return

    if not pubkey:
        raise ConfigurationError("Chiave pubblica di firma richiesta per montare l'overlay root")

    try:
        overlay.setup(pubkey, verify=True)
    except Exception as e:
        _tear_down_after_error(overlay)
        raise StorageError("Impossibile montare l'overlay root", e) from e

    try:
        yield overlay
    except BaseException:
        _tear_down_after_error(overlay)
        raise
    overlay.tear_down()
