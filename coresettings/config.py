"""
Configurazione core-settings da variabili d'ambiente
"""
import os
from pathlib import Path
from typing import Dict, Optional

# Password "non segreta" usata quando la cifratura è disabilitata
DISABLED_MODE_PASSWORD = "ENCRYPTION_DISABLED"
DISABLED_MODE_FILE = "encryption_disabled"
GOCRYPTFS_CONFIG_FILE = "gocryptfs.conf"

TEMP_PASSWORD_LENGTH = 128
MIN_ADMIN_COUNT = 2

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def get_config() -> Dict:
    """Carica configurazione da environment"""
    log_level = os.environ.get("CS_LOG_LEVEL", "INFO").upper()
    if log_level not in LOG_LEVELS:
        log_level = "INFO"

    return {
        "main_part_mountpoint": os.environ.get("CS_MAIN_PART_MOUNTPOINT", "/data"),
        "system_home_dir": os.environ.get("CS_SYSTEM_HOME_DIR", "home"),
        "overlay_root": os.environ.get("CS_OVERLAY_ROOT", "/data/rootfs"),
        "rootfs_image": os.environ.get("CS_ROOTFS_IMAGE", "/data/boot/rootfs.squashfs"),
        "rootfs_signature": os.environ.get("CS_ROOTFS_SIGNATURE", "/data/boot/rootfs.squashfs.dgst"),
        "overlay_work_dir": os.environ.get("CS_OVERLAY_WORK_DIR", "/data/.overlay"),
        "pubkey_path": os.environ.get("CS_PUBKEY_PATH") or None,
        "gocryptfs_binary": os.environ.get("CS_GOCRYPTFS_BINARY", "/usr/bin/gocryptfs"),
        "admin_group": os.environ.get("CS_ADMIN_GROUP", "wheel"),
        "boot_config_path": os.environ.get("CS_BOOT_CONFIG_PATH", "/data/boot/config.json"),
        "log_level": log_level,
    }


def home_root(config: Dict) -> Path:
    return Path(config["main_part_mountpoint"]) / config["system_home_dir"]


def home_path(config: Dict, user: str) -> Path:
    """Home in chiaro dell'utente"""
    return home_root(config) / user


def encrypted_home_path(config: Dict, user: str) -> Path:
    """Directory cifrata nascosta, sorella della home"""
    return home_root(config) / f".{user}"


def disabled_marker_path(config: Dict, user: str) -> Path:
    return encrypted_home_path(config, user) / DISABLED_MODE_FILE


def shadow_path(config: Dict) -> Path:
    return Path(config["overlay_root"]) / "etc" / "shadow"


def skeleton_path(config: Dict) -> Path:
    return Path(config["overlay_root"]) / "etc" / "skel"


def pubkey_from_config(config: Dict) -> Optional[str]:
    """Chiave pubblica di firma del rootfs, se configurata ed esistente"""
    pubkey = config.get("pubkey_path")
    if pubkey and os.path.exists(pubkey):
        return pubkey
    return None
