import json
import subprocess

import pytest

from coresettings import utils
from coresettings.config import get_config
from coresettings.overlay import OverlayRoot


class FakeSystem:
    """
    Simula i comandi usati da coresettings: account tools in chroot,
    gocryptfs, fusermount, chown. Lo stato vive in memoria; passwd e
    shadow dell'overlay root vengono riscritti su disco ad ogni modifica.
    """

    def __init__(self, config):
        self.config = config
        self.gocryptfs = config["gocryptfs_binary"]
        self.root = config["overlay_root"]
        self.passwords = {}
        self.uids = {}
        self.groups = {config["admin_group"]: []}
        self.storage = {}
        self.mounted = set()
        self.calls = []
        self.failing = set()
        self.change_counter = 0
        self._write_account_files()

    # helpers per i test
    def add_user(self, name, password, admin=False):
        self.uids[name] = 1000 + len(self.uids)
        self.passwords[name] = password
        if admin:
            self.groups[self.config["admin_group"]].append(name)
        self._write_account_files()

    def admins(self):
        return list(self.groups[self.config["admin_group"]])

    def commands(self, name):
        """Chiamate il cui programma (anche dentro chroot) è name"""
        found = []
        for cmd, stdin in self.calls:
            program = cmd[2] if cmd[0] == "chroot" else cmd[0]
            if program == name:
                found.append((cmd, stdin))
        return found

    def _write_account_files(self):
        self.change_counter += 1
        with open(f"{self.root}/etc/passwd", "w") as f:
            f.write("root:x:0:0:root:/root:/bin/sh\n")
            for name, uid in self.uids.items():
                f.write(f"{name}:x:{uid}:{uid}::/home/{name}:/bin/sh\n")
        with open(f"{self.root}/etc/shadow", "w") as f:
            f.write("root:*:19000:0:99999:7:::\n")
            for name in self.uids:
                f.write(f"{name}:$fake${self.passwords.get(name)}:{self.change_counter}:0:99999:7:::\n")

    # subprocess.run
    def __call__(self, cmd, capture_output=True, text=True, input=None, **kwargs):
        cmd = [str(part) for part in cmd]
        self.calls.append((cmd, input))
        program = cmd[2] if cmd[0] == "chroot" else cmd[0]
        if program in self.failing:
            return subprocess.CompletedProcess(cmd, 1, "", f"{program}: failure")

        if cmd[0] == "chroot":
            rc, out, err = self._chroot(cmd[2:], input or "")
        elif cmd[0] == self.gocryptfs:
            rc, out, err = self._gocryptfs(cmd[1:], input or "")
        elif cmd[0] == "fusermount":
            if cmd[-1] not in self.mounted:
                rc, out, err = 1, "", "not mounted"
            else:
                self.mounted.discard(cmd[-1])
                rc, out, err = 0, "", ""
        elif cmd[0] == "chown":
            rc, out, err = 0, "", ""
        else:
            rc, out, err = 127, "", f"{cmd[0]}: command not found"
        return subprocess.CompletedProcess(cmd, rc, out, err)

    def _chroot(self, args, stdin):
        lines = stdin.split("\n")
        tool = args[0]

        if tool == "useradd":
            name = args[-1]
            if name in self.uids:
                return 9, "", f"useradd: user '{name}' already exists"
            self.add_user(name, None)
            if "-G" in args:
                self.groups[args[args.index("-G") + 1]].append(name)
            return 0, "", ""

        if tool == "passwd":
            name = args[1]
            if name not in self.uids or lines[0] != lines[1]:
                return 10, "", "passwd: password unchanged"
            self.passwords[name] = lines[0]
            self._write_account_files()
            return 0, "", ""

        if tool == "su":
            name = args[1]
            if name not in self.uids:
                return 1, "", f"su: user {name} does not exist"
            if self.passwords.get(name) != lines[0] or lines[1] != lines[2]:
                return 10, "", "passwd: Authentication token manipulation error"
            self.passwords[name] = lines[1]
            self._write_account_files()
            return 0, "", ""

        if tool == "userdel":
            name = args[-1]
            if name not in self.uids:
                return 6, "", f"userdel: user '{name}' does not exist"
            del self.uids[name]
            self.passwords.pop(name, None)
            for members in self.groups.values():
                if name in members:
                    members.remove(name)
            self._write_account_files()
            return 0, "", ""

        if tool == "gpasswd":
            flag, name, group = args[1], args[2], args[3]
            members = self.groups[group]
            if flag == "-a" and name not in members:
                members.append(name)
            elif flag == "-d":
                if name not in members:
                    return 3, "", f"gpasswd: user '{name}' is not a member of '{group}'"
                members.remove(name)
            return 0, "", ""

        if tool == "id":
            name = args[-1]
            if name not in self.uids:
                return 1, "", f"id: '{name}': no such user"
            groups = [name] + [g for g, members in self.groups.items() if name in members]
            return 0, " ".join(groups) + "\n", ""

        if tool == "getent":
            group = args[2]
            if group not in self.groups:
                return 2, "", ""
            return 0, f"{group}:x:10:{','.join(self.groups[group])}\n", ""

        return 127, "", f"{tool}: command not found"

    def _gocryptfs(self, args, stdin):
        lines = stdin.split("\n")

        if args[0] == "-init":
            path = args[-1]
            if lines[0] != lines[1]:
                return 1, "", "Passwords do not match"
            if path in self.storage:
                return 6, "", "gocryptfs.conf already exists"
            self.storage[path] = lines[0]
            with open(f"{path}/gocryptfs.conf", "w") as f:
                json.dump({
                    "Creator": "gocryptfs v2.4.0",
                    "EncryptedKey": f"key-{len(self.storage)}",
                    "ScryptObject": {"Salt": f"salt-{len(self.storage)}", "N": 65536},
                    "Version": 2,
                }, f)
            return 0, "", ""

        if args[0] == "-passwd":
            path = args[-1]
            if self.storage.get(path) != lines[0]:
                return 12, "", "Password incorrect."
            self.storage[path] = lines[1]
            return 0, "", ""

        cipher_dir, mount_point = args[-2], args[-1]
        if self.storage.get(cipher_dir) != lines[0]:
            return 12, "", "Password incorrect."
        self.mounted.add(mount_point)
        return 0, "", ""


@pytest.fixture
def config(tmp_path, monkeypatch):
    data = tmp_path / "data"
    rootfs = data / "rootfs"
    (rootfs / "etc" / "skel").mkdir(parents=True)
    (rootfs / "etc" / "skel" / ".profile").write_text("export PATH=$HOME/bin:$PATH\n")
    (data / "home").mkdir()

    monkeypatch.setenv("CS_MAIN_PART_MOUNTPOINT", str(data))
    monkeypatch.setenv("CS_SYSTEM_HOME_DIR", "home")
    monkeypatch.setenv("CS_OVERLAY_ROOT", str(rootfs))
    monkeypatch.setenv("CS_OVERLAY_WORK_DIR", str(data / ".overlay"))
    monkeypatch.setenv("CS_GOCRYPTFS_BINARY", "/usr/bin/gocryptfs")
    monkeypatch.setenv("CS_ADMIN_GROUP", "wheel")
    monkeypatch.setenv("CS_BOOT_CONFIG_PATH", str(data / "boot" / "config.json"))
    monkeypatch.delenv("CS_PUBKEY_PATH", raising=False)
    return get_config()


@pytest.fixture
def system(config, monkeypatch):
    """Sistema finto con overlay root già montato"""
    fake = FakeSystem(config)
    monkeypatch.setattr(utils.subprocess, "run", fake)
    monkeypatch.setattr(OverlayRoot, "is_mounted", lambda self: True)
    return fake
