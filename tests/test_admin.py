import pytest

from coresettings.admin import (
    LoginResult, PolicyOutcome, admin_login_verify, change_admin_status,
    demote, get_admins, is_admin, promote, set_default_user,
)
from coresettings.boot_config import BootConfig, BootConfigHandle
from coresettings.config import shadow_path
from coresettings.errors import BackupError, StorageError


def test_is_admin(system, config):
    system.add_user("alice", "pw", admin=True)
    system.add_user("bob", "pw")

    assert is_admin("alice", config=config) is True
    assert is_admin("bob", config=config) is False


def test_is_admin_fails_closed(system, config):
    system.failing.add("id")
    system.add_user("alice", "pw", admin=True)

    assert is_admin("alice", config=config) is False
    assert is_admin("nobody", config=config) is False


def test_login_verify_success_leaves_no_trace(system, config):
    system.add_user("alice", "secret", admin=True)
    before = shadow_path(config).read_bytes()

    assert admin_login_verify("alice", "secret", config=config) == LoginResult.SUCCESS
    assert shadow_path(config).read_bytes() == before
    assert system.passwords["alice"] == "secret"


def test_login_verify_failure_leaves_no_trace(system, config):
    system.add_user("alice", "secret", admin=True)
    before = shadow_path(config).read_bytes()

    assert admin_login_verify("alice", "wrong", config=config) == LoginResult.FAILURE
    assert shadow_path(config).read_bytes() == before


def test_login_verify_without_shadow_backup_is_fatal(system, config):
    system.add_user("alice", "secret", admin=True)
    shadow_path(config).unlink()

    with pytest.raises(BackupError):
        admin_login_verify("alice", "secret", config=config)

    assert system.commands("su") == []


def test_login_verify_restore_failure_is_fatal(system, config, monkeypatch):
    system.add_user("alice", "secret", admin=True)

    def failing_restore(path, content):
        raise StorageError(f"Impossibile scrivere {path}", OSError(28, "No space left on device"))

    monkeypatch.setattr("coresettings.passwords.restore_file", failing_restore)

    with pytest.raises(BackupError):
        admin_login_verify("alice", "wrong", config=config)


def test_login_verify_not_admin_skips_password_check(system, config):
    system.add_user("bob", "secret")

    assert admin_login_verify("bob", "secret", config=config) == LoginResult.NOT_ADMIN
    assert system.commands("su") == []
    assert system.commands("passwd") == []


def test_change_admin_status(system, config):
    system.add_user("alice", "pw")

    change_admin_status("alice", True, config=config)
    assert get_admins(config=config) == ["alice"]

    change_admin_status("alice", False, config=config)
    assert get_admins(config=config) == []


def test_promote_has_no_precondition(system, config):
    system.add_user("bob", "pw")

    assert promote("bob", config=config) == PolicyOutcome.APPLIED
    assert system.admins() == ["bob"]


def test_demote_with_two_admins(system, config):
    system.add_user("alice", "pw", admin=True)
    system.add_user("bob", "pw", admin=True)

    assert demote("bob", config=config) == PolicyOutcome.APPLIED
    assert system.admins() == ["alice"]


def test_demote_last_admin_is_refused(system, config):
    system.add_user("alice", "pw", admin=True)

    assert demote("alice", config=config) == PolicyOutcome.REFUSED
    assert system.admins() == ["alice"]
    assert system.commands("gpasswd") == []


def test_set_default_user():
    handle = BootConfigHandle(BootConfig())

    set_default_user("alice", handle)
    assert handle.default_user == "alice"

    set_default_user(None, handle)
    assert handle.default_user is None
