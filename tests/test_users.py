import pytest

from coresettings.boot_config import BootConfig, BootConfigHandle
from coresettings.config import encrypted_home_path, home_path, DISABLED_MODE_PASSWORD
from coresettings.errors import CoreSettingsError, StorageError, ValidationError
from coresettings.users import create_user, delete_user, get_user_details, get_users, validate_username


@pytest.fixture
def boot_config():
    return BootConfigHandle(BootConfig())


@pytest.mark.parametrize("username", ["alice.bob", "alice/bob", "../etc", ""])
def test_invalid_usernames_are_rejected(system, config, username):
    with pytest.raises(ValidationError):
        create_user(username, "Secret1", config=config)

    assert system.calls == []
    assert list(home_path(config, "x").parent.iterdir()) == []


def test_validate_username_accepts_plain_names():
    validate_username("alice")
    validate_username("bob_2")


def test_create_admin_default_user(system, config, boot_config):
    create_user("alice", "Secret1", admin=True, make_default=True,
                boot_config=boot_config, config=config)

    assert "alice" in system.uids
    assert system.admins() == ["alice"]
    assert system.passwords["alice"] == "Secret1"
    assert home_path(config, "alice").is_dir()
    assert encrypted_home_path(config, "alice").is_dir()
    assert system.storage[str(encrypted_home_path(config, "alice"))] == "Secret1"
    assert boot_config.default_user == "alice"


def test_create_runs_steps_in_order(system, config):
    create_user("alice", "Secret1", config=config)

    programs = [cmd[2] if cmd[0] == "chroot" else cmd[0] for cmd, _ in system.calls]
    gocryptfs = config["gocryptfs_binary"]
    assert programs == ["useradd", "passwd", gocryptfs, gocryptfs, "chown", "fusermount"]

    useradd_cmd = system.calls[0][0]
    assert useradd_cmd[2:] == ["useradd", "-M", "alice"]
    chown_cmd = system.commands("chown")[0][0]
    assert chown_cmd == ["chown", "-R", "1000:1000", str(home_path(config, "alice"))]


def test_create_admin_sets_group_at_creation(system, config):
    create_user("alice", "Secret1", admin=True, config=config)

    assert system.calls[0][0][2:] == ["useradd", "-M", "-G", "wheel", "alice"]
    assert system.commands("gpasswd") == []


def test_create_seeds_skeleton_and_unmounts(system, config):
    create_user("alice", "Secret1", config=config)

    assert (home_path(config, "alice") / ".profile").read_text().startswith("export PATH")
    assert system.mounted == set()


def test_create_without_default_leaves_boot_config(system, config, boot_config):
    create_user("alice", "Secret1", boot_config=boot_config, config=config)

    assert boot_config.default_user is None
    assert not boot_config.changed()


def test_create_rejects_reserved_password(system, config):
    with pytest.raises(ValidationError):
        create_user("alice", DISABLED_MODE_PASSWORD, config=config)
    assert system.calls == []


def test_create_existing_user_fails(system, config):
    system.add_user("alice", "pw")

    with pytest.raises(CoreSettingsError):
        create_user("alice", "Secret1", config=config)

    assert not home_path(config, "alice").exists()


def test_create_stops_at_failing_step(system, config):
    system.failing.add("chown")

    with pytest.raises(StorageError):
        create_user("alice", "Secret1", config=config)

    assert len(system.commands("fusermount")) == 1
    assert system.mounted == set()


def test_create_keeps_step_error_when_unmount_fails(system, config):
    system.failing.update({"chown", "fusermount"})

    with pytest.raises(StorageError) as excinfo:
        create_user("alice", "Secret1", config=config)

    assert "assegnare la home" in str(excinfo.value)


def test_delete_user(system, config, boot_config):
    create_user("alice", "Secret1", admin=True, make_default=True,
                boot_config=boot_config, config=config)

    delete_user("alice", boot_config, config=config)

    assert "alice" not in system.uids
    assert not home_path(config, "alice").exists()
    assert not encrypted_home_path(config, "alice").exists()
    assert system.calls[-1][0][2:] == ["userdel", "-r", "-f", "alice"]
    # il default non viene rimosso
    assert boot_config.default_user == "alice"


def test_delete_removes_directories_before_account(system, config):
    create_user("alice", "Secret1", config=config)
    seen = []

    original = system._chroot

    def recording(args, stdin):
        if args[0] == "userdel":
            seen.append(home_path(config, "alice").exists())
        return original(args, stdin)

    system._chroot = recording
    delete_user("alice", config=config)

    assert seen == [False]


def test_delete_last_admin_is_allowed(system, config):
    create_user("alice", "Secret1", admin=True, config=config)

    delete_user("alice", config=config)

    assert system.admins() == []


def test_delete_requires_username(system, config):
    with pytest.raises(ValidationError):
        delete_user("", config=config)


def test_get_users_and_details(system, config):
    create_user("alice", "Secret1", admin=True, config=config)
    create_user("bob", "Secret2", config=config)

    assert get_users(config) == ["alice", "bob"]

    alice = get_user_details("alice", config=config)
    assert alice.admin is True
    assert alice.encryption is True
    assert alice.encrypted_key == "key-1"
    assert alice.salt == "salt-1"

    bob = get_user_details("bob", config=config)
    assert bob.admin is False


def test_details_default_when_metadata_missing(system, config):
    system.add_user("ghost", "pw")

    details = get_user_details("ghost", config=config)

    assert details.encryption is False
    assert details.encrypted_key == ""
    assert details.salt == ""
