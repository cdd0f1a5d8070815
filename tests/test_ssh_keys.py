"""Tests for SSH key generation and agent registration."""

import os
import stat

import pytest

from conftest import FakeShell
from gitswitch.errors import ExternalToolFailure, WriteFailure
from gitswitch.ssh_keys import SSHKeyManager


def test_generates_ed25519_key_with_email_comment(settings, shell):
    result = SSHKeyManager(settings, shell).ensure_key("My Work", "me@work.com")

    expected = os.path.join(settings.ssh_dir, "id_ed25519_my_work")
    assert result.key_path == expected
    assert result.generated is True
    assert result.registered is True
    assert shell.commands("ssh-keygen") == [
        ["ssh-keygen", "-t", "ed25519", "-C", "me@work.com", "-f", expected, "-N", ""]
    ]
    assert shell.commands("ssh-add") == [["ssh-add", expected]]
    assert stat.S_IMODE(os.stat(expected).st_mode) == 0o600
    assert stat.S_IMODE(os.stat(settings.ssh_dir).st_mode) == 0o700


def test_existing_key_is_reused_but_still_registered(settings, shell):
    manager = SSHKeyManager(settings, shell)
    first = manager.ensure_key("Work", "a@x.com")
    with open(first.public_key_path, encoding="utf-8") as fh:
        before = fh.read()

    second = manager.ensure_key("work", "b@x.com")

    assert second.key_path == first.key_path
    assert second.generated is False
    assert len(shell.commands("ssh-keygen")) == 1
    assert len(shell.commands("ssh-add")) == 2
    with open(second.public_key_path, encoding="utf-8") as fh:
        assert fh.read() == before


def test_keychain_flag_used_when_enabled(settings, shell):
    settings.use_keychain = True
    key = SSHKeyManager(settings, shell).ensure_key("Work", "a@x.com").key_path
    assert shell.commands("ssh-add") == [["ssh-add", "--apple-use-keychain", key]]


def test_failed_generation_raises(settings):
    shell = FakeShell(keygen_works=False)
    with pytest.raises(ExternalToolFailure) as excinfo:
        SSHKeyManager(settings, shell).ensure_key("Work", "a@x.com")
    assert excinfo.value.returncode == 1
    assert "ssh-keygen: failed" in str(excinfo.value)
    assert shell.commands("ssh-add") == []


def test_agent_failure_is_reported_not_raised(settings):
    shell = FakeShell(agent_works=False)
    result = SSHKeyManager(settings, shell).ensure_key("Work", "a@x.com")
    assert result.generated is True
    assert result.registered is False


def test_shell_metacharacters_stay_inside_one_argument(settings, shell):
    email = 'x@y.com"; rm -rf ~; echo "'
    SSHKeyManager(settings, shell).ensure_key("Work", email)
    (cmd,) = shell.commands("ssh-keygen")
    assert cmd[cmd.index("-C") + 1] == email


def test_blocked_ssh_directory_raises_write_failure(settings, shell):
    with open(settings.ssh_dir, "w", encoding="utf-8") as fh:
        fh.write("")
    with pytest.raises(WriteFailure):
        SSHKeyManager(settings, shell).ensure_key("Work", "a@x.com")
    assert shell.commands("ssh-keygen") == []
