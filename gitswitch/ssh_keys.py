import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from .errors import ExternalToolFailure
from .settings import Settings
from .shell import ShellExecutor
from .storage import ensure_ssh_dir

logger = logging.getLogger(__name__)


@dataclass
class KeyResult:
    key_path: str
    generated: bool
    registered: bool

    @property
    def public_key_path(self) -> str:
        return self.key_path + ".pub"


class SSHKeyManager:
    def __init__(self, settings: Settings, shell: Optional[ShellExecutor] = None) -> None:
        self.settings = settings
        self.shell = shell or ShellExecutor(timeout=settings.command_timeout)

    def ensure_key(self, name: str, email: str) -> KeyResult:
        """Make sure the profile's Ed25519 key exists and is loaded in the agent.

        An existing key is never regenerated, so re-creating a profile with
        the same name reuses its key material.
        """
        key_path = self.settings.key_path(name)
        ensure_ssh_dir(self.settings.ssh_dir)
        generated = False
        if not os.path.exists(key_path):
            cmd = ["ssh-keygen", "-t", "ed25519", "-C", email, "-f", key_path, "-N", ""]
            result = self.shell.run(cmd)
            if not os.path.exists(key_path):
                raise ExternalToolFailure(cmd, result.output, result.returncode)
            try:
                os.chmod(key_path, 0o600)
            except PermissionError:
                pass
            generated = True
            logger.info("Generated SSH key %s", key_path)
        registered = self.register(key_path)
        return KeyResult(key_path=key_path, generated=generated, registered=registered)

    def register(self, key_path: str) -> bool:
        result = self.shell.run(self._agent_command(key_path))
        if not result.ok:
            logger.warning("ssh-add could not register %s: %s", key_path, result.output or "no output")
            return False
        return True

    def _agent_command(self, key_path: str) -> List[str]:
        if self.settings.use_keychain:
            return ["ssh-add", "--apple-use-keychain", key_path]
        return ["ssh-add", key_path]
