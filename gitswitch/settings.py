import os
import sys
from dataclasses import dataclass, field
from typing import Dict, Optional


def expand_user(path: str) -> str:
    return os.path.expanduser(path)


def sanitize_name(value: str) -> str:
    """Token used in satellite and key file names: lower-cased, spaces to underscores."""
    return value.strip().lower().replace(" ", "_")


DEFAULT_TIMEOUT = 120.0


@dataclass
class Settings:
    home: str
    global_config_path: str = ""
    ssh_dir: str = ""
    app_config_dir: str = ""
    command_timeout: Optional[float] = DEFAULT_TIMEOUT
    use_keychain: bool = field(default_factory=lambda: sys.platform == "darwin")
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.home = expand_user(self.home)
        if not self.global_config_path:
            self.global_config_path = os.path.join(self.home, ".gitconfig")
        if not self.ssh_dir:
            self.ssh_dir = os.path.join(self.home, ".ssh")
        if not self.app_config_dir:
            self.app_config_dir = os.path.join(self.home, ".config", "git-switch")

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        home = env.get("GIT_SWITCH_HOME") or expand_user("~")
        xdg = env.get("XDG_CONFIG_HOME")
        app_config_dir = os.path.join(expand_user(xdg), "git-switch") if xdg else ""
        timeout: Optional[float] = DEFAULT_TIMEOUT
        raw_timeout = env.get("GIT_SWITCH_TIMEOUT")
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError:
                timeout = DEFAULT_TIMEOUT
            if timeout <= 0:
                timeout = None
        return cls(
            home=home,
            global_config_path=expand_user(env.get("GIT_CONFIG_GLOBAL", "")),
            app_config_dir=app_config_dir,
            command_timeout=timeout,
            log_level=env.get("GIT_SWITCH_LOG_LEVEL", "INFO").upper(),
        )

    def satellite_path(self, name: str) -> str:
        return os.path.join(self.home, f".gitconfig_{sanitize_name(name)}")

    def key_path(self, name: str) -> str:
        return os.path.join(self.ssh_dir, f"id_ed25519_{sanitize_name(name)}")

    @property
    def log_path(self) -> str:
        return os.path.join(self.app_config_dir, "git-switch.log")

    @property
    def preferences_path(self) -> str:
        return os.path.join(self.app_config_dir, "preferences.json")

    def git_env(self) -> Dict[str, str]:
        # git only needs to be told when we are not using its own default
        if os.path.abspath(self.global_config_path) == os.path.abspath(os.path.join(expand_user("~"), ".gitconfig")):
            return {}
        return {"GIT_CONFIG_GLOBAL": self.global_config_path}
