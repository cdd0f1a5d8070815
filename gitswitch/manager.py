import logging
import os
import shlex
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .clipboard import CommandClipboard
from .config_document import edit_document, escape_value, quote_value
from .errors import (
    ExternalToolFailure,
    GitSwitchError,
    OperationResult,
    ProfileNotFound,
    ReadFailure,
    ValidationError,
)
from .parser import Profile, ProfileParser, key_path_from_ssh_command, read_satellite
from .settings import Settings, sanitize_name
from .shell import ShellExecutor
from .ssh_keys import SSHKeyManager
from .storage import read_file_text, remove_file, write_file_text

logger = logging.getLogger(__name__)


@dataclass
class GlobalIdentity:
    name: str = ""
    email: str = ""


@dataclass
class Snapshot:
    identity: GlobalIdentity = field(default_factory=GlobalIdentity)
    profiles: List[Profile] = field(default_factory=list)
    issues: List[GitSwitchError] = field(default_factory=list)
    error: Optional[GitSwitchError] = None


def render_satellite(name: str, email: str, key_path: Optional[str]) -> str:
    text = (
        "[user]\n"
        f"    name = {quote_value(name)}\n"
        f"    email = {quote_value(email)}\n"
    )
    if key_path:
        text += (
            "[core]\n"
            f"    sshCommand = {quote_value('ssh -i ' + shlex.quote(key_path), always=True)}\n"
        )
    return text


def _check_single_line(field_name: str, value: str) -> str:
    value = value.strip()
    if not value:
        raise ValidationError(field_name, "is required")
    if "\n" in value or "\r" in value or "\0" in value:
        raise ValidationError(field_name, "must be a single line")
    return value


def validate_identity(name: str, email: str) -> Tuple[str, str]:
    name = _check_single_line("name", name)
    email = _check_single_line("email", email)
    return name, email


def validate_profile(name: str, email: str, folder: str) -> Tuple[str, str, str]:
    name, email = validate_identity(name, email)
    if "/" in name or "\\" in name or not sanitize_name(name).strip("."):
        raise ValidationError("name", "cannot contain path separators")
    folder = _check_single_line("folder", folder)
    if '"' in folder:
        raise ValidationError("folder", "cannot contain double quotes")
    if len(folder) > 1:
        folder = folder.rstrip("/")
    return name, email, folder


class ProfileRepository:
    """Profiles and global identity, always re-derived from the files on disk."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        shell: Optional[ShellExecutor] = None,
        key_manager: Optional[SSHKeyManager] = None,
        clipboard: Optional[CommandClipboard] = None,
        parser: Optional[ProfileParser] = None,
    ) -> None:
        self.settings = settings or Settings.from_env()
        self.shell = shell or ShellExecutor(timeout=self.settings.command_timeout, env=self.settings.git_env())
        self.keys = key_manager or SSHKeyManager(self.settings, self.shell)
        self.clipboard = clipboard or CommandClipboard()
        self.parser = parser or ProfileParser()
        self._snapshot = Snapshot()

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    def list_profiles(self) -> List[Profile]:
        return list(self._snapshot.profiles)

    def get_profile(self, folder: str) -> Optional[Profile]:
        for p in self._snapshot.profiles:
            if p.folder == folder:
                return p
        return None

    # ── Reading ───────────────────────────────────────────────────────

    def read_global_identity(self) -> GlobalIdentity:
        return GlobalIdentity(name=self._read_git_field("user.name"), email=self._read_git_field("user.email"))

    def _read_git_field(self, key: str) -> str:
        result = self.shell.run(["git", "config", "--global", key])
        if result.returncode is None:
            logger.warning("git is not available; %s left empty", key)
            return ""
        # git exits 1 for an unset key
        return result.output if result.ok else ""

    def refresh_all(self) -> Snapshot:
        """Re-read identity and profiles. The two reads are independent."""
        identity = self.read_global_identity()
        snapshot = Snapshot(identity=identity)
        path = self.settings.global_config_path
        try:
            text = read_file_text(path)
        except ReadFailure as exc:
            logger.error("%s", exc)
            snapshot.error = exc
            text = None
        if text is not None:
            outcome = self.parser.parse(text, source=path)
            snapshot.profiles = outcome.profiles
            snapshot.issues = outcome.issues
        self._snapshot = snapshot
        return snapshot

    def read_public_key(self, profile: Profile) -> str:
        satellite = read_satellite(profile.config_path)
        key_path = key_path_from_ssh_command(satellite.read_field("sshCommand", section="core"))
        if not key_path:
            raise ReadFailure(satellite.path or profile.config_path, "no ssh -i key configured")
        pub_path = key_path + ".pub"
        text = read_file_text(pub_path)
        if text is None:
            raise ReadFailure(pub_path, "public key not found")
        return text.strip()

    # ── Mutations ─────────────────────────────────────────────────────

    def create_profile(self, name: str, email: str, folder: str) -> OperationResult:
        warnings: List[str] = []
        try:
            name, email, folder = validate_profile(name, email, folder)
            config_path = self.settings.satellite_path(name)
            warnings.extend(self._satellite_collisions(config_path, folder))
            key = self.keys.ensure_key(name, email)
            if not key.registered:
                warnings.append(f"Key {key.key_path} was not added to the SSH agent")
            write_file_text(config_path, render_satellite(name, email, key.key_path), mode=0o644)
            with edit_document(self.settings.global_config_path) as doc:
                # Coarse check: any mention of the satellite path counts as present.
                if config_path in doc.text or escape_value(config_path) in doc.text:
                    logger.info("Global config already references %s; not appending", config_path)
                    if not any(os.path.expanduser(d.path) == config_path for d in doc.find_directives()):
                        warnings.append(
                            f"{config_path} is mentioned in the global config but no directive uses it; nothing appended"
                        )
                else:
                    doc.append_directive(folder, config_path)
        except GitSwitchError as exc:
            logger.error("Failed to create profile %r: %s", name, exc)
            result = OperationResult.failure(exc, warnings)
        else:
            logger.info("Created profile %r for %s", name, folder)
            result = OperationResult.success(f"Profile '{name}' created for {folder}", warnings)
        self.refresh_all()
        return result

    def _satellite_collisions(self, config_path: str, folder: str) -> List[str]:
        try:
            text = read_file_text(self.settings.global_config_path) or ""
        except ReadFailure:
            return []
        warnings = []
        for profile in self.parser.parse(text).profiles:
            if profile.expanded_config_path == config_path and profile.folder != folder:
                warnings.append(
                    f"{config_path} is shared with the profile for {profile.folder}; its identity is overwritten"
                )
        return warnings

    def update_profile(self, profile: Profile, new_name: str, new_email: str) -> OperationResult:
        try:
            new_name, new_email = validate_identity(new_name, new_email)
            satellite = read_satellite(profile.config_path)
            key_path = key_path_from_ssh_command(satellite.read_field("sshCommand", section="core"))
            write_file_text(satellite.path or profile.expanded_config_path, render_satellite(new_name, new_email, key_path))
        except GitSwitchError as exc:
            logger.error("Failed to update profile for %s: %s", profile.folder, exc)
            result = OperationResult.failure(exc)
        else:
            logger.info("Updated profile for %s", profile.folder)
            result = OperationResult.success(f"Profile '{new_name}' updated")
        self.refresh_all()
        return result

    def delete_profile(self, profile: Profile) -> OperationResult:
        warnings: List[str] = []
        try:
            with edit_document(self.settings.global_config_path) as doc:
                removed = doc.remove_directive(profile.folder, profile.config_path)
                if removed is None and not doc.remove_literal(profile.include_block):
                    raise ProfileNotFound(profile.folder)
                still_used = any(d.path == profile.config_path for d in doc.find_directives())
            if still_used:
                warnings.append(f"{profile.config_path} is still used by another folder; kept")
            elif not remove_file(profile.expanded_config_path):
                warnings.append(f"{profile.config_path} was already gone")
        except GitSwitchError as exc:
            logger.error("Failed to delete profile for %s: %s", profile.folder, exc)
            result = OperationResult.failure(exc, warnings)
        else:
            logger.info("Deleted profile for %s", profile.folder)
            result = OperationResult.success(f"Profile '{profile.name}' deleted", warnings)
        self.refresh_all()
        return result

    def copy_key_material(self, profile: Profile) -> OperationResult:
        try:
            public_key = self.read_public_key(profile)
            if not self.clipboard.copy(public_key):
                raise ExternalToolFailure(["clipboard"], "no clipboard tool accepted the key")
        except GitSwitchError as exc:
            logger.error("Could not copy key for %s: %s", profile.folder, exc)
            return OperationResult.failure(exc)
        return OperationResult.success(f"Public key for '{profile.name}' copied to clipboard")

    def set_global_identity(self, name: str, email: str) -> OperationResult:
        try:
            name, email = validate_identity(name, email)
            self.shell.run_checked(["git", "config", "--global", "user.name", name])
            self.shell.run_checked(["git", "config", "--global", "user.email", email])
        except GitSwitchError as exc:
            logger.error("Failed to set global identity: %s", exc)
            result = OperationResult.failure(exc)
        else:
            logger.info("Global identity set to %s <%s>", name, email)
            result = OperationResult.success("Global identity saved")
        self.refresh_all()
        return result
