import logging
import os
import shlex
from dataclasses import dataclass, field
from typing import List, Optional

from .config_document import UNKNOWN, ConfigDocument, IncludeDirective
from .errors import GitSwitchError, ReadFailure
from .storage import read_file_text

logger = logging.getLogger(__name__)


@dataclass
class Profile:
    folder: str
    name: str
    email: str
    config_path: str
    include_block: str
    key_path: Optional[str] = None
    read_error: Optional[str] = None

    @property
    def public_key_path(self) -> Optional[str]:
        if not self.key_path:
            return None
        return self.key_path + ".pub"

    @property
    def expanded_config_path(self) -> str:
        return os.path.expanduser(self.config_path)


@dataclass
class ParseOutcome:
    profiles: List[Profile] = field(default_factory=list)
    issues: List[GitSwitchError] = field(default_factory=list)


def key_path_from_ssh_command(command: str) -> Optional[str]:
    """Pull the identity file out of an ``ssh -i <key> ...`` command line."""
    if not command or command == UNKNOWN:
        return None
    try:
        parts = shlex.split(command)
    except ValueError:
        parts = command.split()
    for idx, token in enumerate(parts):
        if token == "-i" and idx + 1 < len(parts):
            return os.path.expanduser(parts[idx + 1])
    return None


def read_satellite(path: str) -> ConfigDocument:
    """Load a satellite config; raises ReadFailure when it is missing or unreadable."""
    expanded = os.path.expanduser(path)
    text = read_file_text(expanded)
    if text is None:
        raise ReadFailure(expanded, "file does not exist")
    return ConfigDocument(text, path=expanded)


class ProfileParser:
    def parse(self, global_text: str, source: Optional[str] = None) -> ParseOutcome:
        document = ConfigDocument(global_text, path=source)
        outcome = ParseOutcome()
        directives = document.find_directives()
        for issue in document.issues:
            logger.warning("Skipping malformed directive in %s: %s", source or "global config", issue)
            outcome.issues.append(issue)
        for directive in directives:
            outcome.profiles.append(self._resolve(directive, outcome))
        return outcome

    def _resolve(self, directive: IncludeDirective, outcome: ParseOutcome) -> Profile:
        profile = Profile(
            folder=directive.folder,
            name=UNKNOWN,
            email=UNKNOWN,
            config_path=directive.path,
            include_block=directive.block,
        )
        try:
            satellite = read_satellite(directive.path)
        except ReadFailure as exc:
            # The folder binding is still real and must stay editable/deletable.
            logger.warning("Profile for %s has no readable satellite: %s", directive.folder, exc)
            profile.read_error = str(exc)
            outcome.issues.append(exc)
            return profile
        profile.name = satellite.read_field("name", section="user")
        profile.email = satellite.read_field("email", section="user")
        profile.key_path = key_path_from_ssh_command(satellite.read_field("sshCommand", section="core"))
        return profile
