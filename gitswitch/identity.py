from typing import Callable

from .manager import GlobalIdentity, Snapshot


class IdentityFacade:
    """Read-only view of the global identity for the presentation layer."""

    def __init__(self, snapshot_source: Callable[[], Snapshot]) -> None:
        self._snapshot_source = snapshot_source

    @property
    def identity(self) -> GlobalIdentity:
        return self._snapshot_source().identity

    @property
    def name(self) -> str:
        return self.identity.name

    @property
    def email(self) -> str:
        return self.identity.email

    @property
    def display_name(self) -> str:
        return self.name or "Not Set"

    @property
    def display_email(self) -> str:
        return self.email or "-"

    @property
    def initials(self) -> str:
        name = self.name or "?"
        parts = name.split()
        if len(parts) >= 2:
            return (parts[0][:1] + parts[1][:1]).upper()
        return name[:2].upper()
