from dataclasses import dataclass, field
from typing import List, Optional, Sequence


class GitSwitchError(Exception):
    """Base class for every failure the profile engine reports."""


class ReadFailure(GitSwitchError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot read {path}: {reason}")
        self.path = path
        self.reason = reason


class ParseFailure(GitSwitchError):
    def __init__(self, line: int, reason: str) -> None:
        super().__init__(f"Line {line}: {reason}")
        self.line = line
        self.reason = reason


class WriteFailure(GitSwitchError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot write {path}: {reason}")
        self.path = path
        self.reason = reason


class ExternalToolFailure(GitSwitchError):
    def __init__(self, args: Sequence[str], output: str = "", returncode: Optional[int] = None) -> None:
        program = args[0] if args else "<none>"
        if returncode is None:
            detail = "could not be launched"
        else:
            detail = f"exited with status {returncode}"
        message = f"{program} {detail}"
        if output:
            message += f": {output}"
        super().__init__(message)
        self.args_list = list(args)
        self.output = output
        self.returncode = returncode


class ConflictError(GitSwitchError):
    def __init__(self, path: str) -> None:
        super().__init__(f"{path} was modified by another writer; reload and try again")
        self.path = path


class ValidationError(GitSwitchError):
    def __init__(self, field_name: str, reason: str) -> None:
        super().__init__(f"{field_name}: {reason}")
        self.field_name = field_name
        self.reason = reason


class ProfileNotFound(GitSwitchError):
    def __init__(self, folder: str) -> None:
        super().__init__(f"No includeIf directive for {folder} in the global config")
        self.folder = folder


@dataclass
class OperationResult:
    """Outcome of a repository operation.

    Truthy when the operation succeeded, so callers can keep writing
    ``if repo.delete_profile(p):``. ``error`` carries the typed failure and
    ``warnings`` the non-fatal problems met along the way.
    """

    ok: bool
    message: str
    error: Optional[GitSwitchError] = None
    warnings: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, message: str, warnings: Optional[List[str]] = None) -> "OperationResult":
        return cls(True, message, None, list(warnings or []))

    @classmethod
    def failure(cls, error: GitSwitchError, warnings: Optional[List[str]] = None) -> "OperationResult":
        return cls(False, str(error), error, list(warnings or []))
