import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from .errors import ExternalToolFailure

logger = logging.getLogger(__name__)


@dataclass
class ShellResult:
    output: str
    returncode: Optional[int]

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ShellExecutor:
    """Runs external programs from argument vectors, never through a shell."""

    def __init__(self, timeout: Optional[float] = None, env: Optional[Dict[str, str]] = None) -> None:
        self.timeout = timeout
        self.env = dict(env or {})

    def run(self, args: Sequence[str], input_text: Optional[str] = None) -> ShellResult:
        env = None
        if self.env:
            env = dict(os.environ)
            env.update(self.env)
        try:
            proc = subprocess.run(
                list(args),
                input=input_text,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                env=env,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.error("%s timed out after %ss", args[0], self.timeout)
            return ShellResult("", None)
        except OSError as exc:
            logger.error("Could not launch %s: %s", args[0], exc)
            return ShellResult("", None)
        return ShellResult((proc.stdout or "").strip(), proc.returncode)

    def run_checked(self, args: Sequence[str], input_text: Optional[str] = None) -> str:
        result = self.run(args, input_text=input_text)
        if not result.ok:
            raise ExternalToolFailure(args, result.output, result.returncode)
        return result.output
