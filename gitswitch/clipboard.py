import logging
from typing import List, Optional, Sequence

from .shell import ShellExecutor

logger = logging.getLogger(__name__)

CLIPBOARD_COMMANDS: List[List[str]] = [
    ["wl-copy"],
    ["xclip", "-selection", "clipboard"],
    ["xsel", "--clipboard", "--input"],
    ["pbcopy"],
]


class CommandClipboard:
    """Copies text through the first clipboard tool that accepts it."""

    def __init__(self, shell: Optional[ShellExecutor] = None, commands: Optional[Sequence[Sequence[str]]] = None) -> None:
        self.shell = shell or ShellExecutor(timeout=10)
        self.commands = [list(cmd) for cmd in (commands or CLIPBOARD_COMMANDS)]

    def copy(self, text: str) -> bool:
        for cmd in self.commands:
            result = self.shell.run(cmd, input_text=text)
            if result.ok:
                return True
            logger.debug("Clipboard tool %s unavailable or failed", cmd[0])
        logger.warning("No clipboard tool accepted the text")
        return False
