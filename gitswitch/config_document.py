"""Line-oriented view over a git config file.

Only the one directive shape the profile engine writes is recognised::

    [includeIf "gitdir:<folder>/"]
        path = <satellite config>

Everything else in the file is carried through untouched, byte for byte.
"""

import contextlib
import hashlib
import logging
import re
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from .errors import ConflictError, ParseFailure
from .storage import file_lock, read_file_text, write_file_text

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"

_INCLUDE_HEADER_RE = re.compile(r'^[ \t]*\[includeIf[ \t]+"gitdir:(?P<folder>[^"]*)"\][ \t]*(?:[#;].*)?$')
_PATH_LINE_RE = re.compile(r"^[ \t]*path[ \t]*=[ \t]*(?P<path>.*?)[ \t]*$")
_SECTION_RE = re.compile(r"^[ \t]*\[(?P<name>[^\]\s\"]+)")


@dataclass(frozen=True)
class IncludeDirective:
    folder: str
    path: str
    block: str
    start: int
    end: int


_ESCAPES = {"\\": "\\", '"': '"', "n": "\n", "t": "\t", "b": "\b"}


def escape_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\t", "\\t").replace("\n", "\\n")


def quote_value(value: str, always: bool = False) -> str:
    """Render ``value`` so git reads it back unchanged.

    Values holding a comment character or edge whitespace are wrapped in
    double quotes; backslashes and quotes are always escaped.
    """
    escaped = escape_value(value)
    if always or "#" in value or ";" in value or value != value.strip():
        return f'"{escaped}"'
    return escaped


def parse_value(raw: str) -> str:
    """Decode a config value the way git does: quotes, escapes, trailing comments."""
    out: List[str] = []
    pending_space = ""
    in_quote = False
    idx = 0
    while idx < len(raw):
        c = raw[idx]
        idx += 1
        if not in_quote and c in " \t":
            if "".join(out):
                pending_space += " "
            continue
        if not in_quote and c in "#;":
            break
        out.append(pending_space)
        pending_space = ""
        if c == "\\" and idx < len(raw):
            nxt = raw[idx]
            idx += 1
            out.append(_ESCAPES.get(nxt, nxt))
        elif c == '"':
            in_quote = not in_quote
        else:
            out.append(c)
    return "".join(out)


def _strip_trailing_slash(folder: str) -> str:
    if len(folder) > 1 and folder.endswith("/"):
        return folder[:-1]
    return folder


class ConfigDocument:
    def __init__(self, text: str = "", path: Optional[str] = None, exists: bool = True) -> None:
        self.text = text
        self.path = path
        self.exists = exists
        self.issues: List[ParseFailure] = []

    @classmethod
    def load(cls, path: str) -> "ConfigDocument":
        text = read_file_text(path)
        return cls(text or "", path=path, exists=text is not None)

    @property
    def digest(self) -> str:
        return hashlib.sha256(self.text.encode("utf-8")).hexdigest()

    def _lines(self) -> List[Tuple[int, str]]:
        offset = 0
        lines = []
        for raw in self.text.splitlines(keepends=True):
            lines.append((offset, raw))
            offset += len(raw)
        return lines

    def find_directives(self) -> List[IncludeDirective]:
        """Return every well-formed include directive in file order.

        A header with no ``path`` line after it is recorded in ``issues``
        and skipped; the scan carries on with the next line.
        """
        self.issues = []
        found: List[IncludeDirective] = []
        lines = self._lines()
        idx = 0
        while idx < len(lines):
            start, raw = lines[idx]
            header = _INCLUDE_HEADER_RE.match(raw.rstrip("\r\n"))
            if not header:
                idx += 1
                continue
            nxt = idx + 1
            while nxt < len(lines) and not lines[nxt][1].strip():
                nxt += 1
            path_match = None
            if nxt < len(lines):
                path_match = _PATH_LINE_RE.match(lines[nxt][1].rstrip("\r\n"))
            if not path_match:
                issue = ParseFailure(idx + 1, "includeIf section without a path entry")
                logger.debug("Skipping directive in %s: %s", self.path or "<memory>", issue)
                self.issues.append(issue)
                idx += 1
                continue
            end = lines[nxt][0] + len(lines[nxt][1])
            found.append(
                IncludeDirective(
                    folder=_strip_trailing_slash(header.group("folder")),
                    path=parse_value(path_match.group("path")),
                    block=self.text[start:end],
                    start=start,
                    end=end,
                )
            )
            idx = nxt + 1
        return found

    def append(self, text: str) -> None:
        self.text += text

    def append_directive(self, folder: str, path: str) -> str:
        block = f'[includeIf "gitdir:{_strip_trailing_slash(folder)}/"]\n    path = {quote_value(path)}\n'
        prefix = ""
        if self.text and not self.text.endswith("\n"):
            prefix = "\n\n"
        elif self.text and not self.text.endswith("\n\n"):
            prefix = "\n"
        self.append(prefix + block)
        return block

    def remove_literal(self, block: str) -> bool:
        """Remove the first exact occurrence of ``block``; no-op when absent."""
        if not block or block not in self.text:
            return False
        self.text = self.text.replace(block, "", 1)
        return True

    def remove_directive(self, folder: str, path: Optional[str] = None) -> Optional[IncludeDirective]:
        folder = _strip_trailing_slash(folder)
        for directive in self.find_directives():
            if directive.folder != folder:
                continue
            if path is not None and directive.path != path:
                continue
            self.text = self.text[: directive.start] + self.text[directive.end :]
            return directive
        return None

    def read_field(self, key: str, section: Optional[str] = None) -> str:
        current_section: Optional[str] = None
        wanted = key.lower()
        for _, raw in self._lines():
            line = raw.strip()
            if not line or line[0] in "#;":
                continue
            section_match = _SECTION_RE.match(line)
            if section_match:
                current_section = section_match.group("name").lower()
                continue
            if "=" not in line:
                continue
            name, _, value = line.partition("=")
            if name.strip().lower() != wanted:
                continue
            if section is not None and current_section != section.lower():
                continue
            return parse_value(value)
        return UNKNOWN


@contextlib.contextmanager
def edit_document(path: str) -> Iterator[ConfigDocument]:
    """Read-modify-write ``path`` under its advisory lock.

    The file is only rewritten when the text changed, and only if nobody
    else changed it since it was loaded.
    """
    with file_lock(path):
        doc = ConfigDocument.load(path)
        loaded_text = doc.text
        loaded_digest = doc.digest
        yield doc
        if doc.text == loaded_text:
            return
        current = read_file_text(path) or ""
        if hashlib.sha256(current.encode("utf-8")).hexdigest() != loaded_digest:
            raise ConflictError(path)
        write_file_text(path, doc.text)
