"""Native HAProxy SPOE configuration format.

::

    # _version=3
    [ip-reputation]
    spoe-agent iprep-agent
        messages check-client-ip
        timeout hello 2s

    spoe-message check-client-ip
        args ip=src

Comments other than the version marker are dropped on load.
"""
from __future__ import annotations

import re
from pathlib import Path

from ..document import (
    DEFAULT_VERSION,
    SECTION_TYPES,
    VERSION_KEY,
    ConfigDocument,
    DocumentLoadError,
    normalize_line,
)
from . import register_backend
from .base import BaseBackend, atomic_write

_VERSION_RE = re.compile(rf"^#\s*{VERSION_KEY}\s*=\s*(\S+)\s*$")
_SCOPE_RE = re.compile(r"^\[([^\]\s]+)\]$")
INDENT = "    "


def parse(text: str, source: str = "<string>") -> ConfigDocument:
    doc = ConfigDocument()
    version: int | None = None
    scope: str | None = None
    section: tuple[str, str] | None = None
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line:
            continue
        if line.startswith("#"):
            match = _VERSION_RE.match(line)
            if match and version is None:
                try:
                    version = int(match.group(1))
                except ValueError as exc:
                    raise DocumentLoadError(
                        f"{source}:{lineno}: invalid version {match.group(1)!r}"
                    ) from exc
            continue
        match = _SCOPE_RE.match(line)
        if match:
            scope = match.group(1)
            section = None
            if not doc.has_scope(scope):
                try:
                    doc.scope_create(scope)
                except ValueError as exc:
                    raise DocumentLoadError(f"{source}:{lineno}: {exc}") from exc
            continue
        words = line.split()
        if words[0] in SECTION_TYPES:
            if scope is None:
                raise DocumentLoadError(f"{source}:{lineno}: section outside of a scope")
            if len(words) != 2:
                raise DocumentLoadError(f"{source}:{lineno}: expected '{words[0]} <name>'")
            section = (words[0], words[1])
            if words[1] in doc.sections_get(scope, words[0]):
                raise DocumentLoadError(f"{source}:{lineno}: duplicate {words[0]} {words[1]}")
            try:
                doc.section_create(scope, words[0], words[1])
            except ValueError as exc:
                raise DocumentLoadError(f"{source}:{lineno}: {exc}") from exc
            continue
        if section is None:
            raise DocumentLoadError(f"{source}:{lineno}: directive outside of a section")
        lines = doc.section_get(scope, *section)
        lines.append(normalize_line(line))
        try:
            doc.section_set(scope, section[0], section[1], lines)
        except ValueError as exc:
            raise DocumentLoadError(f"{source}:{lineno}: {exc}") from exc
    doc.set_version(DEFAULT_VERSION if version is None else version)
    return doc


def dump(document: ConfigDocument) -> str:
    out = [f"# {VERSION_KEY}={document.get_version()}"]
    for scope in document.scopes():
        out.append(f"[{scope}]")
        for section_type in SECTION_TYPES:
            for name in document.sections_get(scope, section_type):
                out.append(f"{section_type} {name}")
                out.extend(INDENT + line for line in document.section_get(scope, section_type, name))
                out.append("")
    return "\n".join(out).rstrip("\n") + "\n"


@register_backend
class SpoeBackend(BaseBackend):
    suffixes = (".cfg", ".conf", ".spoe")

    def load(self, path: Path) -> ConfigDocument:
        return parse(Path(path).read_text(encoding="utf-8"), source=str(path))

    def save(self, path: Path, document: ConfigDocument) -> None:
        with atomic_write(Path(path)) as fh:
            fh.write(dump(document))
