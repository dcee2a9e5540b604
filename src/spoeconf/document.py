"""In-memory representation of a SPOE configuration document.

A document is made of *scopes* (``[name]`` blocks) holding *sections* of
type ``spoe-agent``, ``spoe-message`` or ``spoe-group``.  Every section keeps
its directive lines in file order.  The document also carries the version
marker used for optimistic concurrency.

Reading and writing files is delegated to the backends registered in
:mod:`spoeconf.backends`; the document itself only knows about its content.
Operations raise the low-level :class:`ParserError` signals defined here and
never the domain errors of :mod:`spoeconf.errors`.
"""

from __future__ import annotations

import copy
from pathlib import Path

VERSION_KEY = "_version"
DEFAULT_VERSION = 1
SECTION_TYPES = ("spoe-agent", "spoe-message", "spoe-group")

Scopes = dict[str, dict[str, dict[str, list[str]]]]


class DocumentError(Exception):
    """Base class for document level failures."""


class DocumentLoadError(DocumentError):
    """Raised when a document file cannot be read or parsed."""


class DocumentSaveError(DocumentError):
    """Raised when a document cannot be written to disk."""


class ParserError(DocumentError):
    """Base class for failures reported by section operations."""


class SectionMissingError(ParserError):
    pass


class SectionExistsError(ParserError):
    pass


class FetchError(ParserError):
    pass


class IndexOutOfRangeError(ParserError):
    pass


def normalize_line(line: str) -> str:
    """Collapse whitespace inside a directive line."""
    return " ".join(line.split())


def _check_type(section_type: str) -> None:
    if section_type not in SECTION_TYPES:
        raise ValueError(f"unknown section type: {section_type!r}")


def _check_name(kind: str, name: str) -> None:
    # names end up in "[scope]" and "<type> <name>" header lines
    if not name or len(name.split()) != 1 or any(c in name for c in "[]#"):
        raise ValueError(f"invalid {kind} name: {name!r}")


def _clean_lines(lines) -> list[str]:
    """Normalize *lines*, refusing those that would read back as headers or comments."""
    out = []
    for line in lines:
        line = normalize_line(line)
        if not line:
            continue
        if line[0] in "#[" or line.split()[0] in SECTION_TYPES:
            raise ValueError(f"invalid directive line: {line!r}")
        out.append(line)
    return out


class ConfigDocument:
    """Parsed SPOE configuration with section level CRUD."""

    def __init__(self, scopes: Scopes | None = None, version: int = DEFAULT_VERSION) -> None:
        self._scopes: Scopes = {}
        self.version = int(version)
        for scope, sections in (scopes or {}).items():
            self.scope_create(scope)
            for section_type, named in sections.items():
                for name, lines in named.items():
                    self.section_create(scope, section_type, name, lines)

    # ------------------------------------------------------------------ io
    @classmethod
    def load(cls, path: Path) -> ConfigDocument:
        from .backends import get_backend_for_path

        path = Path(path)
        try:
            backend = get_backend_for_path(path)
        except ValueError as exc:
            raise DocumentLoadError(str(exc)) from exc
        try:
            return backend.load(path)
        except ValueError as exc:
            raise DocumentLoadError(f"{path}: {exc}") from exc
        except OSError as exc:
            raise DocumentLoadError(f"{path}: {exc.strerror or exc}") from exc

    def save(self, path: Path) -> None:
        from .backends import get_backend_for_path

        path = Path(path)
        try:
            backend = get_backend_for_path(path)
        except ValueError as exc:
            raise DocumentSaveError(str(exc)) from exc
        try:
            backend.save(path, self)
        except ValueError as exc:
            raise DocumentSaveError(f"{path}: {exc}") from exc
        except OSError as exc:
            raise DocumentSaveError(f"{path}: {exc.strerror or exc}") from exc

    def copy(self) -> ConfigDocument:
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        """Return a plain nested mapping of the document content."""
        return {VERSION_KEY: self.version, "scopes": copy.deepcopy(self._scopes)}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConfigDocument):
            return NotImplemented
        return self.version == other.version and self._scopes == other._scopes

    def __repr__(self) -> str:
        return f"ConfigDocument(version={self.version}, scopes={sorted(self._scopes)!r})"

    # ------------------------------------------------------------- version
    def get_version(self) -> int:
        return self.version

    def set_version(self, version: int) -> None:
        self.version = int(version)

    # -------------------------------------------------------------- scopes
    def scopes(self) -> list[str]:
        return list(self._scopes)

    def has_scope(self, scope: str) -> bool:
        return scope in self._scopes

    def scope_create(self, scope: str) -> None:
        _check_name("scope", scope)
        if scope in self._scopes:
            raise SectionExistsError(scope)
        self._scopes[scope] = {t: {} for t in SECTION_TYPES}

    def scope_delete(self, scope: str) -> None:
        if scope not in self._scopes:
            raise SectionMissingError(scope)
        del self._scopes[scope]

    # ------------------------------------------------------------ sections
    def _sections(self, scope: str, section_type: str) -> dict[str, list[str]]:
        _check_type(section_type)
        try:
            return self._scopes[scope][section_type]
        except KeyError as exc:
            raise SectionMissingError(scope) from exc

    def _lines(self, scope: str, section_type: str, name: str) -> list[str]:
        try:
            return self._sections(scope, section_type)[name]
        except KeyError as exc:
            raise SectionMissingError(name) from exc

    def sections_get(self, scope: str, section_type: str) -> list[str]:
        return list(self._sections(scope, section_type))

    def section_get(self, scope: str, section_type: str, name: str) -> list[str]:
        return list(self._lines(scope, section_type, name))

    def section_create(
        self, scope: str, section_type: str, name: str, lines: list[str] | tuple[str, ...] = ()
    ) -> None:
        sections = self._sections(scope, section_type)
        _check_name("section", name)
        if name in sections:
            raise SectionExistsError(name)
        sections[name] = _clean_lines(lines)

    def section_set(
        self, scope: str, section_type: str, name: str, lines: list[str] | tuple[str, ...]
    ) -> None:
        sections = self._sections(scope, section_type)
        if name not in sections:
            raise SectionMissingError(name)
        sections[name] = _clean_lines(lines)

    def sections_delete(self, scope: str, section_type: str, name: str) -> None:
        sections = self._sections(scope, section_type)
        if name not in sections:
            raise SectionMissingError(name)
        del sections[name]

    # ---------------------------------------------------------- directives
    @staticmethod
    def _matches(line: str, keyword: str) -> bool:
        return line == keyword or line.startswith(keyword + " ")

    def _positions(self, lines: list[str], keyword: str) -> list[int]:
        return [i for i, line in enumerate(lines) if self._matches(line, keyword)]

    def directive_get(self, scope: str, section_type: str, name: str, keyword: str) -> list[str]:
        """Return every line of section *name* starting with *keyword*.

        ``keyword`` may span several words (``"timeout hello"``).
        """
        lines = self._lines(scope, section_type, name)
        keyword = normalize_line(keyword)
        found = [lines[i] for i in self._positions(lines, keyword)]
        if not found:
            raise FetchError(keyword)
        return found

    def directive_set(
        self,
        scope: str,
        section_type: str,
        name: str,
        keyword: str,
        value: str = "",
        index: int | None = None,
    ) -> None:
        """Set the *index*-th occurrence of *keyword*, or append when ``None``."""
        lines = self._lines(scope, section_type, name)
        keyword = normalize_line(keyword)
        if not keyword:
            raise ValueError("empty directive keyword")
        line = _clean_lines([f"{keyword} {value}"])[0]
        if index is None:
            lines.append(line)
            return
        positions = self._positions(lines, keyword)
        if index < 0 or index >= len(positions):
            raise IndexOutOfRangeError(f"{keyword}[{index}]")
        lines[positions[index]] = line

    def directive_delete(
        self, scope: str, section_type: str, name: str, keyword: str, index: int = 0
    ) -> None:
        lines = self._lines(scope, section_type, name)
        keyword = normalize_line(keyword)
        positions = self._positions(lines, keyword)
        if not positions:
            raise FetchError(keyword)
        if index < 0 or index >= len(positions):
            raise IndexOutOfRangeError(f"{keyword}[{index}]")
        del lines[positions[index]]
