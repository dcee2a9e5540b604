from __future__ import annotations

import configparser
from pathlib import Path

from ..document import (
    DEFAULT_VERSION,
    SECTION_TYPES,
    VERSION_KEY,
    ConfigDocument,
    DocumentLoadError,
    DocumentSaveError,
)
from . import register_backend
from .base import BaseBackend, atomic_write

META_SECTION = "__meta__"


def _parser() -> configparser.ConfigParser:
    return configparser.ConfigParser(interpolation=None)


@register_backend
class IniBackend(BaseBackend):
    """Store a document as INI.

    ``[scope]`` declares a scope and ``[scope section-type name]`` holds the
    directive lines of one section as a multi-line ``lines`` value.  The
    version marker lives in ``[__meta__]``.
    """

    suffixes = (".ini",)

    def load(self, path: Path) -> ConfigDocument:
        parser = _parser()
        with Path(path).open("r", encoding="utf-8") as fh:
            try:
                parser.read_file(fh)
            except configparser.Error as exc:
                raise DocumentLoadError(str(exc)) from exc
        doc = ConfigDocument()
        raw_version = parser.get(META_SECTION, VERSION_KEY, fallback=str(DEFAULT_VERSION))
        try:
            doc.set_version(int(raw_version))
        except ValueError as exc:
            raise DocumentLoadError(f"invalid version {raw_version!r}") from exc
        for section in parser.sections():
            if section == META_SECTION:
                continue
            parts = section.split()
            if len(parts) == 1:
                if not doc.has_scope(parts[0]):
                    doc.scope_create(parts[0])
                continue
            if len(parts) != 3 or parts[1] not in SECTION_TYPES:
                raise DocumentLoadError(f"invalid section header [{section}]")
            scope, section_type, name = parts
            if not doc.has_scope(scope):
                doc.scope_create(scope)
            raw = parser.get(section, "lines", fallback="")
            doc.section_create(scope, section_type, name, raw.splitlines())
        return doc

    def save(self, path: Path, document: ConfigDocument) -> None:
        parser = _parser()
        reserved = {META_SECTION, parser.default_section}
        parser[META_SECTION] = {VERSION_KEY: str(document.get_version())}
        for scope in document.scopes():
            if scope in reserved:
                raise DocumentSaveError(f"scope name {scope!r} is reserved in INI files")
            parser.add_section(scope)
            for section_type in SECTION_TYPES:
                for name in document.sections_get(scope, section_type):
                    lines = document.section_get(scope, section_type, name)
                    header = f"{scope} {section_type} {name}"
                    parser.add_section(header)
                    parser.set(header, "lines", "\n".join([""] + lines) if lines else "")
        with atomic_write(Path(path)) as fh:
            parser.write(fh)
