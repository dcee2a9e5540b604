from __future__ import annotations

from pathlib import Path

import yaml

from ..document import DEFAULT_VERSION, VERSION_KEY, ConfigDocument, DocumentLoadError
from . import register_backend
from .base import BaseBackend, atomic_write


@register_backend
class YamlBackend(BaseBackend):
    """YAML file backend.

    The file is the mapping produced by :meth:`ConfigDocument.to_dict`.
    """

    suffixes = (".yaml", ".yml")

    def load(self, path: Path) -> ConfigDocument:
        raw = Path(path).read_text(encoding="utf-8")
        if raw.strip() == "":
            return ConfigDocument()
        try:
            data = yaml.safe_load(raw) or {}
        except yaml.YAMLError as exc:
            raise DocumentLoadError(str(exc)) from exc
        if not isinstance(data, dict):
            raise DocumentLoadError("Root of a YAML document must be a mapping")
        scopes = data.get("scopes") or {}
        if not isinstance(scopes, dict):
            raise DocumentLoadError("'scopes' must be a mapping")
        try:
            version = int(data.get(VERSION_KEY, DEFAULT_VERSION))
            normalized = {
                str(scope): {
                    str(section_type): {
                        str(name): [str(line) for line in (lines or [])]
                        for name, lines in (named or {}).items()
                    }
                    for section_type, named in (sections or {}).items()
                }
                for scope, sections in scopes.items()
            }
            return ConfigDocument(normalized, version=version)
        except (AttributeError, TypeError, ValueError) as exc:
            raise DocumentLoadError(f"invalid document structure: {exc}") from exc

    def save(self, path: Path, document: ConfigDocument) -> None:
        with atomic_write(Path(path)) as fh:
            yaml.safe_dump(document.to_dict(), fh, sort_keys=False, allow_unicode=True)
