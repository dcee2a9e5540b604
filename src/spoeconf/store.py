from __future__ import annotations

import logging
import shutil
from pathlib import Path

from .document import ConfigDocument, DocumentLoadError, DocumentSaveError
from .errors import ConfigReadError, ConfigWriteError, VersionReadError, VersionWriteError

logger = logging.getLogger(__name__)


def backup_path(path: Path) -> Path:
    return path.with_name(path.name + ".bak")


class ConfigurationStore:
    """Owner of the master document and the file it is persisted to."""

    def __init__(self, path: Path, *, backup: bool = True) -> None:
        self.path = Path(path)
        self.backup = backup
        self.master = self.load(self.path)

    @staticmethod
    def load(path: Path) -> ConfigDocument:
        try:
            return ConfigDocument.load(path)
        except DocumentLoadError as exc:
            raise ConfigReadError(path, str(exc)) from exc

    def write(self, document: ConfigDocument, path: Path | None = None) -> None:
        """Persist *document* to *path* (the master file by default)."""
        target = Path(path) if path is not None else self.path
        if self.backup and target == self.path and target.exists():
            try:
                shutil.copyfile(target, backup_path(target))
            except OSError as exc:
                raise ConfigWriteError(f"cannot back up {target}: {exc}") from exc
        try:
            document.save(target)
        except DocumentSaveError as exc:
            raise ConfigWriteError(f"cannot write {target}: {exc}") from exc
        logger.debug("wrote %s (version %s)", target, document.get_version())

    def save(self, path: Path | None = None) -> None:
        self.write(self.master, path)

    def replace(self, document: ConfigDocument) -> None:
        self.master = document

    # ----- sections -----

    def get_section(self, scope: str, section_type: str, name: str) -> list[str]:
        return self.master.section_get(scope, section_type, name)

    def set_section(self, scope: str, section_type: str, name: str, lines) -> None:
        self.master.section_set(scope, section_type, name, lines)

    def delete_section(self, scope: str, section_type: str, name: str) -> None:
        self.master.sections_delete(scope, section_type, name)

    # ----- version marker -----

    def current_version(self) -> int:
        try:
            return int(self.master.get_version())
        except (TypeError, ValueError) as exc:
            raise VersionReadError(f"cannot read version: {exc}") from exc

    def increment_version(self) -> int:
        """Bump the version marker by one and persist the whole document."""
        current = self.current_version()
        self.master.set_version(current + 1)
        try:
            self.save()
        except ConfigWriteError as exc:
            self.master.set_version(current)
            raise VersionWriteError(f"cannot set version: {exc}") from exc
        logger.debug("version of %s incremented to %d", self.path, current + 1)
        return current + 1
