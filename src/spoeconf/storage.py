"""File based storage for staged transactions.

Every transaction is a full snapshot of the configuration file stored as
``<transaction_dir>/<stem>.<id><suffix>``.  Snapshots whose transaction could
not be recovered are moved to ``<transaction_dir>/failed``.
"""
from __future__ import annotations

import logging
import re
import shutil
import uuid
from pathlib import Path

from .document import ConfigDocument, DocumentLoadError
from .errors import ConfigReadError, ConfigWriteError, InvalidTransaction, VersionReadError

logger = logging.getLogger(__name__)

FAILED_DIR = "failed"
_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


class TransactionStorage:
    def __init__(self, transaction_dir: Path, config_file: Path) -> None:
        self.transaction_dir = Path(transaction_dir)
        self.config_file = Path(config_file)
        self.failed_dir = self.transaction_dir / FAILED_DIR

    def allocate_id(self) -> str:
        return str(uuid.uuid4())

    def _file_name(self, transaction_id: str) -> str:
        if not transaction_id or not _ID_RE.match(transaction_id):
            raise InvalidTransaction(f"not a valid transaction id: {transaction_id!r}")
        return f"{self.config_file.stem}.{transaction_id}{self.config_file.suffix}"

    def transaction_file_path(self, transaction_id: str) -> Path:
        return self.transaction_dir / self._file_name(transaction_id)

    def failed_file_path(self, transaction_id: str) -> Path:
        return self.failed_dir / self._file_name(transaction_id)

    def create_transaction_file(self, transaction_id: str, source: Path | None = None) -> Path:
        """Copy *source* (the master file by default) as the initial snapshot."""
        target = self.transaction_file_path(transaction_id)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source or self.config_file, target)
        except OSError as exc:
            raise ConfigWriteError(f"cannot create {target}: {exc}") from exc
        return target

    def _ids_in(self, directory: Path) -> list[str]:
        if not directory.is_dir():
            return []
        prefix = f"{self.config_file.stem}."
        suffix = self.config_file.suffix
        ids = []
        for entry in sorted(directory.iterdir()):
            name = entry.name
            if not entry.is_file() or not name.startswith(prefix) or not name.endswith(suffix):
                continue
            tid = name[len(prefix):len(name) - len(suffix)] if suffix else name[len(prefix):]
            if _ID_RE.match(tid):
                ids.append(tid)
        return ids

    def list_in_progress(self) -> list[str]:
        return self._ids_in(self.transaction_dir)

    def list_failed(self) -> list[str]:
        return self._ids_in(self.failed_dir)

    def delete_transaction_files(self, transaction_id: str) -> None:
        path = self.transaction_file_path(transaction_id)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise ConfigWriteError(f"cannot delete {path}: {exc}") from exc
        logger.debug("deleted transaction file %s", path)

    def mark_failed(self, transaction_id: str) -> Path | None:
        """Move the snapshot of *transaction_id* to the failed directory."""
        source = self.transaction_file_path(transaction_id)
        if not source.exists():
            return None
        target = self.failed_file_path(transaction_id)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            source.replace(target)
        except OSError as exc:
            raise ConfigWriteError(f"cannot move {source} to {target}: {exc}") from exc
        return target

    def failed_transaction_version(self, transaction_id: str) -> int:
        path = self.failed_file_path(transaction_id)
        try:
            doc = ConfigDocument.load(path)
        except DocumentLoadError as exc:
            raise ConfigReadError(path, str(exc)) from exc
        try:
            return int(doc.get_version())
        except (TypeError, ValueError) as exc:
            raise VersionReadError("cannot read version") from exc
