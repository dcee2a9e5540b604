"""Staged transactions on top of the master configuration.

The :class:`TransactionManager` owns the registry of staged documents.  A
caller either holds an explicit transaction (``Explicit(id)``) or asks for a
single-shot edit guarded by the master version (``Implicit(version)``); the
latter is created, committed or discarded within :meth:`TransactionManager.change`.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from .document import ConfigDocument, DocumentLoadError, ParserError
from .errors import (
    ConfigReadError,
    ConfigWriteError,
    InvalidTransaction,
    SpoeConfError,
    TransactionAlreadyExists,
    TransactionNotFound,
    VersionMismatch,
    VersionReadError,
)
from .storage import TransactionStorage
from .store import ConfigurationStore
from .translate import translate_error

logger = logging.getLogger(__name__)

IN_PROGRESS = "in_progress"
FAILED = "failed"
SUCCESS = "success"


@dataclass(frozen=True)
class Transaction:
    id: str
    status: str
    version: int


@dataclass(frozen=True)
class Explicit:
    """Edit a transaction the caller already started."""

    transaction_id: str


@dataclass(frozen=True)
class Implicit:
    """Single-shot edit applied only if master is still at *version*."""

    version: int


Target = Explicit | Implicit


def target_for(transaction_id: str | None = None, version: int | None = None) -> Target:
    """Build a :data:`Target` from the usual keyword pair.

    Exactly one of *transaction_id* and *version* must be given.
    """
    if transaction_id and version is not None:
        raise InvalidTransaction("both version and transaction specified, specify only one")
    if transaction_id:
        return Explicit(transaction_id)
    if version is None:
        raise InvalidTransaction("version or transaction not specified")
    return Implicit(int(version))


@dataclass
class Change:
    transaction_id: str
    document: ConfigDocument
    implicit: bool


class TransactionManager:
    """Registry and lifecycle of staged transactions.

    Parameters
    ----------
    store:
        The master configuration.
    storage:
        Backing store allocating ids and holding transaction files.
    persistent:
        Save every staged change to its transaction file.  When ``False``
        transactions live in memory only and are staged from the master file.
    skip_failed:
        During :meth:`recover_on_startup`, move transactions that cannot be
        loaded to the failed directory instead of aborting.
    on_cleanup_error:
        Called with ``(transaction_id, exc)`` when discarding an implicit
        transaction fails.  The original error is raised regardless.
    """

    def __init__(
        self,
        store: ConfigurationStore,
        storage: TransactionStorage,
        *,
        persistent: bool = True,
        skip_failed: bool = True,
        on_cleanup_error: Callable[[str, Exception], None] | None = None,
    ) -> None:
        self.store = store
        self.storage = storage
        self.persistent = persistent
        self.skip_failed = skip_failed
        self.on_cleanup_error = on_cleanup_error
        self._registry: dict[str, ConfigDocument] = {}

    # ------------------------------------------------------------ queries
    def has_transaction(self, transaction_id: str) -> bool:
        return transaction_id in self._registry

    def list_transactions(self) -> list[Transaction]:
        return [
            Transaction(tid, IN_PROGRESS, doc.get_version())
            for tid, doc in self._registry.items()
        ]

    def current_version(self, transaction_id: str = "") -> int:
        try:
            doc = self.get_handle(transaction_id)
        except TransactionNotFound as exc:
            raise VersionReadError(f"cannot read version: {exc}") from exc
        if not transaction_id:
            return self.store.current_version()
        try:
            return int(doc.get_version())
        except (TypeError, ValueError) as exc:
            raise VersionReadError(f"cannot read version: {exc}") from exc

    def get_handle(self, transaction_id: str) -> ConfigDocument:
        if not transaction_id:
            return self.store.master
        try:
            return self._registry[transaction_id]
        except KeyError:
            raise TransactionNotFound(transaction_id) from None

    # ----------------------------------------------------------- registry
    def start_transaction(self, transaction_id: str) -> None:
        if not transaction_id:
            raise InvalidTransaction("not a valid transaction")
        if transaction_id in self._registry:
            raise TransactionAlreadyExists(transaction_id)
        if self.persistent:
            path = self.storage.transaction_file_path(transaction_id)
        else:
            path = self.store.path
        try:
            doc = ConfigDocument.load(path)
        except DocumentLoadError as exc:
            raise ConfigReadError(path, str(exc)) from exc
        self._registry[transaction_id] = doc

    def _staged(self, transaction_id: str) -> ConfigDocument:
        if not transaction_id:
            raise InvalidTransaction("not a valid transaction")
        try:
            return self._registry[transaction_id]
        except KeyError:
            raise TransactionNotFound(transaction_id) from None

    def delete_transaction(self, transaction_id: str) -> None:
        self._staged(transaction_id)
        del self._registry[transaction_id]

    def commit_transaction(self, transaction_id: str) -> None:
        """Replace master with the staged document and drop the entry."""
        doc = self._staged(transaction_id)
        self.store.replace(doc)
        del self._registry[transaction_id]

    def recover_on_startup(self) -> list[str]:
        """Stage every in-progress transaction left in the backing store."""
        if not self.persistent:
            return []
        recovered = []
        for tid in self.storage.list_in_progress():
            try:
                self.start_transaction(tid)
            except SpoeConfError as exc:
                if not self.skip_failed:
                    raise
                logger.warning("skipping transaction %s: %s", tid, exc)
                try:
                    self.storage.mark_failed(tid)
                except ConfigWriteError as move_exc:
                    logger.warning("cannot mark transaction %s as failed: %s", tid, move_exc)
                continue
            recovered.append(tid)
        if recovered:
            logger.debug("recovered transactions: %s", ", ".join(recovered))
        return recovered

    # ------------------------------------------------------- orchestration
    def _check_version(self, version: int) -> None:
        current = self.store.current_version()
        if version != current:
            raise VersionMismatch(version, current)

    def _cleanup(self, transaction_id: str) -> None:
        self._registry.pop(transaction_id, None)
        if not self.persistent:
            return
        try:
            self.storage.delete_transaction_files(transaction_id)
        except SpoeConfError as exc:
            if self.on_cleanup_error is not None:
                self.on_cleanup_error(transaction_id, exc)

    def begin(self, version: int) -> Transaction:
        """Start a caller-managed transaction staged from master *version*."""
        self._check_version(version)
        tid = self.storage.allocate_id()
        try:
            if self.persistent:
                self.storage.create_transaction_file(tid, self.store.path)
            self.start_transaction(tid)
        except SpoeConfError:
            self._cleanup(tid)
            raise
        logger.debug("started transaction %s at version %d", tid, version)
        return Transaction(tid, IN_PROGRESS, version)

    def resolve(self, target: Target) -> str:
        """Return the transaction id a change against *target* applies to."""
        if isinstance(target, Explicit):
            if not target.transaction_id:
                raise InvalidTransaction("not a valid transaction")
            if target.transaction_id not in self._registry:
                raise TransactionNotFound(target.transaction_id)
            return target.transaction_id
        return self.begin(target.version).id

    def commit(self, transaction_id: str, *, skip_version: bool = False) -> Transaction:
        """Write the staged document to the master file and swap it in."""
        doc = self._staged(transaction_id)
        version = doc.get_version()
        if not skip_version:
            self._check_version(version)
        self.store.write(doc)
        self.commit_transaction(transaction_id)
        if self.persistent:
            try:
                self.storage.delete_transaction_files(transaction_id)
            except ConfigWriteError as exc:
                logger.warning("transaction %s committed but its file remains: %s", transaction_id, exc)
        logger.debug("committed transaction %s", transaction_id)
        return Transaction(transaction_id, SUCCESS, version)

    def discard(self, transaction_id: str) -> None:
        self.delete_transaction(transaction_id)
        if self.persistent:
            self.storage.delete_transaction_files(transaction_id)
        logger.debug("deleted transaction %s", transaction_id)

    @contextmanager
    def change(
        self,
        target: Target,
        *,
        object_id: str = "",
        parent_type: str = "",
        parent_name: str = "",
    ) -> Iterator[Change]:
        """Stage an edit against *target*.

        The block mutates ``change.document``.  On success the document is
        saved to its transaction file and, for implicit targets, committed.
        Document failures raised in the block are translated using
        *object_id*, *parent_type* and *parent_name*.  Any failure discards an
        implicit transaction; explicit ones are left for the caller.
        """
        implicit = isinstance(target, Implicit)
        tid = self.resolve(target)
        try:
            try:
                yield Change(tid, self.get_handle(tid), implicit)
            except ParserError as exc:
                raise translate_error(exc, object_id, parent_type, parent_name) from exc
            if self.persistent:
                self.store.write(self.get_handle(tid), self.storage.transaction_file_path(tid))
            if implicit:
                self.commit(tid)
        except Exception:
            if implicit:
                self._cleanup(tid)
            raise
