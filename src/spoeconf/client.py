from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from threading import RLock
from typing import Any, TypeVar

from .backends.spoe_backend import dump as dump_spoe
from .config import Params
from .document import ConfigDocument, ParserError
from .errors import ObjectNotFound, SpoeConfError, TransactionNotFound
from .storage import TransactionStorage
from .store import ConfigurationStore
from .transactions import FAILED, Transaction, TransactionManager, target_for
from .translate import translate_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SpoeClient:
    """Transactional access to a single SPOE configuration file.

    Every mutating method accepts ``transaction_id`` or ``version`` (exactly
    one).  With ``transaction_id`` the change is staged in that transaction;
    with ``version`` it is applied to master right away, provided master is
    still at that version.  All calls are serialized by one lock.
    """

    def __init__(self, params: Params | None = None, **kwargs: Any) -> None:
        if params is None:
            params = Params(**kwargs)
        elif kwargs:
            raise TypeError("pass either params or keyword arguments")
        self.params = params
        self._lock = RLock()
        self.store = ConfigurationStore(params.config_file, backup=params.backup)
        self.storage = TransactionStorage(params.transaction_dir, params.config_file)
        self.transactions = TransactionManager(
            self.store,
            self.storage,
            persistent=params.persistent_transactions,
            skip_failed=params.skip_failed_transactions,
            on_cleanup_error=self._log_cleanup_error,
        )
        self.transactions.recover_on_startup()

    @staticmethod
    def _log_cleanup_error(transaction_id: str, exc: Exception) -> None:
        logger.warning("cannot clean up transaction %s: %s", transaction_id, exc)

    def _read(
        self,
        transaction_id: str,
        func: Callable[[ConfigDocument], T],
        object_id: str,
        parent_type: str = "",
        parent_name: str = "",
    ) -> T:
        with self._lock:
            doc = self.transactions.get_handle(transaction_id)
            try:
                return func(doc)
            except ParserError as exc:
                raise translate_error(exc, object_id, parent_type, parent_name) from exc

    @staticmethod
    def _section_exists(doc: ConfigDocument, scope: str, section_type: str, name: str) -> bool:
        try:
            return name in doc.sections_get(scope, section_type)
        except ParserError:
            return False

    # ------------------------------------------------------- transactions
    def start_transaction(self, version: int) -> Transaction:
        with self._lock:
            return self.transactions.begin(version)

    def commit_transaction(self, transaction_id: str, *, skip_version: bool = False) -> Transaction:
        with self._lock:
            return self.transactions.commit(transaction_id, skip_version=skip_version)

    def delete_transaction(self, transaction_id: str) -> None:
        with self._lock:
            self.transactions.discard(transaction_id)

    def has_transaction(self, transaction_id: str) -> bool:
        with self._lock:
            return self.transactions.has_transaction(transaction_id)

    def get_transaction(self, transaction_id: str) -> Transaction:
        with self._lock:
            for t in self.transactions.list_transactions():
                if t.id == transaction_id:
                    return t
            if self.params.persistent_transactions and transaction_id in self.storage.list_failed():
                version = self.storage.failed_transaction_version(transaction_id)
                return Transaction(transaction_id, FAILED, version)
            raise TransactionNotFound(transaction_id)

    def get_transactions(self, status: str | None = None) -> list[Transaction]:
        """Return staged transactions and, when persistent, failed ones."""
        with self._lock:
            out = list(self.transactions.list_transactions())
            if self.params.persistent_transactions:
                for tid in self.storage.list_failed():
                    try:
                        version = self.storage.failed_transaction_version(tid)
                    except SpoeConfError as exc:
                        logger.debug("ignoring failed transaction %s: %s", tid, exc)
                        continue
                    out.append(Transaction(tid, FAILED, version))
            if status is not None:
                out = [t for t in out if t.status == status]
            return out

    # ------------------------------------------------------------ version
    def get_version(self, transaction_id: str = "") -> int:
        with self._lock:
            return self.transactions.current_version(transaction_id)

    def increment_version(self) -> int:
        with self._lock:
            return self.store.increment_version()

    def dump(self, transaction_id: str = "") -> str:
        """Return the SPOE text of master or of a staged transaction."""
        with self._lock:
            return dump_spoe(self.transactions.get_handle(transaction_id))

    # ------------------------------------------------------------- scopes
    def get_scopes(self, transaction_id: str = "") -> list[str]:
        return self._read(transaction_id, lambda doc: doc.scopes(), "")

    def create_scope(
        self, scope: str, *, transaction_id: str | None = None, version: int | None = None
    ) -> None:
        target = target_for(transaction_id, version)
        with self._lock, self.transactions.change(target, object_id=scope) as change:
            change.document.scope_create(scope)

    def delete_scope(
        self, scope: str, *, transaction_id: str | None = None, version: int | None = None
    ) -> None:
        target = target_for(transaction_id, version)
        with self._lock, self.transactions.change(target, object_id=scope) as change:
            if not change.document.has_scope(scope):
                raise ObjectNotFound(f"scope {scope} does not exist", object_id=scope)
            change.document.scope_delete(scope)

    # ----------------------------------------------------------- sections
    def get_sections(self, scope: str, section_type: str, transaction_id: str = "") -> list[str]:
        return self._read(
            transaction_id,
            lambda doc: doc.sections_get(scope, section_type),
            section_type,
            "scope",
            scope,
        )

    def get_section(
        self, scope: str, section_type: str, name: str, transaction_id: str = ""
    ) -> list[str]:
        with self._lock:
            doc = self.transactions.get_handle(transaction_id)
            if not self._section_exists(doc, scope, section_type, name):
                raise ObjectNotFound(f"{section_type} {name} does not exist", object_id=name)
            return doc.section_get(scope, section_type, name)

    def create_section(
        self,
        scope: str,
        section_type: str,
        name: str,
        lines: Sequence[str] = (),
        *,
        transaction_id: str | None = None,
        version: int | None = None,
    ) -> None:
        target = target_for(transaction_id, version)
        with self._lock, self.transactions.change(
            target, object_id=name, parent_type="scope", parent_name=scope
        ) as change:
            change.document.section_create(scope, section_type, name, list(lines))

    def edit_section(
        self,
        scope: str,
        section_type: str,
        name: str,
        lines: Sequence[str],
        *,
        transaction_id: str | None = None,
        version: int | None = None,
    ) -> None:
        target = target_for(transaction_id, version)
        with self._lock, self.transactions.change(target, object_id=name) as change:
            if not self._section_exists(change.document, scope, section_type, name):
                raise ObjectNotFound(f"{section_type} {name} does not exist", object_id=name)
            change.document.section_set(scope, section_type, name, list(lines))

    def delete_section(
        self,
        scope: str,
        section_type: str,
        name: str,
        *,
        transaction_id: str | None = None,
        version: int | None = None,
    ) -> None:
        target = target_for(transaction_id, version)
        with self._lock, self.transactions.change(target, object_id=name) as change:
            if not self._section_exists(change.document, scope, section_type, name):
                raise ObjectNotFound(f"{section_type} {name} does not exist", object_id=name)
            change.document.sections_delete(scope, section_type, name)

    # --------------------------------------------------------- directives
    def get_directive(
        self, scope: str, section_type: str, name: str, keyword: str, transaction_id: str = ""
    ) -> list[str]:
        return self._read(
            transaction_id,
            lambda doc: doc.directive_get(scope, section_type, name, keyword),
            keyword,
            section_type,
            name,
        )

    def set_directive(
        self,
        scope: str,
        section_type: str,
        name: str,
        keyword: str,
        value: str = "",
        index: int | None = None,
        *,
        transaction_id: str | None = None,
        version: int | None = None,
    ) -> None:
        target = target_for(transaction_id, version)
        with self._lock, self.transactions.change(
            target, object_id=keyword, parent_type=section_type, parent_name=name
        ) as change:
            change.document.directive_set(scope, section_type, name, keyword, value, index)

    def delete_directive(
        self,
        scope: str,
        section_type: str,
        name: str,
        keyword: str,
        index: int = 0,
        *,
        transaction_id: str | None = None,
        version: int | None = None,
    ) -> None:
        target = target_for(transaction_id, version)
        with self._lock, self.transactions.change(
            target, object_id=keyword, parent_type=section_type, parent_name=name
        ) as change:
            change.document.directive_delete(scope, section_type, name, keyword, index)
