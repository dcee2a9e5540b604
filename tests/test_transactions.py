from __future__ import annotations

from pathlib import Path

import pytest

from spoeconf.document import ConfigDocument
from spoeconf.errors import (
    ConfigReadError,
    ConfigWriteError,
    InvalidTransaction,
    ObjectNotFound,
    TransactionAlreadyExists,
    TransactionNotFound,
    VersionMismatch,
    VersionReadError,
)
from spoeconf.storage import TransactionStorage
from spoeconf.store import ConfigurationStore
from spoeconf.transactions import (
    IN_PROGRESS,
    SUCCESS,
    Explicit,
    Implicit,
    TransactionManager,
    target_for,
)
from tests.utils import write_config


def _manager(tmp_path: Path, **kwargs) -> TransactionManager:
    config = write_config(tmp_path)
    store = ConfigurationStore(config)
    storage = TransactionStorage(tmp_path / "tx", config)
    return TransactionManager(store, storage, **kwargs)


def test_target_for():
    assert target_for("abc") == Explicit("abc")
    assert target_for(version=3) == Implicit(3)
    assert target_for("", 3) == Implicit(3)
    with pytest.raises(InvalidTransaction):
        target_for("abc", 3)
    with pytest.raises(InvalidTransaction):
        target_for()


def test_get_handle(tmp_path: Path):
    mgr = _manager(tmp_path)
    assert mgr.get_handle("") is mgr.store.master
    with pytest.raises(TransactionNotFound):
        mgr.get_handle("nope")


def test_start_transaction_twice(tmp_path: Path):
    mgr = _manager(tmp_path)
    mgr.storage.create_transaction_file("t1")
    mgr.start_transaction("t1")
    with pytest.raises(TransactionAlreadyExists):
        mgr.start_transaction("t1")
    assert len(mgr.list_transactions()) == 1


def test_start_transaction_invalid_and_unreadable(tmp_path: Path):
    mgr = _manager(tmp_path)
    with pytest.raises(InvalidTransaction):
        mgr.start_transaction("")
    with pytest.raises(ConfigReadError):
        mgr.start_transaction("no-file")
    assert not mgr.has_transaction("no-file")


def test_delete_and_commit_validation(tmp_path: Path):
    mgr = _manager(tmp_path)
    for op in (mgr.delete_transaction, mgr.commit_transaction):
        with pytest.raises(InvalidTransaction):
            op("")
        with pytest.raises(TransactionNotFound):
            op("missing")


def test_begin_checks_version(tmp_path: Path):
    mgr = _manager(tmp_path)
    with pytest.raises(VersionMismatch) as info:
        mgr.begin(2)
    assert (info.value.expected, info.value.actual) == (2, 3)
    assert mgr.list_transactions() == []
    assert mgr.storage.list_in_progress() == []


def test_begin_and_list(tmp_path: Path):
    mgr = _manager(tmp_path)
    t = mgr.begin(3)
    assert t.status == IN_PROGRESS
    assert mgr.has_transaction(t.id)
    assert mgr.storage.list_in_progress() == [t.id]
    assert [x.id for x in mgr.list_transactions()] == [t.id]
    assert mgr.current_version(t.id) == 3


def test_current_version_of_unknown_transaction(tmp_path: Path):
    with pytest.raises(VersionReadError):
        _manager(tmp_path).current_version("missing")


def test_resolve(tmp_path: Path):
    mgr = _manager(tmp_path)
    t = mgr.begin(3)
    assert mgr.resolve(Explicit(t.id)) == t.id
    with pytest.raises(TransactionNotFound):
        mgr.resolve(Explicit("missing"))
    with pytest.raises(InvalidTransaction):
        mgr.resolve(Explicit(""))
    new_id = mgr.resolve(Implicit(3))
    assert new_id != t.id and mgr.has_transaction(new_id)


def test_commit_transaction_swaps_master(tmp_path: Path):
    mgr = _manager(tmp_path)
    t = mgr.begin(3)
    staged = mgr.get_handle(t.id)
    staged.sections_delete("ip-reputation", "spoe-group", "grp1")
    mgr.commit_transaction(t.id)
    assert mgr.get_handle("") is staged
    assert not mgr.has_transaction(t.id)


def test_commit_persists_master(tmp_path: Path):
    mgr = _manager(tmp_path)
    t = mgr.begin(3)
    mgr.get_handle(t.id).sections_delete("ip-reputation", "spoe-group", "grp1")
    result = mgr.commit(t.id)
    assert result.status == SUCCESS
    assert mgr.current_version() == result.version == 3
    assert t.id not in [x.id for x in mgr.list_transactions()]
    assert mgr.storage.list_in_progress() == []
    on_disk = ConfigDocument.load(mgr.store.path)
    assert on_disk.sections_get("ip-reputation", "spoe-group") == []


def test_commit_version_mismatch(tmp_path: Path):
    mgr = _manager(tmp_path)
    t = mgr.begin(3)
    mgr.store.increment_version()
    with pytest.raises(VersionMismatch):
        mgr.commit(t.id)
    assert mgr.has_transaction(t.id)
    mgr.commit(t.id, skip_version=True)
    assert mgr.current_version() == 3


def test_commit_write_failure_leaves_master(tmp_path: Path, monkeypatch):
    mgr = _manager(tmp_path)
    t = mgr.begin(3)
    master = mgr.store.master

    def fail(document, path=None):
        raise ConfigWriteError("read-only")

    monkeypatch.setattr(mgr.store, "write", fail)
    with pytest.raises(ConfigWriteError):
        mgr.commit(t.id)
    assert mgr.store.master is master
    assert mgr.has_transaction(t.id)


def test_discard(tmp_path: Path):
    mgr = _manager(tmp_path)
    t = mgr.begin(3)
    mgr.discard(t.id)
    assert not mgr.has_transaction(t.id)
    assert mgr.storage.list_in_progress() == []


def test_change_implicit_commits(tmp_path: Path):
    mgr = _manager(tmp_path)
    with mgr.change(Implicit(3)) as change:
        assert change.implicit
        change.document.sections_delete("ip-reputation", "spoe-agent", "agent1")
    assert mgr.list_transactions() == []
    assert mgr.storage.list_in_progress() == []
    assert mgr.get_handle("").sections_get("ip-reputation", "spoe-agent") == []


def test_change_implicit_failure_discards(tmp_path: Path):
    mgr = _manager(tmp_path)
    with pytest.raises(ObjectNotFound):
        with mgr.change(Implicit(3), object_id="ghost") as change:
            change.document.sections_delete("ip-reputation", "spoe-agent", "ghost")
    assert mgr.list_transactions() == []
    assert mgr.storage.list_in_progress() == []


def test_change_cleanup_error_does_not_mask(tmp_path: Path, monkeypatch):
    seen = []
    mgr = _manager(tmp_path, on_cleanup_error=lambda tid, exc: seen.append(tid))

    def fail(tid):
        raise ConfigWriteError("busy")

    monkeypatch.setattr(mgr.storage, "delete_transaction_files", fail)
    with pytest.raises(RuntimeError, match="boom"):
        with mgr.change(Implicit(3)):
            raise RuntimeError("boom")
    assert len(seen) == 1
    assert mgr.list_transactions() == []


def test_change_explicit_keeps_transaction_on_save_failure(tmp_path: Path):
    mgr = _manager(tmp_path)
    t = mgr.begin(3)
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    mgr.storage.transaction_dir = blocker
    with pytest.raises(ConfigWriteError):
        with mgr.change(Explicit(t.id)) as change:
            change.document.sections_delete("ip-reputation", "spoe-agent", "agent1")
    assert mgr.has_transaction(t.id)


def test_non_persistent(tmp_path: Path):
    mgr = _manager(tmp_path, persistent=False)
    t = mgr.begin(3)
    with mgr.change(Explicit(t.id)) as change:
        change.document.sections_delete("ip-reputation", "spoe-agent", "agent1")
    assert not (tmp_path / "tx").exists()
    mgr.commit(t.id)
    assert mgr.get_handle("").sections_get("ip-reputation", "spoe-agent") == []
    assert mgr.recover_on_startup() == []


def test_recover_on_startup(tmp_path: Path):
    mgr = _manager(tmp_path)
    t = mgr.begin(3)
    with mgr.change(Explicit(t.id)) as change:
        change.document.sections_delete("ip-reputation", "spoe-agent", "agent1")

    fresh = TransactionManager(ConfigurationStore(mgr.store.path), mgr.storage)
    assert fresh.recover_on_startup() == [t.id]
    assert fresh.get_handle(t.id).sections_get("ip-reputation", "spoe-agent") == []
    assert fresh.get_handle("").sections_get("ip-reputation", "spoe-agent") == ["agent1"]


def test_recover_skips_broken_transactions(tmp_path: Path):
    mgr = _manager(tmp_path)
    good = mgr.begin(3)
    mgr.storage.transaction_file_path("broken").write_text("    orphan\n")

    fresh = TransactionManager(ConfigurationStore(mgr.store.path), mgr.storage)
    assert fresh.recover_on_startup() == [good.id]
    assert mgr.storage.list_failed() == ["broken"]


def test_recover_strict(tmp_path: Path):
    mgr = _manager(tmp_path)
    mgr.storage.create_transaction_file("broken")
    mgr.storage.transaction_file_path("broken").write_text("    orphan\n")

    fresh = TransactionManager(ConfigurationStore(mgr.store.path), mgr.storage, skip_failed=False)
    with pytest.raises(ConfigReadError):
        fresh.recover_on_startup()
    assert mgr.storage.list_in_progress() == ["broken"]
