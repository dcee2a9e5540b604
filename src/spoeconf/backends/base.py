from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import IO, TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from ..document import ConfigDocument


class BaseBackend(ABC):
    """Abstract base backend."""

    suffixes: tuple[str, ...] = ()

    @abstractmethod
    def load(self, path: Path) -> ConfigDocument:
        pass

    @abstractmethod
    def save(self, path: Path, document: ConfigDocument) -> None:
        pass


@contextmanager
def atomic_write(path: Path) -> Iterator[IO[str]]:
    """Write *path* through a sibling ``.tmp`` file replaced on success."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        with tmp.open("w", encoding="utf-8") as fh:
            yield fh
        tmp.replace(path)
    finally:
        if tmp.exists():
            tmp.unlink()
