from __future__ import annotations


class SpoeConfError(Exception):
    """Base class for spoeconf errors."""


class ConfigReadError(SpoeConfError):
    """Raised when a configuration file cannot be read or parsed."""

    def __init__(self, path, reason: str | None = None) -> None:
        self.path = path
        msg = f"cannot read {path}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class ConfigWriteError(SpoeConfError):
    """Raised when a configuration or transaction file cannot be written."""


class InvalidTransaction(SpoeConfError):
    """Raised for an empty or malformed transaction id."""


class TransactionNotFound(SpoeConfError):
    def __init__(self, transaction_id: str) -> None:
        self.transaction_id = transaction_id
        super().__init__(f"transaction {transaction_id} does not exist")


class TransactionAlreadyExists(SpoeConfError):
    def __init__(self, transaction_id: str) -> None:
        self.transaction_id = transaction_id
        super().__init__(f"transaction {transaction_id} already exists")


class VersionMismatch(SpoeConfError):
    """Raised when the caller's version does not match the stored one."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"version mismatch, have version {actual}, given {expected}")


class VersionReadError(SpoeConfError):
    """Raised when the version marker cannot be read."""


class VersionWriteError(SpoeConfError):
    """Raised when the version marker cannot be persisted."""


class _ObjectError(SpoeConfError):
    def __init__(
        self,
        message: str,
        *,
        object_id: str | None = None,
        parent_type: str = "",
        parent_name: str = "",
    ) -> None:
        self.object_id = object_id
        self.parent_type = parent_type
        self.parent_name = parent_name
        super().__init__(message)


class ObjectNotFound(_ObjectError):
    """Raised when a scope, section or directive does not exist."""


class ParentNotFound(_ObjectError):
    """Raised when the object containing the target does not exist."""


class ObjectAlreadyExists(_ObjectError):
    """Raised when creating an object that is already present."""


class ObjectIndexOutOfRange(_ObjectError):
    """Raised when a directive index is outside the existing range."""


__all__ = [
    "SpoeConfError",
    "ConfigReadError",
    "ConfigWriteError",
    "InvalidTransaction",
    "TransactionNotFound",
    "TransactionAlreadyExists",
    "VersionMismatch",
    "VersionReadError",
    "VersionWriteError",
    "ObjectNotFound",
    "ParentNotFound",
    "ObjectAlreadyExists",
    "ObjectIndexOutOfRange",
]
