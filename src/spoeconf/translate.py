"""Map low-level document failures to :mod:`spoeconf.errors`."""
from __future__ import annotations

from .document import FetchError, IndexOutOfRangeError, SectionExistsError, SectionMissingError
from .errors import ObjectAlreadyExists, ObjectIndexOutOfRange, ObjectNotFound, ParentNotFound


def translate_error(
    exc: BaseException,
    object_id: str,
    parent_type: str = "",
    parent_name: str = "",
) -> BaseException:
    """Return the domain error for *exc*.

    Errors that are not document signals are returned unchanged.
    """
    if isinstance(exc, SectionMissingError):
        if parent_name:
            return ParentNotFound(
                f"{parent_type} {parent_name} does not exist",
                object_id=object_id,
                parent_type=parent_type,
                parent_name=parent_name,
            )
        return ObjectNotFound(f"object {object_id} does not exist", object_id=object_id)
    if isinstance(exc, SectionExistsError):
        return ObjectAlreadyExists(f"object {object_id} already exists", object_id=object_id)
    if isinstance(exc, FetchError):
        return ObjectNotFound(
            f"object {object_id} does not exist in {parent_type} {parent_name}",
            object_id=object_id,
            parent_type=parent_type,
            parent_name=parent_name,
        )
    if isinstance(exc, IndexOutOfRangeError):
        return ObjectIndexOutOfRange(
            f"object with id {object_id} in {parent_type} {parent_name} out of range",
            object_id=object_id,
            parent_type=parent_type,
            parent_name=parent_name,
        )
    return exc
