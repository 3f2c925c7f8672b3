from __future__ import annotations

from typing import TypedDict


# PUBLIC_INTERFACE
class TodoEntity(TypedDict, total=False):
    """
    A Todo row as returned by the storage layer.

    Fields:
    - id: Unique integer identifier assigned by storage
    - title: Trimmed, non-empty title
    - completed: Boolean completion flag

    Any other column present in the todos table (e.g. created_at) is carried
    along under its column name.
    """

    id: int
    title: str
    completed: bool
