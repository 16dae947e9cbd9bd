"""Row abstraction and row source adaptation.

A Row is one cursor position: an ordered, case-insensitive, read-only
mapping from column label to value. iter_rows() turns the row sources
callers typically hold (DB-API cursors, lists of dicts, driver row objects)
into a forward-only stream of Rows.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any


class Row(Mapping[str, Any]):
    """Case-insensitive, ordered, read-only view over one result row."""

    __slots__ = ("_values", "_labels")

    def __init__(self, data: Mapping[str, Any] | Iterable[tuple[str, Any]]) -> None:
        items = data.items() if isinstance(data, Mapping) else data
        self._values: dict[str, Any] = {}
        self._labels: dict[str, str] = {}
        for label, value in items:
            key = label.lower()
            if key not in self._labels:
                self._labels[key] = label
            self._values[key] = value

    @classmethod
    def from_sequence(cls, columns: list[str], values: Iterable[Any]) -> Row:
        """Build a Row from column labels and a tuple-like row."""
        return cls(zip(columns, values, strict=True))

    def __getitem__(self, column: str) -> Any:
        return self._values[column.lower()]

    def __contains__(self, column: object) -> bool:
        return isinstance(column, str) and column.lower() in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._labels.values())

    def __len__(self) -> int:
        return len(self._values)

    def get(self, column: str, default: Any = None) -> Any:
        return self._values.get(column.lower(), default)

    def __repr__(self) -> str:
        body = ", ".join(f"{label!r}: {self._values[key]!r}" for key, label in self._labels.items())
        return f"Row({{{body}}})"


def _to_row(raw: Any, columns: list[str] | None) -> Row:
    """Convert one raw row to a Row.

    Handles both dict-like rows and tuple-like rows from different drivers.
    """
    if isinstance(raw, Row):
        return raw
    if isinstance(raw, Mapping):
        return Row(raw)
    # Driver rows such as sqlite3.Row expose keys() without being Mappings
    if hasattr(raw, "keys"):
        return Row((key, raw[key]) for key in raw.keys())
    if columns is None:
        raise TypeError(
            f"Cannot read columns from a {type(raw).__name__} row without a cursor description"
        )
    return Row.from_sequence(columns, raw)


def _iter_cursor(cursor: Any) -> Iterator[Row]:
    """Stream rows from a DB-API cursor one fetchone() at a time."""
    if cursor.description is None:
        return
    columns = [desc[0] for desc in cursor.description]
    while True:
        raw = cursor.fetchone()
        if raw is None:
            return
        yield _to_row(raw, columns)


def iter_rows(source: Any) -> Iterator[Row]:
    """Iterate any supported row source as Rows.

    Args:
        source: A DB-API cursor (has ``description`` and ``fetchone``), or an
            iterable of mappings / driver rows.

    Returns:
        A forward-only iterator of Row instances.
    """
    if hasattr(source, "description") and hasattr(source, "fetchone"):
        return _iter_cursor(source)
    return (_to_row(raw, None) for raw in source)
