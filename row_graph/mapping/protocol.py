"""Mapper protocol.

Row mappers and the graph materializer both implement this interface:
map_one decodes a single row, map_many decodes a whole row source.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Protocol, TypeVar, runtime_checkable

T_co = TypeVar("T_co", covariant=True)


@runtime_checkable
class Mapper(Protocol[T_co]):
    """Base mapper protocol."""

    def map_one(self, row: Mapping[str, Any]) -> T_co | None:
        """Map a single row to a target object."""
        ...

    def map_many(self, rows: Iterable[Mapping[str, Any]]) -> list[T_co]:
        """Map multiple rows to a list of target objects."""
        ...
