"""Row-to-entity mapper.

A RowMapper decodes one entity type out of a (possibly joined) row using the
type's EntityDescriptor: columns are read as ``column_prefix + column`` and
matched case-insensitively. A null identifier column means the entity is
absent from that row, which is how the empty side of an outer join shows up.

Supports dataclasses, Pydantic models, and plain classes.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Generic, TypeVar

from pydantic import ValidationError

from row_graph.core.descriptor import DescriptorProvider, EntityDescriptor, default_provider
from row_graph.core.exceptions import ColumnMismatchError
from row_graph.core.row import Row, iter_rows
from row_graph.mapping.accessors import TypeAccessors, accessors_for

T = TypeVar("T")


class RowMapper(Generic[T]):
    """Builds instances of one entity type from rows.

    Args:
        entity_type: The class to construct from row data.
        descriptor: Structural metadata for entity_type. Resolved through
                    ``provider`` when omitted.
        provider: Descriptor provider used when no descriptor is given.
                  Defaults to the shared ModelDescriptorProvider.
    """

    def __init__(
        self,
        entity_type: type[T],
        descriptor: EntityDescriptor | None = None,
        *,
        provider: DescriptorProvider | None = None,
    ) -> None:
        if descriptor is None:
            descriptor = (provider or default_provider).describe(entity_type)
        self._entity_type = entity_type
        self._descriptor = descriptor
        self._accessors: TypeAccessors = accessors_for(entity_type)
        self._id_column = descriptor.id_column.lower()
        # (property_name, full column label) pairs, resolved once
        self._columns = tuple(
            (prop, descriptor.column_for(prop).lower()) for prop in descriptor.columns
        )

    @property
    def entity_type(self) -> type[T]:
        return self._entity_type

    @property
    def descriptor(self) -> EntityDescriptor:
        return self._descriptor

    @property
    def accessors(self) -> TypeAccessors:
        return self._accessors

    def identity(self, row: Mapping[str, Any]) -> Any:
        """Return the identifier value in row, or None if absent."""
        return _as_row(row).get(self._id_column)

    def build(self, row: Mapping[str, Any]) -> T | None:
        """Build one instance from row, or None if the id column is null.

        Columns the row does not carry are left to the class defaults.
        """
        row = _as_row(row)
        if row.get(self._id_column) is None:
            return None

        values = {prop: row[col] for prop, col in self._columns if col in row}
        try:
            return self._accessors.construct(values)  # type: ignore[no-any-return]
        except ValidationError as e:
            raise ColumnMismatchError(self._entity_type.__name__, [str(e)]) from e
        except TypeError as e:
            raise ColumnMismatchError(self._entity_type.__name__, [str(e)]) from e

    def map_one(self, row: Mapping[str, Any]) -> T | None:
        """Map a single row; None if the entity is absent from it."""
        return self.build(row)

    def map_many(self, rows: Iterable[Mapping[str, Any]]) -> list[T]:
        """Map every row, skipping rows where the entity is absent."""
        results = []
        for row in iter_rows(rows):
            instance = self.build(row)
            if instance is not None:
                results.append(instance)
        return results

    def __repr__(self) -> str:
        return f"RowMapper({self._entity_type.__name__}, prefix={self._descriptor.column_prefix!r})"


def _as_row(row: Mapping[str, Any]) -> Row:
    return row if isinstance(row, Row) else Row(row)
