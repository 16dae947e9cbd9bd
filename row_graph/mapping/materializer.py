"""Graph materializer.

Single-pass reconstruction of linked entity graphs from joined rows using
an identity map per run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from row_graph.core.enums import Cardinality
from row_graph.core.exceptions import (
    CollectionElementError,
    CursorError,
    NotBuiltError,
    RowGraphError,
    StrictModeViolation,
    UninitializedCollectionError,
)
from row_graph.core.row import Row, iter_rows
from row_graph.mapping.identity import IdentityMap
from row_graph.mapping.plan import GraphPlan, RelationshipEdge

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class _Link:
    """An edge bound to the parent type's accessor functions."""

    edge: RelationshipEdge
    read: Callable[[Any], Any]
    write: Callable[[Any, Any], None]


class GraphMaterializer(Generic[T]):
    """Turns a row source into a list of linked root entities.

    Instances are produced by GraphBuilder.build(). A materializer is
    immutable and may be reused for any number of runs.
    """

    def __init__(self, plan: GraphPlan) -> None:
        self._plan = plan
        self._links = tuple(
            _Link(
                edge=edge,
                read=mapper.accessors.getter(edge.target_property),
                write=mapper.accessors.setter(edge.target_property),
            )
            for edge in plan.edges
            if (mapper := plan.mapper_for(edge.parent_type)) is not None
        )

    @property
    def plan(self) -> GraphPlan:
        return self._plan

    @property
    def root_type(self) -> type[T]:
        return self._plan.root_type

    def run(self, rows: Iterable[Mapping[str, Any]] | Any) -> list[T]:
        """Materialize root entities from a row source.

        Args:
            rows: An iterable of row mappings or a DB-API cursor.

        Returns:
            Root instances in order of first appearance, with relationship
            properties populated.

        Raises:
            NotBuiltError: If the plan was not produced by build().
            CursorError: If the row source fails mid-iteration.
        """
        plan = self._plan
        if not plan.validated:
            raise NotBuiltError(plan.root_type)

        identity = IdentityMap(mapper.entity_type for mapper in plan.mappers)
        roots: list[T] = []
        row_count = 0

        for row in _guarded(rows):
            if row_count == 0 and plan.config.strict:
                self._validate_strict(row)
            row_count += 1

            # entity_type -> (identifier, instance) for entities present on this row
            present: dict[type, tuple[Any, Any]] = {}
            for mapper in plan.mappers:
                entity_type = mapper.entity_type
                key = mapper.identity(row)
                if key is None:
                    continue
                instance = identity.get(entity_type, key)
                if instance is None:
                    instance = mapper.build(row)
                    identity.add(entity_type, key, instance)
                    if entity_type is plan.root_type:
                        roots.append(instance)
                present[entity_type] = (key, instance)

            for link in self._links:
                parent = present.get(link.edge.parent_type)
                child = present.get(link.edge.child_type)
                if parent is None or child is None:
                    continue
                self._apply(link, parent, child, identity)

        logger.debug(
            "Materialized %d %s root(s) from %d row(s), %d distinct entities",
            len(roots),
            plan.root_type.__name__,
            row_count,
            len(identity),
        )
        return roots

    def _apply(
        self,
        link: _Link,
        parent: tuple[Any, Any],
        child: tuple[Any, Any],
        identity: IdentityMap,
    ) -> None:
        edge = link.edge
        parent_key, parent_instance = parent
        child_key, child_instance = child

        if edge.cardinality is Cardinality.ONE:
            link.write(parent_instance, child_instance)
            return

        if not identity.claim_member(edge.parent_type, parent_key, edge.target_property, child_key):
            return
        collection = link.read(parent_instance)
        if collection is None:
            raise UninitializedCollectionError(edge.parent_type, edge.target_property)
        if hasattr(collection, "append"):
            collection.append(child_instance)
            return
        if not hasattr(collection, "add"):
            raise CollectionElementError(
                edge.parent_type,
                edge.target_property,
                f"{type(collection).__name__} has no append() or add()",
            )
        try:
            collection.add(child_instance)
        except TypeError as e:
            raise CollectionElementError(edge.parent_type, edge.target_property, str(e)) from e

    def _validate_strict(self, sample_row: Row) -> None:
        """Validate the mapping against the first row's columns in strict mode."""
        plan = self._plan
        linked = {(edge.parent_type, edge.target_property) for edge in plan.edges}

        for mapper in plan.mappers:
            descriptor = mapper.descriptor
            for prop in descriptor.columns:
                if (mapper.entity_type, prop) in linked:
                    continue
                column = descriptor.column_for(prop)
                if column not in sample_row:
                    raise StrictModeViolation(
                        f"Missing mapped column '{column}' for property "
                        f"'{prop}' in {mapper.entity_type.__name__}"
                    )

        known_prefixes = {mapper.descriptor.column_prefix.lower() for mapper in plan.mappers}
        for column in sample_row:
            lowered = column.lower()
            if any(lowered.startswith(prefix) for prefix in known_prefixes):
                continue
            if "__" in lowered:
                prefix = lowered[: lowered.index("__") + 2]
                raise StrictModeViolation(
                    f"Unknown prefix group '{prefix}' in column '{column}'. "
                    f"Known prefixes: {sorted(known_prefixes)}"
                )

    def map_one(self, row: Mapping[str, Any]) -> T:
        """Not supported for relationship graphs."""
        raise NotImplementedError(
            "GraphMaterializer.map_one is not supported. Use run() or map_many() "
            "to materialize graphs from joined result sets."
        )

    def map_many(self, rows: Iterable[Mapping[str, Any]]) -> list[T]:
        """Mapper protocol entry point, same as run()."""
        return self.run(rows)


def _guarded(rows: Any) -> Iterator[Row]:
    """Iterate a row source, wrapping its failures in CursorError."""
    try:
        source = iter_rows(rows)
    except Exception as e:
        raise CursorError(str(e)) from e
    while True:
        try:
            row = next(source)
        except StopIteration:
            return
        except RowGraphError:
            raise
        except Exception as e:
            raise CursorError(str(e)) from e
        yield row
