"""Relationship graph DSL builder.

Provides a fluent builder for declaring which registered entity types link
to which, and compiles the declarations into a validated GraphPlan:

    materializer = (
        register(Order, RowMapper(Order), RowMapper(OrderLine), RowMapper(Product))
        .relationship(Order).has_many(OrderLine, "lines")
        .relationship(OrderLine).has_one(Product, "product")
        .build()
    )
    orders = materializer.run(cursor)

All validation happens in build(); a graph that builds never fails
validation at run time.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any

from row_graph.core.config import GraphConfig
from row_graph.core.descriptor import DescriptorProvider
from row_graph.core.enums import Cardinality
from row_graph.core.exceptions import (
    ConfigurationError,
    DuplicateMapperError,
    DuplicateRelationshipError,
    InvalidMapperError,
    MissingMapperError,
    NotBuiltError,
)
from row_graph.mapping.materializer import GraphMaterializer
from row_graph.mapping.plan import GraphPlan, RelationshipEdge
from row_graph.mapping.row_mapper import RowMapper
from row_graph.mapping.validation import (
    check_collection_property,
    check_property_exists,
    check_property_reuse,
    check_reference_property,
)

logger = logging.getLogger(__name__)


def register(
    root_type: type,
    mapper: RowMapper[Any] | type,
    *mappers: RowMapper[Any] | type,
    config: GraphConfig | None = None,
    provider: DescriptorProvider | None = None,
) -> GraphBuilder:
    """Entry point for the relationship graph DSL.

    Args:
        root_type: The type whose instances run() returns.
        mapper: Row mapper for one registered type. A bare class is
                wrapped in a RowMapper resolved through ``provider``
                when build() runs.
        *mappers: Row mappers for the other types present in the rows.
        config: Graph configuration. Defaults to GraphConfig().
        provider: Descriptor provider for classes passed instead of mappers.

    Returns:
        A builder for chaining relationship declarations.
    """
    return GraphBuilder(root_type, [mapper, *mappers], config or GraphConfig(), provider)


class GraphBuilder:
    """Fluent builder for relationship graph definitions."""

    def __init__(
        self,
        root_type: type,
        mappers: list[RowMapper[Any] | type | None],
        config: GraphConfig,
        provider: DescriptorProvider | None = None,
    ) -> None:
        self._root_type = root_type
        self._mappers = mappers
        self._config = config
        self._provider = provider
        self._edges: list[RelationshipEdge] = []
        self._pending_parent: type | None = None
        self._dangling: list[type] = []

    def relationship(self, parent_type: type) -> GraphBuilder:
        """Start a relationship declaration on parent_type."""
        if self._pending_parent is not None:
            self._dangling.append(self._pending_parent)
        self._pending_parent = parent_type
        return self

    def has_many(
        self,
        child_type: type,
        property_name: str,
        *,
        element_type: Any = None,
    ) -> GraphBuilder:
        """Declare a one-to-many relationship populated into a collection.

        Args:
            child_type: The related type.
            property_name: Collection property on the parent type.
            element_type: Declared element type of the collection. When
                          given, it is compared to child_type instead of
                          the property's annotation.
        """
        self._add_edge(Cardinality.MANY, child_type, property_name, element_type)
        return self

    def has_one(self, child_type: type, property_name: str) -> GraphBuilder:
        """Declare a one-to-one relationship populated into a reference."""
        self._add_edge(Cardinality.ONE, child_type, property_name, None)
        return self

    def _add_edge(
        self,
        cardinality: Cardinality,
        child_type: type,
        property_name: str,
        element_type: Any,
    ) -> None:
        verb = "has_many" if cardinality is Cardinality.MANY else "has_one"
        if self._pending_parent is None:
            raise ConfigurationError(f"relationship() must be called before {verb}()")
        self._edges.append(
            RelationshipEdge(
                parent_type=self._pending_parent,
                child_type=child_type,
                cardinality=cardinality,
                target_property=property_name,
                element_type=element_type,
            )
        )
        self._pending_parent = None

    def run(self, rows: Any) -> list[Any]:
        """Rows can only be processed by the materializer build() returns."""
        raise NotBuiltError(self._root_type)

    def build(self) -> GraphMaterializer[Any]:
        """Validate the declarations and compile them into a materializer.

        Raises:
            ConfigurationError: On the first rule violated, naming the
                offending type and property.
        """
        if self._pending_parent is not None:
            self._dangling.append(self._pending_parent)
            self._pending_parent = None
        if self._dangling:
            raise ConfigurationError(
                f"relationship({self._dangling[0].__name__}) is missing has_many() or has_one()"
            )

        # Wrap classes registered in place of mappers
        mappers = [
            RowMapper(m, provider=self._provider) if isinstance(m, type) else m
            for m in self._mappers
        ]
        by_type = self._check_mappers_registered(mappers)
        self._check_mapper_uniqueness(mappers)

        namespace = {t.__name__: t for t in by_type}
        for edge in self._edges:
            check_property_exists(by_type[edge.parent_type].accessors, edge.target_property)

        for edge in self._edges:
            if edge.cardinality is Cardinality.MANY:
                check_collection_property(
                    by_type[edge.parent_type].accessors,
                    edge.target_property,
                    edge.child_type,
                    self._config,
                    element_type=edge.element_type,
                    namespace=namespace,
                )

        targets: dict[tuple[type, str], list[tuple[type, Cardinality]]] = defaultdict(list)
        for edge in self._edges:
            if edge.cardinality is Cardinality.ONE:
                check_reference_property(
                    by_type[edge.parent_type].accessors,
                    edge.target_property,
                    edge.child_type,
                    namespace=namespace,
                )
            targets[(edge.parent_type, edge.target_property)].append(
                (edge.child_type, edge.cardinality)
            )
        for (parent_type, property_name), declared in targets.items():
            check_property_reuse(parent_type, property_name, declared)

        seen: set[tuple[type, type, str]] = set()
        for edge in self._edges:
            if edge.key in seen:
                raise DuplicateRelationshipError(
                    edge.parent_type, edge.child_type, edge.target_property
                )
            seen.add(edge.key)

        plan = GraphPlan(
            root_type=self._root_type,
            mappers=tuple(m for m in mappers if m is not None),
            edges=tuple(self._edges),
            config=self._config,
            validated=True,
        )
        logger.debug(
            "Built relationship graph for %s: types=%s edges=%s",
            self._root_type.__name__,
            [m.entity_type.__name__ for m in plan.mappers],
            [edge.describe() for edge in plan.edges],
        )
        return GraphMaterializer(plan)

    def _check_mappers_registered(
        self, mappers: list[Any]
    ) -> dict[type, RowMapper[Any]]:
        """Every root, parent and child type must have a mapper."""
        by_type: dict[type, RowMapper[Any]] = {}
        for mapper in mappers:
            if isinstance(mapper, RowMapper):
                by_type.setdefault(mapper.entity_type, mapper)

        if self._root_type not in by_type:
            raise MissingMapperError(self._root_type)
        for edge in self._edges:
            if edge.parent_type not in by_type:
                raise MissingMapperError(edge.parent_type)
            if edge.child_type not in by_type:
                raise MissingMapperError(edge.child_type, related=True)
        return by_type

    def _check_mapper_uniqueness(self, mappers: list[Any]) -> None:
        seen: set[type] = set()
        for position, mapper in enumerate(mappers):
            if mapper is None:
                raise InvalidMapperError(f"Mapper at position {position} is None")
            if not isinstance(mapper, RowMapper):
                raise InvalidMapperError(
                    f"Mapper at position {position} is a {type(mapper).__name__}, "
                    "expected a RowMapper"
                )
            if mapper.entity_type in seen:
                raise DuplicateMapperError(mapper.entity_type)
            seen.add(mapper.entity_type)
