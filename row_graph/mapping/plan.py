"""Relationship graph plan data classes.

Frozen dataclasses representing a compiled relationship graph. Only
GraphBuilder.build() produces a plan marked as validated; the materializer
refuses to run anything else.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from row_graph.core.config import GraphConfig
from row_graph.core.enums import Cardinality
from row_graph.mapping.row_mapper import RowMapper


@dataclass(frozen=True)
class RelationshipEdge:
    """One declared relationship: parent.target_property holds child(ren)."""

    parent_type: type
    child_type: type
    cardinality: Cardinality
    target_property: str
    element_type: Any = None  # declared element type, has_many only

    @property
    def key(self) -> tuple[type, type, str]:
        return (self.parent_type, self.child_type, self.target_property)

    def describe(self) -> str:
        verb = "has_many" if self.cardinality is Cardinality.MANY else "has_one"
        return (
            f"{self.parent_type.__name__}.{verb}("
            f"{self.child_type.__name__}, '{self.target_property}')"
        )


@dataclass(frozen=True)
class GraphPlan:
    """Compiled relationship graph."""

    root_type: type
    mappers: tuple[RowMapper[Any], ...]
    edges: tuple[RelationshipEdge, ...] = ()
    config: GraphConfig = field(default_factory=GraphConfig)
    validated: bool = False

    def mapper_for(self, entity_type: type) -> RowMapper[Any] | None:
        for mapper in self.mappers:
            if mapper.entity_type is entity_type:
                return mapper
        return None
