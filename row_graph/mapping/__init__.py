"""Mapping layer - turn joined rows into linked object graphs."""

from __future__ import annotations

from row_graph.mapping.builder import GraphBuilder, register
from row_graph.mapping.identity import IdentityMap
from row_graph.mapping.materializer import GraphMaterializer
from row_graph.mapping.merge import BatchMergeLoader, MergeSpec, merge_into
from row_graph.mapping.plan import GraphPlan, RelationshipEdge
from row_graph.mapping.row_mapper import RowMapper

__all__ = [
    "RowMapper",
    "GraphBuilder",
    "register",
    "GraphMaterializer",
    "GraphPlan",
    "RelationshipEdge",
    "IdentityMap",
    "BatchMergeLoader",
    "MergeSpec",
    "merge_into",
]
