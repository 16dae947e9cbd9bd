"""row_graph - materialize joined SQL rows into linked object graphs."""

from __future__ import annotations

from row_graph.core.config import GraphConfig
from row_graph.core.descriptor import (
    DescriptorProvider,
    EntityDescriptor,
    ModelDescriptorProvider,
    StaticDescriptorProvider,
    entity,
)
from row_graph.core.enums import Cardinality
from row_graph.core.exceptions import (
    CollectionElementError,
    CollectionTypeError,
    ColumnMismatchError,
    ConfigurationError,
    CursorError,
    DescriptorError,
    DuplicateMapperError,
    DuplicateRelationshipError,
    InvalidMapperError,
    InvalidPropertyError,
    MappingError,
    MissingMapperError,
    NotBuiltError,
    PropertyTypeConflictError,
    RowGraphError,
    RuntimeDataError,
    StrictModeViolation,
    UninitializedCollectionError,
)
from row_graph.core.row import Row, iter_rows
from row_graph.mapping.builder import GraphBuilder, register
from row_graph.mapping.materializer import GraphMaterializer
from row_graph.mapping.merge import BatchMergeLoader, MergeSpec, merge_into
from row_graph.mapping.row_mapper import RowMapper

__all__ = [
    # Config
    "GraphConfig",
    # Descriptors
    "EntityDescriptor",
    "DescriptorProvider",
    "ModelDescriptorProvider",
    "StaticDescriptorProvider",
    "entity",
    # Rows
    "Row",
    "iter_rows",
    # Mapping
    "RowMapper",
    "register",
    "GraphBuilder",
    "GraphMaterializer",
    # Batch merge
    "merge_into",
    "BatchMergeLoader",
    "MergeSpec",
    # Enums
    "Cardinality",
    # Exceptions
    "RowGraphError",
    "ConfigurationError",
    "DescriptorError",
    "MissingMapperError",
    "InvalidMapperError",
    "DuplicateMapperError",
    "InvalidPropertyError",
    "CollectionTypeError",
    "PropertyTypeConflictError",
    "DuplicateRelationshipError",
    "RuntimeDataError",
    "NotBuiltError",
    "UninitializedCollectionError",
    "CollectionElementError",
    "MappingError",
    "ColumnMismatchError",
    "StrictModeViolation",
    "CursorError",
]
