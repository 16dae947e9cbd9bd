"""Relationship target property validation.

Shared by GraphBuilder.build() and BatchMergeLoader so that a property that
can be populated by a joined query can also be populated by a batch merge,
and vice versa.
"""

from __future__ import annotations

import types
import typing
from collections.abc import Iterable
from collections.abc import Set as AbstractSet
from typing import Any, ForwardRef

from row_graph.core.config import GraphConfig
from row_graph.core.enums import Cardinality
from row_graph.core.exceptions import (
    CollectionTypeError,
    InvalidPropertyError,
    PropertyTypeConflictError,
)
from row_graph.mapping.accessors import TypeAccessors

_IMMUTABLE_COLLECTIONS = (tuple, frozenset)


def _type_name(hint: Any) -> str:
    return getattr(hint, "__name__", str(hint))


def same_type(declared: Any, entity_type: type) -> bool:
    """Compare a declared element type with an entity class."""
    if declared is entity_type:
        return True
    if isinstance(declared, ForwardRef):
        declared = declared.__forward_arg__
    if isinstance(declared, str):
        return declared == entity_type.__name__
    return False


def _accepts(hint: Any, child_type: type) -> bool:
    """Whether a has_one property declared as ``hint`` can hold child_type."""
    if hint is None or hint is Any:
        return True
    if isinstance(hint, (str, ForwardRef)):
        return same_type(hint, child_type)
    if typing.get_origin(hint) in (typing.Union, types.UnionType):
        members = [m for m in typing.get_args(hint) if m is not type(None)]
        return any(_accepts(m, child_type) for m in members)
    return isinstance(hint, type) and issubclass(child_type, hint)


def check_property_exists(accessors: TypeAccessors, property_name: str) -> None:
    if not isinstance(property_name, str) or not property_name.strip():
        raise InvalidPropertyError(accessors.cls, str(property_name))
    if not accessors.has_property(property_name):
        raise InvalidPropertyError(accessors.cls, property_name)


def check_collection_property(
    accessors: TypeAccessors,
    property_name: str,
    child_type: type,
    config: GraphConfig,
    *,
    element_type: Any = None,
    namespace: dict[str, Any] | None = None,
) -> None:
    """Validate a has_many target property.

    The property must be a mutable collection whose element type is the
    child type, and new parents must start with an initialized collection.
    """
    parent_type = accessors.cls
    declared = accessors.property_type(property_name, namespace)

    if declared.hint is not None and not declared.is_collection:
        raise CollectionTypeError(
            parent_type,
            property_name,
            "is not a collection. has_many() relationship requires it to be a collection",
        )
    if declared.collection_type is not None and issubclass(
        declared.collection_type, _IMMUTABLE_COLLECTIONS
    ):
        raise CollectionTypeError(
            parent_type,
            property_name,
            f"is an immutable {declared.collection_type.__name__}. "
            "has_many() relationship requires a mutable collection",
        )

    if (
        element_type is not None
        and declared.element_type is not None
        and not same_type(declared.element_type, element_type)
    ):
        raise CollectionTypeError(
            parent_type,
            property_name,
            f"has element type {_type_name(declared.element_type)} but "
            f"element_type={_type_name(element_type)} was declared",
        )

    element = element_type if element_type is not None else declared.element_type
    if element is None:
        if config.require_element_type:
            raise CollectionTypeError(
                parent_type,
                property_name,
                "collections without an element type are not supported. "
                "Annotate it (e.g. list[Child]) or pass element_type=",
            )
    elif not same_type(element, child_type):
        raise CollectionTypeError(
            parent_type,
            property_name,
            f"collection element type and has_many relationship type mismatch. "
            f"Element type is {_type_name(element)} while the has_many relationship "
            f"is of type {child_type.__name__}",
        )

    if (
        declared.collection_type is not None
        and issubclass(declared.collection_type, AbstractSet)
        and child_type.__hash__ is None
    ):
        raise CollectionTypeError(
            parent_type,
            property_name,
            f"is a {declared.collection_type.__name__} but {child_type.__name__} is "
            "unhashable. Use a list, or make the class hashable (e.g. frozen=True)",
        )

    if config.require_initialized_collections and accessors.has_collection_default(
        property_name
    ) is False:
        raise CollectionTypeError(
            parent_type,
            property_name,
            "is not initialized. Only initialized collections can be populated; "
            "give it an empty collection default",
        )


def check_reference_property(
    accessors: TypeAccessors,
    property_name: str,
    child_type: type,
    *,
    namespace: dict[str, Any] | None = None,
) -> None:
    """Validate a has_one target property against the child type."""
    declared = accessors.property_type(property_name, namespace)
    if declared.is_collection or not _accepts(declared.hint, child_type):
        raise PropertyTypeConflictError(
            accessors.cls,
            property_name,
            f"is of type {_type_name(declared.hint)} while type for has_one "
            f"relationship is {child_type.__name__}",
        )


def check_property_reuse(
    parent_type: type,
    property_name: str,
    targets: Iterable[tuple[type, Cardinality]],
) -> None:
    """Reject a property populated by edges of different child type or cardinality."""
    seen: tuple[type, Cardinality] | None = None
    for child_type, cardinality in targets:
        if seen is None:
            seen = (child_type, cardinality)
            continue
        if (child_type, cardinality) != seen:
            raise PropertyTypeConflictError(
                parent_type,
                property_name,
                f"is targeted by both {seen[1].value} {seen[0].__name__} and "
                f"{cardinality.value} {child_type.__name__}",
            )


def check_relationship(
    accessors: TypeAccessors,
    property_name: str,
    child_type: type,
    cardinality: Cardinality,
    config: GraphConfig,
    *,
    element_type: Any = None,
    namespace: dict[str, Any] | None = None,
) -> None:
    """Run the property checks for one relationship, in validation order."""
    check_property_exists(accessors, property_name)
    if cardinality is Cardinality.MANY:
        check_collection_property(
            accessors,
            property_name,
            child_type,
            config,
            element_type=element_type,
            namespace=namespace,
        )
    else:
        check_reference_property(accessors, property_name, child_type, namespace=namespace)
