"""Batch merge of separately fetched children into existing parents.

The two-query alternative to a single wide join: fetch the parents, fetch
all their children in one query (e.g. ``WHERE order_id IN (...)``), then
stitch the children onto the parents by join key.

    merge_into(orders, lines, "lines", "order_id")
    merge_into(orders, customers, "customer", "customer_id", cardinality=Cardinality.ONE)

For has_many the join key is read off each child and matched against the
parent key (the parent's id property by default). For has_one the join key
is read off each parent and matched against the child key (the child's id
property by default).
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from collections.abc import Callable, Iterable, MutableSequence, MutableSet
from dataclasses import dataclass
from typing import Any, Union

from row_graph.core.config import GraphConfig
from row_graph.core.descriptor import DescriptorProvider, default_provider
from row_graph.core.enums import Cardinality
from row_graph.core.exceptions import CollectionTypeError, DescriptorError, InvalidPropertyError
from row_graph.mapping.accessors import accessors_for
from row_graph.mapping.validation import check_relationship

logger = logging.getLogger(__name__)

KeySelector = Union[str, Callable[[Any], Any]]


def _id_property(entity_type: type, provider: DescriptorProvider | None) -> str:
    """The descriptor's id property, or "id" for types without metadata."""
    try:
        return (provider or default_provider).describe(entity_type).id_property
    except DescriptorError:
        return "id"


def _read(obj: Any, key: KeySelector) -> Any:
    if isinstance(key, str):
        return accessors_for(type(obj)).getter(key)(obj)
    return key(obj)


def _first(items: Iterable[Any]) -> Any:
    return next((item for item in items if item is not None), None)


def _replace_collection(parent: Any, property_name: str, children: list[Any]) -> None:
    """Make the parent's collection hold exactly ``children``, in place when possible.

    Immutable tuples and frozensets are replaced by a new instance of the
    same type.
    """
    table = accessors_for(type(parent))
    current = table.getter(property_name)(parent)
    if current is None:
        table.setter(property_name)(parent, list(children))
    elif isinstance(current, MutableSequence):
        current.clear()
        current.extend(children)
    elif isinstance(current, (MutableSet, tuple, frozenset)):
        try:
            if isinstance(current, MutableSet):
                current.clear()
                current.update(children)
            else:
                table.setter(property_name)(parent, type(current)(children))
        except TypeError as e:
            raise CollectionTypeError(type(parent), property_name, str(e)) from e
    else:
        raise CollectionTypeError(
            type(parent),
            property_name,
            f"holds a {type(current).__name__}, which has_many() merge cannot populate",
        )


def merge_into(
    parents: list[Any] | None,
    children: list[Any] | None,
    target_property: str,
    join_key: KeySelector,
    *,
    cardinality: Cardinality = Cardinality.MANY,
    parent_key: KeySelector | None = None,
    child_key: KeySelector | None = None,
    provider: DescriptorProvider | None = None,
) -> None:
    """Attach children to parents by join key.

    Args:
        parents: Already materialized parents. Mutated in place.
        children: Separately fetched children.
        target_property: Property on the parents to populate.
        join_key: Property name or callable. Read off each child for
                  has_many, off each parent for has_one.
        cardinality: Cardinality.MANY (default) or Cardinality.ONE.
        parent_key: has_many only. What the child join key is matched
                    against. Defaults to the parent's id property.
        child_key: has_one only. What the parent join key is matched
                   against. Defaults to the child's id property.
        provider: Descriptor provider used to find id properties.

    Empty or None ``parents`` or ``children`` is a no-op.
    """
    if not parents or not children:
        return

    if cardinality is Cardinality.MANY:
        _merge_many(parents, children, target_property, join_key, parent_key, provider)
    else:
        _merge_one(parents, children, target_property, join_key, child_key, provider)


def _merge_many(
    parents: list[Any],
    children: list[Any],
    target_property: str,
    join_key: KeySelector,
    parent_key: KeySelector | None,
    provider: DescriptorProvider | None,
) -> None:
    # join key value -> children in first-seen order
    groups: dict[Any, list[Any]] = {}
    for child in children:
        if child is None:
            continue
        value = _read(child, join_key)
        if value is not None:
            groups.setdefault(value, []).append(child)

    first_parent = _first(parents)
    if first_parent is None:
        return
    key = parent_key if parent_key is not None else _id_property(type(first_parent), provider)

    matched = 0
    for parent in parents:
        if parent is None:
            continue
        value = _read(parent, key)
        if value is None:
            continue
        group = groups.get(value, [])
        if group:
            matched += 1
        _replace_collection(parent, target_property, group)

    logger.debug(
        "Merged %d child(ren) into '%s' of %d parent(s), %d matched",
        len(children),
        target_property,
        len(parents),
        matched,
    )


def _merge_one(
    parents: list[Any],
    children: list[Any],
    target_property: str,
    join_key: KeySelector,
    child_key: KeySelector | None,
    provider: DescriptorProvider | None,
) -> None:
    first_child = _first(children)
    if first_child is None:
        return
    key = child_key if child_key is not None else _id_property(type(first_child), provider)

    by_key: dict[Any, Any] = {}
    for child in children:
        if child is None:
            continue
        value = _read(child, key)
        if value is not None:
            by_key.setdefault(value, child)

    matched = 0
    for parent in parents:
        if parent is None:
            continue
        value = _read(parent, join_key)
        related = by_key.get(value) if value is not None else None
        if related is not None:
            matched += 1
        accessors_for(type(parent)).setter(target_property)(parent, related)

    logger.debug(
        "Merged %d child(ren) into '%s' of %d parent(s), %d matched",
        len(children),
        target_property,
        len(parents),
        matched,
    )


@dataclass(frozen=True)
class MergeSpec:
    """A validated batch merge declaration."""

    parent_type: type
    child_type: type
    cardinality: Cardinality
    target_property: str
    join_key: KeySelector
    parent_key: KeySelector | None = None
    child_key: KeySelector | None = None
    element_type: Any = None


class BatchMergeLoader:
    """Validates merge declarations once and applies them to object lists.

    Declarations are checked with the same rules as relationship graphs.
    Successfully validated declarations are cached, so repeated merges of
    the same shape skip validation.

    Args:
        provider: Descriptor provider used to find id properties.
        config: Graph configuration. Defaults to GraphConfig().
    """

    def __init__(
        self,
        provider: DescriptorProvider | None = None,
        config: GraphConfig | None = None,
    ) -> None:
        self._provider = provider
        self._config = config or GraphConfig()
        self._validated: OrderedDict[MergeSpec, None] = OrderedDict()
        self._lock = threading.Lock()

    def has_many(
        self,
        parent_type: type,
        child_type: type,
        target_property: str,
        join_key: KeySelector,
        *,
        parent_key: KeySelector | None = None,
        element_type: Any = None,
    ) -> MergeSpec:
        """Declare a has_many merge: children grouped by join_key."""
        return self._validate(
            MergeSpec(
                parent_type=parent_type,
                child_type=child_type,
                cardinality=Cardinality.MANY,
                target_property=target_property,
                join_key=join_key,
                parent_key=parent_key,
                element_type=element_type,
            )
        )

    def has_one(
        self,
        parent_type: type,
        child_type: type,
        target_property: str,
        join_key: KeySelector,
        *,
        child_key: KeySelector | None = None,
    ) -> MergeSpec:
        """Declare a has_one merge: parents reference children by join_key."""
        return self._validate(
            MergeSpec(
                parent_type=parent_type,
                child_type=child_type,
                cardinality=Cardinality.ONE,
                target_property=target_property,
                join_key=join_key,
                child_key=child_key,
            )
        )

    def merge(
        self,
        spec: MergeSpec,
        parents: list[Any] | None,
        children: list[Any] | None,
    ) -> None:
        """Apply a validated spec. Empty inputs are a no-op."""
        self._validate(spec)
        merge_into(
            parents,
            children,
            spec.target_property,
            spec.join_key,
            cardinality=spec.cardinality,
            parent_key=spec.parent_key,
            child_key=spec.child_key,
            provider=self._provider,
        )

    def _validate(self, spec: MergeSpec) -> MergeSpec:
        with self._lock:
            if spec in self._validated:
                self._validated.move_to_end(spec)
                return spec

        namespace = {t.__name__: t for t in (spec.parent_type, spec.child_type)}
        check_relationship(
            accessors_for(spec.parent_type),
            spec.target_property,
            spec.child_type,
            spec.cardinality,
            self._config,
            element_type=spec.element_type,
            namespace=namespace,
        )
        # The join key lives on the child for has_many, on the parent for has_one
        key_owner = spec.child_type if spec.cardinality is Cardinality.MANY else spec.parent_type
        if isinstance(spec.join_key, str) and not accessors_for(key_owner).has_property(
            spec.join_key
        ):
            raise InvalidPropertyError(key_owner, spec.join_key)

        with self._lock:
            self._validated[spec] = None
            while len(self._validated) > self._config.merge_cache_size:
                self._validated.popitem(last=False)
        return spec
