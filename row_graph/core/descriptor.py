"""Entity descriptors and descriptor providers.

An EntityDescriptor holds the structural facts the mapping layer needs about
one entity type: which property is the identifier, whether the database
generates it, the column prefix used in joined result sets, and the
property -> column mapping.

Descriptors come from a DescriptorProvider. ModelDescriptorProvider infers
them from dataclasses, Pydantic models and plain classes, honoring the
optional @entity(...) decorator. StaticDescriptorProvider serves hand-built
descriptors.
"""

from __future__ import annotations

import dataclasses
import enum
import inspect
import re
import threading
import types
import typing
from collections.abc import Callable, Collection, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Protocol, TypeVar, runtime_checkable

from row_graph.core.exceptions import DescriptorError

T = TypeVar("T")

ENTITY_OPTIONS_ATTR = "__row_graph_entity__"

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


def to_underscore_name(name: str) -> str:
    """Convert camelCase / PascalCase to underscore case.

    Ex: userLastName -> user_last_name, OrderLine -> order_line.
    """
    return _CAMEL_BOUNDARY.sub(r"_\1", name).lower()


@dataclass(frozen=True)
class EntityDescriptor:
    """Read-only structural metadata for one entity type."""

    entity_type: type
    id_property: str
    column_prefix: str
    columns: typing.Mapping[str, str]  # property_name -> column_name (without prefix)
    id_generated: bool = False

    def __post_init__(self) -> None:
        if self.id_property not in self.columns:
            raise DescriptorError(
                self.entity_type,
                f"id property '{self.id_property}' has no column mapping",
            )
        # Freeze the mapping so a shared descriptor cannot be altered
        object.__setattr__(self, "columns", MappingProxyType(dict(self.columns)))

    @property
    def id_column(self) -> str:
        """Full column label of the identifier in a joined row."""
        return self.column_prefix + self.columns[self.id_property]

    def column_for(self, property_name: str) -> str:
        """Full column label for a mapped property."""
        return self.column_prefix + self.columns[property_name]


@runtime_checkable
class DescriptorProvider(Protocol):
    """Capability that resolves an EntityDescriptor for a type."""

    def describe(self, entity_type: type) -> EntityDescriptor:
        """Return the descriptor for entity_type or raise DescriptorError."""
        ...


@dataclass(frozen=True)
class EntityOptions:
    """Options attached to a class by the @entity decorator."""

    id: str = "id"
    id_generated: bool = False
    prefix: str | None = None
    columns: dict[str, str] = field(default_factory=dict)
    exclude: frozenset[str] = frozenset()


def entity(
    id: str = "id",  # noqa: A002
    *,
    id_generated: bool = False,
    prefix: str | None = None,
    columns: dict[str, str] | None = None,
    exclude: Iterable[str] = (),
) -> Callable[[type[T]], type[T]]:
    """Declare entity metadata on a class.

    Args:
        id: Name of the identifier property.
        id_generated: Whether the database generates the identifier.
        prefix: Column prefix in joined rows. Defaults to the underscore
                class name + "__".
        columns: Explicit property -> column overrides.
        exclude: Properties that have no column. Collections of entity
                 classes (e.g. list[OrderLine]) are excluded automatically;
                 collections of scalars (e.g. list[str]) keep a column.
    """
    options = EntityOptions(
        id=id,
        id_generated=id_generated,
        prefix=prefix,
        columns=dict(columns or {}),
        exclude=frozenset(exclude),
    )

    def decorate(cls: type[T]) -> type[T]:
        setattr(cls, ENTITY_OPTIONS_ATTR, options)
        return cls

    return decorate


def get_field_names(cls: type) -> list[str]:
    """Extract property names from a class (dataclass, Pydantic, or plain)."""
    # Pydantic model
    if hasattr(cls, "model_fields"):
        return list(cls.model_fields.keys())

    # Dataclass
    if dataclasses.is_dataclass(cls):
        return [f.name for f in dataclasses.fields(cls)]

    # Plain class - class annotations first, then __init__ parameters
    names: list[str] = []
    for klass in reversed(cls.__mro__):
        for name in inspect.get_annotations(klass):
            if not name.startswith("_") and name not in names:
                names.append(name)
    try:
        sig = inspect.signature(cls.__init__)  # type: ignore[misc]
    except (ValueError, TypeError):
        return names
    for name, param in sig.parameters.items():
        if name == "self" or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        if name not in names:
            names.append(name)
    return names


def _collection_default(cls: type, name: str) -> bool:
    """True when the property defaults to a fresh collection."""
    if hasattr(cls, "model_fields"):
        info = cls.model_fields.get(name)
        if info is None:
            return False
        if info.default_factory in (list, set):
            return True
        return isinstance(info.default, (list, set))
    if dataclasses.is_dataclass(cls):
        for f in dataclasses.fields(cls):
            if f.name == name:
                return f.default_factory in (list, set)
    return False


# Element classes from these modules are column values, not entities
_SCALAR_MODULES = frozenset({"builtins", "datetime", "decimal", "uuid", "ipaddress", "pathlib"})


def _is_entity_collection_hint(hint: Any) -> bool:
    """True for collections of classes, e.g. list[OrderLine] but not list[str]."""
    if typing.get_origin(hint) in (typing.Union, types.UnionType):
        return any(_is_entity_collection_hint(arg) for arg in typing.get_args(hint))
    origin = typing.get_origin(hint) or hint
    if not (
        isinstance(origin, type)
        and issubclass(origin, Collection)
        and not issubclass(origin, (str, bytes, bytearray, Mapping))
    ):
        return False
    args = [arg for arg in typing.get_args(hint) if arg is not Ellipsis]
    if len(args) != 1:
        return False
    element = args[0]
    if isinstance(element, (str, typing.ForwardRef)):
        return True
    if not isinstance(element, type) or issubclass(element, enum.Enum):
        return False
    return element.__module__ not in _SCALAR_MODULES


def _field_hints(cls: type) -> dict[str, Any]:
    if hasattr(cls, "model_fields"):
        return {name: info.annotation for name, info in cls.model_fields.items()}
    try:
        return typing.get_type_hints(cls)
    except NameError:
        # Unresolvable forward references
        return {}


def _relationship_properties(cls: type, names: list[str]) -> set[str]:
    """Collections of entity classes, which are populated by relationships and have no column.

    Collections of scalars such as ``list[str]`` keep their column. When the
    annotations cannot be resolved, properties defaulting to a fresh list or
    set are treated as relationships.
    """
    hints = _field_hints(cls)
    found = set()
    for name in names:
        if name in hints:
            if _is_entity_collection_hint(hints[name]):
                found.add(name)
        elif _collection_default(cls, name):
            found.add(name)
    return found


class StaticDescriptorProvider:
    """Serves hand-built descriptors.

    Args:
        descriptors: Descriptors to register up front.
    """

    def __init__(self, descriptors: Iterable[EntityDescriptor] = ()) -> None:
        self._descriptors: dict[type, EntityDescriptor] = {}
        for descriptor in descriptors:
            self.add(descriptor)

    def add(self, descriptor: EntityDescriptor) -> None:
        self._descriptors[descriptor.entity_type] = descriptor

    def describe(self, entity_type: type) -> EntityDescriptor:
        try:
            return self._descriptors[entity_type]
        except KeyError:
            raise DescriptorError(entity_type, "no descriptor registered") from None


class ModelDescriptorProvider:
    """Infers descriptors from class structure and @entity options.

    Descriptors are cached per type; the cache is safe to share across
    threads.
    """

    def __init__(self) -> None:
        self._cache: dict[type, EntityDescriptor] = {}
        self._lock = threading.Lock()

    def describe(self, entity_type: type) -> EntityDescriptor:
        descriptor = self._cache.get(entity_type)
        if descriptor is not None:
            return descriptor
        descriptor = self._infer(entity_type)
        with self._lock:
            return self._cache.setdefault(entity_type, descriptor)

    def _infer(self, entity_type: type) -> EntityDescriptor:
        if not isinstance(entity_type, type):
            raise DescriptorError(entity_type, "not a class")

        options: EntityOptions = getattr(entity_type, ENTITY_OPTIONS_ATTR, None) or EntityOptions()
        names = get_field_names(entity_type)
        if not names:
            raise DescriptorError(entity_type, "no mappable properties found")
        if options.id not in names:
            raise DescriptorError(
                entity_type, f"id property '{options.id}' is not a property of the class"
            )

        unknown = set(options.columns) - set(names)
        if unknown:
            raise DescriptorError(
                entity_type, f"column overrides for unknown properties {sorted(unknown)}"
            )

        skipped = options.exclude | _relationship_properties(entity_type, names)
        skipped -= set(options.columns)
        if options.id in skipped:
            raise DescriptorError(entity_type, f"id property '{options.id}' cannot be excluded")

        columns = {
            name: options.columns.get(name, to_underscore_name(name)).lower()
            for name in names
            if name not in skipped
        }
        prefix = options.prefix
        if prefix is None:
            prefix = to_underscore_name(entity_type.__name__) + "__"

        return EntityDescriptor(
            entity_type=entity_type,
            id_property=options.id,
            column_prefix=prefix.lower(),
            columns=columns,
            id_generated=options.id_generated,
        )


default_provider = ModelDescriptorProvider()
