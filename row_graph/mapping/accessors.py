"""Per-type accessor tables.

An accessor table is built once per entity type and holds get/set pairs
keyed by property name, plus the property type information needed to
validate relationships. Mapping code goes through the table instead of
introspecting classes on every row.
"""

from __future__ import annotations

import dataclasses
import inspect
import operator
import threading
import types
import typing
from collections.abc import Callable, Collection, Mapping
from dataclasses import dataclass
from typing import Any

from row_graph.core.descriptor import get_field_names

_MISSING = object()


@dataclass(frozen=True)
class PropertyType:
    """Resolved declaration of one property.

    ``hint`` is None when the property carries no usable annotation.
    """

    hint: Any
    is_collection: bool
    collection_type: type | None
    element_type: Any


def _unwrap_optional(hint: Any) -> Any:
    """Strip ``X | None`` / ``Optional[X]`` down to ``X``."""
    origin = typing.get_origin(hint)
    if origin is typing.Union or origin is types.UnionType:
        args = [arg for arg in typing.get_args(hint) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return hint


def _describe_hint(hint: Any) -> PropertyType:
    if hint is None:
        return PropertyType(hint=None, is_collection=False, collection_type=None, element_type=None)
    hint = _unwrap_optional(hint)
    origin = typing.get_origin(hint)
    container = origin if origin is not None else hint
    is_collection = (
        isinstance(container, type)
        and issubclass(container, Collection)
        and not issubclass(container, (str, bytes, bytearray, Mapping))
    )
    element_type = None
    if is_collection:
        args = [arg for arg in typing.get_args(hint) if arg is not Ellipsis]
        if len(args) == 1:
            element_type = args[0]
    return PropertyType(
        hint=hint,
        is_collection=is_collection,
        collection_type=container if is_collection else None,
        element_type=element_type,
    )


class TypeAccessors:
    """Accessor table for one entity class.

    Args:
        cls: The entity class.
    """

    def __init__(self, cls: type) -> None:
        self.cls = cls
        self.properties: tuple[str, ...] = tuple(get_field_names(cls))
        self.is_pydantic = hasattr(cls, "model_fields") and hasattr(cls, "model_validate")
        self.is_dataclass = dataclasses.is_dataclass(cls)
        self._frozen = self.is_dataclass and cls.__dataclass_params__.frozen  # type: ignore[attr-defined]
        self._init_params = self._constructor_parameters()
        self._types: dict[str, PropertyType] = {}
        self._getters: dict[str, Callable[[Any], Any]] = {}
        self._setters: dict[str, Callable[[Any, Any], None]] = {}
        self._probe_instance: Any = _MISSING
        self._lock = threading.Lock()

    def _constructor_parameters(self) -> frozenset[str] | None:
        """Keyword names accepted by __init__, or None if it takes **kwargs."""
        if self.is_pydantic:
            return frozenset(self.properties)
        try:
            sig = inspect.signature(self.cls)
        except (ValueError, TypeError):
            return frozenset()
        names = set()
        for name, param in sig.parameters.items():
            if param.kind is param.VAR_KEYWORD:
                return None
            if param.kind in (param.POSITIONAL_OR_KEYWORD, param.KEYWORD_ONLY):
                names.add(name)
        return frozenset(names)

    def _probe(self) -> Any:
        """A default-constructed instance of a plain class, or None."""
        if self.is_pydantic or self.is_dataclass:
            return None
        if self._probe_instance is _MISSING:
            try:
                self._probe_instance = self.cls()
            except TypeError:
                # Constructor needs arguments
                self._probe_instance = None
        return self._probe_instance

    def has_property(self, name: str) -> bool:
        if name in self.properties:
            return True
        # Properties defined as plain class attributes or descriptors
        if any(name in vars(klass) for klass in self.cls.__mro__ if klass is not object):
            return True
        probe = self._probe()
        return probe is not None and hasattr(probe, name)

    def getter(self, name: str) -> Callable[[Any], Any]:
        get = self._getters.get(name)
        if get is None:
            get = self._getters.setdefault(name, operator.attrgetter(name))
        return get

    def setter(self, name: str) -> Callable[[Any, Any], None]:
        set_ = self._setters.get(name)
        if set_ is not None:
            return set_

        if self._frozen:

            def set_(obj: Any, value: Any) -> None:
                object.__setattr__(obj, name, value)

        else:

            def set_(obj: Any, value: Any) -> None:
                setattr(obj, name, value)

        return self._setters.setdefault(name, set_)

    def construct(self, values: dict[str, Any]) -> Any:
        """Create an instance from property values.

        Values the constructor does not accept are assigned after
        construction.
        """
        if self.is_pydantic:
            return self.cls.model_validate(values)  # type: ignore[attr-defined]
        if self._init_params is None:
            return self.cls(**values)
        kwargs = {k: v for k, v in values.items() if k in self._init_params}
        obj = self.cls(**kwargs)
        for name, value in values.items():
            if name not in kwargs:
                self.setter(name)(obj, value)
        return obj

    def property_type(
        self, name: str, namespace: dict[str, Any] | None = None
    ) -> PropertyType:
        """Resolve the declared type of a property.

        Names in ``namespace`` are used to resolve string annotations that
        refer to classes not visible from the defining module.
        """
        cached = self._types.get(name)
        if cached is not None:
            return cached
        resolved = _describe_hint(self._resolve_hint(name, namespace or {}))
        if resolved.hint is None:
            probe = self._probe()
            value = getattr(probe, name, None) if probe is not None else None
            if value is not None:
                # Unannotated attribute: the runtime value's class is all we know
                return _describe_hint(type(value))
            # Unresolved now, a later call may bring the missing names
            return resolved
        with self._lock:
            return self._types.setdefault(name, resolved)

    def _resolve_hint(self, name: str, namespace: dict[str, Any]) -> Any:
        if self.is_pydantic:
            info = self.cls.model_fields.get(name)  # type: ignore[attr-defined]
            if info is not None:
                return info.annotation
        for klass in self.cls.__mro__:
            if name not in inspect.get_annotations(klass):
                continue
            try:
                hints = typing.get_type_hints(
                    klass, localns={klass.__name__: klass, **namespace}
                )
            except NameError:
                # Unresolvable forward reference
                return None
            return hints.get(name)
        return None

    def has_collection_default(self, name: str) -> bool | None:
        """Whether new instances start with a non-None collection.

        Returns None when this cannot be known without an instance.
        """
        if self.is_pydantic:
            info = self.cls.model_fields.get(name)  # type: ignore[attr-defined]
            if info is None:
                return None
            if info.default_factory is not None:
                return True
            return info.default is not None and not info.is_required()
        if self.is_dataclass:
            for f in dataclasses.fields(self.cls):
                if f.name == name:
                    if f.default_factory is not dataclasses.MISSING:
                        return True
                    return f.default is not dataclasses.MISSING and f.default is not None
            return None
        probe = self._probe()
        if probe is not None and hasattr(probe, name):
            return getattr(probe, name) is not None
        value = getattr(self.cls, name, _MISSING)
        if value is None:
            return False
        return None


_registry: dict[type, TypeAccessors] = {}
_registry_lock = threading.Lock()


def accessors_for(cls: type) -> TypeAccessors:
    """Return the shared accessor table for cls, building it on first use."""
    table = _registry.get(cls)
    if table is not None:
        return table
    table = TypeAccessors(cls)
    with _registry_lock:
        return _registry.setdefault(cls, table)
