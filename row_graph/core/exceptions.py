"""row_graph exception hierarchy.

Configuration problems surface from build(), never from run(). Raw row
source exceptions are wrapped in CursorError and never exposed to callers.
"""

from __future__ import annotations


def _type_name(entity_type: object) -> str:
    return getattr(entity_type, "__name__", repr(entity_type))


class RowGraphError(Exception):
    """Base exception for all row_graph errors."""


# --- Configuration ---


class ConfigurationError(RowGraphError):
    """Raised when a relationship graph or merge spec fails validation."""


class DescriptorError(ConfigurationError):
    """Raised when a type carries no usable identifier metadata."""

    def __init__(self, entity_type: type, detail: str) -> None:
        self.entity_type = entity_type
        super().__init__(f"Cannot describe {_type_name(entity_type)}: {detail}")


class MissingMapperError(ConfigurationError):
    """Raised when a root, parent or child type has no registered mapper."""

    def __init__(self, entity_type: type, related: bool = False) -> None:
        self.entity_type = entity_type
        kind = "related type" if related else "type"
        super().__init__(f"Could not find a mapper for {kind} {_type_name(entity_type)}")


class InvalidMapperError(ConfigurationError):
    """Raised when a registered mapper is None or not a row mapper."""


class DuplicateMapperError(ConfigurationError):
    """Raised when two mappers are registered for the same type."""

    def __init__(self, entity_type: type) -> None:
        self.entity_type = entity_type
        super().__init__(f"Duplicate mapper for type {_type_name(entity_type)}")


class InvalidPropertyError(ConfigurationError):
    """Raised when a relationship targets a property the parent does not have."""

    def __init__(self, parent_type: type, property_name: str) -> None:
        self.parent_type = parent_type
        self.property_name = property_name
        super().__init__(
            f"Invalid property name '{property_name}' for class {_type_name(parent_type)}"
        )


class CollectionTypeError(ConfigurationError):
    """Raised when a has_many target is not a properly typed collection."""

    def __init__(self, parent_type: type, property_name: str, detail: str) -> None:
        self.parent_type = parent_type
        self.property_name = property_name
        super().__init__(f"Property {_type_name(parent_type)}.{property_name}: {detail}")


class PropertyTypeConflictError(ConfigurationError):
    """Raised when a has_one target type, or a reused property, conflicts."""

    def __init__(self, parent_type: type, property_name: str, detail: str) -> None:
        self.parent_type = parent_type
        self.property_name = property_name
        super().__init__(
            f"Property type conflict. Property {_type_name(parent_type)}.{property_name} {detail}"
        )


class DuplicateRelationshipError(ConfigurationError):
    """Raised when the same (parent, child, property) edge is declared twice."""

    def __init__(self, parent_type: type, child_type: type, property_name: str) -> None:
        self.parent_type = parent_type
        self.child_type = child_type
        self.property_name = property_name
        super().__init__(
            f"Duplicate relationship {_type_name(parent_type)} -> "
            f"{_type_name(child_type)} via '{property_name}'"
        )


# --- Runtime ---


class RuntimeDataError(RowGraphError):
    """Raised during run() for programmer-level misuse."""


class NotBuiltError(RuntimeDataError):
    """Raised when rows are processed before build() completed."""

    def __init__(self, root_type: type | None = None) -> None:
        self.root_type = root_type
        target = f" for {_type_name(root_type)}" if root_type is not None else ""
        super().__init__(
            f"Relationship graph{target} is not fully built. Call build() before run()"
        )


class UninitializedCollectionError(RuntimeDataError):
    """Raised when a has_many target holds None instead of a collection."""

    def __init__(self, parent_type: type, property_name: str) -> None:
        self.parent_type = parent_type
        self.property_name = property_name
        super().__init__(
            "Only initialized collections can be populated. Collection property "
            f"{_type_name(parent_type)}.{property_name} is not initialized."
        )


class CollectionElementError(RuntimeDataError):
    """Raised when a child cannot be added to the collection found at run time."""

    def __init__(self, parent_type: type, property_name: str, detail: str) -> None:
        self.parent_type = parent_type
        self.property_name = property_name
        super().__init__(
            f"Cannot add to collection property {_type_name(parent_type)}.{property_name}: {detail}"
        )


# --- Mapping ---


class MappingError(RowGraphError):
    """Base for row decoding errors."""


class ColumnMismatchError(MappingError):
    """Raised when an entity cannot be constructed from row columns."""

    def __init__(self, target_class: str, details: list[str]) -> None:
        self.target_class = target_class
        self.details = details
        super().__init__(f"Cannot map to {target_class}: {details}")


class StrictModeViolation(MappingError):
    """Raised in strict mode for mapping integrity violations."""


# --- Row source ---


class CursorError(RowGraphError):
    """Raised when the row source fails mid-iteration."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Row source failed: {detail}")
