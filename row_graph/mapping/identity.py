"""Identity map for a single materialization run."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


class IdentityMap:
    """Per-run cache guaranteeing one instance per (entity type, identifier).

    Also records, per parent instance and collection property, which child
    identifiers have already been appended, so fan-out rows never add the
    same child twice to one parent.
    """

    def __init__(self, entity_types: Iterable[type] = ()) -> None:
        self._instances: dict[type, dict[Any, Any]] = {t: {} for t in entity_types}
        # (parent_type, parent_key, property_name) -> child keys already linked
        self._members: dict[tuple[type, Any, str], set[Any]] = {}

    def get(self, entity_type: type, key: Any) -> Any:
        """Return the instance for key, or None if not seen yet."""
        return self._instances.setdefault(entity_type, {}).get(key)

    def add(self, entity_type: type, key: Any, instance: Any) -> None:
        self._instances.setdefault(entity_type, {})[key] = instance

    def claim_member(
        self, parent_type: type, parent_key: Any, property_name: str, child_key: Any
    ) -> bool:
        """Record child_key under the parent's collection.

        Returns True the first time a child key is claimed for that parent
        collection, False afterwards.
        """
        members = self._members.setdefault((parent_type, parent_key, property_name), set())
        if child_key in members:
            return False
        members.add(child_key)
        return True

    def __len__(self) -> int:
        return sum(len(by_key) for by_key in self._instances.values())
