"""Relationship cardinality enumeration."""

from __future__ import annotations

from enum import Enum


class Cardinality(Enum):
    """Supported relationship cardinalities."""

    ONE = "one"
    MANY = "many"
