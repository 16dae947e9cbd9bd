"""Shared test fixtures."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator

import pytest

from row_graph.core.descriptor import ModelDescriptorProvider


@pytest.fixture
def provider() -> ModelDescriptorProvider:
    """A fresh descriptor provider, so inferred descriptors are not shared."""
    return ModelDescriptorProvider()


@pytest.fixture
def sqlite_conn() -> Iterator[sqlite3.Connection]:
    """SQLite in-memory connection."""
    conn = sqlite3.connect(":memory:")
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def failing_rows():
    """Helper producing a row source that raises after yielding some rows.

    Usage:
        failing_rows([{"order__id": 1}], OSError("connection reset"))
    """

    def _rows(rows: list[dict], error: Exception):
        yield from rows
        raise error

    return _rows
