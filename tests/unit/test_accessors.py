"""Unit tests for per-type property accessors."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest
from pydantic import BaseModel, Field

from row_graph.mapping.accessors import accessors_for


@dataclass
class Line:
    id: int


@dataclass
class Order:
    id: int
    lines: list[Line] = field(default_factory=list)
    tags: set[str] = field(default_factory=set)
    raw: list = field(default_factory=list)
    pending: list[Line] | None = None
    frozen_lines: tuple[Line, ...] = ()
    note: str | None = None


@dataclass(frozen=True)
class Snapshot:
    id: int
    lines: list[Line] = field(default_factory=list)


class Cart(BaseModel):
    id: int
    lines: list[Line] = Field(default_factory=list)
    later: list[Line] | None = None


class Legacy:
    def __init__(self) -> None:
        self.id = None
        self.lines = []


class Exploding:
    id: int

    def __init__(self) -> None:
        raise RuntimeError("connection required")


class TestTypeAccessors:
    def test_registry_returns_same_table(self) -> None:
        assert accessors_for(Order) is accessors_for(Order)

    def test_has_property(self) -> None:
        table = accessors_for(Order)
        assert table.has_property("lines")
        assert not table.has_property("items")

    def test_has_property_on_plain_instance_attribute(self) -> None:
        assert accessors_for(Legacy).has_property("lines")

    def test_property_type_collection(self) -> None:
        declared = accessors_for(Order).property_type("lines")
        assert declared.is_collection
        assert declared.collection_type is list
        assert declared.element_type is Line

    def test_property_type_optional_collection(self) -> None:
        declared = accessors_for(Order).property_type("pending")
        assert declared.is_collection
        assert declared.element_type is Line

    def test_property_type_raw_collection(self) -> None:
        declared = accessors_for(Order).property_type("raw")
        assert declared.is_collection
        assert declared.element_type is None

    def test_strings_are_not_collections(self) -> None:
        assert not accessors_for(Order).property_type("note").is_collection

    def test_unannotated_plain_attribute(self) -> None:
        declared = accessors_for(Legacy).property_type("lines")
        assert declared.is_collection
        assert declared.element_type is None

    def test_collection_defaults(self) -> None:
        table = accessors_for(Order)
        assert table.has_collection_default("lines") is True
        assert table.has_collection_default("pending") is False
        assert accessors_for(Cart).has_collection_default("lines") is True
        assert accessors_for(Cart).has_collection_default("later") is False
        assert accessors_for(Legacy).has_collection_default("lines") is True

    def test_setter_on_frozen_dataclass(self) -> None:
        snapshot = Snapshot(id=1)
        accessors_for(Snapshot).setter("lines")(snapshot, [Line(1)])
        assert snapshot.lines == [Line(1)]

    def test_getter(self) -> None:
        order = Order(id=1)
        assert accessors_for(Order).getter("id")(order) == 1

    def test_construct_pydantic(self) -> None:
        cart = accessors_for(Cart).construct({"id": 4})
        assert isinstance(cart, Cart)
        assert cart.lines == []

    def test_forward_reference_needs_namespace(self) -> None:
        @dataclass
        class LocalLine:
            id: int

        @dataclass
        class LocalOrder:
            id: int
            lines: list[LocalLine] = field(default_factory=list)

        table = accessors_for(LocalOrder)
        assert table.property_type("lines").hint is None
        declared = table.property_type("lines", {"LocalLine": LocalLine})
        assert declared.element_type is LocalLine

    def test_pydantic_annotation(self) -> None:
        declared = accessors_for(Cart).property_type("later")
        assert declared.is_collection
        assert declared.element_type is Line

    def test_constructor_failures_propagate(self) -> None:
        with pytest.raises(RuntimeError, match="connection required"):
            accessors_for(Exploding).has_property("missing")
