"""Contract tests for mapper and descriptor provider protocol compliance."""

from __future__ import annotations

from dataclasses import dataclass, field

from row_graph.core.descriptor import (
    DescriptorProvider,
    ModelDescriptorProvider,
    StaticDescriptorProvider,
)
from row_graph.mapping.builder import register
from row_graph.mapping.protocol import Mapper
from row_graph.mapping.row_mapper import RowMapper


@dataclass
class Line:
    id: int


@dataclass
class Order:
    id: int
    lines: list[Line] = field(default_factory=list)


class TestRowMapperProtocol:
    def test_implements_mapper_protocol(self) -> None:
        assert isinstance(RowMapper(Order), Mapper)

    def test_map_one_and_map_many(self) -> None:
        mapper = RowMapper(Line)
        assert mapper.map_one({"line__id": 1}) == Line(1)
        assert mapper.map_many([{"line__id": 1}, {"line__id": 2}]) == [Line(1), Line(2)]


class TestGraphMaterializerProtocol:
    def test_implements_mapper_protocol(self) -> None:
        materializer = register(Order, Order, Line).relationship(Order).has_many(
            Line, "lines"
        ).build()
        assert isinstance(materializer, Mapper)

    def test_map_many(self) -> None:
        materializer = register(Order, Order, Line).relationship(Order).has_many(
            Line, "lines"
        ).build()
        rows = [{"order__id": 1, "line__id": 1}, {"order__id": 1, "line__id": 2}]
        assert materializer.map_many(rows) == [Order(1, [Line(1), Line(2)])]


class TestDescriptorProviderProtocol:
    def test_providers(self) -> None:
        assert isinstance(ModelDescriptorProvider(), DescriptorProvider)
        assert isinstance(StaticDescriptorProvider(), DescriptorProvider)

    def test_custom_provider(self) -> None:
        class Fixed:
            def describe(self, entity_type: type):
                return ModelDescriptorProvider().describe(entity_type)

        provider = Fixed()
        assert isinstance(provider, DescriptorProvider)
        assert RowMapper(Line, provider=provider).map_one({"line__id": 4}) == Line(4)
