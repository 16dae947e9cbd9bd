"""Unit tests for the relationship graph builder."""

from __future__ import annotations

from dataclasses import FrozenInstanceError, dataclass, field

import pytest

from row_graph.core.config import GraphConfig
from row_graph.core.enums import Cardinality
from row_graph.core.exceptions import (
    CollectionTypeError,
    ConfigurationError,
    DescriptorError,
    DuplicateMapperError,
    DuplicateRelationshipError,
    InvalidMapperError,
    InvalidPropertyError,
    MissingMapperError,
    NotBuiltError,
    PropertyTypeConflictError,
)
from row_graph.mapping.builder import register
from row_graph.mapping.materializer import GraphMaterializer
from row_graph.mapping.row_mapper import RowMapper


@dataclass
class Customer:
    id: int
    name: str | None = None


@dataclass
class VipCustomer(Customer):
    tier: str | None = None


@dataclass
class Product:
    id: int


@dataclass
class Line:
    id: int
    product: Product | None = None


@dataclass
class Order:
    id: int
    status: str | None = None
    customer: Customer | None = None
    lines: list[Line] = field(default_factory=list)
    returns: list[Line] = field(default_factory=list)


@dataclass
class RawOrder:
    id: int
    lines: list = field(default_factory=list)


@dataclass
class LazyOrder:
    id: int
    lines: list[Line] | None = None


@dataclass
class TupleOrder:
    id: int
    lines: tuple[Line, ...] = ()


@dataclass
class Tag:
    id: int


@dataclass
class TaggedOrder:
    id: int
    tags: set[Tag] = field(default_factory=set)


class Unidentified:
    name: str


class TestGraphBuilder:
    def test_build_returns_materializer(self) -> None:
        materializer = (
            register(Order, RowMapper(Order), RowMapper(Line), RowMapper(Product))
            .relationship(Order)
            .has_many(Line, "lines")
            .relationship(Line)
            .has_one(Product, "product")
            .build()
        )
        assert isinstance(materializer, GraphMaterializer)
        plan = materializer.plan
        assert plan.validated
        assert plan.root_type is Order
        assert [edge.describe() for edge in plan.edges] == [
            "Order.has_many(Line, 'lines')",
            "Line.has_one(Product, 'product')",
        ]
        assert plan.edges[0].cardinality is Cardinality.MANY

    def test_classes_are_wrapped_in_row_mappers(self) -> None:
        materializer = register(Order, Order, Line).relationship(Order).has_many(
            Line, "lines"
        ).build()
        assert all(isinstance(m, RowMapper) for m in materializer.plan.mappers)

    def test_plan_is_frozen(self) -> None:
        plan = register(Order, Order).build().plan
        with pytest.raises(FrozenInstanceError):
            plan.validated = False  # type: ignore[misc]

    def test_no_relationships(self) -> None:
        materializer = register(Order, Order, Customer).build()
        assert materializer.plan.edges == ()

    def test_same_child_type_on_two_properties(self) -> None:
        register(Order, Order, Line).relationship(Order).has_many(Line, "lines").relationship(
            Order
        ).has_many(Line, "returns").build()

    def test_descriptor_errors_surface_at_build(self) -> None:
        builder = register(Unidentified, Unidentified)
        with pytest.raises(DescriptorError, match="Unidentified"):
            builder.build()

    def test_run_before_build(self) -> None:
        builder = register(Order, Order, Line).relationship(Order).has_many(Line, "lines")
        with pytest.raises(NotBuiltError, match="Call build"):
            builder.run([{"order__id": 1}])


class TestRegistrationRules:
    def test_root_type_without_mapper(self) -> None:
        with pytest.raises(MissingMapperError, match="Could not find a mapper for type Order"):
            register(Order, Line).build()

    def test_child_type_without_mapper(self) -> None:
        builder = register(Order, Order).relationship(Order).has_many(Line, "lines")
        with pytest.raises(
            MissingMapperError, match="Could not find a mapper for related type Line"
        ):
            builder.build()

    def test_parent_type_without_mapper(self) -> None:
        builder = register(Order, Order, Product).relationship(Line).has_one(Product, "product")
        with pytest.raises(MissingMapperError, match="for type Line") as exc_info:
            builder.build()
        assert exc_info.value.entity_type is Line

    def test_duplicate_mapper(self) -> None:
        with pytest.raises(DuplicateMapperError, match="Duplicate mapper for type Order"):
            register(Order, RowMapper(Order), RowMapper(Order)).build()

    def test_none_mapper(self) -> None:
        with pytest.raises(InvalidMapperError, match="position 1 is None"):
            register(Order, Order, None).build()  # type: ignore[arg-type]

    def test_not_a_row_mapper(self) -> None:
        with pytest.raises(InvalidMapperError, match="expected a RowMapper"):
            register(Order, Order, "Line").build()  # type: ignore[arg-type]

    def test_has_many_without_relationship(self) -> None:
        with pytest.raises(ConfigurationError, match=r"relationship\(\) must be called"):
            register(Order, Order, Line).has_many(Line, "lines")

    def test_dangling_relationship(self) -> None:
        builder = register(Order, Order).relationship(Order)
        with pytest.raises(ConfigurationError, match="missing has_many"):
            builder.build()


class TestPropertyRules:
    def test_unknown_property(self) -> None:
        builder = register(Order, Order, Line).relationship(Order).has_many(Line, "items")
        with pytest.raises(InvalidPropertyError, match="Invalid property name 'items'"):
            builder.build()

    def test_blank_property(self) -> None:
        builder = register(Order, Order, Line).relationship(Order).has_many(Line, " ")
        with pytest.raises(InvalidPropertyError):
            builder.build()

    def test_has_many_on_reference(self) -> None:
        builder = register(Order, Order, Line).relationship(Order).has_many(Line, "status")
        with pytest.raises(CollectionTypeError, match="is not a collection"):
            builder.build()

    def test_has_many_on_immutable_collection(self) -> None:
        builder = register(TupleOrder, TupleOrder, Line).relationship(TupleOrder).has_many(
            Line, "lines"
        )
        with pytest.raises(CollectionTypeError, match="immutable tuple"):
            builder.build()

    def test_set_of_unhashable_children(self) -> None:
        builder = register(TaggedOrder, TaggedOrder, Tag).relationship(TaggedOrder).has_many(
            Tag, "tags"
        )
        with pytest.raises(CollectionTypeError, match="Tag is unhashable") as exc_info:
            builder.build()
        assert exc_info.value.property_name == "tags"

    def test_untyped_collection_rejected_at_build(self) -> None:
        builder = register(RawOrder, RawOrder, Line).relationship(RawOrder).has_many(
            Line, "lines"
        )
        with pytest.raises(CollectionTypeError, match="without an element type"):
            builder.build()

    def test_untyped_collection_with_explicit_element_type(self) -> None:
        register(RawOrder, RawOrder, Line).relationship(RawOrder).has_many(
            Line, "lines", element_type=Line
        ).build()

    def test_untyped_collection_allowed_by_config(self) -> None:
        register(
            RawOrder, RawOrder, Line, config=GraphConfig(require_element_type=False)
        ).relationship(RawOrder).has_many(Line, "lines").build()

    def test_element_type_mismatch(self) -> None:
        builder = register(Order, Order, Product).relationship(Order).has_many(Product, "lines")
        with pytest.raises(CollectionTypeError, match="mismatch") as exc_info:
            builder.build()
        assert exc_info.value.property_name == "lines"

    def test_explicit_element_type_conflicts_with_annotation(self) -> None:
        builder = register(Order, Order, Line).relationship(Order).has_many(
            Line, "lines", element_type=Product
        )
        with pytest.raises(CollectionTypeError, match="element_type=Product"):
            builder.build()

    def test_uninitialized_collection(self) -> None:
        builder = register(LazyOrder, LazyOrder, Line).relationship(LazyOrder).has_many(
            Line, "lines"
        )
        with pytest.raises(CollectionTypeError, match="not initialized"):
            builder.build()

    def test_uninitialized_collection_allowed_by_config(self) -> None:
        register(
            LazyOrder,
            LazyOrder,
            Line,
            config=GraphConfig(require_initialized_collections=False),
        ).relationship(LazyOrder).has_many(Line, "lines").build()

    def test_has_one_type_conflict(self) -> None:
        builder = register(Order, Order, Product).relationship(Order).has_one(Product, "customer")
        with pytest.raises(PropertyTypeConflictError, match="Order.customer"):
            builder.build()

    def test_has_one_subclass_accepted(self) -> None:
        register(Order, Order, VipCustomer).relationship(Order).has_one(
            VipCustomer, "customer"
        ).build()

    def test_has_one_on_collection(self) -> None:
        builder = register(Order, Order, Line).relationship(Order).has_one(Line, "lines")
        with pytest.raises(PropertyTypeConflictError):
            builder.build()

    def test_property_reused_with_different_child(self) -> None:
        builder = (
            register(Order, Order, Customer, VipCustomer)
            .relationship(Order)
            .has_one(Customer, "customer")
            .relationship(Order)
            .has_one(VipCustomer, "customer")
        )
        with pytest.raises(PropertyTypeConflictError, match="targeted by both"):
            builder.build()

    def test_duplicate_relationship(self) -> None:
        builder = (
            register(Order, Order, Line)
            .relationship(Order)
            .has_many(Line, "lines")
            .relationship(Order)
            .has_many(Line, "lines")
        )
        with pytest.raises(DuplicateRelationshipError, match="Order -> Line via 'lines'"):
            builder.build()

    def test_forward_references_resolve_against_registered_types(self) -> None:
        @dataclass
        class LocalLine:
            id: int

        @dataclass
        class LocalOrder:
            id: int
            lines: list[LocalLine] = field(default_factory=list)

        materializer = (
            register(LocalOrder, LocalOrder, LocalLine)
            .relationship(LocalOrder)
            .has_many(LocalLine, "lines")
            .build()
        )
        orders = materializer.run(
            [
                {"local_order__id": 1, "local_line__id": 10},
                {"local_order__id": 1, "local_line__id": 11},
            ]
        )
        assert [line.id for line in orders[0].lines] == [10, 11]


class TestValidationOrder:
    def test_registration_checked_before_duplicates(self) -> None:
        builder = (
            register(Order, Order)
            .relationship(Order)
            .has_many(Line, "lines")
            .relationship(Order)
            .has_many(Line, "lines")
        )
        with pytest.raises(MissingMapperError):
            builder.build()

    def test_mapper_uniqueness_before_properties(self) -> None:
        builder = register(Order, Order, Order, Line).relationship(Order).has_many(
            Line, "items"
        )
        with pytest.raises(DuplicateMapperError):
            builder.build()

    def test_property_existence_before_collection_checks(self) -> None:
        builder = (
            register(Order, Order, Line, Product)
            .relationship(Order)
            .has_many(Product, "lines")
            .relationship(Line)
            .has_one(Product, "missing")
        )
        with pytest.raises(InvalidPropertyError, match="'missing'"):
            builder.build()

    def test_collection_checks_before_reference_checks(self) -> None:
        builder = (
            register(Order, Order, Line, Product)
            .relationship(Order)
            .has_one(Product, "customer")
            .relationship(Order)
            .has_many(Product, "lines")
        )
        with pytest.raises(CollectionTypeError):
            builder.build()

    def test_reference_checks_before_duplicate_edges(self) -> None:
        builder = (
            register(Order, Order, Line, Product)
            .relationship(Order)
            .has_many(Line, "lines")
            .relationship(Order)
            .has_many(Line, "lines")
            .relationship(Order)
            .has_one(Product, "customer")
        )
        with pytest.raises(PropertyTypeConflictError):
            builder.build()
