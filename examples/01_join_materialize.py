"""
Example 01: Materializing a Joined Query

This example demonstrates turning one wide LEFT JOIN result set into linked,
deduplicated Order -> OrderLine -> Product graphs in a single pass.
"""

from row_graph import register, GraphConfig
from dataclasses import dataclass, field
import logging
import sqlite3


@dataclass
class Product:
    """Product entity"""
    id: int
    name: str


@dataclass
class OrderLine:
    """Order line, links to one product"""
    id: int
    quantity: int
    product: Product | None = None


@dataclass
class Order:
    """Order root with lines collection"""
    id: int
    status: str
    lines: list[OrderLine] = field(default_factory=list)


def main():
    logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    conn = sqlite3.connect(":memory:")
    conn.executescript("""
        CREATE TABLE products (id INTEGER PRIMARY KEY, name TEXT NOT NULL);
        CREATE TABLE orders (id INTEGER PRIMARY KEY, status TEXT NOT NULL);
        CREATE TABLE order_lines (
            id INTEGER PRIMARY KEY,
            order_id INTEGER NOT NULL REFERENCES orders(id),
            product_id INTEGER NOT NULL REFERENCES products(id),
            quantity INTEGER NOT NULL
        );
        INSERT INTO products VALUES (1, 'Pen'), (2, 'Ink');
        INSERT INTO orders VALUES (1, 'paid'), (2, 'open'), (3, 'new');
        INSERT INTO order_lines VALUES (10, 1, 1, 2), (11, 1, 2, 1), (12, 2, 1, 5);
    """)

    print("=== Joined Query Materialization ===\n")

    # Validate the relationship graph once, reuse it for every query
    materializer = (
        register(Order, Order, OrderLine, Product, config=GraphConfig(strict=True))
        .relationship(Order).has_many(OrderLine, "lines")
        .relationship(OrderLine).has_one(Product, "product")
        .build()
    )

    cursor = conn.execute("""
        SELECT
            o.id AS order__id,
            o.status AS order__status,
            l.id AS order_line__id,
            l.quantity AS order_line__quantity,
            p.id AS product__id,
            p.name AS product__name
        FROM orders o
        LEFT JOIN order_lines l ON l.order_id = o.id
        LEFT JOIN products p ON p.id = l.product_id
        ORDER BY o.id, l.id
    """)
    orders = materializer.run(cursor)

    print(f"\nReconstructed {len(orders)} orders:\n")
    for order in orders:
        print(f"Order #{order.id} ({order.status})")
        for line in order.lines:
            print(f"  - {line.quantity} x {line.product.name}")
        if not order.lines:
            print("  (no lines)")
    print()

    # The same Product row appears under two orders but is one instance
    print(f"Shared product instance: {orders[0].lines[0].product is orders[1].lines[0].product}")

    conn.close()


if __name__ == "__main__":
    main()
