"""
Example 02: Batch Merge

This example demonstrates the two-query alternative to a wide join: fetch
orders, fetch all their lines with one IN query, then attach the lines to
the orders by join key.
"""

from row_graph import RowMapper, BatchMergeLoader
from dataclasses import dataclass, field
import sqlite3


@dataclass
class Customer:
    """Customer entity"""
    id: int
    name: str


@dataclass
class OrderLine:
    """Order line entity"""
    id: int
    order_id: int
    quantity: int


@dataclass
class Order:
    """Order with a customer reference and lines collection"""
    id: int
    customer_id: int
    customer: Customer | None = None
    lines: list[OrderLine] = field(default_factory=list)


def main():
    conn = sqlite3.connect(":memory:")
    conn.executescript("""
        CREATE TABLE customers (id INTEGER PRIMARY KEY, name TEXT NOT NULL);
        CREATE TABLE orders (id INTEGER PRIMARY KEY, customer_id INTEGER NOT NULL);
        CREATE TABLE order_lines (
            id INTEGER PRIMARY KEY,
            order_id INTEGER NOT NULL,
            quantity INTEGER NOT NULL
        );
        INSERT INTO customers VALUES (1, 'Alice'), (2, 'Bob');
        INSERT INTO orders VALUES (1, 1), (2, 2), (3, 1);
        INSERT INTO order_lines VALUES (10, 1, 2), (11, 1, 1), (12, 2, 5);
    """)

    print("=== Batch Merge ===\n")

    # Declarations are validated once and cached by the loader
    loader = BatchMergeLoader()
    lines_spec = loader.has_many(Order, OrderLine, "lines", "order_id")
    customer_spec = loader.has_one(Order, Customer, "customer", "customer_id")

    orders = RowMapper(Order).map_many(conn.execute(
        "SELECT id AS order__id, customer_id AS order__customer_id FROM orders ORDER BY id"
    ))

    ids = [order.id for order in orders]
    placeholders = ", ".join("?" for _ in ids)
    lines = RowMapper(OrderLine).map_many(conn.execute(
        "SELECT id AS order_line__id, order_id AS order_line__order_id, "
        "quantity AS order_line__quantity "
        f"FROM order_lines WHERE order_id IN ({placeholders}) ORDER BY id",
        ids,
    ))
    customer_ids = sorted({order.customer_id for order in orders})
    placeholders = ", ".join("?" for _ in customer_ids)
    customers = RowMapper(Customer).map_many(conn.execute(
        f"SELECT id AS customer__id, name AS customer__name FROM customers WHERE id IN ({placeholders})",
        customer_ids,
    ))

    loader.merge(lines_spec, orders, lines)
    loader.merge(customer_spec, orders, customers)

    for order in orders:
        print(f"Order #{order.id} for {order.customer.name}: "
              f"{[line.id for line in order.lines]}")

    conn.close()


if __name__ == "__main__":
    main()
