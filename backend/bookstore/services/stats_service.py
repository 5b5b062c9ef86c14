# Overview: Read-only admin statistics over users, books and orders.

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Book, Order, OrderItem, User
from ..time_utils import utcnow
from ..validation import money_to_str


TOP_BOOKS_LIMIT = 5
DAILY_SALES_DAYS = 14

CENTS = Decimal("0.01")


def _as_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def get_overview() -> dict:
    total_users = db.session.query(func.count(User.id)).scalar() or 0
    total_books = db.session.query(func.count(Book.id)).filter(Book.deleted_at.is_(None)).scalar() or 0
    total_orders, revenue = db.session.query(
        func.count(Order.id),
        func.sum(Order.total_amount),
    ).one()

    revenue = _as_decimal(revenue)
    average = (revenue / total_orders).quantize(CENTS) if total_orders else Decimal("0")

    return {
        "totalUsers": total_users,
        "totalBooks": total_books,
        "totalOrders": total_orders or 0,
        "totalRevenue": money_to_str(revenue),
        "averageOrderValue": money_to_str(average),
    }


def get_top_books(limit: int = TOP_BOOKS_LIMIT) -> list[dict]:
    quantity = func.sum(OrderItem.quantity).label("quantity")
    rows = (
        db.session.query(
            OrderItem.book_id,
            quantity,
            func.sum(OrderItem.subtotal).label("revenue"),
            func.count(OrderItem.id).label("order_count"),
        )
        .group_by(OrderItem.book_id)
        .order_by(quantity.desc(), OrderItem.book_id)
        .limit(limit)
        .all()
    )

    titles = dict(
        db.session.query(Book.id, Book.title).filter(Book.id.in_([row.book_id for row in rows])).all()
    ) if rows else {}

    return [
        {
            "book": {"id": row.book_id, "title": titles.get(row.book_id)},
            "quantity": int(row.quantity or 0),
            "revenue": money_to_str(_as_decimal(row.revenue)),
            "orderCount": row.order_count,
        }
        for row in rows
    ]


def get_daily_sales(days: int = DAILY_SALES_DAYS) -> list[dict]:
    """Revenue per calendar day (UTC) over the trailing window, oldest first."""
    start = (utcnow() - timedelta(days=days - 1)).replace(hour=0, minute=0, second=0, microsecond=0)
    orders = db.session.query(Order.created_at, Order.total_amount).filter(
        Order.created_at >= start
    ).all()

    totals: dict[str, Decimal] = {}
    for created_at, amount in orders:
        key = created_at.date().isoformat()
        totals[key] = totals.get(key, Decimal("0")) + _as_decimal(amount)

    return [
        {"date": day, "revenue": money_to_str(totals[day])}
        for day in sorted(totals)
    ]
