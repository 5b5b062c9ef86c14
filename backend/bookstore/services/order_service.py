# Overview: Service-layer operations for orders; placement, cancellation, status changes and reads.

"""
Order placement engine.

Placement is all-or-nothing across the whole cart:
- every referenced book must exist (fail fast on the batch)
- every line must fit current stock
- order row, item rows and stock decrements commit in one transaction

Stock correctness under concurrent placements is enforced at the storage
layer, not by the pre-check alone: each decrement is a conditional UPDATE
(`stock >= qty`) and a zero affected-row count aborts the whole unit.

Pricing is snapshotted (title, unit price) so later catalog edits never
rewrite order history. All money is Decimal.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import or_

from ..extensions import db
from ..errors import (
    ForbiddenError,
    ResourceNotFoundError,
    StateConflictError,
    UserNotFoundError,
    ValidationFailedError,
)
from ..models import Book, Order, OrderItem, OrderStatus, User
from ..responses import PageParams, build_page, parse_sort
from ..time_utils import utcnow
from ..validation import money_to_str
from . import activity_service
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry


ZERO = Decimal("0")


@dataclass(frozen=True)
class OrderLineRequest:
    book_id: str
    quantity: int


def _merge_lines(items: list[OrderLineRequest]) -> "OrderedDict[str, int]":
    """Collapse repeated book ids so stock is checked against total demand."""
    merged: "OrderedDict[str, int]" = OrderedDict()
    for item in items:
        merged[item.book_id] = merged.get(item.book_id, 0) + item.quantity
    return merged


def _decrement_stock(book_id: str, quantity: int) -> None:
    """
    Conditional decrement; never lets stock go below zero.

    Raises StateConflictError if another writer consumed the stock between
    our read and this write.
    """
    updated = db.session.query(Book).filter(
        Book.id == book_id,
        Book.stock >= quantity,
    ).update(
        {Book.stock: Book.stock - quantity},
        synchronize_session=False,
    )
    if updated != 1:
        raise StateConflictError("Insufficient stock", details={"bookId": book_id})


def place_order(
    user_id: str,
    items: list[OrderLineRequest],
    shipping_fee: Decimal = ZERO,
    discount_total: Decimal = ZERO,
    customer_name: str | None = None,
    customer_email: str | None = None,
    ip_address: str | None = None,
) -> Order:
    """
    Create an order for user_id and decrement stock atomically.

    Raises:
        ResourceNotFoundError: a requested book does not exist (or is soft-deleted)
        UserNotFoundError: the placing user no longer exists
        StateConflictError: any line exceeds available stock
    """
    if not items:
        raise ValidationFailedError("Order must contain at least one item")
    for item in items:
        if item.quantity < 1:
            raise ValidationFailedError("Quantity must be at least 1", details={"bookId": item.book_id})

    demand = _merge_lines(items)

    def _op():
        begin_write_transaction()

        books = lock_for_update(
            db.session.query(Book).filter(
                Book.id.in_(list(demand.keys())),
                Book.deleted_at.is_(None),
            )
        ).all()
        book_map = {book.id: book for book in books}
        missing = [book_id for book_id in demand if book_id not in book_map]
        if missing:
            raise ResourceNotFoundError("Book missing", details={"bookIds": missing})

        user = db.session.query(User).filter(
            User.id == user_id,
            User.deleted_at.is_(None),
        ).first()
        if not user:
            raise UserNotFoundError("User not found")

        order_items = []
        item_total = ZERO
        for book_id, quantity in demand.items():
            book = book_map[book_id]
            if book.stock < quantity:
                raise StateConflictError(
                    "Insufficient stock",
                    details={"bookId": book.id, "requested": quantity, "available": book.stock},
                )
            unit_price = Decimal(book.price)
            subtotal = unit_price * quantity
            item_total += subtotal
            order_items.append(OrderItem(
                book_id=book.id,
                title_snapshot=book.title,
                quantity=quantity,
                unit_price=unit_price,
                subtotal=subtotal,
            ))

        total_amount = item_total - discount_total + shipping_fee

        order = Order(
            user_id=user.id,
            status=OrderStatus.PENDING,
            item_total=item_total,
            discount_total=discount_total,
            shipping_fee=shipping_fee,
            total_amount=total_amount,
            customer_name_snapshot=customer_name or user.name,
            customer_email_snapshot=customer_email or user.email,
            items=order_items,
        )
        db.session.add(order)
        db.session.flush()

        for book_id, quantity in demand.items():
            _decrement_stock(book_id, quantity)

        db.session.commit()
        return order

    order = run_with_retry(_op)

    activity_service.record_activity_safely(
        user_id,
        "ORDER_CREATED",
        {"orderId": order.id, "total": money_to_str(order.total_amount)},
        ip_address=ip_address,
    )
    return order


def get_order(order_id: str) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise ResourceNotFoundError("Order not found")
    return order


def cancel_order(order_id: str, user_id: str) -> Order:
    """
    Owner-initiated cancellation of a PENDING order.

    Stock is not restored.
    """
    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise ResourceNotFoundError("Order not found")
        if order.user_id != user_id:
            raise ForbiddenError("Cannot cancel this order")
        if order.status != OrderStatus.PENDING:
            raise StateConflictError("Order already processed", details={"status": order.status.value})

        order.status = OrderStatus.CANCELLED
        order.cancelled_at = utcnow()
        db.session.commit()
        return order

    order = run_with_retry(_op)
    activity_service.record_activity_safely(user_id, "ORDER_CANCELLED", {"orderId": order.id})
    return order


def update_order_status(order_id: str, status: OrderStatus, actor_user_id: str | None = None) -> Order:
    """Staff status overwrite. Any status may move to any other status."""
    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise ResourceNotFoundError("Order not found")
        previous = order.status
        order.status = status
        db.session.commit()
        return order, previous

    order, previous = run_with_retry(_op)
    activity_service.record_activity_safely(
        actor_user_id,
        "ORDER_STATUS_CHANGED",
        {"orderId": order.id, "from": previous.value, "to": status.value},
    )
    return order


SORTABLE_FIELDS = {
    "createdAt": Order.created_at,
    "totalAmount": Order.total_amount,
}


@dataclass
class OrderFilters:
    status: OrderStatus | None = None
    keyword: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


def list_orders(params: PageParams, filters: OrderFilters | None = None) -> dict:
    filters = filters or OrderFilters()
    query = db.session.query(Order)

    if filters.status is not None:
        query = query.filter(Order.status == filters.status)
    if filters.keyword:
        pattern = f"%{filters.keyword}%"
        query = query.filter(or_(
            Order.customer_name_snapshot.ilike(pattern),
            Order.customer_email_snapshot.ilike(pattern),
        ))
    if filters.date_from is not None:
        query = query.filter(Order.created_at >= filters.date_from)
    if filters.date_to is not None:
        query = query.filter(Order.created_at <= filters.date_to)

    column, descending = parse_sort(params.sort, SORTABLE_FIELDS, default="createdAt")
    total = query.count()
    orders = (
        query.order_by(column.desc() if descending else column.asc(), Order.id)
        .offset(params.offset)
        .limit(params.size)
        .all()
    )
    return build_page([order.to_dict() for order in orders], total, params)


def list_user_orders(user_id: str) -> list[Order]:
    return db.session.query(Order).filter_by(user_id=user_id).order_by(
        Order.created_at.desc(), Order.id
    ).all()
