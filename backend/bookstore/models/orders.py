from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import money_to_str
from .common import OrderStatus, enum_column_type, new_id


class Order(db.Model):
    """
    Customer order with snapshot pricing.

    total_amount = item_total - discount_total + shipping_fee, computed once
    at creation and never recomputed. Customer name/email are captured at
    creation so later profile edits do not rewrite order history.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        db.Index("ix_orders_status_created", "status", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(enum_column_type(db, OrderStatus), nullable=False, default=OrderStatus.PENDING)

    # Money columns (exact decimals)
    item_total = db.Column(db.Numeric(12, 2, asdecimal=True), nullable=False)
    discount_total = db.Column(db.Numeric(12, 2, asdecimal=True), nullable=False, default=0)
    shipping_fee = db.Column(db.Numeric(12, 2, asdecimal=True), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2, asdecimal=True), nullable=False)

    customer_name_snapshot = db.Column(db.String(120), nullable=False)
    customer_email_snapshot = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now()
    )
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    def to_dict(self, include_user: bool = True) -> dict:
        data = {
            "id": self.id,
            "userId": self.user_id,
            "status": self.status.value,
            "itemTotal": money_to_str(self.item_total),
            "discountTotal": money_to_str(self.discount_total),
            "shippingFee": money_to_str(self.shipping_fee),
            "totalAmount": money_to_str(self.total_amount),
            "customerNameSnapshot": self.customer_name_snapshot,
            "customerEmailSnapshot": self.customer_email_snapshot,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
            "cancelledAt": to_utc_z(self.cancelled_at),
            "items": [item.to_dict() for item in self.items],
        }
        if include_user and self.user is not None:
            data["user"] = self.user.to_dict()
        return data


class OrderItem(db.Model):
    """Immutable order line. subtotal = quantity * unit_price."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), nullable=False, index=True)
    book_id = db.Column(db.String(36), db.ForeignKey("books.id"), nullable=False, index=True)

    title_snapshot = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2, asdecimal=True), nullable=False)
    subtotal = db.Column(db.Numeric(12, 2, asdecimal=True), nullable=False)

    book = db.relationship("Book")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quantity": self.quantity,
            "unitPrice": money_to_str(self.unit_price),
            "subtotal": money_to_str(self.subtotal),
            "book": {
                "id": self.book_id,
                "title": self.title_snapshot,
            },
        }
