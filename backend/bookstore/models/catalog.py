from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import money_to_str
from .common import new_id


class Book(db.Model):
    """
    Inventory row read and decremented by order placement.

    stock must never go negative: the CHECK constraint backs up the
    conditional decrement in order_service.
    """
    __tablename__ = "books"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_books_stock_non_negative"),
        db.CheckConstraint("price >= 0", name="ck_books_price_non_negative"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    title = db.Column(db.String(255), nullable=False, index=True)
    price = db.Column(db.Numeric(12, 2, asdecimal=True), nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now()
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "price": money_to_str(self.price),
            "stock": self.stock,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
            "deletedAt": to_utc_z(self.deleted_at),
        }
