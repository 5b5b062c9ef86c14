"""
Order placement engine tests.

Verifies:
- Snapshot pricing and exact decimal totals
- All-or-nothing placement on missing books and short stock
- Conditional stock decrement never drives stock negative
- Concurrent placements against the last units cannot oversell
- Cancellation and status overwrite rules
"""

import threading
from decimal import Decimal

import pytest

from bookstore.errors import (
    ForbiddenError,
    ResourceNotFoundError,
    StateConflictError,
    UserNotFoundError,
    ValidationFailedError,
)
from bookstore.extensions import db
from bookstore.models import ActivityLog, Book, Order, OrderItem, OrderStatus, User
from bookstore.services import activity_service, order_service
from bookstore.services.order_service import OrderLineRequest

from conftest import make_book


def _stock(db_session, book_id):
    return db_session.get(Book, book_id, populate_existing=True).stock


# =============================================================================
# PLACEMENT
# =============================================================================


class TestPlacement:

    def test_single_line_totals(self, db_session, user, book):
        order = order_service.place_order(user.id, [OrderLineRequest(book.id, 1)])

        assert order.status == OrderStatus.PENDING
        assert order.total_amount == Decimal("20")
        assert order.to_dict()["totalAmount"] == "20"
        assert _stock(db_session, book.id) == 9

    def test_multi_line_decimal_totals(self, db_session, user):
        first = make_book(db_session, "Dune", "20.00", 10)
        second = make_book(db_session, "Emma", "15.50", 3)

        order = order_service.place_order(
            user.id,
            [OrderLineRequest(first.id, 2), OrderLineRequest(second.id, 1)],
            shipping_fee=Decimal("3.25"),
            discount_total=Decimal("5"),
        )

        assert order.item_total == Decimal("55.50")
        assert order.total_amount == Decimal("53.75")
        assert order.total_amount == sum(item.subtotal for item in order.items) - Decimal("5") + Decimal("3.25")
        assert _stock(db_session, first.id) == 8
        assert _stock(db_session, second.id) == 2

    def test_cent_amounts_do_not_drift(self, db_session, user):
        cheap = make_book(db_session, "Pamphlet", "0.10", 100)

        order = order_service.place_order(user.id, [OrderLineRequest(cheap.id, 3)])

        assert order.total_amount == Decimal("0.30")

    def test_snapshots_survive_catalog_and_profile_edits(self, db_session, user, book):
        order = order_service.place_order(user.id, [OrderLineRequest(book.id, 1)])
        order_id = order.id

        book.title = "Dune (Revised)"
        book.price = Decimal("99")
        user.name = "Renamed"
        db_session.commit()

        reloaded = db_session.get(Order, order_id, populate_existing=True)
        assert reloaded.items[0].title_snapshot == "Dune"
        assert reloaded.items[0].unit_price == Decimal("20")
        assert reloaded.customer_name_snapshot == "Reader One"
        assert reloaded.customer_email_snapshot == "user@example.com"

    def test_customer_overrides(self, db_session, user, book):
        order = order_service.place_order(
            user.id,
            [OrderLineRequest(book.id, 1)],
            customer_name="Gift Recipient",
            customer_email="gift@example.com",
        )

        assert order.customer_name_snapshot == "Gift Recipient"
        assert order.customer_email_snapshot == "gift@example.com"

    def test_duplicate_lines_merged(self, db_session, user, book):
        order = order_service.place_order(
            user.id, [OrderLineRequest(book.id, 2), OrderLineRequest(book.id, 3)]
        )

        assert len(order.items) == 1
        assert order.items[0].quantity == 5
        assert _stock(db_session, book.id) == 5

    def test_records_activity(self, db_session, user, book):
        order = order_service.place_order(user.id, [OrderLineRequest(book.id, 1)])

        entry = db_session.query(ActivityLog).filter_by(action="ORDER_CREATED").one()
        assert entry.user_id == user.id
        assert entry.details == {"orderId": order.id, "total": "20"}

    def test_activity_failure_does_not_undo_order(self, db_session, user, book, monkeypatch):
        from sqlalchemy.exc import OperationalError

        def broken(*args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("disk full"))

        monkeypatch.setattr(activity_service, "record_activity", broken)

        order = order_service.place_order(user.id, [OrderLineRequest(book.id, 1)])

        assert db_session.get(Order, order.id) is not None
        assert _stock(db_session, book.id) == 9


# =============================================================================
# ALL-OR-NOTHING
# =============================================================================


class TestAllOrNothing:

    def test_missing_book(self, db_session, user, book):
        with pytest.raises(ResourceNotFoundError) as exc:
            order_service.place_order(
                user.id, [OrderLineRequest(book.id, 1), OrderLineRequest("no-such-book", 1)]
            )

        assert exc.value.details == {"bookIds": ["no-such-book"]}
        assert _stock(db_session, book.id) == 10
        assert db_session.query(Order).count() == 0

    def test_soft_deleted_book_is_missing(self, db_session, user, book):
        from bookstore.time_utils import utcnow
        book.deleted_at = utcnow()
        db_session.commit()

        with pytest.raises(ResourceNotFoundError):
            order_service.place_order(user.id, [OrderLineRequest(book.id, 1)])

    def test_short_stock_on_one_line_aborts_all(self, db_session, user):
        plenty = make_book(db_session, "Plenty", "10", 50)
        scarce = make_book(db_session, "Scarce", "10", 1)

        with pytest.raises(StateConflictError) as exc:
            order_service.place_order(
                user.id, [OrderLineRequest(plenty.id, 5), OrderLineRequest(scarce.id, 2)]
            )

        assert exc.value.details["bookId"] == scarce.id
        assert _stock(db_session, plenty.id) == 50
        assert _stock(db_session, scarce.id) == 1
        assert db_session.query(Order).count() == 0
        assert db_session.query(OrderItem).count() == 0

    def test_merged_demand_exceeds_stock(self, db_session, user, book):
        with pytest.raises(StateConflictError):
            order_service.place_order(
                user.id, [OrderLineRequest(book.id, 6), OrderLineRequest(book.id, 6)]
            )

        assert _stock(db_session, book.id) == 10

    def test_exact_stock_allowed(self, db_session, user, book):
        order_service.place_order(user.id, [OrderLineRequest(book.id, 10)])

        assert _stock(db_session, book.id) == 0

    def test_unknown_user(self, db_session, book):
        with pytest.raises(UserNotFoundError):
            order_service.place_order("no-such-user", [OrderLineRequest(book.id, 1)])

        assert _stock(db_session, book.id) == 10

    def test_missing_book_reported_before_unknown_user(self, db_session):
        with pytest.raises(ResourceNotFoundError) as exc:
            order_service.place_order("no-such-user", [OrderLineRequest("no-such-book", 1)])

        assert exc.value.code == "RESOURCE_NOT_FOUND"
        assert exc.value.message == "Book missing"
        assert exc.value.details == {"bookIds": ["no-such-book"]}

    @pytest.mark.parametrize("items", [[], [OrderLineRequest("b", 0)], [OrderLineRequest("b", -1)]])
    def test_invalid_lines(self, db_session, user, items):
        with pytest.raises(ValidationFailedError):
            order_service.place_order(user.id, items)


# =============================================================================
# CONDITIONAL DECREMENT
# =============================================================================


class TestConditionalDecrement:

    def test_guard_refuses_to_go_negative(self, db_session):
        book = make_book(db_session, "Last Copy", "10", 1)

        with pytest.raises(StateConflictError):
            order_service._decrement_stock(book.id, 2)
        db_session.rollback()

        assert _stock(db_session, book.id) == 1

    def test_stock_consumed_between_check_and_write(self, db_session, user, book, monkeypatch):
        """A writer that drains stock after the pre-check still cannot oversell."""
        real_decrement = order_service._decrement_stock

        def drain_then_decrement(book_id, quantity):
            db.session.query(Book).filter_by(id=book_id).update(
                {Book.stock: 0}, synchronize_session=False
            )
            real_decrement(book_id, quantity)

        monkeypatch.setattr(order_service, "_decrement_stock", drain_then_decrement)

        with pytest.raises(StateConflictError):
            order_service.place_order(user.id, [OrderLineRequest(book.id, 1)])

        assert _stock(db_session, book.id) == 10
        assert db_session.query(Order).count() == 0


# =============================================================================
# CONCURRENT PLACEMENT (file-backed SQLite, real threads)
# =============================================================================


class TestConcurrentPlacement:

    @pytest.fixture
    def race_app(self, file_app):
        return file_app

    def _seed(self, race_app, stock):
        with race_app.app_context():
            buyers = []
            for index in range(2):
                buyer = User(
                    email=f"buyer{index}@example.com",
                    name=f"Buyer {index}",
                    password_hash="unused",
                )
                db.session.add(buyer)
                buyers.append(buyer)
            book = Book(title="Last Copy", price=Decimal("12.00"), stock=stock)
            db.session.add(book)
            db.session.commit()
            return [buyer.id for buyer in buyers], book.id

    def test_two_buyers_one_copy(self, race_app):
        buyer_ids, book_id = self._seed(race_app, stock=1)

        results = []
        lock = threading.Lock()
        barrier = threading.Barrier(len(buyer_ids))

        def worker(buyer_id):
            with race_app.app_context():
                try:
                    barrier.wait()
                    order_service.place_order(buyer_id, [OrderLineRequest(book_id, 1)])
                    with lock:
                        results.append("placed")
                except StateConflictError:
                    with lock:
                        results.append("conflict")
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker, args=(buyer_id,)) for buyer_id in buyer_ids]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(results) == ["conflict", "placed"]
        with race_app.app_context():
            assert db.session.get(Book, book_id).stock == 0
            assert db.session.query(Order).count() == 1


# =============================================================================
# CANCELLATION AND STATUS
# =============================================================================


class TestCancellation:

    def test_owner_cancels_pending(self, db_session, user, book):
        order = order_service.place_order(user.id, [OrderLineRequest(book.id, 2)])

        cancelled = order_service.cancel_order(order.id, user.id)

        assert cancelled.status == OrderStatus.CANCELLED
        assert cancelled.cancelled_at is not None
        # Stock is not returned on cancellation
        assert _stock(db_session, book.id) == 8
        assert db_session.query(ActivityLog).filter_by(action="ORDER_CANCELLED").count() == 1

    def test_non_owner_forbidden(self, db_session, user, other_user, book):
        order = order_service.place_order(user.id, [OrderLineRequest(book.id, 1)])

        with pytest.raises(ForbiddenError):
            order_service.cancel_order(order.id, other_user.id)

        assert db_session.get(Order, order.id, populate_existing=True).status == OrderStatus.PENDING

    @pytest.mark.parametrize("status", [OrderStatus.PAID, OrderStatus.FULFILLED, OrderStatus.CANCELLED])
    def test_only_pending_cancellable(self, db_session, user, book, status):
        order = order_service.place_order(user.id, [OrderLineRequest(book.id, 1)])
        order_service.update_order_status(order.id, status)

        with pytest.raises(StateConflictError):
            order_service.cancel_order(order.id, user.id)

    def test_missing_order(self, db_session, user):
        with pytest.raises(ResourceNotFoundError):
            order_service.cancel_order("no-such-order", user.id)


class TestStatusUpdate:

    def test_any_transition_allowed(self, db_session, user, admin, book):
        order = order_service.place_order(user.id, [OrderLineRequest(book.id, 1)])

        order_service.update_order_status(order.id, OrderStatus.FULFILLED, actor_user_id=admin.id)
        updated = order_service.update_order_status(order.id, OrderStatus.PENDING, actor_user_id=admin.id)

        assert updated.status == OrderStatus.PENDING
        entries = db_session.query(ActivityLog).filter_by(action="ORDER_STATUS_CHANGED").all()
        assert len(entries) == 2
        assert {entry.details["to"] for entry in entries} == {"FULFILLED", "PENDING"}

    def test_missing_order(self, db_session):
        with pytest.raises(ResourceNotFoundError):
            order_service.update_order_status("no-such-order", OrderStatus.PAID)


# =============================================================================
# READS
# =============================================================================


class TestListing:

    def test_list_user_orders_only_own(self, db_session, user, other_user, book):
        order_service.place_order(user.id, [OrderLineRequest(book.id, 1)])
        order_service.place_order(user.id, [OrderLineRequest(book.id, 1)])
        order_service.place_order(other_user.id, [OrderLineRequest(book.id, 1)])

        orders = order_service.list_user_orders(user.id)

        assert len(orders) == 2
        assert all(order.user_id == user.id for order in orders)

    def test_list_orders_filters(self, db_session, user, other_user, book):
        from bookstore.responses import PageParams

        mine = order_service.place_order(user.id, [OrderLineRequest(book.id, 1)])
        order_service.place_order(other_user.id, [OrderLineRequest(book.id, 3)])
        order_service.update_order_status(mine.id, OrderStatus.PAID)

        params = PageParams(page=1, size=20)
        paid = order_service.list_orders(params, order_service.OrderFilters(status=OrderStatus.PAID))
        by_keyword = order_service.list_orders(params, order_service.OrderFilters(keyword="other@"))
        by_total = order_service.list_orders(PageParams(page=1, size=20, sort="totalAmount,desc"))

        assert [row["id"] for row in paid["content"]] == [mine.id]
        assert by_keyword["totalElements"] == 1
        assert by_keyword["content"][0]["customerEmailSnapshot"] == "other@example.com"
        assert [row["totalAmount"] for row in by_total["content"]] == ["60", "20"]

    def test_list_orders_date_window(self, db_session, user, book):
        from bookstore.responses import PageParams
        from bookstore.time_utils import parse_iso_datetime

        january = order_service.place_order(user.id, [OrderLineRequest(book.id, 1)])
        march = order_service.place_order(user.id, [OrderLineRequest(book.id, 1)])
        january.created_at = parse_iso_datetime("2024-01-10T12:00:00Z")
        march.created_at = parse_iso_datetime("2024-03-01T12:00:00Z")
        db_session.commit()

        params = PageParams(page=1, size=20)
        cutoff = parse_iso_datetime("2024-02-01")
        after = order_service.list_orders(params, order_service.OrderFilters(date_from=cutoff))
        before = order_service.list_orders(params, order_service.OrderFilters(date_to=cutoff))

        assert [row["id"] for row in after["content"]] == [march.id]
        assert [row["id"] for row in before["content"]] == [january.id]
