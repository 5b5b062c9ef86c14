"""Health endpoint, framework error envelope and admin statistics."""

import sqlite3
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from bookstore import create_app
from bookstore.errors import classify_integrity_error
from bookstore.models import Book, User
from bookstore.services import order_service, stats_service
from bookstore.services.order_service import OrderLineRequest

from conftest import TEST_CONFIG, make_book


class TestHealth:

    def test_health(self, client, db_session):
        resp = client.get("/health")

        assert resp.status_code == 200
        body = resp.json
        assert body["status"] == "healthy"
        assert body["database"]["status"] == "healthy"
        assert {"version", "uptime", "timestamp", "hostname"} <= set(body)

    def test_unknown_route_uses_error_envelope(self, client, db_session):
        resp = client.get("/no/such/route")

        assert resp.status_code == 404
        assert resp.json["code"] == "RESOURCE_NOT_FOUND"
        assert resp.json["path"] == "/no/such/route"

    def test_method_not_allowed(self, client, db_session):
        resp = client.put("/health")

        assert resp.status_code == 405
        assert resp.json["code"] == "BAD_REQUEST"

    def test_cors_headers_for_allowed_origin(self, client, db_session):
        resp = client.get("/health", headers={"Origin": "http://localhost:5173"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

        resp = client.get("/health", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in resp.headers


class TestStats:

    def test_overview(self, db_session, user, admin):
        first = make_book(db_session, "Dune", "20", 10)
        second = make_book(db_session, "Emma", "15.50", 10)
        order_service.place_order(user.id, [OrderLineRequest(first.id, 1)])
        order_service.place_order(user.id, [OrderLineRequest(second.id, 1)])

        overview = stats_service.get_overview()

        assert overview == {
            "totalUsers": 2,
            "totalBooks": 2,
            "totalOrders": 2,
            "totalRevenue": "35.5",
            "averageOrderValue": "17.75",
        }

    def test_overview_empty(self, db_session):
        overview = stats_service.get_overview()

        assert overview["totalOrders"] == 0
        assert overview["totalRevenue"] == "0"
        assert overview["averageOrderValue"] == "0"

    def test_top_books_by_quantity(self, db_session, user):
        popular = make_book(db_session, "Popular", "10", 100)
        niche = make_book(db_session, "Niche", "50", 100)
        order_service.place_order(user.id, [OrderLineRequest(popular.id, 4)])
        order_service.place_order(user.id, [OrderLineRequest(popular.id, 3), OrderLineRequest(niche.id, 1)])

        top = stats_service.get_top_books()

        assert [row["book"]["title"] for row in top] == ["Popular", "Niche"]
        assert top[0]["quantity"] == 7
        assert top[0]["orderCount"] == 2
        assert Decimal(top[0]["revenue"]) == Decimal("70")

    def test_daily_sales(self, db_session, user, book):
        order_service.place_order(user.id, [OrderLineRequest(book.id, 2)])

        daily = stats_service.get_daily_sales()

        assert len(daily) == 1
        assert daily[0]["revenue"] == "40"


class TestIntegrityErrors:

    MESSAGES = {
        "unique": "UNIQUE constraint failed: users.email",
        "foreign-key": "FOREIGN KEY constraint failed",
        "check": "CHECK constraint failed: ck_books_stock_non_negative",
    }

    @pytest.fixture
    def failing_client(self):
        app = create_app(dict(TEST_CONFIG))

        @app.get("/integrity/<kind>")
        def raise_integrity(kind):
            raise IntegrityError("INSERT", {}, sqlite3.IntegrityError(self.MESSAGES[kind]))

        return app.test_client()

    @pytest.mark.parametrize("kind, code, message", [
        ("unique", "DUPLICATE_RESOURCE", "Duplicate resource"),
        ("foreign-key", "STATE_CONFLICT", "Invalid reference"),
        ("check", "STATE_CONFLICT", "Constraint violated"),
    ])
    def test_constraint_kind_picks_code(self, failing_client, kind, code, message):
        resp = failing_client.get(f"/integrity/{kind}")

        assert resp.status_code == 409
        assert resp.json["code"] == code
        assert resp.json["message"] == message

    def test_check_constraint_from_database(self, db_session):
        db_session.add(Book(title="Broken", price=Decimal("1"), stock=-1))
        with pytest.raises(IntegrityError) as exc:
            db_session.commit()
        db_session.rollback()

        assert classify_integrity_error(exc.value) == ("STATE_CONFLICT", "Constraint violated")

    def test_unique_email_from_database(self, db_session, user):
        db_session.add(User(email=user.email, name="Copy", password_hash="unused"))
        with pytest.raises(IntegrityError) as exc:
            db_session.commit()
        db_session.rollback()

        assert classify_integrity_error(exc.value) == ("DUPLICATE_RESOURCE", "Duplicate resource")
