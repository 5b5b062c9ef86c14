# Overview: Flask API routes for orders; placement, reads, cancellation and staff status changes.

from flask import Blueprint, request

from ..decorators import current_auth, require_auth, require_roles
from ..errors import ForbiddenError, ValidationFailedError
from ..models import OrderStatus, UserRole
from ..responses import get_page_params, success_response
from ..services import order_service
from ..services.order_service import OrderFilters, OrderLineRequest
from ..time_utils import parse_iso_datetime, to_utc_z
from ..validation import get_json_body, parse_enum, parse_money, require_email, require_int, require_string


orders_bp = Blueprint("orders", __name__, url_prefix="/orders")

STAFF_ROLES = (UserRole.ADMIN, UserRole.CURATOR)


def _parse_items(data: dict) -> list[OrderLineRequest]:
    raw_items = data.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationFailedError("items must be a non-empty list", details={"field": "items"})

    items = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise ValidationFailedError("Each item must be an object", details={"field": "items"})
        items.append(OrderLineRequest(
            book_id=require_string(raw, "bookId"),
            quantity=require_int(raw, "quantity", minimum=1),
        ))
    return items


def _parse_date_param(name: str):
    try:
        return parse_iso_datetime(request.args.get(name))
    except ValueError:
        raise ValidationFailedError(f"{name} must be an ISO-8601 date", details={"param": name})


def _load_visible_order(order_id: str):
    """Owner or staff may read an order; anyone else gets 403."""
    order = order_service.get_order(order_id)
    auth = current_auth()
    if order.user_id != auth.user_id and not auth.has_role(*STAFF_ROLES):
        raise ForbiddenError("Cannot view this order")
    return order


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Place an order for the authenticated user.

    Body: {items: [{bookId, quantity}], shippingFee?, discountTotal?, customerName?, customerEmail?}
    Money fields are decimal strings.
    """
    data = get_json_body()
    items = _parse_items(data)
    shipping_fee = parse_money(data.get("shippingFee"), "shippingFee")
    discount_total = parse_money(data.get("discountTotal"), "discountTotal")
    customer_name = require_string(data, "customerName", required=False, max_length=120)
    customer_email = require_email(data, "customerEmail", required=False)

    order = order_service.place_order(
        current_auth().user_id,
        items,
        shipping_fee=shipping_fee,
        discount_total=discount_total,
        customer_name=customer_name,
        customer_email=customer_email,
        ip_address=request.remote_addr,
    )

    return success_response(
        {"orderId": order.id, "createdAt": to_utc_z(order.created_at)},
        message="Order created",
        status=201,
    )


@orders_bp.get("")
@require_auth
@require_roles(*STAFF_ROLES)
def list_orders_route():
    params = get_page_params(request.args)
    filters = OrderFilters(
        status=parse_enum(OrderStatus, request.args.get("status"), "status", required=False),
        keyword=(request.args.get("keyword") or "").strip() or None,
        date_from=_parse_date_param("dateFrom"),
        date_to=_parse_date_param("dateTo"),
    )
    return success_response(order_service.list_orders(params, filters))


@orders_bp.get("/mine")
@require_auth
def list_my_orders_route():
    orders = order_service.list_user_orders(current_auth().user_id)
    return success_response([order.to_dict(include_user=False) for order in orders])


@orders_bp.get("/<order_id>")
@require_auth
def get_order_route(order_id: str):
    order = _load_visible_order(order_id)
    return success_response(order.to_dict())


@orders_bp.get("/<order_id>/items")
@require_auth
def get_order_items_route(order_id: str):
    order = _load_visible_order(order_id)
    return success_response([item.to_dict() for item in order.items])


@orders_bp.patch("/<order_id>/status")
@require_auth
@require_roles(*STAFF_ROLES)
def update_order_status_route(order_id: str):
    data = get_json_body()
    status = parse_enum(OrderStatus, data.get("status"), "status")

    order = order_service.update_order_status(order_id, status, actor_user_id=current_auth().user_id)
    return success_response(order.to_dict(), message="Order status updated")


@orders_bp.delete("/<order_id>")
@require_auth
def cancel_order_route(order_id: str):
    order = order_service.cancel_order(order_id, current_auth().user_id)
    return success_response(order.to_dict(include_user=False), message="Order cancelled")
