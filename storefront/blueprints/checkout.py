"""Checkout blueprint - order placement, simulated payment, order view."""
from flask import Blueprint, request, jsonify, g, session, current_app

from storefront.database import get_session
from storefront.exceptions import NotFoundError
from storefront.models import Order
from storefront.services.checkout_service import place_order
from storefront.services.currency_service import get_rates
from storefront.services.order_service import simulate_payment, get_order_summary

checkout_bp = Blueprint('checkout', __name__)

GUEST_ORDERS_KEY = 'guest_orders'


def _remember_guest_order(order_id: str) -> None:
    """Guests have no account; the session cookie remembers which orders are theirs."""
    orders = list(session.get(GUEST_ORDERS_KEY, []))
    orders.append(order_id)
    session[GUEST_ORDERS_KEY] = orders[-10:]


def _check_access(order_id: str) -> None:
    order = get_session().get(Order, order_id)
    if order is None:
        raise NotFoundError('Order not found.')
    if g.get('role') == current_app.config.get('ADMIN_ROLE', 'admin'):
        return
    if order.user_id:
        allowed = order.user_id == g.user_id
    else:
        allowed = order_id in session.get(GUEST_ORDERS_KEY, [])
    if not allowed:
        raise NotFoundError('Order not found.')


@checkout_bp.route('/checkout', methods=['POST'])
def checkout():
    payload = request.get_json(silent=True) or {}
    order_id = place_order(
        get_session(),
        get_rates(),
        shipping_address=payload.get('shipping_address'),
        contact=payload.get('contact'),
        user_id=g.user_id,
        address_id=payload.get('address_id'),
        guest_store=g.guest_store,
    )
    if not g.user_id:
        _remember_guest_order(order_id)
    return jsonify({'status': 'success', 'order_id': order_id}), 201


@checkout_bp.route('/payment/<order_id>', methods=['POST'])
def pay(order_id):
    _check_access(order_id)
    result = simulate_payment(get_session(), order_id, request.get_json(silent=True) or {})
    return jsonify({'status': 'success', 'order_no': result['orderNo'], 'order_status': result['status']})


@checkout_bp.route('/orders/<order_id>', methods=['GET'])
def show_order(order_id):
    _check_access(order_id)
    return jsonify(get_order_summary(get_session(), order_id))
