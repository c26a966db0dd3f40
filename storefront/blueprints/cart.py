"""Cart blueprint - JSON endpoints for the caller's active cart."""
from flask import Blueprint, request, jsonify, g

from storefront.database import get_session
from storefront.exceptions import BusinessLogicError, CartUnavailableError
from storefront.services.cart_service import (
    get_or_create_active_cart, get_current_cart_id, add_item, update_item_quantity,
    remove_item, clear_cart, count_items, get_cart_view,
)
from storefront.services.currency_service import get_rates

cart_bp = Blueprint('cart', __name__, url_prefix='/cart')


def _empty_cart():
    return {'cart_id': None, 'items': [], 'item_count': 0, 'subtotal': '0', 'subtotal_local': '0.00',
            'subtotal_display': get_rates().format_local(0)}


def _current_cart_or_fail() -> str:
    cart_id = get_current_cart_id(get_session(), user_id=g.user_id, guest_store=g.guest_store)
    if not cart_id:
        raise CartUnavailableError()
    return cart_id


def _view(cart_id: str):
    return get_cart_view(get_session(), cart_id, g.role, get_rates())


@cart_bp.route('', methods=['GET'])
def show_cart():
    """Render the cart without creating one as a side effect."""
    cart_id = get_current_cart_id(get_session(), user_id=g.user_id, guest_store=g.guest_store)
    if not cart_id:
        return jsonify(_empty_cart())
    return jsonify(_view(cart_id))


@cart_bp.route('/count', methods=['GET'])
def cart_count():
    db_session = get_session()
    cart_id = get_current_cart_id(db_session, user_id=g.user_id, guest_store=g.guest_store)
    return jsonify({'count': count_items(db_session, cart_id)})


@cart_bp.route('/items', methods=['POST'])
def add_to_cart():
    payload = request.get_json(silent=True) or {}
    variant_id = payload.get('variant_id')
    if not variant_id:
        raise BusinessLogicError('variant_id is required')

    db_session = get_session()
    cart_id = get_or_create_active_cart(db_session, user_id=g.user_id, guest_store=g.guest_store)
    if not cart_id:
        raise CartUnavailableError('Your cart is unavailable right now, please try again.')

    add_item(db_session, cart_id, variant_id, payload.get('quantity', 1))
    return jsonify(_view(cart_id)), 201


@cart_bp.route('/items/<item_id>', methods=['PATCH'])
def update_cart_item(item_id):
    payload = request.get_json(silent=True) or {}
    if 'quantity' not in payload:
        raise BusinessLogicError('quantity is required')
    cart_id = _current_cart_or_fail()
    update_item_quantity(get_session(), cart_id, item_id, payload['quantity'])
    return jsonify(_view(cart_id))


@cart_bp.route('/items/<item_id>', methods=['DELETE'])
def delete_cart_item(item_id):
    cart_id = _current_cart_or_fail()
    remove_item(get_session(), cart_id, item_id)
    return jsonify(_view(cart_id))


@cart_bp.route('', methods=['DELETE'])
def empty_cart():
    cart_id = _current_cart_or_fail()
    clear_cart(get_session(), cart_id)
    return jsonify(_view(cart_id))
