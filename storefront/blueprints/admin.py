"""Admin blueprint - order status, exchange rate, price lists and dealers."""
import logging

from flask import Blueprint, request, jsonify, current_app

from storefront.database import get_session
from storefront.exceptions import BusinessLogicError
from storefront.middleware import require_admin
from storefront.services.cache_service import get_cache
from storefront.services.currency_service import update_usd_rate, get_rates
from storefront.services.dealer_service import approve_application, reject_application
from storefront.services.order_service import update_order_status
from storefront.services.pricing_service import create_price_list

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


@admin_bp.route('/orders/<order_id>/status', methods=['PATCH'])
@require_admin
def change_order_status(order_id):
    payload = request.get_json(silent=True) or {}
    result = update_order_status(
        get_session(), order_id, payload.get('status'), tracking_number=payload.get('tracking_number')
    )
    return jsonify({'status': 'success', 'order': result})


@admin_bp.route('/settings/usd-rate', methods=['PUT'])
@require_admin
def set_usd_rate():
    payload = request.get_json(silent=True) or {}
    if payload.get('value') in (None, ''):
        raise BusinessLogicError('value is required')

    cache = get_cache()
    rate = update_usd_rate(
        get_session(),
        payload['value'],
        redis_client=cache.client if cache.is_available() else None,
        channel=current_app.config.get('USD_RATE_CHANNEL', 'settings:usd_rate'),
        rates=get_rates(),
    )
    return jsonify({'status': 'success', 'usd_rate': rate})


@admin_bp.route('/price-lists', methods=['POST'])
@require_admin
def new_price_list():
    payload = request.get_json(silent=True) or {}
    price_list = create_price_list(
        get_session(), payload.get('name'), payload.get('items') or [], role=payload.get('role')
    )
    return jsonify({'status': 'success', 'price_list_id': price_list.id}), 201


@admin_bp.route('/dealers/<application_id>/approve', methods=['POST'])
@require_admin
def approve_dealer(application_id):
    application = approve_application(get_session(), application_id)
    return jsonify({'status': 'success', 'application_status': application.status})


@admin_bp.route('/dealers/<application_id>/reject', methods=['POST'])
@require_admin
def reject_dealer(application_id):
    application = reject_application(get_session(), application_id)
    return jsonify({'status': 'success', 'application_status': application.status})
