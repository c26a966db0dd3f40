"""
Orders back office: status transitions, simulated payment and summaries.
"""
import logging
import re
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session, joinedload

from storefront.exceptions import BusinessLogicError, NotFoundError, ValidationError
from storefront.models import Order, OrderStatus, Profile
from storefront.services.events import get_events
from storefront.utils.formatters import order_status_label

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_NAME = 'Sayın Müşteri'
_EXPIRY_RE = re.compile(r'^(0[1-9]|1[0-2])/\d{2}$')


def _get_order(session: Session, order_id: str) -> Order:
    order = session.get(Order, order_id)
    if order is None:
        raise NotFoundError('Order not found.')
    return order


def notification_payload(session: Session, order: Order) -> Dict[str, Any]:
    """Fields the customer notification needs."""
    if order.is_guest:
        email, name = order.guest_email, order.guest_name
    else:
        profile = session.get(Profile, order.user_id) if order.user_id else None
        email = profile.email if profile else None
        name = profile.full_name if profile else None
    return {
        'orderId': order.id,
        'orderNo': order.order_no,
        'status': order.status,
        'customerEmail': email,
        'customerName': name or DEFAULT_CUSTOMER_NAME,
        'trackingNumber': order.tracking_number,
        'grandTotal': str(order.grand_total),
    }


def update_order_status(session: Session, order_id: str, status: str, tracking_number: Optional[str] = None, events=None) -> Dict[str, Any]:
    """
    Move an order to ``status`` (vocabulary is open) and commit.

    The order_status_changed event is emitted only after the commit, so
    a failing notifier can never undo the update.
    """
    status = (status or '').strip()
    if not status:
        raise BusinessLogicError('Status is required')

    try:
        order = _get_order(session, order_id)
        previous = order.status
        order.status = status
        if tracking_number:
            order.tracking_number = tracking_number.strip()
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"[ORDERS] Order {order.order_no}: {previous} -> {status}")
    payload = notification_payload(session, order)

    bus = get_events(events)
    if bus is not None:
        bus.notify_order_status_changed(order.id, payload)
    return payload


def _validate_card(card: Optional[Dict[str, Any]]) -> None:
    card = card or {}
    name = str(card.get('name') or '').strip()
    number = re.sub(r'\s+', '', str(card.get('number') or ''))
    expiry = str(card.get('expiry') or '').strip()
    cvc = str(card.get('cvc') or '').strip()

    if len(name) < 5:
        raise ValidationError('Please enter the name on the card.', field='name')
    if not (number.isdigit() and len(number) == 16):
        raise ValidationError('Please enter a valid card number.', field='number')
    if not _EXPIRY_RE.match(expiry):
        raise ValidationError('Please enter the expiry date as MM/YY.', field='expiry')
    if not (cvc.isdigit() and 3 <= len(cvc) <= 4):
        raise ValidationError('Please enter the CVV code.', field='cvc')
    if not card.get('agreement_accepted'):
        raise ValidationError('Please accept the distance sales agreement.', field='agreement_accepted')


def simulate_payment(session: Session, order_id: str, card: Optional[Dict[str, Any]], events=None) -> Dict[str, Any]:
    """
    Stand-in for a payment gateway: validates card fields and approves
    the order. Only orders awaiting payment can be paid.
    """
    _validate_card(card)
    order = _get_order(session, order_id)
    if order.status != OrderStatus.PENDING_PAYMENT.value:
        raise BusinessLogicError(f'Order {order.order_no} is not awaiting payment')
    return update_order_status(session, order_id, OrderStatus.APPROVED.value, events=events)


def get_order_summary(session: Session, order_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
    """Order with its lines. When ``user_id`` is given, the order must belong to that user."""
    order = (
        session.query(Order)
        .options(joinedload(Order.items))
        .filter(Order.id == order_id)
        .first()
    )
    if order is None or (user_id is not None and order.user_id != user_id):
        raise NotFoundError('Order not found.')

    return {
        'id': order.id,
        'order_no': order.order_no,
        'status': order.status,
        'status_label': order_status_label(order.status),
        'currency': order.currency,
        'subtotal': order.subtotal,
        'discount_total': order.discount_total,
        'shipping_total': order.shipping_total,
        'grand_total': order.grand_total,
        'shipping_address': order.shipping_address,
        'tracking_number': order.tracking_number,
        'is_guest': order.is_guest,
        'created_at': order.created_at.isoformat() if order.created_at else None,
        'items': [
            {
                'variant_id': item.variant_id,
                'product_id': item.product_id,
                'name': item.product_name_snapshot,
                'sku': item.sku_snapshot,
                'quantity': item.quantity,
                'unit_price': item.unit_price_snapshot,
                'line_total': item.line_total,
            }
            for item in order.items
        ],
    }
