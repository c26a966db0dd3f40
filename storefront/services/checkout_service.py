"""
Checkout: materialize the caller's active cart into an order.

Everything (order insert, item snapshots, stock decrement, cart
conversion) happens in one transaction; any failure rolls it back and
leaves the cart untouched so the shopper can fix the problem and retry.
"""
import logging
import secrets
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any, List

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from storefront.exceptions import (
    StoreError, BusinessLogicError, ValidationError, CartUnavailableError,
    InactiveProductError, InsufficientStockError, NotFoundError,
)
from storefront.models import (
    Address, Cart, CartItem, CartStatus, Order, OrderItem, OrderStatus, ProductVariant,
)
from storefront.services.cart_service import get_current_cart_id
from storefront.services.events import get_events
from storefront.services.order_service import notification_payload
from storefront.services.guest_session_service import GuestSessionStore
from storefront.services.pricing_service import fetch_user_role, resolve_unit_price
from storefront.utils.dates import utcnow

logger = logging.getLogger(__name__)

ORDER_NO_ATTEMPTS = 5
ADDRESS_FIELDS = ('full_name', 'phone', 'city', 'district', 'address_line')


def _config(key: str, default):
    try:
        return current_app.config.get(key, default)
    except RuntimeError:
        return default


# =====================================================
# VALIDATION
# =====================================================

def _clean(value) -> str:
    return str(value).strip() if value is not None else ''


def validate_contact(contact: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Guest contact info: email with '@', name >= 3 chars, phone >= 10 chars."""
    contact = contact or {}
    email = _clean(contact.get('email'))
    full_name = _clean(contact.get('full_name'))
    phone = _clean(contact.get('phone'))

    if '@' not in email:
        raise ValidationError('Please enter a valid email address.', field='email')
    if len(full_name) < 3:
        raise ValidationError('Please enter your full name.', field='full_name')
    if len(phone) < 10:
        raise ValidationError('Please enter a valid phone number.', field='phone')
    return {'email': email, 'full_name': full_name, 'phone': phone}


def _guest_address_snapshot(address: Optional[Dict[str, Any]], contact: Dict[str, str]) -> Dict[str, Any]:
    address = dict(address or {})
    address['full_name'] = address.get('full_name') or contact['full_name']
    address['phone'] = address.get('phone') or contact['phone']
    for field in ADDRESS_FIELDS:
        if not _clean(address.get(field)):
            raise ValidationError('Please fill in the shipping address completely.', field=field)
    return {
        'full_name': _clean(address['full_name']),
        'phone': _clean(address['phone']),
        'address_line': _clean(address['address_line']),
        'city': _clean(address['city']),
        'district': _clean(address['district']),
        'country': _clean(address.get('country')) or None,
        'postal_code': _clean(address.get('postal_code')) or None,
    }


def _saved_address_snapshot(session: Session, user_id: str, address_id: Optional[str]) -> Dict[str, Any]:
    if not address_id:
        raise ValidationError('Please select one of your addresses or add a new one.', field='address_id')
    address = (
        session.query(Address)
        .filter(Address.id == address_id, Address.profile_id == user_id)
        .first()
    )
    if address is None:
        raise ValidationError('Selected address was not found.', field='address_id')
    return address.to_snapshot()


# =====================================================
# ORDER NUMBER
# =====================================================

def generate_order_no(prefix: str, year: int) -> str:
    """Human-readable order number, e.g. ORB-20261234."""
    return f"{prefix}-{year}{1000 + secrets.randbelow(9000)}"


def allocate_order_no(session: Session, now: datetime, prefix: Optional[str] = None) -> str:
    """
    Draw order numbers until one is unused. The unique index on
    ``orders.order_no`` still guards the window between check and insert.
    """
    prefix = prefix or _config('ORDER_NO_PREFIX', 'ORB')
    for _ in range(ORDER_NO_ATTEMPTS):
        order_no = generate_order_no(prefix, now.year)
        if not session.query(Order.id).filter(Order.order_no == order_no).first():
            return order_no
        logger.warning(f"[CHECKOUT] Order number {order_no} taken, drawing again")
    raise BusinessLogicError('Could not allocate an order number, please try again.')


# =====================================================
# PLACE ORDER
# =====================================================

def _lock_cart(session: Session, cart_id: str) -> Cart:
    """
    Lock the cart row and re-check it is still active. A second tab
    submitting the same cart waits here and then finds it converted.
    """
    cart = (
        session.query(Cart)
        .filter(Cart.id == cart_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if cart is None or cart.status != CartStatus.ACTIVE.value:
        raise CartUnavailableError()
    return cart


def _lock_variants(session: Session, variant_ids: List[str]) -> Dict[str, ProductVariant]:
    """Lock variant rows (SELECT ... FOR UPDATE) and reload their live values with the product."""
    variants = (
        session.query(ProductVariant)
        .options(joinedload(ProductVariant.product, innerjoin=True))
        .filter(ProductVariant.id.in_(variant_ids))
        .with_for_update(of=ProductVariant)
        .populate_existing()
        .all()
    )
    return {v.id: v for v in variants}


def place_order(
    session: Session,
    rates,
    shipping_address: Optional[Dict[str, Any]] = None,
    contact: Optional[Dict[str, Any]] = None,
    user_id: Optional[str] = None,
    address_id: Optional[str] = None,
    guest_store: Optional[GuestSessionStore] = None,
    events=None,
    now: Optional[datetime] = None,
) -> str:
    """
    Place an order from the caller's active cart.

    Args:
        session: Database session.
        rates: ExchangeRateHolder used to convert USD prices.
        shipping_address: Inline address (guests).
        contact: Guest contact info {email, full_name, phone}.
        user_id: Authenticated user, None for guests.
        address_id: Saved address of the user.
        guest_store: Guest session store (guests).
        events: EventBus override.
        now: Pricing instant.

    Returns:
        The new order id (status pending_payment).

    Raises:
        ValidationError: Missing/invalid contact or address.
        CartUnavailableError: No active cart for the caller.
        InactiveProductError / InsufficientStockError: Line cannot be fulfilled.
    """
    now = now or utcnow()
    is_guest = not user_id
    guest_store = guest_store or GuestSessionStore()

    # 1. Contact and shipping snapshot
    if is_guest:
        guest_contact = validate_contact(contact)
        address_snapshot = _guest_address_snapshot(shipping_address, guest_contact)
    else:
        guest_contact = None
        address_snapshot = _saved_address_snapshot(session, user_id, address_id)

    try:
        # 2. Re-resolve the cart; client-held cart state is never trusted
        cart_id = get_current_cart_id(session, user_id=user_id, guest_store=guest_store)
        if not cart_id:
            raise CartUnavailableError()
        cart = _lock_cart(session, cart_id)

        lines = (
            session.query(CartItem)
            .filter(CartItem.cart_id == cart_id)
            .order_by(CartItem.created_at, CartItem.id)
            .all()
        )
        if not lines:
            raise BusinessLogicError('Your cart is empty.')

        # 3. Live variant data under row locks
        variants = _lock_variants(session, [line.variant_id for line in lines])
        role = fetch_user_role(session, user_id)

        order_lines = []
        subtotal = Decimal('0.00')
        for line in lines:
            variant = variants.get(line.variant_id)
            if variant is None:
                raise NotFoundError('A product in your cart no longer exists.')
            if not variant.is_active or not variant.product.is_active:
                raise InactiveProductError(variant.display_name)
            if variant.stock < line.quantity:
                raise InsufficientStockError(variant.display_name, line.quantity, variant.stock)

            unit_usd = resolve_unit_price(
                session, variant.id, variant.base_price, role, variant.discount, now=now
            )
            unit_price = rates.to_settlement(unit_usd)
            line_total = (unit_price * line.quantity).quantize(Decimal('0.01'))
            subtotal += line_total
            order_lines.append({
                'variant': variant,
                'quantity': line.quantity,
                'unit_price': unit_price,
                'line_total': line_total,
            })

        # 4. Order header
        order = Order(
            order_no=allocate_order_no(session, now),
            status=OrderStatus.PENDING_PAYMENT.value,
            currency=_config('SETTLEMENT_CURRENCY', 'TRY'),
            subtotal=subtotal,
            discount_total=Decimal('0.00'),
            shipping_total=Decimal('0.00'),
            grand_total=subtotal,
            shipping_address=address_snapshot,
            user_id=user_id,
            is_guest=is_guest,
            guest_email=guest_contact['email'] if guest_contact else None,
            guest_name=guest_contact['full_name'] if guest_contact else None,
            guest_phone=guest_contact['phone'] if guest_contact else None,
        )
        session.add(order)
        session.flush()

        # 5. Item snapshots and stock
        for data in order_lines:
            variant = data['variant']
            session.add(OrderItem(
                order_id=order.id,
                variant_id=variant.id,
                product_id=variant.product_id,
                quantity=data['quantity'],
                unit_price_snapshot=data['unit_price'],
                line_total=data['line_total'],
                product_name_snapshot=variant.display_name,
                sku_snapshot=variant.sku or '',
            ))
            variant.stock -= data['quantity']

        # 6. Close the cart
        cart.status = CartStatus.CONVERTED.value

        session.commit()

    except IntegrityError as e:
        session.rollback()
        logger.error(f"[CHECKOUT] Integrity error while placing order: {e}")
        raise BusinessLogicError('Your order could not be placed, please try again.')
    except StoreError:
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        logger.exception(f"[CHECKOUT] Unexpected error placing order: {e}")
        raise StoreError('An unexpected error occurred while creating your order.')

    logger.info(f"[CHECKOUT] Order {order.order_no} placed ({len(order_lines)} lines, {order.grand_total} {order.currency})")

    if is_guest:
        guest_store.clear_session()

    bus = get_events(events)
    if bus is not None:
        bus.notify_cart_changed(cart_id)
        bus.notify_order_placed(order.id, notification_payload(session, order))
    return order.id

