"""
Cart resolution, guest-cart merge and cart line operations.

One active cart per identity is guaranteed by partial unique indexes on
``carts``; creation inserts optimistically and, when the insert loses a
race, re-reads the winner's row.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Dict, Any

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from storefront.exceptions import (
    BusinessLogicError, NotFoundError, CartUnavailableError,
    InactiveProductError, InsufficientStockError,
)
from storefront.models import Cart, CartItem, CartStatus, Profile, ProductVariant
from storefront.services.events import get_events
from storefront.services.guest_session_service import GuestSessionStore
from storefront.services.pricing_service import price_variant
from storefront.utils.consistency import wait_for_consistency
from storefront.utils.formatters import quantize_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Who owns a cart: an authenticated user or a guest session."""
    user_id: Optional[str] = None
    session_id: Optional[str] = None

    @classmethod
    def guest(cls, session_id: str) -> 'Identity':
        return cls(session_id=session_id)

    @property
    def is_guest(self) -> bool:
        return self.user_id is None


def _config(key: str, default):
    try:
        return current_app.config.get(key, default)
    except RuntimeError:
        return default


def _notify(cart_id: Optional[str]) -> None:
    events = get_events()
    if events is not None:
        events.notify_cart_changed(cart_id)


def _owner_filter(identity: Identity):
    if identity.user_id:
        return Cart.profile_id == identity.user_id
    return Cart.session_id == identity.session_id


def _find_active_cart_id(session: Session, identity: Identity) -> Optional[str]:
    row = (
        session.query(Cart.id)
        .filter(_owner_filter(identity), Cart.status == CartStatus.ACTIVE.value)
        .first()
    )
    return row.id if row else None


def _wait_for_profile(session: Session, user_id: str) -> None:
    """Profiles are written by the auth provider and may lag behind sign-up."""
    def profile_exists() -> bool:
        return session.query(Profile.id).filter(Profile.id == user_id).first() is not None

    found = wait_for_consistency(
        profile_exists,
        attempts=_config('PROFILE_WAIT_ATTEMPTS', 5),
        delay=_config('PROFILE_WAIT_DELAY', 0.5),
    )
    if not found:
        logger.warning(f"[CART] Profile {user_id} not visible after retries, continuing anyway")


def _resolve_identity(user_id: Optional[str], guest_store: Optional[GuestSessionStore], create: bool) -> Optional[Identity]:
    if user_id:
        return Identity(user_id=user_id)
    store = guest_store or GuestSessionStore()
    session_id = store.get_or_create_session_id() if create else store.peek_session_id()
    if not session_id:
        return None
    return Identity.guest(session_id)


def get_or_create_active_cart(session: Session, user_id: Optional[str] = None, guest_store: Optional[GuestSessionStore] = None) -> Optional[str]:
    """
    Return the caller's active cart id, creating the cart on first use.

    Concurrent callers for the same identity all receive the same id.
    Returns None when the cart cannot be resolved; callers show
    "cart unavailable" instead of failing.
    """
    try:
        identity = _resolve_identity(user_id, guest_store, create=True)
        if identity is None:
            logger.warning("[CART] No identity available, cart unavailable")
            return None

        if not identity.is_guest:
            _wait_for_profile(session, identity.user_id)

        cart_id = _find_active_cart_id(session, identity)
        if cart_id:
            return cart_id

        cart = Cart(
            profile_id=identity.user_id,
            session_id=identity.session_id,
            status=CartStatus.ACTIVE.value,
            is_guest=identity.is_guest,
        )
        session.add(cart)
        try:
            session.commit()
            logger.info(f"[CART] Created cart {cart.id} for {'guest' if identity.is_guest else 'user'}")
            return cart.id
        except IntegrityError:
            # Another request created the active cart first
            session.rollback()
            winner = _find_active_cart_id(session, identity)
            if winner is None:
                logger.error("[CART] Active cart conflict but no winner row found")
            return winner
    except Exception as e:
        session.rollback()
        logger.exception(f"[CART] Error resolving active cart: {e}")
        return None


def get_current_cart_id(session: Session, user_id: Optional[str] = None, guest_store: Optional[GuestSessionStore] = None) -> Optional[str]:
    """Read-only lookup: never creates a cart or a guest session."""
    try:
        identity = _resolve_identity(user_id, guest_store, create=False)
        if identity is None:
            return None
        return _find_active_cart_id(session, identity)
    except Exception as e:
        logger.warning(f"[CART] Error reading current cart: {e}")
        return None


def _load_guest_cart(session: Session, session_id: str) -> Optional[Cart]:
    """Guest's active cart, row-locked for the merge."""
    return (
        session.query(Cart)
        .options(selectinload(Cart.items))
        .filter(Cart.session_id == session_id, Cart.status == CartStatus.ACTIVE.value)
        .with_for_update()
        .populate_existing()
        .first()
    )


def _load_user_cart(session: Session, user_id: str) -> Optional[Cart]:
    return (
        session.query(Cart)
        .options(selectinload(Cart.items))
        .filter(Cart.profile_id == user_id, Cart.status == CartStatus.ACTIVE.value)
        .populate_existing()
        .first()
    )


def _fold_into(session: Session, guest_cart: Cart, user_cart: Cart) -> str:
    """Sum guest lines into the user's cart and delete the guest cart. Commits."""
    merged_lines = len(guest_cart.items)
    existing = {item.variant_id: item for item in user_cart.items}
    for line in guest_cart.items:
        if line.variant_id in existing:
            existing[line.variant_id].quantity += line.quantity
        else:
            session.add(CartItem(cart_id=user_cart.id, variant_id=line.variant_id, quantity=line.quantity))
    session.delete(guest_cart)
    session.commit()
    logger.info(f"[CART] Merged {merged_lines} guest lines into cart {user_cart.id}")
    return user_cart.id


def _transfer(session: Session, guest_cart: Cart, user_id: str) -> str:
    """Hand the guest cart to the user with one UPDATE. Commits."""
    session.query(Cart).filter(Cart.id == guest_cart.id).update(
        {Cart.session_id: None, Cart.profile_id: user_id, Cart.is_guest: False},
        synchronize_session="fetch",
    )
    session.commit()
    logger.info(f"[CART] Guest cart {guest_cart.id} transferred to user {user_id}")
    return guest_cart.id


def merge_guest_cart_into_user(session: Session, user_id: str, guest_store: GuestSessionStore) -> Optional[str]:
    """
    Fold the guest's active cart into the user's, once, at sign-in.

    Runs in a single transaction holding a row lock on the guest cart.
    When the user already has an active cart, quantities are summed per
    variant and the guest cart is deleted; otherwise the guest cart is
    handed over to the user with one UPDATE. If a user cart appears
    between the lookup and the UPDATE, the merge falls back to summing.
    The guest session is cleared in every case.

    Returns the user's active cart id after the merge, or None when there
    was nothing to merge.
    """
    session_id = guest_store.peek_session_id()
    if not session_id:
        return None

    try:
        guest_cart = _load_guest_cart(session, session_id)
        if guest_cart is None:
            return None

        user_cart = _load_user_cart(session, user_id)
        if user_cart is not None:
            target_id = _fold_into(session, guest_cart, user_cart)
        else:
            try:
                target_id = _transfer(session, guest_cart, user_id)
            except IntegrityError:
                # Another request created the user's active cart first
                session.rollback()
                logger.warning(f"[CART] User {user_id} got an active cart during merge, summing lines instead")
                guest_cart = _load_guest_cart(session, session_id)
                user_cart = _load_user_cart(session, user_id)
                if guest_cart is None or user_cart is None:
                    logger.error("[CART] Merge conflict but carts could not be re-read")
                    return None
                target_id = _fold_into(session, guest_cart, user_cart)

        _notify(target_id)
        return target_id
    except Exception as e:
        session.rollback()
        logger.exception(f"[CART] Error merging guest cart: {e}")
        return None
    finally:
        guest_store.clear_session()


# =====================================================
# CART LINES
# =====================================================

def _get_cart(session: Session, cart_id: str) -> Cart:
    cart = session.get(Cart, cart_id)
    if cart is None or cart.status != CartStatus.ACTIVE.value:
        raise CartUnavailableError()
    return cart


def _check_quantity(quantity) -> int:
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise BusinessLogicError('Quantity must be a whole number')
    return quantity


def add_item(session: Session, cart_id: str, variant_id: str, quantity: int = 1) -> CartItem:
    """
    Add ``quantity`` of a variant. Adding a variant already in the cart
    increments that line.
    """
    quantity = _check_quantity(quantity)
    if quantity <= 0:
        raise BusinessLogicError('Quantity must be greater than 0')

    try:
        _get_cart(session, cart_id)
        variant = session.get(ProductVariant, variant_id)
        if variant is None:
            raise NotFoundError('Product not found.')
        if not variant.is_active or (variant.product is not None and not variant.product.is_active):
            raise InactiveProductError(variant.display_name)

        item = (
            session.query(CartItem)
            .filter(CartItem.cart_id == cart_id, CartItem.variant_id == variant_id)
            .first()
        )
        new_quantity = quantity + (item.quantity if item else 0)
        if new_quantity > variant.stock:
            raise InsufficientStockError(variant.display_name, new_quantity, variant.stock)

        if item:
            item.quantity = new_quantity
        else:
            item = CartItem(cart_id=cart_id, variant_id=variant_id, quantity=quantity)
            session.add(item)
        session.commit()
    except Exception:
        session.rollback()
        raise

    _notify(cart_id)
    return item


def update_item_quantity(session: Session, cart_id: str, item_id: str, quantity: int) -> Optional[CartItem]:
    """Set a line's quantity; 0 or less removes the line. Capped by stock."""
    quantity = _check_quantity(quantity)
    try:
        _get_cart(session, cart_id)
        item = session.query(CartItem).filter(CartItem.id == item_id, CartItem.cart_id == cart_id).first()
        if item is None:
            raise NotFoundError('Cart item not found.')

        if quantity <= 0:
            session.delete(item)
            item = None
        else:
            variant = item.variant
            if quantity > variant.stock:
                raise InsufficientStockError(variant.display_name, quantity, variant.stock)
            item.quantity = quantity
        session.commit()
    except Exception:
        session.rollback()
        raise

    _notify(cart_id)
    return item


def remove_item(session: Session, cart_id: str, item_id: str) -> None:
    try:
        _get_cart(session, cart_id)
        deleted = (
            session.query(CartItem)
            .filter(CartItem.id == item_id, CartItem.cart_id == cart_id)
            .delete(synchronize_session="fetch")
        )
        if not deleted:
            raise NotFoundError('Cart item not found.')
        session.commit()
    except Exception:
        session.rollback()
        raise
    _notify(cart_id)


def clear_cart(session: Session, cart_id: str) -> None:
    try:
        _get_cart(session, cart_id)
        session.query(CartItem).filter(CartItem.cart_id == cart_id).delete(synchronize_session="fetch")
        session.commit()
    except Exception:
        session.rollback()
        raise
    _notify(cart_id)


def count_items(session: Session, cart_id: Optional[str]) -> int:
    """Total units in the cart; 0 when unknown (badge refresh is best-effort)."""
    if not cart_id:
        return 0
    try:
        lines = session.query(CartItem.quantity).filter(CartItem.cart_id == cart_id).all()
        return sum(line.quantity for line in lines)
    except Exception as e:
        logger.warning(f"[CART] Error counting items: {e}")
        return 0


def get_cart_view(session: Session, cart_id: str, role: str, rates) -> Dict[str, Any]:
    """
    Cart lines with live prices for ``role``.

    USD figures are per-unit prices rounded to cents. ``*_local`` amounts
    and ``*_display`` strings are in the settlement currency at the
    current rate, computed the way checkout charges them.
    """
    cart = (
        session.query(Cart)
        .options(joinedload(Cart.items).joinedload(CartItem.variant))
        .filter(Cart.id == cart_id)
        .populate_existing()
        .first()
    )
    if cart is None:
        raise CartUnavailableError()

    lines = []
    subtotal = Decimal('0')
    subtotal_local = Decimal('0.00')
    for item in sorted(cart.items, key=lambda i: (i.created_at is None, i.created_at, i.id)):
        variant = item.variant
        price = price_variant(session, variant, role)
        unit_price = quantize_money(price.final_price)
        line_total = unit_price * item.quantity
        subtotal += line_total
        unit_local = rates.to_settlement(price.final_price)
        line_local = unit_local * item.quantity
        subtotal_local += line_local
        lines.append({
            'item_id': item.id,
            'variant_id': variant.id,
            'name': variant.display_name,
            'sku': variant.sku,
            'quantity': item.quantity,
            'stock': variant.stock,
            'is_active': variant.is_active,
            'unit_price': unit_price,
            'original_price': quantize_money(price.original_price),
            'has_discount': price.has_discount,
            'discount_percentage': price.discount_percentage,
            'line_total': line_total,
            'unit_price_local': unit_local,
            'line_total_local': line_local,
            'unit_price_display': rates.format_local(unit_local),
            'line_total_display': rates.format_local(line_local),
        })

    return {
        'cart_id': cart.id,
        'status': cart.status,
        'items': lines,
        'item_count': sum(line['quantity'] for line in lines),
        'subtotal': subtotal,
        'subtotal_local': subtotal_local,
        'subtotal_display': rates.format_local(subtotal_local),
        'rate': rates.rate,
    }
