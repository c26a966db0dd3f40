"""
Tiered pricing resolver.

Effective unit price = base price, replaced by the newest active
role override for wholesale callers, then reduced by an active
time-boxed discount. All amounts are USD Decimals; rounding to cents
happens at presentation/persistence boundaries, not here.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any, Union

from flask import current_app
from sqlalchemy.orm import Session

from storefront.exceptions import BusinessLogicError, NotFoundError
from storefront.models import Profile, ProductVariant, PriceList, VariantPrice
from storefront.utils.dates import utcnow, as_utc, parse_iso
from storefront.utils.formatters import to_decimal

logger = logging.getLogger(__name__)

HUNDRED = Decimal('100')


@dataclass(frozen=True)
class Discount:
    """Percentage discount valid within [start, end]; None bounds are open."""
    percentage: Union[Decimal, int, float, str]
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return is_discount_active(self.percentage, self.start, self.end, now=now)


@dataclass(frozen=True)
class PriceResult:
    """Price breakdown for UI (original vs. final)."""
    final_price: Decimal
    original_price: Decimal
    has_discount: bool
    discount_percentage: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            'final_price': self.final_price,
            'original_price': self.original_price,
            'has_discount': self.has_discount,
            'discount_percentage': self.discount_percentage,
        }


def _role_setting(key: str, default: str) -> str:
    try:
        return current_app.config.get(key, default)
    except RuntimeError:
        return default


def wholesale_role() -> str:
    return _role_setting('WHOLESALE_ROLE', 'b2b')


def default_role() -> str:
    return _role_setting('DEFAULT_ROLE', 'b2c')


def _valid_percentage(percentage) -> Optional[Decimal]:
    """Percentage as Decimal when inside (0, 100], else None."""
    if percentage is None or percentage == '':
        return None
    try:
        pct = to_decimal(percentage)
    except ValueError:
        return None
    if pct <= 0 or pct > HUNDRED:
        return None
    return pct


def is_discount_active(percentage, start=None, end=None, now: Optional[datetime] = None) -> bool:
    """
    Whether a discount applies at ``now``.

    Percentages <= 0 never apply; percentages above 100 are rejected.
    Bounds may be datetimes or ISO strings.
    """
    if _valid_percentage(percentage) is None:
        return False

    now = as_utc(now) if now is not None else utcnow()
    start_dt = parse_iso(start)
    end_dt = parse_iso(end)

    if start_dt and start_dt > now:
        return False
    if end_dt and end_dt < now:
        return False
    return True


def apply_discount(price, percentage) -> Decimal:
    """price * (1 - pct/100); out-of-range percentages leave the price untouched."""
    price = to_decimal(price)
    pct = _valid_percentage(percentage)
    if pct is None:
        return price
    return price * (1 - pct / HUNDRED)


def fetch_user_role(session: Session, user_id: Optional[str]) -> str:
    """Role from the caller's profile; guests and missing profiles get the default tier."""
    if not user_id:
        return default_role()
    profile = session.query(Profile.role).filter(Profile.id == user_id).first()
    if not profile or not profile.role:
        return default_role()
    return profile.role


def get_override_price(session: Session, variant_id: str, role: str) -> Optional[Decimal]:
    """Newest active override for (variant, role), or None."""
    row = (
        session.query(VariantPrice.price)
        .filter(
            VariantPrice.variant_id == variant_id,
            VariantPrice.role == role,
            VariantPrice.is_active.is_(True),
        )
        .order_by(VariantPrice.created_at.desc())
        .first()
    )
    return to_decimal(row.price) if row else None


def _role_price(session: Session, variant_id: str, base_price, role: str) -> Decimal:
    price = to_decimal(base_price)
    if role == wholesale_role():
        override = get_override_price(session, variant_id, role)
        if override is not None:
            price = override
    return price


def resolve_unit_price(
    session: Session,
    variant_id: str,
    base_price,
    role: str,
    discount: Optional[Discount] = None,
    now: Optional[datetime] = None,
) -> Decimal:
    """Effective unit price (USD) for ``role``."""
    price = _role_price(session, variant_id, base_price, role)
    if discount is not None and discount.is_active(now):
        price = apply_discount(price, discount.percentage)
    return price


def resolve_price_detail(
    session: Session,
    variant_id: str,
    base_price,
    role: str,
    discount: Optional[Discount] = None,
    now: Optional[datetime] = None,
) -> PriceResult:
    """Like resolve_unit_price, plus the pre-discount price and applied percentage."""
    original_price = _role_price(session, variant_id, base_price, role)
    has_discount = discount is not None and discount.is_active(now)
    if has_discount:
        return PriceResult(
            final_price=apply_discount(original_price, discount.percentage),
            original_price=original_price,
            has_discount=True,
            discount_percentage=to_decimal(discount.percentage),
        )
    return PriceResult(
        final_price=original_price,
        original_price=original_price,
        has_discount=False,
        discount_percentage=Decimal('0'),
    )


def price_variant(session: Session, variant: ProductVariant, role: str, now: Optional[datetime] = None) -> PriceResult:
    """Price breakdown for a loaded variant row."""
    return resolve_price_detail(session, variant.id, variant.base_price, role, variant.discount, now=now)


# =====================================================
# ADMIN: OVERRIDE PRICES
# =====================================================

def _validate_price(value) -> Decimal:
    try:
        price = to_decimal(value)
    except ValueError:
        raise BusinessLogicError(f'Invalid price: {value!r}')
    if not price.is_finite() or price <= 0:
        raise BusinessLogicError('Price must be greater than 0')
    return price


def _supersede(session: Session, variant_id: str, role: str) -> int:
    """Deactivate current overrides for (variant, role). Returns affected rows."""
    return (
        session.query(VariantPrice)
        .filter(
            VariantPrice.variant_id == variant_id,
            VariantPrice.role == role,
            VariantPrice.is_active.is_(True),
        )
        .update({VariantPrice.is_active: False}, synchronize_session="fetch")
    )


def set_override_price(session: Session, variant_id: str, price, role: Optional[str] = None) -> VariantPrice:
    """
    Make ``price`` the override for (variant, role).

    Older active rows are deactivated in the same transaction, so at most
    one active override exists per pair from here on. Flushes, does not commit.
    """
    role = role or wholesale_role()
    price = _validate_price(price)
    if not session.query(ProductVariant.id).filter(ProductVariant.id == variant_id).first():
        raise NotFoundError('Variant not found.')

    _supersede(session, variant_id, role)
    row = VariantPrice(variant_id=variant_id, role=role, price=price, is_active=True)
    session.add(row)
    session.flush()
    return row


def create_price_list(session: Session, name: str, items: List[Dict[str, Any]], role: Optional[str] = None) -> PriceList:
    """
    Create a named price list from ``items`` ({variant_id, price}) and
    commit it. Items without a price are skipped.
    """
    name = (name or '').strip()
    if not name:
        raise BusinessLogicError('Price list name is required')
    role = role or wholesale_role()

    priced = [i for i in (items or []) if i.get('price') not in (None, '')]
    if not priced:
        raise BusinessLogicError('Price list has no priced items')

    try:
        price_list = PriceList(name=name, role=role)
        session.add(price_list)
        session.flush()
        for item in priced:
            row = set_override_price(session, item['variant_id'], item['price'], role=role)
            row.price_list_id = price_list.id
        session.commit()
        logger.info(f"[PRICING] Price list '{name}' created with {len(priced)} items for role {role}")
        return price_list
    except Exception:
        session.rollback()
        raise
