"""
Integration tests for placing orders from the active cart.
"""
import re
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from storefront.exceptions import (
    BusinessLogicError, CartUnavailableError, InactiveProductError,
    InsufficientStockError, ValidationError,
)
from storefront.models import (
    Address, Cart, CartStatus, Order, OrderItem, OrderStatus, ProductVariant, VariantPrice,
)
from storefront.services import checkout_service
from storefront.services.cart_service import get_or_create_active_cart, add_item, get_cart_view
from storefront.services.checkout_service import place_order, validate_contact, generate_order_no

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def guest_cart(session, guest_store):
    return get_or_create_active_cart(session, guest_store=guest_store)


def _guest_order(session, rates, guest_store, guest_contact, guest_address, **kwargs):
    return place_order(
        session, rates,
        shipping_address=guest_address,
        contact=guest_contact,
        guest_store=guest_store,
        now=NOW,
        **kwargs
    )


class TestGuestCheckout:

    def test_creates_pending_order_in_display_currency(self, session, rates, guest_store, guest_cart,
                                                       panel, inverter, guest_contact, guest_address):
        add_item(session, guest_cart, panel.id, 2)
        add_item(session, guest_cart, inverter.id, 1)

        order_id = _guest_order(session, rates, guest_store, guest_contact, guest_address)

        order = session.get(Order, order_id)
        assert order.status == OrderStatus.PENDING_PAYMENT.value
        assert order.currency == 'TRY'
        assert order.subtotal == Decimal('15750.00')
        assert order.grand_total == Decimal('15750.00')
        assert order.discount_total == Decimal('0.00')
        assert order.shipping_total == Decimal('0.00')
        assert order.is_guest is True
        assert order.user_id is None
        assert order.guest_email == 'guest@test.com'
        assert order.shipping_address['city'] == 'Mersin'
        assert re.match(r'^ORB-2026\d{4}$', order.order_no)

        items = {item.variant_id: item for item in order.items}
        assert items[panel.id].unit_price_snapshot == Decimal('3500.00')
        assert items[panel.id].line_total == Decimal('7000.00')
        assert items[panel.id].sku_snapshot == 'PNL-450'
        assert items[inverter.id].product_name_snapshot == 'Solar Panel - 5kW Inverter'

    def test_converts_cart_and_decrements_stock(self, session, rates, guest_store, guest_cart,
                                                panel, guest_contact, guest_address):
        add_item(session, guest_cart, panel.id, 3)

        _guest_order(session, rates, guest_store, guest_contact, guest_address)

        assert session.get(Cart, guest_cart).status == CartStatus.CONVERTED.value
        assert session.get(ProductVariant, panel.id).stock == 7

    def test_clears_guest_session(self, session, rates, guest_store, guest_cart,
                                  panel, guest_contact, guest_address):
        add_item(session, guest_cart, panel.id, 1)

        _guest_order(session, rates, guest_store, guest_contact, guest_address)

        assert guest_store.has_active_session() is False

    def test_address_falls_back_to_contact(self, session, rates, guest_store, guest_cart,
                                           panel, guest_contact, guest_address):
        add_item(session, guest_cart, panel.id, 1)
        guest_address.update(full_name='', phone=None)

        order_id = _guest_order(session, rates, guest_store, guest_contact, guest_address)

        snapshot = session.get(Order, order_id).shipping_address
        assert snapshot['full_name'] == 'Mehmet Demir'
        assert snapshot['phone'] == '05551234567'

    def test_emits_order_placed(self, session, rates, events, guest_store, guest_cart,
                                panel, guest_contact, guest_address):
        placed = []
        events.on_order_placed(lambda order_id, payload=None: placed.append((order_id, payload)))
        add_item(session, guest_cart, panel.id, 1)

        order_id = _guest_order(session, rates, guest_store, guest_contact, guest_address, events=events)

        assert len(placed) == 1
        assert placed[0][0] == order_id
        assert placed[0][1]['customerEmail'] == 'guest@test.com'
        assert placed[0][1]['grandTotal'] == '3500.00'


class TestUserCheckout:

    def test_uses_saved_address(self, session, rates, customer, customer_address, panel):
        cart_id = get_or_create_active_cart(session, user_id=customer.id)
        add_item(session, cart_id, panel.id, 1)

        order_id = place_order(session, rates, user_id=customer.id, address_id=customer_address.id, now=NOW)

        order = session.get(Order, order_id)
        assert order.is_guest is False
        assert order.user_id == customer.id
        assert order.guest_email is None
        assert order.shipping_address['district'] == 'Yenişehir'

    def test_rejects_foreign_address(self, session, rates, dealer, customer_address, panel):
        cart_id = get_or_create_active_cart(session, user_id=dealer.id)
        add_item(session, cart_id, panel.id, 1)

        with pytest.raises(ValidationError) as exc:
            place_order(session, rates, user_id=dealer.id, address_id=customer_address.id)
        assert exc.value.field == 'address_id'

    def test_wholesale_override_price(self, session, rates, dealer, panel):
        session.add(VariantPrice(variant_id=panel.id, role='b2b', price=Decimal('80.00'), is_active=True))
        session.commit()
        cart_id = get_or_create_active_cart(session, user_id=dealer.id)
        add_item(session, cart_id, panel.id, 1)
        address = {'full_name': 'Bayi Enerji', 'phone': '05320000000', 'city': 'Adana',
                   'district': 'Seyhan', 'address_line': 'Sanayi Sit. 4'}
        saved = Address(profile_id=dealer.id, **address)
        session.add(saved)
        session.commit()

        order_id = place_order(session, rates, user_id=dealer.id, address_id=saved.id, now=NOW)

        assert session.get(Order, order_id).grand_total == Decimal('2800.00')


class TestCheckoutGuards:

    def test_insufficient_stock_leaves_no_order(self, session, rates, guest_store, guest_cart,
                                                make_variant, guest_contact, guest_address):
        """Line wants 5, stock dropped to 3 meanwhile: nothing is written."""
        variant = make_variant(name='Battery', stock=5)
        add_item(session, guest_cart, variant.id, 5)
        variant.stock = 3
        session.commit()

        with pytest.raises(InsufficientStockError) as exc:
            _guest_order(session, rates, guest_store, guest_contact, guest_address)

        assert exc.value.available == 3
        assert exc.value.requested == 5
        assert session.query(Order).count() == 0
        assert session.query(OrderItem).count() == 0
        assert session.get(ProductVariant, variant.id).stock == 3
        assert session.get(Cart, guest_cart).status == CartStatus.ACTIVE.value
        assert guest_store.has_active_session() is True

    def test_inactive_product_blocks_order(self, session, rates, guest_store, guest_cart,
                                           panel, product, guest_contact, guest_address):
        """Product taken off sale after the line was added."""
        add_item(session, guest_cart, panel.id, 1)
        product.is_active = False
        session.commit()

        with pytest.raises(InactiveProductError):
            _guest_order(session, rates, guest_store, guest_contact, guest_address)
        assert session.query(Order).count() == 0
        assert session.get(ProductVariant, panel.id).stock == 10

    def test_cart_converted_in_another_tab(self, session, rates, guest_store, guest_cart,
                                           panel, guest_contact, guest_address, monkeypatch):
        """A second submit that resolved the cart before the first one committed."""
        add_item(session, guest_cart, panel.id, 2)
        _guest_order(session, rates, guest_store, guest_contact, guest_address)

        monkeypatch.setattr(checkout_service, 'get_current_cart_id', lambda *args, **kwargs: guest_cart)

        with pytest.raises(CartUnavailableError):
            _guest_order(session, rates, guest_store, guest_contact, guest_address)
        assert session.query(Order).count() == 1
        assert session.get(ProductVariant, panel.id).stock == 8

    def test_inactive_variant_blocks_order(self, session, rates, guest_store, guest_cart,
                                           panel, guest_contact, guest_address):
        add_item(session, guest_cart, panel.id, 1)
        panel.is_active = False
        session.commit()

        with pytest.raises(InactiveProductError):
            _guest_order(session, rates, guest_store, guest_contact, guest_address)
        assert session.query(Order).count() == 0

    def test_empty_cart(self, session, rates, guest_store, guest_cart, guest_contact, guest_address):
        with pytest.raises(BusinessLogicError, match='empty'):
            _guest_order(session, rates, guest_store, guest_contact, guest_address)

    def test_no_active_cart(self, session, rates, guest_store, guest_contact, guest_address):
        with pytest.raises(CartUnavailableError):
            _guest_order(session, rates, guest_store, guest_contact, guest_address)

    def test_incomplete_address(self, session, rates, guest_store, guest_cart,
                                panel, guest_contact, guest_address):
        add_item(session, guest_cart, panel.id, 1)
        guest_address['city'] = ' '

        with pytest.raises(ValidationError) as exc:
            _guest_order(session, rates, guest_store, guest_contact, guest_address)
        assert exc.value.field == 'city'

    def test_order_number_exhaustion(self, session, rates, guest_store, guest_cart,
                                     panel, guest_contact, guest_address, monkeypatch):
        add_item(session, guest_cart, panel.id, 1)
        first = _guest_order(session, rates, guest_store, guest_contact, guest_address)
        taken = session.get(Order, first).order_no

        cart = get_or_create_active_cart(session, guest_store=guest_store)
        add_item(session, cart, panel.id, 1)
        monkeypatch.setattr(checkout_service, 'generate_order_no', lambda prefix, year: taken)

        with pytest.raises(BusinessLogicError):
            _guest_order(session, rates, guest_store, guest_contact, guest_address)
        assert session.query(Order).count() == 1


class TestCartMatchesOrder:
    """What the cart shows is what checkout charges."""

    def test_fractional_discount_totals_agree(self, session, rates, guest_store, guest_cart,
                                              make_variant, guest_contact, guest_address):
        # 10.01 USD - 15% = 8.5085 USD; x 35 = 297.7975 -> 297.80 TL per unit
        variant = make_variant(name='Fractional', base_price='10.01', stock=10,
                               discount_percentage=Decimal('15'))
        add_item(session, guest_cart, variant.id, 3)
        view = get_cart_view(session, guest_cart, 'b2c', rates)

        order_id = _guest_order(session, rates, guest_store, guest_contact, guest_address)

        order = session.get(Order, order_id)
        assert order.grand_total == Decimal('893.40')
        assert view['subtotal_local'] == order.grand_total
        assert view['subtotal_display'] == '893,40 TL'
        assert view['items'][0]['unit_price_local'] == order.items[0].unit_price_snapshot
        assert view['items'][0]['line_total_display'] == '893,40 TL'


class TestSnapshots:

    def test_catalog_edits_do_not_touch_order(self, session, rates, guest_store, guest_cart,
                                              panel, guest_contact, guest_address):
        add_item(session, guest_cart, panel.id, 1)
        order_id = _guest_order(session, rates, guest_store, guest_contact, guest_address)

        variant = session.get(ProductVariant, panel.id)
        variant.name = 'Renamed'
        variant.sku = 'NEW-SKU'
        variant.base_price = Decimal('999.00')
        session.commit()
        rates.set_rate(Decimal('40.00'), cache=False)

        item = session.query(OrderItem).filter(OrderItem.order_id == order_id).populate_existing().one()
        assert item.product_name_snapshot == 'Solar Panel - 450W Mono'
        assert item.sku_snapshot == 'PNL-450'
        assert item.unit_price_snapshot == Decimal('3500.00')


class TestContactValidation:

    @pytest.mark.parametrize('contact,field', [
        ({'email': 'no-at-sign', 'full_name': 'Ali Veli', 'phone': '05551234567'}, 'email'),
        ({'email': 'a@b.com', 'full_name': 'Al', 'phone': '05551234567'}, 'full_name'),
        ({'email': 'a@b.com', 'full_name': 'Ali Veli', 'phone': '555'}, 'phone'),
        (None, 'email'),
    ])
    def test_invalid_contact(self, contact, field):
        with pytest.raises(ValidationError) as exc:
            validate_contact(contact)
        assert exc.value.field == field

    def test_trims_values(self):
        contact = validate_contact({'email': ' a@b.com ', 'full_name': ' Ali Veli ', 'phone': '0555 123 45 67'})
        assert contact == {'email': 'a@b.com', 'full_name': 'Ali Veli', 'phone': '0555 123 45 67'}


def test_generate_order_no_format():
    assert re.match(r'^ORB-2026\d{4}$', generate_order_no('ORB', 2026))
