"""
Integration tests for cart line operations and the priced cart view.
"""
from decimal import Decimal

import pytest

from storefront.exceptions import (
    BusinessLogicError, CartUnavailableError, InactiveProductError,
    InsufficientStockError, NotFoundError,
)
from storefront.models import Cart, CartItem, CartStatus
from storefront.services.cart_service import (
    get_or_create_active_cart, add_item, update_item_quantity, remove_item,
    clear_cart, count_items, get_cart_view,
)


@pytest.fixture
def cart_id(session, customer):
    return get_or_create_active_cart(session, user_id=customer.id)


class TestAddItem:

    def test_adding_same_variant_twice_keeps_one_line(self, session, cart_id, panel):
        add_item(session, cart_id, panel.id, 1)
        add_item(session, cart_id, panel.id, 2)

        lines = session.query(CartItem).filter(CartItem.cart_id == cart_id).all()
        assert len(lines) == 1
        assert lines[0].quantity == 3

    def test_rejects_inactive_variant(self, session, cart_id, make_variant):
        retired = make_variant(name='Old Panel', is_active=False)

        with pytest.raises(InactiveProductError):
            add_item(session, cart_id, retired.id, 1)
        assert count_items(session, cart_id) == 0

    def test_rejects_inactive_product(self, session, cart_id, panel, product):
        product.is_active = False
        session.commit()

        with pytest.raises(InactiveProductError):
            add_item(session, cart_id, panel.id, 1)

    def test_rejects_quantity_over_stock(self, session, cart_id, inverter):
        add_item(session, cart_id, inverter.id, 4)

        with pytest.raises(InsufficientStockError) as exc:
            add_item(session, cart_id, inverter.id, 2)

        assert exc.value.requested == 6
        assert exc.value.available == 5
        assert count_items(session, cart_id) == 4

    def test_rejects_non_positive_quantity(self, session, cart_id, panel):
        with pytest.raises(BusinessLogicError):
            add_item(session, cart_id, panel.id, 0)
        with pytest.raises(BusinessLogicError):
            add_item(session, cart_id, panel.id, 'two')

    def test_unknown_variant(self, session, cart_id):
        with pytest.raises(NotFoundError):
            add_item(session, cart_id, 'missing-variant', 1)

    def test_converted_cart_is_unavailable(self, session, cart_id, panel):
        session.get(Cart, cart_id).status = CartStatus.CONVERTED.value
        session.commit()

        with pytest.raises(CartUnavailableError):
            add_item(session, cart_id, panel.id, 1)


class TestUpdateAndRemove:

    def test_update_quantity(self, session, cart_id, panel):
        item = add_item(session, cart_id, panel.id, 1)

        updated = update_item_quantity(session, cart_id, item.id, 4)

        assert updated.quantity == 4
        assert count_items(session, cart_id) == 4

    def test_update_to_zero_removes_line(self, session, cart_id, panel):
        item = add_item(session, cart_id, panel.id, 2)

        assert update_item_quantity(session, cart_id, item.id, 0) is None
        assert session.query(CartItem).filter(CartItem.cart_id == cart_id).count() == 0

    def test_update_capped_by_stock(self, session, cart_id, inverter):
        item = add_item(session, cart_id, inverter.id, 1)

        with pytest.raises(InsufficientStockError):
            update_item_quantity(session, cart_id, item.id, 6)
        assert count_items(session, cart_id) == 1

    def test_remove_item(self, session, cart_id, panel, inverter):
        item = add_item(session, cart_id, panel.id, 1)
        add_item(session, cart_id, inverter.id, 1)

        remove_item(session, cart_id, item.id)

        assert count_items(session, cart_id) == 1

    def test_remove_unknown_item(self, session, cart_id):
        with pytest.raises(NotFoundError):
            remove_item(session, cart_id, 'missing-item')

    def test_clear_cart(self, session, cart_id, panel, inverter):
        add_item(session, cart_id, panel.id, 2)
        add_item(session, cart_id, inverter.id, 1)

        clear_cart(session, cart_id)

        assert count_items(session, cart_id) == 0
        assert session.get(Cart, cart_id).status == CartStatus.ACTIVE.value


class TestCount:

    def test_counts_units(self, session, cart_id, panel, inverter):
        add_item(session, cart_id, panel.id, 2)
        add_item(session, cart_id, inverter.id, 3)
        assert count_items(session, cart_id) == 5

    def test_unknown_cart_counts_zero(self, session):
        assert count_items(session, None) == 0
        assert count_items(session, 'missing-cart') == 0

    def test_line_changes_emit_cart_changed(self, app, session, cart_id, panel):
        seen = []
        unsubscribe = app.extensions['events'].on_cart_changed(lambda sender, **kw: seen.append(sender))
        try:
            item = add_item(session, cart_id, panel.id, 1)
            update_item_quantity(session, cart_id, item.id, 2)
            clear_cart(session, cart_id)
        finally:
            unsubscribe()

        assert seen == [cart_id, cart_id, cart_id]


class TestCartView:

    def test_totals_and_display(self, session, cart_id, panel, inverter, rates):
        add_item(session, cart_id, panel.id, 2)
        add_item(session, cart_id, inverter.id, 1)

        view = get_cart_view(session, cart_id, 'b2c', rates)

        assert view['item_count'] == 3
        assert view['subtotal'] == Decimal('450.00')
        assert view['subtotal_display'] == '15.750,00 TL'
        assert view['rate'] == Decimal('35.00')

        lines = {line['variant_id']: line for line in view['items']}
        assert lines[panel.id]['line_total'] == Decimal('200.00')
        assert lines[panel.id]['unit_price_display'] == '3.500,00 TL'
        assert lines[panel.id]['name'] == 'Solar Panel - 450W Mono'
        assert lines[inverter.id]['line_total_display'] == '8.750,00 TL'

    def test_discount_shown_against_original(self, session, cart_id, make_variant, rates):
        variant = make_variant(name='Discounted', base_price='100.00', discount_percentage=Decimal('10'))
        add_item(session, cart_id, variant.id, 1)

        line = get_cart_view(session, cart_id, 'b2c', rates)['items'][0]

        assert line['unit_price'] == Decimal('90.00')
        assert line['original_price'] == Decimal('100.00')
        assert line['has_discount'] is True
        assert line['unit_price_display'] == '3.150,00 TL'

    def test_empty_cart(self, session, cart_id, rates):
        view = get_cart_view(session, cart_id, 'b2c', rates)

        assert view['items'] == []
        assert view['subtotal'] == Decimal('0')
        assert view['subtotal_display'] == '0,00 TL'

    def test_unknown_cart(self, session, rates):
        with pytest.raises(CartUnavailableError):
            get_cart_view(session, 'missing-cart', 'b2c', rates)
