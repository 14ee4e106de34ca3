from decimal import Decimal

import pytest
from django.conf import settings

from store.cart import (
    ADDED, CLAMPED_TO_MAX, CLAMPED_TO_STOCK, REMOVED, UPDATED, Cart, direct_item_lines, pop_direct_item,
    set_direct_item,
)
from store.exceptions import InsufficientStock, InvalidQuantity, OutOfStock


def test_line_key_format():
    assert Cart.make_key(7, 'M', 'Black') == '7_M_Black'
    assert Cart.make_key(7) == '7__'


@pytest.mark.django_db
class TestCart:
    def test_add_new_line(self, session_request, product):
        cart = Cart(session_request)

        assert cart.add(product, 2, 'M', 'Black') == ADDED

        stored = session_request.session[settings.CART_SESSION_KEY]
        assert stored[f'{product.pk}_M_Black']['quantity'] == 2
        assert cart.total_items == 2

    def test_new_line_respects_minimum(self, session_request, make_product):
        product = make_product(min_quantity=3)
        cart = Cart(session_request)
        cart.add(product, 1)
        assert cart.total_items == 3

    def test_adding_same_line_accumulates(self, session_request, product):
        cart = Cart(session_request)
        cart.add(product, 2)
        assert cart.add(product, 3) == UPDATED
        assert len(cart.cart) == 1
        assert cart.total_items == 5

    def test_different_options_make_different_lines(self, session_request, product):
        cart = Cart(session_request)
        cart.add(product, 1, 'S')
        cart.add(product, 1, 'M')
        assert len(cart.cart) == 2

    def test_clamps_to_stock(self, session_request, make_product):
        product = make_product(stock=4)
        cart = Cart(session_request)
        cart.add(product, 3)
        assert cart.add(product, 3) == CLAMPED_TO_STOCK
        assert cart.total_items == 4

    def test_clamps_to_max_quantity(self, session_request, make_product):
        product = make_product(max_quantity=3)
        cart = Cart(session_request)
        cart.add(product, 2)
        assert cart.add(product, 2) == CLAMPED_TO_MAX
        assert cart.total_items == 3

    def test_new_line_clamps_to_max_quantity(self, session_request, make_product):
        product = make_product(stock=10, max_quantity=3)
        cart = Cart(session_request)
        assert cart.add(product, 8) == CLAMPED_TO_MAX
        assert cart.total_items == 3

    def test_max_quantity_applies_after_stock(self, session_request, make_product):
        product = make_product(stock=5, max_quantity=3)
        cart = Cart(session_request)
        cart.add(product, 3)
        assert cart.add(product, 5) == CLAMPED_TO_MAX
        assert cart.total_items == 3

    def test_out_of_stock_is_refused(self, session_request, make_product):
        with pytest.raises(OutOfStock):
            Cart(session_request).add(make_product(stock=0), 1)

    def test_update_quantity(self, session_request, make_product):
        product = make_product(stock=5, max_quantity=4)
        cart = Cart(session_request)
        cart.add(product, 1)
        key = Cart.make_key(product.pk)

        assert cart.update_quantity(key, 3) == UPDATED
        with pytest.raises(InsufficientStock):
            cart.update_quantity(key, 6)
        with pytest.raises(InvalidQuantity):
            cart.update_quantity(key, 5)
        assert cart.cart[key]['quantity'] == 3

        assert cart.update_quantity(key, 0) == REMOVED
        assert not cart

    def test_lines_skip_hidden_products(self, session_request, make_product):
        visible = make_product(name='Visible')
        hidden = make_product(name='Hidden')
        cart = Cart(session_request)
        cart.add(visible, 1)
        cart.add(hidden, 1)
        hidden.is_active = False
        hidden.save()

        lines = cart.lines()

        assert [entry['product'] for entry in lines] == [visible]

    def test_totals_include_quantity_discount(self, session_request, make_product):
        product = make_product(discount_quantity=2, discount_percentage=Decimal('25'))
        cart = Cart(session_request)
        cart.add(product, 2)

        total, discount = cart.totals()

        assert total == Decimal('1500.00')
        assert discount == Decimal('500.00')

    def test_clear(self, session_request, product):
        cart = Cart(session_request)
        cart.add(product, 1)
        cart.clear()
        assert settings.CART_SESSION_KEY not in session_request.session
        assert Cart(session_request).total_items == 0

    def test_corrupted_session_data_is_ignored(self, session_request):
        session_request.session[settings.CART_SESSION_KEY] = ['junk']
        assert Cart(session_request).lines() == []


@pytest.mark.django_db
def test_direct_item(session_request, product):
    assert direct_item_lines(session_request) is None

    set_direct_item(session_request, product, 2, 'M', None)
    lines = direct_item_lines(session_request)

    assert len(lines) == 1
    assert lines[0]['quantity'] == 2
    assert lines[0]['size'] == 'M'

    pop_direct_item(session_request)
    assert direct_item_lines(session_request) is None
