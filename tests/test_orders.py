from decimal import Decimal

import pytest

from store import services
from store.exceptions import CouponInvalid, EmptyOrder, InsufficientStock, InvalidQuantity
from store.models import DeliveryType, Order
from tests.conftest import line

pytestmark = pytest.mark.django_db


def place(wilaya, lines, **kwargs):
    data = {
        'first_name': 'Amine',
        'last_name': 'Saidi',
        'phone': '0555123456',
        'wilaya': wilaya,
        'delivery_type': DeliveryType.OFFICE,
        'lines': lines,
    }
    data.update(kwargs)
    return services.place_order(**data)


class TestPlaceOrder:
    def test_creates_pending_order_and_takes_stock(self, wilaya, product):
        order = place(wilaya, [line(product, 2, size='42')])

        product.refresh_from_db()
        assert order.status == Order.PENDING
        assert product.stock == 8
        assert order.delivery_price == Decimal('300.00')
        assert order.total_price == Decimal('2300.00')
        item = order.items.get()
        assert item.price == product.price
        assert item.size == '42'

    def test_records_quantity_discount(self, wilaya, make_product):
        product = make_product(discount_quantity=2, discount_percentage=Decimal('10'))

        order = place(wilaya, [line(product, 2)])

        assert order.quantity_discount == Decimal('200.00')
        assert order.total_price == Decimal('2100.00')

    def test_applies_and_consumes_coupon(self, wilaya, product, make_coupon):
        coupon = make_coupon(max_uses=5)

        order = place(wilaya, [line(product, 1)], coupon_code='save10')

        coupon.refresh_from_db()
        assert order.coupon_code == 'SAVE10'
        assert order.coupon_discount == Decimal('100.00')
        assert order.total_price == Decimal('1200.00')
        assert coupon.used_count == 1

    def test_empty_order_is_refused(self, wilaya):
        with pytest.raises(EmptyOrder):
            place(wilaya, [])

    def test_same_product_on_several_lines_counts_together(self, wilaya, make_product):
        product = make_product(stock=3)
        with pytest.raises(InsufficientStock):
            place(wilaya, [line(product, 2, size='S'), line(product, 2, size='M')])
        product.refresh_from_db()
        assert product.stock == 3

    def test_short_stock_rolls_everything_back(self, wilaya, make_product, make_coupon):
        plenty = make_product(name='Plenty', stock=10)
        scarce = make_product(name='Scarce', stock=1)
        coupon = make_coupon()

        with pytest.raises(InsufficientStock):
            place(wilaya, [line(plenty, 2), line(scarce, 2)], coupon_code='SAVE10')

        plenty.refresh_from_db()
        coupon.refresh_from_db()
        assert Order.objects.count() == 0
        assert plenty.stock == 10
        assert coupon.used_count == 0

    def test_invalid_coupon_places_nothing(self, wilaya, product, make_coupon):
        make_coupon(is_active=False)

        with pytest.raises(CouponInvalid):
            place(wilaya, [line(product, 1)], coupon_code='SAVE10')

        product.refresh_from_db()
        assert Order.objects.count() == 0
        assert product.stock == 10

    def test_quantity_limits(self, wilaya, make_product):
        product = make_product(min_quantity=2, max_quantity=4)
        with pytest.raises(InvalidQuantity):
            place(wilaya, [line(product, 1)])
        with pytest.raises(InvalidQuantity):
            place(wilaya, [line(product, 5)])

    def test_inactive_product_is_refused(self, wilaya, make_product):
        product = make_product(is_active=False)
        with pytest.raises(InsufficientStock):
            place(wilaya, [line(product, 1)])

    def test_notifies_staff_after_commit(self, wilaya, product, settings, mailoutbox, django_capture_on_commit_callbacks):
        settings.STORE_NOTIFICATION_EMAIL = 'orders@village.dz'

        with django_capture_on_commit_callbacks(execute=True):
            order = place(wilaya, [line(product, 1)])

        assert len(mailoutbox) == 1
        assert mailoutbox[0].to == ['orders@village.dz']
        assert f"#{order.pk}" in mailoutbox[0].subject

    def test_mail_failure_does_not_break_the_order(self, wilaya, product, settings, monkeypatch, django_capture_on_commit_callbacks):
        settings.STORE_NOTIFICATION_EMAIL = 'orders@village.dz'

        def broken(*args, **kwargs):
            raise ConnectionRefusedError

        monkeypatch.setattr(services, 'send_mail', broken)
        with django_capture_on_commit_callbacks(execute=True):
            order = place(wilaya, [line(product, 1)])

        assert Order.objects.filter(pk=order.pk).exists()


class TestStatusChanges:
    def test_cancelling_restores_stock(self, wilaya, product):
        order = place(wilaya, [line(product, 3)])

        services.change_order_status(order, Order.CANCELLED)

        product.refresh_from_db()
        assert product.stock == 10

    def test_leaving_cancelled_takes_stock_again(self, wilaya, product):
        order = place(wilaya, [line(product, 3)])
        services.change_order_status(order, Order.CANCELLED)

        order = services.change_order_status(order, Order.CONFIRMED)

        product.refresh_from_db()
        assert order.status == Order.CONFIRMED
        assert product.stock == 7

    def test_other_transitions_leave_stock_alone(self, wilaya, product):
        order = place(wilaya, [line(product, 3)])
        for status in (Order.CONFIRMED, Order.SHIPPED, Order.DELIVERED):
            services.change_order_status(order, status)
        product.refresh_from_db()
        assert product.stock == 7

    def test_reopening_without_stock_is_refused(self, wilaya, product):
        order = place(wilaya, [line(product, 3)])
        services.change_order_status(order, Order.CANCELLED)
        product.stock = 1
        product.save()

        with pytest.raises(InsufficientStock):
            services.change_order_status(order, Order.PENDING)

        order.refresh_from_db()
        product.refresh_from_db()
        assert order.status == Order.CANCELLED
        assert product.stock == 1

    def test_unknown_status(self, wilaya, product):
        order = place(wilaya, [line(product, 1)])
        with pytest.raises(ValueError):
            services.change_order_status(order, 'lost')


class TestEditAndDelete:
    def edit(self, order, wilaya, items, **kwargs):
        data = {
            'first_name': 'Amine',
            'last_name': 'Saidi',
            'phone': '0555123456',
            'wilaya': wilaya,
            'delivery_type': DeliveryType.HOME,
            'items': items,
        }
        data.update(kwargs)
        return services.update_order(order, **data)

    def test_replaces_items_and_moves_stock(self, wilaya, product):
        order = place(wilaya, [line(product, 2)])

        order = self.edit(order, wilaya, [{'product': product, 'quantity': 5}])

        product.refresh_from_db()
        assert product.stock == 5
        assert order.items.get().quantity == 5
        assert order.delivery_price == Decimal('500.00')
        assert order.total_price == Decimal('5500.00')

    def test_keeps_stored_coupon_discount(self, wilaya, product, make_coupon):
        make_coupon(discount_type='fixed', discount_value=Decimal('150'))
        order = place(wilaya, [line(product, 1)], coupon_code='SAVE10')

        order = self.edit(order, wilaya, [{'product': product, 'quantity': 2, 'price': Decimal('900')}])

        assert order.total_price == Decimal('1800') + Decimal('500') - Decimal('150')

    def test_cancelled_order_edit_leaves_stock(self, wilaya, product):
        order = place(wilaya, [line(product, 2)])
        services.change_order_status(order, Order.CANCELLED)

        self.edit(order, wilaya, [{'product': product, 'quantity': 4}])

        product.refresh_from_db()
        assert product.stock == 10

    def test_requires_an_item(self, wilaya, product):
        order = place(wilaya, [line(product, 2)])
        with pytest.raises(EmptyOrder):
            self.edit(order, wilaya, [])

    def test_delete_restores_stock(self, wilaya, product):
        order = place(wilaya, [line(product, 4)])

        services.delete_order(order)

        product.refresh_from_db()
        assert product.stock == 10
        assert not Order.objects.exists()

    def test_delete_cancelled_order_does_not_restore_twice(self, wilaya, product):
        order = place(wilaya, [line(product, 4)])
        services.change_order_status(order, Order.CANCELLED)

        services.delete_order(order)

        product.refresh_from_db()
        assert product.stock == 10


def test_orders_for_phone(wilaya, product):
    place(wilaya, [line(product, 1)])
    place(wilaya, [line(product, 1)], phone='0666000000')

    assert services.orders_for_phone('0555 123 456').count() == 1
    assert not services.orders_for_phone('').exists()
