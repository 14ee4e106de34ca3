from decimal import Decimal

import pytest
from django.core.management import call_command

from store import services
from store.exceptions import DeliveryUnavailable
from store.models import DeliverySettings, DeliveryType, Wilaya
from tests.conftest import line


def test_line_price_without_discount(product):
    price = services.line_price(product, 3)
    assert price.original == Decimal('3000.00')
    assert price.discounted == Decimal('3000.00')
    assert not price.has_discount


def test_line_price_applies_quantity_discount_at_threshold(make_product):
    product = make_product(discount_quantity=3, discount_percentage=Decimal('10'))

    below = services.line_price(product, 2)
    at = services.line_price(product, 3)

    assert not below.has_discount
    assert at.has_discount
    assert at.discounted == Decimal('2700.00')
    assert at.discount == Decimal('300.00')


def test_discount_needs_both_quantity_and_percentage(make_product):
    product = make_product(discount_quantity=2)
    assert not services.line_price(product, 5).has_discount


def test_lines_total_sums_subtotal_and_discount(make_product):
    a = make_product(name='A', price=Decimal('200'), discount_quantity=2, discount_percentage=Decimal('50'))
    b = make_product(name='B', price=Decimal('150'))

    subtotal, discount = services.lines_total([line(a, 2), line(b, 1)])

    assert subtotal == Decimal('350.00')
    assert discount == Decimal('200.00')


def test_order_total_never_negative():
    assert services.order_total(Decimal('100'), Decimal('500'), Decimal('0')) == Decimal('0')
    assert services.order_total(Decimal('1000'), Decimal('100'), Decimal('400')) == Decimal('1300.00')


@pytest.mark.django_db
class TestDeliveryPrice:
    def test_uses_wilaya_price(self, wilaya, product):
        assert services.delivery_price(wilaya, DeliveryType.HOME, [product]) == Decimal('500.00')
        assert services.delivery_price(wilaya, DeliveryType.OFFICE, [product]) == Decimal('300.00')

    def test_falls_back_to_store_defaults(self, wilaya, product):
        wilaya.home_delivery_price = None
        wilaya.save()
        settings_row = DeliverySettings.load()
        assert services.delivery_price(wilaya, DeliveryType.HOME, [product]) == settings_row.default_home_price

    def test_highest_custom_price_wins(self, wilaya, make_product):
        cheap = make_product(name='Cheap', custom_office_delivery_price=Decimal('700'))
        heavy = make_product(name='Heavy', custom_office_delivery_price=Decimal('900'))
        plain = make_product(name='Plain')

        price = services.delivery_price(wilaya, DeliveryType.OFFICE, [cheap, heavy, plain])

        assert price == Decimal('900.00')

    def test_disabled_type_is_refused(self, wilaya, make_product):
        product = make_product(home_delivery_enabled=False)
        with pytest.raises(DeliveryUnavailable):
            services.delivery_price(wilaya, DeliveryType.HOME, [product])

    def test_unknown_type_is_refused(self, wilaya, product):
        with pytest.raises(DeliveryUnavailable):
            services.delivery_price(wilaya, 'drone', [product])

    def test_available_types_intersect_products(self, make_product):
        home_only = make_product(office_delivery_enabled=False)
        both = make_product(name='Both')
        assert services.available_delivery_types([home_only, both]) == [DeliveryType.HOME]
        assert services.available_delivery_types([both]) == [DeliveryType.HOME, DeliveryType.OFFICE]


@pytest.mark.django_db
def test_wilaya_fixture_covers_the_country():
    call_command('loaddata', 'wilayas', verbosity=0)

    assert Wilaya.objects.count() == 58
    assert Wilaya.objects.get(code='16').name_ar == 'الجزائر'
