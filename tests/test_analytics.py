from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from store import services
from store.models import Order, Product
from tests.conftest import line

pytestmark = pytest.mark.django_db


def place(wilaya, product, quantity):
    return services.place_order(
        first_name='Amine', last_name='Saidi', phone='0555123456', wilaya=wilaya,
        delivery_type='office', lines=[line(product, quantity)],
    )


def test_empty_store():
    data = services.store_analytics()
    assert data['total_orders'] == 0
    assert data['total_revenue'] == Decimal('0')
    assert data['avg_order_value'] == Decimal('0')
    assert len(data['orders_by_day']) == 7
    assert data['top_products'] == []


def test_revenue_ignores_cancelled_orders(wilaya, make_product):
    shoe = make_product(name='Shoe', price=Decimal('1000'))
    sock = make_product(name='Sock', price=Decimal('200'))
    place(wilaya, shoe, 1)
    place(wilaya, sock, 5)
    cancelled = place(wilaya, shoe, 2)
    services.change_order_status(cancelled, Order.CANCELLED)

    data = services.store_analytics()

    assert data['total_orders'] == 3
    assert data['total_revenue'] == Decimal('2600.00')
    assert data['avg_order_value'] == Decimal('1300.00')
    assert data['status_counts'][Order.CANCELLED] == 1
    assert data['status_counts'][Order.PENDING] == 2
    assert data['top_products'][0] == {'name': 'Sock', 'sales': 5}


def test_orders_by_day_covers_last_week(wilaya, product):
    order = place(wilaya, product, 1)
    Order.objects.filter(pk=order.pk).update(created_at=timezone.now() - timedelta(days=2))
    place(wilaya, product, 1)

    days = services.store_analytics()['orders_by_day']

    assert days[-1]['date'] == timezone.localdate()
    assert days[-1]['orders'] == 1
    assert days[-3]['orders'] == 1
    assert days[-1]['revenue'] == Decimal('1300.00')


def test_low_stock_queryset(make_product):
    make_product(name='Last one', stock=1)
    make_product(name='Hidden', stock=0, is_active=False)
    make_product(name='Full', stock=40)
    assert [p.name for p in Product.objects.low_stock()] == ['Last one']
