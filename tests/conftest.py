from decimal import Decimal
from types import SimpleNamespace

import pytest
from django.contrib.auth import get_user_model
from django.contrib.sessions.backends.db import SessionStore

from store.models import Category, Coupon, Product, UserPermission, UserRole, Wilaya


@pytest.fixture
def category(db):
    return Category.objects.create(name='Shoes', name_ar='أحذية')


@pytest.fixture
def make_product(db, category):
    def factory(**kwargs):
        data = {
            'name': 'Runner',
            'category': category,
            'price': Decimal('1000'),
            'stock': 10,
        }
        data.update(kwargs)
        return Product.objects.create(**data)
    return factory


@pytest.fixture
def product(make_product):
    return make_product()


@pytest.fixture
def wilaya(db):
    return Wilaya.objects.create(
        code='16', name='Alger', name_ar='الجزائر',
        home_delivery_price=Decimal('500'), office_delivery_price=Decimal('300'),
    )


@pytest.fixture
def make_coupon(db):
    def factory(**kwargs):
        data = {
            'code': 'SAVE10',
            'discount_type': Coupon.PERCENTAGE,
            'discount_value': Decimal('10'),
        }
        data.update(kwargs)
        return Coupon.objects.create(**data)
    return factory


@pytest.fixture
def session_request(db):
    """Bare request object carrying a session, enough for the cart helpers."""
    return SimpleNamespace(session=SessionStore())


@pytest.fixture
def make_staff(db):
    def factory(email='staff@village.dz', role=UserRole.USER, sections=()):
        user = get_user_model().objects.create_user(username=email, email=email, password='secret123')
        if role:
            UserRole.objects.create(user=user, role=role)
        for section in sections:
            UserPermission.objects.create(user=user, section=section, has_access=True)
        return user
    return factory


@pytest.fixture
def staff_client(client, make_staff):
    def login_as(**kwargs):
        user = make_staff(**kwargs)
        client.force_login(user)
        return client, user
    return login_as


def line(product, quantity, size=None, color=None):
    return {'product': product, 'quantity': quantity, 'size': size, 'color': color}
