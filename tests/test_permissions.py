import pytest
from django.contrib.auth.models import AnonymousUser

from store.models import UserRole
from store.permissions import (
    get_role, has_any_role, has_role, has_section_access, is_admin, section_permissions, set_section_permissions,
)

pytestmark = pytest.mark.django_db


def test_superuser_counts_as_admin(admin_user):
    assert get_role(admin_user) == UserRole.ADMIN
    assert all(section_permissions(admin_user).values())


def test_admin_role_has_every_section(make_staff):
    user = make_staff(role=UserRole.ADMIN)
    assert is_admin(user)
    assert has_section_access(user, 'tracking-pixels')


def test_user_role_needs_explicit_permission(make_staff):
    user = make_staff(sections=['orders'])

    assert has_role(user, UserRole.USER)
    assert has_section_access(user, 'orders')
    assert not has_section_access(user, 'products')


def test_user_without_role_has_nothing(make_staff):
    user = make_staff(role=None)
    assert not has_any_role(user)
    assert not has_section_access(user, 'orders')
    assert not any(section_permissions(user).values())


def test_set_section_permissions_revokes_the_rest(make_staff):
    user = make_staff(sections=['orders', 'products'])

    set_section_permissions(user, ['coupons'])

    permissions = section_permissions(user)
    assert permissions['coupons']
    assert not permissions['orders']
    assert not permissions['products']


def test_anonymous_user():
    assert get_role(AnonymousUser()) is None
