from decimal import Decimal, InvalidOperation

from django import template
from django.utils.translation import gettext as _

from ..permissions import has_section_access, is_admin

register = template.Library()


@register.filter
def dzd(value):
    """Format an amount the way the store shows prices: 1 250 DZD."""
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return value
    whole = int(amount.quantize(Decimal('1')))
    return f"{whole:,}".replace(',', ' ') + ' ' + _('DZD')


@register.filter
def get_item(mapping, key):
    return mapping.get(key) if mapping else None


@register.filter
def can_access(user, section):
    return has_section_access(user, section)


@register.filter
def is_store_admin(user):
    return is_admin(user)


@register.simple_tag
def stars(rating):
    rating = int(rating or 0)
    return '★' * rating + '☆' * (5 - rating)
