from django.conf import settings

from .cart import Cart
from .models import Category, SocialLink, TrackingPixel


def cart_count(request):
    if not hasattr(request, 'session'):
        return {'cart_count': 0}
    return {'cart_count': Cart(request).total_items}


def storefront(request):
    """Layout data shared by every storefront page."""
    if request.path.startswith(('/dashboard/', '/admin/')):
        return {'store_name': settings.STORE_NAME}
    return {
        'store_name': settings.STORE_NAME,
        'nav_categories': Category.objects.all(),
        'social_links': SocialLink.objects.filter(is_active=True),
        'tracking_pixels': TrackingPixel.objects.filter(is_active=True),
    }
