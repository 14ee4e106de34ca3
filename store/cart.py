from decimal import Decimal

from django.conf import settings
from django.utils.translation import gettext as _

from .exceptions import InsufficientStock, InvalidQuantity, OutOfStock
from .models import Product
from .services import line_price

DIRECT_ITEM_SESSION_KEY = 'village-direct-item'
COUPON_SESSION_KEY = 'village-coupon'

ADDED = 'added'
UPDATED = 'updated'
CLAMPED_TO_STOCK = 'clamped_to_stock'
CLAMPED_TO_MAX = 'clamped_to_max'
REMOVED = 'removed'


def _line(key, product, item):
    price = line_price(product, item['quantity'])
    return {
        'key': key,
        'product': product,
        'quantity': item['quantity'],
        'size': item.get('size'),
        'color': item.get('color'),
        'original_price': price.original,
        'subtotal': price.discounted,
        'has_discount': price.has_discount,
        'discount_percentage': price.discount_percentage,
    }


class Cart:
    """Session cart: line key -> {product_id, quantity, size, color}."""

    def __init__(self, request):
        self.session = request.session
        cart = self.session.get(settings.CART_SESSION_KEY, {})
        # بيانات قديمة أو تالفة
        if not isinstance(cart, dict):
            cart = {}
        self.cart = cart

    @staticmethod
    def make_key(product_id, size=None, color=None):
        return f"{product_id}_{size or ''}_{color or ''}"

    def save(self):
        self.session[settings.CART_SESSION_KEY] = self.cart
        self.session.modified = True

    @staticmethod
    def _clamp(product, quantity):
        """Quantity limited to stock, then to max_quantity, with the limit that applied."""
        outcome = None
        if quantity > product.stock:
            quantity = product.stock
            outcome = CLAMPED_TO_STOCK
        if product.max_quantity and quantity > product.max_quantity:
            quantity = product.max_quantity
            outcome = CLAMPED_TO_MAX
        return quantity, outcome

    def add(self, product, quantity=1, size=None, color=None):
        if product.stock <= 0:
            raise OutOfStock(product)

        key = self.make_key(product.pk, size, color)
        if key in self.cart:
            new_quantity, clamped = self._clamp(product, self.cart[key]['quantity'] + quantity)
            self.cart[key]['quantity'] = new_quantity
            outcome = clamped or UPDATED
        else:
            final_quantity, clamped = self._clamp(product, max(product.effective_min_quantity, quantity))
            self.cart[key] = {
                'product_id': product.pk,
                'quantity': final_quantity,
                'size': size,
                'color': color,
            }
            outcome = clamped or ADDED
        self.save()
        return outcome

    def update_quantity(self, key, quantity):
        item = self.cart.get(key)
        if item is None:
            return None
        product = Product.objects.filter(pk=item['product_id']).first()
        if product is None or quantity < product.effective_min_quantity:
            self.remove(key)
            return REMOVED
        if quantity > product.stock:
            raise InsufficientStock(product, quantity, product.stock)
        if product.max_quantity and quantity > product.max_quantity:
            raise InvalidQuantity(_('The maximum quantity is %(max)s.') % {'max': product.max_quantity})
        item['quantity'] = quantity
        self.save()
        return UPDATED

    def remove(self, key):
        if key in self.cart:
            del self.cart[key]
            self.save()

    def clear(self):
        self.cart = {}
        self.session.pop(settings.CART_SESSION_KEY, None)
        self.session.modified = True

    def lines(self):
        """Cart lines resolved against the database, skipping deleted or hidden products."""
        valid = {
            key: item for key, item in self.cart.items()
            if isinstance(item, dict) and 'product_id' in item
        }
        products = Product.objects.active().in_bulk({item['product_id'] for item in valid.values()})
        lines = []
        for key, item in valid.items():
            product = products.get(item['product_id'])
            if product is None:
                continue
            lines.append(_line(key, product, item))
        return lines

    @property
    def total_items(self):
        return sum(item.get('quantity', 0) for item in self.cart.values() if isinstance(item, dict))

    def totals(self, lines=None):
        lines = self.lines() if lines is None else lines
        total = sum((line['subtotal'] for line in lines), Decimal('0'))
        discount = sum((line['original_price'] - line['subtotal'] for line in lines), Decimal('0'))
        return total, discount

    def __len__(self):
        return self.total_items

    def __bool__(self):
        return bool(self.cart)


def set_direct_item(request, product, quantity, size=None, color=None):
    request.session[DIRECT_ITEM_SESSION_KEY] = {
        'product_id': product.pk,
        'quantity': quantity,
        'size': size,
        'color': color,
    }


def pop_direct_item(request):
    request.session.pop(DIRECT_ITEM_SESSION_KEY, None)


def direct_item_lines(request):
    """The "buy now" item as order lines, or None when checkout uses the cart."""
    item = request.session.get(DIRECT_ITEM_SESSION_KEY)
    if not isinstance(item, dict):
        return None
    product = Product.objects.active().filter(pk=item.get('product_id')).first()
    if product is None:
        pop_direct_item(request)
        return None
    return [_line(Cart.make_key(product.pk, item.get('size'), item.get('color')), product, item)]
