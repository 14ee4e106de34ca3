"""
Business rules of the store: pricing, delivery, coupons, stock and orders.

Every function that touches stock or coupon usage runs inside a database
transaction, so an order is either fully placed (order row, item rows, stock
decrement, coupon consumption) or not placed at all.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction
from django.db.models import Count, DecimalField, F, IntegerField, Sum
from django.db.models.functions import Coalesce
from django.template.loader import render_to_string
from django.utils import timezone
from django.utils.html import strip_tags
from django.utils.translation import gettext as _

from .exceptions import (
    CouponInvalid, DeliveryUnavailable, EmptyOrder, InsufficientStock, InvalidQuantity,
)
from .models import (
    Coupon, DeliverySettings, DeliveryType, Order, OrderItem, Product,
)

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
ZERO = Decimal('0')


def money(value):
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


# --- 1. التسعير وخصم الكمية (Pricing) ---

@dataclass
class LinePrice:
    original: Decimal
    discounted: Decimal
    has_discount: bool
    discount_percentage: Decimal

    @property
    def discount(self):
        return self.original - self.discounted


def line_price(product, quantity):
    """Price of one line, applying the product's quantity discount when the threshold is reached."""
    original = money(product.price * quantity)
    if product.has_quantity_discount and quantity >= product.discount_quantity:
        pct = Decimal(product.discount_percentage)
        discounted = money(original * (1 - pct / 100))
        return LinePrice(original, discounted, True, pct)
    return LinePrice(original, original, False, ZERO)


def lines_total(lines):
    """Return (subtotal after quantity discounts, total quantity discount) for order lines."""
    subtotal = ZERO
    discount = ZERO
    for line in lines:
        price = line_price(line['product'], line['quantity'])
        subtotal += price.discounted
        discount += price.discount
    return money(subtotal), money(discount)


def order_total(subtotal, coupon_discount, delivery):
    return max(money(subtotal - coupon_discount + delivery), ZERO)


# --- 2. أسعار التوصيل (Delivery) ---

def available_delivery_types(products):
    return [
        value for value in DeliveryType.values
        if all(product.delivery_enabled(value) for product in products)
    ]


def delivery_price(wilaya, delivery_type, products=()):
    if delivery_type not in DeliveryType.values:
        raise DeliveryUnavailable(_('Unknown delivery type.'))
    for product in products:
        if not product.delivery_enabled(delivery_type):
            raise DeliveryUnavailable(
                _('%(name)s cannot be delivered this way.') % {'name': product.name}
            )

    price = wilaya.price_for(delivery_type) if wilaya is not None else None
    if price is None:
        price = DeliverySettings.load().default_for(delivery_type)

    custom = [
        product.custom_delivery_price(delivery_type) for product in products
        if product.custom_delivery_price(delivery_type) is not None
    ]
    if custom:
        price = max(custom)
    return money(price)


# --- 3. المخزون (Stock) ---

def decrease_product_stock(product_id, quantity):
    updated = Product.objects.filter(pk=product_id, stock__gte=quantity).update(stock=F('stock') - quantity)
    if not updated:
        product = Product.objects.get(pk=product_id)
        raise InsufficientStock(product, quantity, product.stock)
    logger.info("Stock of product %s decreased by %s", product_id, quantity)


def increase_product_stock(product_id, quantity):
    Product.objects.filter(pk=product_id).update(stock=F('stock') + quantity)
    logger.info("Stock of product %s increased by %s", product_id, quantity)


def _restore_items_stock(items):
    for item in items:
        if item.product_id:
            increase_product_stock(item.product_id, item.quantity)


def _take_items_stock(items):
    for item in items:
        if item.product_id:
            decrease_product_stock(item.product_id, item.quantity)


# --- 4. الكوبونات (Coupons) ---

COUPON_MESSAGES = {
    'not_found': lambda coupon: _('This coupon code does not exist.'),
    'inactive': lambda coupon: _('This coupon is no longer active.'),
    'expired': lambda coupon: _('This coupon has expired.'),
    'exhausted': lambda coupon: _('This coupon has reached its usage limit.'),
    'min_amount': lambda coupon: _('The minimum order amount for this coupon is %(amount)s DZD.') % {
        'amount': coupon.min_order_amount,
    },
    'not_applicable': lambda coupon: _('This coupon does not apply to the products in your order.'),
}


@dataclass
class CouponResult:
    valid: bool
    coupon: Coupon = None
    discount: Decimal = ZERO
    error: str = None

    @property
    def message(self):
        if self.valid:
            return _('Coupon applied successfully!')
        return COUPON_MESSAGES[self.error](self.coupon)


def normalize_code(code):
    return (code or '').strip().upper()


def coupon_discount(coupon, order_amount):
    amount = Decimal(order_amount)
    if coupon.discount_type == Coupon.PERCENTAGE:
        discount = amount * coupon.discount_value / 100
    else:
        discount = Decimal(coupon.discount_value)
    return money(min(discount, amount))


def _evaluate_coupon(coupon, order_amount, product_ids=None, now=None):
    if coupon is None:
        return CouponResult(False, error='not_found')
    now = now or timezone.now()
    if not coupon.is_active:
        return CouponResult(False, coupon, error='inactive')
    if coupon.expires_at and coupon.expires_at <= now:
        return CouponResult(False, coupon, error='expired')
    if coupon.max_uses is not None and coupon.used_count >= coupon.max_uses:
        return CouponResult(False, coupon, error='exhausted')
    if coupon.min_order_amount is not None and Decimal(order_amount) < coupon.min_order_amount:
        return CouponResult(False, coupon, error='min_amount')
    if not coupon.applies_to_all:
        scoped = set(coupon.coupon_products.values_list('product_id', flat=True))
        if not scoped.intersection(product_ids or []):
            return CouponResult(False, coupon, error='not_applicable')
    return CouponResult(True, coupon, coupon_discount(coupon, order_amount))


def validate_coupon_code(code, order_amount, product_ids=None, now=None):
    coupon = Coupon.objects.filter(code=normalize_code(code)).first()
    return _evaluate_coupon(coupon, order_amount, product_ids, now)


@transaction.atomic
def apply_coupon_atomic(code, order_amount, product_ids=None):
    """Validate the coupon under a row lock and consume one use of it."""
    coupon = Coupon.objects.select_for_update().filter(code=normalize_code(code)).first()
    result = _evaluate_coupon(coupon, order_amount, product_ids)
    if not result.valid:
        raise CouponInvalid(result)
    Coupon.objects.filter(pk=coupon.pk).update(used_count=F('used_count') + 1)
    logger.info("Coupon %s consumed on amount %s (discount %s)", coupon.code, order_amount, result.discount)
    return result


# --- 5. الطلبات (Orders) ---

def check_line_quantity(product, quantity, available=None):
    if available is None:
        available = product.stock
    if quantity < product.effective_min_quantity:
        raise InvalidQuantity(
            _('The minimum quantity for %(name)s is %(min)s.') % {'name': product.name, 'min': product.effective_min_quantity}
        )
    if product.max_quantity and quantity > product.max_quantity:
        raise InvalidQuantity(
            _('The maximum quantity for %(name)s is %(max)s.') % {'name': product.name, 'max': product.max_quantity}
        )
    if quantity > available:
        raise InsufficientStock(product, quantity, available)


def _lock_products(lines):
    ids = {line['product'].pk for line in lines}
    locked = Product.objects.select_for_update().in_bulk(ids)
    fresh = []
    for line in lines:
        product = locked.get(line['product'].pk)
        if product is None or not product.is_active:
            raise InsufficientStock(line['product'], line['quantity'], 0)
        fresh.append(dict(line, product=product))
    return fresh


@transaction.atomic
def place_order(*, first_name, last_name, phone, wilaya, delivery_type, lines, coupon_code=None, notes=None):
    """Create a pending order from cart lines, take the stock and consume the coupon."""
    if not lines:
        raise EmptyOrder()

    lines = _lock_products(lines)
    requested = OrderedDict()
    for line in lines:
        product = line['product']
        check_line_quantity(product, line['quantity'])
        requested[product.pk] = requested.get(product.pk, 0) + line['quantity']
    for line in lines:
        product = line['product']
        if requested[product.pk] > product.stock:
            raise InsufficientStock(product, requested[product.pk], product.stock)

    products = [line['product'] for line in lines]
    subtotal, quantity_discount = lines_total(lines)
    delivery = delivery_price(wilaya, delivery_type, products)

    discount = ZERO
    code = None
    if normalize_code(coupon_code):
        result = apply_coupon_atomic(coupon_code, subtotal, list(requested))
        discount = result.discount
        code = result.coupon.code

    order = Order.objects.create(
        customer_first_name=first_name.strip(),
        customer_last_name=last_name.strip(),
        customer_phone=phone.strip(),
        wilaya=wilaya,
        delivery_type=delivery_type,
        delivery_price=delivery,
        quantity_discount=quantity_discount,
        coupon_code=code,
        coupon_discount=discount,
        total_price=order_total(subtotal, discount, delivery),
        notes=(notes or '').strip() or None,
    )
    OrderItem.objects.bulk_create([
        OrderItem(
            order=order,
            product=line['product'],
            quantity=line['quantity'],
            size=line.get('size') or None,
            color=line.get('color') or None,
            price=line['product'].price,
        )
        for line in lines
    ])
    for product_id, quantity in requested.items():
        decrease_product_stock(product_id, quantity)

    logger.info("Order #%s placed by %s, total %s", order.pk, order.customer_phone, order.total_price)
    transaction.on_commit(lambda: notify_new_order(order))
    return order


@transaction.atomic
def change_order_status(order, new_status):
    """
    Move an order to ``new_status`` and reconcile stock.

    Entering "cancelled" gives every item's quantity back to stock, leaving
    "cancelled" takes it again. Other transitions do not touch stock.
    """
    if new_status not in dict(Order.STATUS_CHOICES):
        raise ValueError(f"Unknown order status: {new_status}")

    order = Order.objects.select_for_update().get(pk=order.pk)
    old_status = order.status
    if old_status == new_status:
        return order

    items = list(order.items.all())
    if new_status == Order.CANCELLED:
        _restore_items_stock(items)
    elif old_status == Order.CANCELLED:
        _take_items_stock(items)

    order.status = new_status
    order.save(update_fields=['status', 'updated_at'])
    logger.info("Order #%s status changed: %s -> %s", order.pk, old_status, new_status)
    return order


@transaction.atomic
def update_order(order, *, first_name, last_name, phone, wilaya, delivery_type, items, notes=None):
    """
    Replace an order's customer data and items.

    ``items`` is a list of dicts with product, quantity, size, color and an
    optional unit price (defaults to the product price).
    """
    items = [item for item in items if item.get('product') is not None]
    if not items:
        raise EmptyOrder()

    order = Order.objects.select_for_update().get(pk=order.pk)
    old_items = list(order.items.all())

    if not order.is_cancelled:
        _restore_items_stock(old_items)

    order.items.all().delete()
    new_items = OrderItem.objects.bulk_create([
        OrderItem(
            order=order,
            product=item['product'],
            quantity=item['quantity'],
            size=item.get('size') or None,
            color=item.get('color') or None,
            price=item.get('price') if item.get('price') is not None else item['product'].price,
        )
        for item in items
    ])

    if not order.is_cancelled:
        _take_items_stock(new_items)

    items_total = sum((item.subtotal for item in new_items), ZERO)
    delivery = delivery_price(wilaya, delivery_type, [item['product'] for item in items])

    order.customer_first_name = first_name.strip()
    order.customer_last_name = last_name.strip()
    order.customer_phone = phone.strip()
    order.wilaya = wilaya
    order.delivery_type = delivery_type
    order.delivery_price = delivery
    order.notes = (notes or '').strip() or None
    order.total_price = order_total(items_total, order.coupon_discount, delivery)
    order.save()
    logger.info("Order #%s edited, new total %s", order.pk, order.total_price)
    return order


@transaction.atomic
def delete_order(order):
    order = Order.objects.select_for_update().get(pk=order.pk)
    if not order.is_cancelled:
        _restore_items_stock(order.items.all())
    order_id = order.pk
    order.delete()
    logger.info("Order #%s deleted", order_id)


def orders_for_phone(phone):
    phone = (phone or '').replace(' ', '').strip()
    if not phone:
        return Order.objects.none()
    return (
        Order.objects.filter(customer_phone=phone)
        .select_related('wilaya')
        .prefetch_related('items__product')
    )


def notify_new_order(order):
    recipient = settings.STORE_NOTIFICATION_EMAIL
    if not recipient:
        return
    subject = f"{settings.STORE_NAME} - New order #{order.pk}"
    html_message = render_to_string('emails/new_order.html', {
        'order': order,
        'items': order.items.select_related('product'),
        'store_name': settings.STORE_NAME,
    })
    try:
        send_mail(
            subject,
            strip_tags(html_message),
            settings.EMAIL_HOST_USER or None,
            [recipient],
            html_message=html_message,
        )
    except Exception:
        logger.exception("Could not send the new-order e-mail for order #%s", order.pk)


# --- 6. الإحصائيات (Analytics) ---

def status_counts():
    counts = {status: 0 for status, _label in Order.STATUS_CHOICES}
    for row in Order.objects.values('status').annotate(total=Count('id')):
        counts[row['status']] = row['total']
    return counts


def _sum_totals(orders):
    total = Coalesce(Sum('total_price'), ZERO, output_field=DecimalField(max_digits=12, decimal_places=2))
    return orders.aggregate(total=total)['total']


def store_analytics(today=None):
    today = today or timezone.localdate()
    valid_orders = Order.objects.exclude(status=Order.CANCELLED)
    revenue = _sum_totals(valid_orders)
    valid_count = valid_orders.count()

    days = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        day_orders = Order.objects.filter(created_at__date=day)
        days.append({
            'date': day,
            'orders': day_orders.count(),
            'revenue': _sum_totals(day_orders),
        })

    top_products = (
        Product.objects.annotate(sold=Coalesce(Sum('order_items__quantity'), 0, output_field=IntegerField()))
        .order_by('-sold', 'name')[:5]
    )

    return {
        'total_orders': Order.objects.count(),
        'total_revenue': money(revenue),
        'total_products': Product.objects.count(),
        'active_products': Product.objects.active().count(),
        'status_counts': status_counts(),
        'orders_by_day': days,
        'top_products': [{'name': p.name, 'sales': p.sold} for p in top_products],
        'avg_order_value': money(revenue / valid_count) if valid_count else ZERO,
    }
