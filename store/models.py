from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Avg
from django.utils.text import slugify
from django.utils.translation import get_language
from django.utils.translation import gettext_lazy as _
from colorfield.fields import ColorField


def is_arabic():
    return (get_language() or settings.LANGUAGE_CODE).startswith('ar')


class DeliveryType(models.TextChoices):
    HOME = 'home', _('Home delivery')
    OFFICE = 'office', _('Office delivery')


# --- 1. قسم الفئات (Categories) ---
class Category(models.Model):
    name = models.CharField(max_length=100, unique=True)
    name_ar = models.CharField(max_length=100)
    slug = models.SlugField(max_length=100, unique=True, blank=True)
    icon = models.CharField(max_length=50, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name) or slugify(self.name_ar, allow_unicode=True)
        super().save(*args, **kwargs)

    @property
    def display_name(self):
        return self.name_ar if is_arabic() and self.name_ar else self.name

    class Meta:
        verbose_name_plural = "Categories"
        ordering = ['-created_at']


# --- 2. قسم المنتجات (Products) ---
class ProductQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def low_stock(self, threshold=None):
        if threshold is None:
            threshold = settings.LOW_STOCK_THRESHOLD
        return self.active().filter(stock__lte=threshold).order_by('stock')


class Product(models.Model):
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, related_name='products', null=True, blank=True)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, null=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    image = models.ImageField(upload_to='products/', blank=True, null=True)
    sizes = models.JSONField(default=list, blank=True)
    colors = models.JSONField(default=list, blank=True)
    stock = models.PositiveIntegerField(default=0, verbose_name="Stock Quantity")
    is_active = models.BooleanField(default=True)

    # حدود الكمية لكل طلب
    min_quantity = models.PositiveIntegerField(null=True, blank=True)
    max_quantity = models.PositiveIntegerField(null=True, blank=True)

    # خصم الكمية: يتفعل عندما تصل كمية السطر إلى discount_quantity
    discount_quantity = models.PositiveIntegerField(null=True, blank=True)
    discount_percentage = models.DecimalField(
        max_digits=5, decimal_places=2, null=True, blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )

    home_delivery_enabled = models.BooleanField(default=True)
    office_delivery_enabled = models.BooleanField(default=True)
    custom_home_delivery_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    custom_office_delivery_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ProductQuerySet.as_manager()

    def __str__(self):
        return self.name

    @property
    def main_image(self):
        if self.image:
            return self.image.url
        first = self.images.first()
        if first and first.image:
            return first.image.url
        return None

    @property
    def is_out_of_stock(self):
        return self.stock <= 0

    @property
    def effective_min_quantity(self):
        return self.min_quantity or 1

    @property
    def has_quantity_discount(self):
        return bool(self.discount_quantity and self.discount_percentage)

    @property
    def average_rating(self):
        return self.reviews.filter(is_approved=True).aggregate(avg=Avg('rating'))['avg']

    def delivery_enabled(self, delivery_type):
        if delivery_type == DeliveryType.HOME:
            return self.home_delivery_enabled
        return self.office_delivery_enabled

    def custom_delivery_price(self, delivery_type):
        if delivery_type == DeliveryType.HOME:
            return self.custom_home_delivery_price
        return self.custom_office_delivery_price

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(condition=models.Q(stock__gte=0), name='product_stock_non_negative'),
        ]


class ProductImage(models.Model):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='images')
    image = models.ImageField(upload_to='products/gallery/')
    sort_order = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"{self.product.name} - image {self.sort_order}"

    class Meta:
        ordering = ['sort_order', 'id']


# --- 3. الولايات وأسعار التوصيل (Wilayas & Delivery) ---
class Wilaya(models.Model):
    code = models.CharField(max_length=3, unique=True)
    name = models.CharField(max_length=100)
    name_ar = models.CharField(max_length=100)
    home_delivery_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    office_delivery_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    def __str__(self):
        return f"{self.code} - {self.name}"

    @property
    def display_name(self):
        return self.name_ar if is_arabic() and self.name_ar else self.name

    def price_for(self, delivery_type):
        if delivery_type == DeliveryType.HOME:
            return self.home_delivery_price
        return self.office_delivery_price

    class Meta:
        ordering = ['code']


class DeliverySettings(models.Model):
    """Store-wide fallback prices, used when a wilaya has no price of its own."""

    default_home_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('600'))
    default_office_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('400'))
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return "Delivery settings"

    @classmethod
    def load(cls):
        obj, _created = cls.objects.get_or_create(pk=1)
        return obj

    def default_for(self, delivery_type):
        if delivery_type == DeliveryType.HOME:
            return self.default_home_price
        return self.default_office_price

    class Meta:
        verbose_name_plural = "Delivery settings"


# --- 4. الكوبونات (Coupons) ---
class Coupon(models.Model):
    PERCENTAGE = 'percentage'
    FIXED = 'fixed'
    DISCOUNT_TYPES = [
        (PERCENTAGE, _('Percentage')),
        (FIXED, _('Fixed amount')),
    ]

    code = models.CharField(max_length=50, unique=True)
    discount_type = models.CharField(max_length=20, choices=DISCOUNT_TYPES, default=PERCENTAGE)
    discount_value = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    min_order_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    max_uses = models.PositiveIntegerField(null=True, blank=True)
    used_count = models.PositiveIntegerField(default=0)
    expires_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    applies_to_all = models.BooleanField(default=True)
    products = models.ManyToManyField(Product, through='CouponProduct', related_name='coupons', blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.code

    def save(self, *args, **kwargs):
        self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    @property
    def remaining_uses(self):
        if self.max_uses is None:
            return None
        return max(self.max_uses - self.used_count, 0)

    class Meta:
        ordering = ['-created_at']


class CouponProduct(models.Model):
    coupon = models.ForeignKey(Coupon, on_delete=models.CASCADE, related_name='coupon_products')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='coupon_products')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.coupon.code} -> {self.product.name}"

    class Meta:
        unique_together = ('coupon', 'product')


# --- 5. نظام الطلبات (Orders System) ---
class Order(models.Model):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    SHIPPED = 'shipped'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (PENDING, _('Pending')),
        (CONFIRMED, _('Confirmed')),
        (SHIPPED, _('Shipped')),
        (DELIVERED, _('Delivered')),
        (CANCELLED, _('Cancelled')),
    ]

    customer_first_name = models.CharField(max_length=100, verbose_name="First Name")
    customer_last_name = models.CharField(max_length=100, verbose_name="Last Name")
    customer_phone = models.CharField(max_length=20, db_index=True, verbose_name="Phone Number")
    wilaya = models.ForeignKey(Wilaya, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    delivery_type = models.CharField(max_length=10, choices=DeliveryType.choices, default=DeliveryType.OFFICE)
    delivery_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))

    quantity_discount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))
    coupon_code = models.CharField(max_length=50, blank=True, null=True)
    coupon_discount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))
    total_price = models.DecimalField(max_digits=10, decimal_places=2, verbose_name="Total Amount")

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING, db_index=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Order Date")
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Order #{self.id} - {self.customer_name}"

    @property
    def customer_name(self):
        return f"{self.customer_first_name} {self.customer_last_name}"

    @property
    def items_total(self):
        return sum((item.subtotal for item in self.items.all()), Decimal('0'))

    @property
    def is_cancelled(self):
        return self.status == self.CANCELLED

    class Meta:
        ordering = ['-created_at']


class OrderItem(models.Model):
    order = models.ForeignKey(Order, related_name='items', on_delete=models.CASCADE)
    product = models.ForeignKey(Product, on_delete=models.SET_NULL, null=True, related_name='order_items')
    quantity = models.PositiveIntegerField(default=1)
    size = models.CharField(max_length=20, null=True, blank=True)
    color = models.CharField(max_length=50, null=True, blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, verbose_name="Unit price at purchase")
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.product.name if self.product else 'Deleted Product'} x{self.quantity}"

    @property
    def subtotal(self):
        return self.quantity * self.price


# --- 6. التقييمات (Reviews) ---
class Review(models.Model):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='reviews')
    customer_name = models.CharField(max_length=100)
    customer_phone = models.CharField(max_length=20, blank=True, null=True)
    rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    comment = models.TextField(blank=True, null=True)
    is_approved = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.customer_name} - {self.product.name} ({self.rating}/5)"

    class Meta:
        ordering = ['-created_at']


class ReviewReply(models.Model):
    review = models.ForeignKey(Review, on_delete=models.CASCADE, related_name='replies')
    reply_name = models.CharField(max_length=100)
    reply_text = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.reply_name}: {self.reply_text[:30]}"

    class Meta:
        ordering = ['created_at']
        verbose_name_plural = "Review replies"


# --- 7. المحتوى الترويجي (Banners, Social links, Pixels) ---
class PromoBanner(models.Model):
    title = models.CharField(max_length=200)
    subtitle = models.CharField(max_length=300, blank=True, null=True)
    icon = models.CharField(max_length=50, blank=True, null=True)
    link = models.CharField(max_length=300, blank=True, null=True)
    link_text = models.CharField(max_length=100, blank=True, null=True)
    color_from = ColorField(default='#7C3AED')
    color_to = ColorField(default='#DB2777')
    is_active = models.BooleanField(default=True)
    sort_order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.title

    class Meta:
        ordering = ['sort_order', 'id']


class SocialLink(models.Model):
    PLATFORMS = [
        ('instagram', 'Instagram', 'instagram'),
        ('facebook', 'Facebook', 'facebook'),
        ('tiktok', 'TikTok', 'music'),
        ('whatsapp', 'WhatsApp', 'message-circle'),
        ('telegram', 'Telegram', 'send'),
        ('youtube', 'YouTube', 'youtube'),
        ('twitter', 'Twitter / X', 'twitter'),
        ('snapchat', 'Snapchat', 'camera'),
        ('phone', _('Phone'), 'phone'),
        ('email', _('Email'), 'mail'),
        ('website', _('Website'), 'globe'),
    ]
    PLATFORM_CHOICES = [(key, label) for key, label, _icon in PLATFORMS]

    platform = models.CharField(max_length=30, choices=PLATFORM_CHOICES)
    url = models.CharField(max_length=500)
    icon = models.CharField(max_length=50, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    sort_order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.get_platform_display()} - {self.url}"

    @classmethod
    def icon_for(cls, platform):
        for key, _label, icon in cls.PLATFORMS:
            if key == platform:
                return icon
        return 'globe'

    class Meta:
        ordering = ['sort_order', 'id']


class TrackingPixel(models.Model):
    META = 'meta'
    TIKTOK = 'tiktok'
    PLATFORM_CHOICES = [
        (META, 'Meta (Facebook)'),
        (TIKTOK, 'TikTok'),
    ]

    platform = models.CharField(max_length=20, choices=PLATFORM_CHOICES)
    pixel_id = models.CharField(max_length=100)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.get_platform_display()} ({self.pixel_id})"

    class Meta:
        ordering = ['-created_at']


# --- 8. الأدوار والصلاحيات (Roles & Permissions) ---
class UserRole(models.Model):
    ADMIN = 'admin'
    USER = 'user'
    ROLE_CHOICES = [
        (ADMIN, _('Admin')),
        (USER, _('User')),
    ]

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='store_role')
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=USER)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.user} ({self.role})"


class UserPermission(models.Model):
    SECTIONS = [
        ('products', _('Products')),
        ('orders', _('Orders')),
        ('delivery-prices', _('Delivery Prices')),
        ('analytics', _('Analytics')),
        ('coupons', _('Coupons')),
        ('categories', _('Categories')),
        ('banners', _('Banners')),
        ('reviews', _('Reviews')),
        ('social-links', _('Social Links')),
        ('tracking-pixels', _('Tracking Pixels')),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='store_permissions')
    section = models.CharField(max_length=30, choices=SECTIONS)
    has_access = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.user} - {self.section}: {'yes' if self.has_access else 'no'}"

    class Meta:
        unique_together = ('user', 'section')
