from django.contrib import admin, messages
from django.utils.html import format_html
import nested_admin

from . import services
from .exceptions import StoreError
from .models import (
    Category, Coupon, CouponProduct, DeliverySettings, Order, OrderItem, Product, ProductImage, PromoBanner,
    Review, ReviewReply, SocialLink, TrackingPixel, UserPermission, UserRole, Wilaya,
)


# --- 1. ProductImageInline ---
class ProductImageInline(nested_admin.NestedTabularInline):
    model = ProductImage
    extra = 1
    fields = ['image', 'sort_order', 'image_preview']
    readonly_fields = ['image_preview']

    def image_preview(self, obj):
        if obj.image:
            return format_html('<img src="{}" style="width: 100px; height: auto; border-radius: 5px; border: 1px solid #ddd;" />', obj.image.url)
        return "No Image"
    image_preview.short_description = 'Preview'


# --- 2. ProductAdmin ---
@admin.register(Product)
class ProductAdmin(nested_admin.NestedModelAdmin):
    inlines = [ProductImageInline]

    list_display = ['name', 'category', 'colored_stock', 'display_price', 'is_active', 'created_at']
    list_display_links = ['name']
    list_editable = ['is_active']
    list_filter = ['category', 'is_active', 'created_at']
    search_fields = ['name', 'description']

    fieldsets = (
        ('Basic Information', {
            'fields': ('name', 'category', 'description', 'image', 'is_active'),
            'classes': ('wide',),
        }),
        ('Pricing & Inventory', {
            'fields': ('price', 'stock', ('sizes', 'colors')),
        }),
        ('Quantity rules', {
            'fields': (('min_quantity', 'max_quantity'), ('discount_quantity', 'discount_percentage')),
        }),
        ('Delivery', {
            'fields': (
                ('home_delivery_enabled', 'custom_home_delivery_price'),
                ('office_delivery_enabled', 'custom_office_delivery_price'),
            ),
        }),
    )

    # تحسين بصري للمخزون (لون أحمر إذا نفد)
    def colored_stock(self, obj):
        color = 'green' if obj.stock > 10 else 'orange' if obj.stock > 0 else 'red'
        return format_html('<b style="color: {};">{}</b>', color, obj.stock)
    colored_stock.short_description = 'Stock Status'

    def display_price(self, obj):
        return format_html('<b>{}</b> <small>DZD</small>', int(obj.price)) if obj.price else 0
    display_price.short_description = 'Price'


# --- 3. CategoryAdmin ---
@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'name_ar', 'slug']
    prepopulated_fields = {'slug': ('name',)}


# --- 4. OrderItemInline & OrderAdmin ---
class OrderItemInline(nested_admin.NestedTabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['product', 'color', 'size', 'quantity', 'display_item_price']
    fields = readonly_fields
    can_delete = False

    def display_item_price(self, obj):
        return int(obj.price)
    display_item_price.short_description = 'Price'

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(nested_admin.NestedModelAdmin):
    list_display = ['id', 'customer_name', 'customer_phone', 'wilaya', 'display_total', 'status', 'created_at']
    list_filter = ['status', 'delivery_type', 'wilaya', 'created_at']
    search_fields = ['customer_first_name', 'customer_last_name', 'customer_phone', 'id']
    inlines = [OrderItemInline]

    fieldsets = (
        ('Customer Info', {'fields': (('customer_first_name', 'customer_last_name'), 'customer_phone', 'wilaya', 'notes')}),
        ('Delivery', {'fields': ('delivery_type', 'delivery_price')}),
        ('Status & Total', {'fields': ('status', ('quantity_discount', 'coupon_code', 'coupon_discount'), 'total_price')}),
    )
    readonly_fields = ['delivery_type', 'delivery_price', 'quantity_discount', 'coupon_code', 'coupon_discount', 'total_price']

    def display_total(self, obj):
        return int(obj.total_price)
    display_total.short_description = 'Total Price'

    def save_model(self, request, obj, form, change):
        # تغيير الحالة يمر عبر الخدمة لضبط المخزون
        if change and 'status' in form.changed_data:
            new_status = obj.status
            obj.status = form.initial['status']
            super().save_model(request, obj, form, change)
            try:
                services.change_order_status(obj, new_status)
            except StoreError as e:
                self.message_user(request, e.message, level=messages.ERROR)
            else:
                obj.status = new_status
            return
        super().save_model(request, obj, form, change)

    def delete_model(self, request, obj):
        services.delete_order(obj)

    def delete_queryset(self, request, queryset):
        for order in queryset:
            services.delete_order(order)


# --- 5. Wilaya & DeliverySettings ---
@admin.register(Wilaya)
class WilayaAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'name_ar', 'home_delivery_price', 'office_delivery_price']
    list_editable = ['home_delivery_price', 'office_delivery_price']
    search_fields = ['code', 'name', 'name_ar']


@admin.register(DeliverySettings)
class DeliverySettingsAdmin(admin.ModelAdmin):
    list_display = ['__str__', 'default_home_price', 'default_office_price', 'updated_at']


# --- 6. CouponAdmin ---
class CouponProductInline(nested_admin.NestedTabularInline):
    model = CouponProduct
    extra = 1
    autocomplete_fields = ['product']


@admin.register(Coupon)
class CouponAdmin(nested_admin.NestedModelAdmin):
    list_display = ['code', 'discount_type', 'discount_value', 'used_count', 'max_uses', 'expires_at', 'is_active']
    list_filter = ['discount_type', 'is_active', 'applies_to_all']
    list_editable = ['is_active']
    search_fields = ['code']
    readonly_fields = ['used_count']
    inlines = [CouponProductInline]


# --- 7. ReviewAdmin ---
class ReviewReplyInline(nested_admin.NestedStackedInline):
    model = ReviewReply
    extra = 0


@admin.register(Review)
class ReviewAdmin(nested_admin.NestedModelAdmin):
    list_display = ['customer_name', 'product', 'rating', 'is_approved', 'created_at']
    list_filter = ['is_approved', 'rating']
    list_editable = ['is_approved']
    search_fields = ['customer_name', 'comment', 'product__name']
    inlines = [ReviewReplyInline]


# --- 8. Content ---
@admin.register(PromoBanner)
class PromoBannerAdmin(admin.ModelAdmin):
    list_display = ['title', 'color_preview', 'sort_order', 'is_active']
    list_editable = ['sort_order', 'is_active']

    def color_preview(self, obj):
        return format_html(
            '<span style="display:inline-block;width:80px;height:16px;border-radius:4px;'
            'background:linear-gradient(to left, {}, {});"></span>', obj.color_from, obj.color_to,
        )
    color_preview.short_description = 'Colors'


@admin.register(SocialLink)
class SocialLinkAdmin(admin.ModelAdmin):
    list_display = ['platform', 'url', 'sort_order', 'is_active']
    list_editable = ['sort_order', 'is_active']


@admin.register(TrackingPixel)
class TrackingPixelAdmin(admin.ModelAdmin):
    list_display = ['platform', 'pixel_id', 'is_active', 'created_at']
    list_editable = ['is_active']


# --- 9. Roles & Permissions ---
@admin.register(UserRole)
class UserRoleAdmin(admin.ModelAdmin):
    list_display = ['user', 'role', 'created_at']
    list_filter = ['role']


@admin.register(UserPermission)
class UserPermissionAdmin(admin.ModelAdmin):
    list_display = ['user', 'section', 'has_access']
    list_filter = ['section', 'has_access']
    list_editable = ['has_access']
