import logging

from django.conf import settings
from django.contrib import messages
from django.contrib.auth import authenticate, get_user_model, login, logout
from django.db.models import Q
from django.shortcuts import get_object_or_404, redirect, render
from django.utils.http import url_has_allowed_host_and_scheme
from django.utils.translation import gettext as _
from django.views.decorators.http import require_POST

from . import services
from .forms import (
    BulkDeliveryPriceForm, CategoryForm, CouponForm, DeliverySettingsForm, OrderEditForm, OrderItemFormSet,
    OrderStatusForm, ProductForm, PromoBannerForm, ReviewReplyForm, SocialLinkForm, SocialLinkUpdateForm,
    TrackingPixelForm, UserCreateForm, UserPermissionsForm, UserUpdateForm, WilayaPriceForm,
)
from .exceptions import StoreError
from .models import (
    Category, Coupon, DeliverySettings, Order, Product, PromoBanner, Review, ReviewReply, SocialLink,
    TrackingPixel, UserRole, Wilaya,
)
from .permissions import (
    admin_required, get_role, has_any_role, role_required, section_permissions, section_required,
    set_section_permissions,
)

logger = logging.getLogger(__name__)
User = get_user_model()


def _form_page(request, form, title, back_url, **extra):
    context = {'form': form, 'title': title, 'back_url': back_url}
    context.update(extra)
    return render(request, 'dashboard/form.html', context)


def _toggle(model, pk, field='is_active'):
    obj = get_object_or_404(model, pk=pk)
    setattr(obj, field, not getattr(obj, field))
    obj.save(update_fields=[field])
    return obj


# --- 1. تسجيل الدخول (Login) ---

def dashboard_login(request):
    if has_any_role(request.user):
        return redirect('dashboard')
    if request.method == 'POST':
        email = request.POST.get('email', '').strip().lower()
        password = request.POST.get('password', '')
        user = authenticate(request, username=email, password=password)
        if user and has_any_role(user):
            login(request, user)
            next_url = request.GET.get('next')
            if next_url and url_has_allowed_host_and_scheme(next_url, allowed_hosts={request.get_host()}):
                return redirect(next_url)
            return redirect('dashboard')
        if user:
            logger.warning("Login refused for %s: no dashboard role", email)
            messages.error(request, _('This account has no access to the dashboard.'))
        else:
            messages.error(request, _('Invalid e-mail or password'))
    return render(request, 'dashboard/login.html')


def dashboard_logout(request):
    logout(request)
    return redirect('dashboard_login')


# --- 2. الصفحة الرئيسية للوحة التحكم (Dashboard home) ---

@role_required
def dashboard_view(request):
    context = {
        'products_count': Product.objects.count(),
        'orders_count': Order.objects.count(),
        'pending_orders': Order.objects.filter(status=Order.PENDING).count(),
        'low_stock': Product.objects.low_stock()[:5],
        'permissions': section_permissions(request.user),
        'role': get_role(request.user),
    }
    return render(request, 'dashboard/home.html', context)


# --- 3. المنتجات (Products) ---

@section_required('products')
def product_list(request):
    products = Product.objects.select_related('category')
    query = request.GET.get('q', '').strip()
    if query:
        products = products.filter(name__icontains=query)
    return render(request, 'dashboard/products.html', {'products': products, 'query': query})


@section_required('products')
def product_create(request):
    form = ProductForm(request.POST or None, request.FILES or None)
    if request.method == 'POST' and form.is_valid():
        product = form.save()
        messages.success(request, _('Product added!'))
        logger.info("Product %s created by %s", product.pk, request.user)
        return redirect('dashboard_products')
    return _form_page(request, form, _('Add New Product'), 'dashboard_products', multipart=True)


@section_required('products')
def product_edit(request, pk):
    product = get_object_or_404(Product, pk=pk)
    form = ProductForm(request.POST or None, request.FILES or None, instance=product)
    if request.method == 'POST' and form.is_valid():
        form.save()
        messages.success(request, _('Product updated successfully!'))
        return redirect('dashboard_products')
    return _form_page(request, form, _('Edit: %(name)s') % {'name': product.name}, 'dashboard_products', multipart=True)


@require_POST
@section_required('products')
def product_delete(request, pk):
    product = get_object_or_404(Product, pk=pk)
    product.delete()
    messages.success(request, _('Product has been deleted!'))
    return redirect('dashboard_products')


@require_POST
@section_required('products')
def product_toggle(request, pk):
    _toggle(Product, pk)
    return redirect('dashboard_products')


# --- 4. الأقسام (Categories) ---

@section_required('categories')
def category_list(request):
    form = CategoryForm(request.POST or None)
    if request.method == 'POST' and form.is_valid():
        form.save()
        messages.success(request, _('Category added!'))
        return redirect('dashboard_categories')
    return render(request, 'dashboard/categories.html', {
        'categories': Category.objects.all(),
        'form': form,
    })


@section_required('categories')
def category_edit(request, pk):
    category = get_object_or_404(Category, pk=pk)
    form = CategoryForm(request.POST or None, instance=category)
    if request.method == 'POST' and form.is_valid():
        form.save()
        messages.success(request, _('Category updated!'))
        return redirect('dashboard_categories')
    return _form_page(request, form, _('Edit: %(name)s') % {'name': category.name}, 'dashboard_categories')


@require_POST
@section_required('categories')
def category_delete(request, pk):
    get_object_or_404(Category, pk=pk).delete()
    messages.success(request, _('Category deleted!'))
    return redirect('dashboard_categories')


# --- 5. الطلبات (Orders) ---

@section_required('orders')
def order_list(request, status=None):
    if status and status not in dict(Order.STATUS_CHOICES):
        return redirect('dashboard_orders')
    orders = Order.objects.select_related('wilaya').prefetch_related('items__product')
    if status:
        orders = orders.filter(status=status)
    query = request.GET.get('q', '').strip()
    if query:
        orders = orders.filter(
            Q(customer_phone__icontains=query) | Q(customer_first_name__icontains=query)
            | Q(customer_last_name__icontains=query)
        )
    return render(request, 'dashboard/orders.html', {
        'orders': orders,
        'status': status,
        'status_choices': Order.STATUS_CHOICES,
        'status_counts': services.status_counts(),
        'query': query,
    })


@section_required('orders')
def order_detail(request, pk):
    order = get_object_or_404(Order.objects.select_related('wilaya'), pk=pk)
    items = order.items.select_related('product')
    if request.method == 'POST':
        form = OrderEditForm(request.POST)
        formset = OrderItemFormSet(request.POST, prefix='items')
        if form.is_valid() and formset.is_valid():
            new_items = [
                item for item in formset.cleaned_data
                if item and not item.get('DELETE') and item.get('product')
            ]
            data = form.cleaned_data
            try:
                services.update_order(
                    order,
                    first_name=data['first_name'],
                    last_name=data['last_name'],
                    phone=data['phone'],
                    wilaya=data['wilaya'],
                    delivery_type=data['delivery_type'],
                    notes=data['notes'],
                    items=new_items,
                )
            except StoreError as e:
                messages.error(request, e.message)
            else:
                messages.success(request, _('Order updated successfully'))
                return redirect('dashboard_order_detail', pk=order.pk)
    else:
        form = OrderEditForm(initial={
            'first_name': order.customer_first_name,
            'last_name': order.customer_last_name,
            'phone': order.customer_phone,
            'wilaya': order.wilaya_id,
            'delivery_type': order.delivery_type,
            'notes': order.notes,
        })
        formset = OrderItemFormSet(prefix='items', initial=[
            {
                'product': item.product_id,
                'quantity': item.quantity,
                'size': item.size,
                'color': item.color,
                'price': item.price,
            }
            for item in items
        ])
    return render(request, 'dashboard/order_detail.html', {
        'order': order,
        'items': items,
        'form': form,
        'formset': formset,
        'status_form': OrderStatusForm(initial={'status': order.status}),
    })


@require_POST
@section_required('orders')
def order_status(request, pk):
    order = get_object_or_404(Order, pk=pk)
    form = OrderStatusForm(request.POST)
    if form.is_valid():
        try:
            services.change_order_status(order, form.cleaned_data['status'])
            messages.success(request, _('Order status updated'))
        except StoreError as e:
            messages.error(request, e.message)
    if request.POST.get('next') == 'detail':
        return redirect('dashboard_order_detail', pk=order.pk)
    return redirect('dashboard_orders')


@require_POST
@section_required('orders')
def order_delete(request, pk):
    order = get_object_or_404(Order, pk=pk)
    services.delete_order(order)
    messages.success(request, _('Order deleted'))
    return redirect('dashboard_orders')


# --- 6. أسعار التوصيل (Delivery prices) ---

@section_required('delivery-prices')
def delivery_prices(request):
    wilayas = Wilaya.objects.all()
    query = request.GET.get('q', '').strip()
    if query:
        wilayas = wilayas.filter(Q(code__icontains=query) | Q(name__icontains=query) | Q(name_ar__icontains=query))
    return render(request, 'dashboard/delivery_prices.html', {
        'wilayas': wilayas,
        'query': query,
        'settings_form': DeliverySettingsForm(instance=DeliverySettings.load()),
        'bulk_form': BulkDeliveryPriceForm(),
    })


@require_POST
@section_required('delivery-prices')
def wilaya_price_update(request, pk):
    wilaya = get_object_or_404(Wilaya, pk=pk)
    form = WilayaPriceForm(request.POST, instance=wilaya)
    if form.is_valid():
        form.save()
        messages.success(request, _('Delivery prices updated for %(name)s') % {'name': wilaya.display_name})
    else:
        messages.error(request, _('Invalid price'))
    return redirect('dashboard_delivery_prices')


@require_POST
@section_required('delivery-prices')
def delivery_defaults_update(request):
    form = DeliverySettingsForm(request.POST, instance=DeliverySettings.load())
    if form.is_valid():
        form.save()
        messages.success(request, _('Default delivery prices updated'))
    else:
        messages.error(request, _('Invalid price'))
    return redirect('dashboard_delivery_prices')


@require_POST
@section_required('delivery-prices')
def delivery_bulk_update(request):
    form = BulkDeliveryPriceForm(request.POST)
    if form.is_valid():
        changes = {
            field: value for field, value in form.cleaned_data.items() if value is not None
        }
        updated = Wilaya.objects.update(**changes)
        messages.success(request, _('%(count)s wilayas updated') % {'count': updated})
    else:
        messages.error(request, _('Enter at least one price.'))
    return redirect('dashboard_delivery_prices')


# --- 7. التحليلات (Analytics) ---

@section_required('analytics')
def analytics_view(request):
    return render(request, 'dashboard/analytics.html', {
        'analytics': services.store_analytics(),
        'status_labels': dict(Order.STATUS_CHOICES),
    })


# --- 8. الكوبونات (Coupons) ---

@section_required('coupons')
def coupon_list(request):
    coupons = Coupon.objects.prefetch_related('products')
    return render(request, 'dashboard/coupons.html', {'coupons': coupons})


@section_required('coupons')
def coupon_create(request):
    form = CouponForm(request.POST or None)
    if request.method == 'POST' and form.is_valid():
        form.save()
        messages.success(request, _('Coupon added'))
        return redirect('dashboard_coupons')
    return _form_page(request, form, _('Add coupon'), 'dashboard_coupons')


@section_required('coupons')
def coupon_edit(request, pk):
    coupon = get_object_or_404(Coupon, pk=pk)
    form = CouponForm(request.POST or None, instance=coupon)
    if request.method == 'POST' and form.is_valid():
        form.save()
        messages.success(request, _('Coupon updated'))
        return redirect('dashboard_coupons')
    return _form_page(request, form, _('Edit: %(name)s') % {'name': coupon.code}, 'dashboard_coupons')


@require_POST
@section_required('coupons')
def coupon_delete(request, pk):
    get_object_or_404(Coupon, pk=pk).delete()
    messages.success(request, _('Coupon deleted'))
    return redirect('dashboard_coupons')


@require_POST
@section_required('coupons')
def coupon_toggle(request, pk):
    _toggle(Coupon, pk)
    return redirect('dashboard_coupons')


# --- 9. البانرات الترويجية (Banners) ---

@section_required('banners')
def banner_list(request):
    return render(request, 'dashboard/banners.html', {'banners': PromoBanner.objects.all()})


@section_required('banners')
def banner_create(request):
    form = PromoBannerForm(request.POST or None)
    if request.method == 'POST' and form.is_valid():
        form.save()
        messages.success(request, _('Banner added'))
        return redirect('dashboard_banners')
    return _form_page(request, form, _('Add banner'), 'dashboard_banners')


@section_required('banners')
def banner_edit(request, pk):
    banner = get_object_or_404(PromoBanner, pk=pk)
    form = PromoBannerForm(request.POST or None, instance=banner)
    if request.method == 'POST' and form.is_valid():
        form.save()
        messages.success(request, _('Banner updated'))
        return redirect('dashboard_banners')
    return _form_page(request, form, _('Edit: %(name)s') % {'name': banner.title}, 'dashboard_banners')


@require_POST
@section_required('banners')
def banner_delete(request, pk):
    get_object_or_404(PromoBanner, pk=pk).delete()
    messages.success(request, _('Banner deleted'))
    return redirect('dashboard_banners')


@require_POST
@section_required('banners')
def banner_toggle(request, pk):
    _toggle(PromoBanner, pk)
    return redirect('dashboard_banners')


# --- 10. التقييمات (Reviews) ---

@section_required('reviews')
def review_list(request):
    reviews = Review.objects.select_related('product').prefetch_related('replies')
    return render(request, 'dashboard/reviews.html', {
        'reviews': reviews,
        'reply_form': ReviewReplyForm(initial={'reply_name': settings.STORE_NAME}),
    })


@require_POST
@section_required('reviews')
def review_toggle_approval(request, pk):
    review = _toggle(Review, pk, 'is_approved')
    if review.is_approved:
        messages.success(request, _('Review approved'))
    else:
        messages.success(request, _('Review hidden'))
    return redirect('dashboard_reviews')


@require_POST
@section_required('reviews')
def review_delete(request, pk):
    get_object_or_404(Review, pk=pk).delete()
    messages.success(request, _('Review deleted'))
    return redirect('dashboard_reviews')


@require_POST
@section_required('reviews')
def review_reply(request, pk):
    review = get_object_or_404(Review, pk=pk)
    form = ReviewReplyForm(request.POST)
    if form.is_valid():
        reply = form.save(commit=False)
        reply.review = review
        reply.save()
        messages.success(request, _('Reply added'))
    else:
        messages.error(request, _('Please write a reply'))
    return redirect('dashboard_reviews')


@require_POST
@section_required('reviews')
def reply_delete(request, pk):
    get_object_or_404(ReviewReply, pk=pk).delete()
    messages.success(request, _('Reply deleted'))
    return redirect('dashboard_reviews')


# --- 11. وسائل التواصل (Social links) ---

@section_required('social-links')
def social_link_list(request):
    links = SocialLink.objects.all()
    form = SocialLinkForm(request.POST or None)
    if request.method == 'POST' and form.is_valid():
        link = form.save(commit=False)
        link.icon = SocialLink.icon_for(link.platform)
        last = links.order_by('-sort_order').first()
        link.sort_order = (last.sort_order if last else 0) + 1
        link.save()
        messages.success(request, _('Link added'))
        return redirect('dashboard_social_links')
    return render(request, 'dashboard/social_links.html', {'links': links, 'form': form})


@require_POST
@section_required('social-links')
def social_link_update(request, pk):
    link = get_object_or_404(SocialLink, pk=pk)
    form = SocialLinkUpdateForm(request.POST, instance=link)
    if form.is_valid():
        form.save()
        messages.success(request, _('Link updated'))
    else:
        messages.error(request, _('Invalid link'))
    return redirect('dashboard_social_links')


@require_POST
@section_required('social-links')
def social_link_delete(request, pk):
    get_object_or_404(SocialLink, pk=pk).delete()
    messages.success(request, _('Link deleted'))
    return redirect('dashboard_social_links')


# --- 12. بيكسلات التتبع (Tracking pixels) ---

@section_required('tracking-pixels')
def pixel_list(request):
    form = TrackingPixelForm(request.POST or None)
    if request.method == 'POST' and form.is_valid():
        form.save()
        messages.success(request, _('Pixel added'))
        return redirect('dashboard_pixels')
    return render(request, 'dashboard/tracking_pixels.html', {
        'pixels': TrackingPixel.objects.all(),
        'form': form,
    })


@require_POST
@section_required('tracking-pixels')
def pixel_toggle(request, pk):
    _toggle(TrackingPixel, pk)
    return redirect('dashboard_pixels')


@require_POST
@section_required('tracking-pixels')
def pixel_delete(request, pk):
    get_object_or_404(TrackingPixel, pk=pk).delete()
    messages.success(request, _('Pixel deleted'))
    return redirect('dashboard_pixels')


# --- 13. المستخدمون والصلاحيات (Users) ---

@admin_required
def user_list(request):
    users = (
        User.objects.filter(Q(store_role__isnull=False) | Q(is_superuser=True))
        .select_related('store_role')
        .order_by('username')
    )
    rows = [
        {'user': user, 'role': get_role(user), 'permissions': section_permissions(user)}
        for user in users
    ]
    return render(request, 'dashboard/users.html', {'rows': rows, 'form': UserCreateForm()})


@require_POST
@admin_required
def user_create(request):
    form = UserCreateForm(request.POST)
    if form.is_valid():
        email = form.cleaned_data['email']
        user = User.objects.create_user(username=email, email=email, password=form.cleaned_data['password'])
        UserRole.objects.create(user=user, role=form.cleaned_data['role'])
        logger.info("Dashboard user %s created with role %s by %s", email, form.cleaned_data['role'], request.user)
        messages.success(request, _('User created'))
    else:
        for errors in form.errors.values():
            messages.error(request, errors[0])
    return redirect('dashboard_users')


@admin_required
def user_edit(request, pk):
    user = get_object_or_404(User, pk=pk)
    if request.method == 'POST' and request.POST.get('form') == 'permissions':
        permissions_form = UserPermissionsForm(request.POST)
        if permissions_form.is_valid():
            set_section_permissions(user, permissions_form.cleaned_data['sections'])
            messages.success(request, _('Permissions saved'))
            return redirect('dashboard_user_edit', pk=user.pk)
    elif request.method == 'POST':
        form = UserUpdateForm(request.POST, user=user)
        if form.is_valid():
            data = form.cleaned_data
            if data['email']:
                user.username = data['email']
                user.email = data['email']
            if data['password']:
                user.set_password(data['password'])
            user.save()
            UserRole.objects.update_or_create(user=user, defaults={'role': data['role']})
            messages.success(request, _('User updated'))
            return redirect('dashboard_user_edit', pk=user.pk)
        for errors in form.errors.values():
            messages.error(request, errors[0])

    permissions = section_permissions(user)
    return render(request, 'dashboard/user_detail.html', {
        'target': user,
        'role': get_role(user),
        'form': UserUpdateForm(user=user, initial={'email': user.email, 'role': get_role(user) or UserRole.USER}),
        'permissions_form': UserPermissionsForm(initial={
            'sections': [section for section, allowed in permissions.items() if allowed],
        }),
    })


@require_POST
@admin_required
def user_delete(request, pk):
    user = get_object_or_404(User, pk=pk)
    if user == request.user:
        messages.error(request, _('You cannot delete your own account.'))
        return redirect('dashboard_users')
    logger.info("Dashboard user %s deleted by %s", user.username, request.user)
    user.delete()
    messages.success(request, _('User deleted'))
    return redirect('dashboard_users')
