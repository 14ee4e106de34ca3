from django.contrib import messages
from django.core.paginator import Paginator
from django.db.models import Q
from django.http import JsonResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.utils.translation import gettext as _
from django.views.decorators.http import require_GET, require_POST

from . import services
from .cart import (
    CLAMPED_TO_MAX, CLAMPED_TO_STOCK, COUPON_SESSION_KEY, UPDATED, Cart, direct_item_lines, pop_direct_item,
    set_direct_item,
)
from .exceptions import CouponInvalid, InsufficientStock, StoreError
from .forms import AddToCartForm, CategoryFilterForm, CheckoutForm, CouponApplyForm, DeliveryQuoteForm, ReviewForm, TrackOrderForm
from .models import Category, DeliverySettings, Order, Product, PromoBanner, Wilaya

PLACED_ORDERS_SESSION_KEY = 'village-orders'


# --- 1. الصفحة الرئيسية (Home) ---
def home(request):
    context = {
        'categories': Category.objects.all(),
        'banners': PromoBanner.objects.filter(is_active=True),
        'products': Product.objects.active().select_related('category')[:8],
        'wilayas_count': Wilaya.objects.count(),
        'products_count': Product.objects.active().count(),
    }
    return render(request, 'home.html', context)


# --- 2. صفحة القسم (Category) ---
def category_view(request, slug):
    category = get_object_or_404(Category, slug=slug)
    filter_form = CategoryFilterForm(request.GET)
    products = filter_form.filter(Product.objects.active().filter(category=category))
    page = Paginator(products, 24).get_page(request.GET.get('page'))
    # باقي معاملات الرابط تبقى مع أزرار الصفحات
    query = request.GET.copy()
    query.pop('page', None)
    return render(request, 'category.html', {
        'category': category,
        'page': page,
        'products': page.object_list,
        'filter_form': filter_form,
        'query': query.urlencode(),
    })


# --- 3. صفحة تفاصيل المنتج (Product Detail) ---
def product_detail(request, id):
    product = get_object_or_404(Product.objects.active().select_related('category'), id=id)
    reviews = product.reviews.filter(is_approved=True).prefetch_related('replies')
    context = {
        'product': product,
        'gallery': product.images.all(),
        'reviews': reviews,
        'average_rating': product.average_rating,
        'cart_form': AddToCartForm(product=product, initial={'quantity': product.effective_min_quantity}),
        'review_form': ReviewForm(),
    }
    return render(request, 'product_detail.html', context)


@require_POST
def submit_review(request, product_id):
    product = get_object_or_404(Product.objects.active(), id=product_id)
    form = ReviewForm(request.POST)
    if form.is_valid():
        review = form.save(commit=False)
        review.product = product
        review.save()
        messages.success(request, _('Thank you! Your review will appear once approved.'))
    else:
        for errors in form.errors.values():
            messages.error(request, errors[0])
    return redirect('product_detail', id=product.id)


# --- 4. البحث (Search) ---
def search(request):
    query = request.GET.get('q', '').strip()
    products = Product.objects.none()
    if query:
        products = Product.objects.active().filter(
            Q(name__icontains=query) | Q(description__icontains=query)
        )[:10]
    return render(request, 'search.html', {'query': query, 'products': products})


# --- 5. منطق عربة التسوق (Cart) ---
@require_POST
def add_to_cart(request, product_id):
    product = get_object_or_404(Product.objects.active(), id=product_id)
    form = AddToCartForm(request.POST, product=product)
    if not form.is_valid():
        for errors in form.errors.values():
            messages.error(request, errors[0])
        return redirect('product_detail', id=product.id)

    quantity = form.cleaned_data['quantity']
    size = form.cleaned_data['size']
    color = form.cleaned_data['color']

    if 'buy_now' in request.POST:
        try:
            services.check_line_quantity(product, max(quantity, product.effective_min_quantity))
        except StoreError as e:
            messages.error(request, e.message)
            return redirect('product_detail', id=product.id)
        set_direct_item(request, product, max(quantity, product.effective_min_quantity), size, color)
        return redirect('checkout')

    try:
        outcome = Cart(request).add(product, quantity, size, color)
    except StoreError as e:
        messages.error(request, e.message)
        return redirect('product_detail', id=product.id)

    if outcome == CLAMPED_TO_STOCK:
        messages.warning(request, _('Only %(stock)s available.') % {'stock': product.stock})
    elif outcome == CLAMPED_TO_MAX:
        messages.warning(request, _('The maximum quantity is %(max)s.') % {'max': product.max_quantity})
    elif outcome == UPDATED:
        messages.success(request, _('Quantity updated.'))
    else:
        messages.success(request, _('Added to cart!'))
    return redirect('product_detail', id=product.id)


def cart_view(request):
    cart = Cart(request)
    lines = cart.lines()
    total_price, total_discount = cart.totals(lines)
    return render(request, 'cart.html', {
        'cart_items': lines,
        'total_price': total_price,
        'total_discount': total_discount,
    })


@require_POST
def update_cart(request, item_key, action):
    cart = Cart(request)
    item = cart.cart.get(item_key)
    if item is not None:
        if action == 'increase':
            quantity = item['quantity'] + 1
        elif action == 'decrease':
            quantity = item['quantity'] - 1
        else:
            try:
                quantity = int(request.POST.get('quantity', item['quantity']))
            except (TypeError, ValueError):
                quantity = item['quantity']
        try:
            cart.update_quantity(item_key, quantity)
        except StoreError as e:
            messages.error(request, e.message)
    return redirect('cart_view')


@require_POST
def remove_from_cart(request, item_key):
    Cart(request).remove(item_key)
    messages.success(request, _('Removed from cart.'))
    return redirect('cart_view')


# --- 6. إتمام الطلب (Checkout) ---
def _checkout_lines(request):
    direct = direct_item_lines(request)
    if direct is not None:
        return direct, True
    return Cart(request).lines(), False


def _product_ids(lines):
    return [line['product'].pk for line in lines]


def _session_coupon(request, subtotal, lines):
    code = request.session.get(COUPON_SESSION_KEY)
    if not code:
        return None
    result = services.validate_coupon_code(code, subtotal, _product_ids(lines))
    if not result.valid:
        messages.warning(request, result.message)
        request.session.pop(COUPON_SESSION_KEY, None)
        return None
    return result


def checkout(request):
    lines, is_direct = _checkout_lines(request)
    if not lines:
        messages.warning(request, _('Your cart is empty!'))
        return redirect('cart_view')

    subtotal, quantity_discount = services.lines_total(lines)
    form = CheckoutForm(request.POST or None)

    if request.method == 'POST' and form.is_valid():
        data = form.cleaned_data
        try:
            order = services.place_order(
                first_name=data['first_name'],
                last_name=data['last_name'],
                phone=data['phone'],
                wilaya=data['wilaya'],
                delivery_type=data['delivery_type'],
                lines=lines,
                coupon_code=request.session.get(COUPON_SESSION_KEY),
                notes=data['notes'],
            )
        except CouponInvalid as e:
            request.session.pop(COUPON_SESSION_KEY, None)
            messages.error(request, e.message)
            return redirect('checkout')
        except InsufficientStock as e:
            messages.error(request, e.message)
            return redirect('product_detail', id=e.product.id) if is_direct else redirect('cart_view')
        except StoreError as e:
            messages.error(request, e.message)
            return redirect('checkout')

        if is_direct:
            pop_direct_item(request)
        else:
            Cart(request).clear()
        request.session.pop(COUPON_SESSION_KEY, None)
        placed = request.session.get(PLACED_ORDERS_SESSION_KEY, [])
        request.session[PLACED_ORDERS_SESSION_KEY] = (placed + [order.pk])[-20:]
        messages.success(request, _('Your order has been sent successfully!'))
        return redirect('order_confirmation', order_id=order.pk)

    coupon = _session_coupon(request, subtotal, lines)
    products = [line['product'] for line in lines]
    return render(request, 'checkout.html', {
        'form': form,
        'coupon_form': CouponApplyForm(),
        'items': lines,
        'is_direct': is_direct,
        'subtotal': subtotal,
        'quantity_discount': quantity_discount,
        'coupon': coupon,
        'delivery_types': services.available_delivery_types(products),
        'delivery_settings': DeliverySettings.load(),
    })


@require_POST
def apply_coupon(request):
    form = CouponApplyForm(request.POST)
    if form.is_valid():
        lines = _checkout_lines(request)[0]
        subtotal = services.lines_total(lines)[0]
        result = services.validate_coupon_code(form.cleaned_data['code'], subtotal, _product_ids(lines))
        if result.valid:
            request.session[COUPON_SESSION_KEY] = result.coupon.code
            messages.success(request, result.message)
        else:
            messages.error(request, result.message)
    return redirect('checkout')


@require_POST
def remove_coupon(request):
    request.session.pop(COUPON_SESSION_KEY, None)
    messages.success(request, _('Coupon removed.'))
    return redirect('checkout')


@require_POST
def cancel_buy_now(request):
    pop_direct_item(request)
    return redirect('cart_view')


@require_GET
def delivery_quote(request):
    """JSON price preview for the checkout page."""
    form = DeliveryQuoteForm(request.GET)
    if not form.is_valid():
        return JsonResponse({'error': _('Choose a valid wilaya.')}, status=400)
    lines = _checkout_lines(request)[0]
    wilaya = form.cleaned_data['wilaya']
    delivery_type = form.cleaned_data['delivery_type']
    subtotal = services.lines_total(lines)[0]
    try:
        delivery = services.delivery_price(wilaya, delivery_type, [line['product'] for line in lines])
    except StoreError as e:
        return JsonResponse({'error': e.message}, status=400)
    code = request.session.get(COUPON_SESSION_KEY)
    discount = services.ZERO
    if code:
        result = services.validate_coupon_code(code, subtotal, _product_ids(lines))
        discount = result.discount if result.valid else services.ZERO
    return JsonResponse({
        'subtotal': str(subtotal),
        'delivery_price': str(delivery),
        'coupon_discount': str(discount),
        'total': str(services.order_total(subtotal, discount, delivery)),
    })


def order_confirmation(request, order_id):
    if order_id not in request.session.get(PLACED_ORDERS_SESSION_KEY, []):
        return redirect('home')
    order = get_object_or_404(
        Order.objects.select_related('wilaya').prefetch_related('items__product'), pk=order_id,
    )
    return render(request, 'order_confirmation.html', {'order': order})


# --- 7. تتبع الطلب (Track Order) ---
def track_order(request):
    form = TrackOrderForm(request.GET or None)
    orders = None
    if form.is_bound and form.is_valid():
        orders = services.orders_for_phone(form.cleaned_data['phone'])
    return render(request, 'track_order.html', {'form': form, 'orders': orders})
