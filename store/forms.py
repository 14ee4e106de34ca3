from django import forms
from django.contrib.auth import get_user_model
from django.core.validators import RegexValidator
from django.utils.text import slugify
from django.utils.translation import gettext_lazy as _

from .models import (
    Category, Coupon, DeliverySettings, DeliveryType, Order, Product, PromoBanner,
    Review, ReviewReply, SocialLink, TrackingPixel, UserPermission, UserRole, Wilaya,
)

User = get_user_model()

# أرقام الجزائر: جوال 05/06/07 أو ثابت 02/03/04 متبوع بثمانية أرقام
phone_validator = RegexValidator(r'^0[2-7]\d{8}$', _('Enter a valid phone number (e.g. 0555123456).'))
name_validator = RegexValidator(r"^[^\W\d_]+(?:[ '\-][^\W\d_]+)*$", _('Use letters only.'))


def clean_phone_value(value):
    return (value or '').replace(' ', '').replace('-', '').strip()


def split_list(value):
    return [part.strip() for part in (value or '').split(',') if part.strip()]


class ListTextField(forms.CharField):
    """Comma-separated text in the form, a list of strings on the model."""

    def prepare_value(self, value):
        if isinstance(value, (list, tuple)):
            return ', '.join(value)
        return value

    def to_python(self, value):
        return split_list(super().to_python(value))


# --- 1. واجهة المتجر (Storefront) ---

class AddToCartForm(forms.Form):
    quantity = forms.IntegerField(min_value=1, initial=1)
    size = forms.CharField(required=False, max_length=20)
    color = forms.CharField(required=False, max_length=50)

    def __init__(self, *args, product=None, **kwargs):
        self.product = product
        super().__init__(*args, **kwargs)

    def clean_size(self):
        size = self.cleaned_data['size'] or None
        if self.product and self.product.sizes:
            if size not in self.product.sizes:
                raise forms.ValidationError(_('Please choose a size.'))
        return size

    def clean_color(self):
        color = self.cleaned_data['color'] or None
        if self.product and self.product.colors:
            if color not in self.product.colors:
                raise forms.ValidationError(_('Please choose a color.'))
        return color


class CategoryFilterForm(forms.Form):
    SORT_CHOICES = [
        ('newest', _('Newest')),
        ('price_asc', _('Price: low to high')),
        ('price_desc', _('Price: high to low')),
        ('name', _('Name')),
    ]
    ORDERING = {'newest': '-created_at', 'price_asc': 'price', 'price_desc': '-price', 'name': 'name'}

    sort = forms.ChoiceField(label=_('Sort by'), choices=SORT_CHOICES, required=False)
    min_price = forms.DecimalField(label=_('Minimum price'), min_value=0, max_digits=10, decimal_places=2, required=False)
    max_price = forms.DecimalField(label=_('Maximum price'), min_value=0, max_digits=10, decimal_places=2, required=False)
    in_stock = forms.BooleanField(label=_('In stock only'), required=False)

    def filter(self, products):
        """Apply the submitted filters; invalid input leaves the list unfiltered, newest first."""
        if not self.is_valid():
            return products.order_by('-created_at', '-id')
        data = self.cleaned_data
        if data['min_price'] is not None:
            products = products.filter(price__gte=data['min_price'])
        if data['max_price'] is not None:
            products = products.filter(price__lte=data['max_price'])
        if data['in_stock']:
            products = products.filter(stock__gt=0)
        return products.order_by(self.ORDERING[data['sort'] or 'newest'], '-id')


class CheckoutForm(forms.Form):
    first_name = forms.CharField(label=_('First name'), min_length=2, max_length=50, validators=[name_validator])
    last_name = forms.CharField(label=_('Last name'), min_length=2, max_length=50, validators=[name_validator])
    phone = forms.CharField(label=_('Phone number'), max_length=20)
    wilaya = forms.ModelChoiceField(label=_('Wilaya'), queryset=Wilaya.objects.all(), empty_label=_('Choose your wilaya'))
    delivery_type = forms.ChoiceField(label=_('Delivery type'), choices=DeliveryType.choices, initial=DeliveryType.OFFICE, widget=forms.RadioSelect)
    notes = forms.CharField(label=_('Notes'), required=False, max_length=500, widget=forms.Textarea(attrs={'rows': 2}))

    def clean_phone(self):
        phone = clean_phone_value(self.cleaned_data['phone'])
        phone_validator(phone)
        return phone


class DeliveryQuoteForm(forms.Form):
    wilaya = forms.ModelChoiceField(queryset=Wilaya.objects.all(), required=False)
    delivery_type = forms.CharField(required=False, max_length=20)


class CouponApplyForm(forms.Form):
    code = forms.CharField(label=_('Coupon code'), max_length=50)

    def clean_code(self):
        return self.cleaned_data['code'].strip().upper()


class TrackOrderForm(forms.Form):
    phone = forms.CharField(label=_('Phone number'), max_length=20)

    def clean_phone(self):
        return clean_phone_value(self.cleaned_data['phone'])


class ReviewForm(forms.ModelForm):
    rating = forms.TypedChoiceField(choices=[(i, i) for i in range(1, 6)], coerce=int, initial=5)

    class Meta:
        model = Review
        fields = ['customer_name', 'customer_phone', 'rating', 'comment']

    def clean_customer_phone(self):
        phone = clean_phone_value(self.cleaned_data.get('customer_phone'))
        if phone:
            phone_validator(phone)
        return phone or None


# --- 2. لوحة التحكم (Dashboard) ---

class ProductForm(forms.ModelForm):
    sizes = ListTextField(required=False, help_text=_('Comma separated, e.g. S, M, L'))
    colors = ListTextField(required=False, help_text=_('Comma separated, e.g. Black, White'))

    class Meta:
        model = Product
        fields = [
            'name', 'category', 'description', 'price', 'image', 'sizes', 'colors', 'stock', 'is_active',
            'min_quantity', 'max_quantity', 'discount_quantity', 'discount_percentage',
            'home_delivery_enabled', 'office_delivery_enabled',
            'custom_home_delivery_price', 'custom_office_delivery_price',
        ]

    def clean(self):
        cleaned = super().clean()
        min_qty = cleaned.get('min_quantity')
        max_qty = cleaned.get('max_quantity')
        if min_qty and max_qty and min_qty > max_qty:
            self.add_error('max_quantity', _('Maximum quantity must be greater than the minimum.'))
        if bool(cleaned.get('discount_quantity')) != bool(cleaned.get('discount_percentage')):
            self.add_error('discount_percentage', _('Set both the discount quantity and percentage, or neither.'))
        if not cleaned.get('home_delivery_enabled') and not cleaned.get('office_delivery_enabled'):
            self.add_error('office_delivery_enabled', _('At least one delivery type must stay enabled.'))
        return cleaned


class CategoryForm(forms.ModelForm):
    class Meta:
        model = Category
        fields = ['name', 'name_ar', 'slug', 'icon']

    def clean(self):
        cleaned = super().clean()
        if cleaned.get('slug'):
            return cleaned
        # الرابط المولد من الاسم قد يطابق رابط فئة أخرى
        slug = slugify(cleaned.get('name') or '') or slugify(cleaned.get('name_ar') or '', allow_unicode=True)
        if slug and Category.objects.filter(slug=slug).exclude(pk=self.instance.pk).exists():
            self.add_error('name', _('Another category already uses the link "%(slug)s".') % {'slug': slug})
        return cleaned


class CouponForm(forms.ModelForm):
    products = forms.ModelMultipleChoiceField(
        queryset=Product.objects.order_by('name'), required=False, widget=forms.CheckboxSelectMultiple,
    )
    expires_at = forms.DateTimeField(
        required=False, widget=forms.DateTimeInput(attrs={'type': 'datetime-local'}),
        input_formats=['%Y-%m-%dT%H:%M', '%Y-%m-%d %H:%M', '%Y-%m-%d'],
    )

    class Meta:
        model = Coupon
        fields = [
            'code', 'discount_type', 'discount_value', 'min_order_amount', 'max_uses',
            'expires_at', 'is_active', 'applies_to_all',
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if self.instance.pk:
            self.fields['products'].initial = list(self.instance.coupon_products.values_list('product_id', flat=True))

    def clean_code(self):
        code = self.cleaned_data['code'].strip().upper()
        duplicate = Coupon.objects.filter(code=code).exclude(pk=self.instance.pk)
        if duplicate.exists():
            raise forms.ValidationError(_('A coupon with this code already exists.'))
        return code

    def clean(self):
        cleaned = super().clean()
        if cleaned.get('discount_type') == Coupon.PERCENTAGE and (cleaned.get('discount_value') or 0) > 100:
            self.add_error('discount_value', _('A percentage cannot exceed 100.'))
        if not cleaned.get('applies_to_all') and not cleaned.get('products'):
            self.add_error('products', _('Choose at least one product or apply the coupon to all products.'))
        return cleaned

    def save(self, commit=True):
        coupon = super().save(commit=commit)
        if commit:
            self.save_products(coupon)
        return coupon

    def save_products(self, coupon):
        coupon.coupon_products.all().delete()
        if not coupon.applies_to_all:
            coupon.products.add(*self.cleaned_data.get('products', []))


class PromoBannerForm(forms.ModelForm):
    class Meta:
        model = PromoBanner
        fields = ['title', 'subtitle', 'icon', 'link', 'link_text', 'color_from', 'color_to', 'is_active', 'sort_order']
        widgets = {
            'color_from': forms.TextInput(attrs={'type': 'color'}),
            'color_to': forms.TextInput(attrs={'type': 'color'}),
        }


class SocialLinkForm(forms.ModelForm):
    class Meta:
        model = SocialLink
        fields = ['platform', 'url']


class SocialLinkUpdateForm(forms.ModelForm):
    class Meta:
        model = SocialLink
        fields = ['url', 'is_active']


class TrackingPixelForm(forms.ModelForm):
    class Meta:
        model = TrackingPixel
        fields = ['platform', 'pixel_id']

    def clean_pixel_id(self):
        return self.cleaned_data['pixel_id'].strip()


class WilayaPriceForm(forms.ModelForm):
    class Meta:
        model = Wilaya
        fields = ['home_delivery_price', 'office_delivery_price']


class DeliverySettingsForm(forms.ModelForm):
    class Meta:
        model = DeliverySettings
        fields = ['default_home_price', 'default_office_price']


class BulkDeliveryPriceForm(forms.Form):
    home_delivery_price = forms.DecimalField(min_value=0, max_digits=10, decimal_places=2, required=False)
    office_delivery_price = forms.DecimalField(min_value=0, max_digits=10, decimal_places=2, required=False)

    def clean(self):
        cleaned = super().clean()
        if cleaned.get('home_delivery_price') is None and cleaned.get('office_delivery_price') is None:
            raise forms.ValidationError(_('Enter at least one price.'))
        return cleaned


class OrderStatusForm(forms.Form):
    status = forms.ChoiceField(choices=Order.STATUS_CHOICES)


class OrderEditForm(forms.Form):
    first_name = forms.CharField(max_length=100)
    last_name = forms.CharField(max_length=100)
    phone = forms.CharField(max_length=20)
    wilaya = forms.ModelChoiceField(queryset=Wilaya.objects.all())
    delivery_type = forms.ChoiceField(choices=DeliveryType.choices)
    notes = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))

    def clean_phone(self):
        phone = clean_phone_value(self.cleaned_data['phone'])
        phone_validator(phone)
        return phone


class OrderItemForm(forms.Form):
    product = forms.ModelChoiceField(queryset=Product.objects.all())
    quantity = forms.IntegerField(min_value=1)
    size = forms.CharField(required=False, max_length=20)
    color = forms.CharField(required=False, max_length=50)
    price = forms.DecimalField(required=False, min_value=0, max_digits=10, decimal_places=2)


OrderItemFormSet = forms.formset_factory(OrderItemForm, extra=1, can_delete=True)


class ReviewReplyForm(forms.ModelForm):
    class Meta:
        model = ReviewReply
        fields = ['reply_name', 'reply_text']


class UserCreateForm(forms.Form):
    email = forms.EmailField()
    password = forms.CharField(min_length=6, widget=forms.PasswordInput)
    role = forms.ChoiceField(choices=UserRole.ROLE_CHOICES, initial=UserRole.USER)

    def clean_email(self):
        email = self.cleaned_data['email'].strip().lower()
        if User.objects.filter(username=email).exists():
            raise forms.ValidationError(_('A user with this e-mail already exists.'))
        return email


class UserUpdateForm(forms.Form):
    email = forms.EmailField(required=False)
    password = forms.CharField(required=False, min_length=6, widget=forms.PasswordInput)
    role = forms.ChoiceField(choices=UserRole.ROLE_CHOICES)

    def __init__(self, *args, user=None, **kwargs):
        self.user = user
        super().__init__(*args, **kwargs)

    def clean_email(self):
        email = (self.cleaned_data.get('email') or '').strip().lower()
        if email and User.objects.filter(username=email).exclude(pk=self.user.pk).exists():
            raise forms.ValidationError(_('A user with this e-mail already exists.'))
        return email


class UserPermissionsForm(forms.Form):
    sections = forms.MultipleChoiceField(
        choices=UserPermission.SECTIONS, required=False, widget=forms.CheckboxSelectMultiple,
    )
