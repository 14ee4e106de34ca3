from django.utils.translation import gettext as _


class StoreError(Exception):
    """Base class for business-rule failures shown to the customer or staff."""

    default_message = ''

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InsufficientStock(StoreError):
    def __init__(self, product, requested, available):
        self.product = product
        self.requested = requested
        self.available = available
        super().__init__(
            _('Only %(available)s left for %(name)s.') % {'available': available, 'name': product.name}
        )


class OutOfStock(StoreError):
    def __init__(self, product):
        self.product = product
        super().__init__(_('%(name)s is currently out of stock.') % {'name': product.name})


class InvalidQuantity(StoreError):
    pass


class EmptyOrder(StoreError):
    def __init__(self):
        super().__init__(_('Your cart is empty!'))


class DeliveryUnavailable(StoreError):
    pass


class CouponInvalid(StoreError):
    def __init__(self, result):
        self.result = result
        super().__init__(result.message)
