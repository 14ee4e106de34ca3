import pytest
from django.contrib import messages
from django.urls import reverse

from store import services
from store.models import Order, Product
from tests.conftest import line

pytestmark = pytest.mark.django_db


def place(wilaya, product, quantity=3):
    return services.place_order(
        first_name='Amine', last_name='Saidi', phone='0555123456', wilaya=wilaya,
        delivery_type='office', lines=[line(product, quantity)],
    )


def change_form_data(response, **changes):
    """POST data for an admin change form, taken from the rendered page."""
    forms = [response.context['adminform'].form]
    data = {}
    for inline in response.context['inline_admin_formsets']:
        formset = inline.formset
        forms.append(formset.management_form)
        forms.extend(formset.forms)
    for form in forms:
        for field in form:
            value = field.value()
            if value is None or value is False:
                continue
            data[field.html_name] = 'on' if value is True else value
    data.update(changes)
    return data


def change_status(admin_client, order, status):
    url = reverse('admin:store_order_change', args=[order.pk])
    return admin_client.post(url, change_form_data(admin_client.get(url), status=status), follow=True)


@pytest.mark.parametrize('model', ['product', 'order', 'coupon', 'review', 'wilaya', 'promobanner'])
def test_changelists_load(admin_client, model):
    assert admin_client.get(reverse(f'admin:store_{model}_changelist')).status_code == 200


def test_product_change_form_loads(admin_client, product):
    assert admin_client.get(reverse('admin:store_product_change', args=[product.pk])).status_code == 200


def test_deleting_an_order_in_admin_restores_stock(admin_client, wilaya, product):
    order = place(wilaya, product)

    admin_client.post(reverse('admin:store_order_delete', args=[order.pk]), {'post': 'yes'})

    product.refresh_from_db()
    assert not Order.objects.exists()
    assert product.stock == 10


def test_cancelling_and_reopening_in_admin_moves_stock(admin_client, wilaya, product):
    order = place(wilaya, product)

    change_status(admin_client, order, Order.CANCELLED)
    product.refresh_from_db()
    order.refresh_from_db()
    assert order.status == Order.CANCELLED
    assert product.stock == 10

    change_status(admin_client, order, Order.CONFIRMED)
    product.refresh_from_db()
    order.refresh_from_db()
    assert order.status == Order.CONFIRMED
    assert product.stock == 7


def test_reopening_without_stock_keeps_the_order_cancelled(admin_client, wilaya, product):
    order = place(wilaya, product)
    change_status(admin_client, order, Order.CANCELLED)
    Product.objects.filter(pk=product.pk).update(stock=1)

    response = change_status(admin_client, order, Order.PENDING)

    order.refresh_from_db()
    product.refresh_from_db()
    assert order.status == Order.CANCELLED
    assert product.stock == 1
    assert any(message.level == messages.ERROR for message in response.context['messages'])


def test_other_admin_edits_keep_stock(admin_client, wilaya, product):
    order = place(wilaya, product)
    url = reverse('admin:store_order_change', args=[order.pk])

    admin_client.post(url, change_form_data(admin_client.get(url), notes='Call before delivery'))

    order.refresh_from_db()
    product.refresh_from_db()
    assert order.notes == 'Call before delivery'
    assert product.stock == 7
