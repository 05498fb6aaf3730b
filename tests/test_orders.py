import pytest

from conftest import login, make_product, make_user

from mirin.extensions import db
from mirin.models.catalog import Order
from mirin.models.rental import Payment


@pytest.fixture
def shop(app):
    return {
        'flower': make_product(app, name='Thai Stick 3.5g', category='other', daily_rate=450.0, hourly_rate=None),
        'preroll': make_product(app, name='Pre-roll Pack', category='other', daily_rate=300.0, hourly_rate=None),
        'car': make_product(app, name='Yaris', category='car'),
    }


def _order(client, items, **extra):
    return client.post('/api/orders', json=dict(items=items, **extra))


def test_order_prices_come_from_catalog(app, renter, shop):
    response = _order(renter, [
        {'product_id': shop['flower'], 'quantity': 2, 'price': 1},
        {'product_id': shop['preroll'], 'quantity': 1},
        {'product_id': shop['flower'], 'quantity': 1},
    ], shipping_address='12 Sukhumvit Rd, Bangkok')
    assert response.status_code == 201
    body = response.get_json()
    order = body['order']
    assert order['status'] == 'pending'
    assert order['total_amount'] == 3 * 450 + 300
    assert {i['product_id']: i['quantity'] for i in order['items']} == {shop['flower']: 3, shop['preroll']: 1}
    assert 1650 < body['payment']['amount'] < 1651

    with app.app_context():
        payment = db.session.get(Payment, body['payment']['payment_id'])
        assert payment.type == 'purchase'
        assert payment.order_id == order['id']


@pytest.mark.parametrize('items', [
    [],
    [{'product_id': 1}],
    [{'product_id': 1, 'quantity': 0}],
    'not-a-list',
])
def test_malformed_items_are_rejected(app, renter, shop, items):
    assert _order(renter, items).status_code == 400


def test_rental_products_are_not_sold(app, renter, shop):
    assert _order(renter, [{'product_id': shop['car'], 'quantity': 1}]).status_code == 400


def test_unknown_product_is_404(app, renter, shop):
    assert _order(renter, [{'product_id': 999, 'quantity': 1}]).status_code == 404


def test_confirming_purchase_marks_order_paid(app, renter, admin, shop):
    body = _order(renter, [{'product_id': shop['flower'], 'quantity': 1}]).get_json()
    order_id = body['order']['id']

    # Shipping a pending order is not allowed
    assert admin.post(f'/api/orders/{order_id}/status', json={'status': 'shipped'}).status_code == 400

    admin.post(f"/api/payments/{body['payment']['payment_id']}/confirm")
    assert renter.get(f'/api/orders/{order_id}').get_json()['status'] == 'paid'

    for status in ('processing', 'shipped', 'delivered'):
        response = admin.post(f'/api/orders/{order_id}/status', json={'status': status})
        assert response.status_code == 200
        assert response.get_json()['status'] == status

    assert admin.post(f'/api/orders/{order_id}/status', json={'status': 'cancelled'}).status_code == 400


def test_cancelling_order_fails_its_payment(app, renter, admin, shop):
    body = _order(renter, [{'product_id': shop['flower'], 'quantity': 1}]).get_json()
    response = admin.post(f"/api/orders/{body['order']['id']}/status", json={'status': 'cancelled'})
    assert response.status_code == 200
    with app.app_context():
        assert db.session.get(Payment, body['payment']['payment_id']).status == 'failed'


def test_rejecting_purchase_cancels_order(app, renter, admin, shop):
    body = _order(renter, [{'product_id': shop['flower'], 'quantity': 1}]).get_json()
    admin.post(f"/api/payments/{body['payment']['payment_id']}/reject")
    with app.app_context():
        assert db.session.get(Order, body['order']['id']).status == 'cancelled'


def test_orders_are_private(app, renter, admin, shop):
    body = _order(renter, [{'product_id': shop['flower'], 'quantity': 1}]).get_json()
    make_user(app, 'nosy')
    nosy = login(app, 'nosy')
    assert nosy.get(f"/api/orders/{body['order']['id']}").status_code == 403
    assert nosy.get('/api/orders/mine').get_json() == []
    assert nosy.get('/api/orders').status_code == 403
    assert len(admin.get('/api/orders').get_json()) == 1
