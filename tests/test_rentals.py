import datetime

import pytest

from conftest import booking_window, login, make_product, make_user

from mirin.errors import BadRequest
from mirin.extensions import db
from mirin.models.catalog import Product
from mirin.models.rental import Rental, Payment
from mirin.models.user import Notification
from mirin.services.rental_service import calculate_rental_cost

START = datetime.datetime(2030, 1, 10, 9, 0)


@pytest.mark.parametrize('daily, hourly, delta, expected', [
    (300, None, datetime.timedelta(days=2), 600),
    (300, 50, datetime.timedelta(hours=5), 250),
    (300, 50, datetime.timedelta(days=1, hours=5), 550),
    (300, None, datetime.timedelta(days=1, hours=5), 600),
    (300, 50, datetime.timedelta(hours=4, minutes=10), 250),
])
def test_rental_cost(daily, hourly, delta, expected):
    product = Product(daily_rate=daily, hourly_rate=hourly)
    assert calculate_rental_cost(product, START, START + delta) == expected


def test_rental_cost_rejects_inverted_range():
    with pytest.raises(BadRequest):
        calculate_rental_cost(Product(daily_rate=300), START, START)


def test_create_rental_returns_payment_request(app, renter, admin_id, product_id):
    start, end = booking_window(days=2)
    response = renter.post('/api/rentals', json={'product_id': product_id, 'start_date': start, 'end_date': end})
    assert response.status_code == 201
    body = response.get_json()
    assert body['rental']['status'] == 'pending'
    assert body['rental']['total_cost'] == 600
    payment = body['payment']
    assert 600 < payment['amount'] < 601
    assert payment['qr_code_data_url'].startswith('data:image/png;base64,')
    assert payment['reference_id'].startswith('PP')
    assert payment['amount_formatted'].startswith('฿600.')

    with app.app_context():
        # Product stays available until the charge is confirmed
        assert db.session.get(Product, product_id).status == 'available'
        assert Notification.query.filter_by(user_id=admin_id, title='New Rental Request').count() == 1


def test_unavailable_product_cannot_be_booked(app, renter):
    product_id = make_product(app, status='maintenance')
    start, end = booking_window()
    response = renter.post('/api/rentals', json={'product_id': product_id, 'start_date': start, 'end_date': end})
    assert response.status_code == 400
    assert response.get_json()['error'] == 'INVALID_STATE'


def test_booking_requires_verified_id(app, product_id):
    make_user(app, 'newcomer')
    client = login(app, 'newcomer')
    start, end = booking_window()
    response = client.post('/api/rentals', json={'product_id': product_id, 'start_date': start, 'end_date': end})
    assert response.status_code == 403


def test_second_booking_of_same_product_is_refused(app, renter, product_id):
    make_user(app, 'other', verified=True)
    other = login(app, 'other')
    start, end = booking_window()
    payload = {'product_id': product_id, 'start_date': start, 'end_date': end}
    assert renter.post('/api/rentals', json=payload).status_code == 201
    response = other.post('/api/rentals', json=payload)
    assert response.status_code == 400
    assert response.get_json()['error'] == 'INVALID_STATE'


def test_end_before_start_is_rejected(app, renter, product_id):
    start, end = booking_window()
    response = renter.post('/api/rentals', json={'product_id': product_id, 'start_date': end, 'end_date': start})
    assert response.status_code == 400
    assert 'end_date' in response.get_json()['errors']


def test_full_rental_lifecycle(app, renter, admin, product_id):
    catalog = app.test_client().get('/api/products/available').get_json()
    assert [p['id'] for p in catalog] == [product_id]

    start, end = booking_window(days=1, hours=5)
    created = renter.post('/api/rentals', json={'product_id': product_id, 'start_date': start, 'end_date': end})
    rental_id = created.get_json()['rental']['id']
    payment_id = created.get_json()['payment']['payment_id']

    assert admin.post(f'/api/payments/{payment_id}/confirm').status_code == 200
    active = renter.get('/api/rentals/active').get_json()
    assert active['id'] == rental_id
    assert active['status'] == 'active'
    assert active['product']['status'] == 'rented'

    completed = renter.post(f'/api/rentals/{rental_id}/complete')
    assert completed.status_code == 200
    assert completed.get_json()['status'] == 'completed'
    assert completed.get_json()['actual_return_date'] is not None

    with app.app_context():
        assert db.session.get(Product, product_id).status == 'available'


def test_complete_requires_active_rental(app, renter, product_id):
    start, end = booking_window()
    created = renter.post('/api/rentals', json={'product_id': product_id, 'start_date': start, 'end_date': end})
    rental_id = created.get_json()['rental']['id']
    response = renter.post(f'/api/rentals/{rental_id}/complete')
    assert response.status_code == 400
    assert response.get_json()['error'] == 'INVALID_STATE'


def test_admin_approve_activates_without_payment(app, renter, admin, product_id):
    start, end = booking_window()
    created = renter.post('/api/rentals', json={'product_id': product_id, 'start_date': start, 'end_date': end})
    rental_id = created.get_json()['rental']['id']

    response = admin.post(f'/api/rentals/{rental_id}/approve')
    assert response.status_code == 200
    assert response.get_json()['status'] == 'active'
    assert admin.post(f'/api/rentals/{rental_id}/approve').status_code == 400


def test_cancel_fails_outstanding_payments(app, renter, admin, product_id):
    start, end = booking_window()
    created = renter.post('/api/rentals', json={'product_id': product_id, 'start_date': start, 'end_date': end})
    rental_id = created.get_json()['rental']['id']
    admin.post(f'/api/rentals/{rental_id}/approve')

    response = admin.post(f'/api/rentals/{rental_id}/cancel')
    assert response.status_code == 200
    assert response.get_json()['status'] == 'cancelled'
    with app.app_context():
        assert db.session.get(Product, product_id).status == 'available'
        statuses = {p.status for p in Payment.query.filter_by(rental_id=rental_id)}
        assert statuses == {'failed'}


def test_other_users_rental_is_forbidden(app, renter, product_id):
    start, end = booking_window()
    created = renter.post('/api/rentals', json={'product_id': product_id, 'start_date': start, 'end_date': end})
    rental_id = created.get_json()['rental']['id']

    make_user(app, 'nosy')
    nosy = login(app, 'nosy')
    assert nosy.get(f'/api/rentals/{rental_id}').status_code == 403
    assert nosy.post(f'/api/rentals/{rental_id}/complete').status_code == 403


def test_user_cannot_approve_or_list_all(app, renter, product_id):
    assert renter.post('/api/rentals/1/approve').status_code == 403
    assert renter.get('/api/rentals').status_code == 403


def test_my_rentals_lists_only_own(app, renter, product_id):
    start, end = booking_window()
    renter.post('/api/rentals', json={'product_id': product_id, 'start_date': start, 'end_date': end})
    mine = renter.get('/api/rentals/mine').get_json()
    assert len(mine) == 1
    assert mine[0]['product']['id'] == product_id

    with app.app_context():
        assert Rental.query.count() == 1
