import datetime

import pytest

from conftest import booking_window

from mirin.extensions import db
from mirin.models.audit import AuditLog
from mirin.models.catalog import Product
from mirin.models.rental import Rental, Payment
from mirin.models.user import User, Notification
from mirin.services import payment_service


def _book(client, product_id, days=2):
    start, end = booking_window(days=days)
    response = client.post('/api/rentals', json={'product_id': product_id, 'start_date': start, 'end_date': end})
    assert response.status_code == 201
    return response.get_json()


def test_top_up_creates_unique_pending_amount(app, renter):
    response = renter.post('/api/payments/top-up', json={'amount': 500})
    assert response.status_code == 201
    body = response.get_json()
    assert 500 < body['amount'] < 501
    assert body['expires_at'] is not None

    mine = renter.get('/api/payments/mine').get_json()
    assert [(p['type'], p['status']) for p in mine] == [('top_up', 'pending')]


def test_top_up_below_minimum_is_rejected(app, renter):
    assert renter.post('/api/payments/top-up', json={'amount': 0.5}).status_code == 400


def test_confirm_top_up_credits_balance_once(app, renter, admin, renter_id):
    payment = renter.post('/api/payments/top-up', json={'amount': 500}).get_json()

    first = admin.post(f"/api/payments/{payment['payment_id']}/confirm")
    assert first.status_code == 200
    assert first.get_json()['payment']['status'] == 'completed'

    second = admin.post(f"/api/payments/{payment['payment_id']}/confirm")
    assert second.status_code == 400
    assert second.get_json()['error'] == 'INVALID_STATE'

    with app.app_context():
        assert db.session.get(User, renter_id).balance == payment['amount']
        assert AuditLog.query.filter_by(action='confirm', target_table='payments').count() == 1
        titles = [n.title for n in Notification.query.filter_by(user_id=renter_id)]
        assert titles == ['Payment Confirmed']


def test_confirm_unknown_payment_is_404(app, admin):
    assert admin.post('/api/payments/999/confirm').status_code == 404


def test_user_cannot_confirm_or_list(app, renter):
    payment = renter.post('/api/payments/top-up', json={'amount': 100}).get_json()
    assert renter.post(f"/api/payments/{payment['payment_id']}/confirm").status_code == 403
    assert renter.get('/api/payments').status_code == 403
    assert renter.get('/api/payments/pending').status_code == 403


def test_reject_rental_charge_cancels_rental(app, renter, admin, product_id):
    booking = _book(renter, product_id)

    response = admin.post(f"/api/payments/{booking['payment']['payment_id']}/reject")
    assert response.status_code == 200
    assert response.get_json()['payment']['status'] == 'failed'

    with app.app_context():
        assert db.session.get(Rental, booking['rental']['id']).status == 'cancelled'
        assert db.session.get(Product, product_id).status == 'available'
        assert AuditLog.query.filter_by(action='reject').count() == 1


def test_reject_twice_is_invalid(app, renter, admin):
    payment = renter.post('/api/payments/top-up', json={'amount': 100}).get_json()
    admin.post(f"/api/payments/{payment['payment_id']}/reject")
    assert admin.post(f"/api/payments/{payment['payment_id']}/reject").status_code == 400


def test_extension_pushes_end_date_on_confirm(app, renter, admin, product_id):
    booking = _book(renter, product_id)
    rental_id = booking['rental']['id']
    admin.post(f"/api/payments/{booking['payment']['payment_id']}/confirm")

    response = renter.post(f'/api/rentals/{rental_id}/extend', json={'days': 3})
    assert response.status_code == 201
    extension = response.get_json()
    assert extension['days'] == 3
    assert 900 < extension['amount'] < 901

    admin.post(f"/api/payments/{extension['payment_id']}/confirm")
    with app.app_context():
        rental = db.session.get(Rental, rental_id)
        assert rental.end_date == datetime.datetime(2030, 1, 12, 9, 0) + datetime.timedelta(days=3)
        assert rental.status == 'active'


def test_extension_of_closed_rental_is_invalid(app, renter, admin, product_id):
    booking = _book(renter, product_id)
    rental_id = booking['rental']['id']
    admin.post(f"/api/payments/{booking['payment']['payment_id']}/reject")
    response = renter.post(f'/api/rentals/{rental_id}/extend', json={'days': 1})
    assert response.status_code == 400


def test_confirm_charge_for_cancelled_rental_is_invalid(app, renter, admin, product_id):
    booking = _book(renter, product_id)
    rental_id = booking['rental']['id']
    extension = renter.post(f'/api/rentals/{rental_id}/extend', json={'days': 1}).get_json()
    admin.post(f'/api/rentals/{rental_id}/cancel')

    # Cancelling failed every pending payment of the rental
    assert admin.post(f"/api/payments/{extension['payment_id']}/confirm").status_code == 400


def test_pending_amounts_do_not_collide(app, renter, monkeypatch):
    draws = iter([0.5 + 100, 0.5 + 100, 0.75 + 100])
    monkeypatch.setattr(payment_service, 'add_random_satang', lambda amount: next(draws))

    first = renter.post('/api/payments/top-up', json={'amount': 100}).get_json()
    second = renter.post('/api/payments/top-up', json={'amount': 100}).get_json()
    assert first['amount'] == 100.5
    assert second['amount'] == 100.75


def test_expire_stale_payments(app, renter, product_id):
    booking = _book(renter, product_id)
    later = datetime.datetime.utcnow() + datetime.timedelta(hours=25)

    with app.app_context():
        assert payment_service.expire_stale_payments(now=later) == 1
        payment = db.session.get(Payment, booking['payment']['payment_id'])
        assert payment.status == 'failed'
        assert payment.rental.status == 'cancelled'
        assert payment_service.expire_stale_payments(now=later) == 0


@pytest.mark.parametrize('path', ['/api/payments/pending', '/api/payments'])
def test_admin_payment_lists_include_username(app, renter, admin, path):
    renter.post('/api/payments/top-up', json={'amount': 100})
    payments = admin.get(path).get_json()
    assert [p['username'] for p in payments] == ['renter']


def test_payment_detail_is_private(app, renter, admin):
    payment = renter.post('/api/payments/top-up', json={'amount': 100}).get_json()
    path = f"/api/payments/{payment['payment_id']}"
    assert renter.get(path).get_json()['status'] == 'pending'
    assert admin.get(path).status_code == 200
    assert admin.get('/api/payments/999').status_code == 404


def test_reject_charge_after_approval_cancels_active_rental(app, renter, admin, product_id):
    booking = _book(renter, product_id)
    rental_id = booking['rental']['id']
    admin.post(f'/api/rentals/{rental_id}/approve')
    extension = renter.post(f'/api/rentals/{rental_id}/extend', json={'days': 1}).get_json()

    response = admin.post(f"/api/payments/{booking['payment']['payment_id']}/reject")
    assert response.status_code == 200

    with app.app_context():
        assert db.session.get(Rental, rental_id).status == 'cancelled'
        assert db.session.get(Product, product_id).status == 'available'
        assert db.session.get(Payment, extension['payment_id']).status == 'failed'


def test_expiry_leaves_approved_rental_active(app, renter, admin, product_id):
    booking = _book(renter, product_id)
    rental_id = booking['rental']['id']
    admin.post(f'/api/rentals/{rental_id}/approve')
    later = datetime.datetime.utcnow() + datetime.timedelta(hours=25)

    with app.app_context():
        assert payment_service.expire_stale_payments(now=later) == 1
        assert db.session.get(Rental, rental_id).status == 'active'
