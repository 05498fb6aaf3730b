"""Payment reconciliation.

Payment requests are created `pending` with a satang-suffixed amount and a
PromptPay QR. An admin matches the incoming transfer by amount and confirms or
rejects it; each of those paths applies all of its effects in one transaction.
"""
import datetime
import math

from flask import current_app

from mirin.errors import NotFound, InvalidState
from mirin.extensions import db, unit_of_work
from mirin.models.rental import Payment
from mirin.models.user import User
from mirin.services import lifecycle
from mirin.services.audit_service import log_admin_action
from mirin.services.notification_service import create_notification, notify_admins, send_push_notification
from mirin.services.promptpay import add_random_satang, format_thb, generate_promptpay_qr
from mirin.services.settings_service import promptpay_id

MAX_SATANG_ATTEMPTS = 10


def unique_amount(amount):
    """Satang-suffixed amount, re-drawn while it matches another pending payment."""
    precise = add_random_satang(amount)
    if precise == amount:
        return amount
    floor = math.floor(amount)
    taken = {
        round(value, 2) for (value,) in db.session.query(Payment.amount).filter(
            Payment.status == 'pending',
            Payment.amount > floor,
            Payment.amount < floor + 1,
        )
    }
    attempts = 0
    while precise in taken and attempts < MAX_SATANG_ATTEMPTS:
        precise = add_random_satang(amount)
        attempts += 1
    if precise in taken:
        current_app.logger.warning(f"Could not find a free satang suffix for {amount}; reusing {precise}")
    return precise


def create_payment_request(user_id, amount, type, rental_id=None, order_id=None, extension_days=None):
    """Adds a pending payment and its QR to the session. The caller commits."""
    precise = unique_amount(amount)
    qr = generate_promptpay_qr(promptpay_id(), precise)
    expiry_hours = current_app.config['PAYMENT_EXPIRY_HOURS']
    payment = Payment(
        user_id=user_id,
        rental_id=rental_id,
        order_id=order_id,
        amount=precise,
        type=type,
        status='pending',
        promptpay_ref=qr['reference_id'],
        extension_days=extension_days,
        expires_at=datetime.datetime.utcnow() + datetime.timedelta(hours=expiry_hours),
    )
    db.session.add(payment)
    db.session.flush()
    return payment, qr


def payment_request_response(payment, qr):
    return {
        'payment_id': payment.id,
        'qr_code_data_url': qr['qr_code_data_url'],
        'amount': payment.amount,
        'amount_formatted': format_thb(payment.amount),
        'reference_id': payment.promptpay_ref,
        'expires_at': payment.expires_at.isoformat() if payment.expires_at else None,
    }


def top_up(user, amount):
    with unit_of_work():
        payment, qr = create_payment_request(user.id, amount, 'top_up')
        notify_admins(
            "New Top Up",
            f"User {user.username} initiated top up: {format_thb(payment.amount)}",
        )
    current_app.logger.info(f"Top up requested by {user.username}: {payment.amount}")
    return payment_request_response(payment, qr)


# --- Reads ---
def get_payment(payment_id):
    payment = db.session.get(Payment, payment_id)
    if not payment:
        raise NotFound("Payment not found")
    return payment


def get_user_payments(user_id):
    return Payment.query.filter_by(user_id=user_id).order_by(Payment.created_at.desc(), Payment.id.desc()).all()


def get_pending_payments():
    return Payment.query.filter_by(status='pending').order_by(Payment.created_at.desc(), Payment.id.desc()).all()


def get_all_payments():
    return Payment.query.order_by(Payment.created_at.desc(), Payment.id.desc()).all()


def _lock_pending(payment_id):
    payment = Payment.query.filter_by(id=payment_id).with_for_update().first()
    if not payment:
        raise NotFound("Payment not found")
    if payment.status != 'pending':
        raise InvalidState("Payment is not pending")
    return payment


# --- Confirmation ---
def _apply_top_up(payment):
    user = User.query.filter_by(id=payment.user_id).with_for_update().first()
    if user:
        user.balance = round((user.balance or 0) + payment.amount, 2)


def _apply_rental_charge(payment):
    rental = payment.rental
    if not rental:
        return
    if rental.status == 'pending':
        lifecycle.activate_rental(rental)
        create_notification(
            rental.user_id,
            "Rental Confirmed",
            f"Your booking of {rental.product.name} is now active.",
            'rental_confirmed',
            rental_id=rental.id,
        )
    elif rental.status != 'active':
        raise InvalidState(f"Linked rental is {rental.status}")


def _apply_extension(payment):
    rental = payment.rental
    if not rental:
        return
    if not lifecycle.is_open(rental):
        raise InvalidState(f"Linked rental is {rental.status}")
    days = payment.extension_days
    if not days:
        days = round(payment.amount / rental.product.daily_rate)
    rental.end_date = rental.end_date + datetime.timedelta(days=days)


def _apply_purchase(payment):
    order = payment.order
    if not order:
        return
    if order.status != 'pending':
        raise InvalidState(f"Linked order is {order.status}")
    order.status = 'paid'


_CONFIRM_EFFECTS = {
    'top_up': _apply_top_up,
    'rental_charge': _apply_rental_charge,
    'extension': _apply_extension,
    'purchase': _apply_purchase,
}


def confirm_payment(payment_id, admin):
    with unit_of_work():
        payment = _lock_pending(payment_id)
        payment.status = 'completed'
        payment.confirmed_by = admin.id
        payment.confirmed_at = datetime.datetime.utcnow()
        _CONFIRM_EFFECTS[payment.type](payment)
        message = f"Your payment of {format_thb(payment.amount)} has been confirmed."
        create_notification(payment.user_id, "Payment Confirmed", message, 'payment_received',
                            rental_id=payment.rental_id)

    current_app.logger.info(f"Payment #{payment.id} ({payment.type}) confirmed by admin {admin.username}")
    log_admin_action(admin.id, 'confirm', 'payments', payment.id,
                     old_value={'status': 'pending'},
                     new_value={'status': 'completed', 'type': payment.type, 'amount': payment.amount})
    send_push_notification(payment.user_id, "Payment Confirmed", message, url='/payments')
    return payment


# --- Rejection ---
def _fail_payment(payment, cancel_active_rental=False):
    """Marks the payment failed and cancels what it was paying for.

    An admin rejection also cancels a rental that was approved ahead of
    payment; expiry only drops rentals that never started.
    """
    payment.status = 'failed'
    rental = payment.rental
    if payment.type == 'rental_charge' and rental and (
            rental.status == 'pending' or (cancel_active_rental and rental.status == 'active')):
        lifecycle.cancel_rental(rental)
        Payment.query.filter(
            Payment.rental_id == rental.id, Payment.status == 'pending', Payment.id != payment.id,
        ).update({'status': 'failed'}, synchronize_session='fetch')
    elif payment.type == 'purchase' and payment.order and payment.order.status == 'pending':
        payment.order.status = 'cancelled'


def reject_payment(payment_id, admin):
    with unit_of_work():
        payment = _lock_pending(payment_id)
        _fail_payment(payment, cancel_active_rental=True)
        message = f"Your payment of {format_thb(payment.amount)} was rejected."
        create_notification(payment.user_id, "Payment Rejected", message, 'payment_received',
                            rental_id=payment.rental_id)

    current_app.logger.info(f"Payment #{payment.id} ({payment.type}) rejected by admin {admin.username}")
    log_admin_action(admin.id, 'reject', 'payments', payment.id,
                     old_value={'status': 'pending'}, new_value={'status': 'failed'})
    send_push_notification(payment.user_id, "Payment Rejected", message, url='/payments')
    return payment


def expire_stale_payments(now=None):
    """Fails pending payments whose confirmation window has passed. Returns how many."""
    now = now or datetime.datetime.utcnow()
    stale = Payment.query.filter(Payment.status == 'pending', Payment.expires_at < now).all()
    expired = 0
    for payment in stale:
        # An earlier expiry in this run may already have failed it with its rental
        if payment.status != 'pending':
            continue
        with unit_of_work():
            _fail_payment(payment)
            create_notification(
                payment.user_id,
                "Payment Expired",
                f"Your payment request of {format_thb(payment.amount)} expired before it was confirmed.",
                'payment_received',
                rental_id=payment.rental_id,
            )
        expired += 1
        current_app.logger.info(f"Payment #{payment.id} expired")
    return expired
