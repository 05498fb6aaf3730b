import datetime
import math

from flask import current_app

from mirin.errors import BadRequest, Forbidden, InvalidState, NotFound
from mirin.extensions import db, unit_of_work
from mirin.models.catalog import Product
from mirin.models.rental import Rental, Payment
from mirin.models.user import IdCard, Notification
from mirin.services import lifecycle
from mirin.services.audit_service import log_admin_action
from mirin.services.notification_service import create_notification, notify_admins, send_push_notification
from mirin.services.payment_service import create_payment_request, payment_request_response
from mirin.services.promptpay import format_thb


def calculate_rental_cost(product, start_date, end_date):
    """Full days at the daily rate plus leftover hours at the hourly rate.

    Products without an hourly rate are charged a full day for every
    started day.
    """
    if end_date <= start_date:
        raise BadRequest("End date must be after start date")
    hours = math.ceil((end_date - start_date).total_seconds() / 3600)
    days, remaining_hours = divmod(hours, 24)
    if product.hourly_rate:
        return days * product.daily_rate + remaining_hours * product.hourly_rate
    return math.ceil(hours / 24) * product.daily_rate


def has_verified_id(user_id):
    return IdCard.query.filter_by(user_id=user_id, status='verified').first() is not None


def _get_rental(rental_id):
    rental = db.session.get(Rental, rental_id)
    if not rental:
        raise NotFound("Rental not found")
    return rental


def create_rental(user, product_id, start_date, end_date, location=None):
    with unit_of_work():
        # Row lock on backends that support it; the open-booking check below
        # keeps a product to one pending/active rental.
        product = Product.query.filter_by(id=product_id).with_for_update().first()
        if not product:
            raise NotFound("Product not found")
        if product.status != 'available':
            raise InvalidState("Product is not available")
        if current_app.config['REQUIRE_ID_VERIFICATION'] and not has_verified_id(user.id):
            raise Forbidden("A verified ID card is required to book")
        open_rental = Rental.query.filter(
            Rental.product_id == product.id,
            Rental.status.in_(Rental.OPEN_STATUSES),
        ).first()
        if open_rental:
            raise InvalidState("Product already has an open booking")

        total_cost = calculate_rental_cost(product, start_date, end_date)
        rental = Rental(
            user_id=user.id,
            product_id=product.id,
            start_date=start_date,
            end_date=end_date,
            status='pending',
            total_cost=total_cost,
            location=location,
        )
        db.session.add(rental)
        db.session.flush()

        payment, qr = create_payment_request(user.id, total_cost, 'rental_charge', rental_id=rental.id)
        notify_admins(
            "New Rental Request",
            f"User {user.username} requested a rental. Payment: {format_thb(payment.amount)}",
            rental_id=rental.id,
        )

    current_app.logger.info(f"Rental #{rental.id} requested by {user.username} for product #{product.id}")
    return {'rental': rental.to_dict(), 'payment': payment_request_response(payment, qr)}


def approve_rental(rental_id, admin):
    """Admin override: activates the rental regardless of payment status."""
    with unit_of_work():
        rental = _get_rental(rental_id)
        old_status = rental.status
        lifecycle.activate_rental(rental)
        create_notification(rental.user_id, "Rental Confirmed",
                            f"Your booking of {rental.product.name} is now active.",
                            'rental_confirmed', rental_id=rental.id)
    log_admin_action(admin.id, 'approve', 'rentals', rental.id,
                     old_value={'status': old_status}, new_value={'status': 'active'})
    return rental


def cancel_rental(rental_id, admin):
    with unit_of_work():
        rental = _get_rental(rental_id)
        old_status = rental.status
        lifecycle.cancel_rental(rental)
        # Outstanding payment requests for a cancelled rental can no longer be honoured
        Payment.query.filter_by(rental_id=rental.id, status='pending').update(
            {'status': 'failed'}, synchronize_session='fetch')
        create_notification(rental.user_id, "Rental Cancelled",
                            f"Your booking of {rental.product.name} was cancelled.",
                            'rental_confirmed', rental_id=rental.id)
    log_admin_action(admin.id, 'cancel', 'rentals', rental.id,
                     old_value={'status': old_status}, new_value={'status': 'cancelled'})
    return rental


def complete_rental(rental_id, user):
    with unit_of_work():
        rental = _get_rental(rental_id)
        if rental.user_id != user.id and not user.is_admin:
            raise Forbidden("Not authorized")
        old_status = rental.status
        lifecycle.complete_rental(rental)
    if user.is_admin and rental.user_id != user.id:
        log_admin_action(user.id, 'update', 'rentals', rental.id,
                         old_value={'status': old_status}, new_value={'status': 'completed'})
    return rental


def extend_rental(rental_id, user, days):
    with unit_of_work():
        rental = _get_rental(rental_id)
        if rental.user_id != user.id:
            raise Forbidden("Not authorized")
        if not lifecycle.is_open(rental):
            raise InvalidState(f"Cannot extend a {rental.status} rental")
        product = rental.product
        if not product:
            raise NotFound("Product not found")

        extension_cost = days * product.daily_rate
        payment, qr = create_payment_request(user.id, extension_cost, 'extension',
                                             rental_id=rental.id, extension_days=days)
        notify_admins(
            "Rental Extension",
            f"User {user.username} extended rental. Payment: {format_thb(payment.amount)}",
            rental_id=rental.id,
        )
    response = payment_request_response(payment, qr)
    response['days'] = days
    return response


# --- Reads ---
def get_user_rentals(user_id):
    return Rental.query.filter_by(user_id=user_id).order_by(Rental.created_at.desc(), Rental.id.desc()).all()


def get_active_rental(user_id):
    return (Rental.query.filter_by(user_id=user_id, status='active')
            .order_by(Rental.start_date.desc()).first())


def get_rental_for(rental_id, user):
    rental = _get_rental(rental_id)
    if rental.user_id != user.id and not user.is_admin:
        raise Forbidden("Not authorized")
    return rental


def get_all_rentals():
    return Rental.query.order_by(Rental.created_at.desc(), Rental.id.desc()).all()


def send_expiration_warnings(now=None):
    """Warns renters whose active rental ends within EXPIRATION_WARNING_HOURS. Once per rental."""
    now = now or datetime.datetime.utcnow()
    horizon = now + datetime.timedelta(hours=current_app.config['EXPIRATION_WARNING_HOURS'])
    ending = Rental.query.filter(
        Rental.status == 'active',
        Rental.end_date > now,
        Rental.end_date <= horizon,
    ).all()

    warned = []
    for rental in ending:
        already_warned = Notification.query.filter_by(
            rental_id=rental.id, type='expiration_warning').first()
        if already_warned:
            continue
        message = (f"Your rental of {rental.product.name} ends at "
                   f"{rental.end_date.strftime('%d/%m/%Y %H:%M')}. You can extend it from your dashboard.")
        create_notification(rental.user_id, "Rental Ending Soon", message,
                            'expiration_warning', rental_id=rental.id)
        warned.append((rental.user_id, message))
    db.session.commit()

    for user_id, message in warned:
        send_push_notification(user_id, "Rental Ending Soon", message, url='/dashboard')
    return len(warned)
