import datetime

from flask import current_app

from mirin.errors import BadRequest, Conflict, NotFound, Unauthorized
from mirin.extensions import db, unit_of_work
from mirin.models.user import User, IdCard
from mirin.services.audit_service import log_admin_action
from mirin.services.notification_service import create_notification, send_push_notification
from mirin.services.storage import store_base64_image, delete_stored_file


def get_user(user_id):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


def register_user(username, password, name=None, email=None, ip_address=None):
    if User.query.filter_by(username=username).first():
        raise Conflict("Username already exists")
    user = User(username=username, name=name, email=email, role='user', balance=0.0, last_ip=ip_address)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    current_app.logger.info(f"New user registered: {username}")
    return user


def authenticate(username, password, ip_address=None):
    user = User.query.filter_by(username=username).first()
    if not user or not user.check_password(password):
        raise Unauthorized("Invalid username or password")
    user.last_signed_in = datetime.datetime.utcnow()
    user.last_ip = ip_address
    db.session.commit()
    return user


def get_all_users():
    return User.query.order_by(User.created_at.desc(), User.id.desc()).all()


def set_role(user_id, role, admin):
    if user_id == admin.id and role != 'admin':
        raise BadRequest("Cannot remove your own admin privileges")
    user = get_user(user_id)
    old_role = user.role
    user.role = role
    db.session.commit()
    log_admin_action(admin.id, 'update', 'users', user.id,
                     old_value={'role': old_role}, new_value={'role': role})
    return user


# --- ID cards ---
def get_id_card_for_user(user_id):
    return IdCard.query.filter_by(user_id=user_id).first()


def upload_id_card(user, id_number, full_name, date_of_birth, image_data):
    """Stores the card image and (re)submits the card for review.

    A user keeps a single card row; a rejected or pending card is replaced,
    a verified one is final.
    """
    existing = get_id_card_for_user(user.id)
    if existing and existing.status == 'verified':
        raise BadRequest("ID card already verified")

    stored = store_base64_image(image_data, 'idcards', with_watermark=True)
    replaced = [existing.image_url, existing.image_url_with_watermark] if existing else []
    with unit_of_work():
        card = existing or IdCard(user_id=user.id)
        card.id_number = id_number
        card.full_name = full_name
        card.date_of_birth = date_of_birth
        card.image_url = stored['url']
        card.image_url_with_watermark = stored.get('watermarked_url')
        card.status = 'pending'
        card.verified_by = None
        card.verification_notes = None
        if not existing:
            db.session.add(card)
    for url in filter(None, replaced):
        delete_stored_file(url[len('/uploads/'):])
    current_app.logger.info(f"ID card submitted by {user.username}")
    return card


def verify_id_card(card_id, status, admin, notes=None):
    with unit_of_work():
        card = db.session.get(IdCard, card_id)
        if not card:
            raise NotFound("ID card not found")
        old_status = card.status
        card.status = status
        card.verified_by = admin.id
        card.verification_notes = notes

        if status == 'verified':
            title = "ID Card Verified"
            message = "Your ID card has been verified. You can now rent with us."
        else:
            title = "ID Card Rejected"
            message = "Your ID card verification was rejected."
            if notes:
                message += f" Reason: {notes}"
        create_notification(card.user_id, title, message, 'id_verification')

    log_admin_action(admin.id, 'approve' if status == 'verified' else 'reject', 'idCards', card.id,
                     old_value={'status': old_status}, new_value={'status': status, 'notes': notes})
    send_push_notification(card.user_id, title, message, url='/id-verification')
    return card


def get_pending_id_cards():
    return IdCard.query.filter_by(status='pending').order_by(IdCard.created_at).all()


def get_all_id_cards():
    return IdCard.query.order_by(IdCard.created_at.desc(), IdCard.id.desc()).all()
