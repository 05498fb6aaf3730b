import json

from flask import Blueprint, jsonify, current_app, send_from_directory
from flask_login import login_required, current_user

from mirin.errors import Forbidden, BadRequest
from mirin.forms.forms import IdCardForm, VerifyIdCardForm, PushTokenForm
from mirin.models.user import IdCard
from mirin.security import admin_required
from mirin.services import account_service, notification_service
from mirin.utils import json_body, validated

account = Blueprint('account', __name__)


# --- Notifications ---
@account.route('/api/notifications')
@login_required
def my_notifications():
    notifications = notification_service.get_user_notifications(current_user.id)
    return jsonify([n.to_dict() for n in notifications])


@account.route('/api/notifications/<int:notification_id>/read', methods=['POST'])
@login_required
def mark_notification_read(notification_id):
    notification = notification_service.mark_as_read(notification_id, current_user)
    return jsonify(notification.to_dict())


# --- Users ---
@account.route('/api/users/profile')
@login_required
def profile():
    data = current_user.to_dict()
    card = account_service.get_id_card_for_user(current_user.id)
    data['id_card_status'] = card.status if card else None
    return jsonify(data)


@account.route('/api/users')
@admin_required
def all_users():
    return jsonify([u.to_dict() for u in account_service.get_all_users()])


@account.route('/api/users/<int:user_id>/make-admin', methods=['POST'])
@admin_required
def make_admin(user_id):
    return jsonify(account_service.set_role(user_id, 'admin', current_user).to_dict())


@account.route('/api/users/<int:user_id>/remove-admin', methods=['POST'])
@admin_required
def remove_admin(user_id):
    return jsonify(account_service.set_role(user_id, 'user', current_user).to_dict())


# --- ID cards ---
@account.route('/api/id-card')
@login_required
def my_id_card():
    card = account_service.get_id_card_for_user(current_user.id)
    return jsonify(card.to_dict() if card else None)


@account.route('/api/id-card/status/<int:user_id>')
@login_required
def id_card_status(user_id):
    if user_id != current_user.id and not current_user.is_admin:
        raise Forbidden("Not authorized")
    card = account_service.get_id_card_for_user(user_id)
    return jsonify(card.to_dict() if card else None)


@account.route('/api/id-card/upload', methods=['POST'])
@login_required
def upload_id_card():
    form = validated(IdCardForm())
    if not isinstance(form.image.data, str):
        raise BadRequest("Image must be a base64 string")
    card = account_service.upload_id_card(
        current_user,
        id_number=form.id_number.data,
        full_name=form.full_name.data,
        date_of_birth=form.date_of_birth.data,
        image_data=form.image.data,
    )
    return jsonify({'success': True, 'id_card': card.to_dict()}), 201


@account.route('/api/id-card/pending')
@admin_required
def pending_id_cards():
    return jsonify([c.to_dict() for c in account_service.get_pending_id_cards()])


@account.route('/api/id-card/all')
@admin_required
def all_id_cards():
    return jsonify([c.to_dict() for c in account_service.get_all_id_cards()])


@account.route('/api/id-card/<int:card_id>/verify', methods=['POST'])
@admin_required
def verify_id_card(card_id):
    form = validated(VerifyIdCardForm())
    card = account_service.verify_id_card(card_id, form.status.data, current_user,
                                          notes=form.notes.data or None)
    return jsonify({'success': True, 'id_card': card.to_dict()})


# --- Push subscriptions ---
@account.route('/api/push-tokens/vapid-public-key')
def vapid_public_key():
    return jsonify({'public_key': current_app.config.get('VAPID_PUBLIC_KEY') or None})


@account.route('/api/push-tokens', methods=['POST'])
@login_required
def register_push_token():
    form = validated(PushTokenForm())
    token = form.token.data
    if not isinstance(token, str):
        # Browsers hand over the subscription as an object
        token = json.dumps(token, sort_keys=True)
    push_token = notification_service.register_push_token(current_user.id, token, form.platform.data)
    return jsonify(push_token.to_dict()), 201


@account.route('/api/push-tokens/deactivate', methods=['POST'])
@login_required
def deactivate_push_token():
    token = json_body().get('token')
    if not token:
        raise BadRequest("token is required")
    if not isinstance(token, str):
        token = json.dumps(token, sort_keys=True)
    updated = notification_service.deactivate_push_token(token, user_id=current_user.id)
    return jsonify({'success': True, 'deactivated': updated})


# --- Stored files ---
@account.route('/uploads/<path:key>')
@login_required
def uploaded_file(key):
    if key.startswith('idcards/') and not current_user.is_admin:
        url = f"/uploads/{key}"
        card = IdCard.query.filter_by(user_id=current_user.id).first()
        if not card or url not in (card.image_url, card.image_url_with_watermark):
            raise Forbidden("Not authorized")
    return send_from_directory(current_app.config['UPLOAD_FOLDER'], key)
