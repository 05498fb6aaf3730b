import json

import requests
from flask import current_app
from pywebpush import webpush, WebPushException

from mirin.errors import NotFound, Forbidden
from mirin.extensions import db
from mirin.models.user import User, Notification, PushToken


def create_notification(user_id, title, message, type, rental_id=None):
    """Queues an in-app notification on the current session; the caller commits."""
    notification = Notification(
        user_id=user_id,
        rental_id=rental_id,
        title=title,
        message=message,
        type=type,
        is_read=False,
    )
    db.session.add(notification)
    return notification


def get_admins():
    return User.query.filter_by(role='admin').all()


def notify_admins(title, message, type='payment_received', rental_id=None):
    for admin in get_admins():
        create_notification(admin.id, title, message, type, rental_id=rental_id)


def get_user_notifications(user_id):
    return (Notification.query.filter_by(user_id=user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc()).all())


def mark_as_read(notification_id, user):
    notification = db.session.get(Notification, notification_id)
    if not notification:
        raise NotFound("Notification not found")
    if notification.user_id != user.id:
        raise Forbidden("Not authorized")
    notification.is_read = True
    db.session.commit()
    return notification


# --- Push tokens ---
def register_push_token(user_id, token, platform):
    existing = PushToken.query.filter_by(user_id=user_id, token=token).first()
    if existing:
        existing.is_active = True
        existing.platform = platform
        db.session.commit()
        return existing
    push_token = PushToken(user_id=user_id, token=token, platform=platform, is_active=True)
    db.session.add(push_token)
    db.session.commit()
    return push_token


def deactivate_push_token(token, user_id=None):
    query = PushToken.query.filter_by(token=token)
    if user_id is not None:
        query = query.filter_by(user_id=user_id)
    updated = query.update({'is_active': False})
    db.session.commit()
    return updated


def get_active_push_tokens(user_id):
    return PushToken.query.filter_by(user_id=user_id, is_active=True).all()


def send_push_notification(user_id, title, body, url='/'):
    """Delivers a web-push message to every active subscription of the user.

    Never raises: delivery problems are logged. Subscriptions the push
    service reports as gone (404/410) are deactivated.
    """
    config = current_app.config
    if not config.get('VAPID_PUBLIC_KEY') or not config.get('VAPID_PRIVATE_KEY'):
        current_app.logger.warning("VAPID keys not configured. Push notifications will not work.")
        return {'success': False, 'sent': 0}

    tokens = get_active_push_tokens(user_id)
    if not tokens:
        return {'success': False, 'sent': 0}

    data = json.dumps({
        'title': title,
        'body': body,
        'url': url,
        'icon': '/logo.png',
        'badge': '/badge.png',
    })
    sent = 0
    for token in tokens:
        try:
            webpush(
                subscription_info=json.loads(token.token),
                data=data,
                vapid_private_key=config['VAPID_PRIVATE_KEY'],
                vapid_claims={'sub': f"mailto:{config['VAPID_EMAIL']}"},
            )
            sent += 1
        except WebPushException as e:
            status = e.response.status_code if e.response is not None else None
            if status in (404, 410):
                token.is_active = False
            current_app.logger.warning(f"Push to user {user_id} failed ({status}): {e}")
        except requests.exceptions.RequestException as e:
            current_app.logger.warning(f"Push service unreachable for user {user_id}: {e}")
        except ValueError as e:
            current_app.logger.warning(f"Invalid push subscription #{token.id}: {e}")
    db.session.commit()
    return {'success': sent > 0, 'sent': sent}
