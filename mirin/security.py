from functools import wraps

from flask import current_app
from flask_login import login_required, current_user
from itsdangerous import URLSafeTimedSerializer as Serializer, BadSignature, SignatureExpired

from mirin.errors import Forbidden, Unauthorized
from mirin.extensions import db, login_manager
from mirin.models.user import User

TOKEN_SALT = 'mirin-auth'


def _serializer():
    return Serializer(current_app.config['SECRET_KEY'], salt=TOKEN_SALT)


def generate_token(user):
    return _serializer().dumps({'user_id': user.id, 'username': user.username, 'role': user.role})


def verify_token(token):
    """Returns the token payload, or None when it is forged or older than the max age."""
    try:
        return _serializer().loads(token, max_age=current_app.config['AUTH_TOKEN_MAX_AGE'])
    except (BadSignature, SignatureExpired):
        return None


def set_auth_cookie(response, token):
    config = current_app.config
    response.set_cookie(
        config['AUTH_COOKIE_NAME'],
        token,
        max_age=config['AUTH_TOKEN_MAX_AGE'],
        httponly=True,
        secure=config['AUTH_COOKIE_SECURE'],
        samesite='Lax',
        path='/',
    )
    return response


def clear_auth_cookie(response):
    config = current_app.config
    response.delete_cookie(
        config['AUTH_COOKIE_NAME'],
        httponly=True,
        secure=config['AUTH_COOKIE_SECURE'],
        samesite='Lax',
        path='/',
    )
    return response


@login_manager.request_loader
def load_user_from_request(request):
    token = request.cookies.get(current_app.config['AUTH_COOKIE_NAME'])
    if not token:
        return None
    payload = verify_token(token)
    if not payload:
        return None
    return db.session.get(User, payload.get('user_id'))


@login_manager.unauthorized_handler
def unauthorized():
    raise Unauthorized("Authentication required")


# --- Decorators ---
def role_required(role):
    """Restricts an endpoint to authenticated callers holding `role`."""
    def decorator(f):
        @wraps(f)
        @login_required
        def decorated_function(*args, **kwargs):
            if current_user.role != role:
                raise Forbidden(f"{role.capitalize()} access required")
            return f(*args, **kwargs)
        return decorated_function
    return decorator


admin_required = role_required('admin')
