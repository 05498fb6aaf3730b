from flask import Blueprint, jsonify
from flask_login import current_user

from mirin.forms.forms import RegistrationForm, LoginForm
from mirin.security import generate_token, set_auth_cookie, clear_auth_cookie
from mirin.services import account_service
from mirin.utils import client_ip, validated

auth = Blueprint('auth', __name__)


def _session_response(user, status=200):
    response = jsonify({
        'success': True,
        'user': {'id': user.id, 'username': user.username, 'name': user.name, 'role': user.role},
    })
    response.status_code = status
    return set_auth_cookie(response, generate_token(user))


@auth.route('/register', methods=['POST'])
def register():
    form = validated(RegistrationForm())
    user = account_service.register_user(
        username=form.username.data,
        password=form.password.data,
        name=form.name.data or None,
        email=form.email.data or None,
        ip_address=client_ip(),
    )
    return _session_response(user, 201)


@auth.route('/login', methods=['POST'])
def login():
    form = validated(LoginForm())
    user = account_service.authenticate(form.username.data, form.password.data, ip_address=client_ip())
    return _session_response(user)


@auth.route('/logout', methods=['POST'])
def logout():
    return clear_auth_cookie(jsonify({'success': True}))


@auth.route('/me')
def me():
    if not current_user.is_authenticated:
        return jsonify(None)
    return jsonify(current_user.to_dict())
