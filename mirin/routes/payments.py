from flask import Blueprint, jsonify
from flask_login import login_required, current_user

from mirin.errors import Forbidden
from mirin.forms.forms import TopUpForm
from mirin.security import admin_required
from mirin.services import payment_service
from mirin.utils import validated

payments = Blueprint('payments', __name__)


def _payment_json(payment):
    data = payment.to_dict()
    data['username'] = payment.user.username if payment.user else None
    return data


@payments.route('/mine')
@login_required
def my_payments():
    return jsonify([p.to_dict() for p in payment_service.get_user_payments(current_user.id)])


@payments.route('/<int:payment_id>')
@login_required
def payment_detail(payment_id):
    payment = payment_service.get_payment(payment_id)
    if payment.user_id != current_user.id and not current_user.is_admin:
        raise Forbidden("Not authorized")
    return jsonify(payment.to_dict())


@payments.route('/top-up', methods=['POST'])
@login_required
def top_up():
    form = validated(TopUpForm())
    return jsonify(payment_service.top_up(current_user, form.amount.data)), 201


# --- Admin ---
@payments.route('/pending')
@admin_required
def pending_payments():
    return jsonify([_payment_json(p) for p in payment_service.get_pending_payments()])


@payments.route('', methods=['GET'])
@admin_required
def all_payments():
    return jsonify([_payment_json(p) for p in payment_service.get_all_payments()])


@payments.route('/<int:payment_id>/confirm', methods=['POST'])
@admin_required
def confirm_payment(payment_id):
    payment = payment_service.confirm_payment(payment_id, current_user)
    return jsonify({'success': True, 'payment': payment.to_dict()})


@payments.route('/<int:payment_id>/reject', methods=['POST'])
@admin_required
def reject_payment(payment_id):
    payment = payment_service.reject_payment(payment_id, current_user)
    return jsonify({'success': True, 'payment': payment.to_dict()})
