from flask import Blueprint, jsonify, request
from flask_login import current_user

from mirin.extensions import db
from mirin.forms.forms import SettingForm
from mirin.models.catalog import Product, Order
from mirin.models.rental import Rental, Payment
from mirin.models.user import User, IdCard
from mirin.security import admin_required
from mirin.services import audit_service, settings_service
from mirin.utils import validated

admin = Blueprint('admin', __name__)


def _count(model, **filters):
    return db.session.query(model).filter_by(**filters).count()


def _limit(default):
    return max(1, min(request.args.get('limit', default, type=int), 500))


@admin.route('/stats')
@admin_required
def stats():
    return jsonify({
        'users': _count(User),
        'products': _count(Product),
        'available_products': _count(Product, status='available'),
        'rentals': _count(Rental),
        'pending_rentals': _count(Rental, status='pending'),
        'active_rentals': _count(Rental, status='active'),
        'payments': _count(Payment),
        'pending_payments': _count(Payment, status='pending'),
        'pending_id_cards': _count(IdCard, status='pending'),
        'orders': _count(Order),
    })


@admin.route('/audit-logs')
@admin_required
def audit_logs():
    logs = audit_service.get_audit_logs(limit=_limit(100))
    return jsonify([log.to_dict() for log in logs])


@admin.route('/audit-logs/user/<int:user_id>')
@admin_required
def audit_logs_by_user(user_id):
    logs = audit_service.get_audit_logs_by_user(user_id, limit=_limit(50))
    return jsonify([log.to_dict() for log in logs])


@admin.route('/audit-logs/<string:target_table>/<int:target_id>')
@admin_required
def audit_logs_by_target(target_table, target_id):
    logs = audit_service.get_audit_logs_by_target(target_table, target_id)
    return jsonify([log.to_dict() for log in logs])


@admin.route('/settings', methods=['GET'])
@admin_required
def list_settings():
    return jsonify([s.to_dict() for s in settings_service.get_all_settings()])


@admin.route('/settings', methods=['POST'])
@admin_required
def set_setting():
    form = validated(SettingForm())
    setting, previous = settings_service.set_setting(
        form.key.data, form.value.data,
        description=form.description.data or None,
        updated_by=current_user.id,
    )
    audit_service.log_admin_action(
        current_user.id, 'create' if previous is None else 'update', 'system_settings', setting.id,
        old_value=None if previous is None else {'key': setting.key, 'value': previous},
        new_value={'key': setting.key, 'value': setting.value},
    )
    return jsonify(setting.to_dict())
