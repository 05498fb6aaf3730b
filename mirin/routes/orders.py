from flask import Blueprint, jsonify
from flask_login import login_required, current_user

from mirin.forms.forms import OrderStatusForm
from mirin.security import admin_required
from mirin.services import order_service
from mirin.utils import json_body, validated

orders = Blueprint('orders', __name__)


@orders.route('', methods=['POST'])
@login_required
def create_order():
    body = json_body()
    result = order_service.create_order(
        current_user,
        body.get('items'),
        shipping_address=body.get('shipping_address'),
        notes=body.get('notes'),
    )
    return jsonify(result), 201


@orders.route('/mine')
@login_required
def my_orders():
    return jsonify([o.to_dict() for o in order_service.get_user_orders(current_user.id)])


@orders.route('/<int:order_id>')
@login_required
def order_detail(order_id):
    return jsonify(order_service.get_order_for(order_id, current_user).to_dict())


@orders.route('', methods=['GET'])
@admin_required
def all_orders():
    return jsonify([o.to_dict() for o in order_service.get_all_orders()])


@orders.route('/<int:order_id>/status', methods=['POST'])
@admin_required
def update_status(order_id):
    form = validated(OrderStatusForm())
    order = order_service.update_order_status(order_id, form.status.data, current_user)
    return jsonify(order.to_dict())
