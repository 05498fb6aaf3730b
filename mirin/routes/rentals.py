from flask import Blueprint, jsonify
from flask_login import login_required, current_user

from mirin.forms.forms import RentalForm, ExtendRentalForm
from mirin.security import admin_required
from mirin.services import rental_service
from mirin.utils import validated

rentals = Blueprint('rentals', __name__)


def _rental_json(rental):
    data = rental.to_dict()
    data['product'] = rental.product.to_dict() if rental.product else None
    return data


@rentals.route('/mine')
@login_required
def my_rentals():
    return jsonify([_rental_json(r) for r in rental_service.get_user_rentals(current_user.id)])


@rentals.route('/active')
@login_required
def active_rental():
    rental = rental_service.get_active_rental(current_user.id)
    return jsonify(_rental_json(rental) if rental else None)


@rentals.route('/<int:rental_id>')
@login_required
def rental_detail(rental_id):
    return jsonify(_rental_json(rental_service.get_rental_for(rental_id, current_user)))


@rentals.route('', methods=['POST'])
@login_required
def create_rental():
    form = validated(RentalForm())
    result = rental_service.create_rental(
        current_user,
        product_id=form.product_id.data,
        start_date=form.start_date.data,
        end_date=form.end_date.data,
        location=form.location.data or None,
    )
    return jsonify(result), 201


@rentals.route('/<int:rental_id>/extend', methods=['POST'])
@login_required
def extend_rental(rental_id):
    form = validated(ExtendRentalForm())
    return jsonify(rental_service.extend_rental(rental_id, current_user, form.days.data)), 201


@rentals.route('/<int:rental_id>/complete', methods=['POST'])
@login_required
def complete_rental(rental_id):
    return jsonify(_rental_json(rental_service.complete_rental(rental_id, current_user)))


# --- Admin ---
@rentals.route('', methods=['GET'])
@admin_required
def all_rentals():
    return jsonify([_rental_json(r) for r in rental_service.get_all_rentals()])


@rentals.route('/<int:rental_id>/approve', methods=['POST'])
@admin_required
def approve_rental(rental_id):
    return jsonify(_rental_json(rental_service.approve_rental(rental_id, current_user)))


@rentals.route('/<int:rental_id>/cancel', methods=['POST'])
@admin_required
def cancel_rental(rental_id):
    return jsonify(_rental_json(rental_service.cancel_rental(rental_id, current_user)))
