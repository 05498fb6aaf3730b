from flask import Blueprint, jsonify, request
from flask_login import current_user

from mirin.errors import BadRequest, Conflict, InvalidState, NotFound
from mirin.extensions import db, unit_of_work
from mirin.forms.forms import ProductForm, ProductUpdateForm
from mirin.models.catalog import Product, OrderItem
from mirin.models.rental import Rental
from mirin.security import admin_required
from mirin.services.audit_service import log_admin_action
from mirin.utils import json_body, validated

catalog = Blueprint('catalog', __name__)

UPDATABLE_FIELDS = ('name', 'category', 'license_plate', 'hourly_rate', 'daily_rate',
                    'description', 'image_url', 'status')


def _get_product(product_id):
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFound("Product not found")
    return product


def _metadata(body):
    value = body.get('metadata')
    if value is not None and not isinstance(value, (dict, list)):
        raise BadRequest("metadata must be a JSON object")
    return value


@catalog.route('', methods=['GET'])
def list_products():
    query = Product.query
    category = request.args.get('category')
    if category:
        query = query.filter_by(category=category)
    return jsonify([p.to_dict() for p in query.order_by(Product.name).all()])


@catalog.route('/available', methods=['GET'])
def available_products():
    products = Product.query.filter_by(status='available').order_by(Product.name).all()
    return jsonify([p.to_dict() for p in products])


@catalog.route('/<int:product_id>', methods=['GET'])
def product_detail(product_id):
    return jsonify(_get_product(product_id).to_dict())


@catalog.route('', methods=['POST'])
@admin_required
def create_product():
    body = json_body()
    form = validated(ProductForm())
    details = _metadata(body)
    with unit_of_work():
        product = Product(
            name=form.name.data,
            category=form.category.data,
            license_plate=form.license_plate.data or None,
            hourly_rate=form.hourly_rate.data,
            daily_rate=form.daily_rate.data,
            description=form.description.data or None,
            image_url=form.image_url.data or None,
            status='available',
            details=details,
        )
        db.session.add(product)
    log_admin_action(current_user.id, 'create', 'products', product.id, new_value=product.to_dict())
    return jsonify(product.to_dict()), 201


@catalog.route('/<int:product_id>', methods=['PUT', 'PATCH'])
@admin_required
def update_product(product_id):
    product = _get_product(product_id)
    body = json_body()
    form = validated(ProductUpdateForm())
    details = _metadata(body)
    old_value = product.to_dict()
    with unit_of_work():
        for field in UPDATABLE_FIELDS:
            if field in body:
                setattr(product, field, getattr(form, field).data)
        if 'metadata' in body:
            product.details = details
    log_admin_action(current_user.id, 'update', 'products', product.id,
                     old_value=old_value, new_value=product.to_dict())
    return jsonify(product.to_dict())


@catalog.route('/<int:product_id>', methods=['DELETE'])
@admin_required
def delete_product(product_id):
    product = _get_product(product_id)
    if product.rentals.filter(Rental.status.in_(Rental.OPEN_STATUSES)).first():
        raise InvalidState("Product has an open rental")
    if product.rentals.first() or OrderItem.query.filter_by(product_id=product.id).first():
        raise Conflict("Product has booking or order history; set it to maintenance instead")
    old_value = product.to_dict()
    with unit_of_work():
        db.session.delete(product)
    log_admin_action(current_user.id, 'delete', 'products', product_id, old_value=old_value)
    return jsonify({'success': True})
