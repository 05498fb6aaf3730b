from flask import current_app

from mirin.errors import BadRequest, Forbidden, InvalidState, NotFound
from mirin.extensions import db, unit_of_work
from mirin.models.catalog import Product, Order, OrderItem
from mirin.models.rental import Payment
from mirin.services.audit_service import log_admin_action
from mirin.services.notification_service import notify_admins
from mirin.services.payment_service import create_payment_request, payment_request_response
from mirin.services.promptpay import format_thb

SHOP_CATEGORY = 'other'

# pending -> paid happens only through payment confirmation
ORDER_TRANSITIONS = {
    'pending': {'cancelled'},
    'paid': {'processing', 'cancelled'},
    'processing': {'shipped', 'cancelled'},
    'shipped': {'delivered', 'cancelled'},
    'delivered': set(),
    'cancelled': set(),
}


def _normalize_items(items):
    if not isinstance(items, list) or not items:
        raise BadRequest("Order must contain at least one item")
    quantities = {}
    for item in items:
        try:
            product_id = int(item['product_id'])
            quantity = int(item['quantity'])
        except (KeyError, TypeError, ValueError):
            raise BadRequest("Each item needs a product_id and a quantity")
        if quantity < 1:
            raise BadRequest("Quantity must be at least 1")
        quantities[product_id] = quantities.get(product_id, 0) + quantity
    return quantities


def create_order(user, items, shipping_address=None, notes=None):
    """Checks out a cart of shop goods; prices always come from the catalog."""
    quantities = _normalize_items(items)
    with unit_of_work():
        order = Order(user_id=user.id, status='pending', total_amount=0.0,
                      shipping_address=shipping_address, notes=notes)
        total = 0.0
        for product_id, quantity in quantities.items():
            product = db.session.get(Product, product_id)
            if not product:
                raise NotFound(f"Product {product_id} not found")
            if product.category != SHOP_CATEGORY:
                raise BadRequest(f"{product.name} is not sold in the shop")
            if product.status != 'available':
                raise InvalidState(f"{product.name} is not available")
            order.items.append(OrderItem(product_id=product.id, quantity=quantity,
                                         price_per_unit=product.daily_rate))
            total += quantity * product.daily_rate
        order.total_amount = round(total, 2)
        db.session.add(order)
        db.session.flush()

        payment, qr = create_payment_request(user.id, order.total_amount, 'purchase', order_id=order.id)
        order.payment_id = payment.id
        notify_admins(
            "New Order",
            f"User {user.username} placed order #{order.id}. Payment: {format_thb(payment.amount)}",
        )
    current_app.logger.info(f"Order #{order.id} placed by {user.username}: {order.total_amount}")
    return {'order': order.to_dict(), 'payment': payment_request_response(payment, qr)}


def get_order_for(order_id, user):
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFound("Order not found")
    if order.user_id != user.id and not user.is_admin:
        raise Forbidden("Not authorized")
    return order


def get_user_orders(user_id):
    return Order.query.filter_by(user_id=user_id).order_by(Order.created_at.desc(), Order.id.desc()).all()


def get_all_orders():
    return Order.query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def update_order_status(order_id, status, admin):
    with unit_of_work():
        order = db.session.get(Order, order_id)
        if not order:
            raise NotFound("Order not found")
        if status not in ORDER_TRANSITIONS.get(order.status, set()):
            raise InvalidState(f"Cannot move order from {order.status} to {status}")
        old_status = order.status
        order.status = status
        if status == 'cancelled':
            Payment.query.filter_by(order_id=order.id, status='pending').update(
                {'status': 'failed'}, synchronize_session='fetch')
    log_admin_action(admin.id, 'cancel' if status == 'cancelled' else 'update', 'orders', order.id,
                     old_value={'status': old_status}, new_value={'status': status})
    return order
