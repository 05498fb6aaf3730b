import datetime

from mirin.extensions import db
from mirin.models.user import _iso


class Product(db.Model):
    __tablename__ = 'products'

    CATEGORIES = ('car', 'motorcycle', 'room', 'yacht', 'other')
    STATUSES = ('available', 'rented', 'maintenance', 'cleaning')

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    category = db.Column(db.String(20), nullable=False, default='car', index=True)
    license_plate = db.Column(db.String(30))
    hourly_rate = db.Column(db.Float)
    daily_rate = db.Column(db.Float, nullable=False)
    description = db.Column(db.Text)
    image_url = db.Column(db.String(255))
    status = db.Column(db.String(20), nullable=False, default='available', index=True)
    # "metadata" is reserved on declarative models
    details = db.Column('metadata', db.JSON)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    rentals = db.relationship('Rental', backref='product', lazy='dynamic')

    def __repr__(self):
        return f"Product('{self.name}', '{self.status}')"

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'category': self.category,
            'license_plate': self.license_plate,
            'hourly_rate': self.hourly_rate,
            'daily_rate': self.daily_rate,
            'description': self.description,
            'image_url': self.image_url,
            'status': self.status,
            'metadata': self.details,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class Order(db.Model):
    __tablename__ = 'orders'

    STATUSES = ('pending', 'paid', 'processing', 'shipped', 'delivered', 'cancelled')

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default='pending', index=True)
    total_amount = db.Column(db.Float, nullable=False)
    payment_id = db.Column(db.Integer)
    shipping_address = db.Column(db.Text)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    items = db.relationship('OrderItem', backref='order', lazy=True, cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'status': self.status,
            'total_amount': self.total_amount,
            'payment_id': self.payment_id,
            'shipping_address': self.shipping_address,
            'notes': self.notes,
            'items': [item.to_dict() for item in self.items],
            'created_at': _iso(self.created_at),
        }


class OrderItem(db.Model):
    __tablename__ = 'order_items'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price_per_unit = db.Column(db.Float, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)

    product = db.relationship('Product')

    def to_dict(self):
        return {
            'product_id': self.product_id,
            'name': self.product.name if self.product else None,
            'quantity': self.quantity,
            'price_per_unit': self.price_per_unit,
        }
