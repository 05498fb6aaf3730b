import datetime

from mirin.extensions import db
from mirin.models.user import _iso


class Rental(db.Model):
    __tablename__ = 'rentals'

    STATUSES = ('pending', 'active', 'completed', 'cancelled')
    OPEN_STATUSES = ('pending', 'active')

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False, index=True)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    actual_return_date = db.Column(db.DateTime)
    status = db.Column(db.String(20), nullable=False, default='pending', index=True)
    total_cost = db.Column(db.Float)
    location = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    payments = db.relationship('Payment', backref='rental', lazy='dynamic')

    def __repr__(self):
        return f"Rental(User: {self.user_id}, Product: {self.product_id}, Status: {self.status})"

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'product_id': self.product_id,
            'start_date': _iso(self.start_date),
            'end_date': _iso(self.end_date),
            'actual_return_date': _iso(self.actual_return_date),
            'status': self.status,
            'total_cost': self.total_cost,
            'location': self.location,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class Payment(db.Model):
    __tablename__ = 'payments'

    TYPES = ('top_up', 'rental_charge', 'extension', 'purchase')
    STATUSES = ('pending', 'completed', 'failed')

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    rental_id = db.Column(db.Integer, db.ForeignKey('rentals.id'), index=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), index=True)
    amount = db.Column(db.Float, nullable=False)
    type = db.Column(db.String(20), nullable=False, default='top_up')
    status = db.Column(db.String(20), nullable=False, default='pending', index=True)
    promptpay_ref = db.Column(db.String(20), index=True)
    extension_days = db.Column(db.Integer)
    confirmed_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    confirmed_at = db.Column(db.DateTime)
    expires_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    order = db.relationship('Order', foreign_keys=[order_id])

    def __repr__(self):
        return f"Payment({self.type}, {self.amount}, {self.status})"

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'rental_id': self.rental_id,
            'order_id': self.order_id,
            'amount': self.amount,
            'type': self.type,
            'status': self.status,
            'promptpay_ref': self.promptpay_ref,
            'extension_days': self.extension_days,
            'confirmed_by': self.confirmed_by,
            'confirmed_at': _iso(self.confirmed_at),
            'expires_at': _iso(self.expires_at),
            'created_at': _iso(self.created_at),
        }
