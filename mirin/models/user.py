import datetime

from flask_login import UserMixin

from mirin.extensions import db, bcrypt, login_manager


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


def _iso(value):
    return value.isoformat() if value else None


# --- Models ---
class User(db.Model, UserMixin):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(150))
    email = db.Column(db.String(150))
    role = db.Column(db.String(10), nullable=False, default='user')
    balance = db.Column(db.Float, nullable=False, default=0.0)
    last_ip = db.Column(db.String(45))
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)
    last_signed_in = db.Column(db.DateTime, default=datetime.datetime.utcnow)

    rentals = db.relationship('Rental', backref='user', lazy='dynamic')
    payments = db.relationship('Payment', backref='user', lazy='dynamic', foreign_keys='Payment.user_id')
    notifications = db.relationship('Notification', backref='user', lazy='dynamic')
    push_tokens = db.relationship('PushToken', backref='user', lazy='dynamic')

    def __repr__(self):
        return f"User('{self.username}', '{self.role}')"

    @property
    def is_admin(self):
        return self.role == 'admin'

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'balance': self.balance,
            'last_ip': self.last_ip,
            'created_at': _iso(self.created_at),
            'last_signed_in': _iso(self.last_signed_in),
        }


class IdCard(db.Model):
    __tablename__ = 'id_cards'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, unique=True)
    id_number = db.Column(db.String(50), nullable=False)
    full_name = db.Column(db.String(150), nullable=False)
    date_of_birth = db.Column(db.String(20))
    image_url = db.Column(db.String(255), nullable=False)
    image_url_with_watermark = db.Column(db.String(255))
    status = db.Column(db.String(10), nullable=False, default='pending', index=True)
    verified_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    verification_notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    owner = db.relationship('User', foreign_keys=[user_id], backref=db.backref('id_card', uselist=False))

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'id_number': self.id_number,
            'full_name': self.full_name,
            'date_of_birth': self.date_of_birth,
            'image_url': self.image_url,
            'image_url_with_watermark': self.image_url_with_watermark,
            'status': self.status,
            'verified_by': self.verified_by,
            'verification_notes': self.verification_notes,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class Notification(db.Model):
    __tablename__ = 'notifications'

    TYPES = ('expiration_warning', 'rental_confirmed', 'payment_received', 'extension_available', 'id_verification')

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    rental_id = db.Column(db.Integer, db.ForeignKey('rentals.id'))
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(30), nullable=False)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'rental_id': self.rental_id,
            'title': self.title,
            'message': self.message,
            'type': self.type,
            'is_read': self.is_read,
            'created_at': _iso(self.created_at),
        }


class PushToken(db.Model):
    __tablename__ = 'push_tokens'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    token = db.Column(db.Text, nullable=False)
    platform = db.Column(db.String(10), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'platform': self.platform,
            'is_active': self.is_active,
            'created_at': _iso(self.created_at),
        }
