import base64
import datetime
from io import BytesIO

import pytest
from PIL import Image

from config import TestConfig
from mirin import create_app
from mirin.extensions import db
from mirin.models.catalog import Product
from mirin.models.user import User, IdCard

PASSWORD = 'secret123'


@pytest.fixture
def app(tmp_path):
    app = create_app(TestConfig)
    app.config['UPLOAD_FOLDER'] = str(tmp_path / 'uploads')
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


def make_user(app, username, role='user', verified=False, balance=0.0):
    with app.app_context():
        user = User(username=username, name=username.title(), role=role, balance=balance)
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.flush()
        if verified:
            db.session.add(IdCard(
                user_id=user.id,
                id_number='1101700203451',
                full_name=username.title(),
                date_of_birth='1990-01-01',
                image_url='/uploads/idcards/sample.png',
                status='verified',
            ))
        db.session.commit()
        return user.id


def make_product(app, **fields):
    values = {'name': 'Toyota Yaris', 'category': 'car', 'daily_rate': 300.0,
              'hourly_rate': 50.0, 'status': 'available'}
    values.update(fields)
    with app.app_context():
        product = Product(**values)
        db.session.add(product)
        db.session.commit()
        return product.id


def login(app, username):
    client = app.test_client()
    response = client.post('/api/auth/login', json={'username': username, 'password': PASSWORD})
    assert response.status_code == 200, response.get_json()
    return client


def png_data_url(size=(40, 30)):
    buffer = BytesIO()
    Image.new('RGB', size, (200, 30, 30)).save(buffer, format='PNG')
    return 'data:image/png;base64,' + base64.b64encode(buffer.getvalue()).decode('ascii')


def booking_window(days=2, hours=0):
    start = datetime.datetime(2030, 1, 10, 9, 0)
    end = start + datetime.timedelta(days=days, hours=hours)
    return start.isoformat(), end.isoformat()


@pytest.fixture
def admin_id(app):
    return make_user(app, 'admin', role='admin')


@pytest.fixture
def renter_id(app):
    return make_user(app, 'renter', verified=True)


@pytest.fixture
def admin(app, admin_id):
    return login(app, 'admin')


@pytest.fixture
def renter(app, renter_id):
    return login(app, 'renter')


@pytest.fixture
def product_id(app):
    return make_product(app)
