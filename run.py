import click

from mirin import create_app
from mirin.extensions import db
from mirin.models.catalog import Product
from mirin.models.user import User
from mirin.services.payment_service import expire_stale_payments
from mirin.services.settings_service import set_setting

app = create_app()


@app.cli.command('seed_db')
def seed_db_command():
    """Creates the tables and adds sample products and settings."""
    db.create_all()

    if Product.query.count() == 0:
        db.session.add_all([
            Product(name='Toyota Yaris Ativ', category='car', license_plate='1กข 1234',
                    hourly_rate=150.0, daily_rate=1200.0, status='available',
                    description='Automatic sedan, 5 seats', details={'seats': 5, 'fuel': 'petrol'}),
            Product(name='Honda PCX 160', category='motorcycle', license_plate='2คง 5678',
                    hourly_rate=60.0, daily_rate=350.0, status='available',
                    description='Scooter with two helmets', details={'helmets': 2}),
            Product(name='Sea View Studio', category='room', daily_rate=1800.0, status='available',
                    description='Studio near the beach', details={'beds': 1, 'floor': 7}),
            Product(name='Andaman Explorer', category='yacht', hourly_rate=4500.0, daily_rate=45000.0,
                    status='available', description='Crewed day charter, 12 guests',
                    details={'guests': 12, 'crew': 3}),
            Product(name='Thai Stick 3.5g', category='other', daily_rate=450.0, status='available',
                    description='Sativa flower', details={'strain': 'sativa', 'thc': '18%'}),
            Product(name='Pre-roll Pack', category='other', daily_rate=300.0, status='available',
                    description='Three hybrid pre-rolls', details={'strain': 'hybrid', 'count': 3}),
        ])
        db.session.commit()

    set_setting('promptpay_id', app.config['PROMPTPAY_ID'], description='PromptPay target for payment QR codes')
    set_setting('site_name', 'Mirin Rental', description='Display name')
    click.echo('Database seeded with sample products and settings.')


@app.cli.command('create_admin')
@click.argument('username')
@click.argument('password')
def create_admin_command(username, password):
    """Creates an admin account, or promotes an existing user."""
    db.create_all()
    user = User.query.filter_by(username=username).first()
    if user:
        user.role = 'admin'
        click.echo(f'User {username} promoted to admin.')
    else:
        user = User(username=username, name=username, role='admin', balance=0.0)
        user.set_password(password)
        db.session.add(user)
        click.echo(f'Admin {username} created.')
    db.session.commit()


@app.cli.command('expire_payments')
def expire_payments_command():
    """Fails pending payments past their confirmation window."""
    expired = expire_stale_payments()
    click.echo(f'{expired} payment(s) expired.')
