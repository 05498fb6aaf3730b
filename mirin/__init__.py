import logging

from flask import Flask
from config import Config

from mirin.extensions import db, bcrypt, login_manager, migrate


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    db.init_app(app)
    bcrypt.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)

    # Registers the models and the login_manager loaders
    from mirin import models, security  # noqa: F401
    from mirin.errors import register_error_handlers
    register_error_handlers(app)

    from mirin.routes.auth import auth as auth_blueprint
    app.register_blueprint(auth_blueprint, url_prefix='/api/auth')

    from mirin.routes.catalog import catalog as catalog_blueprint
    app.register_blueprint(catalog_blueprint, url_prefix='/api/products')

    from mirin.routes.rentals import rentals as rentals_blueprint
    app.register_blueprint(rentals_blueprint, url_prefix='/api/rentals')

    from mirin.routes.payments import payments as payments_blueprint
    app.register_blueprint(payments_blueprint, url_prefix='/api/payments')

    from mirin.routes.orders import orders as orders_blueprint
    app.register_blueprint(orders_blueprint, url_prefix='/api/orders')

    from mirin.routes.account import account as account_blueprint
    app.register_blueprint(account_blueprint)

    from mirin.routes.admin import admin as admin_blueprint
    app.register_blueprint(admin_blueprint, url_prefix='/api/admin')

    @app.shell_context_processor
    def make_shell_context():
        return {
            'db': db,
            'User': models.User,
            'Product': models.Product,
            'Rental': models.Rental,
            'Payment': models.Payment,
            'Order': models.Order,
            'IdCard': models.IdCard,
        }

    return app
