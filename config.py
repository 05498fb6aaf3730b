import os
from datetime import timedelta
from dotenv import load_dotenv

# Loads environment variables from the .env file
load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'mirin-local-secret-key-change-in-production'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///' + os.path.join(basedir, 'mirin.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # JSON API: the auth cookie is SameSite=Lax, forms are not CSRF-protected
    WTF_CSRF_ENABLED = False

    # --- Auth ---
    AUTH_COOKIE_NAME = 'mirin_session'
    AUTH_TOKEN_MAX_AGE = int(timedelta(days=7).total_seconds())
    AUTH_COOKIE_SECURE = os.environ.get('FLASK_ENV') == 'production'
    BCRYPT_LOG_ROUNDS = 12

    # --- PromptPay ---
    PROMPTPAY_ID = os.environ.get('PROMPTPAY_ID', '0812345678')
    PAYMENT_EXPIRY_HOURS = int(os.environ.get('PAYMENT_EXPIRY_HOURS', 24))

    # --- Bookings ---
    REQUIRE_ID_VERIFICATION = _env_bool('REQUIRE_ID_VERIFICATION', True)
    EXPIRATION_WARNING_HOURS = int(os.environ.get('EXPIRATION_WARNING_HOURS', 24))

    # --- Uploads ---
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER') or os.path.join(basedir, 'uploads')
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024

    # --- Web push (VAPID) ---
    VAPID_PUBLIC_KEY = os.environ.get('VAPID_PUBLIC_KEY', '')
    VAPID_PRIVATE_KEY = os.environ.get('VAPID_PRIVATE_KEY', '')
    VAPID_EMAIL = os.environ.get('VAPID_EMAIL', 'admin@mirin-rental.local')


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    BCRYPT_LOG_ROUNDS = 4
    VAPID_PUBLIC_KEY = ''
    VAPID_PRIVATE_KEY = ''
    REQUIRE_ID_VERIFICATION = True
