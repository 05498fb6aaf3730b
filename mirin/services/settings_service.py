from flask import current_app

from mirin.extensions import db
from mirin.models.audit import SystemSetting


def get_setting(key, default=None):
    setting = SystemSetting.query.filter_by(key=key).first()
    return setting.value if setting else default


def set_setting(key, value, description=None, updated_by=None):
    """Creates or updates a setting. Returns (setting, previous_value)."""
    setting = SystemSetting.query.filter_by(key=key).first()
    previous = setting.value if setting else None
    if not setting:
        setting = SystemSetting(key=key)
        db.session.add(setting)
    setting.value = value
    if description is not None:
        setting.description = description
    setting.updated_by = updated_by
    db.session.commit()
    return setting, previous


def get_all_settings():
    return SystemSetting.query.order_by(SystemSetting.key).all()


def promptpay_id():
    return get_setting('promptpay_id', current_app.config['PROMPTPAY_ID'])
