import json

from flask import current_app, has_request_context
from sqlalchemy.exc import SQLAlchemyError

from mirin.extensions import db
from mirin.models.audit import AuditLog
from mirin.utils import client_ip, user_agent


def _dump(value):
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False, default=str)


def log_admin_action(admin_id, action, target_table, target_id, old_value=None, new_value=None):
    """Appends an audit entry for an admin mutation.

    Runs after the primary change has been committed. A failure here is
    logged and swallowed so it never blocks the action itself.
    """
    try:
        entry = AuditLog(
            user_id=admin_id,
            action=action,
            target_table=target_table,
            target_id=target_id,
            old_value=_dump(old_value),
            new_value=_dump(new_value),
            ip_address=client_ip() if has_request_context() else None,
            user_agent=user_agent() if has_request_context() else None,
        )
        db.session.add(entry)
        db.session.commit()
        return entry
    except SQLAlchemyError as e:
        current_app.logger.error(f"Failed to write audit log ({action} {target_table}#{target_id}): {e}")
        db.session.rollback()
        return None


def get_audit_logs(limit=100):
    return AuditLog.query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()


def get_audit_logs_by_user(user_id, limit=50):
    return (AuditLog.query.filter_by(user_id=user_id)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .limit(limit).all())


def get_audit_logs_by_target(target_table, target_id):
    return (AuditLog.query.filter_by(target_table=target_table, target_id=target_id)
            .order_by(AuditLog.created_at.desc()).all())
