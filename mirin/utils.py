# mirin/utils.py
from flask import request

from mirin.errors import BadRequest


def client_ip():
    """Client address, taking the first hop of X-Forwarded-For when proxied."""
    forwarded_for = request.headers.get('X-Forwarded-For', '')
    first_hop = forwarded_for.split(',')[0].strip()
    return first_hop or request.remote_addr or 'unknown'


def user_agent():
    agent = request.headers.get('User-Agent')
    return agent[:255] if agent else None


def json_body():
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise BadRequest("Request body must be a JSON object")
    return body


def validated(form):
    """Returns the form when its submitted data is valid, else raises BadRequest with the field errors."""
    if not form.validate_on_submit():
        raise BadRequest("Invalid input", errors=form.errors)
    return form
