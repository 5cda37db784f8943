"""
Admin API key check.

Admin endpoints expect the shared key in the X-Admin-Key header.
"""
import hmac
from functools import wraps

from flask import current_app, request

from ..utils.errors import unauthorized


def require_admin(f):
    """Reject the request with 401 unless X-Admin-Key matches ADMIN_API_KEY."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get('ADMIN_API_KEY') or ''
        supplied = request.headers.get('X-Admin-Key') or ''

        if not expected:
            current_app.logger.error('ADMIN_API_KEY is not configured; rejecting admin request')
            return unauthorized('Admin access is not configured')

        if not hmac.compare_digest(supplied.encode(), expected.encode()):
            return unauthorized('Invalid or missing admin key')

        return f(*args, **kwargs)

    return decorated_function
