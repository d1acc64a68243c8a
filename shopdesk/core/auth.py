"""
Admin Token Guard
=================

The panel never issues tokens. It forwards the bearer token found in the
auth cookie to the store API and refuses admin routes when there is none.
"""

from functools import wraps
from flask import request, redirect, jsonify, current_app

from .config import get_config


def get_auth_token():
    """Bearer token from the configured auth cookie, or None"""
    cookie_name = get_config('AUTH_TOKEN_COOKIE', 'auth_token')
    return request.cookies.get(cookie_name) or None


def token_required(f):
    """Decorator to require the admin auth cookie"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not get_auth_token():
            login_url = current_app.config.get('LOGIN_URL')
            if login_url and request.method == 'GET' and request.accept_mimetypes.accept_html:
                return redirect(f"{login_url}?next={request.path}")
            return jsonify({'success': False, 'error': 'Authentication required'}), 401
        return f(*args, **kwargs)
    return decorated_function
