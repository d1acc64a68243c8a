import os
from dotenv import load_dotenv

load_dotenv(override=True)


def split_csv(value):
    return [item.strip() for item in (value or '').split(',') if item.strip()]


class Config:
    """
    Base configuration for the ShopDesk admin panel.
    Projects override these via environment variables or app.config.
    """
    # Flask settings
    SECRET_KEY = os.getenv('FLASK_SECRET_KEY')
    BRAND_NAME = os.getenv('BRAND_NAME', 'ShopDesk')

    # Store API - every admin request is built against this base URL
    BASE_URL = os.getenv('BASE_URL', 'http://localhost:3000')
    API_TIMEOUT = int(os.getenv('API_TIMEOUT', '30'))

    # Cookie carrying the bearer token for admin endpoints
    AUTH_TOKEN_COOKIE = os.getenv('AUTH_TOKEN_COOKIE', 'auth_token')

    # Cloudinary - either the three discrete values or a single CLOUDINARY_URL
    CLOUDINARY_NAME = os.getenv('CLOUDINARY_NAME')
    CLOUDINARY_API_KEY = os.getenv('CLOUDINARY_API_KEY')
    CLOUDINARY_API_SECRET = os.getenv('CLOUDINARY_API_SECRET')
    CLOUDINARY_URL = os.getenv('CLOUDINARY_URL')

    # Upload adapter enforces no timeout on its own; 0 means none
    UPLOAD_TIMEOUT = int(os.getenv('UPLOAD_TIMEOUT', '0'))

    # Newsletter list
    NEWSLETTER_PAGE_SIZE = int(os.getenv('NEWSLETTER_PAGE_SIZE', '10'))
    SEARCH_DEBOUNCE_MS = int(os.getenv('SEARCH_DEBOUNCE_MS', '500'))

    # Product editor sessions: idle ones are dropped, and at most MAX_WORKFLOWS are kept
    WORKFLOW_IDLE_SECONDS = int(os.getenv('WORKFLOW_IDLE_SECONDS', '1800'))
    MAX_WORKFLOWS = int(os.getenv('MAX_WORKFLOWS', '200'))

    # Origins allowed to call the admin JSON endpoints
    ADMIN_CORS_ORIGINS = split_csv(os.getenv(
        'ADMIN_CORS_ORIGINS',
        'http://localhost:3000,http://localhost:5000'
    ))


def get_config(key, default=None):
    """Get config value: app.config > Config class > env var."""
    try:
        from flask import current_app
        val = current_app.config.get(key)
        if val is not None:
            return val
    except RuntimeError:
        pass
    if hasattr(Config, key):
        val = getattr(Config, key)
        if val is not None:
            return val
    return os.getenv(key, default)
