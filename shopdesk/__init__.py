"""
ShopDesk - A Flask E-commerce Admin Panel
=========================================

Admin dashboard modules for a store backed by a remote REST API:
- Product add/edit with Cloudinary image upload
- Newsletter subscription list with debounced search

Usage:
    from shopdesk import ShopDesk

    app = Flask(__name__)
    ShopDesk(app, {'features': {'products': True, 'newsletter': True}})
"""

import logging

from flask_cors import CORS

from .core.config import Config, split_csv
from .core.errors import ConfigurationError
from .core.api_client import StoreApiClient
from .core.storage import CloudinaryClient, resolve_credentials

__version__ = '0.1.0'

logger = logging.getLogger(__name__)

DEFAULT_FEATURES = {
    'products': True,
    'newsletter': True,
}


class ShopDesk:
    """Flask extension that wires ShopDesk modules into an app"""

    def __init__(self, app=None, config=None):
        self._config = config or {}
        self._registered = []
        self.media_client = None
        self.configuration_errors = []

        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        # INTEGRATION: app.config values set before init_app win over Config/env defaults
        self._apply_defaults(app)

        self.brand_name = self._config.get('brand_name') or app.config['BRAND_NAME']
        self.base_url = self._config.get('base_url') or app.config['BASE_URL']
        self.api_timeout = int(app.config['API_TIMEOUT'])
        self.page_size = int(app.config['NEWSLETTER_PAGE_SIZE'])
        self.debounce_ms = int(app.config['SEARCH_DEBOUNCE_MS'])
        self.upload_timeout = int(app.config['UPLOAD_TIMEOUT']) or None

        self._setup_media_client(app)
        self._register_modules(app)

        app.extensions['shopdesk'] = self

        @app.context_processor
        def inject_shopdesk_context():
            return {
                'shopdesk_config': {
                    'features': self.features,
                    'base_url': self.base_url,
                    'modules': list(self._registered),
                },
                'brand_name': self.brand_name,
            }

        logger.info(f"ShopDesk initialised with modules: {', '.join(self._registered) or 'none'}")

    @property
    def features(self):
        features = dict(DEFAULT_FEATURES)
        features.update(self._config.get('features', {}))
        return features

    def _apply_defaults(self, app):
        """Fill app.config gaps from Config (which already read the environment)"""
        for key in dir(Config):
            if not key.isupper():
                continue
            value = getattr(Config, key)
            if app.config.get(key) is None and value is not None:
                app.config[key] = value

    def _setup_media_client(self, app):
        """Resolve upload credentials once; uploads fail at call time if missing"""
        credentials = resolve_credentials(app.config.get)
        if credentials is None:
            error = ConfigurationError(
                'Missing Cloudinary credentials',
                details={'expected': ['CLOUDINARY_NAME', 'CLOUDINARY_API_KEY',
                                      'CLOUDINARY_API_SECRET', 'CLOUDINARY_URL']},
            )
            self.configuration_errors.append(error)
            app.logger.error(f"ShopDesk configuration error: {error}")
        self.media_client = CloudinaryClient(credentials)

    def _register_modules(self, app):
        features = self.features

        if features.get('products'):
            from .modules.products import products_bp
            app.register_blueprint(products_bp)
            self._registered.append('products')

        if features.get('newsletter'):
            from .modules.newsletter import newsletter_bp
            app.register_blueprint(newsletter_bp)
            self._registered.append('newsletter')
            self._setup_admin_cors(app)

    def _setup_admin_cors(self, app):
        """Allow the configured admin origins to call the newsletter JSON endpoint"""
        origins = app.config.get('ADMIN_CORS_ORIGINS') or []
        if isinstance(origins, str):
            origins = split_csv(origins)
        CORS(app, resources={r'/admin/newsletter/data': {'origins': origins}}, supports_credentials=True)

    def build_api_client(self, token=None):
        """Store API client bound to this app's BASE_URL"""
        return StoreApiClient(self.base_url, token=token, timeout=self.api_timeout)

    def get_registered_modules(self):
        return list(self._registered)


__all__ = ['ShopDesk', 'Config']
