"""
Store API Client
================

Thin requests wrapper for the remote store endpoints the admin panel consumes.
Every reply is expected to be JSON shaped like {success, message?, ...}.
"""

import logging
import requests

from .config import get_config
from .errors import TransportError, ServiceError

logger = logging.getLogger(__name__)

PRODUCTS_PATH = '/api/products'
NEWSLETTER_PATH = '/api/admin/newsletter'


class StoreApiClient:
    """Client for the store's product and admin endpoints"""

    def __init__(self, base_url, token=None, session=None, timeout=30):
        self.base_url = (base_url or '').rstrip('/')
        self.token = token
        self.session = session or requests.Session()
        self.timeout = timeout

    @classmethod
    def from_config(cls, token=None, session=None):
        """Build a client from BASE_URL / API_TIMEOUT"""
        return cls(
            base_url=get_config('BASE_URL', ''),
            token=token,
            session=session,
            timeout=int(get_config('API_TIMEOUT', 30)),
        )

    def _headers(self, auth=False):
        headers = {
            'Accept': 'application/json',
            'Content-Type': 'application/json',
        }
        if auth:
            headers['Authorization'] = f"Bearer {self.token}"
        return headers

    def _request(self, method, path, auth=False, **kwargs):
        """Send a request and return the decoded body of a successful reply.

        Raises:
            TransportError: network failure or a body that is not a JSON object
            ServiceError: the server answered with success: false
        """
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(
                method, url,
                headers=self._headers(auth=auth),
                timeout=self.timeout,
                **kwargs
            )
        except requests.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise TransportError(f"Request to {path} failed: {e}") from e

        try:
            result = resp.json()
        except ValueError as e:
            logger.error(f"{method} {path} returned non-JSON body (status {resp.status_code})")
            raise TransportError(f"Invalid response from {path}") from e

        if not isinstance(result, dict):
            raise TransportError(f"Unexpected response from {path}")

        if not result.get('success'):
            logger.warning(f"{method} {path} - Status: {resp.status_code} - {result.get('message')}")
            raise ServiceError(
                result.get('message'),
                details=result,
                status_code=resp.status_code,
            )

        logger.debug(f"{method} {path} - Status: {resp.status_code}")
        return result

    # ===================
    # PRODUCTS
    # ===================

    def create_product(self, payload):
        return self._request('POST', PRODUCTS_PATH, json=payload)

    def update_product(self, product_id, payload):
        return self._request('PUT', f"{PRODUCTS_PATH}/{product_id}", json=payload)

    def save_product(self, payload, product_id=None):
        """Create when no identifier is present, update otherwise"""
        if product_id is None or product_id == '':
            return self.create_product(payload)
        return self.update_product(product_id, payload)

    def get_product(self, product_id):
        """Fetch a single product record (used to enter edit mode)"""
        result = self._request('GET', f"{PRODUCTS_PATH}/{product_id}")
        return result.get('data') or result.get('product') or {}

    # ===================
    # NEWSLETTER
    # ===================

    def list_newsletter(self, page=1, limit=10, search=''):
        """Fetch one page of newsletter subscriptions (bearer auth)"""
        params = {
            'page': str(page),
            'limit': str(limit),
            'search': search or '',
        }
        return self._request('GET', NEWSLETTER_PATH, auth=True, params=params)
