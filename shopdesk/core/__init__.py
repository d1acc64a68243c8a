"""
ShopDesk Core
=============

Core utilities and shared functionality for ShopDesk modules.
"""

from .config import Config, get_config
from .errors import (
    ShopDeskError, ValidationError, TransportError, ServiceError, ConfigurationError
)
from .notifications import Notifier
from .api_client import StoreApiClient
from .storage import CloudinaryClient, CloudinaryCredentials, resolve_credentials, upload_image_action

__all__ = [
    'Config', 'get_config',
    'ShopDeskError', 'ValidationError', 'TransportError', 'ServiceError', 'ConfigurationError',
    'Notifier', 'StoreApiClient',
    'CloudinaryClient', 'CloudinaryCredentials', 'resolve_credentials', 'upload_image_action',
]
