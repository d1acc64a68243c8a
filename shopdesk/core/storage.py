"""
Storage Utility
===============

Product image hosting on Cloudinary.

Credentials are resolved once at startup (discrete triple or CLOUDINARY_URL)
and handed to an explicitly constructed CloudinaryClient. Nothing is written
locally; the uploaded asset lives on Cloudinary.
"""

import io
import logging
from urllib.parse import urlparse, unquote

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

from .errors import ServiceError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_FOLDER = 'products'
NO_RESULT_MESSAGE = 'Cloudinary upload failed: No result returned'


class CloudinaryCredentials:
    """cloud_name / api_key / api_secret triple"""

    def __init__(self, cloud_name, api_key, api_secret):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret

    def __repr__(self):
        return f"CloudinaryCredentials(cloud_name={self.cloud_name!r}, api_key={self.api_key!r})"

    @classmethod
    def from_url(cls, url):
        """Parse cloudinary://<api_key>:<api_secret>@<cloud_name>"""
        if not url:
            return None
        parsed = urlparse(url)
        if parsed.scheme != 'cloudinary' or '@' not in parsed.netloc:
            return None
        cloud_name = parsed.netloc.rsplit('@', 1)[1]
        api_key = unquote(parsed.username or '')
        api_secret = unquote(parsed.password or '')
        if not all([cloud_name, api_key, api_secret]):
            return None
        return cls(cloud_name, api_key, api_secret)


def resolve_credentials(getter):
    """Resolve Cloudinary credentials from a config getter.

    The discrete triple wins over CLOUDINARY_URL. Logs a configuration error
    and returns None when neither is usable.

    Args:
        getter: callable(key) -> value, e.g. app.config.get or get_config
    """
    cloud_name = getter('CLOUDINARY_NAME')
    api_key = getter('CLOUDINARY_API_KEY')
    api_secret = getter('CLOUDINARY_API_SECRET')

    if cloud_name and api_key and api_secret:
        return CloudinaryCredentials(cloud_name, api_key, api_secret)

    cloudinary_url = getter('CLOUDINARY_URL')
    if cloudinary_url:
        credentials = CloudinaryCredentials.from_url(cloudinary_url)
        if credentials:
            logger.info("Using CLOUDINARY_URL from environment")
            return credentials
        logger.error("CLOUDINARY_URL is set but could not be parsed")
        return None

    logger.error("Missing Cloudinary credentials")
    return None


class CloudinaryClient:
    """Uploads through the Cloudinary SDK with this client's own credentials.

    Credentials go with every call instead of into cloudinary.config(), so
    several clients (or none) can coexist in one process.
    """

    def __init__(self, credentials=None):
        self.credentials = credentials

    @property
    def configured(self):
        return self.credentials is not None

    def _account_options(self):
        return {
            'cloud_name': self.credentials.cloud_name,
            'api_key': self.credentials.api_key,
            'api_secret': self.credentials.api_secret,
            'secure': True,
        }

    def upload(self, file_bytes, folder=DEFAULT_FOLDER, filename=None, timeout=None):
        """
        Upload raw bytes and return the provider response.

        Args:
            file_bytes: Raw bytes of the file, non-empty
            folder: Destination folder on Cloudinary
            filename: Optional original filename sent with the upload
            timeout: Optional upper bound in seconds; none is applied by default

        Returns:
            dict with at least secure_url and public_id

        Raises:
            ValidationError: empty buffer
            ServiceError: provider or network error, missing credentials, or no result
        """
        if not file_bytes:
            raise ValidationError('No file data to upload')

        if not self.configured:
            raise ServiceError('Cloudinary upload failed: credentials not configured')

        stream = io.BytesIO(file_bytes)
        stream.name = filename or 'upload'

        options = self._account_options()
        options['folder'] = folder or DEFAULT_FOLDER
        options['resource_type'] = 'auto'
        if timeout is not None:
            options['timeout'] = timeout

        try:
            result = cloudinary.uploader.upload(stream, **options)
        except cloudinary.exceptions.Error as e:
            logger.error(f"Cloudinary upload failed: {e}")
            raise ServiceError(str(e) or 'Cloudinary upload failed', details={'error': e.__class__.__name__}) from e

        if not result:
            raise ServiceError(NO_RESULT_MESSAGE)

        logger.info(f"Uploaded {result.get('public_id')} to folder {options['folder']}")
        return result


def upload_image_action(client, file_bytes, category=None, filename=None, timeout=None):
    """Upload an image and report the outcome instead of raising.

    The category doubles as the destination folder.

    Returns:
        dict with {success, url, public_id, message}
    """
    folder = category or DEFAULT_FOLDER
    try:
        result = client.upload(file_bytes, folder=folder, filename=filename, timeout=timeout)
    except (ValidationError, ServiceError) as e:
        return {'success': False, 'url': '', 'public_id': '', 'message': str(e)}

    return {
        'success': True,
        'url': result.get('secure_url', ''),
        'public_id': result.get('public_id', ''),
        'message': 'Image uploaded successfully',
    }
