"""
Products Admin Module
=====================

Admin interface for creating and editing products.

Provides:
- Product editor page (add and edit share one form)
- Image selection, preview and upload to Cloudinary
- Draft submission to the store's product endpoints
"""

from flask import Blueprint

products_bp = Blueprint(
    'products_admin',
    __name__,
    url_prefix='/admin/products',
    template_folder='templates'
)

from . import routes

__all__ = ['products_bp']
