"""
Newsletter Admin Module
=======================

Provides:
- Paginated, searchable list of newsletter subscriptions
- JSON data endpoint used by the page's debounced search box
"""

from flask import Blueprint

newsletter_bp = Blueprint(
    'newsletter_admin',
    __name__,
    url_prefix='/admin/newsletter',
    template_folder='templates'
)

from . import routes

__all__ = ['newsletter_bp']
