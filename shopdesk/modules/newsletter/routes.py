"""
Newsletter Admin Routes
=======================

Provides:
- GET / -- subscriptions table (?page=&search=)
- GET /data -- same list as JSON, for the debounced search box
"""

import logging

from flask import render_template, request, jsonify, current_app, flash

from ...core.auth import token_required, get_auth_token
from ...core.notifications import Notifier, messages_as_json
from . import newsletter_bp
from .list_view import NewsletterListView

logger = logging.getLogger(__name__)


def _build_view():
    shopdesk = current_app.extensions['shopdesk']
    return NewsletterListView(
        api=shopdesk.build_api_client(token=get_auth_token()),
        notifier=Notifier(),
        items_per_page=shopdesk.page_size,
        debounce_ms=shopdesk.debounce_ms,
    )


def _requested_page():
    page = request.args.get('page', 1, type=int)
    return page if page and page > 0 else 1


@newsletter_bp.route('/')
@token_required
def newsletter_page():
    """Newsletter subscriptions page"""
    view = _build_view()
    search = request.args.get('search', '').strip()
    view.search_text = search
    view.load(_requested_page(), search)

    for category, message in view.notifier.drain():
        flash(message, category)

    return render_template(
        'newsletter/newsletter.html',
        view=view,
        rows=view.rows(),
        pagination=view.pagination,
        search=search,
        debounce_ms=current_app.extensions['shopdesk'].debounce_ms,
    )


@newsletter_bp.route('/data')
@token_required
def newsletter_data():
    """Subscriptions list as JSON"""
    view = _build_view()
    search = request.args.get('search', '').strip()
    view.search_text = search
    loaded = view.load(_requested_page(), search)

    body = view.to_dict()
    body['success'] = loaded
    body['rows'] = view.rows()
    body['messages'] = messages_as_json(view.notifier.drain())
    return jsonify(body), 200 if loaded else 502
