"""
Newsletter List View
====================

Paginated, searchable list of newsletter subscriptions.

Search input is debounced: only the last value typed within the quiet
window is fetched, always for page 1. Every load carries a sequence number
and a response is applied only if it belongs to the latest load issued.
"""

import logging
import math
import threading
from datetime import datetime
from typing import Callable, List, Optional

from ...core.errors import TransportError, ServiceError

logger = logging.getLogger(__name__)

PLACEHOLDER_TEXT = 'No newsletter subscriptions found'
FETCH_FAILED_MESSAGE = 'Failed to fetch newsletters'
DEFAULT_PAGE_SIZE = 10
DEFAULT_DEBOUNCE_MS = 500


def _parse_timestamp(value):
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return None


def _to_int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class NewsletterEntry:
    """Read-only copy of one subscription record"""

    def __init__(self, id, email, created_at=None, updated_at=None):
        self.id = id
        self.email = email
        self.created_at = created_at
        self.updated_at = updated_at

    def __repr__(self):
        return f"NewsletterEntry(id={self.id}, email={self.email!r})"

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get('id'),
            email=data.get('email', ''),
            created_at=_parse_timestamp(data.get('createdAt') or data.get('created_at')),
            updated_at=_parse_timestamp(data.get('updatedAt') or data.get('updated_at')),
        )

    @property
    def subscribed_on(self):
        """Display date for the 'Subscribed On' column"""
        return self.created_at.strftime('%d/%m/%Y') if self.created_at else ''


class Pagination:
    """Pagination block from a list response; only a fetch mutates it"""

    def __init__(self, current_page=1, items_per_page=DEFAULT_PAGE_SIZE, offset=0, total=0, has_more=False):
        self.current_page = max(1, current_page)
        self.items_per_page = items_per_page if items_per_page > 0 else DEFAULT_PAGE_SIZE
        self.offset = max(0, offset)
        self.total = max(0, total)
        self.has_more = bool(has_more)

    @classmethod
    def from_dict(cls, data, fallback=None):
        fallback = fallback or cls()
        return cls(
            current_page=_to_int(data.get('currentPage'), fallback.current_page),
            items_per_page=_to_int(data.get('itemsPerPage'), fallback.items_per_page),
            offset=_to_int(data.get('offset'), fallback.offset),
            total=_to_int(data.get('total'), fallback.total),
            has_more=data.get('hasMore', fallback.has_more),
        )

    @property
    def max_page(self):
        return math.ceil(self.total / self.items_per_page)

    @property
    def can_go_prev(self):
        return self.current_page > 1

    @property
    def can_go_next(self):
        return self.has_more

    def to_dict(self):
        return {
            'currentPage': self.current_page,
            'itemsPerPage': self.items_per_page,
            'offset': self.offset,
            'total': self.total,
            'hasMore': self.has_more,
            'maxPage': self.max_page,
        }


class Debouncer:
    """
    Defers a call until no newer call arrives within the delay.

    Each call() cancels the pending timer and starts a new one, so only the
    last scheduled call runs.
    """

    def __init__(self, delay_ms: int = DEFAULT_DEBOUNCE_MS, timer_factory: Optional[Callable] = None):
        self._delay = delay_ms / 1000.0
        self._timer_factory = timer_factory or threading.Timer
        self._timer = None
        self._pending = None
        self._lock = threading.Lock()

    @property
    def pending(self):
        return self._pending is not None

    def call(self, fn, *args, **kwargs):
        with self._lock:
            if self._timer:
                self._timer.cancel()
            self._pending = (fn, args, kwargs)
            self._timer = self._timer_factory(self._delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self):
        with self._lock:
            pending, self._pending = self._pending, None
            self._timer = None
        if pending:
            fn, args, kwargs = pending
            fn(*args, **kwargs)

    def flush(self):
        """Run the pending call now, if any"""
        with self._lock:
            if self._timer:
                self._timer.cancel()
        self._fire()

    def cancel(self):
        with self._lock:
            if self._timer:
                self._timer.cancel()
            self._timer = None
            self._pending = None


class NewsletterListView:
    """
    Newsletter subscriptions list.

    Args:
        api: object with list_newsletter(page, limit, search)
        notifier: object with error(msg)
        items_per_page: initial page size (a response may change it)
        debounce_ms: quiet window for search input
        timer_factory: threading.Timer compatible factory
    """

    def __init__(self, api, notifier, items_per_page=DEFAULT_PAGE_SIZE,
                 debounce_ms=DEFAULT_DEBOUNCE_MS, timer_factory=None):
        self.api = api
        self.notifier = notifier
        self.entries: List[NewsletterEntry] = []
        self.pagination = Pagination(items_per_page=items_per_page)
        self.search_text = ''
        self.loading = False

        self._debouncer = Debouncer(debounce_ms, timer_factory)
        self._sequence = 0
        self._lock = threading.Lock()

    # ===================
    # FETCHING
    # ===================

    def _next_sequence(self):
        with self._lock:
            self._sequence += 1
            return self._sequence

    def _is_latest(self, sequence):
        with self._lock:
            return sequence == self._sequence

    def load(self, page=1, search=None):
        """Fetch one page. Returns True when the response was applied."""
        search = self.search_text if search is None else search
        sequence = self._next_sequence()
        self.loading = True

        try:
            result = self.api.list_newsletter(
                page=page,
                limit=self.pagination.items_per_page,
                search=search,
            )
        except (ServiceError, TransportError) as e:
            if not self._is_latest(sequence):
                logger.info(f"Discarding stale newsletter error (request {sequence}): {e}")
                return False
            logger.error(f"Error fetching newsletters: {e}")
            self.notifier.error(getattr(e, 'message', None) or FETCH_FAILED_MESSAGE)
            self.loading = False
            return False

        if not self._is_latest(sequence):
            logger.info(f"Discarding stale newsletter response (request {sequence})")
            return False

        self.entries = [NewsletterEntry.from_dict(item) for item in result.get('data') or []]
        if result.get('pagination'):
            self.pagination = Pagination.from_dict(result['pagination'], self.pagination)
        self.loading = False
        return True

    def mount(self):
        """Initial fetch when the view is shown"""
        return self.load(1, self.search_text)

    def on_search_input(self, text):
        """Search box changed; fetch page 1 once typing pauses"""
        self.search_text = text
        self._debouncer.call(self.load, 1, text)

    def change_page(self, page):
        return self.load(page, self.search_text)

    def flush_search(self):
        self._debouncer.flush()

    def shutdown(self):
        self._debouncer.cancel()

    # ===================
    # RENDERING
    # ===================

    def rows(self):
        """Table rows; an empty list renders a single placeholder row"""
        if not self.entries:
            return [{'placeholder': True, 'text': PLACEHOLDER_TEXT, 'colspan': 2}]
        return [{
            'placeholder': False,
            'id': entry.id,
            'email': entry.email,
            'subscribed_on': entry.subscribed_on,
        } for entry in self.entries]

    def to_dict(self):
        return {
            'data': [{
                'id': entry.id,
                'email': entry.email,
                'createdAt': entry.created_at.isoformat() if entry.created_at else None,
                'updatedAt': entry.updated_at.isoformat() if entry.updated_at else None,
            } for entry in self.entries],
            'pagination': self.pagination.to_dict(),
            'search': self.search_text,
        }
