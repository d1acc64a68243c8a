"""
Notifications
=============

Transient admin-facing messages (the panel's toasts). Controllers push
messages here; blueprints drain them into flash() or into a JSON reply.
"""

import logging

logger = logging.getLogger(__name__)


class Notifier:
    """Collects success/error messages until they are drained"""

    def __init__(self):
        self.messages = []

    def success(self, message):
        self.messages.append(('success', message))

    def error(self, message):
        logger.debug(f"Notify error: {message}")
        self.messages.append(('error', message))

    def drain(self):
        """Return and clear pending messages as (category, message) tuples"""
        pending, self.messages = self.messages, []
        return pending


def messages_as_json(pending):
    return [{'category': cat, 'message': message} for cat, message in pending]
