"""
Cache invalidation signals
Automatically invalidate report caches when the data behind them changes
"""
import logging
import threading
from contextlib import contextmanager

from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from .cache_utils import invalidate_reports_cache

logger = logging.getLogger(__name__)

# Thread-local storage to track signal suspension
_thread_locals = threading.local()

REPORT_SOURCES = (
    'tools.Tool',
    'orders.Order',
    'orders.OrderItem',
    'catalog.Product',
    'parties.Client',
    'tasks.Task',
)


@contextmanager
def suspend_cache_signals():
    """
    Temporarily suspend cache invalidation signals for bulk operations.
    The report cache is invalidated once when the block exits.
    """
    _thread_locals.suspended = True
    try:
        yield
    finally:
        _thread_locals.suspended = False
        invalidate_reports_cache()


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


def _invalidate(sender, **kwargs):
    if is_suspended():
        return
    logger.debug(f"{sender.__name__} changed, invalidating report caches")
    invalidate_reports_cache()


for _source in REPORT_SOURCES:
    receiver(post_save, sender=_source, dispatch_uid=f'reports-cache-save-{_source}')(_invalidate)
    receiver(post_delete, sender=_source, dispatch_uid=f'reports-cache-delete-{_source}')(_invalidate)
