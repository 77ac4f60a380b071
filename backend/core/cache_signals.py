"""
Cache invalidation signals
Automatically invalidate cache when data changes
"""
from django.db import transaction
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging
import threading
from contextlib import contextmanager

from .cache_utils import (
    invalidate_dashboard_cache, invalidate_supplier_cache, invalidate_reports_cache
)

logger = logging.getLogger(__name__)

# Thread-local storage to track signal suspension
_thread_locals = threading.local()

ORDER_MODELS = ('CustomerOrder', 'OrderItem')
PURCHASE_ORDER_MODELS = ('PurchaseOrder', 'PurchaseOrderItem')
SUPPLIER_MODELS = ('Supplier', 'SupplierCapability', 'SupplierPerformanceMetrics')


@contextmanager
def suspend_cache_signals():
    """
    Context manager to temporarily suspend cache invalidation signals.
    Useful for bulk operations to prevent excessive cache clearing.
    Remember to manually invalidate cache after the block!
    """
    previous = is_suspended()
    try:
        _thread_locals.suspended = True
        yield
    finally:
        _thread_locals.suspended = previous


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


def invalidate_order_caches():
    """Manually invalidate everything derived from customer/purchase orders"""
    try:
        invalidate_dashboard_cache()
        invalidate_reports_cache()
    except Exception as e:
        logger.warning(f"Error invalidating order caches: {e}")


def invalidate_supplier_caches():
    """Manually invalidate supplier lookups and portal dashboards"""
    try:
        invalidate_supplier_cache()
    except Exception as e:
        logger.warning(f"Error invalidating supplier cache: {e}")


# --- Signal Handlers ---

@receiver([post_save, post_delete])
def invalidate_order_cache(sender, instance, **kwargs):
    """Invalidate dashboard and report caches when orders change"""
    if is_suspended():
        return

    model_name = sender.__name__
    if model_name in ORDER_MODELS or model_name in PURCHASE_ORDER_MODELS:
        # Invalidate AFTER commit so readers cannot repopulate the cache with stale rows
        transaction.on_commit(invalidate_order_caches)
        if model_name in PURCHASE_ORDER_MODELS:
            transaction.on_commit(invalidate_supplier_caches)


@receiver([post_save, post_delete])
def invalidate_supplier_data_cache(sender, instance, **kwargs):
    """Invalidate supplier cache when suppliers, capabilities or metrics change"""
    if is_suspended():
        return

    if sender.__name__ in SUPPLIER_MODELS:
        transaction.on_commit(invalidate_supplier_caches)
