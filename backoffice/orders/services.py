"""Stock movements triggered by purchase orders"""
import logging

from django.db import transaction
from django.utils import timezone

from backoffice.catalog.models import Product
from backoffice.core.cache_signals import suspend_cache_signals
from .models import PurchaseOrder

logger = logging.getLogger(__name__)


class PurchaseOrderStateError(Exception):
    """Raised when a purchase order can not be received in its current state"""


def receive_purchase_order(purchase_order_id):
    """Add every item's quantity to product stock and mark the order Received.

    Runs once: a received or cancelled order raises PurchaseOrderStateError.
    """
    with suspend_cache_signals(), transaction.atomic():
        purchase_order = PurchaseOrder.objects.select_for_update().get(pk=purchase_order_id)
        if purchase_order.status == PurchaseOrder.STATUS_RECEIVED:
            raise PurchaseOrderStateError(f"Purchase order {purchase_order.po_number} was already received.")
        if purchase_order.status == PurchaseOrder.STATUS_CANCELLED:
            raise PurchaseOrderStateError(f"Purchase order {purchase_order.po_number} is cancelled.")

        received = {}
        for item in purchase_order.items.all():
            product = Product.objects.select_for_update().get(pk=item.product_id)
            product.stock += item.quantity
            product.save(update_fields=['stock', 'last_updated'])
            product.record_stock(product.stock)
            received[str(product.id)] = item.quantity

        purchase_order.status = PurchaseOrder.STATUS_RECEIVED
        purchase_order.received_at = timezone.now()
        purchase_order.save(update_fields=['status', 'received_at', 'updated_at'])

    logger.info(f"Received purchase order {purchase_order.po_number}: {len(received)} product(s) restocked")
    return purchase_order, received
