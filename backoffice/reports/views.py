import logging
from decimal import Decimal

from django.db.models import Count, DecimalField, ExpressionWrapper, F, Sum
from django.db.models.functions import TruncMonth
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backoffice.catalog.models import Product
from backoffice.core.authorization import can_view_page
from backoffice.core.cache_utils import (
    cached_query, TOOL_STATUS_CACHE_TTL, ANALYTICS_CACHE_TTL, REPORTS_PREFIX
)
from backoffice.orders.models import Order, OrderItem
from backoffice.parties.models import Client
from backoffice.tools.models import Tool

logger = logging.getLogger(__name__)

TOOL_STATUS_BUCKETS = ('Available', 'In Use', 'Defective')


@cached_query(cache_ttl=TOOL_STATUS_CACHE_TTL, key_prefix=f"{REPORTS_PREFIX}:tool_status")
def get_tool_status_summary():
    """Tool counts for the dashboard chart.

    Assigned tools count as In Use. Defective counts tools in bad condition
    whatever their status, so a tool can appear in two buckets. Tools under
    maintenance only show up as Defective when their condition says so.
    """
    by_status = dict(Tool.objects.order_by().values_list('status').annotate(count=Count('id')))
    defective = Tool.objects.filter(condition__in=Tool.DEFECTIVE_CONDITIONS).count()

    summary = {
        'Available': by_status.get(Tool.STATUS_AVAILABLE, 0),
        'In Use': by_status.get(Tool.STATUS_IN_USE, 0) + by_status.get(Tool.STATUS_ASSIGNED, 0),
        'Defective': defective,
    }
    return {
        'total': sum(by_status.values()),
        'summary': summary,
        'chart': [{'status': bucket, 'count': summary[bucket]} for bucket in TOOL_STATUS_BUCKETS],
    }


@cached_query(cache_ttl=ANALYTICS_CACHE_TTL, key_prefix=f"{REPORTS_PREFIX}:analytics")
def get_analytics_summary():
    line_total = ExpressionWrapper(F('quantity') * F('unit_price'), output_field=DecimalField(max_digits=14, decimal_places=2))
    items = OrderItem.objects.exclude(order__status=Order.STATUS_CANCELLED)

    total_revenue = items.aggregate(total=Sum(line_total))['total'] or Decimal('0.00')

    monthly = items.annotate(
        month=TruncMonth('order__order_date')
    ).values('month').annotate(
        revenue=Sum(line_total),
        orders=Count('order', distinct=True),
    ).order_by('month')

    orders_by_status = dict(Order.objects.order_by().values_list('status').annotate(count=Count('id')))

    return {
        'total_revenue': float(total_revenue),
        'total_orders': Order.objects.count(),
        'total_clients': Client.objects.count(),
        'total_products': Product.objects.count(),
        'low_stock_products': Product.objects.filter(stock__lte=F('reorder_level')).count(),
        'orders_by_status': [
            {'status': value, 'count': orders_by_status.get(value, 0)}
            for value, _label in Order.STATUS_CHOICES
        ],
        'monthly_revenue': [
            {
                'month': row['month'].strftime('%Y-%m'),
                'revenue': float(row['revenue'] or 0),
                'orders': row['orders'],
            }
            for row in monthly
        ],
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated, can_view_page('/')])
def tool_status(request):
    """Available / In Use / Defective tool counts"""
    return Response(get_tool_status_summary())


@api_view(['GET'])
@permission_classes([IsAuthenticated, can_view_page('/analytics')])
def analytics(request):
    """Revenue and headline counts for the analytics page"""
    return Response(get_analytics_summary())
