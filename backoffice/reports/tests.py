"""
Test suite for Reports module
Tests: tool status chart, analytics summary, caching and page permissions
"""
from datetime import date
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from rest_framework import status

from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backoffice.orders.models import Order
from backoffice.tools.models import Tool


class ToolStatusReportTests(TestCase):
    """Test the dashboard tool status chart"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user(permissions=['/'])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_buckets(self):
        """Assigned counts as In Use, bad condition counts as Defective on top"""
        TestDataFactory.create_tool(status=Tool.STATUS_AVAILABLE)
        TestDataFactory.create_tool(status=Tool.STATUS_AVAILABLE, condition=Tool.CONDITION_NEEDS_REPAIR)
        TestDataFactory.create_tool(status=Tool.STATUS_IN_USE)
        TestDataFactory.create_tool(status=Tool.STATUS_ASSIGNED)
        TestDataFactory.create_tool(status=Tool.STATUS_MAINTENANCE, condition=Tool.CONDITION_DAMAGED)

        response = self.client.get('/api/v1/reports/tool-status/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 5)
        self.assertEqual(response.data['summary'], {'Available': 2, 'In Use': 2, 'Defective': 2})
        self.assertEqual([row['status'] for row in response.data['chart']], ['Available', 'In Use', 'Defective'])

    def test_empty(self):
        response = self.client.get('/api/v1/reports/tool-status/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 0)
        self.assertEqual(response.data['summary'], {'Available': 0, 'In Use': 0, 'Defective': 0})

    def test_cache_invalidated_when_tool_changes(self):
        """Saving a tool clears the cached report"""
        tool = TestDataFactory.create_tool()
        first = self.client.get('/api/v1/reports/tool-status/')
        self.assertEqual(first.data['summary']['Available'], 1)

        tool.status = Tool.STATUS_IN_USE
        tool.save()

        second = self.client.get('/api/v1/reports/tool-status/')
        self.assertEqual(second.data['summary']['Available'], 0)
        self.assertEqual(second.data['summary']['In Use'], 1)

    def test_requires_dashboard_page(self):
        other = TestDataFactory.create_user(permissions=['/tools'])
        self.client.authenticate_user(other)
        response = self.client.get('/api/v1/reports/tool-status/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/reports/tool-status/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class AnalyticsReportTests(TestCase):
    """Test the analytics summary"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_manager()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.client_record = TestDataFactory.create_client()
        self.product = TestDataFactory.create_product(stock=5, reorder_level=10)
        self.other_product = TestDataFactory.create_product(stock=50, reorder_level=10)

    def test_revenue_excludes_cancelled_orders(self):
        TestDataFactory.create_order(
            client=self.client_record, order_date=date(2024, 1, 15),
            items=[(self.product, 2, Decimal('10.00')), (self.other_product, 1, Decimal('5.50'))],
        )
        TestDataFactory.create_order(
            client=self.client_record, order_date=date(2024, 2, 3),
            items=[(self.product, 1, Decimal('100.00'))],
        )
        TestDataFactory.create_order(
            client=self.client_record, status=Order.STATUS_CANCELLED, order_date=date(2024, 2, 4),
            items=[(self.product, 10, Decimal('100.00'))],
        )

        response = self.client.get('/api/v1/reports/analytics/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_revenue'], 125.5)
        self.assertEqual(response.data['total_orders'], 3)
        self.assertEqual(response.data['total_clients'], 1)
        self.assertEqual(response.data['total_products'], 2)
        self.assertEqual(response.data['low_stock_products'], 1)
        self.assertEqual(response.data['monthly_revenue'], [
            {'month': '2024-01', 'revenue': 25.5, 'orders': 1},
            {'month': '2024-02', 'revenue': 100.0, 'orders': 1},
        ])
        cancelled = [row for row in response.data['orders_by_status'] if row['status'] == Order.STATUS_CANCELLED]
        self.assertEqual(cancelled[0]['count'], 1)

    def test_no_orders(self):
        response = self.client.get('/api/v1/reports/analytics/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_revenue'], 0)
        self.assertEqual(response.data['monthly_revenue'], [])

    def test_staff_needs_analytics_page(self):
        staff = TestDataFactory.create_user(permissions=['/'])
        self.client.authenticate_user(staff)
        response = self.client.get('/api/v1/reports/analytics/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        allowed = TestDataFactory.create_user(permissions=['/analytics'])
        self.client.authenticate_user(allowed)
        response = self.client.get('/api/v1/reports/analytics/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
