"""
Test suite for Orders module
Tests: client orders with items, purchase orders, supplier approval, receiving stock
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from backoffice.core.models import AuditLog
from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backoffice.orders.models import Order, OrderItem, PurchaseOrder
from backoffice.orders.services import receive_purchase_order, PurchaseOrderStateError
from backoffice.parties.models import Supplier


class OrderModelTests(TestCase):

    def test_total(self):
        product = TestDataFactory.create_product()
        order = TestDataFactory.create_order(items=[
            (product, 3, Decimal('10.00')),
            (product, 1, Decimal('2.50')),
        ])
        self.assertEqual(order.get_total(), Decimal('32.50'))
        self.assertEqual(TestDataFactory.create_order().get_total(), 0)


class OrderTests(TestCase):
    """Test order endpoints"""

    def setUp(self):
        self.staff = TestDataFactory.create_user(permissions=['/orders'])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.staff)
        self.client_record = TestDataFactory.create_client(name='Acme')
        self.product = TestDataFactory.create_product(unit_price=Decimal('7.25'))

    def test_create_with_items(self):
        data = {
            'client': self.client_record.id,
            'notes': 'Deliver before noon',
            'items': [
                {'product': self.product.id, 'quantity': 2},
                {'product': self.product.id, 'quantity': 1, 'unit_price': '5.00'},
            ],
        }
        response = self.client.post('/api/v1/orders/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['order_number'].startswith('ORD-'))
        self.assertEqual(response.data['total'], 19.5)
        self.assertEqual([item['unit_price'] for item in response.data['items']], ['7.25', '5.00'])
        order = Order.objects.get(pk=response.data['id'])
        self.assertEqual(order.created_by, self.staff)

    def test_create_requires_items(self):
        response = self.client.post('/api/v1/orders/', {'client': self.client_record.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('items', response.data)

        response = self.client.post('/api/v1/orders/', {
            'client': self.client_record.id,
            'items': [{'product': self.product.id, 'quantity': 0}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_replaces_items_and_logs_status(self):
        order = TestDataFactory.create_order(client=self.client_record, items=[(self.product, 1, Decimal('1.00'))])
        response = self.client.patch(f'/api/v1/orders/{order.id}/', {
            'status': Order.STATUS_PROCESSING,
            'items': [{'product': self.product.id, 'quantity': 4, 'unit_price': '2.00'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 8.0)
        self.assertEqual(OrderItem.objects.filter(order=order).count(), 1)
        self.assertTrue(AuditLog.objects.filter(action='status_change', model_name='Order').exists())

    def test_patch_without_items_keeps_items(self):
        order = TestDataFactory.create_order(client=self.client_record, items=[(self.product, 1, Decimal('1.00'))])
        response = self.client.patch(f'/api/v1/orders/{order.id}/', {'notes': 'Updated'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['items']), 1)

    def test_filters(self):
        other = TestDataFactory.create_client(name='Globex')
        TestDataFactory.create_order(client=self.client_record, status=Order.STATUS_SHIPPED)
        TestDataFactory.create_order(client=other)
        response = self.client.get('/api/v1/orders/?status=shipped')
        self.assertEqual(len(response.data), 1)
        response = self.client.get('/api/v1/orders/?search=globex')
        self.assertEqual(response.data[0]['client_name'], 'Globex')

    def test_only_managers_delete(self):
        order = TestDataFactory.create_order(client=self.client_record)
        response = self.client.delete(f'/api/v1/orders/{order.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(TestDataFactory.create_manager())
        response = self.client.delete(f'/api/v1/orders/{order.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_page_permission(self):
        self.client.authenticate_user(TestDataFactory.create_user(permissions=['/tools']))
        response = self.client.get('/api/v1/orders/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class PurchaseOrderTests(TestCase):
    """Test purchase order endpoints"""

    def setUp(self):
        self.manager = TestDataFactory.create_manager()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)
        self.supplier = TestDataFactory.create_supplier()
        self.product = TestDataFactory.create_product(stock=10)

    def test_create(self):
        response = self.client.post('/api/v1/purchase-orders/', {
            'supplier': self.supplier.id,
            'status': PurchaseOrder.STATUS_ORDERED,
            'items': [{'product': self.product.id, 'quantity': 5, 'unit_price': '3.00'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['po_number'].startswith('PO-'))
        self.assertEqual(response.data['total'], 15.0)

    def test_pending_supplier_rejected(self):
        pending = TestDataFactory.create_supplier(status=Supplier.STATUS_PENDING)
        response = self.client.post('/api/v1/purchase-orders/', {
            'supplier': pending.id,
            'items': [{'product': self.product.id, 'quantity': 5}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('supplier', response.data)

    def test_status_received_only_through_receive(self):
        purchase_order = TestDataFactory.create_purchase_order(supplier=self.supplier)
        response = self.client.patch(f'/api/v1/purchase-orders/{purchase_order.id}/',
                                     {'status': PurchaseOrder.STATUS_RECEIVED}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_receive_adds_stock(self):
        purchase_order = TestDataFactory.create_purchase_order(
            supplier=self.supplier, items=[(self.product, 5, Decimal('3.00'))]
        )
        response = self.client.post(f'/api/v1/purchase-orders/{purchase_order.id}/receive/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], PurchaseOrder.STATUS_RECEIVED)
        self.assertIsNotNone(response.data['received_at'])

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 15)
        self.assertEqual(self.product.history.first().stock, 15)
        log = AuditLog.objects.get(action='po_receive')
        self.assertEqual(log.changes['received'], {str(self.product.id): 5})

    def test_receive_twice(self):
        purchase_order = TestDataFactory.create_purchase_order(
            supplier=self.supplier, items=[(self.product, 5, Decimal('3.00'))]
        )
        receive_purchase_order(purchase_order.id)
        response = self.client.post(f'/api/v1/purchase-orders/{purchase_order.id}/receive/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 15)

    def test_receive_cancelled(self):
        purchase_order = TestDataFactory.create_purchase_order(
            supplier=self.supplier, status=PurchaseOrder.STATUS_CANCELLED
        )
        with self.assertRaises(PurchaseOrderStateError):
            receive_purchase_order(purchase_order.id)

    def test_received_order_is_locked(self):
        purchase_order = TestDataFactory.create_purchase_order(supplier=self.supplier, status=PurchaseOrder.STATUS_RECEIVED)
        response = self.client.patch(f'/api/v1/purchase-orders/{purchase_order.id}/', {'notes': 'late'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.delete(f'/api/v1/purchase-orders/{purchase_order.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_staff_can_not_receive(self):
        purchase_order = TestDataFactory.create_purchase_order(supplier=self.supplier)
        self.client.authenticate_user(TestDataFactory.create_user(permissions=['/purchase-orders']))
        response = self.client.post(f'/api/v1/purchase-orders/{purchase_order.id}/receive/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
