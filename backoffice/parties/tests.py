"""
Test suite for Parties module
Tests: clients, supplier registration and approval, workers
"""
from django.test import TestCase
from rest_framework import status

from backoffice.core.models import AuditLog
from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backoffice.parties.models import Client, Supplier, Worker


class ClientTests(TestCase):
    """Test client endpoints"""

    def setUp(self):
        self.manager = TestDataFactory.create_manager()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def test_create_and_search(self):
        response = self.client.post('/api/v1/clients/', {'name': 'Acme Builders', 'project_name': 'Riverside Tower'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        TestDataFactory.create_client(name='Other')

        response = self.client.get('/api/v1/clients/?search=riverside')
        self.assertEqual([row['name'] for row in response.data], ['Acme Builders'])

    def test_delete_with_orders_rejected(self):
        client_record = TestDataFactory.create_client()
        TestDataFactory.create_order(client=client_record)
        response = self.client.delete(f'/api/v1/clients/{client_record.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Client.objects.filter(pk=client_record.pk).exists())

    def test_delete(self):
        client_record = TestDataFactory.create_client()
        response = self.client.delete(f'/api/v1/clients/{client_record.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(AuditLog.objects.filter(action='delete', model_name='Client').exists())

    def test_staff_read_only(self):
        self.client.authenticate_user(TestDataFactory.create_user(permissions=['/clients']))
        self.assertEqual(self.client.get('/api/v1/clients/').status_code, status.HTTP_200_OK)
        response = self.client.post('/api/v1/clients/', {'name': 'Nope'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class SupplierTests(TestCase):
    """Test supplier registration and approval"""

    def setUp(self):
        self.manager = TestDataFactory.create_manager()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)
        self.product = TestDataFactory.create_product(name='Cement')

    def _register(self, **overrides):
        data = {
            'name': 'northwind TRADING',
            'contact_person': 'Ann Lee',
            'address': '1 Harbour Road',
            'supplier_type': 'Materials',
            'supplied_products': [self.product.id],
            'status': Supplier.STATUS_APPROVED,
        }
        data.update(overrides)
        return self.client.post('/api/v1/suppliers/', data, format='json')

    def test_new_supplier_is_pending(self):
        response = self._register()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Northwind Trading')
        self.assertEqual(response.data['status'], Supplier.STATUS_PENDING)
        self.assertEqual(response.data['supplied_product_names'], ['Cement'])

    def test_missing_required_fields(self):
        response = self.client.post('/api/v1/suppliers/', {'name': 'Half'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('contact_person', response.data)

    def test_approver_sets_status(self):
        supplier = TestDataFactory.create_supplier(status=Supplier.STATUS_PENDING)
        approver = TestDataFactory.create_approver(permissions=['/suppliers'])
        self.client.authenticate_user(approver)

        response = self.client.post(f'/api/v1/suppliers/{supplier.id}/status/', {'status': 'Approved'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        supplier.refresh_from_db()
        self.assertEqual(supplier.status, Supplier.STATUS_APPROVED)
        log = AuditLog.objects.get(action='status_change', model_name='Supplier')
        self.assertEqual(log.changes['status'], {'old': 'Pending', 'new': 'Approved'})

    def test_invalid_status(self):
        supplier = TestDataFactory.create_supplier(status=Supplier.STATUS_PENDING)
        response = self.client.post(f'/api/v1/suppliers/{supplier.id}/status/', {'status': 'Pending'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_staff_can_not_approve(self):
        supplier = TestDataFactory.create_supplier(status=Supplier.STATUS_PENDING)
        self.client.authenticate_user(TestDataFactory.create_user(permissions=['/suppliers']))
        response = self.client.post(f'/api/v1/suppliers/{supplier.id}/status/', {'status': 'Approved'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_filter_by_status(self):
        TestDataFactory.create_supplier(name='Approved One')
        TestDataFactory.create_supplier(name='Pending One', status=Supplier.STATUS_PENDING)
        response = self.client.get('/api/v1/suppliers/?status=pending')
        self.assertEqual([row['name'] for row in response.data], ['Pending One'])

    def test_delete_with_purchase_orders_rejected(self):
        supplier = TestDataFactory.create_supplier()
        TestDataFactory.create_purchase_order(supplier=supplier)
        response = self.client.delete(f'/api/v1/suppliers/{supplier.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class WorkerTests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_staff_adds_worker_while_booking(self):
        self.client.authenticate_user(TestDataFactory.create_user(permissions=['/tool-booking']))
        response = self.client.post('/api/v1/workers/', {'name': 'Pedro', 'position': 'Mason'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        worker = Worker.objects.get(name='Pedro')

        response = self.client.delete(f'/api/v1/workers/{worker.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_requires_booking_page(self):
        self.client.authenticate_user(TestDataFactory.create_user(permissions=['/tools']))
        response = self.client.get('/api/v1/workers/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
