"""
Test suite for Logistics module
Tests: vehicles and registration expiry, issuances and stock, shipments and delivery confirmation
"""
from datetime import date, timedelta

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backoffice.catalog.models import Product
from backoffice.core.models import AuditLog
from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backoffice.logistics.models import Vehicle, Issuance, Shipment, add_years


class VehicleModelTests(TestCase):

    def test_add_years_leap_day(self):
        self.assertEqual(add_years(date(2024, 2, 29), 1), date(2025, 2, 28))
        self.assertEqual(add_years(date(2023, 6, 15), 1), date(2024, 6, 15))

    def test_default_expiry(self):
        vehicle = TestDataFactory.create_vehicle(registration_date=date(2024, 3, 1))
        self.assertEqual(vehicle.registration_expiry_date, date(2025, 3, 1))

    def test_expiry_status(self):
        vehicle = TestDataFactory.create_vehicle(
            registration_date=date(2024, 1, 1), registration_expiry_date=date(2025, 1, 1)
        )
        self.assertEqual(vehicle.expiry_status(today=date(2025, 1, 11))['state'], 'expired')
        self.assertEqual(vehicle.expiry_status(today=date(2025, 1, 11))['days'], 10)
        self.assertEqual(vehicle.expiry_status(today=date(2024, 12, 2))['message'], 'Expires in 30 days')
        self.assertIsNone(vehicle.expiry_status(today=date(2024, 6, 1)))

    def test_no_registration(self):
        self.assertIsNone(TestDataFactory.create_vehicle().expiry_status())


class VehicleTests(TestCase):
    """Test vehicle endpoints"""

    def setUp(self):
        self.manager = TestDataFactory.create_manager()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def _data(self, **overrides):
        data = {
            'vehicle_type': 'Truck',
            'plate_number': ' abc-123 ',
            'make': 'Isuzu',
            'model': 'Forward',
            'year': 2021,
            'registration_date': '2024-02-29',
        }
        data.update(overrides)
        return data

    def test_create(self):
        response = self.client.post('/api/v1/vehicles/', self._data())
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['plate_number'], 'ABC-123')
        self.assertEqual(response.data['registration_expiry_date'], '2025-02-28')

    def test_duplicate_plate_any_case(self):
        TestDataFactory.create_vehicle(plate_number='ABC-123')
        response = self.client.post('/api/v1/vehicles/', self._data(plate_number='abc-123'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('plate_number', response.data)

    def test_year_range(self):
        next_year = timezone.localdate().year + 1
        response = self.client.post('/api/v1/vehicles/', self._data(year=1899))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post('/api/v1/vehicles/', self._data(year=next_year + 1))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post('/api/v1/vehicles/', self._data(year=next_year))
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_expiry_before_registration(self):
        response = self.client.post('/api/v1/vehicles/', self._data(registration_expiry_date='2024-01-01'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_expired_vehicle_flagged(self):
        today = timezone.localdate()
        TestDataFactory.create_vehicle(
            registration_date=today - timedelta(days=400), registration_expiry_date=today - timedelta(days=5)
        )
        response = self.client.get('/api/v1/vehicles/')
        self.assertEqual(response.data[0]['expiry_status']['state'], 'expired')

    def test_staff_read_only(self):
        self.client.authenticate_user(TestDataFactory.create_user(permissions=['/vehicles']))
        self.assertEqual(self.client.get('/api/v1/vehicles/').status_code, status.HTTP_200_OK)
        response = self.client.post('/api/v1/vehicles/', self._data())
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Vehicle.objects.exists())


class IssuanceTests(TestCase):
    """Test issuing materials"""

    def setUp(self):
        self.staff = TestDataFactory.create_user(permissions=['/issuance'])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.staff)
        self.client_record = TestDataFactory.create_client()
        self.cement = TestDataFactory.create_product(name='Cement', stock=20)
        self.sand = TestDataFactory.create_product(name='Sand', stock=3)

    def test_issue_deducts_stock(self):
        response = self.client.post('/api/v1/issuances/', {
            'client': self.client_record.id,
            'items': [{'product': self.cement.id, 'quantity': 5}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['issuance_number'].startswith('ISS-'))
        self.cement.refresh_from_db()
        self.assertEqual(self.cement.stock, 15)
        self.assertEqual(self.cement.history.first().stock, 15)

    def test_insufficient_stock_changes_nothing(self):
        response = self.client.post('/api/v1/issuances/', {
            'client': self.client_record.id,
            'items': [
                {'product': self.cement.id, 'quantity': 5},
                {'product': self.sand.id, 'quantity': 4},
            ],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Product.objects.get(pk=self.cement.pk).stock, 20)
        self.assertFalse(Issuance.objects.exists())

    def test_items_required(self):
        response = self.client.post('/api/v1/issuances/', {'client': self.client_record.id, 'items': []},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_restores_stock(self):
        issuance = TestDataFactory.create_issuance(client=self.client_record, items=[(self.cement, 5)])
        response = self.client.delete(f'/api/v1/issuances/{issuance.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(TestDataFactory.create_manager())
        response = self.client.delete(f'/api/v1/issuances/{issuance.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.cement.refresh_from_db()
        self.assertEqual(self.cement.stock, 25)


class ShipmentTests(TestCase):
    """Test shipments and proof of delivery"""

    def setUp(self):
        self.staff = TestDataFactory.create_user(permissions=['/logistics'])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.staff)
        self.product = TestDataFactory.create_product(name='Rebar')
        self.issuance = TestDataFactory.create_issuance(items=[(self.product, 2)])
        self.vehicle = TestDataFactory.create_vehicle()

    def test_create(self):
        response = self.client.post('/api/v1/shipments/', {
            'issuance': self.issuance.id,
            'vehicle': self.vehicle.id,
            'estimated_delivery_date': '2030-01-10',
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['shipment_number'].startswith('SHP-'))
        self.assertEqual(response.data['status'], Shipment.STATUS_PENDING)

    def test_can_not_set_delivered_directly(self):
        shipment = TestDataFactory.create_shipment(issuance=self.issuance)
        response = self.client.patch(f'/api/v1/shipments/{shipment.id}/', {'status': Shipment.STATUS_DELIVERED})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.patch(f'/api/v1/shipments/{shipment.id}/', {'status': Shipment.STATUS_IN_TRANSIT})
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_detail_resolves_issuance(self):
        shipment = TestDataFactory.create_shipment(issuance=self.issuance)
        response = self.client.get(f'/api/v1/shipments/{shipment.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        issuance = response.data['issuance']
        self.assertEqual(issuance['client']['id'], self.issuance.client_id)
        self.assertEqual(issuance['items'][0]['product']['name'], 'Rebar')
        self.assertEqual(issuance['items'][0]['quantity'], 2)

    def test_shipment_without_issuance_not_found(self):
        shipment = TestDataFactory.create_shipment(issuance=self.issuance)
        Shipment.objects.filter(pk=shipment.pk).update(issuance=None)
        response = self.client.get(f'/api/v1/shipments/{shipment.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_confirm_delivery(self):
        shipment = TestDataFactory.create_shipment(issuance=self.issuance, status=Shipment.STATUS_IN_TRANSIT)
        payload = {'signature': 'data:image/png;base64,AAAA', 'delivery_photo_url': 'https://files.example.com/pod.jpg'}
        response = self.client.post(f'/api/v1/shipments/{shipment.id}/confirm-delivery/', payload)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Shipment.STATUS_DELIVERED)
        self.assertEqual(response.data['actual_delivery_date'], timezone.localdate().isoformat())
        self.assertTrue(AuditLog.objects.filter(action='delivery_confirm', object_id=str(shipment.id)).exists())

        response = self.client.post(f'/api/v1/shipments/{shipment.id}/confirm-delivery/', payload)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_confirm_delivery_requires_proof(self):
        shipment = TestDataFactory.create_shipment(issuance=self.issuance)
        response = self.client.post(f'/api/v1/shipments/{shipment.id}/confirm-delivery/', {'signature': 'x'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        shipment.refresh_from_db()
        self.assertEqual(shipment.status, Shipment.STATUS_PENDING)
