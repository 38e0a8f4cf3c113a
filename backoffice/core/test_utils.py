"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from backoffice.catalog.models import Category, Product
from backoffice.parties.models import Client, Supplier, Worker
from backoffice.orders.models import Order, OrderItem, PurchaseOrder, PurchaseOrderItem
from backoffice.logistics.models import Vehicle, Issuance, IssuanceItem, Shipment
from backoffice.tools.models import Tool, ToolBooking
from backoffice.tasks.models import Task, Subtask
from backoffice.core.utils import generate_reference_number
from decimal import Decimal
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', role=User.ROLE_STAFF,
                    permissions=None, is_superuser=False, first_name=''):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            role=role,
            permissions=list(permissions or []),
            is_superuser=is_superuser,
            first_name=first_name,
        )

    @staticmethod
    def create_admin(**kwargs):
        return TestDataFactory.create_user(role=User.ROLE_ADMIN, **kwargs)

    @staticmethod
    def create_manager(**kwargs):
        return TestDataFactory.create_user(role=User.ROLE_MANAGER, **kwargs)

    @staticmethod
    def create_approver(**kwargs):
        return TestDataFactory.create_user(role=User.ROLE_APPROVER, **kwargs)

    @staticmethod
    def create_category(name=None, parent=None, description=''):
        """Create a test category"""
        if not name:
            name = f'Category {TestDataFactory.random_string(6)}'
        return Category.objects.create(name=name, parent=parent, description=description)

    @staticmethod
    def create_product(name=None, sku=None, category=None, stock=100, reorder_level=10,
                       unit_price=Decimal('10.00')):
        """Create a test product"""
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        if not sku:
            sku = f'SKU_{TestDataFactory.random_string(8)}'
        return Product.objects.create(
            name=name,
            sku=sku,
            category=category,
            stock=stock,
            reorder_level=reorder_level,
            unit_price=unit_price,
        )

    @staticmethod
    def create_client(name=None, project_name=''):
        """Create a test client"""
        if not name:
            name = f'Client_{TestDataFactory.random_string(6)}'
        return Client.objects.create(
            name=name,
            project_name=project_name,
            email=f'{name.lower()}@test.com',
            phone='1234567890',
        )

    @staticmethod
    def create_supplier(name=None, status=Supplier.STATUS_APPROVED):
        """Create a test supplier"""
        if not name:
            name = f'Supplier {TestDataFactory.random_string(6)}'
        return Supplier.objects.create(
            name=name,
            contact_person='Jane Doe',
            address=f'Test Address {name}',
            supplier_type='Materials',
            status=status,
        )

    @staticmethod
    def create_worker(name=None, position='Helper'):
        if not name:
            name = f'Worker {TestDataFactory.random_string(6)}'
        return Worker.objects.create(name=name, position=position)

    @staticmethod
    def create_order(client=None, user=None, status=Order.STATUS_PENDING, items=None, order_date=None):
        """Create an order; `items` is a list of (product, quantity, unit_price)"""
        order = Order.objects.create(
            order_number=generate_reference_number('ORD', Order, 'order_number'),
            client=client or TestDataFactory.create_client(),
            status=status,
            created_by=user,
            **({'order_date': order_date} if order_date else {}),
        )
        for product, quantity, unit_price in items or []:
            OrderItem.objects.create(order=order, product=product, quantity=quantity, unit_price=unit_price)
        return order

    @staticmethod
    def create_purchase_order(supplier=None, user=None, status=PurchaseOrder.STATUS_ORDERED, items=None):
        """Create a purchase order; `items` is a list of (product, quantity, unit_price)"""
        purchase_order = PurchaseOrder.objects.create(
            po_number=generate_reference_number('PO', PurchaseOrder, 'po_number'),
            supplier=supplier or TestDataFactory.create_supplier(),
            status=status,
            created_by=user,
        )
        for product, quantity, unit_price in items or []:
            PurchaseOrderItem.objects.create(
                purchase_order=purchase_order, product=product, quantity=quantity, unit_price=unit_price
            )
        return purchase_order

    @staticmethod
    def create_vehicle(plate_number=None, registration_date=None, registration_expiry_date=None):
        if not plate_number:
            plate_number = f'PLT-{TestDataFactory.random_string(5).upper()}'
        return Vehicle.objects.create(
            vehicle_type='Truck',
            plate_number=plate_number,
            make='Isuzu',
            model='Elf',
            year=2020,
            registration_date=registration_date,
            registration_expiry_date=registration_expiry_date,
        )

    @staticmethod
    def create_issuance(client=None, user=None, items=None):
        """Create an issuance without touching stock; `items` is a list of (product, quantity)"""
        issuance = Issuance.objects.create(
            issuance_number=generate_reference_number('ISS', Issuance, 'issuance_number'),
            client=client or TestDataFactory.create_client(),
            issued_by=user,
        )
        for product, quantity in items or []:
            IssuanceItem.objects.create(issuance=issuance, product=product, quantity=quantity)
        return issuance

    @staticmethod
    def create_shipment(issuance=None, vehicle=None, status=Shipment.STATUS_PENDING):
        return Shipment.objects.create(
            shipment_number=generate_reference_number('SHP', Shipment, 'shipment_number'),
            issuance=issuance or TestDataFactory.create_issuance(),
            vehicle=vehicle,
            status=status,
        )

    @staticmethod
    def create_tool(name=None, serial_number=None, status=Tool.STATUS_AVAILABLE, condition=Tool.CONDITION_GOOD,
                    **kwargs):
        """Create a test tool"""
        if not name:
            name = f'Tool_{TestDataFactory.random_string(6)}'
        if not serial_number:
            serial_number = f'SN-{TestDataFactory.random_string(8).upper()}'
        return Tool.objects.create(
            name=name,
            serial_number=serial_number,
            status=status,
            condition=condition,
            **kwargs
        )

    @staticmethod
    def create_booking(user, tools, worker=None, booking_type=ToolBooking.TYPE_BORROW,
                       start_date=None, end_date=None):
        """Create a pending tool booking"""
        booking = ToolBooking.objects.create(
            requested_by=user,
            requested_for=worker or TestDataFactory.create_worker(),
            booking_type=booking_type,
            start_date=start_date,
            end_date=end_date,
        )
        booking.tools.set(tools)
        return booking

    @staticmethod
    def create_task(title=None, assigned_to=None, created_by=None, status=Task.STATUS_PENDING,
                    parent_task=None, due_date=None, subtasks=None):
        """Create a test task; `subtasks` is a list of (title, completed)"""
        if not title:
            title = f'Task {TestDataFactory.random_string(6)}'
        task = Task.objects.create(
            title=title,
            assigned_to=assigned_to,
            created_by=created_by,
            status=status,
            parent_task=parent_task,
            due_date=due_date,
        )
        for subtask_title, completed in subtasks or []:
            Subtask.objects.create(task=task, title=subtask_title, completed=completed)
        return task


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
