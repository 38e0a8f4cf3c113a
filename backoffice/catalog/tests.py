"""
Test suite for Catalog module
Tests: category CRUD and tree, parent cycle guard, products, stock history and filters
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from backoffice.catalog.models import Category, Product, StockHistory
from backoffice.core.models import AuditLog
from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class CategoryTests(TestCase):
    """Test category endpoints"""

    def setUp(self):
        self.manager = TestDataFactory.create_manager()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)
        self.tools = TestDataFactory.create_category(name='Tools')
        self.hand_tools = TestDataFactory.create_category(name='Hand Tools', parent=self.tools)
        self.hammer = TestDataFactory.create_category(name='Hammer', parent=self.hand_tools)

    def test_create_title_cases_name(self):
        response = self.client.post('/api/v1/categories/', {'name': '  power tOOLS ', 'parent': self.tools.id})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Power Tools')
        self.assertEqual(Category.objects.get(pk=response.data['id']).parent, self.tools)

    def test_tree(self):
        TestDataFactory.create_category(name='Adhesives')
        response = self.client.get('/api/v1/categories/tree/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([node['name'] for node in response.data], ['Adhesives', 'Tools'])
        tools = response.data[1]
        self.assertEqual(tools['children'][0]['name'], 'Hand Tools')
        self.assertEqual(tools['children'][0]['children'][0]['name'], 'Hammer')

    def test_flat_tree(self):
        response = self.client.get('/api/v1/categories/tree/?flat=true')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rows = [(row['name'], row['level'], row['has_children']) for row in response.data]
        self.assertEqual(rows, [('Tools', 0, True), ('Hand Tools', 1, True), ('Hammer', 2, False)])

    def test_tree_with_stored_cycle(self):
        Category.objects.filter(pk=self.tools.pk).update(parent=self.hammer)
        response = self.client.get('/api/v1/categories/tree/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(sorted(response.data['cycle']), sorted([self.tools.id, self.hand_tools.id, self.hammer.id]))

    def test_move_under_own_descendant_rejected(self):
        response = self.client.patch(f'/api/v1/categories/{self.tools.id}/', {'parent': self.hammer.id})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('parent', response.data)

        response = self.client.patch(f'/api/v1/categories/{self.tools.id}/', {'parent': self.tools.id})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_move_to_other_branch(self):
        other = TestDataFactory.create_category(name='Other')
        response = self.client.patch(f'/api/v1/categories/{self.hand_tools.id}/', {'parent': other.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.hand_tools.refresh_from_db()
        self.assertEqual(self.hand_tools.parent, other)

    def test_detail_has_path(self):
        response = self.client.get(f'/api/v1/categories/{self.hammer.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['name'] for row in response.data['path']], ['Tools', 'Hand Tools'])

        response = self.client.get(f'/api/v1/categories/{self.tools.id}/')
        self.assertEqual(response.data['path'], [])

    def test_detail_with_stored_cycle(self):
        Category.objects.filter(pk=self.tools.pk).update(parent=self.hammer)
        response = self.client.get(f'/api/v1/categories/{self.hammer.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(sorted(response.data['cycle']), sorted([self.tools.id, self.hand_tools.id, self.hammer.id]))

    def test_parent_choices_exclude_subtree(self):
        other = TestDataFactory.create_category(name='Other')
        response = self.client.get(f'/api/v1/categories/{self.tools.id}/parent-choices/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.data], [other.id])

    def test_delete_cascades(self):
        product = TestDataFactory.create_product(category=self.hammer)
        response = self.client.delete(f'/api/v1/categories/{self.tools.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Category.objects.exists())
        product.refresh_from_db()
        self.assertIsNone(product.category)
        log = AuditLog.objects.get(action='delete', model_name='Category')
        self.assertEqual(log.changes['subcategories'], sorted([self.hand_tools.id, self.hammer.id]))

    def test_staff_read_only(self):
        staff = TestDataFactory.create_user(permissions=['/categories'])
        self.client.authenticate_user(staff)
        self.assertEqual(self.client.get('/api/v1/categories/').status_code, status.HTTP_200_OK)
        response = self.client.post('/api/v1/categories/', {'name': 'Nope'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_page_permission_required(self):
        staff = TestDataFactory.create_user(permissions=['/tools'])
        self.client.authenticate_user(staff)
        response = self.client.get('/api/v1/categories/tree/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ProductTests(TestCase):
    """Test product endpoints"""

    def setUp(self):
        self.manager = TestDataFactory.create_manager()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)
        self.category = TestDataFactory.create_category(name='Electrical')
        self.sub_category = TestDataFactory.create_category(name='Cables', parent=self.category)

    def test_create_records_stock(self):
        data = {
            'name': 'Copper Wire',
            'sku': 'CW-001',
            'category': self.sub_category.id,
            'stock': 25,
            'reorder_level': 5,
            'unit_price': '12.50',
        }
        response = self.client.post('/api/v1/products/', data)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        product = Product.objects.get(sku='CW-001')
        self.assertEqual(product.history.count(), 1)
        self.assertEqual(product.history.first().stock, 25)

    def test_negative_stock_rejected(self):
        response = self.client.post('/api/v1/products/', {'name': 'Bad', 'stock': -1})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_stock_update_history_and_audit(self):
        product = TestDataFactory.create_product(stock=10)
        response = self.client.patch(f'/api/v1/products/{product.id}/', {'stock': 4})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(StockHistory.objects.filter(product=product).count(), 1)
        self.assertEqual(response.data['history'][0]['stock'], 4)
        log = AuditLog.objects.get(action='stock_update', object_id=str(product.id))
        self.assertEqual(log.changes['stock'], {'old': 10, 'new': 4})

    def test_price_update_leaves_history(self):
        product = TestDataFactory.create_product(stock=10)
        self.client.patch(f'/api/v1/products/{product.id}/', {'unit_price': '99.00'})
        self.assertFalse(StockHistory.objects.filter(product=product).exists())
        product.refresh_from_db()
        self.assertEqual(product.unit_price, Decimal('99.00'))

    def test_filter_by_category_includes_subcategories(self):
        in_parent = TestDataFactory.create_product(name='Switch', category=self.category)
        in_child = TestDataFactory.create_product(name='Cable', category=self.sub_category)
        TestDataFactory.create_product(name='Hammer')

        response = self.client.get(f'/api/v1/products/?category={self.category.id}')
        self.assertEqual(sorted(row['id'] for row in response.data), sorted([in_parent.id, in_child.id]))

        response = self.client.get(f'/api/v1/products/?category={self.sub_category.id}')
        self.assertEqual([row['id'] for row in response.data], [in_child.id])

    def test_search_and_low_stock(self):
        low = TestDataFactory.create_product(name='Drill Bit', stock=2, reorder_level=5)
        TestDataFactory.create_product(name='Drill Press', stock=50, reorder_level=5)

        response = self.client.get('/api/v1/products/?search=drill&low_stock=true')
        self.assertEqual([row['id'] for row in response.data], [low.id])

        response = self.client.get('/api/v1/products/low-stock/')
        self.assertEqual([row['id'] for row in response.data], [low.id])
        self.assertTrue(response.data[0]['is_low_stock'])

    def test_staff_can_not_delete(self):
        product = TestDataFactory.create_product()
        self.client.authenticate_user(TestDataFactory.create_user(permissions=['/inventory']))
        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(Product.objects.filter(pk=product.pk).exists())

    def test_delete_product_used_by_order_rejected(self):
        product = TestDataFactory.create_product()
        TestDataFactory.create_order(items=[(product, 2, Decimal('10.00'))])
        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)
        self.assertTrue(Product.objects.filter(pk=product.pk).exists())
        self.assertFalse(AuditLog.objects.filter(action='delete', model_name='Product').exists())

    def test_delete(self):
        product = TestDataFactory.create_product()
        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(AuditLog.objects.filter(action='delete', model_name='Product').exists())
