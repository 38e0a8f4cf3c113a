"""
Test suite for Core module
Tests: hierarchy builder, authorization context, auth endpoints, users, settings,
audit logs, global search and management commands
"""
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, SimpleTestCase
from rest_framework import status

from backoffice.catalog.models import Category
from backoffice.core.authorization import AuthorizationContext, ALL_PAGES
from backoffice.core.hierarchy import (
    build_tree, flatten_tree, descendant_ids, ancestor_ids, parent_map,
    would_create_cycle, name_sort_key, task_sort_key, CyclicHierarchyError
)
from backoffice.core.models import User, AuditLog, Setting
from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backoffice.core.utils import create_audit_log, generate_reference_number, to_title_case
from backoffice.orders.models import Order


def _ids(nodes):
    return [node['id'] for node in nodes]


def _all_ids(roots):
    return [node['id'] for node, _level in flatten_tree(roots)]


class HierarchyTests(SimpleTestCase):
    """Test building trees from flat parent references"""

    def test_three_levels(self):
        records = [
            {'id': 1, 'parent': None, 'name': 'Tools'},
            {'id': 2, 'parent': 1, 'name': 'Hand Tools'},
            {'id': 3, 'parent': 2, 'name': 'Hammer'},
        ]
        roots = build_tree(records, sort_key=name_sort_key)
        self.assertEqual(len(roots), 1)
        self.assertEqual(roots[0]['name'], 'Tools')
        self.assertEqual(roots[0]['children'][0]['name'], 'Hand Tools')
        self.assertEqual(roots[0]['children'][0]['children'][0]['name'], 'Hammer')
        self.assertEqual(roots[0]['children'][0]['children'][0]['children'], [])

    def test_empty_input(self):
        self.assertEqual(build_tree([]), [])

    def test_dangling_parent_is_root(self):
        roots = build_tree([{'id': 1, 'parent': 99, 'name': 'Orphan'}])
        self.assertEqual(_ids(roots), [1])

    def test_missing_parent_field_is_root(self):
        roots = build_tree([{'id': 1, 'name': 'Solo'}])
        self.assertEqual(_ids(roots), [1])

    def test_every_record_appears_once(self):
        records = [
            {'id': 1, 'parent': None, 'name': 'A'},
            {'id': 2, 'parent': 1, 'name': 'B'},
            {'id': 3, 'parent': 1, 'name': 'C'},
            {'id': 4, 'parent': 3, 'name': 'D'},
            {'id': 5, 'parent': 42, 'name': 'E'},
            {'id': 6, 'parent': None, 'name': 'F'},
        ]
        roots = build_tree(records, sort_key=name_sort_key)
        self.assertEqual(sorted(_all_ids(roots)), [1, 2, 3, 4, 5, 6])
        self.assertEqual(_ids(roots), [1, 5, 6])

    def test_resolving_parent_is_nested(self):
        records = [
            {'id': 2, 'parent': 1, 'name': 'Child'},
            {'id': 1, 'parent': None, 'name': 'Parent'},
        ]
        roots = build_tree(records)
        self.assertEqual(_ids(roots), [1])
        self.assertEqual(_ids(roots[0]['children']), [2])

    def test_alphabetical_roots(self):
        records = [
            {'id': 1, 'parent': None, 'name': 'Banana'},
            {'id': 2, 'parent': None, 'name': 'apple'},
            {'id': 3, 'parent': None, 'name': 'Cherry'},
        ]
        roots = build_tree(records, sort_key=name_sort_key)
        self.assertEqual([node['name'] for node in roots], ['apple', 'Banana', 'Cherry'])

    def test_children_sorted(self):
        records = [
            {'id': 1, 'parent': None, 'name': 'Root'},
            {'id': 2, 'parent': 1, 'name': 'Zinc'},
            {'id': 3, 'parent': 1, 'name': 'Brass'},
        ]
        roots = build_tree(records, sort_key=name_sort_key)
        self.assertEqual([child['name'] for child in roots[0]['children']], ['Brass', 'Zinc'])

    def test_input_order_kept_without_sort_key(self):
        records = [{'id': 3, 'name': 'c'}, {'id': 1, 'name': 'a'}, {'id': 2, 'name': 'b'}]
        self.assertEqual(_ids(build_tree(records)), [3, 1, 2])

    def test_idempotent_and_pure(self):
        records = [
            {'id': 1, 'parent': None, 'name': 'Tools'},
            {'id': 2, 'parent': 1, 'name': 'Hand Tools'},
        ]
        snapshot = [dict(record) for record in records]
        first = build_tree(records, sort_key=name_sort_key)
        second = build_tree(records, sort_key=name_sort_key)
        self.assertEqual(first, second)
        self.assertEqual(records, snapshot)
        self.assertNotIn('children', records[0])

    def test_duplicate_ids_last_wins(self):
        records = [
            {'id': 1, 'parent': None, 'name': 'Old'},
            {'id': 1, 'parent': None, 'name': 'New'},
        ]
        roots = build_tree(records)
        self.assertEqual([node['name'] for node in roots], ['New'])

    def test_custom_fields(self):
        records = [
            {'pk': 'a', 'parent_task': None},
            {'pk': 'b', 'parent_task': 'a'},
        ]
        roots = build_tree(records, id_field='pk', parent_field='parent_task', children_field='child_tasks')
        self.assertEqual(roots[0]['child_tasks'][0]['pk'], 'b')

    def test_cycle_raises(self):
        records = [
            {'id': 1, 'parent': 3},
            {'id': 2, 'parent': 1},
            {'id': 3, 'parent': 2},
            {'id': 4, 'parent': None},
        ]
        with self.assertRaises(CyclicHierarchyError) as ctx:
            build_tree(records)
        self.assertEqual(sorted(ctx.exception.cycle), [1, 2, 3])

    def test_self_parent_is_cycle(self):
        with self.assertRaises(CyclicHierarchyError) as ctx:
            build_tree([{'id': 7, 'parent': 7}])
        self.assertEqual(ctx.exception.cycle, [7])

    def test_flatten_levels(self):
        records = [
            {'id': 1, 'parent': None, 'name': 'A'},
            {'id': 2, 'parent': 1, 'name': 'B'},
            {'id': 3, 'parent': 2, 'name': 'C'},
            {'id': 4, 'parent': None, 'name': 'D'},
        ]
        rows = [(node['id'], level) for node, level in flatten_tree(build_tree(records, sort_key=name_sort_key))]
        self.assertEqual(rows, [(1, 0), (2, 1), (3, 2), (4, 0)])

    def test_descendants(self):
        records = [
            {'id': 1, 'parent': None},
            {'id': 2, 'parent': 1},
            {'id': 3, 'parent': 2},
            {'id': 4, 'parent': None},
        ]
        self.assertEqual(descendant_ids(records, 1), {2, 3})
        self.assertEqual(descendant_ids(records, 4), set())

    def test_ancestors(self):
        parents = parent_map([
            {'id': 1, 'parent': None},
            {'id': 2, 'parent': 1},
            {'id': 3, 'parent': 2},
        ])
        self.assertEqual(ancestor_ids(parents, 3), [2, 1])
        self.assertEqual(ancestor_ids(parents, 1), [])

    def test_ancestors_cycle(self):
        with self.assertRaises(CyclicHierarchyError):
            ancestor_ids({1: 2, 2: 1}, 1)

    def test_would_create_cycle(self):
        parents = {1: None, 2: 1, 3: 2}
        self.assertTrue(would_create_cycle(parents, 1, 3))
        self.assertTrue(would_create_cycle(parents, 2, 2))
        self.assertFalse(would_create_cycle(parents, 3, 1))
        self.assertFalse(would_create_cycle(parents, 1, None))

    def test_task_sort_key(self):
        records = [
            {'id': 1, 'status': 'Completed', 'created_at': '2024-01-03T00:00:00Z'},
            {'id': 2, 'status': 'Pending', 'created_at': '2024-01-01T00:00:00Z'},
            {'id': 3, 'status': 'In Progress', 'created_at': '2024-01-01T00:00:00Z'},
            {'id': 4, 'status': 'Pending', 'created_at': '2024-01-02T00:00:00Z'},
            {'id': 5, 'status': 'Delayed', 'created_at': None},
        ]
        self.assertEqual(_ids(build_tree(records, sort_key=task_sort_key)), [3, 5, 4, 2, 1])


class AuthorizationContextTests(TestCase):
    """Test role and page based access"""

    def test_anonymous(self):
        context = AuthorizationContext.for_user(None)
        self.assertFalse(context.authenticated)
        self.assertFalse(context.can_view('/'))
        self.assertEqual(context.visible_navigation(), [])

    def test_manager_sees_everything(self):
        context = AuthorizationContext.for_user(TestDataFactory.create_manager())
        self.assertTrue(context.can_manage)
        self.assertTrue(context.can_approve)
        self.assertFalse(context.is_admin)
        self.assertEqual(context.visible_pages(), list(ALL_PAGES))

    def test_approver(self):
        context = AuthorizationContext.for_user(TestDataFactory.create_approver(permissions=['/tool-booking']))
        self.assertTrue(context.can_approve)
        self.assertFalse(context.can_manage)
        self.assertEqual(context.visible_pages(), ['/tool-booking'])

    def test_staff_navigation_drops_empty_sections(self):
        user = TestDataFactory.create_user(permissions=['/tools', '/quality-control'])
        navigation = AuthorizationContext.for_user(user).visible_navigation()
        self.assertEqual(navigation, [
            {'title': 'Warehouse', 'items': [
                {'title': 'Assurance', 'items': [{'path': '/quality-control', 'label': 'Quality Control'}]},
            ]},
            {'title': 'Tools', 'items': [{'path': '/tools', 'label': 'Tool Management'}]},
        ])

    def test_superuser_without_role_is_admin(self):
        user = TestDataFactory.create_user(is_superuser=True)
        context = AuthorizationContext.for_user(user)
        self.assertTrue(context.is_admin)
        self.assertTrue(context.can_view('/settings'))


class AuthTests(TestCase):
    """Test login, refresh and the current user endpoint"""

    def setUp(self):
        self.user = TestDataFactory.create_user(
            username='jdoe', email='jdoe@example.com', permissions=['/tools', '/my-tools']
        )
        self.client = AuthenticatedAPIClient()

    def test_login_and_refresh(self):
        response = self.client.post('/api/v1/auth/login/', {'username': 'jdoe', 'password': 'testpass123'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

        response = self.client.post('/api/v1/auth/refresh/', {'refresh': response.data['refresh']})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_login_wrong_password(self):
        response = self.client.post('/api/v1/auth/login/', {'username': 'jdoe', 'password': 'nope'})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_for_deleted_user(self):
        response = self.client.post('/api/v1/auth/login/', {'username': 'jdoe', 'password': 'testpass123'})
        refresh = response.data['refresh']
        self.user.delete()
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': refresh})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['role'], User.ROLE_STAFF)
        self.assertEqual(response.data['display_first_name'], 'jdoe')
        self.assertFalse(response.data['can_manage'])
        self.assertEqual(response.data['pages'], ['/tools', '/my-tools'])
        self.assertEqual(response.data['navigation'][0]['title'], 'Tools')

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class UserManagementTests(TestCase):
    """Test user CRUD"""

    def setUp(self):
        self.manager = TestDataFactory.create_manager()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def test_create_user(self):
        data = {
            'username': 'newstaff',
            'email': 'newstaff@example.com',
            'password': 'Warehouse#2024',
            'password_confirm': 'Warehouse#2024',
            'role': User.ROLE_STAFF,
            'permissions': ['/tools', '/', '/tools'],
        }
        response = self.client.post('/api/v1/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = User.objects.get(username='newstaff')
        self.assertEqual(user.permissions, ['/', '/tools'])
        self.assertTrue(user.check_password('Warehouse#2024'))
        self.assertTrue(AuditLog.objects.filter(model_name='User', action='create', object_id=str(user.pk)).exists())

    def test_create_user_password_mismatch(self):
        data = {
            'username': 'mismatch',
            'password': 'Warehouse#2024',
            'password_confirm': 'Warehouse#2025',
        }
        response = self.client.post('/api/v1/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_page_rejected(self):
        user = TestDataFactory.create_user()
        response = self.client.patch(f'/api/v1/users/{user.pk}/', {'permissions': ['/nowhere']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_change_role(self):
        user = TestDataFactory.create_user()
        response = self.client.patch(f'/api/v1/users/{user.pk}/', {'role': User.ROLE_APPROVER}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertEqual(user.role, User.ROLE_APPROVER)

    def test_filter_by_role(self):
        TestDataFactory.create_approver()
        response = self.client.get('/api/v1/users/?role=approver')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_can_not_delete_self(self):
        response = self.client.delete(f'/api/v1/users/{self.manager.pk}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_staff_can_not_list_users(self):
        self.client.authenticate_user(TestDataFactory.create_user(permissions=list(ALL_PAGES)))
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class SettingTests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_admin_manages_settings(self):
        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.post('/api/v1/settings/', {'key': 'company_name', 'value': 'ACME'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Setting.objects.get(key='company_name').value, 'ACME')

    def test_manager_can_not_manage_settings(self):
        self.client.authenticate_user(TestDataFactory.create_manager())
        response = self.client.get('/api/v1/settings/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AuditLogTests(TestCase):

    def setUp(self):
        self.staff = TestDataFactory.create_user()
        self.other = TestDataFactory.create_user()
        create_audit_log(action='update', model_name='Tool', object_id=1, user=self.staff)
        create_audit_log(action='update', model_name='Tool', object_id=2, user=self.other)
        self.client = AuthenticatedAPIClient()

    def test_staff_sees_own_entries(self):
        self.client.authenticate_user(self.staff)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([entry['object_id'] for entry in response.data], ['1'])

        foreign = AuditLog.objects.get(user=self.other)
        response = self.client.get(f'/api/v1/audit-logs/{foreign.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_manager_sees_all_and_filters(self):
        self.client.authenticate_user(TestDataFactory.create_manager())
        response = self.client.get('/api/v1/audit-logs/?model=Tool')
        self.assertEqual(len(response.data), 2)
        response = self.client.get('/api/v1/audit-logs/?action=delete')
        self.assertEqual(len(response.data), 0)

    def test_missing_fields_skipped(self):
        self.assertIsNone(create_audit_log(action=None, model_name='Tool', object_id=1))


class UtilsTests(TestCase):

    def test_reference_number(self):
        reference = generate_reference_number('ORD', Order, 'order_number')
        self.assertRegex(reference, r'^ORD-\d{8}-[0-9A-F]{8}$')

    def test_title_case(self):
        self.assertEqual(to_title_case('hAND tOOLS and more'), 'Hand Tools And More')
        self.assertEqual(to_title_case(''), '')


class GlobalSearchTests(TestCase):
    """Test the global search endpoint"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        for index in range(7):
            TestDataFactory.create_tool(name=f'Drill {index}')
        TestDataFactory.create_product(name='Drill Bits')

    def test_limited_to_visible_pages(self):
        self.client.authenticate_user(TestDataFactory.create_user(permissions=['/tools']))
        response = self.client.get('/api/v1/search/?q=drill')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(list(response.data.keys()), ['tools'])
        self.assertEqual(len(response.data['tools']), 5)
        self.assertEqual(response.data['tools'][0]['path'], '/tools')

    def test_manager_searches_everything(self):
        self.client.authenticate_user(TestDataFactory.create_manager())
        response = self.client.get('/api/v1/search/?q=drill')
        self.assertEqual(set(response.data.keys()), {
            'products', 'tools', 'clients', 'users', 'orders', 'purchase_orders',
            'issuances', 'suppliers', 'tasks'
        })
        self.assertEqual(response.data['products'][0]['label'], 'Drill Bits')

    def test_empty_query(self):
        self.client.authenticate_user(TestDataFactory.create_manager())
        response = self.client.get('/api/v1/search/?q=')
        self.assertTrue(all(results == [] for results in response.data.values()))

    def test_staff_only_finds_own_tasks(self):
        staff = TestDataFactory.create_user(permissions=['/tasks'])
        TestDataFactory.create_task(title='Count drill stock', assigned_to=staff)
        TestDataFactory.create_task(title='Drill inventory audit', assigned_to=TestDataFactory.create_user())
        self.client.authenticate_user(staff)
        response = self.client.get('/api/v1/search/?q=drill')
        self.assertEqual([result['label'].split(' - ')[0] for result in response.data['tasks']], ['Count drill stock'])


class ManagementCommandTests(TestCase):

    def test_seed_categories(self):
        out = StringIO()
        call_command('seed_categories', stdout=out)
        helmets = Category.objects.get(name='Helmets')
        self.assertEqual(helmets.parent.name, 'Personal Protective Equipment')
        self.assertEqual(helmets.parent.parent.name, 'Safety Equipment')

        count = Category.objects.count()
        call_command('seed_categories', stdout=StringIO())
        self.assertEqual(Category.objects.count(), count)

    def test_seed_categories_clear(self):
        TestDataFactory.create_category(name='Leftover')
        call_command('seed_categories', '--clear', stdout=StringIO())
        self.assertFalse(Category.objects.filter(name='Leftover').exists())

    def test_check_hierarchies_clean(self):
        parent = TestDataFactory.create_category(name='Parent')
        TestDataFactory.create_category(name='Child', parent=parent)
        out = StringIO()
        call_command('check_hierarchies', stdout=out)
        self.assertIn('no cycles', out.getvalue())

    def test_check_hierarchies_cycle(self):
        first = TestDataFactory.create_category(name='First')
        second = TestDataFactory.create_category(name='Second', parent=first)
        Category.objects.filter(pk=first.pk).update(parent=second)
        with self.assertRaises(CommandError):
            call_command('check_hierarchies', stdout=StringIO())
