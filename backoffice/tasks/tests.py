"""
Test suite for Tasks module
Tests: task CRUD and visibility, subtasks and progress, task tree, KPIs
"""
from datetime import timedelta

from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backoffice.tasks.models import Task, Subtask


class TaskModelTests(TestCase):

    def test_recalculate_progress(self):
        task = TestDataFactory.create_task(subtasks=[('a', True), ('b', False), ('c', True)])
        self.assertEqual(task.recalculate_progress(), 67)
        task.refresh_from_db()
        self.assertEqual(task.progress, 67)

    def test_progress_without_subtasks_untouched(self):
        task = TestDataFactory.create_task()
        task.progress = 40
        task.save()
        self.assertEqual(task.recalculate_progress(), 40)


class TaskApiTests(TestCase):
    """Test task endpoints"""

    def setUp(self):
        self.manager = TestDataFactory.create_manager()
        self.staff = TestDataFactory.create_user(permissions=['/tasks'])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def test_create_with_subtasks(self):
        response = self.client.post('/api/v1/tasks/', {
            'title': 'Stock take',
            'assigned_to': self.staff.id,
            'priority': 'High',
            'subtasks': [
                {'title': 'Aisle 1', 'completed': True},
                {'title': 'Aisle 2'},
            ],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['progress'], 50)
        self.assertEqual([subtask['title'] for subtask in response.data['subtasks']], ['Aisle 1', 'Aisle 2'])
        self.assertEqual(Task.objects.get(pk=response.data['id']).created_by, self.manager)

    def test_create_requires_assignee(self):
        response = self.client.post('/api/v1/tasks/', {'title': 'Nobody'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('assigned_to', response.data)

    def test_invalid_subtask_dates(self):
        response = self.client.post('/api/v1/tasks/', {
            'title': 'Dated',
            'assigned_to': self.staff.id,
            'subtasks': [{'title': 'x', 'start_date': '2030-02-02', 'end_date': '2030-02-01'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('subtasks', response.data)

    def test_staff_can_not_create(self):
        self.client.authenticate_user(self.staff)
        response = self.client.post('/api/v1/tasks/', {'title': 'Mine', 'assigned_to': self.staff.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_staff_sees_own_tasks(self):
        own = TestDataFactory.create_task(assigned_to=self.staff)
        foreign = TestDataFactory.create_task(assigned_to=self.manager)
        self.client.authenticate_user(self.staff)

        response = self.client.get('/api/v1/tasks/')
        self.assertEqual([row['id'] for row in response.data], [own.id])
        response = self.client.get(f'/api/v1/tasks/{foreign.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        response = self.client.patch(f'/api/v1/tasks/{own.id}/', {'title': 'Changed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_assignee_changes_status(self):
        task = TestDataFactory.create_task(assigned_to=self.staff)
        self.client.authenticate_user(self.staff)
        response = self.client.post(f'/api/v1/tasks/{task.id}/status/', {'status': Task.STATUS_IN_PROGRESS})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        task.refresh_from_db()
        self.assertEqual(task.status, Task.STATUS_IN_PROGRESS)

    def test_progress(self):
        task = TestDataFactory.create_task(assigned_to=self.staff)
        response = self.client.post(f'/api/v1/tasks/{task.id}/progress/', {'progress': 101})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post(f'/api/v1/tasks/{task.id}/progress/', {'progress': 30})
        self.assertEqual(response.data['progress'], 30)

        with_subtasks = TestDataFactory.create_task(assigned_to=self.staff, subtasks=[('a', False)])
        response = self.client.post(f'/api/v1/tasks/{with_subtasks.id}/progress/', {'progress': 30})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_tick_subtask(self):
        task = TestDataFactory.create_task(assigned_to=self.staff, subtasks=[('a', False), ('b', False)])
        subtask = Subtask.objects.filter(task=task).first()
        self.client.authenticate_user(self.staff)
        response = self.client.patch(f'/api/v1/tasks/{task.id}/subtasks/{subtask.id}/', {'completed': True},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['progress'], 50)

    def test_replace_subtasks(self):
        task = TestDataFactory.create_task(assigned_to=self.staff, subtasks=[('old', False)])
        response = self.client.patch(f'/api/v1/tasks/{task.id}/', {
            'subtasks': [{'title': 'new', 'completed': True}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([subtask['title'] for subtask in response.data['subtasks']], ['new'])
        self.assertEqual(response.data['progress'], 100)

    def test_parent_cycle_rejected(self):
        parent = TestDataFactory.create_task(assigned_to=self.staff)
        child = TestDataFactory.create_task(assigned_to=self.staff, parent_task=parent)
        response = self.client.patch(f'/api/v1/tasks/{parent.id}/', {'parent_task': child.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('parent_task', response.data)

    def test_deleting_parent_promotes_children(self):
        parent = TestDataFactory.create_task(assigned_to=self.staff)
        child = TestDataFactory.create_task(assigned_to=self.staff, parent_task=parent)
        response = self.client.delete(f'/api/v1/tasks/{parent.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        child.refresh_from_db()
        self.assertIsNone(child.parent_task)


class TaskTreeTests(TestCase):
    """Test the nested task view"""

    def setUp(self):
        self.manager = TestDataFactory.create_manager()
        self.staff = TestDataFactory.create_user(permissions=['/tasks'])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def test_tree_ordering(self):
        done = TestDataFactory.create_task(title='Done', assigned_to=self.staff, status=Task.STATUS_COMPLETED)
        active = TestDataFactory.create_task(title='Active', assigned_to=self.staff, status=Task.STATUS_IN_PROGRESS)
        child = TestDataFactory.create_task(title='Child', assigned_to=self.staff, parent_task=active)

        response = self.client.get('/api/v1/tasks/tree/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([node['id'] for node in response.data], [active.id, done.id])
        self.assertEqual([node['id'] for node in response.data[0]['children']], [child.id])

    def test_hidden_parent_makes_root(self):
        parent = TestDataFactory.create_task(title='Parent', assigned_to=self.manager)
        child = TestDataFactory.create_task(title='Child', assigned_to=self.staff, parent_task=parent)
        self.client.authenticate_user(self.staff)
        response = self.client.get('/api/v1/tasks/tree/')
        self.assertEqual([node['id'] for node in response.data], [child.id])

    def test_stored_cycle(self):
        first = TestDataFactory.create_task(assigned_to=self.staff)
        second = TestDataFactory.create_task(assigned_to=self.staff, parent_task=first)
        Task.objects.filter(pk=first.pk).update(parent_task=second)
        response = self.client.get('/api/v1/tasks/tree/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(sorted(response.data['cycle']), sorted([first.id, second.id]))


class TaskKpiTests(TestCase):
    """Test per staff KPIs"""

    def setUp(self):
        cache.clear()
        self.manager = TestDataFactory.create_manager(username='manager')
        self.staff = TestDataFactory.create_user(username='worker1', permissions=['/tasks'])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def test_kpis(self):
        yesterday = timezone.localdate() - timedelta(days=1)
        TestDataFactory.create_task(assigned_to=self.staff, status=Task.STATUS_COMPLETED, due_date=yesterday)
        TestDataFactory.create_task(assigned_to=self.staff, status=Task.STATUS_PENDING, due_date=yesterday)
        TestDataFactory.create_task(assigned_to=self.staff, status=Task.STATUS_IN_PROGRESS)
        TestDataFactory.create_task(assigned_to=self.staff, status=Task.STATUS_COMPLETED)

        response = self.client.get('/api/v1/tasks/kpis/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rows = {row['name']: row for row in response.data['staff']}
        self.assertEqual(rows['worker1']['total'], 4)
        self.assertEqual(rows['worker1']['completed'], 2)
        self.assertEqual(rows['worker1']['overdue'], 1)
        self.assertEqual(rows['worker1']['completion_rate'], 50.0)
        self.assertEqual(rows['manager']['completion_rate'], 0)
        self.assertEqual(response.data['total'], 4)
        counts = {row['status']: row['count'] for row in response.data['overall']}
        self.assertEqual(counts, {'Pending': 1, 'In Progress': 1, 'Completed': 2, 'Delayed': 0})

    def test_kpis_refresh_after_task_change(self):
        task = TestDataFactory.create_task(assigned_to=self.staff)
        self.client.get('/api/v1/tasks/kpis/')
        task.status = Task.STATUS_COMPLETED
        task.save()
        response = self.client.get('/api/v1/tasks/kpis/')
        rows = {row['name']: row for row in response.data['staff']}
        self.assertEqual(rows['worker1']['completed'], 1)

    def test_managers_only(self):
        self.client.authenticate_user(self.staff)
        response = self.client.get('/api/v1/tasks/kpis/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
