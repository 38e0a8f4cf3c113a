"""
Test suite for Tools module
Tests: lifecycle transitions, movement history, bookings, wishlist and my tools
"""
from datetime import date

from django.test import TestCase
from rest_framework import status

from backoffice.core.models import AuditLog
from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backoffice.tools import lifecycle
from backoffice.tools.lifecycle import ToolStateError, BookingStateError
from backoffice.tools.models import Tool, ToolMovement, ToolBooking, ToolWish


class ToolLifecycleTests(TestCase):
    """Test the lifecycle transitions directly"""

    def setUp(self):
        self.manager = TestDataFactory.create_manager()
        self.user = TestDataFactory.create_user()
        self.worker = TestDataFactory.create_worker()
        self.tool = TestDataFactory.create_tool(name='Angle Grinder')

    def test_assign_and_recall(self):
        tool = lifecycle.assign_for_accountability(self.tool, self.user, performed_by=self.manager)
        self.assertEqual(tool.status, Tool.STATUS_ASSIGNED)
        self.assertEqual(tool.assigned_to, self.user)

        tool = lifecycle.recall(tool, Tool.CONDITION_GOOD, performed_by=self.manager)
        self.assertEqual(tool.status, Tool.STATUS_AVAILABLE)
        self.assertIsNone(tool.assigned_to)

        actions = list(ToolMovement.objects.filter(tool=tool).order_by('id').values_list('action', flat=True))
        self.assertEqual(actions, [ToolMovement.ACTION_ASSIGN, ToolMovement.ACTION_RECALL])
        recall = ToolMovement.objects.get(tool=tool, action=ToolMovement.ACTION_RECALL)
        self.assertEqual(recall.holder, self.user)
        self.assertEqual((recall.from_status, recall.to_status), (Tool.STATUS_ASSIGNED, Tool.STATUS_AVAILABLE))

    def test_recall_damaged_goes_to_maintenance(self):
        lifecycle.assign_for_accountability(self.tool, self.user)
        tool = lifecycle.recall(self.tool.pk, Tool.CONDITION_DAMAGED)
        self.assertEqual(tool.status, Tool.STATUS_MAINTENANCE)
        self.assertTrue(tool.is_defective)

    def test_check_out_and_return(self):
        tool = lifecycle.check_out(self.tool, self.user, worker=self.worker, due_date=date(2030, 1, 31),
                                   performed_by=self.manager)
        self.assertEqual(tool.status, Tool.STATUS_IN_USE)
        self.assertEqual(tool.borrowed_by, self.user)
        self.assertEqual(tool.borrowed_for, self.worker)
        self.assertIsNotNone(tool.borrowed_at)

        tool = lifecycle.return_tool(tool, Tool.CONDITION_NEEDS_REPAIR, performed_by=self.user)
        self.assertEqual(tool.status, Tool.STATUS_MAINTENANCE)
        self.assertEqual(tool.condition, Tool.CONDITION_NEEDS_REPAIR)
        self.assertIsNone(tool.borrowed_by)
        self.assertIsNone(tool.due_date)
        returned = ToolMovement.objects.get(tool=tool, action=ToolMovement.ACTION_RETURN)
        self.assertEqual(returned.worker, self.worker)

    def test_maintenance(self):
        lifecycle.start_maintenance(self.tool)
        tool = lifecycle.complete_maintenance(self.tool)
        self.assertEqual(tool.status, Tool.STATUS_AVAILABLE)
        self.assertEqual(tool.condition, Tool.CONDITION_GOOD)

    def test_invalid_transitions_change_nothing(self):
        with self.assertRaises(ToolStateError):
            lifecycle.recall(self.tool, Tool.CONDITION_GOOD)
        with self.assertRaises(ToolStateError):
            lifecycle.return_tool(self.tool, Tool.CONDITION_GOOD)
        with self.assertRaises(ToolStateError):
            lifecycle.complete_maintenance(self.tool)

        lifecycle.check_out(self.tool, self.user)
        with self.assertRaises(ToolStateError) as ctx:
            lifecycle.assign_for_accountability(self.tool, self.user)
        self.assertEqual(ctx.exception.status, Tool.STATUS_IN_USE)
        with self.assertRaises(ToolStateError):
            lifecycle.start_maintenance(self.tool)

        self.assertEqual(ToolMovement.objects.filter(tool=self.tool).count(), 1)

    def test_unknown_condition(self):
        lifecycle.check_out(self.tool, self.user)
        with self.assertRaises(ValueError):
            lifecycle.return_tool(self.tool, 'Broken')
        self.tool.refresh_from_db()
        self.assertEqual(self.tool.status, Tool.STATUS_IN_USE)

    def test_transition_is_audited(self):
        lifecycle.check_out(self.tool, self.user, performed_by=self.manager)
        log = AuditLog.objects.get(action='tool_checkout')
        self.assertEqual(log.user, self.manager)
        self.assertEqual(log.changes['status'], {'old': Tool.STATUS_AVAILABLE, 'new': Tool.STATUS_IN_USE})


class ToolApiTests(TestCase):
    """Test tool endpoints and lifecycle actions"""

    def setUp(self):
        self.manager = TestDataFactory.create_manager()
        self.staff = TestDataFactory.create_user(permissions=['/tools', '/my-tools'])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)
        self.tool = TestDataFactory.create_tool(name='Impact Driver')

    def test_create_is_available(self):
        response = self.client.post('/api/v1/tools/', {'name': 'Laser Level', 'status': Tool.STATUS_IN_USE})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Tool.STATUS_AVAILABLE)

    def test_status_not_editable(self):
        response = self.client.patch(f'/api/v1/tools/{self.tool.id}/', {'status': Tool.STATUS_IN_USE})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.tool.refresh_from_db()
        self.assertEqual(self.tool.status, Tool.STATUS_AVAILABLE)

    def test_condition_only_editable_when_available(self):
        lifecycle.check_out(self.tool, self.staff)
        response = self.client.patch(f'/api/v1/tools/{self.tool.id}/', {'condition': Tool.CONDITION_DAMAGED})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_assign_via_api(self):
        response = self.client.post(f'/api/v1/tools/{self.tool.id}/assign/', {'user': self.staff.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Tool.STATUS_ASSIGNED)
        self.assertEqual(response.data['assigned_to'], self.staff.id)

        response = self.client.post(f'/api/v1/tools/{self.tool.id}/assign/', {'user': self.staff.id})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_check_out_defaults_to_caller(self):
        response = self.client.post(f'/api/v1/tools/{self.tool.id}/check-out/', {'due_date': '2030-05-01'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['borrowed_by'], self.manager.id)
        self.assertEqual(response.data['due_date'], '2030-05-01')

    def test_borrower_returns(self):
        lifecycle.check_out(self.tool, self.staff)
        other = TestDataFactory.create_user(permissions=['/tools'])
        self.client.authenticate_user(other)
        response = self.client.post(f'/api/v1/tools/{self.tool.id}/return/', {'condition': Tool.CONDITION_GOOD})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.staff)
        response = self.client.post(f'/api/v1/tools/{self.tool.id}/return/', {'condition': Tool.CONDITION_GOOD})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Tool.STATUS_AVAILABLE)

    def test_return_requires_condition(self):
        lifecycle.check_out(self.tool, self.staff)
        response = self.client.post(f'/api/v1/tools/{self.tool.id}/return/', {})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('condition', response.data)

    def test_maintenance_requires_page(self):
        self.client.authenticate_user(TestDataFactory.create_user(permissions=['/tools']))
        response = self.client.post(f'/api/v1/tools/{self.tool.id}/maintenance/start/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/v1/tools/{self.tool.id}/maintenance/start/', {'notes': 'Brushes'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Tool.STATUS_MAINTENANCE)

    def test_history(self):
        lifecycle.check_out(self.tool, self.staff, performed_by=self.manager)
        lifecycle.return_tool(self.tool, Tool.CONDITION_GOOD, performed_by=self.staff)
        response = self.client.get(f'/api/v1/tools/{self.tool.id}/history/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['action'] for row in response.data],
                         [ToolMovement.ACTION_RETURN, ToolMovement.ACTION_CHECK_OUT])

    def test_can_not_delete_tool_in_use(self):
        lifecycle.check_out(self.tool, self.staff)
        response = self.client.delete(f'/api/v1/tools/{self.tool.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Tool.objects.filter(pk=self.tool.pk).exists())

    def test_filters(self):
        TestDataFactory.create_tool(name='Broken Saw', condition=Tool.CONDITION_DAMAGED)
        response = self.client.get('/api/v1/tools/?defective=true')
        self.assertEqual([row['name'] for row in response.data], ['Broken Saw'])
        response = self.client.get('/api/v1/tools/?search=impact')
        self.assertEqual([row['id'] for row in response.data], [self.tool.id])

    def test_my_tools(self):
        accountable = TestDataFactory.create_tool(name='Multimeter')
        lifecycle.assign_for_accountability(accountable, self.staff)
        lifecycle.check_out(self.tool, self.staff)
        self.client.authenticate_user(self.staff)
        response = self.client.get('/api/v1/my-tools/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['name'] for row in response.data['accountability']], ['Multimeter'])
        self.assertEqual([row['name'] for row in response.data['borrowed']], ['Impact Driver'])


class ToolBookingTests(TestCase):
    """Test booking requests and their review"""

    def setUp(self):
        self.staff = TestDataFactory.create_user(permissions=['/tool-booking'])
        self.approver = TestDataFactory.create_approver(permissions=['/tool-booking'])
        self.worker = TestDataFactory.create_worker(name='Pedro')
        self.drill = TestDataFactory.create_tool(name='Drill')
        self.saw = TestDataFactory.create_tool(name='Saw')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.staff)

    def _book(self, **overrides):
        data = {
            'tools': [self.drill.id, self.saw.id],
            'requested_for': self.worker.id,
            'booking_type': ToolBooking.TYPE_BORROW,
            'start_date': '2030-03-01',
            'end_date': '2030-03-05',
        }
        data.update(overrides)
        return self.client.post('/api/v1/tool-bookings/', data, format='json')

    def test_create(self):
        response = self._book()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], ToolBooking.STATUS_PENDING)
        self.assertEqual(response.data['requested_by'], self.staff.id)
        self.assertEqual(sorted(response.data['tool_names']), ['Drill', 'Saw'])

    def test_validation(self):
        self.assertIn('tools', self._book(tools=[]).data)
        self.assertIn('requested_for', self._book(requested_for=None).data)
        self.assertIn('date_range', self._book(end_date=None).data)
        self.assertIn('date_range', self._book(start_date='2030-03-06').data)
        response = self._book(booking_type=ToolBooking.TYPE_ACCOUNTABILITY, start_date=None, end_date=None)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_unavailable_tool_rejected(self):
        lifecycle.start_maintenance(self.saw)
        response = self._book()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Saw', str(response.data['tools']))

    def test_approve_borrow(self):
        booking = TestDataFactory.create_booking(self.staff, [self.drill, self.saw], worker=self.worker,
                                                 start_date=date(2030, 3, 1), end_date=date(2030, 3, 5))
        self.client.authenticate_user(self.approver)
        response = self.client.post(f'/api/v1/tool-bookings/{booking.id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], ToolBooking.STATUS_APPROVED)

        for tool in Tool.objects.filter(pk__in=[self.drill.pk, self.saw.pk]):
            self.assertEqual(tool.status, Tool.STATUS_IN_USE)
            self.assertEqual(tool.borrowed_by, self.staff)
            self.assertEqual(tool.borrowed_for, self.worker)
            self.assertEqual(tool.due_date, date(2030, 3, 5))

        response = self.client.post(f'/api/v1/tool-bookings/{booking.id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_approve_accountability(self):
        booking = TestDataFactory.create_booking(self.staff, [self.drill], booking_type=ToolBooking.TYPE_ACCOUNTABILITY)
        lifecycle.approve_booking(booking, performed_by=self.approver)
        self.drill.refresh_from_db()
        self.assertEqual(self.drill.status, Tool.STATUS_ASSIGNED)
        self.assertEqual(self.drill.assigned_to, self.staff)

    def test_approval_is_all_or_nothing(self):
        booking = TestDataFactory.create_booking(self.staff, [self.drill, self.saw],
                                                 start_date=date(2030, 3, 1), end_date=date(2030, 3, 5))
        lifecycle.check_out(self.saw, self.approver)

        with self.assertRaises(ToolStateError):
            lifecycle.approve_booking(booking, performed_by=self.approver)

        self.drill.refresh_from_db()
        booking.refresh_from_db()
        self.assertEqual(self.drill.status, Tool.STATUS_AVAILABLE)
        self.assertEqual(booking.status, ToolBooking.STATUS_PENDING)
        self.assertFalse(ToolMovement.objects.filter(tool=self.drill).exists())

    def test_reject(self):
        booking = TestDataFactory.create_booking(self.staff, [self.drill])
        self.client.authenticate_user(self.approver)
        response = self.client.post(f'/api/v1/tool-bookings/{booking.id}/reject/', {'reason': 'Not needed'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['rejection_reason'], 'Not needed')
        with self.assertRaises(BookingStateError):
            lifecycle.reject_booking(booking, performed_by=self.approver)

    def test_staff_can_not_review(self):
        booking = TestDataFactory.create_booking(self.staff, [self.drill])
        response = self.client.post(f'/api/v1/tool-bookings/{booking.id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_visibility(self):
        own = TestDataFactory.create_booking(self.staff, [self.drill])
        foreign = TestDataFactory.create_booking(TestDataFactory.create_user(), [self.saw])

        response = self.client.get('/api/v1/tool-bookings/')
        self.assertEqual([row['id'] for row in response.data], [own.id])
        response = self.client.get(f'/api/v1/tool-bookings/{foreign.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.approver)
        response = self.client.get('/api/v1/tool-bookings/')
        self.assertEqual(len(response.data), 2)

    def test_withdraw_only_while_pending(self):
        booking = TestDataFactory.create_booking(self.staff, [self.drill])
        lifecycle.reject_booking(booking, performed_by=self.approver)
        response = self.client.delete(f'/api/v1/tool-bookings/{booking.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        pending = TestDataFactory.create_booking(self.staff, [self.saw])
        response = self.client.delete(f'/api/v1/tool-bookings/{pending.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)


class ToolWishTests(TestCase):
    """Test the tool wishlist"""

    def setUp(self):
        self.staff = TestDataFactory.create_user(permissions=['/tool-wishlist'])
        self.approver = TestDataFactory.create_approver(permissions=['/tool-wishlist'])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.staff)

    def test_create(self):
        response = self.client.post('/api/v1/tool-wishlist/', {'tool_name': '  Rotary Hammer ', 'reason': 'Concrete'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['tool_name'], 'Rotary Hammer')
        self.assertEqual(response.data['status'], ToolWish.STATUS_PENDING)

        response = self.client.post('/api/v1/tool-wishlist/', {'tool_name': 'ab'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_approve_creates_tool(self):
        wish = ToolWish.objects.create(tool_name='Rotary Hammer', requested_by=self.staff)
        self.client.authenticate_user(self.approver)
        response = self.client.post(f'/api/v1/tool-wishlist/{wish.id}/status/', {
            'status': ToolWish.STATUS_APPROVED, 'create_tool': True, 'serial_number': 'RH-1',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        tool = Tool.objects.get(serial_number='RH-1')
        self.assertEqual(tool.name, 'Rotary Hammer')
        self.assertEqual(tool.status, Tool.STATUS_AVAILABLE)
        self.assertEqual(response.data['created_tool'], tool.id)

    def test_approve_with_taken_serial_number(self):
        TestDataFactory.create_tool(serial_number='RH-1')
        wish = ToolWish.objects.create(tool_name='Rotary Hammer', requested_by=self.staff)
        self.client.authenticate_user(self.approver)
        response = self.client.post(f'/api/v1/tool-wishlist/{wish.id}/status/', {
            'status': ToolWish.STATUS_APPROVED, 'create_tool': True, 'serial_number': 'RH-1',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('serial_number', response.data)
        self.assertEqual(Tool.objects.count(), 1)
        wish.refresh_from_db()
        self.assertEqual(wish.status, ToolWish.STATUS_PENDING)

    def test_create_tool_needs_approval(self):
        wish = ToolWish.objects.create(tool_name='Rotary Hammer', requested_by=self.staff)
        self.client.authenticate_user(self.approver)
        response = self.client.post(f'/api/v1/tool-wishlist/{wish.id}/status/', {
            'status': ToolWish.STATUS_REJECTED, 'create_tool': True,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Tool.objects.exists())

    def test_delete_by_requester_or_admin(self):
        wish = ToolWish.objects.create(tool_name='Rotary Hammer', requested_by=self.approver)
        response = self.client.delete(f'/api/v1/tool-wishlist/{wish.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.delete(f'/api/v1/tool-wishlist/{wish.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
