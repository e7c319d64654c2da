"""
Tests for the task access rules. No database needed: the rules only read
ownership ids off the task.
"""
from types import SimpleNamespace
from uuid import uuid4

from django.test import SimpleTestCase

from apps.core.exceptions import Forbidden
from apps.identity.models import UserRole
from apps.tasks.access import (
    can_modify, can_reassign, can_view, check_assignment, filter_writable, writable_fields,
)


def make_task(assigned_to=None, created_by=None):
    return SimpleNamespace(assigned_to_id=assigned_to or uuid4(), created_by_id=created_by or uuid4())


class VisibilityTest(SimpleTestCase):
    def setUp(self):
        self.alice = uuid4()
        self.bob = uuid4()

    def test_admin_sees_everything(self):
        task = make_task()
        self.assertTrue(can_view(self.alice, UserRole.ADMIN, task))
        self.assertTrue(can_modify(self.alice, UserRole.ADMIN, task))

    def test_assignee_and_creator(self):
        assigned = make_task(assigned_to=self.alice)
        created = make_task(created_by=self.alice)
        for task in (assigned, created):
            self.assertTrue(can_view(self.alice, UserRole.USER, task))
            self.assertTrue(can_modify(self.alice, UserRole.USER, task))

    def test_stranger(self):
        task = make_task(assigned_to=self.bob, created_by=self.bob)
        self.assertFalse(can_view(self.alice, UserRole.USER, task))
        self.assertFalse(can_modify(self.alice, UserRole.USER, task))

    def test_string_and_uuid_ids_compare_equal(self):
        task = make_task(assigned_to=self.alice)
        self.assertTrue(can_view(str(self.alice), UserRole.USER, task))

    def test_view_and_modify_agree(self):
        for _ in range(20):
            caller = uuid4()
            task = make_task(assigned_to=caller if _ % 3 == 0 else None, created_by=caller if _ % 5 == 0 else None)
            for role in UserRole:
                self.assertEqual(can_view(caller, role, task), can_modify(caller, role, task))


class AssignmentTest(SimpleTestCase):
    def setUp(self):
        self.alice = uuid4()
        self.bob = uuid4()

    def test_only_admin_can_reassign(self):
        self.assertTrue(can_reassign(UserRole.ADMIN))
        self.assertFalse(can_reassign(UserRole.USER))

    def test_user_self_assignment_allowed(self):
        check_assignment(self.alice, UserRole.USER, None)
        check_assignment(self.alice, UserRole.USER, self.alice)
        check_assignment(self.alice, UserRole.USER, str(self.alice))

    def test_user_cannot_assign_others(self):
        with self.assertRaises(Forbidden):
            check_assignment(self.alice, UserRole.USER, self.bob)

    def test_user_keeping_current_assignee_is_not_a_change(self):
        check_assignment(self.alice, UserRole.USER, self.bob, current_assignee_id=self.bob)
        with self.assertRaises(Forbidden):
            check_assignment(self.alice, UserRole.USER, self.alice, current_assignee_id=self.bob)

    def test_admin_can_assign_anyone(self):
        check_assignment(self.alice, UserRole.ADMIN, self.bob)
        check_assignment(self.alice, UserRole.ADMIN, self.bob, current_assignee_id=self.alice)


class WritableFieldsTest(SimpleTestCase):
    def test_assignee_is_admin_only(self):
        self.assertIn('assigned_to', writable_fields(UserRole.ADMIN))
        self.assertNotIn('assigned_to', writable_fields(UserRole.USER))
        self.assertIn('title', writable_fields(UserRole.USER))

    def test_filter_drops_disallowed_and_unknown(self):
        data = {'title': 'x', 'assigned_to': uuid4(), 'created_by': uuid4(), 'id': uuid4()}
        self.assertEqual(filter_writable(UserRole.USER, data), {'title': 'x'})
        self.assertEqual(set(filter_writable(UserRole.ADMIN, data)), {'title', 'assigned_to'})
