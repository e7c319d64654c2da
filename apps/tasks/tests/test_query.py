"""
Tests for the scoped query builder, executed against the database.
"""
from datetime import datetime, timedelta, timezone as dt_timezone

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings

from apps.core.exceptions import ValidationFailed
from apps.identity.models import UserRole
from apps.tasks.models import Task, TaskStatus, TaskPriority
from apps.tasks.query import build_scope, day_bounds, month_bounds, parse_sort
from apps.tasks.services import list_tasks, stats_by_scope


User = get_user_model()

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=dt_timezone.utc)


def make_task(creator, assignee=None, **fields):
    fields.setdefault('title', 'Task')
    return Task.objects.create(created_by=creator, assigned_to=assignee or creator, **fields)


class QueryTestCase(TestCase):
    def setUp(self):
        self.alice = User.objects.create_user(username='alice', email='alice@test.com', password='testpass123')
        self.bob = User.objects.create_user(username='bob', email='bob@test.com', password='testpass123')
        self.admin = User.objects.create_user(
            username='admin', email='admin@test.com', password='testpass123', role=UserRole.ADMIN,
        )

    def ids(self, caller, params=None, now=NOW):
        items, _ = list_tasks(build_scope(caller.id, caller.role, params, now=now))
        return {task.id for task in items}


class OwnershipScopeTest(QueryTestCase):
    def setUp(self):
        super().setUp()
        self.alice_own = make_task(self.alice, title='Alice own')
        self.bob_for_alice = make_task(self.bob, self.alice, title='Bob for Alice')
        self.alice_for_bob = make_task(self.alice, self.bob, title='Alice for Bob')
        self.bob_own = make_task(self.bob, title='Bob own')

    def test_user_sees_assigned_or_created(self):
        self.assertEqual(
            self.ids(self.alice),
            {self.alice_own.id, self.bob_for_alice.id, self.alice_for_bob.id},
        )

    def test_admin_sees_all(self):
        self.assertEqual(len(self.ids(self.admin)), 4)

    def test_search_cannot_widen_scope(self):
        make_task(self.bob, title='Secret report', description='bob only')
        mine = make_task(self.alice, title='Quarterly report')

        self.assertEqual(self.ids(self.alice, {'search': 'report'}), {mine.id})
        self.assertEqual(len(self.ids(self.admin, {'search': 'REPORT'})), 2)

    def test_search_matches_description_and_category(self):
        by_description = make_task(self.alice, title='A', description='Call the plumber')
        by_category = make_task(self.alice, title='B', category='plumbing')
        self.assertEqual(self.ids(self.alice, {'search': 'plumb'}), {by_description.id, by_category.id})

    def test_filter_by_assignee_stays_in_scope(self):
        # Alice asks for Bob's tasks: only those she created are visible.
        self.assertEqual(self.ids(self.alice, {'assigned_to': str(self.bob.id)}), {self.alice_for_bob.id})
        self.assertEqual(self.ids(self.alice, {'createdBy': str(self.bob.id)}), {self.bob_for_alice.id})


class FilterTest(QueryTestCase):
    def test_status_priority_category(self):
        hit = make_task(self.alice, status=TaskStatus.IN_PROGRESS, priority=TaskPriority.HIGH, category='work')
        make_task(self.alice, status=TaskStatus.IN_PROGRESS, priority=TaskPriority.LOW, category='work')
        make_task(self.alice, status=TaskStatus.PENDING, priority=TaskPriority.HIGH, category='work')

        params = {'status': 'in-progress', 'priority': 'high', 'category': 'work'}
        self.assertEqual(self.ids(self.alice, params), {hit.id})

    def test_archived_flag(self):
        archived = make_task(self.alice, is_archived=True)
        live = make_task(self.alice)
        self.assertEqual(self.ids(self.alice, {'archived': 'true'}), {archived.id})
        self.assertEqual(self.ids(self.alice, {'isArchived': 'false'}), {live.id})
        self.assertEqual(self.ids(self.alice), {archived.id, live.id})

    def test_overdue(self):
        overdue = make_task(self.alice, due_date=NOW - timedelta(days=2))
        make_task(self.alice, due_date=NOW - timedelta(days=2), status=TaskStatus.COMPLETED)
        make_task(self.alice, due_date=NOW - timedelta(days=2), status=TaskStatus.CANCELLED)
        make_task(self.alice, due_date=NOW + timedelta(days=2))
        make_task(self.alice)

        self.assertEqual(self.ids(self.alice, {'due_date': 'overdue'}), {overdue.id})

    def test_today(self):
        start, end = day_bounds(NOW)
        today = make_task(self.alice, due_date=start)
        late_today = make_task(self.alice, due_date=end - timedelta(seconds=1))
        make_task(self.alice, due_date=end)
        make_task(self.alice, due_date=start - timedelta(seconds=1))

        self.assertEqual(self.ids(self.alice, {'dueDate': 'today'}), {today.id, late_today.id})

    def test_invalid_values_are_rejected(self):
        bad = [
            {'status': 'done'},
            {'priority': 'critical'},
            {'due_date': 'tomorrow'},
            {'assigned_to': 'not-a-uuid'},
            {'archived': 'maybe'},
            {'page': '0'},
            {'limit': 'ten'},
        ]
        for params in bad:
            with self.subTest(params=params):
                with self.assertRaises(ValidationFailed):
                    build_scope(self.alice.id, self.alice.role, params, now=NOW)

    def test_blank_values_are_ignored(self):
        make_task(self.alice)
        self.assertEqual(len(self.ids(self.alice, {'status': '', 'search': '   ', 'page': None})), 1)


class SortPageTest(QueryTestCase):
    def test_parse_sort(self):
        self.assertEqual(parse_sort(None), ('created_at', 'desc'))
        self.assertEqual(parse_sort('title'), ('title', 'asc'))
        self.assertEqual(parse_sort('dueDate:DESC'), ('due_date', 'desc'))
        with self.assertRaises(ValidationFailed):
            parse_sort('password:asc')
        with self.assertRaises(ValidationFailed):
            parse_sort('title:sideways')

    def test_sort_by_title(self):
        for title in ('Charlie', 'alpha', 'Bravo'):
            make_task(self.alice, title=title)
        items, _ = list_tasks(build_scope(self.alice.id, self.alice.role, {'sort_by': 'title:asc'}, now=NOW))
        self.assertEqual(len(items), 3)
        items_desc, _ = list_tasks(build_scope(self.alice.id, self.alice.role, {'sort_by': 'title:desc'}, now=NOW))
        self.assertEqual([t.id for t in items_desc], [t.id for t in reversed(items)])

    def test_pages_partition_results(self):
        created = {make_task(self.alice, title='Same').id for _ in range(7)}

        seen = []
        for page in (1, 2, 3):
            descriptor = build_scope(
                self.alice.id, self.alice.role, {'sort_by': 'title', 'page': page, 'limit': 3}, now=NOW,
            )
            items, total = list_tasks(descriptor)
            self.assertEqual(total, 7)
            self.assertLessEqual(len(items), 3)
            seen.extend(task.id for task in items)

        self.assertEqual(len(seen), 7)
        self.assertEqual(set(seen), created)

    @override_settings(TASKS_MAX_PAGE_SIZE=100)
    def test_page_size_is_clamped(self):
        descriptor = build_scope(self.alice.id, self.alice.role, {'limit': '5000'}, now=NOW)
        self.assertEqual(descriptor.page_size, 100)

    def test_defaults(self):
        descriptor = build_scope(self.alice.id, self.alice.role, now=NOW)
        self.assertEqual((descriptor.page, descriptor.page_size), (1, 10))
        self.assertEqual(descriptor.order_by, ('-created_at', '-id'))
        self.assertEqual(descriptor.offset, 0)


class BoundsTest(TestCase):
    def test_month_bounds(self):
        start, end = month_bounds(NOW)
        self.assertEqual((start.year, start.month, start.day), (2026, 3, 1))
        self.assertEqual((end.year, end.month, end.day), (2026, 4, 1))

    def test_month_bounds_december(self):
        start, end = month_bounds(datetime(2026, 12, 20, 12, 0, tzinfo=dt_timezone.utc))
        self.assertEqual((start.month, end.year, end.month), (12, 2027, 1))

    def test_day_bounds(self):
        start, end = day_bounds(NOW)
        self.assertEqual(end - start, timedelta(days=1))
        self.assertTrue(start <= NOW < end)


@override_settings(TIME_ZONE='America/New_York')
class ServerTimeZoneTest(QueryTestCase):
    # 02:00 UTC on 15 March 2026 is still 14 March (22:00 EDT) in New York.
    LATE_EVENING = datetime(2026, 3, 15, 2, 0, tzinfo=dt_timezone.utc)

    def test_day_bounds_use_local_midnight(self):
        start, end = day_bounds(self.LATE_EVENING)
        self.assertEqual(start, datetime(2026, 3, 14, 4, 0, tzinfo=dt_timezone.utc))
        self.assertEqual(end, datetime(2026, 3, 15, 4, 0, tzinfo=dt_timezone.utc))

    def test_today_filter_follows_local_day(self):
        local_today = make_task(self.alice, due_date=datetime(2026, 3, 15, 3, 0, tzinfo=dt_timezone.utc))
        make_task(self.alice, due_date=datetime(2026, 3, 15, 5, 0, tzinfo=dt_timezone.utc))
        make_task(self.alice, due_date=datetime(2026, 3, 14, 3, 0, tzinfo=dt_timezone.utc))

        self.assertEqual(self.ids(self.alice, {'due_date': 'today'}, now=self.LATE_EVENING), {local_today.id})

    def test_month_bounds_use_local_month_across_dst(self):
        # 31 March 22:00 EDT; March started in EST (UTC-5), April starts in EDT (UTC-4).
        start, end = month_bounds(datetime(2026, 4, 1, 2, 0, tzinfo=dt_timezone.utc))
        self.assertEqual(start, datetime(2026, 3, 1, 5, 0, tzinfo=dt_timezone.utc))
        self.assertEqual(end, datetime(2026, 4, 1, 4, 0, tzinfo=dt_timezone.utc))

    def test_completed_this_month_uses_local_month(self):
        # 28 February 22:00 EST locally, already 1 March in UTC.
        now = datetime(2026, 3, 1, 3, 0, tzinfo=dt_timezone.utc)
        make_task(self.alice, status=TaskStatus.COMPLETED, completed_at=datetime(2026, 2, 20, 12, 0, tzinfo=dt_timezone.utc))
        # 31 January 18:00 EST, previous local month though within 30 days
        make_task(self.alice, status=TaskStatus.COMPLETED, completed_at=datetime(2026, 1, 31, 23, 0, tzinfo=dt_timezone.utc))

        stats = stats_by_scope(self.alice.id, self.alice.role, now=now)
        self.assertEqual(stats.completed_this_month_count, 1)
