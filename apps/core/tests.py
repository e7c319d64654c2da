from datetime import datetime, timedelta, timezone as dt_timezone
from types import SimpleNamespace

from django.http import HttpResponse
from django.test import RequestFactory, SimpleTestCase, override_settings

from apps.core.clock import FixedClock, SystemClock, get_clock, resolve_now, set_clock
from apps.core.exceptions import (
    AuthenticationFailed, AuthFailure, Conflict, Forbidden, NotFound, ValidationFailed,
)
from apps.core.middleware import RequestTimingMiddleware
from apps.core.observability import LoggingSink, MemorySink, RequestEvent, build_sink
from apps.core.pagination import page_count, parse_page_window


NOW = datetime(2026, 3, 15, 12, 0, tzinfo=dt_timezone.utc)


class ClockTest(SimpleTestCase):
    def tearDown(self):
        set_clock(None)

    def test_default_is_system_clock(self):
        self.assertIsInstance(get_clock(), SystemClock)

    def test_fixed_clock(self):
        clock = FixedClock(NOW)
        set_clock(clock)
        self.assertEqual(resolve_now(), NOW)
        clock.advance(days=1)
        self.assertEqual(resolve_now(), NOW + timedelta(days=1))

    def test_explicit_now_wins(self):
        set_clock(FixedClock(NOW))
        other = NOW - timedelta(days=30)
        self.assertEqual(resolve_now(other), other)


class PaginationTest(SimpleTestCase):
    def test_defaults(self):
        self.assertEqual(parse_page_window(), (1, 10))
        self.assertEqual(parse_page_window('', ''), (1, 10))

    def test_strings_are_parsed(self):
        self.assertEqual(parse_page_window('3', '25'), (3, 25))

    @override_settings(TASKS_MAX_PAGE_SIZE=100)
    def test_page_size_is_clamped(self):
        self.assertEqual(parse_page_window(1, 1000), (1, 100))

    def test_rejects_bad_values(self):
        for page, limit in ((0, 10), (-1, 10), (1, 0), ('x', 10), (True, 10)):
            with self.subTest(page=page, limit=limit):
                with self.assertRaises(ValidationFailed):
                    parse_page_window(page, limit)

    def test_page_count(self):
        self.assertEqual(page_count(0, 10), 0)
        self.assertEqual(page_count(10, 10), 1)
        self.assertEqual(page_count(11, 10), 2)


class ErrorTest(SimpleTestCase):
    def test_status_codes(self):
        self.assertEqual(AuthenticationFailed(AuthFailure.STALE_CREDENTIAL).status_code, 401)
        self.assertEqual(Forbidden().status_code, 403)
        self.assertEqual(NotFound().status_code, 404)
        self.assertEqual(ValidationFailed("bad").status_code, 400)

    def test_envelope(self):
        data = Conflict("Taken", errors={'email': ['Taken.']}).to_dict()
        self.assertEqual(data, {
            'success': False,
            'code': 'Conflict',
            'message': 'Taken',
            'errors': {'email': ['Taken.']},
        })

    def test_auth_failure_keeps_kind(self):
        exc = AuthenticationFailed(AuthFailure.DEACTIVATED)
        self.assertEqual(exc.kind, AuthFailure.DEACTIVATED)
        self.assertEqual(exc.to_dict()['code'], 'Deactivated')


class RequestTimingMiddlewareTest(SimpleTestCase):
    def setUp(self):
        self.factory = RequestFactory()
        self.sink = MemorySink()

    def test_records_event(self):
        middleware = RequestTimingMiddleware(lambda request: HttpResponse(status=204), sink=self.sink)
        middleware(self.factory.get('/api/v1/tasks'))

        self.assertEqual(len(self.sink.events), 1)
        event = self.sink.events[0]
        self.assertIsInstance(event, RequestEvent)
        self.assertEqual((event.method, event.path, event.status_code), ('GET', '/api/v1/tasks', 204))
        self.assertGreaterEqual(event.duration_ms, 0)
        self.assertIsNone(event.user_id)

    def test_records_authenticated_user(self):
        def view(request):
            request.auth = SimpleNamespace(user=SimpleNamespace(id='abc'))
            return HttpResponse()

        middleware = RequestTimingMiddleware(view, sink=self.sink)
        middleware(self.factory.post('/api/v1/tasks'))
        self.assertEqual(self.sink.events[0].user_id, 'abc')

    @override_settings(OBSERVABILITY_SINK='apps.core.observability.MemorySink')
    def test_sink_from_settings(self):
        middleware = RequestTimingMiddleware(lambda request: HttpResponse())
        self.assertIsInstance(middleware.sink, MemorySink)

    def test_build_sink_default(self):
        self.assertIsInstance(build_sink('apps.core.observability.LoggingSink'), LoggingSink)

    def test_build_sink_rejects_non_sinks(self):
        with self.assertRaises(TypeError):
            build_sink('apps.core.clock.SystemClock')
