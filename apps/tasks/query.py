"""
Query scope builder for task listings.

Turns (caller, role, raw request parameters) into a QueryDescriptor: a Q
predicate plus sort and page window. No I/O happens here; the descriptor is
executed by apps.tasks.services.

Predicate layout:

    ownership OR-group          (non-admins only)
    AND equality filters        (status, priority, category, ...)
    AND due-date window         (overdue | today)
    AND search OR-group         (title | description | category)

The ownership and search OR-groups are separate Q nodes joined by AND, so a
search term can never widen what a non-admin is allowed to see.
"""
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Any, Mapping, Optional, Tuple
from uuid import UUID

from django.db.models import Q
from django.utils import timezone

from apps.core.clock import resolve_now
from apps.core.exceptions import ValidationFailed
from apps.core.pagination import parse_page_window
from apps.identity.permissions import is_admin_role
from .models import TaskStatus, TaskPriority, CLOSED_STATUSES


class DueDateFilter:
    OVERDUE = 'overdue'
    TODAY = 'today'

    values = (OVERDUE, TODAY)


SORT_ASC = 'asc'
SORT_DESC = 'desc'

DEFAULT_SORT_KEY = 'created_at'
DEFAULT_SORT_DIRECTION = SORT_DESC

SORTABLE_FIELDS = frozenset({
    'created_at', 'updated_at', 'due_date', 'completed_at',
    'title', 'status', 'priority', 'category',
})

SEARCH_FIELDS = ('title', 'description', 'category')

# Parameter names of the public API (camelCase) -> internal names.
PARAM_ALIASES = {
    'assignedTo': 'assigned_to',
    'createdBy': 'created_by',
    'isArchived': 'archived',
    'is_archived': 'archived',
    'dueDate': 'due_date',
    'sortBy': 'sort_by',
    'page_size': 'limit',
    'createdAt': 'created_at',
    'updatedAt': 'updated_at',
    'completedAt': 'completed_at',
}


@dataclass(frozen=True)
class QueryDescriptor:
    predicate: Q
    sort_key: str
    sort_direction: str
    page: int
    page_size: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def order_by(self) -> Tuple[str, str]:
        # id breaks ties so consecutive pages never overlap or skip rows
        prefix = '-' if self.sort_direction == SORT_DESC else ''
        return (f"{prefix}{self.sort_key}", f"{prefix}id")


# =============================================================================
# Predicate Building Blocks
# =============================================================================

def ownership_scope(caller_id, caller_role) -> Q:
    """Base visibility: unrestricted for admins, assignee-or-creator otherwise."""
    if is_admin_role(caller_role):
        return Q()
    return Q(assigned_to_id=caller_id) | Q(created_by_id=caller_id)


def overdue_predicate(now: datetime) -> Q:
    return Q(due_date__lt=now) & ~Q(status__in=CLOSED_STATUSES)


def day_bounds(now: datetime) -> Tuple[datetime, datetime]:
    """[local midnight today, local midnight tomorrow) in the server timezone."""
    today = timezone.localtime(now).date()
    start = timezone.make_aware(datetime.combine(today, time.min))
    end = timezone.make_aware(datetime.combine(today + timedelta(days=1), time.min))
    return start, end


def month_bounds(now: datetime) -> Tuple[datetime, datetime]:
    """[first instant of this calendar month, first instant of next) in the server timezone."""
    today = timezone.localtime(now).date()
    first = today.replace(day=1)
    if first.month == 12:
        next_first = first.replace(year=first.year + 1, month=1)
    else:
        next_first = first.replace(month=first.month + 1)
    return (
        timezone.make_aware(datetime.combine(first, time.min)),
        timezone.make_aware(datetime.combine(next_first, time.min)),
    )


def search_predicate(term: str) -> Q:
    predicate = Q()
    for field in SEARCH_FIELDS:
        predicate |= Q(**{f"{field}__icontains": term})
    return predicate


# =============================================================================
# Parameter Parsing
# =============================================================================

def _invalid(name: str, message: str) -> ValidationFailed:
    return ValidationFailed(f"Invalid {name}: {message}", errors={name: [message]})


def _normalize_params(params: Optional[Mapping[str, Any]]) -> dict:
    normalized = {}
    for key, value in (params or {}).items():
        if value is None or value == '':
            continue
        normalized[PARAM_ALIASES.get(key, key)] = value
    return normalized


def _parse_choice(name: str, value: Any, choices) -> str:
    if value not in choices:
        raise _invalid(name, f"must be one of: {', '.join(choices)}")
    return value


def _parse_uuid(name: str, value: Any) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise _invalid(name, "must be a valid id")


def _parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ('true', '1', 'yes'):
        return True
    if text in ('false', '0', 'no'):
        return False
    raise _invalid(name, "must be true or false")


def parse_sort(raw: Optional[str]) -> Tuple[str, str]:
    """
    Parse ``field[:direction]``.

    Field names are checked against SORTABLE_FIELDS (camelCase aliases
    accepted). Direction defaults to ascending when only a field is given.
    """
    if not raw:
        return DEFAULT_SORT_KEY, DEFAULT_SORT_DIRECTION

    field, _, direction = str(raw).partition(':')
    field = PARAM_ALIASES.get(field.strip(), field.strip())
    direction = direction.strip().lower() or SORT_ASC

    if field not in SORTABLE_FIELDS:
        raise _invalid('sort_by', f"cannot sort by '{field}'")
    if direction not in (SORT_ASC, SORT_DESC):
        raise _invalid('sort_by', "direction must be 'asc' or 'desc'")
    return field, direction


# =============================================================================
# Builder
# =============================================================================

def build_scope(
    caller_id,
    caller_role,
    params: Optional[Mapping[str, Any]] = None,
    now: Optional[datetime] = None,
) -> QueryDescriptor:
    """
    Build the scoped query descriptor for a task listing.

    Args:
        caller_id:   Authenticated user's id.
        caller_role: Authenticated user's role.
        params:      Raw filter parameters (status, priority, category,
                     assigned_to, created_by, archived, due_date, search,
                     sort_by, page, limit). camelCase names are accepted.
        now:         Reference time for date-relative filters.

    Raises:
        ValidationFailed for unknown enum values, bad ids, unknown sort
        fields or bad page numbers.
    """
    raw = _normalize_params(params)
    now = resolve_now(now)

    predicate = ownership_scope(caller_id, caller_role)

    # Equality filters
    if 'status' in raw:
        predicate &= Q(status=_parse_choice('status', raw['status'], TaskStatus.values))
    if 'priority' in raw:
        predicate &= Q(priority=_parse_choice('priority', raw['priority'], TaskPriority.values))
    if 'category' in raw:
        predicate &= Q(category=str(raw['category']))
    if 'assigned_to' in raw:
        predicate &= Q(assigned_to_id=_parse_uuid('assigned_to', raw['assigned_to']))
    if 'created_by' in raw:
        predicate &= Q(created_by_id=_parse_uuid('created_by', raw['created_by']))
    if 'archived' in raw:
        predicate &= Q(is_archived=_parse_bool('archived', raw['archived']))

    # Due-date window
    if 'due_date' in raw:
        due = _parse_choice('due_date', raw['due_date'], DueDateFilter.values)
        if due == DueDateFilter.OVERDUE:
            predicate &= overdue_predicate(now)
        else:
            start, end = day_bounds(now)
            predicate &= Q(due_date__gte=start, due_date__lt=end)

    # Free-text search, as its own OR-group
    term = str(raw.get('search', '')).strip()
    if term:
        predicate &= search_predicate(term)

    sort_key, sort_direction = parse_sort(raw.get('sort_by'))
    page, page_size = parse_page_window(raw.get('page'), raw.get('limit'))

    return QueryDescriptor(
        predicate=predicate,
        sort_key=sort_key,
        sort_direction=sort_direction,
        page=page,
        page_size=page_size,
    )
