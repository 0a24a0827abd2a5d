import datetime as dt

import pytest

from taskdeck import models
from taskdeck.filters import ApiFilter
from taskdeck.models import PaginatedResult, Task, TaskFields

from fakes import make_task


def test_task_from_wire_accepts_decimal_strings():
    raw = {
        'id': '42',
        'title': 'Write report',
        'priority': 'HIGH',
        'completed': False,
        'createdAt': '1741176000000000000',
        'dueDate': 1741262400000000000,
        'projectId': '7',
    }
    t = Task.from_wire(raw)
    assert t.id == 42
    assert t.project_id == 7
    assert t.priority == 'high'
    assert t.created_at == dt.datetime(2025, 3, 5, 12, 0, tzinfo=dt.timezone.utc)
    assert t.due_date == dt.datetime(2025, 3, 6, 12, 0, tzinfo=dt.timezone.utc)
    # missing updatedAt falls back to createdAt
    assert t.updated_at == t.created_at
    assert t.description is None


def test_task_wire_timestamps_are_nanoseconds():
    t = make_task(1)
    wire = t.to_wire()
    assert wire['createdAt'] == 1741176000 * models.NS_PER_SECOND
    assert Task.from_wire(wire) == t


def test_task_fields_validate_title_and_priority():
    with pytest.raises(ValueError):
        TaskFields(title='   ')
    with pytest.raises(ValueError):
        TaskFields(title='ok', priority='urgent')
    f = TaskFields(title='  Pay rent ', priority='Low')
    assert f.priority == 'low'
    assert f.to_wire()['title'] == 'Pay rent'


def test_with_completed_returns_new_task():
    t = make_task(1)
    done = t.with_completed(True)
    assert done.completed is True
    assert t.completed is False


def test_paginated_result_45_items_by_20():
    items = [make_task(i) for i in range(1, 46)]
    pages = [PaginatedResult.build(items[(p - 1) * 20:p * 20], 45, p, 20) for p in (1, 2, 3)]
    assert [len(p.items) for p in pages] == [20, 20, 5]
    assert all(p.total_pages == 3 for p in pages)
    assert [p.has_next_page for p in pages] == [True, True, False]
    assert [p.has_prev_page for p in pages] == [False, True, True]


def test_paginated_result_empty_and_oversized():
    empty = PaginatedResult.build([], 0, 1, 20)
    assert empty.total_pages == 0
    assert not empty.has_next_page and not empty.has_prev_page
    with pytest.raises(ValueError):
        PaginatedResult.build([make_task(i) for i in range(3)], 3, 1, 2)


def test_paginated_result_from_wire():
    raw = {
        'items': [make_task(5).to_wire()],
        'totalItems': '21',
        'totalPages': 2,
        'currentPage': 2,
        'hasNextPage': False,
        'hasPrevPage': True,
    }
    page = PaginatedResult.from_wire(raw)
    assert page.total_items == 21
    assert page.find(5).id == 5
    assert page.find(6) is None
    assert page.contains(5)


def test_api_filter_wire_uses_camel_case_sort_and_omits_unset():
    assert ApiFilter().to_wire() == {'view': 'all', 'sortBy': 'dueDateAsc'}
    wire = ApiFilter(view='today', project_id=3, priority='high', status='active',
                     search_query='milk', sort_by='priority_desc').to_wire()
    assert wire == {
        'view': 'today',
        'sortBy': 'priorityDesc',
        'projectId': 3,
        'priority': 'high',
        'status': 'active',
        'searchQuery': 'milk',
    }
    assert set(models.SORT_TO_WIRE) == set(models.SORT_OPTIONS)
