import datetime as dt

import pytest

from taskdeck.errors import RemoteRejectedError
from taskdeck.filters import ApiFilter
from taskdeck.memory_store import MemoryTaskStore, seed_demo
from taskdeck.models import TaskFields

from fakes import BASE_TIME, seed_tasks


def test_pagination_45_by_20(memory):
    seed_tasks(memory, 45)
    pages = [memory.list_tasks(ApiFilter(), p, 20) for p in (1, 2, 3)]
    assert [len(p.items) for p in pages] == [20, 20, 5]
    assert [p.total_pages for p in pages] == [3, 3, 3]
    assert pages[0].has_next_page and not pages[0].has_prev_page
    assert pages[2].has_prev_page and not pages[2].has_next_page
    # no task on two pages
    ids = [t.id for p in pages for t in p.items]
    assert len(ids) == len(set(ids)) == 45


def test_page_past_the_end_is_empty(memory):
    seed_tasks(memory, 5)
    page = memory.list_tasks(ApiFilter(), 2, 20)
    assert page.items == ()
    assert page.total_pages == 1


def test_filters(memory):
    home = memory.create_project('Home')
    memory.create_task(TaskFields(title='Today high', priority='high', due_date=BASE_TIME, project_id=home.id))
    memory.create_task(TaskFields(title='Later', due_date=BASE_TIME + dt.timedelta(days=2)))
    memory.create_task(TaskFields(title='Past', due_date=BASE_TIME - dt.timedelta(days=2)))
    undated = memory.create_task(TaskFields(title='Someday', description='find the milk'))
    memory.toggle_task_complete(undated.id)

    def titles(**kw):
        return [t.title for t in memory.list_tasks(ApiFilter(**kw), 1, 20).items]

    assert titles(view='today') == ['Today high']
    assert titles(view='upcoming') == ['Later']
    assert titles(project_id=home.id) == ['Today high']
    assert titles(priority='high') == ['Today high']
    assert titles(status='completed') == ['Someday']
    assert 'Someday' not in titles(status='active')
    assert titles(search_query='MILK') == ['Someday']


def test_sorting(memory):
    memory.create_task(TaskFields(title='b', priority='low', due_date=BASE_TIME + dt.timedelta(days=1)))
    memory.create_task(TaskFields(title='a', priority='high'))
    memory.create_task(TaskFields(title='c', priority='medium', due_date=BASE_TIME))

    def titles(sort_by):
        return [t.title for t in memory.list_tasks(ApiFilter(sort_by=sort_by), 1, 20).items]

    assert titles('due_date_asc') == ['c', 'b', 'a']
    # undated tasks trail in both directions
    assert titles('due_date_desc') == ['b', 'c', 'a']
    assert titles('priority_desc') == ['a', 'c', 'b']
    assert titles('priority_asc') == ['b', 'c', 'a']
    assert titles('alpha_asc') == ['a', 'b', 'c']
    assert titles('alpha_desc') == ['c', 'b', 'a']


def test_project_names_are_unique_case_insensitively(memory):
    memory.create_project('Work')
    with pytest.raises(RemoteRejectedError, match="already exists"):
        memory.create_project(' work ')
    with pytest.raises(RemoteRejectedError):
        memory.create_project('   ')


def test_delete_project_detaches_tasks(memory):
    p = memory.create_project('Errands')
    t = memory.create_task(TaskFields(title='Post office', project_id=p.id))
    memory.delete_project(p.id)
    assert memory.list_projects() == []
    assert memory.list_tasks(ApiFilter(), 1, 20).find(t.id).project_id is None
    with pytest.raises(RemoteRejectedError):
        memory.delete_project(p.id)


def test_unknown_ids_are_rejected(memory):
    with pytest.raises(RemoteRejectedError):
        memory.toggle_task_complete(7)
    with pytest.raises(RemoteRejectedError):
        memory.create_task(TaskFields(title='x', project_id=7))


def test_export_carries_project_names(memory):
    p = memory.create_project('Home')
    memory.create_task(TaskFields(title='Dishes', project_id=p.id))
    memory.create_task(TaskFields(title='Loose'))
    rows = memory.export_tasks(ApiFilter())
    assert [(r.title, r.project_name) for r in rows] == [('Dishes', 'Home'), ('Loose', None)]


def test_display_name_roundtrip(memory):
    assert memory.get_display_name() is None
    memory.set_display_name('  Ada ')
    assert memory.get_display_name() == 'Ada'


def test_seed_demo_fills_three_projects():
    store = MemoryTaskStore()
    seed_demo(store)
    assert [p.name for p in store.list_projects()] == ['Home', 'Work', 'Errands']
    assert store.list_tasks(ApiFilter(), 1, 100).total_items == 24
