import pytest

from taskdeck.filters import FilterState, FilterStore


def _on_page_3() -> FilterStore:
    fs = FilterStore()
    fs.set_current_page(3)
    return fs


@pytest.mark.parametrize('change', [
    lambda fs: fs.set_time_window('today'),
    lambda fs: fs.set_project_id(4),
    lambda fs: fs.set_search_query('milk'),
    lambda fs: fs.set_priority_filter('high'),
    lambda fs: fs.set_status_filter('completed'),
    lambda fs: fs.set_sort_by('alpha_desc'),
])
def test_every_filter_change_lands_on_page_one(change):
    fs = _on_page_3()
    seen = []
    fs.subscribe(seen.append)
    change(fs)
    # one notification, and it already carries page 1
    assert len(seen) == 1
    assert seen[0].current_page == 1
    assert fs.state.current_page == 1


def test_page_setter_only_changes_page():
    fs = FilterStore()
    fs.set_priority_filter('low')
    fs.set_current_page(2)
    assert fs.state.current_page == 2
    assert fs.state.priority_filter == 'low'
    with pytest.raises(ValueError):
        fs.set_current_page(0)


def test_noop_update_does_not_notify():
    fs = FilterStore()
    seen = []
    fs.subscribe(seen.append)
    fs.set_status_filter('all')
    fs.reset_page()
    assert seen == []


def test_unsubscribe_stops_notifications():
    fs = FilterStore()
    seen = []
    unsubscribe = fs.subscribe(seen.append)
    unsubscribe()
    fs.set_time_window('upcoming')
    assert seen == []


def test_clear_filters_keeps_sort_and_project():
    fs = FilterStore()
    fs.set_project_id(9)
    fs.set_sort_by('created_desc')
    fs.set_time_window('today')
    fs.set_search_query('report')
    fs.set_status_filter('active')
    fs.set_priority_filter('medium')
    fs.set_current_page(4)
    fs.clear_filters()
    assert fs.state == FilterState(project_id=9, sort_by='created_desc')


def test_has_active_filters_ignores_navigation():
    fs = FilterStore()
    fs.set_project_id(1)
    fs.set_time_window('upcoming')
    fs.set_search_query('   ')
    assert fs.has_active_filters is False
    fs.set_search_query(' x ')
    assert fs.has_active_filters is True
    fs.clear_filters()
    fs.set_status_filter('completed')
    assert fs.has_active_filters is True
    fs.clear_filters()
    fs.set_priority_filter('high')
    assert fs.has_active_filters is True


def test_api_filter_normalizes():
    fs = FilterStore()
    assert fs.api_filter.status is None
    assert fs.api_filter.search_query is None
    fs.set_search_query('  groceries ')
    fs.set_status_filter('active')
    af = fs.api_filter
    assert af.search_query == 'groceries'
    assert af.status == 'active'
    assert af.view == 'all'


def test_setters_reject_unknown_values():
    fs = FilterStore()
    with pytest.raises(ValueError):
        fs.set_time_window('yesterday')
    with pytest.raises(ValueError):
        fs.set_priority_filter('urgent')
    with pytest.raises(ValueError):
        fs.set_status_filter('open')
    with pytest.raises(ValueError):
        fs.set_sort_by('title')
    assert fs.state == FilterState()


def test_clamp_page():
    fs = _on_page_3()
    fs.clamp_page(5)
    assert fs.state.current_page == 3
    fs.clamp_page(2)
    assert fs.state.current_page == 2
    fs.clamp_page(0)
    assert fs.state.current_page == 1
