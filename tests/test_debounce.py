import asyncio

import pytest

from taskdeck.debounce import DebouncedInput, Debouncer

from fakes import FakeLoop


def test_burst_of_keystrokes_fires_once_after_quiet_window():
    loop = FakeLoop()
    sent = []
    box = DebouncedInput(sent.append, 0.3, loop=loop)
    for text in ('m', 'mi', 'mil', 'milk'):
        box.type(text)
        assert box.value == text  # local echo is immediate
        loop.advance(0.05)
    # last keystroke at 150 ms
    loop.advance(0.3 - 0.05 - 0.002)
    assert sent == []
    loop.advance(0.004)
    assert sent == ['milk']
    loop.advance(5)
    assert sent == ['milk']


def test_close_drops_pending_value():
    loop = FakeLoop()
    sent = []
    box = DebouncedInput(sent.append, 0.3, loop=loop)
    box.type('abc')
    assert box.pending
    box.close()
    loop.advance(1)
    assert sent == []
    assert not box.pending


def test_submit_flushes_immediately():
    loop = FakeLoop()
    sent = []
    box = DebouncedInput(sent.append, 0.3, loop=loop)
    box.type('a')
    box.type('ab')
    box.submit()
    assert sent == ['ab']
    loop.advance(1)
    assert sent == ['ab']


def test_sync_does_not_echo_back():
    loop = FakeLoop()
    sent = []
    box = DebouncedInput(sent.append, 0.3, initial='old', loop=loop)
    box.type('new')
    box.sync('')
    loop.advance(1)
    assert sent == []
    assert box.value == ''


def test_debouncer_passes_last_arguments():
    loop = FakeLoop()
    seen = []
    d = Debouncer(lambda *a: seen.append(a), 0.1, loop=loop)
    d(1, 'a')
    d(2, 'b')
    loop.advance(0.2)
    assert seen == [(2, 'b')]


def test_debouncer_rejects_negative_delay():
    with pytest.raises(ValueError):
        Debouncer(print, -1)


def test_debouncer_on_real_loop():
    seen = []

    async def scenario():
        d = Debouncer(seen.append, 0.01)
        d('x')
        d('y')
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert seen == ['y']
