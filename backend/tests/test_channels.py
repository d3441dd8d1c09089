import pytest

from app.services.session import HIDDEN, VISIBLE, Origin, VisibilityState


def test_broadcast_is_not_echoed_to_sender():
    origin = Origin()
    a = origin.open_channel('active-session', origin.new_context())
    b = origin.open_channel('active-session', origin.new_context())
    other_name = origin.open_channel('something-else', origin.new_context())
    got_a, got_b, got_other = [], [], []
    a.subscribe(got_a.append)
    b.subscribe(got_b.append)
    other_name.subscribe(got_other.append)

    a.post_message({'type': 'claim-primary', 'id': 'a'})

    assert got_a == []
    assert got_b == [{'type': 'claim-primary', 'id': 'a'}]
    assert got_other == []


def test_closed_channel_neither_sends_nor_receives():
    origin = Origin()
    a = origin.open_channel('c', origin.new_context())
    b = origin.open_channel('c', origin.new_context())
    got = []
    b.subscribe(got.append)
    b.close()
    a.post_message({'n': 1})
    b.post_message({'n': 2})
    assert got == []


def test_storage_events_reach_only_other_contexts():
    origin = Origin()
    writer = origin.storage(origin.new_context())
    reader = origin.storage(origin.new_context())
    writer_events, reader_events = [], []
    writer.subscribe(lambda *event: writer_events.append(event))
    reader.subscribe(lambda *event: reader_events.append(event))

    writer.set('k', 'v1')
    writer.set('k', 'v1')
    writer.set('k', 'v2')
    writer.remove('k')

    assert reader.get('k') is None
    assert writer_events == []
    assert reader_events == [('k', None, 'v1'), ('k', 'v1', 'v2'), ('k', 'v2', None)]


def test_clear_notifies_with_no_key():
    origin = Origin()
    writer = origin.storage(origin.new_context())
    reader = origin.storage(origin.new_context())
    events = []
    reader.subscribe(lambda *event: events.append(event))
    writer.set('a', '1')
    writer.clear()
    assert writer.get('a') is None
    assert events[-1] == (None, None, None)


def test_held_events_deliver_in_order_and_last_write_wins():
    origin = Origin(autoflush=False)
    first = origin.storage(origin.new_context())
    second = origin.storage(origin.new_context())
    first.set('slot', 'first')
    second.set('slot', 'second')
    assert first.get('slot') is None
    assert origin.pending == 2

    assert origin.run_pending() == 4  # two writes, two change events
    assert first.get('slot') == 'second'
    assert origin.pending == 0


def test_listener_writes_are_delivered_after_current_event():
    origin = Origin()
    a = origin.storage(origin.new_context())
    b = origin.storage(origin.new_context())
    order = []

    def on_change(key, old, new):
        order.append(('b saw', key, new))
        if key == 'ping':
            b.set('pong', 'yes')

    b.subscribe(on_change)
    a.subscribe(lambda key, old, new: order.append(('a saw', key, new)))
    a.set('ping', 'hi')
    assert order == [('b saw', 'ping', 'hi'), ('a saw', 'pong', 'yes')]


def test_dropped_messages_are_lost():
    origin = Origin()
    a = origin.open_channel('c', origin.new_context())
    b = origin.open_channel('c', origin.new_context())
    got = []
    b.subscribe(got.append)
    origin.drop_messages = True
    a.post_message({'n': 1})
    origin.drop_messages = False
    a.post_message({'n': 2})
    assert got == [{'n': 2}]


def test_visibility_notifies_only_on_change():
    visibility = VisibilityState(HIDDEN)
    seen = []
    unsubscribe = visibility.subscribe(seen.append)
    visibility.hide()
    visibility.show()
    visibility.show()
    unsubscribe()
    visibility.hide()
    assert seen == [VISIBLE]
    assert visibility.state == HIDDEN
    assert not visibility.visible


def test_unknown_visibility_state_is_rejected():
    with pytest.raises(ValueError):
        VisibilityState('prerender')
    visibility = VisibilityState()
    with pytest.raises(ValueError):
        visibility.set(None)
