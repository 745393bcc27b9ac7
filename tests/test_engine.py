import json

import pytest

import protocol
from errors import UnknownPeer


def decode(events):
    return [json.loads(event) for event in events]


def test_room_scenario(engine):
    peer_a, events = engine.join_or_poll("r1")
    assert decode(events) == [{"IdAssigned": peer_a}]

    peer_b, events = engine.join_or_poll("r1")
    assert decode(events) == [{"IdAssigned": peer_b}, {"NewPeer": peer_a}]

    assert engine.join_or_poll("r1", peer_a) == (peer_a, [protocol.new_peer(peer_b)])
    assert engine.join_or_poll("r1", peer_a) == (peer_a, [])

    engine.remove_peer(peer_b)
    assert engine.join_or_poll("r1", peer_a) == (peer_a, [protocol.peer_left(peer_b)])


def test_join_announces_to_every_existing_member(engine):
    members = [engine.join_or_poll("room")[0] for _ in range(3)]
    # Flush the NewPeer events members got about each other
    for member in members:
        engine.join_or_poll("room", member)

    newcomer, events = engine.join_or_poll("room")

    assert events[0] == protocol.id_assigned(newcomer)
    assert sorted(events[1:]) == sorted(protocol.new_peer(m) for m in members)
    for member in members:
        assert engine.join_or_poll("room", member) == (member, [protocol.new_peer(newcomer)])


def test_join_mints_distinct_ids(engine):
    ids = {engine.join_or_poll("room")[0] for _ in range(10)}
    assert len(ids) == 10
    assert engine.list_room_peers("room") == ids


def test_unknown_peer_id_joins_as_new_peer(engine):
    peer_id, events = engine.join_or_poll("r1", "stale-id")

    assert peer_id != "stale-id"
    assert decode(events) == [{"IdAssigned": peer_id}]
    assert engine.list_room_peers("r1") == {peer_id}


def test_poll_ignores_room_argument(engine):
    peer_a, _ = engine.join_or_poll("r1")
    peer_b, _ = engine.join_or_poll("r1")

    assert engine.join_or_poll("elsewhere", peer_a) == (peer_a, [protocol.new_peer(peer_b)])
    assert engine.list_room_peers("elsewhere") == set()


def test_signals_delivered_once_in_order(engine):
    sender, _ = engine.join_or_poll("r1")
    receiver, _ = engine.join_or_poll("r1")
    engine.join_or_poll("r1", sender)

    sent = [protocol.signal(sender, {"seq": n}) for n in range(5)]
    for event in sent:
        engine.queue_signal(receiver, event)

    assert engine.join_or_poll("r1", receiver) == (receiver, sent)
    assert engine.join_or_poll("r1", receiver) == (receiver, [])
    # No fan-out to the sender
    assert engine.join_or_poll("r1", sender) == (sender, [])


def test_events_keep_fifo_across_kinds(engine):
    peer_a, _ = engine.join_or_poll("r1")
    engine.queue_signal(peer_a, "custom-1")
    peer_b, _ = engine.join_or_poll("r1")
    engine.queue_signal(peer_a, "custom-2")
    engine.remove_peer(peer_b)

    _, events = engine.join_or_poll("r1", peer_a)

    assert events == ["custom-1", protocol.new_peer(peer_b), "custom-2", protocol.peer_left(peer_b)]


def test_queue_signal_to_unknown_peer_leaves_state_unchanged(engine, store):
    engine.join_or_poll("r1")
    before = store.load()

    with pytest.raises(UnknownPeer) as excinfo:
        engine.queue_signal("ghost", "payload")

    assert excinfo.value.peer_id == "ghost"
    assert store.load() == before


def test_remove_peer_notifies_remaining_members(engine, store):
    peers = [engine.join_or_poll("r1")[0] for _ in range(4)]
    for peer in peers:
        engine.join_or_poll("r1", peer)
    leaving, staying = peers[0], peers[1:]
    engine.queue_signal(leaving, "never delivered")

    engine.remove_peer(leaving)

    state = store.load()
    assert leaving not in state.peers
    assert engine.list_room_peers("r1") == set(staying)
    for peer in staying:
        assert engine.join_or_poll("r1", peer) == (peer, [protocol.peer_left(leaving)])

    # The departed id is not recognized any more, so it joins afresh
    rejoined, events = engine.join_or_poll("r1", leaving)
    assert rejoined != leaving
    assert "never delivered" not in events


def test_remove_last_member_drops_room(engine, store):
    peer_id, _ = engine.join_or_poll("r1")

    engine.remove_peer(peer_id)

    assert engine.list_room_peers("r1") == set()
    assert store.load().rooms == {}


def test_remove_unknown_peer_is_noop(engine, store):
    peer_a, _ = engine.join_or_poll("r1")
    before = store.load()

    engine.remove_peer("ghost")
    engine.remove_peer("ghost")

    assert store.load() == before


def test_remove_is_idempotent(engine):
    peer_a, _ = engine.join_or_poll("r1")
    peer_b, _ = engine.join_or_poll("r1")
    engine.join_or_poll("r1", peer_a)

    engine.remove_peer(peer_b)
    engine.remove_peer(peer_b)

    assert engine.join_or_poll("r1", peer_a) == (peer_a, [protocol.peer_left(peer_b)])


def test_rooms_are_isolated(engine):
    peer_a, _ = engine.join_or_poll("r1")
    peer_b, events = engine.join_or_poll("r2")

    assert decode(events) == [{"IdAssigned": peer_b}]
    engine.remove_peer(peer_b)
    assert engine.join_or_poll("r1", peer_a) == (peer_a, [])
    assert engine.list_room_peers("r1") == {peer_a}


def test_list_room_peers_of_unknown_room(engine):
    assert engine.list_room_peers("never-joined") == set()


def test_custom_id_factory(store):
    from engine import RendezvousEngine

    ids = iter(["pA", "pB"])
    engine = RendezvousEngine(store, id_factory=lambda: next(ids))

    assert engine.join_or_poll("r1") == ("pA", [protocol.id_assigned("pA")])
    assert engine.join_or_poll("r1") == ("pB", [protocol.id_assigned("pB"), protocol.new_peer("pA")])
