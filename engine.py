import uuid
from typing import Callable, List, Optional, Set, Tuple

import protocol
from backend import SnapshotStore, snapshot_store
from errors import UnknownPeer
from logging_config import get_logger
from state import PeerState, ServerState

logger = get_logger(__name__)


def new_peer_id() -> str:
    return str(uuid.uuid4())


class RendezvousEngine:
    """Rooms, peers and their event queues.

    Every public method is one store.apply() cycle, so the mutation callbacks
    below must be safe to re-run from scratch (the Redis store retries them on
    write conflicts). Logging happens after the cycle for that reason.
    """

    def __init__(self, store: SnapshotStore, id_factory: Callable[[], str] = new_peer_id):
        self.store = store
        self.id_factory = id_factory

    def join_or_poll(self, room_id: str, peer_id: Optional[str] = None) -> Tuple[str, List[str]]:
        """Drain the queue of a known peer, or join room_id as a new peer.

        An absent or unknown peer_id is a join. For a poll the room_id is not
        checked against the room the peer is in.
        """
        def _mutate(state: ServerState):
            if peer_id is not None:
                peer = state.peers.get(peer_id)
                if peer is not None:
                    return peer_id, peer.drain(), None
            joined_id, existing = self._join(state, room_id)
            return joined_id, state.peers[joined_id].drain(), existing

        result_id, events, existing = self.store.apply(_mutate)
        if existing is None:
            logger.debug(f"Peer {result_id} polled {len(events)} events")
        else:
            if peer_id is not None:
                logger.info(f"Unknown peer {peer_id} polling room {room_id}, joining as new peer")
            logger.info(f"Peer {result_id} joined room {room_id} ({existing} peers already there)")
        return result_id, events

    def _join(self, state: ServerState, room_id: str) -> Tuple[str, int]:
        joined_id = self.id_factory()
        existing = list(state.room_members(room_id))

        peer = PeerState(room=room_id)
        peer.enqueue(protocol.id_assigned(joined_id))
        for member_id in existing:
            peer.enqueue(protocol.new_peer(member_id))
        state.peers[joined_id] = peer
        state.add_member(room_id, joined_id)

        announcement = protocol.new_peer(joined_id)
        for member_id in existing:
            state.peers[member_id].enqueue(announcement)
        return joined_id, len(existing)

    def queue_signal(self, receiver_id: str, event: str):
        """Append an already encoded event to one peer's queue.

        Raises UnknownPeer, leaving the snapshot untouched, if the receiver is
        not registered.
        """
        def _mutate(state: ServerState):
            receiver = state.peers.get(receiver_id)
            if receiver is None:
                raise UnknownPeer(receiver_id)
            receiver.enqueue(event)

        self.store.apply(_mutate)
        logger.debug(f"Queued event for peer {receiver_id}")

    def remove_peer(self, peer_id: str):
        """Drop a peer and tell its room-mates. Unknown ids are ignored."""
        def _mutate(state: ServerState):
            peer = state.peers.pop(peer_id, None)
            if peer is None:
                return None
            remaining = state.remove_member(peer.room, peer_id)
            notice = protocol.peer_left(peer_id)
            for member_id in remaining:
                state.peers[member_id].enqueue(notice)
            return peer.room, len(remaining), len(peer.events)

        removed = self.store.apply(_mutate)
        if removed is None:
            logger.debug(f"Remove requested for unknown peer {peer_id}, nothing to do")
            return
        room_id, remaining, discarded = removed
        logger.info(f"Peer {peer_id} left room {room_id}, notified {remaining} peers, discarded {discarded} undelivered events")

    def list_room_peers(self, room_id: str) -> Set[str]:
        return self.store.load().room_members(room_id)


rendezvous_engine = RendezvousEngine(snapshot_store)
