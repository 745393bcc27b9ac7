from typing import Dict, List, Set

from pydantic import BaseModel, Field, field_serializer


class PeerState(BaseModel):
    """One peer: the room it sits in and the events waiting for its next poll."""

    room: str
    events: List[str] = Field(default_factory=list)

    def enqueue(self, event: str):
        self.events.append(event)

    def drain(self) -> List[str]:
        """Remove and return every pending event, oldest first."""
        drained = self.events
        self.events = []
        return drained


class ServerState(BaseModel):
    """Full snapshot loaded, mutated and committed by every engine operation.

    peers: peer id -> PeerState
    rooms: room id -> ids of the peers in that room

    A peer id is in rooms[r] exactly when peers[id].room == r.
    """

    peers: Dict[str, PeerState] = Field(default_factory=dict)
    rooms: Dict[str, Set[str]] = Field(default_factory=dict)

    @field_serializer("rooms")
    def serialize_rooms(self, rooms: Dict[str, Set[str]]):
        return {room_id: sorted(members) for room_id, members in rooms.items()}

    def room_members(self, room_id: str) -> Set[str]:
        return set(self.rooms.get(room_id, ()))

    def add_member(self, room_id: str, peer_id: str):
        self.rooms.setdefault(room_id, set()).add(peer_id)

    def remove_member(self, room_id: str, peer_id: str) -> Set[str]:
        """Take peer_id out of room_id and return the members left behind.

        A room whose last member leaves is dropped from the registry.
        """
        members = self.rooms.get(room_id)
        if members is None:
            return set()
        members.discard(peer_id)
        if not members:
            del self.rooms[room_id]
        return set(members)

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, raw) -> "ServerState":
        return cls.model_validate_json(raw)
