"""Wire format of the events queued for peers and of the requests peers send.

Events are compact JSON strings:

    {"IdAssigned": "<peer id>"}
    {"NewPeer": "<peer id>"}
    {"PeerLeft": "<peer id>"}
    {"Signal": {"sender": "<peer id>", "data": <any>}}

The rendezvous core stores and replays them verbatim.
"""
import json
import uuid
from typing import Any, Optional, Union

from schemas.signaling import SignalRequest, peer_request_adapter


def _encode(event: dict) -> str:
    return json.dumps(event, separators=(",", ":"))


def id_assigned(peer_id: str) -> str:
    return _encode({"IdAssigned": peer_id})


def new_peer(peer_id: str) -> str:
    return _encode({"NewPeer": peer_id})


def peer_left(peer_id: str) -> str:
    return _encode({"PeerLeft": peer_id})


def signal(sender_id: str, data: Any) -> str:
    return _encode({"Signal": {"sender": sender_id, "data": data}})


def parse_peer_request(raw: Union[str, bytes]) -> Union[str, SignalRequest]:
    """Decode a POST /signal body.

    Raises pydantic.ValidationError for anything that is neither a Signal
    request nor "KeepAlive".
    """
    return peer_request_adapter.validate_json(raw)


def parse_peer_id(value: Optional[str]) -> Optional[str]:
    """Canonical form of a client supplied peer id, or None if it is not a UUID."""
    if not value:
        return None
    try:
        return str(uuid.UUID(value))
    except ValueError:
        return None
