from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

import protocol
from constants import RESERVED_ROOM_NAMES
from engine import RendezvousEngine, rendezvous_engine
from errors import StateStoreError, UnknownPeer
from logging_config import get_logger
from schemas.signaling import PollResponse, RoomPeersResponse

logger = get_logger(__name__)

signaling_router = APIRouter(tags=["signaling"])

INFO_PAGE = """Rendezvous Signaling Server (Long-Polling)

Endpoints:
- GET /health - Health check
- GET /poll/{room}?peer_id={id} - Join/poll room for events
- POST /signal - Send signal (X-Peer-Id header required)
- POST /leave - Leave the room (X-Peer-Id header required)
- GET /rooms/{room}/peers - List peers in a room

Protocol:
1. GET /poll/{room} to join and get peer_id + initial events
2. Poll GET /poll/{room}?peer_id={id} for new events
3. POST /signal with X-Peer-Id header to send signals
4. POST /leave with X-Peer-Id header when done

Response format: {"peer_id": "uuid", "events": [...]}
"""


def get_engine() -> RendezvousEngine:
    return rendezvous_engine


def require_peer_id(x_peer_id: Optional[str]) -> str:
    sender_id = protocol.parse_peer_id(x_peer_id)
    if sender_id is None:
        logger.warning(f"Rejected request with missing or invalid X-Peer-Id: {x_peer_id!r}")
        raise HTTPException(status_code=400, detail="Missing or invalid X-Peer-Id header")
    return sender_id


def store_failure(action: str, e: StateStoreError) -> HTTPException:
    logger.error(f"State store failure while trying to {action}: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=f"Failed to {action}")


@signaling_router.get("/health", response_class=PlainTextResponse)
def health():
    return "OK"


@signaling_router.get("/", response_class=PlainTextResponse)
@signaling_router.get("/poll", response_class=PlainTextResponse, include_in_schema=False)
@signaling_router.get("/events", response_class=PlainTextResponse, include_in_schema=False)
def info():
    return INFO_PAGE


@signaling_router.post("/signal", response_class=PlainTextResponse)
async def send_signal(
    request: Request,
    x_peer_id: Optional[str] = Header(None),
    engine: RendezvousEngine = Depends(get_engine),
):
    """Relay a signal to another peer.

    Body: {"Signal": {"receiver": "<uuid>", "data": ...}} or "KeepAlive".
    The receiver gets {"Signal": {"sender": "<X-Peer-Id>", "data": ...}} on its next poll.
    """
    sender_id = require_peer_id(x_peer_id)

    body = await request.body()
    try:
        peer_request = protocol.parse_peer_request(body)
    except ValidationError as e:
        logger.warning(f"Invalid signal request from peer {sender_id}: {e.error_count()} errors")
        raise HTTPException(status_code=400, detail="Invalid request")

    if peer_request == "KeepAlive":
        logger.debug(f"KeepAlive from peer {sender_id}")
        return "OK"

    receiver_id = str(peer_request.signal.receiver)
    event = protocol.signal(sender_id, peer_request.signal.data)
    try:
        await run_in_threadpool(engine.queue_signal, receiver_id, event)
    except UnknownPeer:
        logger.info(f"Signal from {sender_id} dropped, receiver {receiver_id} not found")
        raise HTTPException(status_code=404, detail="Peer not found")
    except StateStoreError as e:
        raise store_failure("queue signal", e)

    logger.debug(f"Relayed signal from {sender_id} to {receiver_id}")
    return "OK"


@signaling_router.post("/leave", response_class=PlainTextResponse)
def leave(
    x_peer_id: Optional[str] = Header(None),
    engine: RendezvousEngine = Depends(get_engine),
):
    peer_id = require_peer_id(x_peer_id)
    try:
        engine.remove_peer(peer_id)
    except StateStoreError as e:
        raise store_failure("remove peer", e)
    return "OK"


@signaling_router.get("/rooms/{room_id}/peers", response_model=RoomPeersResponse)
def room_peers(room_id: str, engine: RendezvousEngine = Depends(get_engine)):
    try:
        peers = engine.list_room_peers(room_id)
    except StateStoreError as e:
        raise store_failure("list room peers", e)
    return RoomPeersResponse(room=room_id, peers=sorted(peers))


def join_or_poll(room_id: str, peer_id: Optional[str], engine: RendezvousEngine):
    if room_id in RESERVED_ROOM_NAMES:
        return PlainTextResponse(INFO_PAGE)

    # A malformed peer_id is treated the same as no peer_id
    known_id = protocol.parse_peer_id(peer_id)
    try:
        assigned_id, events = engine.join_or_poll(room_id, known_id)
    except StateStoreError as e:
        raise store_failure("join or poll room", e)
    return PollResponse(peer_id=assigned_id, events=events)


@signaling_router.get("/poll/{room_id}", response_model=PollResponse)
def poll(
    room_id: str,
    peer_id: Optional[str] = Query(None, description="Peer id returned by the first call; omit to join"),
    engine: RendezvousEngine = Depends(get_engine),
):
    return join_or_poll(room_id, peer_id, engine)


@signaling_router.get("/events/{room_id}", response_model=PollResponse)
def poll_events(
    room_id: str,
    peer_id: Optional[str] = Query(None),
    engine: RendezvousEngine = Depends(get_engine),
):
    return join_or_poll(room_id, peer_id, engine)


@signaling_router.get("/{room_id}", response_model=PollResponse)
def poll_room(
    room_id: str,
    peer_id: Optional[str] = Query(None),
    engine: RendezvousEngine = Depends(get_engine),
):
    return join_or_poll(room_id, peer_id, engine)
