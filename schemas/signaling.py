import uuid
from typing import Any, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class SignalBody(BaseModel):
    receiver: uuid.UUID
    data: Any


class SignalRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    signal: SignalBody = Field(alias="Signal")


# Body of POST /signal: {"Signal": {"receiver": ..., "data": ...}} or "KeepAlive"
PeerRequest = Union[Literal["KeepAlive"], SignalRequest]
peer_request_adapter = TypeAdapter(PeerRequest)


class PollResponse(BaseModel):
    peer_id: str
    events: List[str]


class RoomPeersResponse(BaseModel):
    room: str
    peers: List[str]
