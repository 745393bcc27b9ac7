class RendezvousError(Exception):
    """Base class for errors raised by the rendezvous core."""


class UnknownPeer(RendezvousError):
    def __init__(self, peer_id: str):
        self.peer_id = peer_id
        super().__init__(f"Unknown peer: {peer_id}")


class StateStoreError(RendezvousError):
    """Loading or committing the state snapshot failed."""
