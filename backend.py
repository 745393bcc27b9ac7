import os
import tempfile
import threading
from typing import Callable, TypeVar

import redis
from pydantic import ValidationError

from constants import REDIS_HOST, REDIS_PORT, REDIS_PASSWORD, STATE_BACKEND, STATE_FILE
from errors import StateStoreError
from logging_config import get_logger
from redis_keys import REDIS_STATE_KEY
from state import ServerState

logger = get_logger(__name__)

T = TypeVar("T")


class SnapshotStore:
    """Holds the latest ServerState snapshot.

    apply() runs one load-mutate-commit cycle. No other apply() observes the
    snapshot between the load and the commit, and if mutate raises nothing is
    committed.
    """

    def load(self) -> ServerState:
        raise NotImplementedError

    def apply(self, mutate: Callable[[ServerState], T]) -> T:
        raise NotImplementedError


class MemorySnapshotStore(SnapshotStore):
    def __init__(self, state: ServerState = None):
        self._state = state if state is not None else ServerState()
        self._lock = threading.Lock()
        logger.info("Using in-memory state snapshot")

    def load(self) -> ServerState:
        with self._lock:
            return self._state.model_copy(deep=True)

    def apply(self, mutate: Callable[[ServerState], T]) -> T:
        with self._lock:
            state = self._state.model_copy(deep=True)
            result = mutate(state)
            self._state = state
            return result


class FileSnapshotStore(SnapshotStore):
    """Snapshot kept as a JSON document on disk and rewritten on every commit."""

    def __init__(self, path: str = STATE_FILE):
        self.path = path
        self._lock = threading.Lock()
        logger.info(f"Using file state snapshot at {os.path.abspath(path)}")

    def _read(self) -> ServerState:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = f.read()
        except FileNotFoundError:
            logger.debug(f"State file {self.path} not found, starting empty")
            return ServerState()
        except OSError as e:
            raise StateStoreError(f"Failed to read state file {self.path}: {e}") from e

        if not raw.strip():
            return ServerState()
        try:
            return ServerState.from_json(raw)
        except ValidationError as e:
            raise StateStoreError(f"State file {self.path} is corrupt: {e}") from e

    def _write(self, state: ServerState):
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".rendezvous-", suffix=".json")
        except OSError as e:
            raise StateStoreError(f"Failed to write state file {self.path}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(state.to_json())
            # Readers see either the old or the new snapshot, never half of one
            os.replace(tmp_path, self.path)
        except OSError as e:
            try:
                os.unlink(tmp_path)
            except OSError:
                logger.debug(f"Could not remove temporary state file {tmp_path}")
            raise StateStoreError(f"Failed to write state file {self.path}: {e}") from e
        logger.debug(f"Committed state snapshot to {self.path}")

    def load(self) -> ServerState:
        with self._lock:
            return self._read()

    def apply(self, mutate: Callable[[ServerState], T]) -> T:
        with self._lock:
            state = self._read()
            result = mutate(state)
            self._write(state)
            return result


class RedisSnapshotStore(SnapshotStore):
    """Snapshot kept under a single Redis key.

    Commits go through WATCH/MULTI/EXEC; when another instance commits in
    between, redis-py raises WatchError internally and the whole cycle is
    re-run against the fresh snapshot.
    """

    def __init__(self, redis_client: redis.Redis, key: str = REDIS_STATE_KEY):
        self.redis_client = redis_client
        self.key = key
        logger.info(f"Using Redis state snapshot under key {key}")

    def _decode(self, raw) -> ServerState:
        if not raw:
            return ServerState()
        try:
            return ServerState.from_json(raw)
        except ValidationError as e:
            raise StateStoreError(f"Redis key {self.key} holds a corrupt snapshot: {e}") from e

    def load(self) -> ServerState:
        try:
            raw = self.redis_client.get(self.key)
        except redis.RedisError as e:
            raise StateStoreError(f"Failed to load state from Redis: {e}") from e
        return self._decode(raw)

    def apply(self, mutate: Callable[[ServerState], T]) -> T:
        def _cycle(pipe):
            state = self._decode(pipe.get(self.key))
            result = mutate(state)
            pipe.multi()
            pipe.set(self.key, state.to_json())
            return result

        try:
            return self.redis_client.transaction(_cycle, self.key, value_from_callable=True)
        except redis.RedisError as e:
            raise StateStoreError(f"Failed to commit state to Redis: {e}") from e


def connect_redis() -> redis.Redis:
    try:
        redis_client = redis.Redis(host=REDIS_HOST, port=REDIS_PORT, password=REDIS_PASSWORD, decode_responses=True)
        # Test connection
        redis_client.ping()
        logger.info(f"Redis client connected successfully to {REDIS_HOST}:{REDIS_PORT}")
    except Exception as e:
        logger.error(f"Failed to connect to Redis at {REDIS_HOST}:{REDIS_PORT}: {e}", exc_info=True)
        raise
    return redis_client


def create_store(backend: str = STATE_BACKEND) -> SnapshotStore:
    backend = backend.lower()
    if backend == "memory":
        return MemorySnapshotStore()
    if backend == "file":
        return FileSnapshotStore(STATE_FILE)
    if backend == "redis":
        return RedisSnapshotStore(connect_redis())
    raise ValueError(f"Unknown STATE_BACKEND {backend!r}, expected memory, file or redis")


snapshot_store = create_store()
