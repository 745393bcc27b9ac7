import os

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)

# "memory", "file" or "redis"
STATE_BACKEND = os.getenv("STATE_BACKEND", "memory")
STATE_FILE = os.getenv("STATE_FILE", "rendezvous_state.json")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3536))

# Room names that collide with fixed endpoints
RESERVED_ROOM_NAMES = {"poll", "events", "health", "signal", "leave"}
