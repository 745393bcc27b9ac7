REDIS_STATE_KEY = "rendezvous:state"  # JSON snapshot of the whole ServerState

# **Snapshot layout**
# - `peers` = {peer_id: {"room": room_id, "events": [event, ...]}}
# - `rooms` = {room_id: [peer_id, ...]}
#
# Every operation WATCHes this key, rewrites it inside MULTI/EXEC and retries
# when another writer touched it in between.
