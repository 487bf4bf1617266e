# campus_voting/realtime/presence.py

import threading
from collections import defaultdict


class PresenceTracker:
    """Live connection counts per identity, e.g. ``student:12`` or ``admin:root``."""

    def __init__(self):
        self._lock = threading.Lock()
        self._connections = defaultdict(int)  # identity key -> open sockets
        self._by_sid = {}  # socket sid -> identity key

    def connect(self, sid, key):
        with self._lock:
            self._by_sid[sid] = key
            self._connections[key] += 1
            return self._connections[key]

    def disconnect(self, sid):
        with self._lock:
            key = self._by_sid.pop(sid, None)
            if key is None:
                return None
            self._connections[key] -= 1
            if self._connections[key] <= 0:
                del self._connections[key]
            return key

    def count(self, key):
        with self._lock:
            return self._connections.get(key, 0)

    def online(self, kind):
        prefix = f"{kind}:"
        with self._lock:
            return sorted(key[len(prefix):] for key in self._connections if key.startswith(prefix))


presence = PresenceTracker()
