"""
Process-wide registry of live relay connections.

Fan-out itself goes through channel-layer groups; the registry records who
each connection belongs to so the relay can decide which rooms it joins and
whether an envelope may speak for a given user.  Entries are added on
connect and removed from the transport's disconnect callback.
"""
from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

from django.utils import timezone


def new_connection_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Connection:
    channel_name: str
    conn_id: str = field(default_factory=new_connection_id)
    user_id: Optional[str] = None
    doctor_id: Optional[str] = None
    authenticated: bool = False
    rooms: set[str] = field(default_factory=set)
    connected_at: datetime = field(default_factory=timezone.now)

    @property
    def bound(self) -> bool:
        return self.user_id is not None


class ConnectionRegistry:
    """Mutex-guarded ``conn_id -> Connection`` map.

    Lookups return copies so callers never mutate shared state outside the
    lock.  A ``threading.Lock`` is used because the map is read from sync
    views (health, dashboard) as well as from consumers on the event loop;
    no critical section awaits.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._connections: dict[str, Connection] = {}

    def add(self, connection: Connection) -> Connection:
        with self._lock:
            if connection.conn_id in self._connections:
                raise KeyError(f'connection {connection.conn_id} already registered')
            self._connections[connection.conn_id] = connection
            return replace(connection, rooms=set(connection.rooms))

    def get(self, conn_id: str) -> Optional[Connection]:
        with self._lock:
            conn = self._connections.get(conn_id)
            return replace(conn, rooms=set(conn.rooms)) if conn else None

    def bind(self, conn_id: str, user_id: str, *, doctor_id: Optional[str] = None) -> Connection:
        """Attach ``user_id`` to a connection; binding is permanent for its lifetime."""
        with self._lock:
            conn = self._connections[conn_id]
            if conn.user_id is not None and conn.user_id != user_id:
                raise PermissionError(f'connection already bound to {conn.user_id}')
            conn.user_id = user_id
            if doctor_id is not None:
                conn.doctor_id = doctor_id
            return replace(conn, rooms=set(conn.rooms))

    def join(self, conn_id: str, room: str) -> bool:
        """Record room membership.  Returns False when it was already a member."""
        with self._lock:
            conn = self._connections[conn_id]
            if room in conn.rooms:
                return False
            conn.rooms.add(room)
            return True

    def remove(self, conn_id: str) -> set[str]:
        """Forget a connection and return the rooms it had joined."""
        with self._lock:
            conn = self._connections.pop(conn_id, None)
            return set(conn.rooms) if conn else set()

    def count(self) -> int:
        with self._lock:
            return len(self._connections)

    def for_user(self, user_id: str) -> list[Connection]:
        with self._lock:
            return [replace(c, rooms=set(c.rooms)) for c in self._connections.values() if c.user_id == user_id]

    def snapshot(self) -> list[dict]:
        with self._lock:
            return [{
                'connId': c.conn_id,
                'userId': c.user_id,
                'doctorId': c.doctor_id,
                'authenticated': c.authenticated,
                'rooms': sorted(c.rooms),
                'connectedAt': c.connected_at.isoformat(),
            } for c in self._connections.values()]

    def clear(self) -> None:
        with self._lock:
            self._connections.clear()


registry = ConnectionRegistry()
