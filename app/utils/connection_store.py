"""
Per-connection state for the realtime gateway.

The gateway only talks to ``ConnectionStateStore``; the in-memory store keeps
everything in local dicts and is lost on restart. A shared store (e.g. keyed
by connection id in a key-value service) can be dropped in for multi-instance
deployments.
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional


class ConnectionStateStore(ABC):

    @abstractmethod
    def register(self, connection_id: str, user_id: int) -> None:
        pass

    @abstractmethod
    def user_for(self, connection_id: str) -> Optional[int]:
        pass

    @abstractmethod
    def join(self, connection_id: str, session_id: int) -> None:
        pass

    @abstractmethod
    def joined_session(self, connection_id: str) -> Optional[int]:
        pass

    @abstractmethod
    def append_chunk(self, connection_id: str, session_id: int, chunk: bytes) -> int:
        """Buffer a chunk and return how many chunks are now buffered."""

    @abstractmethod
    def buffered_audio(self, connection_id: str, session_id: int) -> bytes:
        pass

    @abstractmethod
    def pop_audio(self, connection_id: str, session_id: int) -> bytes:
        """Return the buffered audio and clear the buffer."""

    @abstractmethod
    def remove(self, connection_id: str) -> None:
        pass


class InMemoryConnectionStore(ConnectionStateStore):

    def __init__(self):
        self._users: Dict[str, int] = {}
        self._sessions: Dict[str, int] = {}
        self._chunks: Dict[tuple, List[bytes]] = {}
        self._lock = threading.Lock()

    def register(self, connection_id: str, user_id: int) -> None:
        with self._lock:
            self._users[connection_id] = user_id

    def user_for(self, connection_id: str) -> Optional[int]:
        return self._users.get(connection_id)

    def join(self, connection_id: str, session_id: int) -> None:
        with self._lock:
            self._sessions[connection_id] = session_id

    def joined_session(self, connection_id: str) -> Optional[int]:
        return self._sessions.get(connection_id)

    def append_chunk(self, connection_id: str, session_id: int, chunk: bytes) -> int:
        with self._lock:
            chunks = self._chunks.setdefault((connection_id, session_id), [])
            chunks.append(chunk)
            return len(chunks)

    def buffered_audio(self, connection_id: str, session_id: int) -> bytes:
        with self._lock:
            return b"".join(self._chunks.get((connection_id, session_id), []))

    def pop_audio(self, connection_id: str, session_id: int) -> bytes:
        with self._lock:
            return b"".join(self._chunks.pop((connection_id, session_id), []))

    def remove(self, connection_id: str) -> None:
        with self._lock:
            self._users.pop(connection_id, None)
            self._sessions.pop(connection_id, None)
            for key in [k for k in self._chunks if k[0] == connection_id]:
                del self._chunks[key]
