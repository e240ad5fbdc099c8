"""
relay.py
The relay store interface: a key-value snapshot document per room plus an append-only intent queue,
both with change notification. InMemoryRelayStore implements it inside one process.
Related modules:
- messages.py: Snapshot and IntentEnvelope are the stored values.
- room.py: Wraps a store with timeouts, roles and error reporting.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Callable, Dict, List, Optional

from .errors import IntentQueueFull
from .messages import IntentEnvelope, Snapshot
from .settings import settings as default_settings

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[Optional[Snapshot]], None]
IntentCallback = Callable[[IntentEnvelope], None]
Unsubscribe = Callable[[], None]


class RelayStore(ABC):
    """
    Eventually-consistent document store used as a relay between participants.
    Watch callbacks are delivered on the event loop, never inline with the write that caused them,
    and must not block.
    """

    @abstractmethod
    async def get_snapshot(self, room_id: str) -> Optional[Snapshot]:
        raise NotImplementedError

    @abstractmethod
    async def set_snapshot(self, room_id: str, snapshot: Snapshot) -> None:
        """Overwrite the room's snapshot document (last writer wins)."""
        raise NotImplementedError

    @abstractmethod
    async def append_intent(self, room_id: str, envelope: IntentEnvelope) -> None:
        raise NotImplementedError

    @abstractmethod
    async def delete_intent(self, room_id: str, intent_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def pending_intents(self, room_id: str) -> List[IntentEnvelope]:
        raise NotImplementedError

    @abstractmethod
    def watch_snapshot(self, room_id: str, callback: SnapshotCallback) -> Unsubscribe:
        """
        Call 'callback' with the current snapshot (None if the document is missing) and after every write.
        Returns:
            callable: Stops the feed.
        """
        raise NotImplementedError

    @abstractmethod
    def watch_intents(self, room_id: str, callback: IntentCallback) -> Unsubscribe:
        """
        Call 'callback' once for each queued intent already present and for every later arrival.
        Returns:
            callable: Stops the feed.
        """
        raise NotImplementedError


class InMemoryRelayStore(RelayStore):
    """
    Process-local relay store. Values are copied on the way in and out so that
    no participant shares mutable objects with another.
    """
    def __init__(self, max_pending_intents: Optional[int] = None):
        self.max_pending_intents = max_pending_intents or default_settings.max_pending_intents
        self._snapshots: Dict[str, Snapshot] = {}
        self._intents: Dict[str, Dict[str, IntentEnvelope]] = defaultdict(dict)
        self._snapshot_watchers: Dict[str, List[SnapshotCallback]] = defaultdict(list)
        self._intent_watchers: Dict[str, List[IntentCallback]] = defaultdict(list)

    async def get_snapshot(self, room_id: str) -> Optional[Snapshot]:
        snapshot = self._snapshots.get(room_id)
        return snapshot.model_copy(deep=True) if snapshot is not None else None

    async def set_snapshot(self, room_id: str, snapshot: Snapshot) -> None:
        stored = snapshot.model_copy(deep=True)
        self._snapshots[room_id] = stored
        for callback in list(self._snapshot_watchers[room_id]):
            self._notify(self._snapshot_watchers[room_id], callback, stored.model_copy(deep=True))

    async def append_intent(self, room_id: str, envelope: IntentEnvelope) -> None:
        queue = self._intents[room_id]
        if len(queue) >= self.max_pending_intents:
            logger.warning("Room %s: intent queue full, rejecting %s", room_id, envelope.type)
            raise IntentQueueFull(f"room {room_id!r} already has {len(queue)} pending intents")
        stored = envelope.model_copy(deep=True)
        queue[stored.id] = stored
        for callback in list(self._intent_watchers[room_id]):
            self._notify(self._intent_watchers[room_id], callback, stored.model_copy(deep=True))

    async def delete_intent(self, room_id: str, intent_id: str) -> None:
        self._intents[room_id].pop(intent_id, None)

    async def pending_intents(self, room_id: str) -> List[IntentEnvelope]:
        return [e.model_copy(deep=True) for e in self._intents[room_id].values()]

    def watch_snapshot(self, room_id: str, callback: SnapshotCallback) -> Unsubscribe:
        watchers = self._snapshot_watchers[room_id]
        watchers.append(callback)
        current = self._snapshots.get(room_id)
        self._notify(watchers, callback, current.model_copy(deep=True) if current is not None else None)
        return self._unsubscriber(watchers, callback)

    def watch_intents(self, room_id: str, callback: IntentCallback) -> Unsubscribe:
        watchers = self._intent_watchers[room_id]
        watchers.append(callback)
        for envelope in self._intents[room_id].values():
            self._notify(watchers, callback, envelope.model_copy(deep=True))
        return self._unsubscriber(watchers, callback)

    @staticmethod
    def _notify(watchers: list, callback, value) -> None:
        def deliver():
            # the feed may have been stopped between scheduling and delivery
            if callback in watchers:
                callback(value)

        asyncio.get_running_loop().call_soon(deliver)

    @staticmethod
    def _unsubscriber(watchers: list, callback) -> Unsubscribe:
        def unsubscribe():
            if callback in watchers:
                watchers.remove(callback)
        return unsubscribe
