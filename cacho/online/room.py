"""
room.py
One participant's connection to a room on the relay store.
The host publishes the canonical snapshot and consumes intents; every participant,
the host included, watches the snapshot feed and may send intents.
Related modules:
- relay.py: The store being wrapped.
- messages.py: Snapshot and IntentEnvelope models.
- host.py: HostSession drives a host Room.
"""

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Deque, List, Optional, Set, Union

from ..core.actions import Intent
from ..core.state import GameState, is_ready
from .errors import NotHostError, RelayError
from .messages import IntentEnvelope, Snapshot, encode_intent
from .relay import RelayStore, Unsubscribe
from .settings import RoomSettings, settings as default_settings

logger = logging.getLogger(__name__)

HOST = "host"
CLIENT = "client"

StateHandler = Callable[[Optional[GameState]], None]
IntentHandler = Callable[[IntentEnvelope], Awaitable[None]]


class Room:
    """
    Args:
        store (RelayStore): Relay shared by all participants.
        room_id (str): Room name, supplied out of band.
        role (str): "host" or "client".
        seat (int|str|None): Seat this participant plays; stamped on outgoing intents.
        settings (RoomSettings|None): Timeouts and limits.
    """
    def __init__(self, store: RelayStore, room_id: str, role: str = CLIENT,
                 seat: Optional[Union[int, str]] = None, settings: Optional[RoomSettings] = None):
        if role not in (HOST, CLIENT):
            raise ValueError(f"role must be {HOST!r} or {CLIENT!r}")
        self.store = store
        self.room_id = room_id
        self.role = role
        self.seat = seat
        self.settings = settings or default_settings
        self.state: Optional[GameState] = None
        self.last_error: Optional[str] = None
        self._handlers: List[StateHandler] = []
        self._unsubscribers: List[Unsubscribe] = []
        # ids already handed to the intent handler, bounded by settings.dedup_window
        self._consumed: Set[str] = set()
        self._consumed_order: Deque[str] = deque()
        self._consumers: Set[asyncio.Task] = set()

    @property
    def is_host(self) -> bool:
        return self.role == HOST

    @property
    def connection_status(self) -> str:
        """'connecting' until a ready snapshot has been observed, then 'ready'."""
        return "ready" if is_ready(self.state) else "connecting"

    async def _call(self, what: str, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.settings.relay_timeout)
        except asyncio.TimeoutError as exc:
            self.last_error = f"{what} timed out after {self.settings.relay_timeout}s"
            logger.warning("Room %s: %s", self.room_id, self.last_error)
            raise RelayError(self.last_error) from exc
        except RelayError as exc:
            self.last_error = f"{what} failed: {exc}"
            logger.warning("Room %s: %s", self.room_id, self.last_error)
            raise
        except OSError as exc:
            self.last_error = f"{what} failed: {exc}"
            logger.warning("Room %s: %s", self.room_id, self.last_error)
            raise RelayError(self.last_error) from exc

    async def open(self, initial_state: Optional[GameState] = None) -> None:
        """
        Join the room. The host creates the snapshot document when it does not exist yet.
        Raises:
            RelayError: If the store cannot be reached.
        """
        if self.is_host:
            existing = await self._call("read snapshot", self.store.get_snapshot(self.room_id))
            if existing is None:
                await self._call("create room", self.store.set_snapshot(self.room_id, Snapshot.of(initial_state)))
        self._unsubscribers.append(self.store.watch_snapshot(self.room_id, self._on_snapshot))
        logger.info("Joined room %s as %s (seat %s)", self.room_id, self.role, self.seat)

    def _on_snapshot(self, snapshot: Optional[Snapshot]) -> None:
        state = None
        if snapshot is not None:
            try:
                state = snapshot.game_state()
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Room %s: unreadable snapshot: %s", self.room_id, exc)
                return
        self.state = state
        for handler in list(self._handlers):
            handler(state)

    def subscribe(self, handler: StateHandler) -> Unsubscribe:
        """
        Receive every snapshot observed from now on (None while the room has no published game).
        Returns:
            callable: Stops delivery to 'handler'.
        """
        self._handlers.append(handler)

        def unsubscribe():
            if handler in self._handlers:
                self._handlers.remove(handler)
        return unsubscribe

    async def publish_state(self, state: GameState) -> None:
        """
        Overwrite the canonical snapshot. Host only.
        Raises:
            NotHostError: If this participant is not the host.
            RelayError: If the write fails.
        """
        if not self.is_host:
            raise NotHostError(f"seat {self.seat} is not the host of room {self.room_id!r}")
        await self._call("publish snapshot", self.store.set_snapshot(self.room_id, Snapshot.of(state)))

    async def send_intent(self, intent: Intent) -> IntentEnvelope:
        """
        Queue an intent for the host, stamped with this participant's seat.
        Raises:
            RelayError: If the append fails or the queue is full.
        """
        envelope = encode_intent(intent, self.seat)
        await self._call("send intent", self.store.append_intent(self.room_id, envelope))
        return envelope

    def subscribe_intents(self, handler: IntentHandler) -> Unsubscribe:
        """
        Host only: run 'handler' once per intent arrival, then delete the intent from the queue.
        An id among the last settings.dedup_window handed over is not handed over again.
        """
        if not self.is_host:
            raise NotHostError(f"seat {self.seat} cannot consume intents of room {self.room_id!r}")

        def on_intent(envelope: IntentEnvelope) -> None:
            if envelope.id in self._consumed:
                return
            self._mark_consumed(envelope.id)
            task = asyncio.ensure_future(self._consume(handler, envelope))
            self._consumers.add(task)
            task.add_done_callback(self._consumer_done)

        unsubscribe = self.store.watch_intents(self.room_id, on_intent)
        self._unsubscribers.append(unsubscribe)
        return unsubscribe

    def _mark_consumed(self, intent_id: str) -> None:
        self._consumed.add(intent_id)
        self._consumed_order.append(intent_id)
        while len(self._consumed_order) > self.settings.dedup_window:
            self._consumed.discard(self._consumed_order.popleft())

    @property
    def consumed_count(self) -> int:
        """Intent ids currently remembered as handed over."""
        return len(self._consumed)

    def _consumer_done(self, task: asyncio.Task) -> None:
        self._consumers.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Room %s: intent handler failed", self.room_id, exc_info=task.exception())

    async def _consume(self, handler: IntentHandler, envelope: IntentEnvelope) -> None:
        try:
            await handler(envelope)
        finally:
            try:
                await self._call("delete intent", self.store.delete_intent(self.room_id, envelope.id))
            except RelayError:
                # already logged; the id stays in the consumed window so a redelivery is not handed over again
                pass

    async def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self._handlers.clear()
        consumers = list(self._consumers)
        for task in consumers:
            task.cancel()
        if consumers:
            await asyncio.gather(*consumers, return_exceptions=True)
        logger.info("Left room %s", self.room_id)
