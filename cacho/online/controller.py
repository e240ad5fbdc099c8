"""
controller.py
The boundary a presentation layer talks to. It exposes the latest GameState (read-only) and the
five gesture callbacks; gestures go straight to the local HostSession on the host, and through
the relay as intents everywhere else.
"""

import logging
from typing import Optional, Union

from ..core.actions import Doubt, Intent, PlaceBet, Salpicon, SetDirection, SpotOn
from ..core.state import Direction, GameState
from .errors import RelayError
from .host import HostSession
from .room import Room

logger = logging.getLogger(__name__)


class GameController:
    """
    Args:
        room (Room): This participant's room connection.
        host (HostSession|None): The local authoritative session when this participant hosts.
    """
    def __init__(self, room: Room, host: Optional[HostSession] = None):
        self.room = room
        self.host = host

    @property
    def state(self) -> Optional[GameState]:
        """Latest state to render; None while connecting."""
        if self.host is not None:
            return self.host.state
        return self.room.state

    @property
    def connection_status(self) -> str:
        return self.room.connection_status

    @property
    def last_error(self) -> Optional[str]:
        if self.host is not None and self.host.last_error:
            return self.host.last_error
        return self.room.last_error

    async def on_set_direction(self, direction: Union[Direction, str]) -> bool:
        return await self._forward(SetDirection(Direction(direction)))

    async def on_place_bet(self, quantity: int, face: int) -> bool:
        return await self._forward(PlaceBet(quantity=quantity, face=face))

    async def on_doubt_bet(self) -> bool:
        return await self._forward(Doubt())

    async def on_spot_on_bet(self) -> bool:
        return await self._forward(SpotOn())

    async def on_salpicon(self) -> bool:
        return await self._forward(Salpicon())

    async def _forward(self, intent: Intent) -> bool:
        """
        Returns:
            bool: On the host, whether the state changed; elsewhere, whether the intent was queued.
        """
        if self.host is not None:
            return await self.host.submit(intent, self.room.seat)
        try:
            await self.room.send_intent(intent)
        except RelayError as exc:
            logger.warning("Could not send %s: %s", intent.TYPE, exc)
            return False
        return True
