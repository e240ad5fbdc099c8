"""
actions.py
Defines the action types consumed by the Cacho state machine.
The five intents (SetDirection, PlaceBet, Doubt, SpotOn, Salpicon) can arrive from any participant;
the remaining actions are internal transitions driven by the authoritative host and its timers.
Related modules:
- engine.py: apply_action() dispatches on these classes.
- online/messages.py: Encodes intents to and from the relay wire format.
"""

from dataclasses import dataclass
from typing import Dict, Type

from .config import GameConfig
from .state import Direction


class Action:
    """
    Base class for everything the state machine can apply.
    """
    pass


class Intent(Action):
    """
    Base class for actions a participant may send over the network.
    Subclasses define TYPE, the wire tag of the intent.
    """
    TYPE = ""


@dataclass(frozen=True)
class SetDirection(Intent):
    """
    The round starter picks the direction of play before betting.
    Args:
        direction (Direction): RIGHT or LEFT.
    """
    TYPE = "SET_DIRECTION"
    direction: Direction


@dataclass(frozen=True)
class PlaceBet(Intent):
    """
    The current player claims at least 'quantity' dice showing 'face'.
    """
    TYPE = "PLACE_BET"
    quantity: int
    face: int


@dataclass(frozen=True)
class Doubt(Intent):
    """Challenge the current bet as too high."""
    TYPE = "DOUBT"


@dataclass(frozen=True)
class SpotOn(Intent):
    """Challenge the current bet as exactly right."""
    TYPE = "SPOT_ON"


@dataclass(frozen=True)
class Salpicon(Intent):
    """Declare that one's five dice all show different faces."""
    TYPE = "SALPICON"


@dataclass(frozen=True)
class StartGame(Action):
    config: GameConfig


@dataclass(frozen=True)
class RevealNextPlayer(Action):
    pass


@dataclass(frozen=True)
class FinishReveal(Action):
    pass


@dataclass(frozen=True)
class NextRound(Action):
    pass


@dataclass(frozen=True)
class SetMessage(Action):
    message: str


INTENT_TYPES: Dict[str, Type[Intent]] = {
    cls.TYPE: cls for cls in (SetDirection, PlaceBet, Doubt, SpotOn, Salpicon)
}
