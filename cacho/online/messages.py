"""
messages.py
Wire models exchanged through the relay store: the canonical snapshot document and the intent envelope.
Related modules:
- core/actions.py: Intent classes and their wire tags.
- relay.py: Stores and delivers these models.
- room.py: Encodes outgoing intents and decodes published snapshots.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from ..core.actions import INTENT_TYPES, Intent, PlaceBet, SetDirection
from ..core.bet import Bet
from ..core.state import Direction, GameState
from .errors import InvalidIntentError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Snapshot(BaseModel):
    """Canonical state document of a room. `state` stays None until the host publishes."""
    model_config = ConfigDict(populate_by_name=True)

    state: Optional[Dict[str, Any]] = None
    updated_at: datetime = Field(default_factory=_utcnow, alias="updatedAt")

    @classmethod
    def of(cls, state: Optional[GameState]) -> "Snapshot":
        return cls(state=state.to_dict() if state is not None else None)

    def game_state(self) -> Optional[GameState]:
        if self.state is None:
            return None
        return GameState.from_dict(self.state)


class IntentEnvelope(BaseModel):
    """One queued intent. `id` lets the host drop duplicate deliveries."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    type: str
    payload: Optional[Dict[str, Any]] = None
    player_id: Optional[Union[int, str]] = Field(None, alias="playerId")
    timestamp: datetime = Field(default_factory=_utcnow)


def encode_intent(intent: Intent, player_id: Optional[Union[int, str]] = None) -> IntentEnvelope:
    payload = None
    if isinstance(intent, SetDirection):
        payload = {"direction": Direction(intent.direction).value}
    elif isinstance(intent, PlaceBet):
        payload = {"quantity": intent.quantity, "face": intent.face}
    return IntentEnvelope(type=intent.TYPE, payload=payload, player_id=player_id)


def decode_intent(envelope: IntentEnvelope) -> Intent:
    """
    Turn an envelope back into an intent.
    Raises:
        InvalidIntentError: Unknown type or malformed payload.
    """
    cls = INTENT_TYPES.get(envelope.type)
    if cls is None:
        raise InvalidIntentError(f"unknown intent type {envelope.type!r}")
    payload = envelope.payload or {}
    try:
        if cls is SetDirection:
            return SetDirection(Direction(payload["direction"]))
        if cls is PlaceBet:
            quantity, face = int(payload["quantity"]), int(payload["face"])
            Bet(player_id=-1, quantity=quantity, face=face).validate()
            return PlaceBet(quantity=quantity, face=face)
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidIntentError(f"malformed {envelope.type} payload: {exc}") from exc
    return cls()
