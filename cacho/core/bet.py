"""
bet.py
Defines the Bet model for Cacho, including structural validation and the escalation rules between bets.
Related modules:
- actions.py: PlaceBet carries the quantity and face of a new bet.
- engine.py: Stores the current and previous bets on the GameState.
- agents/statistical_agent.py: Uses min_valid_quantity to find the cheapest legal raise per face.
"""

from dataclasses import dataclass
from typing import Any, Dict, NamedTuple, Optional

from .dice import ACE, FACES


@dataclass(frozen=True)
class Bet:
    """
    A public claim: at least 'quantity' dice across all hands show 'face'.
    A salpicon declaration is stored as a placeholder bet with quantity 0.
    Args:
        player_id (int): Player who placed the bet.
        quantity (int): Number of dice claimed.
        face (int): Face value claimed (1-6).
        is_salpicon (bool): True for a salpicon placeholder.
    """
    player_id: int
    quantity: int
    face: int
    is_salpicon: bool = False

    @classmethod
    def salpicon(cls, player_id: int) -> "Bet":
        return cls(player_id=player_id, quantity=0, face=ACE, is_salpicon=True)

    @property
    def is_on_aces(self) -> bool:
        return self.face == ACE

    def validate(self) -> None:
        """
        Checks the bet is structurally sound.
        Raises:
            ValueError: If the face or quantity is out of bounds.
        """
        if self.face not in FACES:
            raise ValueError("face must be between 1 and 6")
        if self.quantity < 0 or (self.quantity == 0 and not self.is_salpicon):
            raise ValueError("quantity must be at least 1")

    def to_dict(self) -> Dict[str, Any]:
        data = {"playerId": self.player_id, "quantity": self.quantity, "face": self.face}
        if self.is_salpicon:
            data["isSalpicon"] = True
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["Bet"]:
        if data is None:
            return None
        return cls(
            player_id=int(data["playerId"]),
            quantity=int(data["quantity"]),
            face=int(data["face"]),
            is_salpicon=bool(data.get("isSalpicon", False)),
        )


class BetCheck(NamedTuple):
    """Outcome of is_bet_valid: ok flag plus a human-readable reason when rejected."""
    ok: bool
    reason: Optional[str] = None


def is_bet_valid(prev: Optional[Bet], nxt: Bet) -> BetCheck:
    """
    Checks whether 'nxt' may follow 'prev'.
    Aces count double: moving onto aces halves the required quantity, leaving them doubles it.
    Args:
        prev (Bet|None): The bet on the table, or None for the first bet of a round.
        nxt (Bet): The proposed bet.
    Returns:
        BetCheck: ok=True when legal, otherwise ok=False with a reason.
    """
    if prev is None:
        if nxt.quantity >= 1:
            return BetCheck(True)
        return BetCheck(False, "The first bet must be at least 1.")

    prev_aces = prev.is_on_aces
    next_aces = nxt.is_on_aces

    if not prev_aces and not next_aces:
        if nxt.quantity > prev.quantity:
            return BetCheck(True)
        if nxt.quantity == prev.quantity and nxt.face > prev.face:
            return BetCheck(True)
        return BetCheck(False, "Raise the quantity or the face.")

    if prev_aces and next_aces:
        if nxt.quantity > prev.quantity:
            return BetCheck(True)
        return BetCheck(False, "On aces the quantity must go up.")

    required = min_valid_quantity(prev, nxt.face)
    if nxt.quantity >= required:
        return BetCheck(True)
    if next_aces:
        return BetCheck(False, f"Switching to aces needs at least {required}.")
    return BetCheck(False, f"Leaving aces needs at least {required}.")


def min_valid_quantity(prev: Optional[Bet], face: int) -> int:
    """
    Smallest quantity on 'face' that beats 'prev'.
    Args:
        prev (Bet|None): The bet to beat.
        face (int): Face of the candidate bet.
    Returns:
        int: Minimum legal quantity.
    """
    if prev is None:
        return 1
    prev_aces = prev.is_on_aces
    next_aces = face == ACE
    if not prev_aces and not next_aces:
        return prev.quantity if face > prev.face else prev.quantity + 1
    if prev_aces and next_aces:
        return prev.quantity + 1
    if next_aces:
        return prev.quantity // 2 + 1
    return prev.quantity * 2 + 1
