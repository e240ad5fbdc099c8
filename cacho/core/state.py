"""
state.py
Defines all game state dataclasses for Cacho: Player, RevealState, RoundResult and GameState,
plus the derived properties the engine, bots and presentation layer compute from them.
Related modules:
- engine.py: Produces new GameState values from actions.
- bet.py: Bet is stored as the current and previous bet.
- online/messages.py: Snapshots carry GameState.to_dict() over the relay.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .bet import Bet


class GameStatus(str, Enum):
    SETUP = "SETUP"
    AWAITING_DIRECTION = "AWAITING_DIRECTION"
    IN_PROGRESS = "IN_PROGRESS"
    REVEAL = "REVEAL"
    ROUND_OVER = "ROUND_OVER"
    GAME_OVER = "GAME_OVER"


class RevealType(str, Enum):
    DOUBT = "DOUBT"
    SPOT_ON = "SPOT_ON"
    SALPICON_DOUBT = "SALPICON_DOUBT"


class Direction(str, Enum):
    """
    Direction of play given the seating layout: RIGHT walks towards lower seat
    indices, LEFT towards higher ones.
    """
    RIGHT = "RIGHT"
    LEFT = "LEFT"

    @property
    def step(self) -> int:
        return -1 if self is Direction.RIGHT else 1


@dataclass
class Player:
    """
    One seat at the table.
    Fields:
        id (int): Seat index, stable for the whole game.
        name (str): Display name.
        dice (list[int]): Current hand; empty once eliminated.
        dice_count (int): Dice owned; equals len(dice) while active.
        is_eliminated (bool): True once the player has lost every die.
        has_bonus_life (bool): Absorbs the next die loss.
    """
    id: int
    name: str
    dice: List[int] = field(default_factory=list)
    dice_count: int = 0
    is_eliminated: bool = False
    has_bonus_life: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "dice": list(self.dice),
            "diceCount": self.dice_count,
            "isEliminated": self.is_eliminated,
            "hasBonusLife": self.has_bonus_life,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Player":
        return cls(
            id=int(data["id"]),
            name=str(data["name"]),
            dice=[int(d) for d in data.get("dice", [])],
            dice_count=int(data["diceCount"]),
            is_eliminated=bool(data.get("isEliminated", False)),
            has_bonus_life=bool(data.get("hasBonusLife", False)),
        )


@dataclass
class RevealState:
    """
    Progress cursor while dice are counted seat by seat.
    Fields:
        player_index (int): Position in reveal_order of the last revealed seat (-1 before the first step).
        revealed_count (int): Matching dice counted so far.
        message (str): Status line for the seat just revealed.
    """
    player_index: int = -1
    revealed_count: int = 0
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"playerIndex": self.player_index, "revealedCount": self.revealed_count, "message": self.message}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["RevealState"]:
        if data is None:
            return None
        return cls(int(data["playerIndex"]), int(data["revealedCount"]), str(data.get("message", "")))


@dataclass
class RoundResult:
    """
    Outcome of the last challenge.
    Fields:
        type (RevealType): Which challenge was resolved.
        is_success (bool): True when the challenger was right.
        action_taker_id (int): Challenger.
        bet_player_id (int): Player who made the challenged bet.
        actual_count (int): Dice counted (distinct faces for a salpicon doubt).
        loser_id (int|None): Player charged with losing a die.
        gainer_id (int|None): Player rewarded by a successful spot-on.
        bonus_life_used_by (int|None): Loser whose bonus life absorbed the loss.
    """
    type: RevealType
    is_success: bool
    action_taker_id: int
    bet_player_id: int
    actual_count: int
    loser_id: Optional[int] = None
    gainer_id: Optional[int] = None
    bonus_life_used_by: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "isSuccess": self.is_success,
            "actionTakerId": self.action_taker_id,
            "betPlayerId": self.bet_player_id,
            "actualCount": self.actual_count,
            "loserId": self.loser_id,
            "gainerId": self.gainer_id,
            "bonusLifeUsedBy": self.bonus_life_used_by,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["RoundResult"]:
        if data is None:
            return None
        return cls(
            type=RevealType(data["type"]),
            is_success=bool(data["isSuccess"]),
            action_taker_id=int(data["actionTakerId"]),
            bet_player_id=int(data["betPlayerId"]),
            actual_count=int(data["actualCount"]),
            loser_id=data.get("loserId"),
            gainer_id=data.get("gainerId"),
            bonus_life_used_by=data.get("bonusLifeUsedBy"),
        )


@dataclass
class GameState:
    """
    The single source of truth for one room, owned by the authoritative participant.
    The engine treats instances as values: every transition returns a new GameState.
    """
    status: GameStatus = GameStatus.SETUP
    play_direction: Direction = Direction.RIGHT
    players: List[Player] = field(default_factory=list)
    total_dice_in_play: int = 0
    current_player_index: int = 0
    round_starter_index: Optional[int] = None
    current_bet: Optional[Bet] = None
    previous_bet: Optional[Bet] = None
    is_blind_round: bool = False
    round_result: Optional[RoundResult] = None
    winner: Optional[Player] = None
    message: str = ""
    reveal_state: Optional[RevealState] = None
    reveal_order: Optional[List[int]] = None
    reveal_type: Optional[RevealType] = None
    revealed_salpicon_player_id: Optional[int] = None
    # seats that never get a bot turn scheduled
    human_seats: List[int] = field(default_factory=lambda: [0])
    starting_dice: int = 5

    @property
    def current_player(self) -> Optional[Player]:
        if not self.players:
            return None
        return self.players[self.current_player_index]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "playDirection": self.play_direction.value,
            "players": [p.to_dict() for p in self.players],
            "totalDiceInPlay": self.total_dice_in_play,
            "currentPlayerIndex": self.current_player_index,
            "roundStarterIndex": self.round_starter_index,
            "currentBet": self.current_bet.to_dict() if self.current_bet else None,
            "previousBet": self.previous_bet.to_dict() if self.previous_bet else None,
            "isBlindRound": self.is_blind_round,
            "roundResult": self.round_result.to_dict() if self.round_result else None,
            "winner": self.winner.to_dict() if self.winner else None,
            "message": self.message,
            "revealState": self.reveal_state.to_dict() if self.reveal_state else None,
            "revealOrder": list(self.reveal_order) if self.reveal_order is not None else None,
            "revealType": self.reveal_type.value if self.reveal_type else None,
            "revealedSalpiconPlayerId": self.revealed_salpicon_player_id,
            "humanSeats": list(self.human_seats),
            "startingDice": self.starting_dice,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameState":
        winner = data.get("winner")
        reveal_type = data.get("revealType")
        reveal_order = data.get("revealOrder")
        return cls(
            status=GameStatus(data["status"]),
            play_direction=Direction(data.get("playDirection", Direction.RIGHT.value)),
            players=[Player.from_dict(p) for p in data.get("players", [])],
            total_dice_in_play=int(data.get("totalDiceInPlay", 0)),
            current_player_index=int(data.get("currentPlayerIndex", 0)),
            round_starter_index=data.get("roundStarterIndex"),
            current_bet=Bet.from_dict(data.get("currentBet")),
            previous_bet=Bet.from_dict(data.get("previousBet")),
            is_blind_round=bool(data.get("isBlindRound", False)),
            round_result=RoundResult.from_dict(data.get("roundResult")),
            winner=Player.from_dict(winner) if winner else None,
            message=data.get("message", ""),
            reveal_state=RevealState.from_dict(data.get("revealState")),
            reveal_order=[int(i) for i in reveal_order] if reveal_order is not None else None,
            reveal_type=RevealType(reveal_type) if reveal_type else None,
            revealed_salpicon_player_id=data.get("revealedSalpiconPlayerId"),
            human_seats=[int(s) for s in data.get("humanSeats", [0])],
            starting_dice=int(data.get("startingDice", 5)),
        )


def active_players(state: GameState) -> List[Player]:
    return [p for p in state.players if not p.is_eliminated]


def is_ready(state: Optional[GameState]) -> bool:
    """A state may be broadcast once seats are populated and the game has left Setup."""
    return state is not None and bool(state.players) and state.status is not GameStatus.SETUP


def is_blind_for(state: GameState, index: int) -> bool:
    """
    Whether the player at 'index' plays this round without seeing their own dice.
    Only meaningful during a blind round; the round starter and single-die holders always see their hand.
    """
    player = state.players[index]
    return state.is_blind_round and index != state.round_starter_index and player.dice_count > 1


def reveal_complete(state: GameState) -> bool:
    if state.reveal_state is None or state.reveal_order is None:
        return False
    return state.reveal_state.player_index >= len(state.reveal_order) - 1
