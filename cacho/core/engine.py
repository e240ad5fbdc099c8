"""
engine.py
Implements the Cacho state machine: a pure transition function apply_action(state, action, rng) -> state,
and the GameEngine class, which holds one live GameState, applies actions, and emits events.
Related modules:
- config.py: GameConfig seats the players in start_game().
- state.py: GameState, Player, RevealState, RoundResult hold all game data.
- actions.py: Actions are applied to produce new states.
- rules.py: Counting helpers for reveals and salpicon doubts.
- agents/statistical_agent.py: Decides bot turns from GameEngine.get_view().
"""

import logging
import random
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from .actions import (
    Action, Doubt, FinishReveal, NextRound, PlaceBet, RevealNextPlayer, Salpicon,
    SetDirection, SetMessage, SpotOn, StartGame,
)
from .bet import Bet
from .config import GameConfig
from .dice import roll_dice, roll_die
from .rules import SALPICON_HAND_SIZE, count_for_face, is_salpicon_hand
from .state import (
    Direction, GameState, GameStatus, Player, RevealState, RevealType, RoundResult,
    is_blind_for, reveal_complete,
)

logger = logging.getLogger(__name__)


def next_index(current: int, players: List[Player], direction: Direction) -> int:
    """
    Seat after 'current' in the direction of play, skipping eliminated seats.
    Args:
        current (int): Seat whose turn just ended.
        players (list[Player]): All seats, eliminated ones included.
        direction (Direction): RIGHT decrements the index, LEFT increments it.
    Returns:
        int: Index of the next active seat.
    """
    n = len(players)
    idx = (current + direction.step) % n
    while players[idx].is_eliminated:
        idx = (idx + direction.step) % n
    return idx


def _direction_label(direction: Direction) -> str:
    return "the right" if direction is Direction.RIGHT else "the left"


def _copy_players(players: List[Player]) -> List[Player]:
    return [replace(p, dice=list(p.dice)) for p in players]


def _index_of(players: List[Player], player_id: Optional[int]) -> int:
    for i, p in enumerate(players):
        if p.id == player_id:
            return i
    return -1


def start_game(config: GameConfig, rng: random.Random) -> GameState:
    """
    Seat the players, roll the first hands and pick a random starter.
    Args:
        config (GameConfig): Seating and rule options.
        rng (random.Random): Source of randomness for dice and starter.
    Returns:
        GameState: The state of the first round.
    Raises:
        GameConfigError: If the configuration is invalid.
    """
    config.validate()
    players = [
        Player(
            id=i,
            name=config.name_for(i),
            dice=roll_dice(config.starting_dice, rng),
            dice_count=config.starting_dice,
        )
        for i in range(config.player_count)
    ]
    starter = rng.randrange(config.player_count)
    needs_direction = config.is_human(starter) and len(players) > 2
    if needs_direction:
        message = f"{players[starter].name} starts the round. Choose the direction of play."
    else:
        message = f"The round begins. It is {players[starter].name}'s turn."
    return GameState(
        status=GameStatus.AWAITING_DIRECTION if needs_direction else GameStatus.IN_PROGRESS,
        play_direction=Direction.RIGHT,
        players=players,
        total_dice_in_play=config.player_count * config.starting_dice,
        current_player_index=starter,
        round_starter_index=starter,
        message=message,
        human_seats=list(config.human_seats),
        starting_dice=config.starting_dice,
    )


def apply_action(state: GameState, action: Action, rng: random.Random) -> GameState:
    """
    Pure transition function of the game. The input state is never mutated.
    Actions that are illegal in the current phase return the same state object.
    Args:
        state (GameState): Current state.
        action (Action): Action to apply.
        rng (random.Random): Source of randomness for rolls and bot direction choices.
    Returns:
        GameState: The next state.
    """
    if isinstance(action, StartGame):
        return start_game(action.config, rng)
    if isinstance(action, SetMessage):
        return replace(state, message=action.message)
    if not state.players:
        return _ignore(state, action, "no game in progress")

    if isinstance(action, SetDirection):
        return _set_direction(state, action)
    if isinstance(action, PlaceBet):
        return _place_bet(state, action)
    if isinstance(action, Salpicon):
        return _salpicon(state)
    if isinstance(action, Doubt):
        return _doubt(state)
    if isinstance(action, SpotOn):
        return _spot_on(state)
    if isinstance(action, RevealNextPlayer):
        return _reveal_next_player(state)
    if isinstance(action, FinishReveal):
        return _finish_reveal(state, rng)
    if isinstance(action, NextRound):
        return _next_round(state, rng)
    return _ignore(state, action, "unknown action")


def _ignore(state: GameState, action: Action, reason: str) -> GameState:
    logger.debug("Ignoring %s in %s: %s", type(action).__name__, state.status.value, reason)
    return state


def _set_direction(state: GameState, action: SetDirection) -> GameState:
    if state.status is not GameStatus.AWAITING_DIRECTION:
        return _ignore(state, action, "direction already chosen")
    starter = state.players[state.current_player_index]
    # the player who chose the direction also places the first bet
    return replace(
        state,
        play_direction=action.direction,
        status=GameStatus.IN_PROGRESS,
        message=f"{starter.name} plays to {_direction_label(action.direction)} and must now bet.",
    )


def _place_bet(state: GameState, action: PlaceBet) -> GameState:
    if state.status is not GameStatus.IN_PROGRESS:
        return _ignore(state, action, "not betting")
    bettor = state.players[state.current_player_index]
    bet = Bet(player_id=bettor.id, quantity=action.quantity, face=action.face)
    nxt = next_index(state.current_player_index, state.players, state.play_direction)
    return replace(
        state,
        current_bet=bet,
        previous_bet=None,
        current_player_index=nxt,
        message=f"{bettor.name} bets {bet.quantity} x {bet.face}. {state.players[nxt].name}'s turn.",
    )


def _salpicon(state: GameState) -> GameState:
    action = Salpicon()
    if state.status is not GameStatus.IN_PROGRESS:
        return _ignore(state, action, "not betting")
    caller = state.players[state.current_player_index]
    if caller.dice_count != SALPICON_HAND_SIZE:
        return _ignore(state, action, "salpicon needs exactly five dice")
    if state.current_bet is not None and state.current_bet.is_salpicon:
        return _ignore(state, action, "salpicon already on the table")
    nxt = next_index(state.current_player_index, state.players, state.play_direction)
    return replace(
        state,
        previous_bet=state.current_bet,
        current_bet=Bet.salpicon(caller.id),
        current_player_index=nxt,
        message=f"{caller.name} calls salpicon! {state.players[nxt].name}'s turn.",
    )


def _doubt(state: GameState) -> GameState:
    action = Doubt()
    if state.status is not GameStatus.IN_PROGRESS:
        return _ignore(state, action, "not betting")
    if state.current_bet is None:
        return _ignore(state, action, "no bet to doubt")
    if state.current_bet.is_salpicon:
        return _resolve_salpicon_doubt(state)
    taker = state.players[state.current_player_index]
    return _begin_reveal(state, RevealType.DOUBT, f"{taker.name} doubts the bet...")


def _spot_on(state: GameState) -> GameState:
    action = SpotOn()
    if state.status is not GameStatus.IN_PROGRESS:
        return _ignore(state, action, "not betting")
    if state.current_bet is None or state.current_bet.is_salpicon:
        return _ignore(state, action, "no bet to call spot-on")
    taker = state.players[state.current_player_index]
    return _begin_reveal(state, RevealType.SPOT_ON, f"{taker.name} calls spot-on...")


def _begin_reveal(state: GameState, reveal_type: RevealType, message: str) -> GameState:
    n = len(state.players)
    order = [(state.current_player_index + i) % n for i in range(n)]
    return replace(
        state,
        status=GameStatus.REVEAL,
        reveal_type=reveal_type,
        reveal_order=order,
        reveal_state=RevealState(player_index=-1, revealed_count=0, message=message),
        message="Counting dice...",
    )


def _reveal_next_player(state: GameState) -> GameState:
    action = RevealNextPlayer()
    if state.status is not GameStatus.REVEAL or state.reveal_state is None or state.current_bet is None:
        return _ignore(state, action, "no reveal in progress")
    if reveal_complete(state):
        return _ignore(state, action, "every seat already revealed")

    cursor = state.reveal_state.player_index + 1
    player = state.players[state.reveal_order[cursor]]
    if player.is_eliminated:
        reveal = replace(state.reveal_state, player_index=cursor, message=f"{player.name} is out.")
        return replace(state, reveal_state=reveal)

    bet = state.current_bet
    found = count_for_face(player.dice, bet.face, bet.is_on_aces)
    reveal = RevealState(
        player_index=cursor,
        revealed_count=state.reveal_state.revealed_count + found,
        message=f"Counting {player.name}...",
    )
    return replace(state, reveal_state=reveal)


def _charge_loss(players: List[Player], loser_id: int) -> Tuple[bool, bool]:
    """
    Take one die from the loser in place, unless a bonus life absorbs the loss.
    Returns:
        (bool, bool): whether a bonus life was used, whether the loser was eliminated.
    """
    loser = players[_index_of(players, loser_id)]
    if loser.has_bonus_life:
        loser.has_bonus_life = False
        return True, False
    loser.dice_count -= 1
    if loser.dice_count <= 0:
        loser.dice_count = 0
        loser.dice = []
        loser.is_eliminated = True
        return False, True
    loser.dice.pop()
    return False, False


def _conclude(state: GameState, players: List[Player], result: RoundResult, **changes: Any) -> GameState:
    """Shared tail of every challenge: recount dice, detect the winner, leave the reveal."""
    remaining = [p for p in players if not p.is_eliminated]
    total = sum(p.dice_count for p in remaining)
    current = state.current_player_index
    if len(remaining) == 1:
        winner = remaining[0]
        return replace(
            state,
            status=GameStatus.GAME_OVER,
            players=players,
            total_dice_in_play=total,
            current_player_index=_index_of(players, winner.id),
            winner=replace(winner, dice=list(winner.dice)),
            round_result=result,
            reveal_state=None,
            message=f"{winner.name} wins the game!",
            **changes,
        )
    if players[current].is_eliminated:
        current = next_index(current, players, state.play_direction)
    return replace(
        state,
        status=GameStatus.ROUND_OVER,
        players=players,
        total_dice_in_play=total,
        current_player_index=current,
        round_result=result,
        reveal_state=None,
        message=_result_message(players, result),
        **changes,
    )


def _result_message(players: List[Player], result: RoundResult) -> str:
    def name(pid):
        return players[_index_of(players, pid)].name

    if result.gainer_id is not None:
        return f"Spot-on! {name(result.gainer_id)} is rewarded."
    loser = name(result.loser_id)
    if result.bonus_life_used_by is not None:
        return f"{loser} loses the round but a bonus life saves the die."
    if players[_index_of(players, result.loser_id)].is_eliminated:
        return f"{loser} loses the last die and is out."
    return f"{loser} loses a die."


def _resolve_salpicon_doubt(state: GameState) -> GameState:
    # settled at once from the declarer's hand, without a seat-by-seat reveal
    players = _copy_players(state.players)
    taker = players[state.current_player_index]
    declarer = players[_index_of(players, state.current_bet.player_id)]
    holds_salpicon = is_salpicon_hand(declarer.dice)
    doubter_right = not holds_salpicon
    loser_id = declarer.id if doubter_right else taker.id
    result = RoundResult(
        type=RevealType.SALPICON_DOUBT,
        is_success=doubter_right,
        action_taker_id=taker.id,
        bet_player_id=declarer.id,
        actual_count=SALPICON_HAND_SIZE if holds_salpicon else len(set(declarer.dice)),
        loser_id=loser_id,
    )
    used_bonus, _ = _charge_loss(players, loser_id)
    if used_bonus:
        result.bonus_life_used_by = loser_id
    return _conclude(
        state,
        players,
        result,
        current_bet=None,
        previous_bet=None,
        reveal_type=RevealType.SALPICON_DOUBT,
        revealed_salpicon_player_id=declarer.id,
    )


def _finish_reveal(state: GameState, rng: random.Random) -> GameState:
    action = FinishReveal()
    if state.status is not GameStatus.REVEAL or state.current_bet is None or state.reveal_type is None:
        return _ignore(state, action, "no reveal in progress")
    if not reveal_complete(state):
        return _ignore(state, action, "seats left to reveal")

    bet = state.current_bet
    actual = state.reveal_state.revealed_count
    players = _copy_players(state.players)
    taker_id = players[state.current_player_index].id

    if state.reveal_type is RevealType.SPOT_ON:
        success = actual == bet.quantity
        result = RoundResult(RevealType.SPOT_ON, success, taker_id, bet.player_id, actual)
        if success:
            result.gainer_id = taker_id
            taker = players[_index_of(players, taker_id)]
            if taker.dice_count < state.starting_dice:
                taker.dice_count += 1
                taker.dice.append(roll_die(rng))
            else:
                taker.has_bonus_life = True
        else:
            result.loser_id = taker_id
    else:
        success = actual < bet.quantity
        loser_id = bet.player_id if success else taker_id
        result = RoundResult(RevealType.DOUBT, success, taker_id, bet.player_id, actual, loser_id=loser_id)

    if result.loser_id is not None:
        used_bonus, _ = _charge_loss(players, result.loser_id)
        if used_bonus:
            result.bonus_life_used_by = result.loser_id
    return _conclude(state, players, result)


def _next_round(state: GameState, rng: random.Random) -> GameState:
    action = NextRound()
    if state.status is not GameStatus.ROUND_OVER:
        return _ignore(state, action, "round not over")

    players = _copy_players(state.players)
    for p in players:
        p.dice = [] if p.is_eliminated else roll_dice(p.dice_count, rng)
    remaining = [p for p in players if not p.is_eliminated]
    total = sum(p.dice_count for p in remaining)
    n = len(players)

    result = state.round_result
    loser_idx = _index_of(players, result.loser_id) if result and result.loser_id is not None else -1
    eliminated_now = loser_idx != -1 and players[loser_idx].is_eliminated

    if eliminated_now:
        fewest = min(p.dice_count for p in remaining)
        candidates = [p.id for p in remaining if p.dice_count == fewest]
        if len(candidates) == 1:
            starter = _index_of(players, candidates[0])
        else:
            # ties go to the first candidate found walking down the seat indices from the eliminated seat
            starter = (loser_idx - 1) % n
            while players[starter].is_eliminated or players[starter].id not in candidates:
                starter = (starter - 1) % n
    else:
        starter = state.current_player_index
        if result is not None:
            for pid in (result.loser_id, result.gainer_id, result.action_taker_id):
                if pid is not None:
                    idx = _index_of(players, pid)
                    if idx != -1:
                        starter = idx
                    break

    while players[starter].is_eliminated:
        starter = (starter + 1) % n

    starter_player = players[starter]
    blind = starter_player.dice_count == 1 and not eliminated_now
    common = dict(
        players=players,
        total_dice_in_play=total,
        current_player_index=starter,
        round_starter_index=starter,
        current_bet=None,
        previous_bet=None,
        round_result=None,
        reveal_state=None,
        reveal_order=None,
        reveal_type=None,
        is_blind_round=blind,
        revealed_salpicon_player_id=None,
    )
    blind_note = " Blind round!" if blind else ""

    if len(remaining) <= 2:
        return replace(
            state,
            status=GameStatus.IN_PROGRESS,
            play_direction=Direction.RIGHT,
            message=f"The round begins.{blind_note} It is {starter_player.name}'s turn.",
            **common,
        )
    if starter_player.id in state.human_seats:
        return replace(
            state,
            status=GameStatus.AWAITING_DIRECTION,
            message=f"{starter_player.name} starts the round.{blind_note} Choose the direction of play.",
            **common,
        )
    direction = Direction.RIGHT if rng.random() < 0.5 else Direction.LEFT
    return replace(
        state,
        status=GameStatus.IN_PROGRESS,
        play_direction=direction,
        message=(f"A new round begins.{blind_note} {starter_player.name} plays to "
                 f"{_direction_label(direction)}. It is their turn."),
        **common,
    )


class GameEngine:
    """
    Holds one live GameState for a room and applies actions to it through apply_action.
    Emits simple dict events and keeps a per-transition turn_log of snapshots.
    """
    def __init__(self, config: Optional[GameConfig] = None, rng: Optional[random.Random] = None):
        """
        Args:
            config (GameConfig|None): Configuration used by start(); defaults to GameConfig().
            rng (random.Random|None): RNG; seeded from config.rng_seed when omitted.
        """
        self.config = config or GameConfig()
        self.rng = rng or random.Random(self.config.rng_seed)
        self.state = GameState()
        self._events: List[Dict[str, Any]] = []
        self.turn_log: List[Dict[str, Any]] = []

    def _emit(self, event: Dict[str, Any]) -> None:
        self._events.append(event)

    def pop_events(self) -> List[Dict[str, Any]]:
        """
        Return and clear all emitted events since last call.
        """
        ev = list(self._events)
        self._events.clear()
        return ev

    def get_events(self) -> List[Dict[str, Any]]:
        return list(self._events)

    def start(self, config: Optional[GameConfig] = None) -> GameState:
        """
        Start a new game, replacing any state held so far.
        Raises:
            GameConfigError: If the configuration is invalid.
        """
        if config is not None:
            self.config = config
        return self.apply(StartGame(self.config))

    def apply(self, action: Action, actor: Optional[int] = None) -> GameState:
        """
        Apply an action and record what happened.
        Args:
            action (Action): Action to apply.
            actor (int|None): Seat that originated the action, for the turn log.
        Returns:
            GameState: The new state (the same object when the action was ignored).
        """
        before = self.state
        after = apply_action(before, action, self.rng)
        if after is before:
            return after
        self.state = after
        self._record(before, after, action, actor)
        return after

    @property
    def is_over(self) -> bool:
        return self.state.status is GameStatus.GAME_OVER

    def get_view(self, index: int) -> Dict[str, Any]:
        """
        Player-specific view used by agents: public state plus the seat's own dice.
        Args:
            index (int): Seat index.
        Returns:
            dict: Keys 'player_index', 'state', 'my_dice', 'is_blind'.
        """
        blind = is_blind_for(self.state, index)
        return {
            "player_index": index,
            "state": self.state,
            "my_dice": () if blind else tuple(self.state.players[index].dice),
            "is_blind": blind,
        }

    def _record(self, before: GameState, after: GameState, action: Action, actor: Optional[int]) -> None:
        name = type(action).__name__
        if isinstance(action, StartGame):
            self._emit({"type": "GameStarted", "players": len(after.players), "starter": after.current_player_index})
        elif isinstance(action, PlaceBet):
            self._emit({"type": "BetPlaced", "player": before.current_player_index, "bet": (action.quantity, action.face)})
        elif isinstance(action, (Doubt, SpotOn, Salpicon, SetDirection)):
            self._emit({"type": name, "player": before.current_player_index})
        elif isinstance(action, RevealNextPlayer):
            cursor = after.reveal_state.player_index
            self._emit({"type": "PlayerRevealed", "player": after.reveal_order[cursor],
                        "running_count": after.reveal_state.revealed_count})
        elif isinstance(action, NextRound):
            self._emit({"type": "RoundStarted", "starter": after.round_starter_index, "blind": after.is_blind_round})

        if after.round_result is not None and before.round_result is None:
            result = after.round_result.to_dict()
            result["revealType"] = result.pop("type")
            self._emit({"type": "RoundEnded", **result})
        if after.status is GameStatus.GAME_OVER and before.status is not GameStatus.GAME_OVER:
            self._emit({"type": "GameOver", "winner": after.winner.id})

        self.turn_log.append({"actor": actor, "action": name, "state": after.to_dict()})


