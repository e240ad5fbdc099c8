"""
simulation.py
Bot-only Cacho games played straight through the GameEngine, without the pacing delays of online rooms,
and the per-agent tallies built from their results.
Related modules:
- core/engine.py: The state machine being driven.
- agents/__init__.py: Agents are created by registry key.
- persistence/csv_io.py: scripts/run_tournament.py writes these results to CSV.
"""

import logging
import random
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .agents import AGENT_MAP, create_agent
from .core.actions import Doubt, FinishReveal, NextRound, RevealNextPlayer
from .core.config import GameConfig
from .core.engine import GameEngine
from .core.state import GameStatus

logger = logging.getLogger(__name__)

# event type -> counter name in GameResult.counters
_MOVE_COUNTERS = {"BetPlaced": "bets", "Doubt": "doubts", "SpotOn": "spot_ons", "Salpicon": "salpicons"}


@dataclass
class GameResult:
    """
    Outcome of one simulated game.
    Fields:
        seat_keys (list[str]): Agent key seated at each index.
        winner_seat (int|None): Winning seat, None when the step bound was hit.
        counters (Counter): rounds, steps, bets, doubts, spot_ons, salpicons, bonus_lives_used.
        events (list[dict]): Engine events, each tagged with its round number.
    """
    seat_keys: List[str]
    winner_seat: Optional[int]
    counters: Counter = field(default_factory=Counter)
    events: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def winner_agent(self) -> Optional[str]:
        return self.seat_keys[self.winner_seat] if self.winner_seat is not None else None

    @property
    def end_reason(self) -> str:
        return "winner declared" if self.winner_seat is not None else "max_steps_reached"


def parse_agent_list(text: str) -> List[str]:
    """
    Agent keys from a comma-separated list, or every registered agent for 'all'.
    Duplicates are dropped, first occurrence wins.
    Raises:
        ValueError: If a key is not registered or the list is empty.
    """
    if text.strip().lower() == "all":
        return sorted(AGENT_MAP)
    keys = list(dict.fromkeys(k.strip() for k in text.split(",") if k.strip()))
    unknown = [k for k in keys if k not in AGENT_MAP]
    if unknown:
        raise ValueError(f"unknown agents {unknown}; known agents: {sorted(AGENT_MAP)}")
    if not keys:
        raise ValueError("no agents given")
    return keys


def rotate_seats(agent_keys: List[str], players: int, game_index: int) -> List[str]:
    """Seat assignment of one game; shifting by the game index moves every agent through every seat."""
    return [agent_keys[(game_index + s) % len(agent_keys)] for s in range(players)]


def play_game(seat_keys: List[str], rng: random.Random, max_steps: int = 20000) -> GameResult:
    """
    Play one game to the end with every seat driven by a registered agent.
    A move the table rejects is replaced by a doubt, as the online host does.
    """
    config = GameConfig(player_count=len(seat_keys), human_seats=(),
                        player_names=tuple(f"{k}#{s}" for s, k in enumerate(seat_keys)))
    engine = GameEngine(config, rng=rng)
    agents = [create_agent(key, rng=random.Random(rng.random())) for key in seat_keys]
    result = GameResult(seat_keys=list(seat_keys), winner_seat=None)
    rounds = 1
    engine.start()

    steps = 0
    while not engine.is_over and steps < max_steps:
        state = engine.state
        steps += 1
        if state.status is GameStatus.IN_PROGRESS:
            seat = state.current_player_index
            if engine.apply(agents[seat].choose_action(engine.get_view(seat)), actor=seat) is state:
                engine.apply(Doubt(), actor=seat)
        elif state.status is GameStatus.REVEAL:
            if engine.apply(RevealNextPlayer()) is state:
                engine.apply(FinishReveal())
        elif state.status is GameStatus.ROUND_OVER:
            engine.apply(NextRound())
            rounds += 1
        else:
            break
        for ev in engine.pop_events():
            name = _MOVE_COUNTERS.get(ev["type"])
            if name:
                result.counters[name] += 1
            elif ev["type"] == "RoundEnded" and ev.get("bonusLifeUsedBy") is not None:
                result.counters["bonus_lives_used"] += 1
            result.events.append({"round": rounds, **ev})

    result.counters["rounds"] = rounds
    result.counters["steps"] = steps
    if engine.is_over:
        result.winner_seat = engine.state.winner.id
    else:
        logger.warning("Game stopped after %d steps without a winner", steps)
    return result


def tally_agents(results: Iterable[GameResult], agent_keys: List[str]) -> List[Dict[str, Any]]:
    """
    Per-agent rows: games played, games won, win percentage and wins by seat.
    An agent seated twice in the same game counts that game once.
    """
    games = Counter()
    wins = Counter()
    seat_wins = defaultdict(Counter)
    for result in results:
        games.update(set(result.seat_keys))
        if result.winner_agent is not None:
            wins[result.winner_agent] += 1
            seat_wins[result.winner_agent][result.winner_seat] += 1
    rows = []
    for key in agent_keys:
        played = games[key]
        rows.append({
            "agent": key,
            "games": played,
            "wins": wins[key],
            "win_percent": round(wins[key] / played * 100.0, 3) if played else 0.0,
            "wins_by_seat": dict(sorted(seat_wins[key].items())),
        })
    return rows
