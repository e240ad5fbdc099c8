"""
config.py
Defines the GameConfig dataclass, which centralizes the seating and rule options for a Cacho game.
Related modules:
- engine.py: start_game() consumes a GameConfig to seat players and roll the first round.
- online/host.py: the host passes a GameConfig when it starts a room's game.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

MIN_PLAYERS = 2
MAX_PLAYERS = 6


class GameConfigError(ValueError):
    """
    Raised when a game cannot be started with the given configuration.
    This is a user-facing configuration problem, not a crash.
    """
    pass


@dataclass(frozen=True)
class GameConfig:
    """
    Centralizes all options needed to start a game.
    Fields:
        player_count (int): Number of seats (2-6).
        starting_dice (int): Dice per player at start; also the cap for spot-on gains.
        human_seats (tuple): Seats controlled by people. Seat 0 is the primary seat.
        player_names (tuple|None): Optional display name per seat.
        rng_seed (int|None): Seed for deterministic games.
    """
    player_count: int = 4
    starting_dice: int = 5
    human_seats: Tuple[int, ...] = (0,)
    player_names: Optional[Tuple[str, ...]] = None
    rng_seed: Optional[int] = None

    def validate(self) -> None:
        """
        Check the configuration before seating anyone.
        Raises:
            GameConfigError: If counts, seats or names are inconsistent.
        """
        if not (MIN_PLAYERS <= self.player_count <= MAX_PLAYERS):
            raise GameConfigError(f"player_count must be between {MIN_PLAYERS} and {MAX_PLAYERS}")
        if self.starting_dice < 1:
            raise GameConfigError("starting_dice must be at least 1")
        for seat in self.human_seats:
            if not (0 <= seat < self.player_count):
                raise GameConfigError(f"human seat {seat} is outside the table")
        if self.player_names is not None and len(self.player_names) != self.player_count:
            raise GameConfigError("player_names must name every seat")

    def is_human(self, seat: int) -> bool:
        return seat in self.human_seats

    def name_for(self, seat: int) -> str:
        if self.player_names is not None:
            return self.player_names[seat]
        if self.is_human(seat):
            return "You" if seat == 0 else f"Player {seat}"
        return f"Bot {seat}"
