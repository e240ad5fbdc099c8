"""
dice.py
Dice for the Cacho engine: every hand is rolled from an explicit random.Random so games replay exactly.
Related modules:
- engine.py: Rolls the opening hands, re-rolls every active hand at NextRound and rolls the die won by a spot-on.
- rules.py: Reads hands with the wild-ace rule.
"""

import random
from typing import List

FACES = (1, 2, 3, 4, 5, 6)
ACE = 1


def roll_die(rng: random.Random) -> int:
    return rng.randint(FACES[0], FACES[-1])


def roll_dice(n: int, rng: random.Random) -> List[int]:
    """
    Roll a hand of n dice.
    Args:
        n (int): Dice owned by the player; 0 for an eliminated seat.
        rng (random.Random): RNG instance shared by the room.
    Returns:
        list[int]: Faces in roll order.
    Raises:
        ValueError: If n is negative.
    """
    if n < 0:
        raise ValueError(f"cannot roll {n} dice")
    return [roll_die(rng) for _ in range(n)]
