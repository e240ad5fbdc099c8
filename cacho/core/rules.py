"""
rules.py
Helper functions for Cacho counting rules: wild aces and the salpicon hand.
Related modules:
- engine.py: Uses count_for_face while stepping through a reveal, is_salpicon_hand to settle a salpicon doubt.
- agents/statistical_agent.py: Uses count_for_face to estimate expected counts.
"""

from typing import Iterable, Sequence

from .dice import ACE

SALPICON_HAND_SIZE = 5


def count_for_face(dice: Iterable[int], face: int, bet_is_on_aces: bool) -> int:
    """
    Count how many dice support a bet on the given face.
    Aces (1s) are wild for any non-ace bet, but never when the bet itself is on aces.
    Args:
        dice (iterable): Dice to count.
        face (int): Face value claimed by the bet.
        bet_is_on_aces (bool): True if the bet targets aces.
    Returns:
        int: Number of supporting dice.
    """
    if bet_is_on_aces:
        return sum(1 for d in dice if d == ACE)
    return sum(1 for d in dice if d == face or d == ACE)


def count_across(hands: Iterable[Sequence[int]], face: int) -> int:
    """
    Total count for a bet over several hands; the ace rule follows from the face.
    """
    return sum(count_for_face(hand, face, face == ACE) for hand in hands)


def is_salpicon_hand(dice: Sequence[int]) -> bool:
    """True when the hand holds exactly five dice showing five different faces."""
    return len(dice) == SALPICON_HAND_SIZE and len(set(dice)) == SALPICON_HAND_SIZE
