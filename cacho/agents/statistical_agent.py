"""
statistical_agent.py
The bot policy: a pure decision function driven by the expected count of each face,
and the agent classes that wrap it for the engine and the online host.
Related modules:
- core/bet.py: min_valid_quantity gives the cheapest legal raise per face.
- core/rules.py: count_for_face and is_salpicon_hand read the bot's own hand.
- online/host.py: Calls decide_bot_action when a bot seat is due to play.
"""

import math
import random
from dataclasses import dataclass
from typing import Dict, Optional

from . import register_agent
from .base import Agent
from ..core.actions import Doubt, PlaceBet, Salpicon, SpotOn
from ..core.bet import Bet, min_valid_quantity
from ..core.dice import ACE, FACES
from ..core.rules import SALPICON_HAND_SIZE, count_for_face, is_salpicon_hand
from ..core.state import Player, active_players


@dataclass(frozen=True)
class BotPersonality:
    """
    Tunable constants of the policy.
    Fields:
        salpicon_skepticism (float): Chance to doubt a salpicon on sight.
        opening_salpicon (float): Chance to open a round with salpicon when holding one.
        reply_salpicon (float): Chance to answer a bet with salpicon while holding five dice.
        spot_on_window (float): Max distance between bet quantity and expectation to consider spot-on.
        spot_on_gate (float): Chance to actually call spot-on inside the window.
        blind_doubt_threshold (float): Credibility under which a blind bot doubts.
        sighted_doubt_threshold (float): Credibility under which a sighted bot doubts.
        doubt_execution (float): Chance a doubt decision is carried out instead of betting anyway.
        bluff (float): Chance to add one to the chosen quantity.
    """
    salpicon_skepticism: float = 0.65
    opening_salpicon: float = 0.25
    reply_salpicon: float = 0.15
    spot_on_window: float = 0.4
    spot_on_gate: float = 0.5
    blind_doubt_threshold: float = -0.5
    sighted_doubt_threshold: float = -1.0
    doubt_execution: float = 0.85
    bluff: float = 0.15


DEFAULT_PERSONALITY = BotPersonality()


def face_probability(face: int) -> float:
    # a non-ace face is matched by itself or by a wild ace
    return 1 / 6 if face == ACE else 1 / 3


def expected_counts(bot: Player, total_dice_in_play: int, is_blind: bool) -> Dict[int, float]:
    """
    Expected number of supporting dice on the table for every face.
    A blind bot treats its own dice as unknown like everyone else's.
    Args:
        bot (Player): The deciding bot.
        total_dice_in_play (int): Dice on the table, the bot's own included.
        is_blind (bool): Whether the bot plays without looking at its hand.
    Returns:
        dict[int, float]: face -> expected count.
    """
    scores = {}
    for face in FACES:
        if is_blind:
            scores[face] = total_dice_in_play * face_probability(face)
        else:
            known = count_for_face(bot.dice, face, face == ACE)
            unknown = total_dice_in_play - len(bot.dice)
            scores[face] = known + unknown * face_probability(face)
    return scores


def decide_bot_action(bot: Player,
                      current_bet: Optional[Bet],
                      previous_bet: Optional[Bet],
                      total_dice_in_play: int,
                      player_count: int,
                      is_blind: bool,
                      rng: random.Random,
                      personality: BotPersonality = DEFAULT_PERSONALITY):
    """
    Choose a bot's move. Deterministic for a given rng state.
    Args:
        bot (Player): The bot whose turn it is.
        current_bet (Bet|None): Bet on the table (possibly a salpicon placeholder).
        previous_bet (Bet|None): Bet superseded by a salpicon, if any.
        total_dice_in_play (int): Dice on the table.
        player_count (int): Active players at the table.
        is_blind (bool): Whether the bot cannot use its own dice this round.
        rng (random.Random): Source of randomness.
        personality (BotPersonality): Policy constants.
    Returns:
        PlaceBet | Doubt | SpotOn | Salpicon
    """
    p = personality
    facing_salpicon = current_bet is not None and current_bet.is_salpicon
    if facing_salpicon and rng.random() < p.salpicon_skepticism:
        return Doubt()

    bet_to_beat = previous_bet if facing_salpicon else current_bet
    may_salpicon = bot.dice_count == SALPICON_HAND_SIZE and not is_blind and not facing_salpicon
    scores = expected_counts(bot, total_dice_in_play, is_blind)

    if bet_to_beat is None:
        if may_salpicon and is_salpicon_hand(bot.dice) and rng.random() < p.opening_salpicon:
            return Salpicon()
        if is_blind:
            face = rng.randint(1, 6)
        else:
            # highest expectation, higher face on ties
            face = max(FACES, key=lambda f: (scores[f], f))
        quantity = math.floor(scores[face]) + rng.randint(-1, 1)
        return PlaceBet(quantity=max(1, quantity), face=face)

    if may_salpicon and rng.random() < p.reply_salpicon:
        return Salpicon()

    bet_score = scores[bet_to_beat.face]
    if (not is_blind and not facing_salpicon
            and abs(bet_to_beat.quantity - bet_score) < p.spot_on_window
            and rng.random() < p.spot_on_gate):
        return SpotOn()

    best_face, best_quantity, best_credibility = None, 0, -math.inf
    for face in FACES:
        minimum = min_valid_quantity(bet_to_beat, face)
        credibility = scores[face] - minimum
        if credibility > best_credibility:
            best_face, best_quantity, best_credibility = face, minimum, credibility

    threshold = p.blind_doubt_threshold if is_blind else p.sighted_doubt_threshold
    if bet_to_beat.quantity > math.ceil(bet_score) + 1 or best_credibility < threshold:
        if rng.random() < p.doubt_execution:
            return Doubt()

    quantity = max(best_quantity, math.floor(scores[best_face]))
    if rng.random() < p.bluff:
        quantity += 1
    return PlaceBet(quantity=quantity, face=best_face)


@register_agent("statistical")
class StatisticalAgent(Agent):
    """
    Plays with decide_bot_action. Personalities are tuned by subclasses.
    """
    personality = DEFAULT_PERSONALITY

    def __init__(self, rng=None, personality: Optional[BotPersonality] = None):
        self.rng = rng or random.Random()
        if personality is not None:
            self.personality = personality

    def choose_action(self, view):
        state = view["state"]
        bot = state.players[view["player_index"]]
        return decide_bot_action(
            bot,
            state.current_bet,
            state.previous_bet,
            state.total_dice_in_play,
            len(active_players(state)),
            view["is_blind"],
            self.rng,
            self.personality,
        )


@register_agent("cautious")
class CautiousAgent(StatisticalAgent):
    """Doubts early, rarely bluffs."""
    personality = BotPersonality(salpicon_skepticism=0.8, sighted_doubt_threshold=-0.5,
                                 blind_doubt_threshold=-0.25, doubt_execution=0.95, bluff=0.05)


@register_agent("reckless")
class RecklessAgent(StatisticalAgent):
    """Keeps raising, bluffs often and likes spot-on calls."""
    personality = BotPersonality(salpicon_skepticism=0.4, spot_on_gate=0.7, doubt_execution=0.6,
                                 bluff=0.35, reply_salpicon=0.25)
