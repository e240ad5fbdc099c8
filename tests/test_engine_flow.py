import unittest
import random
from cacho.agents.statistical_agent import StatisticalAgent
from cacho.core.actions import (
    Doubt, FinishReveal, NextRound, PlaceBet, RevealNextPlayer, Salpicon, SetDirection, SpotOn,
)
from cacho.core.bet import Bet
from cacho.core.config import GameConfig
from cacho.core.engine import GameEngine, apply_action, next_index
from cacho.core.state import (
    Direction, GameState, GameStatus, Player, RevealType, RoundResult, active_players, is_blind_for,
)


def make_state(hands, current=0, status=GameStatus.IN_PROGRESS, **kwargs):
    players = [
        Player(id=i, name=f"P{i}", dice=list(h), dice_count=len(h), is_eliminated=not h)
        for i, h in enumerate(hands)
    ]
    return GameState(
        status=status,
        players=players,
        total_dice_in_play=sum(len(h) for h in hands),
        current_player_index=current,
        round_starter_index=current,
        **kwargs,
    )


def run_reveal(state, rng):
    while True:
        nxt = apply_action(state, RevealNextPlayer(), rng)
        if nxt is state:
            return apply_action(state, FinishReveal(), rng)
        state = nxt


class TestEngineFlow(unittest.TestCase):
    def setUp(self):
        self.rng = random.Random(0)

    def test_two_player_doubt_eliminates_better(self):
        state = make_state([[5], [3, 4]])
        state = apply_action(state, PlaceBet(quantity=2, face=3), self.rng)
        self.assertEqual(state.current_player_index, 1)
        self.assertEqual(state.current_bet, Bet(0, 2, 3))
        state = apply_action(state, Doubt(), self.rng)
        self.assertIs(state.status, GameStatus.REVEAL)
        self.assertEqual(state.reveal_order, [1, 0])
        state = run_reveal(state, self.rng)
        self.assertIs(state.status, GameStatus.GAME_OVER)
        self.assertTrue(state.round_result.is_success)
        self.assertEqual(state.round_result.actual_count, 1)
        self.assertEqual(state.round_result.loser_id, 0)
        self.assertTrue(state.players[0].is_eliminated)
        self.assertEqual(state.winner.id, 1)
        self.assertEqual(state.total_dice_in_play, 2)

    def test_failed_doubt_costs_the_challenger(self):
        state = make_state([[3, 3], [1, 6], [2, 2]])
        state = apply_action(state, PlaceBet(quantity=3, face=3), self.rng)
        state = apply_action(state, Doubt(), self.rng)
        state = run_reveal(state, self.rng)
        self.assertIs(state.status, GameStatus.ROUND_OVER)
        self.assertFalse(state.round_result.is_success)
        loser = state.round_result.loser_id
        self.assertEqual(loser, state.round_result.action_taker_id)
        self.assertEqual(state.players[loser].dice_count, 1)
        self.assertEqual(len(state.players[loser].dice), 1)
        self.assertEqual(state.total_dice_in_play, 5)

    def test_reveal_skips_eliminated_seat_in_order(self):
        state = make_state([[2, 2], [], [2]], current=2)
        state = apply_action(state, PlaceBet(quantity=2, face=2), self.rng)
        self.assertEqual(state.current_player_index, 0)
        state = apply_action(state, Doubt(), self.rng)
        self.assertEqual(state.reveal_order, [0, 1, 2])
        state = apply_action(state, RevealNextPlayer(), self.rng)
        self.assertEqual(state.reveal_state.revealed_count, 2)
        self.assertIs(apply_action(state, FinishReveal(), self.rng), state)
        state = apply_action(state, RevealNextPlayer(), self.rng)
        self.assertEqual(state.reveal_state.revealed_count, 2)
        self.assertIn("out", state.reveal_state.message)
        state = apply_action(state, RevealNextPlayer(), self.rng)
        self.assertIs(apply_action(state, RevealNextPlayer(), self.rng), state)
        state = apply_action(state, FinishReveal(), self.rng)
        self.assertEqual(state.round_result.actual_count, 3)
        self.assertEqual(state.round_result.loser_id, 0)

    def test_salpicon_doubt_resolves_immediately(self):
        state = make_state([[1, 2, 3, 4, 5], [6, 6, 6, 6, 6]])
        state = apply_action(state, Salpicon(), self.rng)
        self.assertTrue(state.current_bet.is_salpicon)
        self.assertIsNone(state.previous_bet)
        state = apply_action(state, Doubt(), self.rng)
        self.assertIs(state.status, GameStatus.ROUND_OVER)
        self.assertIs(state.round_result.type, RevealType.SALPICON_DOUBT)
        self.assertFalse(state.round_result.is_success)
        self.assertEqual(state.round_result.loser_id, 1)
        self.assertEqual(state.revealed_salpicon_player_id, 0)
        self.assertEqual(state.players[1].dice_count, 4)
        self.assertEqual(state.total_dice_in_play, 9)

    def test_false_salpicon_costs_the_declarer(self):
        state = make_state([[2, 2, 3], [1, 1, 3, 4, 5]], current=0)
        state = apply_action(state, PlaceBet(quantity=2, face=3), self.rng)
        state = apply_action(state, Salpicon(), self.rng)
        self.assertEqual(state.previous_bet, Bet(0, 2, 3))
        self.assertEqual(state.current_player_index, 0)
        state = apply_action(state, Doubt(), self.rng)
        self.assertTrue(state.round_result.is_success)
        self.assertEqual(state.round_result.loser_id, 1)
        self.assertEqual(state.players[1].dice_count, 4)

    def test_salpicon_needs_five_dice(self):
        state = make_state([[1, 2, 3, 4], [6, 6]])
        self.assertIs(apply_action(state, Salpicon(), self.rng), state)

    def test_spot_on_gains_a_die_below_cap(self):
        state = make_state([[3, 3], [3, 6, 6]])
        state = apply_action(state, PlaceBet(quantity=3, face=3), self.rng)
        state = apply_action(state, SpotOn(), self.rng)
        state = run_reveal(state, self.rng)
        self.assertTrue(state.round_result.is_success)
        self.assertEqual(state.round_result.gainer_id, 1)
        self.assertEqual(state.players[1].dice_count, 4)
        self.assertEqual(len(state.players[1].dice), 4)
        self.assertEqual(state.total_dice_in_play, 6)

    def test_spot_on_at_cap_grants_bonus_life(self):
        state = make_state([[3, 3], [3, 6, 6, 6, 6]])
        state = apply_action(state, PlaceBet(quantity=3, face=3), self.rng)
        state = apply_action(state, SpotOn(), self.rng)
        state = run_reveal(state, self.rng)
        self.assertTrue(state.players[1].has_bonus_life)
        self.assertEqual(state.players[1].dice_count, 5)
        self.assertEqual(state.total_dice_in_play, 7)

    def test_failed_spot_on_costs_the_challenger(self):
        state = make_state([[3, 3], [6, 6]])
        state = apply_action(state, PlaceBet(quantity=1, face=3), self.rng)
        state = apply_action(state, SpotOn(), self.rng)
        state = run_reveal(state, self.rng)
        self.assertFalse(state.round_result.is_success)
        self.assertEqual(state.round_result.loser_id, 1)
        self.assertEqual(state.total_dice_in_play, 3)

    def test_bonus_life_absorbs_loss(self):
        state = make_state([[2, 2], [4, 4]])
        state.players[0].has_bonus_life = True
        state = apply_action(state, PlaceBet(quantity=4, face=6), self.rng)
        state = apply_action(state, Doubt(), self.rng)
        state = run_reveal(state, self.rng)
        self.assertEqual(state.round_result.loser_id, 0)
        self.assertEqual(state.round_result.bonus_life_used_by, 0)
        self.assertFalse(state.players[0].has_bonus_life)
        self.assertEqual(state.players[0].dice_count, 2)
        self.assertEqual(state.total_dice_in_play, 4)

    def test_bonus_life_absorbs_failed_salpicon_doubt(self):
        state = make_state([[1, 2, 3, 4, 5], [6, 6, 6, 6, 6]])
        state.players[1].has_bonus_life = True
        state = apply_action(state, Salpicon(), self.rng)
        state = apply_action(state, Doubt(), self.rng)
        self.assertEqual(state.round_result.loser_id, 1)
        self.assertEqual(state.round_result.bonus_life_used_by, 1)
        self.assertFalse(state.players[1].has_bonus_life)
        self.assertEqual(state.players[1].dice_count, 5)
        self.assertEqual(state.total_dice_in_play, 10)

    def test_bonus_life_absorbs_failed_spot_on(self):
        state = make_state([[3, 3], [6, 6]])
        state.players[1].has_bonus_life = True
        state = apply_action(state, PlaceBet(quantity=1, face=3), self.rng)
        state = apply_action(state, SpotOn(), self.rng)
        state = run_reveal(state, self.rng)
        self.assertFalse(state.round_result.is_success)
        self.assertEqual(state.round_result.bonus_life_used_by, 1)
        self.assertFalse(state.players[1].has_bonus_life)
        self.assertEqual(state.total_dice_in_play, 4)

    def test_set_direction_keeps_the_turn(self):
        state = make_state([[1], [2], [3]], status=GameStatus.AWAITING_DIRECTION)
        self.assertIs(apply_action(state, PlaceBet(quantity=1, face=2), self.rng), state)
        state = apply_action(state, SetDirection(Direction.LEFT), self.rng)
        self.assertIs(state.status, GameStatus.IN_PROGRESS)
        self.assertEqual(state.current_player_index, 0)
        state = apply_action(state, PlaceBet(quantity=1, face=2), self.rng)
        self.assertEqual(state.current_player_index, 1)

    def test_next_index_skips_eliminated(self):
        players = make_state([[1], [], [2], [3]]).players
        self.assertEqual(next_index(0, players, Direction.RIGHT), 3)
        self.assertEqual(next_index(0, players, Direction.LEFT), 2)

    def test_illegal_actions_return_same_state(self):
        state = make_state([[1, 2], [3, 4]])
        self.assertIs(apply_action(state, Doubt(), self.rng), state)
        self.assertIs(apply_action(state, SpotOn(), self.rng), state)
        self.assertIs(apply_action(state, RevealNextPlayer(), self.rng), state)
        self.assertIs(apply_action(state, NextRound(), self.rng), state)
        empty = GameState()
        self.assertIs(apply_action(empty, PlaceBet(quantity=1, face=2), self.rng), empty)

    def test_input_state_is_not_mutated(self):
        state = make_state([[5], [3, 4]])
        before = state.to_dict()
        after = apply_action(state, PlaceBet(quantity=2, face=3), self.rng)
        after = apply_action(after, Doubt(), self.rng)
        run_reveal(after, self.rng)
        self.assertEqual(state.to_dict(), before)


class TestNextRound(unittest.TestCase):
    def setUp(self):
        self.rng = random.Random(0)

    def round_over(self, hands, result, human_seats=None, current=0):
        state = make_state(hands, current=current, status=GameStatus.ROUND_OVER, round_result=result)
        if human_seats is not None:
            state.human_seats = human_seats
        return state

    def test_loser_starts_next_round(self):
        result = RoundResult(RevealType.DOUBT, True, 0, 1, 2, loser_id=1)
        state = apply_action(self.round_over([[1, 2], [3, 4], [5, 6]], result), NextRound(), self.rng)
        self.assertEqual(state.current_player_index, 1)
        self.assertEqual(state.round_starter_index, 1)
        self.assertIs(state.status, GameStatus.IN_PROGRESS)
        self.assertIsNone(state.round_result)
        self.assertIsNone(state.current_bet)
        self.assertFalse(state.is_blind_round)

    def test_gainer_starts_after_spot_on(self):
        result = RoundResult(RevealType.SPOT_ON, True, 2, 1, 3, gainer_id=2)
        state = apply_action(self.round_over([[1, 2], [3, 4], [5, 6]], result), NextRound(), self.rng)
        self.assertEqual(state.current_player_index, 2)

    def test_human_starter_chooses_direction(self):
        result = RoundResult(RevealType.DOUBT, False, 0, 1, 2, loser_id=0)
        state = apply_action(self.round_over([[1, 2], [3, 4], [5, 6]], result), NextRound(), self.rng)
        self.assertIs(state.status, GameStatus.AWAITING_DIRECTION)

    def test_two_players_fix_direction(self):
        result = RoundResult(RevealType.DOUBT, False, 0, 1, 2, loser_id=0)
        state = self.round_over([[1, 2], [3, 4]], result)
        state.play_direction = Direction.LEFT
        state = apply_action(state, NextRound(), self.rng)
        self.assertIs(state.status, GameStatus.IN_PROGRESS)
        self.assertIs(state.play_direction, Direction.RIGHT)

    def test_fewest_dice_starts_after_elimination(self):
        result = RoundResult(RevealType.DOUBT, True, 0, 1, 1, loser_id=1)
        state = self.round_over([[1, 2, 3], [], [4, 5], [6, 6]], result)
        state = apply_action(state, NextRound(), self.rng)
        # seats 2 and 3 tie; walking down from seat 1 reaches seat 3 first
        self.assertEqual(state.current_player_index, 3)
        self.assertFalse(state.is_blind_round)

    def test_single_die_starter_plays_blind(self):
        result = RoundResult(RevealType.DOUBT, True, 0, 2, 1, loser_id=2)
        state = self.round_over([[1, 2], [3, 4], [5]], result)
        state = apply_action(state, NextRound(), self.rng)
        self.assertTrue(state.is_blind_round)
        self.assertFalse(is_blind_for(state, 2))
        self.assertTrue(is_blind_for(state, 0))

    def test_dice_rerolled_to_counts(self):
        result = RoundResult(RevealType.DOUBT, True, 0, 1, 1, loser_id=1)
        state = apply_action(self.round_over([[1, 2, 3], [4], [5, 6]], result), NextRound(), self.rng)
        self.assertEqual([len(p.dice) for p in state.players], [3, 1, 2])
        self.assertEqual(state.total_dice_in_play, 6)


class TestBotOnlyGames(unittest.TestCase):
    def play(self, players, seed, max_steps=20000):
        cfg = GameConfig(player_count=players, human_seats=(), rng_seed=seed)
        engine = GameEngine(cfg)
        agents = [StatisticalAgent(rng=random.Random(seed * 10 + i)) for i in range(players)]
        engine.start()
        for _ in range(max_steps):
            state = engine.state
            active = active_players(state)
            self.assertEqual(state.total_dice_in_play, sum(p.dice_count for p in active))
            for p in active:
                self.assertEqual(len(p.dice), p.dice_count)
            if engine.is_over:
                return engine
            if state.status is GameStatus.IN_PROGRESS:
                seat = state.current_player_index
                if engine.apply(agents[seat].choose_action(engine.get_view(seat)), actor=seat) is state:
                    engine.apply(Doubt(), actor=seat)
            elif state.status is GameStatus.REVEAL:
                if engine.apply(RevealNextPlayer()) is state:
                    engine.apply(FinishReveal())
            elif state.status is GameStatus.ROUND_OVER:
                engine.apply(NextRound())
            else:
                self.fail(f"unexpected status {state.status}")
        self.fail("game did not finish")

    def test_games_terminate_with_one_winner(self):
        for players in (2, 3, 6):
            for seed in range(3):
                engine = self.play(players, seed)
                state = engine.state
                self.assertIs(state.status, GameStatus.GAME_OVER)
                remaining = active_players(state)
                self.assertEqual(len(remaining), 1)
                self.assertEqual(state.winner.id, remaining[0].id)

    def test_events_and_turn_log(self):
        engine = self.play(3, 11)
        events = engine.pop_events()
        types = [e["type"] for e in events]
        self.assertEqual(types[0], "GameStarted")
        self.assertEqual(types[-1], "GameOver")
        self.assertIn("BetPlaced", types)
        self.assertIn("RoundEnded", types)
        self.assertEqual(engine.get_events(), [])
        self.assertEqual(engine.turn_log[0]["action"], "StartGame")
        self.assertEqual(engine.turn_log[-1]["state"]["status"], "GAME_OVER")


if __name__ == '__main__':
    unittest.main()
