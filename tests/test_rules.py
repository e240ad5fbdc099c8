import unittest
import random
from cacho.core.rules import count_for_face, count_across, is_salpicon_hand
from cacho.core.dice import roll_dice


class TestRules(unittest.TestCase):
    def test_aces_are_wild_for_other_faces(self):
        self.assertEqual(count_for_face([1, 1, 3, 4, 1], 3, False), 4)

    def test_aces_only_count_themselves_on_ace_bets(self):
        self.assertEqual(count_for_face([1, 1, 3], 1, True), 2)

    def test_count_across_hands(self):
        hands = [[1, 5, 5], [2, 3], [5, 1, 6, 6]]
        self.assertEqual(count_across(hands, 5), 5)
        self.assertEqual(count_across(hands, 1), 2)

    def test_salpicon_hand(self):
        self.assertTrue(is_salpicon_hand([1, 2, 3, 4, 5]))
        self.assertTrue(is_salpicon_hand([6, 2, 3, 4, 5]))
        self.assertFalse(is_salpicon_hand([1, 2, 3, 4, 4]))
        self.assertFalse(is_salpicon_hand([1, 2, 3, 4]))

    def test_roll_dice_rejects_negative_counts(self):
        self.assertEqual(roll_dice(0, random.Random(1)), [])
        with self.assertRaises(ValueError):
            roll_dice(-1, random.Random(1))

    def test_roll_dice_is_seeded(self):
        a = roll_dice(10, random.Random(7))
        b = roll_dice(10, random.Random(7))
        self.assertEqual(a, b)
        self.assertTrue(all(1 <= d <= 6 for d in a))


if __name__ == '__main__':
    unittest.main()
