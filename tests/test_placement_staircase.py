# ABOUTME: Tests the onboarding placement staircase.
# ABOUTME: Verifies step halving, stopping, band cut points, vocab index and confidence mapping.

import itertools
import math
import unittest

from src.common.config import PlacementConfig
from src.common.schemas import PlacementState
from src.placement.staircase import (
    confidence_from_step,
    difficulty_for_theta,
    pick_difficulty,
    should_stop,
    start,
    theta_to_band,
    theta_to_vocab_index,
    to_estimate,
    update,
)


class StaircaseUpdateTest(unittest.TestCase):
    def test_start_values(self):
        state = start()
        self.assertEqual(state.theta, 0.0)
        self.assertEqual(state.step, 1.0)
        self.assertEqual(state.n, 0)

    def test_easy_and_hard_move_theta_by_step(self):
        self.assertEqual(update(start(), "easy").theta, 1.0)
        self.assertEqual(update(start(), "hard").theta, -1.0)
        self.assertEqual(update(start(), "easy").step, 1.0)

    def test_step_halves_every_second_response(self):
        state = start()
        steps = []
        for outcome in ["easy", "easy", "hard", "easy", "hard", "hard", "easy", "easy", "hard"]:
            state = update(state, outcome)
            steps.append(state.step)
        self.assertEqual(state.n, 9)
        self.assertEqual(steps, [1.0, 0.5, 0.5, 0.25, 0.25, 0.125, 0.125, 0.0625, 0.0625])
        # +1 +1 -0.5 +0.5 -0.25 -0.25 +0.125 +0.125 -0.0625
        self.assertAlmostEqual(state.theta, 1.6875)
        estimate = to_estimate(state)
        self.assertTrue(0.0 <= estimate.vocab_index <= 10.0)
        self.assertTrue(0.0 <= estimate.confidence <= 1.0)
        self.assertEqual(estimate.band, "C1")

    def test_update_does_not_mutate_input(self):
        state = start()
        update(state, "easy", item_id="w1")
        self.assertEqual(state, start())

    def test_update_records_seen_items_and_history(self):
        state = update(start(), "easy", item_id="w1", freq_rank=120)
        state = update(state, "hard", item_id="w2")
        state = update(state, "easy", item_id="w1")
        self.assertEqual(state.seen_item_ids, ("w1", "w2"))
        self.assertEqual([e.item_id for e in state.history], ["w1", "w2", "w1"])
        self.assertEqual(state.history[0].band, "B1")
        self.assertEqual(state.history[0].freq_rank, 120)

    def test_invalid_outcome_rejected(self):
        with self.assertRaises(ValueError):
            update(start(), "medium")

    def test_state_dict_roundtrip_keeps_kind_tag(self):
        state = update(start(), "easy", item_id="w1", freq_rank=10)
        payload = state.to_dict()
        self.assertEqual(payload["kind"], "placement")
        self.assertEqual(PlacementState.from_dict(payload), state)
        with self.assertRaises(ValueError):
            PlacementState.from_dict({"kind": "assessment"})


class StaircaseStoppingTest(unittest.TestCase):
    def test_step_non_increasing_and_stops_within_cap(self):
        config = PlacementConfig()
        for pattern in itertools.product(["easy", "hard"], repeat=config.max_responses):
            state = start()
            previous_step = state.step
            stopped_at = None
            for outcome in pattern:
                state = update(state, outcome)
                self.assertLessEqual(state.step, previous_step)
                previous_step = state.step
                if should_stop(state):
                    stopped_at = state.n
                    break
            self.assertIsNotNone(stopped_at)
            self.assertLessEqual(stopped_at, config.max_responses)

    def test_stops_at_eight_once_converged(self):
        state = start()
        for _ in range(7):
            state = update(state, "easy")
            self.assertFalse(should_stop(state))
        state = update(state, "easy")
        self.assertTrue(should_stop(state))

    def test_hard_cap_applies_without_convergence(self):
        config = PlacementConfig(stop_step=0.0001)
        self.assertTrue(should_stop(PlacementState(theta=0.0, step=0.1, n=12), config=config))
        self.assertFalse(should_stop(PlacementState(theta=0.0, step=0.1, n=11), config=config))

    def test_extreme_runs_stay_finite(self):
        state = PlacementState(theta=1e300, step=1.0, n=0)
        state = update(state, "easy")
        self.assertTrue(math.isfinite(state.theta))
        self.assertEqual(theta_to_vocab_index(-1e300), 0.0)
        self.assertEqual(theta_to_vocab_index(1e300), 10.0)


class LevelMappingTest(unittest.TestCase):
    def test_pick_difficulty_clamps(self):
        self.assertEqual(pick_difficulty(PlacementState(theta=-5)), -2.5)
        self.assertEqual(pick_difficulty(PlacementState(theta=5)), 2.5)
        self.assertEqual(pick_difficulty(PlacementState(theta=1.5)), 1.5)

    def test_band_cut_points(self):
        cases = {-3.0: "A1", -2.0: "A1", -1.5: "A2", -1.0: "A2", 0.0: "B1", 0.2: "B1", 1.0: "B2", 1.2: "B2", 2.0: "C1", 2.2: "C1", 2.5: "C2"}
        for theta, band in cases.items():
            self.assertEqual(theta_to_band(theta), band, msg=f"theta={theta}")

    def test_vocab_index_monotone(self):
        thetas = [x / 4 for x in range(-20, 21)]
        values = [theta_to_vocab_index(t) for t in thetas]
        self.assertEqual(values, sorted(values))
        self.assertAlmostEqual(theta_to_vocab_index(0.0), 5.0)

    def test_confidence_mapping(self):
        self.assertAlmostEqual(confidence_from_step(1.0), 0.3)
        self.assertEqual(confidence_from_step(0.25), 1.0)
        self.assertEqual(confidence_from_step(0.01), 1.0)
        self.assertAlmostEqual(confidence_from_step(5.0), 0.3)
        steps = [1.0, 0.9, 0.75, 0.5, 0.3, 0.25, 0.125]
        values = [confidence_from_step(s) for s in steps]
        self.assertEqual(values, sorted(values))
        self.assertTrue(all(0.3 <= v <= 1.0 for v in values))

    def test_difficulty_window_for_theta(self):
        window = difficulty_for_theta(0.0)
        self.assertEqual(window.band, "B1")
        self.assertEqual((window.min_freq_rank, window.max_freq_rank), (1500, 3500))
        self.assertEqual(difficulty_for_theta(-2.5).band, "A1")


if __name__ == "__main__":
    unittest.main()
