"""
Boundary Detection Tests
========================

Structural invariants and worked scenarios for the adaptive boundary
detector.
"""

import math
import random

import pytest

from slidescribe.video.boundaries import (
    DetectionThresholds,
    ScoreStatistics,
    find_boundaries,
    find_local_peaks,
    find_sustained_runs,
)


class TestScoreStatistics:

    def test_nearest_rank_percentiles(self):
        stats = ScoreStatistics.from_scores([0.4, 0.1, 0.3, 0.2])
        assert stats.p25 == 0.2
        assert stats.p50 == 0.3
        assert stats.p75 == 0.4
        assert stats.p90 == 0.4

    def test_mean_and_population_std(self):
        stats = ScoreStatistics.from_scores([0.1, 0.2, 0.3, 0.4])
        assert stats.mean == pytest.approx(0.25)
        assert stats.std_dev == pytest.approx(math.sqrt(0.0125))

    def test_empty_scores_rejected(self):
        with pytest.raises(ValueError):
            ScoreStatistics.from_scores([])


class TestDetectionThresholds:

    def test_derived_thresholds(self):
        stats = ScoreStatistics.from_scores([0.1, 0.2, 0.3, 0.4])
        thresholds = DetectionThresholds.from_statistics(stats, base=0.15)
        assert thresholds.conservative == pytest.approx(0.4)
        assert thresholds.moderate == pytest.approx(0.45)
        assert thresholds.aggressive == pytest.approx(0.25 + math.sqrt(0.0125))
        assert thresholds.very_aggressive == pytest.approx(0.4)

    def test_base_floor_applies_to_flat_scores(self):
        stats = ScoreStatistics.from_scores([0.0] * 8)
        thresholds = DetectionThresholds.from_statistics(stats, base=0.15)
        assert thresholds.conservative == pytest.approx(0.15)
        assert thresholds.moderate == pytest.approx(0.12)
        assert thresholds.aggressive == pytest.approx(0.09)
        assert thresholds.very_aggressive == pytest.approx(0.06)

    def test_default_mode_is_very_aggressive(self):
        thresholds = DetectionThresholds(0.4, 0.3, 0.2, 0.1)
        assert thresholds.select() == 0.1
        assert thresholds.select("conservative") == 0.4

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            DetectionThresholds(0.4, 0.3, 0.2, 0.1).select("reckless")


class TestSignals:

    def test_isolated_peak(self):
        scores = [0.0] * 10
        scores[5] = 0.8
        assert find_local_peaks(scores, 0.06) == [6]

    def test_peak_needs_full_window(self):
        # Position 1 has no three scores on its left.
        assert find_local_peaks([0.0, 0.9, 0.0, 0.0], 0.06) == []

    def test_peak_must_exceed_threshold(self):
        scores = [0.0] * 10
        scores[5] = 0.05
        assert find_local_peaks(scores, 0.06) == []

    def test_run_midpoint(self):
        assert find_sustained_runs([0.0, 0.5, 0.5, 0.5, 0.0], 0.1) == [3]

    def test_run_open_at_end(self):
        assert find_sustained_runs([0.0, 0.0, 0.0, 0.5, 0.5], 0.1) == [5]

    def test_run_too_close_to_start(self):
        assert find_sustained_runs([0.5, 0.0, 0.0, 0.0], 0.1) == []

    def test_run_duplicating_peak_is_dropped(self):
        scores = [0.0] * 10
        scores[5] = 0.8
        assert find_sustained_runs(scores, 0.06, existing=[6]) == []


class TestFindBoundaries:

    def test_identical_frames_give_one_slide(self):
        assert find_boundaries([0.0] * 9) == [0, 10]

    def test_two_frames_high_score(self):
        # A lone score also sets the percentiles, so 2 * p25 = 1.8 wins.
        assert find_boundaries([0.9], base_threshold=0.15) == [0, 2]

    def test_isolated_spike_in_five_frames(self):
        # Spike between frames 1 and 2.
        assert find_boundaries([0.0, 0.9, 0.0, 0.0], base_threshold=0.15) == [0, 2, 5]

    def test_peak_in_longer_sequence(self):
        scores = [0.0] * 10
        scores[5] = 0.8
        assert find_boundaries(scores) == [0, 6, 11]

    def test_run_before_later_peak_is_kept(self):
        # The run at 0..2 is checked against frame 0, not the later peak at 12.
        scores = [0.5] * 3 + [0.0] * 8 + [0.9] + [0.0] * 6
        assert find_boundaries(scores) == [0, 2, 12, 19]

    def test_no_scores(self):
        assert find_boundaries([]) == [0, 1]

    def test_threshold_mode_changes_sensitivity(self):
        scores = [0.02, 0.03, 0.02, 0.03, 0.3, 0.02, 0.03, 0.02, 0.03, 0.02]
        loose = find_boundaries(scores, 0.15, "very_aggressive")
        strict = find_boundaries(scores, 0.9, "conservative")
        assert 5 in loose
        assert strict == [0, 11]

    @pytest.mark.parametrize("seed", range(25))
    def test_structural_invariants(self, seed):
        rng = random.Random(seed)
        n = rng.randint(1, 60)
        scores = [rng.random() ** 3 for _ in range(n)]

        boundaries = find_boundaries(scores)

        assert boundaries[0] == 0
        assert boundaries[-1] == n + 1
        assert all(a < b for a, b in zip(boundaries, boundaries[1:]))

    @pytest.mark.parametrize("seed", range(5))
    def test_idempotent(self, seed):
        rng = random.Random(seed)
        scores = [rng.random() for _ in range(40)]
        assert find_boundaries(scores) == find_boundaries(list(scores))
