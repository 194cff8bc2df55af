"""
Tests for stratified treatment reallocation.

Tests cover:
- Quartile bucketing and strata
- Within-stratum ranking and allocation probabilities
- Reallocation determinism, shape and extreme effect sizes
- Statistical behaviour under the null (allocation_prob = 0.5)
"""

import numpy as np
import pandas as pd
import pytest

from ordinal_sim.reallocation import (
    allocation_probabilities,
    assign_strata,
    quartile_bucket,
    reallocate,
)
from ordinal_sim.schema import SchemaError, baseline_rows
from ordinal_sim.scoring import sum_ordinal_score
from ordinal_sim.sources import SyntheticPopulation

from conftest import make_dataset, D, V, H, HOME


def single_stratum_dataset() -> pd.DataFrame:
    """Four participants with identical covariates and scores 2 < 4 < 6 < 9."""
    return make_dataset({
        10: [V, V],
        11: [H, H],
        12: [HOME, HOME],
        13: [HOME, HOME, HOME],
    })


class TestQuartileBucket:
    """Tests for quartile_bucket()."""

    def test_even_spread(self):
        buckets = quartile_bucket(np.arange(1, 9))
        assert list(buckets) == [0, 0, 1, 1, 2, 2, 3, 3]

    def test_right_closed(self):
        """A value equal to a quartile falls in the lower bucket."""
        values = np.array([1.0, 2.0, 3.0, 4.0, 5.0])  # quartiles 2, 3, 4
        assert list(quartile_bucket(values)) == [0, 0, 1, 2, 3]

    def test_all_tied(self):
        """Degenerate quartiles do not fail."""
        assert list(quartile_bucket([5.0] * 6)) == [0] * 6

    def test_single_value(self):
        assert list(quartile_bucket([42.0])) == [0]


class TestAssignStrata:
    """Tests for age x SOFA strata."""

    def test_strata_in_range(self):
        df = SyntheticPopulation(n_participants=200, seed=1).load()
        strata = assign_strata(baseline_rows(df))

        assert strata.min() >= 0
        assert strata.max() <= 15
        assert strata.nunique() > 4

    def test_identical_covariates_single_stratum(self):
        strata = assign_strata(baseline_rows(single_stratum_dataset()))
        assert strata.nunique() == 1

    def test_aligned_with_baseline_index(self, toy_dataset):
        baseline = baseline_rows(toy_dataset)
        strata = assign_strata(baseline)
        assert strata.index.equals(baseline.index)


class TestAllocationProbabilities:
    """Tests for within-stratum rank and probability."""

    def test_normalised_rank(self):
        df = single_stratum_dataset()
        table = allocation_probabilities(baseline_rows(df), sum_ordinal_score(df), 0.8)

        assert list(table["norm_rank"]) == [0.25, 0.5, 0.75, 1.0]
        assert list(table["p_treat"]) == pytest.approx([0.2, 0.8, 0.8, 0.8])

    def test_ties_keep_row_order(self):
        df = make_dataset({1: [H], 2: [H], 3: [H], 4: [H]})
        table = allocation_probabilities(baseline_rows(df), sum_ordinal_score(df), 0.7)

        assert list(table["norm_rank"]) == [0.25, 0.5, 0.75, 1.0]

    def test_singleton_stratum_is_top_half(self):
        df = make_dataset({1: [V]})
        table = allocation_probabilities(baseline_rows(df), sum_ordinal_score(df), 0.9)

        assert table["norm_rank"].iloc[0] == 1.0
        assert table["p_treat"].iloc[0] == pytest.approx(0.9)

    def test_missing_score_rejected(self, toy_dataset):
        scores = sum_ordinal_score(toy_dataset).drop(index=2)

        with pytest.raises(ValueError, match="no score"):
            allocation_probabilities(baseline_rows(toy_dataset), scores, 0.6)

    def test_ranks_within_each_stratum(self):
        """Each stratum's ranks run 1/n .. 1 independently."""
        df = SyntheticPopulation(n_participants=300, seed=3).load()
        table = allocation_probabilities(baseline_rows(df), sum_ordinal_score(df), 0.6)

        for _, group in table.groupby("stratum"):
            n = len(group)
            expected = np.arange(1, n + 1) / n
            assert np.allclose(np.sort(group["norm_rank"].to_numpy()), expected)


class TestReallocate:
    """Tests for reallocate()."""

    def test_deterministic_for_seed(self):
        df = SyntheticPopulation(n_participants=200, seed=5).load()

        first = reallocate(df, 0.7, rng=42)
        second = reallocate(df, 0.7, rng=42)

        pd.testing.assert_series_equal(first["tx"], second["tx"])

    def test_generator_and_seed_equivalent(self):
        df = SyntheticPopulation(n_participants=100, seed=5).load()

        from_seed = reallocate(df, 0.7, rng=7)
        from_generator = reallocate(df, 0.7, rng=np.random.default_rng(7))

        pd.testing.assert_series_equal(from_seed["tx"], from_generator["tx"])

    def test_different_seeds_differ(self):
        df = SyntheticPopulation(n_participants=200, seed=5).load()

        a = reallocate(df, 0.6, rng=1)
        b = reallocate(df, 0.6, rng=2)

        assert not a["tx"].equals(b["tx"])

    def test_tx_constant_per_participant(self):
        df = SyntheticPopulation(n_participants=150, seed=8).load()
        result = reallocate(df, 0.6, rng=3)

        assert (result.groupby("id")["tx"].nunique() == 1).all()
        assert set(result["tx"].unique()) <= {0, 1}

    def test_only_tx_changes(self, toy_dataset):
        original = toy_dataset.copy()
        result = reallocate(toy_dataset, 0.6, rng=0)

        pd.testing.assert_frame_equal(
            result.drop(columns=["tx"]),
            toy_dataset.drop(columns=["tx"])
        )
        # Input untouched
        pd.testing.assert_frame_equal(toy_dataset, original)

    def test_full_effect_treats_top_half(self):
        """allocation_prob = 1 treats exactly the better half of each stratum."""
        df = SyntheticPopulation(n_participants=300, seed=11).load()
        result = reallocate(df, 1.0, rng=0)

        table = allocation_probabilities(baseline_rows(df), sum_ordinal_score(df), 1.0)
        tx = result.groupby("id")["tx"].first()
        top = table.set_index("id")["norm_rank"] >= 0.5

        assert (tx[top[top].index] == 1).all()
        assert (tx[top[~top].index] == 0).all()

    def test_custom_score_function(self):
        """Any id -> score function drives the ranking."""
        df = single_stratum_dataset()

        def reverse_id(dataset):
            ids = dataset["id"].unique()
            return pd.Series(-ids, index=ids)

        result = reallocate(df, 1.0, score_fn=reverse_id, rng=0)
        tx = result.groupby("id")["tx"].first()

        # Lowest ids score highest
        assert tx.to_dict() == {10: 1, 11: 1, 12: 1, 13: 0}

    @pytest.mark.parametrize("prob", [0.0, -0.1, 1.5])
    def test_invalid_allocation_prob(self, toy_dataset, prob):
        with pytest.raises(ValueError, match="allocation_prob"):
            reallocate(toy_dataset, prob, rng=0)

    def test_reversed_effect_warns(self, toy_dataset):
        with pytest.warns(UserWarning, match="reversed"):
            reallocate(toy_dataset, 0.3, rng=0)

    def test_validates_before_work(self, toy_dataset):
        with pytest.raises(SchemaError):
            reallocate(toy_dataset.drop(columns=["sofa"]), 0.6, rng=0)

    def test_missing_baseline_row_rejected(self, toy_dataset):
        df = toy_dataset[toy_dataset["time"] > 1]
        with pytest.raises(SchemaError):
            reallocate(df, 0.6, rng=0)

    def test_verbose_prints_strata(self, toy_dataset, capsys):
        reallocate(toy_dataset, 0.6, rng=0, verbose=True)
        out = capsys.readouterr().out

        assert "allocation_prob=0.6" in out
        assert "Participants: 3" in out


class TestNullEffect:
    """Statistical checks on score-treatment association."""

    def test_null_prob_independent_of_rank(self):
        """At 0.5 top and bottom halves are treated at the same rate."""
        df = SyntheticPopulation(n_participants=400, seed=21).load()
        table = allocation_probabilities(baseline_rows(df), sum_ordinal_score(df), 0.5)
        top = table.set_index("id")["norm_rank"] >= 0.5

        top_rates, bottom_rates = [], []
        for seed in range(20):
            tx = reallocate(df, 0.5, rng=seed).groupby("id")["tx"].first()
            top_rates.append(tx[top[top].index].mean())
            bottom_rates.append(tx[top[~top].index].mean())

        assert abs(np.mean(top_rates) - np.mean(bottom_rates)) < 0.05

    def test_strong_prob_correlates_with_score(self):
        df = SyntheticPopulation(n_participants=400, seed=21).load()
        scores = sum_ordinal_score(df)

        tx = reallocate(df, 0.9, rng=0).groupby("id")["tx"].first()
        corr = np.corrcoef(scores[tx.index], tx)[0, 1]

        assert corr > 0.3
