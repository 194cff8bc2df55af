"""
Stratified, rank-based treatment reallocation.

Induces a treatment effect of controllable size in a population whose
treatment column carries no effect:

1. Take each participant's baseline (time == 1) row
2. Score each participant's full trajectory (higher = better course)
3. Stratify by age quartile x SOFA quartile (quartiles of the current
   population, recomputed every call)
4. Rank by score within each stratum; normalise rank to (0, 1]
5. Better half (normalised rank >= 0.5) is treated with probability
   allocation_prob, the worse half with 1 - allocation_prob
6. One Bernoulli draw per participant decides the new treatment

allocation_prob = 0.5 gives no effect; values near 1 make treatment
almost perfectly aligned with good prognosis.
"""

import warnings

import numpy as np
import pandas as pd

from .schema import (
    TX_CONTROL,
    TX_TREATMENT,
    RandomSource,
    baseline_rows,
    require_baseline_rows,
    validate,
)
from .scoring import ScoreFn, sum_ordinal_score


QUARTILES = (0.25, 0.5, 0.75)
N_BUCKETS = len(QUARTILES) + 1


def quartile_bucket(values) -> np.ndarray:
    """
    Bucket values 0..3 by their empirical quartiles.

    Buckets are right-closed with open outer intervals:
        (-inf, q1], (q1, q2], (q2, q3], (q3, inf)
    Tied quartiles simply leave some buckets empty.
    """
    values = np.asarray(values, dtype=float)
    cuts = np.quantile(values, QUARTILES)
    return np.searchsorted(cuts, values, side='left')


def assign_strata(baseline: pd.DataFrame) -> pd.Series:
    """
    Stratum index per baseline row: age_bucket * 4 + sofa_bucket.

    Returns:
        Integer Series aligned with baseline's index
    """
    age_bucket = quartile_bucket(baseline["age"])
    sofa_bucket = quartile_bucket(baseline["sofa"])
    return pd.Series(
        age_bucket * N_BUCKETS + sofa_bucket,
        index=baseline.index,
        name="stratum"
    )


def allocation_probabilities(
    baseline: pd.DataFrame,
    scores: pd.Series,
    allocation_prob: float
) -> pd.DataFrame:
    """
    Per-participant treatment probability from within-stratum score rank.

    Args:
        baseline: One row per participant (see baseline_rows)
        scores: Score per participant, indexed by id
        allocation_prob: Treatment probability for the better half

    Returns:
        DataFrame (baseline row order) with columns
        id, stratum, score, norm_rank, p_treat
    """
    table = pd.DataFrame({
        "id": baseline["id"].to_numpy(),
        "stratum": assign_strata(baseline).to_numpy(),
    })
    table["score"] = table["id"].map(scores)

    unscored = table.loc[table["score"].isna(), "id"]
    if len(unscored):
        raise ValueError(
            f"Score function returned no score for {len(unscored)} participants "
            f"(e.g. {list(unscored[:5])})"
        )

    by_stratum = table.groupby("stratum")["score"]
    # 'first': ties keep original row order
    rank = by_stratum.rank(method="first", ascending=True)
    size = by_stratum.transform("size")
    table["norm_rank"] = rank / size

    table["p_treat"] = np.where(
        table["norm_rank"] >= 0.5,
        allocation_prob,
        1.0 - allocation_prob
    )
    return table


def reallocate(
    dataset: pd.DataFrame,
    allocation_prob: float,
    score_fn: ScoreFn = sum_ordinal_score,
    rng: RandomSource = None,
    verbose: bool = False
) -> pd.DataFrame:
    """
    Reassign treatment using stratified, rank-based allocation.

    Args:
        dataset: Longitudinal dataset (validated first)
        allocation_prob: Treatment probability for the better-prognosis
            half of each stratum, in (0, 1]
        score_fn: Participant score, higher = better course
        rng: numpy Generator, integer seed, or None
        verbose: Print a per-stratum summary

    Returns:
        Copy of dataset with tx replaced (0 = control, 1 = treatment),
        constant across each participant's days
    """
    validate(dataset)
    require_baseline_rows(dataset)

    if not 0.0 < allocation_prob <= 1.0:
        raise ValueError(f"allocation_prob must be in (0, 1], got {allocation_prob}")
    if allocation_prob < 0.5:
        warnings.warn(
            f"allocation_prob={allocation_prob} < 0.5 favours treating the "
            "worse-prognosis half (reversed effect)",
            stacklevel=2
        )

    rng = np.random.default_rng(rng)

    baseline = baseline_rows(dataset)
    scores = score_fn(dataset)
    table = allocation_probabilities(baseline, scores, allocation_prob)

    treated = rng.random(len(table)) < table["p_treat"].to_numpy()
    table["tx"] = np.where(treated, TX_TREATMENT, TX_CONTROL)

    if verbose:
        _print_strata_summary(table, allocation_prob)

    new_tx = pd.Series(table["tx"].to_numpy(), index=table["id"])
    result = dataset.copy()
    result["tx"] = result["id"].map(new_tx).astype(int)
    return result


def _print_strata_summary(table: pd.DataFrame, allocation_prob: float) -> None:
    summary = table.groupby("stratum").agg(
        n=("id", "size"),
        mean_score=("score", "mean"),
        treated=("tx", "sum"),
    )
    print(f"Reallocation with allocation_prob={allocation_prob}")
    print(f"  Participants: {len(table)}, strata: {len(summary)}")
    for stratum, row in summary.iterrows():
        age_q, sofa_q = divmod(int(stratum), N_BUCKETS)
        print(
            f"  age Q{age_q + 1} x sofa Q{sofa_q + 1}: n={int(row['n']):4d}, "
            f"mean score={row['mean_score']:.1f}, treated={int(row['treated'])}"
        )
