"""
Outcome-dependent missingness after hospital discharge.

For participants discharged Home at least once, each day strictly after
the first Home day is set missing with a probability that depends on
whether the participant eventually dies:

    P(missing | dies by end of follow-up)   = prob_missing_given_dead
    P(missing | alive at end of follow-up)  = prob_missing_given_alive

Days up to and including the discharge day are always observed. No
default probabilities are provided; callers choose both.

The motivating relation between discharge and missingness is Bayes':

    P(discharged | missing) = P(missing | discharged) P(discharged) / P(missing)
"""

import numpy as np
import pandas as pd

from .schema import DEAD, HOME, RandomSource, validate


def posterior_discharged_given_missing(
    p_missing_given_discharged: float,
    p_discharged: float,
    p_missing: float
) -> float:
    """P(discharged | missing) by Bayes' rule."""
    for name, p in [
        ('p_missing_given_discharged', p_missing_given_discharged),
        ('p_discharged', p_discharged),
        ('p_missing', p_missing),
    ]:
        if not 0.0 <= p <= 1.0:
            raise ValueError(f"{name} must be in [0, 1], got {p}")
    if p_missing == 0.0:
        raise ValueError("p_missing must be > 0 to condition on missingness")

    posterior = p_missing_given_discharged * p_discharged / p_missing
    if posterior > 1.0 + 1e-12:
        raise ValueError(
            f"Inconsistent probabilities: P(discharged | missing) = {posterior:.3f} > 1"
        )
    return min(posterior, 1.0)


def inject_missing(
    dataset: pd.DataFrame,
    prob_missing_given_alive: float,
    prob_missing_given_dead: float,
    rng: RandomSource = None
) -> pd.DataFrame:
    """
    Mask post-discharge outcomes with survival-dependent probability.

    Args:
        dataset: Longitudinal dataset, usually after complete_follow_up
        prob_missing_given_alive: Per-day masking probability for
            participants never Dead
        prob_missing_given_dead: Per-day masking probability for
            participants Dead at some point
        rng: numpy Generator, integer seed, or None

    Returns:
        Copy of dataset with masked y set missing. The following day's
        yprev (which reports the masked value) is set missing too.
    """
    validate(dataset)
    for name, p in [
        ('prob_missing_given_alive', prob_missing_given_alive),
        ('prob_missing_given_dead', prob_missing_given_dead),
    ]:
        if not 0.0 <= p <= 1.0:
            raise ValueError(f"{name} must be in [0, 1], got {p}")

    rng = np.random.default_rng(rng)
    result = dataset.copy()
    ids = result["id"]

    home_time = result["time"].where(result["y"] == HOME)
    first_home = home_time.groupby(ids).transform("min")
    # NaN first_home (never discharged) compares False
    eligible = (result["time"] > first_home).to_numpy()

    ever_dead = (result["y"] == DEAD).groupby(ids).transform("any").to_numpy()
    p_missing = np.where(ever_dead, prob_missing_given_dead, prob_missing_given_alive)

    masked = np.zeros(len(result), dtype=bool)
    draws = rng.random(int(eligible.sum()))
    masked[eligible] = draws < p_missing[eligible]

    if not masked.any():
        return result

    result.loc[masked, "y"] = np.nan

    if "yprev" in result.columns:
        masked_next = pd.MultiIndex.from_arrays(
            [ids[masked], result["time"][masked] + 1]
        )
        row_keys = pd.MultiIndex.from_arrays([ids, result["time"]])
        result.loc[row_keys.isin(masked_next), "yprev"] = np.nan

    return result
