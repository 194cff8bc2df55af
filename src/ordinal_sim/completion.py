"""
Follow-up completion: pad every participant to a fixed number of days.

Records stop when a participant dies (or is lost before the last day).
Completion builds the full id x day grid, carries baseline covariates
from the time == 1 row to every day, and fills every day without a
record with y = Dead, yprev = Dead. Death is absorbing: days after a
participant's first Dead day are Dead as well.

Filling unobserved days with Dead is a modelling assumption, applied
also to participants whose records end while still alive.
"""

import numpy as np
import pandas as pd

from .schema import (
    BASELINE_COLUMNS,
    DEAD,
    OUTCOME_DTYPE,
    baseline_rows,
    require_baseline_rows,
    validate,
)


DEFAULT_N_DAYS = 28


def complete_follow_up(
    dataset: pd.DataFrame,
    n_days: int = DEFAULT_N_DAYS
) -> pd.DataFrame:
    """
    Expand a dataset to exactly n_days rows per participant.

    Args:
        dataset: Longitudinal dataset (validated first)
        n_days: Length of follow-up; rows with time > n_days are dropped

    Returns:
        New DataFrame sorted by (id, time), one row per id and day 1..n_days
    """
    validate(dataset)
    require_baseline_rows(dataset)
    if n_days < 1:
        raise ValueError(f"n_days must be >= 1, got {n_days}")

    baseline_cols = [c for c in BASELINE_COLUMNS if c in dataset.columns]
    daily_cols = [
        c for c in dataset.columns
        if c not in baseline_cols and c not in ("id", "time")
    ]

    ids = pd.Index(dataset["id"].unique()).sort_values()
    grid = pd.MultiIndex.from_product(
        [ids, np.arange(1, n_days + 1)],
        names=["id", "time"]
    )

    in_window = dataset["time"].between(1, n_days)
    observed = (
        dataset.loc[in_window]
        .drop_duplicates(subset=["id", "time"], keep="first")
        .set_index(["id", "time"])[daily_cols]
    )
    full = observed.reindex(grid)
    filled = ~full.index.isin(observed.index)

    full["y"] = pd.Categorical(full["y"], dtype=OUTCOME_DTYPE)
    full.loc[filled, "y"] = DEAD

    # Absorbing death: everything from the first Dead day onwards is Dead
    dead = (full["y"] == DEAD).astype(int)
    dead_so_far = dead.groupby(level="id").cummax().astype(bool)
    dead_before = (
        dead_so_far.groupby(level="id").shift(1, fill_value=False).astype(bool)
    )
    full.loc[dead_so_far, "y"] = DEAD

    if "yprev" in full.columns:
        full["yprev"] = pd.Categorical(full["yprev"], dtype=OUTCOME_DTYPE)
    else:
        full["yprev"] = full["y"].groupby(level="id").shift(1)
    full.loc[filled | dead_before.to_numpy(), "yprev"] = DEAD

    result = full.reset_index()
    baseline = baseline_rows(dataset).set_index("id")
    for column in baseline_cols:
        result[column] = result["id"].map(baseline[column])

    columns = [c for c in dataset.columns if c in result.columns]
    columns += [c for c in result.columns if c not in columns]
    return result[columns]
