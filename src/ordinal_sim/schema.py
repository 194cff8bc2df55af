"""
Schema for longitudinal ordinal outcome data.

A dataset is a pandas DataFrame with one row per participant-day:
- id: participant identifier (stable across days)
- time: day index, 1..28
- y / yprev: ordinal outcome today / yesterday
- age, sofa: baseline covariates
- tx: treatment assignment

Outcomes are stored as categoricals over the four canonical levels,
ordered worst to best. The integer coding 0..3 follows that order.
"""

from typing import Any, Iterable, List, Union

import numpy as np
import pandas as pd


OUTCOME_LEVELS: List[str] = ["Dead", "Vent/ARDS", "In Hospital/Facility", "Home"]

DEAD, VENT, HOSPITAL, HOME = OUTCOME_LEVELS

OUTCOME_DTYPE = pd.CategoricalDtype(categories=OUTCOME_LEVELS, ordered=True)

REQUIRED_COLUMNS = ("id", "time", "y", "age", "sofa", "tx")

# Covariates fixed at the time == 1 row and shared by every day of a participant
BASELINE_COLUMNS = ("age", "sofa", "tx", "gap")

TX_CONTROL = 0
TX_TREATMENT = 1

# Anything np.random.default_rng accepts for the stochastic stages
RandomSource = Union[None, int, np.random.Generator]


class SchemaError(ValueError):
    """Dataset does not conform to the longitudinal outcome schema."""


def _check_outcome_column(df: pd.DataFrame, column: str) -> None:
    series = df[column]
    if not isinstance(series.dtype, pd.CategoricalDtype):
        raise SchemaError(
            f"Column '{column}' must be categorical with levels {OUTCOME_LEVELS}, "
            f"got dtype {series.dtype}"
        )
    levels = list(series.cat.categories)
    if levels != OUTCOME_LEVELS:
        raise SchemaError(
            f"Column '{column}' has levels {levels}, expected {OUTCOME_LEVELS}"
        )


def validate(dataset: Any) -> None:
    """
    Check that a dataset conforms to the schema.

    Raises:
        SchemaError: if the input is not a DataFrame, a required column is
            missing, the outcome levels are not exactly the canonical
            ordered set, or baseline covariates have missing values.
    """
    if not isinstance(dataset, pd.DataFrame):
        raise SchemaError(
            f"Expected a pandas DataFrame, got {type(dataset).__name__}"
        )

    missing = [c for c in REQUIRED_COLUMNS if c not in dataset.columns]
    if missing:
        raise SchemaError(f"Missing required columns: {missing}")

    _check_outcome_column(dataset, "y")
    if "yprev" in dataset.columns:
        _check_outcome_column(dataset, "yprev")

    for column in ("age", "sofa"):
        n_missing = int(dataset[column].isna().sum())
        if n_missing:
            raise SchemaError(f"Column '{column}' has {n_missing} missing values")


def require_baseline_rows(dataset: pd.DataFrame) -> None:
    """Raise SchemaError if any participant lacks a time == 1 row."""
    ids = pd.Index(dataset["id"].unique())
    with_baseline = pd.Index(dataset.loc[dataset["time"] == 1, "id"].unique())
    lacking = ids.difference(with_baseline)
    if len(lacking):
        raise SchemaError(
            f"{len(lacking)} participants have no time == 1 row "
            f"(e.g. {list(lacking[:5])})"
        )


def baseline_rows(dataset: pd.DataFrame) -> pd.DataFrame:
    """One time == 1 row per participant, in original row order."""
    baseline = dataset.loc[dataset["time"] == 1]
    return baseline.drop_duplicates(subset="id", keep="first")


def as_outcome(values: Iterable[Any]) -> pd.Categorical:
    """
    Convert outcome labels or 0..3 codes to the canonical categorical.

    Missing values are kept as missing. Anything else that is not one of
    the four levels (or codes) raises SchemaError.
    """
    if not isinstance(values, pd.Series):
        values = pd.Series(list(values))

    if pd.api.types.is_numeric_dtype(values) and not pd.api.types.is_bool_dtype(values):
        present = values.dropna()
        bad = present[~present.isin(range(len(OUTCOME_LEVELS)))]
        if len(bad):
            raise SchemaError(f"Unknown outcome codes: {sorted(set(bad))}")
        codes = values.fillna(-1).astype(int).to_numpy()
        return pd.Categorical.from_codes(codes, dtype=OUTCOME_DTYPE)

    present = values.dropna().astype(str)
    unknown = sorted(set(present) - set(OUTCOME_LEVELS))
    if unknown:
        raise SchemaError(f"Unknown outcome labels: {unknown}")
    return pd.Categorical(values, dtype=OUTCOME_DTYPE)


def outcome_codes(series: pd.Series) -> np.ndarray:
    """Integer codes 0..3 (Dead..Home); missing outcomes are -1."""
    return np.asarray(series.cat.codes, dtype=int)
