"""
Trajectory scores: reduce each participant's daily outcomes to one integer.

Two unrelated rules live here and must not be mixed up:
- sum_ordinal_score: sum of 0..3 outcome codes over observed days.
  Default prognosis score for stratified treatment reallocation.
- hospital_free_days: report score, -1 if the participant ever died,
  otherwise the number of days spent at Home.
"""

from typing import Callable

import pandas as pd

from .schema import DEAD, HOME, validate


ScoreFn = Callable[[pd.DataFrame], pd.Series]


def sum_ordinal_score(dataset: pd.DataFrame) -> pd.Series:
    """
    Sum of ordinal codes (Dead=0, Vent/ARDS=1, In Hospital/Facility=2,
    Home=3) across each participant's observed days.

    Returns:
        Integer Series indexed by id, named 'score'
    """
    validate(dataset)
    codes = dataset["y"].cat.codes.astype(int)
    # Missing outcomes carry code -1 and contribute nothing
    codes = codes.where(codes >= 0, 0)
    scores = codes.groupby(dataset["id"], sort=True).sum()
    return scores.astype(int).rename("score")


def hospital_free_days(dataset: pd.DataFrame) -> pd.Series:
    """
    Hospital-free days: -1 if ever Dead, else the count of Home days.

    Intended for completed 28-day data, where it is the usual
    "hospital-free days at day 28" outcome with death as worst rank.
    """
    validate(dataset)
    ids = dataset["id"]
    ever_dead = (dataset["y"] == DEAD).groupby(ids, sort=True).any()
    home_days = (dataset["y"] == HOME).groupby(ids, sort=True).sum()
    hfd = home_days.where(~ever_dead, -1)
    return hfd.astype(int).rename("hfd")
