"""Shared test data builders."""

from typing import Dict, List, Optional

import pandas as pd
import pytest

from ordinal_sim.schema import OUTCOME_DTYPE

D, V, H, HOME = "Dead", "Vent/ARDS", "In Hospital/Facility", "Home"


def make_dataset(
    trajectories: Dict[int, List[str]],
    ages: Optional[Dict[int, float]] = None,
    sofas: Optional[Dict[int, float]] = None,
    tx: Optional[Dict[int, int]] = None,
    initial: str = H
) -> pd.DataFrame:
    """
    Build a dataset from per-participant outcome lists (day 1 onwards).

    yprev on day 1 is `initial`; covariates default to identical values
    so every participant falls in the same stratum.
    """
    rows = []
    for pid, outcomes in trajectories.items():
        previous = initial
        for day, outcome in enumerate(outcomes, start=1):
            rows.append({
                "id": pid,
                "time": day,
                "y": outcome,
                "yprev": previous,
                "age": (ages or {}).get(pid, 60.0),
                "sofa": (sofas or {}).get(pid, 5.0),
                "tx": (tx or {}).get(pid, 0),
            })
            previous = outcome
    df = pd.DataFrame(rows)
    df["y"] = df["y"].astype(OUTCOME_DTYPE)
    df["yprev"] = df["yprev"].astype(OUTCOME_DTYPE)
    return df


@pytest.fixture
def toy_dataset() -> pd.DataFrame:
    """3 participants, 5 days; participant 2 dies on day 3."""
    return make_dataset(
        {
            1: [H, H, HOME, HOME, HOME],
            2: [V, V, D],
            3: [V, H, H, HOME, HOME],
        },
        ages={1: 45.0, 2: 78.0, 3: 62.0},
        sofas={1: 3.0, 2: 11.0, 3: 6.0},
        tx={1: 0, 2: 1, 3: 0},
    )
