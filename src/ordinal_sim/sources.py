"""
Population sources: where longitudinal datasets come from.

The transformation pipeline never loads data itself; it is handed a
PopulationSource. Two implementations are provided:
- FramePopulationSource: wraps an in-memory DataFrame (e.g. read by
  the caller from a study corpus)
- SyntheticPopulation: simulates ordinal daily trajectories under a
  first-order Markov model with no treatment effect
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
from scipy.special import expit

from .schema import OUTCOME_DTYPE, OUTCOME_LEVELS, as_outcome, validate


class PopulationSource(ABC):
    """Abstract supplier of a longitudinal ordinal outcome dataset."""

    @abstractmethod
    def load(self) -> pd.DataFrame:
        """Return a dataset that passes schema validation."""
        pass


class FramePopulationSource(PopulationSource):
    """
    Source backed by an existing DataFrame.

    Outcome columns given as labels or 0..3 codes are converted to the
    canonical categorical before validation.
    """

    def __init__(self, frame: pd.DataFrame):
        self.frame = frame

    def load(self) -> pd.DataFrame:
        dataset = self.frame.copy()
        for column in ("y", "yprev"):
            if column in dataset.columns and not isinstance(
                dataset[column].dtype, pd.CategoricalDtype
            ):
                dataset[column] = as_outcome(dataset[column])
        validate(dataset)
        return dataset


# -----------------------------------------------------------------------------
# Synthetic Markov population
# -----------------------------------------------------------------------------

# Cumulative-logit intercepts for P(Y >= Vent/ARDS), P(Y >= Hospital), P(Y >= Home)
DEFAULT_INTERCEPTS = (4.0, -1.5, -5.0)

# Shift of all cumulative logits by previous day's state
DEFAULT_PREVIOUS_EFFECTS: Dict[str, float] = {
    "Vent/ARDS": 0.0,
    "In Hospital/Facility": 4.0,
    "Home": 8.0,
}


class SyntheticPopulation(PopulationSource):
    """
    Simulated trial population with Markov ordinal daily outcomes.

    Each participant gets baseline age (normal), SOFA (Poisson, capped
    at 24) and a 1:1 random treatment with no effect. The day-0 state
    is Vent/ARDS or In Hospital/Facility. Each day the next state is drawn
    from a cumulative-logit model:

        P(Y_t >= j) = expit(alpha_j + gamma[Y_{t-1}]
                            - beta_age * (age - 60) / 10
                            - beta_sofa * (sofa - 6))

    Dead is absorbing and a participant's records stop on the day of
    death. With censor_prob > 0, records can also stop early while the
    participant is alive.
    """

    def __init__(
        self,
        n_participants: int = 500,
        n_days: int = 28,
        age_mean: float = 60.0,
        age_std: float = 15.0,
        sofa_mean: float = 6.0,
        p_vent_baseline: float = 0.3,
        beta_age: float = 0.3,
        beta_sofa: float = 0.15,
        intercepts: tuple = DEFAULT_INTERCEPTS,
        previous_effects: Optional[Dict[str, float]] = None,
        censor_prob: float = 0.0,
        seed: Optional[int] = None
    ):
        """
        Args:
            n_participants: Number of participants
            n_days: Maximum days of follow-up
            age_mean: Mean baseline age
            age_std: Standard deviation of baseline age
            sofa_mean: Poisson mean of baseline SOFA
            p_vent_baseline: Probability the day-0 state is Vent/ARDS
            beta_age: Log-odds decrease per 10 years above 60
            beta_sofa: Log-odds decrease per SOFA point above 6
            intercepts: Decreasing cumulative-logit intercepts (3 values)
            previous_effects: Logit shift by previous state
            censor_prob: Per-day probability a living participant's
                records stop (from day 2)
            seed: Random seed for reproducibility
        """
        if n_participants < 1:
            raise ValueError(f"n_participants must be >= 1, got {n_participants}")
        if n_days < 1:
            raise ValueError(f"n_days must be >= 1, got {n_days}")
        if len(intercepts) != len(OUTCOME_LEVELS) - 1:
            raise ValueError("intercepts must have one value per threshold (3)")
        if any(a <= b for a, b in zip(intercepts, intercepts[1:])):
            raise ValueError(f"intercepts must be strictly decreasing, got {intercepts}")
        for name, p in [('p_vent_baseline', p_vent_baseline), ('censor_prob', censor_prob)]:
            if not 0.0 <= p <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {p}")

        self.n_participants = n_participants
        self.n_days = n_days
        self.age_mean = age_mean
        self.age_std = age_std
        self.sofa_mean = sofa_mean
        self.p_vent_baseline = p_vent_baseline
        self.beta_age = beta_age
        self.beta_sofa = beta_sofa
        self.intercepts = np.asarray(intercepts, dtype=float)
        self.previous_effects = dict(previous_effects or DEFAULT_PREVIOUS_EFFECTS)
        self.censor_prob = censor_prob
        self.seed = seed

    def load(self) -> pd.DataFrame:
        return self.generate(self.seed)

    def _previous_shift(self, previous: np.ndarray) -> np.ndarray:
        # Indexed by outcome code; Dead never transitions
        table = np.array([0.0] + [
            self.previous_effects.get(level, 0.0) for level in OUTCOME_LEVELS[1:]
        ])
        return table[previous]

    def transition_probabilities(
        self,
        previous: np.ndarray,
        age: np.ndarray,
        sofa: np.ndarray
    ) -> np.ndarray:
        """
        Cumulative probabilities P(Y >= j), j = 1..3, per participant.

        Returns:
            Array of shape (n, 3), decreasing along axis 1
        """
        risk = (
            self._previous_shift(previous)
            - self.beta_age * (age - 60.0) / 10.0
            - self.beta_sofa * (sofa - 6.0)
        )
        return expit(self.intercepts[None, :] + risk[:, None])

    def generate(self, seed: Optional[int] = None) -> pd.DataFrame:
        """
        Simulate the population.

        Returns:
            Dataset sorted by (id, time) with columns
            id, time, y, yprev, age, sofa, tx
        """
        rng = np.random.default_rng(seed)
        n = self.n_participants

        ids = np.arange(1, n + 1)
        age = np.round(rng.normal(self.age_mean, self.age_std, n), 1)
        sofa = np.minimum(rng.poisson(self.sofa_mean, n), 24)
        tx = rng.integers(0, 2, n)

        vent_code = OUTCOME_LEVELS.index("Vent/ARDS")
        hospital_code = OUTCOME_LEVELS.index("In Hospital/Facility")
        previous = np.where(rng.random(n) < self.p_vent_baseline, vent_code, hospital_code)

        active = np.ones(n, dtype=bool)
        days: List[pd.DataFrame] = []

        for day in range(1, self.n_days + 1):
            if day > 1 and self.censor_prob > 0:
                active &= rng.random(n) >= self.censor_prob
            idx = np.flatnonzero(active)
            if len(idx) == 0:
                break

            cum = self.transition_probabilities(previous[idx], age[idx], sofa[idx])
            u = rng.random(len(idx))
            current = (u[:, None] < cum).sum(axis=1)

            days.append(pd.DataFrame({
                "id": ids[idx],
                "time": day,
                "y": current,
                "yprev": previous[idx],
            }))

            previous[idx] = current
            active[idx] = current > 0

        dataset = pd.concat(days, ignore_index=True)
        dataset = dataset.sort_values(["id", "time"], kind="stable").reset_index(drop=True)

        dataset["y"] = pd.Categorical.from_codes(dataset["y"], dtype=OUTCOME_DTYPE)
        dataset["yprev"] = pd.Categorical.from_codes(dataset["yprev"], dtype=OUTCOME_DTYPE)

        row = dataset["id"].to_numpy() - 1
        dataset["age"] = age[row]
        dataset["sofa"] = sofa[row]
        dataset["tx"] = tx[row]

        return dataset
