"""
Pipeline configuration.

Defaults give a null effect (allocation_prob = 0.5) over 28 days with
no missingness stage.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional


DEFAULT_CONFIG_PARAMS: Dict[str, Any] = dict(
    allocation_prob=0.5,
    seed=None,
    n_days=28,
    prob_missing_given_alive=None,
    prob_missing_given_dead=None,
    verbose=False,
)


@dataclass
class PipelineConfig:
    """
    Parameters for a reallocate -> complete -> inject-missing run.

    Attributes:
        allocation_prob: Treatment probability for the better-prognosis
            half of each stratum, in (0, 1]
        seed: Seed for the single random generator used by every stage
        n_days: Follow-up length after completion
        prob_missing_given_alive: Post-discharge masking probability for
            survivors (None skips the missingness stage)
        prob_missing_given_dead: Post-discharge masking probability for
            participants who die (None skips the missingness stage)
        verbose: Print stage summaries
    """
    allocation_prob: float = DEFAULT_CONFIG_PARAMS['allocation_prob']
    seed: Optional[int] = DEFAULT_CONFIG_PARAMS['seed']
    n_days: int = DEFAULT_CONFIG_PARAMS['n_days']
    prob_missing_given_alive: Optional[float] = DEFAULT_CONFIG_PARAMS['prob_missing_given_alive']
    prob_missing_given_dead: Optional[float] = DEFAULT_CONFIG_PARAMS['prob_missing_given_dead']
    verbose: bool = DEFAULT_CONFIG_PARAMS['verbose']

    def __post_init__(self):
        if not 0.0 < self.allocation_prob <= 1.0:
            raise ValueError(
                f"allocation_prob must be in (0, 1], got {self.allocation_prob}"
            )
        if self.n_days < 1:
            raise ValueError(f"n_days must be >= 1, got {self.n_days}")

        alive, dead = self.prob_missing_given_alive, self.prob_missing_given_dead
        if (alive is None) != (dead is None):
            raise ValueError(
                "prob_missing_given_alive and prob_missing_given_dead must be "
                "given together"
            )
        for name, p in [('prob_missing_given_alive', alive), ('prob_missing_given_dead', dead)]:
            if p is not None and not 0.0 <= p <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {p}")

    @property
    def injects_missing(self) -> bool:
        """Whether the missingness stage runs."""
        return self.prob_missing_given_alive is not None

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> 'PipelineConfig':
        """Create config from a mapping; unknown keys raise ValueError."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(params) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {unknown}")
        return cls(**params)
