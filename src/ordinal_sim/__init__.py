"""
ordinal_sim - Treatment-effect simulation on longitudinal ordinal outcomes.
"""

from .schema import (
    OUTCOME_LEVELS,
    OUTCOME_DTYPE,
    REQUIRED_COLUMNS,
    TX_CONTROL,
    TX_TREATMENT,
    SchemaError,
    validate,
    require_baseline_rows,
    baseline_rows,
    as_outcome,
    outcome_codes,
)

from .scoring import (
    ScoreFn,
    sum_ordinal_score,
    hospital_free_days,
)

from .reallocation import (
    quartile_bucket,
    assign_strata,
    allocation_probabilities,
    reallocate,
)

from .completion import (
    DEFAULT_N_DAYS,
    complete_follow_up,
)

from .missingness import (
    inject_missing,
    posterior_discharged_given_missing,
)

from .sources import (
    PopulationSource,
    FramePopulationSource,
    SyntheticPopulation,
)

from .config import (
    DEFAULT_CONFIG_PARAMS,
    PipelineConfig,
)

from .runner import (
    PipelineResult,
    run_pipeline,
    summarise_by_arm,
    arm_difference,
    compare_allocation_probs,
)

__all__ = [
    # Schema
    "OUTCOME_LEVELS",
    "OUTCOME_DTYPE",
    "REQUIRED_COLUMNS",
    "TX_CONTROL",
    "TX_TREATMENT",
    "SchemaError",
    "validate",
    "require_baseline_rows",
    "baseline_rows",
    "as_outcome",
    "outcome_codes",
    # Scoring
    "ScoreFn",
    "sum_ordinal_score",
    "hospital_free_days",
    # Reallocation
    "quartile_bucket",
    "assign_strata",
    "allocation_probabilities",
    "reallocate",
    # Completion
    "DEFAULT_N_DAYS",
    "complete_follow_up",
    # Missingness
    "inject_missing",
    "posterior_discharged_given_missing",
    # Sources
    "PopulationSource",
    "FramePopulationSource",
    "SyntheticPopulation",
    # Config
    "DEFAULT_CONFIG_PARAMS",
    "PipelineConfig",
    # Runner
    "PipelineResult",
    "run_pipeline",
    "summarise_by_arm",
    "arm_difference",
    "compare_allocation_probs",
]
