"""Reference trait analysis: relate incompatible trait sets through CCA projection."""

from reftrait.__version__ import __version__
from reftrait.cca_model import (
    CanonicalProjectionModel,
    canonical_variates,
    correlate_with_external,
    fit_cca,
    project,
)
from reftrait.cohort import CohortSplit, split_cohorts
from reftrait.errors import (
    DimensionMismatch,
    LengthMismatch,
    MissingValue,
    ReferenceTraitError,
    SingularInput,
)

__all__ = [
    "__version__",
    "CanonicalProjectionModel",
    "fit_cca",
    "project",
    "canonical_variates",
    "correlate_with_external",
    "CohortSplit",
    "split_cohorts",
    "ReferenceTraitError",
    "DimensionMismatch",
    "SingularInput",
    "LengthMismatch",
    "MissingValue",
]
