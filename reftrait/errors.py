"""
Error taxonomy for reference trait analysis.

All errors derive from ValueError so code catching ValueError around an
analysis stage keeps working.
"""


class ReferenceTraitError(ValueError):
    """Base class for invalid analysis input."""


class DimensionMismatch(ReferenceTraitError):
    """Paired matrices disagree on subjects (rows) or on trained features."""


class SingularInput(ReferenceTraitError):
    """A matrix is rank-deficient and CCA cannot be solved."""


class LengthMismatch(ReferenceTraitError):
    """External matrix subject count differs from the projected vector."""


class MissingValue(ReferenceTraitError):
    """A required cell is absent."""
