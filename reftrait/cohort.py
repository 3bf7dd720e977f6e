"""
Cohort selection and Training/Test partition.

The split takes its seed as an argument; nothing depends on the global NumPy
random state.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
import logging

import pandas as pd
from sklearn.model_selection import train_test_split

from reftrait import config
from reftrait.errors import MissingValue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CohortSplit:
    """Disjoint Training and Test subject sets."""
    train: Tuple[str, ...]
    test: Tuple[str, ...]
    seed: Optional[int]

    def __post_init__(self):
        overlap = set(self.train) & set(self.test)
        if overlap:
            raise ValueError(f"Training and Test cohorts overlap: {sorted(overlap)[:5]}")

    def as_frame(self) -> pd.DataFrame:
        """Subject-to-cohort table for export."""
        return pd.DataFrame({
            'subject': list(self.train) + list(self.test),
            'cohort': ['train'] * len(self.train) + ['test'] * len(self.test)
        })


def complete_subjects(table: pd.DataFrame, columns: Optional[List[str]] = None) -> List[str]:
    """Subjects with every value in `columns` observed, in table order."""
    columns = list(table.columns) if columns is None else columns
    mask = table[columns].notna().all(axis=1)
    n_dropped = int((~mask).sum())
    if n_dropped:
        logger.info(f"  {n_dropped} subject(s) lack complete data for {columns}")
    return list(table.index[mask])


def split_cohorts(
    subjects: Iterable[str],
    n_train: Optional[int] = None,
    train_fraction: float = config.TRAIN_FRACTION,
    seed: Optional[int] = config.DEFAULT_SEED
) -> CohortSplit:
    """
    Randomly partition subjects into Training and Test cohorts.

    Args:
        subjects: Subject identifiers (must be unique)
        n_train: Exact Training size; overrides train_fraction when given
        train_fraction: Training share of subjects
        seed: Random seed; the same seed and subjects give the same split

    Returns:
        CohortSplit with every subject in exactly one cohort
    """
    subjects = list(subjects)
    if len(set(subjects)) != len(subjects):
        raise ValueError("Subject identifiers must be unique")
    if len(subjects) < 2:
        raise ValueError(f"Need at least 2 subjects to split, got {len(subjects)}")

    train_size = n_train if n_train is not None else train_fraction
    train, test = train_test_split(
        subjects, train_size=train_size, random_state=seed, shuffle=True
    )

    logger.info(f"Split {len(subjects)} subjects: {len(train)} train, "
                f"{len(test)} test (seed={seed})")

    return CohortSplit(train=tuple(train), test=tuple(test), seed=seed)


def build_matrix(table: pd.DataFrame, subjects: Iterable[str], columns: List[str]) -> pd.DataFrame:
    """
    Observation matrix for the given subjects and traits.

    Raises:
        MissingValue: A subject is absent from the table or a cell is NaN
        ValueError: A trait column is absent
    """
    subjects = list(subjects)

    missing_cols = [c for c in columns if c not in table.columns]
    if missing_cols:
        raise ValueError(f"Missing required columns: {missing_cols}")

    absent = [s for s in subjects if s not in table.index]
    if absent:
        raise MissingValue(f"{len(absent)} subject(s) not in table: {absent[:5]}")

    matrix = table.loc[subjects, columns].astype(float)
    if matrix.isna().any().any():
        incomplete = list(matrix.index[matrix.isna().any(axis=1)])
        raise MissingValue(
            f"{len(incomplete)} subject(s) have missing values in {columns}: {incomplete[:5]}"
        )
    return matrix
