# -*- coding: utf-8 -*-
"""
Trait Preprocessor Module

Preprocessing applied to phenotype tables before CCA:
- Variance-stabilising transforms (sqrt for proportions, log for positive
  skewed traits)
- Sex inference from the subject identifier prefix
- Sex-covariate removal: fit value ~ sex per trait and keep the residuals

Each step is a standalone function over a subject-indexed DataFrame;
TraitPreprocessor chains them.
"""

from typing import Dict, List, Optional
import logging

import numpy as np
import pandas as pd
import statsmodels.formula.api as smf

from reftrait import config
from reftrait.errors import MissingValue

logger = logging.getLogger(__name__)


def apply_transform(values: pd.Series, transform: Optional[str]) -> pd.Series:
    """
    Apply a named variance-stabilising transform to one trait.

    Args:
        values: Trait values (NaN allowed and passed through)
        transform: 'sqrt', 'log' or None

    Returns:
        Transformed values

    Raises:
        ValueError: Unknown transform, sqrt input outside [0, 1], or log
            input not strictly positive
    """
    if transform is None:
        return values.astype(float)

    if transform not in config.VALID_TRANSFORMS:
        raise ValueError(
            f"Unknown transform '{transform}'. Valid: {config.VALID_TRANSFORMS}"
        )

    observed = values.dropna()

    if transform == 'sqrt':
        if ((observed < 0) | (observed > 1)).any():
            raise ValueError(
                f"sqrt transform expects proportions in [0, 1]; '{values.name}' "
                f"ranges {observed.min():.4g} to {observed.max():.4g}"
            )
        return np.sqrt(values.astype(float))

    if (observed <= 0).any():
        raise ValueError(
            f"log transform expects strictly positive values; '{values.name}' "
            f"has minimum {observed.min():.4g}"
        )
    return np.log(values.astype(float))


def transform_traits(
    table: pd.DataFrame,
    transforms: Dict[str, List[str]] = None
) -> pd.DataFrame:
    """
    Apply configured transforms to the matching columns of a trait table.

    Columns not named in `transforms` are left unchanged.
    """
    table = table.copy()

    for trait in table.columns:
        transform = config.get_transform(trait, transforms)
        if transform is not None:
            table[trait] = apply_transform(table[trait], transform)
            logger.info(f"  {transform} transform: {trait}")

    return table


def infer_sex(subject_ids) -> pd.Series:
    """Sex label per subject, from the identifier prefix convention."""
    subject_ids = pd.Index(subject_ids)
    return pd.Series(
        [config.get_sex_from_subject(s) for s in subject_ids],
        index=subject_ids,
        name='sex'
    )


def remove_sex_effect(
    table: pd.DataFrame,
    sex: Optional[pd.Series] = None,
    columns: Optional[List[str]] = None
) -> pd.DataFrame:
    """
    Remove the sex covariate from each trait by OLS residualisation.

    For each trait, fits `value ~ C(sex)` on the subjects where the trait is
    observed and replaces the values with the residuals. Missing values stay
    missing.

    Args:
        table: Subject-indexed trait table
        sex: Sex label per subject; inferred from the index when None
        columns: Traits to residualise (default: all columns)

    Returns:
        Table with residualised trait columns

    Raises:
        MissingValue: A trait has no observed values
        ValueError: Sex unknown for some subjects
    """
    sex = infer_sex(table.index) if sex is None else sex.reindex(table.index)
    if sex.isna().any():
        raise ValueError(f"Sex unknown for {int(sex.isna().sum())} subject(s)")

    columns = list(table.columns) if columns is None else columns
    formula = 'value ~ C(sex)' if sex.nunique() > 1 else 'value ~ 1'
    if sex.nunique() < 2:
        logger.warning("Only one sex present; residuals are deviations from the mean")

    residualised = table.copy()
    for trait in columns:
        if not table[trait].notna().any():
            raise MissingValue(f"trait '{trait}' has no observed values")
        frame = pd.DataFrame({'value': table[trait].astype(float), 'sex': sex})
        fit = smf.ols(formula, data=frame, missing='drop').fit()
        residualised[trait] = fit.resid.reindex(table.index)
        logger.debug(f"  {trait}: sex R^2 = {fit.rsquared:.3f}")

    logger.info(f"Removed sex effect from {len(columns)} trait(s) "
                f"({sex.value_counts().to_dict()})")

    return residualised


class TraitPreprocessor:
    """
    Preprocesses a subject-indexed trait table.

    Attributes:
        data (pd.DataFrame): Trait table indexed by subject
        transforms (Dict[str, List[str]]): Transform name -> traits
        remove_sex (bool): Whether to residualise traits on sex

    Example:
        >>> preprocessor = TraitPreprocessor(reference_df)
        >>> reference_clean = preprocessor.preprocess_all()
    """

    def __init__(
        self,
        data: pd.DataFrame,
        transforms: Optional[Dict[str, List[str]]] = None,
        remove_sex: bool = True
    ):
        self.data = data.copy()
        self.transforms = config.TRAIT_TRANSFORMS if transforms is None else transforms
        self.remove_sex = remove_sex
        logger.info(f"Initialized TraitPreprocessor with {len(data)} subjects, "
                    f"{len(data.columns)} traits")

    def preprocess_all(self) -> pd.DataFrame:
        """
        Run the preprocessing steps in order:
        1. Variance-stabilising transforms
        2. Sex-covariate removal (if enabled)
        """
        logger.info("Starting trait preprocessing...")

        data = transform_traits(self.data, self.transforms)

        if self.remove_sex:
            data = remove_sex_effect(data)

        logger.info(f"Preprocessing complete: {len(data)} subjects, "
                    f"{len(data.columns)} traits")

        return data
