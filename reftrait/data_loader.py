"""
Reference Trait Data Loader

Loads the three inputs of a reference trait analysis:
- Reference phenotype table (subject × reference traits)
- Target phenotype table (subject × target traits)
- Feature table (molecular feature × subject), e.g. gene expression

Phenotype tables have the subject identifier in the first column and one
numeric column per trait. The feature table has feature labels in the first
column and subject identifiers in the header row.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from reftrait import config

logger = logging.getLogger(__name__)


def _separator(path: Path) -> str:
    return '\t' if path.suffix.lower() in ('.tsv', '.txt', '.tab') else ','


def read_phenotype_table(path, columns: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Read a subject-keyed phenotype table.

    Args:
        path: Delimited file; first column is the subject identifier
        columns: Traits to keep (default: all)

    Returns:
        DataFrame indexed by subject (index name 'subject'), float columns

    Raises:
        FileNotFoundError: File does not exist
        ValueError: Duplicate subjects, missing or non-numeric trait columns
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Phenotype table not found: {path}")

    table = pd.read_csv(path, sep=_separator(path), index_col=0)
    table.index = table.index.astype(str)
    table.index.name = config.SUBJECT_COLUMN

    if table.index.duplicated().any():
        duplicated = list(table.index[table.index.duplicated()].unique())
        raise ValueError(f"Duplicate subject identifiers in {path.name}: {duplicated[:5]}")

    if columns is not None:
        missing_cols = set(columns) - set(table.columns)
        if missing_cols:
            raise ValueError(f"Missing required columns in {path.name}: {sorted(missing_cols)}")
        table = table[columns]

    non_numeric = [c for c in table.columns if not pd.api.types.is_numeric_dtype(table[c])]
    if non_numeric:
        raise ValueError(f"Non-numeric trait columns in {path.name}: {non_numeric}")

    return table.astype(float)


def read_feature_table(path) -> pd.DataFrame:
    """
    Read a feature-by-subject table (rows features, columns subjects).

    Raises:
        FileNotFoundError: File does not exist
        ValueError: Duplicate subject columns or non-numeric values
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Feature table not found: {path}")

    table = pd.read_csv(path, sep=_separator(path), index_col=0)
    table.columns = table.columns.astype(str)
    table.index = table.index.astype(str)
    table.index.name = 'feature'

    if table.columns.duplicated().any():
        raise ValueError(f"Duplicate subject columns in {path.name}")

    try:
        return table.astype(float)
    except ValueError as e:
        raise ValueError(f"Non-numeric values in feature table {path.name}: {e}")


class ReferenceTraitDataLoader:
    """
    Load reference traits, target traits and the external feature table.

    Attributes:
        reference_path: Reference phenotype table path
        target_path: Target phenotype table path
        expression_path: Feature-by-subject table path
        reference_data: Loaded reference table
        target_data: Loaded target table
        expression_data: Loaded feature table

    Example:
        >>> loader = ReferenceTraitDataLoader()
        >>> data = loader.load_all()
        >>> print(data['reference'].shape, data['expression'].shape)
    """

    def __init__(
        self,
        reference_path: str = config.REFERENCE_TRAITS_PATH,
        target_path: str = config.TARGET_TRAITS_PATH,
        expression_path: str = config.EXPRESSION_PATH,
        reference_columns: Optional[List[str]] = None,
        target_columns: Optional[List[str]] = None
    ):
        self.reference_path = Path(reference_path)
        self.target_path = Path(target_path)
        self.expression_path = Path(expression_path)
        self.reference_columns = reference_columns
        self.target_columns = target_columns

        self.reference_data: Optional[pd.DataFrame] = None
        self.target_data: Optional[pd.DataFrame] = None
        self.expression_data: Optional[pd.DataFrame] = None

        logger.info("Initialized ReferenceTraitDataLoader")
        logger.info(f"  Reference traits: {self.reference_path}")
        logger.info(f"  Target traits: {self.target_path}")
        logger.info(f"  Features: {self.expression_path}")

    def load_reference_traits(self) -> pd.DataFrame:
        self.reference_data = read_phenotype_table(self.reference_path, self.reference_columns)
        logger.info(f"Loaded reference traits: {self.reference_data.shape[0]} subjects × "
                    f"{self.reference_data.shape[1]} traits")
        return self.reference_data

    def load_target_traits(self) -> pd.DataFrame:
        self.target_data = read_phenotype_table(self.target_path, self.target_columns)
        logger.info(f"Loaded target traits: {self.target_data.shape[0]} subjects × "
                    f"{self.target_data.shape[1]} traits")
        return self.target_data

    def load_expression(self) -> pd.DataFrame:
        self.expression_data = read_feature_table(self.expression_path)
        logger.info(f"Loaded features: {self.expression_data.shape[0]} features × "
                    f"{self.expression_data.shape[1]} subjects")
        return self.expression_data

    def load_all(self) -> Dict[str, pd.DataFrame]:
        """
        Load all three inputs and check that trait sets do not overlap.

        Returns:
            Dict with keys 'reference', 'target', 'expression'
        """
        reference = self.load_reference_traits()
        target = self.load_target_traits()
        expression = self.load_expression()

        shared = set(reference.columns) & set(target.columns)
        if shared:
            raise ValueError(f"Reference and target tables share trait columns: {sorted(shared)}")

        n_both = len(reference.index.intersection(target.index))
        n_features = len(reference.index.intersection(expression.columns))
        logger.info(f"  Subjects with reference and target traits: {n_both}")
        logger.info(f"  Subjects with reference traits and features: {n_features}")

        return {'reference': reference, 'target': target, 'expression': expression}
