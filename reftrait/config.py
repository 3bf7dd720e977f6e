# -*- coding: utf-8 -*-
"""
Reference Trait Analysis project configuration

This module holds all project parameters: data paths, trait transform
assignments, the subject identifier convention used to infer sex, cohort
split settings and the thresholds used by validation and correlation ranking.
"""

import os

# =============================================================================
# PATHS
# =============================================================================

# Project root (one level above the package)
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DATA_ROOT = os.path.join(PROJECT_ROOT, 'data')

# Input tables
REFERENCE_TRAITS_PATH = os.path.join(DATA_ROOT, 'reference_traits.csv')
TARGET_TRAITS_PATH = os.path.join(DATA_ROOT, 'target_traits.csv')
EXPRESSION_PATH = os.path.join(DATA_ROOT, 'expression.tsv')

# Results
RESULTS_DIR = os.path.join(PROJECT_ROOT, 'results', 'reference_trait')

# =============================================================================
# TRAITS
# =============================================================================

# Behavioural traits observed on every subject (proxies)
REFERENCE_TRAIT_COLUMNS = [
    'open_field_center_fraction',  # fraction of session spent in the arena centre
    'open_field_distance_cm',      # total distance travelled
]

# Traits of primary interest, observed only on the training cohort
TARGET_TRAIT_COLUMNS = [
    'elevated_plus_open_arm_fraction',  # fraction of time in open arms
    'light_dark_latency_s',             # latency to first light-side entry
    'tail_suspension_immobility_s',     # time immobile during tail suspension
]

# Variance-stabilising transforms applied before modelling
# - sqrt: proportion-like traits bounded in [0, 1]
# - log: strictly positive, right-skewed traits
TRAIT_TRANSFORMS = {
    'sqrt': [
        'open_field_center_fraction',
        'elevated_plus_open_arm_fraction',
    ],
    'log': [
        'open_field_distance_cm',
        'light_dark_latency_s',
        'tail_suspension_immobility_s',
    ],
}

VALID_TRANSFORMS = ('sqrt', 'log')

# =============================================================================
# SUBJECTS
# =============================================================================

# Subject identifiers start with a sex code, e.g. 'F0123', 'M0456'
SEX_PREFIXES = {
    'F': 'female',
    'M': 'male',
}

# Identifier column name in phenotype tables
SUBJECT_COLUMN = 'subject'

# =============================================================================
# COHORT SPLIT
# =============================================================================

DEFAULT_SEED = 20140115
TRAIN_FRACTION = 0.5

# =============================================================================
# CCA PARAMETERS
# =============================================================================

# Minimum training observations accepted by the validator, on top of n > p + q
MINIMUM_TRAINING_N = 30

# Columns with standard deviation below this are treated as constant
VARIANCE_TOLERANCE = 1e-12

# Relative tolerance on QR diagonal used to declare rank deficiency
RANK_TOLERANCE = 1e-10

# Canonical component used for projection (1-indexed)
DEFAULT_COMPONENT = 1

# =============================================================================
# EXTERNAL CORRELATION
# =============================================================================

CORRELATION_ALPHA = 0.05
FDR_METHOD = 'fdr_bh'
TOP_N_CORRELATES = 10

# =============================================================================
# OUTPUT FILES
# =============================================================================

OUTPUT_FILES = {
    'cca_results': 'cca_results.csv',
    'cca_weights': 'cca_weights.csv',
    'cca_loadings': 'cca_loadings.csv',
    'test_projection': 'test_projection.csv',
    'external_correlations': 'external_correlations.csv',
    'cohort_split': 'cohort_split.csv',
    'validation_report': 'validation_report.txt',
}

FIGURES_SUBDIR = 'figures'


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def get_transform(trait, transforms=None):
    """
    Get the configured transform name for a trait.

    Args:
        trait (str): Trait column name
        transforms (dict): Transform name -> traits (default: TRAIT_TRANSFORMS)

    Returns:
        str or None: 'sqrt', 'log' or None when the trait is used untransformed
    """
    transforms = TRAIT_TRANSFORMS if transforms is None else transforms
    for transform, traits in transforms.items():
        if trait in traits:
            return transform
    return None


def get_sex_from_subject(subject):
    """
    Infer sex from the subject identifier prefix.

    Args:
        subject (str): Subject identifier (e.g. 'F0123')

    Returns:
        str: Sex label from SEX_PREFIXES

    Raises:
        ValueError: If the identifier does not start with a known prefix
    """
    subject = str(subject)
    for prefix, sex in SEX_PREFIXES.items():
        if subject.startswith(prefix):
            return sex
    raise ValueError(
        f"Cannot infer sex from subject identifier '{subject}'. "
        f"Known prefixes: {sorted(SEX_PREFIXES)}"
    )
