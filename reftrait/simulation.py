"""
Synthetic cohorts with a known reference-target relationship.

One latent reference variable u and one latent target variable
v = rho * u + sqrt(1 - rho^2) * e are embedded among independent noise
traits, and each side is mixed by a random invertible matrix, so the
population first canonical correlation is exactly rho and all further ones
are zero. The first `n_signal_features` external features track u.
"""

import logging
from typing import Dict

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


def _mixing_matrix(rng: np.random.Generator, size: int) -> np.ndarray:
    # Orthogonal rotation with positive scales: invertible by construction
    q, _ = np.linalg.qr(rng.normal(size=(size, size)))
    return q * rng.uniform(0.5, 2.0, size=size)


def simulate_cohort(
    n_subjects: int = 258,
    rho: float = 0.6,
    n_reference: int = 2,
    n_target: int = 3,
    n_features: int = 200,
    n_signal_features: int = 10,
    feature_loading: float = 0.5,
    sex_effect: float = 0.0,
    seed: int = 0
) -> Dict[str, pd.DataFrame]:
    """
    Simulate reference traits, target traits and an external feature table.

    Args:
        n_subjects: Number of subjects (ids alternate 'F'/'M' prefixes)
        rho: Injected canonical correlation between the latent pair
        n_reference: Reference traits (p)
        n_target: Target traits (q)
        n_features: External features
        n_signal_features: Features correlated with the reference latent
        feature_loading: Loading of signal features on the reference latent
        sex_effect: Mean shift added to every trait of male subjects
        seed: Random seed

    Returns:
        Dict with 'reference' and 'target' (subject × trait) and
        'expression' (feature × subject) DataFrames, plus 'latent'
        (subject × [u, v])
    """
    if not 0 <= rho < 1:
        raise ValueError(f"rho must be in [0, 1), got {rho}")
    if n_signal_features > n_features:
        raise ValueError("n_signal_features cannot exceed n_features")

    rng = np.random.default_rng(seed)

    subjects = [f"{'F' if i % 2 == 0 else 'M'}{i:04d}" for i in range(n_subjects)]
    male = np.array([s.startswith('M') for s in subjects], dtype=float)

    u = rng.normal(size=n_subjects)
    v = rho * u + np.sqrt(1 - rho ** 2) * rng.normal(size=n_subjects)

    R_latent = np.column_stack([u, rng.normal(size=(n_subjects, n_reference - 1))])
    T_latent = np.column_stack([v, rng.normal(size=(n_subjects, n_target - 1))])

    R = R_latent @ _mixing_matrix(rng, n_reference).T + sex_effect * male[:, None]
    T = T_latent @ _mixing_matrix(rng, n_target).T + sex_effect * male[:, None]

    reference = pd.DataFrame(
        R, index=pd.Index(subjects, name='subject'),
        columns=[f'reference_{j + 1}' for j in range(n_reference)]
    )
    target = pd.DataFrame(
        T, index=pd.Index(subjects, name='subject'),
        columns=[f'target_{j + 1}' for j in range(n_target)]
    )

    features = rng.normal(size=(n_features, n_subjects))
    features[:n_signal_features] += feature_loading * u
    expression = pd.DataFrame(
        features,
        index=pd.Index([f'feature_{i + 1:05d}' for i in range(n_features)], name='feature'),
        columns=subjects
    )

    latent = pd.DataFrame({'u': u, 'v': v}, index=reference.index)

    logger.info(f"Simulated {n_subjects} subjects (p={n_reference}, q={n_target}, "
                f"rho={rho}, {n_features} features, seed={seed})")

    return {'reference': reference, 'target': target, 'expression': expression, 'latent': latent}
