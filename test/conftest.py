"""Shared fixtures for the reference trait analysis tests."""

import sys
from pathlib import Path

import matplotlib
matplotlib.use('Agg')

import numpy as np
import pandas as pd
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from reftrait.simulation import simulate_cohort


@pytest.fixture
def paired_traits():
    """200 subjects, 2 reference and 3 target traits sharing one strong axis."""
    rng = np.random.default_rng(42)
    n = 200
    subjects = [f"{'F' if i % 2 == 0 else 'M'}{i:04d}" for i in range(n)]
    R = rng.normal(size=(n, 2))
    T = np.column_stack([
        0.8 * R[:, 0] + 0.6 * rng.normal(size=n),
        0.3 * R[:, 1] + rng.normal(size=n),
        rng.normal(size=n),
    ])
    index = pd.Index(subjects, name='subject')
    reference = pd.DataFrame(R, index=index, columns=['ref_a', 'ref_b'])
    target = pd.DataFrame(T, index=index, columns=['tgt_a', 'tgt_b', 'tgt_c'])
    return reference, target


@pytest.fixture
def simulated():
    return simulate_cohort(n_subjects=258, rho=0.6, seed=7)
