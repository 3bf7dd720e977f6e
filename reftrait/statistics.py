# -*- coding: utf-8 -*-
"""
Significance testing and summaries for reference trait CCA.

Functions:
    wilks_lambda_test: Bartlett's sequential chi-square test per component
    canonical_loadings: Structure coefficients of each original variable
    correlate_with_external_table: Feature correlations with p-values and FDR
    rank_correlates: Strongest external correlates of a projection
"""

from typing import Union
import logging

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.multitest import multipletests

from reftrait import config
from reftrait.cca_model import (
    CanonicalProjectionModel,
    align_features,
    canonical_variates,
    correlate_with_external,
)

logger = logging.getLogger(__name__)


def wilks_lambda_test(rhos, n_obs: int, p: int, q: int) -> pd.DataFrame:
    """
    Sequential Wilks' Lambda test of canonical correlations.

    For component k the null hypothesis is that correlations k..d are all
    zero:
    - Lambda_k = prod_{i >= k} (1 - r_i^2)
    - Chi-square (Bartlett): -(n - 1 - (p + q + 1) / 2) * ln(Lambda_k)
    - df = (p - k + 1) * (q - k + 1)

    Args:
        rhos: Canonical correlations, descending
        n_obs: Number of training observations
        p: Number of reference variables
        q: Number of target variables

    Returns:
        DataFrame with columns canonical_variate, canonical_correlation,
        wilks_lambda, chi_square, df, p_value, n_obs
    """
    rhos = np.asarray(rhos, dtype=float)
    bartlett = n_obs - 1 - (p + q + 1) / 2.0

    results = []
    for k in range(len(rhos)):
        wilks_lambda = float(np.prod(1.0 - rhos[k:] ** 2))
        with np.errstate(divide='ignore'):
            chi_square = -bartlett * np.log(wilks_lambda)
        df = (p - k) * (q - k)
        p_value = float(stats.chi2.sf(chi_square, df))

        results.append({
            'canonical_variate': k + 1,
            'canonical_correlation': rhos[k],
            'wilks_lambda': wilks_lambda,
            'chi_square': chi_square,
            'df': df,
            'p_value': p_value,
            'n_obs': n_obs
        })

    results_df = pd.DataFrame(results)

    logger.info(
        f"Wilks' Lambda test: {len(results_df)} components, "
        f"{int((results_df['p_value'] < config.CORRELATION_ALPHA).sum())} significant"
    )

    return results_df


def canonical_loadings(
    model: CanonicalProjectionModel,
    reference,
    target
) -> pd.DataFrame:
    """
    Canonical loadings (structure coefficients).

    Loading = correlation between an original variable and the canonical
    variable of its own side. |loading| > 0.3 is conventionally read as a
    strong contribution; the sign gives the direction.

    Returns:
        DataFrame with columns variable_set, canonical_variate,
        variable_name, loading
    """
    U, V = canonical_variates(model, reference, target)
    U = np.asarray(U)
    V = np.asarray(V)

    loadings_list = []
    for variable_set, data, variates in (('reference', reference, U), ('target', target, V)):
        values = np.asarray(align_features(model, data, variable_set), dtype=float)
        names = model.features(variable_set) or [
            f'{variable_set}_{j + 1}' for j in range(values.shape[1])
        ]

        for i in range(model.n_components):
            for j, var_name in enumerate(names):
                loading = np.corrcoef(values[:, j], variates[:, i])[0, 1]
                loadings_list.append({
                    'variable_set': variable_set,
                    'canonical_variate': i + 1,
                    'variable_name': var_name,
                    'loading': loading
                })

    return pd.DataFrame(loadings_list)


def correlate_with_external_table(
    projected: Union[np.ndarray, pd.Series],
    external,
    alpha: float = config.CORRELATION_ALPHA
) -> pd.DataFrame:
    """
    Correlate a projection with every external feature and test significance.

    Args:
        projected: Projected trait values, one per subject
        external: (features × subjects) matrix
        alpha: Significance level applied to FDR-corrected p-values

    Returns:
        DataFrame sorted by |r| (strongest first) with columns feature, r,
        p_value, p_fdr, significant, ci_lower, ci_upper, n_obs.
        p-values are two-tailed (t distribution, n - 2 df); the 95% CI uses
        the Fisher z-transform; FDR is Benjamini-Hochberg over the non-NaN
        features.
    """
    r = correlate_with_external(projected, external)
    if isinstance(r, pd.Series):
        features = r.index.to_numpy()
        r = r.to_numpy()
    else:
        features = np.arange(len(r))

    n_obs = len(np.asarray(projected))
    dof = n_obs - 2

    with np.errstate(divide='ignore', invalid='ignore'):
        t_stat = r * np.sqrt(dof / (1.0 - r ** 2))
        p_value = 2 * stats.t.sf(np.abs(t_stat), dof)

        z = np.arctanh(r)
        se_z = 1 / np.sqrt(n_obs - 3) if n_obs > 3 else np.nan
        ci_lower = np.tanh(z - 1.96 * se_z)
        ci_upper = np.tanh(z + 1.96 * se_z)

    p_fdr = np.full(len(r), np.nan)
    valid = ~np.isnan(p_value)
    if valid.any():
        _, p_fdr[valid], _, _ = multipletests(p_value[valid], method=config.FDR_METHOD)

    results_df = pd.DataFrame({
        'feature': features,
        'r': r,
        'p_value': p_value,
        'p_fdr': p_fdr,
        'significant': p_fdr < alpha,
        'ci_lower': ci_lower,
        'ci_upper': ci_upper,
        'n_obs': n_obs
    })

    results_df = (
        results_df.assign(abs_r=np.abs(results_df['r']))
        .sort_values('abs_r', ascending=False, na_position='last')
        .drop(columns='abs_r')
        .reset_index(drop=True)
    )

    n_sig = int(results_df['significant'].sum())
    logger.info(
        f"External correlations: {n_sig}/{len(results_df)} features "
        f"significant at FDR < {alpha}"
    )

    return results_df


def rank_correlates(correlations: pd.Series, n: int = config.TOP_N_CORRELATES) -> pd.Series:
    """Top-n features by absolute correlation, NaN excluded."""
    correlations = pd.Series(correlations).dropna()
    order = correlations.abs().sort_values(ascending=False).index
    return correlations.loc[order].head(n)
