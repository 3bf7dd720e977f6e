"""
Visualization module for reference trait analysis.

Classes:
    ReferenceTraitVisualizer: Canonical variate scatter plots, test-cohort
                              projection plots, loading bar charts and the
                              distribution of external correlations.
"""

from pathlib import Path
from typing import List, Optional

import logging

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns

from reftrait import config


class ReferenceTraitVisualizer:
    """
    Diagnostic figures for a reference trait analysis run.

    Attributes:
        figure_paths (List[str]): Generated figure file paths
        logger (logging.Logger): Logger instance for status messages

    Example:
        >>> visualizer = ReferenceTraitVisualizer()
        >>> visualizer.plot_training_variates(U, V, model.correlations, 'results')
        >>> visualizer.plot_loadings(loadings_df, 'results')
    """

    def __init__(self):
        self.figure_paths: List[str] = []
        self.logger = logging.getLogger(__name__)

        plt.rcParams['figure.dpi'] = 300
        plt.rcParams['savefig.dpi'] = 300
        plt.rcParams['font.size'] = 10
        plt.rcParams['axes.labelsize'] = 11
        plt.rcParams['axes.titlesize'] = 12
        plt.rcParams['legend.fontsize'] = 9

    def _save(self, fig, output_dir: str, filename: str) -> str:
        output_path = Path(output_dir) / config.FIGURES_SUBDIR
        output_path.mkdir(parents=True, exist_ok=True)
        fig_path = output_path / filename
        fig.savefig(fig_path, bbox_inches='tight')
        plt.close(fig)
        self.figure_paths.append(str(fig_path))
        self.logger.info(f"Saved figure: {fig_path}")
        return str(fig_path)

    def plot_training_variates(
        self,
        U,
        V,
        correlations,
        output_dir: str,
        component: int = 1
    ) -> str:
        """
        Scatter of reference vs target canonical variables on the training
        cohort, with the canonical correlation in the title.
        """
        u = np.asarray(U)[:, component - 1]
        v = np.asarray(V)[:, component - 1]
        rho = correlations[component - 1]

        fig, ax = plt.subplots(figsize=(6, 6))
        sns.regplot(x=u, y=v, ax=ax, ci=None,
                    scatter_kws={'s': 18, 'alpha': 0.6, 'color': 'steelblue'},
                    line_kws={'color': 'darkred', 'linewidth': 1.5})
        ax.set_xlabel(f'Reference canonical variable {component}', fontweight='bold')
        ax.set_ylabel(f'Target canonical variable {component}', fontweight='bold')
        ax.set_title(f'Training cohort (r = {rho:.2f}, N = {len(u)})', fontweight='bold')
        ax.grid(True, alpha=0.3)

        return self._save(fig, output_dir, f'training_variates_cv{component}.png')

    def plot_test_projection(
        self,
        reference_projection: pd.Series,
        output_dir: str,
        target_projection: Optional[pd.Series] = None,
        component: int = 1
    ) -> str:
        """
        Projected reference trait on the test cohort.

        With target projections available (e.g. simulated data), plots them
        against each other; otherwise shows the projection's distribution.
        """
        fig, ax = plt.subplots(figsize=(6, 6))

        if target_projection is not None:
            common = reference_projection.index.intersection(target_projection.dropna().index)
            x = reference_projection.loc[common].to_numpy()
            y = target_projection.loc[common].to_numpy()
            r = np.corrcoef(x, y)[0, 1]
            sns.regplot(x=x, y=y,
                        ax=ax, ci=None,
                        scatter_kws={'s': 18, 'alpha': 0.6, 'color': 'darkorange'},
                        line_kws={'color': 'black', 'linewidth': 1.5})
            ax.set_ylabel(f'Target projection (cv{component})', fontweight='bold')
            ax.set_title(f'Test cohort (r = {r:.2f}, N = {len(common)})',
                         fontweight='bold')
        else:
            sns.histplot(reference_projection.to_numpy(), ax=ax, bins=30, color='darkorange')
            ax.set_ylabel('Subjects', fontweight='bold')
            ax.set_title(f'Test cohort projection (N = {len(reference_projection)})',
                         fontweight='bold')

        ax.set_xlabel(f'Reference projection (cv{component})', fontweight='bold')
        ax.grid(True, alpha=0.3)

        return self._save(fig, output_dir, f'test_projection_cv{component}.png')

    def plot_loadings(self, loadings_df: pd.DataFrame, output_dir: str, component: int = 1) -> str:
        """
        Bar chart of canonical loadings for one component, both variable sets,
        with the conventional |0.3| threshold marked.
        """
        data = loadings_df[loadings_df['canonical_variate'] == component].copy()
        data = data.sort_values('loading', key=np.abs, ascending=False)

        fig, ax = plt.subplots(figsize=(8, 0.5 * len(data) + 1.5))
        sns.barplot(data=data, x='loading', y='variable_name', hue='variable_set',
                    dodge=False, palette={'reference': 'steelblue', 'target': 'firebrick'}, ax=ax)
        ax.axvline(0.3, color='gray', linestyle='--', linewidth=1)
        ax.axvline(-0.3, color='gray', linestyle='--', linewidth=1)
        ax.axvline(0, color='black', linewidth=0.8)
        ax.set_xlim(-1, 1)
        ax.set_xlabel('Canonical loading', fontweight='bold')
        ax.set_ylabel('')
        ax.set_title(f'Canonical loadings - CV{component}', fontweight='bold')

        return self._save(fig, output_dir, f'cca_loadings_cv{component}.png')

    def plot_correlation_distribution(
        self,
        correlations_df: pd.DataFrame,
        output_dir: str,
        alpha: float = config.CORRELATION_ALPHA
    ) -> str:
        """Histogram of feature correlations with the projected trait."""
        fig, ax = plt.subplots(figsize=(7, 5))

        r = correlations_df['r'].dropna()
        sns.histplot(r, bins=50, ax=ax, color='gray')

        significant = correlations_df.loc[correlations_df['significant'], 'r']
        if len(significant) > 0:
            sns.rugplot(significant, ax=ax, color='firebrick', height=0.05)

        ax.set_xlabel('Pearson r with projected reference trait', fontweight='bold')
        ax.set_ylabel('Features', fontweight='bold')
        ax.set_title(f'External correlates ({len(significant)}/{len(r)} at FDR < {alpha})',
                     fontweight='bold')

        return self._save(fig, output_dir, 'external_correlations_hist.png')
