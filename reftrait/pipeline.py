# -*- coding: utf-8 -*-
"""
Reference trait analysis pipeline.

Runs the analysis top to bottom:
1. Preprocess traits (transforms, sex-covariate removal)
2. Split subjects with both trait sets into Training and Test cohorts
3. Validate CCA inputs
4. Fit CCA on the Training cohort (forward check on the same data)
5. Project the reference traits of the Test cohort and of subjects lacking
   target traits
6. Correlate the projection with external features
7. Export CSVs and figures
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from reftrait import config
from reftrait.cca_model import canonical_variates, fit_cca, project
from reftrait.cohort import build_matrix, complete_subjects, split_cohorts
from reftrait.errors import LengthMismatch
from reftrait.preprocessor import TraitPreprocessor
from reftrait.statistics import (
    canonical_loadings,
    correlate_with_external_table,
    rank_correlates,
    wilks_lambda_test,
)
from reftrait.validator import CCAInputValidator

logger = logging.getLogger(__name__)


def _banner(title: str) -> None:
    logger.info("=" * 80)
    logger.info(title)
    logger.info("=" * 80)


def run_analysis(
    reference: pd.DataFrame,
    target: pd.DataFrame,
    expression: Optional[pd.DataFrame],
    output_dir: str = config.RESULTS_DIR,
    seed: Optional[int] = config.DEFAULT_SEED,
    train_fraction: float = config.TRAIN_FRACTION,
    n_train: Optional[int] = None,
    component: int = config.DEFAULT_COMPONENT,
    transforms: Optional[Dict[str, List[str]]] = None,
    remove_sex: bool = True,
    make_figures: bool = True
) -> Dict[str, Any]:
    """
    Run a complete reference trait analysis.

    Args:
        reference: Subject-indexed reference traits
        target: Subject-indexed target traits
        expression: Feature-by-subject external matrix (None skips the
            correlation stage)
        output_dir: Directory for CSVs, report and figures
        seed: Seed for the cohort split
        train_fraction: Training share of subjects with both trait sets
        n_train: Exact Training size (overrides train_fraction)
        component: Canonical component used for projection
        transforms: Transform map (default: config.TRAIT_TRANSFORMS)
        remove_sex: Residualise traits on sex inferred from subject ids
        make_figures: Generate diagnostic figures

    Returns:
        Dict with model, split, cca_results, loadings, projection,
        correlations, forward_r, heldout_r, file_paths and figure_paths
    """
    start = datetime.now()
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)
    file_paths: Dict[str, str] = {}

    _banner("REFERENCE TRAIT ANALYSIS")
    logger.info(f"Start time: {start.strftime('%Y-%m-%d %H:%M:%S')}")
    logger.info(f"Output directory: {output_path}")

    # Stage 1: preprocessing
    _banner("STAGE 1: PREPROCESSING")
    reference = TraitPreprocessor(reference, transforms, remove_sex).preprocess_all()
    target = TraitPreprocessor(target, transforms, remove_sex).preprocess_all()
    reference_cols = list(reference.columns)
    target_cols = list(target.columns)

    # Stage 2: cohort split
    _banner("STAGE 2: COHORT SPLIT")
    with_reference = complete_subjects(reference)
    with_target = set(complete_subjects(target))
    pool = [s for s in with_reference if s in with_target]
    reference_only = [s for s in with_reference if s not in with_target]
    logger.info(f"Subjects with both trait sets: {len(pool)}; "
                f"reference traits only: {len(reference_only)}")

    split = split_cohorts(pool, n_train=n_train, train_fraction=train_fraction, seed=seed)
    split_path = output_path / config.OUTPUT_FILES['cohort_split']
    split.as_frame().to_csv(split_path, index=False)
    file_paths['cohort_split'] = str(split_path)

    # Stage 3: validation
    _banner("STAGE 3: VALIDATION")
    validator = CCAInputValidator(reference, target, split)
    report_path = output_path / config.OUTPUT_FILES['validation_report']
    report = validator.generate_validation_report(str(report_path))
    file_paths['validation_report'] = str(report_path)
    if not report['overall_status']['is_valid']:
        raise next(iter(validator.failures.values()))

    # Stage 4: fit
    _banner("STAGE 4: CCA FIT")
    R_train = build_matrix(reference, split.train, reference_cols)
    T_train = build_matrix(target, split.train, target_cols)
    model = fit_cca(R_train, T_train)

    cca_results = wilks_lambda_test(model.correlations, model.n_obs,
                                    len(reference_cols), len(target_cols))
    loadings = canonical_loadings(model, R_train, T_train)

    forward_r = np.corrcoef(
        project(model, R_train, 'reference', component),
        project(model, T_train, 'target', component)
    )[0, 1]
    logger.info(f"Forward check (training): r = {forward_r:.4f}, "
                f"rho_{component} = {model.correlations[component - 1]:.4f}")

    for key, frame in (('cca_results', cca_results),
                       ('cca_weights', model.weights_frame()),
                       ('cca_loadings', loadings)):
        path = output_path / config.OUTPUT_FILES[key]
        frame.to_csv(path, index=False)
        file_paths[key] = str(path)
        logger.info(f"Exported {key} to {path}")

    # Stage 5: projection
    _banner("STAGE 5: PROJECTION")
    projection_subjects = list(split.test) + reference_only
    R_test = build_matrix(reference, projection_subjects, reference_cols)
    reference_projection = project(model, R_test, 'reference', component)

    target_projection = pd.Series(np.nan, index=R_test.index, name=f'target_cv{component}')
    heldout_r = np.nan
    if split.test:
        T_test = build_matrix(target, split.test, target_cols)
        target_projection.loc[T_test.index] = project(model, T_test, 'target', component)
        heldout_r = np.corrcoef(
            reference_projection.loc[T_test.index], target_projection.loc[T_test.index]
        )[0, 1]
        logger.info(f"Held-out check (test cohort): r = {heldout_r:.4f} "
                    f"(N = {len(T_test)})")

    projection = pd.DataFrame({
        'cohort': ['test'] * len(split.test) + ['reference_only'] * len(reference_only),
        'reference_projection': reference_projection,
        'target_projection': target_projection
    })
    projection.index.name = 'subject'
    projection_path = output_path / config.OUTPUT_FILES['test_projection']
    projection.to_csv(projection_path)
    file_paths['test_projection'] = str(projection_path)
    logger.info(f"Projected {len(projection)} subjects onto CV{component}")

    # Stage 6: external correlation
    correlations = None
    if expression is not None:
        _banner("STAGE 6: EXTERNAL CORRELATION")
        shared = [s for s in reference_projection.index if s in expression.columns]
        if len(shared) < len(reference_projection):
            logger.warning(f"{len(reference_projection) - len(shared)} projected subject(s) "
                           f"have no external measurements")
        if len(shared) < 4:
            raise LengthMismatch(
                f"Only {len(shared)} projected subject(s) have external measurements"
            )
        correlations = correlate_with_external_table(
            reference_projection.loc[shared], expression
        )
        correlations_path = output_path / config.OUTPUT_FILES['external_correlations']
        correlations.to_csv(correlations_path, index=False)
        file_paths['external_correlations'] = str(correlations_path)

        top = rank_correlates(correlations.set_index('feature')['r'])
        logger.info(f"Top {len(top)} external correlates:")
        for feature, r in top.items():
            logger.info(f"  {feature}: r = {r:+.3f}")

    # Stage 7: figures
    figure_paths: List[str] = []
    if make_figures:
        _banner("STAGE 7: FIGURES")
        from reftrait.visualizer import ReferenceTraitVisualizer

        visualizer = ReferenceTraitVisualizer()
        U, V = canonical_variates(model, R_train, T_train)
        visualizer.plot_training_variates(U, V, model.correlations, output_dir, component)
        visualizer.plot_test_projection(
            reference_projection, output_dir,
            target_projection.dropna() if split.test else None, component
        )
        visualizer.plot_loadings(loadings, output_dir, component)
        if correlations is not None:
            visualizer.plot_correlation_distribution(correlations, output_dir)
        figure_paths = visualizer.figure_paths

    elapsed = (datetime.now() - start).total_seconds()
    _banner("ANALYSIS COMPLETE")
    logger.info(f"Canonical correlations: {np.round(model.correlations, 4)}")
    logger.info(f"Elapsed: {elapsed:.1f}s")

    return {
        'model': model,
        'split': split,
        'cca_results': cca_results,
        'loadings': loadings,
        'projection': projection,
        'correlations': correlations,
        'forward_r': forward_r,
        'heldout_r': heldout_r,
        'file_paths': file_paths,
        'figure_paths': figure_paths
    }
