"""
Canonical correlation projection model for reference trait analysis.

CCA is fit on a training cohort observed on both the reference traits (R) and
the target traits (T). The reference-side weights are then used to project a
test cohort's reference traits into the shared canonical space, and the
projection is correlated against external (e.g. gene expression) features.

Centering convention:
    Projection subtracts the feature means learned at fit time
    (center='train'). center='self' re-centres X on its own means instead.
    Pearson correlations computed against a projection are the same under
    both conventions; only the location of the projected values changes.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union
import logging

import numpy as np
import pandas as pd
from scipy import linalg

from reftrait import config
from reftrait.errors import (
    DimensionMismatch,
    LengthMismatch,
    MissingValue,
    SingularInput,
)

logger = logging.getLogger(__name__)

SIDES = ('reference', 'target')
CENTERING = ('train', 'self')

MatrixLike = Union[np.ndarray, pd.DataFrame]


@dataclass(frozen=True)
class CanonicalProjectionModel:
    """
    Fitted CCA between reference traits and target traits.

    Attributes:
        reference_weights: (p × d) canonical weights for the reference side
        target_weights: (q × d) canonical weights for the target side
        correlations: (d,) canonical correlations, descending
        reference_means: (p,) reference feature means at fit time
        target_means: (q,) target feature means at fit time
        reference_features: Reference feature names (None for bare arrays)
        target_features: Target feature names (None for bare arrays)
        n_obs: Number of training subjects

    Weights are scaled so each canonical variable has unit variance (ddof=1)
    on the training cohort.
    """
    reference_weights: np.ndarray
    target_weights: np.ndarray
    correlations: np.ndarray
    reference_means: np.ndarray
    target_means: np.ndarray
    reference_features: Optional[Tuple[str, ...]]
    target_features: Optional[Tuple[str, ...]]
    n_obs: int

    def __post_init__(self):
        for array in (self.reference_weights, self.target_weights, self.correlations,
                      self.reference_means, self.target_means):
            array.setflags(write=False)

    @property
    def n_components(self) -> int:
        return len(self.correlations)

    def weights(self, side: str) -> np.ndarray:
        _check_side(side)
        return self.reference_weights if side == 'reference' else self.target_weights

    def means(self, side: str) -> np.ndarray:
        _check_side(side)
        return self.reference_means if side == 'reference' else self.target_means

    def features(self, side: str) -> Optional[Tuple[str, ...]]:
        _check_side(side)
        return self.reference_features if side == 'reference' else self.target_features

    def weights_frame(self) -> pd.DataFrame:
        """Long-format table of weights (side, variable, component, weight)."""
        records = []
        for side in SIDES:
            weights = self.weights(side)
            names = self.features(side) or tuple(f'{side}_{j + 1}' for j in range(weights.shape[0]))
            for k in range(self.n_components):
                for j, name in enumerate(names):
                    records.append({
                        'side': side,
                        'variable_name': name,
                        'canonical_variate': k + 1,
                        'weight': weights[j, k],
                    })
        return pd.DataFrame(records)


def _check_side(side: str) -> None:
    if side not in SIDES:
        raise ValueError(f"side must be one of {SIDES}, got {side!r}")


def _as_matrix(data: MatrixLike, name: str):
    """Return (values, index, column names) for an array or DataFrame."""
    if isinstance(data, pd.DataFrame):
        values = data.to_numpy(dtype=float)
        index = data.index
        columns = tuple(str(c) for c in data.columns)
    else:
        values = np.asarray(data, dtype=float)
        index = None
        columns = None
        if values.ndim == 1:
            values = values.reshape(-1, 1)

    if values.ndim != 2:
        raise DimensionMismatch(f"{name} must be a 2-D matrix, got shape {values.shape}")

    if np.isnan(values).any():
        n_missing = int(np.isnan(values).sum())
        raise MissingValue(
            f"{name} contains {n_missing} missing value(s); "
            f"impute or drop subjects before modelling"
        )

    return values, index, columns


def _check_variance(centered: np.ndarray, means: np.ndarray, names, name: str) -> None:
    std = centered.std(axis=0, ddof=1)
    constant = std <= config.VARIANCE_TOLERANCE * (1.0 + np.abs(means))
    if constant.any():
        labels = [names[j] if names else f'column {j}' for j in np.flatnonzero(constant)]
        raise SingularInput(f"{name} has zero-variance column(s): {labels}")


def _factorize(centered: np.ndarray, name: str):
    """Pivoted QR of a centred matrix; raises SingularInput when rank-deficient."""
    q, r, perm = linalg.qr(centered, mode='economic', pivoting=True)
    diag = np.abs(np.diagonal(r))
    if diag[0] == 0 or diag[-1] <= config.RANK_TOLERANCE * diag[0]:
        rank = int(np.sum(diag > config.RANK_TOLERANCE * diag[0]))
        raise SingularInput(
            f"{name} is rank-deficient (rank {rank} < {centered.shape[1]} columns)"
        )
    return q, r, perm


def fit_cca(reference: MatrixLike, target: MatrixLike) -> CanonicalProjectionModel:
    """
    Fit canonical correlation analysis between reference and target traits.

    Both matrices are mean-centred internally. The decomposition follows the
    QR/SVD route: with R_c = Q_r S_r and T_c = Q_t S_t, the singular values of
    Q_rᵀ Q_t are the canonical correlations and the weights are recovered by
    back-substitution through S_r and S_t.

    Args:
        reference: (n × p) reference traits of the training cohort
        target: (n × q) target traits of the same subjects, same row order

    Returns:
        CanonicalProjectionModel with min(p, q) components

    Raises:
        DimensionMismatch: Row counts (or subject indices) differ
        SingularInput: n <= p + q, a zero-variance column, or rank deficiency
        MissingValue: Any cell is NaN
    """
    R, r_index, r_names = _as_matrix(reference, 'reference')
    T, t_index, t_names = _as_matrix(target, 'target')

    n, p = R.shape
    q = T.shape[1]

    if T.shape[0] != n:
        raise DimensionMismatch(
            f"reference has {n} rows but target has {T.shape[0]} rows"
        )
    if r_index is not None and t_index is not None and not r_index.equals(t_index):
        raise DimensionMismatch(
            "reference and target must list the same subjects in the same order"
        )
    if n <= p + q:
        raise SingularInput(
            f"Insufficient observations for CCA: n={n} must exceed p+q={p + q}"
        )

    r_means = R.mean(axis=0)
    t_means = T.mean(axis=0)
    R_c = R - r_means
    T_c = T - t_means

    _check_variance(R_c, r_means, r_names, 'reference')
    _check_variance(T_c, t_means, t_names, 'target')

    q_r, s_r, perm_r = _factorize(R_c, 'reference')
    q_t, s_t, perm_t = _factorize(T_c, 'target')

    left, singular, right_t = linalg.svd(q_r.T @ q_t, full_matrices=False)
    d = min(p, q)
    scale = np.sqrt(n - 1)

    A = np.zeros((p, d))
    B = np.zeros((q, d))
    A[perm_r, :] = linalg.solve_triangular(s_r, left[:, :d]) * scale
    B[perm_t, :] = linalg.solve_triangular(s_t, right_t[:d, :].T) * scale

    # Largest-magnitude reference weight positive; flipping both sides keeps rho >= 0
    for k in range(d):
        j = np.argmax(np.abs(A[:, k]))
        if A[j, k] < 0:
            A[:, k] = -A[:, k]
            B[:, k] = -B[:, k]

    rhos = np.clip(singular[:d], 0.0, 1.0)

    logger.info(
        f"Fitted CCA on {n} subjects (p={p}, q={q}): "
        f"canonical correlations = {np.round(rhos, 4)}"
    )

    return CanonicalProjectionModel(
        reference_weights=A,
        target_weights=B,
        correlations=rhos,
        reference_means=r_means,
        target_means=t_means,
        reference_features=r_names,
        target_features=t_names,
        n_obs=n,
    )


def align_features(model: CanonicalProjectionModel, X: MatrixLike, side: str) -> MatrixLike:
    """
    Reorder DataFrame columns to the fitted feature order.

    Feature names are stored as strings, so columns are matched on their
    string form and selected by their original labels.
    """
    names = model.features(side)
    if not isinstance(X, pd.DataFrame) or names is None:
        return X
    labels = {str(c): c for c in X.columns}
    missing = [name for name in names if name not in labels]
    extra = [label for label in labels if label not in names]
    if missing or extra:
        raise DimensionMismatch(
            f"{side} features do not match the fitted model "
            f"(missing: {missing}, unexpected: {extra})"
        )
    return X.loc[:, [labels[name] for name in names]]


def _transform(model: CanonicalProjectionModel, X: MatrixLike, side: str, center: str):
    if center not in CENTERING:
        raise ValueError(f"center must be one of {CENTERING}, got {center!r}")

    X = align_features(model, X, side)
    values, index, _ = _as_matrix(X, side)

    weights = model.weights(side)
    if values.shape[1] != weights.shape[0]:
        raise DimensionMismatch(
            f"{side} matrix has {values.shape[1]} columns, "
            f"model was fitted on {weights.shape[0]}"
        )

    means = model.means(side) if center == 'train' else values.mean(axis=0)
    return (values - means) @ weights, index


def project(
    model: CanonicalProjectionModel,
    X: MatrixLike,
    side: str = 'reference',
    component: int = 1,
    center: str = 'train'
) -> Union[np.ndarray, pd.Series]:
    """
    Project observations onto one canonical component.

    Args:
        model: Fitted CanonicalProjectionModel
        X: (m × p) reference or (m × q) target observations
        side: 'reference' or 'target'
        component: 1-indexed canonical component
        center: 'train' to use fit-time means, 'self' to use X's own means

    Returns:
        Projected values, one per row of X (Series indexed by subject when X
        is a DataFrame)

    Raises:
        DimensionMismatch: X does not match the fitted features of `side`
        MissingValue: X contains NaN
        ValueError: Invalid side, component or center
    """
    _check_side(side)
    if not isinstance(component, (int, np.integer)) or not 1 <= component <= model.n_components:
        raise ValueError(
            f"component must be an integer in [1, {model.n_components}], got {component!r}"
        )

    scores, index = _transform(model, X, side, center)
    values = scores[:, component - 1]

    if index is not None:
        return pd.Series(values, index=index, name=f'{side}_cv{component}')
    return values


def canonical_variates(
    model: CanonicalProjectionModel,
    reference: MatrixLike,
    target: MatrixLike,
    center: str = 'train'
):
    """
    Canonical variables of both sides for all components.

    Returns:
        Tuple (U, V) of (n × d) arrays, or DataFrames with columns cv1..cvd
        when the inputs are DataFrames
    """
    U, u_index = _transform(model, reference, 'reference', center)
    V, v_index = _transform(model, target, 'target', center)
    if U.shape[0] != V.shape[0]:
        raise DimensionMismatch(
            f"reference has {U.shape[0]} rows but target has {V.shape[0]} rows"
        )

    columns = [f'cv{k + 1}' for k in range(model.n_components)]
    if u_index is not None:
        U = pd.DataFrame(U, index=u_index, columns=columns)
    if v_index is not None:
        V = pd.DataFrame(V, index=v_index, columns=columns)
    return U, V


def correlate_with_external(
    projected: Union[np.ndarray, pd.Series],
    external: MatrixLike
) -> Union[np.ndarray, pd.Series]:
    """
    Pearson correlation of every external feature with a projected trait.

    Args:
        projected: Projected values, one per subject
        external: (features × subjects) matrix. When both inputs are labelled
            (Series and DataFrame), external columns are selected and ordered
            by the projection's subject index.

    Returns:
        One correlation per external feature (Series indexed by feature when
        external is a DataFrame). Zero-variance features give NaN.

    Raises:
        LengthMismatch: Subject counts differ, or projected subjects are
            absent from the external matrix
        MissingValue: NaN in either input
        SingularInput: The projected vector is constant
    """
    feature_index = None
    if isinstance(external, pd.DataFrame):
        feature_index = external.index
        if isinstance(projected, pd.Series):
            missing = [s for s in projected.index if s not in external.columns]
            if missing:
                raise LengthMismatch(
                    f"{len(missing)} projected subject(s) absent from external matrix: "
                    f"{missing[:5]}"
                )
            external = external.loc[:, projected.index]
        E = external.to_numpy(dtype=float)
    else:
        E = np.asarray(external, dtype=float)
        if E.ndim == 1:
            E = E.reshape(1, -1)

    x = np.asarray(projected, dtype=float).ravel()

    if E.shape[1] != len(x):
        raise LengthMismatch(
            f"external matrix has {E.shape[1]} subject columns but the projected "
            f"vector has {len(x)} values"
        )
    if np.isnan(x).any():
        raise MissingValue("projected vector contains missing values")
    if np.isnan(E).any():
        raise MissingValue(
            f"external matrix contains {int(np.isnan(E).sum())} missing value(s)"
        )

    x_c = x - x.mean()
    x_norm = np.sqrt(np.sum(x_c ** 2))
    if x_norm == 0:
        raise SingularInput("projected vector is constant; correlation undefined")

    E_c = E - E.mean(axis=1, keepdims=True)
    e_norm = np.sqrt(np.sum(E_c ** 2, axis=1))

    with np.errstate(invalid='ignore', divide='ignore'):
        r = (E_c @ x_c) / (e_norm * x_norm)
    r[e_norm == 0] = np.nan
    r = np.clip(r, -1.0, 1.0)

    n_constant = int(np.sum(e_norm == 0))
    if n_constant:
        logger.warning(f"{n_constant} constant external feature(s); correlation set to NaN")

    if feature_index is not None:
        return pd.Series(r, index=feature_index, name='r')
    return r
