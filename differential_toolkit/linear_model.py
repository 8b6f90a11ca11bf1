"""
Linear Model Module for Differential Abundance Toolkit

Fits one ordinary least-squares model per protein against a shared design
matrix and projects the fitted coefficients onto contrasts of interest.

The design matrix is identical for every protein, so it is QR-factorised
once and the factorisation is reused for all proteins. All proteins are
solved together as a single matrix operation.
"""

from dataclasses import dataclass, replace
from typing import Optional, Tuple, Union

import numpy as np
import pandas as pd
from scipy.linalg import solve_triangular

from .design import check_design_rank, make_contrasts
from .validation import InputShapeError, SampleMatchingError

EXACT_FIT_TOLERANCE = 1e-20


@dataclass(frozen=True)
class DesignFactorization:
    """Read-only QR factorisation of a full-rank design matrix."""

    design: np.ndarray
    q: np.ndarray
    r: np.ndarray
    cov_unscaled: np.ndarray
    coefficient_names: Tuple[str, ...]
    sample_names: Tuple[str, ...]
    df_residual: int

    @property
    def n_samples(self) -> int:
        return self.design.shape[0]

    @property
    def n_coefficients(self) -> int:
        return self.design.shape[1]

    def solve(self, expression: np.ndarray) -> np.ndarray:
        """Least-squares coefficients (features x coefficients) for a features x samples block."""
        qty = self.q.T @ expression.T
        return solve_triangular(self.r, qty, lower=False).T


@dataclass(frozen=True)
class LinearModelFit:
    """
    Per-protein linear model results.

    coefficients and stdev_unscaled are proteins x coefficients (or
    proteins x contrasts after contrasts_fit). The standard error of a
    coefficient is sigma * stdev_unscaled.
    """

    coefficients: pd.DataFrame
    stdev_unscaled: pd.DataFrame
    sigma: pd.Series
    df_residual: pd.Series
    amean: pd.Series
    cov_coefficients: pd.DataFrame
    design: pd.DataFrame
    contrasts: Optional[pd.DataFrame] = None

    @property
    def n_features(self) -> int:
        return len(self.coefficients)

    @property
    def feature_names(self) -> pd.Index:
        return self.coefficients.index


def _freeze(array: np.ndarray) -> np.ndarray:
    array = np.array(array, dtype=np.float64)
    array.setflags(write=False)
    return array


def factorize_design(design: Union[pd.DataFrame, np.ndarray]) -> DesignFactorization:
    """
    QR-factorise the design matrix once for reuse across all proteins.

    Raises:
    -------
    DesignMatrixError: If the design is rank deficient or has no residual df
    """
    df_residual = check_design_rank(design)

    if isinstance(design, pd.DataFrame):
        coef_names = tuple(str(c) for c in design.columns)
        sample_names = tuple(str(s) for s in design.index)
    else:
        coef_names = tuple(f"x{j}" for j in range(np.asarray(design).shape[1]))
        sample_names = tuple(str(i) for i in range(np.asarray(design).shape[0]))

    X = np.asarray(design, dtype=np.float64)
    q, r = np.linalg.qr(X)
    r_inv = solve_triangular(r, np.eye(r.shape[0]), lower=False)

    return DesignFactorization(
        design=_freeze(X),
        q=_freeze(q),
        r=_freeze(r),
        cov_unscaled=_freeze(r_inv @ r_inv.T),
        coefficient_names=coef_names,
        sample_names=sample_names,
        df_residual=df_residual,
    )


def _as_expression_frame(expression, design: pd.DataFrame) -> pd.DataFrame:
    if isinstance(expression, pd.DataFrame):
        frame = expression
    else:
        values = np.asarray(expression, dtype=np.float64)
        if values.ndim == 1:
            values = values.reshape(1, -1)
        if values.ndim != 2:
            raise InputShapeError(f"Expression data must be 2-dimensional, got shape {values.shape}")
        frame = pd.DataFrame(values, columns=design.index)

    if frame.shape[0] == 0:
        raise InputShapeError("Expression data contains no proteins")
    if frame.shape[1] != design.shape[0]:
        raise InputShapeError(
            f"Expression data has {frame.shape[1]} samples but the design has {design.shape[0]}"
        )

    if isinstance(expression, pd.DataFrame):
        data_samples = [str(c) for c in frame.columns]
        design_samples = [str(s) for s in design.index]
        if data_samples != design_samples:
            if sorted(data_samples) == sorted(design_samples):
                raise SampleMatchingError(
                    "Expression columns and design rows list the same samples in a different "
                    "order; align them before fitting"
                )
            mismatched = [s for s in data_samples if s not in design_samples][:5]
            raise SampleMatchingError(
                f"Expression columns do not match design samples (e.g. {mismatched})"
            )

    try:
        numeric = frame.astype(np.float64)
    except (TypeError, ValueError) as e:
        raise InputShapeError(f"Expression data must be numeric: {e}") from e

    if not np.all(np.isfinite(numeric.to_numpy())):
        n_bad = int((~np.isfinite(numeric.to_numpy())).sum())
        raise InputShapeError(
            f"Expression data contains {n_bad} non-finite values; replace missing values "
            f"with the missing-value sentinel before fitting"
        )
    return numeric


def fit_linear_models(expression, design: Union[pd.DataFrame, np.ndarray]) -> LinearModelFit:
    """
    Fit an ordinary least-squares model for every protein.

    Parameters:
    -----------
    expression : pd.DataFrame or np.ndarray
        Log-scale abundances, proteins x samples. Column order must match
        the design rows.
    design : pd.DataFrame or np.ndarray
        Design matrix, samples x coefficients, full column rank

    Returns:
    --------
    LinearModelFit : coefficients, residual standard deviations and
        unscaled standard errors for every protein
    """
    if not isinstance(design, pd.DataFrame):
        design_array = np.asarray(design, dtype=np.float64)
        if design_array.ndim != 2:
            raise InputShapeError(f"Design matrix must be 2-dimensional, got shape {design_array.shape}")
        design = pd.DataFrame(
            design_array,
            columns=[f"x{j}" for j in range(design_array.shape[1])],
        )

    factorization = factorize_design(design)
    data = _as_expression_frame(expression, design)
    n_features = len(data)

    print(f"Fitting linear models for {n_features} proteins "
          f"({factorization.n_samples} samples, {factorization.n_coefficients} coefficients)...")

    Y = data.to_numpy()
    beta = factorization.solve(Y)
    residuals = Y - beta @ factorization.design.T
    df_residual = factorization.df_residual
    rss = np.sum(residuals * residuals, axis=1)
    # Residuals at rounding level are exact fits
    rss[rss <= EXACT_FIT_TOLERANCE * np.maximum(np.sum(Y * Y, axis=1), 1.0)] = 0.0
    sigma2 = rss / df_residual

    stdev = np.sqrt(np.diag(factorization.cov_unscaled))
    coef_names = list(factorization.coefficient_names)

    fit = LinearModelFit(
        coefficients=pd.DataFrame(beta, index=data.index, columns=coef_names),
        stdev_unscaled=pd.DataFrame(
            np.tile(stdev, (n_features, 1)), index=data.index, columns=coef_names
        ),
        sigma=pd.Series(np.sqrt(sigma2), index=data.index, name="sigma"),
        df_residual=pd.Series(float(df_residual), index=data.index, name="df.residual"),
        amean=pd.Series(Y.mean(axis=1), index=data.index, name="AveExpr"),
        cov_coefficients=pd.DataFrame(
            np.array(factorization.cov_unscaled), index=coef_names, columns=coef_names
        ),
        design=design,
    )

    n_zero = int((sigma2 == 0).sum())
    print(f"✓ Linear models fitted (residual df = {df_residual})")
    if n_zero:
        print(f"  {n_zero} proteins have zero residual variance")

    return fit


def contrasts_fit(fit: LinearModelFit, contrasts) -> LinearModelFit:
    """
    Re-express a fitted model in terms of contrasts of its coefficients.

    Parameters:
    -----------
    fit : LinearModelFit
        Output of fit_linear_models
    contrasts : str, vector, dict, list or pd.DataFrame
        Anything accepted by make_contrasts

    Returns:
    --------
    LinearModelFit : one column per contrast; effect = coefficients @ contrast,
        stdev_unscaled = sqrt(c' (X'X)^-1 c)
    """
    if fit.contrasts is not None:
        raise ValueError("contrasts_fit expects a fit on the original coefficients")

    contrast_matrix = make_contrasts(contrasts, list(fit.coefficients.columns))
    L = contrast_matrix.to_numpy()
    V = fit.cov_coefficients.to_numpy()

    effects = fit.coefficients.to_numpy() @ L
    cov_contrasts = L.T @ V @ L
    stdev = np.sqrt(np.clip(np.diag(cov_contrasts), 0.0, None))
    names = list(contrast_matrix.columns)

    print(f"Evaluating {len(names)} contrast(s): {names}")

    return replace(
        fit,
        coefficients=pd.DataFrame(effects, index=fit.feature_names, columns=names),
        stdev_unscaled=pd.DataFrame(
            np.tile(stdev, (fit.n_features, 1)), index=fit.feature_names, columns=names
        ),
        cov_coefficients=pd.DataFrame(cov_contrasts, index=names, columns=names),
        contrasts=contrast_matrix,
    )
