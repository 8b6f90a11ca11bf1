"""
Experimental Design Module for Differential Abundance Toolkit

Builds the sample x coefficient design matrix from sample metadata and turns
human-readable comparisons ("Treatment - Control") into contrast vectors.
"""

import re
import numpy as np
import pandas as pd
import patsy
from patsy import DesignInfo, PatsyError
from typing import Dict, List, Mapping, Optional, Sequence, Union

from .validation import ContrastError, DesignMatrixError

_GROUP_TERM = "_group"
_QUOTED_TERM = re.compile(r"Q\((['\"])(.+?)\1\)")

ContrastLike = Union[str, Sequence[float], np.ndarray, Mapping[str, float]]


def _clean_design_column(name: str) -> str:
    """Strip patsy decoration from a design column name."""
    match = re.match(rf"^{_GROUP_TERM}\[(.+)\]$", name)
    if match:
        return match.group(1)
    return _QUOTED_TERM.sub(r"\2", name)


def build_design_matrix(
    metadata_df: pd.DataFrame,
    group_column: str,
    group_labels: Optional[List[str]] = None,
    covariates: Optional[List[str]] = None,
    sample_column: str = "Sample",
) -> pd.DataFrame:
    """
    Build a group-means design matrix (no intercept) with optional covariates.

    One column per group level plus one column per numeric covariate (or
    treatment-coded columns per categorical covariate level).

    Parameters:
    -----------
    metadata_df : pd.DataFrame
        Sample metadata, one row per sample
    group_column : str
        Column holding the experimental group of each sample
    group_labels : List[str], optional
        Groups to keep, in coefficient order. Defaults to all observed
        groups in sorted order.
    covariates : List[str], optional
        Additional metadata columns to adjust for
    sample_column : str
        Column holding sample names (used as the design index)

    Returns:
    --------
    pd.DataFrame : samples x coefficients design matrix
    """
    covariates = list(covariates or [])

    missing_cols = [
        col for col in [group_column, sample_column] + covariates
        if col not in metadata_df.columns
    ]
    if missing_cols:
        raise DesignMatrixError(f"Missing required metadata columns: {missing_cols}")

    working = metadata_df[[sample_column, group_column] + covariates].copy()
    working[group_column] = working[group_column].where(
        working[group_column].isna(), working[group_column].astype(str)
    )

    before_count = len(working)
    working = working.dropna()
    if len(working) != before_count:
        print(f"  Removed {before_count - len(working)} samples with missing design values")

    if group_labels:
        levels = [str(label) for label in group_labels]
        working = working[working[group_column].isin(levels)]
    else:
        levels = sorted(working[group_column].unique())

    if len(working) == 0:
        raise DesignMatrixError(
            f"No samples remain for groups {levels} in column '{group_column}'"
        )

    empty_levels = [lvl for lvl in levels if not (working[group_column] == lvl).any()]
    if empty_levels:
        raise DesignMatrixError(f"No samples found for group(s): {empty_levels}")

    design_data = pd.DataFrame(
        {_GROUP_TERM: pd.Categorical(working[group_column], categories=levels)},
        index=working[sample_column].astype(str).values,
    )
    terms = [_GROUP_TERM]
    for covariate in covariates:
        design_data[covariate] = working[covariate].values
        terms.append(f"Q({covariate!r})")

    formula = "0 + " + " + ".join(terms)
    design = patsy.dmatrix(formula, design_data, return_type="dataframe")
    design.columns = [_clean_design_column(col) for col in design.columns]
    design.index.name = sample_column

    print(f"Design matrix: {design.shape[0]} samples x {design.shape[1]} coefficients")
    print(f"  Coefficients: {list(design.columns)}")
    print(f"  Samples per group: {working[group_column].value_counts().to_dict()}")

    return design


def check_design_rank(design: Union[pd.DataFrame, np.ndarray]) -> int:
    """
    Ensure the design has full column rank and leaves residual degrees of
    freedom.

    Returns:
    --------
    int : residual degrees of freedom (samples - coefficients)

    Raises:
    -------
    DesignMatrixError: If the design cannot be fitted
    """
    X = np.asarray(design, dtype=np.float64)
    if X.ndim != 2:
        raise DesignMatrixError(f"Design matrix must be 2-dimensional, got shape {X.shape}")

    n_samples, n_coef = X.shape
    if n_coef == 0:
        raise DesignMatrixError("Design matrix has no coefficients")
    if not np.all(np.isfinite(X)):
        raise DesignMatrixError("Design matrix contains non-finite values")
    if n_samples <= n_coef:
        raise DesignMatrixError(
            f"No residual degrees of freedom: {n_samples} samples for {n_coef} coefficients"
        )

    rank = int(np.linalg.matrix_rank(X))
    if rank < n_coef:
        names = list(design.columns) if isinstance(design, pd.DataFrame) else list(range(n_coef))
        zero_cols = [names[j] for j in range(n_coef) if not np.any(X[:, j])]
        detail = f" (all-zero columns: {zero_cols})" if zero_cols else ""
        raise DesignMatrixError(
            f"Design matrix is rank deficient: rank {rank} < {n_coef} coefficients{detail}"
        )

    return n_samples - n_coef


def _contrast_from_expression(expression: str, coef_names: List[str]) -> np.ndarray:
    try:
        constraint = DesignInfo(coef_names).linear_constraint(expression)
    except PatsyError as e:
        raise ContrastError(
            f"Cannot parse contrast '{expression}' against coefficients {coef_names}: {e}"
        ) from e

    if constraint.coefs.shape[0] != 1:
        raise ContrastError(f"Contrast '{expression}' must define exactly one comparison")
    if np.any(constraint.constants != 0):
        raise ContrastError(
            f"Contrast '{expression}' must be a linear combination without constant terms"
        )
    return np.asarray(constraint.coefs[0], dtype=np.float64)


def _contrast_vector(contrast: ContrastLike, coef_names: List[str]) -> np.ndarray:
    if isinstance(contrast, str):
        return _contrast_from_expression(contrast, coef_names)

    if isinstance(contrast, Mapping):
        if len(contrast) == 0:
            raise ContrastError("Contrast weight mapping is empty")
        unknown = [name for name in contrast if name not in coef_names]
        if unknown:
            raise ContrastError(f"Unknown coefficient(s) {unknown}; available: {coef_names}")
        return np.array([float(contrast.get(name, 0.0)) for name in coef_names])

    vector = np.asarray(contrast, dtype=np.float64).ravel()
    if vector.shape[0] != len(coef_names):
        raise ContrastError(
            f"Contrast has {vector.shape[0]} weights but the design has "
            f"{len(coef_names)} coefficients"
        )
    if not np.all(np.isfinite(vector)):
        raise ContrastError("Contrast weights must be finite")
    return vector


def _is_weight_mapping(contrast) -> bool:
    return isinstance(contrast, Mapping) and len(contrast) > 0 and all(
        isinstance(v, (int, float, np.number)) and not isinstance(v, bool)
        for v in contrast.values()
    )


def make_contrasts(
    contrasts: Union[ContrastLike, Sequence[ContrastLike], Dict[str, ContrastLike], pd.DataFrame],
    design: Union[pd.DataFrame, Sequence[str]],
) -> pd.DataFrame:
    """
    Build a coefficients x contrasts matrix.

    Accepted forms:
      - "Treatment - Control" (patsy linear-constraint syntax over the
        design column names, e.g. "(A + B)/2 - C")
      - a numeric vector with one weight per coefficient
      - {coefficient: weight}
      - a list of any of the above
      - {contrast_name: any of the above}
      - a ready-made DataFrame indexed by coefficient name

    Parameters:
    -----------
    contrasts : see above
        Comparison(s) of interest
    design : pd.DataFrame or list of str
        Design matrix (or its column names)

    Returns:
    --------
    pd.DataFrame : coefficients x contrasts weight matrix
    """
    coef_names = list(design.columns) if isinstance(design, pd.DataFrame) else list(design)

    if isinstance(contrasts, pd.DataFrame):
        unknown = [name for name in contrasts.index if name not in coef_names]
        if unknown:
            raise ContrastError(f"Unknown coefficient(s) {unknown}; available: {coef_names}")
        matrix = contrasts.reindex(coef_names).fillna(0.0).astype(np.float64)
        return matrix

    if isinstance(contrasts, str) or _is_weight_mapping(contrasts):
        named = {contrasts if isinstance(contrasts, str) else "Contrast1": contrasts}
    elif isinstance(contrasts, Mapping):
        named = dict(contrasts)
    elif isinstance(contrasts, np.ndarray) and contrasts.ndim == 2:
        named = {f"Contrast{j + 1}": contrasts[:, j] for j in range(contrasts.shape[1])}
    else:
        if len(contrasts) == 0:
            raise ContrastError("At least one contrast is required")
        as_array = np.asarray(contrasts, dtype=object)
        if as_array.ndim == 1 and all(
            isinstance(v, (int, float, np.number)) for v in as_array
        ):
            named = {"Contrast1": contrasts}
        else:
            named = {}
            for i, contrast in enumerate(contrasts):
                name = contrast if isinstance(contrast, str) else f"Contrast{i + 1}"
                named[name] = contrast

    if not named:
        raise ContrastError("At least one contrast is required")

    columns = {name: _contrast_vector(contrast, coef_names) for name, contrast in named.items()}
    matrix = pd.DataFrame(columns, index=coef_names)
    matrix.index.name = "Coefficient"
    return matrix
