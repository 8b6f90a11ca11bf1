"""
Normalization Module for Differential Abundance Toolkit

Log transformation and between-sample normalization of log-scale protein
abundances. Entries equal to the missing-value sentinel are treated as "not
observed": they do not contribute to sample statistics and are left
unchanged.
"""

import pandas as pd
import numpy as np
from typing import Dict, Optional


def _observed(data: pd.DataFrame, sentinel: Optional[float]) -> pd.DataFrame:
    """Data with sentinel entries masked as NaN."""
    if sentinel is None:
        return data
    return data.mask(data == sentinel)


def log_transform(
    data: pd.DataFrame, base: str = "log2", pseudocount: Optional[float] = 1.0
) -> pd.DataFrame:
    """
    Apply log transformation to data.

    With the default pseudocount of 1 a zero intensity maps to zero.

    Parameters:
    -----------
    data : pd.DataFrame
        Data to transform
    base : str
        Log base ('log2', 'log10', or 'ln')
    pseudocount : float, optional
        Value added before the log transform (auto-calculated if None)

    Returns:
    --------
    pd.DataFrame : Log-transformed data
    """

    if pseudocount is None:
        min_positive = data[data > 0].min().min()
        pseudocount = min_positive / 10 if min_positive > 0 else 1e-6

    data_with_pseudo = data + pseudocount
    if (data_with_pseudo <= 0).any().any():
        raise ValueError("Cannot log-transform non-positive values; check the pseudocount")

    if base == "log2":
        transformed_data = np.log2(data_with_pseudo)
    elif base == "log10":
        transformed_data = np.log10(data_with_pseudo)
    elif base == "ln":
        transformed_data = np.log(data_with_pseudo)
    else:
        raise ValueError("base must be 'log2', 'log10', or 'ln'")

    print(f"Applied {base} transformation with pseudocount {pseudocount}")

    return pd.DataFrame(transformed_data, index=data.index, columns=data.columns)


def median_normalize(
    data: pd.DataFrame, sentinel: Optional[float] = 0.0
) -> pd.DataFrame:
    """
    Median normalization on the log scale - subtract each sample's median
    and add back the median of the sample medians.

    Parameters:
    -----------
    data : pd.DataFrame
        Log-scale abundances, proteins x samples
    sentinel : float, optional
        Missing-value sentinel; None treats every value as observed

    Returns:
    --------
    pd.DataFrame : Median normalized data
    """

    print("Applying median normalization...")

    observed = _observed(data, sentinel)
    sample_medians = observed.median(axis=0)
    global_median = sample_medians.median()

    shifts = (global_median - sample_medians).fillna(0.0)
    normalized = data + shifts
    if sentinel is not None:
        normalized = normalized.mask(data == sentinel, sentinel)

    print(f"Median normalization completed for {len(data.columns)} samples")
    return normalized


def quantile_normalize(
    data: pd.DataFrame, sentinel: Optional[float] = 0.0
) -> pd.DataFrame:
    """
    Quantile normalization - makes the distribution of each sample identical.

    Samples may have different numbers of observed values: each sample's
    quantile function is interpolated onto a common grid, the grid values
    are averaged across samples, and every observed value is replaced by the
    average at its own quantile.

    Parameters:
    -----------
    data : pd.DataFrame
        Log-scale abundances, proteins x samples
    sentinel : float, optional
        Missing-value sentinel; None treats every value as observed

    Returns:
    --------
    pd.DataFrame : Quantile normalized data
    """
    print("Applying quantile normalization...")

    observed = _observed(data, sentinel).to_numpy(dtype=np.float64)
    n_rows, n_cols = observed.shape
    grid = np.linspace(0.0, 1.0, n_rows) if n_rows > 1 else np.array([0.0])

    interpolated = np.full((len(grid), n_cols), np.nan)
    for j in range(n_cols):
        values = np.sort(observed[~np.isnan(observed[:, j]), j])
        if len(values) == 0:
            continue
        positions = np.linspace(0.0, 1.0, len(values)) if len(values) > 1 else np.array([0.0])
        interpolated[:, j] = np.interp(grid, positions, values)
    reference = np.nanmean(interpolated, axis=1)

    normalized = observed.copy()
    for j in range(n_cols):
        present = ~np.isnan(observed[:, j])
        n_present = int(present.sum())
        if n_present == 0:
            continue
        ranks = pd.Series(observed[present, j]).rank(method="average").to_numpy()
        quantiles = (ranks - 1) / (n_present - 1) if n_present > 1 else np.zeros(1)
        normalized[present, j] = np.interp(quantiles, grid, reference)

    result = pd.DataFrame(normalized, index=data.index, columns=data.columns)
    if sentinel is not None:
        result = result.fillna(sentinel)

    print(f"Quantile normalization completed for {n_cols} samples")
    return result


def calculate_normalization_stats(
    data: pd.DataFrame, normalized_data: pd.DataFrame, sentinel: Optional[float] = 0.0
) -> Dict[str, float]:
    """
    Calculate statistics to assess normalization effectiveness.

    Both inputs are log-scale; sentinel entries are ignored.

    Returns:
    --------
    Dict[str, float] : Normalization statistics
    """

    original = _observed(data, sentinel)
    normalized = _observed(normalized_data, sentinel)

    original_medians = original.median(axis=0)
    normalized_medians = normalized.median(axis=0)
    original_iqr = original.quantile(0.75) - original.quantile(0.25)
    normalized_iqr = normalized.quantile(0.75) - normalized.quantile(0.25)

    stats = {
        "original_median_range": float(original_medians.max() - original_medians.min()),
        "normalized_median_range": float(normalized_medians.max() - normalized_medians.min()),
        "original_iqr_median": float(original_iqr.median()),
        "normalized_iqr_median": float(normalized_iqr.median()),
    }

    if stats["original_median_range"] > 0:
        stats["median_range_reduction"] = 1 - (
            stats["normalized_median_range"] / stats["original_median_range"]
        )
    else:
        stats["median_range_reduction"] = 0.0

    return stats
