"""
Data Preprocessing Module for Differential Abundance Toolkit

Functions for missing-value handling, data completeness assessment and
detection-rate filtering ahead of model fitting.
"""

import pandas as pd
from typing import Any, Dict, List, Optional, Union
import numpy as np


def _normalize_group_value(value: Any) -> Union[int, float, str]:
    """
    Normalize group values to consistent types for sorting and comparison.

    Keeps numeric values as numbers when possible, so that a group stored
    as 1, 1.0 or "1" is treated as the same group.

    Parameters:
    -----------
    value : any
        The group value to normalize

    Returns:
    --------
    int, float, or str
        Normalized value
    """

    # Handle None, empty string, or NaN
    if value is None or value == "" or (isinstance(value, float) and np.isnan(value)):
        return "Unknown"

    if isinstance(value, (bool, np.bool_)):
        return str(value)

    if isinstance(value, (int, float, np.integer, np.floating)):
        # Convert float integers to int (80.0 -> 80)
        if float(value).is_integer():
            return int(value)
        return float(value)

    if isinstance(value, str):
        try:
            if "." not in value:
                return int(value)
            float_val = float(value)
            return int(float_val) if float_val.is_integer() else float_val
        except ValueError:
            # Not a number, return as string
            return value

    return str(value)


def replace_missing_with_sentinel(
    data: pd.DataFrame, sentinel: float = 0.0
) -> pd.DataFrame:
    """
    Replace missing intensities (NaN, +/-inf) with the "not observed" sentinel.

    The sentinel values are subsequently fitted like any other value.

    Parameters:
    -----------
    data : pd.DataFrame
        Numeric protein x sample intensities
    sentinel : float
        Value standing for "not observed" (default: 0)

    Returns:
    --------
    pd.DataFrame : Data without missing values
    """
    numeric = data.apply(pd.to_numeric, errors="coerce")
    missing = ~np.isfinite(numeric.to_numpy(dtype=np.float64))
    n_missing = int(missing.sum())

    result = numeric.mask(missing, sentinel).astype(np.float64)
    if n_missing:
        print(f"Replaced {n_missing:,} missing values with {sentinel}")
    return result


def assess_data_completeness(
    data: pd.DataFrame,
    sample_columns: List[str],
    sample_metadata: Optional[Dict[str, Dict]] = None,
    group_column: str = "Group",
    sentinel: float = 0.0,
) -> pd.DataFrame:
    """
    Assess data completeness across samples.

    A value counts as detected when it is present and differs from the
    sentinel.

    Parameters:
    -----------
    data : pd.DataFrame
        Protein quantitation data
    sample_columns : List[str]
        List of sample column names
    sample_metadata : Dict[str, Dict], optional
        Sample metadata mapping, used to label samples with their group
    group_column : str
        Metadata key holding the group
    sentinel : float
        Value standing for "not observed"

    Returns:
    --------
    pd.DataFrame : Per-sample detected count, detection rate and group
    """

    print("=== ASSESSING DATA COMPLETENESS ===\n")

    sample_data = data[sample_columns]
    detected = sample_data.notna() & (sample_data != sentinel)

    total_values = sample_data.shape[0] * sample_data.shape[1]
    non_null_values = int(sample_data.notna().sum().sum())
    detected_values = int(detected.sum().sum())

    print("Data completeness summary:")
    print(f"Total possible values: {total_values:,}")
    if total_values:
        print(
            f"Non-null values: {non_null_values:,} ({non_null_values / total_values * 100:.1f}%)"
        )
        print(
            f"Detected values: {detected_values:,} ({detected_values / total_values * 100:.1f}%)"
        )

    sample_metadata = sample_metadata or {}
    summary = pd.DataFrame(
        {
            "Detected": detected.sum(axis=0).astype(int),
            "Detection_Rate": detected.mean(axis=0) if len(data) else 0.0,
            "Group": [
                sample_metadata.get(sample, {}).get(group_column, "Unknown")
                for sample in sample_columns
            ],
        },
        index=sample_columns,
    )

    print("\nPer-sample completeness:")
    for sample, row in summary.iterrows():
        print(
            f"{sample}: {row['Detected']}/{len(data)} detected "
            f"({row['Detection_Rate'] * 100:.1f}%) - Group: {row['Group']}"
        )

    proteins_per_sample = detected.sum(axis=1)
    print("\nProtein detection summary:")
    print(
        f"Proteins detected in all samples: {(proteins_per_sample == len(sample_columns)).sum()}"
    )
    print(
        f"Proteins detected in >50% samples: {(proteins_per_sample > 0.5 * len(sample_columns)).sum()}"
    )

    return summary


def filter_proteins_by_completeness(
    data: pd.DataFrame,
    sample_columns: List[str],
    min_detection_rate: float = 0.5,
    sentinel: float = 0.0,
    sample_groups: Optional[Dict[str, Any]] = None,
) -> pd.DataFrame:
    """
    Filter proteins based on detection completeness across samples.

    Parameters:
    -----------
    data : pd.DataFrame
        Protein quantitation data
    sample_columns : List[str]
        List of sample column names
    min_detection_rate : float
        Minimum fraction of samples where protein must be detected (default: 0.5)
    sentinel : float
        Value standing for "not observed"
    sample_groups : Dict[str, Any], optional
        Sample -> group mapping. When given, a protein is kept if it reaches
        min_detection_rate within at least one group.

    Returns:
    --------
    pd.DataFrame : Filtered data
    """

    print("=== FILTERING PROTEINS BY COMPLETENESS ===\n")

    sample_data = data[sample_columns]
    detected = sample_data.notna() & (sample_data != sentinel)

    if sample_groups:
        groups = pd.Series({s: sample_groups.get(s, "Unknown") for s in sample_columns})
        group_rates = detected.T.groupby(groups).mean().T
        keep_proteins = (group_rates >= min_detection_rate).any(axis=1)
        rule = "in at least one group"
    else:
        detection_rates = detected.sum(axis=1) / len(sample_columns)
        keep_proteins = detection_rates >= min_detection_rate
        rule = "across all samples"

    filtered_data = data[keep_proteins].copy()

    print(f"Original proteins: {len(data)}")
    print(
        f"Proteins with ≥{min_detection_rate * 100:.0f}% detection rate {rule}: {len(filtered_data)}"
    )
    print(f"Removed: {len(data) - len(filtered_data)} proteins")

    return filtered_data
