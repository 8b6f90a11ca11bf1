"""
Validation Module for Differential Abundance Toolkit

Exception types and checks that make sure the feature matrix, the sample
metadata and the design matrix describe the same samples in the same order
before any per-protein computation starts.
"""

import pandas as pd
from typing import Dict, List


class SampleMatchingError(ValueError):
    """Custom exception for sample matching issues."""
    def __init__(self, message):
        super().__init__(message)


class DesignMatrixError(ValueError):
    """Custom exception for rank-deficient or under-determined designs."""
    def __init__(self, message):
        super().__init__(message)


class ContrastError(ValueError):
    """Custom exception for contrasts that do not fit the design."""
    def __init__(self, message):
        super().__init__(message)


class InputShapeError(ValueError):
    """Custom exception for malformed expression matrices."""
    def __init__(self, message):
        super().__init__(message)


def validate_sample_alignment(
    sample_columns: List[str],
    metadata_samples: List[str],
    verbose: bool = True
) -> Dict:
    """
    Compare the sample columns of the feature matrix with the samples listed
    in the metadata.

    Parameters:
    -----------
    sample_columns : List[str]
        Sample column names from the protein data, in matrix order
    metadata_samples : List[str]
        Sample names from the metadata, in metadata order
    verbose : bool, default True
        Whether to print detailed validation results

    Returns:
    --------
    Dict containing validation results and diagnostic information
    """

    results = {
        'is_valid': True,
        'errors': [],
        'warnings': [],
        'diagnostics': {}
    }

    if verbose:
        print("SAMPLE ALIGNMENT VALIDATION")
        print("=" * 50)

    column_set = set(sample_columns)
    metadata_set = set(metadata_samples)

    duplicated_columns = sorted({s for s in sample_columns if sample_columns.count(s) > 1})
    duplicated_metadata = sorted({s for s in metadata_samples if metadata_samples.count(s) > 1})

    missing_in_metadata = [s for s in sample_columns if s not in metadata_set]
    missing_in_data = [s for s in metadata_samples if s not in column_set]
    shared = [s for s in sample_columns if s in metadata_set]

    results['diagnostics'] = {
        'n_data_samples': len(sample_columns),
        'n_metadata_samples': len(metadata_samples),
        'n_shared_samples': len(shared),
        'missing_in_metadata': missing_in_metadata,
        'missing_in_data': missing_in_data,
        'same_order': [s for s in metadata_samples if s in column_set] == shared,
    }

    if duplicated_columns:
        results['errors'].append(f"Duplicate sample columns in protein data: {duplicated_columns}")
        results['is_valid'] = False
    if duplicated_metadata:
        results['errors'].append(f"Duplicate samples in metadata: {duplicated_metadata}")
        results['is_valid'] = False
    if not shared:
        results['errors'].append("No samples are shared between protein data and metadata")
        results['is_valid'] = False

    if missing_in_metadata:
        results['warnings'].append(
            f"{len(missing_in_metadata)} data columns have no metadata and will be excluded"
        )
    if missing_in_data:
        results['warnings'].append(
            f"{len(missing_in_data)} metadata samples have no data column and will be excluded"
        )

    if verbose:
        print(f"Data samples: {len(sample_columns)}")
        print(f"Metadata samples: {len(metadata_samples)}")
        print(f"Shared samples: {len(shared)}")
        for warning in results['warnings']:
            print(f"  WARNING: {warning}")
        for error in results['errors']:
            print(f"  ERROR: {error}")
        print("✓ Validation passed" if results['is_valid'] else "❌ Validation failed")

    return results


def align_samples(
    sample_columns: List[str],
    metadata_df: pd.DataFrame,
    sample_column: str = "Sample"
) -> pd.DataFrame:
    """
    Reorder metadata rows so they match the order of the matrix columns.

    Every sample column must have exactly one metadata row. Metadata rows
    without a data column are dropped.

    Parameters:
    -----------
    sample_columns : List[str]
        Sample column names in matrix order
    metadata_df : pd.DataFrame
        Sample metadata with one row per sample
    sample_column : str
        Name of the metadata column holding sample names

    Returns:
    --------
    pd.DataFrame : Metadata in matrix column order, indexed by sample name

    Raises:
    -------
    SampleMatchingError: If a sample is missing or duplicated
    """
    if sample_column not in metadata_df.columns:
        raise SampleMatchingError(
            f"Metadata has no '{sample_column}' column. Available: {list(metadata_df.columns)}"
        )

    report = validate_sample_alignment(
        list(sample_columns), metadata_df[sample_column].astype(str).tolist(), verbose=False
    )
    if not report['is_valid']:
        raise SampleMatchingError("; ".join(report['errors']))

    missing = report['diagnostics']['missing_in_metadata']
    if missing:
        preview = missing[:5]
        raise SampleMatchingError(
            f"{len(missing)} sample columns have no metadata row: "
            f"{preview}{'...' if len(missing) > 5 else ''}"
        )

    indexed = metadata_df.copy()
    indexed[sample_column] = indexed[sample_column].astype(str)
    indexed = indexed.set_index(sample_column, drop=False)
    return indexed.loc[list(sample_columns)]
