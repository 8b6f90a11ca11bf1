"""
Statistical Analysis Module for Differential Abundance Analysis

This module provides a configuration-driven differential abundance workflow:
per-protein linear models, contrasts, empirical Bayes moderation and
multiple testing correction, plus the notebook-level pipeline that ties the
preprocessing steps together.
"""

from dataclasses import dataclass
from typing import Optional, Union

import numpy as np
import pandas as pd
from scipy.stats import t as t_dist
from statsmodels.stats.multitest import multipletests

from .design import build_design_matrix, make_contrasts
from .empirical_bayes import ModeratedFit, ebayes
from .linear_model import LinearModelFit, contrasts_fit, fit_linear_models
from .normalization import (
    calculate_normalization_stats,
    log_transform,
    median_normalize,
    quantile_normalize,
)
from .preprocessing import (
    _normalize_group_value,
    filter_proteins_by_completeness,
    replace_missing_with_sentinel,
)
from .validation import align_samples

CORRECTION_METHODS = [
    "fdr_bh", "none", "bonferroni", "holm", "sidak", "holm-sidak",
    "simes-hochberg", "hommel", "fdr_by",
]
NORMALIZATION_METHODS = ["none", "median", "quantile"]
SORT_OPTIONS = ["B", "p", "logFC", "t", "AveExpr", "F", "none"]


class StatisticalConfig:
    """Configuration class for differential abundance analysis parameters

    The design is a group-means model (one coefficient per group, no
    intercept) with optional covariates. Comparisons are given as contrast
    expressions over the group names, e.g. "Treatment - Control". If no
    contrasts are given, the second group label is compared with the first.
    """

    def __init__(self):
        # Experimental design
        self.sample_column = "Sample"
        self.protein_id_column = "Protein"
        self.group_column = "Group"
        self.group_labels = []
        self.contrasts = []
        self.covariates = []

        # Missing values (zero means "not observed")
        self.missing_value_sentinel = 0.0
        self.min_detection_rate = 0.5
        self.detection_rule = "overall"  # "overall" or "any_group"

        # Log transformation parameters
        self.log_transform_before_stats = "auto"  # "auto", True, False
        self.log_base = "log2"  # "log2", "log10", "ln"
        self.log_pseudocount = 1.0

        # Normalization
        self.normalization_method = "none"  # "none", "median", "quantile"

        # Empirical Bayes
        self.eb_proportion = 0.01
        self.stdev_coef_lim = (0.1, 4.0)

        # Multiple testing correction and thresholds
        self.correction_method = "fdr_bh"
        self.p_value_threshold = 0.05
        self.fold_change_threshold = 1.0  # on the log scale
        self.sort_by = "B"

    def get_contrasts(self):
        """
        Contrasts to test, defaulting to second group minus first group.

        Group names that are not valid identifiers (e.g. dose levels "0",
        "20") cannot be written as expressions, so the default is then
        given as coefficient weights under the same name.
        """
        if self.contrasts:
            if isinstance(self.contrasts, (str, dict)):
                return self.contrasts
            return list(self.contrasts)
        labels = [str(_normalize_group_value(label)) for label in self.group_labels]
        name = f"{labels[1]} - {labels[0]}"
        if labels[0].isidentifier() and labels[1].isidentifier():
            return [name]
        return {name: {labels[1]: 1.0, labels[0]: -1.0}}

    def validate(self):
        """Validate that required parameters are set"""
        if not self.group_column:
            raise ValueError("group_column must be set")
        if not self.contrasts and len(self.group_labels) < 2:
            raise ValueError(
                "group_labels must name at least two groups when no contrasts are given"
            )
        if self.log_base not in ("log2", "log10", "ln"):
            raise ValueError(f"Unknown log base: {self.log_base}")
        if self.correction_method not in CORRECTION_METHODS:
            raise ValueError(
                f"Unknown correction method: {self.correction_method}. "
                f"Supported methods: {', '.join(CORRECTION_METHODS)}"
            )
        if self.normalization_method not in NORMALIZATION_METHODS:
            raise ValueError(
                f"Unknown normalization method: {self.normalization_method}. "
                f"Supported methods: {', '.join(NORMALIZATION_METHODS)}"
            )
        if not 0 <= self.min_detection_rate <= 1:
            raise ValueError("min_detection_rate must be between 0 and 1")
        if self.detection_rule not in ("overall", "any_group"):
            raise ValueError("detection_rule must be 'overall' or 'any_group'")
        if not 0 < self.eb_proportion < 1:
            raise ValueError("eb_proportion must be between 0 and 1")
        if self.sort_by not in SORT_OPTIONS:
            raise ValueError(f"sort_by must be one of {SORT_OPTIONS}")
        return True


@dataclass(frozen=True)
class DifferentialResult:
    """Everything produced by one run of the linear model workflow."""

    expression: pd.DataFrame
    design: pd.DataFrame
    contrasts: pd.DataFrame
    fit: LinearModelFit
    moderated: ModeratedFit

    @property
    def contrast_names(self):
        return list(self.contrasts.columns)

    def top_table(self, contrast=None, **kwargs) -> pd.DataFrame:
        return top_table(self, contrast=contrast, **kwargs)


def benjamini_hochberg(p_values) -> np.ndarray:
    """
    Benjamini-Hochberg step-up adjusted p-values.

    p-values are sorted ascending (ties keep their original order), scaled by
    N / rank, made monotone with a running minimum from the largest rank
    down, clipped to [0, 1] and returned in the input order. NaN entries
    stay NaN and do not count towards N.
    """
    p = np.asarray(p_values, dtype=np.float64)
    adjusted = np.full(p.shape, np.nan)

    ok = ~np.isnan(p)
    values = p[ok]
    n = len(values)
    if n == 0:
        return adjusted
    if np.any((values < 0) | (values > 1)):
        raise ValueError("p-values must lie in [0, 1]")

    order = np.argsort(values, kind="stable")
    ranks = np.arange(1, n + 1, dtype=np.float64)
    stepped = values[order] * n / ranks
    stepped = np.minimum.accumulate(stepped[::-1])[::-1]
    stepped = np.clip(stepped, 0.0, 1.0)

    restored = np.empty(n)
    restored[order] = stepped
    adjusted[ok] = restored
    return adjusted


def adjust_p_values(p_values, method: str = "fdr_bh", alpha: float = 0.05) -> np.ndarray:
    """Adjust p-values with Benjamini-Hochberg or any statsmodels multipletests method."""
    p = np.asarray(p_values, dtype=np.float64)
    if method == "fdr_bh":
        return benjamini_hochberg(p)
    if method == "none":
        return p.copy()

    adjusted = np.full(p.shape, np.nan)
    ok = ~np.isnan(p)
    if ok.any():
        _, corrected, _, _ = multipletests(p[ok], alpha=alpha, method=method)
        adjusted[ok] = corrected
    return adjusted


def apply_multiple_testing_correction(results_df, config):
    """Apply multiple testing correction"""

    if "P.Value" not in results_df.columns:
        print("Warning: No P.Value column found for correction")
        return results_df

    results_df = results_df.copy()
    valid_pvalues = results_df["P.Value"].dropna()

    if len(valid_pvalues) == 0:
        print("Warning: No valid p-values found")
        results_df["adj.P.Val"] = np.nan
        results_df["Significant"] = False
        return results_df

    correction_method = getattr(config, "correction_method", "fdr_bh")
    threshold = config.p_value_threshold

    if "Contrast" in results_df.columns:
        adjusted = pd.Series(np.nan, index=results_df.index)
        for _, block in results_df.groupby("Contrast", sort=False):
            adjusted.loc[block.index] = adjust_p_values(
                block["P.Value"].to_numpy(), correction_method, threshold
            )
        results_df["adj.P.Val"] = adjusted
    else:
        results_df["adj.P.Val"] = adjust_p_values(
            results_df["P.Value"].to_numpy(), correction_method, threshold
        )

    results_df["Significant"] = results_df["adj.P.Val"] < threshold

    print("Multiple testing correction applied:")
    print(f"  Method: {correction_method}")
    print(
        f"  Significant proteins (adjusted p < {threshold}): {int(results_df['Significant'].sum())}"
    )

    # Add significance categories
    results_df["Significance"] = "Not significant"
    results_df.loc[results_df["adj.P.Val"] < 0.05, "Significance"] = (
        "Significant (FDR < 0.05)"
    )
    results_df.loc[results_df["adj.P.Val"] < 0.01, "Significance"] = (
        "Highly significant (FDR < 0.01)"
    )

    return results_df


def prepare_metadata_dataframe(sample_metadata, sample_columns, config):
    """
    Convert sample metadata (dict of dicts or DataFrame) into a DataFrame
    with one row per analysed sample, in sample column order.
    """

    print(f"Preparing metadata for {len(sample_columns)} samples...")

    if isinstance(sample_metadata, pd.DataFrame):
        if config.sample_column not in sample_metadata.columns:
            raise ValueError(f"Missing required metadata columns: ['{config.sample_column}']")
        lookup = {
            str(row[config.sample_column]): row.to_dict()
            for _, row in sample_metadata.iterrows()
        }
    else:
        lookup = {str(k): dict(v) for k, v in sample_metadata.items()}

    metadata_rows = []
    for sample_name in sample_columns:
        if sample_name in lookup:
            row = lookup[sample_name].copy()
            row[config.sample_column] = sample_name
            metadata_rows.append(row)
        else:
            print(f"Warning: No metadata found for sample {sample_name}")

    if not metadata_rows:
        raise ValueError("No metadata found for any samples")

    metadata_df = pd.DataFrame(metadata_rows)

    required_cols = [config.group_column] + list(config.covariates)
    missing_cols = [col for col in required_cols if col not in metadata_df.columns]
    if missing_cols:
        raise ValueError(f"Missing required metadata columns: {missing_cols}")

    print(f"  Before filtering: {len(metadata_df)} samples")
    for col in required_cols:
        before_count = len(metadata_df)
        metadata_df = metadata_df.dropna(subset=[col])
        after_count = len(metadata_df)
        if before_count != after_count:
            print(f"  Removed {before_count - after_count} samples missing {col}")

    metadata_df[config.group_column] = metadata_df[config.group_column].apply(
        lambda value: str(_normalize_group_value(value))
    )

    if config.group_labels:
        labels = [str(_normalize_group_value(label)) for label in config.group_labels]
        before_count = len(metadata_df)
        metadata_df = metadata_df[metadata_df[config.group_column].isin(labels)]
        if len(metadata_df) != before_count:
            print(f"  Removed {before_count - len(metadata_df)} samples outside groups {labels}")

    if len(metadata_df) == 0:
        raise ValueError("No samples remain after filtering for required metadata")

    print(f"  After filtering: {len(metadata_df)} samples")
    print(f"  Groups: {metadata_df[config.group_column].value_counts().to_dict()}")

    return metadata_df.reset_index(drop=True)


def _apply_log_transformation_if_needed(data, config):
    """
    Apply log transformation if needed based on configuration.

    With "auto", data whose observed values have a median above 50 are
    treated as raw intensities and log-transformed.
    """
    if config.log_transform_before_stats == "auto":
        observed = data.to_numpy()
        observed = observed[np.isfinite(observed) & (observed != config.missing_value_sentinel)]
        median_value = float(np.median(observed)) if observed.size else 0.0
        apply_log_transform = median_value > 50
        status = "needed" if apply_log_transform else "not needed"
        print(
            f"Log transformation: AUTO-DETECTED ({status} - median value {median_value:.1f})"
        )
    elif str(config.log_transform_before_stats).lower() in ["true", "1", "yes", "on"]:
        apply_log_transform = True
        print("Log transformation: ENABLED (forced by configuration)")
    else:
        apply_log_transform = False
        print("Log transformation: DISABLED (by configuration)")

    if not apply_log_transform:
        print("Using data as-is for statistical analysis")
        return data

    return log_transform(data, base=config.log_base, pseudocount=config.log_pseudocount)


def prepare_expression_matrix(protein_data, sample_metadata, config):
    """
    Turn a raw protein intensity matrix into the log-scale expression matrix
    used for model fitting.

    Steps: match samples to metadata, replace missing values with the
    sentinel, log-transform, filter by detection rate, normalise.

    Parameters:
    -----------
    protein_data : pd.DataFrame
        Protein intensities, proteins x samples (numeric columns only),
        indexed by protein identifier
    sample_metadata : dict or pd.DataFrame
        Sample metadata
    config : StatisticalConfig
        Analysis configuration

    Returns:
    --------
    (expression, metadata_df) : aligned log-scale matrix and metadata
    """
    sample_columns = [str(c) for c in protein_data.columns]
    protein_data = protein_data.copy()
    protein_data.columns = sample_columns

    metadata_df = prepare_metadata_dataframe(sample_metadata, sample_columns, config)
    kept_samples = [s for s in sample_columns if s in set(metadata_df[config.sample_column])]
    metadata_df = align_samples(kept_samples, metadata_df, config.sample_column)

    if len(kept_samples) < len(sample_columns):
        print(
            f"  Filtered to {len(kept_samples)} samples with metadata (from {len(sample_columns)} total)"
        )

    expression = replace_missing_with_sentinel(
        protein_data[kept_samples], sentinel=config.missing_value_sentinel
    )
    expression = _apply_log_transformation_if_needed(expression, config)

    groups = None
    if config.detection_rule == "any_group":
        groups = metadata_df[config.group_column].to_dict()
    expression = filter_proteins_by_completeness(
        expression,
        kept_samples,
        min_detection_rate=config.min_detection_rate,
        sentinel=config.missing_value_sentinel,
        sample_groups=groups,
    )

    if config.normalization_method != "none":
        before = expression
        if config.normalization_method == "median":
            expression = median_normalize(expression, sentinel=config.missing_value_sentinel)
        else:
            expression = quantile_normalize(expression, sentinel=config.missing_value_sentinel)
        stats = calculate_normalization_stats(
            before, expression, sentinel=config.missing_value_sentinel
        )
        print(
            f"  Sample median range: {stats['original_median_range']:.3f} -> "
            f"{stats['normalized_median_range']:.3f}"
        )

    return expression, metadata_df


def run_limma_analysis(expression, design, contrasts, config=None) -> DifferentialResult:
    """
    Fit per-protein linear models, evaluate contrasts and moderate the
    statistics with empirical Bayes.

    Parameters:
    -----------
    expression : pd.DataFrame
        Log-scale abundances, proteins x samples, columns in design row order
    design : pd.DataFrame
        Design matrix, samples x coefficients
    contrasts : str, list, dict, vector or pd.DataFrame
        Comparison(s) of interest, see make_contrasts
    config : StatisticalConfig, optional
        Supplies eb_proportion and stdev_coef_lim

    Returns:
    --------
    DifferentialResult
    """
    config = config or StatisticalConfig()

    contrast_matrix = make_contrasts(contrasts, design)
    fit = fit_linear_models(expression, design)
    contrast_fit = contrasts_fit(fit, contrast_matrix)
    moderated = ebayes(
        contrast_fit,
        proportion=config.eb_proportion,
        stdev_coef_lim=tuple(config.stdev_coef_lim),
    )

    return DifferentialResult(
        expression=expression,
        design=design,
        contrasts=contrast_matrix,
        fit=fit,
        moderated=moderated,
    )


def _sort_table(table: pd.DataFrame, sort_by: str) -> pd.DataFrame:
    if sort_by == "none":
        return table
    if sort_by == "B":
        key, ascending = "B", False
    elif sort_by == "p":
        key, ascending = "P.Value", True
    elif sort_by in ("logFC", "t"):
        return table.iloc[np.argsort(-table[sort_by].abs().to_numpy(), kind="stable")]
    elif sort_by in ("AveExpr", "F"):
        key, ascending = sort_by, False
    else:
        raise ValueError(f"sort_by must be one of {SORT_OPTIONS}")
    if key not in table.columns:
        key, ascending = "P.Value", True
    return table.sort_values(key, ascending=ascending, kind="mergesort", na_position="last")


def top_table(
    result: Union[DifferentialResult, ModeratedFit],
    contrast=None,
    sort_by: str = "B",
    number: Optional[int] = None,
    adjust_method: str = "fdr_bh",
    p_value_threshold: float = 1.0,
    lfc_threshold: float = 0.0,
    confint: float = 0.95,
    id_column: str = "Protein",
) -> pd.DataFrame:
    """
    Table of moderated statistics for one contrast, or the moderated F-test
    across all contrasts when contrast is None and there are several.

    Parameters:
    -----------
    result : DifferentialResult or ModeratedFit
        Output of run_limma_analysis (or ebayes)
    contrast : int or str, optional
        Contrast position or name
    sort_by : str
        "B", "p", "logFC", "t", "AveExpr", "F" or "none"
    number : int, optional
        Maximum number of rows to return
    adjust_method : str
        Multiple testing correction method
    p_value_threshold : float
        Keep rows with adjusted p-value at or below this value
    lfc_threshold : float
        Keep rows with absolute log fold change at least this large
    confint : float
        Confidence level for CI.L / CI.R

    Returns:
    --------
    pd.DataFrame : one row per protein
    """
    moderated = result.moderated if isinstance(result, DifferentialResult) else result
    names = moderated.contrast_names
    amean = moderated.fit.amean.to_numpy()

    if contrast is None and len(names) > 1:
        table = pd.DataFrame(moderated.coefficients.to_numpy(), columns=names)
        table.insert(0, id_column, moderated.fit.feature_names.to_numpy())
        table["AveExpr"] = amean
        table["F"] = moderated.F.to_numpy()
        table["P.Value"] = moderated.F_p_value.to_numpy()
        table["adj.P.Val"] = adjust_p_values(table["P.Value"].to_numpy(), adjust_method)
        if lfc_threshold > 0:
            table = table[(table[names].abs() >= lfc_threshold).any(axis=1)]
        if p_value_threshold < 1:
            table = table[table["adj.P.Val"] <= p_value_threshold]
        table = _sort_table(table, "F" if sort_by in ("B", "t", "logFC") else sort_by)
        table = table.reset_index(drop=True)
        return table if number is None else table.head(number)

    if contrast is None:
        j = 0
    elif isinstance(contrast, (int, np.integer)):
        j = int(contrast)
        if not 0 <= j < len(names):
            raise IndexError(f"Contrast index {j} out of range for {len(names)} contrasts")
    else:
        if contrast not in names:
            raise KeyError(f"Unknown contrast '{contrast}'; available: {names}")
        j = names.index(contrast)

    log_fc = moderated.coefficients.iloc[:, j].to_numpy()
    se = moderated.se.iloc[:, j].to_numpy()
    df_total = moderated.df_total.to_numpy()
    margin = t_dist.ppf((1.0 + confint) / 2.0, df_total) * se

    table = pd.DataFrame({
        id_column: moderated.fit.feature_names.to_numpy(),
        "logFC": log_fc,
        "CI.L": log_fc - margin,
        "CI.R": log_fc + margin,
        "AveExpr": amean,
        "t": moderated.t.iloc[:, j].to_numpy(),
        "df.total": df_total,
        "SE": se,
        "P.Value": moderated.p_value.iloc[:, j].to_numpy(),
        "B": moderated.lods.iloc[:, j].to_numpy(),
        "zero_variance": moderated.zero_variance.to_numpy(),
    })
    table.insert(table.columns.get_loc("B"), "adj.P.Val",
                 adjust_p_values(table["P.Value"].to_numpy(), adjust_method))

    if lfc_threshold > 0:
        table = table[table["logFC"].abs() >= lfc_threshold]
    if p_value_threshold < 1:
        table = table[table["adj.P.Val"] <= p_value_threshold]

    table = _sort_table(table, sort_by).reset_index(drop=True)
    return table if number is None else table.head(number)


def run_comprehensive_statistical_analysis(
    protein_data, sample_metadata, config, protein_annotations=None
):
    """
    Complete differential abundance analysis

    Parameters:
    -----------
    protein_data : pd.DataFrame
        Protein intensities (proteins x samples), indexed by protein id
    sample_metadata : dict or pd.DataFrame
        Sample metadata
    config : StatisticalConfig
        Configuration object with analysis parameters
    protein_annotations : pd.DataFrame, optional
        DataFrame with protein annotations including the protein id column

    Returns:
    --------
    (results_df, DifferentialResult)
    """

    print("=" * 60)
    print("COMPREHENSIVE STATISTICAL ANALYSIS")
    print("=" * 60)

    # Validate configuration
    try:
        config.validate()
    except ValueError as e:
        raise ValueError(f"Configuration error: {e}") from e

    print("Step 1: Preparing expression matrix...")
    expression, metadata_df = prepare_expression_matrix(protein_data, sample_metadata, config)

    print("\nStep 2: Building design matrix...")
    design = build_design_matrix(
        metadata_df.reset_index(drop=True),
        group_column=config.group_column,
        group_labels=[str(_normalize_group_value(g)) for g in config.group_labels] or None,
        covariates=config.covariates,
        sample_column=config.sample_column,
    )
    expression = expression[list(design.index)]

    contrasts = config.get_contrasts()
    print(f"\nStep 3: Fitting linear models and testing contrasts {contrasts}...")
    result = run_limma_analysis(expression, design, contrasts, config)

    print("\nStep 4: Assembling results...")
    tables = []
    for name in result.contrast_names:
        table = top_table(
            result,
            contrast=name,
            sort_by="none",
            adjust_method=config.correction_method,
            id_column=config.protein_id_column,
        )
        table.insert(1, "Contrast", name)
        tables.append(table)
    results_df = pd.concat(tables, ignore_index=True)
    results_df = apply_multiple_testing_correction(results_df, config)

    if protein_annotations is not None and len(protein_annotations) > 0:
        print("\nStep 5: Adding protein annotations...")
        id_col = config.protein_id_column
        annotation_cols = [id_col] + [
            col for col in protein_annotations.columns
            if col != id_col and col not in results_df.columns
        ]
        results_df = results_df.merge(
            protein_annotations[annotation_cols].drop_duplicates(subset=[id_col]),
            on=id_col,
            how="left",
        )
        print(f"  Added annotation columns: {annotation_cols[1:]}")
    else:
        print("\nStep 5: No protein annotations provided - skipping annotation merge")

    results_df = _sort_table(results_df, "p").reset_index(drop=True)

    print("\n✓ Statistical analysis completed!")
    print(f"  Total proteins analyzed: {len(expression)}")
    print(f"  Prior df: {result.moderated.prior.df_prior:.3f}, "
          f"prior variance: {result.moderated.prior.var_prior:.4g}")
    print(
        f"  Significant proteins (adjusted p < {config.p_value_threshold}): "
        f"{int(results_df['Significant'].sum())}"
    )

    return results_df, result


def display_analysis_summary(differential_results, config, label_top_n=10):
    """
    Display a summary of statistical analysis results

    Parameters:
    -----------
    differential_results : pd.DataFrame
        Results from run_comprehensive_statistical_analysis
    config : StatisticalConfig
        Configuration object with analysis parameters
    label_top_n : int
        Number of top proteins to display

    Returns:
    --------
    dict
        Summary statistics for downstream use
    """

    if differential_results is None or len(differential_results) == 0:
        print("⚠️ No differential analysis results available")
        return {}

    print("=" * 60)
    print("STATISTICAL ANALYSIS SUMMARY")
    print("=" * 60)

    total_rows = len(differential_results)
    valid_results = int(differential_results["P.Value"].notna().sum())
    significant_005 = int((differential_results["adj.P.Val"] < 0.05).sum())
    significant_001 = int((differential_results["adj.P.Val"] < 0.01).sum())
    n_up = int(
        ((differential_results["adj.P.Val"] < config.p_value_threshold)
         & (differential_results["logFC"] >= config.fold_change_threshold)).sum()
    )
    n_down = int(
        ((differential_results["adj.P.Val"] < config.p_value_threshold)
         & (differential_results["logFC"] <= -config.fold_change_threshold)).sum()
    )

    print("Analysis Overview:")
    print(f"  Correction: {config.correction_method}")
    print(f"  Result rows: {total_rows:,}")
    print(f"  Rows with valid results: {valid_results:,}")
    print(f"  Significant (FDR < 0.05): {significant_005:,}")
    print(f"  Highly significant (FDR < 0.01): {significant_001:,}")
    print(f"  Up (logFC >= {config.fold_change_threshold}): {n_up:,}")
    print(f"  Down (logFC <= -{config.fold_change_threshold}): {n_down:,}")

    if "zero_variance" in differential_results.columns:
        n_flagged = int(differential_results["zero_variance"].sum())
        if n_flagged:
            print(f"  Zero-variance proteins (moderated towards prior): {n_flagged}")

    if valid_results > 0:
        print(f"\n=== TOP {label_top_n} MOST SIGNIFICANT PROTEINS ===")
        top_results = differential_results.nsmallest(label_top_n, "P.Value")
        display_cols = [
            col for col in [config.protein_id_column, "Contrast", "logFC", "t",
                            "P.Value", "adj.P.Val", "B"]
            if col in top_results.columns
        ]
        display_df = top_results[display_cols].copy()
        for col in ["P.Value", "adj.P.Val"]:
            display_df[col] = display_df[col].apply(
                lambda x: f"{x:.2e}" if pd.notna(x) and x < 0.01
                else f"{x:.6f}" if pd.notna(x) else "N/A"
            )
        for col in ["logFC", "t", "B"]:
            if col in display_df.columns:
                display_df[col] = display_df[col].apply(
                    lambda x: f"{x:.4f}" if pd.notna(x) else "N/A"
                )
        print(display_df.to_string(index=False))

    summary = {
        "total_rows": total_rows,
        "valid_results": valid_results,
        "significant_005": significant_005,
        "significant_001": significant_001,
        "n_up": n_up,
        "n_down": n_down,
        "correction_method": config.correction_method,
    }

    print("\n✓ Analysis summary complete!")

    return summary
