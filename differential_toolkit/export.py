"""
Export Module for Differential Abundance Toolkit

This module handles exporting analysis results, configurations, and processed
data. It provides functions for creating timestamped configuration files and
exporting result tables with protein annotations.
"""

import pandas as pd
from datetime import datetime
from typing import Any, Dict, List, Optional, Union


def create_config_dict(config) -> Dict[str, Any]:
    """Plain dictionary of the public attributes of a configuration object."""
    return {
        key: value for key, value in vars(config).items() if not key.startswith("_")
    }


def export_analysis_results(
    expression: pd.DataFrame,
    sample_metadata: Union[pd.DataFrame, Dict[str, Dict[str, Any]]],
    differential_results: Optional[pd.DataFrame] = None,
    protein_annotations: Optional[pd.DataFrame] = None,
    output_prefix: str = "differential_analysis",
    id_column: str = "Protein",
) -> Dict[str, str]:
    """
    Export the analysed expression matrix, the sample metadata and the
    (optionally annotated) differential results.

    Parameters:
    -----------
    expression : pd.DataFrame
        Log-scale abundances used for fitting, indexed by protein id
    sample_metadata : pd.DataFrame or dict
        Sample metadata
    differential_results : pd.DataFrame, optional
        Statistical analysis results
    protein_annotations : pd.DataFrame, optional
        Annotation table keyed by id_column
    output_prefix : str
        Prefix (may include a directory) for output filenames

    Returns:
    --------
    dict
        Dictionary of exported files
    """

    print("Exporting analysis results...")

    exported_files = {}

    expression_file = f"{output_prefix}_expression_matrix.csv"
    expression_out = expression.copy()
    expression_out.index.name = id_column
    expression_out.to_csv(expression_file)
    exported_files["expression_matrix"] = expression_file
    print(f"Expression matrix exported to: {expression_file}")

    if isinstance(sample_metadata, pd.DataFrame):
        metadata_export = sample_metadata
        metadata_index = False
    else:
        metadata_export = pd.DataFrame.from_dict(sample_metadata, orient="index")
        # Header for the sample name column
        metadata_export.index.name = "Sample"
        metadata_index = True
    metadata_file = f"{output_prefix}_sample_metadata.csv"
    metadata_export.to_csv(metadata_file, index=metadata_index)
    exported_files["sample_metadata"] = metadata_file
    print(f"Sample metadata exported to: {metadata_file}")

    if differential_results is not None and not differential_results.empty:
        results = differential_results
        suffix = "differential_results"
        if protein_annotations is not None and id_column in results.columns:
            new_cols = [
                col for col in protein_annotations.columns
                if col == id_column or col not in results.columns
            ]
            results = results.merge(
                protein_annotations[new_cols].drop_duplicates(subset=[id_column]),
                on=id_column,
                how="left",
            )
            suffix = "differential_results_annotated"

        differential_file = f"{output_prefix}_{suffix}.csv"
        results.to_csv(differential_file, index=False)
        exported_files["differential_results"] = differential_file
        print(f"Differential analysis results exported to: {differential_file}")

    return exported_files


def export_timestamped_config(
    config,
    output_prefix: str = "differential_analysis",
    analysis_description: str = "Differential abundance analysis",
    computed_values: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Export analysis configuration as a timestamped Python file.

    Parameters:
    -----------
    config : StatisticalConfig or dict
        Configuration parameters
    output_prefix : str
        Prefix for the configuration filename
    analysis_description : str
        Description of the analysis type
    computed_values : dict, optional
        Additional computed values (e.g. prior df) to include as comments

    Returns:
    --------
    str
        Path to the exported configuration file
    """

    config_dict = config if isinstance(config, dict) else create_config_dict(config)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    config_file = f"{output_prefix}_config_{timestamp}.py"

    print(f"Exporting analysis configuration to: {config_file}")

    section_configs = [
        (1, "EXPERIMENTAL DESIGN", [
            "sample_column", "protein_id_column", "group_column", "group_labels",
            "contrasts", "covariates",
        ]),
        (2, "MISSING VALUES AND FILTERING", [
            "missing_value_sentinel", "min_detection_rate", "detection_rule",
        ]),
        (3, "TRANSFORMATION AND NORMALIZATION", [
            "log_transform_before_stats", "log_base", "log_pseudocount",
            "normalization_method",
        ]),
        (4, "EMPIRICAL BAYES", ["eb_proportion", "stdev_coef_lim"]),
        (5, "SIGNIFICANCE THRESHOLDS", [
            "correction_method", "p_value_threshold", "fold_change_threshold", "sort_by",
        ]),
    ]
    listed = {name for _, _, names in section_configs for name in names}
    other = [key for key in config_dict if key not in listed]
    if other:
        section_configs.append((len(section_configs) + 1, "OTHER SETTINGS", other))

    with open(config_file, "w", encoding="utf-8") as f:
        f.write(
            "# =============================================================================\n"
        )
        f.write("# DIFFERENTIAL ABUNDANCE ANALYSIS CONFIGURATION\n")
        f.write(f"# Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
        f.write(f"# Analysis: {analysis_description}\n")
        f.write(
            "# =============================================================================\n\n"
        )

        for section_num, section_name, param_names in section_configs:
            _write_config_section(f, section_name, config_dict, param_names, section_num)

        if computed_values:
            f.write(
                "# =============================================================================\n"
            )
            f.write("# COMPUTED VALUES (for reference)\n")
            f.write(
                "# =============================================================================\n"
            )
            for key, value in computed_values.items():
                f.write(f"# {key}: {value}\n")

    return config_file


def _write_config_section(
    file_handle,
    section_name: str,
    config_dict: Dict[str, Any],
    param_names: List[str],
    section_number: int = 1,
) -> None:
    """Write a configuration section to file."""

    file_handle.write(
        "# =============================================================================\n"
    )
    file_handle.write(f"# {section_number}. {section_name}\n")
    file_handle.write(
        "# =============================================================================\n"
    )

    for param in param_names:
        if param in config_dict:
            file_handle.write(f"{param} = {repr(config_dict[param])}\n")

    file_handle.write("\n")


def export_results(
    differential_df: pd.DataFrame, output_file: str, include_all: bool = True
) -> None:
    """
    Export differential analysis results to CSV file.

    Parameters:
    -----------
    differential_df : pd.DataFrame
        Differential analysis results
    output_file : str
        Output CSV filename
    include_all : bool
        Whether to include all proteins or only significant ones
    """

    if not include_all:
        if "Significant" in differential_df.columns:
            export_df = differential_df[differential_df["Significant"]].copy()
        elif "adj.P.Val" in differential_df.columns:
            export_df = differential_df[differential_df["adj.P.Val"] < 0.05].copy()
        else:
            export_df = differential_df.copy()
        print(f"Exporting {len(export_df)} significant proteins to {output_file}")
    else:
        export_df = differential_df.copy()
        print(f"Exporting all {len(export_df)} proteins to {output_file}")

    export_df.to_csv(output_file, index=False)
    print("Results exported successfully!")
