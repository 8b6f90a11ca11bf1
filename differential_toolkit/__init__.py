"""
Differential Abundance Toolkit
==============================

A Python library for differential abundance analysis of mass spectrometry-based
proteomics data using per-protein linear models with empirical Bayes variance
moderation. Many proteins are measured on few samples, so each protein's
variance estimate is shrunk towards a prior fitted across all proteins before
moderated t-statistics, F-statistics and Benjamini-Hochberg adjusted p-values
are computed.

QUICK START EXAMPLE:
-------------------
    import differential_toolkit as dtk

    # 1. Load data
    protein_data, metadata = dtk.load_protein_data('proteins.tsv', 'metadata.tsv')
    samples = dtk.identify_sample_columns(protein_data, metadata)
    matrix = dtk.extract_feature_matrix(protein_data, samples)

    # 2. Configure and run the analysis
    config = dtk.StatisticalConfig()
    config.group_column = 'Group'
    config.group_labels = ['Control', 'Treatment']
    config.contrasts = ['Treatment - Control']
    results, fit = dtk.run_comprehensive_statistical_analysis(matrix, metadata, config)

    # 3. Visualization and export
    dtk.plot_volcano(results)
    dtk.export_results(results, 'differential_results.csv')

MODULE OVERVIEW:
===============

data_import
    Purpose: Load protein intensity tables and metadata, extract the feature matrix
    Key functions: load_protein_data(), extract_feature_matrix()

preprocessing
    Purpose: Missing-value handling and detection-rate filtering
    Key functions: replace_missing_with_sentinel(), filter_proteins_by_completeness()

normalization
    Purpose: Log transformation and between-sample normalization
    Key functions: log_transform(), median_normalize(), quantile_normalize()

design
    Purpose: Design matrices from sample metadata and contrast matrices
    Key functions: build_design_matrix(), make_contrasts()

linear_model
    Purpose: Per-protein least-squares fits on a shared design and contrasts
    Key functions: fit_linear_models(), contrasts_fit()

empirical_bayes
    Purpose: Prior estimation, variance shrinkage and moderated statistics
    Key functions: fit_f_dist(), squeeze_var(), ebayes()

statistical_analysis
    Purpose: Multiple testing correction, result tables and the full workflow
    Key functions: run_comprehensive_statistical_analysis(), top_table(), benjamini_hochberg()

visualization
    Purpose: Quality control plots and results visualization
    Key functions: plot_volcano(), plot_mds(), plot_top_protein_heatmap()

validation
    Purpose: Exception types and sample alignment checks
    Key functions: validate_sample_alignment(), align_samples()

export
    Purpose: Export results and timestamped configuration records
    Key functions: export_analysis_results(), export_timestamped_config()

ERROR HANDLING:
==============
All toolkit exceptions subclass ValueError:
- SampleMatchingError: samples in metadata and data do not line up
- DesignMatrixError: the design is rank deficient or leaves no residual df
- ContrastError: a contrast does not match the design coefficients
- InputShapeError: the expression matrix is malformed
"""

# =============================================================================
# MODULE IMPORTS
# =============================================================================

from . import data_import          # Data loading and parsing
from . import preprocessing        # Missing values and filtering
from . import normalization        # Log transformation and normalization
from . import design               # Design and contrast matrices
from . import linear_model         # Per-protein linear models
from . import empirical_bayes      # Variance moderation
from . import statistical_analysis # Testing, correction and workflow
from . import visualization        # Plotting and visualization
from . import validation           # Exceptions and sample alignment
from . import export               # Results export and configuration records

__version__ = "1.0.0"

# =============================================================================
# CONVENIENCE IMPORTS
# =============================================================================

from .data_import import (
    load_protein_data,
    identify_sample_columns,
    extract_feature_matrix,
    extract_protein_annotations,
    parse_uniprot_identifier,
)

from .preprocessing import (
    replace_missing_with_sentinel,
    assess_data_completeness,
    filter_proteins_by_completeness,
)

from .normalization import (
    log_transform,
    median_normalize,
    quantile_normalize,
    calculate_normalization_stats,
)

from .design import (
    build_design_matrix,
    make_contrasts,
    check_design_rank,
)

from .linear_model import (
    LinearModelFit,
    factorize_design,
    fit_linear_models,
    contrasts_fit,
)

from .empirical_bayes import (
    EmpiricalBayesPrior,
    ModeratedFit,
    trigamma_inverse,
    fit_f_dist,
    squeeze_var,
    ebayes,
)

from .statistical_analysis import (
    StatisticalConfig,
    DifferentialResult,
    benjamini_hochberg,
    apply_multiple_testing_correction,
    prepare_metadata_dataframe,
    prepare_expression_matrix,
    run_limma_analysis,
    top_table,
    run_comprehensive_statistical_analysis,
    display_analysis_summary,
)

from .validation import (
    SampleMatchingError,
    DesignMatrixError,
    ContrastError,
    InputShapeError,
    validate_sample_alignment,
    align_samples,
)

from .export import (
    export_analysis_results,
    export_timestamped_config,
    export_results,
)

from .visualization import (
    plot_box_plot,
    plot_mds,
    plot_pca,
    plot_volcano,
    plot_pvalue_histogram,
    plot_sample_correlation_heatmap,
    plot_top_protein_heatmap,
    plot_protein_boxplots,
)

# =============================================================================
# PUBLIC API
# =============================================================================

__all__ = [
    # MODULES
    "data_import",
    "preprocessing",
    "normalization",
    "design",
    "linear_model",
    "empirical_bayes",
    "statistical_analysis",
    "visualization",
    "validation",
    "export",

    # DATA LOADING
    "load_protein_data",
    "identify_sample_columns",
    "extract_feature_matrix",
    "extract_protein_annotations",
    "parse_uniprot_identifier",

    # PREPROCESSING AND NORMALIZATION
    "replace_missing_with_sentinel",
    "assess_data_completeness",
    "filter_proteins_by_completeness",
    "log_transform",
    "median_normalize",
    "quantile_normalize",
    "calculate_normalization_stats",

    # MODEL FITTING
    "build_design_matrix",
    "make_contrasts",
    "check_design_rank",
    "LinearModelFit",
    "factorize_design",
    "fit_linear_models",
    "contrasts_fit",
    "EmpiricalBayesPrior",
    "ModeratedFit",
    "trigamma_inverse",
    "fit_f_dist",
    "squeeze_var",
    "ebayes",

    # STATISTICAL ANALYSIS
    "StatisticalConfig",
    "DifferentialResult",
    "benjamini_hochberg",
    "apply_multiple_testing_correction",
    "prepare_metadata_dataframe",
    "prepare_expression_matrix",
    "run_limma_analysis",
    "top_table",
    "run_comprehensive_statistical_analysis",
    "display_analysis_summary",

    # VALIDATION
    "SampleMatchingError",
    "DesignMatrixError",
    "ContrastError",
    "InputShapeError",
    "validate_sample_alignment",
    "align_samples",

    # EXPORT
    "export_analysis_results",
    "export_timestamped_config",
    "export_results",

    # VISUALIZATION
    "plot_box_plot",
    "plot_mds",
    "plot_pca",
    "plot_volcano",
    "plot_pvalue_histogram",
    "plot_sample_correlation_heatmap",
    "plot_top_protein_heatmap",
    "plot_protein_boxplots",
]
