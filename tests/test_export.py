"""
Tests for export module
"""

import os

import pandas as pd
import pytest

from differential_toolkit.export import (
    create_config_dict,
    export_analysis_results,
    export_results,
    export_timestamped_config,
)


@pytest.fixture
def annotations():
    return pd.DataFrame({
        "Protein": [f"P{i:05d}" for i in range(10)],
        "Gene": [f"GENE{i}" for i in range(10)],
        "logFC": [99.0] * 10,
    })


class TestExportModule:
    """Test the export module functionality."""

    def test_sample_metadata_export_has_column_header(self, tmp_path, log_expression,
                                                      sample_metadata):
        exported_files = export_analysis_results(
            log_expression, sample_metadata, output_prefix=str(tmp_path / "run")
        )

        exported_metadata = pd.read_csv(exported_files["sample_metadata"], index_col=0)
        assert exported_metadata.index.name == "Sample"
        assert len(exported_metadata) == 8
        assert "Group" in exported_metadata.columns

    def test_metadata_dataframe_written_without_index(self, tmp_path, log_expression,
                                                      sample_metadata_df):
        exported_files = export_analysis_results(
            log_expression, sample_metadata_df, output_prefix=str(tmp_path / "run")
        )

        exported_metadata = pd.read_csv(exported_files["sample_metadata"])
        assert list(exported_metadata.columns) == ["Sample", "Group", "Age", "Batch"]

    def test_expression_matrix_export(self, tmp_path, log_expression, sample_metadata):
        exported_files = export_analysis_results(
            log_expression, sample_metadata, output_prefix=str(tmp_path / "run")
        )

        assert exported_files["expression_matrix"] == str(tmp_path / "run_expression_matrix.csv")
        matrix = pd.read_csv(exported_files["expression_matrix"], index_col="Protein")
        assert matrix.shape == log_expression.shape
        assert "differential_results" not in exported_files

    def test_annotated_results(self, tmp_path, log_expression, sample_metadata,
                               differential_results, annotations):
        exported_files = export_analysis_results(
            log_expression,
            sample_metadata,
            differential_results=differential_results,
            protein_annotations=annotations,
            output_prefix=str(tmp_path / "run"),
        )

        results_file = exported_files["differential_results"]
        assert results_file.endswith("run_differential_results_annotated.csv")
        results = pd.read_csv(results_file)
        assert "Gene" in results.columns
        # Statistics already in the results are not overwritten by annotations
        assert (results["logFC"] != 99.0).all()
        assert len(results) == len(differential_results)

    def test_unannotated_results(self, tmp_path, log_expression, sample_metadata,
                                 differential_results):
        exported_files = export_analysis_results(
            log_expression, sample_metadata, differential_results=differential_results,
            output_prefix=str(tmp_path / "run"),
        )

        assert exported_files["differential_results"].endswith("run_differential_results.csv")


class TestConfigExport:
    """Test timestamped configuration export"""

    def test_create_config_dict(self, statistical_config):
        config_dict = create_config_dict(statistical_config)

        assert config_dict["group_labels"] == ["Control", "Treatment"]
        assert config_dict["correction_method"] == "fdr_bh"

    def test_export_timestamped_config(self, tmp_path, statistical_config):
        config_file = export_timestamped_config(
            statistical_config,
            output_prefix=str(tmp_path / "study"),
            analysis_description="Treatment vs control",
            computed_values={"df_prior": 4.2},
        )

        assert os.path.exists(config_file)
        assert os.path.basename(config_file).startswith("study_config_")
        content = open(config_file).read()
        assert "# Analysis: Treatment vs control" in content
        assert "group_labels = ['Control', 'Treatment']" in content
        assert "# 4. EMPIRICAL BAYES" in content
        assert "# df_prior: 4.2" in content

    def test_config_file_is_valid_python(self, tmp_path, statistical_config):
        config_file = export_timestamped_config(statistical_config, str(tmp_path / "study"))

        namespace = {}
        exec(open(config_file).read(), namespace)

        assert namespace["contrasts"] == ["Treatment - Control"]
        assert namespace["stdev_coef_lim"] == (0.1, 4.0)

    def test_extra_settings_section(self, tmp_path):
        config_file = export_timestamped_config(
            {"group_column": "Group", "notebook_author": "lab"}, str(tmp_path / "study")
        )

        content = open(config_file).read()
        assert "OTHER SETTINGS" in content
        assert "notebook_author = 'lab'" in content


class TestExportResults:
    """Test plain results export"""

    def test_export_all(self, tmp_path, differential_results):
        output_file = str(tmp_path / "all.csv")

        export_results(differential_results, output_file)

        assert len(pd.read_csv(output_file)) == len(differential_results)

    def test_export_significant_only(self, tmp_path, differential_results):
        results = differential_results.copy()
        results["Significant"] = [True, True] + [False] * (len(results) - 2)
        output_file = str(tmp_path / "significant.csv")

        export_results(results, output_file, include_all=False)

        exported = pd.read_csv(output_file)
        assert list(exported["Protein"]) == list(results["Protein"][:2])
