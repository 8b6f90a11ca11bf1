"""
Tests for visualization functions: every plot is built without showing it
and returns its figure
"""

import pandas as pd
import numpy as np
import pytest
import matplotlib.pyplot as plt
from matplotlib.figure import Figure
from unittest.mock import patch

from differential_toolkit.visualization import (
    leading_logfc_distances,
    plot_box_plot,
    plot_mds,
    plot_pca,
    plot_protein_boxplots,
    plot_pvalue_histogram,
    plot_sample_correlation_heatmap,
    plot_top_protein_heatmap,
    plot_volcano,
)


@pytest.fixture(autouse=True)
def no_display():
    with patch("matplotlib.pyplot.show"):
        yield
    plt.close("all")


class TestBoxPlotVisualization:
    """Test sample box plots"""

    def test_box_plot_returns_figure(self, log_expression, sample_columns, sample_metadata):
        fig = plot_box_plot(log_expression, sample_columns, sample_metadata, title="Test Box Plot")

        assert isinstance(fig, Figure)
        assert len(fig.axes[0].get_xticklabels()) == len(sample_columns)

    def test_box_plot_metadata_dataframe(self, log_expression, sample_columns, sample_metadata_df):
        metadata = sample_metadata_df.set_index("Sample")

        fig = plot_box_plot(log_expression, sample_columns, metadata)

        assert isinstance(fig, Figure)

    def test_box_plot_missing_sample_metadata(self, log_expression, sample_columns, sample_metadata):
        incomplete_metadata = dict(sample_metadata)
        del incomplete_metadata["Trt_2"]

        fig = plot_box_plot(log_expression, sample_columns, incomplete_metadata)

        legend_labels = [t.get_text() for t in fig.axes[0].get_legend().get_texts()]
        assert "Unknown" in legend_labels

    def test_box_plot_mixed_group_types(self):
        sample_columns = ["S1", "S2", "S3"]
        sample_metadata = {"S1": {"Group": 0}, "S2": {"Group": "20"}, "S3": {"Group": "Pool"}}
        data = pd.DataFrame({col: [1.0, 2.0, 0.0] for col in sample_columns})

        fig = plot_box_plot(data, sample_columns, sample_metadata)

        assert isinstance(fig, Figure)

    def test_box_plot_missing_column(self, log_expression, sample_columns, sample_metadata):
        with pytest.raises(KeyError):
            plot_box_plot(log_expression.drop(columns=["Ctrl_1"]), sample_columns, sample_metadata)


class TestSampleLayoutPlots:
    """Test MDS, PCA and correlation plots"""

    def test_leading_logfc_distances(self, log_expression):
        distances = leading_logfc_distances(log_expression, top=50)

        assert distances.shape == (8, 8)
        np.testing.assert_allclose(distances.to_numpy(), distances.to_numpy().T)
        assert (np.diag(distances.to_numpy()) == 0).all()

    def test_leading_logfc_distance_value(self):
        data = pd.DataFrame({"a": [0.0, 0.0, 0.0], "b": [1.0, 3.0, 0.0]})

        distances = leading_logfc_distances(data, top=2)

        # Leading squared differences are 9 and 1
        assert distances.loc["a", "b"] == pytest.approx(np.sqrt(5.0))

    def test_treatment_separates_in_mds(self, log_expression, sample_columns, sample_metadata):
        fig = plot_mds(log_expression, sample_columns, sample_metadata, top=20)

        assert isinstance(fig, Figure)
        assert "MDS" in fig.axes[0].get_title()

    def test_mds_needs_three_samples(self, log_expression, sample_metadata):
        with pytest.raises(ValueError, match="at least 3 samples"):
            plot_mds(log_expression, ["Ctrl_1", "Trt_1"], sample_metadata)

    def test_pca(self, log_expression, sample_columns, sample_metadata):
        fig = plot_pca(log_expression, sample_columns, sample_metadata)

        assert "PC1" in fig.axes[0].get_xlabel()

    def test_pca_constant_data(self, sample_columns, sample_metadata):
        data = pd.DataFrame(1.0, index=["P1", "P2", "P3"], columns=sample_columns)

        with pytest.raises(ValueError, match="Not enough variable proteins"):
            plot_pca(data, sample_columns, sample_metadata)

    def test_sample_correlation_heatmap(self, log_expression, sample_columns):
        fig = plot_sample_correlation_heatmap(log_expression, sample_columns, method="spearman")

        assert isinstance(fig, Figure)


class TestResultPlots:
    """Test plots of differential results"""

    def test_volcano(self, differential_results):
        fig = plot_volcano(differential_results, fc_threshold=0.5, p_threshold=0.5)

        assert fig.axes[0].get_xlabel() == "Log Fold Change"

    def test_volcano_raw_p_values(self, differential_results):
        fig = plot_volcano(differential_results, p_column="P.Value", label_top_n=0)

        assert isinstance(fig, Figure)

    def test_volcano_empty(self, differential_results):
        with pytest.raises(ValueError, match="No data to plot"):
            plot_volcano(differential_results.iloc[0:0])

    def test_volcano_missing_column(self, differential_results):
        with pytest.raises(ValueError, match="not found"):
            plot_volcano(differential_results.drop(columns=["adj.P.Val"]))

    def test_pvalue_histogram(self, differential_results):
        fig = plot_pvalue_histogram(differential_results, bins=10)

        assert isinstance(fig, Figure)

    def test_top_protein_heatmap(self, log_expression, differential_results, sample_columns,
                                 sample_metadata):
        fig = plot_top_protein_heatmap(
            log_expression, differential_results, sample_columns, sample_metadata, top_n=5
        )

        assert isinstance(fig, Figure)

    def test_top_protein_heatmap_no_matches(self, log_expression, differential_results,
                                            sample_columns, sample_metadata):
        results = differential_results.assign(Protein=["missing"] * len(differential_results))

        with pytest.raises(ValueError, match="No variable proteins"):
            plot_top_protein_heatmap(log_expression, results, sample_columns, sample_metadata)

    def test_protein_boxplots(self, log_expression, sample_columns, sample_metadata):
        fig = plot_protein_boxplots(
            log_expression, ["P00000", "P00001", "P00150", "absent"], sample_columns,
            sample_metadata, ncols=2
        )

        assert len([ax for ax in fig.axes if ax.get_visible()]) == 3

    def test_protein_boxplots_none_found(self, log_expression, sample_columns, sample_metadata):
        with pytest.raises(ValueError, match="None of the requested proteins"):
            plot_protein_boxplots(log_expression, ["absent"], sample_columns, sample_metadata)
