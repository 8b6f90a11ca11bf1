"""
Pytest configuration and fixtures for differential_toolkit tests
"""

import matplotlib

matplotlib.use("Agg")

import pytest
import pandas as pd
import numpy as np

from differential_toolkit.statistical_analysis import StatisticalConfig


@pytest.fixture
def sample_columns():
    """Sample column names for testing"""
    return [
        "Ctrl_1",
        "Ctrl_2",
        "Ctrl_3",
        "Ctrl_4",
        "Trt_1",
        "Trt_2",
        "Trt_3",
        "Trt_4",
    ]


@pytest.fixture
def sample_metadata_df(sample_columns):
    """Create sample metadata DataFrame for testing"""
    return pd.DataFrame(
        {
            "Sample": sample_columns,
            "Group": ["Control"] * 4 + ["Treatment"] * 4,
            "Age": [34, 51, 46, 60, 38, 55, 42, 63],
            "Batch": ["B1", "B2", "B1", "B2", "B1", "B2", "B1", "B2"],
        }
    )


@pytest.fixture
def sample_metadata(sample_metadata_df):
    """Sample metadata as a dict of dicts keyed by sample name"""
    return {
        row["Sample"]: {"Group": row["Group"], "Age": row["Age"], "Batch": row["Batch"]}
        for _, row in sample_metadata_df.iterrows()
    }


@pytest.fixture
def log_expression(sample_columns):
    """
    Log-scale abundances for 200 proteins x 8 samples. The first 20
    proteins are 2 log units higher in Treatment.
    """
    np.random.seed(42)

    n_proteins = 200
    protein_names = [f"P{i:05d}" for i in range(n_proteins)]
    protein_means = np.random.normal(20, 2, n_proteins)
    protein_sds = np.sqrt(0.1 / np.random.chisquare(4, n_proteins) * 4)

    data_matrix = protein_means[:, None] + protein_sds[:, None] * np.random.normal(
        0, 1, (n_proteins, len(sample_columns))
    )
    data_matrix[:20, 4:] += 2.0

    df = pd.DataFrame(data_matrix, index=protein_names, columns=sample_columns)
    df.index.name = "Protein"
    return df


@pytest.fixture
def raw_protein_data(log_expression):
    """
    Protein intensity table as it comes from a quantitation export: an
    identifier column, a description column and raw intensities with a few
    missing values.
    """
    np.random.seed(7)
    intensities = np.power(2.0, log_expression) - 1.0

    mask = np.random.random(intensities.shape) < 0.03
    intensities = intensities.mask(mask)
    # Mostly undetected protein
    intensities.iloc[199, :6] = np.nan

    ids = [f"sp|P{i:05d}|PROT{i}_HUMAN" for i in range(len(intensities))]
    table = intensities.reset_index(drop=True)
    table.insert(0, "Protein", ids)
    table.insert(1, "Protein Description", [
        f"Protein {i} OS=Homo sapiens OX=9606 GN=GENE{i} PE=1 SV=1"
        for i in range(len(intensities))
    ])
    return table


@pytest.fixture
def statistical_config():
    """Create sample statistical configuration"""
    config = StatisticalConfig()
    config.group_column = "Group"
    config.group_labels = ["Control", "Treatment"]
    config.contrasts = ["Treatment - Control"]
    config.p_value_threshold = 0.05
    config.fold_change_threshold = 1.0
    return config


@pytest.fixture
def two_group_design(sample_columns):
    """Group-means design for 4 Control and 4 Treatment samples"""
    design = pd.DataFrame(
        {
            "Control": [1.0] * 4 + [0.0] * 4,
            "Treatment": [0.0] * 4 + [1.0] * 4,
        },
        index=sample_columns,
    )
    design.index.name = "Sample"
    return design


@pytest.fixture
def differential_results():
    """Create sample differential analysis results"""
    np.random.seed(42)
    n_proteins = 10

    data = {
        "Protein": [f"P{i:05d}" for i in range(n_proteins)],
        "logFC": np.random.normal(0, 1.5, n_proteins),
        "AveExpr": np.random.normal(20, 2, n_proteins),
        "t": np.random.normal(0, 2, n_proteins),
        "P.Value": np.random.uniform(0.0001, 0.8, n_proteins),
        "B": np.random.normal(0, 1, n_proteins),
    }

    df = pd.DataFrame(data)
    df["adj.P.Val"] = np.minimum(df["P.Value"] * 3, 1.0)
    df["Significant"] = df["adj.P.Val"] < 0.05
    return df.sort_values("P.Value").reset_index(drop=True)


@pytest.fixture
def protein_identifiers():
    """Sample protein identifiers for testing parsing"""
    return [
        "sp|P12345|PROT1_HUMAN",
        "tr|Q67890|Q67890_HUMAN",
        "sp|P11111|PROT2_HUMAN",
        "INVALID_ID",
        "sp|P22222-2|PROT3_HUMAN",
    ]
