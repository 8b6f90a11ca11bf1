"""
Tests for differential_toolkit.data_import module
"""

import pandas as pd
import numpy as np
import pytest

from differential_toolkit.data_import import (
    extract_feature_matrix,
    extract_protein_annotations,
    identify_sample_columns,
    load_protein_data,
    parse_gene_from_description,
    parse_uniprot_identifier,
)
from differential_toolkit.validation import InputShapeError


@pytest.fixture
def protein_table():
    return pd.DataFrame({
        "Protein": ["sp|P00001|PROT1_HUMAN", "sp|P00002|PROT2_HUMAN", "tr|Q00003|Q00003_HUMAN"],
        "Protein Description": [
            "Protein one OS=Homo sapiens GN=ONE PE=1",
            "Protein two OS=Homo sapiens GN=TWO PE=1",
            "Uncharacterized",
        ],
        "Sample_1": [100.0, 200.0, 150.0],
        "Sample_2": [110.0, np.nan, 140.0],
        "Sample_3": [95.0, 220.0, 160.0],
    })


@pytest.fixture
def metadata_table():
    return pd.DataFrame({
        "Sample": ["Sample_1", "Sample_2", "Sample_3"],
        "Group": ["Control", "Treatment", "Control"],
    })


class TestLoadProteinData:
    """Test loading of protein and metadata tables"""

    def test_load_tab_delimited(self, tmp_path, protein_table, metadata_table):
        protein_file = tmp_path / "proteins.tsv"
        metadata_file = tmp_path / "metadata.tsv"
        protein_table.to_csv(protein_file, sep="\t", index=False)
        metadata_table.to_csv(metadata_file, sep="\t", index=False)

        protein_data, metadata = load_protein_data(str(protein_file), str(metadata_file))

        assert protein_data.shape == (3, 5)
        assert list(metadata.columns) == ["Sample", "Group"]
        assert np.isnan(protein_data.loc[1, "Sample_2"])

    def test_load_csv_by_extension(self, tmp_path, protein_table, metadata_table):
        protein_file = tmp_path / "proteins.csv"
        metadata_file = tmp_path / "metadata.csv"
        protein_table.to_csv(protein_file, index=False)
        metadata_table.to_csv(metadata_file, index=False)

        protein_data, metadata = load_protein_data(str(protein_file), str(metadata_file))

        assert protein_data.shape == (3, 5)
        assert len(metadata) == 3

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Protein file not found"):
            load_protein_data(str(tmp_path / "nope.tsv"), str(tmp_path / "meta.tsv"))

    def test_empty_file(self, tmp_path, metadata_table):
        protein_file = tmp_path / "proteins.tsv"
        protein_file.write_text("")
        metadata_file = tmp_path / "metadata.tsv"
        metadata_table.to_csv(metadata_file, sep="\t", index=False)

        with pytest.raises(ValueError, match="Error loading protein file"):
            load_protein_data(str(protein_file), str(metadata_file))


class TestParseUniprotIdentifier:
    """Test UniProt identifier parsing"""

    def test_parse_sp_identifier(self):
        result = parse_uniprot_identifier("sp|P12345|PROT1_HUMAN")

        assert result == {"accession": "P12345", "database": "SwissProt",
                          "entry_name": "PROT1_HUMAN"}

    def test_parse_tr_identifier(self):
        result = parse_uniprot_identifier("tr|Q67890|Q67890_HUMAN")

        assert result["accession"] == "Q67890"
        assert result["database"] == "TrEMBL"

    def test_parse_isoform(self, protein_identifiers):
        result = parse_uniprot_identifier(protein_identifiers[4])

        assert result["accession"] == "P22222-2"

    def test_parse_bare_accession(self):
        assert parse_uniprot_identifier("P04637")["accession"] == "P04637"

    def test_parse_invalid_identifier(self):
        assert parse_uniprot_identifier("INVALID_ID") == {
            "accession": "", "database": "", "entry_name": ""
        }

    def test_parse_missing(self):
        assert parse_uniprot_identifier(np.nan)["accession"] == ""


class TestParseGene:
    """Test gene extraction from descriptions"""

    def test_parse_gene_with_gn(self):
        assert parse_gene_from_description("Serum albumin OS=Homo sapiens GN=ALB PE=1") == "ALB"

    def test_parse_gene_no_gene_info(self):
        assert parse_gene_from_description("Serum albumin") == ""

    def test_parse_gene_empty_description(self):
        assert parse_gene_from_description(None) == ""


class TestFeatureMatrix:
    """Test sample column detection and matrix extraction"""

    def test_identify_sample_columns(self, protein_table, metadata_table):
        columns = identify_sample_columns(protein_table, metadata_table)

        assert columns == ["Sample_1", "Sample_2", "Sample_3"]

    def test_identify_sample_columns_partial(self, protein_table, metadata_table, capsys):
        metadata = pd.concat(
            [metadata_table, pd.DataFrame({"Sample": ["Sample_9"], "Group": ["Control"]})]
        )

        columns = identify_sample_columns(protein_table, metadata)

        assert len(columns) == 3
        assert "1 metadata samples have no matching data column" in capsys.readouterr().out

    def test_identify_requires_sample_column(self, protein_table):
        with pytest.raises(ValueError, match="no 'Sample' column"):
            identify_sample_columns(protein_table, pd.DataFrame({"Name": ["Sample_1"]}))

    def test_extract_feature_matrix(self, protein_table):
        matrix = extract_feature_matrix(protein_table, ["Sample_1", "Sample_2", "Sample_3"])

        assert matrix.shape == (3, 3)
        assert matrix.index.name == "Protein"
        assert matrix.index[0] == "sp|P00001|PROT1_HUMAN"
        assert np.isnan(matrix.iloc[1, 1])

    def test_non_numeric_becomes_nan(self, protein_table):
        table = protein_table.copy()
        table["Sample_1"] = table["Sample_1"].astype(object)
        table.loc[0, "Sample_1"] = "#N/A"

        matrix = extract_feature_matrix(table, ["Sample_1", "Sample_3"])

        assert np.isnan(matrix.iloc[0, 0])

    def test_duplicate_identifiers_rejected(self, protein_table):
        table = pd.concat([protein_table, protein_table.iloc[[0]]], ignore_index=True)

        with pytest.raises(InputShapeError, match="more than once"):
            extract_feature_matrix(table, ["Sample_1"])

    def test_missing_id_column(self, protein_table):
        with pytest.raises(InputShapeError, match="no 'Accession' column"):
            extract_feature_matrix(protein_table, ["Sample_1"], id_column="Accession")

    def test_extract_protein_annotations(self, protein_table):
        annotations = extract_protein_annotations(protein_table)

        assert list(annotations["UniProt_Accession"]) == ["P00001", "P00002", "Q00003"]
        assert list(annotations["Gene"]) == ["ONE", "TWO", ""]
        assert "Description" in annotations.columns
