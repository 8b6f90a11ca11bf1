"""
Data Import Module for Differential Abundance Toolkit

Functions for loading protein intensity tables and sample metadata, and for
extracting the numeric protein x sample matrix used for model fitting.
"""

import pandas as pd
import re
import os
from typing import Dict, List, Optional, Tuple

from .validation import InputShapeError


def _read_table(file_path: str, sep: Optional[str]) -> pd.DataFrame:
    if sep is None:
        sep = "," if file_path.lower().endswith(".csv") else "\t"
    return pd.read_csv(file_path, sep=sep)


def load_protein_data(
    protein_file: str, metadata_file: str, sep: Optional[str] = None
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Load protein quantitation data and sample metadata.

    Files ending in .csv are read as comma-separated, anything else as
    tab-delimited, unless sep is given.

    Parameters:
    -----------
    protein_file : str
        Path to protein quantitation table (proteins x samples)
    metadata_file : str
        Path to sample metadata table (one row per sample)
    sep : str, optional
        Field separator for both files

    Returns:
    --------
    protein_data : pd.DataFrame
        Protein quantitation data
    metadata : pd.DataFrame
        Sample metadata
    """

    print("=== LOADING PROTEIN DATA ===\n")

    for file_path, file_type in [(protein_file, "protein"), (metadata_file, "metadata")]:
        if not os.path.exists(file_path):
            raise FileNotFoundError(f"{file_type.title()} file not found: {file_path}")

    try:
        protein_data = _read_table(protein_file, sep)
        print(f"✓ Loaded protein data: {protein_data.shape}")
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise ValueError(f"Error loading protein file: {e}") from e

    try:
        metadata = _read_table(metadata_file, sep)
        print(f"✓ Loaded metadata: {metadata.shape}")
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise ValueError(f"Error loading metadata file: {e}") from e

    print("\nData loading completed successfully!")
    return protein_data, metadata


def parse_uniprot_identifier(protein_id: str) -> Dict[str, str]:
    """
    Parse UniProt identifier from protein column.

    Handles formats like: sp|P12345|PROT_HUMAN -> P12345

    Returns:
    --------
    dict with keys: accession, database, entry_name
    """
    if pd.isna(protein_id):
        return {'accession': '', 'database': '', 'entry_name': ''}

    protein_id = str(protein_id).strip()

    match = re.match(r'^(sp|tr)\|([A-Z0-9]+(?:-\d+)?)\|([A-Za-z0-9_]+)', protein_id)
    if match:
        db = 'SwissProt' if match.group(1) == 'sp' else 'TrEMBL'
        return {
            'accession': match.group(2),
            'database': db,
            'entry_name': match.group(3)
        }

    acc_match = re.search(r'([OPQ][0-9][A-Z0-9]{3}[0-9]|[A-NR-Z][0-9](?:[A-Z][A-Z0-9]{2}[0-9]){1,2})', protein_id)
    if acc_match:
        return {
            'accession': acc_match.group(1),
            'database': '',
            'entry_name': ''
        }

    return {'accession': '', 'database': '', 'entry_name': ''}


def parse_gene_from_description(protein_description: str) -> str:
    """Extract gene name from protein description using GN= pattern."""
    if pd.isna(protein_description):
        return ''

    gene_match = re.search(r'GN=([^=\s]+)', str(protein_description).strip())
    return gene_match.group(1).strip() if gene_match else ''


def identify_sample_columns(
    data: pd.DataFrame, metadata: pd.DataFrame, sample_column: str = "Sample"
) -> List[str]:
    """
    Identify sample columns in quantitation data based on metadata.

    A column is a sample column when its name equals a metadata sample name.
    Columns are returned in data order.

    Parameters:
    -----------
    data : pd.DataFrame
        Quantitation data
    metadata : pd.DataFrame
        Sample metadata
    sample_column : str
        Metadata column holding sample names

    Returns:
    --------
    List[str] : Sample column names
    """
    if sample_column not in metadata.columns:
        raise ValueError(
            f"Metadata has no '{sample_column}' column. Available: {list(metadata.columns)}"
        )

    metadata_samples = set(metadata[sample_column].astype(str))
    sample_columns = [col for col in data.columns if str(col) in metadata_samples]

    print(f"Identified {len(sample_columns)} sample columns")
    unmatched = len(metadata_samples) - len(sample_columns)
    if unmatched > 0:
        print(f"Warning: {unmatched} metadata samples have no matching data column")
    return sample_columns


def extract_feature_matrix(
    data: pd.DataFrame, sample_columns: List[str], id_column: str = "Protein"
) -> pd.DataFrame:
    """
    Extract the numeric protein x sample matrix indexed by protein identifier.

    Non-numeric entries become NaN; missing values are not filled here.

    Raises:
    -------
    InputShapeError: If the id column is missing or identifiers repeat
    """
    if id_column not in data.columns:
        raise InputShapeError(
            f"Protein data has no '{id_column}' column. Available: {list(data.columns)[:10]}"
        )
    if not sample_columns:
        raise InputShapeError("No sample columns given")

    duplicated = data[id_column][data[id_column].duplicated()].unique().tolist()
    if duplicated:
        raise InputShapeError(
            f"{len(duplicated)} protein identifiers occur more than once: {duplicated[:5]}"
        )

    matrix = data[sample_columns].apply(pd.to_numeric, errors="coerce")
    matrix.index = data[id_column].astype(str).values
    matrix.index.name = id_column
    matrix.columns = [str(c) for c in sample_columns]

    print(f"Feature matrix: {matrix.shape[0]} proteins x {matrix.shape[1]} samples")
    return matrix


def extract_protein_annotations(
    data: pd.DataFrame, id_column: str = "Protein", description_column: Optional[str] = None
) -> pd.DataFrame:
    """
    Build an annotation table (accession, database, entry name, gene) keyed
    by protein identifier, for joining onto result tables.
    """
    if id_column not in data.columns:
        raise InputShapeError(f"Protein data has no '{id_column}' column")

    if description_column is None:
        for candidate in ['Protein Description', 'Description', 'ProteinDescription']:
            if candidate in data.columns:
                description_column = candidate
                break

    parsed = data[id_column].apply(parse_uniprot_identifier).apply(pd.Series)
    annotations = pd.DataFrame({
        id_column: data[id_column].astype(str).values,
        'UniProt_Accession': parsed['accession'].values,
        'UniProt_Database': parsed['database'].values,
        'UniProt_Entry_Name': parsed['entry_name'].values,
    })

    if description_column is not None:
        descriptions = data[description_column]
        annotations['Gene'] = descriptions.apply(parse_gene_from_description).values
        annotations['Description'] = descriptions.fillna('').astype(str).values
    else:
        annotations['Gene'] = ''

    return annotations.drop_duplicates(subset=[id_column]).reset_index(drop=True)
