"""
Tests for the validation module - sample alignment and exception types.
"""

import pytest
import pandas as pd

import differential_toolkit as dtk
from differential_toolkit.validation import (
    ContrastError,
    DesignMatrixError,
    InputShapeError,
    SampleMatchingError,
    align_samples,
    validate_sample_alignment,
)


class TestExceptionTypes:
    """Toolkit exceptions are ValueErrors."""

    @pytest.mark.parametrize(
        "exc_type", [SampleMatchingError, DesignMatrixError, ContrastError, InputShapeError]
    )
    def test_subclass_value_error(self, exc_type):
        with pytest.raises(ValueError, match="boom"):
            raise exc_type("boom")

    def test_exported_at_top_level(self):
        assert dtk.SampleMatchingError is SampleMatchingError
        assert dtk.DesignMatrixError is DesignMatrixError


class TestValidateSampleAlignment:
    """Test comparison of data columns with metadata samples."""

    def test_all_samples_found(self):
        results = validate_sample_alignment(["S1", "S2", "S3"], ["S1", "S2", "S3"], verbose=False)

        assert results["is_valid"] is True
        assert results["errors"] == []
        assert results["warnings"] == []
        assert results["diagnostics"]["n_shared_samples"] == 3
        assert results["diagnostics"]["same_order"] is True

    def test_different_order_is_reported(self):
        results = validate_sample_alignment(["S1", "S2", "S3"], ["S3", "S1", "S2"], verbose=False)

        assert results["is_valid"] is True
        assert results["diagnostics"]["same_order"] is False

    def test_missing_samples_are_warnings(self):
        results = validate_sample_alignment(["S1", "S2", "S4"], ["S1", "S2", "S3"], verbose=False)

        assert results["is_valid"] is True
        assert results["diagnostics"]["missing_in_metadata"] == ["S4"]
        assert results["diagnostics"]["missing_in_data"] == ["S3"]
        assert len(results["warnings"]) == 2

    def test_no_shared_samples_is_error(self):
        results = validate_sample_alignment(["A", "B"], ["C", "D"], verbose=False)

        assert results["is_valid"] is False
        assert any("No samples are shared" in e for e in results["errors"])

    def test_duplicate_samples_are_errors(self):
        results = validate_sample_alignment(["S1", "S1", "S2"], ["S1", "S2", "S2"], verbose=False)

        assert results["is_valid"] is False
        assert len(results["errors"]) == 2

    def test_verbose_prints_report(self, capsys):
        validate_sample_alignment(["S1"], ["S1"], verbose=True)

        captured = capsys.readouterr()
        assert "SAMPLE ALIGNMENT VALIDATION" in captured.out
        assert "Validation passed" in captured.out


class TestAlignSamples:
    """Test reordering metadata to the matrix column order."""

    def test_reorders_to_column_order(self):
        metadata = pd.DataFrame({"Sample": ["S3", "S1", "S2"], "Group": ["B", "A", "A"]})

        aligned = align_samples(["S1", "S2", "S3"], metadata)

        assert list(aligned.index) == ["S1", "S2", "S3"]
        assert list(aligned["Group"]) == ["A", "A", "B"]

    def test_extra_metadata_rows_dropped(self):
        metadata = pd.DataFrame({"Sample": ["S1", "S2", "S9"], "Group": ["A", "B", "C"]})

        aligned = align_samples(["S2", "S1"], metadata)

        assert list(aligned.index) == ["S2", "S1"]

    def test_numeric_sample_names_matched_as_strings(self):
        metadata = pd.DataFrame({"Sample": [101, 102], "Group": ["A", "B"]})

        aligned = align_samples(["102", "101"], metadata)

        assert list(aligned["Group"]) == ["B", "A"]

    def test_missing_metadata_raises(self):
        metadata = pd.DataFrame({"Sample": ["S1", "S2"], "Group": ["A", "B"]})

        with pytest.raises(SampleMatchingError, match="no metadata row"):
            align_samples(["S1", "S2", "S3"], metadata)

    def test_duplicate_metadata_raises(self):
        metadata = pd.DataFrame({"Sample": ["S1", "S1", "S2"], "Group": ["A", "A", "B"]})

        with pytest.raises(SampleMatchingError, match="Duplicate"):
            align_samples(["S1", "S2"], metadata)

    def test_missing_sample_column_raises(self):
        metadata = pd.DataFrame({"Name": ["S1"], "Group": ["A"]})

        with pytest.raises(SampleMatchingError, match="no 'Sample' column"):
            align_samples(["S1"], metadata)
