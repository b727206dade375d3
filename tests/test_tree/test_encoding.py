"""Tests for catalog encoding: column classification, identifier exclusion, and one-hot features."""

from __future__ import annotations

import polars as pl
import pytest
from pytest_check import check

from questree.exceptions import DegenerateDatasetError, DuplicateColumnsError, EmptyInputError, RowLengthError
from questree.tree.encoding import (
    MISSING_NUMERIC_VALUE,
    classify_column,
    encode_catalog,
    get_exclusion_reason,
    is_identifier_name,
    is_sequential_identifier,
)
from questree.tree.models import EncodingOptions


class TestClassifyColumn:
    """Tests for classify_column."""

    @pytest.mark.parametrize(
        ("cells", "expected"),
        [
            (["9.99", "12", "-3.5e1"], "numeric"),
            (["9.99", None, "12"], "numeric"),
            (["dark", "light"], "categorical"),
            (["12", "twelve"], "categorical"),
            (["1", "inf"], "categorical"),
            ([None, None], "empty"),
        ],
        ids=["all-numbers", "numbers-with-nulls", "words", "mixed", "infinite", "all-null"],
    )
    def test_classification(self, cells: list[str | None], expected: str) -> None:
        """Columns are numeric only when every present cell is a finite number.

        Args:
            cells (list[str | None]): Column cells, None for empty.
            expected (str): Expected classification.
        """
        assert classify_column(pl.Series("column", cells, dtype=pl.String)) == expected


class TestIdentifierDetection:
    """Tests for identifier-name and sequential-integer detection."""

    @pytest.mark.parametrize("name", ["id", "ID", "Product ID", "product_id", "sku", "SKU", "customer-id", "uuid"])
    def test_identifier_names_match(self, name: str) -> None:
        """Identifier names match regardless of case and separators.

        Args:
            name (str): Header to check.
        """
        assert is_identifier_name(name)

    @pytest.mark.parametrize("name", ["price", "idle_minutes", "rapid", "paid"])
    def test_ordinary_names_do_not_match(self, name: str) -> None:
        """Names that merely contain the letters 'id' are not identifiers.

        Args:
            name (str): Header to check.
        """
        assert not is_identifier_name(name)

    @pytest.mark.parametrize(
        ("cells", "expected"),
        [
            (["1", "2", "3", "4"], True),
            (["10", "11", "12"], True),
            (["1", "2"], False),
            (["1", "3", "4"], False),
            (["1.5", "2.5", "3.5"], False),
            (["1", None, "3"], False),
            (["3", "2", "1"], False),
        ],
        ids=["from-one", "offset", "too-short", "gap", "fractional", "has-null", "descending"],
    )
    def test_sequential_identifier(self, cells: list[str | None], expected: bool) -> None:
        """Only gap-free ascending integer runs of three or more rows look like a row index.

        Args:
            cells (list[str | None]): Column cells.
            expected (bool): Whether the column should be flagged.
        """
        assert is_sequential_identifier(pl.Series("n", cells, dtype=pl.String)) is expected

    def test_constant_column_is_kept(self) -> None:
        """A column with one repeated value is still a feature."""
        series = pl.Series("brand", ["Acme", "Acme", "Acme"], dtype=pl.String)

        assert get_exclusion_reason("brand", series, "categorical") is None

    def test_coordinates_are_excluded(self) -> None:
        """Latitude and longitude columns are not preference attributes."""
        series = pl.Series("lat", ["40.1", "41.7", "39.0"], dtype=pl.String)

        assert get_exclusion_reason("Lat", series, "numeric") == "coordinate"


class TestEncodeCatalog:
    """Tests for encode_catalog."""

    def test_feature_order_numeric_then_one_hot(self) -> None:
        """Numeric features come first, then one-hot features in first-appearance order."""
        # Arrange
        headers = ["roast", "price", "origin"]
        rows = [
            ["dark", "12.0", "Kenya"],
            ["light", "9.5", "Peru"],
            ["dark", "14.0", "Kenya"],
        ]

        # Act
        encoded = encode_catalog(headers, rows)

        # Assert
        with check:
            assert encoded.feature_names == ["price", "roast=dark", "roast=light", "origin=Kenya", "origin=Peru"]
        with check:
            assert encoded.vectors[1].values == [9.5, 0.0, 1.0, 0.0, 1.0]
        with check:
            assert [spec.kind for spec in encoded.feature_specs] == ["numeric"] + ["categorical"] * 4
        with check:
            assert encoded.feature_specs[1].source_column == "roast"
        with check:
            assert encoded.feature_specs[1].category == "dark"

    def test_categorical_column_expands_to_one_feature_per_value(self) -> None:
        """k distinct values produce k indicators and each row sets exactly one."""
        # Arrange
        headers = ["category", "price"]
        rows = [["Tea", "3"], ["Coffee", "4"], ["Cocoa", "5"], ["Tea", "6"], ["Coffee", "9"]]

        # Act
        encoded = encode_catalog(headers, rows)

        # Assert
        one_hot_indices = [i for i, spec in enumerate(encoded.feature_specs) if spec.source_column == "category"]
        with check:
            assert len(one_hot_indices) == 3
        for vector in encoded.vectors:
            with check:
                assert sum(vector.values[i] for i in one_hot_indices) == 1.0

    def test_identifier_columns_are_excluded_but_supply_ids(self) -> None:
        """Identifier columns never become features; their cells become product ids."""
        # Arrange
        headers = ["row", "sku", "price"]
        rows = [["1", "A-1", "5"], ["2", "A-2", "7"], ["3", "", "9"]]

        # Act
        encoded = encode_catalog(headers, rows)

        # Assert
        with check:
            assert encoded.feature_names == ["price"]
        with check:
            assert [column.name for column in encoded.excluded_columns] == ["row", "sku"]
        with check:
            assert encoded.id_column == "row"
        with check:
            assert [vector.id for vector in encoded.vectors] == ["1", "2", "3"]

    def test_sequential_column_supplies_ids_when_no_named_identifier(self) -> None:
        """A row-index column excluded by its values is used for ids when nothing is named like one."""
        # Arrange
        headers = ["n", "price"]
        rows = [["7", "5"], ["8", "7"], ["9", "9"]]

        # Act
        encoded = encode_catalog(headers, rows)

        # Assert
        with check:
            assert encoded.excluded_columns[0].reason == "sequential unique integers"
        with check:
            assert [vector.id for vector in encoded.vectors] == ["7", "8", "9"]

    def test_ids_fall_back_to_row_index(self) -> None:
        """Without an identifier column, ids are product_<row_index>."""
        encoded = encode_catalog(["price"], [["5"], ["4"]])

        assert [vector.id for vector in encoded.vectors] == ["product_0", "product_1"]

    def test_missing_numeric_cells_and_short_rows(self) -> None:
        """Short rows are padded and missing numeric cells encode as the fill value."""
        # Arrange
        headers = ["price", "rating", "roast"]
        rows = [["5", "", "dark"], ["6", "4.5"]]

        # Act
        encoded = encode_catalog(headers, rows)

        # Assert
        with check:
            assert encoded.feature_names == ["price", "rating", "roast=dark"]
        with check:
            assert encoded.vectors[0].values[1] == MISSING_NUMERIC_VALUE
        with check:
            assert encoded.vectors[1].values == [6.0, 4.5, 0.0]
        with check:
            assert encoded.vectors[1].original_row == ["6", "4.5", ""]

    def test_product_attributes_are_typed(self) -> None:
        """Numeric cells become floats, other cells stay stripped strings, empty cells are omitted."""
        encoded = encode_catalog(["sku", "price", "roast", "notes"], [["A-1", " 5.5 ", " dark ", ""]])

        assert encoded.products[0].attributes == {"sku": "A-1", "price": 5.5, "roast": "dark"}

    def test_max_categories_folds_rare_values_into_other(self) -> None:
        """With a cap, the most frequent values are kept and the rest share an Other feature."""
        # Arrange
        headers = ["origin", "price"]
        rows = [["Kenya", "10"], ["Peru", "12"], ["Kenya", "9"], ["Brazil", "14"], ["Peru", "11"], ["Java", "8"]]

        # Act
        encoded = encode_catalog(headers, rows, EncodingOptions(max_categories=3))

        # Assert
        with check:
            assert encoded.feature_names == ["price", "origin=Kenya", "origin=Peru", "origin=Other"]
        with check:
            assert encoded.vectors[3].values[1:] == [0.0, 0.0, 1.0]
        with check:
            assert encoded.vectors[5].values[1:] == [0.0, 0.0, 1.0]

    def test_rejects_empty_headers(self) -> None:
        """Missing headers raise EmptyInputError with the matching reason."""
        with pytest.raises(EmptyInputError) as exc_info:
            encode_catalog([], [["1"]])

        assert exc_info.value.reason == "missing_headers"

    def test_rejects_missing_rows(self) -> None:
        """A catalog without rows raises EmptyInputError."""
        with pytest.raises(EmptyInputError) as exc_info:
            encode_catalog(["price"], [])

        assert exc_info.value.reason == "no_rows"

    def test_rejects_duplicate_headers(self) -> None:
        """Repeated header names raise DuplicateColumnsError."""
        with pytest.raises(DuplicateColumnsError) as exc_info:
            encode_catalog(["price", "price"], [["1", "2"]])

        assert exc_info.value.duplicate_columns == ["price"]

    def test_rejects_long_rows(self) -> None:
        """A row with more cells than headers raises RowLengthError."""
        with pytest.raises(RowLengthError) as exc_info:
            encode_catalog(["price"], [["1"], ["2", "extra"]])

        assert exc_info.value.row_index == 1

    def test_only_identifier_columns_is_degenerate(self) -> None:
        """A catalog left without features raises DegenerateDatasetError naming the exclusions."""
        with pytest.raises(DegenerateDatasetError) as exc_info:
            encode_catalog(["sku", "notes"], [["A-1", ""], ["A-2", ""]])

        assert exc_info.value.excluded_columns == ["sku (identifier name)", "notes (all values are empty)"]
