"""Catalog encoding: column classification, identifier exclusion, and one-hot feature vectors."""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Final, Literal, NamedTuple

import numpy as np
import polars as pl
from loguru import logger

from questree.exceptions import DegenerateDatasetError, DuplicateColumnsError, EmptyInputError, RowLengthError
from questree.tree.models import EncodingOptions, FeatureSpec, Product, ProductVector

type ColumnKind = Literal["numeric", "categorical", "empty"]

# Missing or unparseable cells in numeric columns encode as this value.
MISSING_NUMERIC_VALUE: Final[float] = 0.0
OTHER_CATEGORY: Final[str] = "Other"

# ---------------------------------------------------------------------------
# Public helpers -- Column classification
# ---------------------------------------------------------------------------


def classify_column(series: pl.Series) -> ColumnKind:
    """Classify a string column as numeric, categorical, or empty.

    A column is numeric when every non-null cell parses as a finite number.
    Empty cells are represented as nulls and do not affect classification.

    Args:
        series (pl.Series): A `pl.String` column with empty cells as nulls.

    Returns:
        ColumnKind: `"numeric"`, `"categorical"`, or `"empty"` when the
            column holds no values at all.

    Examples:
        >>> classify_column(pl.Series("price", ["9.99", None, "12"]))
        'numeric'
        >>> classify_column(pl.Series("roast", ["dark", "light"]))
        'categorical'
    """
    non_null = series.drop_nulls()
    if non_null.len() == 0:
        return "empty"
    parsed = non_null.cast(pl.Float64, strict=False)
    if parsed.null_count() == 0 and bool(parsed.is_finite().all()):
        return "numeric"
    return "categorical"


# ---------------------------------------------------------------------------
# Public helpers -- Identifier and exclusion detection
# ---------------------------------------------------------------------------

_IDENTIFIER_NAMES: Final[frozenset[str]] = frozenset({
    "id",
    "productid",
    "itemid",
    "sku",
    "uuid",
    "guid",
    "rowid",
    "index",
    "row",
    "serial",
    "serialnumber",
})
_IDENTIFIER_SUFFIX_PATTERN: Final[re.Pattern[str]] = re.compile(r"^\w+?[\s_-]id$", re.IGNORECASE)
_COORDINATE_NAMES: Final[frozenset[str]] = frozenset({"lat", "lng", "lon", "latitude", "longitude"})
_MIN_SEQUENTIAL_ROWS: Final[int] = 3


def _normalize_name(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", name.lower())


def is_identifier_name(name: str) -> bool:
    """Return `True` if a column name looks like a row identifier.

    Matching is case-insensitive and ignores punctuation and whitespace, so
    `"ID"`, `"product_id"`, and `"Product ID"` all match. Names ending in a
    separated `id` token (e.g. `"customer_id"`) match as well.

    Args:
        name (str): The column header.

    Returns:
        bool: Whether the name matches a known identifier pattern.
    """
    stripped = name.strip()
    return _normalize_name(stripped) in _IDENTIFIER_NAMES or bool(_IDENTIFIER_SUFFIX_PATTERN.match(stripped))


def is_sequential_identifier(series: pl.Series) -> bool:
    """Return `True` if a column holds row-index-like integers.

    The column qualifies when it has no empty cells, at least three rows,
    every cell is an integer, and each row is exactly one greater than the
    previous one (e.g. `1, 2, 3, ...`). Such values are necessarily unique.

    Args:
        series (pl.String): A `pl.String` column with empty cells as nulls.

    Returns:
        bool: Whether the column looks like a row index.
    """
    if series.len() < _MIN_SEQUENTIAL_ROWS or series.null_count() > 0:
        return False
    parsed = series.cast(pl.Float64, strict=False)
    if parsed.null_count() > 0 or not bool(parsed.is_finite().all()):
        return False
    if not bool((parsed == parsed.floor()).all()):
        return False
    steps = parsed.diff().drop_nulls()
    return bool((steps == 1.0).all())


def get_exclusion_reason(name: str, series: pl.Series, kind: ColumnKind) -> str | None:
    """Return the reason a column is excluded from features, or `None` to keep it.

    Constant columns are deliberately kept: a catalog of identical products
    must still encode (and then collapse into a single leaf).

    Args:
        name (str): The column header.
        series (pl.Series): The column with empty cells as nulls.
        kind (ColumnKind): The column's classification.

    Returns:
        str | None: A human-readable reason, or `None` if the column is usable.
    """
    if kind == "empty":
        return "all values are empty"
    if is_identifier_name(name):
        return "identifier name"
    if is_sequential_identifier(series):
        return "sequential unique integers"
    if _normalize_name(name) in _COORDINATE_NAMES:
        return "coordinate"
    return None


class ExcludedColumn(NamedTuple):
    """A catalog column that was excluded from feature extraction, with the reason.

    Attributes:
        name (str): The column header.
        reason (str): Human-readable explanation for the exclusion.
    """

    name: str
    reason: str


@dataclass(frozen=True)
class EncodedCatalog:
    """The result of encoding a catalog into feature vectors.

    Attributes:
        headers (list[str]): The catalog headers.
        products (list[Product]): One typed product per row.
        vectors (list[ProductVector]): One feature vector per row, aligned with `products`.
        feature_names (list[str]): Ordering shared by every vector.
        feature_specs (list[FeatureSpec]): Origin of each feature, parallel to `feature_names`.
        excluded_columns (list[ExcludedColumn]): Columns dropped from features.
        id_column (str | None): The column product ids were read from, if any.
    """

    headers: list[str]
    products: list[Product]
    vectors: list[ProductVector]
    feature_names: list[str]
    feature_specs: list[FeatureSpec]
    excluded_columns: list[ExcludedColumn] = field(default_factory=list)
    id_column: str | None = None


# ---------------------------------------------------------------------------
# Public interface -- Catalog encoding
# ---------------------------------------------------------------------------


def encode_catalog(
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    options: EncodingOptions | None = None,
) -> EncodedCatalog:
    """Encode tokenized catalog rows into numeric feature vectors.

    Numeric columns become one feature each. Categorical columns expand into
    one 0/1 feature per distinct value, named `"<column>=<value>"`, in order
    of first appearance. Identifier, coordinate, and all-empty columns are
    excluded from features but stay available through `original_row` and
    `Product.attributes`. Numeric features come first (in header order),
    followed by categorical features (in header order).

    Args:
        headers (Sequence[str]): Column names.
        rows (Sequence[Sequence[str]]): Data rows; short rows are padded with
            empty cells.
        options (EncodingOptions | None): Encoding options. Defaults to
            `EncodingOptions.from_settings()`.

    Returns:
        EncodedCatalog: Products, vectors, and feature metadata.

    Raises:
        EmptyInputError: If `headers` or `rows` is empty.
        DuplicateColumnsError: If a header name repeats.
        RowLengthError: If a row has more cells than there are headers.
        DegenerateDatasetError: If no usable feature remains after exclusion.
    """
    options = options if options is not None else EncodingOptions.from_settings()
    header_list = list(headers)
    if not header_list:
        raise EmptyInputError("missing_headers")
    if not rows:
        raise EmptyInputError("no_rows")
    if len(set(header_list)) != len(header_list):
        raise DuplicateColumnsError(columns=header_list)

    original_rows = _pad_rows(header_list, rows)
    frame = _to_string_frame(header_list, original_rows)

    kinds: dict[str, ColumnKind] = {name: classify_column(frame[name]) for name in header_list}
    kept: list[str] = []
    excluded: list[ExcludedColumn] = []
    for name in header_list:
        reason = get_exclusion_reason(name, frame[name], kinds[name])
        if reason is None:
            kept.append(name)
        else:
            excluded.append(ExcludedColumn(name=name, reason=reason))
            logger.debug("Column excluded from features", column=name, reason=reason)

    if not kept:
        excluded_labels = [f"{ec.name} ({ec.reason})" for ec in excluded]
        raise DegenerateDatasetError(
            f"No usable feature columns remain after exclusion. Excluded: {excluded_labels}",
            excluded_columns=excluded_labels,
        )

    numeric_columns = [name for name in kept if kinds[name] == "numeric"]
    categorical_columns = [name for name in kept if kinds[name] == "categorical"]

    column_arrays: list[np.ndarray] = []
    specs: list[FeatureSpec] = []
    for name in numeric_columns:
        column_arrays.append(_encode_numeric_series(frame[name]))
        specs.append(FeatureSpec(name=name, source_column=name, kind="numeric"))
    for name in categorical_columns:
        arrays, column_specs = _encode_categorical_series(frame[name], options.max_categories)
        column_arrays.extend(arrays)
        specs.extend(column_specs)

    feature_matrix = np.column_stack(column_arrays)
    id_column = _select_id_column(excluded)
    product_ids = _product_ids(frame, id_column)

    products = [
        Product(id=product_id, original_row=row, attributes=_row_attributes(header_list, row, kinds))
        for product_id, row in zip(product_ids, original_rows, strict=True)
    ]
    vectors = [
        ProductVector(id=product_id, values=feature_row.tolist(), original_row=row)
        for product_id, feature_row, row in zip(product_ids, feature_matrix, original_rows, strict=True)
    ]

    feature_names = [spec.name for spec in specs]
    logger.info(
        "Catalog encoded",
        products=len(vectors),
        features=len(feature_names),
        numeric_columns=len(numeric_columns),
        categorical_columns=len(categorical_columns),
        excluded=[ec.name for ec in excluded],
    )
    return EncodedCatalog(
        headers=header_list,
        products=products,
        vectors=vectors,
        feature_names=feature_names,
        feature_specs=specs,
        excluded_columns=excluded,
        id_column=id_column,
    )


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _pad_rows(headers: list[str], rows: Sequence[Sequence[str]]) -> list[list[str]]:
    """Copy rows, padding short ones with empty cells.

    Args:
        headers (list[str]): Column names.
        rows (Sequence[Sequence[str]]): Raw data rows.

    Returns:
        list[list[str]]: Rows with exactly `len(headers)` cells each.

    Raises:
        RowLengthError: If a row has more cells than there are headers.
    """
    width = len(headers)
    padded: list[list[str]] = []
    for row_index, row in enumerate(rows):
        cells = [str(cell) if cell is not None else "" for cell in row]
        if len(cells) > width:
            raise RowLengthError(row_index=row_index, expected=width, actual=len(cells))
        padded.append(cells + [""] * (width - len(cells)))
    return padded


def _to_string_frame(headers: list[str], rows: list[list[str]]) -> pl.DataFrame:
    """Build a string DataFrame with stripped cells and empty cells as nulls.

    Args:
        headers (list[str]): Column names.
        rows (list[list[str]]): Padded data rows.

    Returns:
        pl.DataFrame: One `pl.String` column per header.
    """
    columns = {
        name: [row[index].strip() or None for row in rows]
        for index, name in enumerate(headers)
    }
    return pl.DataFrame(columns, schema={name: pl.String for name in headers})


def _encode_numeric_series(series: pl.Series) -> np.ndarray:
    """Parse a numeric string column to float64, filling missing cells.

    Args:
        series (pl.Series): A column classified as numeric.

    Returns:
        np.ndarray: 1-D float64 array with missing cells set to `MISSING_NUMERIC_VALUE`.
    """
    parsed = series.cast(pl.Float64, strict=False).fill_null(MISSING_NUMERIC_VALUE)
    return parsed.to_numpy(allow_copy=True).astype(np.float64)


def _encode_categorical_series(
    series: pl.Series,
    max_categories: int | None,
) -> tuple[list[np.ndarray], list[FeatureSpec]]:
    """One-hot encode a categorical string column.

    Args:
        series (pl.Series): A column classified as categorical.
        max_categories (int | None): Cap on features for this column. When
            the column has more distinct values, the most frequent
            `max_categories - 1` are kept (ties broken by first appearance)
            and the rest share one `"<column>=Other"` feature.

    Returns:
        tuple[list[np.ndarray], list[FeatureSpec]]: Parallel lists of 0/1
            float64 arrays and feature specs.
    """
    name = series.name
    categories: list[str] = series.drop_nulls().unique(maintain_order=True).to_list()
    overflow = max_categories is not None and len(categories) > max_categories
    if overflow:
        counts = Counter(series.drop_nulls().to_list())
        # sorted() is stable, so equally frequent values keep first-appearance order.
        frequent = set(sorted(categories, key=lambda value: -counts[value])[: max_categories - 1])
        categories = [value for value in categories if value in frequent]

    arrays: list[np.ndarray] = []
    specs: list[FeatureSpec] = []
    for value in categories:
        indicator = (series == value).fill_null(False).cast(pl.Float64)
        arrays.append(indicator.to_numpy(allow_copy=True).astype(np.float64))
        specs.append(FeatureSpec(name=f"{name}={value}", source_column=name, kind="categorical", category=value))

    if overflow:
        other_label = OTHER_CATEGORY if OTHER_CATEGORY not in categories else f"{OTHER_CATEGORY} values"
        indicator = (series.is_not_null() & ~series.is_in(categories)).cast(pl.Float64)
        arrays.append(indicator.to_numpy(allow_copy=True).astype(np.float64))
        specs.append(
            FeatureSpec(name=f"{name}={other_label}", source_column=name, kind="categorical", category=other_label)
        )
    return arrays, specs


def _select_id_column(excluded: list[ExcludedColumn]) -> str | None:
    """Pick the column that supplies product ids.

    Args:
        excluded (list[ExcludedColumn]): Columns dropped from features.

    Returns:
        str | None: The first identifier-named column, else the first
            sequential-integer column, else `None`.
    """
    for reason in ("identifier name", "sequential unique integers"):
        for column in excluded:
            if column.reason == reason:
                return column.name
    return None


def _product_ids(frame: pl.DataFrame, id_column: str | None) -> list[str]:
    """Derive one id per row from the id column, falling back to the row index.

    Args:
        frame (pl.DataFrame): The stripped string frame.
        id_column (str | None): Column to read ids from.

    Returns:
        list[str]: Product ids; rows with an empty id cell get `product_<row_index>`.
    """
    if id_column is None:
        return [f"product_{row_index}" for row_index in range(frame.height)]
    cells = frame[id_column].to_list()
    return [cell if cell is not None else f"product_{row_index}" for row_index, cell in enumerate(cells)]


def _row_attributes(headers: list[str], row: list[str], kinds: dict[str, ColumnKind]) -> dict[str, float | str]:
    """Build the typed attribute mapping of one product.

    Args:
        headers (list[str]): Column names.
        row (list[str]): Padded raw cells.
        kinds (dict[str, ColumnKind]): Classification of every column.

    Returns:
        dict[str, float | str]: Floats for numeric columns, stripped strings
            otherwise. Empty cells are omitted.
    """
    attributes: dict[str, float | str] = {}
    for name, cell in zip(headers, row, strict=True):
        stripped = cell.strip()
        if not stripped:
            continue
        attributes[name] = float(stripped) if kinds[name] == "numeric" else stripped
    return attributes
