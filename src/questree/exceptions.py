"""Custom exceptions for questree.

Every exception derives from `QuestreeError`, so callers can catch the whole
family at once. Input-validation failures additionally subclass `ValueError`:

- EmptyInputError: No headers or no data rows were supplied.
- DegenerateDatasetError: No usable feature remains after identifier exclusion.
- DuplicateColumnsError: Catalog headers repeat a column name.
- RowLengthError: A data row has more cells than there are headers.
- DimensionMismatchError: A product vector and a weight vector differ in length.
- TreeDocumentError: A stored tree document violates structural invariants.

Navigation failures:

- InvalidNodeError: An operation was applied to the wrong node variant.
- NodeNotFoundError: A node id does not exist in the tree (also a `KeyError`).

Fatal contract violations:

- TreeInvariantError: The builder was handed an empty product subset.
"""

from __future__ import annotations

from typing import Literal

type EmptyInputReason = Literal["missing_headers", "no_rows"]


class QuestreeError(Exception):
    """Base exception for all questree errors."""


class EmptyInputError(QuestreeError, ValueError):
    """Raised when a catalog has no headers or no data rows.

    Attributes:
        reason (EmptyInputReason): `"missing_headers"` or `"no_rows"`.

    Examples:
        >>> err = EmptyInputError("no_rows")
        >>> err.reason
        'no_rows'
    """

    reason: EmptyInputReason

    def __init__(self, reason: EmptyInputReason, message: str | None = None) -> None:
        """Initialize EmptyInputError.

        Args:
            reason (EmptyInputReason): Which part of the input is empty.
            message (str | None): Optional override for the default message.
        """
        default = {
            "missing_headers": "Catalog headers are missing; cannot build a decision tree.",
            "no_rows": "Catalog has no data rows; cannot build a decision tree.",
        }[reason]
        super().__init__(message or default)
        self.reason = reason

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Representation including the message and reason.
        """
        return f"{self.__class__.__name__}(message={str(self)!r}, reason={self.reason!r})"


class DegenerateDatasetError(QuestreeError, ValueError):
    """Raised when a catalog yields zero usable features.

    A catalog whose features are all constant is *not* degenerate in this
    sense; it builds into a single leaf. This error means there is nothing
    to encode at all.

    Attributes:
        excluded_columns (list[str]): Column names that were dropped, each
            annotated with the exclusion reason, e.g. `"sku (identifier)"`.
    """

    excluded_columns: list[str]

    def __init__(self, message: str, *, excluded_columns: list[str] | None = None) -> None:
        """Initialize DegenerateDatasetError.

        Args:
            message (str): Description of the failure.
            excluded_columns (list[str] | None): Annotated names of dropped columns.
        """
        super().__init__(message)
        self.excluded_columns = excluded_columns or []

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Representation including the message and excluded columns.
        """
        return f"{self.__class__.__name__}(message={str(self)!r}, excluded_columns={self.excluded_columns!r})"


class DuplicateColumnsError(QuestreeError, ValueError):
    """Raised when catalog headers contain duplicate names.

    Attributes:
        columns (list[str]): The header list that contains duplicates.
        duplicate_columns (list[str]): The specific names that are
            duplicated (each listed once).

    Examples:
        >>> err = DuplicateColumnsError(columns=["price", "price", "rating"])
        >>> err.duplicate_columns
        ['price']
    """

    columns: list[str]
    duplicate_columns: list[str]

    def __init__(self, columns: list[str]) -> None:
        """Initialize DuplicateColumnsError.

        Args:
            columns (list[str]): The header list containing duplicates.
        """
        seen: set[str] = set()
        duplicates: list[str] = []
        for col in columns:
            if col in seen and col not in duplicates:
                duplicates.append(col)
            seen.add(col)
        super().__init__(f"Duplicate column names are not allowed: {duplicates}")
        self.columns = columns
        self.duplicate_columns = duplicates


class RowLengthError(QuestreeError, ValueError):
    """Raised when a data row has more cells than the header.

    Attributes:
        row_index (int): Zero-based index of the offending row.
        expected (int): Number of headers.
        actual (int): Number of cells in the row.
    """

    row_index: int
    expected: int
    actual: int

    def __init__(self, *, row_index: int, expected: int, actual: int) -> None:
        """Initialize RowLengthError.

        Args:
            row_index (int): Zero-based index of the offending row.
            expected (int): Number of headers.
            actual (int): Number of cells in the row.
        """
        super().__init__(f"Row {row_index} has {actual} cells but only {expected} headers")
        self.row_index = row_index
        self.expected = expected
        self.actual = actual


class DimensionMismatchError(QuestreeError, ValueError):
    """Raised when a product vector and a weight vector differ in length.

    Attributes:
        expected (int): Length of the weight vector.
        actual (int): Length of the product's value vector.

    Examples:
        >>> err = DimensionMismatchError(expected=3, actual=2)
        >>> str(err)
        'Product values and weights length mismatch: expected 3, got 2'
    """

    expected: int
    actual: int

    def __init__(self, *, expected: int, actual: int) -> None:
        """Initialize DimensionMismatchError.

        Args:
            expected (int): Length of the weight vector.
            actual (int): Length of the product's value vector.
        """
        super().__init__(f"Product values and weights length mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class InvalidNodeError(QuestreeError):
    """Raised when an operation is applied to the wrong node variant.

    Attributes:
        node_type (str): The `type` tag of the node that was rejected.
    """

    node_type: str

    def __init__(self, message: str, *, node_type: str) -> None:
        """Initialize InvalidNodeError.

        Args:
            message (str): Description of the rejected operation.
            node_type (str): The `type` tag of the rejected node.
        """
        super().__init__(message)
        self.node_type = node_type

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Representation including the message and node type.
        """
        return f"{self.__class__.__name__}(message={str(self)!r}, node_type={self.node_type!r})"


class NodeNotFoundError(QuestreeError, KeyError):
    """Raised when a node id does not exist in a tree.

    Attributes:
        node_id (str): The node id that was looked up.
    """

    node_id: str

    def __init__(self, node_id: str) -> None:
        """Initialize NodeNotFoundError.

        Args:
            node_id (str): The node id that was looked up.
        """
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        """Return a readable message instead of KeyError's quoted key.

        Returns:
            str: The error message.
        """
        return f"Node '{self.node_id}' not found in tree"


class TreeInvariantError(QuestreeError, RuntimeError):
    """Raised when the tree builder's internal contract is violated.

    This signals a programming error (e.g. an empty product subset reaching
    the recursive builder) rather than bad user input.
    """


class TreeDocumentError(QuestreeError, ValueError):
    """Raised when a stored tree document violates structural invariants.

    Attributes:
        problems (list[str]): One entry per violated invariant.
    """

    problems: list[str]

    def __init__(self, problems: list[str]) -> None:
        """Initialize TreeDocumentError.

        Args:
            problems (list[str]): One entry per violated invariant.
        """
        super().__init__("Invalid tree document: " + "; ".join(problems))
        self.problems = problems
