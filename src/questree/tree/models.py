"""Pydantic models for catalog encoding, oblique trees, attribute profiles, and questionnaires."""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Annotated, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from questree.config import get_settings
from questree.identifier import NodeId, Side

# ---------------------------------------------------------------------------
# Public type aliases
# ---------------------------------------------------------------------------

type FeatureKind = Literal["numeric", "categorical"]

type AttributeType = Literal["numeric", "categorical", "attribute", "unknown"]

type SemanticKind = Literal[
    "price",
    "rating",
    "percentage",
    "duration",
    "dimension",
    "weight",
    "count",
    "coordinate",
    "identifier",
    "unknown",
]

type PreferenceDirection = Literal["higher_better", "lower_better", "neutral"]

type ValueScale = Literal["small", "medium", "large"]

type QuestionType = Literal["hyperplane", "attribute"]

# ---------------------------------------------------------------------------
# Catalog models
# ---------------------------------------------------------------------------


class Product(BaseModel):
    """One catalog row with its typed attribute values.

    Attributes:
        id (str): Stable product identifier taken from the catalog's
            identifier column, or `product_<row_index>` when there is none.
        original_row (list[str]): The raw cells, kept for display and audit.
        attributes (dict[str, float | str]): Column name to parsed value.
            Cells of numeric columns are floats, all others are stripped
            strings. Empty cells are omitted.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Stable product identifier.")
    original_row: list[str] = Field(description="Raw catalog cells in header order.")
    attributes: dict[str, float | str] = Field(
        default_factory=dict,
        description="Column name to parsed cell value; empty cells are omitted.",
    )


class ProductVector(BaseModel):
    """A product encoded as a numeric feature vector.

    Positions in `values` correspond one-to-one with the `feature_names` of
    the tree or catalog the vector belongs to.

    Attributes:
        id (str): Product identifier.
        values (list[float]): Encoded feature values.
        original_row (list[str]): The raw cells, kept for display and audit.

    Examples:
        >>> ProductVector(id="sku-1", values=[12.5, 1.0], original_row=["sku-1", "12.5", "Coffee"])
        ProductVector(id='sku-1', values=[12.5, 1.0], original_row=['sku-1', '12.5', 'Coffee'])
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Product identifier.")
    values: list[float] = Field(description="Encoded feature values in feature_names order.")
    original_row: list[str] = Field(description="Raw catalog cells in header order.")


class FeatureSpec(BaseModel):
    """Describes where one encoded feature came from.

    Attributes:
        name (str): Feature name, e.g. `"price"` or `"category=Coffee"`.
        source_column (str): The catalog column the feature was derived from.
        kind (FeatureKind): `"numeric"` for a parsed column, `"categorical"`
            for a one-hot indicator.
        category (str | None): The category value a one-hot feature tests
            for; `None` for numeric features.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Feature name.")
    source_column: str = Field(description="Catalog column the feature was derived from.")
    kind: FeatureKind = Field(description="Numeric column or one-hot categorical indicator.")
    category: str | None = Field(default=None, description="One-hot category value; None for numeric.")


class EncodingOptions(BaseModel):
    """Options for `encode_catalog`.

    Attributes:
        max_categories (int | None): Maximum one-hot features per categorical
            column. The most frequent `max_categories - 1` values are kept
            and the remainder fold into `"<column>=Other"`. `None` keeps
            every observed value.
    """

    model_config = ConfigDict(frozen=True)

    max_categories: int | None = Field(
        default=None,
        ge=2,
        description="One-hot cap per categorical column; None keeps every observed value.",
    )

    @classmethod
    def from_settings(cls) -> EncodingOptions:
        """Build options from the `QUESTREE_*` environment defaults.

        Returns:
            EncodingOptions: Options populated from `get_settings()`.
        """
        return cls(max_categories=get_settings().max_categories)


class BuildOptions(BaseModel):
    """Options for the oblique tree builder.

    Caller-supplied values are used verbatim. The only early stop beyond
    these limits is the builder's fallback to a leaf when no admissible
    split exists.

    Attributes:
        max_depth (int): Maximum number of tree levels; a lone leaf has depth 1.
        min_leaf_size (int): A subset with at most this many products becomes a leaf.
        min_gain (float): Minimum impurity reduction required to accept a split.
        min_branch_fraction (float): Minimum share of a node's products that
            each branch must receive for a split to be admissible.

    Examples:
        >>> BuildOptions(max_depth=3, min_leaf_size=1).max_depth
        3
    """

    model_config = ConfigDict(frozen=True)

    max_depth: int = Field(default=6, ge=1, description="Maximum number of tree levels.")
    min_leaf_size: int = Field(default=3, ge=1, description="Subsets at or below this size become leaves.")
    min_gain: float = Field(default=1e-4, ge=0.0, description="Minimum impurity reduction per split.")
    min_branch_fraction: float = Field(
        default=0.05,
        ge=0.0,
        lt=0.5,
        description="Minimum share of a node's products required on each branch.",
    )

    @classmethod
    def from_settings(cls) -> BuildOptions:
        """Build options from the `QUESTREE_*` environment defaults.

        Returns:
            BuildOptions: Options populated from `get_settings()`.
        """
        settings = get_settings()
        return cls(
            max_depth=settings.max_depth,
            min_leaf_size=settings.min_leaf_size,
            min_gain=settings.min_gain,
            min_branch_fraction=settings.min_branch_fraction,
        )


# ---------------------------------------------------------------------------
# Tree node models
# ---------------------------------------------------------------------------


class LeafNode(BaseModel):
    """A terminal tree node holding the products of one partition.

    Attributes:
        type (Literal["leaf"]): Discriminator field; always `"leaf"`.
        feature_names (list[str]): Feature names shared by the whole tree.
        products (list[ProductVector]): The products that reached this leaf.
            Never empty.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["leaf"] = Field(default="leaf", description='Discriminator field. Always "leaf".')
    feature_names: list[str] = Field(description="Feature names shared by the whole tree.")
    products: list[ProductVector] = Field(min_length=1, description="Products in this partition.")


class InternalNode(BaseModel):
    """A hyperplane split with exactly two children.

    Products whose projection `sum(weights[i] * values[i])` is at most
    `threshold` belong to `left`; all others belong to `right`.

    Attributes:
        type (Literal["internal"]): Discriminator field; always `"internal"`.
        feature_names (list[str]): Feature names shared by the whole tree.
        weights (list[float]): One weight per feature, in `feature_names` order.
        threshold (float): Projection cutoff; `<=` goes left.
        sample_count (int): Number of products that reached this node.
        left (TreeNode): Child for projections at or below the threshold.
        right (TreeNode): Child for projections above the threshold.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["internal"] = Field(default="internal", description='Discriminator field. Always "internal".')
    feature_names: list[str] = Field(description="Feature names shared by the whole tree.")
    weights: list[float] = Field(description="Hyperplane weights in feature_names order.")
    threshold: float = Field(description="Projection cutoff; projections at or below it go left.")
    sample_count: int = Field(ge=2, description="Number of products that reached this node.")
    left: TreeNode = Field(description="Child for projections at or below the threshold.")
    right: TreeNode = Field(description="Child for projections above the threshold.")

    @model_validator(mode="after")
    def _validate_hyperplane(self) -> Self:
        """Validate weight length, finiteness, and the sample count.

        Returns:
            Self: The validated model instance.

        Raises:
            ValueError: If the weights and feature names differ in length, a
                weight or the threshold is not finite, or `sample_count`
                differs from the number of products below this node.
        """
        if len(self.weights) != len(self.feature_names):
            raise ValueError(
                f"weights length ({len(self.weights)}) must equal feature_names length ({len(self.feature_names)})"
            )
        if not all(math.isfinite(w) for w in self.weights) or not math.isfinite(self.threshold):
            raise ValueError("weights and threshold must be finite")
        below = subtree_product_count(self.left) + subtree_product_count(self.right)
        if below != self.sample_count:
            raise ValueError(f"sample_count ({self.sample_count}) must equal products below the node ({below})")
        return self


# Pydantic selects the variant from the "type" tag, which keeps serialized trees self-describing.
TreeNode = Annotated[LeafNode | InternalNode, Field(discriminator="type")]

InternalNode.model_rebuild()


def subtree_product_count(node: LeafNode | InternalNode) -> int:
    """Return the number of products held by the leaves below `node`.

    Args:
        node (LeafNode | InternalNode): Any tree node.

    Returns:
        int: Product count of the subtree.
    """
    match node:
        case LeafNode(products=products):
            return len(products)
        case InternalNode(sample_count=sample_count):
            return sample_count


# ---------------------------------------------------------------------------
# Attribute profile models
# ---------------------------------------------------------------------------


class ValueRange(BaseModel):
    """Descriptive statistics of one feature across the whole catalog.

    Attributes:
        min (float): Smallest value.
        max (float): Largest value.
        q25 (float): 25th percentile (linear interpolation).
        q75 (float): 75th percentile (linear interpolation).
        mean (float): Arithmetic mean.
        median (float): 50th percentile.
        std (float): Population standard deviation.
    """

    model_config = ConfigDict(frozen=True)

    min: float = Field(description="Smallest value.")
    max: float = Field(description="Largest value.")
    q25: float = Field(description="25th percentile.")
    q75: float = Field(description="75th percentile.")
    mean: float = Field(description="Arithmetic mean.")
    median: float = Field(description="50th percentile.")
    std: float = Field(ge=0.0, description="Population standard deviation.")

    @model_validator(mode="after")
    def _validate_quantile_order(self) -> Self:
        """Validate that `min <= q25 <= q75 <= max`.

        Returns:
            Self: The validated model instance.

        Raises:
            ValueError: If the quantiles are out of order.
        """
        if not (self.min <= self.q25 <= self.q75 <= self.max):
            raise ValueError(
                f"expected min <= q25 <= q75 <= max, got {self.min}, {self.q25}, {self.q75}, {self.max}"
            )
        return self


class AttributeProfile(BaseModel):
    """Per-feature metadata used to decide whether and how to ask about a feature.

    Attributes:
        name (str): Feature name.
        type (AttributeType): `"numeric"`, `"categorical"` (one-hot),
            `"attribute"` (used in attribute comparison questions), or
            `"unknown"`.
        value_range (ValueRange): Catalog-wide statistics.
        is_preference_relevant (bool): Whether the feature varies enough,
            and is meaningful enough, to ask a customer about.
        description (str): Customer-facing phrase, e.g. `"affordability"`.
        semantic (SemanticKind): What the values appear to measure.
        direction (PreferenceDirection): Whether customers usually prefer
            higher or lower values.
        scale (ValueScale): Magnitude bucket used to round displayed values.
        unit (str | None): Display unit, e.g. `"days"`.
        unique_values (int): Number of distinct values.
        unique_value_ratio (float): Distinct values divided by product count.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Feature name.")
    type: AttributeType = Field(description="Feature origin: numeric, categorical, attribute, or unknown.")
    value_range: ValueRange = Field(description="Catalog-wide statistics.")
    is_preference_relevant: bool = Field(description="Whether the feature is worth asking about.")
    description: str = Field(description="Customer-facing phrase for the feature.")
    semantic: SemanticKind = Field(default="unknown", description="What the values appear to measure.")
    direction: PreferenceDirection = Field(default="neutral", description="Usual customer preference.")
    scale: ValueScale = Field(default="small", description="Magnitude bucket for display rounding.")
    unit: str | None = Field(default=None, description="Display unit, if any.")
    unique_values: int = Field(default=0, ge=0, description="Number of distinct values.")
    unique_value_ratio: float = Field(default=0.0, ge=0.0, le=1.0, description="Distinct values per product.")


# ---------------------------------------------------------------------------
# Metrics and snapshot models
# ---------------------------------------------------------------------------


class TreeMetrics(BaseModel):
    """Structural summary of a built tree.

    Attributes:
        depth (int): Number of levels on the longest root-to-leaf path.
        leaf_count (int): Number of leaves.
        average_leaf_size (float): Mean products per leaf.
        max_leaf_size (int): Largest leaf.
        min_leaf_size (int): Smallest leaf.
        build_time_ms (float): Wall-clock build duration.
        internal_node_count (int): Number of split nodes.
        product_count (int): Total products across all leaves.
    """

    model_config = ConfigDict(frozen=True)

    depth: int = Field(ge=1, description="Number of levels on the longest root-to-leaf path.")
    leaf_count: int = Field(ge=1, description="Number of leaves.")
    average_leaf_size: float = Field(ge=1.0, description="Mean products per leaf.")
    max_leaf_size: int = Field(ge=1, description="Largest leaf.")
    min_leaf_size: int = Field(ge=1, description="Smallest leaf.")
    build_time_ms: float = Field(ge=0.0, description="Wall-clock build duration in milliseconds.")
    internal_node_count: int = Field(default=0, ge=0, description="Number of split nodes.")
    product_count: int = Field(default=0, ge=0, description="Total products across all leaves.")

    @model_validator(mode="after")
    def _validate_leaf_sizes(self) -> Self:
        """Validate that `min_leaf_size <= average_leaf_size <= max_leaf_size`.

        Returns:
            Self: The validated model instance.

        Raises:
            ValueError: If the leaf size statistics are inconsistent.
        """
        # Tolerance absorbs float error in the mean of equal leaf sizes.
        lower_ok = self.min_leaf_size <= self.average_leaf_size + 1e-9
        upper_ok = self.average_leaf_size <= self.max_leaf_size + 1e-9
        if not (lower_ok and upper_ok):
            raise ValueError(
                "expected min_leaf_size <= average_leaf_size <= max_leaf_size, got "
                f"{self.min_leaf_size}, {self.average_leaf_size}, {self.max_leaf_size}"
            )
        return self


class CatalogTree(BaseModel):
    """A built tree together with everything needed to run questionnaires on it.

    This is the unit handed to storage collaborators. Once built it is never
    modified; a rebuild produces a new snapshot with a later `created_at`.

    Attributes:
        root (TreeNode): Root of the oblique tree.
        metrics (TreeMetrics): Structural summary.
        profiles (list[AttributeProfile]): One profile per feature.
        feature_names (list[str]): Feature ordering shared by every node.
        feature_specs (list[FeatureSpec]): Origin of every feature.
        headers (list[str]): Catalog headers, for displaying `original_row`.
        product_count (int): Number of products in the tree.
        created_at (datetime): UTC creation timestamp.
    """

    model_config = ConfigDict(frozen=True)

    root: TreeNode = Field(description="Root of the oblique tree.")
    metrics: TreeMetrics = Field(description="Structural summary.")
    profiles: list[AttributeProfile] = Field(default_factory=list, description="One profile per feature.")
    feature_names: list[str] = Field(min_length=1, description="Feature ordering shared by every node.")
    feature_specs: list[FeatureSpec] = Field(default_factory=list, description="Origin of every feature.")
    headers: list[str] = Field(default_factory=list, description="Catalog headers.")
    product_count: int = Field(ge=1, description="Number of products in the tree.")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="UTC creation timestamp.",
    )

    def profile_map(self) -> dict[str, AttributeProfile]:
        """Return the attribute profiles keyed by feature name.

        Returns:
            dict[str, AttributeProfile]: Feature name to profile.
        """
        return {profile.name: profile for profile in self.profiles}


# ---------------------------------------------------------------------------
# Questionnaire models
# ---------------------------------------------------------------------------


class QuestionChoice(BaseModel):
    """One of the two answers a customer can give to a question.

    Attributes:
        side (Side): The branch this answer descends into.
        label (str): Customer-facing text for the answer.
    """

    model_config = ConfigDict(frozen=True)

    side: Side = Field(description="Branch this answer descends into.")
    label: str = Field(min_length=1, description="Customer-facing answer text.")


class Question(BaseModel):
    """A binary question shown to a customer.

    Hyperplane questions wrap one internal node's split. Attribute questions
    compare two raw attributes and carry no hyperplane.

    Attributes:
        id (str): Stable question id.
        node_id (NodeId | None): The tree node this question belongs to.
        text (str): Question text.
        type (QuestionType): `"hyperplane"` or `"attribute"`.
        weights (list[float]): The node's weights; empty for attribute questions.
        feature_names (list[str]): The node's feature names.
        threshold (float | None): The node's threshold.
        choices (tuple[QuestionChoice, QuestionChoice]): Left answer, then right answer.
        attribute_a (str | None): First compared attribute (attribute questions only).
        attribute_b (str | None): Second compared attribute (attribute questions only).
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Stable question id.")
    node_id: NodeId | None = Field(default=None, description="The tree node this question belongs to.")
    text: str = Field(min_length=1, description="Question text.")
    type: QuestionType = Field(description='"hyperplane" or "attribute".')
    weights: list[float] = Field(default_factory=list, description="Hyperplane weights.")
    feature_names: list[str] = Field(default_factory=list, description="Hyperplane feature names.")
    threshold: float | None = Field(default=None, description="Hyperplane threshold.")
    choices: tuple[QuestionChoice, QuestionChoice] = Field(description="Left answer, then right answer.")
    attribute_a: str | None = Field(default=None, description="First compared attribute.")
    attribute_b: str | None = Field(default=None, description="Second compared attribute.")

    @model_validator(mode="after")
    def _validate_choice_sides(self) -> Self:
        """Validate that the first choice goes left and the second goes right.

        Returns:
            Self: The validated model instance.

        Raises:
            ValueError: If the choices are not ordered left, right.
        """
        if (self.choices[0].side, self.choices[1].side) != ("left", "right"):
            raise ValueError("choices must be ordered (left, right)")
        return self


class Answer(BaseModel):
    """A customer's answer to one question.

    Attributes:
        choice (Side): The branch the customer chose.
        answered_at (datetime): UTC time the answer was recorded.
    """

    model_config = ConfigDict(frozen=True)

    choice: Side = Field(description="The branch the customer chose.")
    answered_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="UTC time the answer was recorded.",
    )


class NavigationStep(BaseModel):
    """One visited node of a questionnaire session.

    Attributes:
        node_id (NodeId): The node that was visited.
        question (Question): The question shown at the node.
        answer (Answer | None): The answer given, or `None` while pending.
    """

    node_id: NodeId = Field(description="The node that was visited.")
    question: Question = Field(description="The question shown at the node.")
    answer: Answer | None = Field(default=None, description="The answer given, or None while pending.")
