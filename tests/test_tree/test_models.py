"""Tests for the tree models: nodes, profiles, metrics, snapshots and questions."""

from __future__ import annotations

import math
from typing import Any

import pytest
from pydantic import ValidationError
from pytest_check import check

from questree.tree.models import (
    AttributeProfile,
    BuildOptions,
    CatalogTree,
    InternalNode,
    LeafNode,
    ProductVector,
    Question,
    QuestionChoice,
    TreeMetrics,
    ValueRange,
    subtree_product_count,
)


class TestProductVector:
    """Tests for ProductVector construction and immutability."""

    def test_is_frozen(self) -> None:
        """Assigning to a field of a built vector should fail."""
        # Arrange
        vector = _vector("p1", [1.0, 2.0])

        # Act & Assert
        with pytest.raises(ValidationError):
            vector.values = [3.0, 4.0]  # type: ignore[misc]

    def test_empty_id_is_rejected(self) -> None:
        """Product ids must be non-empty."""
        with pytest.raises(ValidationError):
            ProductVector(id="", values=[1.0], original_row=["1"])


class TestLeafNode:
    """Tests for LeafNode validation."""

    def test_type_tag_defaults_to_leaf(self) -> None:
        """The discriminator should be filled in automatically."""
        assert _leaf([[1.0, 2.0]]).type == "leaf"

    def test_empty_leaf_is_rejected(self) -> None:
        """A leaf must hold at least one product."""
        with pytest.raises(ValidationError):
            LeafNode(feature_names=_FEATURES, products=[])


class TestInternalNode:
    """Tests for InternalNode hyperplane validation."""

    def test_valid_node_counts_products_below_it(self) -> None:
        """A well-formed node should report the products held by its leaves."""
        # Arrange / Act
        node = _internal([1.0, 0.0], 2.0, _leaf([[1.0, 0.0], [2.0, 0.0]]), _leaf([[5.0, 1.0]]))

        # Assert
        with check:
            assert node.sample_count == 3
        with check:
            assert subtree_product_count(node) == 3
        with check:
            assert subtree_product_count(node.left) == 2

    def test_weight_length_must_match_feature_names(self) -> None:
        """Weights must have one entry per feature."""
        with pytest.raises(ValidationError, match="weights length"):
            _internal([1.0], 2.0, _leaf([[1.0, 0.0]]), _leaf([[5.0, 1.0]]))

    @pytest.mark.parametrize(
        ("weights", "threshold"),
        [([math.inf, 0.0], 1.0), ([math.nan, 1.0], 1.0), ([1.0, 0.0], math.nan)],
        ids=["infinite-weight", "nan-weight", "nan-threshold"],
    )
    def test_non_finite_hyperplane_is_rejected(self, weights: list[float], threshold: float) -> None:
        """Weights and threshold must be finite numbers.

        Args:
            weights (list[float]): Hyperplane weights.
            threshold (float): Hyperplane threshold.
        """
        with pytest.raises(ValidationError, match="finite"):
            _internal(weights, threshold, _leaf([[1.0, 0.0]]), _leaf([[5.0, 1.0]]))

    def test_sample_count_must_match_children(self) -> None:
        """sample_count must equal the products below the node."""
        with pytest.raises(ValidationError, match="sample_count"):
            InternalNode(
                feature_names=_FEATURES,
                weights=[1.0, 0.0],
                threshold=2.0,
                sample_count=5,
                left=_leaf([[1.0, 0.0]]),
                right=_leaf([[5.0, 1.0]]),
            )


class TestTreeNodeDiscriminator:
    """Tests for parsing nested node dictionaries through the `type` tag."""

    def test_nested_dict_parses_into_node_variants(self) -> None:
        """Dictionaries should become LeafNode or InternalNode by their `type`."""
        # Arrange
        document = _tree(_internal([1.0, 0.0], 2.0, _leaf([[1.0, 0.0]]), _leaf([[5.0, 1.0]]))).model_dump(mode="json")

        # Act
        restored = CatalogTree.model_validate(document)

        # Assert
        with check:
            assert isinstance(restored.root, InternalNode)
        with check:
            assert isinstance(restored.root.left, LeafNode)  # type: ignore[union-attr]
        with check:
            assert restored == CatalogTree.model_validate(document)

    def test_unknown_type_tag_is_rejected(self) -> None:
        """A node whose `type` is neither leaf nor internal should fail validation."""
        # Arrange
        document: dict[str, Any] = _tree(_leaf([[1.0, 0.0]])).model_dump(mode="json")
        document["root"]["type"] = "branch"

        # Act & Assert
        with pytest.raises(ValidationError):
            CatalogTree.model_validate(document)


class TestValueRange:
    """Tests for ValueRange quantile ordering."""

    def test_ordered_quantiles_are_accepted(self) -> None:
        """min <= q25 <= q75 <= max should validate."""
        value_range = ValueRange(min=1.0, max=9.0, q25=2.0, q75=7.0, mean=5.0, median=5.0, std=2.5)

        assert value_range.q75 == 7.0

    @pytest.mark.parametrize(
        ("q25", "q75"),
        [(0.5, 7.0), (8.0, 7.0), (2.0, 9.5)],
        ids=["q25-below-min", "q25-above-q75", "q75-above-max"],
    )
    def test_out_of_order_quantiles_are_rejected(self, q25: float, q75: float) -> None:
        """Any break in the quantile ordering should fail validation.

        Args:
            q25 (float): Lower quartile.
            q75 (float): Upper quartile.
        """
        with pytest.raises(ValidationError, match="min <= q25 <= q75 <= max"):
            ValueRange(min=1.0, max=9.0, q25=q25, q75=q75, mean=5.0, median=5.0, std=2.5)


class TestTreeMetrics:
    """Tests for TreeMetrics leaf size validation."""

    def test_average_outside_min_max_is_rejected(self) -> None:
        """The mean leaf size must lie between the smallest and largest leaf."""
        with pytest.raises(ValidationError, match="min_leaf_size <= average_leaf_size"):
            TreeMetrics(
                depth=2,
                leaf_count=2,
                average_leaf_size=6.0,
                max_leaf_size=5,
                min_leaf_size=1,
                build_time_ms=1.0,
            )

    def test_equal_leaf_sizes_are_accepted(self) -> None:
        """Identical leaf sizes make min, average and max equal."""
        metrics = TreeMetrics(
            depth=2, leaf_count=3, average_leaf_size=4.0, max_leaf_size=4, min_leaf_size=4, build_time_ms=0.0
        )

        assert metrics.average_leaf_size == 4.0


class TestBuildOptions:
    """Tests for BuildOptions bounds."""

    @pytest.mark.parametrize(
        "overrides",
        [{"max_depth": 0}, {"min_leaf_size": 0}, {"min_gain": -0.1}, {"min_branch_fraction": 0.5}],
        ids=["max-depth", "min-leaf-size", "min-gain", "min-branch-fraction"],
    )
    def test_out_of_range_values_are_rejected(self, overrides: dict[str, float]) -> None:
        """Each option should enforce its documented range.

        Args:
            overrides (dict[str, float]): The invalid option value.
        """
        with pytest.raises(ValidationError):
            BuildOptions(**overrides)  # type: ignore[arg-type]


class TestCatalogTree:
    """Tests for CatalogTree helpers."""

    def test_profile_map_keys_profiles_by_name(self) -> None:
        """profile_map should index the profiles by feature name."""
        # Arrange
        profiles = [_profile("price"), _profile("rating")]
        tree = _tree(_leaf([[1.0, 0.0]]), profiles=profiles)

        # Act
        profile_map = tree.profile_map()

        # Assert
        with check:
            assert list(profile_map) == ["price", "rating"]
        with check:
            assert profile_map["rating"] is tree.profiles[1]

    def test_created_at_is_timezone_aware(self) -> None:
        """Snapshots should carry a UTC timestamp."""
        tree = _tree(_leaf([[1.0, 0.0]]))

        assert tree.created_at.tzinfo is not None


class TestQuestion:
    """Tests for Question choice ordering and node id validation."""

    def test_choices_must_be_left_then_right(self) -> None:
        """Swapped choices should fail validation."""
        with pytest.raises(ValidationError, match="ordered"):
            Question(
                id="q_root",
                text="Cheaper or pricier?",
                type="hyperplane",
                choices=(QuestionChoice(side="right", label="b"), QuestionChoice(side="left", label="a")),
            )

    def test_node_id_must_be_a_path_id(self) -> None:
        """Questions should only reference well-formed node ids."""
        with pytest.raises(ValidationError):
            Question(
                id="q_x",
                node_id="node-7",
                text="Cheaper or pricier?",
                type="hyperplane",
                choices=(QuestionChoice(side="left", label="a"), QuestionChoice(side="right", label="b")),
            )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_FEATURES = ["price", "rating"]


def _vector(product_id: str, values: list[float]) -> ProductVector:
    return ProductVector(id=product_id, values=values, original_row=[str(v) for v in values])


def _leaf(rows: list[list[float]]) -> LeafNode:
    return LeafNode(
        feature_names=_FEATURES,
        products=[_vector(f"p{index}", values) for index, values in enumerate(rows)],
    )


def _internal(
    weights: list[float], threshold: float, left: LeafNode | InternalNode, right: LeafNode | InternalNode
) -> InternalNode:
    return InternalNode(
        feature_names=_FEATURES,
        weights=weights,
        threshold=threshold,
        sample_count=subtree_product_count(left) + subtree_product_count(right),
        left=left,
        right=right,
    )


def _profile(name: str) -> AttributeProfile:
    return AttributeProfile(
        name=name,
        type="numeric",
        value_range=ValueRange(min=0.0, max=1.0, q25=0.25, q75=0.75, mean=0.5, median=0.5, std=0.3),
        is_preference_relevant=True,
        description=name,
    )


def _tree(root: LeafNode | InternalNode, *, profiles: list[AttributeProfile] | None = None) -> CatalogTree:
    count = subtree_product_count(root)
    leaves = 1 if isinstance(root, LeafNode) else 2
    return CatalogTree(
        root=root,
        metrics=TreeMetrics(
            depth=1 if leaves == 1 else 2,
            leaf_count=leaves,
            average_leaf_size=count / leaves,
            max_leaf_size=count,
            min_leaf_size=1,
            build_time_ms=0.0,
            product_count=count,
        ),
        profiles=profiles or [],
        feature_names=_FEATURES,
        product_count=count,
    )
