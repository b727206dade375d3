"""Oblique tree construction, split selection, and catalog-to-tree pipeline orchestration."""

from __future__ import annotations

import time
from collections.abc import Collection, Iterator, Sequence
from typing import Final, Literal, NamedTuple

import numpy as np
from loguru import logger
from sklearn.decomposition import PCA
from sklearn.metrics import pairwise_distances
from sklearn.preprocessing import MinMaxScaler

from questree.exceptions import DegenerateDatasetError, DimensionMismatchError, EmptyInputError, TreeInvariantError
from questree.identifier import ROOT_NODE_ID, child_node_id
from questree.logging import TREE_BUILD_LEVEL
from questree.tree.encoding import encode_catalog
from questree.tree.metrics import compute_tree_metrics
from questree.tree.models import (
    BuildOptions,
    CatalogTree,
    EncodingOptions,
    InternalNode,
    LeafNode,
    ProductVector,
    TreeNode,
)
from questree.tree.navigation import side
from questree.tree.profiling import profile_attributes

type SplitKind = Literal["axis", "farthest_pair", "principal"]

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

_MAX_AXIS_THRESHOLDS: Final[int] = 12  # Midpoints tried per feature; evenly strided when there are more.
_MAX_EXACT_PAIR_PRODUCTS: Final[int] = 512  # Above this, the farthest pair is found with a two-sweep search.


class SplitCandidate(NamedTuple):
    """A scored hyperplane in raw feature space.

    Attributes:
        kind (SplitKind): How the hyperplane was proposed.
        weights (np.ndarray): One weight per feature.
        threshold (float): Projection cutoff; `<=` goes left.
        gain (float): Impurity reduction achieved on the node's subset.
    """

    kind: SplitKind
    weights: np.ndarray
    threshold: float
    gain: float


# ---------------------------------------------------------------------------
# Public interface -- Tree building
# ---------------------------------------------------------------------------


def build_tree(
    vectors: Sequence[ProductVector],
    feature_names: Sequence[str],
    options: BuildOptions | None = None,
) -> TreeNode:
    """Recursively partition products with oblique hyperplanes.

    The root sits at depth 1. A subset becomes a leaf when the depth limit is
    reached, when it holds at most `min_leaf_size` products, when all of its
    vectors are identical, or when no admissible split improves impurity by
    more than `min_gain`. Otherwise the best of the axis-aligned, farthest-pair
    and principal-direction candidates splits it in two.

    Args:
        vectors (Sequence[ProductVector]): Products to partition.
        feature_names (Sequence[str]): Feature ordering shared by the vectors.
        options (BuildOptions | None): Build limits. Defaults to
            `BuildOptions.from_settings()`.

    Returns:
        TreeNode: Root of the tree. Every product lands in exactly one leaf.

    Raises:
        DegenerateDatasetError: If there are no features.
        EmptyInputError: If there are no products.
        DimensionMismatchError: If a vector's length differs from the feature count.
        ValueError: If a vector holds a non-finite value.
    """
    options = options if options is not None else BuildOptions.from_settings()
    names = list(feature_names)
    if not names:
        raise DegenerateDatasetError("Cannot build a tree without features")
    if not vectors:
        raise EmptyInputError("no_rows")
    for vector in vectors:
        if len(vector.values) != len(names):
            raise DimensionMismatchError(expected=len(names), actual=len(vector.values))

    raw = np.asarray([vector.values for vector in vectors], dtype=np.float64)
    if not np.isfinite(raw).all():
        raise ValueError("Product vectors must contain only finite values")

    builder = _ObliqueTreeBuilder(vectors=list(vectors), feature_names=names, raw=raw, options=options)
    return builder.build(np.arange(len(vectors)), node_id=ROOT_NODE_ID, depth=1)


def build_catalog_tree(
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    *,
    options: BuildOptions | None = None,
    encoding: EncodingOptions | None = None,
    comparison_features: Collection[str] = (),
) -> CatalogTree:
    """Encode a catalog, profile its attributes, build the tree, and summarize it.

    Args:
        headers (Sequence[str]): Column names.
        rows (Sequence[Sequence[str]]): Data rows.
        options (BuildOptions | None): Build limits. Defaults to
            `BuildOptions.from_settings()`.
        encoding (EncodingOptions | None): Encoding options. Defaults to
            `EncodingOptions.from_settings()`.
        comparison_features (Collection[str]): Feature names profiled with
            type `"attribute"` for attribute comparison questions.

    Returns:
        CatalogTree: The immutable snapshot handed to storage and sessions.

    Raises:
        EmptyInputError: If `headers` or `rows` is empty.
        DuplicateColumnsError: If a header name repeats.
        RowLengthError: If a row is longer than the headers.
        DegenerateDatasetError: If no usable feature remains after exclusion.

    Examples:
        >>> tree = build_catalog_tree(["sku", "price"], [["a", "1"], ["b", "9"]])  # doctest: +SKIP
        >>> tree.metrics.leaf_count  # doctest: +SKIP
        1
    """
    options = options if options is not None else BuildOptions.from_settings()
    encoded = encode_catalog(headers, rows, encoding)
    profiles = profile_attributes(
        encoded.vectors,
        encoded.feature_names,
        feature_specs=encoded.feature_specs,
        comparison_features=comparison_features,
    )

    start = time.perf_counter()
    root = build_tree(encoded.vectors, encoded.feature_names, options)
    build_time_ms = (time.perf_counter() - start) * 1000.0
    metrics = compute_tree_metrics(root, build_time_ms)

    logger.log(
        TREE_BUILD_LEVEL,
        "Catalog tree built",
        products=metrics.product_count,
        features=len(encoded.feature_names),
        depth=metrics.depth,
        leaves=metrics.leaf_count,
        build_time_ms=round(build_time_ms, 2),
    )
    return CatalogTree(
        root=root,
        metrics=metrics,
        profiles=profiles,
        feature_names=encoded.feature_names,
        feature_specs=encoded.feature_specs,
        headers=encoded.headers,
        product_count=len(encoded.vectors),
    )


# ---------------------------------------------------------------------------
# Public helpers -- Split scoring
# ---------------------------------------------------------------------------


def impurity(normalized: np.ndarray) -> float:
    """Return the mean per-feature variance of a normalized subset.

    Args:
        normalized (np.ndarray): 2-D min-max normalized values.

    Returns:
        float: Mean population variance across features; 0.0 for fewer than two rows.
    """
    if normalized.shape[0] < 2:
        return 0.0
    return float(normalized.var(axis=0).mean())


def axis_thresholds(values: np.ndarray) -> np.ndarray:
    """Return candidate cutoffs between consecutive distinct values of one feature.

    Args:
        values (np.ndarray): 1-D raw values of the feature within a subset.

    Returns:
        np.ndarray: Midpoints in ascending order, at most `_MAX_AXIS_THRESHOLDS`
            of them, evenly strided over all midpoints when there are more.
    """
    distinct = np.unique(values)
    midpoints = (distinct[:-1] + distinct[1:]) / 2.0
    if midpoints.size > _MAX_AXIS_THRESHOLDS:
        picks = np.unique(np.linspace(0, midpoints.size - 1, _MAX_AXIS_THRESHOLDS).round().astype(int))
        midpoints = midpoints[picks]
    return midpoints


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


class _ObliqueTreeBuilder:
    """Holds the catalog-wide state shared by every recursive split decision."""

    def __init__(
        self,
        *,
        vectors: list[ProductVector],
        feature_names: list[str],
        raw: np.ndarray,
        options: BuildOptions,
    ) -> None:
        self.vectors = vectors
        self.feature_names = feature_names
        self.raw = raw
        self.options = options
        # Fitted once on the full set so every node shares one normalization.
        self.scaler = MinMaxScaler().fit(raw)
        self.normalized = self.scaler.transform(raw)

    def build(self, indices: np.ndarray, *, node_id: str, depth: int) -> TreeNode:
        """Build the subtree for the products at `indices`.

        Args:
            indices (np.ndarray): Row indices of the subset, in catalog order.
            node_id (str): Path id of the node being built.
            depth (int): Level of the node; the root is 1.

        Returns:
            TreeNode: The subtree.

        Raises:
            TreeInvariantError: If the subset is empty.
        """
        if indices.size == 0:
            raise TreeInvariantError(f"Empty product subset reached node {node_id!r}")
        if self._is_terminal(indices, depth):
            return self._leaf(indices)

        best = self._best_split(indices)
        if best is None or best.gain <= self.options.min_gain:
            logger.debug("No admissible split", node_id=node_id, products=int(indices.size))
            return self._leaf(indices)

        weights = [float(weight) for weight in best.weights]
        threshold = float(best.threshold)
        left_indices, right_indices = self._partition(indices, weights, threshold)
        if not self._is_admissible(int(left_indices.size), int(right_indices.size)):
            logger.debug("Split rejected after partition", node_id=node_id, kind=best.kind)
            return self._leaf(indices)

        logger.debug(
            "Split selected",
            node_id=node_id,
            kind=best.kind,
            gain=round(best.gain, 6),
            left=int(left_indices.size),
            right=int(right_indices.size),
        )
        return InternalNode(
            feature_names=self.feature_names,
            weights=weights,
            threshold=threshold,
            sample_count=int(indices.size),
            left=self.build(left_indices, node_id=child_node_id(node_id, "left"), depth=depth + 1),
            right=self.build(right_indices, node_id=child_node_id(node_id, "right"), depth=depth + 1),
        )

    def _is_terminal(self, indices: np.ndarray, depth: int) -> bool:
        if depth >= self.options.max_depth:
            return True
        if indices.size <= self.options.min_leaf_size:
            return True
        subset = self.raw[indices]
        return bool((subset == subset[0]).all())

    def _leaf(self, indices: np.ndarray) -> LeafNode:
        return LeafNode(feature_names=self.feature_names, products=[self.vectors[i] for i in indices])

    def _is_admissible(self, n_left: int, n_right: int) -> bool:
        """Return `True` if both branches are non-empty and hold the required share of products."""
        min_branch = self.options.min_branch_fraction * (n_left + n_right)
        return n_left > 0 and n_right > 0 and n_left >= min_branch and n_right >= min_branch

    def _partition(self, indices: np.ndarray, weights: list[float], threshold: float) -> tuple[np.ndarray, np.ndarray]:
        """Split `indices` with the same routine navigation uses.

        Args:
            indices (np.ndarray): Row indices of the subset.
            weights (list[float]): Hyperplane weights.
            threshold (float): Projection cutoff.

        Returns:
            tuple[np.ndarray, np.ndarray]: Left and right row indices, order preserved.
        """
        goes_left = np.array([side(self.vectors[i], weights, threshold) == "left" for i in indices], dtype=bool)
        return indices[goes_left], indices[~goes_left]

    def _best_split(self, indices: np.ndarray) -> SplitCandidate | None:
        """Score every candidate hyperplane and return the best admissible one.

        Args:
            indices (np.ndarray): Row indices of the subset.

        Returns:
            SplitCandidate | None: The candidate with the largest gain (the
                first one wins ties), or `None` if none is admissible.
        """
        raw = self.raw[indices]
        normalized = self.normalized[indices]
        n = indices.size
        parent_impurity = impurity(normalized)

        best: SplitCandidate | None = None
        for kind, weights, threshold in self._candidates(raw, normalized):
            goes_left = raw @ weights <= threshold
            n_left = int(goes_left.sum())
            n_right = n - n_left
            if not self._is_admissible(n_left, n_right):
                continue
            child_impurity = (n_left * impurity(normalized[goes_left]) + n_right * impurity(normalized[~goes_left])) / n
            gain = parent_impurity - child_impurity
            if best is None or gain > best.gain:
                best = SplitCandidate(kind=kind, weights=weights, threshold=threshold, gain=gain)
        return best

    def _candidates(self, raw: np.ndarray, normalized: np.ndarray) -> Iterator[tuple[SplitKind, np.ndarray, float]]:
        """Yield candidate hyperplanes in raw feature space.

        Args:
            raw (np.ndarray): Raw values of the subset.
            normalized (np.ndarray): Normalized values of the subset.

        Yields:
            tuple[SplitKind, np.ndarray, float]: `(kind, weights, threshold)`.
        """
        n_features = raw.shape[1]
        varying = np.ptp(raw, axis=0) > 0

        for feature_index in np.flatnonzero(varying):
            weights = np.zeros(n_features)
            weights[feature_index] = 1.0
            for threshold in axis_thresholds(raw[:, feature_index]):
                yield "axis", weights, float(threshold)

        # A single varying feature is fully covered by the axis-aligned candidates.
        if int(varying.sum()) < 2:
            return
        subset = normalized[:, varying]
        proposals: list[tuple[SplitKind, tuple[np.ndarray | None, float]]] = [
            ("farthest_pair", _farthest_pair_direction(subset)),
            ("principal", _principal_direction(subset)),
        ]
        for kind, (direction, threshold) in proposals:
            if direction is None:
                continue
            weights, raw_threshold = self._to_raw_space(direction, threshold, varying)
            yield kind, weights, raw_threshold

    def _to_raw_space(self, direction: np.ndarray, threshold: float, varying: np.ndarray) -> tuple[np.ndarray, float]:
        """Map a normalized-space hyperplane over the varying features back to raw values.

        With `x_norm = x * scale + offset`, the test `w . x_norm <= t` is the
        same as `(w * scale) . x <= t - w . offset`.

        Args:
            direction (np.ndarray): Weights over the varying features only.
            threshold (float): Cutoff in normalized space.
            varying (np.ndarray): Boolean mask of features that vary in the subset.

        Returns:
            tuple[np.ndarray, float]: Raw-space weights (zero on constant
                features) and threshold.
        """
        normalized_weights = np.zeros(varying.size)
        normalized_weights[varying] = direction
        raw_weights = normalized_weights * self.scaler.scale_
        raw_threshold = float(threshold - normalized_weights @ self.scaler.min_)
        return raw_weights, raw_threshold


def _farthest_pair_direction(normalized: np.ndarray) -> tuple[np.ndarray | None, float]:
    """Return the unit direction between the two most distant products, cut at their midpoint.

    Args:
        normalized (np.ndarray): Normalized values of the varying features.

    Returns:
        tuple[np.ndarray | None, float]: The direction (or `None` when all
            rows coincide) and the normalized-space threshold.
    """
    if normalized.shape[0] <= _MAX_EXACT_PAIR_PRODUCTS:
        distances = pairwise_distances(normalized)
        first, second = np.unravel_index(int(np.argmax(distances)), distances.shape)
    else:
        centroid = normalized.mean(axis=0)
        first = int(np.argmax(((normalized - centroid) ** 2).sum(axis=1)))
        second = int(np.argmax(((normalized - normalized[first]) ** 2).sum(axis=1)))
    low, high = normalized[min(first, second)], normalized[max(first, second)]
    direction = high - low
    length = float(np.linalg.norm(direction))
    if length == 0.0:
        return None, 0.0
    direction = direction / length
    return direction, float(direction @ ((low + high) / 2.0))


def _principal_direction(normalized: np.ndarray) -> tuple[np.ndarray | None, float]:
    """Return the first principal component, cut at the median projection.

    Args:
        normalized (np.ndarray): Normalized values of the varying features.

    Returns:
        tuple[np.ndarray | None, float]: The component (or `None` when the
            subset has no variance) and the normalized-space threshold.
    """
    if normalized.shape[0] < 2 or float(normalized.var(axis=0).sum()) == 0.0:
        return None, 0.0
    pca = PCA(n_components=1, svd_solver="full").fit(normalized)
    component = pca.components_[0]
    return component, float(np.median(normalized @ component))
