"""Tree navigation: projections, descending, replaying answers, and questionnaire sessions.

Navigation never mutates a tree. A `CatalogTree` can therefore be shared by
any number of concurrent `QuestionnaireSession` instances.
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Sequence

from loguru import logger

from questree.exceptions import DimensionMismatchError, InvalidNodeError, NodeNotFoundError
from questree.identifier import ROOT_NODE_ID, Side, child_node_id, choices_from_node_id
from questree.logging import TREE_BUILD_LEVEL
from questree.tree.models import (
    Answer,
    AttributeProfile,
    CatalogTree,
    InternalNode,
    LeafNode,
    NavigationStep,
    ProductVector,
    Question,
    QuestionChoice,
    TreeNode,
)
from questree.tree.questions import generate_question_text

_VALID_SIDES: frozenset[str] = frozenset({"left", "right"})

# ---------------------------------------------------------------------------
# Public interface -- Hyperplane geometry
# ---------------------------------------------------------------------------


def project(product: ProductVector | Sequence[float], weights: Sequence[float]) -> float:
    """Project a product onto a hyperplane normal.

    Args:
        product (ProductVector | Sequence[float]): A product or its raw values.
        weights (Sequence[float]): Hyperplane weights.

    Returns:
        float: `sum(weights[i] * values[i])`.

    Raises:
        DimensionMismatchError: If the value and weight vectors differ in length.

    Examples:
        >>> project([2.0, 3.0], [0.5, -1.0])
        -2.0
    """
    values = product.values if isinstance(product, ProductVector) else product
    if len(values) != len(weights):
        raise DimensionMismatchError(expected=len(weights), actual=len(values))
    return math.fsum(weight * value for weight, value in zip(weights, values, strict=True))


def side(product: ProductVector | Sequence[float], weights: Sequence[float], threshold: float) -> Side:
    """Return the side of a hyperplane a product falls on.

    The tree builder partitions with this same function, so navigation always
    agrees with the partition recorded at build time.

    Args:
        product (ProductVector | Sequence[float]): A product or its raw values.
        weights (Sequence[float]): Hyperplane weights.
        threshold (float): Projection cutoff.

    Returns:
        Side: `"left"` when the projection is at most `threshold`, else `"right"`.
    """
    return "left" if project(product, weights) <= threshold else "right"


# ---------------------------------------------------------------------------
# Public interface -- Node access
# ---------------------------------------------------------------------------


def is_leaf(node: TreeNode) -> bool:
    """Return `True` if `node` is a leaf."""
    return isinstance(node, LeafNode)


def descend(node: TreeNode, choice: Side) -> TreeNode:
    """Return the child of an internal node selected by an answer.

    Args:
        node (TreeNode): The current node.
        choice (Side): `"left"` or `"right"`.

    Returns:
        TreeNode: The selected child.

    Raises:
        InvalidNodeError: If `node` is a leaf.
        ValueError: If `choice` is not `"left"` or `"right"`.
    """
    if choice not in _VALID_SIDES:
        logger.warning("Rejected unknown answer choice", choice=choice)
        raise ValueError(f"choice must be 'left' or 'right', got: {choice!r}")
    match node:
        case InternalNode(left=left, right=right):
            return left if choice == "left" else right
        case LeafNode():
            logger.warning("Rejected descend from a leaf node", choice=choice)
            raise InvalidNodeError("Cannot descend from a leaf node", node_type=node.type)


def leaf_products(node: TreeNode) -> list[ProductVector]:
    """Return the products held by a leaf.

    Args:
        node (TreeNode): A leaf node.

    Returns:
        list[ProductVector]: The leaf's products.

    Raises:
        InvalidNodeError: If `node` is an internal node.
    """
    match node:
        case LeafNode(products=products):
            return list(products)
        case InternalNode():
            raise InvalidNodeError("Internal nodes hold no products; descend to a leaf first", node_type=node.type)


def current_question(
    node: TreeNode,
    *,
    node_id: str = ROOT_NODE_ID,
    profiles: Sequence[AttributeProfile] | None = None,
    depth: int | None = None,
) -> Question | None:
    """Return the question to ask at `node`, or `None` at a leaf.

    Args:
        node (TreeNode): The current node.
        node_id (str): The node's path id; also used to derive the question id.
        profiles (Sequence[AttributeProfile] | None): Profiles used for phrasing.
        depth (int | None): Questions answered so far. Derived from `node_id`
            when `None`.

    Returns:
        Question | None: A `"hyperplane"` question carrying the node's weights,
            feature names and threshold, or `None` when the walk is complete.
    """
    match node:
        case LeafNode():
            return None
        case InternalNode():
            resolved_depth = depth if depth is not None else len(choices_from_node_id(node_id))
            text, left_label, right_label = generate_question_text(node, profiles, depth=resolved_depth)
            return Question(
                id=f"q_{node_id}",
                node_id=node_id,
                text=text,
                type="hyperplane",
                weights=list(node.weights),
                feature_names=list(node.feature_names),
                threshold=node.threshold,
                choices=(QuestionChoice(side="left", label=left_label), QuestionChoice(side="right", label=right_label)),
            )


# ---------------------------------------------------------------------------
# Public interface -- Traversal
# ---------------------------------------------------------------------------


def replay(root: TreeNode, choices: Sequence[Side]) -> TreeNode:
    """Recover the node reached by a sequence of answers from the root.

    Args:
        root (TreeNode): Tree root.
        choices (Sequence[Side]): Answers in the order they were given.

    Returns:
        TreeNode: The node reached.

    Raises:
        InvalidNodeError: If the answers run past a leaf.
        ValueError: If an answer is not `"left"` or `"right"`.
    """
    node = root
    for choice in choices:
        node = descend(node, choice)
    return node


def iter_nodes(root: TreeNode) -> Iterator[tuple[str, TreeNode]]:
    """Yield every node with its path id, parents before children, left before right.

    Args:
        root (TreeNode): Tree root.

    Yields:
        tuple[str, TreeNode]: `(node_id, node)` pairs.
    """
    stack: list[tuple[str, TreeNode]] = [(ROOT_NODE_ID, root)]
    while stack:
        node_id, node = stack.pop()
        yield node_id, node
        if isinstance(node, InternalNode):
            stack.append((child_node_id(node_id, "right"), node.right))
            stack.append((child_node_id(node_id, "left"), node.left))


def find_node(root: TreeNode, node_id: str) -> TreeNode:
    """Return the node with the given path id.

    Args:
        root (TreeNode): Tree root.
        node_id (str): A path id such as `"root.L.R"`.

    Returns:
        TreeNode: The node.

    Raises:
        NodeNotFoundError: If the id is malformed or names no node in the tree.
    """
    try:
        choices = choices_from_node_id(node_id)
    except ValueError as e:
        raise NodeNotFoundError(node_id) from e
    node = root
    for choice in choices:
        if not isinstance(node, InternalNode):
            raise NodeNotFoundError(node_id)
        node = node.left if choice == "left" else node.right
    return node


def has_node(root: TreeNode, node_id: str) -> bool:
    """Return `True` if `node_id` names a node of the tree."""
    try:
        find_node(root, node_id)
    except NodeNotFoundError:
        return False
    return True


def route(root: TreeNode, product: ProductVector | Sequence[float]) -> tuple[str, LeafNode]:
    """Walk a product from the root to the leaf its values select.

    Args:
        root (TreeNode): Tree root.
        product (ProductVector | Sequence[float]): A product or its raw values.

    Returns:
        tuple[str, LeafNode]: The leaf's path id and the leaf.

    Raises:
        DimensionMismatchError: If the product's length differs from the tree's features.
    """
    node_id, node = ROOT_NODE_ID, root
    while isinstance(node, InternalNode):
        choice = side(product, node.weights, node.threshold)
        node_id, node = child_node_id(node_id, choice), descend(node, choice)
    return node_id, node


# ---------------------------------------------------------------------------
# Public interface -- Questionnaire sessions
# ---------------------------------------------------------------------------


class QuestionnaireSession:
    """One customer's walk through a catalog tree.

    The session starts at the root (or a resumed node), shows one question per
    internal node, and ends at a leaf whose products are the recommendations.
    Every answer is recorded in `path` as a `NavigationStep`.

    Attributes:
        tree (CatalogTree): The tree being walked. Never modified.
        node_id (str): Path id of the current node.
        path (list[NavigationStep]): Answered steps since the session started.

    Examples:
        >>> session = QuestionnaireSession(tree)  # doctest: +SKIP
        >>> while not session.is_complete:  # doctest: +SKIP
        ...     session.answer("left")
        >>> session.recommendations()  # doctest: +SKIP
    """

    def __init__(self, tree: CatalogTree, *, node_id: str = ROOT_NODE_ID) -> None:
        """Initialize the session at `node_id`.

        Args:
            tree (CatalogTree): The tree to walk.
            node_id (str): Starting node; the root by default.

        Raises:
            NodeNotFoundError: If `node_id` names no node of the tree.
        """
        self.tree = tree
        self.node_id = node_id
        self._node: TreeNode = find_node(tree.root, node_id)
        self.path: list[NavigationStep] = []

    @classmethod
    def resume(cls, tree: CatalogTree, node_id: str) -> QuestionnaireSession:
        """Resume a session at a node id stored by an earlier session.

        Args:
            tree (CatalogTree): The tree to walk.
            node_id (str): The stored node id.

        Returns:
            QuestionnaireSession: A session positioned at `node_id` with an empty path.

        Raises:
            NodeNotFoundError: If `node_id` names no node of the tree.
        """
        return cls(tree, node_id=node_id)

    @property
    def node(self) -> TreeNode:
        """TreeNode: The current node."""
        return self._node

    @property
    def depth(self) -> int:
        """int: Number of answers between the root and the current node."""
        return len(choices_from_node_id(self.node_id))

    @property
    def is_complete(self) -> bool:
        """bool: Whether the session has reached a leaf."""
        return is_leaf(self._node)

    def current_question(self) -> Question | None:
        """Return the question for the current node, or `None` when complete.

        Returns:
            Question | None: The pending question.
        """
        return current_question(self._node, node_id=self.node_id, profiles=self.tree.profiles, depth=self.depth)

    def answer(self, choice: Side) -> Question | None:
        """Record an answer and move to the selected child.

        Args:
            choice (Side): `"left"` or `"right"`.

        Returns:
            Question | None: The next question, or `None` if the session is now complete.

        Raises:
            InvalidNodeError: If the session is already complete.
            ValueError: If `choice` is not `"left"` or `"right"`.
        """
        question = self.current_question()
        if question is None:
            logger.warning("Rejected answer on a completed questionnaire", node_id=self.node_id)
            raise InvalidNodeError("Questionnaire is already complete", node_type="leaf")
        child = descend(self._node, choice)
        self.path.append(NavigationStep(node_id=self.node_id, question=question, answer=Answer(choice=choice)))
        self.node_id = child_node_id(self.node_id, choice)
        self._node = child
        logger.debug("Question answered", node_id=self.node_id, choice=choice)
        if self.is_complete:
            logger.log(
                TREE_BUILD_LEVEL,
                "Questionnaire completed",
                node_id=self.node_id,
                answers=len(self.path),
                recommendations=len(leaf_products(self._node)),
            )
        return self.current_question()

    def recommendations(self) -> list[ProductVector]:
        """Return the products of the leaf the session reached.

        Returns:
            list[ProductVector]: Recommended products.

        Raises:
            InvalidNodeError: If the session has not reached a leaf yet.
        """
        return leaf_products(self._node)
