"""Tree sub-package: encoding, profiling, building, metrics, navigation, and question phrasing."""

from __future__ import annotations

from questree.tree.building import build_catalog_tree, build_tree
from questree.tree.encoding import EncodedCatalog, ExcludedColumn, encode_catalog
from questree.tree.metrics import compute_tree_metrics
from questree.tree.models import (
    Answer,
    AttributeProfile,
    BuildOptions,
    CatalogTree,
    EncodingOptions,
    FeatureSpec,
    InternalNode,
    LeafNode,
    NavigationStep,
    Product,
    ProductVector,
    Question,
    QuestionChoice,
    TreeMetrics,
    TreeNode,
    ValueRange,
)
from questree.tree.navigation import (
    QuestionnaireSession,
    current_question,
    descend,
    find_node,
    has_node,
    is_leaf,
    iter_nodes,
    leaf_products,
    project,
    replay,
    route,
    side,
)
from questree.tree.profiling import profile_attributes
from questree.tree.questions import generate_attribute_question, generate_question_text

__all__ = [
    "Answer",
    "AttributeProfile",
    "BuildOptions",
    "CatalogTree",
    "EncodedCatalog",
    "EncodingOptions",
    "ExcludedColumn",
    "FeatureSpec",
    "InternalNode",
    "LeafNode",
    "NavigationStep",
    "Product",
    "ProductVector",
    "Question",
    "QuestionChoice",
    "QuestionnaireSession",
    "TreeMetrics",
    "TreeNode",
    "ValueRange",
    "build_catalog_tree",
    "build_tree",
    "compute_tree_metrics",
    "current_question",
    "descend",
    "encode_catalog",
    "find_node",
    "generate_attribute_question",
    "generate_question_text",
    "has_node",
    "is_leaf",
    "iter_nodes",
    "leaf_products",
    "profile_attributes",
    "project",
    "replay",
    "route",
    "side",
]
