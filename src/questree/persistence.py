"""Export and restoration of built catalog trees as nested documents.

A built `CatalogTree` is exported to a JSON-compatible dictionary that a
document store can hold as-is. Every node carries a `type` tag (`"leaf"` or
`"internal"`), so the document is self-describing.

The restoration process:
1. Validates the document against the pydantic models
2. Checks structural invariants the models cannot see on their own (shared
   feature names across nodes, vector lengths, product totals)
3. Returns the frozen `CatalogTree`, or raises `TreeDocumentError` listing
   every violation found
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Final

from loguru import logger
from pydantic import ValidationError

from questree.exceptions import TreeDocumentError
from questree.tree.models import CatalogTree, InternalNode, LeafNode
from questree.tree.navigation import iter_nodes

__all__ = ["DOCUMENT_VERSION", "export_tree_document", "find_structural_problems", "restore_tree_document"]

DOCUMENT_VERSION: Final[int] = 1
_VERSION_KEY: Final[str] = "document_version"


def export_tree_document(tree: CatalogTree) -> dict[str, Any]:
    """Serialize a catalog tree to a JSON-compatible nested document.

    Weights, thresholds and product values are exported as plain floats, so a
    restore reproduces them exactly.

    Args:
        tree (CatalogTree): The tree to export.

    Returns:
        dict[str, Any]: The document, including a `document_version` key.

    Examples:
        >>> document = export_tree_document(tree)  # doctest: +SKIP
        >>> document["root"]["type"]  # doctest: +SKIP
        'internal'
    """
    document = tree.model_dump(mode="json")
    document[_VERSION_KEY] = DOCUMENT_VERSION
    return document


def restore_tree_document(document: Mapping[str, Any]) -> CatalogTree:
    """Rebuild a catalog tree from an exported document.

    Args:
        document (Mapping[str, Any]): A document produced by `export_tree_document`.

    Returns:
        CatalogTree: The restored, frozen tree.

    Raises:
        TreeDocumentError: If the document fails model validation, carries an
            unsupported version, or violates a structural invariant.
    """
    payload = dict(document)
    version = payload.pop(_VERSION_KEY, DOCUMENT_VERSION)
    if version != DOCUMENT_VERSION:
        logger.warning("Rejected tree document", reason="version", version=version)
        raise TreeDocumentError([f"unsupported document_version {version!r}, expected {DOCUMENT_VERSION}"])

    try:
        tree = CatalogTree.model_validate(payload)
    except ValidationError as e:
        problems = [f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}" for error in e.errors()]
        logger.warning("Rejected tree document", reason="validation", problems=len(problems))
        raise TreeDocumentError(problems) from e

    problems = find_structural_problems(tree)
    if problems:
        logger.warning("Rejected tree document", reason="structure", problems=len(problems))
        raise TreeDocumentError(problems)

    logger.debug("Tree document restored", products=tree.product_count, features=len(tree.feature_names))
    return tree


def find_structural_problems(tree: CatalogTree) -> list[str]:
    """List the structural invariants a catalog tree violates.

    Args:
        tree (CatalogTree): The tree to check.

    Returns:
        list[str]: One message per violation; empty for a consistent tree.
    """
    problems: list[str] = []
    expected_length = len(tree.feature_names)
    leaf_count = 0
    product_total = 0

    for node_id, node in iter_nodes(tree.root):
        if node.feature_names != tree.feature_names:
            problems.append(f"{node_id}: feature_names differ from the tree's feature_names")
        match node:
            case InternalNode(weights=weights):
                if len(weights) != expected_length:
                    problems.append(f"{node_id}: expected {expected_length} weights, got {len(weights)}")
            case LeafNode(products=products):
                leaf_count += 1
                product_total += len(products)
                for product in products:
                    if len(product.values) != expected_length:
                        problems.append(
                            f"{node_id}: product {product.id!r} has {len(product.values)} values,"
                            f" expected {expected_length}"
                        )

    if product_total != tree.product_count:
        problems.append(f"product_count is {tree.product_count} but leaves hold {product_total} products")
    if tree.metrics.leaf_count != leaf_count:
        problems.append(f"metrics.leaf_count is {tree.metrics.leaf_count} but the tree has {leaf_count} leaves")
    if tree.feature_specs and [spec.name for spec in tree.feature_specs] != tree.feature_names:
        problems.append("feature_specs do not match feature_names")
    if tree.profiles and [profile.name for profile in tree.profiles] != tree.feature_names:
        problems.append("profiles do not match feature_names")
    return problems
