"""Structural metrics of a built tree."""

from __future__ import annotations

from questree.tree.models import InternalNode, LeafNode, TreeMetrics, TreeNode


def compute_tree_metrics(root: TreeNode, build_time_ms: float) -> TreeMetrics:
    """Summarize the shape of a tree.

    Args:
        root (TreeNode): Tree root.
        build_time_ms (float): Wall-clock build duration to report.

    Returns:
        TreeMetrics: Depth (a lone leaf has depth 1), leaf count, leaf size
            statistics, internal node count, and total product count.
    """
    leaf_sizes: list[int] = []
    internal_count = 0
    depth = 0
    stack: list[tuple[TreeNode, int]] = [(root, 1)]
    while stack:
        node, level = stack.pop()
        depth = max(depth, level)
        match node:
            case LeafNode(products=products):
                leaf_sizes.append(len(products))
            case InternalNode(left=left, right=right):
                internal_count += 1
                stack.append((right, level + 1))
                stack.append((left, level + 1))

    product_count = sum(leaf_sizes)
    return TreeMetrics(
        depth=depth,
        leaf_count=len(leaf_sizes),
        average_leaf_size=product_count / len(leaf_sizes),
        max_leaf_size=max(leaf_sizes),
        min_leaf_size=min(leaf_sizes),
        build_time_ms=max(build_time_ms, 0.0),
        internal_node_count=internal_count,
        product_count=product_count,
    )
