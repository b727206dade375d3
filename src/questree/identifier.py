"""Module for building and validating tree node identifiers.

Nodes are identified by the path of answers that reaches them from the root,
e.g. `"root"`, `"root.L"`, `"root.L.R"`. Path ids are stable across storage
round trips because they depend only on the tree's shape.
"""

from __future__ import annotations

import re
from typing import Annotated, Final, Literal

from pydantic import AfterValidator, Field

type Side = Literal["left", "right"]

ROOT_NODE_ID: Final[str] = "root"
NODE_ID_PATTERN = re.compile(r"root(\.[LR])*")

_CHOICE_TO_STEP: Final[dict[str, str]] = {"left": "L", "right": "R"}


def child_node_id(parent_id: str, choice: Side) -> str:
    """Return the id of the child reached from `parent_id` by `choice`.

    Args:
        parent_id (str): Id of the parent node.
        choice (Side): `"left"` or `"right"`.

    Returns:
        str: The child's node id.

    Examples:
        >>> child_node_id("root", "left")
        'root.L'
    """
    return f"{parent_id}.{_CHOICE_TO_STEP[choice]}"


def node_id_from_choices(choices: list[Side]) -> str:
    """Return the id of the node reached by a sequence of answers from the root.

    Args:
        choices (list[Side]): Answers in the order they were given.

    Returns:
        str: The node id.
    """
    node_id = ROOT_NODE_ID
    for choice in choices:
        node_id = child_node_id(node_id, choice)
    return node_id


def choices_from_node_id(node_id: str) -> list[Side]:
    """Return the answer sequence encoded in a node id.

    Args:
        node_id (str): A validated node id.

    Returns:
        list[Side]: Answers from the root to the node.

    Raises:
        ValueError: If the id does not match the node id pattern.
    """
    validate_node_id(node_id)
    steps = node_id.split(".")[1:]
    return ["left" if step == "L" else "right" for step in steps]


def validate_node_id(value: str) -> str:
    """Validate that a node id follows the pattern `root(.L|.R)*`.

    Args:
        value (str): The string to validate as a node id.

    Returns:
        str: The validated node id.

    Raises:
        ValueError: If the value doesn't match the node id pattern.
    """
    if not NODE_ID_PATTERN.fullmatch(value):
        msg = f"Node ID must match pattern 'root(.L|.R)*', got: {value}"
        raise ValueError(msg)
    return value


NodeId = Annotated[
    str,
    AfterValidator(validate_node_id),
    Field(
        description="Tree node identifier: the answer path from the root, e.g. 'root.L.R'.",
        examples=["root", "root.L", "root.R.L"],
    ),
]
