"""Tests for tree node identifiers."""

from __future__ import annotations

import pytest
from pydantic import BaseModel, ValidationError
from pytest_check import check

from questree.identifier import (
    ROOT_NODE_ID,
    NodeId,
    child_node_id,
    choices_from_node_id,
    node_id_from_choices,
    validate_node_id,
)


class _NodeRef(BaseModel):
    node_id: NodeId


class TestNodeIdConstruction:
    """Tests for building node ids from answers."""

    def test_child_ids_append_one_step(self) -> None:
        """Verify left and right children extend the parent id with L and R."""
        with check:
            assert child_node_id(ROOT_NODE_ID, "left") == "root.L"
        with check:
            assert child_node_id("root.L", "right") == "root.L.R"

    def test_empty_choice_sequence_is_the_root(self) -> None:
        """Verify no answers identify the root."""
        assert node_id_from_choices([]) == ROOT_NODE_ID

    def test_choices_round_trip_through_node_id(self) -> None:
        """Verify a node id encodes exactly the answers that reach it."""
        # Arrange
        choices = ["right", "left", "left"]

        # Act
        node_id = node_id_from_choices(choices)  # type: ignore[arg-type]

        # Assert
        with check:
            assert node_id == "root.R.L.L"
        with check:
            assert choices_from_node_id(node_id) == choices


class TestNodeIdValidation:
    """Tests for validate_node_id and the NodeId annotated type."""

    @pytest.mark.parametrize("value", ["root", "root.L", "root.R.L.R"])
    def test_valid_ids_are_returned_unchanged(self, value: str) -> None:
        """Verify well-formed ids pass validation.

        Args:
            value (str): A well-formed node id.
        """
        assert validate_node_id(value) == value

    @pytest.mark.parametrize("value", ["", "Root", "root.", "root.X", "root.L.", "leaf.L", "root.l", "root.L\n", "root\n"])
    def test_malformed_ids_raise_value_error(self, value: str) -> None:
        """Verify malformed ids are rejected with the expected pattern in the message.

        Args:
            value (str): A malformed node id.
        """
        with pytest.raises(ValueError, match=r"root\(\.L\|\.R\)\*"):
            validate_node_id(value)

    def test_choices_from_malformed_id_raise(self) -> None:
        """Verify decoding a malformed id fails rather than returning a partial path."""
        with pytest.raises(ValueError):
            choices_from_node_id("root.Q")

    def test_node_id_annotation_validates_model_fields(self) -> None:
        """Verify models using NodeId accept path ids and reject others."""
        with check:
            assert _NodeRef(node_id="root.L").node_id == "root.L"
        with check, pytest.raises(ValidationError):
            _NodeRef(node_id="node-1")
