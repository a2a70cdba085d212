"""Unit tests for mindweave.services.outline_validator."""

from __future__ import annotations

import copy
from typing import Any

from mindweave.services.outline_validator import validate_outline_document, validate_outline_node


class TestValidateOutlineDocument:
    def test_valid_document(self, sample_outline_data: dict[str, Any]) -> None:
        result = validate_outline_document(sample_outline_data)

        assert result.valid is True
        assert result.errors == []
        assert result.warnings == []
        assert result.document is not None
        assert result.document.title == "Test Map"

    def test_missing_title_is_schema_error(self, sample_outline_data: dict[str, Any]) -> None:
        data = dict(sample_outline_data)
        del data["title"]
        result = validate_outline_document(data)

        assert result.valid is False
        assert any(error.startswith("title:") for error in result.errors)
        assert result.document is None

    def test_empty_content_is_schema_error(self, sample_outline_data: dict[str, Any]) -> None:
        data = copy.deepcopy(sample_outline_data)
        data["root_nodes"][0]["children"][1]["content"] = ""
        result = validate_outline_document(data)

        assert result.valid is False
        assert any(error.startswith("root_nodes.0.children.1.content") for error in result.errors)

    def test_duplicate_ids_are_errors(self, sample_outline_data: dict[str, Any]) -> None:
        data = copy.deepcopy(sample_outline_data)
        data["root_nodes"][0]["children"][1]["id"] = "grandchild-1"
        result = validate_outline_document(data)

        assert result.valid is False
        assert "Duplicate node ID: grandchild-1" in result.errors

    def test_root_level_must_be_zero(self, sample_outline_data: dict[str, Any]) -> None:
        data = copy.deepcopy(sample_outline_data)
        data["root_nodes"][0]["level"] = 1
        result = validate_outline_document(data)

        assert result.valid is False
        assert "Node root-1 has level 1, expected 0" in result.errors

    def test_child_level_must_follow_parent(self, sample_outline_data: dict[str, Any]) -> None:
        data = copy.deepcopy(sample_outline_data)
        data["root_nodes"][0]["children"][0]["children"][0]["level"] = 3
        result = validate_outline_document(data)

        assert result.valid is False
        assert "Node grandchild-1 has level 3, expected 2" in result.errors

    def test_duplicate_sibling_order_is_warning(self, sample_outline_data: dict[str, Any]) -> None:
        data = copy.deepcopy(sample_outline_data)
        data["root_nodes"][0]["children"][1]["order"] = 0
        result = validate_outline_document(data)

        assert result.valid is True
        assert result.warnings == ["Duplicate order at level 1: 0"]

    def test_same_order_in_different_sibling_groups_is_fine(self) -> None:
        first_child = {"id": "a1", "content": "x", "level": 1, "order": 0}
        second_child = {"id": "b1", "content": "y", "level": 1, "order": 0}
        data = {
            "title": "T",
            "root_nodes": [
                {"id": "a", "content": "a", "order": 0, "children": [first_child]},
                {"id": "b", "content": "b", "order": 1, "children": [second_child]},
            ],
            "metadata": {"total_nodes": 4, "max_depth": 1},
        }
        result = validate_outline_document(data)

        assert result.valid is True
        assert result.warnings == []

    def test_metadata_mismatch_is_warning(self, sample_outline_data: dict[str, Any]) -> None:
        data = copy.deepcopy(sample_outline_data)
        data["metadata"] = {"total_nodes": 10, "max_depth": 5}
        result = validate_outline_document(data)

        assert result.valid is True
        assert "Node count mismatch: metadata says 10, actual count is 4" in result.warnings
        assert "Max depth mismatch: metadata says 5, actual depth is 2" in result.warnings

    def test_non_dict_input(self) -> None:
        result = validate_outline_document("not a document")

        assert result.valid is False
        assert result.errors


class TestValidateOutlineNode:
    def test_node_level_is_free(self) -> None:
        result = validate_outline_node(
            {"id": "n", "content": "x", "level": 3, "children": [{"id": "c", "content": "y", "level": 4}]}
        )

        assert result.valid is True
        assert result.node is not None
        assert result.node.children[0].id == "c"

    def test_child_level_checked_against_node(self) -> None:
        result = validate_outline_node(
            {"id": "n", "content": "x", "level": 3, "children": [{"id": "c", "content": "y", "level": 1}]}
        )

        assert result.valid is False
        assert result.errors == ["Node c has level 1, expected 4"]
        assert result.node is None

    def test_missing_content(self) -> None:
        result = validate_outline_node({"title": "No content"})

        assert result.valid is False
        assert any(error.startswith("content:") for error in result.errors)
