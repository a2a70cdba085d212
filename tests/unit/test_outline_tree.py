"""Unit tests for mindweave.utils.outline_tree."""

from __future__ import annotations

from typing import Any

import pytest

from mindweave.models.outline import FlatOutlineNode, NodeRecord, OutlineDocument, OutlineNode
from mindweave.utils.errors import ValidationError
from mindweave.utils.outline_tree import (
    build_tree_from_flat,
    calculate_diff,
    count_nodes,
    deserialize_outline,
    find_node_by_id,
    flatten_nodes,
    generate_auto_layout,
    get_max_depth,
    iter_depth_first,
    serialize_outline,
)


@pytest.fixture
def document(sample_outline_data: dict[str, Any]) -> OutlineDocument:
    return OutlineDocument.model_validate(sample_outline_data)


class TestCounting:
    def test_count_nodes(self, document: OutlineDocument) -> None:
        assert count_nodes(document.root_nodes) == 4
        assert count_nodes([]) == 0

    def test_max_depth(self, document: OutlineDocument) -> None:
        assert get_max_depth(document.root_nodes) == 2
        assert get_max_depth([]) == 0

    def test_single_root_has_depth_zero(self) -> None:
        assert get_max_depth([OutlineNode(id="a", content="x")]) == 0


class TestTraversal:
    def test_find_node_by_id(self, document: OutlineDocument) -> None:
        found = find_node_by_id(document.root_nodes, "grandchild-1")
        assert found is not None
        assert found.content == "Grandchild"
        assert find_node_by_id(document.root_nodes, "missing") is None

    def test_iter_depth_first_is_pre_order(self, document: OutlineDocument) -> None:
        ids = [node.id for node in iter_depth_first(document.root_nodes)]
        assert ids == ["root-1", "child-1", "grandchild-1", "child-2"]


class TestFlatConversion:
    def test_flatten_sets_parent_ids(self) -> None:
        tree = [
            OutlineNode(
                id="r",
                content="root",
                children=[OutlineNode(id="c", content="child", level=1, parent_id="wrong")],
            )
        ]
        flat = flatten_nodes(tree)

        assert [node.id for node in flat] == ["r", "c"]
        assert flat[0].parent_id is None
        assert flat[1].parent_id == "r"
        assert all(isinstance(node, FlatOutlineNode) for node in flat)

    def test_flatten_then_build_restores_tree(self, document: OutlineDocument) -> None:
        rebuilt = build_tree_from_flat(flatten_nodes(document.root_nodes))

        assert rebuilt == list(document.root_nodes)

    def test_build_from_node_records_keeps_input_order(self) -> None:
        records = [
            NodeRecord(id="r", mind_map_id="m", content="root", level=0, order=0),
            NodeRecord(id="b", mind_map_id="m", parent_id="r", content="B", level=1, order=0),
            NodeRecord(id="a", mind_map_id="m", parent_id="r", content="A", level=1, order=1),
        ]
        tree = build_tree_from_flat(records)

        assert len(tree) == 1
        assert [child.id for child in tree[0].children] == ["b", "a"]

    def test_orphans_and_id_less_nodes_dropped(self) -> None:
        flat = [
            FlatOutlineNode(id="r", content="root"),
            FlatOutlineNode(id="o", parent_id="missing", content="orphan", level=1),
            FlatOutlineNode(id=None, content="no id"),
        ]
        tree = build_tree_from_flat(flat)

        assert [node.id for node in tree] == ["r"]
        assert tree[0].children == []


class TestAutoLayout:
    def test_positions(self, document: OutlineDocument) -> None:
        laid_out = generate_auto_layout(document.root_nodes)
        root = laid_out[0]
        first, second = root.children

        assert (root.visual.x, root.visual.y) == (0.0, 0.0)
        assert (first.visual.x, first.visual.y) == (0.0, 150.0)
        assert (second.visual.x, second.visual.y) == (250.0, 150.0)
        assert first.children[0].visual.y == 300.0

    def test_children_offset_from_parent(self) -> None:
        nodes = [
            OutlineNode(id="a", content="a"),
            OutlineNode(
                id="b",
                content="b",
                order=1,
                children=[OutlineNode(id="c", content="c", level=1)],
            ),
        ]
        laid_out = generate_auto_layout(nodes, start_x=10, node_width=100)

        assert laid_out[0].visual.x == 10.0
        assert laid_out[1].visual.x == 160.0
        assert laid_out[1].children[0].visual.x == 160.0

    def test_other_visual_fields_kept_and_input_untouched(self) -> None:
        node = OutlineNode(id="a", content="a", visual={"x": 99, "y": 99, "color": "#ff0000"})
        laid_out = generate_auto_layout([node])

        assert laid_out[0].visual.color == "#ff0000"
        assert laid_out[0].visual.x == 0.0
        assert node.visual.x == 99


class TestDiff:
    def test_added_removed_modified(self, document: OutlineDocument) -> None:
        root = document.root_nodes[0]
        new_root = root.model_copy(
            update={
                "content": "Changed root",
                "children": [
                    root.children[0],
                    OutlineNode(id="child-3", parent_id="root-1", content="New", level=1, order=2),
                ],
            }
        )
        diff = calculate_diff(document.root_nodes, [new_root])

        assert [node.id for node in diff.added] == ["child-3"]
        assert [node.id for node in diff.removed] == ["child-2"]
        assert [change.id for change in diff.modified] == ["root-1"]
        assert diff.modified[0].old.content == "Root content"
        assert diff.modified[0].new.content == "Changed root"

    def test_identical_trees_have_empty_diff(self, document: OutlineDocument) -> None:
        diff = calculate_diff(document.root_nodes, document.root_nodes)

        assert diff.added == [] and diff.removed == [] and diff.modified == []


class TestSerialization:
    def test_round_trip(self, document: OutlineDocument) -> None:
        assert deserialize_outline(serialize_outline(document)) == document

    def test_malformed_json_raises(self) -> None:
        with pytest.raises(ValidationError, match="not valid JSON"):
            deserialize_outline("{not json")

    def test_invalid_document_raises_with_errors(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            deserialize_outline('{"title": "T", "root_nodes": [{"content": "x", "level": 3}]}')

        assert exc_info.value.errors
        assert "expected 0" in exc_info.value.errors[0]
