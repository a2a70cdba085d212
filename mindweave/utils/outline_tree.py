"""Pure helpers over outline trees.

Nothing here touches storage or mutates its input: every function takes
frozen :class:`~mindweave.models.outline.OutlineNode` trees and returns new
values built with ``model_copy``.  The record store keeps nodes as a flat
arena linked by ``parent_id``; :func:`flatten_nodes` and
:func:`build_tree_from_flat` convert between that arena and the tree view.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from typing import Any

from mindweave.models.outline import (
    FlatOutlineNode,
    NodeModification,
    OutlineDiff,
    OutlineDocument,
    OutlineNode,
    VisualMetadata,
)
from mindweave.utils.errors import ValidationError

# Horizontal gap between sibling nodes in the auto layout.
_SIBLING_GAP = 50


def count_nodes(nodes: Sequence[OutlineNode]) -> int:
    """Total number of nodes in *nodes* and all their descendants."""
    return sum(1 + count_nodes(node.children) for node in nodes)


def get_max_depth(nodes: Sequence[OutlineNode]) -> int:
    """Deepest ``level`` reached anywhere in the forest (0 when empty)."""
    depth = 0
    for node in nodes:
        depth = max(depth, node.level, get_max_depth(node.children))
    return depth


def find_node_by_id(nodes: Sequence[OutlineNode], node_id: str) -> OutlineNode | None:
    """Depth-first search; the first match in pre-order wins."""
    for node in nodes:
        if node.id == node_id:
            return node
        found = find_node_by_id(node.children, node_id)
        if found is not None:
            return found
    return None


def iter_depth_first(nodes: Sequence[OutlineNode]) -> Iterable[OutlineNode]:
    """Yield every node in pre-order (parent before its children)."""
    for node in nodes:
        yield node
        yield from iter_depth_first(node.children)


def flatten_nodes(nodes: Sequence[OutlineNode]) -> list[FlatOutlineNode]:
    """Flatten a forest into pre-order :class:`FlatOutlineNode` records.

    Each child's ``parent_id`` is set to its parent's id; root nodes keep
    whatever ``parent_id`` they carried.
    """
    flat: list[FlatOutlineNode] = []

    def _walk(level_nodes: Sequence[OutlineNode], parent_id: str | None, is_root: bool) -> None:
        for node in level_nodes:
            data = node.model_dump(exclude={"children"})
            if not is_root:
                data["parent_id"] = parent_id
            flat.append(FlatOutlineNode.model_validate(data))
            _walk(node.children, node.id, is_root=False)

    _walk(nodes, None, is_root=True)
    return flat


def build_tree_from_flat(flat_nodes: Iterable[Any]) -> list[OutlineNode]:
    """Rebuild a forest from flat records linked by ``parent_id``.

    Accepts anything with the node fields as attributes
    (:class:`FlatOutlineNode`, :class:`~mindweave.models.outline.NodeRecord`).
    Nodes without an id are dropped, as are nodes whose parent is not in
    the input.  Children keep their input order, so callers that want
    siblings sorted pass the records sorted by ``order``.
    """
    by_id: dict[str, dict[str, Any]] = {}
    ordered_ids: list[str] = []
    for record in flat_nodes:
        if not record.id:
            continue
        data = {field: getattr(record, field, None) for field in FlatOutlineNode.model_fields}
        if data["visual"] is None:
            data["visual"] = VisualMetadata()
        if data["citations"] is None:
            data["citations"] = []
        data["children"] = []
        by_id[record.id] = data
        ordered_ids.append(record.id)

    root_ids: list[str] = []
    for node_id in ordered_ids:
        parent_id = by_id[node_id]["parent_id"]
        if parent_id is None:
            root_ids.append(node_id)
        elif parent_id in by_id:
            by_id[parent_id]["children"].append(node_id)

    def _build(node_id: str) -> OutlineNode:
        data = dict(by_id[node_id])
        data["children"] = [_build(child_id) for child_id in data["children"]]
        return OutlineNode.model_validate(data)

    return [_build(node_id) for node_id in root_ids]


def generate_auto_layout(
    nodes: Sequence[OutlineNode],
    start_x: float = 0,
    start_y: float = 0,
    level_height: float = 150,
    node_width: float = 200,
) -> list[OutlineNode]:
    """Assign grid positions to every node.

    ``x`` is the sibling index times ``node_width + 50``, offset from the
    parent's ``x``; ``y`` is ``level * level_height``.  Only ``x`` and ``y``
    change; the other visual fields are kept.
    """
    laid_out: list[OutlineNode] = []
    for index, node in enumerate(nodes):
        x = start_x + index * (node_width + _SIBLING_GAP)
        y = start_y + node.level * level_height
        children = generate_auto_layout(
            node.children,
            start_x=x,
            start_y=start_y,
            level_height=level_height,
            node_width=node_width,
        )
        laid_out.append(
            node.model_copy(
                update={
                    "visual": node.visual.model_copy(update={"x": float(x), "y": float(y)}),
                    "children": children,
                }
            )
        )
    return laid_out


def calculate_diff(old_nodes: Sequence[OutlineNode], new_nodes: Sequence[OutlineNode]) -> OutlineDiff:
    """Compare two forests node by node, keyed by id.

    A node present in both counts as modified when any of its own fields
    differ (children are compared as separate nodes).  Nodes without an id
    cannot be matched and are ignored.
    """
    old_by_id = {node.id: node for node in flatten_nodes(old_nodes) if node.id}
    new_by_id = {node.id: node for node in flatten_nodes(new_nodes) if node.id}

    added = [node for node_id, node in new_by_id.items() if node_id not in old_by_id]
    removed = [node for node_id, node in old_by_id.items() if node_id not in new_by_id]
    modified = [
        NodeModification(id=node_id, old=old_by_id[node_id], new=node)
        for node_id, node in new_by_id.items()
        if node_id in old_by_id and old_by_id[node_id] != node
    ]
    return OutlineDiff(added=added, removed=removed, modified=modified)


def serialize_outline(document: OutlineDocument) -> str:
    return document.model_dump_json(indent=2)


def deserialize_outline(data: str) -> OutlineDocument:
    """Parse and validate a JSON outline document.

    Raises
    ------
    ValidationError
        If the JSON is malformed or the document fails validation.
    """
    # Imported here: the validator itself uses the helpers above.
    from mindweave.services.outline_validator import validate_outline_document

    try:
        raw = json.loads(data)
    except json.JSONDecodeError as exc:
        raise ValidationError(message=f"Outline is not valid JSON: {exc}") from exc

    result = validate_outline_document(raw)
    if not result.valid or result.document is None:
        raise ValidationError(
            message=f"Invalid outline document: {'; '.join(result.errors)}",
            errors=result.errors,
        )
    return result.document
