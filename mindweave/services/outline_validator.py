"""Schema and structure validation for outline documents.

Validation runs in two passes:

1. **Schema** -- pydantic parses the input into :class:`OutlineNode` or
   :class:`OutlineDocument`.  Any field error makes the result invalid and
   the structural pass is skipped.
2. **Structure** -- checks pydantic cannot express on a single model:

   =================================================  =========
   Check                                              Severity
   =================================================  =========
   node id appears more than once in the tree         error
   root ``level`` is not 0                            error
   child ``level`` is not ``parent.level + 1``        error
   two siblings share an ``order`` value              warning
   ``metadata.total_nodes`` / ``max_depth`` drift     warning
   =================================================  =========

Neither function raises for bad input; callers inspect
:class:`ValidationResult.valid`.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pydantic

from mindweave.models.outline import OutlineDocument, OutlineNode, ValidationResult
from mindweave.utils.outline_tree import count_nodes, get_max_depth


def validate_outline_node(data: Any) -> ValidationResult:
    """Validate a single node and its subtree.

    The node's own ``level`` is taken as given; only its descendants are
    checked against it.
    """
    try:
        node = OutlineNode.model_validate(data)
    except pydantic.ValidationError as exc:
        return ValidationResult(valid=False, errors=format_pydantic_errors(exc))

    errors: list[str] = []
    warnings: list[str] = []
    _check_tree([node], expected_level=None, seen_ids=set(), errors=errors, warnings=warnings)
    if errors:
        return ValidationResult(valid=False, errors=errors, warnings=warnings)
    return ValidationResult(valid=True, warnings=warnings, node=node)


def validate_outline_document(data: Any) -> ValidationResult:
    """Validate a whole outline document."""
    try:
        document = OutlineDocument.model_validate(data)
    except pydantic.ValidationError as exc:
        return ValidationResult(valid=False, errors=format_pydantic_errors(exc))

    errors: list[str] = []
    warnings: list[str] = []
    _check_tree(document.root_nodes, expected_level=0, seen_ids=set(), errors=errors, warnings=warnings)

    total = count_nodes(document.root_nodes)
    if document.metadata.total_nodes != total:
        warnings.append(
            f"Node count mismatch: metadata says {document.metadata.total_nodes}, "
            f"actual count is {total}"
        )
    depth = get_max_depth(document.root_nodes)
    if document.metadata.max_depth != depth:
        warnings.append(
            f"Max depth mismatch: metadata says {document.metadata.max_depth}, "
            f"actual depth is {depth}"
        )

    if errors:
        return ValidationResult(valid=False, errors=errors, warnings=warnings)
    return ValidationResult(valid=True, warnings=warnings, document=document)


def format_pydantic_errors(exc: pydantic.ValidationError) -> list[str]:
    """Render pydantic errors as ``"root_nodes.0.content: message"`` strings."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        messages.append(f"{location}: {error['msg']}" if location else error["msg"])
    return messages


def _check_tree(
    nodes: Sequence[OutlineNode],
    expected_level: int | None,
    seen_ids: set[str],
    errors: list[str],
    warnings: list[str],
) -> None:
    seen_orders: set[int] = set()
    for node in nodes:
        if node.id is not None:
            if node.id in seen_ids:
                errors.append(f"Duplicate node ID: {node.id}")
            seen_ids.add(node.id)

        if expected_level is not None and node.level != expected_level:
            errors.append(
                f"Node {node.id or node.title or '?'} has level {node.level}, "
                f"expected {expected_level}"
            )

        if node.order in seen_orders:
            warnings.append(f"Duplicate order at level {node.level}: {node.order}")
        seen_orders.add(node.order)

        _check_tree(node.children, node.level + 1, seen_ids, errors, warnings)
