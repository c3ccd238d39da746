"""Branch equation builder.

Compiles the split tree of a DIF item into a sum of leaf terms. Each leaf
contributes ``coefficient * I(cond_1) * ... * I(cond_k)``, where the
conditions are the splits on the path from the root to the leaf, so exactly
one leaf term is non-zero for a row.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Literal, Mapping, Sequence, Set, Tuple

import pandas as pd

from ift_predictor.core._exceptions import (
    MalformedTreeError,
    MissingCoefficientError,
    SplitNotFoundError,
)
from ift_predictor.model._model import SplitRecord
from ._expressions import Expression, Indicator, Leaf, Product, Sum


logger = logging.getLogger(__name__)

ROOT_NODE_ID = 1

NodeKind = Literal["leaf", "internal"]
SplitTable = Sequence[SplitRecord | Mapping[str, Any]] | pd.DataFrame


def _as_split_records(split_table: SplitTable) -> List[SplitRecord]:
    if isinstance(split_table, pd.DataFrame):
        split_table = split_table.to_dict(orient="records")  # type: ignore
    return [
        s if isinstance(s, SplitRecord) else SplitRecord.model_validate(s)
        for s in split_table
    ]


def _index_splits(
    split_rows: Iterable[SplitRecord], item: int | None
) -> Dict[int, SplitRecord]:
    by_number: Dict[int, SplitRecord] = {}
    for split in split_rows:
        if split.number in by_number:
            raise MalformedTreeError(
                f"Duplicate split rows for node {split.number}"
                + (f" of item {item}." if item is not None else ".")
            )
        by_number[split.number] = split
    return by_number


def _as_coefficients(leaf_coefficients: Mapping[Any, Any]) -> Dict[int, float]:
    return {int(k): float(v) for k, v in leaf_coefficients.items()}


def build_branch_expression(
    node_id: int,
    split_table: SplitTable,
    leaf_ids: Iterable[int] | None,
    leaf_coefficients: Mapping[Any, Any],
    accumulated_conditions: Sequence[Expression] = (),
    *,
    item: int | None = None,
) -> Expression:
    """Build the branch expression of the subtree rooted at ``node_id``.

    Args:
        node_id: Root of the subtree. Either a leaf id or a split row number.
        split_table: Split rows of a single item.
        leaf_ids: Terminal node ids. If None, the keys of ``leaf_coefficients``.
        leaf_coefficients: Coefficient per leaf node id.
        accumulated_conditions: Indicators of the splits above ``node_id``.
        item: The item the tree belongs to, used in error messages.

    Returns:
        The sum of the leaf terms of the subtree, left branches first. A root
        that is itself a leaf yields the bare coefficient.

    Raises:
        SplitNotFoundError: If a node is neither a leaf nor a split row.
        MissingCoefficientError: If a reachable leaf has no coefficient.
        MalformedTreeError: If the tree has a cycle, a shared child or duplicate
            split rows.
    """
    by_number = _index_splits(_as_split_records(split_table), item)
    coefficients = _as_coefficients(leaf_coefficients)
    leaves: Set[int] = (
        set(coefficients) if leaf_ids is None else {int(n) for n in leaf_ids}
    )
    visited: Set[int] = set()

    def generate(
        node: int, conditions: Tuple[Expression, ...], path: Tuple[int, ...]
    ) -> Expression:
        if node in path:
            raise MalformedTreeError(
                f"Cycle detected at node {node}: path {' -> '.join(map(str, path))}"
            )
        if node in visited:
            raise MalformedTreeError(
                f"Node {node} is reached more than once"
                + (f" in the tree of item {item}." if item is not None else ".")
            )
        visited.add(node)

        if node in leaves:
            coefficient = coefficients.get(node)
            if coefficient is None:
                raise MissingCoefficientError(node, item)
            if not conditions:
                return Leaf(coefficient)
            return Product((Leaf(coefficient), *conditions))

        split = by_number.get(node)
        if split is None:
            raise SplitNotFoundError(node, item)
        if split.left is None or split.right is None:
            raise MalformedTreeError(
                f"Split node {node} must have both a left and a right child."
            )

        left_conditions = (
            *conditions,
            Indicator(split.variable, "<=", split.threshold),
        )
        right_conditions = (
            *conditions,
            Indicator(split.variable, ">", split.threshold),
        )

        left = generate(split.left, left_conditions, (*path, node))
        right = generate(split.right, right_conditions, (*path, node))
        return Sum.of(left, right)

    return generate(int(node_id), tuple(accumulated_conditions), ())


def branch_equation(
    node_id: int,
    split_table: SplitTable,
    leaf_ids: Iterable[int] | None,
    leaf_coefficients: Mapping[Any, Any],
    accumulated_conditions: Sequence[Expression] = (),
) -> str:
    """Rendered form of :func:`build_branch_expression`."""
    return build_branch_expression(
        node_id, split_table, leaf_ids, leaf_coefficients, accumulated_conditions
    ).render()


def validate_item_tree(
    item: int,
    split_rows: SplitTable,
    leaf_coefficients: Mapping[Any, Any],
    leaf_ids: Iterable[int] | None = None,
) -> Dict[int, NodeKind]:
    """Check that an item's splits form a finite binary tree rooted at node 1.

    Args:
        item: The item index.
        split_rows: Split rows of the item.
        leaf_coefficients: Coefficient per leaf node id.
        leaf_ids: Terminal node ids. If None, the keys of ``leaf_coefficients``.

    Returns:
        Every node reachable from the root, tagged as "leaf" or "internal".

    Raises:
        SplitNotFoundError: If a child reference resolves to no node.
        MissingCoefficientError: If a reachable leaf has no coefficient.
        MalformedTreeError: On duplicate, childless or unreachable split rows,
            ids tagged both leaf and internal, cycles, or unreachable leaves.
    """
    by_number = _index_splits(_as_split_records(split_rows), item)
    coefficients = _as_coefficients(leaf_coefficients)
    leaves: Set[int] = (
        set(coefficients) if leaf_ids is None else {int(n) for n in leaf_ids}
    )

    for number, split in by_number.items():
        if number in leaves:
            raise MalformedTreeError(
                f"Node {number} of item {item} is both a split row and a leaf."
            )
        if not split.is_internal:
            raise MalformedTreeError(
                f"Split node {number} of item {item} must have both children."
            )

    kinds: Dict[int, NodeKind] = {}
    stack: List[int] = [ROOT_NODE_ID]
    while stack:
        node = stack.pop()
        if node in kinds:
            raise MalformedTreeError(
                f"Node {node} of item {item} is reached more than once. "
                "The split table does not describe a tree."
            )
        if node in leaves:
            if node not in coefficients:
                raise MissingCoefficientError(node, item)
            kinds[node] = "leaf"
            continue
        split = by_number.get(node)
        if split is None:
            raise SplitNotFoundError(node, item)
        kinds[node] = "internal"
        stack.append(split.right)  # type: ignore[arg-type]
        stack.append(split.left)  # type: ignore[arg-type]

    unreachable_splits = sorted(set(by_number) - set(kinds))
    if unreachable_splits:
        raise MalformedTreeError(
            f"Split rows {unreachable_splits} of item {item} are not reachable "
            f"from node {ROOT_NODE_ID}."
        )
    unreachable_leaves = sorted(set(coefficients) - set(kinds))
    if unreachable_leaves:
        raise MalformedTreeError(
            f"Leaf coefficients {unreachable_leaves} of item {item} are not "
            f"reachable from node {ROOT_NODE_ID}."
        )

    logger.debug(
        f"Item {item}: validated tree with "
        f"{sum(k == 'internal' for k in kinds.values())} splits and "
        f"{sum(k == 'leaf' for k in kinds.values())} leaves"
    )
    return kinds
