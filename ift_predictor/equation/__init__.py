"""Closed-form item equations built from item-focused trees.

The branch equation of a DIF item is a typed expression tree that can be
evaluated over a dataset and rendered for auditing.
"""

from ._expressions import (
    Expression,
    Leaf,
    Variable,
    Indicator,
    Product,
    Sum,
    ComparisonOp,
    format_number,
)
from ._builder import (
    ROOT_NODE_ID,
    NodeKind,
    build_branch_expression,
    branch_equation,
    validate_item_tree,
)

__all__ = [
    "Expression",
    "Leaf",
    "Variable",
    "Indicator",
    "Product",
    "Sum",
    "ComparisonOp",
    "format_number",
    "ROOT_NODE_ID",
    "NodeKind",
    "build_branch_expression",
    "branch_equation",
    "validate_item_tree",
]
