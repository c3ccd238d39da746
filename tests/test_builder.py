"""Tests for the branch equation builder and item tree validation."""

import pandas as pd
import pytest

from ift_predictor import (
    MalformedTreeError,
    MissingCoefficientError,
    SplitNotFoundError,
)
from ift_predictor.equation import (
    Indicator,
    Leaf,
    branch_equation,
    build_branch_expression,
    validate_item_tree,
)
from ift_predictor.model import SplitRecord


SINGLE_SPLIT = [
    SplitRecord(item=1, number=1, left=2, right=3, variable="age", threshold=30)
]
SINGLE_SPLIT_COEFFICIENTS = {2: 0.5, 3: -0.3}

# 1: age <= 30 -> 2, else leaf 3
# 2: x2 <= 0.5 -> leaf 4, else leaf 5
DEEP_SPLITS = [
    SplitRecord(item=1, number=2, left=4, right=5, variable="x2", threshold=0.5),
    SplitRecord(item=1, number=1, left=2, right=3, variable="age", threshold=30),
]
DEEP_COEFFICIENTS = {3: -0.2, 4: 0.1, 5: 0.7}


def test_single_split_equation():
    equation = branch_equation(1, SINGLE_SPLIT, [2, 3], SINGLE_SPLIT_COEFFICIENTS)
    assert equation == "(0.5 * (age <= 30)) + (-0.3 * (age > 30))"


@pytest.mark.parametrize("age, expected", [(25, 0.5), (30, 0.5), (40, -0.3)])
def test_single_split_selects_exactly_one_leaf(age: float, expected: float):
    expr = build_branch_expression(1, SINGLE_SPLIT, [2, 3], SINGLE_SPLIT_COEFFICIENTS)
    assert expr.evaluate_row({"age": age}) == expected


def test_deep_tree_conditions_are_anded_along_the_path():
    expr = build_branch_expression(1, DEEP_SPLITS, None, DEEP_COEFFICIENTS)

    assert expr.render() == (
        "(0.1 * (age <= 30) * (x2 <= 0.5)) + "
        "(0.7 * (age <= 30) * (x2 > 0.5)) + "
        "(-0.2 * (age > 30))"
    )
    assert expr.evaluate_row({"age": 20, "x2": 0.1}) == pytest.approx(0.1)
    assert expr.evaluate_row({"age": 20, "x2": 0.9}) == pytest.approx(0.7)
    assert expr.evaluate_row({"age": 50, "x2": 0.1}) == pytest.approx(-0.2)


def test_root_leaf_degenerates_to_coefficient():
    expr = build_branch_expression(1, [], None, {1: 0.4})
    assert expr == Leaf(0.4)
    assert expr.render() == "0.4"


def test_accumulated_conditions_are_kept():
    expr = build_branch_expression(
        2, [], [2], {2: 0.5}, accumulated_conditions=[Indicator("age", "<=", 30)]
    )
    assert expr.render() == "(0.5 * (age <= 30))"


def test_string_keys_and_coefficients():
    equation = branch_equation(1, SINGLE_SPLIT, [2, 3], {"2": "0.5", "3": "-0.3"})
    assert equation == "(0.5 * (age <= 30)) + (-0.3 * (age > 30))"


def test_split_table_as_data_frame():
    splits = pd.DataFrame(
        {
            "item": [1],
            "number": [1],
            "left": [2.0],
            "right": [3.0],
            "var": ["age"],
            "threshold": [30.0],
        }
    )
    equation = branch_equation(1, splits, None, SINGLE_SPLIT_COEFFICIENTS)
    assert equation == "(0.5 * (age <= 30)) + (-0.3 * (age > 30))"


def test_missing_child_raises_split_not_found():
    with pytest.raises(SplitNotFoundError) as exc_info:
        build_branch_expression(1, SINGLE_SPLIT, None, {2: 0.5}, item=4)
    assert exc_info.value.node_id == 3
    assert exc_info.value.item == 4


def test_missing_leaf_coefficient():
    with pytest.raises(MissingCoefficientError) as exc_info:
        build_branch_expression(1, SINGLE_SPLIT, [2, 3], {2: 0.5})
    assert exc_info.value.node_id == 3


def test_cycle_terminates_with_error():
    splits = [
        SplitRecord(item=1, number=1, left=2, right=3, variable="a", threshold=1),
        SplitRecord(item=1, number=2, left=1, right=4, variable="b", threshold=2),
    ]
    with pytest.raises(MalformedTreeError):
        build_branch_expression(1, splits, None, {3: 0.1, 4: 0.2})


def test_shared_child_is_rejected():
    splits = [
        SplitRecord(item=1, number=1, left=2, right=2, variable="age", threshold=30)
    ]
    with pytest.raises(MalformedTreeError):
        build_branch_expression(1, splits, None, {2: 0.5})


def test_duplicate_split_rows():
    splits = SINGLE_SPLIT + [
        SplitRecord(item=1, number=1, left=2, right=3, variable="sex", threshold=0)
    ]
    with pytest.raises(MalformedTreeError):
        build_branch_expression(1, splits, None, SINGLE_SPLIT_COEFFICIENTS)


def test_validate_tags_every_node():
    kinds = validate_item_tree(1, DEEP_SPLITS, DEEP_COEFFICIENTS)
    assert kinds == {1: "internal", 2: "internal", 3: "leaf", 4: "leaf", 5: "leaf"}


def test_validate_missing_child():
    with pytest.raises(SplitNotFoundError):
        validate_item_tree(1, SINGLE_SPLIT, {2: 0.5})


def test_validate_missing_coefficient_for_known_leaf():
    with pytest.raises(MissingCoefficientError):
        validate_item_tree(1, SINGLE_SPLIT, {2: 0.5}, leaf_ids=[2, 3])


def test_validate_unreachable_leaf():
    with pytest.raises(MalformedTreeError):
        validate_item_tree(1, SINGLE_SPLIT, {2: 0.5, 3: -0.3, 7: 1.0})


def test_validate_unreachable_split():
    splits = SINGLE_SPLIT + [
        SplitRecord(item=1, number=9, left=10, right=11, variable="b", threshold=0)
    ]
    with pytest.raises(MalformedTreeError):
        validate_item_tree(1, splits, {2: 0.5, 3: -0.3, 10: 0.0, 11: 0.0})


def test_validate_node_both_leaf_and_split():
    with pytest.raises(MalformedTreeError):
        validate_item_tree(1, SINGLE_SPLIT, {1: 0.0, 2: 0.5, 3: -0.3})


def test_validate_split_without_both_children():
    splits = [SplitRecord(item=1, number=1, left=2, variable="age", threshold=30)]
    with pytest.raises(MalformedTreeError):
        validate_item_tree(1, splits, {2: 0.5})


def test_validate_shared_child():
    splits = [
        SplitRecord(item=1, number=1, left=2, right=2, variable="age", threshold=30)
    ]
    with pytest.raises(MalformedTreeError):
        validate_item_tree(1, splits, {2: 0.5})


def test_validate_cycle():
    splits = [
        SplitRecord(item=1, number=1, left=2, right=3, variable="a", threshold=1),
        SplitRecord(item=1, number=2, left=1, right=4, variable="b", threshold=2),
    ]
    with pytest.raises(MalformedTreeError):
        validate_item_tree(1, splits, {3: 0.1, 4: 0.2})
