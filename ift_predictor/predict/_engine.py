"""Item response prediction.

For item ``i`` the linear predictor is

    n_i = beta_i * S + gamma_i                              (no DIF)
    n_i = beta_i * S + sum_leaf gamma_leaf * I(path(leaf))  (DIF)

where ``S`` is the total score. ``p_i = logistic(n_i)`` and the predicted
response is ``I_i = 1`` iff ``p_i >= 0.5``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

import numpy as np
import numpy.typing as npt
import pandas as pd

from ift_predictor.core._config import Settings, settings as default_settings
from ift_predictor.core._exceptions import (
    ColumnConflictError,
    MissingCoefficientError,
    MissingColumnError,
    UnresolvedVariableError,
)
from ift_predictor.core._types import DatasetLike
from ift_predictor.equation import (
    ROOT_NODE_ID,
    Expression,
    Leaf,
    Product,
    Sum,
    Variable,
    build_branch_expression,
    validate_item_tree,
)
from ift_predictor.model._model import ItemTreeModel


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PredictionResult:
    """Equations and predictions for every item of a model."""

    equations: Dict[str, str] = field(
        metadata={"description": "Rendered equation per item, in item order."}
    )
    expressions: Dict[str, Expression] = field(
        metadata={"description": "Expression tree per item, in item order."}
    )
    predictions: pd.DataFrame = field(
        metadata={
            "description": "The dataset with linear predictor, probability and "
            "predicted response columns for each item."
        }
    )


def logistic(values: npt.ArrayLike) -> npt.NDArray[np.float64]:
    """Numerically stable logistic function.

    Uses ``1 / (1 + exp(-n))`` for ``n >= 0`` and ``exp(n) / (1 + exp(n))``
    otherwise, so ``exp`` never overflows. NaN stays NaN.
    """
    n = np.asarray(values, dtype=float)
    z = np.exp(-np.abs(n))
    return np.where(n >= 0, 1.0 / (1.0 + z), z / (1.0 + z))


def _as_frame(dataset: DatasetLike) -> pd.DataFrame:
    if isinstance(dataset, pd.DataFrame):
        return dataset.copy()
    return pd.DataFrame.from_records(list(dataset))


def _check_records(
    rows: Sequence[Mapping[str, Any]], model: ItemTreeModel, total_score: str
) -> None:
    """Every row mapping must carry the total score and the split variables."""
    required: Dict[str, int | None] = {total_score: None}
    for item in model.items:
        if model.is_dif_item(item):
            for variable in model.split_variables(item):
                required.setdefault(variable, item)

    for idx, row in enumerate(rows):
        for variable, item in required.items():
            if variable in row:
                continue
            if item is None:
                raise MissingColumnError(
                    variable, f"Column '{variable}' not found in row {idx}."
                )
            raise UnresolvedVariableError(variable, item, row=idx)


def _as_model(model: ItemTreeModel | Mapping[str, Any]) -> ItemTreeModel:
    if isinstance(model, ItemTreeModel):
        return model
    return ItemTreeModel.from_dict(model)


def item_expression(model: ItemTreeModel, item: int, total_score: str) -> Expression:
    """Assemble the linear predictor expression of one item.

    Raises:
        MissingCoefficientError: If the item has no DIF or no-DIF coefficients.
        SplitNotFoundError: If the item's split tree is broken.
    """
    score_term = Product((Leaf(model.betas[item]), Variable(total_score)))

    if model.is_dif_item(item):
        branch = build_branch_expression(
            ROOT_NODE_ID,
            model.item_splits(item),
            None,
            model.gammas_dif[item],
            item=item,
        )
        return Sum.of(score_term, branch)

    if item not in model.gammas_nodif:
        raise MissingCoefficientError(None, item)
    return Sum.of(score_term, Leaf(model.gammas_nodif[item]))


def _check_columns(
    frame: pd.DataFrame,
    model: ItemTreeModel,
    total_score: str,
    config: Settings,
) -> None:
    if total_score not in frame.columns:
        raise MissingColumnError(
            total_score,
            f"Please provide the '{total_score}' column. "
            "Calculate it first and pass it to the function.",
        )

    output_columns = [
        col for item in model.items for col in config.column_names(item)
    ]
    duplicated = sorted(
        {col for col in output_columns if output_columns.count(col) > 1}
    )
    if duplicated:
        raise ColumnConflictError(
            f"Output columns {duplicated} are produced more than once. "
            "Choose column prefixes that cannot collide."
        )

    existing = [col for col in output_columns if col in frame.columns]
    if existing:
        raise ColumnConflictError(
            f"Output columns {existing} already exist in the dataset. "
            "Rename or drop them before predicting."
        )

    for item in model.items:
        if not model.is_dif_item(item):
            continue
        for variable in model.split_variables(item):
            if variable not in frame.columns:
                raise UnresolvedVariableError(variable, item)


def predict_item_responses(
    model: ItemTreeModel | Mapping[str, Any],
    dataset: DatasetLike,
    total_score: str = "total_score",
    *,
    settings: Settings | None = None,
) -> PredictionResult:
    """Predict item response probabilities and responses with an IFT model.

    Args:
        model: The fitted model, or a dictionary accepted by
            :meth:`ItemTreeModel.from_dict`.
        dataset: Data frame (or sequence of row mappings) with the total score
            column and every split variable of the DIF items.
        total_score: Name of the total score column.
        settings: Output naming and classification threshold. Defaults to the
            module settings.

    Returns:
        The equation of every item and a copy of the dataset extended with the
        linear predictor, probability and predicted response of every item.

    Raises:
        MissingColumnError: If the total score column is absent.
        ColumnConflictError: If an output column already exists or two output
            columns share a name.
        UnresolvedVariableError: If a split variable is absent.
        SplitNotFoundError: If a DIF item's tree references an unknown node.
        MissingCoefficientError: If a leaf or an item has no coefficient.
        MalformedTreeError: If a DIF item's splits do not form a tree.
    """
    config = settings or default_settings
    model = _as_model(model)
    if not isinstance(dataset, pd.DataFrame):
        dataset = list(dataset)
        _check_records(dataset, model, total_score)
    frame = _as_frame(dataset)

    _check_columns(frame, model, total_score, config)

    for item in model.items:
        if model.is_dif_item(item):
            validate_item_tree(item, model.item_splits(item), model.gammas_dif[item])

    expressions: Dict[int, Expression] = {
        item: item_expression(model, item, total_score) for item in model.items
    }

    equations: Dict[str, str] = {}
    expression_map: Dict[str, Expression] = {}
    new_columns: Dict[str, Any] = {}
    incomplete_items: List[int] = []

    for item, expression in expressions.items():
        n_col, p_col, i_col = config.column_names(item)
        key = config.equation_key(item)

        linear_predictor = expression.evaluate(frame)
        probability = logistic(linear_predictor)
        missing = np.isnan(probability)
        prediction = pd.Series(
            np.where(probability >= config.PROBABILITY_THRESHOLD, 1, 0),
            index=frame.index,
            dtype="Int64",
        ).mask(missing)

        new_columns[n_col] = linear_predictor
        new_columns[p_col] = probability
        new_columns[i_col] = prediction.array
        equations[key] = expression.render()
        expression_map[key] = expression

        if missing.any():
            incomplete_items.append(item)
        logger.debug(f"Item {item}: {equations[key]}")

    if incomplete_items:
        logger.warning(
            f"Missing values in the total score or split variables left "
            f"predictions undefined for items {incomplete_items}"
        )

    predictions = pd.concat(
        [frame, pd.DataFrame(new_columns, index=frame.index)], axis=1
    )
    logger.info(
        f"Predicted {len(expressions)} items "
        f"({sum(model.is_dif_item(i) for i in expressions)} with DIF) "
        f"for {len(frame)} rows"
    )
    return PredictionResult(
        equations=equations,
        expressions=expression_map,
        predictions=predictions,
    )


def add_total_score(
    dataset: DatasetLike,
    item_columns: Sequence[str],
    name: str = "total_score",
) -> pd.DataFrame:
    """Add the row sum of the item response columns as the total score.

    Rows with a missing response get a missing total score.

    Raises:
        MissingColumnError: If a response column is absent.
        ColumnConflictError: If ``name`` already exists.
    """
    frame = _as_frame(dataset)
    for col in item_columns:
        if col not in frame.columns:
            raise MissingColumnError(col)
    if name in frame.columns:
        raise ColumnConflictError(f"Column '{name}' already exists in the dataset.")
    frame[name] = frame[list(item_columns)].sum(axis=1, skipna=False)
    return frame
