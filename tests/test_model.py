"""Tests for ItemTreeModel."""

import math

import pandas as pd
import pytest
from pydantic import ValidationError

from ift_predictor import CorruptionError, ItemTreeModel, SplitRecord
from ift_predictor.model import MODEL_FILE_NAME


DIFTREE_LAYOUT = {
    "coefficients": {
        "betas": [0.8, 1.1, 0.6],
        "gammas_dif": {"1": {"2": "0.5", "3": "-0.3"}},
        "gammas_nodif": {"gamma2": 0.1, "gamma3": -1.2},
    },
    "splits": [
        {"item": 1, "number": 1, "left": 2, "right": 3, "var": "age", "threshold": 30}
    ],
}


@pytest.fixture
def model() -> ItemTreeModel:
    return ItemTreeModel.from_dict(DIFTREE_LAYOUT)


def test_from_diftree_layout(model: ItemTreeModel):
    assert model.betas == {1: 0.8, 2: 1.1, 3: 0.6}
    assert model.gammas_dif == {1: {2: 0.5, 3: -0.3}}
    assert model.gammas_nodif == {2: 0.1, 3: -1.2}
    assert model.splits == (
        SplitRecord(item=1, number=1, left=2, right=3, variable="age", threshold=30),
    )
    assert model.items == [1, 2, 3]
    assert model.is_dif_item(1)
    assert not model.is_dif_item(2)


def test_from_flat_layout():
    model = ItemTreeModel.from_dict(
        {"betas": {"beta2": 1.0, "beta1": 2.0}, "gammas_nodif": {1: 0.0, 2: 0.5}}
    )
    assert model.items == [1, 2]
    assert model.splits == ()
    assert model.gammas_dif == {}


def test_splits_from_data_frame_with_missing_children():
    splits = pd.DataFrame(
        {
            "item": [2, 1, 1],
            "number": [1, 2, 1],
            "left": [2.0, math.nan, 2.0],
            "right": [3.0, math.nan, 3.0],
            "variable": ["sex", "x2", "age"],
            "threshold": [0.0, 0.5, 30.0],
        }
    )
    model = ItemTreeModel(betas=[1.0, 1.0], splits=splits)

    item_1 = model.item_splits(1)
    assert [s.number for s in item_1] == [1, 2]
    assert item_1[1].left is None and item_1[1].right is None
    assert not item_1[1].is_internal
    assert item_1[0].is_internal
    assert model.split_variables(1) == ["age", "x2"]
    assert model.split_variables(2) == ["sex"]


def test_model_is_frozen(model: ItemTreeModel):
    with pytest.raises(ValidationError):
        model.betas = {1: 0.0}  # type: ignore[misc]


@pytest.mark.parametrize(
    "data",
    [
        {"betas": {"not-an-item": 1.0}},
        {"betas": [1.0], "splits": [{"item": 0, "number": 1, "variable": "a", "threshold": 1}]},
        {"betas": [1.0], "splits": [{"item": 1, "number": 1.5, "variable": "a", "threshold": 1}]},
        {"betas": ["high"]},
        {"betas": {"beta0": 1.0}},
        {"betas": [1.0], "gammas_nodif": {0: 0.1}},
        {"betas": [1.0], "gammas_dif": {1: {0: 0.5, 2: -0.5}}},
    ],
)
def test_invalid_models_are_rejected(data: dict):
    with pytest.raises(ValidationError):
        ItemTreeModel.from_dict(data)


def test_save_and_load(model: ItemTreeModel, tmp_path):
    path = model.save(tmp_path / "model")

    assert path.name == MODEL_FILE_NAME
    assert ItemTreeModel.load(tmp_path / "model") == model
    assert ItemTreeModel.load(path) == model


def test_save_to_file_is_rejected(model: ItemTreeModel, tmp_path):
    target = tmp_path / "a_file.json"
    target.write_text("{}")
    with pytest.raises(ValueError):
        model.save(target)


def test_load_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        ItemTreeModel.load(tmp_path)


@pytest.mark.parametrize(
    "content",
    [
        b'{"created_at": "2024-01-01"}',
        b"not json",
        b'{"model": {"betas": {"x": 1}}}',
    ],
)
def test_load_corrupted(tmp_path, content: bytes):
    (tmp_path / MODEL_FILE_NAME).write_bytes(content)
    with pytest.raises(CorruptionError):
        ItemTreeModel.load(tmp_path)
