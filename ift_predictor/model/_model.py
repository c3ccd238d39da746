"""Fitted item-focused tree model.

Immutable container for the coefficients and the split table produced by the
upstream tree fitting procedure (e.g. R's ``DIFtree``).
"""

from __future__ import annotations

import datetime
import logging
import math
import numbers
import re
from os import PathLike
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple

import orjson
import pandas as pd
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from pydantic import field_validator

from ift_predictor.core._exceptions import CorruptionError


logger = logging.getLogger(__name__)

MODEL_FILE_NAME = "ift_model.json"

_INDEX_KEY = re.compile(r"[A-Za-z_]*(\d+)")


def _parse_index(key: Any) -> int:
    """Parse an item/node key such as ``3``, ``"3"``, ``"beta3"`` or ``"gamma3"``.

    Items and nodes are numbered from 1.
    """
    index: int | None = None
    if isinstance(key, bool):
        pass
    elif isinstance(key, numbers.Integral):
        index = int(key)
    elif isinstance(key, numbers.Real) and float(key).is_integer():
        index = int(key)
    elif isinstance(key, str):
        match = _INDEX_KEY.fullmatch(key.strip())
        if match:
            index = int(match.group(1))
    if index is None:
        raise ValueError(f"Invalid index key: {key!r}")
    if index < 1:
        raise ValueError(f"Index key must be >= 1, got {key!r}")
    return index


def _is_missing(value: Any) -> bool:
    if value is None or value is pd.NA:
        return True
    return isinstance(value, numbers.Real) and math.isnan(float(value))


class SplitRecord(BaseModel):
    """One row of the split table: an internal node of an item's tree."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    item: int = Field(ge=1, description="The item the split belongs to (1-based).")
    number: int = Field(ge=1, description="The node id of the split.")
    left: int | None = Field(
        default=None, description="Node id of the left child (variable <= threshold)."
    )
    right: int | None = Field(
        default=None, description="Node id of the right child (variable > threshold)."
    )
    variable: str = Field(
        validation_alias=AliasChoices("variable", "var"),
        description="The dataset column the node splits on.",
    )
    threshold: float = Field(description="The split threshold.")

    @field_validator("item", "number", "left", "right", mode="before")
    @classmethod
    def _coerce_node_id(cls, value: Any) -> Any:
        if _is_missing(value):
            return None
        if isinstance(value, numbers.Real) and not isinstance(value, bool):
            if float(value).is_integer():
                return int(value)
        return value

    @property
    def is_internal(self) -> bool:
        """Whether both children are present."""
        return self.left is not None and self.right is not None


class ItemTreeModel(BaseModel):
    """A fitted item-focused tree model.

    Args:
        betas: Slope of the total score per item.
        gammas_dif: Leaf coefficients per DIF item, keyed by leaf node id.
        gammas_nodif: Flat offset per item without DIF.
        splits: The split table of all DIF items.
    """

    model_config = ConfigDict(frozen=True)

    betas: Dict[int, float] = Field(
        description="Coefficient of the total score for each item."
    )
    gammas_dif: Dict[int, Dict[int, float]] = Field(
        default_factory=dict,
        description="Leaf node coefficients of each DIF item.",
    )
    gammas_nodif: Dict[int, float] = Field(
        default_factory=dict,
        description="Intercept of each item free of DIF.",
    )
    splits: Tuple[SplitRecord, ...] = Field(
        default=(), description="Split rows of all DIF item trees."
    )

    @field_validator("betas", "gammas_nodif", mode="before")
    @classmethod
    def _coerce_item_coefficients(cls, value: Any) -> Any:
        if isinstance(value, pd.Series):
            value = value.to_dict()
        if isinstance(value, (list, tuple)):
            return {i: v for i, v in enumerate(value, start=1)}
        if isinstance(value, Mapping):
            return {_parse_index(k): v for k, v in value.items()}
        return value

    @field_validator("gammas_dif", mode="before")
    @classmethod
    def _coerce_leaf_coefficients(cls, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        return {
            _parse_index(item): (
                {_parse_index(k): v for k, v in leaves.items()}
                if isinstance(leaves, Mapping)
                else leaves
            )
            for item, leaves in value.items()
        }

    @field_validator("splits", mode="before")
    @classmethod
    def _coerce_splits(cls, value: Any) -> Any:
        if isinstance(value, pd.DataFrame):
            return value.to_dict(orient="records")
        return value

    @property
    def items(self) -> List[int]:
        """Item indices in ascending order."""
        return sorted(self.betas)

    def is_dif_item(self, item: int) -> bool:
        """Check if the item has DIF leaf coefficients."""
        return item in self.gammas_dif

    def item_splits(self, item: int) -> List[SplitRecord]:
        """Split rows of an item, sorted by node id."""
        return sorted(
            (s for s in self.splits if s.item == item), key=lambda s: s.number
        )

    def split_variables(self, item: int) -> List[str]:
        """Distinct split variables of an item, in node order."""
        return list(dict.fromkeys(s.variable for s in self.item_splits(item)))

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> ItemTreeModel:
        """Build a model from a dictionary.

        Accepts the flat field layout as well as the ``DIFtree`` layout where
        the coefficient sets are nested under ``"coefficients"``.
        """
        data = dict(d)
        if coefficients := data.pop("coefficients", None):
            data = {**coefficients, **data}
        return cls.model_validate(data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the model to a dictionary (flat layout)."""
        return self.model_dump()

    def save(self, dir_path: str | PathLike[str]) -> Path:
        """Save the model as JSON into a directory.

        Args:
            dir_path: The directory to save the model to.

        Returns:
            Path of the written JSON file.
        """
        base = Path(dir_path)
        if base.is_file():
            raise ValueError("Please provide a directory, not a file.")
        base.mkdir(parents=True, exist_ok=True)

        payload: Dict[str, object] = {
            "created_at": datetime.datetime.now().isoformat(),
            "model": self.to_dict(),
        }
        payload_json = orjson.dumps(
            payload,
            option=orjson.OPT_NON_STR_KEYS | orjson.OPT_SERIALIZE_NUMPY,
        )

        path = base / MODEL_FILE_NAME
        with path.open("w", encoding="utf-8") as f:
            f.write(payload_json.decode("utf-8"))
        logger.debug(f"Saved model with {len(self.betas)} items to {path}")
        return path

    @classmethod
    def load(cls, path: str | PathLike[str]) -> ItemTreeModel:
        """Load a model saved with :meth:`save`.

        Args:
            path: Directory containing the model JSON, or the JSON file itself.

        Returns:
            Reconstructed ItemTreeModel instance.

        Raises:
            FileNotFoundError: If the model JSON does not exist.
            CorruptionError: If the JSON does not describe a valid model.
        """
        base = Path(path)
        json_path = base / MODEL_FILE_NAME if base.is_dir() else base
        if not json_path.exists():
            raise FileNotFoundError(f"'{MODEL_FILE_NAME}' not found at: {base}")

        try:
            manifest = orjson.loads(json_path.read_bytes())
            return cls.from_dict(manifest["model"])
        except (KeyError, TypeError) as e:
            raise CorruptionError(
                f"Failed to load model. Model json is probably corrupted: {e}"
            ) from e
        except orjson.JSONDecodeError as e:
            raise CorruptionError(f"Failed to load model. Invalid json: {e}") from e
        except ValidationError as e:
            raise CorruptionError(f"Failed to load model. Invalid model: {e}") from e
