"""The fitted item-focused tree model and its persistence."""

from ._model import ItemTreeModel, SplitRecord, MODEL_FILE_NAME

__all__ = ["ItemTreeModel", "SplitRecord", "MODEL_FILE_NAME"]
