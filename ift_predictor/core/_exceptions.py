from typing import Any


class DataError(Exception):
    """Data not in the expected format."""


class MissingColumnError(DataError):
    """A required column is absent from the dataset."""

    def __init__(self, column: str, message: str | None = None):
        self.column = column
        super().__init__(message or f"Column '{column}' not found in the dataset.")


class UnresolvedVariableError(DataError):
    """A variable referenced by an item equation is absent from the data."""

    def __init__(
        self, variable: str, item: int | None = None, row: Any | None = None
    ):
        self.variable = variable
        self.item = item
        self.row = row
        where = f" (item {item})" if item is not None else ""
        where += f" in row {row}" if row is not None else ""
        super().__init__(
            f"Variable '{variable}'{where} not found in the data."
        )


class ColumnConflictError(DataError):
    """An output column would overwrite an existing dataset column."""


class CorruptionError(Exception):
    """Internal state corruption detected. A model's state is corrupted."""


class SplitNotFoundError(CorruptionError):
    """A node referenced by the tree has no split row and is not a leaf."""

    def __init__(self, node_id: int, item: int | None = None):
        self.node_id = node_id
        self.item = item
        where = f" of item {item}" if item is not None else ""
        super().__init__(
            f"No split found for node {node_id}{where}. "
            "Node is neither a split row nor a known leaf."
        )


class MissingCoefficientError(CorruptionError):
    """A reachable leaf (or an item) has no coefficient."""

    def __init__(self, node_id: int | None, item: int | None = None):
        self.node_id = node_id
        self.item = item
        if node_id is None:
            msg = f"Item {item} has neither DIF nor no-DIF coefficients."
        else:
            where = f" of item {item}" if item is not None else ""
            msg = f"No coefficient for leaf node {node_id}{where}."
        super().__init__(msg)


class MalformedTreeError(CorruptionError):
    """The split table does not describe a finite binary tree."""
