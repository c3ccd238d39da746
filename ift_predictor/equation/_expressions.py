"""Typed expression tree for item equations.

An item equation is a sum of products of constants, dataset columns and 0/1
split indicators. Expressions are evaluated by a small recursive interpreter,
either vectorised over a data frame or over a single row, and can be rendered
to a human readable string for auditing.
"""

from __future__ import annotations

import math
import operator
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Literal, Set, Tuple

import numpy as np
import numpy.typing as npt
import pandas as pd

from ift_predictor.core._exceptions import UnresolvedVariableError
from ift_predictor.core._types import Row


FloatArray = npt.NDArray[np.float64]
ComparisonOp = Literal["<=", ">"]

_COMPARISONS: Dict[str, Callable[[Any, Any], Any]] = {
    "<=": operator.le,
    ">": operator.gt,
}


def format_number(value: float) -> str:
    """Render a number with up to 15 significant digits (``30``, ``-0.3``)."""
    return format(value, ".15g")


def _column(data: pd.DataFrame, name: str) -> FloatArray:
    if name not in data.columns:
        raise UnresolvedVariableError(name)
    return data[name].to_numpy(dtype=float, na_value=np.nan)


def _row_value(row: Row, name: str) -> float:
    try:
        value = row[name]
    except KeyError:
        raise UnresolvedVariableError(name) from None
    if value is None or value is pd.NA:
        return math.nan
    return float(value)


class Expression(ABC):
    """Base class of all expression nodes."""

    __slots__ = ()

    @abstractmethod
    def evaluate(self, data: pd.DataFrame) -> FloatArray:
        """Evaluate the expression for every row of ``data``."""

    @abstractmethod
    def evaluate_row(self, row: Row) -> float:
        """Evaluate the expression for a single row mapping."""

    @abstractmethod
    def variables(self) -> Set[str]:
        """Names of the dataset columns the expression reads."""

    @abstractmethod
    def render(self) -> str:
        """Human readable form of the expression."""

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True, slots=True)
class Leaf(Expression):
    """A constant coefficient."""

    coefficient: float

    def evaluate(self, data: pd.DataFrame) -> FloatArray:
        return np.full(len(data), float(self.coefficient), dtype=float)

    def evaluate_row(self, row: Row) -> float:
        return float(self.coefficient)

    def variables(self) -> Set[str]:
        return set()

    def render(self) -> str:
        return format_number(self.coefficient)


@dataclass(frozen=True, slots=True)
class Variable(Expression):
    """A numeric dataset column, e.g. the total score."""

    name: str

    def evaluate(self, data: pd.DataFrame) -> FloatArray:
        return _column(data, self.name)

    def evaluate_row(self, row: Row) -> float:
        return _row_value(row, self.name)

    def variables(self) -> Set[str]:
        return {self.name}

    def render(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True)
class Indicator(Expression):
    """1 if ``variable op threshold`` holds, else 0. Missing values give NaN."""

    variable: str
    op: ComparisonOp
    threshold: float

    def __post_init__(self) -> None:
        if self.op not in _COMPARISONS:
            raise ValueError(
                f"Invalid operator {self.op!r}. Supported: {list(_COMPARISONS)}"
            )

    def evaluate(self, data: pd.DataFrame) -> FloatArray:
        values = _column(data, self.variable)
        holds = _COMPARISONS[self.op](values, self.threshold).astype(float)
        return np.where(np.isnan(values), np.nan, holds)

    def evaluate_row(self, row: Row) -> float:
        value = _row_value(row, self.variable)
        if math.isnan(value):
            return math.nan
        return 1.0 if _COMPARISONS[self.op](value, self.threshold) else 0.0

    def variables(self) -> Set[str]:
        return {self.variable}

    def render(self) -> str:
        return f"({self.variable} {self.op} {format_number(self.threshold)})"


@dataclass(frozen=True, slots=True)
class Product(Expression):
    """Product of terms. A product of indicators is their logical AND."""

    terms: Tuple[Expression, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "terms", tuple(self.terms))
        if not self.terms:
            raise ValueError("Product needs at least one term")

    def evaluate(self, data: pd.DataFrame) -> FloatArray:
        result = self.terms[0].evaluate(data)
        for term in self.terms[1:]:
            result = result * term.evaluate(data)
        return result

    def evaluate_row(self, row: Row) -> float:
        return math.prod(term.evaluate_row(row) for term in self.terms)

    def variables(self) -> Set[str]:
        return set().union(*(term.variables() for term in self.terms))

    def render(self) -> str:
        return "(" + " * ".join(term.render() for term in self.terms) + ")"


@dataclass(frozen=True, slots=True)
class Sum(Expression):
    """Sum of terms."""

    terms: Tuple[Expression, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "terms", tuple(self.terms))
        if not self.terms:
            raise ValueError("Sum needs at least one term")

    @classmethod
    def of(cls, *terms: Expression) -> Sum:
        """Sum the terms, flattening nested sums."""
        flat: list[Expression] = []
        for term in terms:
            if isinstance(term, Sum):
                flat.extend(term.terms)
            else:
                flat.append(term)
        return cls(tuple(flat))

    def evaluate(self, data: pd.DataFrame) -> FloatArray:
        result = self.terms[0].evaluate(data)
        for term in self.terms[1:]:
            result = result + term.evaluate(data)
        return result

    def evaluate_row(self, row: Row) -> float:
        # Same left-to-right order as evaluate()
        total = self.terms[0].evaluate_row(row)
        for term in self.terms[1:]:
            total = total + term.evaluate_row(row)
        return total

    def variables(self) -> Set[str]:
        return set().union(*(term.variables() for term in self.terms))

    def render(self) -> str:
        return " + ".join(term.render() for term in self.terms)
