"""IFT Predictor.

Turn fitted item-focused tree (IFT) models into closed-form item equations and
predicted item response probabilities.
"""

from importlib.metadata import PackageNotFoundError, version as _pkg_version
from pathlib import Path


def _detect_version() -> str:
    """Return the installed distribution version, with a dev fallback.

    First tries importlib.metadata for the installed wheel/sdist. If that fails
    (e.g., running directly from a source checkout), it reads the static
    ``[project].version`` from ``pyproject.toml`` at the repository root. As a
    last resort, returns a sentinel version string.
    """
    distribution_name = "ift-predictor"

    try:
        return _pkg_version(distribution_name)
    except PackageNotFoundError:
        pass

    pyproject_path = Path(__file__).resolve().parent.parent / "pyproject.toml"
    if pyproject_path.is_file():
        import tomllib

        try:
            data = tomllib.loads(pyproject_path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError):
            data = {}
        project_version = data.get("project", {}).get("version")
        if isinstance(project_version, str) and project_version:
            return project_version

    return "0.0.0+unknown"


__version__: str = _detect_version()

from .core import (  # noqa: E402
    DataError,
    MissingColumnError,
    UnresolvedVariableError,
    ColumnConflictError,
    CorruptionError,
    SplitNotFoundError,
    MissingCoefficientError,
    MalformedTreeError,
    Settings,
    settings,
)
from .model import ItemTreeModel, SplitRecord  # noqa: E402
from .equation import (  # noqa: E402
    Expression,
    Leaf,
    Variable,
    Indicator,
    Product,
    Sum,
    build_branch_expression,
    branch_equation,
    validate_item_tree,
)
from .predict import (  # noqa: E402
    PredictionResult,
    predict_item_responses,
    logistic,
    add_total_score,
)

__all__ = [
    "__version__",
    "DataError",
    "MissingColumnError",
    "UnresolvedVariableError",
    "ColumnConflictError",
    "CorruptionError",
    "SplitNotFoundError",
    "MissingCoefficientError",
    "MalformedTreeError",
    "Settings",
    "settings",
    "ItemTreeModel",
    "SplitRecord",
    "Expression",
    "Leaf",
    "Variable",
    "Indicator",
    "Product",
    "Sum",
    "build_branch_expression",
    "branch_equation",
    "validate_item_tree",
    "PredictionResult",
    "predict_item_responses",
    "logistic",
    "add_total_score",
]
