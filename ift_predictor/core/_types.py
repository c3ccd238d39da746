from __future__ import annotations
from typing import Union, Mapping, Sequence, Any

import pandas as pd

Row = Mapping[str, Any]
DatasetLike = Union[pd.DataFrame, Sequence[Row]]
