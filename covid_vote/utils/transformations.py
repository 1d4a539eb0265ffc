import numpy as np
from polars import DataFrame, from_pandas
from xarray import DataArray

def from_xarray(data: DataArray) -> DataFrame:
    return data.to_dataframe().pipe(from_pandas, include_index=True)

def sigmoid(x):
    """Inverse logit, 1 / (1 + exp(-x)). Works on arrays and DataArrays."""
    return 1 / (1 + np.exp(-x))
