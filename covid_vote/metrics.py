from functools import reduce
from typing import Iterable, Sequence

import numpy as np
from polars import DataFrame
from sklearn.metrics import confusion_matrix as sk_confusion_matrix

from covid_vote.errors import ConfigurationError
from covid_vote.utils.constants import CLASSIFICATION_THRESHOLD

def classify(
    probabilities: Sequence[float],
    threshold: float = CLASSIFICATION_THRESHOLD
) -> np.ndarray:

    """
    Convert probabilities to class labels: 1 if the probability is strictly
    greater than `threshold`, otherwise 0. A probability of exactly
    `threshold` is labelled 0.
    """

    return (np.asarray(probabilities, dtype=float) > threshold).astype(int)

def confusion_matrix(
    predicted: Sequence,
    actual: Sequence
) -> np.ndarray:

    """
    Count co-occurrences of actual and predicted binary labels.

    Parameters
    ----------
    predicted : Sequence
        Predicted labels (0/1 or booleans).
    actual : Sequence
        Observed labels (0/1 or booleans), parallel to `predicted`.

    Returns
    -------
    np.ndarray
        A 2x2 integer matrix indexed `[actual][predicted]`.
    """

    predicted = np.asarray(predicted)
    actual = np.asarray(actual)

    if predicted.shape[0] != actual.shape[0]:
        raise ConfigurationError(
            f'predicted and actual must have the same length, '
            f'got {predicted.shape[0]} predicted and {actual.shape[0]} actual labels'
        )

    for name, labels in [('predicted', predicted), ('actual', actual)]:
        values = set(np.unique(labels).tolist())
        if not values <= {0, 1}:
            raise ConfigurationError(f'{name} labels must be binary, found {sorted(values)}')

    if actual.shape[0] == 0:
        return np.zeros((2, 2), dtype=int)

    return sk_confusion_matrix(
        actual.astype(int),
        predicted.astype(int),
        labels=[0, 1]
    ).astype(int)

def sum_matrices(
    matrices: Iterable[np.ndarray]
) -> np.ndarray:

    """Reduce a sequence of confusion matrices by elementwise summation."""

    return reduce(np.add, matrices, np.zeros((2, 2), dtype=int))

def accuracy(
    matrix: np.ndarray
) -> float:

    """Share of observations on the diagonal: trace / total."""

    total = matrix.sum()
    if total == 0:
        raise ValueError('Cannot compute accuracy of an empty confusion matrix.')

    return float(np.trace(matrix) / total)

def confusion_table(
    matrix: np.ndarray
) -> DataFrame:

    """Long-format view of a confusion matrix for reporting."""

    return DataFrame({
        'actual': [0, 0, 1, 1],
        'predicted': [0, 1, 0, 1],
        'n': matrix.ravel().tolist()
    })
