import logging
from typing import List, Optional, Sequence

import numpy as np

from covid_vote.errors import ConfigurationError
from covid_vote.utils.constants import FOLD_SIZES, FOLD_SEED

logger = logging.getLogger(__name__)

def make_partition(
    n: int,
    sizes: Optional[Sequence[int]] = None,
    seed: Optional[int] = FOLD_SEED,
    shuffle: bool = True
) -> List[List[int]]:

    """
    Split the row indices `0, ..., n - 1` into disjoint folds.

    Parameters
    ----------
    n : int
        The number of observations.
    sizes : Optional[Sequence[int]]
        The size of each fold. Must sum to `n`. If `None`, `FOLD_SIZES` is used
        when it sums to `n`; otherwise `n` is split into two folds as evenly
        as possible.
    seed : Optional[int]
        Seed for the permutation of row indices.
    shuffle : bool
        Whether (`True`) or not (`False`) to permute the rows before splitting.
        Without shuffling, folds are contiguous blocks of rows.
    """

    if sizes is None:
        sizes = FOLD_SIZES if sum(FOLD_SIZES) == n else [n // 2, n - n // 2]

    sizes = list(sizes)
    if any(size < 1 for size in sizes):
        raise ConfigurationError(f'Fold sizes must be positive, got {sizes}')
    if sum(sizes) != n:
        raise ConfigurationError(
            f'Fold sizes {sizes} sum to {sum(sizes)}, but there are {n} observations'
        )

    indices = np.arange(n)
    if shuffle:
        indices = np.random.default_rng(seed).permutation(n)

    bounds = np.cumsum([0] + sizes)
    partition = [
        sorted(int(i) for i in indices[start:end])
        for start, end in zip(bounds[:-1], bounds[1:])
    ]
    validate_partition(partition, n)

    return partition

def validate_partition(
    partition: Sequence[Sequence[int]],
    n: int
):

    """
    Check that `partition` covers the row indices `0, ..., n - 1` exactly once.

    Raises a `ConfigurationError` describing every empty fold, out-of-range
    index, duplicated index, and omitted index.
    """

    problems = []

    empty = [f for f, fold in enumerate(partition) if len(fold) == 0]
    if empty:
        problems.append(f'empty folds {empty}')

    flat = [int(i) for fold in partition for i in fold]
    out_of_range = sorted({i for i in flat if i < 0 or i >= n})
    if out_of_range:
        problems.append(f'indices outside [0, {n}) {out_of_range}')

    in_range = np.array([i for i in flat if 0 <= i < n], dtype=int)
    counts = np.bincount(in_range, minlength=n)
    duplicated = np.flatnonzero(counts > 1).tolist()
    omitted = np.flatnonzero(counts == 0).tolist()
    if duplicated:
        problems.append(f'indices in more than one fold {duplicated}')
    if omitted:
        problems.append(f'indices in no fold {omitted}')

    if problems:
        raise ConfigurationError('Invalid fold partition: ' + '; '.join(problems))

    logger.debug(f'Partition of {n} observations into {len(partition)} folds is valid')
