import logging
from typing import List, Optional, Sequence

import numpy as np
from polars import DataFrame, Series, col, concat, lit

from covid_vote.data import VoteData
from covid_vote.folds import validate_partition
from covid_vote.metrics import accuracy, classify, confusion_matrix, sum_matrices
from covid_vote.utils.constants import CLASSIFICATION_THRESHOLD

logger = logging.getLogger(__name__)

class FoldResult:

    def __init__(
        self,
        fold: int,
        predictions: DataFrame,
        diagnostics: DataFrame,
        outcome: str = 'winner'
    ):

        """
        What is kept from a single fold's fit once its posterior draws are
        discarded: the held-out predictions and the parameter diagnostics.
        `outcome` names the observed label column in `predictions`.
        """

        self.fold = fold
        self.predictions = predictions
        self.diagnostics = diagnostics
        self.outcome = outcome
        self.confusion_matrix = confusion_matrix(
            predicted=predictions['predicted'].to_numpy(),
            actual=predictions[outcome].to_numpy()
        )

class CVResult:

    def __init__(
        self,
        folds: List[FoldResult],
        priors: Optional[dict] = None
    ):

        """
        Results of a complete cross-validation run. The aggregate confusion
        matrix is the sum of the independent per-fold matrices.
        """

        self.folds = folds
        self.priors = priors

    @property
    def confusion_matrix(self) -> np.ndarray:
        return sum_matrices(f.confusion_matrix for f in self.folds)

    @property
    def accuracy(self) -> float:
        return accuracy(self.confusion_matrix)

    @property
    def predictions(self) -> DataFrame:
        return concat([
            f.predictions.with_columns(lit(f.fold).alias('fold'))
            for f in self.folds
        ]).sort('row')

    @property
    def diagnostics(self) -> DataFrame:
        return concat([
            f.diagnostics.with_columns(lit(f.fold).alias('fold'))
            for f in self.folds
        ])

    @property
    def convergence_failures(self) -> DataFrame:
        return self.diagnostics.filter(~col.converged)

class CrossValidation:

    def __init__(
        self,
        model,
        partition: Sequence[Sequence[int]],
        threshold: float = CLASSIFICATION_THRESHOLD
    ):

        """
        k-fold cross-validation of a model over a fixed partition of rows.

        Parameters
        ----------
        model
            Any object with a `fit(train, holdout, priors, **kwargs)` method
            returning a `FoldFit`; normally a `LogisticModel`.
        partition : Sequence[Sequence[int]]
            Disjoint folds of 0-based row indices that together cover every
            row of the dataset exactly once.
        threshold : float
            Posterior-predictive probabilities strictly above the threshold
            are classified as 1, everything else as 0.
        """

        self.model = model
        self.partition = [list(fold) for fold in partition]
        self.threshold = threshold

    def run(
        self,
        vote_data: VoteData,
        priors: Optional[dict] = None,
        **kwargs
    ) -> CVResult:

        """
        Fit the model once per fold and evaluate on the held-out rows.

        Parameters
        ----------
        vote_data : VoteData
            A prepped `VoteData` object.
        priors : Optional[dict]
            Prior hyperparameters passed to every fit.
        **kwargs
            Named arguments for the sampler, passed to every fit.
        """

        validate_partition(self.partition, vote_data.n)

        folds = []
        for fold, indices in enumerate(self.partition):
            folds.append(self._run_fold(fold, indices, vote_data, priors, **kwargs))

        result = CVResult(folds, priors=priors)
        logger.info(
            f'Cross-validation over {len(folds)} folds: accuracy {result.accuracy:.3f}, '
            f'{result.convergence_failures.height} convergence failures'
        )

        return result

    def _run_fold(
        self,
        fold: int,
        indices: List[int],
        vote_data: VoteData,
        priors: Optional[dict],
        **kwargs
    ) -> FoldResult:

        """Internal method that fits and evaluates a single fold"""

        train = vote_data.complement(indices)
        holdout = vote_data.rows(indices)

        logger.info(
            f'Fold {fold + 1}/{len(self.partition)}: holding out '
            f'{", ".join(holdout["state"].to_list())}'
        )

        fold_fit = self.model.fit(train=train, holdout=holdout, priors=priors, **kwargs)

        probabilities = fold_fit.predictive_probabilities()
        predictions = probabilities.with_columns(
            Series('predicted', classify(probabilities['probability'].to_numpy(), self.threshold))
        )

        return FoldResult(
            fold=fold,
            predictions=predictions,
            diagnostics=fold_fit.diagnostics(),
            outcome=fold_fit.outcome
        )
