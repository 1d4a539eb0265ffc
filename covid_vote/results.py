import logging
from typing import Dict
from os import makedirs
from os.path import join

from polars import DataFrame, col, concat, lit
from plotnine import (
    ggplot,
    aes,
    geom_pointrange,
    geom_hline,
    facet_wrap,
    labs
)

from covid_vote.metrics import confusion_table
from covid_vote.validation import CVResult

logger = logging.getLogger(__name__)

class SensitivityResults:

    def __init__(
        self,
        runs: Dict[float, CVResult]
    ):

        """
        Class and methods for comparing and writing the results of a prior
        sensitivity sweep.

        Each run is a complete cross-validation under a single prior variance.
        Runs are compared on held-out accuracy, on convergence diagnostics, and
        on per-parameter posterior summaries. Posterior summaries from each
        fold's fit are pooled by averaging over folds, with a pooled Monte
        Carlo standard error of `sqrt(sum(mcse^2)) / k` for `k` folds.

        Parameters
        ----------
        runs : Dict[float, CVResult]
            Cross-validation results keyed by prior variance.
        """

        self.runs = runs

    @property
    def variances(self) -> list:
        return sorted(self.runs)

    def accuracy_table(self) -> DataFrame:

        """Held-out accuracy and confusion matrix cells for each variance."""

        rows = []
        for variance in self.variances:
            run = self.runs[variance]
            (tn, fp), (fn, tp) = run.confusion_matrix.tolist()
            rows.append({
                'variance': variance,
                'n': tn + fp + fn + tp,
                'true_negative': tn,
                'false_positive': fp,
                'false_negative': fn,
                'true_positive': tp,
                'accuracy': run.accuracy,
                'convergence_failures': run.convergence_failures.height
            })

        return DataFrame(rows)

    def confusion_matrices(self) -> DataFrame:

        """Long-format confusion matrices, one block per variance."""

        return concat([
            confusion_table(self.runs[v].confusion_matrix).with_columns(lit(v).alias('variance'))
            for v in self.variances
        ]).select(['variance', 'actual', 'predicted', 'n'])

    def predictions(self) -> DataFrame:

        """Held-out probabilities and class predictions for every state."""

        return concat([
            self.runs[v].predictions.with_columns(lit(v).alias('variance'))
            for v in self.variances
        ])

    def parameter_summary(self) -> DataFrame:

        """Per variance, per fold, per parameter posterior summaries."""

        return concat([
            self.runs[v].diagnostics.with_columns(lit(v).alias('variance'))
            for v in self.variances
        ]).select([
            'variance', 'fold', 'parameter', 'mean', 'sd',
            'mcse', 'ess_bulk', 'ess_tail', 'r_hat', 'converged'
        ])

    def pooled_summary(self) -> DataFrame:

        """Per variance, per parameter summaries averaged over folds."""

        out = (
            self.parameter_summary()
            .group_by(['variance', 'parameter'], maintain_order=True)
            .agg(
                col('mean').mean().alias('mean'),
                col.sd.mean().alias('sd'),
                (col.mcse.pow(2).sum().sqrt() / col.mcse.count()).alias('mcse'),
                col.ess_bulk.min().alias('min_ess_bulk'),
                col.r_hat.max().alias('max_r_hat'),
                col.converged.all().alias('converged')
            )
        )

        return out

    def sign_stability(self) -> DataFrame:

        """
        Whether the sign of each parameter's pooled posterior mean is the same
        under every prior variance.
        """

        out = (
            self.pooled_summary()
            .group_by('parameter', maintain_order=True)
            .agg(
                col('mean').min().alias('min_mean'),
                col('mean').max().alias('max_mean'),
                (col('mean').sign().n_unique() == 1).alias('stable')
            )
        )

        unstable = out.filter(~col.stable)['parameter'].to_list()
        if unstable:
            logger.warning(f'Posterior mean changes sign across prior variances: {unstable}')

        return out

    def convergence_failures(self) -> DataFrame:

        """Every fold/parameter flagged as not converged, across all runs."""

        return self.parameter_summary().filter(~col.converged)

    def write_accuracy(
        self,
        path: str = 'out/summary'
    ):

        """
        Write held-out accuracy for each variance as `accuracy.csv`.

        Parameters
        ----------
        path : str
            The path where the results will be stored.
        """

        makedirs(path, exist_ok=True)
        self.accuracy_table().write_csv(join(path, 'accuracy.csv'))

    def write_confusion_matrices(
        self,
        path: str = 'out/summary'
    ):

        """
        Write the aggregate confusion matrix for each variance, in long format,
        as `confusion_matrices.csv`.

        Parameters
        ----------
        path : str
            The path where the confusion matrices will be stored.
        """

        makedirs(path, exist_ok=True)
        self.confusion_matrices().write_csv(join(path, 'confusion_matrices.csv'))

    def write_parameter_summaries(
        self,
        path: str = 'out/summary'
    ):

        """
        Write per-fold and pooled parameter summaries, and the sign stability
        table.

        The results are saved as `parameters.parquet`, `pooled_parameters.csv`
        and `sign_stability.csv`.

        Parameters
        ----------
        path : str
            The path where the parameter summaries will be stored.
        """

        makedirs(path, exist_ok=True)
        self.parameter_summary().write_parquet(join(path, 'parameters.parquet'))
        self.pooled_summary().write_csv(join(path, 'pooled_parameters.csv'))
        self.sign_stability().write_csv(join(path, 'sign_stability.csv'))

    def write_predictions(
        self,
        path: str = 'out/summary'
    ):

        """
        Write held-out predictions for each variance as `predictions.parquet`.

        Parameters
        ----------
        path : str
            The path where the predictions will be stored.
        """

        makedirs(path, exist_ok=True)
        self.predictions().write_parquet(join(path, 'predictions.parquet'))

    def plot_parameters(self) -> ggplot:

        """
        Plot the pooled posterior mean (+/- one posterior standard deviation)
        of each parameter under each prior variance.
        """

        out = (
            self.pooled_summary()
            .with_columns(
                (col('mean') - col.sd).alias('lower'),
                (col('mean') + col.sd).alias('upper'),
                col.variance.cast(str).alias('prior_variance')
            )
            >>
            ggplot(aes(
                x='prior_variance',
                y='mean',
                ymin='lower',
                ymax='upper'
            )) +
            geom_hline(yintercept=0, linetype='dashed', color='red') +
            geom_pointrange() +
            facet_wrap('parameter', scales='free_y') +
            labs(x='Prior variance', y='Posterior mean')
        )

        return out
