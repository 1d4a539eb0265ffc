import logging
from typing import List, Optional

import numpy as np
from arviz import InferenceData, from_cmdstanpy, summary
from polars import DataFrame, col, from_pandas, lit

from covid_vote.errors import ConfigurationError
from covid_vote.utils.model import CmdStanModel
from covid_vote.utils.transformations import from_xarray, sigmoid
from covid_vote.utils.constants import (
    DEFAULT_PRIORS,
    PREDICTORS,
    RHAT_MIN,
    RHAT_MAX,
    ESS_MIN_FRACTION
)

logger = logging.getLogger(__name__)

PARAMETERS = ['alpha', 'beta']

def make_priors(
    variance: float,
    n_predictors: int,
    mean: float = 0.0
) -> dict:

    """
    Priors where the intercept and every coefficient share the same mean and
    variance.
    """

    return {
        'a': mean,
        'Sigma_a': variance,
        'beta0': [mean] * n_predictors,
        'Sigma_b': [variance] * n_predictors
    }

def build_stan_data(
    train: DataFrame,
    holdout: DataFrame,
    priors: Optional[dict] = None,
    predictors: Optional[List[str]] = None,
    outcome: str = 'winner'
) -> dict:

    """
    Build the data dictionary passed to `stan/logistic.stan`.

    Parameters
    ----------
    train : DataFrame
        Rows the model is fit to. Must contain `outcome` and every predictor.
    holdout : DataFrame
        Rows the linear predictor is generated for. Must contain every
        predictor.
    priors : Optional[dict]
        Prior hyperparameters `a`, `Sigma_a`, `beta0`, `Sigma_b`. Scalars
        given for `beta0` or `Sigma_b` are broadcast across predictors. Keys
        that are not supplied fall back to `DEFAULT_PRIORS`.
    predictors : Optional[List[str]]
        Predictor columns, in design-matrix order. Defaults to `PREDICTORS`.
    outcome : str
        The binary outcome column in `train`.
    """

    predictors = predictors or PREDICTORS
    p = len(predictors)

    for name, df, required in [
        ('train', train, predictors + [outcome]),
        ('holdout', holdout, predictors)
    ]:
        missing = [c for c in required if c not in df.columns]
        if missing:
            raise ConfigurationError(f'{name} is missing columns: {missing}')

    X = train.select(predictors).to_numpy().astype(float)
    y = train[outcome].to_numpy()
    X_new = holdout.select(predictors).to_numpy().astype(float).reshape(-1, p)

    # Add in priors if supplied, or use default priors
    priors_args = dict(DEFAULT_PRIORS)
    if priors:
        for key, value in priors.items():
            if key not in DEFAULT_PRIORS:
                raise KeyError(f'{key} is not a valid prior!')
            priors_args[key] = value

    stan_data = {
        'N': X.shape[0],
        'p': p,
        'X': X,
        'y': y,
        'N_new': X_new.shape[0],
        'X_new': X_new,
        'a': float(priors_args['a']),
        'Sigma_a': float(priors_args['Sigma_a']),
        'beta0': _as_vector(priors_args['beta0'], p),
        'Sigma_b': _as_vector(priors_args['Sigma_b'], p)
    }

    check_stan_data(stan_data)
    stan_data['y'] = stan_data['y'].astype(int)

    return stan_data

def _as_vector(value, p: int) -> np.ndarray:

    """Broadcast a scalar prior to length `p`; leave vectors as they are."""

    value = np.asarray(value, dtype=float)
    if value.ndim == 0:
        return np.full(p, float(value))
    return value

def check_stan_data(
    stan_data: dict
):

    """
    Validate the declared dimensions and contents of a stan data dictionary.
    Any inconsistency raises a `ConfigurationError`.
    """

    N, p, N_new = stan_data['N'], stan_data['p'], stan_data['N_new']
    X = np.asarray(stan_data['X'])
    y = np.asarray(stan_data['y'])
    X_new = np.asarray(stan_data['X_new'])
    beta0 = np.asarray(stan_data['beta0'])
    Sigma_b = np.asarray(stan_data['Sigma_b'])

    problems = []
    if N < 1:
        problems.append('no training observations')
    if p < 1:
        problems.append('no predictors')
    if X.shape != (N, p):
        problems.append(f'X has shape {X.shape}, expected ({N}, {p})')
    if y.shape != (N,):
        problems.append(f'y has shape {y.shape}, expected ({N},)')
    if X_new.shape != (N_new, p):
        problems.append(f'X_new has shape {X_new.shape}, expected ({N_new}, {p})')
    if beta0.shape != (p,):
        problems.append(f'beta0 has shape {beta0.shape}, expected ({p},)')
    if Sigma_b.shape != (p,):
        problems.append(f'Sigma_b has shape {Sigma_b.shape}, expected ({p},)')
    if problems:
        raise ConfigurationError('Inconsistent model data: ' + '; '.join(problems))

    if not set(np.unique(y).tolist()) <= {0, 1}:
        raise ConfigurationError(f'y must be binary, found {sorted(set(np.unique(y).tolist()))}')
    if not (np.isfinite(X).all() and np.isfinite(X_new).all()):
        raise ConfigurationError('X and X_new must not contain missing or infinite values')
    if not stan_data['Sigma_a'] > 0 or not (Sigma_b > 0).all():
        raise ConfigurationError('Prior scales Sigma_a and Sigma_b must be positive')

class FoldFit:

    def __init__(
        self,
        idata: InferenceData,
        holdout: DataFrame,
        outcome: str = 'winner'
    ):

        """
        Posterior draws for a single fit, along with the held-out rows the
        linear predictor `eta_new` was generated for.

        Parameters
        ----------
        idata : InferenceData
            Posterior draws of `alpha`, `beta` (dimension `predictor`) and
            `eta_new` (dimension `state`).
        holdout : DataFrame
            The held-out rows, in the order they were passed to the model.
        outcome : str
            The binary outcome column in `holdout`.
        """

        self.idata = idata
        self.holdout = holdout
        self.outcome = outcome

    @property
    def n_draws(self) -> int:
        posterior = self.idata.posterior
        return posterior.sizes['chain'] * posterior.sizes['draw']

    def predictive_probabilities(self) -> DataFrame:

        """
        Posterior-predictive mean probability for each held-out row: the
        average over draws of `sigmoid(eta_new)`.
        """

        probability = (
            sigmoid(self.idata.posterior['eta_new'])
            .mean(dim=['chain', 'draw'])
            .rename('probability')
        )

        out = (
            from_xarray(probability)
            .select('probability')
            .hstack(self.holdout.select(['row', 'state', self.outcome]))
            .select(['row', 'state', self.outcome, 'probability'])
        )

        return out

    def diagnostics(self) -> DataFrame:

        """
        Posterior summaries and convergence diagnostics for `alpha` and each
        element of `beta`.

        Monte Carlo standard error is estimated as the posterior standard
        deviation divided by the square root of the bulk effective sample
        size. A parameter is flagged as not `converged` when its
        scale-reduction statistic falls outside `[RHAT_MIN, RHAT_MAX]` or its
        effective sample size is below `ESS_MIN_FRACTION` of the draws.
        """

        table = (
            summary(self.idata, var_names=PARAMETERS, kind='all', round_to='none')
            .rename_axis('parameter')
            .reset_index()
            .pipe(from_pandas)
            .select(['parameter', 'mean', 'sd', 'ess_bulk', 'ess_tail', 'r_hat'])
            .with_columns(
                (col.sd / col.ess_bulk.sqrt()).alias('mcse'),
                (
                    col.r_hat.is_between(RHAT_MIN, RHAT_MAX) &
                    (col.ess_bulk >= lit(ESS_MIN_FRACTION * self.n_draws))
                )
                .fill_null(False)
                .alias('converged')
            )
        )

        return table

class LogisticModel:

    def __init__(
        self,
        stan_file: str = 'stan/logistic.stan',
        predictors: Optional[List[str]] = None,
        outcome: str = 'winner',
        **kwargs
    ):

        """
        Bayesian logistic regression of the state winner on a fixed set of
        predictors, fit with Stan.

        Parameters
        ----------
        stan_file : str
            The path to the model file.
        predictors : Optional[List[str]]
            Predictor columns, in design-matrix order. Defaults to `PREDICTORS`.
        outcome : str
            The binary outcome column.
        **kwargs
            Other named arguments to pass to `CmdStanModel`. This class is the
            wrapper class found under `covid_vote.utils.model`, which contains
            an additional optional argument, `dir`, for specifying where the
            Stan executable should be created.
        """

        self.predictors = predictors or list(PREDICTORS)
        self.outcome = outcome
        self.stan_model = CmdStanModel(stan_file=stan_file, **kwargs)

    def fit(
        self,
        train: DataFrame,
        holdout: DataFrame,
        priors: Optional[dict] = None,
        **kwargs
    ) -> FoldFit:

        """
        Fit the model to `train` and generate the linear predictor for
        `holdout`.

        Parameters
        ----------
        train : DataFrame
            Rows the model is fit to.
        holdout : DataFrame
            Rows to generate `eta_new` for. Must contain `row` and `state`.
        priors : Optional[dict]
            Prior hyperparameters (see `build_stan_data`).
        **kwargs
            Named arguments for cmdstanpy's `sample()` method, excluding `data`
            (this is passed to the method internally).
        """

        stan_data = build_stan_data(
            train=train,
            holdout=holdout,
            priors=priors,
            predictors=self.predictors,
            outcome=self.outcome
        )

        logger.info(
            f'Sampling with N={stan_data["N"]}, N_new={stan_data["N_new"]}, '
            f'Sigma_a={stan_data["Sigma_a"]}'
        )

        stan_fit = self.stan_model.sample(
            data=stan_data,
            **kwargs
        )

        idata = from_cmdstanpy(
            posterior=stan_fit,
            coords={
                'predictor': self.predictors,
                'state': holdout['state'].to_list()
            },
            dims={
                'alpha': [],
                'beta': ['predictor'],
                'eta_new': ['state']
            }
        )

        fold_fit = FoldFit(idata=idata, holdout=holdout, outcome=self.outcome)

        failures = fold_fit.diagnostics().filter(~col.converged)
        if failures.height > 0:
            logger.warning(
                'Convergence failure for parameters '
                f'{failures["parameter"].to_list()} '
                f'(r_hat: {failures["r_hat"].round(3).to_list()}, '
                f'ess_bulk: {failures["ess_bulk"].round(0).to_list()})'
            )

        return fold_fit
