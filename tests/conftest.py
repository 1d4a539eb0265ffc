"""
Shared fixtures: synthetic state- and county-level frames, and a stub model
that returns arviz posteriors without running Stan.
"""

import arviz as az
import numpy as np
import polars as pl
import pytest

from covid_vote.data import VoteData
from covid_vote.model import FoldFit
from covid_vote.utils.constants import PREDICTORS, STATES, WEIGHTED_VARIABLES


def make_idata(eta_new, predictors, states, n_chains=2, n_draws=500, noise=0.1, seed=1):
    """Build posterior draws whose `eta_new` is centered on the given values."""
    rng = np.random.default_rng(seed)
    eta_new = np.asarray(eta_new, dtype=float)
    return az.from_dict(
        posterior={
            "alpha": rng.normal(0.2, 0.5, size=(n_chains, n_draws)),
            "beta": rng.normal(
                np.linspace(-1, 1, len(predictors)), 0.5, size=(n_chains, n_draws, len(predictors))
            ),
            "eta_new": eta_new + rng.normal(0, 1, size=(n_chains, n_draws, len(eta_new))) * noise,
        },
        coords={"predictor": predictors, "state": states},
        dims={"beta": ["predictor"], "eta_new": ["state"]},
    )


class OracleModel:
    """Stub model: linear predictor strongly favors the true label."""

    def __init__(self, predictors=None, strength=3.0):
        self.predictors = predictors or list(PREDICTORS)
        self.strength = strength
        self.calls = []

    def fit(self, train, holdout, priors=None, **kwargs):
        self.calls.append({"train": train, "holdout": holdout, "priors": priors, **kwargs})
        eta = self.strength * (2 * holdout["winner"].to_numpy() - 1)
        idata = make_idata(eta, self.predictors, holdout["state"].to_list())
        return FoldFit(idata=idata, holdout=holdout)


class CoinFlipModel(OracleModel):
    """Stub model: every draw of the linear predictor is exactly 0."""

    def fit(self, train, holdout, priors=None, **kwargs):
        self.calls.append({"train": train, "holdout": holdout, "priors": priors, **kwargs})
        idata = make_idata(np.zeros(holdout.height), self.predictors, holdout["state"].to_list(), noise=0)
        return FoldFit(idata=idata, holdout=holdout)


@pytest.fixture
def state_frame() -> pl.DataFrame:
    """Synthetic state-level frame: 51 states, every predictor, binary winner."""
    rng = np.random.default_rng(2020)
    abbreviations = list(STATES)
    data = {"state": abbreviations}
    for predictor in PREDICTORS:
        data[predictor] = rng.normal(10, 3, size=len(abbreviations))
    data["winner"] = (np.arange(len(abbreviations)) % 2).tolist()
    return pl.DataFrame(data)


@pytest.fixture
def county_frame() -> pl.DataFrame:
    """Three counties in two states with hand-checkable aggregates."""
    data = {
        "state": ["TX", "TX", "VT"],
        "county": ["Travis", "Loving", "Chittenden"],
        "total_pop": [300, 100, 200],
        "votes_biden": [150, 10, 120],
        "votes_trump": [100, 80, 50],
        "cases": [30, 5, 4],
        "deaths": [3, 1, 2],
    }
    for i, variable in enumerate(WEIGHTED_VARIABLES):
        data[variable] = [10.0 + i, 30.0 + i, 20.0 + i]
    return pl.DataFrame(data)


@pytest.fixture
def vote_data(state_frame) -> VoteData:
    return VoteData(state_frame, level="state").prep_data()
