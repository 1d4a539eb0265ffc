"""
End-to-end tests that compile and sample the Stan model.

These need a working CmdStan installation (`python -m cmdstanpy.install_cmdstan`)
and are skipped without one.

Run: pytest tests/test_sampling.py -v
"""

from pathlib import Path

import cmdstanpy
import numpy as np
import polars as pl
import pytest

from covid_vote.data import VoteData
from covid_vote.model import LogisticModel, make_priors
from covid_vote.sensitivity import prior_sensitivity
from covid_vote.validation import CrossValidation
from covid_vote.utils.constants import STATES

STAN_FILE = Path(__file__).parent.parent / "stan" / "logistic.stan"
PREDICTORS = ["x1", "x2"]
SAMPLER = {
    "iter_warmup": 500,
    "iter_sampling": 500,
    "chains": 2,
    "parallel_chains": 2,
    "seed": 2020,
    "show_progress": False,
}


def cmdstan_installed() -> bool:
    try:
        cmdstanpy.cmdstan_path()
    except (ValueError, RuntimeError):
        return False
    return True


pytestmark = pytest.mark.skipif(not cmdstan_installed(), reason="CmdStan is not installed")


@pytest.fixture(scope="module")
def model(tmp_path_factory) -> LogisticModel:
    build_dir = tmp_path_factory.mktemp("exe")
    return LogisticModel(stan_file=str(STAN_FILE), predictors=PREDICTORS, dir=str(build_dir))


@pytest.fixture(scope="module")
def separable_data() -> VoteData:
    """Ten states, linearly separated on x1; x2 is noise."""
    rng = np.random.default_rng(10)
    frame = pl.DataFrame({
        "state": sorted(STATES)[:10],
        "x1": [-3.0, -2.5, -2.0, -1.5, -1.0, 1.0, 1.5, 2.0, 2.5, 3.0],
        "x2": rng.normal(0, 0.5, size=10),
        "winner": [0, 0, 0, 0, 0, 1, 1, 1, 1, 1],
    })
    return VoteData(frame, level="state", predictors=PREDICTORS).prep_data()


# Interleaved so both classes appear in every training set
PARTITION = [[0, 2, 4, 6, 8], [1, 3, 5, 7, 9]]


def test_two_fold_recovers_separation(model, separable_data):
    cross_validation = CrossValidation(model, PARTITION)
    result = cross_validation.run(separable_data, priors=make_priors(5.0, 2), **SAMPLER)

    assert result.confusion_matrix.sum() == 10
    assert result.accuracy >= 0.9
    assert (result.diagnostics["r_hat"] < 1.1).all()


def test_fit_reports_draws_and_diagnostics(model, separable_data):
    fold_fit = model.fit(
        train=separable_data.complement(PARTITION[0]),
        holdout=separable_data.rows(PARTITION[0]),
        priors=make_priors(5.0, 2),
        **SAMPLER
    )

    assert fold_fit.n_draws == 1000
    assert fold_fit.idata.posterior["eta_new"].sizes["state"] == 5
    assert fold_fit.diagnostics()["parameter"].to_list() == ["alpha", "beta[x1]", "beta[x2]"]

    x1 = fold_fit.diagnostics().filter(pl.col("parameter") == "beta[x1]").row(0, named=True)
    assert x1["mean"] > 0


def test_coefficient_signs_stable_across_prior_variances(model, separable_data):
    results = prior_sensitivity(CrossValidation(model, PARTITION), separable_data, **SAMPLER)
    stability = results.sign_stability()

    assert results.variances == [2.5, 5.0, 7.5]
    assert stability.filter(pl.col("parameter") == "beta[x1]")["stable"].item()
    assert (results.pooled_summary().filter(pl.col("parameter") == "beta[x1]")["mean"] > 0).all()
