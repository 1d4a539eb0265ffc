"""
Tests for the cross-validation driver, using stub models in place of Stan.

Run: pytest tests/test_validation.py -v
"""

import numpy as np
import polars as pl
import pytest

from conftest import CoinFlipModel, OracleModel
from covid_vote.errors import ConfigurationError
from covid_vote.folds import make_partition
from covid_vote.metrics import confusion_matrix
from covid_vote.model import FoldFit, make_priors
from covid_vote.validation import CrossValidation, FoldResult


@pytest.fixture
def partition():
    return make_partition(51)


class TestCrossValidation:
    def test_one_fit_per_fold(self, vote_data, partition):
        model = OracleModel()
        CrossValidation(model, partition).run(vote_data)
        assert len(model.calls) == 10

    def test_train_and_holdout_split(self, vote_data, partition):
        model = OracleModel()
        CrossValidation(model, partition).run(vote_data)
        for call, fold in zip(model.calls, partition):
            assert call["holdout"]["row"].to_list() == sorted(fold)
            assert call["train"].height == 51 - len(fold)
            assert set(call["train"]["row"].to_list()).isdisjoint(fold)

    def test_priors_and_sampler_arguments_forwarded(self, vote_data, partition):
        model = OracleModel()
        priors = make_priors(7.5, len(model.predictors))
        CrossValidation(model, partition).run(vote_data, priors=priors, chains=2, seed=1)
        assert all(call["priors"] is priors for call in model.calls)
        assert all(call["chains"] == 2 and call["seed"] == 1 for call in model.calls)

    def test_confusion_matrix_conserves_observations(self, vote_data, partition):
        result = CrossValidation(OracleModel(), partition).run(vote_data)
        assert result.confusion_matrix.sum() == 51

    def test_every_state_predicted_exactly_once(self, vote_data, partition):
        result = CrossValidation(OracleModel(), partition).run(vote_data)
        assert result.predictions["row"].to_list() == list(range(51))

    def test_oracle_is_perfect(self, vote_data, partition):
        result = CrossValidation(OracleModel(), partition).run(vote_data)
        assert result.accuracy == 1.0
        assert np.trace(result.confusion_matrix) == 51

    def test_total_is_sum_of_folds(self, vote_data, partition):
        result = CrossValidation(OracleModel(), partition).run(vote_data)
        total = sum(f.confusion_matrix for f in result.folds)
        np.testing.assert_array_equal(result.confusion_matrix, total)
        np.testing.assert_array_equal(
            result.confusion_matrix,
            confusion_matrix(result.predictions["predicted"], result.predictions["winner"]),
        )

    def test_ties_classified_as_zero(self, vote_data, partition):
        """A posterior-predictive probability of exactly 0.5 predicts 0 everywhere."""
        result = CrossValidation(CoinFlipModel(), partition).run(vote_data)
        assert result.predictions["probability"].to_list() == [0.5] * 51
        assert result.predictions["predicted"].to_list() == [0] * 51

        n_biden = vote_data.prepped_data["winner"].sum()
        assert result.confusion_matrix.tolist() == [[51 - n_biden, 0], [n_biden, 0]]

    def test_diagnostics_per_fold(self, vote_data, partition):
        result = CrossValidation(OracleModel(), partition).run(vote_data)
        diagnostics = result.diagnostics
        assert diagnostics["fold"].unique().sort().to_list() == list(range(10))
        assert diagnostics.height == 10 * (1 + len(OracleModel().predictors))
        assert result.convergence_failures.height == 0

    def test_overlapping_partition_is_fatal(self, vote_data):
        partition = make_partition(51)
        partition[1] = partition[1] + [partition[0][0]]
        model = OracleModel()
        with pytest.raises(ConfigurationError, match="more than one fold"):
            CrossValidation(model, partition).run(vote_data)
        assert model.calls == []

    def test_incomplete_partition_is_fatal(self, vote_data):
        partition = make_partition(51)[:-1]
        with pytest.raises(ConfigurationError, match="in no fold"):
            CrossValidation(OracleModel(), partition).run(vote_data)


class RelabelledModel(OracleModel):
    """Stub model that reports its held-out labels under a different column name."""

    def fit(self, train, holdout, priors=None, **kwargs):
        fold_fit = super().fit(train, holdout, priors, **kwargs)
        return FoldFit(
            idata=fold_fit.idata,
            holdout=holdout.rename({"winner": "carried"}),
            outcome="carried",
        )


class TestOutcomeColumn:
    def test_fold_result_uses_outcome(self):
        predictions = pl.DataFrame({"predicted": [1, 0, 1], "carried": [1, 1, 1]})
        result = FoldResult(fold=0, predictions=predictions, diagnostics=pl.DataFrame(), outcome="carried")
        assert result.confusion_matrix.tolist() == [[0, 0], [1, 2]]

    def test_cross_validation_with_other_outcome(self, vote_data):
        result = CrossValidation(RelabelledModel(), make_partition(51)).run(vote_data)
        assert result.confusion_matrix.sum() == 51
        assert result.accuracy == 1.0
        assert "carried" in result.predictions.columns
