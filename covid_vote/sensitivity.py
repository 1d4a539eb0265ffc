import logging
from typing import Sequence

from covid_vote.data import VoteData
from covid_vote.model import make_priors
from covid_vote.results import SensitivityResults
from covid_vote.validation import CrossValidation
from covid_vote.utils.constants import PRIOR_VARIANCES

logger = logging.getLogger(__name__)

def prior_sensitivity(
    cross_validation: CrossValidation,
    vote_data: VoteData,
    variances: Sequence[float] = PRIOR_VARIANCES,
    **kwargs
) -> SensitivityResults:

    """
    Repeat the same cross-validation once per prior variance.

    Within a run, the intercept and every coefficient share the same prior
    variance (and a prior mean of 0). The fold partition, the predictor set,
    and the sampler configuration are held fixed across runs.

    Parameters
    ----------
    cross_validation : CrossValidation
        The cross-validation driver, holding the model and fold partition.
        Prior vectors are sized to the model's `predictors`.
    vote_data : VoteData
        A prepped `VoteData` object.
    variances : Sequence[float]
        The prior variances to sweep over.
    **kwargs
        Named arguments for the sampler, passed to every fit.
    """

    # Priors are sized to the model's design matrix, which may use a subset
    # of the predictors carried by the data
    predictors = getattr(cross_validation.model, 'predictors', vote_data.predictors)

    runs = {}
    for variance in variances:
        logger.info(f'Cross-validating with prior variance {variance}')
        priors = make_priors(variance, len(predictors))
        runs[float(variance)] = cross_validation.run(vote_data, priors=priors, **kwargs)

    return SensitivityResults(runs)
