import logging
from argparse import ArgumentParser

from covid_vote.data import VoteData
from covid_vote.folds import make_partition
from covid_vote.model import LogisticModel
from covid_vote.sensitivity import prior_sensitivity
from covid_vote.validation import CrossValidation
from covid_vote.utils.model import clean_dir
from covid_vote.utils.constants import DEFAULT_SAMPLER, FOLD_SEED, PRIOR_VARIANCES

parser = ArgumentParser(
    prog='COVID-19 and the 2020 vote',
    description='Cross-validate a Bayesian logistic regression of state winners '
                'under a sweep of prior variances'
)

# Command line arguments for data and folds
parser.add_argument('--data', required=True)
parser.add_argument('--level', choices=['county', 'state'], default='county')
parser.add_argument('--fold_seed', type=int, default=FOLD_SEED)
parser.add_argument('--variances', type=float, nargs='+', default=PRIOR_VARIANCES)

# Command line arguments for sampling
parser.add_argument('--iter_warmup', type=int, default=DEFAULT_SAMPLER['iter_warmup'])
parser.add_argument('--iter_sampling', type=int, default=DEFAULT_SAMPLER['iter_sampling'])
parser.add_argument('--chains', type=int, default=DEFAULT_SAMPLER['chains'])
parser.add_argument('--parallel_chains', type=int, default=DEFAULT_SAMPLER['parallel_chains'])
parser.add_argument('--seed', type=int, default=DEFAULT_SAMPLER['seed'])

# Output
parser.add_argument('--out', default='out/summary')
parser.add_argument('--clean', action='store_true', help='rebuild the Stan executable')

args = parser.parse_args()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(name)s %(levelname)s: %(message)s'
)

if args.clean:
    clean_dir('exe')

# Import and prep data for running the model
vote_data = VoteData.from_csv(args.data, level=args.level).prep_data()

# Cross-validate under each prior variance
cross_validation = CrossValidation(
    model=LogisticModel(stan_file='stan/logistic.stan', dir='exe'),
    partition=make_partition(vote_data.n, seed=args.fold_seed)
)

sensitivity = prior_sensitivity(
    cross_validation,
    vote_data,
    variances=args.variances,
    iter_warmup=args.iter_warmup,
    iter_sampling=args.iter_sampling,
    chains=args.chains,
    parallel_chains=args.parallel_chains,
    seed=args.seed,
    show_progress=DEFAULT_SAMPLER['show_progress']
)

# Write results to out/
sensitivity.write_accuracy(args.out)
sensitivity.write_confusion_matrices(args.out)
sensitivity.write_parameter_summaries(args.out)
sensitivity.write_predictions(args.out)
sensitivity.plot_parameters().save(f'{args.out}/parameters.png', verbose=False)

print(sensitivity.accuracy_table())
