# Predictors passed to the model, in design-matrix column order
PREDICTORS = [
    'hispanic',
    'white',
    'black',
    'native',
    'asian',
    'pacific',
    'income',
    'professional',
    'service',
    'office',
    'construction',
    'production',
    'cases_pct',
    'deaths_pct'
]

# County-level columns aggregated to states as population-weighted means
WEIGHTED_VARIABLES = [
    'hispanic',
    'white',
    'black',
    'native',
    'asian',
    'pacific',
    'income',
    'professional',
    'service',
    'office',
    'construction',
    'production'
]

# County-level columns aggregated to states as sums
COUNT_VARIABLES = [
    'total_pop',
    'votes_biden',
    'votes_trump',
    'cases',
    'deaths'
]

DEFAULT_PRIORS = {
    'a': 0.0,
    'Sigma_a': 5.0,
    'beta0': 0.0,
    'Sigma_b': 5.0
}

PRIOR_VARIANCES = [2.5, 5.0, 7.5]

# 10 folds covering all 51 states (50 + DC)
FOLD_SIZES = [5, 5, 5, 5, 5, 5, 5, 5, 5, 6]

FOLD_SEED = 2020

CLASSIFICATION_THRESHOLD = 0.5

DEFAULT_SAMPLER = {
    'iter_warmup': 1000,
    'iter_sampling': 1000,
    'chains': 2,
    'parallel_chains': 2,
    'seed': 2020,
    'show_progress': False
}

# Convergence heuristics
RHAT_MIN = 0.99
RHAT_MAX = 1.05
ESS_MIN_FRACTION = 0.1

STATES = {
    'AL': 'Alabama',
    'AK': 'Alaska',
    'AZ': 'Arizona',
    'AR': 'Arkansas',
    'CA': 'California',
    'CO': 'Colorado',
    'CT': 'Connecticut',
    'DE': 'Delaware',
    'DC': 'District of Columbia',
    'FL': 'Florida',
    'GA': 'Georgia',
    'HI': 'Hawaii',
    'ID': 'Idaho',
    'IL': 'Illinois',
    'IN': 'Indiana',
    'IA': 'Iowa',
    'KS': 'Kansas',
    'KY': 'Kentucky',
    'LA': 'Louisiana',
    'ME': 'Maine',
    'MD': 'Maryland',
    'MA': 'Massachusetts',
    'MI': 'Michigan',
    'MN': 'Minnesota',
    'MS': 'Mississippi',
    'MO': 'Missouri',
    'MT': 'Montana',
    'NE': 'Nebraska',
    'NV': 'Nevada',
    'NH': 'New Hampshire',
    'NJ': 'New Jersey',
    'NM': 'New Mexico',
    'NY': 'New York',
    'NC': 'North Carolina',
    'ND': 'North Dakota',
    'OH': 'Ohio',
    'OK': 'Oklahoma',
    'OR': 'Oregon',
    'PA': 'Pennsylvania',
    'RI': 'Rhode Island',
    'SC': 'South Carolina',
    'SD': 'South Dakota',
    'TN': 'Tennessee',
    'TX': 'Texas',
    'UT': 'Utah',
    'VT': 'Vermont',
    'VA': 'Virginia',
    'WA': 'Washington',
    'WV': 'West Virginia',
    'WI': 'Wisconsin',
    'WY': 'Wyoming',
}