class ConfigurationError(ValueError):

    """
    Raised when the analysis is set up inconsistently: mismatched data
    dimensions, a fold partition that does not cover every observation exactly
    once, unequal-length prediction/label sequences, and the like. These are
    fatal to a run.
    """
