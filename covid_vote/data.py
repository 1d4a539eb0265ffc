import logging
from typing import List, Literal, Optional, Sequence

from polars import DataFrame, Int64, col, read_csv
from polars.selectors import all

from covid_vote.errors import ConfigurationError
from covid_vote.utils.constants import (
    STATES,
    PREDICTORS,
    WEIGHTED_VARIABLES,
    COUNT_VARIABLES
)

logger = logging.getLogger(__name__)

# Map state abbreviations to names
states = (
    DataFrame(STATES)
    .unpivot(
        all(),
        variable_name='state',
        value_name='state_name'
    )
)

class VoteData:

    def __init__(
        self,
        raw_data: DataFrame,
        level: Literal['county', 'state'] = 'county',
        predictors: Optional[List[str]] = None
    ):

        """
        Utility class for preparing the 2020 presidential results joined with
        demographic, employment, and COVID-19 statistics for modeling.

        County-level input holds one row per county with a `state` postal
        abbreviation, population, vote counts for each candidate, cumulative
        COVID-19 case and death counts, and the demographic/employment
        percentages and median income listed under `WEIGHTED_VARIABLES`.
        State-level input is already aggregated: one row per state with a
        binary `winner` column and every predictor in `PREDICTORS`.

        Parameters
        ----------
        raw_data : DataFrame
            The unprepared dataset.
        level : Literal['county', 'state']
            The geographic level of `raw_data`.
        predictors : Optional[List[str]]
            Predictor columns to carry into the model frame. Defaults to
            `PREDICTORS`. Only state-level input may use other columns.
        """

        if level not in ('county', 'state'):
            raise ValueError(f"level must be 'county' or 'state', not {level!r}")

        self.raw_data = raw_data
        self.level = level
        self.predictors = predictors or list(PREDICTORS)

    @classmethod
    def from_csv(
        cls,
        path: str,
        level: Literal['county', 'state'] = 'county'
    ) -> 'VoteData':

        """Read the raw dataset from a csv file."""

        return cls(read_csv(path, infer_schema_length=10000), level=level)

    @classmethod
    def from_frame(
        cls,
        state_data: DataFrame,
        predictors: Optional[List[str]] = None
    ) -> 'VoteData':

        """Wrap an already-aggregated state-level frame."""

        return cls(state_data, level='state', predictors=predictors)

    def prep_data(
        self,
        standardize: bool = True
    ) -> 'VoteData':

        """
        Prepare the state-level model frame.

        This method attaches two DataFrames to the VoteData object:
        * **state_data** : One row per state with the outcome and the
          predictors on their natural scale.
        * **prepped_data** : `state_data` with (optionally) standardized
          predictors and a `row` index. Rows are sorted by state so that row
          indices, and hence fold partitions, are stable across runs.

        Parameters
        ----------
        standardize : bool
            Whether (`True`) or not (`False`) to center and scale each
            predictor. A predictor with zero variance cannot be scaled and
            raises a `ConfigurationError`.

        Notes
        -----
        Centering and scaling use the mean and standard deviation over all
        states, so held-out rows in cross-validation share the scale of the
        full sample rather than that of their training folds. Scaling is not
        refit per fold.
        """

        if self.level == 'county':
            state_data = self._aggregate_counties(self.raw_data)
        else:
            self._check_columns(self.raw_data, ['state', 'winner'] + self.predictors)
            self._check_nulls(self.raw_data, ['state', 'winner'] + self.predictors)
            state_data = self.raw_data

        state_data = (
            state_data
            .pipe(self._join_state_names)
            .select(['state', 'state_name', 'winner'] + self.predictors)
            .sort('state')
        )

        # Check before casting so non-integral labels are not truncated
        labels = set(state_data['winner'].unique().to_list())
        if not labels <= {0, 1}:
            raise ConfigurationError(f'winner must be binary, found values {sorted(labels)}')
        state_data = state_data.with_columns(col.winner.cast(Int64))

        if state_data.height != len(STATES):
            logger.warning(
                f'Expected {len(STATES)} states (including DC), found {state_data.height}'
            )

        prepped_data = state_data
        if standardize:
            prepped_data = self._standardize(prepped_data)

        self.state_data = state_data
        self.prepped_data = prepped_data.with_row_index('row')

        logger.info(
            f'Prepped {self.n} states: {state_data["winner"].sum()} won by Biden, '
            f'{self.n - state_data["winner"].sum()} won by Trump'
        )

        return self

    @property
    def n(self) -> int:
        return self.prepped_data.height

    def rows(
        self,
        indices: Sequence[int]
    ) -> DataFrame:

        """Return the prepped rows at the given 0-based indices."""

        return self.prepped_data.filter(col.row.is_in(list(indices)))

    def complement(
        self,
        indices: Sequence[int]
    ) -> DataFrame:

        """Return the prepped rows *not* at the given 0-based indices."""

        return self.prepped_data.filter(~col.row.is_in(list(indices)))

    def _aggregate_counties(
        self,
        df: DataFrame
    ) -> DataFrame:

        """Internal method that collapses county rows to one row per state"""

        required = ['state'] + COUNT_VARIABLES + WEIGHTED_VARIABLES
        self._check_columns(df, required)
        self._check_nulls(df, required)

        out = (
            df
            .group_by('state')
            .agg(
                [col(c).sum() for c in COUNT_VARIABLES] +
                [
                    ((col(c) * col.total_pop).sum() / col.total_pop.sum()).alias(c)
                    for c in WEIGHTED_VARIABLES
                ]
            )
            .with_columns(
                (col.votes_biden > col.votes_trump).alias('winner'),
                (100 * col.cases / col.total_pop).alias('cases_pct'),
                (100 * col.deaths / col.total_pop).alias('deaths_pct')
            )
        )

        return out

    def _join_state_names(
        self,
        df: DataFrame
    ) -> DataFrame:

        """Small util function for mapping state abbreviations to names"""

        if 'state_name' in df.columns:
            df = df.drop('state_name')

        out = (
            df
            .join(states, on='state', how='left')
        )

        unknown = out.filter(col.state_name.is_null())['state'].to_list()
        if unknown:
            raise ConfigurationError(f'Unknown state identifiers: {unknown}')

        return out

    def _standardize(
        self,
        df: DataFrame
    ) -> DataFrame:

        """Small util function for centering and scaling predictors"""

        sds = df.select(col(self.predictors).std()).row(0, named=True)
        constant = [k for k, v in sds.items() if v is None or v == 0]
        if constant:
            raise ConfigurationError(
                f'Predictors with zero variance cannot be standardized: {constant}'
            )

        return df.with_columns([
            (col(c) - col(c).mean()) / col(c).std() for c in self.predictors
        ])

    @staticmethod
    def _check_columns(
        df: DataFrame,
        required: List[str]
    ):

        missing = [c for c in required if c not in df.columns]
        if missing:
            raise ConfigurationError(f'Missing required columns: {missing}')

    @staticmethod
    def _check_nulls(
        df: DataFrame,
        required: List[str]
    ):

        counts = df.select(col(required).null_count()).row(0, named=True)
        nulls = {k: v for k, v in counts.items() if v > 0}
        if nulls:
            raise ConfigurationError(f'Missing values are not permitted: {nulls}')
