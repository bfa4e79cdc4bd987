"""
Long-form reshaping for the DIA pipeline.

Sample columns encode their metadata in the name,
``{CellLine}.{condition}.{replicate}_{metric}``. Names are parsed once into
SampleColumn records; everything downstream uses the typed fields.
"""

import copy
import re
from dataclasses import dataclass

import pandas as pd

from .exceptions import ColumnPatternMismatchError
from .utils import _checkpoint

CONDITIONS = ('vehicle', 'treat')
METRICS = ('NrOfPeptide', 'ProteinQuant')

SAMPLE_COLUMN_PATTERN = re.compile(
    r'^(?P<cell_line>[^.\s]+)\.(?P<condition>vehicle|treat)\.(?P<replicate>\d+)'
    r'_(?P<metric>NrOfPeptide|ProteinQuant)$'
)

LONG_COLUMNS = ['entity', 'cell_line', 'condition', 'replicate', 'metric', 'value']


@dataclass(frozen=True)
class SampleColumn:
    cell_line: str
    condition: str
    replicate: int
    metric: str

    @property
    def sample(self):
        """(cell_line, condition, replicate) shared by both metrics of a sample."""
        return (self.cell_line, self.condition, self.replicate)

    @property
    def name(self):
        return f"{self.cell_line}.{self.condition}.{self.replicate}_{self.metric}"


def parse_sample_column(name):
    """
    Parse a sample column name into a SampleColumn.

    Raises
    ------
    ColumnPatternMismatchError
        If `name` does not follow the sample column pattern.

    Example
    -------
    >>> parse_sample_column('CellLine1.treat.2_ProteinQuant')
    SampleColumn(cell_line='CellLine1', condition='treat', replicate=2, metric='ProteinQuant')
    """
    match = SAMPLE_COLUMN_PATTERN.match(str(name))
    if match is None:
        raise ColumnPatternMismatchError(name)

    return SampleColumn(
        cell_line=match.group('cell_line'),
        condition=match.group('condition'),
        replicate=int(match.group('replicate')),
        metric=match.group('metric'),
    )


def find_sample_columns(columns):
    """Return {column name: SampleColumn} for the columns that match, in order."""
    parsed = {}
    for col in columns:
        try:
            parsed[col] = parse_sample_column(col)
        except ColumnPatternMismatchError:
            continue
    return parsed


def to_long(df, entity_col, metadata_cols=()):
    """
    Melt wide sample columns into one row per (entity row, sample column).

    Parameters
    ----------
    df : pd.DataFrame
        Wide table with one row per entity.
    entity_col : str
        Column holding the entity identifier.
    metadata_cols : iterable of str, optional
        Known non-sample columns; these are excluded without a warning.

    Returns
    -------
    long_df : pd.DataFrame
        Columns entity, cell_line, condition, replicate, metric, value.
        Row count is len(df) x number of matching columns.
    skipped : list of dict
        Unexpected columns that did not match the pattern, with the reason.
    """
    known = set(metadata_cols) | {entity_col}
    parsed = {}
    skipped = []

    for col in df.columns:
        try:
            parsed[col] = parse_sample_column(col)
        except ColumnPatternMismatchError as e:
            if col not in known:
                print(f"  Warning: {e}; excluded from long form")
                skipped.append({'column': col, 'reason': str(e)})

    matched = list(parsed)

    long_df = df[[entity_col] + matched].melt(
        id_vars=entity_col,
        value_vars=matched,
        var_name='sample_column',
        value_name='value',
    )

    for field in ('cell_line', 'condition', 'replicate', 'metric'):
        lookup = {col: getattr(sample, field) for col, sample in parsed.items()}
        long_df[field] = long_df['sample_column'].map(lookup)

    long_df = long_df.rename(columns={entity_col: 'entity'})
    long_df['replicate'] = long_df['replicate'].astype(int)
    long_df['value'] = pd.to_numeric(long_df['value'], errors='coerce')

    return long_df[LONG_COLUMNS], skipped


def long_dia(data):
    """
    Reshape the imputed wide table into long form.

    Parameters
    ----------
    data : dict
        Output from impute_dia() (or prep_dia() to reshape unimputed data).

    Returns
    -------
    dict
        Updated data dictionary with:
        - 'long': pd.DataFrame of LongObservation rows
        - 'long_skipped': columns excluded because they did not match

    Example
    -------
    >>> data = impute_dia(data)
    >>> data = long_dia(data)
    >>> data['long'].groupby('metric').size()
    """
    print("\n" + "="*80)
    print("LONG-FORM RESHAPING")
    print("="*80)

    df = data['df']
    data_columns = data['config']['data_columns']
    entity_col = data_columns['protein_group']

    long_df, skipped = to_long(df, entity_col, metadata_cols=data_columns.values())

    n_matched = len(long_df) // len(df) if len(df) else 0
    print(f"\n  > {len(df)} rows x {n_matched} sample columns -> {len(long_df)} observations")
    if skipped:
        print(f"  > {len(skipped)} unexpected column(s) excluded")

    data_updated = copy.copy(data)
    data_updated['long'] = long_df
    data_updated['long_skipped'] = skipped

    _checkpoint(data_updated, 'long')

    print("\n" + "="*80)
    print("RESHAPING COMPLETE")
    print("="*80)
    print(f"\nNext step: stat_dia() for group summaries and hypothesis tests")
    print("="*80 + "\n")

    return data_updated
