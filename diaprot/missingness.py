"""
Missing-value profiling for the DIA pipeline.

Columns are bucketed by percent missing: low (< 5, left as-is),
moderate (5 to < 30) and high (>= 30). Moderate and high columns are
the imputation targets.
"""

import copy

import pandas as pd

from .utils import _checkpoint, _save_table, _stage_param

BUCKETS = ('low', 'moderate', 'high')


def missing_rates(df, columns=None):
    """
    Percent of null values per column, in original column order.

    Parameters
    ----------
    df : pd.DataFrame
        Normalized record set.
    columns : list of str, optional
        Columns to profile. Defaults to every numeric (non-bool) column.

    Returns
    -------
    pd.Series
        missing_rate = count(null) / count(total) * 100, indexed by column.
    """
    if columns is None:
        columns = list(df.select_dtypes(include='number').columns)

    if len(df) == 0:
        return pd.Series(0.0, index=list(columns), dtype=float)

    return df[list(columns)].isna().sum() / len(df) * 100


def classify_rate(rate, low_threshold=5.0, high_threshold=30.0):
    """Return the bucket name for a single missing rate."""
    if rate < low_threshold:
        return 'low'
    if rate < high_threshold:
        return 'moderate'
    return 'high'


def bucket_columns(rates, low_threshold=5.0, high_threshold=30.0):
    """
    Split columns into low / moderate / high missingness buckets.

    Every column lands in exactly one bucket; a column without missing
    values is always 'low'.

    Example
    -------
    >>> bucket_columns(pd.Series({'a': 0.0, 'b': 12.5, 'c': 40.0}))
    {'low': ['a'], 'moderate': ['b'], 'high': ['c']}
    """
    if not 0 < low_threshold <= high_threshold:
        raise ValueError(
            f"Invalid thresholds: low={low_threshold}, high={high_threshold}"
        )

    buckets = {name: [] for name in BUCKETS}
    for col, rate in rates.items():
        buckets[classify_rate(rate, low_threshold, high_threshold)].append(col)
    return buckets


def missing_dia(data, low_threshold=None, high_threshold=None):
    """
    Profile missingness of every numeric column and bucket the columns.

    Parameters
    ----------
    data : dict
        Output from prep_dia().
    low_threshold : float, optional
        Percent below which a column is left as-is (default from config: 5).
    high_threshold : float, optional
        Percent at or above which a column is 'high' (default from config: 30).

    Returns
    -------
    dict
        Updated data dictionary with:
        - 'missingness': DataFrame of column, missing_rate, bucket
        - 'buckets': {'low': [...], 'moderate': [...], 'high': [...]}

    Example
    -------
    >>> data = missing_dia(prep_dia(report))
    >>> data['buckets']['high']
    """
    print("\n" + "="*80)
    print("MISSINGNESS PROFILE")
    print("="*80)

    config = data['config']
    low_threshold = _stage_param(low_threshold, config, 'missingness', 'low_threshold')
    high_threshold = _stage_param(high_threshold, config, 'missingness', 'high_threshold')

    df = data['df']
    rates = missing_rates(df)
    buckets = bucket_columns(rates, low_threshold, high_threshold)

    profile = pd.DataFrame({
        'column': rates.index,
        'missing_rate': rates.values,
        'bucket': [classify_rate(r, low_threshold, high_threshold) for r in rates.values],
    })

    print(f"\nThresholds: low < {low_threshold} <= moderate < {high_threshold} <= high")
    for name in BUCKETS:
        print(f"  {name}: {len(buckets[name])} columns")

    n_complete = int((rates == 0).sum())
    print(f"  > {n_complete} columns have no missing values")

    data_updated = copy.copy(data)
    data_updated['missingness'] = profile
    data_updated['buckets'] = buckets

    _save_table(data_updated, profile, 'missingness_profile.csv')
    _checkpoint(data_updated, 'missing')

    print("\n" + "="*80)
    print("Next step: impute_dia() to fill moderate and high missingness columns")
    print("="*80 + "\n")

    return data_updated
