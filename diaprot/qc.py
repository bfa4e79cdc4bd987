"""
Quality control functions for the DIA pipeline.

Summarizes each sample column and handles sample dropping after QC review.
"""

import copy

import pandas as pd

from .utils import _save_table


def qc_dia(data):
    """
    Summarize every sample column before imputation.

    Parameters
    ----------
    data : dict
        Output from prep_dia().

    Returns
    -------
    pd.DataFrame
        One row per sample column with its parsed fields, number of observed
        values, percent missing and median value.

    Example
    -------
    >>> qc = qc_dia(data)
    >>> qc.sort_values('missing_pct', ascending=False).head()
    """
    print("\n" + "="*80)
    print("QUALITY CONTROL SUMMARY")
    print("="*80)

    df = data['df']
    rows = []
    for col, sample in data['sample_cols'].items():
        values = df[col]
        n_total = len(values)
        n_observed = int(values.notna().sum())
        rows.append({
            'column': col,
            'cell_line': sample.cell_line,
            'condition': sample.condition,
            'replicate': sample.replicate,
            'metric': sample.metric,
            'n_observed': n_observed,
            'missing_pct': (n_total - n_observed) / n_total * 100 if n_total else 0.0,
            'median': values.median(),
        })

    qc = pd.DataFrame(rows, columns=[
        'column', 'cell_line', 'condition', 'replicate', 'metric',
        'n_observed', 'missing_pct', 'median',
    ])

    quant = qc[qc['metric'] == 'ProteinQuant']
    print(f"\n  Missing ProteinQuant values by cell line / condition:")
    for (cell_line, condition), group in quant.groupby(['cell_line', 'condition']):
        print(f"    {cell_line} {condition}: {group['missing_pct'].mean():.1f}% missing "
              f"({len(group)} replicates)")

    _save_table(data, qc, 'qc_sample_summary.csv')
    print("="*80 + "\n")

    return qc


def drop_samples(data, samples_to_drop):
    """
    Remove problematic samples from the dataset after QC review.

    Both metrics (NrOfPeptide and ProteinQuant) of a dropped sample are
    removed together.

    Parameters
    ----------
    data : dict
        Output from prep_dia().
    samples_to_drop : list of str or dict
        Samples to remove. Can be:
        - List of full column names
        - Dict mapping (cell_line, condition) to replicate numbers:
          {('CellLine1', 'treat'): [2]}

    Returns
    -------
    dict
        Updated data dictionary with samples removed.

    Example
    -------
    >>> data = drop_samples(data, ['CellLine2.vehicle.3_ProteinQuant'])
    >>> data = drop_samples(data, {('CellLine1', 'treat'): [2]})
    """
    df = data['df']
    sample_cols = data['sample_cols']

    print("\n" + "="*80)
    print("DROP SAMPLES (MANUAL QC)")
    print("="*80)

    if isinstance(samples_to_drop, dict):
        targets = set()
        for (cell_line, condition), replicates in samples_to_drop.items():
            for rep in replicates:
                targets.add((cell_line, condition, int(rep)))
    elif isinstance(samples_to_drop, (list, tuple, set)):
        targets = {sample_cols[c].sample for c in samples_to_drop if c in sample_cols}
        unknown = [c for c in samples_to_drop if c not in sample_cols]
        for col in unknown:
            print(f"  Warning: '{col}' is not a sample column")
    else:
        raise TypeError("samples_to_drop must be a list of column names or a dict")

    cols_to_drop = [col for col, sample in sample_cols.items() if sample.sample in targets]

    if not cols_to_drop:
        print("\nNo valid samples to drop.")
        return data

    print(f"\nDropping {len(cols_to_drop)} column(s):")
    for col in cols_to_drop:
        print(f"  - {col}")

    sample_cols_updated = {c: s for c, s in sample_cols.items() if c not in cols_to_drop}

    metadata_updated = data['metadata'].copy()
    metadata_updated['n_sample_columns'] = len(sample_cols_updated)
    metadata_updated['cell_lines'] = sorted({s.cell_line for s in sample_cols_updated.values()})
    metadata_updated['samples_dropped'] = (
        list(data['metadata'].get('samples_dropped', [])) + cols_to_drop
    )

    data_updated = copy.copy(data)
    data_updated['df'] = df.drop(columns=cols_to_drop)
    data_updated['config'] = copy.deepcopy(data['config'])
    data_updated['sample_cols'] = sample_cols_updated
    data_updated['metadata'] = metadata_updated

    # Missingness results from an earlier missing_dia() must not name dropped columns
    if 'buckets' in data:
        data_updated['buckets'] = {
            bucket: [c for c in cols if c not in cols_to_drop]
            for bucket, cols in data['buckets'].items()
        }
    if 'missingness' in data:
        profile = data['missingness']
        data_updated['missingness'] = profile[~profile['column'].isin(cols_to_drop)].reset_index(drop=True)

    print("\n" + "="*80)
    print("SAMPLES DROPPED")
    print("="*80)
    print(f"\nRemaining sample columns: {metadata_updated['n_sample_columns']}")
    print("="*80 + "\n")

    return data_updated
