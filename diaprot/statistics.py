"""
Statistical analysis functions for the DIA pipeline.

Descriptive statistics per (cell line, condition), vehicle vs treat
t-tests and Wilcoxon rank-sum tests per (cell line, replicate), and a
per-protein Wilcoxon test with significance flagging.
"""

import copy

import numpy as np
import pandas as pd
from scipy.stats import mannwhitneyu, ttest_ind
from statsmodels.stats.multitest import multipletests

from .exceptions import InsufficientSampleSizeError
from .utils import _checkpoint, _save_table, _stage_param

MIN_GROUP_SIZE = 2

TEST_COLUMNS = ['test', 'statistic', 'pvalue', 'n_vehicle', 'n_treat']


def welch_ttest(a, b):
    """Two-sample t-test without assuming equal variances. Returns (t, p)."""
    result = ttest_ind(a, b, equal_var=False)
    return float(result.statistic), float(result.pvalue)


def wilcoxon_ranksum(a, b):
    """Two-sided Wilcoxon rank-sum (Mann-Whitney U) test. Returns (U, p)."""
    result = mannwhitneyu(a, b, alternative='two-sided')
    return float(result.statistic), float(result.pvalue)


def _split_conditions(group, key):
    vehicle = group.loc[group['condition'] == 'vehicle', 'value'].dropna().to_numpy(dtype=float)
    treat = group.loc[group['condition'] == 'treat', 'value'].dropna().to_numpy(dtype=float)

    if len(vehicle) < MIN_GROUP_SIZE or len(treat) < MIN_GROUP_SIZE:
        raise InsufficientSampleSizeError(key, len(vehicle), len(treat), MIN_GROUP_SIZE)

    return vehicle, treat


def summarize_groups(long_df, metric='ProteinQuant'):
    """
    Descriptive statistics of `metric` per (cell line, condition).

    Returns
    -------
    pd.DataFrame
        cell_line, condition, count, mean, median, std, min, max.
        Null values are ignored.
    """
    values = long_df[long_df['metric'] == metric]
    summary = (
        values.groupby(['cell_line', 'condition'])['value']
        .agg(['count', 'mean', 'median', 'std', 'min', 'max'])
        .reset_index()
    )
    return summary


def compare_replicates(long_df, metric='ProteinQuant'):
    """
    Compare vehicle vs treat within each (cell line, replicate).

    Runs a Welch t-test and a Wilcoxon rank-sum test per key.

    Returns
    -------
    results : pd.DataFrame
        cell_line, replicate, test, statistic, pvalue, n_vehicle, n_treat.
    skipped : list of dict
        Keys excluded for having fewer than 2 values on one side.
    """
    values = long_df[long_df['metric'] == metric]
    rows = []
    skipped = []

    for (cell_line, replicate), group in values.groupby(['cell_line', 'replicate']):
        key = (cell_line, replicate)
        try:
            vehicle, treat = _split_conditions(group, key)
        except InsufficientSampleSizeError as e:
            skipped.append({'key': key, 'reason': str(e)})
            continue

        for test, func in (('t-test', welch_ttest), ('wilcoxon', wilcoxon_ranksum)):
            statistic, pvalue = func(vehicle, treat)
            rows.append({
                'cell_line': cell_line,
                'replicate': replicate,
                'test': test,
                'statistic': statistic,
                'pvalue': pvalue,
                'n_vehicle': len(vehicle),
                'n_treat': len(treat),
            })

    results = pd.DataFrame(rows, columns=['cell_line', 'replicate'] + TEST_COLUMNS)
    return results, skipped


def compare_entities(long_df, metric='ProteinQuant', alpha=0.05, correction='fdr_bh'):
    """
    Per-protein Wilcoxon rank-sum test of vehicle vs treat values.

    All replicates and cell lines of a protein are pooled per condition.
    A protein is flagged significant iff its raw p-value < `alpha`.

    Parameters
    ----------
    long_df : pd.DataFrame
        Long-form observations from long_dia().
    metric : str
        Metric to test (default: 'ProteinQuant').
    alpha : float
        Significance threshold on the raw p-value (default: 0.05).
    correction : str
        Multiple testing correction reported alongside, 'fdr_bh',
        'bonferroni' or 'none'.

    Returns
    -------
    results : pd.DataFrame
        entity, test, statistic, pvalue, n_vehicle, n_treat, vehicle_mean,
        treat_mean, log2FC, adj_pvalue, significant.
    skipped : list of dict
        Entities excluded for having fewer than 2 values on one side.
    """
    values = long_df[long_df['metric'] == metric]
    rows = []
    skipped = []

    for entity, group in values.groupby('entity', sort=False):
        try:
            vehicle, treat = _split_conditions(group, entity)
        except InsufficientSampleSizeError as e:
            skipped.append({'key': entity, 'reason': str(e)})
            continue

        statistic, pvalue = wilcoxon_ranksum(vehicle, treat)
        vehicle_mean = vehicle.mean()
        treat_mean = treat.mean()
        if vehicle_mean > 0 and treat_mean > 0:
            log2fc = np.log2(treat_mean / vehicle_mean)
        else:
            log2fc = np.nan

        rows.append({
            'entity': entity,
            'test': 'wilcoxon',
            'statistic': statistic,
            'pvalue': pvalue,
            'n_vehicle': len(vehicle),
            'n_treat': len(treat),
            'vehicle_mean': vehicle_mean,
            'treat_mean': treat_mean,
            'log2FC': log2fc,
        })

    results = pd.DataFrame(rows, columns=['entity'] + TEST_COLUMNS + [
        'vehicle_mean', 'treat_mean', 'log2FC',
    ])

    pvalues = results['pvalue'].to_numpy(dtype=float)
    if correction in ('fdr_bh', 'bonferroni'):
        valid_mask = ~np.isnan(pvalues)
        adj_pvalues = np.full(len(pvalues), np.nan)
        if valid_mask.any():
            _, adj_p, _, _ = multipletests(pvalues[valid_mask], method=correction)
            adj_pvalues[valid_mask] = adj_p
    else:
        adj_pvalues = pvalues

    results['adj_pvalue'] = adj_pvalues
    results['significant'] = results['pvalue'] < alpha

    return results, skipped


def stat_dia(data, alpha=None, metric=None, correction=None):
    """
    Group summaries and hypothesis tests on the long-form data.

    Parameters
    ----------
    data : dict
        Output from long_dia().
    alpha : float, optional
        P-value threshold for per-protein significance (default: 0.05).
    metric : str, optional
        Metric to analyze (default: 'ProteinQuant').
    correction : str, optional
        Multiple testing correction reported with per-protein tests
        (default: 'fdr_bh'). Options: 'fdr_bh', 'bonferroni', 'none'.

    Returns
    -------
    dict
        Updated data dictionary with:
        - 'group_summary': statistics per (cell line, condition)
        - 'replicate_tests': t-test and Wilcoxon results per (cell line, replicate)
        - 'entity_tests': per-protein Wilcoxon results with significance flag
        - 'stats_skipped': {'replicate_tests': [...], 'entity_tests': [...]}
        - 'stats_params': parameters used for analysis

    Example
    -------
    >>> data = long_dia(data)
    >>> data = stat_dia(data, alpha=0.05)
    >>> data['entity_tests'].query('significant')
    """
    print("\n" + "="*80)
    print("STATISTICAL ANALYSIS")
    print("="*80)

    config = data['config']
    alpha = _stage_param(alpha, config, 'statistics', 'alpha')
    metric = _stage_param(metric, config, 'statistics', 'metric')
    correction = _stage_param(correction, config, 'statistics', 'correction')

    long_df = data['long']

    print(f"\nMetric: {metric}")
    print(f"P-value threshold: {alpha}")
    print(f"Correction (reported): {correction}")

    # =========================================================================
    # 1. GROUP SUMMARY
    # =========================================================================
    print(f"\n[1/3] Summarizing (cell line, condition) groups...")

    summary = summarize_groups(long_df, metric)
    for _, row in summary.iterrows():
        print(f"  {row['cell_line']} {row['condition']}: n={int(row['count'])}, "
              f"median={row['median']:.3g}")

    # =========================================================================
    # 2. PER-REPLICATE TESTS
    # =========================================================================
    print(f"\n[2/3] Testing vehicle vs treat per (cell line, replicate)...")

    replicate_tests, replicate_skipped = compare_replicates(long_df, metric)
    print(f"  > {len(replicate_tests)} test results")
    for item in replicate_skipped:
        print(f"  Warning: skipped {item['reason']}")

    # =========================================================================
    # 3. PER-PROTEIN TESTS
    # =========================================================================
    print(f"\n[3/3] Testing vehicle vs treat per protein...")

    entity_tests, entity_skipped = compare_entities(long_df, metric, alpha, correction)
    n_sig = int(entity_tests['significant'].sum())
    print(f"  > {len(entity_tests)} proteins tested, {n_sig} significant (p < {alpha})")
    if entity_skipped:
        print(f"  Warning: {len(entity_skipped)} proteins skipped (< {MIN_GROUP_SIZE} values per side)")

    data_updated = copy.copy(data)
    data_updated['group_summary'] = summary
    data_updated['replicate_tests'] = replicate_tests
    data_updated['entity_tests'] = entity_tests
    data_updated['stats_skipped'] = {
        'replicate_tests': replicate_skipped,
        'entity_tests': entity_skipped,
    }
    data_updated['stats_params'] = {
        'alpha': alpha,
        'metric': metric,
        'correction': correction,
    }

    _save_table(data_updated, summary, 'group_summary.csv')
    _save_table(data_updated, replicate_tests, 'replicate_tests.csv')
    _save_table(data_updated, entity_tests, 'entity_tests.csv')
    _checkpoint(data_updated, 'stat')

    print("\n" + "="*80)
    print("STATISTICAL ANALYSIS COMPLETE")
    print("="*80)
    print(f"\nNext step: cluster_dia() for protein clustering")
    print("="*80 + "\n")

    return data_updated
