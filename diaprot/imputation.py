"""
Missing value imputation for the DIA pipeline.

The default method is multiple imputation by chained equations (MICE) with
predictive mean matching (PMM), run with statsmodels' MICEData. Each chain
starts from random draws of the observed values, then cycles over the
incomplete columns (fewest missing first): an OLS regression of the column
on every other selected column is fitted on the observed rows, coefficients
are drawn from their approximate posterior, and each missing cell receives
the observed value of one of the `k_pmm` donors whose predicted mean is
closest.

Chains disagree on individual cells, so pooling is explicit:
- 'first': value from the first chain
- 'mean': average across chains
- 'median': median across chains

A nearest-neighbour imputer ('knn') is kept for comparison. It needs rows
that are fully observed across the selected columns, which high-missingness
columns do not guarantee.
"""

import copy

import numpy as np
import pandas as pd
from sklearn.impute import KNNImputer
from statsmodels.imputation.mice import MICEData

from .exceptions import InsufficientDonorsError, NoObservedDataError
from .utils import _checkpoint, _save_table, _stage_param

POOLING = ('first', 'mean', 'median')
METHODS = ('pmm', 'knn')


def _check_observed(values, columns):
    for j, col in enumerate(columns):
        if np.isnan(values[:, j]).all():
            raise NoObservedDataError(col)


def _initial_fill(values, missing, rng):
    """Replace missing cells by random draws from the column's observed values."""
    filled = values.copy()
    for j in range(values.shape[1]):
        miss = missing[:, j]
        if miss.any():
            observed = values[~miss, j]
            filled[miss, j] = rng.choice(observed, size=int(miss.sum()), replace=True)
    return filled


def _run_chain(values, missing, n_iter, k_pmm, rng):
    """
    Run one MICE chain with statsmodels and return the completed matrix.

    Columns are renamed to formula-safe identifiers. Rows with no observed
    value in any column are not modelled and keep their initial draw.
    """
    filled = _initial_fill(values, missing, rng)
    keep = ~missing.all(axis=1)
    names = [f'x{j}' for j in range(values.shape[1])]

    mice_data = MICEData(
        pd.DataFrame(values[keep], columns=names),
        perturbation_method='gaussian',
        k_pmm=k_pmm,
        rng=rng,
    )

    for j, name in enumerate(names):
        n_obs = int((~missing[keep, j]).sum())
        # Intercept-only model when there is nothing to condition on
        formula = '1' if len(names) == 1 else None
        # Too few observed rows for a covariance estimate: bootstrap instead
        method = 'boot' if n_obs <= len(names) else None
        if formula is not None or method is not None:
            mice_data.set_imputer(name, formula=formula, k_pmm=k_pmm, perturbation_method=method)

    mice_data.data.iloc[:, :] = filled[keep]
    mice_data.update_all(n_iter)

    filled[keep] = mice_data.data.to_numpy(dtype=float)
    return filled


def _pool(chains, pool):
    if pool == 'first':
        return chains[0]
    if pool == 'mean':
        return chains.mean(axis=0)
    return np.median(chains, axis=0)


def mice_impute(df, columns, n_iter=50, n_chains=5, k_pmm=5, seed=42, pool='first'):
    """
    Impute missing values in `columns` with MICE + predictive mean matching.

    Only `columns` are used, both as targets and as predictors. All other
    columns of `df` are returned untouched.

    Parameters
    ----------
    df : pd.DataFrame
        Record set containing the columns to impute.
    columns : list of str
        Numeric columns to impute (one missingness bucket).
    n_iter : int
        Cycles over the incomplete columns per chain (default: 50).
    n_chains : int
        Number of independent imputation chains (default: 5).
    k_pmm : int
        Donor pool size for predictive mean matching (default: 5).
    seed : int
        Seed for the chains' random streams. Same seed and input give the
        same output.
    pool : str
        How to combine chains: 'first', 'mean' or 'median'.

    Returns
    -------
    imputed : pd.DataFrame
        Copy of `df` with no missing values left in `columns`.
    spread : pd.Series
        Per column, mean standard deviation across chains of the imputed cells.

    Raises
    ------
    NoObservedDataError
        If a selected column has no observed value.
    """
    if pool not in POOLING:
        raise ValueError(f"Unknown pooling policy '{pool}'. Options: {', '.join(POOLING)}")
    if n_iter < 1 or n_chains < 1 or k_pmm < 1:
        raise ValueError("n_iter, n_chains and k_pmm must all be >= 1")

    columns = list(columns)
    result = df.copy()
    spread = pd.Series(0.0, index=columns)

    if not columns or len(df) == 0:
        return result, spread

    values = df[columns].to_numpy(dtype=float)
    missing = np.isnan(values)
    _check_observed(values, columns)

    targets = [j for j in range(len(columns)) if missing[:, j].any()]
    if not targets:
        return result, spread

    streams = np.random.SeedSequence(seed).spawn(n_chains)
    chains = np.stack([
        _run_chain(values, missing, n_iter, k_pmm, np.random.default_rng(s))
        for s in streams
    ])

    pooled = _pool(chains, pool)
    result[columns] = np.where(missing, pooled, values)

    chain_std = chains.std(axis=0)
    for j in targets:
        spread.iloc[j] = float(chain_std[missing[:, j], j].mean())

    return result, spread


def knn_impute(df, columns, n_neighbors=5):
    """
    Impute `columns` with nearest-neighbour averaging (sklearn KNNImputer).

    Raises
    ------
    NoObservedDataError
        If a selected column has no observed value.
    InsufficientDonorsError
        If no row is fully observed across `columns`.
    """
    columns = list(columns)
    result = df.copy()
    if not columns or len(df) == 0:
        return result

    values = df[columns].to_numpy(dtype=float)
    _check_observed(values, columns)

    if not (~np.isnan(values).any(axis=1)).any():
        raise InsufficientDonorsError(columns)

    imputer = KNNImputer(n_neighbors=n_neighbors)
    result[columns] = imputer.fit_transform(values)
    return result


def impute_dia(data, buckets=('moderate', 'high'), method=None, n_iter=None,
               n_chains=None, k_pmm=None, seed=None, pool=None):
    """
    Impute missing values bucket by bucket.

    Each bucket is imputed independently, using only its own columns as
    predictors. Columns in other buckets ('low' by default) keep their
    missing values.

    Parameters
    ----------
    data : dict
        Output from missing_dia().
    buckets : tuple of str, optional
        Buckets to impute (default: ('moderate', 'high')).
    method : str, optional
        'pmm' (MICE, default) or 'knn'.
    n_iter, n_chains, k_pmm, seed, pool : optional
        MICE parameters; default to the 'imputation' config block.

    Returns
    -------
    dict
        Updated data dictionary with:
        - 'df': imputed copy of the record set
        - 'imputation': parameters used and a per-column summary

    Raises
    ------
    NoObservedDataError, InsufficientDonorsError
        The stage is aborted; no partially imputed table is returned.

    Example
    -------
    >>> data = missing_dia(data)
    >>> data = impute_dia(data, seed=7, pool='first')
    """
    print("\n" + "="*80)
    print("IMPUTATION")
    print("="*80)

    config = data['config']
    method = _stage_param(method, config, 'imputation', 'method')
    n_iter = _stage_param(n_iter, config, 'imputation', 'n_iter')
    n_chains = _stage_param(n_chains, config, 'imputation', 'n_chains')
    k_pmm = _stage_param(k_pmm, config, 'imputation', 'k_pmm')
    seed = _stage_param(seed, config, 'imputation', 'seed')
    pool = _stage_param(pool, config, 'imputation', 'pool')

    if method not in METHODS:
        raise ValueError(f"Unknown imputation method '{method}'. Options: {', '.join(METHODS)}")

    print(f"\nMethod: {method}")
    if method == 'pmm':
        print(f"  Iterations: {n_iter}, chains: {n_chains}, donors: {k_pmm}, "
              f"seed: {seed}, pooling: {pool}")

    df = data['df']
    summary_rows = []

    for step, bucket in enumerate(buckets, 1):
        columns = data['buckets'].get(bucket, [])
        print(f"\n[{step}/{len(buckets)}] Imputing '{bucket}' bucket ({len(columns)} columns)...")

        if not columns:
            print(f"  > Nothing to impute")
            continue

        missing_before = df[columns].isna().sum()

        if method == 'pmm':
            df, spread = mice_impute(
                df, columns, n_iter=n_iter, n_chains=n_chains,
                k_pmm=k_pmm, seed=seed, pool=pool,
            )
        else:
            df = knn_impute(df, columns, n_neighbors=k_pmm)
            spread = pd.Series(np.nan, index=columns)

        for col in columns:
            summary_rows.append({
                'column': col,
                'bucket': bucket,
                'n_imputed': int(missing_before[col]),
                'chain_spread': spread[col],
            })

        print(f"  > Filled {int(missing_before.sum())} values; "
              f"{int(df[columns].isna().sum().sum())} remain")

    summary = pd.DataFrame(
        summary_rows, columns=['column', 'bucket', 'n_imputed', 'chain_spread']
    )

    data_updated = copy.copy(data)
    data_updated['df'] = df
    data_updated['imputation'] = {
        'method': method,
        'buckets': list(buckets),
        'n_iter': n_iter,
        'n_chains': n_chains,
        'k_pmm': k_pmm,
        'seed': seed,
        'pool': pool,
        'summary': summary,
    }

    _save_table(data_updated, summary, 'imputation_summary.csv')
    _checkpoint(data_updated, 'impute')

    print("\n" + "="*80)
    print("IMPUTATION COMPLETE")
    print("="*80)
    print(f"\nNext step: long_dia() to reshape, cluster_dia() to cluster")
    print("="*80 + "\n")

    return data_updated
