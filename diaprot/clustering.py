"""
Protein clustering for the DIA pipeline.

Proteins are clustered on their standardized quantification profiles:
Ward hierarchical clustering cut at a fixed number of clusters, k-means
with several restarts, and a PCA projection for 2D display.
"""

import copy

import numpy as np
import pandas as pd
import scipy.cluster.hierarchy as sch
from scipy.spatial.distance import pdist
from sklearn.cluster import KMeans
from sklearn.decomposition import PCA
from sklearn.preprocessing import StandardScaler

from .exceptions import DegenerateClusterRequestError
from .reshape import find_sample_columns
from .utils import _checkpoint, _save_table, _stage_param


def _standardize(X):
    """Z-score each column."""
    return StandardScaler().fit_transform(np.asarray(X, dtype=float))


def _check_request(X, n_clusters):
    """Distinct entities are counted as distinct profile rows."""
    if n_clusters < 1:
        raise ValueError(f"n_clusters must be >= 1, got {n_clusters}")

    n_distinct = len(np.unique(X, axis=0)) if len(X) else 0
    if n_clusters > n_distinct:
        raise DegenerateClusterRequestError(n_clusters, n_distinct)


def feature_matrix(df, entity_col, sample_cols=None, metric='ProteinQuant'):
    """
    Build the entity x sample matrix used for clustering.

    Only numeric columns of `metric` participate. Each entity keeps its
    first row; rows that still hold missing values are left out.

    Returns
    -------
    features : pd.DataFrame
        Indexed by entity, one column per sample column.
    skipped : list of dict
        Entities excluded for incomplete profiles.
    """
    if sample_cols is None:
        sample_cols = find_sample_columns(df.columns)

    cols = [c for c, s in sample_cols.items() if s.metric == metric and c in df.columns]

    frame = df.drop_duplicates(subset=entity_col, keep='first').set_index(entity_col)[cols]
    frame = frame.apply(pd.to_numeric, errors='coerce')

    incomplete = frame.isna().any(axis=1)
    skipped = [
        {'key': entity, 'reason': 'missing values remain after imputation'}
        for entity in frame.index[incomplete]
    ]
    return frame[~incomplete], skipped


def hierarchical_clusters(X, n_clusters=3):
    """
    Ward agglomerative clustering on z-scored Euclidean distances.

    Returns
    -------
    labels : np.ndarray
        Cluster label (1..n_clusters) per row.
    linkage : np.ndarray
        Linkage matrix, kept for dendrogram rendering.
    """
    X = np.asarray(X, dtype=float)
    _check_request(X, n_clusters)

    if len(X) == 1:
        return np.ones(1, dtype=int), np.empty((0, 4))

    distances = pdist(_standardize(X), metric='euclidean')
    linkage = sch.linkage(distances, method='ward')
    labels = sch.fcluster(linkage, t=n_clusters, criterion='maxclust')
    return labels, linkage


def kmeans_clusters(X, n_clusters=4, n_init=25, seed=42):
    """
    K-means on z-scored data, keeping the lowest-inertia restart.

    Returns
    -------
    labels : np.ndarray
    inertia : float
    """
    X = np.asarray(X, dtype=float)
    _check_request(X, n_clusters)

    model = KMeans(n_clusters=n_clusters, n_init=n_init, random_state=seed)
    labels = model.fit_predict(_standardize(X))
    return labels, float(model.inertia_)


def project_pca(X, n_components=2):
    """
    PCA projection of z-scored data.

    Returns coordinates (padded with NaN when fewer components can be fitted)
    and the explained variance ratio of the fitted components.
    """
    X = np.asarray(X, dtype=float)
    n_fit = min(n_components, X.shape[0], X.shape[1])
    coords = np.full((X.shape[0], n_components), np.nan)

    if n_fit < 1:
        return coords, np.array([])

    pca = PCA(n_components=n_fit)
    coords[:, :n_fit] = pca.fit_transform(_standardize(X))
    return coords, pca.explained_variance_ratio_


def cluster_dia(data, n_hierarchical=None, n_kmeans=None, n_init=None, seed=None,
                n_components=None, metric=None):
    """
    Cluster proteins by quantification profile.

    1. Ward hierarchical clustering, tree cut at `n_hierarchical` clusters
    2. K-means with `n_kmeans` clusters and `n_init` restarts
    3. PCA projection for 2D display

    Parameters
    ----------
    data : dict
        Output from impute_dia() (or any later stage).
    n_hierarchical : int, optional
        Clusters for the hierarchical cut (default from config: 3).
    n_kmeans : int, optional
        Clusters for k-means (default from config: 4).
    n_init : int, optional
        K-means restarts (default from config: 25).
    seed : int, optional
        K-means random state (default from config: 42).
    n_components : int, optional
        PCA components (default from config: 2).
    metric : str, optional
        Metric whose columns are clustered (default: 'ProteinQuant').

    Returns
    -------
    dict
        Updated data dictionary with:
        - 'clusters': entity, hclust, kmeans, PC1..PCn
        - 'cluster_info': linkage matrix, inertia, explained variance
        - 'cluster_skipped': entities left out for incomplete profiles

    Raises
    ------
    DegenerateClusterRequestError
        If either cluster count exceeds the number of distinct entities.

    Example
    -------
    >>> data = cluster_dia(data, n_hierarchical=3, n_kmeans=4)
    >>> data['clusters'].groupby(['hclust', 'kmeans']).size()
    """
    print("\n" + "="*80)
    print("CLUSTERING")
    print("="*80)

    config = data['config']
    n_hierarchical = _stage_param(n_hierarchical, config, 'clustering', 'n_hierarchical')
    n_kmeans = _stage_param(n_kmeans, config, 'clustering', 'n_kmeans')
    n_init = _stage_param(n_init, config, 'clustering', 'n_init')
    seed = _stage_param(seed, config, 'clustering', 'seed')
    n_components = _stage_param(n_components, config, 'clustering', 'n_components')
    metric = _stage_param(metric, config, 'clustering', 'metric')

    entity_col = config['data_columns']['protein_group']
    features, skipped = feature_matrix(data['df'], entity_col, data.get('sample_cols'), metric)

    print(f"\n  {len(features)} proteins x {features.shape[1]} {metric} columns")
    if skipped:
        print(f"  Warning: {len(skipped)} proteins with missing values left out")

    # =========================================================================
    # 1. HIERARCHICAL
    # =========================================================================
    print(f"\n[1/3] Ward hierarchical clustering (k={n_hierarchical})...")
    hclust, linkage = hierarchical_clusters(features.values, n_hierarchical)
    print(f"  > Cluster sizes: {np.bincount(hclust)[1:].tolist()}")

    # =========================================================================
    # 2. K-MEANS
    # =========================================================================
    print(f"\n[2/3] K-means (k={n_kmeans}, restarts={n_init}, seed={seed})...")
    kmeans, inertia = kmeans_clusters(features.values, n_kmeans, n_init, seed)
    print(f"  > Inertia: {inertia:.2f}")

    # =========================================================================
    # 3. PCA
    # =========================================================================
    print(f"\n[3/3] PCA projection ({n_components} components)...")
    coords, explained = project_pca(features.values, n_components)
    for i, ratio in enumerate(explained, 1):
        print(f"  PC{i} explains {ratio*100:.1f}% of variance")

    assignments = pd.DataFrame({
        'entity': features.index.to_numpy(),
        'hclust': hclust,
        'kmeans': kmeans,
    })
    for i in range(n_components):
        assignments[f'PC{i + 1}'] = coords[:, i]

    data_updated = copy.copy(data)
    data_updated['clusters'] = assignments
    data_updated['cluster_info'] = {
        'linkage': linkage,
        'inertia': inertia,
        'explained_variance_ratio': explained,
        'n_hierarchical': n_hierarchical,
        'n_kmeans': n_kmeans,
        'n_init': n_init,
        'seed': seed,
        'columns': list(features.columns),
    }
    data_updated['cluster_skipped'] = skipped

    _save_table(data_updated, assignments, 'cluster_assignments.csv')
    _checkpoint(data_updated, 'cluster')

    print("\n" + "="*80)
    print("CLUSTERING COMPLETE")
    print("="*80 + "\n")

    return data_updated
