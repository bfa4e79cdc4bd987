"""
Utility functions for the DIA analysis pipeline.

Internal helpers for configuration loading, report reading, directory
management and data serialization.
"""

import copy
import os
import pickle

import pandas as pd
import yaml


DEFAULT_CONFIG = {
    'experiment': {
        'name': 'DIA_Experiment',
    },
    'data_columns': {
        'protein_group': 'PG.ProteinGroups',
        'genes': 'PG.Genes',
        'organisms': 'PG.Organisms',
        'decoy': 'EG.IsDecoy',
    },
    'data_paths': {
        'input_file': None,
        'output_dir': None,
    },
    'missingness': {
        'low_threshold': 5.0,
        'high_threshold': 30.0,
    },
    'imputation': {
        'method': 'pmm',
        'n_iter': 50,
        'n_chains': 5,
        'k_pmm': 5,
        'seed': 42,
        'pool': 'first',
    },
    'statistics': {
        'alpha': 0.05,
        'metric': 'ProteinQuant',
        'correction': 'fdr_bh',
    },
    'clustering': {
        'metric': 'ProteinQuant',
        'n_hierarchical': 3,
        'n_kmeans': 4,
        'n_init': 25,
        'seed': 42,
        'n_components': 2,
    },
}


def _merge_config(base, overrides):
    """Recursively merge `overrides` onto a copy of `base`."""
    merged = copy.deepcopy(base)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_config(config_path):
    """Load YAML config file and fill in defaults."""
    with open(config_path, 'r') as f:
        user_config = yaml.safe_load(f) or {}
    return _merge_config(DEFAULT_CONFIG, user_config)


def _stage_param(value, config, section, key):
    """Return `value` unless it is None, else the configured default."""
    if value is not None:
        return value
    return config.get(section, {}).get(key, DEFAULT_CONFIG[section][key])


def read_report(filepath):
    """
    Read a tab-delimited DIA report exported with a header row.

    Parameters
    ----------
    filepath : str
        Path to the .tsv/.txt report.

    Returns
    -------
    pd.DataFrame
        Raw report, one row per protein group.
    """
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"Report file not found: {filepath}")

    df = pd.read_csv(filepath, sep='\t', low_memory=False)
    print(f"  > Loaded {df.shape[0]} rows, {df.shape[1]} columns from {os.path.basename(filepath)}")
    return df


def _create_output_dirs(base_dir):
    """Create organized output directory structure."""
    dirs = {
        'base': base_dir,
        'tables': f"{base_dir}/tables",
    }

    for dir_path in dirs.values():
        os.makedirs(dir_path, exist_ok=True)

    return dirs


def _save_table(data, table, filename):
    """Write a result table as CSV if the run has an output directory."""
    output_dirs = data.get('output_dirs')
    if not output_dirs:
        return None

    path = os.path.join(output_dirs['tables'], filename)
    table.to_csv(path, index=False)
    print(f"  > Saved: {filename} ({len(table)} rows)")
    return path


def _checkpoint(data, stage):
    """Auto-save the data dictionary after a stage for sequential workflow."""
    output_dirs = data.get('output_dirs')
    if not output_dirs:
        return None
    return save_data(data, os.path.join(output_dirs['base'], f'data_after_{stage}.pkl'))


def save_data(data, filename=None):
    """
    Save analysis data to pickle file for sequential workflow.

    Parameters
    ----------
    data : dict
        Analysis data dictionary (output from prep_dia, impute_dia, etc.)
    filename : str, optional
        Custom filename. If None, uses default based on output_dir in config.

    Returns
    -------
    str
        Path where data was saved.

    Example
    -------
    >>> data = prep_dia(report)
    >>> save_data(data, 'results/data_after_prep.pkl')
    """
    if filename is None:
        output_dir = data['config']['data_paths']['output_dir']
        if output_dir is None:
            raise ValueError("No filename given and config has no data_paths.output_dir")
        os.makedirs(output_dir, exist_ok=True)
        filename = os.path.join(output_dir, 'data_checkpoint.pkl')

    with open(filename, 'wb') as f:
        pickle.dump(data, f)

    size_mb = os.path.getsize(filename) / (1024 * 1024)

    print(f"\n{'='*80}")
    print(f"DATA SAVED")
    print(f"{'='*80}")
    print(f"Location: {filename}")
    print(f"Size: {size_mb:.1f} MB")
    print(f"\nTo load this data later:")
    print(f"  from diaprot import load_data")
    print(f"  data = load_data('{filename}')")
    print(f"{'='*80}\n")

    return filename


def load_data(filepath):
    """
    Load analysis data from pickle file.

    Parameters
    ----------
    filepath : str
        Path to saved pickle file.

    Returns
    -------
    dict
        Analysis data dictionary.

    Example
    -------
    >>> from diaprot import load_data
    >>> data = load_data('results/data_after_impute.pkl')
    >>> data = long_dia(data)  # Continue from where you left off
    """
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"Data file not found: {filepath}")

    print(f"\n{'='*80}")
    print(f"LOADING DATA")
    print(f"{'='*80}")

    with open(filepath, 'rb') as f:
        data = pickle.load(f)

    size_mb = os.path.getsize(filepath) / (1024 * 1024)

    print(f"Location: {filepath}")
    print(f"Size: {size_mb:.1f} MB")

    if 'metadata' in data:
        print(f"\nData contains:")
        print(f"  Rows: {data['metadata']['n_rows']}")
        print(f"  Sample columns: {data['metadata']['n_sample_columns']}")
        print(f"  Cell lines: {data['metadata']['cell_lines']}")

    print(f"{'='*80}\n")

    return data
