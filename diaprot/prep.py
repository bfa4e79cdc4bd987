"""
Data preparation functions for the DIA pipeline.

Handles row expansion of compound protein-group keys, duplicate removal,
decoy filtering and type coercion of the sample columns.
"""

import os

import numpy as np
import pandas as pd

from .reshape import find_sample_columns
from .utils import (
    DEFAULT_CONFIG,
    _checkpoint,
    _create_output_dirs,
    _load_config,
    _merge_config,
    _save_table,
)

_TRUE_TOKENS = {'true', 't', 'yes', '1', '1.0'}


def _resolve_config(config):
    """Accept a YAML path, a partial config dict or None."""
    if config is None:
        return _merge_config(DEFAULT_CONFIG, {})
    if isinstance(config, (str, os.PathLike)):
        return _load_config(config)
    return _merge_config(DEFAULT_CONFIG, config)


def _coerce_decoy(value):
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if pd.isna(value):
        return False
    if isinstance(value, (int, float, np.number)):
        return value != 0
    return str(value).strip().lower() in _TRUE_TOKENS


def _split_identifiers(value, sep):
    if pd.isna(value):
        return [value]
    tokens = [t.strip() for t in str(value).split(sep) if t.strip()]
    return tokens or [np.nan]


def explode_protein_groups(df, column, sep=';'):
    """
    Expand semicolon-joined identifiers into one row per identifier.

    All other fields are copied unchanged; values without the delimiter
    stay a single row.

    Example
    -------
    >>> explode_protein_groups(df, 'PG.ProteinGroups')  # "P1;P2" -> two rows
    """
    out = df.copy()
    out[column] = out[column].map(lambda v: _split_identifiers(v, sep))
    return out.explode(column, ignore_index=True)


def drop_duplicate_rows(df):
    """Remove rows that are duplicated across every field, keeping the first."""
    return df.drop_duplicates(keep='first').reset_index(drop=True)


def remove_decoys(df, column):
    """Drop rows flagged as decoy entries."""
    return df[~df[column].astype(bool)].reset_index(drop=True)


def prep_dia(report, config=None):
    """
    Normalize a parsed DIA report for analysis.

    This function:
    1. Resolves the configuration (defaults + overrides)
    2. Identifies sample columns and checks metric pairing
    3. Coerces sample columns to numbers and the decoy flag to bool
    4. Explodes compound protein-group identifiers
    5. Removes exact duplicate rows
    6. Removes decoy rows
    7. Creates output directory structure (if configured)

    Parameters
    ----------
    report : pd.DataFrame or dict
        Parsed report, or a mapping of column name to cell values.
    config : dict or str, optional
        Config overrides, or path to a YAML configuration file.

    Returns
    -------
    dict
        Dictionary containing:
        - 'df': pd.DataFrame, one row per (protein identifier, original row)
        - 'config': resolved configuration dictionary
        - 'sample_cols': maps sample column names to SampleColumn records
        - 'metadata': row counts per step and column pairing problems
        - 'output_dirs': paths to output directories, or None

    Example
    -------
    >>> report = read_report('data/dia_report.tsv')
    >>> data = prep_dia(report, 'config/experiment.yaml')
    >>> print(f"Kept {len(data['df'])} rows")
    """
    print("\n" + "="*80)
    print("STEP 1: ROW EXPANSION AND FILTERING")
    print("="*80)

    config = _resolve_config(config)
    data_columns = config['data_columns']
    group_col = data_columns['protein_group']
    decoy_col = data_columns['decoy']

    df = pd.DataFrame(report).copy()
    initial_rows = len(df)

    missing = [c for c in (group_col, decoy_col) if c not in df.columns]
    if missing:
        raise ValueError(f"Report is missing required column(s): {', '.join(missing)}")

    print(f"\n> Configuration resolved")
    print(f"  Experiment: {config['experiment']['name']}")
    print(f"  Input: {initial_rows} rows, {df.shape[1]} columns")

    # =========================================================================
    # 1. IDENTIFY SAMPLE COLUMNS
    # =========================================================================
    print(f"\n[1/5] Identifying sample columns...")

    sample_cols = find_sample_columns(df.columns)
    for col in sample_cols:
        df[col] = pd.to_numeric(df[col], errors='coerce')

    cell_lines = sorted({s.cell_line for s in sample_cols.values()})
    print(f"  > {len(sample_cols)} sample columns across {len(cell_lines)} cell line(s)")

    by_sample = {}
    for sample in sample_cols.values():
        by_sample.setdefault(sample.sample, set()).add(sample.metric)

    unpaired = sorted(
        f"{cell}.{cond}.{rep}" for (cell, cond, rep), metrics in by_sample.items()
        if len(metrics) < 2
    )
    for name in unpaired:
        print(f"  Warning: sample {name} lacks a NrOfPeptide/ProteinQuant partner")

    # =========================================================================
    # 2. DECOY FLAG
    # =========================================================================
    print(f"\n[2/5] Normalizing decoy flag...")

    df[decoy_col] = df[decoy_col].map(_coerce_decoy).astype(bool)
    print(f"  > {int(df[decoy_col].sum())} decoy rows flagged")

    # =========================================================================
    # 3. EXPAND PROTEIN GROUPS
    # =========================================================================
    print(f"\n[3/5] Expanding protein groups...")

    before = len(df)
    df = explode_protein_groups(df, group_col)
    print(f"  > {before} rows -> {len(df)} rows (one per protein identifier)")
    expanded_rows = len(df)

    # =========================================================================
    # 4. REMOVE DUPLICATES
    # =========================================================================
    print(f"\n[4/5] Removing exact duplicates...")

    before = len(df)
    df = drop_duplicate_rows(df)
    duplicates_removed = before - len(df)
    print(f"  > Removed {duplicates_removed} duplicate rows")

    # =========================================================================
    # 5. REMOVE DECOYS
    # =========================================================================
    print(f"\n[5/5] Removing decoy entries...")

    before = len(df)
    df = remove_decoys(df, decoy_col)
    decoys_removed = before - len(df)
    print(f"  > Removed {decoys_removed} decoy rows")
    print(f"    Remaining: {len(df)} rows")

    # =========================================================================
    # 6. OUTPUT DIRECTORIES AND METADATA
    # =========================================================================
    output_dir = config['data_paths'].get('output_dir')
    output_dirs = _create_output_dirs(output_dir) if output_dir else None
    if output_dirs:
        print(f"\n> Output directories created at: {output_dir}")

    metadata = {
        'n_rows': len(df),
        'n_input_rows': initial_rows,
        'n_expanded_rows': expanded_rows,
        'duplicates_removed': duplicates_removed,
        'decoys_removed': decoys_removed,
        'n_sample_columns': len(sample_cols),
        'cell_lines': cell_lines,
        'unpaired_samples': unpaired,
    }

    print("\n" + "="*80)
    print("DATA PREPARATION COMPLETE")
    print("="*80)
    print(f"\nInput rows:              {initial_rows}")
    print(f"Rows after expansion:    {expanded_rows}")
    print(f"Final rows:              {len(df)}")
    print(f"\nCell lines:              {', '.join(cell_lines) if cell_lines else '-'}")
    print("\n" + "="*80 + "\n")

    return_data = {
        'df': df,
        'config': config,
        'sample_cols': sample_cols,
        'metadata': metadata,
        'output_dirs': output_dirs,
    }

    if output_dirs:
        _save_table(return_data, df, 'filtered_rows_after_prep.csv')
    _checkpoint(return_data, 'prep')

    return return_data
