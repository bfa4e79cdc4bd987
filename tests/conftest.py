"""Shared test fixtures for DIA pipeline tests."""

import numpy as np
import pandas as pd
import pytest

CELL_LINES = ['CellLine1', 'CellLine2']
CONDITIONS = ['vehicle', 'treat']
REPLICATES = [1, 2, 3]

MODERATE_COL = 'CellLine1.vehicle.1_ProteinQuant'
HIGH_COL = 'CellLine2.treat.2_ProteinQuant'


def build_report(n_proteins=40, seed=42):
    """Synthetic DIA report: 2 cell lines x 2 conditions x 3 replicates x 2 metrics."""
    np.random.seed(seed)

    data = {
        'PG.ProteinGroups': [f'P{str(i).zfill(5)}' for i in range(n_proteins)],
        'PG.Genes': [f'GENE{i}' for i in range(n_proteins)],
        'PG.Organisms': ['Homo sapiens'] * n_proteins,
        'EG.IsDecoy': [False] * n_proteins,
    }

    for cell_line in CELL_LINES:
        for condition in CONDITIONS:
            for rep in REPLICATES:
                prefix = f'{cell_line}.{condition}.{rep}'
                data[f'{prefix}_NrOfPeptide'] = np.random.randint(1, 30, n_proteins).astype(float)
                quant = np.random.lognormal(mean=10, sigma=1, size=n_proteins)
                # Make some proteins clearly up in treat
                if condition == 'treat':
                    quant[1:6] *= 8
                data[f'{prefix}_ProteinQuant'] = quant

    df = pd.DataFrame(data)

    # Compound protein group and a decoy entry
    df.loc[0, 'PG.ProteinGroups'] = 'P00000;P10000'
    df.loc[n_proteins - 1, 'EG.IsDecoy'] = True

    # 4/40 missing -> moderate, 14/40 missing -> high
    df.loc[5:8, MODERATE_COL] = np.nan
    df.loc[10:23, HIGH_COL] = np.nan

    # One exact duplicate row
    df = pd.concat([df, df.iloc[[3]]], ignore_index=True)
    return df


@pytest.fixture
def raw_report():
    """Raw report before row expansion and filtering."""
    return build_report()


@pytest.fixture
def prepped_data(raw_report):
    """Run prep_dia and return the result for downstream tests."""
    from diaprot import prep_dia

    return prep_dia(raw_report)


@pytest.fixture
def profiled_data(prepped_data):
    from diaprot import missing_dia

    return missing_dia(prepped_data)


@pytest.fixture
def imputed_data(profiled_data):
    """Imputed data with few iterations to keep tests fast."""
    from diaprot import impute_dia

    return impute_dia(profiled_data, n_iter=5, n_chains=3, seed=42)


@pytest.fixture
def long_data(imputed_data):
    from diaprot import long_dia

    return long_dia(imputed_data)


@pytest.fixture
def correlated_frame():
    """Four correlated numeric columns with ~20% missing values each."""
    rng = np.random.default_rng(0)
    n = 60
    base = rng.normal(20, 2, n)
    frame = pd.DataFrame({
        f'c{j}': base + rng.normal(0, 0.5, n) for j in range(4)
    })
    frame['label'] = [f'row{i}' for i in range(n)]
    for j in range(4):
        mask = rng.random(n) < 0.2
        frame.loc[mask, f'c{j}'] = np.nan
    return frame
