"""Tests for diaprot.imputation module."""

import numpy as np
import pandas as pd
import pytest

from diaprot import (
    InsufficientDonorsError,
    NoObservedDataError,
    impute_dia,
    missing_dia,
    prep_dia,
)
from diaprot.imputation import knn_impute, mice_impute

from conftest import HIGH_COL, MODERATE_COL, build_report

COLS = ['c0', 'c1', 'c2', 'c3']


class TestMiceImpute:
    def test_fills_all_missing_values(self, correlated_frame):
        result, _ = mice_impute(correlated_frame, COLS, n_iter=5, n_chains=2, seed=1)

        assert result[COLS].isna().sum().sum() == 0

    def test_same_seed_same_output(self, correlated_frame):
        first, _ = mice_impute(correlated_frame, COLS, n_iter=5, n_chains=3, seed=11)
        second, _ = mice_impute(correlated_frame, COLS, n_iter=5, n_chains=3, seed=11)

        pd.testing.assert_frame_equal(first, second)

    def test_different_seed_still_complete(self, correlated_frame):
        result, _ = mice_impute(correlated_frame, COLS, n_iter=5, n_chains=3, seed=12345)

        assert result[COLS].notna().all().all()

    def test_observed_values_unchanged(self, correlated_frame):
        result, _ = mice_impute(correlated_frame, COLS, n_iter=3, n_chains=2, seed=3)

        observed = correlated_frame[COLS].notna()
        np.testing.assert_array_equal(
            result[COLS].values[observed.values],
            correlated_frame[COLS].values[observed.values],
        )
        assert result['label'].tolist() == correlated_frame['label'].tolist()

    def test_first_chain_pooling_uses_observed_donors(self, correlated_frame):
        result, _ = mice_impute(correlated_frame, COLS, n_iter=3, n_chains=2, seed=5, pool='first')

        for col in COLS:
            missing = correlated_frame[col].isna()
            donors = set(correlated_frame.loc[~missing, col])
            assert set(result.loc[missing, col]) <= donors

    def test_mean_pooling_averages_chains(self, correlated_frame):
        result, spread = mice_impute(correlated_frame, COLS, n_iter=3, n_chains=4, seed=5, pool='mean')

        assert result[COLS].notna().all().all()
        assert (spread >= 0).all()

    def test_single_column_uses_intercept_only(self, correlated_frame):
        result, _ = mice_impute(correlated_frame, ['c0'], n_iter=2, n_chains=1, seed=0)

        assert result['c0'].notna().all()
        assert result['c1'].isna().sum() == correlated_frame['c1'].isna().sum()

    def test_rows_with_nothing_observed_are_filled(self, correlated_frame):
        frame = correlated_frame.copy()
        frame.loc[[3, 17], COLS] = np.nan

        result, _ = mice_impute(frame, COLS, n_iter=3, n_chains=2, seed=4)

        assert len(result) == len(frame)
        assert result.loc[[3, 17], COLS].notna().all().all()
        assert result['label'].tolist() == frame['label'].tolist()

    def test_sparse_column_is_imputed_from_its_donors(self, correlated_frame):
        frame = correlated_frame.copy()
        frame.loc[2:, 'c1'] = np.nan
        frame.loc[[0, 1], 'c1'] = [18.0, 22.0]

        result, _ = mice_impute(frame, COLS, n_iter=3, n_chains=2, seed=8)

        assert set(result['c1']) <= {18.0, 22.0}

    def test_all_missing_column_raises(self, correlated_frame):
        frame = correlated_frame.copy()
        frame['c2'] = np.nan

        with pytest.raises(NoObservedDataError) as excinfo:
            mice_impute(frame, COLS, n_iter=2, n_chains=1)

        assert excinfo.value.column == 'c2'

    def test_unknown_pooling_raises(self, correlated_frame):
        with pytest.raises(ValueError):
            mice_impute(correlated_frame, COLS, pool='vote')

    def test_does_not_mutate_input(self, correlated_frame):
        before = correlated_frame.copy()

        mice_impute(correlated_frame, COLS, n_iter=2, n_chains=1)

        pd.testing.assert_frame_equal(correlated_frame, before)


class TestKnnImpute:
    def test_fills_missing_values(self, correlated_frame):
        result = knn_impute(correlated_frame, COLS)

        assert result[COLS].notna().all().all()

    def test_no_complete_rows_raises(self):
        frame = pd.DataFrame({
            'a': [np.nan, 1.0, np.nan, 2.0],
            'b': [1.0, np.nan, 2.0, np.nan],
        })

        with pytest.raises(InsufficientDonorsError):
            knn_impute(frame, ['a', 'b'])


class TestImputeDia:
    def test_targets_filled(self, imputed_data):
        df = imputed_data['df']

        assert df[MODERATE_COL].notna().all()
        assert df[HIGH_COL].notna().all()

    def test_non_target_columns_untouched(self, profiled_data, imputed_data):
        low = profiled_data['buckets']['low']

        pd.testing.assert_frame_equal(imputed_data['df'][low], profiled_data['df'][low])

    def test_low_bucket_keeps_missing_values(self):
        report = build_report()
        col = 'CellLine2.vehicle.1_ProteinQuant'
        report.loc[30, col] = np.nan

        data = missing_dia(prep_dia(report))
        assert col in data['buckets']['low']

        result = impute_dia(data, n_iter=2, n_chains=1)
        assert result['df'][col].isna().sum() == 1

    def test_summary_and_params(self, imputed_data):
        info = imputed_data['imputation']
        summary = info['summary'].set_index('column')

        assert info['method'] == 'pmm'
        assert info['n_chains'] == 3
        assert summary.loc[MODERATE_COL, 'n_imputed'] == 4
        assert summary.loc[HIGH_COL, 'n_imputed'] == 14
        assert summary.loc[HIGH_COL, 'bucket'] == 'high'

    def test_reproducible(self, profiled_data):
        first = impute_dia(profiled_data, n_iter=3, n_chains=2, seed=9)
        second = impute_dia(profiled_data, n_iter=3, n_chains=2, seed=9)

        pd.testing.assert_frame_equal(first['df'], second['df'])

    def test_fully_missing_column_aborts_stage(self):
        report = build_report()
        report['CellLine2.vehicle.2_ProteinQuant'] = np.nan

        data = missing_dia(prep_dia(report))

        with pytest.raises(NoObservedDataError):
            impute_dia(data, n_iter=2, n_chains=1)

    def test_does_not_mutate_input(self, profiled_data):
        missing_before = profiled_data['df'][HIGH_COL].isna().sum()

        impute_dia(profiled_data, n_iter=2, n_chains=1)

        assert profiled_data['df'][HIGH_COL].isna().sum() == missing_before
        assert 'imputation' not in profiled_data
