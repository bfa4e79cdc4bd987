"""Tests for diaprot.statistics module."""

import numpy as np
import pandas as pd
import pytest

from diaprot import stat_dia
from diaprot.statistics import (
    compare_entities,
    compare_replicates,
    summarize_groups,
    welch_ttest,
    wilcoxon_ranksum,
)


def _long(entity, cell_line, replicate, vehicle, treat, metric='ProteinQuant'):
    rows = []
    for condition, values in (('vehicle', vehicle), ('treat', treat)):
        for value in values:
            rows.append({
                'entity': entity, 'cell_line': cell_line, 'condition': condition,
                'replicate': replicate, 'metric': metric, 'value': value,
            })
    return rows


@pytest.fixture
def toy_long():
    rows = []
    rows += _long('A', 'CellLine1', 1, [1, 2, 3, 4, 5, 6], [11, 12, 13, 14, 15, 16])
    rows += _long('B', 'CellLine1', 2, [1, 2, 3, 4, 5, 6], [1.5, 2.5, 3.5, 4.5, 5.5, 6.5])
    rows += _long('C', 'CellLine2', 1, [5.0], [7.0, 8.0, np.nan])
    rows += _long('A', 'CellLine1', 1, [100], [200], metric='NrOfPeptide')
    return pd.DataFrame(rows)


class TestTests:
    def test_wilcoxon_is_symmetric(self):
        rng = np.random.default_rng(3)
        a = rng.normal(0, 1, 12)
        b = rng.normal(0.5, 1, 15)

        assert wilcoxon_ranksum(a, b)[1] == pytest.approx(wilcoxon_ranksum(b, a)[1])

    def test_wilcoxon_symmetric_with_ties(self):
        a = [1, 2, 2, 3, 5, 5, 8]
        b = [2, 3, 3, 4, 9]

        assert wilcoxon_ranksum(a, b)[1] == pytest.approx(wilcoxon_ranksum(b, a)[1])

    def test_separated_groups_give_small_pvalues(self):
        vehicle = [1, 2, 3, 4, 5, 6]
        treat = [11, 12, 13, 14, 15, 16]

        assert wilcoxon_ranksum(vehicle, treat)[1] < 0.01
        assert welch_ttest(vehicle, treat)[1] < 0.01


class TestSummarizeGroups:
    def test_statistics_ignore_nulls(self, toy_long):
        summary = summarize_groups(toy_long).set_index(['cell_line', 'condition'])

        treat = summary.loc[('CellLine2', 'treat')]
        assert treat['count'] == 2
        assert treat['mean'] == pytest.approx(7.5)
        assert treat['min'] == 7.0
        assert treat['max'] == 8.0

    def test_only_requested_metric(self, toy_long):
        summary = summarize_groups(toy_long).set_index(['cell_line', 'condition'])

        assert summary.loc[('CellLine1', 'vehicle'), 'max'] == 6


class TestCompareReplicates:
    def test_two_tests_per_key(self, toy_long):
        results, skipped = compare_replicates(toy_long)

        assert len(results) == 4
        assert set(results['test']) == {'t-test', 'wilcoxon'}
        assert set(zip(results['cell_line'], results['replicate'])) == {
            ('CellLine1', 1), ('CellLine1', 2),
        }

    def test_small_group_skipped_not_aborted(self, toy_long):
        _, skipped = compare_replicates(toy_long)

        assert [item['key'] for item in skipped] == [('CellLine2', 1)]
        assert 'vehicle=1' in skipped[0]['reason']


class TestCompareEntities:
    def test_significance_flag(self, toy_long):
        results, skipped = compare_entities(toy_long)
        results = results.set_index('entity')

        assert bool(results.loc['A', 'significant'])
        assert not bool(results.loc['B', 'significant'])
        assert [item['key'] for item in skipped] == ['C']

    def test_flag_iff_pvalue_below_alpha(self, long_data):
        results, _ = compare_entities(long_data['long'], alpha=0.05)

        np.testing.assert_array_equal(
            results['significant'].values, (results['pvalue'] < 0.05).values
        )

    def test_threshold_is_strict(self, toy_long):
        results, _ = compare_entities(toy_long)
        pvalue_a = results.loc[results['entity'] == 'A', 'pvalue'].iloc[0]

        at_threshold, _ = compare_entities(toy_long, alpha=pvalue_a)

        assert not at_threshold.loc[at_threshold['entity'] == 'A', 'significant'].iloc[0]

    def test_adjusted_pvalues_not_smaller(self, long_data):
        results, _ = compare_entities(long_data['long'])

        assert (results['adj_pvalue'] >= results['pvalue'] - 1e-12).all()

    def test_no_correction_option(self, toy_long):
        results, _ = compare_entities(toy_long, correction='none')

        np.testing.assert_array_equal(results['adj_pvalue'].values, results['pvalue'].values)


class TestStatDia:
    def test_returns_all_tables(self, long_data):
        result = stat_dia(long_data)

        for key in ('group_summary', 'replicate_tests', 'entity_tests',
                    'stats_skipped', 'stats_params'):
            assert key in result

    def test_group_summary_covers_every_group(self, long_data):
        summary = stat_dia(long_data)['group_summary']

        assert len(summary) == 4
        assert (summary['count'] == 40 * 3).all()

    def test_replicate_tests_cover_every_replicate(self, long_data):
        result = stat_dia(long_data)

        assert len(result['replicate_tests']) == 2 * 3 * 2
        assert result['stats_skipped']['replicate_tests'] == []

    def test_params_stored(self, long_data):
        result = stat_dia(long_data, alpha=0.01, correction='bonferroni')

        assert result['stats_params']['alpha'] == 0.01
        assert result['stats_params']['correction'] == 'bonferroni'
        assert result['stats_params']['metric'] == 'ProteinQuant'
